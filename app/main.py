from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.announcements.router import router as announcements_router
from app.api.v1.attendance.router import router as attendance_router
from app.api.v1.class_leads.router import router as class_leads_router
from app.api.v1.demos.router import router as demos_router
from app.api.v1.final_classes.router import router as final_classes_router
from app.core.config import settings
from app.core.logging import configure_logging


def create_app() -> FastAPI:
    configure_logging(settings.log_level)
    app = FastAPI(title="Tutoring Workflow Backend")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(class_leads_router)
    app.include_router(announcements_router)
    app.include_router(demos_router)
    app.include_router(final_classes_router)
    app.include_router(attendance_router)

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
