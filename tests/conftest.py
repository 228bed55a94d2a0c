import os
from datetime import date, timedelta
from typing import AsyncGenerator, Callable, Dict
from uuid import uuid4

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.api.v1.announcements import service as announcement_service
from app.api.v1.announcements.schemas import ExpressInterest, TutorProfileSnapshot
from app.api.v1.class_leads import service as lead_service
from app.api.v1.class_leads.schemas import ClassLeadCreate, DemoAssign
from app.api.v1.demos import service as demo_service
from app.api.v1.demos.schemas import DemoApprove, DemoComplete, LeadDemoResponse
from app.auth.schemas import CurrentUser
from app.auth.security import token_for
from app.core.enums import DayOfWeek, UserRole
from app.core.notifications import RecordingNotifier, get_notifier
from app.db.schema_check import ensure_tables
from app.db.session import get_db
from app.main import app


def last_weekday(day: DayOfWeek, before: date = None) -> date:
    """Most recent date on or before `before` (default today) falling on `day`."""
    before = before or date.today()
    index = list(DayOfWeek).index(day)
    return before - timedelta(days=(before.weekday() - index) % 7)


def single_lead_payload(**overrides) -> Dict:
    payload = {
        "student_type": "SINGLE",
        "student_name": "Aarav Shah",
        "student_gender": "M",
        "parent_name": "Neha Shah",
        "parent_email": "neha@example.com",
        "parent_phone": "+919800000000",
        "grade": "8",
        "board": "CBSE",
        "subjects": ["Math", "Science"],
        "mode": "ONLINE",
        "timing": "17:00-18:00",
        "preferred_days": ["MONDAY", "WEDNESDAY"],
        "classes_per_month": 8,
        "payment_amount": "6000",
        "tutor_fees": "4000",
    }
    payload.update(overrides)
    return payload


def group_lead_payload(**overrides) -> Dict:
    payload = {
        "student_type": "GROUP",
        "grade": "10",
        "board": "ICSE",
        "subjects": ["Physics"],
        "mode": "OFFLINE",
        "city": "Pune",
        "area": "Kothrud",
        "address": "12 Lane 4",
        "preferred_days": ["SATURDAY"],
        "student_details": [
            {"name": "Isha", "gender": "F", "fees": "3000", "tutor_fees": "2000"},
            {"name": "Kabir", "gender": "M", "fees": "3500", "tutor_fees": "2200"},
        ],
    }
    payload.update(overrides)
    return payload


def bump_after_load(monkeypatch, module, model, bump, **values) -> None:
    """Make `module`'s row loader let another writer commit right after `model` is read."""
    real_load = module.load_for_update

    async def load_then_bump(db, loaded_model, entity_id, entity):
        obj = await real_load(db, loaded_model, entity_id, entity)
        if loaded_model is model:
            await bump(model, entity_id, **values)
        return obj

    monkeypatch.setattr(module, "load_for_update", load_then_bump)


def _actor(role: UserRole, name: str) -> CurrentUser:
    return CurrentUser(id=uuid4(), role=role, name=name)


@pytest.fixture()
def admin() -> CurrentUser:
    return _actor(UserRole.ADMIN, "Admin")


@pytest.fixture()
def manager() -> CurrentUser:
    return _actor(UserRole.MANAGER, "Meera")


@pytest.fixture()
def other_manager() -> CurrentUser:
    return _actor(UserRole.MANAGER, "Rohan")


@pytest.fixture()
def tutor() -> CurrentUser:
    return _actor(UserRole.TUTOR, "Tara")


@pytest.fixture()
def other_tutor() -> CurrentUser:
    return _actor(UserRole.TUTOR, "Vikram")


@pytest.fixture()
def coordinator() -> CurrentUser:
    return _actor(UserRole.COORDINATOR, "Chitra")


@pytest.fixture()
def parent() -> CurrentUser:
    return _actor(UserRole.PARENT, "Neha")


@pytest.fixture()
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """A fresh SQLite database file per test."""
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'workflow.db'}", future=True)
    await ensure_tables(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
def bump_version(session_factory: async_sessionmaker):
    """Commit a write to a row from a second session, as a concurrent request would."""

    async def _bump(model, entity_id, **values) -> None:
        async with session_factory() as other:
            await other.execute(
                update(model).where(model.id == entity_id).values(version=model.version + 1, **values)
            )
            await other.commit()

    return _bump


@pytest.fixture()
async def db_session(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
async def client(session_factory: async_sessionmaker, notifier: RecordingNotifier) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app, one DB session per request."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers() -> Callable[[CurrentUser], Dict[str, str]]:
    def _headers(user: CurrentUser) -> Dict[str, str]:
        return {"Authorization": f"Bearer {token_for(user)}"}

    return _headers


@pytest.fixture()
def scheduled_demo(db_session, manager, tutor, notifier):
    """Create, announce and schedule a demo with an interested tutor."""

    async def _build(**lead_overrides) -> LeadDemoResponse:
        lead = await lead_service.create_lead(
            db_session, manager, ClassLeadCreate(**single_lead_payload(**lead_overrides))
        )
        posted = await lead_service.post_lead(db_session, lead.id, manager, notifier)
        await announcement_service.express_interest(
            db_session,
            posted.announcement.id,
            tutor,
            ExpressInterest(profile=TutorProfileSnapshot(subjects=["Math", "Science"], ratings=4.5)),
            notifier,
        )
        return await lead_service.select_tutor_for_demo(
            db_session,
            lead.id,
            manager,
            DemoAssign(tutor_id=tutor.id, demo_date=date.today(), demo_time="17:00"),
            notifier,
        )

    return _build


@pytest.fixture()
def completed_demo(db_session, tutor, notifier, scheduled_demo):
    async def _build(**lead_overrides) -> LeadDemoResponse:
        scheduled = await scheduled_demo(**lead_overrides)
        return await demo_service.complete_demo(
            db_session,
            scheduled.demo.id,
            tutor,
            DemoComplete(attendance_status="PRESENT", topic_covered="Fractions", duration="60 min"),
            notifier,
        )

    return _build


@pytest.fixture()
def converted_class(db_session, manager, coordinator, parent, notifier, completed_demo):
    """Run a lead all the way to an ACTIVE final class (Mondays and Wednesdays)."""

    async def _build(**lead_overrides) -> LeadDemoResponse:
        completed = await completed_demo(**lead_overrides)
        return await demo_service.approve_demo(
            db_session,
            completed.demo.id,
            manager,
            DemoApprove(coordinator_id=coordinator.id, parent_id=parent.id),
            notifier,
        )

    return _build
