from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from app.core.enums import UserRole


class CurrentUser(BaseModel):
    """Actor asserted by the access token. Credentials live outside this service."""

    id: UUID
    role: UserRole
    name: Optional[str] = None

