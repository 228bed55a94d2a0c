from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from jose import jwt

from app.auth.schemas import CurrentUser
from app.core.config import settings


def create_access_token(
    *, subject: Dict, expires_minutes: Optional[int] = None
) -> str:
    if expires_minutes is None:
        expires_minutes = settings.access_token_expire_minutes

    to_encode = subject.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(
        to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm
    )
    return encoded_jwt


def token_for(user: CurrentUser, expires_minutes: Optional[int] = None) -> str:
    """Access token carrying the claims get_current_user expects."""
    subject = {"user_id": str(user.id), "role": user.role.value}
    if user.name:
        subject["name"] = user.name
    return create_access_token(subject=subject, expires_minutes=expires_minutes)
