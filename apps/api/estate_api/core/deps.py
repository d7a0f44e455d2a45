"""FastAPI dependencies for database and trigger authentication."""

import secrets
from typing import Generator

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from estate_api.core.config import Settings, get_settings
from estate_api.db.session import SessionLocal


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _bearer_token(authorization: str | None) -> str:
    if not authorization:
        return ""
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


def verify_lifecycle_token(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Accept the service role key or the cron secret as a bearer token.

    Raises:
        HTTPException 401: Missing, malformed or unknown token
    """
    token = _bearer_token(authorization)
    if not token or not any(
        secrets.compare_digest(token, expected) for expected in settings.lifecycle_tokens
    ):
        raise HTTPException(status_code=401, detail="Unauthorized")
