# carfinder/api/deps.py
"""FastAPI dependencies for caller identity and cron protection."""
import hmac

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from .. import crud, settings
from ..db import get_db
from ..models import User


def get_current_user(
    x_api_key: str | None = Header(None, alias="X-API-Key"),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the caller from the ``X-API-Key`` header or fail with 401."""
    user = crud.get_user_by_api_key(db, x_api_key) if x_api_key else None
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user


def require_cron_secret(authorization: str | None = Header(None)) -> None:
    if not settings.CRON_SECRET:
        return
    expected = f"Bearer {settings.CRON_SECRET}"
    if not authorization or not hmac.compare_digest(authorization, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
