from __future__ import annotations

from fastapi import HTTPException, status

from app.core.config import settings

ANONYMOUS_OWNER = "anonymous"
_MAX_OWNER_LEN = 128


def check_api_key(x_api_key: str | None) -> None:
    if settings.auth_mode != "protected":
        return
    if x_api_key != settings.api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Please provide a valid API key.",
        )


def resolve_owner_id(x_user_id: str | None) -> str:
    owner = (x_user_id or "").strip()
    if not owner:
        return ANONYMOUS_OWNER
    return owner[:_MAX_OWNER_LEN]
