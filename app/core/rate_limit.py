from __future__ import annotations

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings
from app.core.security import ANONYMOUS_OWNER, resolve_owner_id


def owner_or_remote_address(request: Request) -> str:
    """Bucket callers by X-User-Id when present, otherwise by client address."""
    owner = resolve_owner_id(request.headers.get("X-User-Id"))
    if owner != ANONYMOUS_OWNER:
        return f"owner:{owner}"
    return get_remote_address(request)


limiter = Limiter(key_func=owner_or_remote_address, enabled=settings.rate_limit_enabled)


def rate_limit(limit: str | None = None):
    if settings.rate_limit_enabled:
        return limiter.limit(limit or settings.rate_limit)

    def decorator(func):
        return func

    return decorator
