from slowapi import Limiter
from slowapi.util import get_remote_address

from ..config import settings


def default_limit() -> str:
    return f"{settings.RATE_LIMIT_MAX} per {settings.RATE_LIMIT_WINDOW} seconds"


limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[default_limit()],
    enabled=settings.RATE_LIMIT_ENABLED,
)
