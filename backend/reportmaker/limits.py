import os
from typing import Callable

from slowapi import Limiter
from slowapi.util import get_remote_address


DISABLE = os.getenv("DISABLE_RATE_LIMITS") == "1"
DEFAULT = os.getenv("RATE_LIMIT_DEFAULT", "600/hour")
STORAGE = os.getenv("RATE_LIMIT_STORAGE_URL")


class NoopLimiter:
    def limit(self, _value: str) -> Callable:
        def _decorator(fn):
            return fn
        return _decorator


def _build_limiter():
    if DISABLE:
        return NoopLimiter()
    kwargs = {}
    if STORAGE:
        # slowapi/limits uses storage_uri for backends like redis://...
        kwargs["storage_uri"] = STORAGE
    return Limiter(key_func=get_remote_address, default_limits=[DEFAULT], **kwargs)


limiter = _build_limiter()

__all__ = ["limiter", "NoopLimiter", "DISABLE", "DEFAULT", "STORAGE"]
