from datetime import datetime, timezone


def utcnow() -> datetime:
    """Timezone-aware UTC now; every persisted timestamp goes through this."""
    return datetime.now(timezone.utc)


__all__ = ["utcnow"]
