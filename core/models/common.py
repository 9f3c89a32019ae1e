"""Small helpers shared by the entity models."""
import math
import uuid
from datetime import datetime, timezone
from typing import Literal, Optional


Priority = Literal["low", "medium", "high"]

PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}


def utc_now() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes read back from the store as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def new_id() -> str:
    """Generate a document identifier."""
    return uuid.uuid4().hex


def pagination(page: int, limit: int, total: int) -> dict:
    """Pagination block returned alongside paged results."""
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }
