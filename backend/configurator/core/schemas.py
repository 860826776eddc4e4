from datetime import datetime, timezone
from typing import Generic, List, TypeVar

from pydantic import BaseModel
from sqlmodel import SQLModel


def utcnow() -> datetime:
    """Horodatage UTC utilisé par les colonnes created_at / updated_at."""
    return datetime.now(timezone.utc)


# --- Pagination ---
T = TypeVar('T', bound=SQLModel)

class PaginatedResponse(BaseModel, Generic[T]):
    items: List[T]
    total: int
