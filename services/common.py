# Shared helpers for the service layer

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import List, Tuple

from sqlalchemy.orm import Session, Query


@contextmanager
def transaction(db: Session):
    """
    Commit on success, roll back and re-raise on any error.
    Usage:
    with transaction(self.db):
        # writes
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def paginate(query: Query, page: int, limit: int, key: str) -> dict:
    total = query.count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return {
        key: items,
        "total": total,
        "page": page,
        "pages": (total + limit - 1) // limit,
    }


@dataclass
class SweepResult:
    """Outcome of a batch job that processes items one by one."""
    candidates: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[Tuple[str, str]] = field(default_factory=list)

    def record_error(self, item_id: str, error: Exception):
        self.failed += 1
        self.errors.append((item_id, str(error)))
