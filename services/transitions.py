# Status transition tables and compare-and-swap helpers
# Every status write in the services goes through these

from datetime import datetime
from typing import Dict, FrozenSet, Optional

from sqlalchemy.orm import Session

from database.marketplace_models import (
    CampaignStatusDB,
    ApplicationStatusDB,
    ContentStatusDB,
    PaymentStatusDB,
)
from core.errors import InvalidTransition, Conflict


CAMPAIGN_TRANSITIONS: Dict[CampaignStatusDB, FrozenSet[CampaignStatusDB]] = {
    CampaignStatusDB.DRAFT: frozenset({CampaignStatusDB.ACTIVE, CampaignStatusDB.CANCELLED}),
    CampaignStatusDB.ACTIVE: frozenset({CampaignStatusDB.PAUSED, CampaignStatusDB.COMPLETED, CampaignStatusDB.CANCELLED}),
    CampaignStatusDB.PAUSED: frozenset({CampaignStatusDB.ACTIVE, CampaignStatusDB.CANCELLED}),
    CampaignStatusDB.COMPLETED: frozenset(),
    CampaignStatusDB.CANCELLED: frozenset(),
}

# Responded applications are terminal; re-sending the same answer is handled by the service
APPLICATION_TRANSITIONS: Dict[ApplicationStatusDB, FrozenSet[ApplicationStatusDB]] = {
    ApplicationStatusDB.PENDING: frozenset({ApplicationStatusDB.ACCEPTED, ApplicationStatusDB.REJECTED}),
    ApplicationStatusDB.ACCEPTED: frozenset(),
    ApplicationStatusDB.REJECTED: frozenset(),
}

CONTENT_TRANSITIONS: Dict[ContentStatusDB, FrozenSet[ContentStatusDB]] = {
    ContentStatusDB.PENDING: frozenset({ContentStatusDB.APPROVED, ContentStatusDB.REJECTED}),
    ContentStatusDB.APPROVED: frozenset({ContentStatusDB.COMPLETED}),
    ContentStatusDB.REJECTED: frozenset({ContentStatusDB.APPROVED, ContentStatusDB.REJECTED}),
    ContentStatusDB.COMPLETED: frozenset({ContentStatusDB.PAID}),
    ContentStatusDB.PAID: frozenset(),
}

PAYMENT_TRANSITIONS: Dict[PaymentStatusDB, FrozenSet[PaymentStatusDB]] = {
    PaymentStatusDB.PENDING: frozenset({PaymentStatusDB.PROCESSING, PaymentStatusDB.CANCELLED}),
    PaymentStatusDB.PROCESSING: frozenset({PaymentStatusDB.COMPLETED, PaymentStatusDB.FAILED}),
    PaymentStatusDB.COMPLETED: frozenset(),
    PaymentStatusDB.FAILED: frozenset(),
    PaymentStatusDB.CANCELLED: frozenset(),
}


def can_transition(table: dict, current, requested) -> bool:
    return requested in table.get(current, frozenset())


def assert_transition(entity: str, table: dict, current, requested) -> None:
    """Raise InvalidTransition unless current -> requested is in the table."""
    if not can_transition(table, current, requested):
        raise InvalidTransition(entity, current, requested)


def compare_and_set(
    db: Session,
    model,
    entity_id: str,
    expected,
    new,
    values: Optional[dict] = None,
    touch: bool = True,
) -> bool:
    """
    UPDATE model SET status = new WHERE id = entity_id AND status = expected.

    Returns True if the row was updated, False if another writer changed the
    status first. `values` are written in the same statement.
    """
    changes = {"status": new}
    if values:
        changes.update(values)
    if touch and hasattr(model, "updated_at"):
        changes.setdefault("updated_at", datetime.utcnow())

    rowcount = (
        db.query(model)
        .filter(model.id == entity_id, model.status == expected)
        .update(changes, synchronize_session=False)
    )
    return rowcount == 1


def cas_or_conflict(db: Session, model, entity_id: str, expected, new, values: Optional[dict] = None) -> None:
    """compare_and_set, raising Conflict when the status moved under us."""
    if not compare_and_set(db, model, entity_id, expected, new, values):
        raise Conflict(
            f"{model.__name__} {entity_id} was modified concurrently; "
            f"expected status {expected.value.upper()}"
        )
