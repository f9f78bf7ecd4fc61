# Typed errors raised by the campaign engine services.
# Each carries an HTTP-style status code and detail, so an API layer can map
# them one-to-one onto responses.

from typing import Optional


class MarketplaceError(Exception):
    """Base class for all engine errors."""

    status_code = 500
    code = "error"

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(detail)
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.detail}


class NotFound(MarketplaceError):
    status_code = 404
    code = "not_found"


class Forbidden(MarketplaceError):
    status_code = 403
    code = "forbidden"


class BadRequest(MarketplaceError):
    status_code = 400
    code = "bad_request"


class InvalidState(MarketplaceError):
    """Illegal status transition or unmet precondition."""
    status_code = 409
    code = "invalid_state"


class InvalidTransition(InvalidState):
    code = "invalid_transition"

    def __init__(self, entity: str, current, requested):
        self.entity = entity
        self.current = current
        self.requested = requested
        super().__init__(
            f"Invalid {entity} status transition from "
            f"{_label(current)} to {_label(requested)}"
        )


class InvalidOperation(InvalidState):
    code = "invalid_operation"


class Conflict(MarketplaceError):
    status_code = 409
    code = "conflict"


class AlreadyApplied(Conflict):
    code = "already_applied"


class AlreadySubmitted(Conflict):
    code = "already_submitted"


class SettlementError(MarketplaceError):
    status_code = 502
    code = "settlement_error"


class SettlementFailed(SettlementError):
    """The provider rejected the transfer. The payment is marked FAILED."""
    code = "settlement_failed"


class SettlementPending(SettlementError):
    """The provider did not answer in time. The payment stays PROCESSING for reconciliation."""
    status_code = 202
    code = "settlement_pending"


def _label(status) -> str:
    value = getattr(status, "value", status)
    return str(value).upper()
