# Settlement gateways for influencer payouts
# A gateway moves money for a Payment that the ledger has put into PROCESSING.
#
# settle() either returns a settled result or raises:
#   SettlementFailed  - the provider definitely refused, payment becomes FAILED
#   SettlementPending - no definite answer, payment stays PROCESSING for reconciliation

import time
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

import requests

from config.app_config import (
    SETTLEMENT_PROVIDER,
    SIMULATED_SETTLEMENT_DELAY_SECONDS,
)
from core.errors import SettlementFailed, SettlementPending
from core.paystack_service import PaystackService, PaystackAPIError

logger = logging.getLogger(__name__)


SETTLED = "settled"
FAILED = "failed"
PENDING = "pending"


@dataclass
class SettlementResult:
    status: str
    reference: str
    transaction_id: Optional[str] = None
    message: Optional[str] = None

    @property
    def settled(self) -> bool:
        return self.status == SETTLED


class SettlementGateway(ABC):
    """Interface the payment ledger talks to."""

    name = "base"

    @abstractmethod
    def settle(self, payment, timeout: float) -> SettlementResult:
        """Start (and if possible finish) the transfer for a PROCESSING payment."""

    @abstractmethod
    def lookup(self, reference: str, timeout: float) -> SettlementResult:
        """Ask the provider what happened to an earlier transfer."""


class SimulatedSettlementGateway(SettlementGateway):
    """
    In-process gateway for development and tests.

    `outcome` decides what settle() does: "settle", "fail" or "timeout".
    A configured delay longer than the call timeout behaves like a timeout.
    Transfer state lives in this instance only; a process restart forgets it.
    """

    name = "simulated"

    def __init__(self, outcome: str = "settle", delay: float = SIMULATED_SETTLEMENT_DELAY_SECONDS):
        self.outcome = outcome
        self.delay = delay
        self.calls = []
        self._transfers: Dict[str, SettlementResult] = {}

    def settle(self, payment, timeout: float) -> SettlementResult:
        reference = payment.id
        self.calls.append(reference)

        if self.delay:
            time.sleep(min(self.delay, timeout))
        if self.outcome == "timeout" or (self.delay and self.delay > timeout):
            self._transfers[reference] = SettlementResult(PENDING, reference)
            raise SettlementPending(f"Settlement of payment {reference} timed out after {timeout}s")
        if self.outcome == "fail":
            self._transfers[reference] = SettlementResult(FAILED, reference, message="Transfer declined")
            raise SettlementFailed("Transfer declined")

        result = SettlementResult(SETTLED, reference, transaction_id=f"SIM_{reference.replace('-', '')}")
        self._transfers[reference] = result
        return result

    def lookup(self, reference: str, timeout: float) -> SettlementResult:
        return self._transfers.get(reference, SettlementResult(PENDING, reference))

    def resolve(self, reference: str, status: str, transaction_id: Optional[str] = None, message: Optional[str] = None):
        """Record the provider-side outcome of a transfer that was left pending."""
        self._transfers[reference] = SettlementResult(status, reference, transaction_id, message)


class PaystackSettlementGateway(SettlementGateway):
    """Pays the influencer's net amount through the Paystack transfer API."""

    name = "paystack"

    SUCCESS_STATES = {"success"}
    FAILED_STATES = {"failed", "reversed", "abandoned"}

    def __init__(self, client: Optional[PaystackService] = None):
        self.client = client or PaystackService()

    def _result(self, reference: str, data: dict) -> SettlementResult:
        state = (data.get("status") or "").lower()
        transaction_id = data.get("transfer_code")
        if state in self.SUCCESS_STATES:
            return SettlementResult(SETTLED, reference, transaction_id)
        if state in self.FAILED_STATES:
            return SettlementResult(FAILED, reference, transaction_id, message=data.get("reason") or f"Transfer {state}")
        return SettlementResult(PENDING, reference, transaction_id)

    def settle(self, payment, timeout: float) -> SettlementResult:
        reference = payment.id
        recipient = getattr(payment.influencer, "paystack_recipient_code", None)
        if not recipient:
            raise SettlementFailed("Influencer has no Paystack transfer recipient")

        try:
            data = self.client.initiate_transfer(
                amount=PaystackService.to_subunits(payment.net_amount),
                recipient=recipient,
                reference=reference,
                reason=f"Campaign payment {reference}",
                timeout=timeout,
            )
        except PaystackAPIError as e:
            raise SettlementFailed(e.message)
        except requests.exceptions.RequestException as e:
            logger.warning(f"Paystack transfer for payment {reference} has no answer: {e}")
            raise SettlementPending(f"Settlement of payment {reference} is pending: {e}")

        result = self._result(reference, data)
        if result.status == FAILED:
            raise SettlementFailed(result.message)
        if result.status == PENDING:
            raise SettlementPending(f"Transfer for payment {reference} is still being processed")
        return result

    def lookup(self, reference: str, timeout: float) -> SettlementResult:
        try:
            data = self.client.verify_transfer(reference, timeout=timeout)
        except PaystackAPIError as e:
            # Unknown reference: the transfer was never created
            if e.status_code == 404:
                return SettlementResult(FAILED, reference, message=e.message)
            raise SettlementPending(e.message)
        except requests.exceptions.RequestException as e:
            raise SettlementPending(f"Lookup of transfer {reference} failed: {e}")
        return self._result(reference, data)


def get_settlement_gateway(provider: Optional[str] = None) -> SettlementGateway:
    """Build the gateway named by SETTLEMENT_PROVIDER."""
    provider = (provider or SETTLEMENT_PROVIDER).lower()
    if provider == "paystack":
        return PaystackSettlementGateway()
    if provider == "simulated":
        return SimulatedSettlementGateway()
    raise ValueError(f"Unknown settlement provider: {provider}")
