"""Settlement gateways and the Paystack transfer client."""

from decimal import Decimal
from types import SimpleNamespace

import pytest
import requests

from core.errors import SettlementFailed, SettlementPending
from core.paystack_service import PaystackService, PaystackAPIError
from core.settlement import (
    PaystackSettlementGateway, SimulatedSettlementGateway, get_settlement_gateway,
    SETTLED, FAILED, PENDING,
)


def _payment(recipient="RCP_abc123"):
    return SimpleNamespace(
        id="5f0c6a52-1111-4222-8333-944445555666",
        net_amount=Decimal("190.000000"),
        influencer=SimpleNamespace(paystack_recipient_code=recipient),
    )


class FakeClient:
    def __init__(self, transfer=None, verify=None, error=None):
        self.transfer = transfer or {}
        self.verify = verify or {}
        self.error = error
        self.sent = []

    def initiate_transfer(self, **kwargs):
        self.sent.append(kwargs)
        if self.error:
            raise self.error
        return self.transfer

    def verify_transfer(self, reference, timeout):
        if self.error:
            raise self.error
        return self.verify


def test_factory():
    assert isinstance(get_settlement_gateway("simulated"), SimulatedSettlementGateway)
    assert isinstance(get_settlement_gateway("paystack"), PaystackSettlementGateway)
    with pytest.raises(ValueError):
        get_settlement_gateway("carrier-pigeon")


def test_subunit_conversion():
    assert PaystackService.to_subunits(Decimal("190")) == 19000
    assert PaystackService.to_subunits(Decimal("4.995")) == 500


def test_simulated_delay_beyond_timeout_is_pending(monkeypatch):
    monkeypatch.setattr("core.settlement.time.sleep", lambda seconds: None)
    gateway = SimulatedSettlementGateway(delay=5)
    with pytest.raises(SettlementPending):
        gateway.settle(_payment(), timeout=1)
    assert gateway.lookup(_payment().id, timeout=1).status == PENDING


def test_paystack_successful_transfer():
    client = FakeClient(transfer={"status": "success", "transfer_code": "TRF_1"})
    result = PaystackSettlementGateway(client).settle(_payment(), timeout=10)

    assert result.status == SETTLED
    assert result.transaction_id == "TRF_1"
    assert client.sent[0]["amount"] == 19000
    assert client.sent[0]["recipient"] == "RCP_abc123"
    assert client.sent[0]["timeout"] == 10


def test_paystack_queued_transfer_is_pending():
    client = FakeClient(transfer={"status": "pending", "transfer_code": "TRF_2"})
    with pytest.raises(SettlementPending):
        PaystackSettlementGateway(client).settle(_payment(), timeout=10)


def test_paystack_refusal_fails():
    client = FakeClient(error=PaystackAPIError("Insufficient balance", status_code=400))
    with pytest.raises(SettlementFailed) as exc:
        PaystackSettlementGateway(client).settle(_payment(), timeout=10)
    assert exc.value.detail == "Insufficient balance"


def test_paystack_timeout_is_pending():
    client = FakeClient(error=requests.exceptions.Timeout("read timed out"))
    with pytest.raises(SettlementPending):
        PaystackSettlementGateway(client).settle(_payment(), timeout=10)


def test_missing_recipient_fails_without_calling_provider():
    client = FakeClient()
    with pytest.raises(SettlementFailed):
        PaystackSettlementGateway(client).settle(_payment(recipient=None), timeout=10)
    assert client.sent == []


def test_paystack_lookup():
    gateway = PaystackSettlementGateway(FakeClient(verify={"status": "reversed", "reason": "Recipient rejected"}))
    result = gateway.lookup("ref", timeout=5)
    assert result.status == FAILED
    assert result.message == "Recipient rejected"

    unknown = PaystackSettlementGateway(FakeClient(error=PaystackAPIError("Transfer not found", status_code=404)))
    assert unknown.lookup("ref", timeout=5).status == FAILED

    offline = PaystackSettlementGateway(FakeClient(error=requests.exceptions.ConnectionError("down")))
    with pytest.raises(SettlementPending):
        offline.lookup("ref", timeout=5)


class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body

    def json(self):
        return self._body

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")


def test_client_posts_transfer_with_timeout(monkeypatch):
    captured = {}

    def fake_post(url, headers, json, timeout):
        captured.update(url=url, json=json, timeout=timeout, headers=headers)
        return FakeResponse(200, {"status": True, "data": {"status": "success", "transfer_code": "TRF_9"}})

    monkeypatch.setattr("core.paystack_service.requests.post", fake_post)
    data = PaystackService(secret_key="sk_test").initiate_transfer(
        amount=19000, recipient="RCP_1", reference="ref-1", reason="Campaign payment", timeout=7,
    )

    assert data["transfer_code"] == "TRF_9"
    assert captured["url"].endswith("/transfer")
    assert captured["timeout"] == 7
    assert captured["json"]["source"] == "balance"
    assert captured["headers"]["Authorization"] == "Bearer sk_test"


def test_client_raises_api_error_on_refusal(monkeypatch):
    monkeypatch.setattr(
        "core.paystack_service.requests.get",
        lambda url, headers, timeout: FakeResponse(400, {"status": False, "message": "Invalid reference"}),
    )
    with pytest.raises(PaystackAPIError) as exc:
        PaystackService(secret_key="sk_test").verify_transfer("bad")
    assert exc.value.status_code == 400


def test_client_server_error_is_transport_error(monkeypatch):
    monkeypatch.setattr(
        "core.paystack_service.requests.get",
        lambda url, headers, timeout: FakeResponse(503, {}),
    )
    with pytest.raises(requests.exceptions.HTTPError):
        PaystackService(secret_key="sk_test").verify_transfer("ref")
