# tests/services/test_payment_service.py
import asyncio
import json

import httpx
import pytest

from common.config_loader import Settings
from common.errors import InvalidArgumentsError, NotFoundError, UpstreamUnavailableError
from common.models import PaymentStatus
from services.payment_service import DarajaGateway, PaymentService, SimulatedPaymentGateway


def _daraja(handler):
    settings = Settings(
        daraja_base_url="https://daraja.test",
        daraja_consumer_key="key",
        daraja_consumer_secret="secret",
        daraja_passkey="pass",
        daraja_shortcode="5512238",
        daraja_party_b="4159923",
        daraja_callback_url="https://example.test/callback/mpesa",
    )
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return DarajaGateway(settings, client=client)


def _token_ok(request):
    return httpx.Response(200, json={"access_token": "tok", "expires_in": "3599"})


# ---------- simulated gateway + service ----------
@pytest.mark.asyncio
async def test_initiate_records_pending(ledger, gateway):
    svc = PaymentService(ledger, gateway)
    res = await svc.initiate_payment("0712345678", 1500)
    assert res.success and res.reference == "CRQ-1"
    rec = await ledger.get_payment("CRQ-1")
    assert rec.status == PaymentStatus.PENDING
    assert rec.phone_number == "254712345678"


@pytest.mark.asyncio
async def test_verify_follows_gateway(ledger, gateway):
    svc = PaymentService(ledger, gateway)
    await svc.initiate_payment("0712345678", 1500)
    assert (await svc.verify_payment("CRQ-1")).status == PaymentStatus.PENDING
    gateway.settle("CRQ-1", PaymentStatus.COMPLETED)
    assert (await svc.verify_payment("CRQ-1")).status == PaymentStatus.COMPLETED


@pytest.mark.asyncio
async def test_failed_initiation_records_nothing(ledger, gateway):
    gateway.reject_next = "REJECTED"
    svc = PaymentService(ledger, gateway)
    res = await svc.initiate_payment("0712345678", 1500)
    assert not res.success and res.error_kind == "REJECTED"
    with pytest.raises(NotFoundError):
        await ledger.get_payment("CRQ-1")


@pytest.mark.asyncio
async def test_verify_unknown_reference(ledger, gateway):
    with pytest.raises(NotFoundError):
        await PaymentService(ledger, gateway).verify_payment("CRQ-404")


@pytest.mark.asyncio
async def test_initiate_rejects_non_positive_amount(ledger, gateway):
    with pytest.raises(InvalidArgumentsError):
        await PaymentService(ledger, gateway).initiate_payment("0712345678", 0)


@pytest.mark.asyncio
async def test_simulated_auto_complete(ledger):
    gw = SimulatedPaymentGateway(auto_complete_after=2)
    svc = PaymentService(ledger, gw)
    await svc.initiate_payment("0712345678", 1500)
    assert (await svc.verify_payment("CRQ-1")).status == PaymentStatus.PENDING
    assert (await svc.verify_payment("CRQ-1")).status == PaymentStatus.COMPLETED


class _StallingGateway(SimulatedPaymentGateway):
    """First status() call waits on `release` and then reports what it saw before stalling."""

    def __init__(self):
        super().__init__()
        self.release = asyncio.Event()
        self.stalled = asyncio.Event()
        self._first = True

    async def status(self, reference):
        if self._first:
            self._first = False
            seen = await super().status(reference)
            self.stalled.set()
            await self.release.wait()
            return seen
        return await super().status(reference)


@pytest.mark.asyncio
async def test_stale_pending_poll_cannot_undo_completed(ledger):
    gw = _StallingGateway()
    svc = PaymentService(ledger, gw)
    await svc.initiate_payment("0712345678", 1500)

    async def slow_verify():
        return await svc.verify_payment("CRQ-1")

    async def settle_book_then_release():
        await gw.stalled.wait()
        gw.settle("CRQ-1")
        assert (await svc.verify_payment("CRQ-1")).status == PaymentStatus.COMPLETED
        ticket = await ledger.issue_ticket(passenger_name="Jane", route_id="R001", payment_reference="CRQ-1")
        gw.release.set()
        return ticket

    slow, ticket = await asyncio.gather(slow_verify(), settle_book_then_release())

    assert slow.status == PaymentStatus.COMPLETED
    rec = await ledger.get_payment("CRQ-1")
    assert rec.status == PaymentStatus.COMPLETED
    assert rec.consumed_by_ticket == ticket.id


@pytest.mark.asyncio
async def test_refresh_reports_reversal_without_rewriting_ledger(ledger, gateway):
    svc = PaymentService(ledger, gateway)
    await svc.initiate_payment("0712345678", 1500)
    gateway.settle("CRQ-1")
    assert (await svc.verify_payment("CRQ-1")).status == PaymentStatus.COMPLETED

    gateway.settle("CRQ-1", PaymentStatus.FAILED)
    assert (await svc.verify_payment("CRQ-1")).status == PaymentStatus.COMPLETED
    live = await svc.verify_payment("CRQ-1", refresh=True)
    assert live.status == PaymentStatus.FAILED
    assert (await ledger.get_payment("CRQ-1")).status == PaymentStatus.COMPLETED


# ---------- Daraja adapter ----------
@pytest.mark.asyncio
async def test_daraja_stk_push_success():
    seen = {}

    def handler(request: httpx.Request):
        if request.url.path == "/oauth/v1/generate":
            assert request.headers["authorization"].startswith("Basic ")
            return _token_ok(request)
        seen["body"] = json.loads(request.content)
        seen["auth"] = request.headers["authorization"]
        return httpx.Response(200, json={"ResponseCode": "0", "CheckoutRequestID": "ws_CO_1", "CustomerMessage": "ok"})

    res = await _daraja(handler).initiate("+254 712 345 678", 1499.2)
    assert res.success and res.reference == "ws_CO_1"
    assert seen["auth"] == "Bearer tok"
    assert seen["body"]["Amount"] == 1500
    assert seen["body"]["PartyA"] == seen["body"]["PhoneNumber"] == "254712345678"
    assert seen["body"]["PartyB"] == "4159923"


@pytest.mark.asyncio
async def test_daraja_auth_error():
    def handler(request):
        return httpx.Response(401, json={"errorMessage": "Invalid credentials"})

    res = await _daraja(handler).initiate("0712345678", 100)
    assert not res.success and res.error_kind == "AUTH_ERROR"


@pytest.mark.asyncio
async def test_daraja_rejected():
    def handler(request):
        if request.url.path == "/oauth/v1/generate":
            return _token_ok(request)
        return httpx.Response(400, json={"errorCode": "400.002.02", "errorMessage": "Invalid PhoneNumber"})

    res = await _daraja(handler).initiate("0712345678", 100)
    assert not res.success and res.error_kind == "REJECTED"
    assert "Invalid PhoneNumber" in res.message


@pytest.mark.asyncio
async def test_daraja_network_failure_is_system_error():
    def handler(request):
        if request.url.path == "/oauth/v1/generate":
            return _token_ok(request)
        raise httpx.ConnectError("boom", request=request)

    res = await _daraja(handler).initiate("0712345678", 100)
    assert not res.success and res.error_kind == "SYSTEM_ERROR"


@pytest.mark.parametrize(
    "body,expected",
    [
        ({"ResultCode": "0", "ResultDesc": "processed"}, PaymentStatus.COMPLETED),
        ({"ResultCode": "1032", "ResultDesc": "Request cancelled by user"}, PaymentStatus.FAILED),
        ({"ResultCode": "1037", "ResultDesc": "DS timeout"}, PaymentStatus.FAILED),
        ({"ResultCode": "1", "ResultDesc": "Insufficient balance"}, PaymentStatus.FAILED),
        ({"ResultCode": "2001", "ResultDesc": "Wrong PIN"}, PaymentStatus.FAILED),
        ({"errorCode": "500.001.1001", "errorMessage": "The transaction is being processed"}, PaymentStatus.PENDING),
    ],
)
@pytest.mark.asyncio
async def test_daraja_status_mapping(body, expected):
    def handler(request):
        if request.url.path == "/oauth/v1/generate":
            return _token_ok(request)
        assert json.loads(request.content)["CheckoutRequestID"] == "ws_CO_1"
        return httpx.Response(200, json=body)

    assert (await _daraja(handler).status("ws_CO_1")).status == expected


@pytest.mark.asyncio
async def test_daraja_status_unreachable_raises():
    def handler(request):
        raise httpx.ConnectError("down", request=request)

    gw = _daraja(handler)
    with pytest.raises(UpstreamUnavailableError):
        await gw.status("ws_CO_1")


@pytest.mark.parametrize(
    "code,message",
    [("1032", "Request cancelled by user"), ("1", "Insufficient M-Pesa balance"), ("2001", "Result code 2001")],
)
@pytest.mark.asyncio
async def test_daraja_failure_without_description_gets_readable_message(code, message):
    def handler(request):
        if request.url.path == "/oauth/v1/generate":
            return _token_ok(request)
        return httpx.Response(200, json={"ResultCode": code, "ResultDesc": ""})

    res = await _daraja(handler).status("ws_CO_1")
    assert res.status == PaymentStatus.FAILED and res.message == message
