"""
Payment gateway adapters and the payment state machine.

Exports:
  - InitiateResult, StatusResult
  - PaymentGateway (interface)
  - DarajaGateway            (M-Pesa STK push over httpx)
  - SimulatedPaymentGateway  (in-process; used without credentials and in tests)
  - PaymentService(ledger, gateway).initiate_payment / verify_payment

State machine (per reference): PENDING -> COMPLETED | FAILED. Transitions are
driven only by what the gateway reports; nothing here marks a payment
COMPLETED on its own. Status is pulled on demand, there is no poller.
"""
from __future__ import annotations

import base64
import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, Optional

import httpx

from business_profile import BUSINESS_PROFILE
from common.config_loader import Settings, mask_key
from common.errors import ConfigurationError, InvalidArgumentsError, UpstreamUnavailableError
from common.models import PaymentRecord, PaymentStatus
from common.utils import normalize_msisdn
from services.ledger import Ledger

logger = logging.getLogger("ena-coach-agent")

# Readable fallbacks for Daraja result codes that arrive without a ResultDesc
_FAILED_MESSAGES = {
    "1032": "Request cancelled by user",
    "1037": "The customer's phone could not be reached",
    "1": "Insufficient M-Pesa balance",
}


@dataclass
class InitiateResult:
    success: bool
    reference: Optional[str] = None
    error_kind: Optional[str] = None      # AUTH_ERROR | REJECTED | SYSTEM_ERROR
    message: str = ""


@dataclass
class StatusResult:
    status: PaymentStatus
    message: str = ""


class PaymentGateway:
    name = "payments"

    async def initiate(self, phone_number: str, amount: float) -> InitiateResult:
        raise NotImplementedError

    async def status(self, reference: str) -> StatusResult:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


# ---------- Daraja ----------
class DarajaGateway(PaymentGateway):
    name = "daraja"

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.base_url = settings.daraja_base_url.rstrip("/")
        self._key = settings.daraja_consumer_key
        self._secret = settings.daraja_consumer_secret
        self._passkey = settings.daraja_passkey
        self.shortcode = settings.daraja_shortcode
        self.party_b = settings.daraja_party_b or settings.daraja_shortcode
        self.callback_url = settings.daraja_callback_url
        self._client = client or httpx.AsyncClient(timeout=settings.http_timeout)
        logger.info("Daraja gateway: shortcode=%s key=%s", self.shortcode, mask_key(self._key))

    async def _token(self) -> Optional[str]:
        basic = base64.b64encode(f"{self._key}:{self._secret}".encode()).decode()
        try:
            res = await self._client.get(
                f"{self.base_url}/oauth/v1/generate",
                params={"grant_type": "client_credentials"},
                headers={"Authorization": f"Basic {basic}"},
            )
            res.raise_for_status()
            return res.json().get("access_token")
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Daraja token request failed: %s", e)
            return None

    def _password(self) -> tuple:
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        password = base64.b64encode(f"{self.shortcode}{self._passkey}{timestamp}".encode()).decode()
        return password, timestamp

    async def initiate(self, phone_number: str, amount: float) -> InitiateResult:
        token = await self._token()
        if not token:
            return InitiateResult(False, error_kind="AUTH_ERROR", message="Payment system unavailable.")

        phone = normalize_msisdn(phone_number)
        password, timestamp = self._password()
        body = {
            "BusinessShortCode": self.shortcode,
            "Password": password,
            "Timestamp": timestamp,
            "TransactionType": "CustomerBuyGoodsOnline",
            "Amount": math.ceil(amount),
            "PartyA": phone,
            "PartyB": self.party_b,
            "PhoneNumber": phone,
            "CallBackURL": self.callback_url,
            "AccountReference": BUSINESS_PROFILE["payments"]["account_reference"],
            "TransactionDesc": BUSINESS_PROFILE["payments"]["description"],
        }
        try:
            res = await self._client.post(
                f"{self.base_url}/mpesa/stkpush/v1/processrequest",
                json=body,
                headers={"Authorization": f"Bearer {token}"},
            )
            data = res.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("STK push failed: %s", e)
            return InitiateResult(False, error_kind="SYSTEM_ERROR", message="M-Pesa service error.")

        if str(data.get("ResponseCode")) == "0" and data.get("CheckoutRequestID"):
            return InitiateResult(True, reference=data["CheckoutRequestID"], message=data.get("CustomerMessage", ""))

        msg = data.get("errorMessage") or data.get("ResponseDescription") or "Failed to send M-Pesa prompt."
        logger.warning("STK push rejected: %s", msg)
        return InitiateResult(False, error_kind="REJECTED", message=msg)

    async def status(self, reference: str) -> StatusResult:
        token = await self._token()
        if not token:
            raise UpstreamUnavailableError("Payment provider authentication failed", service=self.name)

        password, timestamp = self._password()
        try:
            res = await self._client.post(
                f"{self.base_url}/mpesa/stkpushquery/v1/query",
                json={
                    "BusinessShortCode": self.shortcode,
                    "Password": password,
                    "Timestamp": timestamp,
                    "CheckoutRequestID": reference,
                },
                headers={"Authorization": f"Bearer {token}"},
            )
            data = res.json()
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamUnavailableError("Payment status query failed", cause=e, service=self.name)

        code = data.get("ResultCode")
        desc = data.get("ResultDesc") or data.get("errorMessage") or ""
        if code is None:
            # Still processing: Daraja answers with an errorCode and no ResultCode
            return StatusResult(PaymentStatus.PENDING, desc or "The transaction is being processed")
        code = str(code)
        if code == "0":
            return StatusResult(PaymentStatus.COMPLETED, desc)
        return StatusResult(PaymentStatus.FAILED, desc or _FAILED_MESSAGES.get(code, f"Result code {code}"))

    async def aclose(self) -> None:
        await self._client.aclose()


# ---------- Simulated ----------
class SimulatedPaymentGateway(PaymentGateway):
    """
    Deterministic provider. References are CRQ-1, CRQ-2, ...; a payment stays
    PENDING until settle() is called, or until it has been polled
    `auto_complete_after` times when that is set.
    """

    name = "simulated"

    def __init__(self, auto_complete_after: Optional[int] = None):
        self.auto_complete_after = auto_complete_after
        self._seq = 0
        self._status: Dict[str, PaymentStatus] = {}
        self._polls: Dict[str, int] = {}
        self.reject_next: Optional[str] = None     # error_kind to return on the next initiate

    async def initiate(self, phone_number: str, amount: float) -> InitiateResult:
        if self.reject_next:
            kind, self.reject_next = self.reject_next, None
            return InitiateResult(False, error_kind=kind, message="Payment request was not accepted.")
        self._seq += 1
        ref = f"CRQ-{self._seq}"
        self._status[ref] = PaymentStatus.PENDING
        self._polls[ref] = 0
        logger.info("Simulated STK push %s for %s amount=%s", ref, normalize_msisdn(phone_number), math.ceil(amount))
        return InitiateResult(True, reference=ref, message="Prompt sent to phone")

    async def status(self, reference: str) -> StatusResult:
        if reference not in self._status:
            return StatusResult(PaymentStatus.FAILED, "Unknown checkout request")
        self._polls[reference] += 1
        current = self._status[reference]
        if (
            current == PaymentStatus.PENDING
            and self.auto_complete_after is not None
            and self._polls[reference] >= self.auto_complete_after
        ):
            current = self._status[reference] = PaymentStatus.COMPLETED
        return StatusResult(current, _SIMULATED_MESSAGES[current])

    def settle(self, reference: str, status: PaymentStatus = PaymentStatus.COMPLETED) -> None:
        if reference not in self._status:
            raise KeyError(reference)
        self._status[reference] = status


_SIMULATED_MESSAGES = {
    PaymentStatus.PENDING: "The transaction is being processed",
    PaymentStatus.COMPLETED: "The service request is processed successfully.",
    PaymentStatus.FAILED: "Request cancelled by user",
}


def build_payment_gateway(settings: Settings) -> PaymentGateway:
    if settings.payments_provider == "daraja":
        return DarajaGateway(settings)
    if settings.payments_provider == "simulated":
        return SimulatedPaymentGateway(auto_complete_after=settings.simulated_auto_complete_after)
    raise ConfigurationError(f"Unknown payments provider {settings.payments_provider!r}", setting_name="payments.provider")


# ---------- Service ----------
class PaymentService:
    def __init__(self, ledger: Ledger, gateway: PaymentGateway):
        self.ledger = ledger
        self.gateway = gateway

    async def initiate_payment(self, phone_number: str, amount: float) -> InitiateResult:
        """
        Ask the gateway to prompt the payer. On success a PENDING record keyed
        by the provider reference is stored; on failure nothing is recorded.
        Never retried.
        """
        if amount is None or amount <= 0:
            raise InvalidArgumentsError("Amount must be greater than zero")
        if not normalize_msisdn(phone_number):
            raise InvalidArgumentsError("A phone number is required for payment")

        result = await self.gateway.initiate(phone_number, amount)
        if not result.success or not result.reference:
            logger.warning("Payment initiation failed: kind=%s msg=%s", result.error_kind, result.message)
            return result

        await self.ledger.record_payment(
            PaymentRecord(
                reference=result.reference,
                phone_number=normalize_msisdn(phone_number),
                amount=float(amount),
                status=PaymentStatus.PENDING,
                message=result.message,
            )
        )
        logger.info("Payment initiated: %s", result.reference)
        return result

    async def verify_payment(self, reference: str, refresh: bool = False) -> PaymentRecord:
        """
        Poll the gateway and store what it reports. Unknown reference -> NotFoundError.

        A settled record is served from the ledger unless `refresh` is set; then
        the gateway is asked again. A live terminal answer that contradicts the
        stored one is returned as is; the ledger copy is not rewritten. A stale
        PENDING never hides a settled record.
        """
        record = await self.ledger.get_payment(reference)
        if record.status != PaymentStatus.PENDING and not refresh:
            return record
        result = await self.gateway.status(record.reference)
        stored = await self.ledger.set_payment_status(record.reference, result.status, result.message)
        if result.status != PaymentStatus.PENDING and stored.status != result.status:
            logger.warning(
                "Payment %s: gateway now reports %s, ledger holds %s",
                record.reference, result.status.value, stored.status.value,
            )
            return replace(stored, status=result.status, message=result.message)
        return stored
