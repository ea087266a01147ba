# main.py
"""
Runtime wiring: ledger, gateways, services and both conversation roles.

The HTTP layer (api/main.py) owns one Runtime for the process lifetime and
hands every inbound message to handle_customer_message or
handle_operator_message.
"""
import os
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from business_profile import BUSINESS_PROFILE, format_amount
from common.config_loader import Settings, load_env_files, load_settings, mask_key
from common.logging_config import configure_logging
from common.models import Contact, Route
from common.utils import clean_jid, normalize_msisdn
from agents.customer import Customer
from agents.llm import ChatModel, OpenAIChatModel
from agents.operator import Operator
from agents.orchestrator import TurnResult
from agents.session import SessionStore
from services.boarding_service import BoardingService
from services.ledger import Ledger, build_fleet, load_contacts_file
from services.messaging_service import MessagingGateway, MessagingService, build_messaging_gateway
from services.payment_service import PaymentGateway, PaymentService, build_payment_gateway
from services.tracking_service import TrackingService
from tools.registry import ToolContext

# ----------------------------------------------------------------------------
# Bootstrapping
# ----------------------------------------------------------------------------
load_env_files()
configure_logging()

logger = logging.getLogger("ena-coach-agent")


@dataclass
class Runtime:
    settings: Settings
    ledger: Ledger
    payments: PaymentService
    messaging: MessagingService
    tracking: TrackingService
    boarding: BoardingService
    customer: Customer
    operator: Operator
    customer_sessions: SessionStore
    operator_sessions: SessionStore

    def context(self, session_id: str, phone_number: Optional[str] = None, user_id: Optional[str] = None) -> ToolContext:
        """Fresh per-turn context; artifacts never leak between turns."""
        return ToolContext(
            ledger=self.ledger,
            payments=self.payments,
            messaging=self.messaging,
            tracking=self.tracking,
            profile=BUSINESS_PROFILE,
            session_id=session_id,
            phone_number=phone_number,
            user_id=user_id,
        )

    async def handle_customer_message(self, sender: str, text: str, push_name: Optional[str] = None) -> TurnResult:
        """One inbound customer message. The session is the sender's number."""
        session_id = clean_jid(sender) or sender
        phone = normalize_msisdn(session_id) or None
        session = self.customer_sessions.get(session_id, phone_number=phone, user_id=phone, display_name=push_name)
        ctx = self.context(session_id, phone_number=session.phone_number, user_id=session.user_id)
        return await self.customer.handle_message(session, text, ctx)

    async def handle_operator_message(self, session_id: str, text: str) -> TurnResult:
        session = self.operator_sessions.get(session_id)
        ctx = self.context(session_id)
        return await self.operator.handle_message(session, text, ctx)

    async def deliver_reply(self, destination: str, result: TurnResult) -> int:
        """Send the reply text, then one message per issued ticket. Returns messages delivered."""
        delivered = 0
        if result.text and await self.messaging.notify(destination, result.text):
            delivered += 1
        for t in issued_tickets(result):
            if await self.messaging.notify(destination, ticket_message(t)):
                delivered += 1
        return delivered

    async def aclose(self) -> None:
        await self.payments.gateway.aclose()
        await self.messaging.gateway.aclose()


def issued_tickets(result: TurnResult) -> List[Dict[str, Any]]:
    return [a["result"]["ticket"] for a in result.artifacts if a.get("tool") == "bookTicket"]


def ticket_message(ticket: Dict[str, Any]) -> str:
    route = ticket["routeDetails"]
    return (
        f"🎫 {BUSINESS_PROFILE['brand']} ticket {ticket['id']}\n"
        f"Passenger: {ticket['passengerName']}\n"
        f"Route: {route['origin']} -> {route['destination']} ({route['departureTime']}, {ticket['travelDate']})\n"
        f"Seat: {ticket['seatNumber']}  Fare: {format_amount(route['price'])}\n"
        f"Show this QR code when boarding: {ticket['qrCodeUrl']}"
    )


def build_runtime(
    settings: Optional[Settings] = None,
    *,
    model: Optional[ChatModel] = None,
    payment_gateway: Optional[PaymentGateway] = None,
    messaging_gateway: Optional[MessagingGateway] = None,
    routes: Optional[Iterable[Route]] = None,
    contacts: Optional[Iterable[Contact]] = None,
) -> Runtime:
    settings = settings or load_settings()

    if routes is None:
        routes = build_fleet(settings.fleet_seed)
    if contacts is None:
        contacts = load_contacts_file(settings.contacts_file) if settings.contacts_file else []

    ledger = Ledger(routes=routes, contacts=contacts, ticket_secret=settings.ticket_secret)
    if settings.ticket_secret == Settings.ticket_secret:
        logger.warning("TICKET_SECRET is not set; ticket codes use the development secret.")
    else:
        logger.info("Ticket secret: %s", mask_key(settings.ticket_secret))

    payments = PaymentService(ledger, payment_gateway or build_payment_gateway(settings))
    messaging = MessagingService(messaging_gateway or build_messaging_gateway(settings))
    model = model or OpenAIChatModel(settings.openai_api_key, settings.llm_model, timeout=settings.http_timeout * 4)

    rt = Runtime(
        settings=settings,
        ledger=ledger,
        payments=payments,
        messaging=messaging,
        tracking=TrackingService(ledger, settings.timezone),
        boarding=BoardingService(ledger, settings.ticket_secret),
        customer=Customer(model, max_tool_rounds=settings.max_tool_rounds, timezone=settings.timezone),
        operator=Operator(model, max_tool_rounds=settings.max_tool_rounds, timezone=settings.timezone),
        customer_sessions=SessionStore("customer", settings.history_max_messages),
        operator_sessions=SessionStore("operator", settings.history_max_messages),
    )
    logger.info(
        "Runtime ready: payments=%s messaging=%s model=%s",
        payments.gateway.name, messaging.gateway.name, getattr(model, "model", type(model).__name__),
    )
    return rt


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "3000")))
