from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from fastapi import BackgroundTasks, FastAPI, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse

# --- Project imports ---
from agents.main import Runtime, build_runtime, issued_tickets
from common.errors import (
    BookingAssistantError,
    BusinessRuleError,
    InvalidArgumentsError,
    NotFoundError,
    UpstreamUnavailableError,
)
from common.models import utcnow
from api.schemas import (
    BoardingOut,
    BroadcastIn,
    BroadcastOut,
    ChatIn,
    ChatOut,
    PriceUpdate,
    ResolveIn,
    RouteCreate,
    RoutePatch,
    ScanIn,
)
from api.webhook import InboundMessage, PayloadLog, extract_inbound_message
from tools.tools_operator import BroadcastArgs, ResolveComplaintArgs, broadcast_message, resolve_complaint

logger = logging.getLogger("ena-coach-agent")

_STATUS = {
    NotFoundError: 404,
    BusinessRuleError: 409,
    InvalidArgumentsError: 422,
    UpstreamUnavailableError: 503,
}


def create_app(runtime_factory: Callable[[], Runtime] = build_runtime) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Build ledger, gateways and both assistants once at startup
        app.state.runtime = runtime_factory()
        app.state.payloads = PayloadLog()
        yield
        await app.state.runtime.aclose()

    app = FastAPI(lifespan=lifespan, title="Ena Coach Booking Assistant API", version="1.0.0")

    @app.exception_handler(BookingAssistantError)
    async def _booking_error(request: Request, exc: BookingAssistantError):
        status = next((code for cls, code in _STATUS.items() if isinstance(exc, cls)), 500)
        return JSONResponse(status_code=status, content=exc.to_payload())

    def rt(request: Request) -> Runtime:
        return request.app.state.runtime

    # ---------------------------
    # Health & webhook
    # ---------------------------
    @app.get("/health", response_class=PlainTextResponse)
    async def health():
        return "OK"

    @app.get("/webhook", response_class=PlainTextResponse)
    async def webhook_alive():
        return "Webhook is active"

    @app.post("/webhook")
    async def webhook(request: Request, background: BackgroundTasks):
        """Acknowledge at once; the reply is produced and sent in the background."""
        try:
            payload = await request.json()
        except ValueError:
            logger.warning("Webhook body is not JSON; ignored")
            return {"status": "ignored"}

        request.app.state.payloads.add(utcnow().isoformat(), payload)
        msg = extract_inbound_message(payload)
        if msg is None:
            return {"status": "ignored"}

        logger.info("Inbound message from %s (%d chars)", msg.sender.split("@")[0], len(msg.text))
        background.add_task(_process_inbound, rt(request), msg)
        return {"status": "accepted"}

    @app.post("/callback/mpesa")
    async def mpesa_callback(request: Request):
        # Status is pulled by verifyPayment; the push is only logged
        try:
            body = await request.json()
        except ValueError:
            body = None
        checkout = ((body or {}).get("Body") or {}).get("stkCallback") or {}
        logger.info(
            "M-Pesa callback: checkout=%s result=%s",
            checkout.get("CheckoutRequestID"), checkout.get("ResultCode"),
        )
        return {"ResultCode": 0, "ResultDesc": "Accepted"}

    @app.get("/api/debug/raw-payloads")
    async def raw_payloads(request: Request):
        return request.app.state.payloads.items()

    # ---------------------------
    # Conversations
    # ---------------------------
    @app.post("/api/chat", response_model=ChatOut)
    async def customer_chat(body: ChatIn, request: Request):
        result = await rt(request).handle_customer_message(body.sessionId, body.message, body.pushName)
        return ChatOut(
            reply=result.text,
            rounds=result.rounds,
            toolCalls=result.tool_calls,
            tickets=issued_tickets(result),
            failed=result.failed,
        )

    @app.post("/api/admin/chat", response_model=ChatOut)
    async def operator_chat(body: ChatIn, request: Request):
        result = await rt(request).handle_operator_message(body.sessionId, body.message)
        return ChatOut(reply=result.text, rounds=result.rounds, toolCalls=result.tool_calls, failed=result.failed)

    # ---------------------------
    # Routes (admin, bypasses the model)
    # ---------------------------
    @app.get("/api/routes")
    async def list_routes(request: Request, origin: str = "", destination: str = "") -> List[Dict[str, Any]]:
        ledger = rt(request).ledger
        routes = await ledger.search_routes(origin, destination) if (origin or destination) else await ledger.list_routes()
        return [r.to_dict() for r in routes]

    @app.post("/api/routes", status_code=201)
    async def add_route(body: RouteCreate, request: Request):
        r = await rt(request).ledger.add_route(
            origin=body.origin,
            destination=body.destination,
            departure_time=body.departureTime,
            price=body.price,
            bus_class=body.busType,
            stops=body.stops,
            capacity=body.capacity,
            available_seats=body.availableSeats,
        )
        return r.to_dict()

    @app.get("/api/routes/{route_id}")
    async def get_route(route_id: str, request: Request):
        return (await rt(request).ledger.get_route(route_id)).to_dict()

    @app.put("/api/routes/{route_id}")
    async def update_route(route_id: str, body: RoutePatch, request: Request):
        r = await rt(request).ledger.update_route(route_id, **body.to_fields())
        return r.to_dict()

    @app.put("/api/routes/{route_id}/price")
    async def update_price(route_id: str, body: PriceUpdate, request: Request):
        return (await rt(request).ledger.update_route_price(route_id, body.price)).to_dict()

    @app.delete("/api/routes/{route_id}")
    async def delete_route(route_id: str, request: Request):
        await rt(request).ledger.delete_route(route_id)
        return {"ok": True}

    @app.get("/api/routes/{route_id}/manifest")
    async def manifest(route_id: str, request: Request, travel_date: Optional[date] = Query(None, alias="date")):
        return await rt(request).ledger.route_manifest(route_id, travel_date)

    # ---------------------------
    # Reports, complaints, broadcast, contacts
    # ---------------------------
    @app.get("/api/reports/financial")
    async def financial(request: Request, start_date: Optional[date] = None, end_date: Optional[date] = None):
        if start_date and end_date and start_date > end_date:
            raise InvalidArgumentsError("start_date is after end_date")
        return await rt(request).ledger.financial_report(start_date, end_date)

    @app.get("/api/reports/occupancy")
    async def occupancy(request: Request):
        return await rt(request).ledger.occupancy_stats()

    @app.get("/api/complaints")
    async def complaints(request: Request, status: Optional[str] = Query(None, pattern="^(open|resolved)$")):
        return [c.to_dict() for c in await rt(request).ledger.list_complaints(status)]

    @app.post("/api/complaints/{complaint_id}/resolve")
    async def resolve(complaint_id: str, body: ResolveIn, request: Request):
        runtime = rt(request)
        args = ResolveComplaintArgs(complaintId=complaint_id, resolutionMessage=body.resolutionMessage)
        return await resolve_complaint(args, runtime.context(session_id="admin-api"))

    @app.post("/api/broadcast", response_model=BroadcastOut)
    async def broadcast(body: BroadcastIn, request: Request):
        runtime = rt(request)
        out = await broadcast_message(
            BroadcastArgs(message=body.message, contactList=body.contactList),
            runtime.context(session_id="admin-api"),
        )
        return BroadcastOut(sent=out["sent"], attempted=out["attempted"])

    @app.get("/api/contacts")
    async def contacts(request: Request):
        return [c.to_dict() for c in await rt(request).ledger.list_contacts()]

    # ---------------------------
    # Tickets & boarding
    # ---------------------------
    @app.post("/api/tickets/scan", response_model=BoardingOut)
    async def scan(body: ScanIn, request: Request):
        return (await rt(request).boarding.validate_scanned_code(body.code)).to_dict()

    @app.post("/api/tickets/{ticket_id}/validate", response_model=BoardingOut)
    async def validate(ticket_id: str, request: Request):
        return (await rt(request).boarding.validate_ticket(ticket_id)).to_dict()

    @app.post("/api/tickets/{ticket_id}/cancel")
    async def cancel(ticket_id: str, request: Request):
        return (await rt(request).ledger.cancel_ticket(ticket_id)).to_dict(include_code=False)

    @app.get("/api/tickets/{ticket_id}")
    async def get_ticket(ticket_id: str, request: Request):
        return (await rt(request).ledger.get_ticket(ticket_id)).to_dict()

    @app.get("/api/users/{user_id}/tickets")
    async def user_tickets(user_id: str, request: Request):
        return [t.to_dict() for t in await rt(request).ledger.tickets_for_user(user_id)]

    return app


async def _process_inbound(runtime: Runtime, msg: InboundMessage) -> None:
    result = await runtime.handle_customer_message(msg.sender, msg.text, msg.push_name)
    delivered = await runtime.deliver_reply(msg.sender, result)
    if not delivered:
        logger.warning("Reply to %s was not delivered", msg.sender.split("@")[0])


app = create_app()
