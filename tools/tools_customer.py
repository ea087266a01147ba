## tools/tools_customer.py
"""
Customer catalogue: searchRoutes, initiatePayment, verifyPayment, bookTicket,
logComplaint, trackBus.

Handlers return plain dicts; errors raised by services are turned into
payloads by the registry.
"""
from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

from common.errors import BusinessRuleError, InvalidArgumentsError
from common.models import PaymentStatus
from common.utils import _date_of
from tools.registry import ToolContext, ToolSpec


# ---------- argument shapes ----------
class SearchRoutesArgs(BaseModel):
    origin: str = Field("", description="Departure town, e.g. Nairobi")
    destination: str = Field("", description="Destination town or any stop along the way, e.g. Kisumu")


class InitiatePaymentArgs(BaseModel):
    phoneNumber: Optional[str] = Field(None, description="M-Pesa number to prompt; defaults to the customer's number")
    amount: float = Field(..., gt=0, description="Amount in KES, normally the route price")


class VerifyPaymentArgs(BaseModel):
    reference: str = Field(..., description="Checkout reference returned by initiatePayment")


class BookTicketArgs(BaseModel):
    passengerName: str = Field(..., min_length=1)
    routeId: str = Field(..., description="Route id from searchRoutes, e.g. R001")
    paymentReference: str = Field(..., description="Reference of a COMPLETED payment")
    travelDate: Optional[str] = Field(None, description="YYYY-MM-DD; defaults to today")
    phoneNumber: Optional[str] = None


class LogComplaintArgs(BaseModel):
    customerName: str
    issue: str = Field(..., min_length=1)
    severity: Literal["low", "medium", "high"] = "medium"
    incidentDate: Optional[str] = None
    routeInfo: Optional[str] = None


class TrackBusArgs(BaseModel):
    query: str = Field(..., description="Route id (e.g. R001) or a town on the route")


# ---------- handlers ----------
async def search_routes(args: SearchRoutesArgs, ctx: ToolContext) -> Dict[str, Any]:
    routes = await ctx.ledger.search_routes(args.origin, args.destination)
    if not routes:
        return {"success": True, "routes": [], "message": "No buses found for that route."}
    return {"success": True, "routes": [r.to_dict() for r in routes]}


async def initiate_payment(args: InitiatePaymentArgs, ctx: ToolContext) -> Dict[str, Any]:
    phone = args.phoneNumber or ctx.phone_number
    if not phone:
        raise InvalidArgumentsError("Ask the customer for the M-Pesa phone number to charge")
    res = await ctx.payments.initiate_payment(phone, args.amount)
    if not res.success:
        return {
            "success": False,
            "error": res.message or "Payment could not be started",
            "errorKind": "payment_not_started",
            "providerError": res.error_kind,
        }
    return {
        "success": True,
        "reference": res.reference,
        "status": PaymentStatus.PENDING.value,
        "message": "M-Pesa prompt sent. The customer must enter their PIN, then verify the payment.",
    }


async def verify_payment(args: VerifyPaymentArgs, ctx: ToolContext) -> Dict[str, Any]:
    rec = await ctx.payments.verify_payment(args.reference)
    return {"success": True, "reference": rec.reference, "status": rec.status.value, "message": rec.message}


async def book_ticket(args: BookTicketArgs, ctx: ToolContext) -> Dict[str, Any]:
    # Payment is checked against the provider again right now, not from memory
    rec = await ctx.payments.verify_payment(args.paymentReference, refresh=True)
    if rec.status != PaymentStatus.COMPLETED:
        raise BusinessRuleError(
            f"Payment {rec.reference} is {rec.status.value}. Tickets are only issued after a COMPLETED payment."
        )
    try:
        travel_date = _date_of(args.travelDate)
    except ValueError as e:
        raise InvalidArgumentsError(str(e))

    ticket = await ctx.ledger.issue_ticket(
        passenger_name=args.passengerName,
        route_id=args.routeId,
        payment_reference=rec.reference,
        travel_date=travel_date,
        user_id=ctx.user_id,
        phone_number=args.phoneNumber or ctx.phone_number,
    )
    return {"success": True, "ticket": ticket.to_dict(include_code=True)}


def project_ticket(result: Dict[str, Any]) -> Dict[str, Any]:
    t = result["ticket"]
    route = t["routeDetails"]
    return {
        "success": True,
        "ticketId": t["id"],
        "passengerName": t["passengerName"],
        "seatNumber": t["seatNumber"],
        "routeId": t["routeId"],
        "route": f"{route['origin']} -> {route['destination']}",
        "departureTime": route["departureTime"],
        "travelDate": t["travelDate"],
        "message": "Ticket issued. The QR code is sent to the customer separately.",
    }


async def log_complaint(args: LogComplaintArgs, ctx: ToolContext) -> Dict[str, Any]:
    c = await ctx.ledger.log_complaint(
        customer_name=args.customerName,
        issue=args.issue,
        severity=args.severity,
        incident_date=args.incidentDate,
        route_info=args.routeInfo,
        phone_number=ctx.phone_number,
    )
    return {"success": True, "complaintId": c.id, "status": c.status.value, "severity": c.severity.value}


async def track_bus(args: TrackBusArgs, ctx: ToolContext) -> Dict[str, Any]:
    loc = await ctx.tracking.get_bus_status(args.query)
    return {"success": True, **loc.to_dict()}


SEARCH_ROUTES = ToolSpec(
    "searchRoutes",
    "Find bus routes. Destination also matches intermediate stops.",
    SearchRoutesArgs,
    search_routes,
)
TRACK_BUS = ToolSpec(
    "trackBus",
    "Estimated position of a bus by route id or town.",
    TrackBusArgs,
    track_bus,
)

CUSTOMER_TOOLS = [
    SEARCH_ROUTES,
    ToolSpec(
        "initiatePayment",
        "Send an M-Pesa STK push to the customer's phone. Returns a payment reference.",
        InitiatePaymentArgs,
        initiate_payment,
    ),
    ToolSpec(
        "verifyPayment",
        "Check the current status of a payment: PENDING, COMPLETED or FAILED.",
        VerifyPaymentArgs,
        verify_payment,
    ),
    ToolSpec(
        "bookTicket",
        "Issue a ticket. Only works with a COMPLETED payment reference; one payment buys one ticket.",
        BookTicketArgs,
        book_ticket,
        project=project_ticket,
    ),
    ToolSpec(
        "logComplaint",
        "Record a customer complaint and return its id.",
        LogComplaintArgs,
        log_complaint,
    ),
    TRACK_BUS,
]
