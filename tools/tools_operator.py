## tools/tools_operator.py
"""
Operator catalogue: getFinancialReport, getOccupancyStats, broadcastMessage,
getRouteManifest, getComplaints, resolveComplaint, plus the shared
searchRoutes and trackBus.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from common.errors import InvalidArgumentsError
from common.utils import _date_of
from tools.registry import ToolContext, ToolSpec
from tools.tools_customer import SEARCH_ROUTES, TRACK_BUS

logger = logging.getLogger("ena-coach-agent")


class FinancialReportArgs(BaseModel):
    startDate: Optional[str] = Field(None, description="YYYY-MM-DD, inclusive")
    endDate: Optional[str] = Field(None, description="YYYY-MM-DD, inclusive")


class NoArgs(BaseModel):
    pass


class BroadcastArgs(BaseModel):
    message: str = Field(..., min_length=1)
    contactList: Optional[List[str]] = Field(None, description="Phone numbers; omit to message every CRM contact")


class RouteManifestArgs(BaseModel):
    routeId: str
    date: Optional[str] = Field(None, description="Travel date YYYY-MM-DD")


class GetComplaintsArgs(BaseModel):
    status: Optional[Literal["open", "resolved"]] = None


class ResolveComplaintArgs(BaseModel):
    complaintId: str
    resolutionMessage: str = Field(..., min_length=1)


def _dates(*values: Optional[str]):
    try:
        return [_date_of(v) for v in values]
    except ValueError as e:
        raise InvalidArgumentsError(str(e))


async def get_financial_report(args: FinancialReportArgs, ctx: ToolContext) -> Dict[str, Any]:
    start, end = _dates(args.startDate, args.endDate)
    if start and end and start > end:
        raise InvalidArgumentsError("startDate is after endDate")
    report = await ctx.ledger.financial_report(start, end)
    return {"success": True, "currency": ctx.profile["currency"], **report}


async def get_occupancy_stats(args: NoArgs, ctx: ToolContext) -> Dict[str, Any]:
    return {"success": True, **(await ctx.ledger.occupancy_stats())}


async def broadcast_message(args: BroadcastArgs, ctx: ToolContext) -> Dict[str, Any]:
    numbers = args.contactList
    if not numbers:
        numbers = [c.phone_number for c in await ctx.ledger.list_contacts()]
    summary = await ctx.messaging.broadcast(args.message, numbers)
    return {"success": True, **summary.to_dict()}


async def get_route_manifest(args: RouteManifestArgs, ctx: ToolContext) -> Dict[str, Any]:
    (day,) = _dates(args.date)
    return {"success": True, **(await ctx.ledger.route_manifest(args.routeId, day))}


def project_manifest(result: Dict[str, Any]) -> Dict[str, Any]:
    """Seat list for the model; passenger phone numbers stay in the artifact."""
    keep = ("ticketId", "passengerName", "seatNumber", "boardingStatus", "travelDate")
    return {
        "success": True,
        "routeId": result["routeId"],
        "route": result["route"],
        "date": result["date"],
        "total": result["total"],
        "boarded": result["boarded"],
        "passengers": [{k: p[k] for k in keep} for p in result["passengers"]],
    }


async def get_complaints(args: GetComplaintsArgs, ctx: ToolContext) -> Dict[str, Any]:
    items = await ctx.ledger.list_complaints(args.status)
    return {"success": True, "complaints": [c.to_dict() for c in items], "count": len(items)}


async def resolve_complaint(args: ResolveComplaintArgs, ctx: ToolContext) -> Dict[str, Any]:
    c = await ctx.ledger.resolve_complaint(args.complaintId, args.resolutionMessage)

    notified = False
    if c.phone_number:
        text = (
            f"Hello {c.customer_name}, your {ctx.profile['brand']} complaint {c.id} has been resolved: "
            f"{c.resolution_message}"
        )
        notified = await ctx.messaging.notify(c.phone_number, text)
        if not notified:
            logger.warning("Resolution notice for %s was not delivered", c.id)

    out = {"success": True, "complaintId": c.id, "status": c.status.value, "customerNotified": notified}
    if not c.phone_number:
        out["note"] = "No contact on file; the customer was not notified."
    return out


OPERATOR_TOOLS = [
    ToolSpec(
        "getFinancialReport",
        "Revenue, ticket count and average price for booked tickets, optionally between two booking dates.",
        FinancialReportArgs,
        get_financial_report,
    ),
    ToolSpec(
        "getOccupancyStats",
        "Fleet-wide seat utilisation and the busiest routes.",
        NoArgs,
        get_occupancy_stats,
    ),
    ToolSpec(
        "broadcastMessage",
        "Send one WhatsApp message to a list of numbers, or to every CRM contact when no list is given.",
        BroadcastArgs,
        broadcast_message,
    ),
    ToolSpec(
        "getRouteManifest",
        "Passenger list for a route with seat numbers and boarding status.",
        RouteManifestArgs,
        get_route_manifest,
        project=project_manifest,
    ),
    ToolSpec(
        "getComplaints",
        "List complaints, newest first, optionally filtered by status.",
        GetComplaintsArgs,
        get_complaints,
    ),
    ToolSpec(
        "resolveComplaint",
        "Mark a complaint resolved and notify the customer when a number is on file.",
        ResolveComplaintArgs,
        resolve_complaint,
    ),
    SEARCH_ROUTES,
    TRACK_BUS,
]
