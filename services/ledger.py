"""
Inventory & ledger store (in-memory, authoritative)
----------------------------------------------------

Exports:
  - Ledger(routes=..., contacts=..., ticket_secret=...)
      routes:     search_routes, get_route, list_routes, check_seats,
                  add_route, update_route, update_route_price, delete_route
      payments:   record_payment, get_payment, set_payment_status
      tickets:    issue_ticket, get_ticket, list_tickets, tickets_for_user,
                  board_ticket, cancel_ticket
      complaints: log_complaint, list_complaints, resolve_complaint
      reports:    financial_report, occupancy_stats, route_manifest
      contacts:   load_contacts, list_contacts
  - build_fleet(seed)            -> initial Route list (both directions)
  - load_contacts_file(path)     -> Contact list from YAML

Notes:
  - One asyncio.Lock guards every read-modify-write; conversations for
    different customers run concurrently against the same ledger.
  - Everything handed out is a copy; callers never hold live records.
  - Seat numbers are first-come sequential: capacity - available_seats
    right after the decrement (1-based).
"""
from __future__ import annotations

import asyncio
import logging
import random
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

import yaml

from business_profile import BUSINESS_PROFILE
from common.errors import BusinessRuleError, InvalidArgumentsError, NotFoundError
from common.models import (
    BoardingStatus,
    BusClass,
    Complaint,
    ComplaintStatus,
    Contact,
    PaymentRecord,
    PaymentStatus,
    Route,
    Severity,
    Ticket,
    TicketStatus,
    clone,
    utcnow,
)
from constants.routes import BASE_ROUTES
from services.ticket_codes import sign_ticket

logger = logging.getLogger("ena-coach-agent")

_ROUTE_FIELDS = {"origin", "destination", "departure_time", "price", "bus_class", "stops", "capacity", "available_seats"}


# ---------- seeding ----------
def build_fleet(seed: Optional[int] = None) -> List[Route]:
    """Forward + reverse record for every base route; reverse stops are reversed."""
    fleet = BUSINESS_PROFILE["fleet"]
    rng = random.Random(seed)
    out: List[Route] = []
    n = 1

    def _seats() -> int:
        return rng.randint(fleet["initial_seats_min"], fleet["initial_seats_max"])

    for base in BASE_ROUTES:
        for origin, destination, stops in (
            (base["origin"], base["destination"], list(base["stops"])),
            (base["destination"], base["origin"], list(reversed(base["stops"]))),
        ):
            out.append(
                Route(
                    id=f"R{n:03d}",
                    origin=origin,
                    destination=destination,
                    departure_time=base["departure_time"],
                    price=float(base["price"]),
                    capacity=fleet["default_capacity"],
                    available_seats=_seats(),
                    bus_class=BusClass(base["bus_class"]),
                    stops=stops,
                )
            )
            n += 1
    return out


def load_contacts_file(path: str) -> List[Contact]:
    p = Path(path)
    if not p.exists():
        logger.warning("Contacts file not found at %s; CRM list is empty.", p)
        return []
    with p.open("r", encoding="utf-8") as f:
        rows = yaml.safe_load(f) or []
    return [
        Contact(
            phone_number=str(r["phone_number"]),
            name=str(r.get("name") or ""),
            last_travel_date=r.get("last_travel_date"),
            total_trips=int(r.get("total_trips") or 0),
        )
        for r in rows
        if r.get("phone_number")
    ]


# ---------- ledger ----------
class Ledger:
    def __init__(
        self,
        *,
        routes: Iterable[Route] = (),
        contacts: Iterable[Contact] = (),
        ticket_secret: str = "change-me-ticket-secret",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._lock = asyncio.Lock()
        self._secret = ticket_secret
        self._clock = clock
        self._routes: Dict[str, Route] = {}
        self._tickets: Dict[str, Ticket] = {}
        self._payments: Dict[str, PaymentRecord] = {}
        self._complaints: Dict[str, Complaint] = {}
        self._contacts: Dict[str, Contact] = {}
        self._ticket_seq = 0
        self._complaint_seq = 0
        self._route_seq = 0

        for r in routes:
            self._check_route(r)
            self._routes[r.id] = clone(r)
            self._route_seq = max(self._route_seq, _numeric_suffix(r.id))
        for c in contacts:
            self._contacts[c.phone_number] = clone(c)

    # ----- routes -----
    async def search_routes(self, origin: str, destination: str) -> List[Route]:
        async with self._lock:
            return [clone(r) for r in self._routes.values() if r.serves(origin, destination)]

    async def get_route(self, route_id: str) -> Route:
        async with self._lock:
            return clone(self._route(route_id))

    async def list_routes(self) -> List[Route]:
        async with self._lock:
            return [clone(r) for r in self._routes.values()]

    async def check_seats(self, route_id: str) -> int:
        async with self._lock:
            return self._route(route_id).available_seats

    async def add_route(
        self,
        *,
        origin: str,
        destination: str,
        departure_time: str,
        price: float,
        bus_class: str = BusClass.standard.value,
        stops: Optional[List[str]] = None,
        capacity: Optional[int] = None,
        available_seats: Optional[int] = None,
    ) -> Route:
        cap = int(capacity or BUSINESS_PROFILE["fleet"]["default_capacity"])
        async with self._lock:
            self._route_seq += 1
            route = Route(
                id=f"R{self._route_seq:03d}",
                origin=origin.strip(),
                destination=destination.strip(),
                departure_time=departure_time.strip(),
                price=float(price),
                capacity=cap,
                available_seats=cap if available_seats is None else int(available_seats),
                bus_class=_bus_class(bus_class),
                stops=[s.strip() for s in (stops or []) if s and s.strip()],
            )
            self._check_route(route)
            self._routes[route.id] = route
            logger.info("Route added: %s %s->%s %s", route.id, route.origin, route.destination, route.departure_time)
            return clone(route)

    async def update_route(self, route_id: str, **fields: Any) -> Route:
        data = {k: v for k, v in fields.items() if k in _ROUTE_FIELDS and v is not None}
        if not data:
            raise InvalidArgumentsError("No valid route fields to update")

        async with self._lock:
            current = self._route(route_id)
            updated = clone(current)
            booked = current.booked_seats

            for key, value in data.items():
                if key == "bus_class":
                    value = _bus_class(value)
                elif key == "price":
                    value = float(value)
                elif key in ("capacity", "available_seats"):
                    value = int(value)
                setattr(updated, key, value)

            # Capacity edits keep already-sold seats sold
            if "capacity" in data and "available_seats" not in data:
                updated.available_seats = updated.capacity - booked
            self._check_route(updated)

            self._routes[route_id] = updated
            logger.info("Route updated: %s fields=%s", route_id, sorted(data))
            return clone(updated)

    async def update_route_price(self, route_id: str, price: float) -> Route:
        return await self.update_route(route_id, price=price)

    async def delete_route(self, route_id: str) -> None:
        async with self._lock:
            self._route(route_id)
            del self._routes[route_id]
            logger.info("Route deleted: %s", route_id)

    # ----- payments -----
    async def record_payment(self, record: PaymentRecord) -> PaymentRecord:
        async with self._lock:
            if record.reference in self._payments:
                raise BusinessRuleError(f"Payment reference {record.reference} already exists")
            self._payments[record.reference] = clone(record)
            return clone(record)

    async def get_payment(self, reference: str) -> PaymentRecord:
        async with self._lock:
            return clone(self._payment(reference))

    async def set_payment_status(self, reference: str, status: PaymentStatus, message: str = "") -> PaymentRecord:
        """
        Only a PENDING record moves. COMPLETED and FAILED are final: a late or
        stale poll leaves the stored record unchanged and it is returned as is.
        """
        async with self._lock:
            rec = self._payment(reference)
            if rec.status != PaymentStatus.PENDING:
                if status != rec.status:
                    logger.warning(
                        "Payment %s is %s; ignoring reported %s", reference, rec.status.value, status.value
                    )
                return clone(rec)
            if status != rec.status:
                logger.info("Payment %s: %s -> %s", reference, rec.status.value, status.value)
            rec.status = status
            rec.message = message
            rec.updated_at = self._clock()
            return clone(rec)

    # ----- tickets -----
    async def issue_ticket(
        self,
        *,
        passenger_name: str,
        route_id: str,
        payment_reference: str,
        travel_date: Optional[date] = None,
        user_id: Optional[str] = None,
        phone_number: Optional[str] = None,
    ) -> Ticket:
        """Seat decrement + ticket creation + payment consumption as one step."""
        if not (passenger_name or "").strip():
            raise InvalidArgumentsError("Passenger name is required")

        async with self._lock:
            route = self._route(route_id)
            payment = self._payment(payment_reference)

            if payment.status != PaymentStatus.COMPLETED:
                raise BusinessRuleError(
                    f"Payment {payment_reference} is {payment.status.value}. "
                    "A ticket can only be issued once the payment is COMPLETED."
                )
            if payment.consumed_by_ticket:
                raise BusinessRuleError(
                    f"Payment {payment_reference} has already been used for ticket {payment.consumed_by_ticket}."
                )
            if payment.amount < route.price:
                raise BusinessRuleError(
                    f"Payment {payment_reference} covers {payment.amount:.0f} but route {route.id} costs {route.price:.0f}."
                )
            if route.available_seats <= 0:
                raise BusinessRuleError(
                    f"Route {route.id} is fully booked. Payment {payment_reference} was received and must be refunded.",
                    requires_refund=True,
                )

            now = self._clock()
            route.available_seats -= 1
            seat = route.capacity - route.available_seats

            self._ticket_seq += 1
            ticket_id = f"TKT-{self._ticket_seq:05d}"
            ticket = Ticket(
                id=ticket_id,
                passenger_name=passenger_name.strip(),
                route_id=route.id,
                route_snapshot=clone(route),
                seat_number=seat,
                payment_reference=payment_reference,
                travel_date=travel_date or now.date(),
                code_payload=sign_ticket(
                    self._secret,
                    ticket_id=ticket_id,
                    route_id=route.id,
                    seat=seat,
                    payment_reference=payment_reference,
                ),
                booked_at=now,
                user_id=user_id,
                phone_number=phone_number,
            )
            self._tickets[ticket_id] = ticket
            payment.consumed_by_ticket = ticket_id
            payment.updated_at = now

            logger.info(
                "Ticket issued: %s route=%s seat=%s payment=%s seats_left=%s",
                ticket_id, route.id, seat, payment_reference, route.available_seats,
            )
            return clone(ticket)

    async def get_ticket(self, ticket_id: str) -> Ticket:
        async with self._lock:
            return clone(self._ticket(ticket_id))

    async def list_tickets(self) -> List[Ticket]:
        async with self._lock:
            return [clone(t) for t in self._tickets.values()]

    async def tickets_for_user(self, user_id: str) -> List[Ticket]:
        async with self._lock:
            return [clone(t) for t in self._tickets.values() if user_id and t.user_id == user_id]

    async def board_ticket(self, ticket_id: str) -> Ticket:
        """pending -> boarded, at most once. Cancelled tickets never board."""
        async with self._lock:
            t = self._ticket(ticket_id)
            if t.status == TicketStatus.cancelled:
                raise BusinessRuleError("Ticket has been cancelled.")
            if t.boarding_status == BoardingStatus.boarded:
                raise BusinessRuleError("Ticket already used.")
            t.boarding_status = BoardingStatus.boarded
            t.boarded_at = self._clock()
            return clone(t)

    async def cancel_ticket(self, ticket_id: str) -> Ticket:
        """Soft-cancel. The seat is not released back to inventory."""
        async with self._lock:
            t = self._ticket(ticket_id)
            if t.boarding_status == BoardingStatus.boarded:
                raise BusinessRuleError("A boarded ticket cannot be cancelled.")
            t.status = TicketStatus.cancelled
            logger.info("Ticket cancelled: %s", ticket_id)
            return clone(t)

    # ----- complaints -----
    async def log_complaint(
        self,
        *,
        customer_name: str,
        issue: str,
        severity: str = Severity.medium.value,
        incident_date: Optional[str] = None,
        route_info: Optional[str] = None,
        phone_number: Optional[str] = None,
    ) -> Complaint:
        if not (issue or "").strip():
            raise InvalidArgumentsError("Complaint issue text is required")
        try:
            sev = Severity(str(severity).lower())
        except ValueError:
            raise InvalidArgumentsError(f"Severity must be one of low, medium, high (got {severity!r})")

        async with self._lock:
            self._complaint_seq += 1
            c = Complaint(
                id=f"CMP-{self._complaint_seq:04d}",
                customer_name=(customer_name or "Customer").strip(),
                issue=issue.strip(),
                severity=sev,
                created_at=self._clock(),
                incident_date=incident_date,
                route_info=route_info,
                phone_number=phone_number,
            )
            self._complaints[c.id] = c
            logger.info("Complaint logged: %s severity=%s", c.id, sev.value)
            return clone(c)

    async def list_complaints(self, status: Optional[str] = None) -> List[Complaint]:
        wanted = ComplaintStatus(status) if status else None
        async with self._lock:
            items = [c for c in self._complaints.values() if wanted is None or c.status == wanted]
            return [clone(c) for c in sorted(items, key=lambda c: c.created_at, reverse=True)]

    async def resolve_complaint(self, complaint_id: str, resolution_message: str) -> Complaint:
        async with self._lock:
            c = self._complaints.get(complaint_id)
            if c is None:
                raise NotFoundError(f"Complaint {complaint_id} not found")
            if c.status == ComplaintStatus.resolved:
                raise BusinessRuleError(f"Complaint {complaint_id} is already resolved")
            c.status = ComplaintStatus.resolved
            c.resolution_message = resolution_message
            c.resolved_at = self._clock()
            return clone(c)

    # ----- reports -----
    async def financial_report(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> Dict[str, Any]:
        async with self._lock:
            sold = [
                t for t in self._tickets.values()
                if t.status == TicketStatus.booked
                and (start_date is None or t.booked_at.date() >= start_date)
                and (end_date is None or t.booked_at.date() <= end_date)
            ]
        revenue = sum(t.route_snapshot.price for t in sold)
        count = len(sold)
        return {
            "totalRevenue": revenue,
            "ticketCount": count,
            "averagePrice": round(revenue / count, 2) if count else 0,
            "startDate": start_date.isoformat() if start_date else None,
            "endDate": end_date.isoformat() if end_date else None,
        }

    async def occupancy_stats(self, top: int = 5) -> Dict[str, Any]:
        async with self._lock:
            routes = list(self._routes.values())
            total_capacity = sum(r.capacity for r in routes)
            total_booked = sum(r.booked_seats for r in routes)
            busiest = sorted(routes, key=lambda r: r.booked_seats, reverse=True)[:top]
            busiest_out = [
                {
                    "routeId": r.id,
                    "route": f"{r.origin} -> {r.destination} {r.departure_time}",
                    "booked": r.booked_seats,
                    "capacity": r.capacity,
                }
                for r in busiest
            ]
        pct = (100.0 * total_booked / total_capacity) if total_capacity else 0.0
        return {
            "totalCapacity": total_capacity,
            "totalBooked": total_booked,
            "utilization": f"{pct:.1f}%",
            "busiestRoutes": busiest_out,
        }

    async def route_manifest(self, route_id: str, travel_date: Optional[date] = None) -> Dict[str, Any]:
        async with self._lock:
            route = self._route(route_id)
            tickets = sorted(
                (
                    t for t in self._tickets.values()
                    if t.route_id == route_id
                    and t.status == TicketStatus.booked
                    and (travel_date is None or t.travel_date == travel_date)
                ),
                key=lambda t: t.seat_number,
            )
            passengers = [
                {
                    "ticketId": t.id,
                    "passengerName": t.passenger_name,
                    "seatNumber": t.seat_number,
                    "boardingStatus": t.boarding_status.value,
                    "phoneNumber": t.phone_number,
                    "travelDate": t.travel_date.isoformat(),
                }
                for t in tickets
            ]
            return {
                "routeId": route.id,
                "route": f"{route.origin} -> {route.destination} {route.departure_time}",
                "date": travel_date.isoformat() if travel_date else None,
                "passengers": passengers,
                "total": len(passengers),
                "boarded": sum(1 for p in passengers if p["boardingStatus"] == BoardingStatus.boarded.value),
            }

    # ----- contacts (owned by the CRM; read-only here) -----
    async def load_contacts(self, contacts: Iterable[Contact]) -> int:
        async with self._lock:
            self._contacts = {c.phone_number: clone(c) for c in contacts}
            return len(self._contacts)

    async def list_contacts(self) -> List[Contact]:
        async with self._lock:
            return [clone(c) for c in self._contacts.values()]

    # ----- internals (call with the lock held) -----
    def _route(self, route_id: str) -> Route:
        r = self._routes.get((route_id or "").strip().upper())
        if r is None:
            raise NotFoundError(f"Route {route_id} not found")
        return r

    def _ticket(self, ticket_id: str) -> Ticket:
        t = self._tickets.get((ticket_id or "").strip().upper())
        if t is None:
            raise NotFoundError(f"Ticket {ticket_id} not found")
        return t

    def _payment(self, reference: str) -> PaymentRecord:
        p = self._payments.get((reference or "").strip())
        if p is None:
            raise NotFoundError(f"Payment {reference} not found")
        return p

    @staticmethod
    def _check_route(r: Route) -> None:
        if r.capacity < 1:
            raise InvalidArgumentsError("Capacity must be at least 1")
        if not 0 <= r.available_seats <= r.capacity:
            raise InvalidArgumentsError(
                f"Available seats must be between 0 and capacity ({r.capacity}); got {r.available_seats}"
            )
        if r.price < 0:
            raise InvalidArgumentsError("Price cannot be negative")
        if not r.origin or not r.destination:
            raise InvalidArgumentsError("Origin and destination are required")


def _bus_class(value: Any) -> BusClass:
    if isinstance(value, BusClass):
        return value
    for bc in BusClass:
        if str(value).strip().lower() == bc.value.lower():
            return bc
    raise InvalidArgumentsError(f"Bus class must be Luxury or Standard (got {value!r})")


def _numeric_suffix(route_id: str) -> int:
    digits = "".join(ch for ch in route_id if ch.isdigit())
    return int(digits) if digits else 0
