## common/models.py

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import yaml

from business_profile import BUSINESS_PROFILE


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------- Enums ----------
class BusClass(str, Enum):
    luxury = "Luxury"
    standard = "Standard"


class TicketStatus(str, Enum):
    booked = "booked"
    cancelled = "cancelled"


class BoardingStatus(str, Enum):
    pending = "pending"
    boarded = "boarded"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class Severity(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class ComplaintStatus(str, Enum):
    open = "open"
    resolved = "resolved"


class TripStatus(str, Enum):
    scheduled = "Scheduled"
    on_time = "On Time"
    delayed = "Delayed"
    arrived = "Arrived"


# ---------- Ledger records ----------
@dataclass
class Route:
    id: str
    origin: str
    destination: str
    departure_time: str                  # "08:00 AM"
    price: float
    capacity: int
    available_seats: int
    bus_class: BusClass = BusClass.standard
    stops: List[str] = field(default_factory=list)

    @property
    def booked_seats(self) -> int:
        return self.capacity - self.available_seats

    def serves(self, origin: str, destination: str) -> bool:
        o = (origin or "").strip().lower()
        d = (destination or "").strip().lower()
        if o and o not in self.origin.lower():
            return False
        if not d:
            return True
        if d in self.destination.lower():
            return True
        return any(d in stop.lower() for stop in self.stops)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "origin": self.origin,
            "destination": self.destination,
            "departureTime": self.departure_time,
            "price": self.price,
            "availableSeats": self.available_seats,
            "capacity": self.capacity,
            "busType": self.bus_class.value,
            "stops": list(self.stops),
        }


@dataclass
class Ticket:
    id: str
    passenger_name: str
    route_id: str
    route_snapshot: Route
    seat_number: int
    payment_reference: str
    travel_date: date
    code_payload: str = ""
    status: TicketStatus = TicketStatus.booked
    boarding_status: BoardingStatus = BoardingStatus.pending
    booked_at: datetime = field(default_factory=utcnow)
    user_id: Optional[str] = None
    phone_number: Optional[str] = None
    boarded_at: Optional[datetime] = None

    @property
    def qr_code_url(self) -> str:
        return BUSINESS_PROFILE["tickets"]["qr_base_url"] + quote(self.code_payload, safe="")

    def to_dict(self, include_code: bool = True) -> Dict[str, Any]:
        out = {
            "id": self.id,
            "passengerName": self.passenger_name,
            "routeId": self.route_id,
            "seatNumber": self.seat_number,
            "status": self.status.value,
            "boardingStatus": self.boarding_status.value,
            "paymentId": self.payment_reference,
            "bookingTime": self.booked_at.isoformat(),
            "travelDate": self.travel_date.isoformat(),
            "userId": self.user_id,
            "routeDetails": self.route_snapshot.to_dict(),
        }
        if include_code:
            out["codePayload"] = self.code_payload
            out["qrCodeUrl"] = self.qr_code_url
        return out


@dataclass
class PaymentRecord:
    reference: str
    phone_number: str
    amount: float
    status: PaymentStatus = PaymentStatus.PENDING
    message: str = ""
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    consumed_by_ticket: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reference": self.reference,
            "phoneNumber": self.phone_number,
            "amount": self.amount,
            "status": self.status.value,
            "message": self.message,
            "consumedByTicket": self.consumed_by_ticket,
        }


@dataclass
class Complaint:
    id: str
    customer_name: str
    issue: str
    severity: Severity = Severity.medium
    status: ComplaintStatus = ComplaintStatus.open
    created_at: datetime = field(default_factory=utcnow)
    incident_date: Optional[str] = None
    route_info: Optional[str] = None
    phone_number: Optional[str] = None
    resolution_message: Optional[str] = None
    resolved_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "customerName": self.customer_name,
            "issue": self.issue,
            "severity": self.severity.value,
            "status": self.status.value,
            "timestamp": self.created_at.isoformat(),
            "incidentDate": self.incident_date,
            "routeInfo": self.route_info,
            "resolutionMessage": self.resolution_message,
        }


@dataclass
class Contact:
    phone_number: str
    name: str
    last_travel_date: Optional[str] = None
    total_trips: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phoneNumber": self.phone_number,
            "name": self.name,
            "lastTravelDate": self.last_travel_date,
            "totalTrips": self.total_trips,
        }


@dataclass
class BusLocation:
    route_id: str
    current_location: str
    next_stop: Optional[str]
    estimated_arrival: str
    status: TripStatus

    def to_dict(self) -> Dict[str, Any]:
        return {
            "routeId": self.route_id,
            "currentLocation": self.current_location,
            "nextStop": self.next_stop,
            "estimatedArrival": self.estimated_arrival,
            "status": self.status.value,
        }


def clone(obj):
    """Detached copy handed out by the ledger so callers never mutate state."""
    return copy.deepcopy(obj)


def summarize(obj: Any) -> str:
    """YAML rendering of records and tool results, as the model reads them."""
    data = obj.to_dict() if hasattr(obj, "to_dict") else obj
    return yaml.dump(data, sort_keys=False)
