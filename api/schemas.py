from __future__ import annotations
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, field_validator

from common.utils import _time_of


def _clock(v: str) -> str:
    try:
        t = _time_of(v)
    except ValueError:
        raise ValueError("departureTime must look like 08:00 AM")
    return t.strftime("%I:%M %p")


class ChatIn(BaseModel):
    sessionId: str = Field(..., min_length=1, description="Customer phone number or operator session id")
    message: str = Field(..., min_length=1)
    pushName: Optional[str] = None


class ChatOut(BaseModel):
    reply: str
    rounds: int
    toolCalls: List[str] = Field(default_factory=list)
    tickets: List[Dict[str, Any]] = Field(default_factory=list)
    failed: bool = False


class RouteCreate(BaseModel):
    origin: str = Field(..., min_length=1)
    destination: str = Field(..., min_length=1)
    departureTime: str = Field(..., description="e.g. 08:00 AM")
    price: float = Field(..., ge=0)
    busType: Literal["Luxury", "Standard"] = "Standard"
    stops: List[str] = Field(default_factory=list)
    capacity: Optional[int] = Field(None, ge=1)
    availableSeats: Optional[int] = Field(None, ge=0)

    @field_validator("departureTime")
    @classmethod
    def _clock_time(cls, v: str):
        return _clock(v)


class RoutePatch(BaseModel):
    origin: Optional[str] = None
    destination: Optional[str] = None
    departureTime: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    busType: Optional[Literal["Luxury", "Standard"]] = None
    stops: Optional[List[str]] = None
    capacity: Optional[int] = Field(None, ge=1)
    availableSeats: Optional[int] = Field(None, ge=0)

    @field_validator("departureTime")
    @classmethod
    def _clock_time(cls, v: Optional[str]):
        return None if v is None else _clock(v)

    def to_fields(self) -> Dict[str, Any]:
        return {
            "origin": self.origin,
            "destination": self.destination,
            "departure_time": self.departureTime,
            "price": self.price,
            "bus_class": self.busType,
            "stops": self.stops,
            "capacity": self.capacity,
            "available_seats": self.availableSeats,
        }


class PriceUpdate(BaseModel):
    price: float = Field(..., ge=0)


class ResolveIn(BaseModel):
    resolutionMessage: str = Field(..., min_length=1)


class BroadcastIn(BaseModel):
    message: str = Field(..., min_length=1)
    contactList: Optional[List[str]] = None


class BroadcastOut(BaseModel):
    sent: int
    attempted: int


class ScanIn(BaseModel):
    code: str = Field(..., min_length=1, description="Scanned TICKET|... payload")


class BoardingOut(BaseModel):
    success: bool
    message: str
    ticket: Optional[Dict[str, Any]] = None
