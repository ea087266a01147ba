from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from business_profile import BUSINESS_PROFILE
from common.errors import InvalidArgumentsError, NotFoundError
from common.models import BusLocation, Route, TripStatus
from common.utils import _time_of, now_in
from services.ledger import Ledger

logger = logging.getLogger("ena-coach-agent")


class TrackingService:
    """
    Estimated bus position. There is no telematics feed: the position is
    derived from the scheduled departure and a fixed duration per leg
    (origin -> each stop -> destination).
    """

    def __init__(self, ledger: Ledger, timezone: str = BUSINESS_PROFILE["timezone"], leg_minutes: Optional[int] = None):
        self.ledger = ledger
        self.timezone = timezone
        self.leg = timedelta(minutes=leg_minutes or BUSINESS_PROFILE["fleet"]["leg_minutes"])

    async def resolve_route(self, query: str) -> Route:
        q = (query or "").strip()
        if not q:
            raise InvalidArgumentsError("Tell me a route id or a town to track")
        try:
            return await self.ledger.get_route(q)
        except NotFoundError:
            pass

        routes = await self.ledger.list_routes()
        ql = q.lower()
        for pick in (
            lambda r: ql in r.destination.lower(),
            lambda r: ql in r.origin.lower(),
            lambda r: any(ql in s.lower() for s in r.stops),
        ):
            for r in routes:
                if pick(r):
                    return r
        raise NotFoundError(f"No bus found for '{q}'")

    async def get_bus_status(self, query: str, now: Optional[datetime] = None) -> BusLocation:
        route = await self.resolve_route(query)
        now = now or now_in(self.timezone)
        legs: List[str] = list(route.stops) + [route.destination]
        trip = self.leg * len(legs)

        dep_time = _time_of(route.departure_time)
        departure = now.replace(hour=dep_time.hour, minute=dep_time.minute, second=0, microsecond=0)
        # Overnight trips: yesterday's bus may still be on the road
        if now < departure and now < departure - timedelta(days=1) + trip:
            departure -= timedelta(days=1)
        arrival = departure + trip

        if now < departure:
            loc = BusLocation(route.id, route.origin, legs[0], _fmt(arrival), TripStatus.scheduled)
        elif now >= arrival:
            loc = BusLocation(route.id, route.destination, None, _fmt(arrival), TripStatus.arrived)
        else:
            idx = int((now - departure) // self.leg)
            passed = route.origin if idx == 0 else legs[idx - 1]
            loc = BusLocation(route.id, passed, legs[idx], _fmt(arrival), TripStatus.on_time)

        logger.debug("Tracking %s: %s next=%s", route.id, loc.status.value, loc.next_stop)
        return loc


def _fmt(dt: datetime) -> str:
    return dt.strftime("%I:%M %p")
