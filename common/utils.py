## common/utils.py

import logging
import re
from datetime import date, datetime, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

logger = logging.getLogger("ena-coach-agent")


def _date_of(s: Optional[Union[str, date]]) -> Optional[date]:
    """'YYYY-MM-DD' (or a date/datetime) -> date. Empty -> None."""
    if s is None or s == "":
        return None
    if isinstance(s, datetime):
        return s.date()
    if isinstance(s, date):
        return s
    try:
        return date.fromisoformat(str(s).strip()[:10])
    except ValueError:
        raise ValueError(f"Invalid date {s!r}. Expected YYYY-MM-DD.")


def _time_of(departure: str):
    """'08:00 AM' -> time."""
    return datetime.strptime(departure.strip().upper(), "%I:%M %p").time()


def now_in(tz: str) -> datetime:
    try:
        zone = ZoneInfo(tz) if tz else timezone.utc
    except Exception:
        logger.warning("Unknown timezone %r; falling back to UTC", tz)
        zone = timezone.utc
    return datetime.now(zone)


def normalize_msisdn(phone: str) -> str:
    """
    Normalise Kenyan phone numbers to the 2547XXXXXXXX form the payment
    provider expects: '+254712…' / '0712…' / '712…' -> '254712…'.
    """
    digits = re.sub(r"[^0-9]", "", phone or "")
    if digits.startswith("0"):
        digits = "254" + digits[1:]
    elif len(digits) == 9 and digits[0] in "17":
        digits = "254" + digits
    return digits


def clean_jid(jid: str) -> str:
    """'254712345678@s.whatsapp.net' -> '254712345678'."""
    return re.sub(r"[^0-9]", "", (jid or "").split("@")[0])


__all__ = [
    "_date_of",
    "_time_of",
    "now_in",
    "normalize_msisdn",
    "clean_jid",
    "ZoneInfo",
]
