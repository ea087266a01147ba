"""
Scannable ticket payloads.

Format (one line, pipe separated, HMAC-SHA256 over the fields before `sig`):
  TICKET|id=TKT-00001|route=R001|seat=3|pay=CRQ-1|sig=<hex>
"""
from __future__ import annotations

import hashlib
import hmac
from typing import Dict, Optional


def _message(ticket_id: str, route_id: str, seat: int, payment_reference: str) -> bytes:
    return f"{ticket_id}:{route_id}:{seat}:{payment_reference}".encode()


def sign_ticket(secret: str, *, ticket_id: str, route_id: str, seat: int, payment_reference: str) -> str:
    sig = hmac.new(secret.encode(), _message(ticket_id, route_id, seat, payment_reference), hashlib.sha256).hexdigest()
    return f"TICKET|id={ticket_id}|route={route_id}|seat={seat}|pay={payment_reference}|sig={sig}"


def parse_ticket_code(payload: str) -> Optional[Dict[str, str]]:
    """Split a payload into its fields. Returns None when it is not a ticket code."""
    parts = (payload or "").strip().split("|")
    if len(parts) < 2 or parts[0] != "TICKET":
        return None
    fields: Dict[str, str] = {}
    for part in parts[1:]:
        key, sep, value = part.partition("=")
        if not sep:
            return None
        fields[key] = value
    if not {"id", "route", "seat", "pay", "sig"} <= fields.keys():
        return None
    return fields


def verify_ticket_code(secret: str, payload: str) -> Optional[str]:
    """Return the ticket id when the payload is well formed and its signature matches."""
    fields = parse_ticket_code(payload)
    if not fields:
        return None
    try:
        seat = int(fields["seat"])
    except ValueError:
        return None
    expected = hmac.new(
        secret.encode(), _message(fields["id"], fields["route"], seat, fields["pay"]), hashlib.sha256
    ).hexdigest()
    if not hmac.compare_digest(expected, fields["sig"]):
        return None
    return fields["id"]
