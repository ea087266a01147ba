from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from common.errors import BusinessRuleError, NotFoundError
from common.models import Ticket, TicketStatus
from services.ledger import Ledger
from services.ticket_codes import verify_ticket_code

logger = logging.getLogger("ena-coach-agent")


@dataclass
class BoardingResult:
    success: bool
    message: str
    ticket: Optional[Ticket] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.ticket is not None:
            out["ticket"] = self.ticket.to_dict(include_code=False)
        return out


class BoardingService:
    def __init__(self, ledger: Ledger, ticket_secret: str):
        self.ledger = ledger
        self._secret = ticket_secret

    async def validate_ticket(self, ticket_id: str) -> BoardingResult:
        """
        Admit a passenger once. Failure messages are fixed strings the conductor
        sees verbatim; the ledger is not touched on failure.
        """
        try:
            t = await self.ledger.board_ticket(ticket_id)
        except NotFoundError:
            return BoardingResult(False, "Invalid ticket ID")
        except BusinessRuleError:
            ticket = await self.ledger.get_ticket(ticket_id)
            if ticket.status == TicketStatus.cancelled:
                return BoardingResult(False, "Ticket has been cancelled", ticket)
            return BoardingResult(False, "Ticket already used", ticket)

        logger.info("Boarded: %s seat=%s", t.id, t.seat_number)
        return BoardingResult(True, f"Welcome aboard, {t.passenger_name}. Seat {t.seat_number}.", t)

    async def validate_scanned_code(self, payload: str) -> BoardingResult:
        ticket_id = verify_ticket_code(self._secret, payload)
        if not ticket_id:
            logger.warning("Rejected unreadable or forged ticket code")
            return BoardingResult(False, "Invalid ticket code")
        return await self.validate_ticket(ticket_id)
