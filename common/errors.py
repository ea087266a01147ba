"""Typed errors for the booking assistant.

Services raise these; the tool registry turns them into result payloads the
model can read, and the HTTP layer maps them to status codes. Nothing here is
fatal to the process.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class BookingAssistantError(Exception):
    """Base error. `kind` is the stable category name exposed to the model."""

    message: str
    cause: Optional[Exception] = field(default=None, repr=False)

    kind = "internal"

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message}: {self.cause}"
        return self.message

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message, "errorKind": self.kind}


@dataclass
class NotFoundError(BookingAssistantError):
    """Unknown ticket, route, complaint or payment reference."""

    kind = "not_found"


@dataclass
class BusinessRuleError(BookingAssistantError):
    """A request that would violate a booking invariant.

    Attributes:
        requires_refund: True when money was taken but no ticket can be issued
    """

    requires_refund: bool = False

    kind = "business_rule"

    def to_payload(self) -> Dict[str, Any]:
        out = super().to_payload()
        if self.requires_refund:
            out["requiresRefund"] = True
        return out


@dataclass
class UpstreamUnavailableError(BookingAssistantError):
    """Language model, payment provider or messaging gateway unreachable."""

    service: str = ""

    kind = "upstream_unavailable"


@dataclass
class InvalidArgumentsError(BookingAssistantError):
    kind = "invalid_arguments"


@dataclass
class UnknownToolError(BookingAssistantError):
    tool_name: str = ""

    kind = "unknown_tool"


@dataclass
class ConfigurationError(BookingAssistantError):
    setting_name: str = ""

    kind = "configuration"
