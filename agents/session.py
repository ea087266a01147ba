# agents/session.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger("ena-coach-agent")


@dataclass
class ConversationSession:
    """
    Ordered dialogue history in chat-completions wire format:
      {"role": "user", "content": ...}
      {"role": "assistant", "content": ..., "tool_calls": [...]}
      {"role": "tool", "tool_call_id": ..., "content": ...}
    """

    session_id: str
    role: str = "customer"
    phone_number: Optional[str] = None
    user_id: Optional[str] = None
    display_name: Optional[str] = None
    max_messages: int = 40
    messages: List[Dict[str, Any]] = field(default_factory=list)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    def append(self, message: Dict[str, Any]) -> None:
        self.messages.append(message)

    def trim(self) -> None:
        """
        Drop the oldest whole turns until the history fits. Cuts only happen at
        a user message so a tool result is never left without its call. A
        single turn longer than the cap is kept whole.
        """
        if self.max_messages <= 0 or len(self.messages) <= self.max_messages:
            return
        overflow = len(self.messages) - self.max_messages
        starts = [i for i, m in enumerate(self.messages) if m.get("role") == "user"]
        cut = next((i for i in starts if i >= overflow), None)
        if cut is None:
            cut = starts[-1] if starts else 0
        if cut > 0:
            del self.messages[:cut]

    def history(self) -> List[Dict[str, Any]]:
        return list(self.messages)


class SessionStore:
    """Sessions keyed by id (the sender's number for customers). One store per role."""

    def __init__(self, role: str, max_messages: int = 40):
        self.role = role
        self.max_messages = max_messages
        self._sessions: Dict[str, ConversationSession] = {}

    def get(self, session_id: str, **identity: Any) -> ConversationSession:
        s = self._sessions.get(session_id)
        if s is None:
            s = ConversationSession(session_id=session_id, role=self.role, max_messages=self.max_messages)
            self._sessions[session_id] = s
            logger.debug("New %s session %s", self.role, session_id)
        for key, value in identity.items():
            if value is not None:
                setattr(s, key, value)
        return s

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
