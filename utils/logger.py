from __future__ import annotations
import logging
import json
from typing import Any, Dict

__all__ = ["ConversationLogger", "truncate"]


def truncate(s: Any, limit: int = 4000) -> str:
    """Safely truncate long values for logs (keeps unicode; appends ellipsis)."""
    if not isinstance(s, str):
        try:
            s = json.dumps(s, ensure_ascii=False, default=str)
        except Exception:
            s = str(s)
    return s if len(s) <= limit else (s[:limit] + " …[truncated]")


class ConversationLogger:
    """High-signal logging for one conversation: model calls, tool dispatches, loop end."""

    def __init__(self, logger: logging.Logger, session_id: str, role: str):
        self._log = logger
        self._sid = session_id
        self._role = role

    def turn_start(self, user_text: str):
        self._log.info("TURN START | role=%s session=%s", self._role, self._sid)
        self._log.debug("TURN INPUT | session=%s %s", self._sid, truncate(user_text, 1000))

    def model_call(self, round_no: int, history_len: int):
        self._log.debug("MODEL CALL | session=%s round=%d history=%d", self._sid, round_no, history_len)

    def model_reply(self, round_no: int, text: str, tool_names: list):
        self._log.info("MODEL RESP | session=%s round=%d tools=%s", self._sid, round_no, tool_names or "-")
        if text:
            self._log.debug("MODEL TEXT | session=%s %s", self._sid, truncate(text, 1000))

    def tool_result(self, name: str, args: Dict[str, Any], result: Dict[str, Any]):
        ok = result.get("success", True)
        self._log.info("TOOL       | session=%s tool=%s ok=%s kind=%s", self._sid, name, ok, result.get("errorKind", "-"))
        self._log.debug("TOOL ARGS  | session=%s %s", self._sid, truncate(args, 1000))

    def guard_tripped(self, rounds: int, pending: int):
        self._log.warning(
            "GUARD      | session=%s rounds=%d; %d further tool call(s) not executed", self._sid, rounds, pending
        )

    def turn_end(self, rounds: int, failed: bool = False):
        self._log.info("TURN END   | session=%s rounds=%d failed=%s", self._sid, rounds, failed)

    def turn_failed(self, err: BaseException):
        self._log.error("TURN FAIL  | session=%s %s: %s", self._sid, type(err).__name__, err)
