# agents/orchestrator.py
"""
Tool-calling conversation loop.

One inbound message -> one TurnResult. The model may ask for tools; each
requested call is dispatched in the order given and its result is appended
to the history under the call's id. The loop stops when the model answers
with text, or after `max_tool_rounds` dispatch rounds.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from agents.llm import ChatModel, LLMReply, tool_result_message
from agents.session import ConversationSession
from common.utils import now_in
from tools.registry import ToolContext, ToolRegistry
from utils.logger import ConversationLogger

logger = logging.getLogger("ena-coach-agent")

APOLOGY = "Sorry, I'm having trouble right now. Please try again in a moment."
FALLBACK = "I couldn't finish that request. Could you rephrase or try again?"
NOT_EXECUTED = {
    "success": False,
    "error": "Not executed: too many tool steps in one turn. Answer the customer with what you have.",
    "errorKind": "not_executed",
}


@dataclass
class TurnResult:
    text: str
    rounds: int = 0
    tool_calls: List[str] = field(default_factory=list)
    artifacts: List[Dict[str, Any]] = field(default_factory=list)
    guard_tripped: bool = False
    failed: bool = False


class ConversationOrchestrator:
    def __init__(
        self,
        *,
        role: str,
        instructions: str,
        registry: ToolRegistry,
        model: ChatModel,
        max_tool_rounds: int = 5,
        timezone: str = "Africa/Nairobi",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.role = role
        self.instructions = instructions
        self.registry = registry
        self.model = model
        self.max_tool_rounds = max_tool_rounds
        self.timezone = timezone
        self._clock = clock or (lambda: now_in(self.timezone))

    def _stamp(self, text: str) -> str:
        now = self._clock()
        return f"[CURRENT TIME: {now.strftime('%A %d %B %Y, %I:%M %p')}]\n{text}"

    async def handle_message(self, session: ConversationSession, text: str, ctx: ToolContext) -> TurnResult:
        """Serialised per session; the outer catch is the only place a failure becomes the apology."""
        clog = ConversationLogger(logger, session.session_id, self.role)
        async with session.lock:
            clog.turn_start(text)
            try:
                result = await self._run(session, text, ctx, clog)
            except Exception as e:  # noqa: BLE001
                clog.turn_failed(e)
                # tool results already appended stay: their side effects happened
                session.append({"role": "assistant", "content": APOLOGY})
                session.trim()
                clog.turn_end(0, failed=True)
                return TurnResult(text=APOLOGY, artifacts=list(ctx.artifacts), failed=True)
            session.trim()
            clog.turn_end(result.rounds)
            return result

    async def _run(self, session: ConversationSession, text: str, ctx: ToolContext, clog: ConversationLogger) -> TurnResult:
        session.append({"role": "user", "content": self._stamp(text)})
        tools = self.registry.api_tools()
        called: List[str] = []
        last_text = ""
        rounds = 0

        while True:
            clog.model_call(rounds + 1, len(session.messages))
            reply: LLMReply = await self.model.complete(self.instructions, tools, session.history())
            clog.model_reply(rounds + 1, reply.text, [c.name for c in reply.tool_calls])
            if reply.text:
                last_text = reply.text

            if not reply.tool_calls:
                session.append({"role": "assistant", "content": reply.text or ""})
                return TurnResult(
                    text=reply.text or last_text or FALLBACK,
                    rounds=rounds,
                    tool_calls=called,
                    artifacts=list(ctx.artifacts),
                )

            session.append(
                {
                    "role": "assistant",
                    "content": reply.text or None,
                    "tool_calls": [c.to_wire() for c in reply.tool_calls],
                }
            )

            if rounds >= self.max_tool_rounds:
                clog.guard_tripped(rounds, len(reply.tool_calls))
                for call in reply.tool_calls:
                    session.append(tool_result_message(call.id, NOT_EXECUTED))
                final = last_text or FALLBACK
                session.append({"role": "assistant", "content": final})
                return TurnResult(
                    text=final,
                    rounds=rounds,
                    tool_calls=called,
                    artifacts=list(ctx.artifacts),
                    guard_tripped=True,
                )

            rounds += 1
            for call in reply.tool_calls:
                result = await self.registry.dispatch(call.name, call.arguments, ctx)
                clog.tool_result(call.name, call.arguments, result)
                called.append(call.name)
                session.append(tool_result_message(call.id, result))
