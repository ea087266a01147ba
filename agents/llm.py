# agents/llm.py
"""Chat model seam: the loop talks to ChatModel; OpenAIChatModel is the production implementation."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from common.config_loader import mask_key
from common.errors import UpstreamUnavailableError
from common.models import summarize

logger = logging.getLogger("ena-coach-agent")


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: str = "{}"     # raw JSON string, as the model produced it

    def to_wire(self) -> Dict[str, Any]:
        return {"id": self.id, "type": "function", "function": {"name": self.name, "arguments": self.arguments}}


@dataclass
class LLMReply:
    text: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)


class ChatModel:
    async def complete(self, system: str, tools: List[Dict[str, Any]], messages: List[Dict[str, Any]]) -> LLMReply:
        raise NotImplementedError


class OpenAIChatModel(ChatModel):
    def __init__(self, api_key: str, model: str = "gpt-4o-mini", client: Optional[AsyncOpenAI] = None, timeout: float = 60.0):
        if not api_key and client is None:
            logger.warning("OPENAI_API_KEY is missing. OpenAI calls will fail.")
        else:
            logger.info("OpenAI key: %s model=%s", mask_key(api_key), model)
        self.model = model
        self._client = client or AsyncOpenAI(api_key=api_key or "missing", timeout=timeout)

    async def complete(self, system: str, tools: List[Dict[str, Any]], messages: List[Dict[str, Any]]) -> LLMReply:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "system", "content": system}, *messages],
            "temperature": 0,
        }
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"
        try:
            resp = await self._client.chat.completions.create(**kwargs)
        except OpenAIError as e:
            raise UpstreamUnavailableError("Language model request failed", cause=e, service="openai")

        if not resp.choices:
            raise UpstreamUnavailableError("Language model returned no choices", service="openai")
        msg = resp.choices[0].message
        calls = [
            ToolCall(id=tc.id, name=tc.function.name, arguments=tc.function.arguments or "{}")
            for tc in (msg.tool_calls or [])
        ]
        return LLMReply(text=msg.content or "", tool_calls=calls)


def tool_result_message(call_id: str, content: Any) -> Dict[str, Any]:
    body = content if isinstance(content, str) else summarize(content)
    return {"role": "tool", "tool_call_id": call_id, "content": body}
