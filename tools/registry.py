## tools/registry.py
"""
Closed tool catalogue shared by the conversation loop.

A ToolSpec pairs a pydantic argument model (its JSON schema is what the model
sees) with an async handler. dispatch() validates arguments, runs the handler
and always returns a dict: service errors become
{"success": False, "error": ..., "errorKind": ...} so the model can explain
them. Nothing raised by a tool reaches the loop.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Type

from pydantic import BaseModel, ValidationError

from common.errors import BookingAssistantError, InvalidArgumentsError, UnknownToolError

logger = logging.getLogger("ena-coach-agent")

Handler = Callable[[Any, "ToolContext"], Awaitable[Dict[str, Any]]]
Projection = Callable[[Dict[str, Any]], Dict[str, Any]]


@dataclass
class ToolContext:
    ledger: Any
    payments: Any
    messaging: Any
    tracking: Any
    profile: Dict[str, Any] = field(default_factory=dict)
    session_id: str = ""
    phone_number: Optional[str] = None
    user_id: Optional[str] = None
    # raw results kept out of the model's view (issued tickets, reports)
    artifacts: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class ToolSpec:
    name: str
    description: str
    args_model: Type[BaseModel]
    handler: Handler
    project: Optional[Projection] = None

    def schema(self) -> Dict[str, Any]:
        params = self.args_model.model_json_schema()
        params.pop("title", None)
        for prop in params.get("properties", {}).values():
            prop.pop("title", None)
        return {
            "type": "function",
            "function": {"name": self.name, "description": self.description, "parameters": params},
        }


class ToolRegistry:
    def __init__(self, specs: Iterable[ToolSpec] = ()):
        self._specs: Dict[str, ToolSpec] = {}
        for s in specs:
            self.register(s)

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._specs:
            raise ValueError(f"Duplicate tool name: {spec.name}")
        self._specs[spec.name] = spec

    @property
    def names(self) -> List[str]:
        return list(self._specs)

    def api_tools(self) -> List[Dict[str, Any]]:
        return [s.schema() for s in self._specs.values()]

    async def dispatch(self, name: str, raw_args: Any, ctx: ToolContext) -> Dict[str, Any]:
        spec = self._specs.get(name)
        if spec is None:
            return UnknownToolError(f"Unknown tool: {name}", tool_name=name).to_payload()

        try:
            args = spec.args_model.model_validate(_decode_args(raw_args))
        except (ValidationError, ValueError) as e:
            return InvalidArgumentsError(f"Invalid arguments for {name}: {_short_error(e)}").to_payload()

        try:
            result = await spec.handler(args, ctx)
        except BookingAssistantError as e:
            logger.info("Tool %s refused: %s (%s)", name, e.message, e.kind)
            return e.to_payload()
        except Exception:  # noqa: BLE001
            logger.exception("Tool %s crashed", name)
            return {"success": False, "error": f"Internal error while running {name}", "errorKind": "internal"}

        if spec.project is not None:
            ctx.artifacts.append({"tool": name, "result": result})
            return spec.project(result)
        return result


def _decode_args(raw: Any) -> Dict[str, Any]:
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return raw
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("arguments must be a JSON object")
    return data


def _short_error(e: Exception) -> str:
    if isinstance(e, ValidationError):
        parts = []
        for err in e.errors():
            loc = ".".join(str(x) for x in err.get("loc", ())) or "arguments"
            parts.append(f"{loc}: {err.get('msg')}")
        return "; ".join(parts)
    return str(e)
