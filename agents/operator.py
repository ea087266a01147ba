## agents/operator.py

from business_profile import BUSINESS_PROFILE
from agents.llm import ChatModel
from agents.orchestrator import ConversationOrchestrator
from constants.prompts.operator_prompts import build_operator_prompt
from tools.registry import ToolRegistry
from tools.tools_operator import OPERATOR_TOOLS


class Operator(ConversationOrchestrator):
    def __init__(self, model: ChatModel, *, max_tool_rounds: int = 5, timezone: str = BUSINESS_PROFILE["timezone"]) -> None:
        super().__init__(
            role="operator",
            instructions=build_operator_prompt(BUSINESS_PROFILE),
            registry=ToolRegistry(OPERATOR_TOOLS),
            model=model,
            max_tool_rounds=max_tool_rounds,
            timezone=timezone,
        )
