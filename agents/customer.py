## agents/customer.py

from business_profile import BUSINESS_PROFILE
from agents.llm import ChatModel
from agents.orchestrator import ConversationOrchestrator
from constants.prompts.customer_prompts import build_customer_prompt
from tools.registry import ToolRegistry
from tools.tools_customer import CUSTOMER_TOOLS


class Customer(ConversationOrchestrator):
    def __init__(self, model: ChatModel, *, max_tool_rounds: int = 5, timezone: str = BUSINESS_PROFILE["timezone"]) -> None:
        super().__init__(
            role="customer",
            instructions=build_customer_prompt(BUSINESS_PROFILE),
            registry=ToolRegistry(CUSTOMER_TOOLS),
            model=model,
            max_tool_rounds=max_tool_rounds,
            timezone=timezone,
        )
