"""AI Agents package."""

from lumina.agents.ai_agents import (
    CollaboratorError,
    InsightAgent,
    ReceiptAgent,
)

__all__ = [
    "CollaboratorError",
    "InsightAgent",
    "ReceiptAgent",
]
