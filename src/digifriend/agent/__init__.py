"""Conversation agent and generation logic."""

from .conversation import (
    AgentConfig,
    ConversationAgent,
    InboundMessage,
    TurnResult,
    extract_target_username,
)
from .prompt import build_system_prompt
from .responder import FALLBACK_REPLY, Responder

__all__ = [
    "AgentConfig",
    "ConversationAgent",
    "FALLBACK_REPLY",
    "InboundMessage",
    "Responder",
    "TurnResult",
    "build_system_prompt",
    "extract_target_username",
]
