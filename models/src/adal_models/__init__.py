"""Shared Pydantic models for the Adal chat portal."""

from adal_models.conversation import Conversation, Message, Profile
from adal_models.provider import (
    AI_CONFIG_VERSION,
    AiConfig,
    AiRole,
    ProviderId,
    get_language_code,
    migrate_ai_config,
)
from adal_models.chat import Attachment, StreamRequest

__all__ = [
    # Conversations
    "Conversation",
    "Message",
    "Profile",
    # Provider configuration
    "AI_CONFIG_VERSION",
    "AiConfig",
    "AiRole",
    "ProviderId",
    "get_language_code",
    "migrate_ai_config",
    # Wire models
    "Attachment",
    "StreamRequest",
]
