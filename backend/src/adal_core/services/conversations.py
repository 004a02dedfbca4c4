"""Conversation lifecycle: tier limits, archival, ownership and purging."""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Literal

from adal_core.errors import BadRequestError, ForbiddenError, LimitReachedError, NotFoundError
from adal_models import Conversation, Message

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Nuevo Comando"
TITLE_MAX_LENGTH = 40
FREE_LIMIT = 5

_TIER_LIMITS = {
    "free": 5,
    "piojoso": 5,
    "bronze": 20,
    "novato": 20,
    "novata": 20,
    "silver": 50,
    "jefe": 50,
    "patrona": 50,
    "gold": 100,
    "rey": 100,
    "reina": 100,
    "premium": 100,
}

_TAG_RE = re.compile(r"<[^>]*>?")
_DISALLOWED_CHARS_RE = re.compile(r"[^\x20-\x7E\u00C0-\u00FF]")


def get_conversation_limit(tier: str | None, is_admin: bool) -> int | None:
    """Non-archived conversation limit for a tier; ``None`` means unlimited."""
    if is_admin:
        return None
    return _TIER_LIMITS.get((tier or "free").lower(), FREE_LIMIT)


def clean_title(title: str | None) -> str:
    """Strip markup and exotic characters, then cap the length."""
    cleaned = _TAG_RE.sub("", title or DEFAULT_TITLE)
    cleaned = _DISALLOWED_CHARS_RE.sub("", cleaned)
    return cleaned[:TITLE_MAX_LENGTH].strip() or DEFAULT_TITLE


class ConversationService:
    """Applies the ownership and limit rules on top of a store."""

    def __init__(
        self,
        store,
        limit_policy: Literal["archive", "reject"] = "archive",
        stale_days: int = 90,
    ):
        self.store = store
        self.limit_policy = limit_policy
        self.stale_days = stale_days

    async def limit_for(self, user_id: str) -> int | None:
        profile = await self.store.get_profile(user_id)
        if profile is None:
            return get_conversation_limit(None, False)
        return get_conversation_limit(profile.plan, profile.is_admin)

    async def list_conversations(self, user_id: str) -> list[Conversation]:
        return await self.store.list_conversations(user_id, limit=await self.limit_for(user_id))

    async def create_conversation(self, user_id: str, title: str | None) -> Conversation:
        """Create a conversation, making room under the tier limit first.

        At the limit the oldest non-archived conversation is archived (not
        deleted), or the call fails when the reject policy is configured.
        """
        limit = await self.limit_for(user_id)
        if limit is not None:
            count = await self.store.count_active_conversations(user_id)
            if count >= limit:
                if self.limit_policy == "reject":
                    raise LimitReachedError(
                        f"Límite de {limit} conversaciones alcanzado para tu plan."
                    )
                oldest = await self.store.get_oldest_active_conversation(user_id)
                if oldest is not None:
                    logger.info(
                        f"Conversation limit ({limit}) reached for {user_id}, archiving {oldest.id}"
                    )
                    await self.store.archive_conversation(oldest.id)

        return await self.store.create_conversation(user_id, clean_title(title))

    async def get_owned(self, conversation_id: str, user_id: str) -> Conversation:
        conversation = await self.store.get_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversación inexistente.")
        if conversation.user_id != user_id:
            raise ForbiddenError("Operación no autorizada sobre esta conversación.")
        return conversation

    async def get_messages(self, conversation_id: str, user_id: str) -> list[Message]:
        await self.get_owned(conversation_id, user_id)
        return await self.store.get_messages(conversation_id)

    async def save_message(
        self,
        conversation_id: str,
        user_id: str,
        role: str,
        content: str,
        model: str | None = None,
        is_error: bool = False,
    ) -> Message:
        if role not in ("user", "assistant"):
            raise BadRequestError(f"Rol de mensaje inválido: {role}")
        await self.get_owned(conversation_id, user_id)
        return await self.store.create_message(
            conversation_id,
            role=role,
            content=content,
            model=model or "GEMINI",
            is_error=is_error,
        )

    async def delete_conversation(self, conversation_id: str, user_id: str) -> None:
        await self.get_owned(conversation_id, user_id)
        await self.store.delete_conversation(conversation_id, user_id)

    async def purge_stale(self, user_id: str, now: datetime | None = None) -> int:
        """Delete conversations untouched for ``stale_days`` days."""
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=self.stale_days)
        count = await self.store.delete_stale_conversations(user_id, cutoff)
        if count:
            logger.info(f"Purged {count} stale conversations for {user_id}")
        return count
