"""In-process conversation store with the same interface as Database.

Used for local development (``STORE_BACKEND=memory``) and tests. State lives
in plain dicts so tests can inspect it directly.
"""

import itertools
import uuid
from datetime import datetime, timezone

from adal_models import Conversation, Message, Profile


class MemoryDatabase:
    """Dict-backed stand-in for the PostgreSQL client."""

    def __init__(self):
        self.profiles: dict[str, Profile] = {}
        self.conversations: dict[str, Conversation] = {}
        self.messages: dict[str, list[Message]] = {}
        self._order: dict[str, int] = {}
        self._seq = itertools.count()

    async def connect(self):
        pass

    async def disconnect(self):
        pass

    async def ensure_tables_exist(self):
        pass

    def upsert_profile(self, profile: Profile) -> Profile:
        self.profiles[profile.id] = profile
        return profile

    async def get_profile(self, user_id: str) -> Profile | None:
        return self.profiles.get(user_id)

    def add_conversation(self, conversation: Conversation) -> Conversation:
        """Insert a fully formed conversation (timestamps included)."""
        self.conversations[conversation.id] = conversation
        self.messages.setdefault(conversation.id, [])
        self._order[conversation.id] = next(self._seq)
        return conversation

    async def create_conversation(self, user_id: str, title: str) -> Conversation:
        now = datetime.now(timezone.utc)
        return self.add_conversation(
            Conversation(
                id=str(uuid.uuid4()),
                user_id=user_id,
                title=title,
                created_at=now,
                updated_at=now,
            )
        )

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        return self.conversations.get(conversation_id)

    def _active(self, user_id: str) -> list[Conversation]:
        active = [
            c for c in self.conversations.values()
            if c.user_id == user_id and not c.archived
        ]
        return sorted(active, key=lambda c: (c.created_at, self._order[c.id]))

    async def list_conversations(
        self, user_id: str, limit: int | None = None
    ) -> list[Conversation]:
        newest_first = list(reversed(self._active(user_id)))
        return newest_first if limit is None else newest_first[:limit]

    async def count_active_conversations(self, user_id: str) -> int:
        return len(self._active(user_id))

    async def get_oldest_active_conversation(self, user_id: str) -> Conversation | None:
        active = self._active(user_id)
        return active[0] if active else None

    async def archive_conversation(self, conversation_id: str):
        conversation = self.conversations.get(conversation_id)
        if conversation:
            conversation.archived = True
            conversation.updated_at = datetime.now(timezone.utc)

    async def delete_conversation(self, conversation_id: str, user_id: str) -> bool:
        conversation = self.conversations.get(conversation_id)
        if not conversation or conversation.user_id != user_id:
            return False
        del self.conversations[conversation_id]
        self.messages.pop(conversation_id, None)
        self._order.pop(conversation_id, None)
        return True

    async def delete_stale_conversations(self, user_id: str, cutoff: datetime) -> int:
        stale = [
            c.id for c in self.conversations.values()
            if c.user_id == user_id and c.updated_at <= cutoff
        ]
        for conversation_id in stale:
            await self.delete_conversation(conversation_id, user_id)
        return len(stale)

    async def create_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        model: str | None = None,
        is_error: bool = False,
    ) -> Message:
        message = Message(
            conversation_id=conversation_id,
            role=role,  # type: ignore
            content=content,
            model=model,
            is_error=is_error,
        )
        self.messages.setdefault(conversation_id, []).append(message)
        conversation = self.conversations.get(conversation_id)
        if conversation:
            conversation.updated_at = message.created_at
        return message

    async def get_messages(self, conversation_id: str) -> list[Message]:
        return list(self.messages.get(conversation_id, []))
