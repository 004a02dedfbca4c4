"""PostgreSQL client for conversation persistence."""

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import asyncpg

from adal_core.config import settings
from adal_models import Conversation, Message, Profile


SCHEMA_SQL = """
-- Membership profiles (written by the commerce side, read here)
CREATE TABLE IF NOT EXISTS profiles (
    id TEXT PRIMARY KEY,
    username TEXT,
    plan TEXT,
    is_admin BOOLEAN NOT NULL DEFAULT FALSE
);

-- Conversations
CREATE TABLE IF NOT EXISTS conversations (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    title TEXT NOT NULL,
    is_favorite BOOLEAN NOT NULL DEFAULT FALSE,
    archived BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_conversations_user_active
    ON conversations(user_id, archived, created_at);

-- Messages
CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    conversation_id TEXT NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    model TEXT,
    is_error BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages(conversation_id);
"""


class Database:
    """PostgreSQL database client for conversations and messages."""

    def __init__(self, dsn: str | None = None):
        self._dsn = dsn
        self._pool: asyncpg.Pool | None = None

    async def connect(self):
        """Create connection pool."""
        self._pool = await asyncpg.create_pool(
            self._dsn or settings.database_url,
            min_size=2,
            max_size=10,
        )

    async def disconnect(self):
        """Close connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None

    @asynccontextmanager
    async def connection(self):
        """Get a connection from the pool."""
        if not self._pool:
            raise RuntimeError("Database not connected")
        async with self._pool.acquire() as conn:
            yield conn

    async def ensure_tables_exist(self):
        """Create tables if they don't exist."""
        async with self.connection() as conn:
            await conn.execute(SCHEMA_SQL)

    # ============= Profiles =============

    async def get_profile(self, user_id: str) -> Profile | None:
        async with self.connection() as conn:
            row = await conn.fetchrow("SELECT * FROM profiles WHERE id = $1", user_id)
        if not row:
            return None
        return Profile(
            id=row["id"],
            username=row["username"],
            plan=row["plan"],
            is_admin=row["is_admin"],
        )

    # ============= Conversation Operations =============

    async def create_conversation(self, user_id: str, title: str) -> Conversation:
        """Create a new conversation."""
        now = datetime.now(timezone.utc)
        conversation = Conversation(
            id=str(uuid.uuid4()),
            user_id=user_id,
            title=title,
            created_at=now,
            updated_at=now,
        )
        async with self.connection() as conn:
            await conn.execute(
                """
                INSERT INTO conversations (id, user_id, title, is_favorite, archived, created_at, updated_at)
                VALUES ($1, $2, $3, FALSE, FALSE, $4, $5)
                """,
                conversation.id,
                conversation.user_id,
                conversation.title,
                conversation.created_at,
                conversation.updated_at,
            )
        return conversation

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Get a conversation by ID."""
        async with self.connection() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM conversations WHERE id = $1", conversation_id
            )
        if not row:
            return None
        return self._row_to_conversation(row)

    async def list_conversations(
        self, user_id: str, limit: int | None = None
    ) -> list[Conversation]:
        """List a user's non-archived conversations, newest first."""
        async with self.connection() as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM conversations
                WHERE user_id = $1 AND archived = FALSE
                ORDER BY created_at DESC
                LIMIT $2
                """,
                user_id,
                limit,
            )
        return [self._row_to_conversation(row) for row in rows]

    async def count_active_conversations(self, user_id: str) -> int:
        async with self.connection() as conn:
            return await conn.fetchval(
                "SELECT COUNT(*) FROM conversations WHERE user_id = $1 AND archived = FALSE",
                user_id,
            )

    async def get_oldest_active_conversation(self, user_id: str) -> Conversation | None:
        async with self.connection() as conn:
            row = await conn.fetchrow(
                """
                SELECT * FROM conversations
                WHERE user_id = $1 AND archived = FALSE
                ORDER BY created_at ASC
                LIMIT 1
                """,
                user_id,
            )
        if not row:
            return None
        return self._row_to_conversation(row)

    async def archive_conversation(self, conversation_id: str):
        async with self.connection() as conn:
            await conn.execute(
                "UPDATE conversations SET archived = TRUE, updated_at = $1 WHERE id = $2",
                datetime.now(timezone.utc),
                conversation_id,
            )

    async def delete_conversation(self, conversation_id: str, user_id: str) -> bool:
        """Hard delete; messages go with it through the FK cascade."""
        async with self.connection() as conn:
            result = await conn.execute(
                "DELETE FROM conversations WHERE id = $1 AND user_id = $2",
                conversation_id,
                user_id,
            )
        return result.endswith(" 1")

    async def delete_stale_conversations(self, user_id: str, cutoff: datetime) -> int:
        """Delete conversations not updated since ``cutoff``."""
        async with self.connection() as conn:
            result = await conn.execute(
                "DELETE FROM conversations WHERE user_id = $1 AND updated_at <= $2",
                user_id,
                cutoff,
            )
        return int(result.split()[-1])

    def _row_to_conversation(self, row: asyncpg.Record) -> Conversation:
        return Conversation(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            is_favorite=row["is_favorite"],
            archived=row["archived"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    # ============= Message Operations =============

    async def create_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        model: str | None = None,
        is_error: bool = False,
    ) -> Message:
        """Create a new message in a conversation."""
        message = Message(
            id=str(uuid.uuid4()),
            conversation_id=conversation_id,
            role=role,  # type: ignore
            content=content,
            model=model,
            is_error=is_error,
            created_at=datetime.now(timezone.utc),
        )
        async with self.connection() as conn:
            async with conn.transaction():
                await conn.execute(
                    """
                    INSERT INTO messages (id, conversation_id, role, content, model, is_error, created_at)
                    VALUES ($1, $2, $3, $4, $5, $6, $7)
                    """,
                    message.id,
                    message.conversation_id,
                    message.role,
                    message.content,
                    message.model,
                    message.is_error,
                    message.created_at,
                )
                # Update conversation's updated_at
                await conn.execute(
                    "UPDATE conversations SET updated_at = $1 WHERE id = $2",
                    message.created_at,
                    conversation_id,
                )
        return message

    async def get_messages(self, conversation_id: str) -> list[Message]:
        """Get all messages for a conversation, oldest first."""
        async with self.connection() as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM messages
                WHERE conversation_id = $1
                ORDER BY created_at ASC
                """,
                conversation_id,
            )
        return [
            Message(
                id=row["id"],
                conversation_id=row["conversation_id"],
                role=row["role"],  # type: ignore
                content=row["content"],
                model=row["model"],
                is_error=row["is_error"],
                created_at=row["created_at"],
            )
            for row in rows
        ]
