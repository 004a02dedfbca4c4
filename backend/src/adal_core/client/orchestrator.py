"""Chat orchestrator: one send cycle from user input to persisted reply."""

import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx

from adal_core.classifier import parse_error_message
from adal_core.client.cooldown import Cooldown
from adal_core.client.errors import (
    ClientError,
    EndpointError,
    NetworkError,
    SessionExpiredError,
    StreamInterruptedError,
)
from adal_core.client.local_state import LocalState
from adal_core.client.store import HttpConversationStore
from adal_core.client.text import (
    ATTACHMENT_MARKER,
    build_system_prompt,
    reinforce_user_content,
    sanitize_text,
)
from adal_core.providers import endpoint_for
from adal_models import AiConfig, Attachment, Message, ProviderId

logger = logging.getLogger(__name__)

COOLDOWN_MESSAGE = (
    "[NÚCLEO SOBRECARGADO]\n"
    "Detectamos múltiples peticiones en un periodo corto. "
    "Por favor, espera unos segundos antes de enviar otro comando."
)
EMPTY_REPLY = "Error de recepción en el núcleo."
LOCAL_ERROR_TITLE = "Error de Sistema"
SYSTEM_MODEL = "SYSTEM"


@dataclass
class ClientSession:
    """Authenticated identity the client acts as."""

    user_id: str
    access_token: str
    username: str = ""


@dataclass
class ChatThread:
    """A conversation as the client holds it.

    ``local`` threads exist only on the client (cooldown errors raised before
    any conversation was active) and are never persisted.
    """

    id: str
    title: str
    messages: list[Message] = field(default_factory=list)
    local: bool = False
    loaded: bool = False


@dataclass
class PendingWrite:
    """A finished message whose persistence failed."""

    conversation_id: str
    message: Message
    attempts: int = 1
    last_error: str = ""


def _stamp() -> int:
    return int(time.time() * 1000)


class ChatOrchestrator:
    """Drives send cycles against the provider endpoints and the store.

    Only one send is in flight at a time. Every failure that is not a
    session expiry ends as an error-flagged assistant message in the active
    thread.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        session: ClientSession | None,
        config: AiConfig,
        store: HttpConversationStore | None = None,
        cooldown: Cooldown | None = None,
        local_state: LocalState | None = None,
        on_update: Callable[[ChatThread], Any] | None = None,
        on_session_expired: Callable[[], Any] | None = None,
        purge_interval_hours: float = 24.0,
    ):
        self.http = http
        self.session = session
        self.config = config
        self.store = store or HttpConversationStore(http, session.access_token if session else "")
        self.cooldown = cooldown or Cooldown()
        self.local_state = local_state
        self.on_update = on_update
        self.on_session_expired = on_session_expired
        self.purge_interval_hours = purge_interval_hours

        self.threads: list[ChatThread] = []
        self.active_id: str | None = None
        self.is_streaming = False
        self.pending_writes: list[PendingWrite] = []

    # ============= Thread State =============

    @property
    def active_thread(self) -> ChatThread | None:
        return self.get_thread(self.active_id) if self.active_id else None

    def get_thread(self, conversation_id: str) -> ChatThread | None:
        for thread in self.threads:
            if thread.id == conversation_id:
                return thread
        return None

    def start_new_conversation(self) -> None:
        """Clear the selection; the next send creates a conversation."""
        self.active_id = None

    def _notify(self, thread: ChatThread) -> None:
        if self.on_update is not None:
            self.on_update(thread)

    async def _expire_session(self) -> None:
        logger.warning("Session expired, signing out")
        self.session = None
        self.threads = []
        self.active_id = None
        self.pending_writes = []
        if self.on_session_expired is not None:
            result = self.on_session_expired()
            if inspect.isawaitable(result):
                await result

    def _require_session(self) -> ClientSession:
        if self.session is None:
            raise SessionExpiredError("No hay sesión activa.")
        return self.session

    # ============= History =============

    async def load_history(self) -> list[ChatThread]:
        """Replace the thread list with the server's non-archived conversations."""
        try:
            self._require_session()
            conversations = await self.store.list_conversations()
        except SessionExpiredError:
            await self._expire_session()
            return []
        self.threads = [ChatThread(id=c.id, title=c.title) for c in conversations]
        if self.active_id and self.get_thread(self.active_id) is None:
            self.active_id = None
        return self.threads

    async def select_conversation(self, conversation_id: str) -> ChatThread | None:
        """Activate a thread, fetching its messages the first time."""
        thread = self.get_thread(conversation_id)
        if thread is None:
            return None
        self.active_id = conversation_id
        if thread.local or thread.loaded:
            return thread
        try:
            thread.messages = await self.store.get_messages(conversation_id)
            thread.loaded = True
        except SessionExpiredError:
            await self._expire_session()
            return None
        except ClientError as e:
            logger.error(f"Failed to load messages for {conversation_id}: {e}")
        self._notify(thread)
        return thread

    async def delete_conversation(self, conversation_id: str) -> None:
        thread = self.get_thread(conversation_id)
        if thread is not None and not thread.local:
            try:
                await self.store.delete_conversation(conversation_id)
            except SessionExpiredError:
                await self._expire_session()
                return
        self.threads = [t for t in self.threads if t.id != conversation_id]
        self.pending_writes = [w for w in self.pending_writes if w.conversation_id != conversation_id]
        if self.active_id == conversation_id:
            self.active_id = None

    async def purge_stale_conversations(self, now: float | None = None) -> int | None:
        """Ask the server to purge stale conversations, at most once per interval.

        Returns the number deleted, or None when skipped or failed.
        """
        if self.session is None:
            return None
        now = time.time() if now is None else now
        key = f"adal_cleanup_timestamp_{self.session.user_id}"
        last_run = self.local_state.get(key) if self.local_state else None
        if last_run is not None and now - last_run < self.purge_interval_hours * 3600:
            return None

        try:
            deleted = await self.store.purge_stale()
        except SessionExpiredError:
            await self._expire_session()
            return None
        except ClientError as e:
            logger.error(f"Stale conversation purge failed: {e}")
            return None

        if self.local_state is not None:
            self.local_state.set(key, now)
        if deleted:
            logger.info(f"Purged {deleted} stale conversations")
            await self.load_history()
        return deleted

    # ============= Send Cycle =============

    async def send_message(
        self,
        text: str,
        provider: ProviderId | None = None,
        attachment: Attachment | None = None,
    ) -> Message | None:
        """Run one send cycle.

        Returns the final assistant message (an error-flagged one on
        failure), or None when the send was ignored or the session expired.
        """
        if self.is_streaming:
            logger.info("Send ignored: a reply is still streaming")
            return None
        if not text.strip() and attachment is None:
            return None
        if not self.cooldown.try_acquire():
            return self._append_cooldown_error()

        self.is_streaming = True
        try:
            return await self._run_cycle(text, provider or self.config.selected_provider, attachment)
        finally:
            self.is_streaming = False

    def _append_cooldown_error(self) -> Message:
        message = Message(
            id=f"err_{_stamp()}",
            role="assistant",
            content=COOLDOWN_MESSAGE,
            model=SYSTEM_MODEL,
            is_error=True,
        )
        thread = self.active_thread
        if thread is None:
            thread = ChatThread(id=f"conv_error_{_stamp()}", title=LOCAL_ERROR_TITLE, local=True)
            self.threads.insert(0, thread)
            self.active_id = thread.id
        thread.messages.append(message)
        self._notify(thread)
        return message

    async def _ensure_thread(self, session: ClientSession, title: str) -> ChatThread:
        thread = self.active_thread
        if thread is not None and not thread.local:
            return thread
        conversation = await self.store.create_conversation(session.user_id, title)
        thread = ChatThread(id=conversation.id, title=conversation.title, loaded=True)
        self.threads.insert(0, thread)
        self.active_id = thread.id
        return thread

    async def _run_cycle(
        self,
        text: str,
        provider: ProviderId,
        attachment: Attachment | None,
    ) -> Message | None:
        label = provider.label
        thread: ChatThread | None = None
        placeholder: Message | None = None
        user_message = Message(
            id=f"u_{_stamp()}",
            role="user",
            content=sanitize_text(text) + (ATTACHMENT_MARKER if attachment else ""),
        )

        try:
            session = self._require_session()
            thread = await self._ensure_thread(session, text)
            user_message.conversation_id = thread.id
            thread.messages.append(user_message)
            self._notify(thread)

            await self.store.save_message(thread.id, Message(role="user", content=text))

            placeholder = Message(
                id=f"a_{_stamp()}",
                conversation_id=thread.id,
                role="assistant",
                content="",
                model=label,
            )
            thread.messages.append(placeholder)
            self._notify(thread)

            body = {
                "model": provider.value,
                "system": build_system_prompt(self.config),
                "userContent": reinforce_user_content(
                    text, attachment is not None, self.config.language
                ),
                "language": self.config.language,
            }
            if attachment is not None:
                body["attachment"] = attachment.model_dump(by_alias=True)

            reply = await self._stream_reply(provider, body, session, thread, placeholder)
            placeholder.content = reply or EMPTY_REPLY
            self._notify(thread)
            await self._persist(thread.id, placeholder)
            return placeholder

        except SessionExpiredError:
            if thread is not None and placeholder is not None and placeholder in thread.messages:
                thread.messages.remove(placeholder)
            await self._expire_session()
            return None

        except ClientError as e:
            logger.error(f"[{provider.value}] send cycle failed: {e}")
            return self._append_failure(str(e), provider, thread, placeholder, user_message)

        except Exception as e:
            logger.exception(f"[{provider.value}] send cycle failed unexpectedly")
            error = f"ERROR_NODO_{provider.value.upper()}: {e}"
            return self._append_failure(error, provider, thread, placeholder, user_message)

    def _append_failure(
        self,
        error: str,
        provider: ProviderId,
        thread: ChatThread | None,
        placeholder: Message | None,
        user_message: Message,
    ) -> Message:
        """Replace the reply with an error-flagged message; nothing is persisted."""
        error_message = Message(
            id=f"err_{_stamp()}",
            conversation_id=thread.id if thread else None,
            role="assistant",
            content=parse_error_message(error, provider.value),
            model=provider.label,
            is_error=True,
        )
        if thread is None:
            thread = self.active_thread
        if thread is None:
            thread = ChatThread(id=f"conv_error_{_stamp()}", title=LOCAL_ERROR_TITLE, local=True)
            self.threads.insert(0, thread)
            self.active_id = thread.id
            thread.messages.append(user_message)
        if placeholder is not None and placeholder in thread.messages:
            if placeholder.content:
                # A partial reply stays visible but is never stored
                placeholder.is_error = True
            else:
                thread.messages.remove(placeholder)
        thread.messages.append(error_message)
        self._notify(thread)
        return error_message

    async def _stream_reply(
        self,
        provider: ProviderId,
        body: dict,
        session: ClientSession,
        thread: ChatThread,
        placeholder: Message,
    ) -> str:
        """POST to the provider endpoint and accumulate the sanitized reply."""
        connected = False
        reply = ""
        try:
            async with self.http.stream(
                "POST",
                endpoint_for(provider),
                json=body,
                headers={"Authorization": f"Bearer {session.access_token}"},
            ) as response:
                if response.status_code != 200:
                    await response.aread()
                    raise self._endpoint_error(provider, response)
                connected = True
                async for chunk in response.aiter_text():
                    if not chunk:
                        continue
                    reply += sanitize_text(chunk)
                    placeholder.content = reply
                    self._notify(thread)
        except httpx.RequestError as e:
            if connected:
                raise StreamInterruptedError(provider.value, str(e)) from e
            raise NetworkError(str(e)) from e
        return reply

    @staticmethod
    def _endpoint_error(provider: ProviderId, response: httpx.Response) -> ClientError:
        if response.status_code == 401:
            return SessionExpiredError()
        try:
            data = response.json()
            code = data.get("error", "UNKNOWN_ERROR")
            message = data.get("message", "")
        except ValueError:
            code, message = "UNKNOWN_ERROR", response.text
        return EndpointError(provider.value, response.status_code, code, message)

    # ============= Persistence =============

    async def _persist(self, conversation_id: str, message: Message) -> None:
        """Persist a finished message, queueing it when the store fails."""
        try:
            await self.store.save_message(conversation_id, message)
        except SessionExpiredError:
            raise
        except ClientError as e:
            logger.error(f"Failed to persist message {message.id} in {conversation_id}: {e}")
            self.pending_writes.append(
                PendingWrite(conversation_id=conversation_id, message=message, last_error=str(e))
            )

    async def retry_pending_writes(self) -> int:
        """Retry queued writes in order; returns how many succeeded."""
        written = 0
        remaining: list[PendingWrite] = []
        for pending in self.pending_writes:
            try:
                await self.store.save_message(pending.conversation_id, pending.message)
                written += 1
            except SessionExpiredError:
                await self._expire_session()
                return written
            except ClientError as e:
                pending.attempts += 1
                pending.last_error = str(e)
                remaining.append(pending)
        self.pending_writes = remaining
        if written:
            logger.info(f"Persisted {written} pending messages, {len(remaining)} still queued")
        return written
