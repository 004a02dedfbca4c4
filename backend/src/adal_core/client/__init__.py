"""Chat client: send cycle orchestration against a running Adal Core service."""

import httpx

from adal_core.client.config import ClientSettings
from adal_core.client.cooldown import Cooldown
from adal_core.client.errors import (
    ClientError,
    EndpointError,
    NetworkError,
    SessionExpiredError,
    StoreError,
)
from adal_core.client.local_state import LocalState
from adal_core.client.orchestrator import ChatOrchestrator, ChatThread, ClientSession, PendingWrite
from adal_core.client.store import HttpConversationStore
from adal_models import AiConfig


def create_orchestrator(
    session: ClientSession,
    config: AiConfig | None = None,
    settings: ClientSettings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    **callbacks,
) -> ChatOrchestrator:
    """Wire an orchestrator to the service named by ``settings.base_url``.

    The AI configuration is loaded from the local state file when not given.
    """
    settings = settings or ClientSettings()
    local_state = LocalState(settings.state_path)
    if config is None:
        config = local_state.load_ai_config(session.user_id, session.username)
    http = httpx.AsyncClient(
        base_url=settings.base_url,
        timeout=settings.request_timeout,
        transport=transport,
    )
    return ChatOrchestrator(
        http,
        session,
        config,
        cooldown=Cooldown(min_interval=settings.cooldown_seconds),
        local_state=local_state,
        purge_interval_hours=settings.purge_interval_hours,
        **callbacks,
    )


__all__ = [
    "ChatOrchestrator",
    "ChatThread",
    "ClientError",
    "ClientSession",
    "ClientSettings",
    "Cooldown",
    "EndpointError",
    "HttpConversationStore",
    "LocalState",
    "NetworkError",
    "PendingWrite",
    "SessionExpiredError",
    "StoreError",
    "create_orchestrator",
]
