"""Shared fixtures: the FastAPI app wired to in-process fakes."""

from typing import AsyncIterator

import httpx
import pytest
import pytest_asyncio

from adal_core.api import app, get_adapters, get_identity_client, get_settings, get_store
from adal_core.config import Settings
from adal_core.db import MemoryDatabase
from adal_core.errors import AuthError
from adal_core.identity import AuthUser
from adal_core.providers import NormalizedRequest, ProviderAdapter
from adal_models import ProviderId

ALICE_TOKEN = "token-alice"
BOB_TOKEN = "token-bob"


class FakeIdentity:
    """Identity service that knows a fixed set of tokens."""

    def __init__(self, users: dict[str, AuthUser]):
        self.users = users
        self.calls = 0

    async def get_user(self, token: str) -> AuthUser:
        self.calls += 1
        user = self.users.get(token)
        if user is None:
            raise AuthError("Token de sesión inválido o expirado.")
        return user


class FakeAdapter(ProviderAdapter):
    """Adapter that records requests and replays canned fragments."""

    def __init__(
        self,
        provider: ProviderId,
        fragments: list[str] | None = None,
        error: Exception | None = None,
        supports_attachments: bool = True,
        stream_error: Exception | None = None,
    ):
        self.provider = provider
        self.fragments = fragments if fragments is not None else ["Hola", " mundo"]
        self.error = error
        self.supports_attachments = supports_attachments
        self.stream_error = stream_error
        self.calls: list[tuple[NormalizedRequest, str]] = []

    async def open_stream(self, request: NormalizedRequest, api_key: str) -> AsyncIterator[str]:
        self.calls.append((request, api_key))
        if self.error is not None:
            raise self.error
        return self._replay()

    async def _replay(self):
        for fragment in self.fragments:
            yield fragment
        if self.stream_error is not None:
            raise self.stream_error


def make_settings(**overrides) -> Settings:
    values = {
        "supabase_url": "https://identity.test",
        "supabase_anon_key": "anon-key",
        "gemini_api_key": "gemini-key",
        "openai_api_key": "openai-key",
        "deepseek_api_key": "deepseek-key",
        "store_backend": "memory",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def test_settings() -> Settings:
    return make_settings()


@pytest.fixture
def store() -> MemoryDatabase:
    return MemoryDatabase()


@pytest.fixture
def identity() -> FakeIdentity:
    return FakeIdentity(
        {
            ALICE_TOKEN: AuthUser(id="alice", email="alice@example.com"),
            BOB_TOKEN: AuthUser(id="bob", email="bob@example.com"),
        }
    )


@pytest.fixture
def adapters() -> dict[ProviderId, FakeAdapter]:
    return {
        ProviderId.GEMINI: FakeAdapter(ProviderId.GEMINI),
        ProviderId.OPENAI: FakeAdapter(ProviderId.OPENAI),
        ProviderId.DEEPSEEK: FakeAdapter(ProviderId.DEEPSEEK, supports_attachments=False),
    }


@pytest.fixture
def wired_app(test_settings, store, identity, adapters):
    """The app with every external dependency replaced by a fake."""
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_identity_client] = lambda: identity
    app.dependency_overrides[get_adapters] = lambda: adapters
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(wired_app):
    transport = httpx.ASGITransport(app=wired_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


def auth(token: str = ALICE_TOKEN) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class DroppingASGITransport(httpx.ASGITransport):
    """ASGI transport that reports an app crash the way a real server does.

    Once a streamed response has started, uvicorn can only cut the
    connection; the client sees a protocol error, not the exception.
    """

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        try:
            return await super().handle_async_request(request)
        except Exception as e:
            raise httpx.RemoteProtocolError(
                f"peer closed connection without sending complete message body: {e}",
                request=request,
            ) from e
