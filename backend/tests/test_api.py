"""Tests for the HTTP surface: provider endpoints and the conversation API."""

import httpx
import pytest

from adal_core.api import get_identity_client, get_settings
from adal_core.errors import NetworkError, upstream_error
from adal_core.identity import build_identity_client
from adal_models import Profile, ProviderId

from conftest import BOB_TOKEN, DroppingASGITransport, auth, make_settings

PROVIDER_PATHS = ["/api/gemini", "/api/openai", "/api/deepseek"]


class TestProviderEndpoints:
    """Order of checks and the success path of the streaming endpoints."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", PROVIDER_PATHS)
    async def test_missing_token_is_401_without_upstream_call(self, client, adapters, path):
        response = await client.post(path, json={"system": "s", "userContent": "hola"})

        assert response.status_code == 401
        assert response.json()["error"] == "AUTH_ERROR"
        assert all(not adapter.calls for adapter in adapters.values())

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", PROVIDER_PATHS)
    async def test_rejected_token_is_401(self, client, adapters, path):
        response = await client.post(
            path, json={"userContent": "hola"}, headers=auth("token-unknown")
        )

        assert response.status_code == 401
        assert response.json()["error"] == "AUTH_ERROR"
        assert all(not adapter.calls for adapter in adapters.values())

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", PROVIDER_PATHS)
    async def test_missing_content_is_400(self, client, adapters, path):
        response = await client.post(path, json={"system": "s"}, headers=auth())

        assert response.status_code == 400
        assert response.json()["error"] == "BAD_REQUEST"
        assert all(not adapter.calls for adapter in adapters.values())

    @pytest.mark.asyncio
    async def test_malformed_json_is_400(self, client):
        response = await client.post(
            "/api/openai",
            content=b"{not json",
            headers={**auth(), "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "BAD_REQUEST"

    @pytest.mark.asyncio
    async def test_deepseek_requires_text_even_with_attachment(self, client, adapters):
        response = await client.post(
            "/api/deepseek",
            json={"attachment": {"mimeType": "image/png", "data": "aGk="}},
            headers=auth(),
        )

        assert response.status_code == 400
        assert not adapters[ProviderId.DEEPSEEK].calls

    @pytest.mark.asyncio
    async def test_attachment_only_accepted_by_gemini(self, client, adapters):
        response = await client.post(
            "/api/gemini",
            json={"attachment": {"mimeType": "image/png", "data": "aGk="}},
            headers=auth(),
        )

        assert response.status_code == 200
        request, _ = adapters[ProviderId.GEMINI].calls[0]
        assert request.attachment.mime_type == "image/png"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["GET", "PUT", "DELETE"])
    async def test_other_methods_are_405(self, client, method):
        response = await client.request(method, "/api/openai")

        assert response.status_code == 405
        assert response.json()["error"] == "METHOD_NOT_ALLOWED"

    @pytest.mark.asyncio
    async def test_preflight_is_empty_200(self, client, adapters):
        response = await client.options(
            "/api/gemini", headers={"Origin": "http://localhost:3000"}
        )

        assert response.status_code == 200
        assert response.content == b""
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
        assert not adapters[ProviderId.GEMINI].calls

    @pytest.mark.asyncio
    async def test_missing_provider_key_is_500(self, client, wired_app, adapters):
        wired_app.dependency_overrides[get_settings] = lambda: make_settings(openai_api_key="")

        response = await client.post("/api/openai", json={"userContent": "hola"}, headers=auth())

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "API_KEY_MISSING"
        assert "OPENAI_API_KEY" in body["message"]
        assert not adapters[ProviderId.OPENAI].calls

    @pytest.mark.asyncio
    async def test_unconfigured_identity_is_server_config_error(self, client, wired_app, adapters):
        unconfigured = make_settings(supabase_url="", supabase_anon_key="")
        wired_app.dependency_overrides[get_identity_client] = lambda: build_identity_client(
            unconfigured
        )

        response = await client.post("/api/gemini", json={"userContent": "hola"}, headers=auth())

        assert response.status_code == 500
        assert response.json()["error"] == "SERVER_CONFIG_ERROR"
        assert not adapters[ProviderId.GEMINI].calls

    @pytest.mark.asyncio
    async def test_upstream_failure_is_502(self, client, adapters):
        adapters[ProviderId.OPENAI].error = upstream_error("openai", 500, "boom")

        response = await client.post("/api/openai", json={"userContent": "hola"}, headers=auth())

        assert response.status_code == 502
        body = response.json()
        assert body["error"] == "EXTERNAL_API_ERROR"
        assert "'openai'" in body["message"]
        assert "(500)" in body["message"]

    @pytest.mark.asyncio
    async def test_upstream_429_is_rate_limited(self, client, adapters):
        adapters[ProviderId.DEEPSEEK].error = upstream_error("deepseek", 429, "slow down")

        response = await client.post("/api/deepseek", json={"userContent": "hola"}, headers=auth())

        assert response.status_code == 502
        assert response.json()["error"] == "RATE_LIMITED"

    @pytest.mark.asyncio
    async def test_unreachable_upstream_is_network_error(self, client, adapters):
        adapters[ProviderId.GEMINI].error = NetworkError("La API de 'gemini' no es accesible: timed out")

        response = await client.post("/api/gemini", json={"userContent": "hola"}, headers=auth())

        assert response.status_code == 502
        assert response.json()["error"] == "NETWORK_ERROR"

    @pytest.mark.asyncio
    async def test_unhandled_failure_is_unexpected_error(self, wired_app, adapters):
        adapters[ProviderId.OPENAI].error = RuntimeError("boom")
        transport = httpx.ASGITransport(app=wired_app, raise_app_exceptions=False)

        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            response = await c.post("/api/openai", json={"userContent": "hola"}, headers=auth())

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "UNEXPECTED_ERROR"
        assert "boom" not in body["message"]

    @pytest.mark.asyncio
    async def test_failure_mid_stream_breaks_the_body(self, wired_app, adapters):
        adapters[ProviderId.OPENAI].fragments = ["parcial"]
        adapters[ProviderId.OPENAI].stream_error = RuntimeError("upstream reset")
        transport = DroppingASGITransport(app=wired_app)

        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            with pytest.raises(httpx.RemoteProtocolError):
                await c.post("/api/openai", json={"userContent": "hola"}, headers=auth())

    @pytest.mark.asyncio
    @pytest.mark.parametrize("provider", list(ProviderId))
    async def test_success_streams_plain_text(self, client, adapters, provider):
        response = await client.post(
            f"/api/{provider.value}",
            json={"model": provider.value, "system": "sé breve", "userContent": "hola"},
            headers=auth(),
        )

        assert response.status_code == 200
        assert response.headers["content-type"] == "text/plain; charset=utf-8"
        assert response.headers["cache-control"] == "no-cache"
        assert response.text == "Hola mundo"
        request, api_key = adapters[provider].calls[0]
        assert request.system_prompt == "sé breve"
        assert request.user_content == "hola"
        assert api_key == f"{provider.value}-key"

    @pytest.mark.asyncio
    async def test_mismatched_model_is_400(self, client):
        response = await client.post(
            "/api/openai", json={"model": "gemini", "userContent": "hola"}, headers=auth()
        )
        assert response.status_code == 400


class TestCors:
    @pytest.mark.asyncio
    async def test_allowed_origin_is_echoed(self, client):
        response = await client.post(
            "/api/gemini",
            json={"userContent": "hola"},
            headers={**auth(), "Origin": "https://adalparedes.com"},
        )

        assert response.headers["access-control-allow-origin"] == "https://adalparedes.com"

    @pytest.mark.asyncio
    async def test_unknown_origin_gets_no_allow_header(self, client):
        response = await client.post(
            "/api/gemini",
            json={"userContent": "hola"},
            headers={**auth(), "Origin": "https://evil.example"},
        )

        assert response.status_code == 200
        assert "access-control-allow-origin" not in response.headers


class TestConversationApi:
    @pytest.mark.asyncio
    async def test_create_and_list(self, client):
        created = await client.post(
            "/api/conversations", json={"title": "<b>Hola</b> mundo"}, headers=auth()
        )

        assert created.status_code == 201
        assert created.json()["title"] == "Hola mundo"
        listed = await client.get("/api/conversations", headers=auth())
        body = listed.json()
        assert body["total"] == 1
        assert body["limit"] == 5
        assert body["conversations"][0]["id"] == created.json()["id"]

    @pytest.mark.asyncio
    async def test_requires_token(self, client):
        response = await client.get("/api/conversations")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_spoofed_user_id_is_403(self, client):
        response = await client.post(
            "/api/conversations", json={"title": "x", "user_id": "bob"}, headers=auth()
        )

        assert response.status_code == 403
        assert response.json()["error"] == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_messages_round_trip(self, client):
        conversation = (
            await client.post("/api/conversations", json={"title": "t"}, headers=auth())
        ).json()
        path = f"/api/conversations/{conversation['id']}/messages"

        await client.post(path, json={"role": "user", "content": "hola"}, headers=auth())
        await client.post(
            path,
            json={"role": "assistant", "content": "¿qué tal?", "model": "OPENAI"},
            headers=auth(),
        )
        messages = (await client.get(path, headers=auth())).json()["messages"]

        assert [m["content"] for m in messages] == ["hola", "¿qué tal?"]
        assert messages[0]["model"] == "GEMINI"
        assert messages[1]["model"] == "OPENAI"

    @pytest.mark.asyncio
    async def test_invalid_role_is_400(self, client):
        conversation = (
            await client.post("/api/conversations", json={"title": "t"}, headers=auth())
        ).json()
        response = await client.post(
            f"/api/conversations/{conversation['id']}/messages",
            json={"role": "system", "content": "x"},
            headers=auth(),
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_foreign_conversation_is_403(self, client):
        conversation = (
            await client.post("/api/conversations", json={"title": "t"}, headers=auth())
        ).json()

        response = await client.get(
            f"/api/conversations/{conversation['id']}/messages", headers=auth(BOB_TOKEN)
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_missing_conversation_is_404(self, client):
        response = await client.delete("/api/conversations/does-not-exist", headers=auth())
        assert response.status_code == 404
        assert response.json()["error"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_delete_cascades_messages(self, client, store):
        conversation = (
            await client.post("/api/conversations", json={"title": "t"}, headers=auth())
        ).json()
        await client.post(
            f"/api/conversations/{conversation['id']}/messages",
            json={"role": "user", "content": "hola"},
            headers=auth(),
        )

        response = await client.delete(f"/api/conversations/{conversation['id']}", headers=auth())

        assert response.status_code == 200
        assert conversation["id"] not in store.conversations
        assert conversation["id"] not in store.messages

    @pytest.mark.asyncio
    async def test_list_capped_by_tier(self, client, store):
        store.upsert_profile(Profile(id="alice", plan="bronze"))
        for i in range(7):
            await client.post("/api/conversations", json={"title": f"c{i}"}, headers=auth())

        body = (await client.get("/api/conversations", headers=auth())).json()

        assert body["limit"] == 20
        assert body["total"] == 7
        assert body["conversations"][0]["title"] == "c6"

    @pytest.mark.asyncio
    async def test_purge(self, client):
        response = await client.post("/api/conversations/purge", headers=auth())
        assert response.status_code == 200
        assert response.json() == {"deleted": 0}


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
