"""OpenAI-compatible chat completions adapters."""

import json
import logging
from typing import Any, AsyncGenerator, AsyncIterator

import httpx

from adal_core.errors import NetworkError, upstream_error
from adal_core.providers.base import NormalizedRequest, ProviderAdapter
from adal_core.streaming import normalize_sse
from adal_models import ProviderId

logger = logging.getLogger(__name__)


def extract_error_detail(body: bytes) -> str:
    """Best human-readable detail from a failed upstream response body."""
    text = body.decode("utf-8", errors="replace")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return text
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
    return json.dumps(payload)


class ChatCompletionsAdapter(ProviderAdapter):
    """Streams from a ``/chat/completions`` endpoint with SSE framing."""

    path = "/chat/completions"

    def __init__(
        self,
        base_url: str,
        model: str,
        temperature: float = 0.7,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self.timeout = timeout
        self._transport = transport

    def build_messages(self, request: NormalizedRequest) -> list[dict[str, Any]]:
        return [
            {"role": "system", "content": request.system_prompt},
            {"role": "user", "content": request.user_content},
        ]

    def build_body(self, request: NormalizedRequest) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": self.build_messages(request),
            "stream": True,
            "temperature": self.temperature,
        }

    async def open_stream(self, request: NormalizedRequest, api_key: str) -> AsyncIterator[str]:
        client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        upstream_request = client.build_request(
            "POST",
            f"{self.base_url}{self.path}",
            json=self.build_body(request),
            headers={"Authorization": f"Bearer {api_key}"},
        )
        try:
            response = await client.send(upstream_request, stream=True)
        except httpx.RequestError as e:
            await client.aclose()
            logger.error(f"{self.provider.value} request error: {e}")
            raise NetworkError(
                f"La API de '{self.provider.value}' no es accesible: {e}"
            ) from e

        if response.is_error:
            body = await response.aread()
            await response.aclose()
            await client.aclose()
            detail = extract_error_detail(body)
            logger.error(f"{self.provider.value} HTTP error {response.status_code}: {detail}")
            raise upstream_error(self.provider.value, response.status_code, detail)

        return self._fragments(client, response)

    async def _fragments(self, client: httpx.AsyncClient, response: httpx.Response) -> AsyncGenerator[str, None]:
        try:
            async for fragment in normalize_sse(response.aiter_bytes(), label=self.provider.value):
                yield fragment
        finally:
            await response.aclose()
            await client.aclose()


class OpenAIAdapter(ChatCompletionsAdapter):
    """OpenAI chat completions; images travel as data URLs."""

    provider = ProviderId.OPENAI

    def build_messages(self, request: NormalizedRequest) -> list[dict[str, Any]]:
        if request.attachment is None:
            return super().build_messages(request)
        attachment = request.attachment
        return [
            {"role": "system", "content": request.system_prompt},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": request.user_content},
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:{attachment.mime_type};base64,{attachment.data}"},
                    },
                ],
            },
        ]
