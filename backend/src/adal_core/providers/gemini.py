"""Gemini adapter over the Google Gen AI SDK."""

import base64
import binascii
import logging
from typing import Any, AsyncGenerator, AsyncIterable, AsyncIterator, Callable

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from adal_core.errors import BadRequestError, NetworkError, upstream_error
from adal_core.providers.base import NormalizedRequest, ProviderAdapter
from adal_core.streaming import normalize_text_iterable
from adal_models import ProviderId

logger = logging.getLogger(__name__)


class GeminiAdapter(ProviderAdapter):
    """Streams chunks from ``client.aio.models.generate_content_stream``."""

    provider = ProviderId.GEMINI

    def __init__(
        self,
        model: str,
        temperature: float = 0.7,
        client_factory: Callable[..., Any] | None = None,
    ):
        self.model = model
        self.temperature = temperature
        self._client_factory = client_factory or genai.Client

    def build_contents(self, request: NormalizedRequest) -> Any:
        if request.attachment is None:
            return request.user_content
        try:
            data = base64.b64decode(request.attachment.data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise BadRequestError("El archivo adjunto no es base64 válido.") from e
        parts: list[Any] = [types.Part.from_bytes(data=data, mime_type=request.attachment.mime_type)]
        if request.user_content:
            parts.append(request.user_content)
        return parts

    def build_config(self, request: NormalizedRequest) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            system_instruction=request.system_prompt or None,
            temperature=self.temperature,
        )

    async def open_stream(self, request: NormalizedRequest, api_key: str) -> AsyncIterator[str]:
        contents = self.build_contents(request)
        client = self._client_factory(api_key=api_key)
        try:
            response = await client.aio.models.generate_content_stream(
                model=self.model,
                contents=contents,
                config=self.build_config(request),
            )
        except genai_errors.APIError as e:
            detail = e.message or str(e)
            logger.error(f"gemini HTTP error {e.code}: {detail}")
            raise upstream_error("gemini", e.code, detail) from e
        except httpx.RequestError as e:
            logger.error(f"gemini request error: {e}")
            raise NetworkError(f"La API de 'gemini' no es accesible: {e}") from e

        return normalize_text_iterable(self._texts(response))

    async def _texts(self, response: AsyncIterable[Any]) -> AsyncGenerator[str | None, None]:
        # Chunks without text parts (safety stops, empty candidates) have text None
        async for chunk in response:
            yield chunk.text
