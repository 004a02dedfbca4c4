"""Edge endpoint logic shared by every provider route."""

import json
import logging
from typing import AsyncIterator

from pydantic import ValidationError

from adal_core.config import Settings
from adal_core.errors import BadRequestError, ConfigError
from adal_core.providers import NormalizedRequest, ProviderAdapter, ProviderSpec
from adal_models import StreamRequest

logger = logging.getLogger(__name__)

BAD_PARAMS_MESSAGE = "Parámetros incorrectos para este endpoint."


def parse_stream_request(body: bytes) -> StreamRequest:
    """Parse the raw JSON body, mapping any malformation to a 400."""
    if not body:
        raise BadRequestError(BAD_PARAMS_MESSAGE)
    try:
        return StreamRequest.model_validate(json.loads(body))
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
        logger.info(f"Rejected malformed stream request: {e}")
        raise BadRequestError(BAD_PARAMS_MESSAGE) from e


async def open_provider_stream(
    spec: ProviderSpec,
    adapter: ProviderAdapter,
    payload: StreamRequest,
    settings: Settings,
) -> AsyncIterator[str]:
    """Validate the request, check the credential and start the upstream call.

    Raises before any upstream traffic when the content is missing or the
    provider key is not configured.
    """
    provider = spec.provider.value
    if payload.model and payload.model != provider:
        raise BadRequestError(BAD_PARAMS_MESSAGE)
    if not adapter.accepts(payload.user_content, payload.attachment):
        raise BadRequestError(BAD_PARAMS_MESSAGE)

    api_key = spec.api_key(settings)
    if not api_key:
        logger.error(f"[{provider}] {spec.api_key_env} is not configured")
        raise ConfigError(
            f"La API key para '{provider}' no está configurada. "
            f"Agrega la variable de entorno {spec.api_key_env}.",
            code="API_KEY_MISSING",
        )

    request = NormalizedRequest(
        system_prompt=payload.system,
        user_content=payload.user_content or "",
        attachment=payload.attachment,
    )
    return await adapter.open_stream(request, api_key)
