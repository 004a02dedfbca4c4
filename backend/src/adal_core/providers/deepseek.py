"""DeepSeek chat completions adapter (text only)."""

import logging
from typing import AsyncIterator

from adal_core.providers.base import NormalizedRequest
from adal_core.providers.openai import ChatCompletionsAdapter
from adal_models import ProviderId

logger = logging.getLogger(__name__)


class DeepSeekAdapter(ChatCompletionsAdapter):
    provider = ProviderId.DEEPSEEK
    supports_attachments = False

    async def open_stream(self, request: NormalizedRequest, api_key: str) -> AsyncIterator[str]:
        if request.attachment is not None:
            logger.warning("deepseek does not accept attachments, sending text only")
            request = NormalizedRequest(
                system_prompt=request.system_prompt,
                user_content=request.user_content,
            )
        return await super().open_stream(request, api_key)
