"""Provider adapter interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator

from adal_models import Attachment, ProviderId


@dataclass
class NormalizedRequest:
    """Provider-independent request handed to an adapter."""

    system_prompt: str
    user_content: str
    attachment: Attachment | None = None


class ProviderAdapter(ABC):
    """Translates a normalized request into one upstream API call.

    ``open_stream`` returns once the upstream has accepted the request, so
    that failures surface before the endpoint commits to a 200. The returned
    iterator yields plain text fragments in upstream order.
    """

    provider: ProviderId
    supports_attachments: bool = True

    @abstractmethod
    async def open_stream(self, request: NormalizedRequest, api_key: str) -> AsyncIterator[str]:
        ...

    def accepts(self, user_content: str | None, attachment: Attachment | None) -> bool:
        """Whether the request carries enough content for this provider."""
        if self.supports_attachments:
            return bool(user_content) or attachment is not None
        return bool(user_content)
