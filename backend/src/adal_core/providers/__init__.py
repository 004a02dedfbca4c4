"""Provider registry: one adapter and endpoint per ProviderId."""

from dataclasses import dataclass
from typing import Callable

from adal_core.config import Settings
from adal_core.providers.base import NormalizedRequest, ProviderAdapter
from adal_core.providers.deepseek import DeepSeekAdapter
from adal_core.providers.gemini import GeminiAdapter
from adal_core.providers.openai import ChatCompletionsAdapter, OpenAIAdapter
from adal_models import ProviderId


@dataclass(frozen=True)
class ProviderSpec:
    """Static binding of a provider to its endpoint, key and adapter."""

    provider: ProviderId
    endpoint_path: str
    api_key_env: str
    build_adapter: Callable[[Settings], ProviderAdapter]

    def api_key(self, settings: Settings) -> str:
        return getattr(settings, self.api_key_env.lower())


PROVIDERS: dict[ProviderId, ProviderSpec] = {
    ProviderId.GEMINI: ProviderSpec(
        provider=ProviderId.GEMINI,
        endpoint_path="/api/gemini",
        api_key_env="GEMINI_API_KEY",
        build_adapter=lambda s: GeminiAdapter(model=s.gemini_model, temperature=s.temperature),
    ),
    ProviderId.OPENAI: ProviderSpec(
        provider=ProviderId.OPENAI,
        endpoint_path="/api/openai",
        api_key_env="OPENAI_API_KEY",
        build_adapter=lambda s: OpenAIAdapter(
            base_url=s.openai_base_url,
            model=s.openai_model,
            temperature=s.temperature,
            timeout=s.upstream_timeout,
        ),
    ),
    ProviderId.DEEPSEEK: ProviderSpec(
        provider=ProviderId.DEEPSEEK,
        endpoint_path="/api/deepseek",
        api_key_env="DEEPSEEK_API_KEY",
        build_adapter=lambda s: DeepSeekAdapter(
            base_url=s.deepseek_base_url,
            model=s.deepseek_model,
            temperature=s.temperature,
            timeout=s.upstream_timeout,
        ),
    ),
}

_unregistered = set(ProviderId) - set(PROVIDERS)
if _unregistered:
    raise RuntimeError(f"Providers without a registry entry: {sorted(p.value for p in _unregistered)}")


def endpoint_for(provider: ProviderId) -> str:
    return PROVIDERS[provider].endpoint_path


__all__ = [
    "PROVIDERS",
    "ProviderSpec",
    "ProviderAdapter",
    "NormalizedRequest",
    "ChatCompletionsAdapter",
    "OpenAIAdapter",
    "DeepSeekAdapter",
    "GeminiAdapter",
    "endpoint_for",
]
