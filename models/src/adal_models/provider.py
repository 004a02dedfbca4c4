"""Provider identity and the client-persisted AI configuration."""

import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationError, model_validator

logger = logging.getLogger(__name__)

AI_CONFIG_VERSION = 2


class ProviderId(str, Enum):
    """Upstream language model services the portal proxies to."""

    GEMINI = "gemini"
    OPENAI = "openai"
    DEEPSEEK = "deepseek"

    @property
    def label(self) -> str:
        """Upper-case tag stored on assistant messages."""
        return self.value.upper()


class AiRole(str, Enum):
    """Personas the assistant can be asked to adopt."""

    ORIGINAL = "Estilo Original del Modelo"
    HACKER = "Hacker de élite"
    CREATIVE = "Compañero creativo"


LANGUAGE_CODES = {
    "Español (México)": "es-MX",
    "English (US)": "en-US",
    "French": "fr-FR",
    "German": "de-DE",
    "Italian": "it-IT",
    "Portuguese": "pt-BR",
    "Japanese": "ja-JP",
    "Korean": "ko-KR",
    "Chinese (Simplified)": "zh-CN",
    "Russian": "ru-RU",
    "Arabic": "ar-SA",
    "Hindi": "hi-IN",
}

DEFAULT_LANGUAGE = "Español (México)"


def get_language_code(language: str) -> str:
    """Map a UI language name to its ISO code, falling back to es-MX."""
    return LANGUAGE_CODES.get(language, "es-MX")


class AiConfig(BaseModel):
    """Per-user chat preferences kept on the client."""

    version: int = Field(AI_CONFIG_VERSION, description="Schema version")
    role: AiRole = Field(AiRole.ORIGINAL, description="Persona")
    emojis: bool = Field(True, description="Allow emojis in replies")
    nickname: str = Field("", description="Name the assistant uses for the user")
    timezone: str = Field("America/Mexico_City", description="User timezone")
    enabled_providers: list[ProviderId] = Field(
        default_factory=lambda: list(ProviderId), description="Providers shown in the picker"
    )
    selected_provider: ProviderId = Field(ProviderId.GEMINI, description="Active provider")
    language: str = Field(DEFAULT_LANGUAGE, description="Reply language")

    @model_validator(mode="after")
    def _selected_must_be_enabled(self) -> "AiConfig":
        if not self.enabled_providers:
            self.enabled_providers = list(ProviderId)
        if self.selected_provider not in self.enabled_providers:
            self.selected_provider = self.enabled_providers[0]
        return self


_LEGACY_KEYS = {
    "enabledModels": "enabled_providers",
    "selectedModel": "selected_provider",
}


def migrate_ai_config(raw: dict[str, Any] | None, nickname: str) -> AiConfig:
    """Build a current AiConfig from whatever shape was stored.

    Unknown keys are dropped, legacy camelCase keys are renamed, unknown
    provider ids are discarded and any value that fails validation falls back
    to its default. The nickname always follows the account username.
    """
    data: dict[str, Any] = {}
    for key, value in (raw or {}).items():
        key = _LEGACY_KEYS.get(key, key)
        if key in AiConfig.model_fields and key != "version":
            data[key] = value

    providers = data.get("enabled_providers")
    if isinstance(providers, list):
        known = {p.value for p in ProviderId}
        data["enabled_providers"] = [p for p in providers if p in known]
    if data.get("selected_provider") not in {p.value for p in ProviderId}:
        data.pop("selected_provider", None)

    data["nickname"] = nickname
    data["version"] = AI_CONFIG_VERSION

    try:
        return AiConfig(**data)
    except ValidationError as e:
        bad_fields = {str(err["loc"][0]) for err in e.errors() if err["loc"]}
        logger.warning(f"Discarding invalid AI config fields: {sorted(bad_fields)}")
        cleaned = {k: v for k, v in data.items() if k not in bad_fields}
        return AiConfig(**cleaned)
