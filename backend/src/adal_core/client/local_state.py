"""Small JSON file holding per-user client state between runs."""

import json
import logging
from pathlib import Path
from typing import Any

from adal_models import AiConfig, migrate_ai_config

logger = logging.getLogger(__name__)


class LocalState:
    """Key/value persistence for client preferences and throttling marks."""

    def __init__(self, path: Path):
        self.path = path
        self._data: dict[str, Any] = {}
        if path.exists():
            try:
                self._data = json.loads(path.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Ignoring unreadable client state at {path}: {e}")
                self._data = {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._data, ensure_ascii=False, indent=2), encoding="utf-8")

    def load_ai_config(self, user_id: str, nickname: str) -> AiConfig:
        return migrate_ai_config(self.get(f"adal_ai_config_{user_id}"), nickname)

    def save_ai_config(self, user_id: str, config: AiConfig) -> None:
        self.set(f"adal_ai_config_{user_id}", config.model_dump(mode="json"))
