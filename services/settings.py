"""Persisted shop credentials and AI provider settings."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from utils.http import normalize_shop_domain


_LOGGER = logging.getLogger(__name__)

SHOP_CREDS_KEY = "seo_shop_creds"
AI_CONFIG_KEY = "seo_ai_config"
DEFAULT_SETTINGS_FILE = "~/.catalog_workspace/settings.json"
DEFAULT_OPENAI_MODEL = "gpt-4o"
DEFAULT_LANGUAGE = "Hebrew"


@dataclass
class ShopCredentials:
    shop: str = ""
    token: str = ""

    def __post_init__(self) -> None:
        self.shop = normalize_shop_domain(self.shop)
        self.token = (self.token or "").strip()

    @property
    def complete(self) -> bool:
        return bool(self.shop and self.token)

    def to_dict(self) -> Dict[str, str]:
        return {"shop": self.shop, "token": self.token}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShopCredentials":
        return cls(shop=str(data.get("shop") or ""), token=str(data.get("token") or ""))

    @classmethod
    def from_env(cls) -> "ShopCredentials":
        return cls(
            shop=os.getenv("SHOPIFY_SHOP", ""),
            token=os.getenv("SHOPIFY_ACCESS_TOKEN", ""),
        )


@dataclass
class AiConfig:
    provider: str = "gemini"
    gemini_key: str = ""
    openai_key: str = ""
    openai_model: str = DEFAULT_OPENAI_MODEL
    language: str = DEFAULT_LANGUAGE
    brand_terms: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "geminiKey": self.gemini_key,
            "openAiKey": self.openai_key,
            "openAiModel": self.openai_model,
            "language": self.language,
            "brandTerms": list(self.brand_terms),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, defaults: Optional["AiConfig"] = None) -> "AiConfig":
        """Merge ``data`` over ``defaults``; empty stored keys keep the default."""

        base = defaults or AiConfig()
        brand_terms = data.get("brandTerms")
        return cls(
            provider=str(data.get("provider") or base.provider),
            gemini_key=str(data.get("geminiKey") or base.gemini_key),
            openai_key=str(data.get("openAiKey") or base.openai_key),
            openai_model=str(data.get("openAiModel") or base.openai_model),
            language=str(data.get("language") or base.language),
            brand_terms=(
                [str(term) for term in brand_terms if str(term).strip()]
                if isinstance(brand_terms, list)
                else list(base.brand_terms)
            ),
        )

    @classmethod
    def from_env(cls) -> "AiConfig":
        return cls(
            gemini_key=os.getenv("GEMINI_API_KEY", ""),
            openai_key=os.getenv("OPENAI_API_KEY", ""),
            openai_model=os.getenv("OPENAI_MODEL", DEFAULT_OPENAI_MODEL),
        )


def settings_path() -> Path:
    return Path(os.getenv("WORKSPACE_SETTINGS_FILE", DEFAULT_SETTINGS_FILE)).expanduser()


class SettingsStore:
    """Small JSON key-value file holding the two persisted settings keys."""

    def __init__(self, path: Optional[Path | str] = None) -> None:
        self.path = Path(path).expanduser() if path is not None else settings_path()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            _LOGGER.warning("Ignoring unreadable settings file %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, key: str, value: Dict[str, Any]) -> None:
        data = self._read()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2, ensure_ascii=False)

    def load_credentials(self) -> ShopCredentials:
        stored = self._read().get(SHOP_CREDS_KEY)
        if isinstance(stored, dict):
            return ShopCredentials.from_dict(stored)
        return ShopCredentials.from_env()

    def save_credentials(self, creds: ShopCredentials) -> None:
        self._write(SHOP_CREDS_KEY, creds.to_dict())

    def load_ai_config(self) -> AiConfig:
        defaults = AiConfig.from_env()
        stored = self._read().get(AI_CONFIG_KEY)
        if isinstance(stored, dict):
            return AiConfig.from_dict(stored, defaults=defaults)
        return defaults

    def save_ai_config(self, config: AiConfig) -> None:
        self._write(AI_CONFIG_KEY, config.to_dict())

    def should_auto_connect(self) -> bool:
        return self.load_credentials().complete
