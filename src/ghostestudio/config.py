from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUTHY


class FeatureFlags(BaseModel):
    """Product switches, resolved once at startup and passed around explicitly."""

    model_config = ConfigDict(frozen=True)

    sora_enabled: bool = True
    meta_ads_enabled: bool = False
    tiktok_ads_enabled: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "FeatureFlags":
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            sora_enabled=_env_flag(env, "SORA_ENABLED", defaults.sora_enabled),
            meta_ads_enabled=_env_flag(env, "META_ADS_ENABLED", defaults.meta_ads_enabled),
            tiktok_ads_enabled=_env_flag(env, "TIKTOK_ADS_ENABLED", defaults.tiktok_ads_enabled),
        )


class StudioConfig(BaseModel):
    default_duration_sec: int = 30
    strict_durations: bool = False
    # Sora configuration
    use_real_sora: bool = False
    sora_model: str = "sora-2"
    sora_pro_model: str = "sora-2-pro"
    sora_size: str = "720x1280"
    sora_api_key_env: str = "OPENAI_API_KEY"
    sora_poll_interval: float = 10.0
    sora_request_timeout: float = 30.0
    sora_max_wait: float = 600.0
    sora_submit_cooldown: float = 1.0
    features: FeatureFlags = Field(default_factory=FeatureFlags)

    @classmethod
    def from_file(cls, path: Path) -> "StudioConfig":
        text = Path(path).read_text(encoding="utf-8")
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            payload = yaml.safe_load(text)
        return cls.model_validate(payload or {})

    @classmethod
    def default(cls) -> "StudioConfig":
        return cls(features=FeatureFlags.from_env())

    def sora_api_key(self) -> Optional[str]:
        api_key = os.getenv(self.sora_api_key_env)
        if not api_key:
            logger.info("No Sora API key in %s; renders will run as dry runs", self.sora_api_key_env)
        return api_key

    def model_for(self, is_pro: bool) -> str:
        return self.sora_pro_model if is_pro else self.sora_model
