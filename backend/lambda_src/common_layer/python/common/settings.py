from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class StudioSettings:
    videos_table_name: str
    default_dry_run: bool
    studio_config_path: Path | None = None
    openai_api_key_parameter: Optional[str] = None

    @classmethod
    def from_env(cls) -> "StudioSettings":
        return cls(
            videos_table_name=os.environ["VIDEOS_TABLE_NAME"],
            default_dry_run=os.environ.get("DEFAULT_DRY_RUN", "false").lower() == "true",
            studio_config_path=Path(os.environ["STUDIO_CONFIG_PATH"])
            if "STUDIO_CONFIG_PATH" in os.environ
            else None,
            openai_api_key_parameter=os.environ.get("OPENAI_API_KEY_PARAMETER"),
        )
