"""
Service configuration.

Constants live in config/config.yaml; the environment only chooses the
deployment mode, the port and (optionally) the temp directory.
"""

from __future__ import annotations
import os
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config" / "config.yaml"
ENVIRONMENTS = ("development", "production")


class Settings(BaseModel):
    """Resolved, immutable settings for one process."""
    model_config = ConfigDict(frozen=True)

    environment: str = Field("development", description="Deployment mode")
    port: int = Field(3001, description="HTTP port")

    # pipeline
    fetch_timeout_s: float = 30
    transform_timeout_s: float = 60
    request_deadline_s: float = 25
    info_timeout_s: float = 15
    cleanup_grace_s: float = 5
    max_source_duration_s: int = 600
    description_max_chars: int = 200
    audio_bitrate: str = "128k"
    audio_codec: str = "libmp3lame"
    output_format: str = "mp3"
    base_sample_rate: int = 44100
    abandoned_release_s: float = 60
    user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

    # housekeeping
    temp_dir: Path = Path("temp")
    reaper_interval_s: float = 300
    max_file_age_s: float = 900

    # environment block
    cors_origins: List[str] = Field(default_factory=list)
    cors_origin_regex: Optional[str] = None
    ffmpeg_candidates: List[str] = Field(default_factory=list)
    expose_error_details: bool = True

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def _read_config(config_path: Path) -> Dict:
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")
    with open(config_path) as f:
        config = yaml.safe_load(f) or {}

    for section in ("pipeline", "housekeeping", "environments"):
        if section not in config:
            raise ValueError(f"Config missing '{section}'")
    return config


def load_settings(
    config_path: Union[Path, str, None] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Build Settings from the YAML file plus APP_ENV / PORT / PITCHPERFECT_TEMP_DIR."""
    environ = os.environ if environ is None else environ
    config = _read_config(Path(config_path) if config_path else DEFAULT_CONFIG_PATH)

    environment = environ.get("APP_ENV", "development").strip().lower()
    if environment not in ENVIRONMENTS:
        raise ValueError(f"Unknown APP_ENV '{environment}', expected one of {ENVIRONMENTS}")
    env_block = config["environments"].get(environment)
    if env_block is None:
        raise ValueError(f"Config missing environment block '{environment}'")

    values = {
        **config["pipeline"],
        **config["housekeeping"],
        **env_block,
        "environment": environment,
        "port": int(environ.get("PORT", 3001)),
    }
    if environ.get("PITCHPERFECT_TEMP_DIR"):
        values["temp_dir"] = environ["PITCHPERFECT_TEMP_DIR"]

    return Settings.model_validate(values)
