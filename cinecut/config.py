from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from cinecut.errors import ConfigurationError

DEFAULT_CONFIG_PATH = Path("configs/default.yaml")
ENV_PREFIX = "CINECUT_"


class PipelineSettings(BaseModel):
    output_dir: Path = Path("data/outputs")
    default_template: str = "trailer"
    default_aspect: str = "16:9"
    aspect_mode: Literal["letterbox", "crop"] = "letterbox"
    captions: bool = True
    caption_sidecar: bool = False
    write_manifest: bool = True


class EncoderSettings(BaseModel):
    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    min_major_version: int = 6
    tail_chars: int = 500


class RedactionSettings(BaseModel):
    default_style: Literal["blur", "mosaic", "solid"] = "blur"
    default_strength: int = 30
    auto_detect_passwords: bool = True
    auto_detect_credit_cards: bool = True
    auto_detect_emails: bool = False


class ReframeSettings(BaseModel):
    mode: Literal["center", "smart", "dynamic"] = "center"
    quality: Literal["draft", "standard", "high"] = "standard"
    max_workers: int = 1


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: str = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


class Settings(BaseModel):
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    encoder: EncoderSettings = Field(default_factory=EncoderSettings)
    redaction: RedactionSettings = Field(default_factory=RedactionSettings)
    reframe: ReframeSettings = Field(default_factory=ReframeSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load typed settings from YAML with environment-variable overrides.

    ``CINECUT_<SECTION>__<KEY>`` replaces a single value, coerced to the type of
    the value it replaces. A missing default config file yields built-in
    defaults; a missing explicit one is an error.
    """

    explicit = config_path or os.getenv(f"{ENV_PREFIX}CONFIG")
    resolved_path = Path(explicit or DEFAULT_CONFIG_PATH)

    if resolved_path.exists():
        try:
            raw_config = yaml.safe_load(resolved_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Could not parse config file {resolved_path}: {exc}") from exc
    elif explicit:
        raise ConfigurationError(f"Config file not found: {resolved_path}")
    else:
        raw_config = {}

    if not isinstance(raw_config, dict):
        raise ConfigurationError(f"Config file {resolved_path} must contain a mapping")

    try:
        data = Settings.model_validate(raw_config).model_dump(mode="python")

        for key, raw_value in os.environ.items():
            if not key.startswith(ENV_PREFIX):
                continue

            suffix = key[len(ENV_PREFIX) :]
            if suffix == "CONFIG":
                continue

            path = [part.lower() for part in suffix.split("__")]
            _apply_override(data, path, raw_value)

        return Settings.model_validate(data)
    except (PydanticValidationError, ValueError) as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


def _apply_override(data: dict[str, Any], path: list[str], raw_value: str) -> None:
    current: Any = data
    for segment in path[:-1]:
        if not isinstance(current, dict) or segment not in current:
            return
        current = current[segment]

    if not isinstance(current, dict):
        return

    final_key = path[-1]
    if final_key not in current:
        return

    current[final_key] = _coerce_value(raw_value, current[final_key])


def _coerce_value(raw_value: str, existing_value: Any) -> Any:
    if isinstance(existing_value, bool):
        return raw_value.lower() in {"1", "true", "yes", "on"}
    if isinstance(existing_value, int):
        return int(raw_value)
    if isinstance(existing_value, float):
        return float(raw_value)
    if isinstance(existing_value, list | dict):
        return json.loads(raw_value)
    if isinstance(existing_value, Path):
        return Path(raw_value)
    return raw_value
