"""Run configuration assembled from CLI flags and the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from errors import ConfigError
from forem_client import ForemInstance
from markdown_sink import STRUCTURE_PLATFORM
from models import PullFilter

API_KEY_ENV_VARS = ("FOREM_API_KEY", "DEVTO_API_KEY")
RATE_LIMIT_RETRIES_ENV_VAR = "PULLER_RATE_LIMIT_RETRIES"


@dataclass(frozen=True, slots=True)
class SyncConfig:
    """Everything one run needs; nothing reads the environment after this is built."""

    source_credential: str
    instance: ForemInstance
    output_dir: Path | None = None
    pull_filter: PullFilter = field(default_factory=PullFilter)
    force: bool = False
    dry_run: bool = False
    structure: str = STRUCTURE_PLATFORM
    rate_limit_retries: int = 0


def load_api_key() -> str:
    """Return the first API key found in FOREM_API_KEY / DEVTO_API_KEY."""
    for name in API_KEY_ENV_VARS:
        value = os.getenv(name, "").strip()
        if value:
            return value
    raise ConfigError(f"Missing configuration: set {' or '.join(API_KEY_ENV_VARS)}")


def default_rate_limit_retries() -> int:
    raw = os.getenv(RATE_LIMIT_RETRIES_ENV_VAR, "0").strip() or "0"
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{RATE_LIMIT_RETRIES_ENV_VAR} must be an integer, got: {raw}") from exc
    if value < 0:
        raise ConfigError(f"{RATE_LIMIT_RETRIES_ENV_VAR} must not be negative, got: {value}")
    return value
