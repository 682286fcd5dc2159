"""Runtime settings.

Settings come from three layers, later ones winning:

1. Defaults declared on :class:`Settings`.
2. An optional YAML file (explicit path, or ``JITPHONE_CONFIG``).
3. ``JITPHONE_<FIELD>`` environment variables, e.g. ``JITPHONE_MAX_INPUT_SIZE``.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path

import yaml

ENV_PREFIX = "JITPHONE_"
CONFIG_ENV_VAR = "JITPHONE_CONFIG"


@dataclass
class Settings:
    """Service-wide configuration."""

    max_input_size: int = 1024 * 1024
    default_profile: str = "embedded-automation-host"
    default_optimization_level: int = 2
    execution_timeout: float = 10.0
    max_execution_timeout: float = 30.0
    memory_limit_mb: int = 128
    cache_max_entries: int = 0  # 0 = unbounded
    cache_ttl_seconds: float = 0.0  # 0 = never expires
    log_level: str = "WARNING"  # CLI log level unless --log-level is given

    def to_dict(self) -> dict:
        return asdict(self)


def _coerce(raw, current):
    if isinstance(current, bool):
        if isinstance(raw, bool):
            return raw
        return str(raw).strip().lower() in ("1", "true", "yes", "on")
    if isinstance(current, int):
        return int(raw)
    if isinstance(current, float):
        return float(raw)
    return str(raw)


def _apply(settings: Settings, values: dict, source: str) -> None:
    known = {f.name for f in fields(Settings)}
    for key, raw in values.items():
        if key not in known:
            raise ValueError(f"Unknown setting '{key}' in {source}")
        current = getattr(settings, key)
        try:
            setattr(settings, key, _coerce(raw, current))
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid value for '{key}' in {source}: {raw!r}") from exc


def load_settings(path: str | Path | None = None, environ: dict | None = None) -> Settings:
    """Build settings from defaults, a YAML file and the environment."""
    env = os.environ if environ is None else environ
    settings = Settings()

    config_path = path or env.get(CONFIG_ENV_VAR)
    if config_path:
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Config file not found: {config_file}")
        with open(config_file) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {config_file} must contain a mapping")
        _apply(settings, data, str(config_file))

    overrides = {}
    for f in fields(Settings):
        env_key = ENV_PREFIX + f.name.upper()
        if env_key in env:
            overrides[f.name] = env[env_key]
    _apply(settings, overrides, "environment")

    return settings
