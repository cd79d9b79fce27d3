"""
Configuration Module

Architectural Intent:
- Centralized configuration loading from a JSON file
- Provides typed access to all provider settings
- Falls back to sensible defaults when config file is absent
- Environment variables override file-based config

Design Decisions:
- Config is a frozen dataclass for immutability after load
- Nested config sections map to sub-dataclasses
- Polling values <= 0 keep each resource type's own defaults, except
  initial_delay = 0, which turns the initial delay off
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional
import json
import logging
import os

from stratus.infrastructure.http.client import DEFAULT_ENDPOINT_TEMPLATE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CloudConfig:
    """Target cloud project and API access."""
    region: str = "eu-de"
    project_id: str = ""
    auth_token: str = field(default="", repr=False)
    endpoint_template: str = DEFAULT_ENDPOINT_TEMPLATE
    request_timeout: float = 60.0
    verify_tls: bool = True


@dataclass(frozen=True)
class PollingConfig:
    """Overrides for the state waiter."""
    initial_delay: float = -1.0
    interval: float = 0.0
    not_found_checks: int = 20


@dataclass(frozen=True)
class StateConfig:
    """State store location."""
    path: str = "stratus.db"


@dataclass(frozen=True)
class TelemetryConfig:
    """OpenTelemetry configuration."""
    endpoint: str = ""
    insecure: bool = False


@dataclass(frozen=True)
class StratusConfig:
    """Root configuration for the provider."""
    cloud: CloudConfig = field(default_factory=CloudConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    state: StateConfig = field(default_factory=StateConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    log_level: str = "WARNING"
    log_json: bool = False


_TOP_LEVEL = ("log_level", "log_json")


def _env_override(data: dict, prefix: str = "STRATUS") -> dict:
    """Override config values with environment variables.

    Environment variables follow the pattern STRATUS_SECTION_KEY.
    For example: STRATUS_CLOUD_REGION=eu-nl, STRATUS_POLLING_INTERVAL=2
    """
    for key, value in os.environ.items():
        if not key.startswith(f"{prefix}_"):
            continue
        name = key[len(prefix) + 1:].lower()
        if name in _TOP_LEVEL:
            data[name] = value
            continue
        parts = name.split("_", 1)
        if len(parts) == 2:
            section, field_name = parts
            if not isinstance(data.get(section), dict):
                data[section] = {}
            data[section][field_name] = value
        elif len(parts) == 1:
            data[parts[0]] = value
    return data


def _parse_config_file(path: Path) -> dict:
    """Parse a JSON config file. Returns empty dict on failure."""
    try:
        with open(path) as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.debug("Config file not found: %s", path)
        return {}
    except json.JSONDecodeError as e:
        logger.warning("Invalid config file %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Invalid config file %s: top level must be an object", path)
        return {}
    return data


def _to_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes", "on")


def _build_sub_config(cls, data: dict):
    """Build a sub-config dataclass from a dict, ignoring unknown keys."""
    if not isinstance(data, dict):
        logger.warning("Ignoring non-object config section for %s", cls.__name__)
        data = {}
    valid_fields = {f.name for f in fields(cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}

    # Convert string numbers to int/float/bool
    for f in fields(cls):
        if f.name in filtered and isinstance(filtered[f.name], str):
            try:
                if f.type == "int":
                    filtered[f.name] = int(filtered[f.name])
                elif f.type == "float":
                    filtered[f.name] = float(filtered[f.name])
                elif f.type == "bool":
                    filtered[f.name] = _to_bool(filtered[f.name])
            except ValueError:
                logger.warning(
                    "Invalid value for %s.%s: %r, using default",
                    cls.__name__, f.name, filtered[f.name],
                )
                del filtered[f.name]

    return cls(**filtered)


def load_config(
    path: Optional[str] = None,
    env_prefix: str = "STRATUS",
) -> StratusConfig:
    """Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (STRATUS_SECTION_KEY)
    2. Config file values
    3. Defaults

    Args:
        path: Path to config file (JSON). Defaults to stratus.json in CWD.
        env_prefix: Environment variable prefix. Defaults to STRATUS.
    """
    config_path = Path(path) if path else Path("stratus.json")
    data = _parse_config_file(config_path)
    data = _env_override(data, env_prefix)

    log_json = data.get("log_json", False)
    if isinstance(log_json, str):
        log_json = _to_bool(log_json)

    return StratusConfig(
        cloud=_build_sub_config(CloudConfig, data.get("cloud", {})),
        polling=_build_sub_config(PollingConfig, data.get("polling", {})),
        state=_build_sub_config(StateConfig, data.get("state", {})),
        telemetry=_build_sub_config(TelemetryConfig, data.get("telemetry", {})),
        log_level=str(data.get("log_level", "WARNING")).upper(),
        log_json=bool(log_json),
    )
