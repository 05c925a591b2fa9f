"""Configuration models and loading."""

import json
import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from core.exceptions import ConfigurationError

CONFIG_DIR = Path.home() / ".config" / "laserkongen-proxy"
CONFIG_FILE = CONFIG_DIR / "config.json"

DEFAULT_BACKEND_URL = "http://localhost:5001"

# Checked in order; the first one set wins.
BACKEND_URL_ENV_VARS = ("BACKEND_URL", "NEXT_PUBLIC_API_URL")


class ProxySettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 3000
    debug: bool = False


class BackendSettings(BaseModel):
    base_url: str = DEFAULT_BACKEND_URL
    timeout: float = Field(default=30.0, gt=0)


class LimitsSettings(BaseModel):
    max_connections: int = 100
    max_keepalive_connections: int = 20
    keep_alive_timeout: int = 5
    max_body_size: int = 10 * 1024 * 1024


class Config(BaseModel):
    proxy: ProxySettings = Field(default_factory=ProxySettings)
    backend: BackendSettings = Field(default_factory=BackendSettings)
    limits: LimitsSettings = Field(default_factory=LimitsSettings)


def load_config(config_file: Path = CONFIG_FILE) -> Config:
    """Load configuration from JSON file, creating default if needed."""
    if not config_file.exists():
        config_file.parent.mkdir(parents=True, exist_ok=True)
        default = Config()
        config_file.write_text(default.model_dump_json(indent=2))
        return default

    try:
        data = json.loads(config_file.read_text())
        return Config.model_validate(data)
    except (json.JSONDecodeError, ValidationError):
        # Backup corrupted config and recreate default
        backup = config_file.with_suffix(".json.bak")
        config_file.rename(backup)
        default = Config()
        config_file.write_text(default.model_dump_json(indent=2))
        return default


def apply_env_overrides(config: Config, environ: Mapping[str, str] | None = None) -> Config:
    """Return a copy of config with environment overrides applied."""
    env = os.environ if environ is None else environ
    updated = config.model_copy(deep=True)

    for name in BACKEND_URL_ENV_VARS:
        value = env.get(name)
        if value:
            updated.backend.base_url = value.rstrip("/")
            break

    if env.get("PROXY_PORT"):
        try:
            updated.proxy.port = int(env["PROXY_PORT"])
        except ValueError:
            raise ConfigurationError(f"PROXY_PORT must be an integer, got {env['PROXY_PORT']!r}")

    if env.get("PROXY_DEBUG"):
        updated.proxy.debug = env["PROXY_DEBUG"].lower() in ("1", "true", "yes", "on")

    return updated
