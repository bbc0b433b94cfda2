"""Settings loader for the gateway and the CLI client.

Gateway defaults live in config/gateway.toml. Secrets and per-machine
overrides come from the environment, loaded with this priority:
  1. Environment variables (highest, already set in the shell)
  2. ~/.edurelay/keys.env
  3. .env in the current directory
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path

from edurelay.schemas.config import ClientSettings, GatewaySettings

logger = logging.getLogger(__name__)

# Default config directory inside the edurelay package
_CONFIG_DIR = Path(__file__).parent / "config"

# User-level configuration directory
EDURELAY_HOME = Path.home() / ".edurelay"
KEYS_FILE = EDURELAY_HOME / "keys.env"

# Environment variable -> GatewaySettings field
_GATEWAY_ENV_OVERRIDES: dict[str, str] = {
    "EDURELAY_MODEL": "model",
    "EDURELAY_API_BASE": "api_base",
    "EDURELAY_API_KEY_ENV": "api_key_env",
    "EDURELAY_UPSTREAM_TIMEOUT": "timeout",
    "EDURELAY_MAX_RETRIES": "max_retries",
    "EDURELAY_MAX_ANALYSIS_CHARS": "max_analysis_chars",
}


def load_keys_env() -> None:
    """Load ~/.edurelay/keys.env and ./.env into os.environ.

    Existing environment variables are never overwritten.
    """
    for env_file in (KEYS_FILE, Path.cwd() / ".env"):
        if env_file.is_file():
            _load_env_file(env_file)


def _load_env_file(path: Path) -> None:
    """Parse a simple KEY=VALUE .env file and set vars that aren't already set."""
    try:
        for line in path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip().strip("'\"")
            if key and not os.environ.get(key):
                os.environ[key] = value
                logger.debug("Loaded %s from %s", key, path)
    except OSError:
        logger.debug("Could not read %s", path)


def load_settings(config_path: Path | None = None) -> GatewaySettings:
    """Load gateway settings from TOML and apply environment overrides.

    Args:
        config_path: Path to gateway.toml. Defaults to edurelay/config/gateway.toml.

    Returns:
        GatewaySettings with file values, then EDURELAY_* overrides applied.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If the TOML has no [gateway] section.
    """
    path = config_path or _CONFIG_DIR / "gateway.toml"
    if not path.exists():
        raise FileNotFoundError(f"Gateway config not found: {path}")

    with open(path, "rb") as f:
        raw = tomllib.load(f)

    section = raw.get("gateway")
    if not section or not isinstance(section, dict):
        raise ValueError(f"No [gateway] section found in {path}")

    values = dict(section)
    for env_var, field in _GATEWAY_ENV_OVERRIDES.items():
        override = os.environ.get(env_var)
        if override:
            values[field] = override

    origins = os.environ.get("EDURELAY_ALLOWED_ORIGINS")
    if origins:
        values["allowed_origins"] = [o.strip() for o in origins.split(",") if o.strip()]

    return GatewaySettings(**values)


def load_client_settings() -> ClientSettings:
    """Resolve the CLI client's gateway URL and bearer token from the environment."""
    load_keys_env()
    values: dict[str, object] = {}
    url = os.environ.get("EDURELAY_GATEWAY_URL")
    if url:
        values["gateway_url"] = url.rstrip("/")
    token = os.environ.get("EDURELAY_ACCESS_TOKEN")
    if token:
        values["access_token"] = token
    return ClientSettings(**values)
