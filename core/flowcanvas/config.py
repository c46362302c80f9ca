"""Shared flowcanvas configuration utilities.

Reads ~/.flowcanvas/configuration.json once per call, with environment
variables taking precedence, so the engine client and the polling manager
agree on where the engine lives and how to authenticate.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------

FLOWCANVAS_CONFIG_FILE = Path.home() / ".flowcanvas" / "configuration.json"

DEFAULT_ENGINE_URL = "http://localhost:5678"
DEFAULT_POLL_INTERVAL_MS = 1000
DEFAULT_TIMEOUT = 30.0


def get_flowcanvas_config() -> dict[str, Any]:
    """Load configuration from ~/.flowcanvas/configuration.json."""
    if not FLOWCANVAS_CONFIG_FILE.exists():
        return {}
    try:
        with open(FLOWCANVAS_CONFIG_FILE, encoding="utf-8-sig") as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}


# ---------------------------------------------------------------------------
# Derived helpers
# ---------------------------------------------------------------------------


def normalize_base_url(url: str) -> str:
    """Add an http:// scheme when missing and drop trailing slashes."""
    if not url.startswith(("http://", "https://")):
        url = f"http://{url}"
    return url.rstrip("/")


def get_engine_url() -> str:
    """Return the engine base URL (env FLOWCANVAS_ENGINE_URL wins over the file)."""
    url = os.environ.get("FLOWCANVAS_ENGINE_URL") or get_flowcanvas_config().get("engine", {}).get(
        "base_url"
    )
    return normalize_base_url(url or DEFAULT_ENGINE_URL)


def get_api_key() -> str | None:
    """Return the engine API key, if any."""
    return os.environ.get("FLOWCANVAS_API_KEY") or get_flowcanvas_config().get("engine", {}).get(
        "api_key"
    )


def get_api_token() -> str | None:
    """Return the bearer token used when no API key is configured."""
    return os.environ.get("FLOWCANVAS_API_TOKEN") or get_flowcanvas_config().get(
        "engine", {}
    ).get("token")


def get_poll_interval_ms() -> int:
    """Return the configured polling interval, falling back to DEFAULT_POLL_INTERVAL_MS."""
    return int(
        get_flowcanvas_config().get("polling", {}).get("interval_ms", DEFAULT_POLL_INTERVAL_MS)
    )


# ---------------------------------------------------------------------------
# EngineConfig – shared by the client and the poller
# ---------------------------------------------------------------------------


@dataclass
class EngineConfig:
    """Connection settings for the external workflow engine."""

    base_url: str = field(default_factory=get_engine_url)
    api_key: str | None = field(default_factory=get_api_key)
    token: str | None = field(default_factory=get_api_token)
    timeout: float = DEFAULT_TIMEOUT
    poll_interval_ms: int = field(default_factory=get_poll_interval_ms)

    def __post_init__(self) -> None:
        self.base_url = normalize_base_url(self.base_url)

    @property
    def auth_headers(self) -> dict[str, str]:
        """Headers carrying credentials; API key takes precedence over token."""
        if self.api_key:
            return {"X-N8N-API-KEY": self.api_key}
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}
