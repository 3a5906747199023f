"""
Measurement settings and the user configuration file.

``MeasurementSettings`` is constructed once at startup and then passed by
reference into every component; it is frozen, so concurrent runs can share
it safely.

The optional config file lives at ``~/.ezspeedtest/config.json``::

    {
      "settings": {
        "ping_count": 4,
        "ping_timeout": 5.0,
        "download_timeout": 30.0,
        "buffer_size": 65536
      },
      "servers": [
        {"name": "Home", "region": "EU", "url": "https://example.net/10MB.bin",
         "priority": 50}
      ]
    }
"""
from __future__ import annotations

import dataclasses
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .constants import (
    DEFAULT_BUFFER_SIZE,
    DEFAULT_DOWNLOAD_TIMEOUT,
    DEFAULT_MAX_RETRIES,
    DEFAULT_PING_COUNT,
    DEFAULT_PING_TIMEOUT,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_RETRY_DELAY,
    MAX_BUFFER_SIZE,
    MAX_DOWNLOAD_BYTES,
    MAX_PING_COUNT,
    MAX_RETRIES_LIMIT,
    MAX_TIMEOUT,
    MIN_BUFFER_SIZE,
    MIN_DOWNLOAD_BYTES,
    MIN_PING_COUNT,
    MIN_TIMEOUT,
    PROBE_INTERVAL,
    USER_AGENT,
)

logger = logging.getLogger(__name__)

_CONFIG_DIR = os.path.join(Path.home(), ".ezspeedtest")
_CONFIG_FILE = "config.json"


def _config_path() -> str:
    return os.path.join(_CONFIG_DIR, _CONFIG_FILE)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MeasurementSettings:
    """Process-wide, read-only measurement parameters (times in seconds)."""

    ping_timeout: float = DEFAULT_PING_TIMEOUT
    ping_count: int = DEFAULT_PING_COUNT
    probe_interval: float = PROBE_INTERVAL
    download_timeout: float = DEFAULT_DOWNLOAD_TIMEOUT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    buffer_size: int = DEFAULT_BUFFER_SIZE
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay: float = DEFAULT_RETRY_DELAY
    min_download_bytes: int = MIN_DOWNLOAD_BYTES
    max_download_bytes: int = MAX_DOWNLOAD_BYTES
    user_agent: str = USER_AGENT

    def __post_init__(self) -> None:
        _validate(self)

    # -- Constructors -------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> MeasurementSettings:
        """Build settings from a config mapping, ignoring unknown keys."""
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown settings keys: %s", ", ".join(unknown))
        return cls(**{k: v for k, v in data.items() if k in known})

    def replace(self, **changes: Any) -> MeasurementSettings:
        """Return a copy with *changes* applied (and re-validated)."""
        return dataclasses.replace(self, **changes)

    # -- Serialisation ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


def _validate(s: MeasurementSettings) -> None:
    """Raise ``ValueError`` if any parameter is out of range."""
    if not MIN_PING_COUNT <= s.ping_count <= MAX_PING_COUNT:
        raise ValueError(f"Ping count must be between {MIN_PING_COUNT} and {MAX_PING_COUNT}")
    for name in ("ping_timeout", "download_timeout", "request_timeout"):
        value = getattr(s, name)
        if not MIN_TIMEOUT <= value <= MAX_TIMEOUT:
            raise ValueError(f"{name} must be between {MIN_TIMEOUT} and {MAX_TIMEOUT} s")
    if s.probe_interval < 0:
        raise ValueError("probe_interval must not be negative")
    if not MIN_BUFFER_SIZE <= s.buffer_size <= MAX_BUFFER_SIZE:
        raise ValueError(f"Buffer size must be between {MIN_BUFFER_SIZE} and {MAX_BUFFER_SIZE} bytes")
    if not 0 <= s.max_retries <= MAX_RETRIES_LIMIT:
        raise ValueError(f"Retry count must be between 0 and {MAX_RETRIES_LIMIT}")
    if s.retry_delay < 0:
        raise ValueError("retry_delay must not be negative")
    if s.min_download_bytes < 0 or s.max_download_bytes <= 0:
        raise ValueError("download size limits must be positive")
    if s.min_download_bytes > s.max_download_bytes:
        raise ValueError("min_download_bytes must not exceed max_download_bytes")


# ---------------------------------------------------------------------------
# Config file read / write
# ---------------------------------------------------------------------------

def default_config() -> Dict[str, Any]:
    return {"settings": MeasurementSettings().to_dict(), "servers": []}


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load config from disk, returning defaults for missing sections."""
    path = path or _config_path()
    config = default_config()

    if not os.path.isfile(path):
        return config

    try:
        with open(path, encoding="utf-8") as fh:
            user = json.load(fh)
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Ignoring unreadable config file %s: %s", path, exc)
        return config

    if not isinstance(user, dict):
        logger.warning("Ignoring config file %s: top level is not an object", path)
        return config

    if isinstance(user.get("settings"), dict):
        config["settings"].update(user["settings"])
    if isinstance(user.get("servers"), list):
        config["servers"] = user["servers"]

    return config


def save_config(config: Dict[str, Any], path: Optional[str] = None) -> str:
    """Write *config* to disk.  Returns the file path."""
    path = path or _config_path()
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)

    with open(path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)

    return path


def config_path() -> str:
    """Return the config file path (for display purposes)."""
    return _config_path()
