"""
Server catalog.

Holds the candidate target servers and the pure selection policies over
them.  The catalog is built eagerly from already-materialised entries (the
CLI reads them from the config file); it never touches disk itself.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urlparse

from .errors import InvalidServerEntry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TargetServer:
    """A single download target."""

    name: str
    region: str
    url: str
    country: Optional[str] = None
    city: Optional[str] = None
    is_active: bool = True
    priority: int = 0

    # -- Constructors -------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> TargetServer:
        """Parse a config entry; raise ``InvalidServerEntry`` if unusable."""
        name = _text_field(data, "name")
        url = _text_field(data, "url")
        region = _text_field(data, "region")

        if not name or not url or not region:
            raise InvalidServerEntry(
                f"Server entry needs name, url and region "
                f"(name={name!r}, url={url!r}, region={region!r})"
            )

        try:
            parsed = urlparse(url)
            hostname = parsed.hostname
        except ValueError:
            # e.g. an unbalanced IPv6 bracket
            raise InvalidServerEntry(f"Invalid URL for server {name}: {url}") from None
        if parsed.scheme not in ("http", "https") or not hostname:
            raise InvalidServerEntry(f"Invalid URL for server {name}: {url}")

        try:
            priority = int(data.get("priority", 0))
        except (TypeError, ValueError):
            raise InvalidServerEntry(
                f"Invalid priority for server {name}: {data.get('priority')!r}"
            ) from None

        return cls(
            name=name,
            region=region,
            url=url,
            country=_text_field(data, "country") or None,
            city=_text_field(data, "city") or None,
            is_active=_flag_field(data, "is_active", name),
            priority=priority,
        )

    # -- Derived ------------------------------------------------------------

    @property
    def host(self) -> str:
        """Host name from the URL authority (what the latency probe pings)."""
        return urlparse(self.url).hostname or ""

    # -- Serialisation ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "region": self.region,
            "url": self.url,
            "country": self.country,
            "city": self.city,
            "is_active": self.is_active,
            "priority": self.priority,
        }


def _text_field(data: Dict[str, Any], key: str) -> str:
    """Stripped string value of *key*; empty when absent."""
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidServerEntry(f"Server field {key!r} must be a string, got {value!r}")
    return value.strip()


def _flag_field(data: Dict[str, Any], key: str, name: str) -> bool:
    """Boolean value of *key* (default True); accepts "true"/"false" strings."""
    value = data.get(key, True)
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise InvalidServerEntry(f"Invalid {key} for server {name}: {value!r}")


# Used whenever nothing is configured, so the tool works out of the box.
DEFAULT_SERVERS: Tuple[TargetServer, ...] = (
    TargetServer(
        name="Cloudflare Test File",
        region="Global",
        url="https://speed.cloudflare.com/__down?bytes=10000000",
        country="Global",
        city="CDN",
        priority=100,
    ),
    TargetServer(
        name="Fast.com Test File",
        region="Global",
        url="https://api.fast.com/netflix/speedtest/v2/download",
        country="Global",
        city="CDN",
        priority=90,
    ),
    TargetServer(
        name="Google Test File",
        region="Global",
        url="https://www.google.com/images/branding/googlelogo/1x/googlelogo_color_272x92dp.png",
        country="Global",
        city="CDN",
        priority=80,
    ),
)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

class ServerCatalog:
    """Ordered, name-unique collection of target servers."""

    def __init__(self, servers: Iterable[TargetServer] = ()) -> None:
        self._servers: List[TargetServer] = []
        seen = set()
        for server in servers:
            key = server.name.casefold()
            if key in seen:
                logger.warning("Skipping duplicate server name: %s", server.name)
                continue
            seen.add(key)
            self._servers.append(server)

        if self._servers:
            logger.info("Loaded %d speed test servers from configuration", len(self._servers))
        else:
            logger.info("Using %d default speed test servers", len(DEFAULT_SERVERS))

    @classmethod
    def from_entries(cls, entries: Iterable[Dict[str, Any]]) -> ServerCatalog:
        """Build from raw config dicts, skipping (and logging) bad entries."""
        servers: List[TargetServer] = []
        for entry in entries:
            if not isinstance(entry, dict):
                logger.warning("Skipping non-object server entry: %r", entry)
                continue
            try:
                servers.append(TargetServer.from_dict(entry))
            except InvalidServerEntry as exc:
                logger.warning("Skipping invalid server configuration: %s", exc)
        return cls(servers)

    # -- Queries ------------------------------------------------------------

    def list_servers(self) -> Tuple[TargetServer, ...]:
        """All configured servers, or the built-in defaults if none."""
        return tuple(self._servers) if self._servers else DEFAULT_SERVERS

    def best(self) -> Optional[TargetServer]:
        """Highest-priority active server; ties go to the first listed."""
        best: Optional[TargetServer] = None
        for server in self.list_servers():
            if server.is_active and (best is None or server.priority > best.priority):
                best = server
        return best

    def by_name(self, name: str) -> Optional[TargetServer]:
        """Case-insensitive exact name lookup."""
        key = name.casefold()
        for server in self.list_servers():
            if server.name.casefold() == key:
                return server
        return None

    def __len__(self) -> int:
        return len(self.list_servers())
