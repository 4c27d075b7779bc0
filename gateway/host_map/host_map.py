"""
Static host to backend mapping.

The map is read once from a YAML document of ``host: address`` pairs and is
never modified afterwards. Lookups are exact string matches on the inbound
``Host`` header, port included.
"""

import logging
import os
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterator, Mapping, Optional

import yaml

logger = logging.getLogger("uvicorn.error")

SUPPORTED_SCHEMES = ("http://", "https://")


class HostMapError(Exception):
    """Raised when the host map file cannot be read or is malformed."""


@dataclass(frozen=True)
class HostMapEntry:
    host: str
    address: str

    @property
    def base_url(self) -> str:
        """Backend base URL: scheme-qualified addresses are kept, bare ones get http://."""
        address = self.address.rstrip("/")
        if address.lower().startswith(SUPPORTED_SCHEMES):
            return address
        return f"http://{address}"


class HostMap:
    """Read-only mapping of request host to backend entry."""

    def __init__(self, entries: Mapping[str, str]):
        self._entries = MappingProxyType(
            {host: HostMapEntry(host, address) for host, address in entries.items()}
        )

    def resolve(self, host: Optional[str]) -> Optional[HostMapEntry]:
        if not host:
            return None
        return self._entries.get(host)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __contains__(self, host: object) -> bool:
        return host in self._entries


def resolve_config_path(config_dir: str, config_file: str = "config.yaml") -> str:
    if not config_dir:
        logger.info("CONFIG_DIR not defined, using working directory")
        return config_file
    return os.path.join(config_dir, config_file)


def parse_host_map(raw_text: str, source: str = "<string>") -> HostMap:
    try:
        data = yaml.safe_load(raw_text)
    except yaml.YAMLError as e:
        raise HostMapError(f"Invalid YAML in {source}: {e}") from e

    if data is None:
        logger.warning(f"Host map {source} is empty, every request will be rejected")
        return HostMap({})
    if not isinstance(data, dict):
        raise HostMapError(
            f"Host map {source} must be a mapping of host to address, got {type(data).__name__}"
        )

    entries = {}
    for host, address in data.items():
        if address is None or str(address).strip() == "":
            raise HostMapError(f"Host {host!r} in {source} has no backend address")
        entries[str(host)] = str(address).strip()
    return HostMap(entries)


def load_host_map(path: str) -> HostMap:
    """
    Load the host map from a YAML file.

    Raises:
        HostMapError: the file is missing, unreadable or not a host mapping.
    """
    logger.info(f"Configuration File : {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw_text = f.read()
    except OSError as e:
        raise HostMapError(f"Error opening {path}: {e}") from e

    host_map = parse_host_map(raw_text, source=path)
    for host in host_map:
        logger.info(f"Host mapping: {host} -> {host_map.resolve(host).base_url}")
    return host_map
