from .host_map import (
    HostMap,
    HostMapEntry,
    HostMapError,
    load_host_map,
    parse_host_map,
    resolve_config_path,
)

__all__ = [
    "HostMap",
    "HostMapEntry",
    "HostMapError",
    "load_host_map",
    "parse_host_map",
    "resolve_config_path",
]
