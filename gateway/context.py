import socket
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable

from fastapi import Request

from gateway import vars as settings
from gateway.host_map import HostMap, load_host_map, resolve_config_path


@dataclass(frozen=True)
class GatewayContext:
    """Process-wide, read-only state shared by every request handler."""

    host_map: HostMap
    hostname: str = field(default_factory=socket.gethostname)
    started_at: float = field(default_factory=time.monotonic)
    rewrite_forwarded_proto: bool = False
    add_request_id: bool = False
    request_id_suffix: str = ""
    default_timeout: int = 15
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    def uptime(self) -> timedelta:
        return timedelta(seconds=max(0.0, self.clock() - self.started_at))

    @classmethod
    def from_environment(cls) -> "GatewayContext":
        """Build the context from the environment; raises HostMapError on a bad config file."""
        config_path = resolve_config_path(settings.CONFIG_DIR, settings.CONFIG_FILE)
        return cls(
            host_map=load_host_map(config_path),
            rewrite_forwarded_proto=settings.REWRITE_X_FORWARD_PROTO,
            add_request_id=settings.ADD_X_REQUEST_ID,
            request_id_suffix=settings.REQUEST_ID_SUFFIX,
            default_timeout=settings.DEFAULT_HTTP_TIMEOUT,
        )


def get_context(request: Request) -> GatewayContext:
    return request.app.state.context


def format_duration(duration: timedelta) -> str:
    """Render a duration compactly, e.g. ``1h2m3.5s`` or ``850ms``."""
    total = duration.total_seconds()
    if total <= 0:
        return "0s"
    if total < 1:
        micros = duration // timedelta(microseconds=1)
        if micros < 1000:
            return f"{micros}µs"
        return f"{_trim(micros / 1000)}ms"

    hours, remainder = divmod(total, 3600)
    minutes, seconds = divmod(remainder, 60)
    parts = []
    if hours:
        parts.append(f"{int(hours)}h")
    if hours or minutes:
        parts.append(f"{int(minutes)}m")
    parts.append(f"{_trim(seconds)}s")
    return "".join(parts)


def _trim(value: float) -> str:
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return text or "0"
