"""
Plaintext and TLS listeners serving the same app.

Both listeners run as tasks of one ``asyncio.TaskGroup``. Whichever listener
ends first, by error or by returning, takes the whole group down: the other
listener is cancelled and the failure is raised to the caller. There is no
mode where one protocol keeps serving while the other is down.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import List, NoReturn, Optional, Sequence

import uvicorn

from gateway.utils.exception_logging import leaf_exceptions, log_exception_with_details

logger = logging.getLogger("uvicorn.error")


class ListenerStopped(Exception):
    """A listener's serve loop returned; the gateway never stops on purpose."""


class ListenerFailure(Exception):
    """Failure of one listener, surfaced to the entry point."""

    def __init__(self, listener: str, cause: BaseException):
        super().__init__(f"{listener} listener failed: {cause}")
        self.listener = listener
        self.cause = cause


@dataclass
class Listener:
    name: str
    port: int
    server: uvicorn.Server


def check_tls_material(certfile: str, keyfile: str) -> None:
    for path in (certfile, keyfile):
        if not os.path.isfile(path):
            raise FileNotFoundError(f"TLS file not found: {path}")


def build_listeners(
    app,
    host: str,
    http_port: int,
    https_port: int,
    certfile: str,
    keyfile: str,
    log_level: str = "info",
    limit_concurrency: Optional[int] = None,
) -> List[Listener]:
    http_config = uvicorn.Config(
        app,
        host=host,
        port=http_port,
        log_level=log_level,
        log_config=None,
        limit_concurrency=limit_concurrency,
    )
    https_config = uvicorn.Config(
        app,
        host=host,
        port=https_port,
        log_level=log_level,
        log_config=None,
        limit_concurrency=limit_concurrency,
        ssl_certfile=certfile,
        ssl_keyfile=keyfile,
    )
    return [
        Listener("HTTP", http_port, uvicorn.Server(http_config)),
        Listener("HTTPS", https_port, uvicorn.Server(https_config)),
    ]


async def _supervise(listener: Listener) -> NoReturn:
    logger.info(f"Starting {listener.name} service on :{listener.port}")
    try:
        await listener.server.serve()
    except Exception as e:
        raise ListenerFailure(listener.name, e) from e
    raise ListenerFailure(
        listener.name,
        ListenerStopped(f"{listener.name} service on :{listener.port} stopped"),
    )


async def run_listeners(listeners: Sequence[Listener]) -> NoReturn:
    """
    Run every listener until the first one ends.

    Raises:
        ListenerFailure: for the first listener that failed or returned.
    """
    try:
        async with asyncio.TaskGroup() as group:
            for listener in listeners:
                group.create_task(_supervise(listener), name=listener.name)
    except ExceptionGroup as errors:
        log_exception_with_details(logger, "[Listener]", errors)
        raise leaf_exceptions(errors)[0] from errors
    raise ListenerStopped("no listeners configured")
