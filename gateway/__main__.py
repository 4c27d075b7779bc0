import asyncio
import logging
import logging.config
import sys

from uvicorn.config import LOGGING_CONFIG

from gateway import __version__
from gateway import vars as settings
from gateway.context import GatewayContext
from gateway.host_map import HostMapError
from gateway.listener import (
    ListenerFailure,
    build_listeners,
    check_tls_material,
    run_listeners,
)
from gateway.server import configure_tracing, create_app, start_metrics_server
from gateway.utils import format_exception_message

logger = logging.getLogger("uvicorn.error")


def main() -> int:
    logging.config.dictConfig(LOGGING_CONFIG)
    logger.setLevel(settings.LOG_LEVEL.upper())
    logger.info(f"Version {__version__}")

    try:
        context = GatewayContext.from_environment()
        check_tls_material(settings.TLS_CERT_FILE, settings.TLS_KEY_FILE)
    except (HostMapError, FileNotFoundError) as e:
        logger.critical(f"Unable to start gateway: {e}")
        return 1

    configure_tracing()
    app = create_app(context)
    if settings.METRICS_PORT:
        start_metrics_server(app, settings.METRICS_PORT)

    logger.warning("Backend TLS certificates are not verified")
    listeners = build_listeners(
        app,
        host=settings.LISTEN_HOST,
        http_port=settings.HTTP_PORT,
        https_port=settings.HTTPS_PORT,
        certfile=settings.TLS_CERT_FILE,
        keyfile=settings.TLS_KEY_FILE,
        log_level=settings.LOG_LEVEL,
        limit_concurrency=settings.LIMIT_CONCURRENCY,
    )
    try:
        asyncio.run(run_listeners(listeners))
    except ListenerFailure as e:
        logger.critical(
            f"Could not keep serving service due to (error: {format_exception_message(e)})"
        )
    return 1


if __name__ == "__main__":
    sys.exit(main())
