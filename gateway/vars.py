import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "host-forward-gateway")

CONFIG_DIR = os.environ.get("CONFIG_DIR", "")
CONFIG_FILE = os.environ.get("CONFIG_FILE", "config.yaml")

LISTEN_HOST = os.environ.get("LISTEN_HOST", "0.0.0.0")
HTTP_PORT = int(os.environ.get("HTTP_PORT", "8080"))
HTTPS_PORT = int(os.environ.get("HTTPS_PORT", "8443"))
TLS_CERT_FILE = os.environ.get("TLS_CERT_FILE", "server.crt")
TLS_KEY_FILE = os.environ.get("TLS_KEY_FILE", "server.key")

REWRITE_X_FORWARD_PROTO = (
    os.getenv("REWRITE_X_FORWARD_PROTO", "false").lower() == "true"
)
ADD_X_REQUEST_ID = os.getenv("ADD_X_REQUEST_ID", "false").lower() == "true"
REQUEST_ID_SUFFIX = os.getenv("REQUEST_ID_SUFFIX", "")

DEFAULT_HTTP_TIMEOUT = int(os.getenv("DEFAULT_HTTP_TIMEOUT", "15"))
LIMIT_CONCURRENCY = int(os.getenv("LIMIT_CONCURRENCY", "0")) or None

LOG_LEVEL = os.getenv("LOG_LEVEL", "info").lower()

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")

METRICS_PORT = int(os.getenv("METRICS_PORT", "0")) or None
