import asyncio
import json
import logging
import re
import uuid
from typing import Dict, Optional

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from opentelemetry import trace

from gateway.context import GatewayContext, get_context
from gateway.models import ForwardEnvelope

router = APIRouter()
tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

URI_OVERRIDE_HEADER = "x-uri-override"
URI_OVERRIDE_REMOVE = "remove"
TIMEOUT_OVERRIDE_HEADER = "x-http-timeout"
FORWARDED_PROTO_HEADER = "x-forwarded-proto"
ORIGINAL_FORWARDED_PROTO_HEADER = "x-original-forwarded-proto"
REQUEST_ID_HEADER = "x-request-id"
SERVER_HEADER = "x-server"

DISCONNECT_POLL_INTERVAL = 0.5

# A string literal (kept) or a run of JSON whitespace (dropped).
JSON_WHITESPACE = re.compile(r'("(?:[^"\\]|\\.)*")|[ \t\r\n]+')


class ClientDisconnected(Exception):
    """The inbound client went away before the upstream call finished."""


def original_request_uri(request: Request) -> str:
    """The inbound request target as sent by the client: raw path plus query string."""
    raw_path = request.scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else request.url.path
    query_string = str(request.url.query)
    if query_string:
        path = f"{path}?{query_string}"
    return path


def resolve_outbound_path(request: Request) -> str:
    uri_override = request.headers.get(URI_OVERRIDE_HEADER, "")
    logger.info(f"{URI_OVERRIDE_HEADER}: {uri_override}")
    if not uri_override:
        return original_request_uri(request)
    if uri_override == URI_OVERRIDE_REMOVE:
        return ""
    return uri_override


def resolve_timeout(value: Optional[str], default: int) -> int:
    """Parse the timeout override header; anything but a positive integer falls back to the default."""
    if not value:
        return default
    digits = value[1:] if value[0] in "+-" else value
    if not (digits.isascii() and digits.isdigit()):
        logger.warning(f"{TIMEOUT_OVERRIDE_HEADER} is not a number: {value}")
        return default
    timeout = int(value)
    if timeout <= 0:
        logger.warning(f"{TIMEOUT_OVERRIDE_HEADER} must be positive: {value}")
        return default
    return timeout


def build_outbound_headers(request: Request, context: GatewayContext) -> Dict[str, str]:
    """
    Build the outbound header set. Inbound headers are not copied; the backend
    sees the original virtual host plus the gateway's own trace headers.
    """
    headers = {
        "host": request.headers.get("host", ""),
        SERVER_HEADER: context.hostname,
    }

    if context.rewrite_forwarded_proto:
        forwarded_proto = request.headers.get(FORWARDED_PROTO_HEADER, "")
        logger.info(f"{FORWARDED_PROTO_HEADER}: {forwarded_proto}")
        forwarded_proto = "https" if forwarded_proto == "https" else "http"
        logger.info(
            f"Adding {ORIGINAL_FORWARDED_PROTO_HEADER} ({forwarded_proto}) to http request"
        )
        headers[ORIGINAL_FORWARDED_PROTO_HEADER] = forwarded_proto

    if context.add_request_id:
        request_id = f"{uuid.uuid4()}{context.request_id_suffix}"
        logger.info(f"Adding {REQUEST_ID_HEADER} ({request_id}) to http request")
        headers[REQUEST_ID_HEADER] = request_id

    return headers


def _reject_constant(name: str):
    raise ValueError(f"invalid JSON literal: {name}")


def compact_json(text: str) -> str:
    """
    Drop insignificant whitespace from a valid JSON document.

    Tokens are copied as written: number lexemes, duplicate keys and string
    escapes reach the caller unchanged.
    """
    return JSON_WHITESPACE.sub(lambda match: match.group(1) or "", text)


def normalize_upstream_body(body: bytes) -> str:
    """Compact a JSON body for the envelope; anything else is passed through as text."""
    if not body:
        logger.info("Body: No Body Supplied")
        return ""
    text = body.decode("utf-8", errors="replace")
    try:
        parsed = json.loads(text, parse_constant=_reject_constant)
    except (ValueError, RecursionError) as e:
        logger.warning(f"Failed Parsing JSON Body: {e}")
        logger.debug(f"Response:\n{text}")
        return text
    if logger.isEnabledFor(logging.DEBUG):
        pretty = json.dumps(parsed, indent="\t", ensure_ascii=False)
        logger.debug(f"Response:\n{pretty}")
    return compact_json(text)


def envelope_response(
    envelope: ForwardEnvelope, status_code: int, context: GatewayContext
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=envelope.to_content(),
        headers={SERVER_HEADER: context.hostname},
    )


async def _wait_for_disconnect(request: Request) -> None:
    while not await request.is_disconnected():
        await asyncio.sleep(DISCONNECT_POLL_INTERVAL)


async def _cancel_on_disconnect(request: Request, call) -> httpx.Response:
    upstream = asyncio.ensure_future(call)
    watcher = asyncio.ensure_future(_wait_for_disconnect(request))
    try:
        done, _ = await asyncio.wait(
            {upstream, watcher}, return_when=asyncio.FIRST_COMPLETED
        )
    except asyncio.CancelledError:
        upstream.cancel()
        watcher.cancel()
        raise

    if upstream in done:
        watcher.cancel()
    else:
        error = watcher.exception()
        if error is None:
            upstream.cancel()
            raise ClientDisconnected(
                "client disconnected before the upstream responded"
            )
        logger.warning(f"Stopped watching for client disconnect: {error}")
    return await upstream


async def _send_upstream(
    method: str, url: str, headers: Dict[str, str], body: bytes, timeout: int
) -> httpx.Response:
    # Backends are trusted without certificate validation.
    async with httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        verify=False,
        trust_env=False,
        follow_redirects=True,
    ) as client:
        return await asyncio.wait_for(
            client.request(method=method, url=url, headers=headers, content=body),
            timeout=timeout,
        )


async def forward_request(request: Request, context: GatewayContext) -> Response:
    """
    Forward one inbound request to the backend mapped for its Host header and
    wrap the upstream answer in a JSON envelope.
    """
    host = request.headers.get("host", "")
    logger.info(
        f"Handling {request.method} request : {context.hostname} {host} {request.url.path}"
    )

    with tracer.start_as_current_span("forward_request") as span:
        span.set_attribute("gateway.host", host)
        span.set_attribute("gateway.method", request.method)

        entry = context.host_map.resolve(host)
        if entry is None:
            logger.warning(f"Unable to find host mapping for: {host}")
            span.set_attribute("gateway.error", "unmapped_host")
            return envelope_response(ForwardEnvelope.failure(), 503, context)
        logger.info(f"Found host mapping for: {host} - Address : {entry.address}")

        target_url = entry.base_url + resolve_outbound_path(request)
        timeout_override = request.headers.get(TIMEOUT_OVERRIDE_HEADER)
        logger.info(f"{TIMEOUT_OVERRIDE_HEADER}: {timeout_override}")
        timeout = resolve_timeout(timeout_override, context.default_timeout)
        headers = build_outbound_headers(request, context)
        span.set_attribute("gateway.target_url", target_url)

        body = await request.body()

        logger.info(f"Making http request: {target_url} with host {host}")
        try:
            response = await _cancel_on_disconnect(
                request,
                _send_upstream(request.method, target_url, headers, body, timeout),
            )
        except ClientDisconnected as e:
            logger.warning(f"Abandoned http request {target_url}: {e}")
            span.set_attribute("gateway.error", "client_disconnected")
            return envelope_response(ForwardEnvelope.failure(str(e)), 503, context)
        except asyncio.TimeoutError:
            error = f"request to {target_url} exceeded timeout of {timeout}s"
            logger.error(f"Error making http request: {error}")
            span.set_attribute("gateway.error", "timeout")
            return envelope_response(ForwardEnvelope.failure(error), 503, context)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            error = str(e) or type(e).__name__
            logger.error(f"Error making http request: {error}")
            span.set_attribute("gateway.error", error)
            return envelope_response(ForwardEnvelope.failure(error), 503, context)

        logger.info(f"Http request: {target_url} - StatusCode: {response.status_code}")
        span.set_attribute("gateway.status_code", response.status_code)

        upstream_response = normalize_upstream_body(response.content)
        return envelope_response(
            ForwardEnvelope.success(upstream_response), 200, context
        )


async def forward_all(request: Request) -> Response:
    """Catch-all route that forwards every request to its mapped backend."""
    return await forward_request(request, get_context(request))


# No method list: extension methods (PURGE, PROPFIND, ...) are forwarded too.
router.add_route("/{path:path}", forward_all, include_in_schema=False)
