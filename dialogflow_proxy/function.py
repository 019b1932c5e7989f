"""HTTP Cloud Function exposing the same contract as the FastAPI app.

Deploy with ``--entry-point dialogflow_proxy_webhook``; main.py re-exports it.
"""

from __future__ import annotations

import atexit
import logging
from functools import lru_cache

import functions_framework
from flask import Request

from dialogflow_proxy.config import (
    CORS_HEADERS,
    CORS_METHODS,
    DETECT_INTENT_PATH,
    Settings,
    get_settings,
)
from dialogflow_proxy.errors import MethodNotAllowed, ProxyError
from dialogflow_proxy.logging_config import (
    get_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from dialogflow_proxy.service import DetectIntentService
from dialogflow_proxy.upstream import create_client

logger = logging.getLogger(__name__)

Reply = tuple[str | bytes, int, dict[str, str]]


@lru_cache(maxsize=1)
def get_service() -> DetectIntentService:
    """One client per function instance, closed when the instance exits."""
    settings = get_settings()
    client = create_client(settings)
    atexit.register(client.close)
    return DetectIntentService(settings, client)


def cors_headers(settings: Settings, origin: str | None) -> dict[str, str]:
    if settings.allowed_origin == "*":
        return {"Access-Control-Allow-Origin": "*"}
    if origin == settings.allowed_origin:
        return {"Access-Control-Allow-Origin": origin, "Vary": "Origin"}
    return {}


def handle_request(request: Request, service: DetectIntentService) -> Reply:
    settings = service.settings
    headers = cors_headers(settings, request.headers.get("Origin"))
    path = request.path.rstrip("/")

    if settings.cors_debug and request.headers.get("Origin"):
        logger.info(
            "cors_request",
            extra={"method": request.method, "path": path, "origin": request.headers["Origin"]},
        )

    # 1. Preflight
    if request.method == "OPTIONS":
        headers.update(
            {
                "Access-Control-Allow-Methods": ", ".join(CORS_METHODS),
                "Access-Control-Allow-Headers": ", ".join(CORS_HEADERS),
                "Access-Control-Max-Age": "600",
            }
        )
        return "", 204, headers

    # 2. Health check
    if path == "/healthz":
        return "OK", 200, {**headers, "Content-Type": "text/plain; charset=utf-8"}

    # 3. Detect intent. A function URL has no routing of its own, so the root
    # path is accepted as well.
    try:
        if request.method != "POST":
            raise MethodNotAllowed(request.method)
        if path not in ("", DETECT_INTENT_PATH):
            return "Not Found", 404, {**headers, "Content-Type": "text/plain; charset=utf-8"}

        payload = service.parse_payload(request.get_data())
        response = service.detect_intent(payload, request.headers.get("Authorization"))
        body = service.encode(response)
    except ProxyError as exc:
        level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
        logger.log(
            level,
            "request_failed",
            extra={
                "method": request.method,
                "path": path,
                "status_code": exc.status_code,
                "error_type": type(exc).__name__,
                "detail": exc.detail,
            },
        )
        return exc.detail, exc.status_code, {**headers, "Content-Type": "text/plain; charset=utf-8"}

    return body, 200, {**headers, "Content-Type": "application/json"}


@functions_framework.http
def dialogflow_proxy_webhook(request: Request) -> Reply:
    """Cloud Function entry point for the Dialogflow proxy."""
    token = set_correlation_id(request.headers.get("X-Request-ID"))
    try:
        body, status, headers = handle_request(request, get_service())
        headers["X-Request-ID"] = get_correlation_id()
        return body, status, headers
    finally:
        reset_correlation_id(token)
