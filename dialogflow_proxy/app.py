"""FastAPI application for the Dialogflow proxy.

Usage (production):
    python main.py

Usage (development):
    uvicorn main:app --reload --port 8080
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Callable

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from dialogflow_proxy.config import CORS_HEADERS, CORS_METHODS, DETECT_INTENT_PATH, Settings
from dialogflow_proxy.errors import ProxyError, UpstreamFailure
from dialogflow_proxy.logging_config import (
    get_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from dialogflow_proxy.service import DetectIntentService
from dialogflow_proxy.upstream import DialogflowClient, create_client

logger = logging.getLogger(__name__)

router = APIRouter()


@dataclass
class ProxyContext:
    """Per-process state handed to the request handlers through app.state."""

    settings: Settings
    client: DialogflowClient
    service: DetectIntentService


def incoming_correlation_id(request: Request) -> str | None:
    """X-Request-ID, else the trace id from Cloud Run's X-Cloud-Trace-Context."""
    request_id = request.headers.get("x-request-id")
    if request_id:
        return request_id
    trace = request.headers.get("x-cloud-trace-context")
    if trace:
        return trace.split("/", 1)[0] or None
    return None


@router.get("/healthz", response_class=PlainTextResponse)
async def healthz() -> str:
    return "OK"


@router.post(DETECT_INTENT_PATH)
async def detect_intent(request: Request) -> Response:
    context: ProxyContext = request.app.state.context
    service = context.service
    timeout = context.settings.upstream_timeout_seconds

    payload = service.parse_payload(await request.body())

    # The SDK call blocks; run it off the loop so cancelling this request
    # (client gone, deadline hit) stops waiting on it.
    try:
        result = await asyncio.wait_for(
            asyncio.to_thread(
                service.detect_intent,
                payload,
                request.headers.get("authorization"),
            ),
            timeout=timeout,
        )
    except asyncio.TimeoutError as exc:
        raise UpstreamFailure(f"deadline of {timeout:g}s exceeded") from exc

    return Response(content=service.encode(result), media_type="application/json")


async def proxy_error_handler(request: Request, exc: ProxyError) -> PlainTextResponse:
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        level,
        "request_failed",
        extra={
            "method": request.method,
            "path": request.url.path,
            "status_code": exc.status_code,
            "error_type": type(exc).__name__,
            "detail": exc.detail,
        },
    )
    return PlainTextResponse(exc.detail, status_code=exc.status_code)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> PlainTextResponse:
    logger.warning(
        "request_rejected",
        extra={"method": request.method, "path": request.url.path, "status_code": exc.status_code},
    )
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=exc.headers)


def create_app(
    settings: Settings,
    client: DialogflowClient | None = None,
    client_factory: Callable[[Settings], DialogflowClient] = create_client,
) -> FastAPI:
    """Build the application.

    The Dialogflow client is opened when the lifespan starts (unless one is
    given) and always closed when it ends, including on SIGTERM under uvicorn.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        upstream = client if client is not None else client_factory(settings)
        app.state.context = ProxyContext(
            settings=settings,
            client=upstream,
            service=DetectIntentService(settings, upstream),
        )
        logger.info(
            "app_starting",
            extra={
                "port": settings.port,
                "allowed_origin": settings.allowed_origin,
                "backend": settings.backend.value,
            },
        )
        try:
            yield
        finally:
            logger.info("app_shutting_down")
            upstream.close()

    app = FastAPI(title="Dialogflow Proxy", version="1.0.0", lifespan=lifespan)
    app.include_router(router)
    app.add_exception_handler(ProxyError, proxy_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    # Preflights are answered here and never reach the routes.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.allowed_origin],
        allow_methods=CORS_METHODS,
        allow_headers=CORS_HEADERS,
    )

    # Outermost middleware: also sees the preflights answered by CORS.
    @app.middleware("http")
    async def bind_request_context(request: Request, call_next):
        token = set_correlation_id(incoming_correlation_id(request))
        try:
            if settings.cors_debug and "origin" in request.headers:
                logger.info(
                    "cors_request",
                    extra={
                        "method": request.method,
                        "path": request.url.path,
                        "origin": request.headers["origin"],
                        "requested_method": request.headers.get("access-control-request-method", ""),
                        "requested_headers": request.headers.get("access-control-request-headers", ""),
                    },
                )
            response = await call_next(request)
            response.headers["X-Request-ID"] = get_correlation_id()
            return response
        finally:
            reset_correlation_id(token)

    return app
