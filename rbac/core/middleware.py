"""HTTP middleware: CORS and the per-request access log."""

import logging
import time
import uuid

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from rbac.core.config import settings
from rbac.services.activity_service import client_ip

logger = logging.getLogger("rbac.access")

REQUEST_ID_HEADER = "X-Request-Id"
QUIET_PATHS = ("/", "/api/health", "/api/admin/health")


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Assign a request id, time the request and write one access log line.

    A client-supplied ``X-Request-Id`` is kept so calls can be traced across
    services. Rejected credentials and permission denials are logged as
    warnings together with the caller's address; health probes go to debug.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()

        response: Response = await call_next(request)

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Response-Time-Ms"] = str(elapsed_ms)

        status = response.status_code
        if status >= 500:
            level = logging.ERROR
        elif status in (401, 403):
            level = logging.WARNING
        elif request.url.path in QUIET_PATHS:
            level = logging.DEBUG
        else:
            level = logging.INFO
        logger.log(
            level,
            "%s %s -> %s in %sms from %s [%s]",
            request.method,
            request.url.path,
            status,
            elapsed_ms,
            client_ip(request),
            request_id,
        )
        return response


def setup_middleware(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.add_middleware(AccessLogMiddleware)
