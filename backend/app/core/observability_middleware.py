from __future__ import annotations

import json
import logging
from time import perf_counter
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response
from starlette.routing import Match

from app.services.observability import observability_tracker

logger = logging.getLogger("tankplanner.request")


def _route_template(request: Request) -> str:
    # the outer middleware scope never sees the matched route, so match again
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return getattr(route, "path", request.url.path)
    return request.url.path


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        request_id = request.headers.get("X-Request-ID") or str(uuid4())
        request.state.request_id = request_id
        started = perf_counter()
        failed = False

        try:
            response = await call_next(request)
        except Exception:
            failed = True
            response = JSONResponse(
                status_code=500,
                content={"detail": "Internal server error", "request_id": request_id},
            )

        duration_ms = (perf_counter() - started) * 1000
        path = _route_template(request)
        observability_tracker.record(
            method=request.method,
            path=path,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )

        payload = json.dumps(
            {
                "event": "request_error" if failed else "request_completed",
                "request_id": request_id,
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
                "user_id": getattr(request.state, "user_id", None),
                "tenant_id": getattr(request.state, "tenant_id", None),
            }
        )
        if failed:
            logger.exception(payload)
        elif response.status_code >= 500:
            logger.error(payload)
        elif response.status_code >= 400:
            logger.warning(payload)
        else:
            logger.info(payload)

        response.headers["X-Request-ID"] = request_id
        return response
