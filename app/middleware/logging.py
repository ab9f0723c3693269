"""Structured logging middleware for FastAPI requests."""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from app.config.settings import settings

logger = logging.getLogger("app.middleware.structured")


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Emit structured JSON logs for each HTTP request."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start_time = time.perf_counter()
        log_payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "method": request.method,
            "url": str(request.url),
            "client_ip": request.client.host if request.client else None,
        }

        try:
            response = await call_next(request)
        except Exception as exc:
            log_payload["status_code"] = 500
            log_payload["duration_ms"] = self._elapsed_ms(start_time)
            log_payload["error"] = repr(exc)
            logger.exception(json.dumps(log_payload, default=str))
            raise

        route = request.scope.get("route")
        log_payload["route"] = getattr(route, "path", None)
        log_payload["status_code"] = response.status_code
        log_payload["duration_ms"] = self._elapsed_ms(start_time)
        logger.info(json.dumps(log_payload, default=str))
        await self._persist_log(log_payload)
        return response

    @staticmethod
    def _elapsed_ms(start_time: float) -> float:
        """Return elapsed milliseconds rounded to two decimals."""

        return round((time.perf_counter() - start_time) * 1000, 2)

    async def _persist_log(self, payload: dict[str, Any]) -> None:
        """Store the request log row when the database backend is enabled."""

        if not settings.persist_request_logs or settings.storage_backend != "database":
            return

        if payload.get("status_code") == 307:
            return

        from app.database import session_scope
        from app.models.log import RequestLog

        timestamp_value = datetime.fromisoformat(payload["timestamp"])
        timestamp_value = timestamp_value.astimezone(timezone.utc).replace(tzinfo=None)

        async with session_scope() as session:
            session.add(
                RequestLog(
                    timestamp=timestamp_value,
                    method=payload.get("method"),
                    url=payload.get("url"),
                    route=payload.get("route"),
                    status_code=payload.get("status_code", 0),
                    client_ip=payload.get("client_ip"),
                    duration_ms=int(payload.get("duration_ms") or 0),
                )
            )
            try:
                await session.commit()
            except Exception:
                await session.rollback()
                logger.exception("Failed to persist request log entry")
