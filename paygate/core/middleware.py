"""
Request/response logging middleware.

The body is read once and cached on request.state.body so the settlement
signature check and the route handlers can both see it. Bodies are only
logged for non-sensitive paths, after recursive redaction of secrets such
as generated wallet keys.
"""

import time
import uuid
import logging
import json
from typing import Any, Callable, Set
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from paygate.core.monitoring import error_monitor


SENSITIVE_KEYS: Set[str] = {
    "password", "token", "access_token", "auth_token", "bearer",
    "secret", "secret_key", "api_key", "apikey",
    "authorization", "cookie", "session",
    "hmac", "signature", "x_signature",
    "private_key", "privatekey", "wif", "seed", "mnemonic",
    "wallet_for_transaction",
}

SENSITIVE_HEADERS: Set[str] = {
    "authorization", "cookie", "set-cookie",
    "x-signature", "x-api-key", "x-monitoring-key",
}

# Settlement notifications are signed; generate-wallet responses carry addresses
SENSITIVE_PATHS = ("/payments/", "/transactions/generate-wallet")

MAX_LOGGED_BODY_BYTES = 10000


def _sanitize_value(data: Any, depth: int = 0) -> Any:
    """Recursively redact sensitive keys from dicts and lists."""
    if depth > 10:
        return "[DEPTH_LIMIT]"

    if isinstance(data, dict):
        return {
            key: "[REDACTED]" if key.lower() in SENSITIVE_KEYS else _sanitize_value(value, depth + 1)
            for key, value in data.items()
        }

    if isinstance(data, list):
        return [_sanitize_value(item, depth + 1) for item in data]

    return data


def _sanitize_headers(headers: dict) -> dict:
    return {name: "[REDACTED]" if name.lower() in SENSITIVE_HEADERS else value for name, value in headers.items()}


def _status_level(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id and logs its start, outcome and duration."""

    def __init__(self, app, logger_name: str = "paygate.requests", log_bodies: bool = True):
        super().__init__(app)
        self.logger = logging.getLogger(logger_name)
        self.log_bodies = log_bodies

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.time()
        request_id = request.headers.get("x-request-id") or f"req_{uuid.uuid4().hex[:16]}"
        request.state.request_id = request_id
        await self._cache_body(request)

        label = f"[{request_id}] {request.method} {request.url.path}"
        self.logger.info(
            f"{label} - started",
            extra={
                "request_id": request_id,
                "client_ip": request.client.host if request.client else "unknown",
                "query_params": _sanitize_value(dict(request.query_params)),
            },
        )
        self._log_body(request, label)

        try:
            response = await call_next(request)
        except Exception as e:
            error_monitor.log_error(e, {
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "process_time": time.time() - started,
                "context": "middleware_error",
            })
            raise

        elapsed = time.time() - started
        self.logger.log(
            _status_level(response.status_code),
            f"{label} - {response.status_code} - {elapsed:.3f}s",
            extra={
                "request_id": request_id,
                "status_code": response.status_code,
                "process_time": elapsed,
                "response_headers": _sanitize_headers(dict(response.headers)),
            },
        )
        response.headers["X-Request-ID"] = request_id
        return response

    @staticmethod
    async def _cache_body(request: Request):
        """Read the body once and replay it to the route."""
        body = await request.body()
        request.state.body = body

        async def receive():
            return {"type": "http.request", "body": body}

        request._receive = receive

    def _log_body(self, request: Request, label: str):
        body = request.state.body
        if not self.log_bodies or request.method not in ("POST", "PUT", "PATCH") or not body:
            return
        if request.url.path.startswith(SENSITIVE_PATHS) or len(body) > MAX_LOGGED_BODY_BYTES:
            return

        try:
            parsed = json.loads(body.decode())
        except (json.JSONDecodeError, UnicodeDecodeError):
            return
        self.logger.debug(f"{label} - body: {json.dumps(_sanitize_value(parsed))}")
