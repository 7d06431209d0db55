# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import secrets
import time

from flask import Flask, Response, g, request, session

from authflow.shared.logging import (
    clear_correlation_id,
    logger,
    set_correlation_id,
    set_request_user,
)
from authflow.shared.logging.sensitive_filter import fingerprint


def _get_client_ip() -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote_addr or "unknown"


def _get_user_id() -> int | None:
    return session.get("user_id")


def _sanitize_headers(headers: dict[str, str]) -> dict[str, str]:
    sensitive_headers = {"authorization", "cookie", "x-api-key", "x-auth-token"}
    sanitized = {}
    for key, value in headers.items():
        if key.lower() in sensitive_headers:
            sanitized[key] = f"<hashed:{fingerprint(value)}>"
        else:
            sanitized[key] = value
    return sanitized


def _log_path() -> str:
    # capability links carry the token id as the last path segment
    for prefix in ("/auth/signup/activate/", "/auth/password/reset/"):
        if request.path.startswith(prefix):
            return f"{prefix}<token:{fingerprint(request.path[len(prefix):])}>"
    return request.path


def configure_request_logging(app: Flask, *, debug_mode: bool = False) -> None:
    @app.before_request
    def _before_request() -> None:
        set_correlation_id(request.headers.get("X-Request-ID") or secrets.token_urlsafe(8))
        set_request_user(_get_user_id())
        g.request_start_time = time.time()

        if debug_mode:
            headers = _sanitize_headers(dict(request.headers))
            logger.info(
                f"Request started: {request.method} {_log_path()} "
                f"from {_get_client_ip()}, user={_get_user_id()}, "
                f"headers={headers}, body_size={len(request.get_data())}"
            )
        else:
            logger.info(f"Request: {request.method} {_log_path()} from {_get_client_ip()}")

    @app.after_request
    def _after_request(response: Response) -> Response:
        duration = time.time() - getattr(g, "request_start_time", time.time())
        logger.info(
            f"Response: {request.method} {_log_path()} "
            f"status={response.status_code}, duration={duration:.3f}s"
        )
        return response

    @app.teardown_request
    def _teardown_request(exc: BaseException | None) -> None:
        if exc is not None:
            logger.error(
                f"Request error: {type(exc).__name__} on {request.method} {_log_path()}"
            )
        clear_correlation_id()


__all__ = ["configure_request_logging"]
