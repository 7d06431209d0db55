# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import re

from flask import Flask, Response, jsonify
from werkzeug.exceptions import HTTPException

from authflow.shared.errors import register_error_handler

# Headers of the werkzeug response worth keeping on the JSON one.
_FORWARDED_HEADERS = ("Allow", "Retry-After", "WWW-Authenticate")


def http_error_code(exc: HTTPException) -> str:
    """``"Method Not Allowed"`` -> ``"method_not_allowed"``."""
    name = exc.name or "http_error"
    return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")


def _http_error_as_json(exc: HTTPException) -> tuple[Response, int]:
    response = jsonify({"error": http_error_code(exc)})
    original = exc.get_response()
    for header in _FORWARDED_HEADERS:
        if header in original.headers:
            response.headers[header] = original.headers[header]
    return response, exc.code or 500


def configure_error_handling(app: Flask, *, debug_mode: bool = False) -> None:
    """Every error leaves the API as a JSON body, including werkzeug's 404/405."""
    register_error_handler(app, debug_mode=debug_mode)
    app.register_error_handler(HTTPException, _http_error_as_json)


__all__ = ["configure_error_handling", "http_error_code"]
