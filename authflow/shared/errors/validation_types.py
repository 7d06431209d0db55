# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from enum import Enum


class ValidationErrorType(str, Enum):
    MISSING = "missing"
    LOGIN_INVALID_CHARS = "login_invalid_chars"
    PASSWORD_TOO_SHORT = "password_too_short"
    PASSWORD_TOO_LONG = "password_too_long"
    PASSWORDS_DO_NOT_MATCH = "passwords_do_not_match"


__all__ = ["ValidationErrorType"]
