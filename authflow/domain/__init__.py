# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from .exceptions import InvariantViolation, InvariantViolationError
from .users import AuthToken, Credentials, TokenPurpose, User

__all__ = [
    "AuthToken",
    "Credentials",
    "InvariantViolation",
    "InvariantViolationError",
    "TokenPurpose",
    "User",
]
