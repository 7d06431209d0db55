# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from .entities import AuthToken, Credentials, TokenPurpose, User
from .repositories import AuthTokenRepository, PasswordHasher, UserRepository

__all__ = [
    "AuthToken",
    "AuthTokenRepository",
    "Credentials",
    "PasswordHasher",
    "TokenPurpose",
    "User",
    "UserRepository",
]
