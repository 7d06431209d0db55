# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from .entities import AuthToken, TokenPurpose, User


class UserRepository(Protocol):
    def find_by_login(self, login: str) -> User | None: ...
    def find_by_id(self, user_id: int) -> User | None: ...

    def create(
        self,
        *,
        email: str,
        login: str,
        password_hash: str,
        first_name: str,
        last_name: str,
    ) -> User:
        """Persist a new, unactivated user.

        Raises ``DuplicateLoginError`` or ``DuplicateEmailError``.
        """
        ...

    def update(self, user: User) -> None: ...


class AuthTokenRepository(Protocol):
    def add(self, token: AuthToken) -> None:
        """Insert a token; raises ``TokenIdCollisionError`` if the id is taken."""
        ...

    def get(self, token_id: str) -> AuthToken | None: ...

    def remove(self, token_id: str) -> bool:
        """Delete a token, returning whether this call removed it."""
        ...

    def remove_for_user(self, user_id: int, purpose: TokenPurpose) -> int: ...
    def remove_expired(self, now: datetime) -> int: ...


class PasswordHasher(Protocol):
    def hash(self, password: str) -> str: ...
    def matches(self, hashed: str, candidate: str) -> bool: ...
    def needs_rehash(self, hashed: str) -> bool: ...
