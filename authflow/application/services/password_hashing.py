# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

"""Password hashing strategies."""

from __future__ import annotations

import re

import bcrypt

from authflow.domain.users.exceptions import HashFormatInvalidError, PasswordTooLongError
from authflow.domain.users.repositories import PasswordHasher

DEFAULT_LOG_ROUNDS = 10

# bcrypt only consumes the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72
_BCRYPT_HASH = re.compile(r"^\$2[abxy]?\$(\d{2})\$[./A-Za-z0-9]{53}$")


def _encode(password: str) -> bytes:
    return password.encode("utf-8")


class BcryptPasswordHasher(PasswordHasher):
    """Salted bcrypt hashes; salt and cost are embedded in the stored string.

    ``log_rounds`` is the log2 of the number of hashing rounds, so each
    increment doubles the time needed per guess.
    """

    def __init__(self, log_rounds: int = DEFAULT_LOG_ROUNDS) -> None:
        if not 4 <= log_rounds <= 31:
            raise ValueError(f"log_rounds must be between 4 and 31, got {log_rounds}")
        self._log_rounds = log_rounds

    @property
    def log_rounds(self) -> int:
        return self._log_rounds

    def hash(self, password: str) -> str:
        encoded = _encode(password)
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise PasswordTooLongError(context={"max_bytes": MAX_PASSWORD_BYTES})
        salt = bcrypt.gensalt(rounds=self._log_rounds)
        return bcrypt.hashpw(encoded, salt).decode("ascii")

    def matches(self, hashed: str, candidate: str) -> bool:
        if not isinstance(hashed, str) or not _BCRYPT_HASH.match(hashed):
            raise HashFormatInvalidError()
        encoded = _encode(candidate)
        # Nothing longer than the limit was ever hashed; still pay for one check.
        too_long = len(encoded) > MAX_PASSWORD_BYTES
        try:
            matched = bcrypt.checkpw(encoded[:MAX_PASSWORD_BYTES], hashed.encode("ascii"))
        except ValueError as exc:
            raise HashFormatInvalidError() from exc
        return matched and not too_long

    @staticmethod
    def cost_of(hashed: str) -> int:
        """Return the log rounds a stored hash was produced with."""
        found = _BCRYPT_HASH.match(hashed or "")
        if not found:
            raise HashFormatInvalidError()
        return int(found.group(1))

    def needs_rehash(self, hashed: str) -> bool:
        return self.cost_of(hashed) != self._log_rounds
