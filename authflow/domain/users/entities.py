# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

"""Identity records and the single-use grants bound to them."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from authflow.domain.exceptions import InvariantViolation


@dataclass(slots=True, frozen=True)
class User:
    """A user record as owned by the user repository.

    ``id`` stays ``None`` until the record has been persisted.
    """

    id: int | None
    login: str
    email: str
    password_hash: str = field(repr=False)
    activated: bool = False
    first_name: str = ""
    last_name: str = ""

    def __post_init__(self) -> None:
        if not self.login:
            raise InvariantViolation("login must not be empty", field="login")
        if not self.email:
            raise InvariantViolation("email must not be empty", field="email")

    @property
    def full_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.login


@dataclass(slots=True, frozen=True)
class Credentials:
    """A login name and plaintext password, held only for the current request."""

    login: str
    password: str = field(repr=False)


class TokenPurpose(str, Enum):
    ACTIVATION = "activation"
    PASSWORD_RESET = "password_reset"


@dataclass(slots=True, frozen=True)
class AuthToken:
    """A pending activation or password-reset grant.

    ``id`` is the bearer capability carried by emailed links. A token is
    valid while ``now < expiry`` and it has not been deleted; deletion and
    consumption are the same event.
    """

    id: str = field(repr=False)
    uid: int
    expiry: datetime
    purpose: TokenPurpose

    def __post_init__(self) -> None:
        if not self.id:
            raise InvariantViolation("token id must not be empty", field="id")
        if self.expiry.tzinfo is None:
            raise InvariantViolation("expiry must be timezone aware", field="expiry")

    def is_valid(self, now: datetime) -> bool:
        return now < self.expiry
