# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

"""Typed results of the authentication flows.

Each flow returns one of these instead of a message string. ``message_key``
is a stable identifier the presentation layer maps to user-facing text;
outcomes that must look identical from outside share the same key.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar


class RejectionReason(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_NOT_ACTIVATED = "account_not_activated"
    INVALID_LINK = "invalid_link"
    DUPLICATE_LOGIN = "duplicate_login"
    DUPLICATE_EMAIL = "duplicate_email"


_REJECTION_KEYS = {
    RejectionReason.INVALID_CREDENTIALS: "login.invalid.credentials",
    RejectionReason.ACCOUNT_NOT_ACTIVATED: "login.account.not.activated",
    RejectionReason.INVALID_LINK: "link.invalid.or.expired",
    RejectionReason.DUPLICATE_LOGIN: "signup.login.taken",
    # A duplicate e-mail looks like a successful signup to the caller.
    RejectionReason.DUPLICATE_EMAIL: "signup.activation.sent",
}


@dataclass(slots=True, frozen=True)
class Verified:
    user_id: int
    message_key: ClassVar[str] = "login.success"


@dataclass(slots=True, frozen=True)
class Rejected:
    reason: RejectionReason

    @property
    def message_key(self) -> str:
        return _REJECTION_KEYS[self.reason]


@dataclass(slots=True, frozen=True)
class AwaitingActivation:
    user_id: int
    email: str
    message_key: ClassVar[str] = "signup.activation.sent"


@dataclass(slots=True, frozen=True)
class Activated:
    user_id: int
    message_key: ClassVar[str] = "signup.activated"


@dataclass(slots=True, frozen=True)
class Changed:
    user_id: int
    message_key: ClassVar[str] = "password.changed"


@dataclass(slots=True, frozen=True)
class LinkSent:
    message_key: ClassVar[str] = "reset.email.sent"


@dataclass(slots=True, frozen=True)
class Silent:
    message_key: ClassVar[str] = "reset.email.sent"


@dataclass(slots=True, frozen=True)
class Reset:
    user_id: int
    message_key: ClassVar[str] = "password.reset"


@dataclass(slots=True, frozen=True)
class ActivationResent:
    message_key: ClassVar[str] = "activation.email.resent"


LoginOutcome = Verified | Rejected
SignUpOutcome = AwaitingActivation | Rejected
ActivationOutcome = Activated | Rejected
ForgotOutcome = LinkSent | Silent
ResetOutcome = Reset | Rejected


__all__ = [
    "Activated",
    "ActivationOutcome",
    "ActivationResent",
    "AwaitingActivation",
    "Changed",
    "ForgotOutcome",
    "LinkSent",
    "LoginOutcome",
    "Rejected",
    "RejectionReason",
    "Reset",
    "ResetOutcome",
    "SignUpOutcome",
    "Silent",
    "Verified",
]
