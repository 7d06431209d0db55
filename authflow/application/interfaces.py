# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from authflow.domain.users.entities import AuthToken, User


class NotificationPort(Protocol):
    """Delivers one rendered message; raising means it was not sent."""

    def send(self, to: str, subject: str, body: str) -> None: ...


class AccountNotices(Protocol):
    """Account mail as the use cases see it.

    Each method returns ``False`` instead of raising when delivery fails, so
    a mail outage never undoes the user or token change that preceded it.
    """

    def send_activation(self, user: User, token: AuthToken) -> bool: ...
    def send_password_reset(self, user: User, token: AuthToken) -> bool: ...
    def send_already_signed_up(self, email: str) -> bool: ...
    def send_password_changed(self, user: User, changed_at: datetime) -> bool: ...
