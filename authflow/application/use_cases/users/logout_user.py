# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

"""Use-case for dropping the session binding set by a successful login."""

from __future__ import annotations

from collections.abc import MutableMapping
from typing import Any

from authflow.shared.logging import logger

SESSION_USER_KEY = "user_id"


class LogoutUserUseCase:
    def execute(self, session: MutableMapping[str, Any]) -> int | None:
        user_id = session.pop(SESSION_USER_KEY, None)
        if user_id is not None:
            logger.info(f"auth.logout: ok user_id={user_id}")
        return user_id
