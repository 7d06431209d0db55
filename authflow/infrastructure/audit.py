# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

import json
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from authflow.infrastructure.db.models import AuditLog
from authflow.infrastructure.db.session import SessionFactory
from authflow.infrastructure.unit_of_work import unit_of_work_scope
from authflow.shared.logging import logger


class AuditAction(str, Enum):
    # Authentication
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"
    LOGOUT = "logout"

    # Signup
    SIGNUP = "signup"
    SIGNUP_REJECTED = "signup_rejected"
    ACCOUNT_ACTIVATED = "account_activated"
    ACTIVATION_RESENT = "activation_resent"

    # Passwords
    PASSWORD_CHANGED = "password_changed"
    PASSWORD_RESET_REQUESTED = "password_reset_requested"
    PASSWORD_RESET = "password_reset"

    # Capability links
    INVALID_LINK = "invalid_link"


_SENSITIVE_KEYS = {"password", "token", "secret", "key", "hash"}


def _sanitize_details(details: dict[str, Any]) -> dict[str, Any]:
    sanitized = {}
    for key, value in details.items():
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in _SENSITIVE_KEYS):
            sanitized[key] = "***REDACTED***"
        else:
            sanitized[key] = value
    return sanitized


class AuditTrail:
    """Writes security events to the log and, if configured, to ``audit_logs``."""

    def __init__(self, session_factory: SessionFactory | None = None) -> None:
        self._session_factory = session_factory

    def log(
        self,
        action: AuditAction,
        user_id: int | None = None,
        ip_address: str | None = None,
        details: dict[str, Any] | None = None,
        success: bool = True,
    ) -> None:
        timestamp = datetime.now(UTC)
        safe_details = _sanitize_details(details) if details else {}

        log_message = (
            f"AUDIT: {action.value} | "
            f"user_id={user_id} | "
            f"ip={ip_address} | "
            f"success={success}"
        )
        if safe_details:
            log_message += f" | details={safe_details}"

        if success:
            logger.info(log_message)
        else:
            logger.warning(log_message)

        if self._session_factory is not None:
            self._store(
                self._session_factory,
                timestamp,
                action,
                user_id,
                ip_address,
                success,
                safe_details,
            )

    def _store(
        self,
        session_factory: SessionFactory,
        timestamp: datetime,
        action: AuditAction,
        user_id: int | None,
        ip_address: str | None,
        success: bool,
        details: dict[str, Any],
    ) -> None:
        try:
            with unit_of_work_scope(session_factory) as session:
                session.add(
                    AuditLog(
                        timestamp=timestamp,
                        action=action.value,
                        user_id=user_id,
                        ip_address=ip_address,
                        success=success,
                        details_json=json.dumps(details) if details else None,
                    )
                )
        except Exception as exc:
            logger.warning(f"Failed to store audit log in database: {exc}")


__all__ = ["AuditAction", "AuditTrail"]
