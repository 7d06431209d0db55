# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from http import HTTPStatus

from authflow.shared.errors.base import DomainError


class InvalidCredentialsError(DomainError):
    code = "invalid_credentials"
    status = HTTPStatus.UNAUTHORIZED


class AccountNotActivatedError(DomainError):
    code = "account_not_activated"
    status = HTTPStatus.FORBIDDEN


class TokenError(DomainError):
    """Any reason a presented token id cannot be used.

    Callers outside the core see all subclasses as one invalid-link outcome.
    """

    code = "invalid_link"
    status = HTTPStatus.BAD_REQUEST
    reason = "token_invalid"


class TokenNotFoundError(TokenError):
    reason = "token_not_found"


class TokenExpiredError(TokenError):
    reason = "token_expired"


class TokenAlreadyConsumedError(TokenError):
    reason = "token_already_consumed"


class TokenIdCollisionError(DomainError):
    code = "token_id_collision"
    status = HTTPStatus.SERVICE_UNAVAILABLE


class DuplicateLoginError(DomainError):
    code = "duplicate_login"
    status = HTTPStatus.CONFLICT


class DuplicateEmailError(DomainError):
    code = "duplicate_email"
    status = HTTPStatus.CONFLICT


class UserNotFoundError(DomainError):
    code = "user_not_found"
    status = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, user_id: int | None = None) -> None:
        super().__init__()
        self.user_id = user_id


class HashFormatInvalidError(DomainError):
    code = "hash_format_invalid"
    status = HTTPStatus.INTERNAL_SERVER_ERROR


class PasswordTooLongError(DomainError):
    """bcrypt reads at most 72 bytes; longer passwords are refused, not cut."""

    code = "password_too_long"
    status = HTTPStatus.UNPROCESSABLE_ENTITY


__all__ = [
    "AccountNotActivatedError",
    "DuplicateEmailError",
    "DuplicateLoginError",
    "HashFormatInvalidError",
    "InvalidCredentialsError",
    "PasswordTooLongError",
    "TokenAlreadyConsumedError",
    "TokenError",
    "TokenExpiredError",
    "TokenIdCollisionError",
    "TokenNotFoundError",
    "UserNotFoundError",
]
