# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from http import HTTPStatus
from typing import TypeVar

from flask import Blueprint, Response, jsonify, request, session
from pydantic import BaseModel, ValidationError

from authflow.application.use_cases.users.activate_user import ActivateUserUseCase
from authflow.application.use_cases.users.change_password import ChangePasswordUseCase
from authflow.application.use_cases.users.forgot_password import ForgotPasswordUseCase
from authflow.application.use_cases.users.login_user import LoginUserUseCase
from authflow.application.use_cases.users.logout_user import (
    SESSION_USER_KEY,
    LogoutUserUseCase,
)
from authflow.application.use_cases.users.outcomes import (
    Activated,
    LinkSent,
    Rejected,
    RejectionReason,
    Reset,
    Verified,
)
from authflow.application.use_cases.users.register_user import (
    RegisterUserUseCase,
    SignUpRequest,
)
from authflow.application.use_cases.users.resend_activation import ResendActivationUseCase
from authflow.application.use_cases.users.reset_password import ResetPasswordUseCase
from authflow.domain.users.entities import Credentials
from authflow.infrastructure.audit import AuditAction, AuditTrail
from authflow.interfaces.http.dto.auth import (
    ChangePasswordRequestDTO,
    LoginNameDTO,
    LoginRequestDTO,
    ResetPasswordRequestDTO,
    SignUpRequestDTO,
)
from authflow.shared.config import SecurityConfig
from authflow.shared.errors import UnauthorizedError
from authflow.shared.errors.validation import raise_validation_error
from authflow.shared.logging import fingerprint, set_request_user
from authflow.shared.middleware.rate_limit import client_address, rate_limit

_DTO = TypeVar("_DTO", bound=BaseModel)

# Duplicate e-mail answers exactly like a successful signup.
_REJECTION_STATUS = {
    RejectionReason.INVALID_CREDENTIALS: HTTPStatus.UNAUTHORIZED,
    RejectionReason.ACCOUNT_NOT_ACTIVATED: HTTPStatus.FORBIDDEN,
    RejectionReason.INVALID_LINK: HTTPStatus.BAD_REQUEST,
    RejectionReason.DUPLICATE_LOGIN: HTTPStatus.CONFLICT,
    RejectionReason.DUPLICATE_EMAIL: HTTPStatus.OK,
}


def _parse(dto_type: type[_DTO]) -> _DTO:
    try:
        return dto_type.model_validate(request.get_json(silent=True) or {})
    except ValidationError as exc:
        raise_validation_error(exc)


def _message(key: str, status: HTTPStatus = HTTPStatus.OK, **extra) -> tuple[Response, int]:
    return jsonify({"message": key, **extra}), status


def _rejected(outcome: Rejected) -> tuple[Response, int]:
    status = _REJECTION_STATUS[outcome.reason]
    if status == HTTPStatus.OK:
        return _message(outcome.message_key)
    return jsonify({"error": outcome.reason.value, "message": outcome.message_key}), status


class AuthController:
    def __init__(
        self,
        *,
        register_use_case: RegisterUserUseCase,
        activate_use_case: ActivateUserUseCase,
        resend_activation_use_case: ResendActivationUseCase,
        login_use_case: LoginUserUseCase,
        logout_use_case: LogoutUserUseCase,
        change_password_use_case: ChangePasswordUseCase,
        forgot_password_use_case: ForgotPasswordUseCase,
        reset_password_use_case: ResetPasswordUseCase,
        audit: AuditTrail,
        security: SecurityConfig,
    ) -> None:
        self._register_use_case = register_use_case
        self._activate_use_case = activate_use_case
        self._resend_activation_use_case = resend_activation_use_case
        self._login_use_case = login_use_case
        self._logout_use_case = logout_use_case
        self._change_password_use_case = change_password_use_case
        self._forgot_password_use_case = forgot_password_use_case
        self._reset_password_use_case = reset_password_use_case
        self._audit = audit
        self._security = security

    def _client_ip(self) -> str:
        return client_address(request, trust_forwarded_for=self._security.trust_forwarded_for)

    def signup(self) -> tuple[Response, int]:
        dto = _parse(SignUpRequestDTO)
        outcome = self._register_use_case.execute(
            SignUpRequest(
                login=dto.login,
                email=dto.email,
                password=dto.password,
                first_name=dto.first_name,
                last_name=dto.last_name,
            )
        )
        if isinstance(outcome, Rejected):
            self._audit.log(
                AuditAction.SIGNUP_REJECTED,
                ip_address=self._client_ip(),
                details={"login_fp": fingerprint(dto.login), "reason": outcome.reason.value},
                success=False,
            )
            return _rejected(outcome)

        self._audit.log(
            AuditAction.SIGNUP,
            user_id=outcome.user_id,
            ip_address=self._client_ip(),
            details={"login": dto.login},
        )
        return _message(outcome.message_key)

    def activate(self, token_id: str) -> tuple[Response, int]:
        outcome = self._activate_use_case.execute(token_id)
        if isinstance(outcome, Activated):
            self._audit.log(
                AuditAction.ACCOUNT_ACTIVATED,
                user_id=outcome.user_id,
                ip_address=self._client_ip(),
            )
            return _message(outcome.message_key)

        self._audit.log(
            AuditAction.INVALID_LINK,
            ip_address=self._client_ip(),
            details={"flow": "activation"},
            success=False,
        )
        return _rejected(outcome)

    def resend_activation(self) -> tuple[Response, int]:
        dto = _parse(LoginNameDTO)
        outcome = self._resend_activation_use_case.execute(dto.login)
        self._audit.log(
            AuditAction.ACTIVATION_RESENT,
            ip_address=self._client_ip(),
            details={"login_fp": fingerprint(dto.login)},
        )
        return _message(outcome.message_key)

    def login(self) -> tuple[Response, int]:
        dto = _parse(LoginRequestDTO)
        ip_address = self._client_ip()

        outcome = self._login_use_case.execute(Credentials(login=dto.login, password=dto.password))
        if isinstance(outcome, Verified):
            session.clear()
            session[SESSION_USER_KEY] = outcome.user_id
            set_request_user(outcome.user_id)
            self._audit.log(
                AuditAction.LOGIN_SUCCESS,
                user_id=outcome.user_id,
                ip_address=ip_address,
                details={"login": dto.login},
            )
            return _message(outcome.message_key, user_id=outcome.user_id)

        self._audit.log(
            AuditAction.LOGIN_FAILED,
            ip_address=ip_address,
            details={"login_fp": fingerprint(dto.login), "reason": outcome.reason.value},
            success=False,
        )
        return _rejected(outcome)

    def logout(self) -> tuple[Response, int]:
        user_id = self._logout_use_case.execute(session)
        session.clear()
        set_request_user(None)
        if user_id is not None:
            self._audit.log(AuditAction.LOGOUT, user_id=user_id, ip_address=self._client_ip())
        return _message("logout.success")

    def change_password(self) -> tuple[Response, int]:
        user_id = session.get(SESSION_USER_KEY)
        if user_id is None:
            raise UnauthorizedError()

        dto = _parse(ChangePasswordRequestDTO)
        outcome = self._change_password_use_case.execute(user_id, dto.password)
        self._audit.log(
            AuditAction.PASSWORD_CHANGED, user_id=user_id, ip_address=self._client_ip()
        )
        return _message(outcome.message_key)

    def forgot_password(self) -> tuple[Response, int]:
        dto = _parse(LoginNameDTO)
        outcome = self._forgot_password_use_case.execute(dto.login)
        self._audit.log(
            AuditAction.PASSWORD_RESET_REQUESTED,
            ip_address=self._client_ip(),
            details={
                "login_fp": fingerprint(dto.login),
                "link_sent": isinstance(outcome, LinkSent),
            },
        )
        return _message(outcome.message_key)

    def check_reset_link(self, token_id: str) -> tuple[Response, int]:
        if not self._reset_password_use_case.link_is_valid(token_id):
            return _rejected(Rejected(RejectionReason.INVALID_LINK))
        return jsonify({"valid": True}), HTTPStatus.OK

    def reset_password(self, token_id: str) -> tuple[Response, int]:
        dto = _parse(ResetPasswordRequestDTO)
        outcome = self._reset_password_use_case.execute(token_id, dto.password)
        if isinstance(outcome, Reset):
            self._audit.log(
                AuditAction.PASSWORD_RESET, user_id=outcome.user_id, ip_address=self._client_ip()
            )
            return _message(outcome.message_key)

        self._audit.log(
            AuditAction.INVALID_LINK,
            ip_address=self._client_ip(),
            details={"flow": "password_reset"},
            success=False,
        )
        return _rejected(outcome)

    def as_blueprint(self) -> Blueprint:
        limited = rate_limit(self._security)
        bp = Blueprint("auth", __name__, url_prefix="/auth")
        bp.add_url_rule("/signup", view_func=limited(self.signup), methods=["POST"])
        bp.add_url_rule(
            "/signup/activate/<token_id>", view_func=self.activate, methods=["GET", "POST"]
        )
        bp.add_url_rule(
            "/signup/resend",
            view_func=limited(self.resend_activation),
            methods=["POST"],
        )
        bp.add_url_rule("/login", view_func=limited(self.login), methods=["POST"])
        bp.add_url_rule("/logout", view_func=self.logout, methods=["POST"])
        bp.add_url_rule("/password/change", view_func=self.change_password, methods=["POST"])
        bp.add_url_rule(
            "/password/forgot",
            view_func=limited(self.forgot_password),
            methods=["POST"],
        )
        bp.add_url_rule(
            "/password/reset/<token_id>", view_func=self.check_reset_link, methods=["GET"]
        )
        bp.add_url_rule(
            "/password/reset/<token_id>",
            endpoint="reset_password",
            view_func=self.reset_password,
            methods=["POST"],
        )
        return bp
