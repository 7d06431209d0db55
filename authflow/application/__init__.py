# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from .interfaces import AccountNotices, NotificationPort
from .services.auth_tokens import AuthTokenStore
from .services.mailer import AccountMailer, LinkBuilder
from .services.password_hashing import BcryptPasswordHasher
from .use_cases.users.activate_user import ActivateUserUseCase
from .use_cases.users.change_password import ChangePasswordUseCase
from .use_cases.users.forgot_password import ForgotPasswordUseCase
from .use_cases.users.login_user import LoginUserUseCase
from .use_cases.users.logout_user import LogoutUserUseCase
from .use_cases.users.register_user import RegisterUserUseCase, SignUpRequest
from .use_cases.users.resend_activation import ResendActivationUseCase
from .use_cases.users.reset_password import ResetPasswordUseCase

__all__ = [
    "AccountMailer",
    "AccountNotices",
    "ActivateUserUseCase",
    "AuthTokenStore",
    "BcryptPasswordHasher",
    "ChangePasswordUseCase",
    "ForgotPasswordUseCase",
    "LinkBuilder",
    "LoginUserUseCase",
    "LogoutUserUseCase",
    "NotificationPort",
    "RegisterUserUseCase",
    "ResendActivationUseCase",
    "ResetPasswordUseCase",
    "SignUpRequest",
]
