# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

"""Account emails: capability links, templated bodies, fire-and-forget delivery."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from authflow.application.interfaces import NotificationPort
from authflow.domain.users.entities import AuthToken, User
from authflow.shared.logging import logger

_TEMPLATE_DIR = Path(__file__).resolve().parents[2] / "templates" / "email"

ACTIVATION_PATH = "/auth/signup/activate/"
RESET_PATH = "/auth/password/reset/"
FORGOT_PATH = "/auth/password/forgot"

EXPIRY_FORMAT = "%Y-%m-%d %H:%M %Z"


class LinkBuilder:
    """Absolute capability URLs whose last path segment is the token id."""

    def __init__(self, base_url: str) -> None:
        self._base_url = base_url.rstrip("/")

    @property
    def host(self) -> str:
        return urlsplit(self._base_url).hostname or self._base_url

    def activation_url(self, token: AuthToken) -> str:
        return f"{self._base_url}{ACTIVATION_PATH}{token.id}"

    def reset_url(self, token: AuthToken) -> str:
        return f"{self._base_url}{RESET_PATH}{token.id}"

    def forgot_url(self) -> str:
        return f"{self._base_url}{FORGOT_PATH}"


class AccountMailer:
    """Composes account emails and hands them to the notifier.

    Delivery failures are logged and reported through the return value;
    they never propagate, so a failed send cannot undo the token that was
    created for it.
    """

    def __init__(
        self,
        notifier: NotificationPort,
        links: LinkBuilder,
        *,
        sender: str,
        template_dir: Path = _TEMPLATE_DIR,
    ) -> None:
        self._notifier = notifier
        self._links = links
        self._sender = sender
        self._env = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
            undefined=StrictUndefined,
        )

    @property
    def links(self) -> LinkBuilder:
        return self._links

    def render(self, name: str, **context: Any) -> tuple[str, str]:
        ctx = {"sender": self._sender, **context}
        subject = self._env.get_template(f"{name}.subject.txt").render(**ctx).strip()
        body = self._env.get_template(f"{name}.html").render(**ctx)
        return subject, body

    def send_activation(self, user: User, token: AuthToken) -> bool:
        return self._deliver(
            "activate_account",
            user.email,
            user_name=user.full_name,
            url=self._links.activation_url(token),
            host=self._links.host,
            expires=token.expiry.strftime(EXPIRY_FORMAT),
        )

    def send_password_reset(self, user: User, token: AuthToken) -> bool:
        return self._deliver(
            "reset_password",
            user.email,
            user_name=user.full_name,
            url=self._links.reset_url(token),
            expires=token.expiry.strftime(EXPIRY_FORMAT),
        )

    def send_already_signed_up(self, email: str) -> bool:
        return self._deliver(
            "already_signed_up",
            email,
            user_name=email,
            url=self._links.forgot_url(),
        )

    def send_password_changed(self, user: User, changed_at: datetime) -> bool:
        return self._deliver(
            "password_changed",
            user.email,
            user_name=user.full_name,
            url=self._links.forgot_url(),
            changed_at=changed_at.strftime(EXPIRY_FORMAT),
        )

    def _deliver(self, template: str, to: str, **context: Any) -> bool:
        try:
            subject, body = self.render(template, **context)
            self._notifier.send(to, subject, body)
        except Exception:
            logger.exception(f"mail.{template}: delivery failed to={to}")
            return False
        logger.info(f"mail.{template}: sent to={to}")
        return True


__all__ = ["AccountMailer", "LinkBuilder"]
