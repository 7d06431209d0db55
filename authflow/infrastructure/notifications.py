# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

"""Outbound mail transports implementing ``NotificationPort``."""

from __future__ import annotations

import contextvars
import smtplib
from concurrent.futures import Future, ThreadPoolExecutor
from email.message import EmailMessage

from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from authflow.application.interfaces import NotificationPort
from authflow.shared.config import MailConfig
from authflow.shared.logging import logger

_TRANSIENT_SMTP_ERRORS = (
    smtplib.SMTPServerDisconnected,
    smtplib.SMTPConnectError,
    smtplib.SMTPHeloError,
    ConnectionError,
    TimeoutError,
)


class SmtpNotifier(NotificationPort):
    """Sends HTML mail over SMTP, retrying connection-level failures."""

    def __init__(self, config: MailConfig) -> None:
        if not config.smtp_host:
            raise ValueError("SMTP host is not configured")
        self._config = config

    def _build(self, to: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self._config.smtp_from
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(body, subtype="html")
        return message

    def _deliver(self, message: EmailMessage) -> None:
        cfg = self._config
        with smtplib.SMTP(cfg.smtp_host, cfg.smtp_port, timeout=cfg.smtp_timeout) as client:
            if cfg.smtp_starttls:
                client.starttls()
            if cfg.smtp_username:
                client.login(cfg.smtp_username, cfg.smtp_password or "")
            client.send_message(message)

    def send(self, to: str, subject: str, body: str) -> None:
        message = self._build(to, subject, body)
        retrying = Retrying(
            stop=stop_after_attempt(self._config.send_retries + 1),
            wait=wait_exponential(multiplier=0.5, max=5),
            retry=retry_if_exception_type(_TRANSIENT_SMTP_ERRORS),
            before_sleep=lambda state: logger.warning(
                f"mail.smtp: transient failure, retrying attempt={state.attempt_number}"
            ),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                self._deliver(message)
        logger.debug(f"mail.smtp: delivered to={to}")


class LoggingNotifier(NotificationPort):
    """Stands in for SMTP when no mail host is configured."""

    def send(self, to: str, subject: str, body: str) -> None:
        logger.info(f"mail.log: to={to} subject={subject!r} body_size={len(body)}")


class BackgroundNotifier(NotificationPort):
    """Hands each message to a worker thread and returns at once.

    ``send`` returns before delivery starts; failures are logged by the
    worker and never reach the caller.
    """

    def __init__(self, inner: NotificationPort, max_workers: int = 1) -> None:
        self._inner = inner
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="mail")
        self._closed = False

    def send(self, to: str, subject: str, body: str) -> None:
        if self._closed:
            raise RuntimeError("notifier is closed")
        # The worker keeps the request's correlation id in its log lines
        context = contextvars.copy_context()
        future = self._executor.submit(context.run, self._inner.send, to, subject, body)
        future.add_done_callback(self._report)

    @staticmethod
    def _report(future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.opt(exception=exc).error(
                f"mail.background: delivery failed ({type(exc).__name__})"
            )

    def close(self, wait: bool = True) -> None:
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=wait)
        logger.debug("mail.background: worker stopped")


def build_notifier(config: MailConfig) -> NotificationPort:
    notifier: NotificationPort
    if config.is_enabled():
        notifier = SmtpNotifier(config)
    else:
        logger.warning("mail: SMTP_HOST not set, notifications will only be logged")
        notifier = LoggingNotifier()
    if config.send_in_background:
        return BackgroundNotifier(notifier)
    return notifier


__all__ = ["BackgroundNotifier", "LoggingNotifier", "SmtpNotifier", "build_notifier"]
