# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

"""Background deletion of expired auth tokens."""

from __future__ import annotations

import threading

from authflow.application.services.auth_tokens import AuthTokenStore
from authflow.shared.logging import logger


class TokenSweeper:
    """Calls ``AuthTokenStore.purge_expired`` every ``interval`` seconds.

    Lookups already reject expired tokens, so this only keeps the table
    small; a failed sweep is logged and retried on the next tick.
    """

    def __init__(self, tokens: AuthTokenStore, interval: float) -> None:
        if interval <= 0:
            raise ValueError("sweep interval must be positive")
        self._tokens = tokens
        self._interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def sweep_once(self) -> int:
        try:
            return self._tokens.purge_expired()
        except Exception:
            logger.exception("auth.sweeper: purge failed")
            return 0

    def _run(self) -> None:
        logger.info(f"auth.sweeper: started interval={self._interval}s")
        while not self._stop.wait(self._interval):
            self.sweep_once()
        logger.info("auth.sweeper: stopped")

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="auth-token-sweeper", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None


__all__ = ["TokenSweeper"]
