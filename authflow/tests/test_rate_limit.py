from __future__ import annotations

from flask import Flask

from authflow.shared.middleware.rate_limit import InMemoryRateLimiter, client_address


class ManualClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_limit_and_retry_after() -> None:
    clock = ManualClock()
    limiter = InMemoryRateLimiter(2, 60, clock=clock)

    assert limiter.hit("login:1.2.3.4") == 0
    clock.now += 10
    assert limiter.hit("login:1.2.3.4") == 0
    clock.now += 10
    assert limiter.hit("login:1.2.3.4") == 40

    clock.now += 41
    assert limiter.hit("login:1.2.3.4") == 0


def test_idle_buckets_are_pruned() -> None:
    clock = ManualClock()
    limiter = InMemoryRateLimiter(5, 60, clock=clock)

    for n in range(100):
        limiter.hit(f"login:10.0.0.{n}")
    assert len(limiter) == 100

    clock.now += 61
    limiter.hit("login:10.0.1.1")

    assert len(limiter) == 1


def test_active_buckets_survive_pruning() -> None:
    clock = ManualClock()
    limiter = InMemoryRateLimiter(2, 60, clock=clock)
    limiter.hit("stale")
    clock.now += 30
    limiter.hit("busy")
    limiter.hit("busy")

    clock.now += 31
    assert limiter.hit("busy") > 0
    assert len(limiter) == 1


def test_client_address_ignores_forwarded_for_unless_trusted() -> None:
    app = Flask(__name__)
    environ = {"REMOTE_ADDR": "198.51.100.7"}
    headers = {"X-Forwarded-For": "203.0.113.9, 10.0.0.1"}

    with app.test_request_context("/", headers=headers, environ_base=environ) as ctx:
        assert client_address(ctx.request) == "198.51.100.7"
        assert client_address(ctx.request, trust_forwarded_for=True) == "203.0.113.9"

    with app.test_request_context("/", environ_base=environ) as ctx:
        assert client_address(ctx.request, trust_forwarded_for=True) == "198.51.100.7"
