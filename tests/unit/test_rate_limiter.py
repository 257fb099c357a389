"""Unit tests for the login rate limiter."""

import pytest
from fastapi import HTTPException
from starlette.requests import Request

from tenantdesk.auth.rate_limiter import LoginRateLimiter, RateLimitConfig


def _request(ip: str = "10.0.0.1", forwarded: str = None) -> Request:
    headers = []
    if forwarded:
        headers.append((b"x-forwarded-for", forwarded.encode()))
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/v1/auth/login",
        "headers": headers,
        "client": (ip, 12345),
        "query_string": b"",
    }
    return Request(scope)


@pytest.fixture
def limiter():
    return LoginRateLimiter(
        RateLimitConfig(
            max_requests=3,
            window_seconds=60,
            max_failures_before_block=2,
            failure_penalty_minutes=1,
        )
    )


@pytest.mark.unit
class TestLoginRateLimiter:
    def test_requests_within_limit_pass(self, limiter):
        for _ in range(3):
            limiter.check_rate_limit(_request())

    def test_window_limit(self, limiter):
        for _ in range(3):
            limiter.check_rate_limit(_request())
        with pytest.raises(HTTPException) as exc_info:
            limiter.check_rate_limit(_request())
        assert exc_info.value.status_code == 429
        assert exc_info.value.headers["Retry-After"] == "60"

    def test_limits_are_per_ip(self, limiter):
        for _ in range(3):
            limiter.check_rate_limit(_request("10.0.0.1"))
        limiter.check_rate_limit(_request("10.0.0.2"))

    def test_forwarded_for_ignored_from_untrusted_peer(self, limiter):
        for i in range(3):
            limiter.check_rate_limit(_request("10.0.0.1", forwarded=f"203.0.113.{i}"))
        with pytest.raises(HTTPException):
            limiter.check_rate_limit(_request("10.0.0.1", forwarded="203.0.113.99"))

    def test_forwarded_for_from_trusted_proxy(self):
        limiter = LoginRateLimiter(
            RateLimitConfig(max_requests=1, trusted_proxies={"10.0.0.254"})
        )
        limiter.check_rate_limit(_request("10.0.0.254", forwarded="203.0.113.9, 10.0.0.254"))
        limiter.check_rate_limit(_request("10.0.0.254", forwarded="203.0.113.10"))
        with pytest.raises(HTTPException):
            limiter.check_rate_limit(_request("10.0.0.254", forwarded="203.0.113.9"))

    def test_failures_block_ip(self, limiter):
        request = _request()
        limiter.record_auth_failure(request)
        limiter.record_auth_failure(request)

        with pytest.raises(HTTPException) as exc_info:
            limiter.check_rate_limit(request)
        assert exc_info.value.status_code == 429
        assert "blocked" in exc_info.value.detail
        assert limiter.get_stats()["active_blocks"] == 1

    def test_success_clears_failures(self, limiter):
        request = _request()
        limiter.record_auth_failure(request)
        limiter.record_auth_success(request)
        limiter.record_auth_failure(request)
        limiter.check_rate_limit(request)

    def test_bypass_ips(self):
        limiter = LoginRateLimiter(RateLimitConfig(max_requests=1, bypass_ips={"127.0.0.1"}))
        for _ in range(5):
            limiter.check_rate_limit(_request("127.0.0.1"))

    def test_reset(self, limiter):
        for _ in range(3):
            limiter.check_rate_limit(_request())
        limiter.reset()
        limiter.check_rate_limit(_request())
        assert limiter.get_stats() == {"tracked_ips": 1, "tracked_failures": 0, "active_blocks": 0}

    def test_failures_block_email_across_ips(self, limiter):
        limiter.record_auth_failure(_request("10.0.0.1"), "Ada@Example.com")
        limiter.record_auth_failure(_request("10.0.0.2"), "ada@example.com")

        with pytest.raises(HTTPException) as exc_info:
            limiter.check_rate_limit(_request("10.0.0.3"), "ada@example.com")
        assert exc_info.value.status_code == 429

        limiter.check_rate_limit(_request("10.0.0.3"), "bob@example.com")

    def test_success_clears_email_failures(self, limiter):
        limiter.record_auth_failure(_request("10.0.0.1"), "ada@example.com")
        limiter.record_auth_success(_request("10.0.0.2"), "ada@example.com")
        limiter.record_auth_failure(_request("10.0.0.3"), "ada@example.com")

        limiter.check_rate_limit(_request("10.0.0.4"), "ada@example.com")

    def test_stale_entries_are_pruned(self, limiter, monkeypatch):
        clock = [1000.0]
        monkeypatch.setattr("tenantdesk.auth.rate_limiter.time.time", lambda: clock[0])
        limiter.check_rate_limit(_request("10.0.0.1"))
        limiter.record_auth_failure(_request("10.0.0.1"), "ada@example.com")

        clock[0] += 61
        limiter.check_rate_limit(_request("10.0.0.2"))

        stats = limiter.get_stats()
        assert stats["tracked_ips"] == 1
        assert stats["tracked_failures"] == 0
