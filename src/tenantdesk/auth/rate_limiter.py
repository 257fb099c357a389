"""Rate limiting for the login endpoint to slow down brute force attacks."""

import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Deque, Dict, List, Optional, Set

from fastapi import HTTPException, Request, status

from ..utils.logging_config import get_logger

logger = get_logger("auth")


@dataclass
class RateLimitConfig:
    """Login rate limiting configuration."""

    max_requests: int = 10
    window_seconds: int = 60
    max_failures_before_block: int = 5
    failure_penalty_minutes: int = 15
    bypass_ips: Set[str] = field(default_factory=set)
    # Peers whose X-Forwarded-For / X-Real-IP headers are believed
    trusted_proxies: Set[str] = field(default_factory=set)

    @classmethod
    def from_app_config(cls) -> "RateLimitConfig":
        from ..config import get_config

        app = get_config().app
        return cls(
            max_requests=app.rate_limit_login_requests,
            window_seconds=app.rate_limit_window_seconds,
            max_failures_before_block=app.rate_limit_max_failures,
            failure_penalty_minutes=app.rate_limit_failure_penalty_minutes,
            trusted_proxies=set(app.trusted_proxies),
        )


class LoginRateLimiter:
    """
    Sliding-window request limit per client IP plus a block after repeated failures.

    Failures are counted per client IP and per login email, so rotating the
    source address does not reset the budget of a targeted account.
    """

    def __init__(self, config: Optional[RateLimitConfig] = None):
        self.config = config or RateLimitConfig.from_app_config()

        # {ip: deque of request timestamps}
        self._requests: Dict[str, Deque[float]] = defaultdict(deque)
        # {"ip:<ip>" | "email:<email>": deque of failure timestamps}
        self._failures: Dict[str, Deque[float]] = defaultdict(deque)
        # {"ip:<ip>" | "email:<email>": block_until_timestamp}
        self._blocked: Dict[str, float] = {}

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP; proxy headers only count when the peer is a trusted proxy."""
        peer = request.client.host if request.client else "unknown"
        if peer not in self.config.trusted_proxies:
            return peer

        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()

        return peer

    @staticmethod
    def _keys(ip: str, email: Optional[str]) -> List[str]:
        keys = [f"ip:{ip}"]
        if email:
            keys.append(f"email:{email.strip().lower()}")
        return keys

    @staticmethod
    def _trim(timestamps: Deque[float], cutoff: float) -> None:
        while timestamps and timestamps[0] < cutoff:
            timestamps.popleft()

    def _cleanup(self, now: float) -> None:
        expired = [key for key, until in self._blocked.items() if now > until]
        for key in expired:
            del self._blocked[key]
            logger.info(f"Unblocked {key} after penalty period")

        cutoff = now - self.config.window_seconds
        for tracked in (self._requests, self._failures):
            for key in list(tracked):
                self._trim(tracked[key], cutoff)
                if not tracked[key]:
                    del tracked[key]

    def check_rate_limit(self, request: Request, email: Optional[str] = None) -> None:
        """
        Check and record a login attempt.

        Raises:
            HTTPException: 429 when the IP or email is blocked, or the IP is
                over the window limit
        """
        ip = self._get_client_ip(request)
        if ip in self.config.bypass_ips:
            return

        now = time.time()
        self._cleanup(now)

        for key in self._keys(ip, email):
            if key in self._blocked:
                block_until = datetime.fromtimestamp(self._blocked[key], tz=timezone.utc)
                raise HTTPException(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    detail=(
                        "Login blocked due to too many failed attempts. "
                        f"Try again after {block_until.isoformat()}"
                    ),
                    headers={"Retry-After": str(max(int(self._blocked[key] - now), 1))},
                )

        window = self._requests[ip]
        if len(window) >= self.config.max_requests:
            logger.warning(f"Login rate limit exceeded for {ip}: {len(window)} requests in window")
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=(
                    f"Too many login attempts. Maximum {self.config.max_requests} "
                    f"requests per {self.config.window_seconds} seconds"
                ),
                headers={"Retry-After": str(self.config.window_seconds)},
            )

        window.append(now)

    def record_auth_failure(self, request: Request, email: Optional[str] = None) -> None:
        """Record a failed login; blocks the IP or email once the failure limit is reached."""
        ip = self._get_client_ip(request)
        now = time.time()

        for key in self._keys(ip, email):
            failures = self._failures[key]
            self._trim(failures, now - self.config.window_seconds)
            failures.append(now)

            logger.warning(
                f"Login failure for {key}: "
                f"{len(failures)}/{self.config.max_failures_before_block} in window"
            )

            if len(failures) >= self.config.max_failures_before_block:
                block_until = now + self.config.failure_penalty_minutes * 60
                self._blocked[key] = block_until
                logger.error(
                    f"Blocked {key} until "
                    f"{datetime.fromtimestamp(block_until, tz=timezone.utc).isoformat()} "
                    f"after {len(failures)} failed logins"
                )

    def record_auth_success(self, request: Request, email: Optional[str] = None) -> None:
        """Clear the failure history of the caller's IP and email."""
        ip = self._get_client_ip(request)
        for key in self._keys(ip, email):
            if self._failures.pop(key, None) is not None:
                logger.debug(f"Cleared failure history for {key} after successful login")

    def reset(self) -> None:
        self._requests.clear()
        self._failures.clear()
        self._blocked.clear()

    def get_stats(self) -> Dict[str, int]:
        now = time.time()
        return {
            "tracked_ips": len(self._requests),
            "tracked_failures": len(self._failures),
            "active_blocks": sum(1 for until in self._blocked.values() if now < until),
        }


_login_rate_limiter: Optional[LoginRateLimiter] = None


def get_login_rate_limiter() -> LoginRateLimiter:
    """FastAPI dependency returning the shared login rate limiter."""
    global _login_rate_limiter
    if _login_rate_limiter is None:
        _login_rate_limiter = LoginRateLimiter()
    return _login_rate_limiter
