"""
Fixed-window rate limiting for inbound Slack commands and OAuth callbacks.

Two layers:
- per (user, endpoint): small windows with exponential backoff once a user
  is blocked
- per endpoint: a global ceiling across all users

State is process-local and guarded by a lock, since FastAPI may run sync
endpoints on a thread pool.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from .errors import RateLimitExceeded


logger = logging.getLogger(__name__)

SLACK_COMMANDS = "/slack/commands"
OAUTH_CALLBACK = "/auth/google/callback"

# endpoint -> (max requests, window seconds)
USER_LIMITS: Dict[str, Tuple[int, float]] = {
    SLACK_COMMANDS: (10, 60),
    OAUTH_CALLBACK: (10, 300),
}
DEFAULT_USER_LIMIT = (100, 60)

ENDPOINT_LIMITS: Dict[str, Tuple[int, float]] = {
    SLACK_COMMANDS: (1000, 60),
    OAUTH_CALLBACK: (500, 60),
}
DEFAULT_ENDPOINT_LIMIT = (5000, 60)

INITIAL_BACKOFF = 1.0
MAX_BACKOFF = 15 * 60.0


@dataclass
class _Window:
    count: int
    started: float
    last_blocked: Optional[float] = None
    backoff: float = INITIAL_BACKOFF


class RateLimiter:
    """In-memory request counter keyed by user and endpoint."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._users: Dict[Tuple[str, str], _Window] = {}
        self._endpoints: Dict[str, _Window] = {}
        self._lock = threading.Lock()

    def check_user_limit(self, user_key: str, endpoint: str) -> None:
        """
        Count one request for `user_key` on `endpoint`.

        Raises:
            RateLimitExceeded: The user is over the limit or still backing off
        """
        max_requests, window = USER_LIMITS.get(endpoint, DEFAULT_USER_LIMIT)

        with self._lock:
            now = self._clock()
            entry = self._users.setdefault((user_key, endpoint), _Window(count=0, started=now))

            if entry.last_blocked is not None and now - entry.last_blocked < entry.backoff:
                raise RateLimitExceeded(
                    f"User {user_key} is in backoff period for {entry.backoff:.0f} seconds"
                )

            if now - entry.started >= window:
                entry.count = 0
                entry.started = now

            if entry.count >= max_requests:
                entry.last_blocked = now
                entry.backoff = min(entry.backoff * 2, MAX_BACKOFF)
                logger.warning(f"Rate limit exceeded for user {user_key} on {endpoint}")
                raise RateLimitExceeded(
                    f"Rate limit exceeded for user {user_key}: "
                    f"{max_requests} requests in {window:.0f} seconds"
                )

            entry.count += 1

    def check_endpoint_limit(self, endpoint: str) -> None:
        """
        Count one request against the global ceiling for `endpoint`.

        Raises:
            RateLimitExceeded: The endpoint is over its global limit
        """
        max_requests, window = ENDPOINT_LIMITS.get(endpoint, DEFAULT_ENDPOINT_LIMIT)

        with self._lock:
            now = self._clock()
            entry = self._endpoints.setdefault(endpoint, _Window(count=0, started=now))

            if now - entry.started >= window:
                entry.count = 0
                entry.started = now

            if entry.count >= max_requests:
                logger.error(f"Global rate limit exceeded for endpoint {endpoint}")
                raise RateLimitExceeded(
                    f"Global rate limit exceeded for endpoint {endpoint}: "
                    f"{max_requests} requests in {window:.0f} seconds"
                )

            entry.count += 1

    def cleanup(self, max_age: float = 3600) -> int:
        """
        Drop windows that started more than `max_age` seconds ago.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock()
            stale_users = [k for k, w in self._users.items() if now - w.started >= max_age]
            for k in stale_users:
                del self._users[k]
            stale_endpoints = [k for k, w in self._endpoints.items() if now - w.started >= max_age]
            for k in stale_endpoints:
                del self._endpoints[k]
        return len(stale_users) + len(stale_endpoints)
