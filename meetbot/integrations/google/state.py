"""
In-memory CSRF state store for the Google OAuth flow.

Each authorization URL carries a random state token bound to the chat user
who asked for it. Tokens are single-use and expire after `ttl_seconds`.

NOTE: This store is process-local. Run a single worker process, otherwise a
callback may land on a worker that never issued its state.
"""
from __future__ import annotations

import secrets
import threading
import time
from typing import Callable, Dict, Optional, Tuple

from ...models import ChatUser


DEFAULT_STATE_TTL_SECONDS = 600  # 10 minutes


class OAuthStateStore:
    """Maps state token -> (chat user, monotonic expiry)."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_STATE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl = ttl_seconds
        self._clock = clock
        self._states: Dict[str, Tuple[ChatUser, float]] = {}
        self._lock = threading.Lock()

    def issue(self, user: ChatUser) -> str:
        """Generate and remember a fresh state token for `user`."""
        state = secrets.token_urlsafe(32)
        with self._lock:
            now = self._clock()
            self._evict_expired(now)
            self._states[state] = (user, now + self._ttl)
        return state

    def consume(self, state: Optional[str]) -> Optional[ChatUser]:
        """
        Validate and consume a state token (one-time-use).

        Returns:
            The chat user the state was issued to, or None if the state is
            missing, unknown, expired or already used
        """
        if not state:
            return None
        with self._lock:
            now = self._clock()
            entry = self._states.pop(state, None)
            self._evict_expired(now)
        if entry is None:
            return None
        user, expiry = entry
        if now >= expiry:
            return None
        return user

    def clear(self) -> None:
        with self._lock:
            self._states.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)

    def _evict_expired(self, now: float) -> None:
        expired = [k for k, (_, exp) in self._states.items() if now >= exp]
        for k in expired:
            del self._states[k]
