"""Shared test fixtures for the meetbot test suite.

Nothing here talks to the network: Supabase is replaced by an in-memory
`FakeSupabase` that implements the slice of the PostgREST query builder the
stores use, and Google's token endpoint is an `httpx.MockTransport`.
"""

from __future__ import annotations

import json
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Any, Deque, Dict, List, Optional, Tuple

import httpx
import pytest

from meetbot.crypto import TokenCipher
from meetbot.errors import CalendarAuthError
from meetbot.integrations.google.oauth import GoogleOAuthConfig, TokenLifecycleManager
from meetbot.integrations.google.state import OAuthStateStore
from meetbot.integrations.token_storage import ChatUserStore, CredentialStore, MeetingStore
from meetbot.models import ChatUser

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TEST_KEY = bytes(range(32))
TEAM_ID = "T12345678"
SLACK_USER_ID = "U12345678"
CHANNEL_ID = "C12345678"
T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
TOKEN_URI = "https://oauth2.googleapis.com/token"


# ---------------------------------------------------------------------------
# Fake Supabase
# ---------------------------------------------------------------------------


class StoreDown(Exception):
    """Raised by FakeSupabase when switched to failing mode."""


class _Result:
    def __init__(self, data: List[Dict[str, Any]]):
        self.data = data


class _Query:
    def __init__(self, db: "FakeSupabase", table: str):
        self._db = db
        self._table = table
        self._op = "select"
        self._columns = "*"
        self._payload: Optional[Dict[str, Any]] = None
        self._conflict: Optional[List[str]] = None
        self._filters: List[Tuple[str, Any]] = []
        self._order: Optional[Tuple[str, bool]] = None
        self._limit: Optional[int] = None

    def select(self, columns: str = "*") -> "_Query":
        self._op, self._columns = "select", columns
        return self

    def insert(self, row: Dict[str, Any]) -> "_Query":
        self._op, self._payload = "insert", dict(row)
        return self

    def upsert(self, row: Dict[str, Any], on_conflict: str = "") -> "_Query":
        self._op, self._payload = "upsert", dict(row)
        self._conflict = [c.strip() for c in on_conflict.split(",") if c.strip()]
        return self

    def delete(self) -> "_Query":
        self._op = "delete"
        return self

    def eq(self, column: str, value: Any) -> "_Query":
        self._filters.append((column, value))
        return self

    def order(self, column: str, desc: bool = False) -> "_Query":
        self._order = (column, desc)
        return self

    def limit(self, n: int) -> "_Query":
        self._limit = n
        return self

    def _matches(self, row: Dict[str, Any]) -> bool:
        return all(row.get(c) == v for c, v in self._filters)

    def execute(self) -> _Result:
        if self._db.failing:
            raise StoreDown("connection refused")

        rows = self._db.tables.setdefault(self._table, [])
        self._db.operations.append((self._table, self._op))

        if self._op == "insert":
            rows.append(self._payload)
            return _Result([dict(self._payload)])

        if self._op == "upsert":
            key = tuple(self._payload.get(c) for c in self._conflict)
            for i, row in enumerate(rows):
                if tuple(row.get(c) for c in self._conflict) == key:
                    rows[i] = self._payload
                    break
            else:
                rows.append(self._payload)
            return _Result([dict(self._payload)])

        if self._op == "delete":
            removed = [r for r in rows if self._matches(r)]
            self._db.tables[self._table] = [r for r in rows if not self._matches(r)]
            return _Result(removed)

        selected = [r for r in rows if self._matches(r)]
        if self._order:
            column, desc = self._order
            selected.sort(key=lambda r: r.get(column) or "", reverse=desc)
        if self._limit is not None:
            selected = selected[: self._limit]
        if self._columns != "*":
            wanted = [c.strip() for c in self._columns.split(",")]
            selected = [{c: r.get(c) for c in wanted} for r in selected]
        return _Result([dict(r) for r in selected])


class FakeSupabase:
    """In-memory stand-in for `supabase.Client.table(...)` queries."""

    def __init__(self) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.operations: List[Tuple[str, str]] = []
        self.failing = False

    def table(self, name: str) -> _Query:
        return _Query(self, name)

    def rows(self, name: str) -> List[Dict[str, Any]]:
        return self.tables.get(name, [])

    def writes(self, name: str) -> List[str]:
        return [op for table, op in self.operations if table == name and op != "select"]


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Google token endpoint
# ---------------------------------------------------------------------------


class TokenEndpoint:
    """Scripted token endpoint: queue responses, inspect the requests made."""

    def __init__(self) -> None:
        self.responses: Deque[Any] = deque()
        self.requests: List[Dict[str, str]] = []

    def queue(self, status_code: int = 200, body: Any = None) -> None:
        """Queue a response; dict bodies are sent as JSON, str bodies verbatim."""
        self.responses.append((status_code, {} if body is None else body))

    def queue_tokens(self, access_token: str = "ya29.fresh", **extra: Any) -> None:
        body = {"access_token": access_token, "expires_in": 3599, "token_type": "Bearer"}
        body.update(extra)
        self.queue(200, body)

    def queue_error(self, exc: Exception) -> None:
        self.responses.append(exc)

    def grant_types(self) -> List[str]:
        return [r.get("grant_type", "") for r in self.requests]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        form = dict(httpx.QueryParams(request.content.decode("utf-8")))
        self.requests.append(form)
        if not self.responses:
            raise AssertionError(f"Unexpected token request: {form.get('grant_type')}")
        item = self.responses.popleft()
        if isinstance(item, Exception):
            raise item
        status_code, body = item
        content = body if isinstance(body, str) else json.dumps(body)
        return httpx.Response(status_code, content=content.encode("utf-8"))


# ---------------------------------------------------------------------------
# Calendar collaborator
# ---------------------------------------------------------------------------


class FakeCalendar:
    """Records create_meeting calls; optionally rejects the first N tokens."""

    def __init__(self, reject_tokens: int = 0, link_prefix: str = "https://meet.google.com/abc-"):
        self.calls: List[Tuple[str, Optional[str]]] = []
        self._reject = reject_tokens
        self._prefix = link_prefix

    def create_meeting(self, access_token: str, title: Optional[str] = None) -> str:
        self.calls.append((access_token, title))
        if self._reject > 0:
            self._reject -= 1
            raise CalendarAuthError("401")
        return f"{self._prefix}{len(self.calls):04d}"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def user() -> ChatUser:
    return ChatUser(workspace_id=TEAM_ID, user_id=SLACK_USER_ID)


@pytest.fixture
def fake_db() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def cipher() -> TokenCipher:
    return TokenCipher(TEST_KEY)


@pytest.fixture
def credential_store(fake_db: FakeSupabase, cipher: TokenCipher) -> CredentialStore:
    return CredentialStore(fake_db, cipher)


@pytest.fixture
def user_store(fake_db: FakeSupabase) -> ChatUserStore:
    return ChatUserStore(fake_db)


@pytest.fixture
def meeting_store(fake_db: FakeSupabase) -> MeetingStore:
    return MeetingStore(fake_db)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def state_store() -> OAuthStateStore:
    return OAuthStateStore()


@pytest.fixture
def oauth_config() -> GoogleOAuthConfig:
    return GoogleOAuthConfig(
        client_id="test-client-id.apps.googleusercontent.com",
        client_secret="test-client-secret",
        redirect_uri="http://localhost:3000/auth/google/callback",
        token_uri=TOKEN_URI,
        timeout_seconds=2.0,
    )


@pytest.fixture
def token_endpoint() -> TokenEndpoint:
    return TokenEndpoint()


@pytest.fixture
def http_client(token_endpoint: TokenEndpoint) -> httpx.AsyncClient:
    # MockTransport holds no connections; not bound to an event loop.
    return httpx.AsyncClient(transport=httpx.MockTransport(token_endpoint))


@pytest.fixture
def lifecycle(
    oauth_config: GoogleOAuthConfig,
    credential_store: CredentialStore,
    state_store: OAuthStateStore,
    http_client: httpx.AsyncClient,
    clock: FixedClock,
) -> TokenLifecycleManager:
    return TokenLifecycleManager(
        config=oauth_config,
        store=credential_store,
        states=state_store,
        http_client=http_client,
        clock=clock,
    )
