"""Unit tests for the in-memory OAuth state store."""

from __future__ import annotations

import pytest

from meetbot.integrations.google.state import DEFAULT_STATE_TTL_SECONDS, OAuthStateStore
from meetbot.models import ChatUser
from meetbot.validation import InputValidator

pytestmark = pytest.mark.unit


class _Monotonic:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def ticker() -> _Monotonic:
    return _Monotonic()


@pytest.fixture
def states(ticker: _Monotonic) -> OAuthStateStore:
    return OAuthStateStore(clock=ticker)


class TestOAuthStateStore:
    def test_issue_then_consume_returns_user(self, states: OAuthStateStore, user: ChatUser) -> None:
        state = states.issue(user)
        assert states.consume(state) == user

    def test_state_is_single_use(self, states: OAuthStateStore, user: ChatUser) -> None:
        state = states.issue(user)
        states.consume(state)
        assert states.consume(state) is None

    def test_unknown_or_empty_state_is_rejected(self, states: OAuthStateStore) -> None:
        assert states.consume("never-issued") is None
        assert states.consume("") is None
        assert states.consume(None) is None

    def test_state_expires_after_ttl(self, states: OAuthStateStore, ticker: _Monotonic, user: ChatUser) -> None:
        state = states.issue(user)
        ticker.now += DEFAULT_STATE_TTL_SECONDS
        assert states.consume(state) is None

    def test_state_valid_just_before_ttl(self, states: OAuthStateStore, ticker: _Monotonic, user: ChatUser) -> None:
        state = states.issue(user)
        ticker.now += DEFAULT_STATE_TTL_SECONDS - 1
        assert states.consume(state) == user

    def test_states_are_unique_and_bound_to_their_user(self, states: OAuthStateStore, user: ChatUser) -> None:
        other = ChatUser(workspace_id=user.workspace_id, user_id="U87654321")
        first, second = states.issue(user), states.issue(other)
        assert first != second
        assert states.consume(second) == other
        assert states.consume(first) == user

    def test_expired_entries_are_evicted_on_issue(self, states: OAuthStateStore, ticker: _Monotonic, user: ChatUser) -> None:
        states.issue(user)
        states.issue(user)
        ticker.now += DEFAULT_STATE_TTL_SECONDS + 1
        states.issue(user)
        assert len(states) == 1

    def test_clear(self, states: OAuthStateStore, user: ChatUser) -> None:
        states.issue(user)
        states.clear()
        assert len(states) == 0

    def test_issued_state_passes_callback_validation(self, states: OAuthStateStore, user: ChatUser) -> None:
        InputValidator().validate_oauth_state(states.issue(user))
