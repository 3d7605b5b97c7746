"""
Component wiring.

`build_services()` turns Settings into the immutable configuration objects
each component takes at construction and connects them. Routes receive the
result through the `get_services` dependency.
"""
from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from .config import Settings
from .integrations.google.oauth import TokenLifecycleManager
from .integrations.google.state import OAuthStateStore
from .integrations.google_calendar.client import GoogleCalendarClient
from .integrations.slack.verification import SlackRequestVerifier
from .integrations.token_storage import ChatUserStore, CredentialStore, MeetingStore
from .orchestrator import CommandOrchestrator
from .rate_limiter import RateLimiter
from .supabase_client import get_supabase_client
from .validation import InputValidator


@dataclass
class Services:
    verifier: SlackRequestVerifier
    validator: InputValidator
    rate_limiter: RateLimiter
    lifecycle: TokenLifecycleManager
    orchestrator: CommandOrchestrator
    users: ChatUserStore
    meetings: MeetingStore


def build_services(settings: Settings) -> Services:
    """Construct every component from validated settings."""
    db = get_supabase_client(settings.supabase_url, settings.supabase_service_role_key)

    lifecycle = TokenLifecycleManager(
        config=settings.google_oauth_config(),
        store=CredentialStore(db, settings.token_cipher()),
        states=OAuthStateStore(),
    )
    users = ChatUserStore(db)
    meetings = MeetingStore(db)

    return Services(
        verifier=SlackRequestVerifier(settings.slack_signing_secret),
        validator=InputValidator(),
        rate_limiter=RateLimiter(),
        lifecycle=lifecycle,
        orchestrator=CommandOrchestrator(
            lifecycle=lifecycle,
            calendar=GoogleCalendarClient(),
            users=users,
            meetings=meetings,
        ),
        users=users,
        meetings=meetings,
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the app's wired components."""
    return request.app.state.services
