from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from .errors import CalendarAuthError, CalendarError, StoreUnavailable
from .integrations.google.oauth import TokenLifecycleManager
from .integrations.google_calendar.client import GoogleCalendarClient
from .integrations.token_storage import ChatUserStore, MeetingStore
from .models import (
    AccessToken,
    AuthorizationPrompt,
    CommandOutcome,
    Failure,
    FailureKind,
    MeetingLink,
    MeetingRecord,
    NeedsAuthorization,
    SlashCommand,
    TokenAcquisition,
)


logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CommandOrchestrator:
    """
    Turns a verified `/meet` command into a Meet link.

    Side effects are strictly ordered: the ChatUser and MeetingRecord are
    written only after the calendar call succeeded, and nothing at all is
    written when the user still has to authorize.
    """

    def __init__(
        self,
        lifecycle: TokenLifecycleManager,
        calendar: GoogleCalendarClient,
        users: ChatUserStore,
        meetings: MeetingStore,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._lifecycle = lifecycle
        self._calendar = calendar
        self._users = users
        self._meetings = meetings
        self._clock = clock

    async def handle(self, command: SlashCommand) -> CommandOutcome:
        """
        Create a meeting for the command's user.

        Returns:
            MeetingLink, AuthorizationPrompt, or Failure
        """
        user = command.chat_user
        logger.info(f"Handling {command.command} for {user}")

        try:
            acquisition = await self._lifecycle.acquire_usable_token(user)
            outcome = self._early_outcome(acquisition)
            if outcome is not None:
                return outcome

            try:
                link = await self._create_meeting(acquisition.token, command.title)
            except CalendarAuthError:
                # Token was rejected before its recorded expiry (or had none).
                acquisition = await self._lifecycle.refresh_after_rejection(user)
                outcome = self._early_outcome(acquisition)
                if outcome is not None:
                    return outcome
                link = await self._create_meeting(acquisition.token, command.title)

            # meetings references chat_users, so the user row goes first.
            self._users.touch(user)
            self._meetings.append(MeetingRecord(
                user=user,
                meet_link=link,
                title=command.title,
                created_at=self._clock(),
            ))
        except StoreUnavailable as e:
            logger.error(f"Store unavailable while handling command for {user}: {e}")
            return Failure(failure=FailureKind.STORE_UNAVAILABLE)
        except CalendarError as e:
            logger.error(f"Failed to create Meet link for {user}: {e}")
            return Failure(failure=FailureKind.CALENDAR_ERROR)

        logger.info(f"Created meeting for {user}")
        return MeetingLink(url=link)

    def authorize(self, command: SlashCommand) -> AuthorizationPrompt:
        """Hand out a fresh authorization URL regardless of the stored grant."""
        return AuthorizationPrompt(auth_url=self._lifecycle.authorization_url(command.chat_user))

    @staticmethod
    def _early_outcome(acquisition: TokenAcquisition) -> Optional[CommandOutcome]:
        if isinstance(acquisition, AccessToken):
            return None
        if isinstance(acquisition, NeedsAuthorization):
            return AuthorizationPrompt(auth_url=acquisition.auth_url)
        return Failure(failure=FailureKind.TEMPORARILY_UNAVAILABLE)

    async def _create_meeting(self, token: str, title: Optional[str]) -> str:
        return await asyncio.to_thread(self._calendar.create_meeting, token, title)
