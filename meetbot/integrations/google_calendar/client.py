"""
Google Calendar client for meetbot.

Creates a one-hour event on the user's primary calendar with a Google Meet
conference attached and returns the Meet link. One outbound call; retries,
if any, are the caller's business.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ...errors import CalendarAuthError, CalendarError


logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Meet"
DEFAULT_DURATION = timedelta(hours=1)


def _build_service(access_token: str):
    """Calendar v3 service authorized with a bare access token."""
    creds = Credentials(token=access_token)
    return build("calendar", "v3", credentials=creds, cache_discovery=False)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GoogleCalendarClient:
    """
    Calendar-call collaborator used by the command orchestrator.

    Usage:
        calendar = GoogleCalendarClient()
        link = calendar.create_meeting(access_token, "Standup")
    """

    API_NAME = "calendar"
    API_VERSION = "v3"

    def __init__(
        self,
        service_factory: Callable[[str], Any] = _build_service,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._service_factory = service_factory
        self._clock = clock

    def create_meeting(self, access_token: str, title: Optional[str] = None) -> str:
        """
        Create a calendar event with a Meet conference.

        Args:
            access_token: The user's Google access token
            title: Optional event title (default: "Meet")

        Returns:
            The Meet video link, or the event's htmlLink if Google returned none

        Raises:
            CalendarAuthError: Google rejected the access token
            CalendarError: Any other failure
        """
        service = self._service_factory(access_token)

        start_dt = self._clock()
        end_dt = start_dt + DEFAULT_DURATION

        event_body: Dict[str, Any] = {
            "summary": title or DEFAULT_TITLE,
            "start": {
                "dateTime": start_dt.isoformat(),
                "timeZone": "UTC",
            },
            "end": {
                "dateTime": end_dt.isoformat(),
                "timeZone": "UTC",
            },
            "conferenceData": {
                "createRequest": {
                    "requestId": str(uuid.uuid4()),
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                },
            },
        }

        try:
            event = service.events().insert(
                calendarId="primary",
                body=event_body,
                conferenceDataVersion=1,
            ).execute()
        except HttpError as e:
            status = getattr(e.resp, "status", None)
            if status == 401:
                raise CalendarAuthError("Google rejected the access token") from e
            logger.error(f"Error creating calendar event: HTTP {status}")
            raise CalendarError(f"Calendar API returned HTTP {status}") from e
        except Exception as e:
            logger.error(f"Error creating calendar event: {e}")
            raise CalendarError(str(e)) from e

        return self._meet_link(event)

    @staticmethod
    def _meet_link(event: Dict[str, Any]) -> str:
        conference = event.get("conferenceData") or {}
        for entry_point in conference.get("entryPoints", []):
            if entry_point.get("entryPointType") == "video" and entry_point.get("uri"):
                return entry_point["uri"]

        html_link = event.get("htmlLink")
        if not html_link:
            raise CalendarError("Calendar event has neither a Meet link nor an htmlLink")
        return html_link
