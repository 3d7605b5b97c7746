"""
Input validation for Slack payloads and OAuth callback parameters.

Everything arriving from outside goes through `InputValidator` before it is
used. Failures raise `ValidationError` with a message safe to log.
"""
from __future__ import annotations

import re
from typing import FrozenSet

from .errors import ValidationError


ALLOWED_COMMANDS: FrozenSet[str] = frozenset({"/meet", "/meet-auth", "/meet-help"})

_SLACK_USER_ID = re.compile(r"^U[A-Z0-9]{8,10}$")
_SLACK_TEAM_ID = re.compile(r"^T[A-Z0-9]{8,10}$")
_SLACK_CHANNEL_ID = re.compile(r"^[CDG][A-Z0-9]{8,10}$")
_OAUTH_STATE = re.compile(r"^[A-Za-z0-9_-]{32,128}$")
_OAUTH_CODE = re.compile(r"^[A-Za-z0-9._/-]{10,200}$")

_DANGEROUS_PATTERNS = (
    "javascript:", "data:", "vbscript:", "<script", "</script",
    "onload=", "onerror=", "onclick=", "onmouseover=",
    "eval(", "document.cookie", "window.location",
    "alert(", "confirm(", "prompt(",
    "document.write", "innerhtml", "outerhtml",
)


class InputValidator:
    """Stateless validators; one shared instance is fine."""

    def __init__(self, max_text_length: int = 2000, max_title_length: int = 200):
        self.max_text_length = max_text_length
        self.max_title_length = max_title_length

    # ----------------------------------------------------------------------- #
    # Slack identifiers
    # ----------------------------------------------------------------------- #

    def validate_slack_user_id(self, user_id: str) -> None:
        if not user_id:
            raise ValidationError("User ID cannot be empty")
        if not _SLACK_USER_ID.match(user_id):
            raise ValidationError(f"Invalid Slack user ID format: {user_id}")

    def validate_slack_team_id(self, team_id: str) -> None:
        if not team_id:
            raise ValidationError("Team ID cannot be empty")
        if not _SLACK_TEAM_ID.match(team_id):
            raise ValidationError(f"Invalid Slack team ID format: {team_id}")

    def validate_slack_channel_id(self, channel_id: str) -> None:
        if not channel_id:
            raise ValidationError("Channel ID cannot be empty")
        if not _SLACK_CHANNEL_ID.match(channel_id):
            raise ValidationError(f"Invalid Slack channel ID format: {channel_id}")

    def validate_slack_command(self, command: str) -> None:
        if not command:
            raise ValidationError("Command cannot be empty")
        if command not in ALLOWED_COMMANDS:
            raise ValidationError(f"Unknown command: {command}")

    # ----------------------------------------------------------------------- #
    # Free text
    # ----------------------------------------------------------------------- #

    def validate_text_input(self, text: str, field_name: str = "text") -> str:
        """
        Check length and reject script-injection patterns.

        Returns:
            The text with leading/trailing whitespace removed
        """
        if len(text) > self.max_text_length:
            raise ValidationError(
                f"{field_name} exceeds maximum length of {self.max_text_length} characters"
            )

        lowered = text.lower()
        for pattern in _DANGEROUS_PATTERNS:
            if pattern in lowered:
                raise ValidationError(f"{field_name} contains potentially dangerous content: {pattern}")

        return text.strip()

    def validate_meeting_title(self, title: str) -> str:
        if not title or not title.strip():
            raise ValidationError("Meeting title cannot be empty")
        if len(title) > self.max_title_length:
            raise ValidationError(
                f"Meeting title too long (maximum {self.max_title_length} characters)"
            )
        return self.validate_text_input(title, "Meeting title")

    def validate_url(self, url: str) -> None:
        if not url:
            raise ValidationError("URL cannot be empty")
        if not url.startswith("https://"):
            raise ValidationError("URL must use HTTPS")
        if "slack.com" in url and not url.startswith("https://hooks.slack.com/"):
            raise ValidationError("Invalid Slack URL domain")
        if len(url) > 2048:
            raise ValidationError("URL too long")

    # ----------------------------------------------------------------------- #
    # OAuth callback
    # ----------------------------------------------------------------------- #

    def validate_oauth_state(self, state: str) -> None:
        if not state:
            raise ValidationError("OAuth state cannot be empty")
        if not _OAUTH_STATE.match(state):
            raise ValidationError("OAuth state has invalid length or characters")

    def validate_oauth_code(self, code: str) -> None:
        if not code:
            raise ValidationError("OAuth code cannot be empty")
        if not _OAUTH_CODE.match(code):
            raise ValidationError("OAuth code has invalid length or characters")
