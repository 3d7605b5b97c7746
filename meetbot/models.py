from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# --------------------------------------------------------------------------- #
# Identity
# --------------------------------------------------------------------------- #

class ChatUser(BaseModel):
    """A person within a chat workspace. Immutable, used as a key everywhere."""

    model_config = ConfigDict(frozen=True)

    workspace_id: str  # Slack team_id
    user_id: str  # Slack user_id

    def __str__(self) -> str:
        return f"{self.workspace_id}/{self.user_id}"


# --------------------------------------------------------------------------- #
# Stored records
# --------------------------------------------------------------------------- #

class OAuthCredential(BaseModel):
    """Delegated Google OAuth2 token material for one ChatUser."""

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(repr=False)
    refresh_token: Optional[str] = Field(default=None, repr=False)
    # None means the provider gave no lifetime; assume long-lived.
    expires_at: Optional[datetime] = None
    scopes: FrozenSet[str] = frozenset()

    def is_expired(self, now: datetime) -> bool:
        if self.expires_at is None:
            return False
        return now >= self.expires_at

    def expires_within(self, now: datetime, leeway: timedelta) -> bool:
        """True if the token is expired or will be within `leeway` of `now`."""
        if self.expires_at is None:
            return False
        return now + leeway >= self.expires_at


class MeetingRecord(BaseModel):
    """Append-only log entry for a created meeting."""

    user: ChatUser
    meet_link: str
    title: Optional[str] = None
    created_at: datetime


# --------------------------------------------------------------------------- #
# Slack slash command
# --------------------------------------------------------------------------- #

class SlashCommand(BaseModel):
    """Form payload Slack posts for a slash command."""

    model_config = ConfigDict(extra="ignore")

    team_id: str
    user_id: str
    command: str
    channel_id: str = ""
    user_name: str = ""
    team_domain: str = ""
    channel_name: str = ""
    text: Optional[str] = None
    response_url: str = ""
    trigger_id: str = ""
    token: str = ""

    @property
    def chat_user(self) -> ChatUser:
        return ChatUser(workspace_id=self.team_id, user_id=self.user_id)

    @property
    def title(self) -> Optional[str]:
        if self.text and self.text.strip():
            return self.text.strip()
        return None


class SlackAction(BaseModel):
    name: str
    text: str
    type: str = "button"
    url: str
    style: str = "primary"


class SlackAttachment(BaseModel):
    color: str
    title: str
    text: str
    actions: Optional[List[SlackAction]] = None


class SlackResponse(BaseModel):
    """Body returned synchronously to a slash command."""

    response_type: Literal["ephemeral", "in_channel"] = "ephemeral"
    text: str
    attachments: Optional[List[SlackAttachment]] = None

    @classmethod
    def ephemeral(cls, text: str) -> "SlackResponse":
        return cls(response_type="ephemeral", text=text)

    @classmethod
    def in_channel(cls, text: str) -> "SlackResponse":
        return cls(response_type="in_channel", text=text)

    @classmethod
    def auth_prompt(cls, auth_url: str) -> "SlackResponse":
        attachment = SlackAttachment(
            color="warning",
            title="Authentication Required",
            text="You need to authenticate with Google to create Meet links.",
            actions=[
                SlackAction(name="auth", text="Authenticate with Google", url=auth_url),
            ],
        )
        return cls(
            response_type="ephemeral",
            text=":lock: Authentication needed to create Google Meet links",
            attachments=[attachment],
        )

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


# --------------------------------------------------------------------------- #
# Token acquisition results
# --------------------------------------------------------------------------- #

class AccessToken(BaseModel):
    kind: Literal["access_token"] = "access_token"
    token: str = Field(repr=False)


class NeedsAuthorization(BaseModel):
    kind: Literal["needs_authorization"] = "needs_authorization"
    auth_url: str


class TransientFailure(BaseModel):
    kind: Literal["transient_failure"] = "transient_failure"
    reason: str


TokenAcquisition = Union[AccessToken, NeedsAuthorization, TransientFailure]


# --------------------------------------------------------------------------- #
# Command outcomes
# --------------------------------------------------------------------------- #

class FailureKind(str, Enum):
    TEMPORARILY_UNAVAILABLE = "temporarily_unavailable"
    STORE_UNAVAILABLE = "store_unavailable"
    CALENDAR_ERROR = "calendar_error"


class MeetingLink(BaseModel):
    kind: Literal["meeting_link"] = "meeting_link"
    url: str


class AuthorizationPrompt(BaseModel):
    kind: Literal["authorization_prompt"] = "authorization_prompt"
    auth_url: str


class Failure(BaseModel):
    kind: Literal["failure"] = "failure"
    failure: FailureKind
    retryable: bool = True


CommandOutcome = Union[MeetingLink, AuthorizationPrompt, Failure]
