"""
Error taxonomy for meetbot.

Authenticator rejections are modelled as `RejectionReason` values rather than
exceptions (verification is a pure function returning a result). Everything
else that can go wrong while serving a command is an exception below.
"""
from __future__ import annotations

from enum import Enum


class RejectionReason(str, Enum):
    """Why an inbound Slack request was rejected."""
    SIGNATURE_INVALID = "signature_invalid"
    STALE_TIMESTAMP = "stale_timestamp"
    MALFORMED_HEADERS = "malformed_headers"


class MeetbotError(Exception):
    """Base class for all meetbot errors."""


# --------------------------------------------------------------------------- #
# Token lifecycle / storage
# --------------------------------------------------------------------------- #

class InvalidState(MeetbotError):
    """OAuth callback state is missing, unknown, expired or already used."""


class AuthorizationFailed(MeetbotError):
    """The provider refused to exchange the authorization code."""


class ReauthorizationRequired(MeetbotError):
    """The stored grant was revoked or can no longer be refreshed."""


class TemporarilyUnavailable(MeetbotError):
    """The provider could not be reached or answered with a server error."""


class StoreUnavailable(MeetbotError):
    """The persistence layer failed. Never means "user unauthenticated"."""


class CredentialUnreadable(MeetbotError):
    """A stored credential exists but cannot be decrypted."""


class TokenDecryptionError(MeetbotError):
    """Ciphertext is malformed or was not produced with the configured key."""


# --------------------------------------------------------------------------- #
# Calendar collaborator
# --------------------------------------------------------------------------- #

class CalendarError(MeetbotError):
    """Creating the calendar event failed."""


class CalendarAuthError(CalendarError):
    """Google rejected the access token (HTTP 401)."""


# --------------------------------------------------------------------------- #
# Request guards
# --------------------------------------------------------------------------- #

class RateLimitExceeded(MeetbotError):
    """Too many requests for a user or an endpoint."""


class ValidationError(MeetbotError):
    """Inbound input did not pass validation."""
