"""
Persistence for chat users, OAuth credentials and meeting records using Supabase.

Tokens are stored encrypted, one credential row per chat user. Every
persistence failure surfaces as `StoreUnavailable`; absence is `None`.

Tables (see migrations/001_initial.sql):
    chat_users          (workspace_id, user_id) unique, last_active_at
    oauth_credentials   (workspace_id, user_id) unique, encrypted tokens
    meetings            append-only log of created meetings
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, TypeVar

from supabase import Client

from ..crypto import TokenCipher
from ..errors import CredentialUnreadable, StoreUnavailable, TokenDecryptionError
from ..models import ChatUser, MeetingRecord, OAuthCredential


logger = logging.getLogger(__name__)

T = TypeVar("T")

USERS_TABLE = "chat_users"
CREDENTIALS_TABLE = "oauth_credentials"
MEETINGS_TABLE = "meetings"

_USER_CONFLICT_KEY = "workspace_id,user_id"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _run(operation: str, query: Callable[[], T]) -> T:
    """Execute a query, converting any client/transport error to StoreUnavailable."""
    try:
        return query()
    except Exception as e:
        logger.error(f"Store operation '{operation}' failed: {e}")
        raise StoreUnavailable(f"{operation} failed") from e


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


# --------------------------------------------------------------------------- #
# OAuth credentials
# --------------------------------------------------------------------------- #

class CredentialStore:
    """
    Durable mapping from ChatUser to OAuthCredential.

    The only writer of the `oauth_credentials` table. `upsert` is a single
    statement that replaces the whole row, so concurrent writers for the same
    user can never leave a merged record behind.
    """

    def __init__(self, db: Client, cipher: TokenCipher):
        self._db = db
        self._cipher = cipher

    def get(self, user: ChatUser) -> Optional[OAuthCredential]:
        """
        Look up the credential for a user.

        Returns:
            The decrypted credential, or None if the user has none

        Raises:
            CredentialUnreadable: If the stored tokens or expiry cannot be read
            StoreUnavailable: On any persistence failure
        """
        result = _run("get credential", lambda: (
            self._db.table(CREDENTIALS_TABLE)
            .select("access_token,refresh_token,expires_at,scopes")
            .eq("workspace_id", user.workspace_id)
            .eq("user_id", user.user_id)
            .execute()
        ))

        if not result.data:
            return None
        return self._from_row(user, result.data[0])

    def upsert(self, user: ChatUser, credential: OAuthCredential) -> None:
        """Insert or wholly replace the credential for a user."""
        row = self._to_row(user, credential)
        _run("upsert credential", lambda: (
            self._db.table(CREDENTIALS_TABLE)
            .upsert(row, on_conflict=_USER_CONFLICT_KEY)
            .execute()
        ))
        logger.debug(f"Stored credential for {user}")

    def delete(self, user: ChatUser) -> bool:
        """
        Remove the credential for a user.

        Returns:
            True if a credential was deleted, False if there was none
        """
        result = _run("delete credential", lambda: (
            self._db.table(CREDENTIALS_TABLE)
            .delete()
            .eq("workspace_id", user.workspace_id)
            .eq("user_id", user.user_id)
            .execute()
        ))
        return len(result.data) > 0

    def _to_row(self, user: ChatUser, credential: OAuthCredential) -> Dict[str, Any]:
        refresh_token = credential.refresh_token
        return {
            "workspace_id": user.workspace_id,
            "user_id": user.user_id,
            "access_token": self._cipher.encrypt(credential.access_token),
            "refresh_token": self._cipher.encrypt(refresh_token) if refresh_token else None,
            "expires_at": credential.expires_at.isoformat() if credential.expires_at else None,
            "scopes": " ".join(sorted(credential.scopes)),
            "updated_at": _utcnow().isoformat(),
        }

    def _from_row(self, user: ChatUser, row: Dict[str, Any]) -> OAuthCredential:
        try:
            access_token = self._cipher.decrypt(row["access_token"])
            refresh_token = (
                self._cipher.decrypt(row["refresh_token"])
                if row.get("refresh_token")
                else None
            )
        except TokenDecryptionError as e:
            logger.warning(f"Stored credential for {user} is unreadable: {e}")
            raise CredentialUnreadable(str(e)) from e

        try:
            expires_at = _parse_timestamp(row.get("expires_at"))
        except ValueError as e:
            logger.warning(f"Stored credential for {user} has an unreadable expiry: {e}")
            raise CredentialUnreadable(f"Invalid expires_at: {row.get('expires_at')!r}") from e

        return OAuthCredential(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
            scopes=frozenset((row.get("scopes") or "").split()),
        )


# --------------------------------------------------------------------------- #
# Chat users
# --------------------------------------------------------------------------- #

class ChatUserStore:
    """Records that a chat user exists and when they were last active."""

    def __init__(self, db: Client):
        self._db = db

    def touch(self, user: ChatUser) -> None:
        """Create the user on first sight, otherwise bump last_active_at."""
        _run("touch user", lambda: (
            self._db.table(USERS_TABLE)
            .upsert({
                "workspace_id": user.workspace_id,
                "user_id": user.user_id,
                "last_active_at": _utcnow().isoformat(),
            }, on_conflict=_USER_CONFLICT_KEY)
            .execute()
        ))


# --------------------------------------------------------------------------- #
# Meetings
# --------------------------------------------------------------------------- #

class MeetingStore:
    """Append-only log of meetings created through the bot."""

    def __init__(self, db: Client):
        self._db = db

    def append(self, record: MeetingRecord) -> MeetingRecord:
        _run("append meeting", lambda: (
            self._db.table(MEETINGS_TABLE)
            .insert({
                "workspace_id": record.user.workspace_id,
                "user_id": record.user.user_id,
                "meet_link": record.meet_link,
                "title": record.title,
                "created_at": record.created_at.isoformat(),
            })
            .execute()
        ))
        return record

    def list_for_user(self, user: ChatUser, limit: int = 10) -> List[MeetingRecord]:
        """Most recent meetings for a user, newest first."""
        result = _run("list meetings", lambda: (
            self._db.table(MEETINGS_TABLE)
            .select("meet_link,title,created_at")
            .eq("workspace_id", user.workspace_id)
            .eq("user_id", user.user_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        ))
        return [
            MeetingRecord(
                user=user,
                meet_link=row["meet_link"],
                title=row.get("title"),
                created_at=_parse_timestamp(row["created_at"]),
            )
            for row in result.data
        ]
