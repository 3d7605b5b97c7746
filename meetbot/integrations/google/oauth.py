"""
Google OAuth token lifecycle for chat users.

Owns the per-user authorization state machine:

    NoGrant  --authorization_url()-->  (user consents at Google)
             --complete_authorization(code, state)-->  Valid
    Valid    --time passes-->  Expired
    Expired  --silent refresh ok-->  Valid
             --grant revoked-->  NoGrant (credential deleted)
             --network / 5xx-->  Expired (credential kept)

Callers only ever use `acquire_usable_token()`, which walks the machine and
returns an `AccessToken`, `NeedsAuthorization` or `TransientFailure`.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Tuple

import httpx
from google_auth_oauthlib.flow import Flow

from ...errors import (
    AuthorizationFailed,
    CredentialUnreadable,
    InvalidState,
    ReauthorizationRequired,
    TemporarilyUnavailable,
)
from ...models import (
    AccessToken,
    ChatUser,
    NeedsAuthorization,
    OAuthCredential,
    TokenAcquisition,
    TransientFailure,
)
from ..token_storage import CredentialStore
from .state import OAuthStateStore


logger = logging.getLogger(__name__)

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"

# Refresh this long before the provider-reported expiry.
DEFAULT_EXPIRY_LEEWAY = timedelta(minutes=5)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class GoogleOAuthConfig:
    """OAuth client settings, fixed at process startup."""

    client_id: str
    client_secret: str
    redirect_uri: str
    auth_uri: str = GOOGLE_AUTH_URI
    token_uri: str = GOOGLE_TOKEN_URI
    scopes: Tuple[str, ...] = (
        "https://www.googleapis.com/auth/calendar",
        "https://www.googleapis.com/auth/calendar.events",
    )
    required_scopes: Tuple[str, ...] = (
        "https://www.googleapis.com/auth/calendar.events",
    )
    timeout_seconds: float = 10.0

    def __repr__(self) -> str:
        return f"GoogleOAuthConfig(client_id={self.client_id!r}, redirect_uri={self.redirect_uri!r})"

    @property
    def client_config(self) -> Dict[str, Any]:
        """Client config in the shape `google_auth_oauthlib` expects."""
        return {
            "web": {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": self.auth_uri,
                "token_uri": self.token_uri,
                "redirect_uris": [self.redirect_uri],
            }
        }


class _ProviderRejected(Exception):
    """Token endpoint answered 4xx with an OAuth error code."""

    def __init__(self, status_code: int, error: str):
        super().__init__(f"HTTP {status_code}: {error}")
        self.status_code = status_code
        self.error = error


class TokenLifecycleManager:
    """
    Issues, stores, refreshes and hands out Google access tokens per chat user.

    The only component that asks the CredentialStore to write. No lock is held
    across provider round trips; concurrent refreshes for the same user each
    write a whole, individually valid credential and the last write wins.

    Args:
        config: OAuth client configuration
        store: Credential persistence
        states: Short-lived CSRF state tokens
        http_client: Optional shared client for the token endpoint
        clock: Returns the current UTC time; read once per operation
        expiry_leeway: Treat tokens expiring within this window as expired
    """

    def __init__(
        self,
        config: GoogleOAuthConfig,
        store: CredentialStore,
        states: OAuthStateStore,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], datetime] = _utcnow,
        expiry_leeway: timedelta = DEFAULT_EXPIRY_LEEWAY,
    ):
        self._config = config
        self._store = store
        self._states = states
        self._http = http_client
        self._clock = clock
        self._leeway = expiry_leeway

    # ----------------------------------------------------------------------- #
    # OAuth Flow
    # ----------------------------------------------------------------------- #

    def authorization_url(self, user: ChatUser) -> str:
        """
        Build the Google consent URL for `user` with a fresh state token.

        Returns:
            The authorization URL for the user to visit
        """
        state = self._states.issue(user)
        flow = Flow.from_client_config(
            self._config.client_config,
            scopes=list(self._config.scopes),
            redirect_uri=self._config.redirect_uri,
            autogenerate_code_verifier=False,
        )
        auth_url, _ = flow.authorization_url(
            access_type="offline",
            prompt="consent",
            state=state,
        )
        logger.info(f"Issued authorization URL for {user}")
        return auth_url

    async def complete_authorization(self, code: str, state: Optional[str]) -> ChatUser:
        """
        Finish the flow started by `authorization_url()`.

        Args:
            code: Authorization code from the callback
            state: State token from the callback

        Returns:
            The chat user the grant now belongs to

        Raises:
            InvalidState: State missing, unknown, expired or reused; nothing written
            AuthorizationFailed: Google refused the code
            TemporarilyUnavailable: Google unreachable, slow or erroring
            StoreUnavailable: The credential could not be persisted
        """
        user = self._states.consume(state)
        if user is None:
            logger.warning("OAuth callback with unknown or expired state")
            raise InvalidState("Unknown or expired authorization state")

        now = self._clock()
        return await asyncio.shield(self._exchange_and_store(user, code, now))

    async def _exchange_and_store(self, user: ChatUser, code: str, now: datetime) -> ChatUser:
        try:
            data = await self._request_token({
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self._config.redirect_uri,
            })
        except _ProviderRejected as e:
            logger.warning(f"Authorization code exchange rejected for {user}: {e.error}")
            raise AuthorizationFailed(e.error) from e

        credential = self._credential_from_response(data, now, previous=None)
        self._store.upsert(user, credential)
        logger.info(f"Stored new Google credential for {user}")
        return user

    def disconnect(self, user: ChatUser) -> bool:
        """
        Forget the user's grant.

        Returns:
            True if credentials were removed
        """
        return self._store.delete(user)

    # ----------------------------------------------------------------------- #
    # Token Access
    # ----------------------------------------------------------------------- #

    async def acquire_usable_token(self, user: ChatUser) -> TokenAcquisition:
        """
        Return a usable access token for `user`, refreshing it if needed.

        Raises:
            StoreUnavailable: Persistence failed; never reported as NeedsAuthorization
        """
        now = self._clock()
        credential = self._load(user)

        if credential is None:
            return NeedsAuthorization(auth_url=self.authorization_url(user))

        if not self._has_required_scopes(credential):
            logger.warning(f"Credential for {user} lacks required scopes; asking for consent")
            return NeedsAuthorization(auth_url=self.authorization_url(user))

        if not credential.expires_within(now, self._leeway):
            return AccessToken(token=credential.access_token)

        logger.info(f"Token for {user} expired or expiring soon, refreshing")
        return await asyncio.shield(self._refresh(user, credential, now))

    async def refresh_after_rejection(self, user: ChatUser) -> TokenAcquisition:
        """
        Force a refresh after a downstream call rejected the access token.

        Used for tokens stored without an expiry, and for any token that
        stopped working before its recorded expiry.
        """
        now = self._clock()
        credential = self._load(user)
        if credential is None:
            return NeedsAuthorization(auth_url=self.authorization_url(user))

        logger.info(f"Access token for {user} was rejected downstream, refreshing")
        return await asyncio.shield(self._refresh(user, credential, now))

    def _load(self, user: ChatUser) -> Optional[OAuthCredential]:
        try:
            return self._store.get(user)
        except CredentialUnreadable:
            logger.warning(f"Deleting unreadable credential for {user}")
            self._store.delete(user)
            return None

    def _has_required_scopes(self, credential: OAuthCredential) -> bool:
        # An empty scope set means the provider never told us; trust the token.
        if not credential.scopes:
            return True
        return all(scope in credential.scopes for scope in self._config.required_scopes)

    async def _refresh(
        self,
        user: ChatUser,
        credential: OAuthCredential,
        now: datetime,
    ) -> TokenAcquisition:
        try:
            refreshed = await self._refresh_credential(credential, now)
        except ReauthorizationRequired as e:
            logger.warning(f"Grant for {user} is no longer valid ({e}); deleting credential")
            self._store.delete(user)
            return NeedsAuthorization(auth_url=self.authorization_url(user))
        except TemporarilyUnavailable as e:
            logger.warning(f"Refresh for {user} failed transiently: {e}")
            return TransientFailure(reason=str(e))

        self._store.upsert(user, refreshed)
        logger.info(f"Refreshed Google token for {user}")
        return AccessToken(token=refreshed.access_token)

    async def _refresh_credential(
        self,
        credential: OAuthCredential,
        now: datetime,
    ) -> OAuthCredential:
        """
        Exchange the refresh token for a new credential.

        Raises:
            ReauthorizationRequired: No refresh token, or Google says invalid_grant
            TemporarilyUnavailable: Anything else that went wrong
        """
        if not credential.refresh_token:
            raise ReauthorizationRequired("No refresh token available")

        try:
            data = await self._request_token({
                "grant_type": "refresh_token",
                "refresh_token": credential.refresh_token,
            })
        except _ProviderRejected as e:
            if e.error == "invalid_grant":
                raise ReauthorizationRequired("Grant revoked or expired") from e
            raise TemporarilyUnavailable(f"Token endpoint rejected refresh: {e.error}") from e

        return self._credential_from_response(data, now, previous=credential)

    # ----------------------------------------------------------------------- #
    # Token endpoint
    # ----------------------------------------------------------------------- #

    async def _request_token(self, payload: Dict[str, str]) -> Dict[str, Any]:
        """
        POST to the token endpoint with client credentials.

        Raises:
            _ProviderRejected: 4xx with an OAuth error body
            TemporarilyUnavailable: Transport error, timeout, 5xx or bad body
        """
        form = {
            **payload,
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret,
        }
        timeout = self._config.timeout_seconds

        try:
            if self._http is not None:
                response = await self._http.post(self._config.token_uri, data=form, timeout=timeout)
            else:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    response = await client.post(self._config.token_uri, data=form)
        except httpx.TimeoutException as e:
            raise TemporarilyUnavailable("Token endpoint timed out") from e
        except httpx.HTTPError as e:
            raise TemporarilyUnavailable(f"Network error talking to token endpoint: {e}") from e

        if response.status_code >= 500:
            raise TemporarilyUnavailable(f"Token endpoint returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise TemporarilyUnavailable("Invalid JSON in token response") from e

        if not isinstance(data, dict):
            raise TemporarilyUnavailable("Unexpected token response shape")

        if response.status_code >= 400:
            raise _ProviderRejected(response.status_code, str(data.get("error", "unknown_error")))

        if not data.get("access_token"):
            raise TemporarilyUnavailable("Token response has no access_token")

        return data

    def _credential_from_response(
        self,
        data: Dict[str, Any],
        now: datetime,
        previous: Optional[OAuthCredential],
    ) -> OAuthCredential:
        expires_at = None
        expires_in = data.get("expires_in")
        if expires_in is not None:
            try:
                expires_at = now + timedelta(seconds=int(float(expires_in)))
            except (TypeError, ValueError):
                logger.warning(f"Ignoring unparseable expires_in: {expires_in!r}")

        if data.get("scope"):
            scopes = frozenset(str(data["scope"]).split())
        elif previous is not None:
            scopes = previous.scopes
        else:
            scopes = frozenset(self._config.scopes)

        # Google only rotates refresh tokens occasionally; keep the old one otherwise.
        refresh_token = data.get("refresh_token") or (previous.refresh_token if previous else None)

        return OAuthCredential(
            access_token=data["access_token"],
            refresh_token=refresh_token,
            expires_at=expires_at,
            scopes=scopes,
        )
