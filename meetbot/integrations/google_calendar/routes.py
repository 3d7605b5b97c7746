"""
Google OAuth callback route for calendar access.

Users reach this page after consenting at Google via the link the bot posted
in Slack. The state parameter binds the callback to that Slack user.
"""
from __future__ import annotations

import html
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse

from ...errors import (
    AuthorizationFailed,
    InvalidState,
    RateLimitExceeded,
    StoreUnavailable,
    TemporarilyUnavailable,
    ValidationError,
)
from ...rate_limiter import OAUTH_CALLBACK
from ...services import Services, get_services


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth/google", tags=["oauth"])


# --------------------------------------------------------------------------- #
# Pages
# --------------------------------------------------------------------------- #

_PAGE = """<!DOCTYPE html>
<html>
<head>
    <title>{title}</title>
    <style>
        body {{ font-family: Arial, sans-serif; text-align: center; margin: 50px; }}
        .success {{ color: #28a745; }}
        .error {{ color: #dc3545; }}
        .container {{ max-width: 500px; margin: 0 auto; }}
    </style>
</head>
<body>
    <div class="container">
        <h1 class="{css_class}">{heading}</h1>
        {body}
    </div>
</body>
</html>
"""


def success_page() -> HTMLResponse:
    content = _PAGE.format(
        title="Authentication Successful",
        css_class="success",
        heading="Authentication Successful!",
        body=(
            "<p>You've successfully connected your Google account to the Slack bot.</p>\n"
            "        <p>You can now close this window and return to Slack to use the "
            "<code>/meet</code> command.</p>"
        ),
    )
    return HTMLResponse(content=content, status_code=200)


def error_page(message: str, status_code: int = 400) -> HTMLResponse:
    content = _PAGE.format(
        title="Authentication Error",
        css_class="error",
        heading="Authentication Error",
        body=(
            f"<p>{html.escape(message)}</p>\n"
            "        <p>Please try again or contact support if the problem persists.</p>"
        ),
    )
    return HTMLResponse(content=content, status_code=status_code)


# --------------------------------------------------------------------------- #
# Endpoints
# --------------------------------------------------------------------------- #

@router.get("/callback", response_class=HTMLResponse)
async def google_callback(
    request: Request,
    code: Optional[str] = Query(default=None, description="Authorization code returned by Google"),
    state: Optional[str] = Query(default=None),
    error: Optional[str] = Query(default=None, description="Set by Google when consent failed"),
    services: Services = Depends(get_services),
):
    """
    Complete Google OAuth using query parameters from the redirect callback.

    Example:
    /auth/google/callback?code=AUTH_CODE&state=STATE
    """
    if error:
        logger.info(f"Google OAuth returned error: {error}")
        return error_page("Authorization was cancelled or denied.")

    client_key = request.client.host if request.client else "unknown"
    try:
        services.rate_limiter.check_user_limit(client_key, OAUTH_CALLBACK)
        services.rate_limiter.check_endpoint_limit(OAUTH_CALLBACK)
    except RateLimitExceeded:
        return error_page("Too many authentication attempts. Please try again later.", 429)

    try:
        services.validator.validate_oauth_code(code or "")
        services.validator.validate_oauth_state(state or "")
    except ValidationError as e:
        logger.warning(f"Invalid OAuth callback parameters: {e}")
        return error_page("Invalid authentication request")

    try:
        user = await services.lifecycle.complete_authorization(code, state)
    except InvalidState:
        return error_page("This authorization link has expired or was already used. Run /meet-auth again.")
    except AuthorizationFailed:
        return error_page("Google did not accept the authorization. Please try again.")
    except (TemporarilyUnavailable, StoreUnavailable) as e:
        logger.error(f"OAuth callback failed: {e}")
        return error_page("Service temporarily unavailable. Please try again later.", 503)

    # The grant is already stored; the user row is bumped again on the next meeting.
    try:
        services.users.touch(user)
    except StoreUnavailable as e:
        logger.error(f"Could not record user {user} after OAuth: {e}")

    logger.info(f"OAuth completed for {user}")
    return success_page()
