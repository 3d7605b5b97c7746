"""
Slack slash-command endpoint.

Every request is verified before its body is parsed. Exactly three things
reach the user: an in-channel Meet link, an ephemeral authorization prompt,
or a short ephemeral failure message.
"""
from __future__ import annotations

import logging
from typing import Any, Dict
from urllib.parse import parse_qsl

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError as PydanticValidationError

from ...errors import RateLimitExceeded, RejectionReason, ValidationError
from ...models import AuthorizationPrompt, CommandOutcome, MeetingLink, SlackResponse, SlashCommand
from ...rate_limiter import SLACK_COMMANDS
from ...services import Services, get_services


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/slack", tags=["slack"])

HELP_TEXT = (
    "*Meet bot*\n"
    "`/meet [title]` create a Google Meet link, optionally with a title\n"
    "`/meet-auth` connect (or reconnect) your Google account\n"
    "`/meet-help` show this message"
)
FAILURE_TEXT = ":x: Sorry, something went wrong creating your meeting. Please try again."


# --------------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------------- #

def _parse_command(raw_body: bytes) -> SlashCommand:
    try:
        form = dict(parse_qsl(raw_body.decode("utf-8"), keep_blank_values=True))
        return SlashCommand.model_validate(form)
    except (UnicodeDecodeError, PydanticValidationError) as e:
        logger.error(f"Failed to parse slash command form data: {e}")
        raise HTTPException(status_code=400, detail="Malformed command payload")


def render_outcome(outcome: CommandOutcome, command: SlashCommand) -> SlackResponse:
    """Map an orchestrator outcome to the Slack response shown to the user."""
    if isinstance(outcome, MeetingLink):
        return SlackResponse.in_channel(
            f":movie_camera: Google Meet created by <@{command.user_id}>: {outcome.url}"
        )
    if isinstance(outcome, AuthorizationPrompt):
        return SlackResponse.auth_prompt(outcome.auth_url)
    return SlackResponse.ephemeral(FAILURE_TEXT)


# --------------------------------------------------------------------------- #
# Endpoints
# --------------------------------------------------------------------------- #

@router.post("/commands")
async def slack_commands(
    request: Request,
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """Entry point for `/meet`, `/meet-auth` and `/meet-help`."""
    raw_body = await request.body()

    verification = services.verifier.verify(raw_body, request.headers)
    if not verification.accepted:
        status_code = 400 if verification.reason == RejectionReason.MALFORMED_HEADERS else 401
        raise HTTPException(status_code=status_code, detail="Request verification failed")

    command = _parse_command(raw_body)
    validator = services.validator

    try:
        validator.validate_slack_command(command.command)
    except ValidationError as e:
        logger.warning(f"Invalid command: {e}")
        return SlackResponse.ephemeral(":x: Invalid command").to_payload()

    try:
        validator.validate_slack_user_id(command.user_id)
        validator.validate_slack_team_id(command.team_id)
        validator.validate_slack_channel_id(command.channel_id)
        validator.validate_url(command.response_url)
    except ValidationError as e:
        logger.warning(f"Rejected slash command payload: {e}")
        raise HTTPException(status_code=400, detail="Invalid command payload")

    if command.text:
        try:
            validator.validate_text_input(command.text, "command text")
            if command.title:
                validator.validate_meeting_title(command.title)
        except ValidationError as e:
            logger.warning(f"Invalid command text from {command.chat_user}: {e}")
            return SlackResponse.ephemeral(
                ":x: Invalid command text. Please check for special characters."
            ).to_payload()

    try:
        services.rate_limiter.check_user_limit(str(command.chat_user), SLACK_COMMANDS)
    except RateLimitExceeded:
        return SlackResponse.ephemeral(
            ":stopwatch: Please slow down! You're sending commands too quickly."
        ).to_payload()

    try:
        services.rate_limiter.check_endpoint_limit(SLACK_COMMANDS)
    except RateLimitExceeded:
        return SlackResponse.ephemeral(
            ":no_entry: Service temporarily unavailable due to high load. Please try again later."
        ).to_payload()

    if command.command == "/meet-help":
        return SlackResponse.ephemeral(HELP_TEXT).to_payload()

    if command.command == "/meet-auth":
        prompt = services.orchestrator.authorize(command)
        return render_outcome(prompt, command).to_payload()

    outcome = await services.orchestrator.handle(command)
    return render_outcome(outcome, command).to_payload()
