"""Unit tests for meetbot.validation.InputValidator."""

from __future__ import annotations

import pytest

from meetbot.errors import ValidationError
from meetbot.validation import InputValidator

pytestmark = pytest.mark.unit


@pytest.fixture
def validator() -> InputValidator:
    return InputValidator()


# ---------------------------------------------------------------------------
# Slack identifiers
# ---------------------------------------------------------------------------


class TestSlackIdentifiers:
    @pytest.mark.parametrize("user_id", ["U12345678", "U1234567890", "UABCDEFGH"])
    def test_valid_user_ids(self, validator: InputValidator, user_id: str) -> None:
        validator.validate_slack_user_id(user_id)

    @pytest.mark.parametrize("user_id", ["", "U123", "u12345678", "T12345678", "U12345678901", "U1234-678"])
    def test_invalid_user_ids(self, validator: InputValidator, user_id: str) -> None:
        with pytest.raises(ValidationError):
            validator.validate_slack_user_id(user_id)

    def test_team_id(self, validator: InputValidator) -> None:
        validator.validate_slack_team_id("T12345678")
        with pytest.raises(ValidationError):
            validator.validate_slack_team_id("U12345678")

    @pytest.mark.parametrize("channel_id", ["C12345678", "D12345678", "G12345678"])
    def test_valid_channel_ids(self, validator: InputValidator, channel_id: str) -> None:
        validator.validate_slack_channel_id(channel_id)

    def test_invalid_channel_id(self, validator: InputValidator) -> None:
        with pytest.raises(ValidationError):
            validator.validate_slack_channel_id("X12345678")

    @pytest.mark.parametrize("command", ["/meet", "/meet-auth", "/meet-help"])
    def test_known_commands(self, validator: InputValidator, command: str) -> None:
        validator.validate_slack_command(command)

    @pytest.mark.parametrize("command", ["", "/zoom", "meet", "/MEET"])
    def test_unknown_commands(self, validator: InputValidator, command: str) -> None:
        with pytest.raises(ValidationError):
            validator.validate_slack_command(command)


# ---------------------------------------------------------------------------
# Free text
# ---------------------------------------------------------------------------


class TestText:
    def test_text_is_stripped(self, validator: InputValidator) -> None:
        assert validator.validate_text_input("  Weekly sync  ") == "Weekly sync"

    def test_text_too_long(self, validator: InputValidator) -> None:
        with pytest.raises(ValidationError, match="maximum length"):
            validator.validate_text_input("a" * 2001)

    @pytest.mark.parametrize(
        "text",
        ["<script>alert(1)</script>", "JavaScript:void(0)", "x onerror=y", "document.cookie"],
    )
    def test_dangerous_text(self, validator: InputValidator, text: str) -> None:
        with pytest.raises(ValidationError, match="dangerous"):
            validator.validate_text_input(text)

    def test_title(self, validator: InputValidator) -> None:
        assert validator.validate_meeting_title(" Retro ") == "Retro"

    @pytest.mark.parametrize("title", ["", "   ", "t" * 201])
    def test_invalid_titles(self, validator: InputValidator, title: str) -> None:
        with pytest.raises(ValidationError):
            validator.validate_meeting_title(title)


# ---------------------------------------------------------------------------
# URLs and OAuth parameters
# ---------------------------------------------------------------------------


class TestUrlsAndOAuth:
    def test_slack_response_url(self, validator: InputValidator) -> None:
        validator.validate_url("https://hooks.slack.com/commands/T12345678/1/abc")

    @pytest.mark.parametrize(
        "url",
        ["", "http://hooks.slack.com/x", "https://evil.slack.com/x", "https://example.com/" + "a" * 2048],
    )
    def test_invalid_urls(self, validator: InputValidator, url: str) -> None:
        with pytest.raises(ValidationError):
            validator.validate_url(url)

    def test_oauth_state(self, validator: InputValidator) -> None:
        validator.validate_oauth_state("a" * 43)
        with pytest.raises(ValidationError):
            validator.validate_oauth_state("short")
        with pytest.raises(ValidationError):
            validator.validate_oauth_state("a" * 40 + "!!!")

    def test_oauth_code(self, validator: InputValidator) -> None:
        validator.validate_oauth_code("4/0AX4XfWj-code_value.1")
        with pytest.raises(ValidationError):
            validator.validate_oauth_code("")
        with pytest.raises(ValidationError):
            validator.validate_oauth_code("4/0AX4 XfWj-code")
