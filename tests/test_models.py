"""Unit tests for meetbot.models."""

from __future__ import annotations

from datetime import timedelta

import pytest
from pydantic import ValidationError

from meetbot.models import ChatUser, OAuthCredential, SlackResponse, SlashCommand
from tests.conftest import T0

pytestmark = pytest.mark.unit


class TestOAuthCredential:
    def test_expiry_checks(self) -> None:
        credential = OAuthCredential(access_token="a", expires_at=T0 + timedelta(minutes=3))
        assert not credential.is_expired(T0)
        assert credential.is_expired(T0 + timedelta(minutes=3))
        assert credential.expires_within(T0, timedelta(minutes=5))
        assert not credential.expires_within(T0, timedelta(minutes=1))

    def test_no_expiry_is_never_expired(self) -> None:
        credential = OAuthCredential(access_token="a")
        assert not credential.is_expired(T0 + timedelta(days=365))
        assert not credential.expires_within(T0, timedelta(days=1))

    def test_repr_hides_tokens(self) -> None:
        credential = OAuthCredential(access_token="ya29.secret", refresh_token="1//secret")
        assert "secret" not in repr(credential)

    def test_is_immutable(self) -> None:
        credential = OAuthCredential(access_token="a")
        with pytest.raises(ValidationError):
            credential.access_token = "b"


class TestChatUser:
    def test_str_and_hash(self) -> None:
        user = ChatUser(workspace_id="T12345678", user_id="U12345678")
        assert str(user) == "T12345678/U12345678"
        assert {user, ChatUser(workspace_id="T12345678", user_id="U12345678")} == {user}


class TestSlashCommand:
    def test_title_is_stripped_text(self) -> None:
        command = SlashCommand(team_id="T1", user_id="U1", command="/meet", text="  Retro  ")
        assert command.title == "Retro"
        assert command.chat_user == ChatUser(workspace_id="T1", user_id="U1")

    @pytest.mark.parametrize("text", [None, "", "   "])
    def test_blank_text_has_no_title(self, text) -> None:
        assert SlashCommand(team_id="T1", user_id="U1", command="/meet", text=text).title is None

    def test_unknown_form_fields_are_ignored(self) -> None:
        command = SlashCommand.model_validate(
            {"team_id": "T1", "user_id": "U1", "command": "/meet", "api_app_id": "A1", "is_enterprise_install": "false"}
        )
        assert command.command == "/meet"


class TestSlackResponse:
    def test_ephemeral_payload_omits_attachments(self) -> None:
        assert SlackResponse.ephemeral("hi").to_payload() == {"response_type": "ephemeral", "text": "hi"}

    def test_auth_prompt_payload(self) -> None:
        payload = SlackResponse.auth_prompt("https://accounts.google.com/x").to_payload()
        action = payload["attachments"][0]["actions"][0]
        assert payload["attachments"][0]["color"] == "warning"
        assert action == {
            "name": "auth",
            "text": "Authenticate with Google",
            "type": "button",
            "url": "https://accounts.google.com/x",
            "style": "primary",
        }
