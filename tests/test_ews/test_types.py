"""Tests for the request data model and EwsSettings."""

import pytest

from src.ews.types import (
    DEFAULT_EWS_ENDPOINT,
    AmbientCredential,
    EwsSettings,
    ExplicitCredential,
    MailSendRequest,
    Priority,
)


class TestPriority:
    def test_values_match_exchangelib_importance(self) -> None:
        assert [p.value for p in Priority] == ["Low", "Normal", "High"]

    def test_parse_is_case_insensitive(self) -> None:
        assert Priority.parse("high") is Priority.HIGH
        assert Priority.parse("LOW") is Priority.LOW
        assert Priority.parse(" Normal ") is Priority.NORMAL

    def test_parse_passes_members_through(self) -> None:
        assert Priority.parse(Priority.LOW) is Priority.LOW

    @pytest.mark.parametrize("value", ["Urgent", "", 3, None])
    def test_parse_rejects_unknown(self, value: object) -> None:
        with pytest.raises(ValueError, match="priority must be one of"):
            Priority.parse(value)  # type: ignore[arg-type]


class TestMailSendRequest:
    def test_defaults(self) -> None:
        request = MailSendRequest(to=["b@x.com"])
        assert request.priority is Priority.NORMAL
        assert request.body_is_html is False
        assert request.send_only is False
        assert request.attachments == []
        assert isinstance(request.credential, AmbientCredential)

    def test_mailbox_prefers_sender(self) -> None:
        request = MailSendRequest(
            to=["b@x.com"], sender="from@x.com", autodiscover_address="auto@x.com"
        )
        assert request.mailbox_address("default@x.com") == "from@x.com"

    def test_mailbox_falls_back_to_autodiscover_address(self) -> None:
        request = MailSendRequest(to=["b@x.com"], autodiscover_address="auto@x.com")
        assert request.mailbox_address() == "auto@x.com"

    def test_mailbox_uses_email_style_username(self) -> None:
        request = MailSendRequest(to=["b@x.com"], credential=ExplicitCredential("me@x.com", "pw"))
        assert request.mailbox_address("default@x.com") == "me@x.com"

    def test_mailbox_ignores_domain_style_username(self) -> None:
        request = MailSendRequest(to=["b@x.com"], credential=ExplicitCredential("CORP\\me", "pw"))
        assert request.mailbox_address("default@x.com") == "default@x.com"

    def test_mailbox_empty_when_nothing_known(self) -> None:
        assert MailSendRequest(to=["b@x.com"]).mailbox_address() == ""


class TestExplicitCredential:
    def test_password_not_in_repr(self) -> None:
        assert "s3cret" not in repr(ExplicitCredential("me", "s3cret"))


class TestEwsSettingsFromEnv:
    def test_defaults_when_env_absent(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for key in ("EWS_ENDPOINT", "EWS_MAILBOX", "EWS_USERNAME", "EWS_PASSWORD",
                    "EWS_VERSION_HINT", "EWS_AUTODISCOVER_EMAIL"):
            monkeypatch.delenv(key, raising=False)
        settings = EwsSettings.from_env()
        assert settings.endpoint == DEFAULT_EWS_ENDPOINT
        assert settings.mailbox == ""
        assert isinstance(settings.default_credential(), AmbientCredential)

    def test_reads_endpoint_and_mailbox(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("EWS_ENDPOINT", "https://ews.corp.example/EWS/Exchange.asmx")
        monkeypatch.setenv("EWS_MAILBOX", "robot@corp.example")
        settings = EwsSettings.from_env()
        assert settings.endpoint == "https://ews.corp.example/EWS/Exchange.asmx"
        assert settings.mailbox == "robot@corp.example"

    def test_empty_endpoint_uses_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("EWS_ENDPOINT", "")
        assert EwsSettings.from_env().endpoint == DEFAULT_EWS_ENDPOINT

    def test_username_gives_explicit_credential(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("EWS_USERNAME", "robot@corp.example")
        monkeypatch.setenv("EWS_PASSWORD", "pw")
        assert EwsSettings.from_env().default_credential() == ExplicitCredential(
            "robot@corp.example", "pw"
        )
