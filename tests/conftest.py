"""Shared pytest fixtures.

``fake_ews`` stands in for the exchangelib module: same attribute names, no
network. Pass it to ``ExchangelibBackend(module=...)``.
"""

from types import SimpleNamespace
from typing import Any

import pytest

from src.ews.loader import reset_vendor_library
from src.ews.types import EwsSettings

AUTODISCOVERED_ENDPOINT = "https://mail.example.com/EWS/Exchange.asmx"


class FakeBuild:
    def __init__(self, major: int, minor: int, major_build: int = 0, minor_build: int = 0) -> None:
        self.parts = (major, minor, major_build, minor_build)

    def __repr__(self) -> str:
        return "FakeBuild(%d, %d, %d, %d)" % self.parts


class FakeVersion:
    def __init__(self, build: FakeBuild, api_version: str | None = None) -> None:
        self.build = build
        self.api_version = api_version


class FakeCredentials:
    def __init__(self, username: str, password: str) -> None:
        self.username = username
        self.password = password


class FakeConfiguration:
    """Rejects an auth type the transport has not registered, as exchangelib does."""

    auth_types: dict[str, Any] = {}

    def __init__(
        self,
        credentials: Any = None,
        server: str | None = None,
        service_endpoint: str | None = None,
        auth_type: str | None = None,
        version: Any = None,
    ) -> None:
        if auth_type is not None and auth_type not in self.auth_types:
            raise ValueError(f"Unknown auth_type {auth_type!r}")
        self.credentials = credentials
        self.server = server
        self.service_endpoint = service_endpoint
        self.auth_type = auth_type
        self.version = version


class FakeAccount:
    autodiscovered_endpoint = AUTODISCOVERED_ENDPOINT

    def __init__(
        self,
        primary_smtp_address: str,
        config: FakeConfiguration | None = None,
        autodiscover: bool = False,
        access_type: str | None = None,
    ) -> None:
        self.primary_smtp_address = primary_smtp_address
        self.config = config
        self.autodiscover = autodiscover
        self.access_type = access_type
        endpoint = self.autodiscovered_endpoint if autodiscover else config.service_endpoint
        self.protocol = SimpleNamespace(service_endpoint=endpoint)


class FakeMailbox:
    def __init__(self, email_address: str) -> None:
        self.email_address = email_address

    def __eq__(self, other: object) -> bool:
        return isinstance(other, FakeMailbox) and other.email_address == self.email_address

    def __repr__(self) -> str:
        return f"FakeMailbox({self.email_address!r})"


class FakeBody(str):
    pass


class FakeHTMLBody(FakeBody):
    pass


class FakeFileAttachment:
    def __init__(self, name: str, content: bytes) -> None:
        self.name = name
        self.content = content


class FakeMessage:
    def __init__(self, account: FakeAccount) -> None:
        self.account = account
        self.to_recipients: list[FakeMailbox] | None = None
        self.cc_recipients: list[FakeMailbox] | None = None
        self.bcc_recipients: list[FakeMailbox] | None = None
        self.attachments: list[FakeFileAttachment] = []
        self.body: FakeBody | None = None
        self.subject: str | None = None
        self.author: FakeMailbox | None = None
        self.reply_to: list[FakeMailbox] | None = None
        self.importance = "Normal"
        self.sent_with: str | None = None
        self.save_copy: bool | None = None

    def attach(self, attachment: FakeFileAttachment) -> None:
        self.attachments.append(attachment)

    def send(self, save_copy: bool = True) -> None:
        self.sent_with = "send"
        self.save_copy = save_copy

    def send_and_save(self) -> None:
        self.sent_with = "send_and_save"
        self.save_copy = True


@pytest.fixture
def fake_ews() -> SimpleNamespace:
    """A module-shaped stand-in for exchangelib. Records the last Message built."""
    created: list[FakeMessage] = []

    class RecordingMessage(FakeMessage):
        def __init__(self, account: FakeAccount) -> None:
            super().__init__(account)
            created.append(self)

    # Kerberos and SSPI are only registered when their optional extras are installed
    auth_type_map = {"NTLM": object(), "basic": object(), "GSSAPI": object(), "SSPI": object()}

    class RegisteredConfiguration(FakeConfiguration):
        auth_types = auth_type_map

    return SimpleNamespace(
        Account=FakeAccount,
        Configuration=RegisteredConfiguration,
        Credentials=FakeCredentials,
        Version=FakeVersion,
        Build=FakeBuild,
        Mailbox=FakeMailbox,
        Body=FakeBody,
        HTMLBody=FakeHTMLBody,
        FileAttachment=FakeFileAttachment,
        Message=RecordingMessage,
        DELEGATE="delegate",
        GSSAPI="GSSAPI",
        SSPI="SSPI",
        transport=SimpleNamespace(AUTH_TYPE_MAP=auth_type_map),
        version=SimpleNamespace(
            EXCHANGE_2010_SP2=FakeBuild(14, 2),
            EXCHANGE_2013_SP1=FakeBuild(15, 0, 847),
            EXCHANGE_2016=FakeBuild(15, 1),
            API_VERSIONS="not a build",
        ),
        messages=created,
    )


@pytest.fixture
def settings() -> EwsSettings:
    """Settings with a default mailbox so tests never read the environment."""
    return EwsSettings(mailbox="me@example.com")


@pytest.fixture(autouse=True)
def _fresh_vendor_library():
    """Each test starts without a cached exchangelib resolution."""
    reset_vendor_library()
    yield
    reset_vendor_library()
