"""Data types for the EWS mail dispatch shim."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum

DEFAULT_EWS_ENDPOINT = "https://outlook.office365.com/EWS/Exchange.asmx"


class Priority(str, Enum):
    """Message importance.

    Values match exchangelib's ``Message.importance`` choices exactly so the
    mapping onto the vendor field is a straight pass-through.
    """

    LOW = "Low"
    NORMAL = "Normal"
    HIGH = "High"

    @classmethod
    def parse(cls, value: Priority | str) -> Priority:
        """Accept a member or a case-insensitive name ("low", "High", ...)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        raise ValueError(f"priority must be one of Low, Normal, High; got {value!r}")


# ── Credential source ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ExplicitCredential:
    """A username/password pair handed to the vendor credential type."""

    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class AmbientCredential:
    """Use the identity of the calling process (SSPI / Kerberos)."""


CredentialSource = ExplicitCredential | AmbientCredential


# ── Request ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class MailSendRequest:
    """One outbound message, as supplied by the caller.

    Built at the start of a call, validated, translated into vendor objects
    and then discarded. Nothing here outlives a single send.
    """

    to: list[str]
    subject: str | None = None
    body: str | None = None
    body_is_html: bool = False
    attachments: list[str] = field(default_factory=list)
    cc: list[str] = field(default_factory=list)
    bcc: list[str] = field(default_factory=list)
    sender: str | None = None
    reply_to: str | None = None
    priority: Priority = Priority.NORMAL
    credential: CredentialSource = field(default_factory=AmbientCredential)
    version_hint: str | None = None
    autodiscover_address: str | None = None
    send_only: bool = False

    def mailbox_address(self, default: str = "") -> str:
        """Return the mailbox the session acts as, or "" if none can be derived."""
        if self.sender:
            return self.sender
        if self.autodiscover_address:
            return self.autodiscover_address
        if isinstance(self.credential, ExplicitCredential) and "@" in self.credential.username:
            return self.credential.username
        return default


# ── Configuration ──────────────────────────────────────────────────────────────


@dataclass
class EwsSettings:
    """Process-level defaults, normally read from the environment / .env."""

    endpoint: str = DEFAULT_EWS_ENDPOINT
    mailbox: str = ""
    username: str = ""
    password: str = field(default="", repr=False)
    version_hint: str = ""
    autodiscover_email: str = ""

    @classmethod
    def from_env(cls) -> EwsSettings:
        """Build EwsSettings from EWS_* environment variables."""
        return cls(
            endpoint=os.environ.get("EWS_ENDPOINT", "") or DEFAULT_EWS_ENDPOINT,
            mailbox=os.environ.get("EWS_MAILBOX", ""),
            username=os.environ.get("EWS_USERNAME", ""),
            password=os.environ.get("EWS_PASSWORD", ""),
            version_hint=os.environ.get("EWS_VERSION_HINT", ""),
            autodiscover_email=os.environ.get("EWS_AUTODISCOVER_EMAIL", ""),
        )

    def default_credential(self) -> CredentialSource:
        """Explicit credential when EWS_USERNAME is set, ambient otherwise."""
        if self.username:
            return ExplicitCredential(self.username, self.password)
        return AmbientCredential()
