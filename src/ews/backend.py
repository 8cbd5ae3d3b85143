"""Mail backends: the capability interface the shim drives, and its exchangelib implementation."""

from __future__ import annotations

import logging
import re
import sys
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import ModuleType
from typing import Any, Protocol, runtime_checkable

from src.ews.errors import DependencyMissingError, InvalidArgumentError, UntrustedEndpointError
from src.ews.loader import DOWNLOAD_REFERENCE, get_vendor_library
from src.ews.types import AmbientCredential, CredentialSource, ExplicitCredential, Priority

logger = logging.getLogger(__name__)


class RecipientKind(str, Enum):
    TO = "to"
    CC = "cc"
    BCC = "bcc"


# ── Trust policy ───────────────────────────────────────────────────────────────

#: Predicate over an autodiscovered service endpoint URL. False rejects it.
TrustPolicy = Callable[[str], bool]


def trust_any_endpoint(endpoint: str) -> bool:
    """Accept whatever autodiscovery resolved to.

    This is the legacy cmdlet's behavior. It trusts redirects blindly, so each
    acceptance is logged at warning level; pass ``https_only`` or your own
    predicate to tighten it.
    """
    logger.warning("Accepting autodiscovered EWS endpoint without verification: %s", endpoint)
    return True


def https_only(endpoint: str) -> bool:
    """Accept only endpoints served over HTTPS."""
    return endpoint.lower().startswith("https://")


# ── Capability interface ───────────────────────────────────────────────────────


@runtime_checkable
class MailBackend(Protocol):
    """Everything the shim needs from an EWS client library.

    ``send_mail`` calls these in a fixed order: create_session,
    apply_credentials, resolve_endpoint, build_message, the population
    methods, then exactly one of send / send_and_save. Session and message
    objects are opaque to the shim.
    """

    def create_session(self, mailbox: str, version_hint: str | None) -> Any: ...

    def apply_credentials(self, session: Any, credential: CredentialSource) -> None: ...

    def resolve_endpoint(
        self,
        session: Any,
        endpoint: str,
        autodiscover_address: str | None,
        trust_policy: TrustPolicy,
    ) -> None: ...

    def build_message(self, session: Any) -> Any: ...

    def add_recipient(self, message: Any, kind: RecipientKind, address: str) -> None: ...

    def attach_file(self, message: Any, path: Path) -> None: ...

    def set_body(self, message: Any, text: str, *, html: bool) -> None: ...

    def set_sender(self, message: Any, address: str) -> None: ...

    def set_importance(self, message: Any, priority: Priority) -> None: ...

    def set_subject(self, message: Any, subject: str) -> None: ...

    def set_reply_to(self, message: Any, address: str) -> None: ...

    def send(self, message: Any) -> None: ...

    def send_and_save(self, message: Any) -> None: ...


# ── exchangelib implementation ─────────────────────────────────────────────────


@dataclass
class EwsSession:
    """Connection settings accumulated before exchangelib's Account is built."""

    mailbox: str
    version: Any = None          # exchangelib Version, None → negotiated by the library
    credentials: Any = None      # exchangelib Credentials, None → ambient identity
    auth_type: str | None = None
    account: Any = None          # exchangelib Account, set by resolve_endpoint()


class ExchangelibBackend:
    """MailBackend backed by exchangelib.

    The library module is resolved once per process through the loader; pass
    ``module`` explicitly to use a specific (or fake) copy.
    """

    def __init__(self, module: ModuleType | None = None) -> None:
        self._ews = module if module is not None else get_vendor_library().module

    # ── Session ────────────────────────────────────────────────────────────────

    def create_session(self, mailbox: str, version_hint: str | None) -> EwsSession:
        session = EwsSession(mailbox=mailbox)
        if version_hint:
            build = self._lookup_build(version_hint)
            session.version = self._ews.Version(build=build)
            logger.debug("Session pinned to EWS version %s (%s)", version_hint, build)
        return session

    def apply_credentials(self, session: EwsSession, credential: CredentialSource) -> None:
        if isinstance(credential, ExplicitCredential):
            session.credentials = self._ews.Credentials(
                username=credential.username, password=credential.password
            )
            session.auth_type = None  # let exchangelib pick (NTLM / basic) from the server
            logger.debug("Using explicit credentials for %s", credential.username)
        elif isinstance(credential, AmbientCredential):
            if sys.platform == "win32":
                auth_type, extra = self._ews.SSPI, "sspi"
            else:
                auth_type, extra = self._ews.GSSAPI, "kerberos"
            # exchangelib only registers these when the matching extra is installed
            if auth_type not in self._ews.transport.AUTH_TYPE_MAP:
                raise DependencyMissingError(
                    f"Ambient authentication needs {auth_type} support in exchangelib",
                    DOWNLOAD_REFERENCE,
                    install_hint=f"'exchangelib[{extra}]'",
                )
            session.credentials = None
            session.auth_type = auth_type
            logger.debug("Using ambient process identity (auth_type=%s)", session.auth_type)
        else:
            raise InvalidArgumentError(f"Unsupported credential source: {credential!r}")

    def resolve_endpoint(
        self,
        session: EwsSession,
        endpoint: str,
        autodiscover_address: str | None,
        trust_policy: TrustPolicy,
    ) -> None:
        if not autodiscover_address:
            config = self._ews.Configuration(
                service_endpoint=endpoint,
                credentials=session.credentials,
                auth_type=session.auth_type,
                version=session.version,
            )
            session.account = self._ews.Account(
                primary_smtp_address=session.mailbox,
                config=config,
                autodiscover=False,
                access_type=self._ews.DELEGATE,
            )
            logger.debug("Bound session for %s to fixed endpoint %s", session.mailbox, endpoint)
            return

        config = self._ews.Configuration(
            credentials=session.credentials,
            auth_type=session.auth_type,
            version=session.version,
        )
        session.account = self._ews.Account(
            primary_smtp_address=autodiscover_address,
            config=config,
            autodiscover=True,
            access_type=self._ews.DELEGATE,
        )
        resolved = str(session.account.protocol.service_endpoint)
        if not trust_policy(resolved):
            session.account = None
            raise UntrustedEndpointError(resolved)
        logger.debug("Autodiscovery for %s resolved to %s", autodiscover_address, resolved)

    # ── Message ────────────────────────────────────────────────────────────────

    def build_message(self, session: EwsSession) -> Any:
        if session.account is None:
            raise RuntimeError("resolve_endpoint() must be called before build_message()")
        return self._ews.Message(account=session.account)

    def add_recipient(self, message: Any, kind: RecipientKind, address: str) -> None:
        field_name = f"{kind.value}_recipients"
        recipients = list(getattr(message, field_name, None) or [])
        recipients.append(self._ews.Mailbox(email_address=address))
        setattr(message, field_name, recipients)

    def attach_file(self, message: Any, path: Path) -> None:
        attachment = self._ews.FileAttachment(name=path.name, content=path.read_bytes())
        message.attach(attachment)

    def set_body(self, message: Any, text: str, *, html: bool) -> None:
        # exchangelib encodes the body type in the value's class
        message.body = self._ews.HTMLBody(text) if html else self._ews.Body(text)

    def set_sender(self, message: Any, address: str) -> None:
        message.author = self._ews.Mailbox(email_address=address)

    def set_importance(self, message: Any, priority: Priority) -> None:
        message.importance = priority.value

    def set_subject(self, message: Any, subject: str) -> None:
        message.subject = subject

    def set_reply_to(self, message: Any, address: str) -> None:
        message.reply_to = [self._ews.Mailbox(email_address=address)]

    # ── Send ───────────────────────────────────────────────────────────────────

    def send(self, message: Any) -> None:
        message.send(save_copy=False)

    def send_and_save(self, message: Any) -> None:
        message.send_and_save()

    # ── Internal helpers ───────────────────────────────────────────────────────

    def _lookup_build(self, version_hint: str) -> Any:
        """Map "Exchange2013_SP1" / "EXCHANGE_2013_SP1" to exchangelib's Build constant."""
        name = re.sub(r"^exchange_?", "EXCHANGE_", version_hint.strip(), flags=re.IGNORECASE).upper()
        build = getattr(self._ews.version, name, None)
        if not isinstance(build, self._ews.Build):
            raise InvalidArgumentError(f"Unknown EWS protocol version hint: {version_hint!r}")
        return build
