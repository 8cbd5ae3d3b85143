"""Send one email through EWS, the drop-in replacement for the legacy send cmdlet.

Validation happens up front, before the vendor library is loaded or any
session exists. After that every step is delegated to a MailBackend and
whatever the library raises propagates unchanged: no retry, no wrapping.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace
from pathlib import Path

from src.ews.backend import (
    ExchangelibBackend,
    MailBackend,
    RecipientKind,
    TrustPolicy,
    trust_any_endpoint,
)
from src.ews.errors import InvalidArgumentError
from src.ews.types import (
    AmbientCredential,
    CredentialSource,
    EwsSettings,
    MailSendRequest,
    Priority,
)

logger = logging.getLogger(__name__)


def send_mail(
    to: str | Iterable[str],
    subject: str | None = None,
    body: str | None = None,
    *,
    body_is_html: bool = False,
    attachments: Iterable[str | Path] = (),
    cc: str | Iterable[str] = (),
    bcc: str | Iterable[str] = (),
    sender: str | None = None,
    reply_to: str | None = None,
    priority: Priority | str = Priority.NORMAL,
    credential: CredentialSource | None = None,
    version_hint: str | None = None,
    autodiscover_address: str | None = None,
    send_only: bool = False,
    trust_policy: TrustPolicy = trust_any_endpoint,
    backend: MailBackend | None = None,
    settings: EwsSettings | None = None,
) -> None:
    """Send a single message. Returns nothing; success is the absence of an exception.

    Args:
        to: One address or an ordered list of addresses. Must not be empty.
            Blank entries are dropped and surrounding whitespace is stripped.
        body_is_html: False (default) forces a plain-text body.
        attachments: Paths that must exist at call time.
        sender: From address. Defaults to the session's own identity.
        priority: Low, Normal (default) or High.
        credential: ExplicitCredential, or None / AmbientCredential for the
                    calling process identity.
        version_hint: exchangelib protocol version, e.g. "Exchange2013_SP1".
        autodiscover_address: Resolve the endpoint by autodiscovery instead
                              of using the fixed endpoint.
        send_only: True sends without keeping a copy in Sent Items.
        trust_policy: Predicate applied to an autodiscovered endpoint.
        backend: MailBackend to drive. Defaults to ExchangelibBackend.
        settings: Endpoint / default mailbox. Defaults to EwsSettings.from_env().

    A mailbox to send as is required. It is the first of: sender,
    autodiscover_address, an email-style username in an ExplicitCredential,
    or EWS_MAILBOX (settings.mailbox). With none of them the call raises
    InvalidArgumentError before any session is built.

    Raises:
        InvalidArgumentError: bad parameters or no mailbox to send as, before
            any network activity.
        DependencyMissingError: exchangelib is not installed, or ambient
            credentials need its kerberos / sspi extra.
        UntrustedEndpointError: trust_policy rejected the autodiscovered endpoint.

    Example::

        send_mail(["bob@example.com"], "Test", "Hello", priority="High")
    """
    try:
        parsed_priority = Priority.parse(priority)
    except ValueError as exc:
        raise InvalidArgumentError(str(exc)) from exc

    request = MailSendRequest(
        to=_address_list(to),
        subject=subject,
        body=body,
        body_is_html=body_is_html,
        attachments=[str(path) for path in attachments],
        cc=_address_list(cc),
        bcc=_address_list(bcc),
        sender=sender or None,
        reply_to=reply_to or None,
        priority=parsed_priority,
        credential=credential if credential is not None else AmbientCredential(),
        version_hint=version_hint or None,
        autodiscover_address=autodiscover_address or None,
        send_only=send_only,
    )
    dispatch(request, trust_policy=trust_policy, backend=backend, settings=settings)


def dispatch(
    request: MailSendRequest,
    *,
    trust_policy: TrustPolicy = trust_any_endpoint,
    backend: MailBackend | None = None,
    settings: EwsSettings | None = None,
) -> None:
    """Validate ``request`` and drive ``backend`` through one send."""
    settings = settings or EwsSettings.from_env()
    request, attachment_paths = validate_request(request)

    mailbox = request.mailbox_address(settings.mailbox)
    if not mailbox:
        raise InvalidArgumentError(
            "No mailbox to send as: pass sender, autodiscover_address, an email-style "
            "username, or set EWS_MAILBOX"
        )

    backend = backend if backend is not None else ExchangelibBackend()

    session = backend.create_session(mailbox, request.version_hint)
    backend.apply_credentials(session, request.credential)
    backend.resolve_endpoint(session, settings.endpoint, request.autodiscover_address, trust_policy)

    message = backend.build_message(session)
    for address in request.to:
        backend.add_recipient(message, RecipientKind.TO, address)
    for path in attachment_paths:
        backend.attach_file(message, path)
    if request.body is not None or not request.body_is_html:
        backend.set_body(message, request.body or "", html=request.body_is_html)
    for address in request.cc:
        backend.add_recipient(message, RecipientKind.CC, address)
    for address in request.bcc:
        backend.add_recipient(message, RecipientKind.BCC, address)
    if request.sender:
        backend.set_sender(message, request.sender)
    backend.set_importance(message, request.priority)
    if request.subject is not None:
        backend.set_subject(message, request.subject)
    if request.reply_to:
        backend.set_reply_to(message, request.reply_to)

    if request.send_only:
        backend.send(message)
    else:
        backend.send_and_save(message)

    logger.info(
        "Sent %r to %d recipient(s) as %s (%s)",
        request.subject or "",
        len(request.to) + len(request.cc) + len(request.bcc),
        mailbox,
        "send only" if request.send_only else "copy saved",
    )


def validate_request(request: MailSendRequest) -> tuple[MailSendRequest, list[Path]]:
    """Check a request before anything touches the network.

    Returns the request with a normalized Priority, plus the attachment paths.
    """
    if not request.to:
        raise InvalidArgumentError("At least one 'to' recipient is required")
    for kind, addresses in (("to", request.to), ("cc", request.cc), ("bcc", request.bcc)):
        if any(not address.strip() for address in addresses):
            raise InvalidArgumentError(f"Blank address in '{kind}' recipient list")

    try:
        priority = Priority.parse(request.priority)
    except ValueError as exc:
        raise InvalidArgumentError(str(exc)) from exc

    paths: list[Path] = []
    for raw in request.attachments:
        path = Path(raw)
        if not path.is_file():
            raise InvalidArgumentError(f"Attachment not found: {raw}")
        paths.append(path)

    if priority is not request.priority:
        request = replace(request, priority=priority)
    return request, paths


def _address_list(value: str | Iterable[str]) -> list[str]:
    if isinstance(value, str):
        value = [value]
    return [address.strip() for address in value if address and address.strip()]
