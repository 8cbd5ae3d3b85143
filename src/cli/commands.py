"""CLI command implementations: `send` delegates to send_mail()."""

from __future__ import annotations

import logging
from pathlib import Path

import click
from rich.console import Console

from src.ews.backend import https_only, trust_any_endpoint
from src.ews.errors import EwsMailError
from src.ews.mailer import send_mail
from src.ews.types import AmbientCredential, CredentialSource, EwsSettings, ExplicitCredential, Priority

logger = logging.getLogger(__name__)
console = Console(width=200)
err_console = Console(stderr=True, width=200)


@click.command()
@click.option("--to", "to", multiple=True, required=True, help="Recipient (repeatable).")
@click.option("--cc", multiple=True, help="Cc recipient (repeatable).")
@click.option("--bcc", multiple=True, help="Bcc recipient (repeatable).")
@click.option("--subject", default=None, help="Message subject.")
@click.option("--body", default=None, help="Message body.")
@click.option(
    "--body-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Read the body from a file (overrides --body).",
)
@click.option("--html", "body_is_html", is_flag=True, help="Send the body as HTML.")
@click.option(
    "--attach",
    "attachments",
    multiple=True,
    type=click.Path(exists=True, dir_okay=False),
    help="File to attach (repeatable).",
)
@click.option("--from", "sender", default=None, help="From address.")
@click.option("--reply-to", default=None, help="Reply-To address.")
@click.option(
    "--priority",
    type=click.Choice([p.value for p in Priority], case_sensitive=False),
    default=Priority.NORMAL.value,
    show_default=True,
)
@click.option("--username", default=None, help="EWS username. Falls back to EWS_USERNAME.")
@click.option("--password", default=None, help="EWS password. Prompted if a username is given without one.")
@click.option("--version-hint", default=None, help="Protocol version, e.g. Exchange2013_SP1.")
@click.option("--autodiscover", "autodiscover_address", default=None, help="Resolve the endpoint from this address.")
@click.option("--send-only", is_flag=True, help="Do not keep a copy in Sent Items.")
@click.option("--https-only", "require_https", is_flag=True, help="Reject autodiscovered non-HTTPS endpoints.")
@click.pass_obj
def send(
    settings: EwsSettings,
    to: tuple[str, ...],
    cc: tuple[str, ...],
    bcc: tuple[str, ...],
    subject: str | None,
    body: str | None,
    body_file: Path | None,
    body_is_html: bool,
    attachments: tuple[str, ...],
    sender: str | None,
    reply_to: str | None,
    priority: str,
    username: str | None,
    password: str | None,
    version_hint: str | None,
    autodiscover_address: str | None,
    send_only: bool,
    require_https: bool,
) -> None:
    """Send one message through Exchange Web Services."""
    if body_file is not None:
        body = body_file.read_text(encoding="utf-8")

    credential = _resolve_credential(settings, username, password)

    try:
        send_mail(
            list(to),
            subject,
            body,
            body_is_html=body_is_html,
            attachments=attachments,
            cc=list(cc),
            bcc=list(bcc),
            sender=sender,
            reply_to=reply_to,
            priority=priority,
            credential=credential,
            version_hint=version_hint or settings.version_hint or None,
            autodiscover_address=autodiscover_address or settings.autodiscover_email or None,
            send_only=send_only,
            trust_policy=https_only if require_https else trust_any_endpoint,
            settings=settings,
        )
    except EwsMailError as exc:
        err_console.print(f"[red]{exc}[/red]")
        raise SystemExit(1) from exc
    except Exception as exc:  # noqa: BLE001
        logger.debug("EWS send failed", exc_info=True)
        err_console.print(f"[red]EWS error ({type(exc).__name__}): {exc}[/red]")
        raise SystemExit(2) from exc

    count = len(to) + len(cc) + len(bcc)
    console.print(f"[green]Sent.[/green] {subject or '(no subject)'!r} to {count} recipient(s).")


def _resolve_credential(
    settings: EwsSettings, username: str | None, password: str | None
) -> CredentialSource:
    """Command-line username wins over EWS_USERNAME; no username means ambient identity."""
    if username:
        if password is None:
            password = click.prompt(f"Password for {username}", hide_input=True)
        return ExplicitCredential(username, password)
    if password is not None:
        raise click.UsageError("--password requires --username")
    if settings.username:
        return settings.default_credential()
    return AmbientCredential()
