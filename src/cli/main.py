"""CLI entry point for the EWS mail sender."""

import logging

import click
from dotenv import load_dotenv

from src.ews.types import EwsSettings

logger = logging.getLogger(__name__)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log every EWS step.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Send mail through Exchange Web Services."""
    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,  # keep CLI output clean; errors still surface
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    ctx.obj = EwsSettings.from_env()


# Import and register commands after cli is defined to avoid circular imports.
from src.cli.commands import send  # noqa: E402

cli.add_command(send)
