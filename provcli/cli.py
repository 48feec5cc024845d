"""Command line entry point: `prov`.

    prov [-H HOST] [-l LEVEL] [-D] [-v] engine build [-f FILE] [-q] PATH | URL | -

Configuration is read from the environment once, in the root group, and
handed down through the click context object. Library errors are turned
into a message on stderr and an exit status here and nowhere else.
"""

import functools
import logging
import sys

import click

from provcli import __version__
from provcli.build import BuildOptions, run_build
from provcli.client.client import APIClient
from provcli.core.config import get_settings, resolve_client_config
from provcli.core.logging import LOG_LEVELS, configure_logging
from provcli.errors import ProvError

logger = logging.getLogger(__name__)


class CommandFailed(click.ClickException):
    """A ProvError on its way out of the CLI.

    Shown as the bare error message, exiting with the error's exit code.
    """

    def __init__(self, error: ProvError):
        super().__init__(str(error))
        self.exit_code = error.exit_code

    def show(self, file=None) -> None:
        if self.message:
            click.echo(self.message, file=file, err=True)


def handle_errors(func):
    """Decorator turning ProvError into CommandFailed."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ProvError as exc:
            logger.debug("Command failed", exc_info=True)
            raise CommandFailed(exc) from exc

    return wrapper


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-H", "--host", "hosts", multiple=True, help="Providence server to connect to")
@click.option(
    "-l",
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="info",
    show_default=True,
    help="Set the logging level",
)
@click.option("-D", "--debug", is_flag=True, help="Enable debug mode")
@click.version_option(
    __version__,
    "-v",
    "--version",
    prog_name="Providence",
    message="%(prog)s version %(version)s",
)
@click.pass_context
@handle_errors
def cli(ctx, hosts, log_level, debug):
    """A self-sufficient runtime for operating with Providence service."""
    settings = get_settings()
    configure_logging("debug" if debug else log_level, settings.log_format)

    ctx.ensure_object(dict)
    ctx.obj["config"] = resolve_client_config(hosts, settings)


@cli.group()
def engine():
    """Manage engines"""


@engine.command()
@click.argument("context", metavar="PATH | URL | -")
@click.option(
    "-f",
    "--file",
    "enginefile_name",
    help="Name of the Enginefile (Default is 'PATH/Enginefile')",
)
@click.option(
    "-q",
    "--quiet",
    is_flag=True,
    help="Suppress the build output and print engine ID on success",
)
@click.option(
    "--compress/--no-compress",
    default=True,
    show_default=True,
    help="Compress the build context using gzip",
)
@click.pass_context
@handle_errors
def build(ctx, context, enginefile_name, quiet, compress):
    """Build an engine"""
    options = BuildOptions(
        context=context,
        enginefile_name=enginefile_name or None,
        quiet=quiet,
        compress=compress,
    )
    with APIClient.from_config(ctx.obj["config"]) as client:
        run_build(
            options,
            client=client,
            stdin=click.get_binary_stream("stdin"),
            stdout=sys.stdout,
            stderr=sys.stderr,
        )


def main() -> None:
    cli(prog_name="prov")
