"""zapaddon CLI - Main entry point."""

import logging

import click
from rich.console import Console

from zapaddon import __version__

console = Console()

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def _setup_logging(verbose: bool) -> None:
    """Configure console logging for the command run."""
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    if not root_logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(console_handler)


@click.group()
@click.version_option(version=__version__, prog_name="zapaddon")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose):
    """zapaddon - ZAP add-on manifest and version feed tooling.

    Generates ZapAddOn.xml manifests from declared metadata and compiled
    classes, and maintains ZapVersions.xml feeds.
    """
    _setup_logging(verbose)


from .manifest_commands import manifest  # noqa: E402
from .versions_commands import versions  # noqa: E402

cli.add_command(manifest)
cli.add_command(versions)


if __name__ == "__main__":
    cli()
