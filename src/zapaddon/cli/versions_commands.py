"""CLI commands for ZapVersions.xml version feeds."""

from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape

console = Console()


@click.group()
def versions():
    """Generate, update and aggregate version feeds (ZapVersions.xml)."""


@versions.command()
@click.argument("archive", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Add-on config supplying the id and the release settings.",
)
@click.option("--id", "addon_id", default="", help="Id of the add-on.")
@click.option("--download-url", default="", help="Base URL the add-on is downloadable from.")
@click.option(
    "--github-repo",
    default="",
    help="owner/name of the GitHub repository hosting the release.",
)
@click.option(
    "--checksum",
    "checksum_algorithm",
    default=None,
    help="Checksum algorithm for the hash field (default: SHA1).",
)
@click.option(
    "--output",
    "-o",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Version file to write.",
)
def generate(
    archive, config_path, addon_id, download_url, github_repo, checksum_algorithm, output
):
    """Generate a single-entry version file for a packaged add-on.

    With --config, the id and the release section of the add-on config are
    used for any of --id, --download-url/--github-repo and --checksum not
    given on the command line.
    """
    from zapaddon.config.loader import ConfigError, load_addon_config
    from zapaddon.versions.feed import FeedError
    from zapaddon.versions.generator import (
        DEFAULT_CHECKSUM_ALGORITHM,
        ArchiveError,
        generate_version_file,
        github_download_url,
        read_archive_manifest,
    )

    if config_path:
        try:
            config = load_addon_config(config_path)
        except ConfigError as e:
            console.print(f"[red]{escape(str(e))}[/red]")
            raise SystemExit(1)
        addon_id = addon_id or config.id
        if not download_url and not github_repo:
            download_url = config.release.download_url
            github_repo = config.release.github_repo
        checksum_algorithm = checksum_algorithm or config.release.checksum_algorithm

    if not addon_id:
        console.print("[red]An add-on id is required (--id or --config).[/red]")
        raise SystemExit(1)
    if bool(download_url) == bool(github_repo):
        console.print("[red]Exactly one of --download-url or --github-repo is required.[/red]")
        raise SystemExit(1)

    try:
        if github_repo:
            version = read_archive_manifest(archive).version or ""
            download_url = github_download_url(github_repo, version)
        path = generate_version_file(
            addon_id,
            archive,
            download_url,
            output,
            checksum_algorithm or DEFAULT_CHECKSUM_ALGORITHM,
        )
    except (ArchiveError, FeedError, ValueError) as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1)

    console.print(f"[green]Version file generated at {path}[/green]")


@versions.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("targets", nargs=-1, required=True, type=click.Path(path_type=Path))
@click.option("--workers", default=4, show_default=True, help="Concurrent file updates.")
def update(source, targets, workers):
    """Apply the entry in SOURCE to each TARGETS feed, replacing by id."""
    from zapaddon.versions.feed import FeedError, FeedUpdateError, update_feed_files

    try:
        updated = update_feed_files(source, targets, max_workers=workers)
    except FeedUpdateError as e:
        for path, error in e.failures.items():
            console.print(f"[red]{escape(f'{path}: {error}')}[/red]")
        raise SystemExit(1)
    except FeedError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1)

    for path in updated:
        console.print(f"  updated {path}")
    console.print(f"[green]Updated {len(updated)} feed file(s)[/green]")


@versions.command()
@click.argument(
    "sources", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.option(
    "--output",
    "-o",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Aggregated feed to write.",
)
def aggregate(sources, output):
    """Aggregate single-entry version files into one feed."""
    from zapaddon.versions.feed import FeedError, aggregate_feed_files

    try:
        path = aggregate_feed_files(sources, output)
    except FeedError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1)

    console.print(f"[green]Aggregated {len(sources)} version file(s) into {path}[/green]")
