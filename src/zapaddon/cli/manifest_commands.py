"""CLI commands for add-on manifests."""

import zipfile
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

console = Console()


@click.group()
def manifest():
    """Generate and inspect add-on manifests (ZapAddOn.xml)."""


@manifest.command()
@click.argument("config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory for ZapAddOn.xml (default: output_dir from the config).",
)
def generate(config_path, output_dir):
    """Generate the manifest described by CONFIG_PATH.

    Declared extensions and scan rules are completed with the ones found in
    the configured classpath.
    """
    from zapaddon.config.loader import ConfigError, load_addon_config
    from zapaddon.manifest.generator import ManifestGenerator
    from zapaddon.manifest.model import ManifestError

    try:
        config = load_addon_config(config_path)
        generator = ManifestGenerator.from_config(config)
        path = generator.generate(output_dir or Path(config.output_dir))
    except (ConfigError, ManifestError) as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1)

    built = generator.manifest
    console.print(f"[green]Manifest generated at {path}[/green]")
    console.print(f"  Add-on: {built.name} {built.version} ({built.status.value})")
    console.print(f"  Extensions: {len(built.extensions)}")
    console.print(f"  Active scan rules: {len(built.active_scan_rules)}")
    console.print(f"  Passive scan rules: {len(built.passive_scan_rules)}")
    console.print(f"  Files: {len(built.files)}")


@manifest.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--strict", is_flag=True, help="Reject single-value list encodings.")
def show(path, strict):
    """Display the manifest in PATH (a ZapAddOn.xml or a packaged add-on)."""
    from zapaddon.manifest.model import ManifestError
    from zapaddon.manifest.serializer import read_manifest
    from zapaddon.versions.generator import ArchiveError, read_archive_manifest

    try:
        if zipfile.is_zipfile(path):
            parsed = read_archive_manifest(path, permissive=not strict)
        else:
            parsed = read_manifest(path, permissive=not strict)
    except (ArchiveError, ManifestError) as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1)

    table = Table(title=f"{parsed.name or path.name}")
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    table.add_row("Version", parsed.version or "")
    if parsed.sem_ver:
        table.add_row("SemVer", parsed.sem_ver)
    table.add_row("Status", parsed.status.value)
    for label, value in (
        ("Description", parsed.description),
        ("Author", parsed.author),
        ("URL", parsed.url),
        ("Repo", parsed.repo),
        ("Not before", parsed.not_before_version),
        ("Not from", parsed.not_from_version),
    ):
        if value:
            table.add_row(label, value)
    if parsed.dependencies:
        if parsed.dependencies.java_version:
            table.add_row("Java", parsed.dependencies.java_version)
        for addon in parsed.dependencies.addons:
            constraint = addon.version or addon.sem_ver or "*"
            table.add_row("Depends on", f"{addon.id} {constraint}")
    for extension in parsed.extensions:
        marker = " (v1)" if extension.is_versioned else ""
        table.add_row("Extension", f"{extension.classname}{marker}")
    for rule in parsed.active_scan_rules:
        table.add_row("Active rule", rule)
    for rule in parsed.passive_scan_rules:
        table.add_row("Passive rule", rule)
    if parsed.files:
        table.add_row("Files", str(len(parsed.files)))

    console.print(table)
