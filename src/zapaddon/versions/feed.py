"""Reading, writing, updating and aggregating version feeds."""

import copy
import logging
import xml.etree.ElementTree as ET
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable

from zapaddon.manifest.serializer import (
    ManifestParseError,
    add_text,
    child_text,
    parse_dependencies,
    render_dependencies,
    to_xml,
)
from zapaddon.utils.fileio import atomic_write_bytes

from .models import AddOnEntry, ZapVersions

logger = logging.getLogger(__name__)

FEED_ROOT_ELEMENT = "ZAP"
ADDON_ELEMENT = "addon"
ADDON_ENTRY_PREFIX = "addon_"
DEFAULT_UPDATE_WORKERS = 4


class FeedError(Exception):
    """Raised when a version feed cannot be read or written."""


class FeedUpdateError(FeedError):
    """Raised when one or more feed files in a fan-out update failed."""

    def __init__(self, failures: dict[Path, Exception]) -> None:
        self.failures = failures
        details = "; ".join(f"{path}: {error}" for path, error in failures.items())
        super().__init__(f"Failed to update {len(failures)} feed file(s): {details}")


def _render_entry(parent: ET.Element, entry: AddOnEntry) -> None:
    add_text(parent, ADDON_ELEMENT, entry.id, always=True)
    element = ET.SubElement(parent, f"{ADDON_ENTRY_PREFIX}{entry.id}")
    add_text(element, "name", entry.name, always=True)
    add_text(element, "description", entry.description, always=True)
    add_text(element, "author", entry.author, always=True)
    add_text(element, "version", entry.version, always=True)
    add_text(element, "semver", entry.sem_ver)
    add_text(element, "file", entry.file, always=True)
    add_text(element, "status", entry.status, always=True)
    add_text(element, "changes", entry.changes)
    add_text(element, "url", entry.url, always=True)
    add_text(element, "hash", entry.hash, always=True)
    add_text(element, "info", entry.info)
    add_text(element, "date", entry.date, always=True)
    add_text(element, "size", entry.size, always=True)
    add_text(element, "not-before-version", entry.not_before_version)
    add_text(element, "not-from-version", entry.not_from_version)
    render_dependencies(element, entry.dependencies, canonical=False)


def render_feed(feed: ZapVersions) -> bytes:
    """Render ``feed`` with an XML declaration and entries in id order."""
    root = ET.Element(FEED_ROOT_ELEMENT)
    if feed.core is not None:
        root.append(copy.deepcopy(feed.core))
    for entry in feed.entries():
        _render_entry(root, entry)
    return to_xml(root, declaration=True)


def _parse_entry(element: ET.Element) -> AddOnEntry:
    addon_id = element.tag[len(ADDON_ENTRY_PREFIX):]
    if not addon_id:
        raise FeedError(f"Add-on entry <{element.tag}> without id")
    try:
        dependencies = parse_dependencies(element)
    except ManifestParseError as e:
        raise FeedError(f"Invalid dependencies of add-on {addon_id}: {e}") from e
    return AddOnEntry(
        id=addon_id,
        name=child_text(element, "name"),
        description=child_text(element, "description"),
        author=child_text(element, "author"),
        version=child_text(element, "version"),
        sem_ver=child_text(element, "semver"),
        file=child_text(element, "file"),
        status=child_text(element, "status"),
        changes=child_text(element, "changes"),
        url=child_text(element, "url"),
        hash=child_text(element, "hash"),
        info=child_text(element, "info"),
        date=child_text(element, "date"),
        size=child_text(element, "size"),
        not_before_version=child_text(element, "not-before-version"),
        not_from_version=child_text(element, "not-from-version"),
        dependencies=dependencies,
    )


def parse_feed(data: bytes | str) -> ZapVersions:
    """Parse a version feed document.

    Raises:
        FeedError: If the document is malformed or not a version feed.
    """
    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        raise FeedError(f"Malformed version feed XML: {e}") from e
    if root.tag != FEED_ROOT_ELEMENT:
        raise FeedError(
            f"Unexpected root element <{root.tag}>, expected <{FEED_ROOT_ELEMENT}>"
        )

    feed = ZapVersions()
    for child in root:
        if child.tag == "core":
            feed.core = copy.deepcopy(child)
        elif child.tag.startswith(ADDON_ENTRY_PREFIX):
            feed.put(_parse_entry(child))
        elif child.tag != ADDON_ELEMENT:
            logger.debug(f"Ignoring unknown feed element <{child.tag}>")
    return feed


def read_feed(path: Path) -> ZapVersions:
    """Read the version feed at ``path``."""
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise FeedError(f"Failed to read version feed {path}: {e}") from e
    try:
        return parse_feed(data)
    except FeedError as e:
        raise FeedError(f"{path}: {e}") from e


def write_feed(feed: ZapVersions, path: Path) -> Path:
    """Write ``feed`` to ``path`` atomically.

    Raises:
        FeedError: If the file cannot be written.
    """
    try:
        return atomic_write_bytes(Path(path), render_feed(feed))
    except OSError as e:
        raise FeedError(f"Failed to write version feed {path}: {e}") from e


def single_entry(path: Path) -> AddOnEntry:
    """The first entry of the feed at ``path``."""
    entry = read_feed(path).first()
    if entry is None:
        raise FeedError(f"Version feed {path} has no add-on entries")
    return entry


def update_feed_file(entry: AddOnEntry, path: Path) -> Path:
    """Replace the entry with ``entry.id`` in the feed at ``path``."""
    feed = read_feed(path)
    replaced = feed.put(entry)
    write_feed(feed, path)
    action = "Replaced" if replaced is not None else "Added"
    logger.info(f"{action} add-on '{entry.id}' in {path}")
    return Path(path)


def update_feed_files(
    source: Path,
    targets: Iterable[Path],
    max_workers: int = DEFAULT_UPDATE_WORKERS,
) -> list[Path]:
    """Apply the entry of a single-entry feed to many feed files.

    Every target must exist before any is touched. Targets are updated
    independently and concurrently; a failure in one does not stop the
    others.

    Returns:
        The updated paths.

    Raises:
        FeedError: If the source is unreadable or a target does not exist.
        FeedUpdateError: If any target failed to update.
    """
    targets = [Path(t) for t in targets]
    for target in targets:
        if not target.exists():
            raise FeedError(f"The file {target} does not exist.")

    entry = single_entry(source)
    if not targets:
        return []

    failures: dict[Path, Exception] = {}
    updated: list[Path] = []
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        futures = {executor.submit(update_feed_file, entry, t): t for t in targets}
        for future, target in futures.items():
            try:
                updated.append(future.result())
            except (FeedError, OSError) as e:
                logger.error(f"Failed to update {target}: {e}")
                failures[target] = e

    if failures:
        raise FeedUpdateError(failures)
    return updated


def aggregate_feeds(sources: Iterable[Path]) -> ZapVersions:
    """Collect the first entry of each single-entry feed into one feed."""
    aggregated = ZapVersions()
    for source in sources:
        aggregated.put(single_entry(Path(source)))
    return aggregated


def aggregate_feed_files(sources: Iterable[Path], output: Path) -> Path:
    """Aggregate ``sources`` and write the result to ``output``."""
    sources = list(sources)
    feed = aggregate_feeds(sources)
    path = write_feed(feed, output)
    logger.info(f"Aggregated {len(feed)} add-ons from {len(sources)} files into {path}")
    return path
