"""Version feed entries for packaged add-ons."""

import hashlib
import logging
import zipfile
from datetime import date
from pathlib import Path

from zapaddon.manifest.model import AddOnManifest
from zapaddon.manifest.serializer import MANIFEST_FILE_NAME, ManifestParseError, parse_manifest

from .feed import write_feed
from .models import AddOnEntry, ZapVersions

logger = logging.getLogger(__name__)

DEFAULT_CHECKSUM_ALGORITHM = "SHA1"
GITHUB_RELEASE_URL = "https://github.com/{repo}/releases/download/v{version}"

_CHUNK_SIZE = 64 * 1024


class ArchiveError(Exception):
    """Raised when a packaged add-on is missing or malformed."""


def read_archive_manifest(archive: Path, permissive: bool = True) -> AddOnManifest:
    """Read the manifest packaged in ``archive``.

    Raises:
        ArchiveError: If the archive cannot be opened, has no manifest, or the
            manifest is invalid.
    """
    archive = Path(archive)
    try:
        with zipfile.ZipFile(archive) as zf:
            try:
                data = zf.read(MANIFEST_FILE_NAME)
            except KeyError:
                raise ArchiveError(
                    f"The specified add-on does not have the manifest: {archive}"
                ) from None
    except (OSError, zipfile.BadZipFile) as e:
        raise ArchiveError(f"Failed to open add-on {archive}: {e}") from e

    try:
        return parse_manifest(data, permissive)
    except ManifestParseError as e:
        raise ArchiveError(f"Invalid manifest in {archive}: {e}") from e


def _hashlib_name(algorithm: str) -> str:
    name = algorithm.strip().lower()
    if name.startswith("sha3-"):
        return name.replace("-", "_")
    return name.replace("-", "").replace("/", "_")


def checksum(path: Path, algorithm: str = DEFAULT_CHECKSUM_ALGORITHM) -> str:
    """``ALGORITHM:hexdigest`` of the file at ``path``.

    The algorithm name is kept as given in the prefix. Names are matched the
    way Java names message digests: ``SHA1``, ``SHA-256``, ``SHA3-256`` and
    ``SHA-512/256`` are all valid.

    Raises:
        ValueError: If the algorithm is not supported.
    """
    try:
        digest = hashlib.new(_hashlib_name(algorithm))
    except ValueError:
        raise ValueError(f"Unsupported checksum algorithm: {algorithm}") from None
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return f"{algorithm}:{digest.hexdigest()}"


def github_download_url(repo: str, version: str) -> str:
    """Base download URL of the GitHub release of ``version``."""
    return GITHUB_RELEASE_URL.format(repo=repo, version=version)


def create_entry(
    addon_id: str,
    archive: Path,
    download_url: str,
    checksum_algorithm: str = DEFAULT_CHECKSUM_ALGORITHM,
    today: date | None = None,
) -> AddOnEntry:
    """Project the manifest of a packaged add-on into a feed entry.

    Args:
        addon_id: Id of the add-on.
        archive: The packaged add-on.
        download_url: Base URL the archive is downloadable from.
        checksum_algorithm: Hash algorithm for the ``hash`` field.
        today: Release date, defaults to the current date.

    Raises:
        ArchiveError: If the archive or its manifest cannot be read.
    """
    archive = Path(archive)
    manifest = read_archive_manifest(archive)
    file_name = archive.name
    try:
        digest = checksum(archive, checksum_algorithm)
        size = archive.stat().st_size
    except OSError as e:
        raise ArchiveError(f"Failed to read add-on {archive}: {e}") from e
    return AddOnEntry(
        id=addon_id,
        name=manifest.name,
        description=manifest.description,
        author=manifest.author,
        version=manifest.version,
        sem_ver=manifest.sem_ver,
        file=file_name,
        status=manifest.status.value,
        changes=manifest.changes,
        url=f"{download_url.rstrip('/')}/{file_name}",
        hash=digest,
        info=manifest.url,
        date=(today or date.today()).isoformat(),
        size=str(size),
        not_before_version=manifest.not_before_version,
        not_from_version=manifest.not_from_version,
        dependencies=manifest.dependencies,
    )


def generate_version_file(
    addon_id: str,
    archive: Path,
    download_url: str,
    output: Path,
    checksum_algorithm: str = DEFAULT_CHECKSUM_ALGORITHM,
) -> Path:
    """Write a single-entry version feed for a packaged add-on.

    Returns:
        Path to the written feed.

    Raises:
        ArchiveError: If the archive cannot be read.
        FeedError: If the feed cannot be written.
    """
    entry = create_entry(addon_id, archive, download_url, checksum_algorithm)
    feed = ZapVersions()
    feed.put(entry)
    path = write_feed(feed, output)
    logger.info(f"Generated version file for '{addon_id}' {entry.version} at {path}")
    return path
