"""Atomic file output helpers."""

import logging
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


def atomic_write_bytes(path: Path, data: bytes) -> Path:
    """Write ``data`` to ``path`` without ever leaving a partial file.

    The content goes to a temporary file in the destination directory which
    then replaces the target in a single rename.

    Args:
        path: Destination file.
        data: Complete file contents.

    Returns:
        The destination path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with open(fd, "wb") as f:
            f.write(data)
        Path(tmp_path).replace(path)
    except Exception:
        Path(tmp_path).unlink(missing_ok=True)
        raise

    logger.debug(f"Wrote {len(data)} bytes to {path}")
    return path

