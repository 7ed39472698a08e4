"""Add-on manifest model, classpath reconciliation and serialization."""

from .generator import ManifestGenerator
from .model import AddOnManifest, AddOnStatus, ExtensionEntry, ManifestError
from .serializer import (
    MANIFEST_FILE_NAME,
    ManifestParseError,
    parse_manifest,
    read_manifest,
    render_manifest,
)

__all__ = [
    "AddOnManifest",
    "AddOnStatus",
    "ExtensionEntry",
    "MANIFEST_FILE_NAME",
    "ManifestError",
    "ManifestGenerator",
    "ManifestParseError",
    "parse_manifest",
    "read_manifest",
    "render_manifest",
]
