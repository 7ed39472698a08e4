"""Manifest generator: declared metadata + classpath scan -> ``ZapAddOn.xml``."""

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from zapaddon.utils.fileio import atomic_write_bytes

from .model import AddOnManifest, BundledLibs, ManifestError
from .reconciler import (
    DEFAULT_MARKERS,
    CapabilityMarkers,
    ClasspathScanner,
    DiscoveredComponents,
    reconcile,
)
from .serializer import MANIFEST_FILE_NAME, render_manifest

if TYPE_CHECKING:
    from zapaddon.config.models import AddOnConfig

logger = logging.getLogger(__name__)


def collect_files(roots: Iterable[Path]) -> list[str]:
    """Relative paths of every regular file beneath ``roots``.

    Paths are relative to the root they were found under and use forward
    slashes. A root that is itself a file contributes its name.
    """
    paths: set[str] = set()
    for root in roots:
        root = Path(root)
        if root.is_file():
            paths.add(root.name)
            continue
        if not root.is_dir():
            logger.debug(f"Skipping missing file root {root}")
            continue
        for path in root.rglob("*"):
            if path.is_file():
                paths.add(path.relative_to(root).as_posix())
    return sorted(paths)


def collect_libs(paths: Iterable[Path]) -> list[str]:
    """File names of the regular files in ``paths``, sorted."""
    names: set[str] = set()
    for path in paths:
        path = Path(path)
        if path.is_file():
            names.add(path.name)
        else:
            logger.debug(f"Skipping bundled library {path}, not a regular file")
    return sorted(names)


class ManifestGenerator:
    """Generates the manifest of one add-on.

    The manifest is checked before anything else happens, so a manifest
    that cannot be rendered never causes a scan or a write.
    """

    def __init__(
        self,
        manifest: AddOnManifest,
        classes: Iterable[Path] = (),
        compile_classpath: Iterable[Path] = (),
        markers: CapabilityMarkers = DEFAULT_MARKERS,
    ) -> None:
        self.manifest = manifest
        self.scanner = ClasspathScanner(classes, compile_classpath, markers)

    @classmethod
    def from_config(cls, config: "AddOnConfig") -> "ManifestGenerator":
        """Create a generator from a loaded add-on configuration.

        Files and bundled libraries listed by the configuration are added to
        a copy of its manifest. Bundled libraries, declared or listed, are
        kept only when they are regular files.
        """
        manifest = config.manifest.model_copy(deep=True)
        if config.file_dirs:
            manifest.files = sorted(
                set(manifest.files) | set(collect_files(Path(p) for p in config.file_dirs))
            )
        if config.lib_files or manifest.bundled_libs is not None:
            libs = BundledLibs() if manifest.bundled_libs is None else manifest.bundled_libs
            libs.libs = collect_libs([*libs.libs, *config.lib_files])
            manifest.bundled_libs = libs
        return cls(
            manifest,
            classes=[Path(p) for p in config.classpath.classes],
            compile_classpath=[Path(p) for p in config.classpath.compile],
            markers=config.markers.to_markers(),
        )

    def build(self) -> AddOnManifest:
        """Validate the declarations and add the discovered components.

        Returns:
            The reconciled manifest (the same object passed in).

        Raises:
            ManifestError: If the declared metadata is invalid.
        """
        self.manifest.check()
        discovered: DiscoveredComponents = self.scanner.scan()
        return reconcile(self.manifest, discovered)

    def render(self) -> bytes:
        return render_manifest(self.build())

    def generate(self, output_dir: Path) -> Path:
        """Write the manifest into ``output_dir``.

        Returns:
            Path to the written manifest.

        Raises:
            ManifestError: If the manifest is invalid or cannot be written.
        """
        data = self.render()
        target = Path(output_dir) / MANIFEST_FILE_NAME
        try:
            path = atomic_write_bytes(target, data)
        except OSError as e:
            raise ManifestError(f"Failed to write manifest {target}: {e}") from e
        logger.info(
            f"Generated manifest for '{self.manifest.name}' "
            f"{self.manifest.version} at {path}"
        )
        return path
