"""Pydantic models for zapaddon configuration files."""

from pathlib import Path

from pydantic import BaseModel, Field

from zapaddon.manifest.model import AddOnManifest
from zapaddon.manifest.reconciler import (
    ACTIVE_SCAN_RULE_MARKER,
    EXTENSION_MARKER,
    PASSIVE_SCAN_RULE_MARKER,
    CapabilityMarkers,
)


class ClasspathConfig(BaseModel):
    """Where the add-on's classes and their dependencies live."""

    classes: list[str] = Field(default_factory=list)  # add-on's own output
    compile: list[str] = Field(default_factory=list)  # jars/dirs it compiles against


class MarkersConfig(BaseModel):
    """Capability base types used to discover components."""

    extension: str = EXTENSION_MARKER
    active_scan_rule: str = ACTIVE_SCAN_RULE_MARKER
    passive_scan_rule: str = PASSIVE_SCAN_RULE_MARKER

    def to_markers(self) -> CapabilityMarkers:
        return CapabilityMarkers(
            extension=self.extension,
            active_scan_rule=self.active_scan_rule,
            passive_scan_rule=self.passive_scan_rule,
        )


class ReleaseConfig(BaseModel):
    """Settings for version feed entries of released add-ons."""

    download_url: str = ""
    github_repo: str = ""  # owner/name
    checksum_algorithm: str = "SHA1"


class AddOnConfig(BaseModel):
    """Declared metadata and build inputs of one add-on."""

    id: str
    manifest: AddOnManifest
    classpath: ClasspathConfig = Field(default_factory=ClasspathConfig)
    markers: MarkersConfig = Field(default_factory=MarkersConfig)
    file_dirs: list[str] = Field(default_factory=list)
    lib_files: list[str] = Field(default_factory=list)
    output_dir: str = "build/zapAddOn"
    release: ReleaseConfig = Field(default_factory=ReleaseConfig)

    def resolve_paths(self, base_dir: Path) -> "AddOnConfig":
        """Return a copy with every relative path anchored at ``base_dir``."""

        def resolve(value: str) -> str:
            path = Path(value).expanduser()
            return str(path if path.is_absolute() else base_dir / path)

        manifest = self.manifest.model_copy(deep=True)
        if manifest.changes_file is not None:
            manifest.changes_file = Path(resolve(str(manifest.changes_file)))
        if manifest.bundled_libs is not None:
            manifest.bundled_libs.libs = [resolve(p) for p in manifest.bundled_libs.libs]

        return self.model_copy(
            update={
                "manifest": manifest,
                "classpath": ClasspathConfig(
                    classes=[resolve(p) for p in self.classpath.classes],
                    compile=[resolve(p) for p in self.classpath.compile],
                ),
                "file_dirs": [resolve(p) for p in self.file_dirs],
                "lib_files": [resolve(p) for p in self.lib_files],
                "output_dir": resolve(self.output_dir),
            }
        )
