"""Pydantic models describing an add-on manifest (``ZapAddOn.xml``)."""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

UNSPECIFIED_VERSION = "unspecified"


class ManifestError(Exception):
    """Raised when a manifest cannot be generated from its declared metadata."""


class AddOnStatus(str, Enum):
    """Maturity of an add-on."""

    ALPHA = "alpha"
    BETA = "beta"
    RELEASE = "release"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> "AddOnStatus":
        """Map a status string to a member, falling back to ``UNKNOWN``."""
        if not value:
            return cls.UNKNOWN
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.UNKNOWN


def _empty_to_none(value):
    if isinstance(value, str) and value == "":
        return None
    return value


def _zero_to_none(value):
    # A bound of 0 has always meant "not set".
    if value == 0:
        return None
    return value


class Classnames(BaseModel):
    """Class name patterns allowed or restricted for reflective access."""

    allowed: list[str] = Field(default_factory=list)
    restricted: list[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.allowed and not self.restricted


class AddOnDependency(BaseModel):
    """Dependency on another add-on."""

    id: str
    version: str | None = None
    sem_ver: str | None = None
    not_before_version: int | None = None
    not_from_version: int | None = None

    @field_validator("id")
    @classmethod
    def _id_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("add-on dependency id must not be empty")
        return value

    @field_validator("version", "sem_ver", mode="before")
    @classmethod
    def _optional_text(cls, value):
        return _empty_to_none(value)

    @field_validator("not_before_version", "not_from_version", mode="before")
    @classmethod
    def _optional_bound(cls, value):
        return _zero_to_none(value)


def unique_by_id(addons: list[AddOnDependency]) -> list[AddOnDependency]:
    # Add-on dependencies are keyed and ordered by id; the first declaration wins.
    by_id: dict[str, AddOnDependency] = {}
    for addon in addons:
        by_id.setdefault(addon.id, addon)
    return [by_id[key] for key in sorted(by_id)]


class Dependencies(BaseModel):
    """Platform and add-on dependencies of an add-on.

    Add-ons keep the order they were declared or read in; the manifest
    renders them unique and sorted by id.
    """

    java_version: str | None = None
    addons: list[AddOnDependency] = Field(default_factory=list)

    @field_validator("java_version", mode="before")
    @classmethod
    def _optional_text(cls, value):
        return _empty_to_none(value)


class ExtensionDependencies(BaseModel):
    """Dependencies of a single extension: add-ons and sibling extensions."""

    addons: list[AddOnDependency] = Field(default_factory=list)
    extensions: list[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.addons and not self.extensions


class ExtensionEntry(BaseModel):
    """An extension class, declared or discovered on the classpath."""

    classname: str
    classnames: Classnames | None = None
    dependencies: ExtensionDependencies | None = None

    @property
    def effective_classnames(self) -> Classnames | None:
        if self.classnames is None or self.classnames.is_empty():
            return None
        return self.classnames

    @property
    def effective_dependencies(self) -> ExtensionDependencies | None:
        if self.dependencies is None or self.dependencies.is_empty():
            return None
        return self.dependencies

    @property
    def is_versioned(self) -> bool:
        """Whether the entry needs the ``v="1"`` schema marker."""
        return (
            self.effective_classnames is not None
            or self.effective_dependencies is not None
        )


class BundledLibs(BaseModel):
    """Libraries shipped inside the add-on, under ``dir_name``."""

    dir_name: str = "libs"
    libs: list[str] = Field(default_factory=list)

    def entries(self) -> list[str]:
        """Sorted, de-duplicated ``dir_name/file`` paths."""
        names = sorted({Path(lib).name for lib in self.libs})
        return [f"{self.dir_name}/{name}" for name in names]


class Bundle(BaseModel):
    """Resource bundle with the add-on's messages."""

    base_name: str
    prefix: str | None = None


class HelpSet(BaseModel):
    """Help set bundled with the add-on."""

    base_name: str
    locale_token: str | None = None


class AddOnManifest(BaseModel):
    """Declared metadata of an add-on.

    Built fresh for every generation, augmented in place with classes found
    on the classpath, then rendered once. Fields are listed in the order they
    appear in the rendered document.
    """

    name: str = ""
    version: str | None = None
    sem_ver: str | None = None
    status: AddOnStatus = AddOnStatus.ALPHA
    description: str | None = None
    author: str | None = None
    url: str | None = None
    changes: str | None = None
    changes_file: Path | None = None
    repo: str | None = None
    classnames: Classnames | None = None
    dependencies: Dependencies | None = None
    bundled_libs: BundledLibs | None = None
    bundle: Bundle | None = None
    help_set: HelpSet | None = None
    extensions: list[ExtensionEntry] = Field(default_factory=list)
    active_scan_rules: list[str] = Field(default_factory=list)
    passive_scan_rules: list[str] = Field(default_factory=list)
    files: list[str] = Field(default_factory=list)
    not_before_version: str | None = None
    not_from_version: str | None = None

    @field_validator(
        "version",
        "sem_ver",
        "description",
        "author",
        "url",
        "changes",
        "repo",
        "not_before_version",
        "not_from_version",
        mode="before",
    )
    @classmethod
    def _optional_text(cls, value):
        return _empty_to_none(value)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, value):
        if isinstance(value, str):
            return AddOnStatus.parse(value)
        return value

    def check(self) -> None:
        """Verify the manifest can be rendered.

        Raises:
            ManifestError: If the version is missing or a placeholder, or if
                both forms of changes are set.
        """
        if not self.version or self.version == UNSPECIFIED_VERSION:
            raise ManifestError("No version specified for the add-on.")
        if self.changes is not None and self.changes_file is not None:
            raise ManifestError("Only one type of changes property must be set.")

    def resolved_changes(self) -> str | None:
        """The changes text, reading ``changes_file`` when that is the source."""
        if self.changes_file is not None:
            try:
                return Path(self.changes_file).read_text(encoding="utf-8")
            except OSError as e:
                raise ManifestError(
                    f"Failed to read changes file {self.changes_file}: {e}"
                ) from e
        return self.changes

    def extension_classnames(self) -> list[str]:
        return [e.classname for e in self.extensions]
