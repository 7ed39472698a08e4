"""Models of the version feed (``ZapVersions.xml``)."""

import xml.etree.ElementTree as ET

from pydantic import BaseModel, ConfigDict, Field

from zapaddon.manifest.model import Dependencies


class AddOnEntry(BaseModel):
    """One add-on listed in a version feed."""

    id: str
    name: str | None = None
    description: str | None = None
    author: str | None = None
    version: str | None = None
    sem_ver: str | None = None
    file: str | None = None
    status: str | None = None
    changes: str | None = None
    url: str | None = None
    hash: str | None = None
    info: str | None = None
    date: str | None = None
    size: str | None = None
    not_before_version: str | None = None
    not_from_version: str | None = None
    dependencies: Dependencies | None = None


class ZapVersions(BaseModel):
    """A version feed: an optional core section and add-ons keyed by id.

    Entries are always rendered in id order, whatever order they were added in.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    core: ET.Element | None = None
    addons: dict[str, AddOnEntry] = Field(default_factory=dict)

    def put(self, entry: AddOnEntry) -> AddOnEntry | None:
        """Insert ``entry``, replacing any entry with the same id.

        Returns:
            The replaced entry, if there was one.
        """
        previous = self.addons.pop(entry.id, None)
        self.addons[entry.id] = entry
        return previous

    def get(self, addon_id: str) -> AddOnEntry | None:
        return self.addons.get(addon_id)

    def entries(self) -> list[AddOnEntry]:
        return [self.addons[key] for key in sorted(self.addons)]

    def first(self) -> AddOnEntry | None:
        entries = self.entries()
        return entries[0] if entries else None

    def __len__(self) -> int:
        return len(self.addons)
