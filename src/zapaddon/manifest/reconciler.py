"""Discovery of add-on components on the classpath and merge with declarations."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from .classpath import ClassIndex
from .model import AddOnManifest, ExtensionEntry

logger = logging.getLogger(__name__)

EXTENSION_MARKER = "org.parosproxy.paros.extension.Extension"
ACTIVE_SCAN_RULE_MARKER = "org.parosproxy.paros.core.scanner.Plugin"
PASSIVE_SCAN_RULE_MARKER = "org.zaproxy.zap.extension.pscan.PluginPassiveScanner"


@dataclass(frozen=True)
class CapabilityMarkers:
    """Base types that identify each kind of discoverable component."""

    extension: str = EXTENSION_MARKER
    active_scan_rule: str = ACTIVE_SCAN_RULE_MARKER
    passive_scan_rule: str = PASSIVE_SCAN_RULE_MARKER


DEFAULT_MARKERS = CapabilityMarkers()


@dataclass
class DiscoveredComponents:
    """Class names found on the classpath, per capability."""

    extensions: list[str] = field(default_factory=list)
    active_scan_rules: list[str] = field(default_factory=list)
    passive_scan_rules: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return (
            len(self.extensions)
            + len(self.active_scan_rules)
            + len(self.passive_scan_rules)
        )


class ClasspathScanner:
    """Finds extensions and scan rules among an add-on's compiled classes.

    Args:
        classes: Classpath elements holding the add-on's own classes.
        compile_classpath: Dependencies needed to resolve inheritance chains.
        markers: Capability base types to look for.
    """

    def __init__(
        self,
        classes: Iterable[Path],
        compile_classpath: Iterable[Path] = (),
        markers: CapabilityMarkers = DEFAULT_MARKERS,
    ) -> None:
        self.classes = [Path(p) for p in classes]
        self.compile_classpath = [Path(p) for p in compile_classpath]
        self.markers = markers

    def scan(self) -> DiscoveredComponents:
        """Scan the classpath.

        Returns:
            The discovered class names; empty when there are no target classes.
        """
        if not self.classes:
            return DiscoveredComponents()

        targets = set(self.classes)
        elements = list(self.classes)
        elements.extend(p for p in self.compile_classpath if p not in targets)
        index = ClassIndex.from_classpath(elements)
        logger.debug(f"Classpath index holds {len(index)} classes")

        discovered = DiscoveredComponents(
            extensions=self._find(index, targets, self.markers.extension),
            active_scan_rules=self._find(index, targets, self.markers.active_scan_rule),
            passive_scan_rules=self._find(index, targets, self.markers.passive_scan_rule),
        )
        logger.info(
            f"Discovered {len(discovered.extensions)} extensions, "
            f"{len(discovered.active_scan_rules)} active and "
            f"{len(discovered.passive_scan_rules)} passive scan rules"
        )
        return discovered

    @staticmethod
    def _find(index: ClassIndex, targets: set[Path], marker: str) -> list[str]:
        if marker not in index:
            logger.warning(
                f"Capability class {marker} not found on the classpath, "
                "no classes discovered for it"
            )
            return []
        return [
            info.name
            for info in index.assignable_to(marker)
            if info.location in targets and info.is_instantiable
        ]


def merge_extensions(
    declared: list[ExtensionEntry], discovered: Iterable[str]
) -> list[ExtensionEntry]:
    """Combine declared extensions with discovered class names.

    Declared entries always win, keeping their metadata. Discovered classes
    not declared become bare entries. The result is unique by class name and
    sorted by it.
    """
    merged: dict[str, ExtensionEntry] = {}
    for entry in declared:
        merged.setdefault(entry.classname, entry)
    for classname in discovered:
        if classname not in merged:
            merged[classname] = ExtensionEntry(classname=classname)
    return sorted(merged.values(), key=lambda e: e.classname)


def merge_scan_rules(declared: Iterable[str], discovered: Iterable[str]) -> list[str]:
    """Union of declared and discovered scan rules, sorted."""
    return sorted(set(declared) | set(discovered))


def reconcile(manifest: AddOnManifest, discovered: DiscoveredComponents) -> AddOnManifest:
    """Add discovered components to ``manifest`` in place.

    Returns:
        The same manifest, for chaining.
    """
    declared_count = len(manifest.extensions)
    manifest.extensions = merge_extensions(manifest.extensions, discovered.extensions)
    manifest.active_scan_rules = merge_scan_rules(
        manifest.active_scan_rules, discovered.active_scan_rules
    )
    manifest.passive_scan_rules = merge_scan_rules(
        manifest.passive_scan_rules, discovered.passive_scan_rules
    )
    added = len(manifest.extensions) - declared_count
    if added > 0:
        logger.debug(f"Added {added} undeclared extensions from the classpath")
    return manifest
