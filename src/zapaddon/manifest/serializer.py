"""Rendering and parsing of the ``ZapAddOn.xml`` manifest.

Rendering is canonical: elements follow schema order, lists are sorted and
de-duplicated, absent or empty values are left out and every nesting level is
indented by four spaces. Rendering the same manifest twice gives the same
bytes.

Parsing is the inverse. In permissive mode (the default) a list holding a
single value may appear without its item elements, as older producers wrote
it, and items may appear without their wrapper element.
"""

import logging
import xml.etree.ElementTree as ET
from pathlib import Path

from .model import (
    AddOnDependency,
    AddOnManifest,
    AddOnStatus,
    Bundle,
    BundledLibs,
    Classnames,
    Dependencies,
    ExtensionDependencies,
    ExtensionEntry,
    HelpSet,
    ManifestError,
    unique_by_id,
)

logger = logging.getLogger(__name__)

MANIFEST_FILE_NAME = "ZapAddOn.xml"
ROOT_ELEMENT = "zapaddon"
INDENT = " " * 4
EXTENSION_SCHEMA_VERSION = "1"


class ManifestParseError(ManifestError):
    """Raised when a manifest document cannot be read."""


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def add_text(parent: ET.Element, tag: str, value, always: bool = False) -> ET.Element | None:
    """Append ``<tag>value</tag>`` unless the value is absent or empty."""
    if value is None or value == "":
        if not always:
            return None
        value = None
    element = ET.SubElement(parent, tag)
    if value is not None:
        element.text = str(value)
    return element


def add_list(parent: ET.Element, wrapper: str, item: str, values: list[str]) -> None:
    """Append a wrapper element holding one item element per value."""
    if not values:
        return
    container = ET.SubElement(parent, wrapper)
    for value in values:
        add_text(container, item, value, always=True)


def to_xml(root: ET.Element, declaration: bool = False) -> bytes:
    """Serialize ``root`` with the canonical four-space indentation."""
    ET.indent(root, space=INDENT)
    if declaration:
        body = ET.tostring(root, encoding="UTF-8", xml_declaration=True)
    else:
        body = ET.tostring(root, encoding="unicode").encode("utf-8")
    return body + b"\n"


def _render_addon_dependencies(
    parent: ET.Element, addons: list[AddOnDependency], canonical: bool = True
) -> None:
    if canonical:
        addons = unique_by_id(addons)
    if not addons:
        return
    container = ET.SubElement(parent, "addons")
    for addon in addons:
        element = ET.SubElement(container, "addon")
        add_text(element, "id", addon.id, always=True)
        add_text(element, "version", addon.version)
        add_text(element, "semver", addon.sem_ver)
        if addon.not_before_version:
            add_text(element, "not-before-version", addon.not_before_version)
        if addon.not_from_version:
            add_text(element, "not-from-version", addon.not_from_version)


def render_dependencies(
    parent: ET.Element, dependencies: Dependencies | None, canonical: bool = True
) -> None:
    """Append the ``dependencies`` element, if there is anything to say.

    Add-ons are made unique and sorted by id unless ``canonical`` is false,
    in which case they are written as given.
    """
    if dependencies is None:
        return
    if dependencies.java_version is None and not dependencies.addons:
        return
    element = ET.SubElement(parent, "dependencies")
    add_text(element, "javaversion", dependencies.java_version)
    _render_addon_dependencies(element, dependencies.addons, canonical)


def _render_classnames(parent: ET.Element, classnames: Classnames | None) -> None:
    if classnames is None or classnames.is_empty():
        return
    element = ET.SubElement(parent, "classnames")
    for pattern in classnames.allowed:
        add_text(element, "allowed", pattern, always=True)
    for pattern in classnames.restricted:
        add_text(element, "restricted", pattern, always=True)


def _render_extension(parent: ET.Element, extension: ExtensionEntry) -> None:
    if not extension.is_versioned:
        add_text(parent, "extension", extension.classname, always=True)
        return

    element = ET.SubElement(parent, "extension", {"v": EXTENSION_SCHEMA_VERSION})
    add_text(element, "classname", extension.classname, always=True)
    _render_classnames(element, extension.effective_classnames)
    dependencies = extension.effective_dependencies
    if dependencies is not None:
        deps = ET.SubElement(element, "dependencies")
        _render_addon_dependencies(deps, dependencies.addons)
        add_list(deps, "extensions", "extension", sorted(set(dependencies.extensions)))


def _unique_extensions(extensions: list[ExtensionEntry]) -> list[ExtensionEntry]:
    by_name: dict[str, ExtensionEntry] = {}
    for extension in extensions:
        by_name.setdefault(extension.classname, extension)
    return [by_name[key] for key in sorted(by_name)]


def build_manifest_element(manifest: AddOnManifest) -> ET.Element:
    """Build the element tree of ``manifest``.

    Raises:
        ManifestError: If the manifest is not renderable.
    """
    manifest.check()

    root = ET.Element(ROOT_ELEMENT)
    add_text(root, "name", manifest.name, always=True)
    add_text(root, "version", manifest.version, always=True)
    add_text(root, "semver", manifest.sem_ver)
    add_text(root, "status", manifest.status.value, always=True)
    add_text(root, "description", manifest.description)
    add_text(root, "author", manifest.author)
    add_text(root, "url", manifest.url)
    add_text(root, "changes", manifest.resolved_changes())
    add_text(root, "repo", manifest.repo)
    _render_classnames(root, manifest.classnames)
    render_dependencies(root, manifest.dependencies)
    if manifest.bundled_libs is not None:
        add_list(root, "libs", "lib", manifest.bundled_libs.entries())

    if manifest.bundle is not None:
        attrs = {"prefix": manifest.bundle.prefix} if manifest.bundle.prefix else {}
        add_text(root, "bundle", manifest.bundle.base_name, always=True).attrib.update(attrs)
    if manifest.help_set is not None:
        attrs = (
            {"localetoken": manifest.help_set.locale_token}
            if manifest.help_set.locale_token
            else {}
        )
        add_text(root, "helpset", manifest.help_set.base_name, always=True).attrib.update(attrs)

    extensions = _unique_extensions(manifest.extensions)
    if extensions:
        container = ET.SubElement(root, "extensions")
        for extension in extensions:
            _render_extension(container, extension)

    add_list(root, "ascanrules", "ascanrule", sorted(set(manifest.active_scan_rules)))
    add_list(root, "pscanrules", "pscanrule", sorted(set(manifest.passive_scan_rules)))
    add_list(root, "files", "file", sorted(set(manifest.files)))
    add_text(root, "not-before-version", manifest.not_before_version)
    add_text(root, "not-from-version", manifest.not_from_version)
    return root


def render_manifest(manifest: AddOnManifest) -> bytes:
    """Render ``manifest`` to its canonical UTF-8 document."""
    return to_xml(build_manifest_element(manifest))


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def child_text(parent: ET.Element, tag: str) -> str | None:
    element = parent.find(tag)
    if element is None:
        return None
    return element.text or None


def _has_content(element: ET.Element) -> bool:
    return len(element) > 0 or bool((element.text or "").strip())


def list_elements(
    parent: ET.Element, wrapper: str, item: str, permissive: bool = True
) -> list[ET.Element]:
    """Item elements of a wrapped list, honouring the permissive encodings."""
    elements: list[ET.Element] = []
    container = parent.find(wrapper)
    if container is not None:
        items = container.findall(item)
        if items:
            elements.extend(items)
        elif _has_content(container):
            if not permissive:
                raise ManifestParseError(
                    f"Element <{wrapper}> must contain <{item}> elements"
                )
            elements.append(container)
    if permissive:
        elements.extend(parent.findall(item))
    return elements


def list_values(
    parent: ET.Element, wrapper: str, item: str, permissive: bool = True
) -> list[str]:
    values = []
    for element in list_elements(parent, wrapper, item, permissive):
        value = (element.text or "").strip()
        if value:
            values.append(value)
    return values


def _parse_bound(element: ET.Element, tag: str) -> int | None:
    text = child_text(element, tag)
    if text is None:
        return None
    try:
        return int(text.strip())
    except ValueError:
        raise ManifestParseError(f"Invalid <{tag}> value: {text!r}") from None


def _parse_addon_dependencies(parent: ET.Element, permissive: bool) -> list[AddOnDependency]:
    addons = []
    for element in list_elements(parent, "addons", "addon", permissive):
        addon_id = (child_text(element, "id") or "").strip()
        if not addon_id:
            raise ManifestParseError("Add-on dependency without <id>")
        addons.append(
            AddOnDependency(
                id=addon_id,
                version=child_text(element, "version"),
                sem_ver=child_text(element, "semver"),
                not_before_version=_parse_bound(element, "not-before-version"),
                not_from_version=_parse_bound(element, "not-from-version"),
            )
        )
    return addons


def parse_dependencies(parent: ET.Element, permissive: bool = True) -> Dependencies | None:
    """Read the ``dependencies`` child of ``parent``, if present."""
    element = parent.find("dependencies")
    if element is None:
        return None
    return Dependencies(
        java_version=child_text(element, "javaversion"),
        addons=_parse_addon_dependencies(element, permissive),
    )


def _parse_classnames(element: ET.Element | None) -> Classnames | None:
    if element is None:
        return None
    return Classnames(
        allowed=[(e.text or "").strip() for e in element.findall("allowed")],
        restricted=[(e.text or "").strip() for e in element.findall("restricted")],
    )


def _parse_extension(element: ET.Element, permissive: bool) -> ExtensionEntry:
    classname_element = element.find("classname")
    if classname_element is None:
        classname = (element.text or "").strip()
        if not classname:
            raise ManifestParseError("Extension without class name")
        return ExtensionEntry(classname=classname)

    classname = (classname_element.text or "").strip()
    if not classname:
        raise ManifestParseError("Extension without class name")

    dependencies = None
    deps_element = element.find("dependencies")
    if deps_element is not None:
        dependencies = ExtensionDependencies(
            addons=_parse_addon_dependencies(deps_element, permissive),
            extensions=list_values(deps_element, "extensions", "extension", permissive),
        )
    return ExtensionEntry(
        classname=classname,
        classnames=_parse_classnames(element.find("classnames")),
        dependencies=dependencies,
    )


def _parse_libs(root: ET.Element, permissive: bool) -> BundledLibs | None:
    entries = list_values(root, "libs", "lib", permissive)
    if not entries:
        return None
    dir_name = entries[0].rpartition("/")[0] or BundledLibs().dir_name
    return BundledLibs(dir_name=dir_name, libs=[e.rpartition("/")[2] for e in entries])


def element_to_manifest(root: ET.Element, permissive: bool = True) -> AddOnManifest:
    """Convert a parsed ``zapaddon`` element into a manifest model."""
    if root.tag != ROOT_ELEMENT:
        raise ManifestParseError(
            f"Unexpected root element <{root.tag}>, expected <{ROOT_ELEMENT}>"
        )

    bundle = None
    bundle_element = root.find("bundle")
    if bundle_element is not None:
        bundle = Bundle(
            base_name=(bundle_element.text or "").strip(),
            prefix=bundle_element.get("prefix"),
        )

    help_set = None
    help_element = root.find("helpset")
    if help_element is not None:
        help_set = HelpSet(
            base_name=(help_element.text or "").strip(),
            locale_token=help_element.get("localetoken"),
        )

    return AddOnManifest(
        name=child_text(root, "name") or "",
        version=child_text(root, "version"),
        sem_ver=child_text(root, "semver"),
        status=AddOnStatus.parse(child_text(root, "status")),
        description=child_text(root, "description"),
        author=child_text(root, "author"),
        url=child_text(root, "url"),
        changes=child_text(root, "changes"),
        repo=child_text(root, "repo"),
        classnames=_parse_classnames(root.find("classnames")),
        dependencies=parse_dependencies(root, permissive),
        bundled_libs=_parse_libs(root, permissive),
        bundle=bundle,
        help_set=help_set,
        extensions=[
            _parse_extension(e, permissive)
            for e in list_elements(root, "extensions", "extension", permissive)
        ],
        active_scan_rules=list_values(root, "ascanrules", "ascanrule", permissive),
        passive_scan_rules=list_values(root, "pscanrules", "pscanrule", permissive),
        files=list_values(root, "files", "file", permissive),
        not_before_version=child_text(root, "not-before-version"),
        not_from_version=child_text(root, "not-from-version"),
    )


def parse_manifest(data: bytes | str, permissive: bool = True) -> AddOnManifest:
    """Parse a manifest document.

    Args:
        data: The document contents.
        permissive: Accept the single-value list encodings of older producers.

    Raises:
        ManifestParseError: If the document is not a valid manifest.
    """
    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        raise ManifestParseError(f"Malformed manifest XML: {e}") from e
    return element_to_manifest(root, permissive)


def read_manifest(path: Path, permissive: bool = True) -> AddOnManifest:
    """Parse the manifest stored at ``path``."""
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise ManifestParseError(f"Failed to read manifest {path}: {e}") from e
    logger.debug(f"Parsing manifest {path}")
    return parse_manifest(data, permissive)
