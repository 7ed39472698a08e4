"""Tests for manifest models."""

import pytest
from pydantic import ValidationError

from zapaddon.manifest.model import (
    AddOnDependency,
    AddOnManifest,
    AddOnStatus,
    BundledLibs,
    Classnames,
    Dependencies,
    ExtensionDependencies,
    ExtensionEntry,
    ManifestError,
    unique_by_id,
)


class TestAddOnStatus:
    def test_known_values(self):
        assert AddOnStatus.parse("release") == AddOnStatus.RELEASE
        assert AddOnStatus.parse(" Beta ") == AddOnStatus.BETA

    def test_unknown_values(self):
        assert AddOnStatus.parse("stable") == AddOnStatus.UNKNOWN
        assert AddOnStatus.parse("") == AddOnStatus.UNKNOWN
        assert AddOnStatus.parse(None) == AddOnStatus.UNKNOWN

    def test_manifest_parses_status_strings(self):
        assert AddOnManifest(status="BETA").status == AddOnStatus.BETA
        assert AddOnManifest(status="weird").status == AddOnStatus.UNKNOWN

    def test_default_status_is_alpha(self):
        assert AddOnManifest().status == AddOnStatus.ALPHA


class TestAddOnDependency:
    def test_empty_strings_are_unset(self):
        dep = AddOnDependency(id="commonlib", version="", sem_ver="")
        assert dep.version is None
        assert dep.sem_ver is None

    def test_zero_bounds_are_unset(self):
        dep = AddOnDependency(id="commonlib", not_before_version=0, not_from_version=5)
        assert dep.not_before_version is None
        assert dep.not_from_version == 5

    def test_blank_id_rejected(self):
        with pytest.raises(ValidationError):
            AddOnDependency(id="  ")


class TestUniqueById:
    def test_sorted_and_first_wins(self):
        addons = [
            AddOnDependency(id="network", version="1"),
            AddOnDependency(id="commonlib"),
            AddOnDependency(id="network", version="2"),
        ]
        result = unique_by_id(addons)
        assert [a.id for a in result] == ["commonlib", "network"]
        assert result[1].version == "1"

    def test_dependencies_keep_declared_order(self):
        deps = Dependencies(
            java_version="",
            addons=[AddOnDependency(id="b"), AddOnDependency(id="a")],
        )
        assert deps.java_version is None
        assert [a.id for a in deps.addons] == ["b", "a"]


class TestExtensionEntry:
    def test_bare_entry(self):
        assert not ExtensionEntry(classname="org.example.Ext").is_versioned

    def test_empty_metadata_is_not_versioned(self):
        entry = ExtensionEntry(
            classname="org.example.Ext",
            classnames=Classnames(),
            dependencies=ExtensionDependencies(),
        )
        assert entry.effective_classnames is None
        assert entry.effective_dependencies is None
        assert not entry.is_versioned

    def test_dependencies_make_it_versioned(self):
        entry = ExtensionEntry(
            classname="org.example.Ext",
            dependencies=ExtensionDependencies(extensions=["org.example.Other"]),
        )
        assert entry.is_versioned


class TestBundledLibs:
    def test_entries_sorted_unique_names(self):
        libs = BundledLibs(libs=["b.jar", "/build/libs/a.jar", "a.jar"])
        assert libs.entries() == ["libs/a.jar", "libs/b.jar"]

    def test_custom_directory(self):
        assert BundledLibs(dir_name="lib", libs=["x.jar"]).entries() == ["lib/x.jar"]


class TestAddOnManifest:
    def test_empty_strings_are_unset(self):
        manifest = AddOnManifest(version="1", description="", author="", repo="")
        assert manifest.description is None
        assert manifest.author is None
        assert manifest.repo is None

    def test_check_passes(self):
        AddOnManifest(name="Example", version="1").check()

    @pytest.mark.parametrize("version", [None, "", "unspecified"])
    def test_check_requires_version(self, version):
        with pytest.raises(ManifestError, match="No version specified"):
            AddOnManifest(version=version).check()

    def test_check_rejects_both_changes_forms(self, tmp_path):
        manifest = AddOnManifest(
            version="1", changes="Fixed", changes_file=tmp_path / "CHANGES.md"
        )
        with pytest.raises(ManifestError, match="Only one type of changes"):
            manifest.check()

    def test_resolved_changes_inline(self):
        assert AddOnManifest(version="1", changes="Fixed").resolved_changes() == "Fixed"

    def test_resolved_changes_from_file(self, tmp_path):
        changes = tmp_path / "changes.html"
        changes.write_text("<ul><li>Café</li></ul>", encoding="utf-8")
        manifest = AddOnManifest(version="1", changes_file=changes)
        assert manifest.resolved_changes() == "<ul><li>Café</li></ul>"

    def test_resolved_changes_missing_file(self, tmp_path):
        manifest = AddOnManifest(version="1", changes_file=tmp_path / "missing.html")
        with pytest.raises(ManifestError, match="Failed to read changes file"):
            manifest.resolved_changes()

    def test_extension_classnames(self):
        manifest = AddOnManifest(
            extensions=[ExtensionEntry(classname="a"), ExtensionEntry(classname="b")]
        )
        assert manifest.extension_classnames() == ["a", "b"]
