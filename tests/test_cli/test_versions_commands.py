"""Tests for version feed CLI commands."""

import zipfile
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from zapaddon.cli.main import cli
from zapaddon.manifest.model import AddOnManifest
from zapaddon.manifest.serializer import render_manifest
from zapaddon.versions.feed import read_feed, write_feed
from zapaddon.versions.models import AddOnEntry, ZapVersions


@pytest.fixture
def addon_archive(tmp_path):
    archive = tmp_path / "example-release-2.zap"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr(
            "ZapAddOn.xml",
            render_manifest(AddOnManifest(name="Example", version="2", status="release")),
        )
    return archive


def single_feed(path, addon_id, version="1"):
    feed = ZapVersions()
    feed.put(AddOnEntry(id=addon_id, name=addon_id, version=version))
    return write_feed(feed, path)


def flat(output: str) -> str:
    return " ".join(output.split())


class TestGenerateVersionFile:
    def test_with_download_url(self, tmp_path, addon_archive):
        output = tmp_path / "ZapVersions-example.xml"
        runner = CliRunner()
        result = runner.invoke(cli, [
            "versions", "generate", str(addon_archive),
            "--id", "example",
            "--download-url", "https://example.org/dl",
            "-o", str(output),
        ])

        assert result.exit_code == 0, result.output
        entry = read_feed(output).get("example")
        assert entry.url == "https://example.org/dl/example-release-2.zap"
        assert entry.hash.startswith("SHA1:")

    def test_with_github_repo(self, tmp_path, addon_archive):
        output = tmp_path / "ZapVersions-example.xml"
        runner = CliRunner()
        result = runner.invoke(cli, [
            "versions", "generate", str(addon_archive),
            "--id", "example",
            "--github-repo", "example/example-addon",
            "--checksum", "SHA-256",
            "-o", str(output),
        ])

        assert result.exit_code == 0, result.output
        entry = read_feed(output).get("example")
        assert entry.url == (
            "https://github.com/example/example-addon/releases/download/v2/"
            "example-release-2.zap"
        )
        assert entry.hash.startswith("SHA-256:")

    def test_requires_exactly_one_url_option(self, tmp_path, addon_archive):
        runner = CliRunner()
        result = runner.invoke(cli, [
            "versions", "generate", str(addon_archive),
            "--id", "example",
            "-o", str(tmp_path / "out.xml"),
        ])
        assert result.exit_code == 1
        assert "Exactly one of" in result.output
        assert not (tmp_path / "out.xml").exists()

    def test_archive_without_manifest(self, tmp_path):
        archive = tmp_path / "empty.zap"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("README", "x")
        runner = CliRunner()
        result = runner.invoke(cli, [
            "versions", "generate", str(archive),
            "--id", "empty",
            "--download-url", "https://example.org",
            "-o", str(tmp_path / "out.xml"),
        ])
        assert result.exit_code == 1
        assert "does not have the manifest" in flat(result.output)

    def test_release_settings_from_config(self, tmp_path, addon_archive):
        config = tmp_path / "addon.yaml"
        config.write_text(
            "id: example\n"
            "manifest:\n  version: '2'\n"
            "release:\n"
            "  github_repo: example/example-addon\n"
            "  checksum_algorithm: SHA-256\n"
        )
        output = tmp_path / "ZapVersions-example.xml"
        runner = CliRunner()
        result = runner.invoke(cli, [
            "versions", "generate", str(addon_archive),
            "--config", str(config),
            "-o", str(output),
        ])

        assert result.exit_code == 0, result.output
        entry = read_feed(output).get("example")
        assert entry.url == (
            "https://github.com/example/example-addon/releases/download/v2/"
            "example-release-2.zap"
        )
        assert entry.hash.startswith("SHA-256:")

    def test_command_line_overrides_config(self, tmp_path, addon_archive):
        config = tmp_path / "addon.yaml"
        config.write_text(
            "id: example\n"
            "manifest:\n  version: '2'\n"
            "release:\n  github_repo: example/example-addon\n"
        )
        output = tmp_path / "out.xml"
        runner = CliRunner()
        result = runner.invoke(cli, [
            "versions", "generate", str(addon_archive),
            "--config", str(config),
            "--id", "renamed",
            "--download-url", "https://example.org/dl",
            "-o", str(output),
        ])

        assert result.exit_code == 0, result.output
        entry = read_feed(output).get("renamed")
        assert entry.url == "https://example.org/dl/example-release-2.zap"
        assert entry.hash.startswith("SHA1:")

    def test_requires_id(self, tmp_path, addon_archive):
        runner = CliRunner()
        result = runner.invoke(cli, [
            "versions", "generate", str(addon_archive),
            "--download-url", "https://example.org",
            "-o", str(tmp_path / "out.xml"),
        ])
        assert result.exit_code == 1
        assert "add-on id is required" in result.output


class TestUpdateFeeds:
    def test_updates_targets(self, tmp_path):
        source = single_feed(tmp_path / "source.xml", "example", "5")
        target = single_feed(tmp_path / "target.xml", "example", "4")
        runner = CliRunner()
        result = runner.invoke(cli, ["versions", "update", str(source), str(target)])

        assert result.exit_code == 0, result.output
        assert "Updated 1 feed file(s)" in result.output
        assert read_feed(target).get("example").version == "5"

    def test_missing_target(self, tmp_path):
        source = single_feed(tmp_path / "source.xml", "example")
        runner = CliRunner()
        result = runner.invoke(
            cli, ["versions", "update", str(source), str(tmp_path / "nope.xml")]
        )
        assert result.exit_code == 1
        assert "does not exist" in flat(result.output)

    @patch("zapaddon.versions.feed.update_feed_file", side_effect=OSError("disk full"))
    def test_reports_failed_targets(self, mock_update, tmp_path):
        source = single_feed(tmp_path / "source.xml", "example")
        target = single_feed(tmp_path / "target.xml", "other")
        runner = CliRunner()
        result = runner.invoke(cli, ["versions", "update", str(source), str(target)])

        assert result.exit_code == 1
        assert "disk full" in flat(result.output)
        mock_update.assert_called_once()


class TestAggregateFeeds:
    def test_aggregates(self, tmp_path):
        sources = [
            single_feed(tmp_path / "b.xml", "beta"),
            single_feed(tmp_path / "a.xml", "alpha"),
        ]
        output = tmp_path / "ZapVersions.xml"
        runner = CliRunner()
        result = runner.invoke(
            cli, ["versions", "aggregate", *map(str, sources), "-o", str(output)]
        )

        assert result.exit_code == 0, result.output
        assert [e.id for e in read_feed(output).entries()] == ["alpha", "beta"]


class TestMainGroup:
    def test_version_option(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "zapaddon" in result.output


class TestAggregateWriteFailure:
    def test_unwritable_output(self, tmp_path):
        source = single_feed(tmp_path / "a.xml", "alpha")
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        runner = CliRunner()
        result = runner.invoke(
            cli, ["versions", "aggregate", str(source), "-o", str(blocker / "ZapVersions.xml")]
        )
        assert result.exit_code == 1
        assert "Failed to write version feed" in flat(result.output)
