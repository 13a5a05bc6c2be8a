"""Tests for CLI commands using Click's testing utilities."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner
from PIL import Image

from journey_archive import __version__
from journey_archive.cli.main import cli
from journey_archive.core.models import ContributionStatus, Profile, VisibilityLevel

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def runner() -> CliRunner:
    """Create a Click test runner."""
    return CliRunner()


def create_test_image(path: Path, format: str = "JPEG") -> None:
    Image.new("RGB", (64, 48), color="red").save(path, format=format)


@pytest.fixture
def photo(isolated_config: Path) -> Path:
    path = isolated_config / "cup_final.jpg"
    create_test_image(path)
    return path


def write_json(path: Path, data: object) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


# =============================================================================
# Version
# =============================================================================


class TestVersion:
    """Tests for --version and --help."""

    def test_version_option(self, runner: CliRunner, isolated_config: Path) -> None:
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "journey-archive" in result.output
        assert __version__ in result.output

    def test_help_lists_commands(self, runner: CliRunner, isolated_config: Path) -> None:
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("validate", "upload", "readiness", "preview", "config"):
            assert command in result.output

    def test_missing_config_file(self, runner: CliRunner, isolated_config: Path) -> None:
        result = runner.invoke(cli, ["--config", str(isolated_config / "missing.yaml"), "config"])
        assert result.exit_code == 1
        assert "not found" in result.output


# =============================================================================
# Validate
# =============================================================================


class TestValidateCommand:
    """Tests for the validate command."""

    def test_all_valid(self, runner: CliRunner, photo: Path) -> None:
        result = runner.invoke(cli, ["validate", str(photo)])

        assert result.exit_code == 0
        assert "cup_final.jpg" in result.output
        assert "1 file(s) ready to upload, 0 rejected" in result.output

    def test_rejected_file_fails(self, runner: CliRunner, photo: Path, isolated_config: Path) -> None:
        notes = isolated_config / "notes.txt"
        notes.write_text("not an image")

        result = runner.invoke(cli, ["validate", str(photo), str(notes)])

        assert result.exit_code == 1
        assert "notes.txt" in result.output
        assert "Invalid file type" in result.output
        assert "1 rejected" in result.output


# =============================================================================
# Upload
# =============================================================================


class TestUploadCommand:
    """Tests for the upload command against the in-memory backend."""

    def test_upload_and_save(self, runner: CliRunner, photo: Path, isolated_config: Path) -> None:
        scan = isolated_config / "team_1987.png"
        create_test_image(scan, format="PNG")

        result = runner.invoke(
            cli,
            ["upload", str(photo), str(scan), "--profile-id", "p-1", "--visibility", "family"],
        )

        assert result.exit_code == 0, result.output
        assert "in-memory" in result.output
        assert "Saved 2 item(s) as Family" in result.output

    def test_upload_only_invalid_files(self, runner: CliRunner, isolated_config: Path) -> None:
        notes = isolated_config / "notes.txt"
        notes.write_text("not an image")

        result = runner.invoke(cli, ["upload", str(notes), "--profile-id", "p-1"])

        assert result.exit_code == 1
        assert "Invalid file type" in result.output

    def test_profile_id_required(self, runner: CliRunner, photo: Path) -> None:
        result = runner.invoke(cli, ["upload", str(photo)])
        assert result.exit_code == 2


# =============================================================================
# Readiness
# =============================================================================


class TestReadinessCommand:
    """Tests for the readiness command."""

    def test_ready_profile(self, runner: CliRunner, isolated_config: Path, ready_profile: Profile) -> None:
        path = write_json(isolated_config / "profile.json", ready_profile.model_dump(mode="json"))

        result = runner.invoke(cli, ["readiness", str(path)])

        assert result.exit_code == 0
        assert "Ready to submit" in result.output
        assert "Available actions: submit" in result.output

    def test_incomplete_profile(self, runner: CliRunner, isolated_config: Path) -> None:
        path = write_json(isolated_config / "profile.json", {"title": "A", "introduction": "Short"})

        result = runner.invoke(cli, ["readiness", str(path)])

        assert result.exit_code == 1
        assert "Ready to submit" not in result.output
        assert "Available actions: none" in result.output

    def test_invalid_json(self, runner: CliRunner, isolated_config: Path) -> None:
        path = isolated_config / "profile.json"
        path.write_text("{not json")

        result = runner.invoke(cli, ["readiness", str(path)])

        assert result.exit_code == 1
        assert "Cannot read" in result.output


# =============================================================================
# Preview
# =============================================================================


class TestPreviewCommand:
    """Tests for the preview command."""

    def test_preview_table(self, runner: CliRunner, isolated_config: Path, make_item) -> None:
        items = [
            make_item("A", title="Cup final", visibility=VisibilityLevel.PUBLIC, status=ContributionStatus.APPROVED),
            make_item("B", title="Team sheet", visibility=VisibilityLevel.FAMILY),
        ]
        path = write_json(isolated_config / "items.json", [item.to_payload() for item in items])

        result = runner.invoke(cli, ["preview", str(path), "--role", "public"])

        assert result.exit_code == 0, result.output
        assert "Who can see what" in result.output
        assert "Cup final" in result.output
        assert "Team sheet" in result.output

    def test_not_a_list(self, runner: CliRunner, isolated_config: Path) -> None:
        path = write_json(isolated_config / "items.json", {"id": "A"})
        result = runner.invoke(cli, ["preview", str(path)])
        assert result.exit_code == 1


# =============================================================================
# Config
# =============================================================================


class TestConfigCommand:
    """Tests for the config command."""

    def test_prints_effective_config(
        self, runner: CliRunner, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("JOURNEY_ARCHIVE_UPLOAD__CONCURRENCY", "3")

        result = runner.invoke(cli, ["config"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["upload"]["concurrency"] == 3
        assert data["backend"]["base_url"] is None
