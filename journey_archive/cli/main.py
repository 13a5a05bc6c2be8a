"""
Command Line Interface for Journey Archive.

Commands:
    validate   Pre-flight checks for files, no upload
    upload     Upload files to a profile and save their metadata
    readiness  Check whether a profile can be submitted for review
    preview    Show which viewer roles can see which contributions
    config     Print the effective configuration
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from journey_archive import __version__
from journey_archive.backend.memory import InMemoryBackend
from journey_archive.config import AppConfig, ConfigError, get_config, load_config
from journey_archive.core.models import Contribution, Profile, ViewerRole, VisibilityLevel
from journey_archive.errors import ArchiveError
from journey_archive.review.readiness import available_actions, check_readiness
from journey_archive.session import ArchiveSession, build_transport
from journey_archive.upload.intake import FileBlob, format_file_size, intake
from journey_archive.upload.queue import QueueStatus
from journey_archive.utils.logging import setup_logging, setup_logging_from_config
from journey_archive.visibility import disclosure_matrix, status_label, visibility_label

logger = logging.getLogger(__name__)

console = Console()


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def print_header(text: str) -> None:
    console.print()
    console.print(Panel(text, style="bold blue", expand=False))
    console.print()


def print_success(text: str) -> None:
    console.print(f"[bold green]✓[/bold green] {text}")


def print_warning(text: str) -> None:
    console.print(f"[bold yellow]⚠[/bold yellow] {text}")


def print_error(text: str) -> None:
    console.print(f"[bold red]✗[/bold red] {text}")


def _load_json(path: Path) -> object:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise click.ClickException(f"Cannot read {path}: {e}") from e


def _blobs(paths: tuple[Path, ...]) -> list[FileBlob]:
    return [FileBlob.from_path(path) for path in paths]


def print_queue_table(snapshot) -> None:
    table = Table(title="Uploads")
    table.add_column("File", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("Status")
    table.add_column("Detail")

    styles = {
        QueueStatus.SUCCEEDED: "green",
        QueueStatus.FAILED: "red",
        QueueStatus.UPLOADING: "yellow",
        QueueStatus.PENDING: "dim",
    }
    for queued in snapshot:
        detail = queued.error or (queued.result.title if queued.result else "")
        status = f"[{styles[queued.status]}]{queued.status.value}[/{styles[queued.status]}]"
        table.add_row(queued.file.name, format_file_size(queued.file.size), status, detail)
    console.print(table)


# =============================================================================
# MAIN CLI GROUP
# =============================================================================


@click.group()
@click.version_option(__version__, prog_name="journey-archive")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--config", "config_path", type=click.Path(path_type=Path), help="Custom config file")
@click.pass_context
def cli(ctx: click.Context, debug: bool, config_path: Path | None) -> None:
    """
    Journey Archive - build a reviewed personal archive of images and documents.
    """
    try:
        config = load_config(config_path) if config_path else get_config()
    except ConfigError as e:
        setup_logging(level="DEBUG" if debug else "INFO")
        print_error(str(e))
        sys.exit(1)

    setup_logging_from_config(config.logging, debug=debug or config.debug)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


# =============================================================================
# VALIDATE
# =============================================================================


@cli.command()
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def validate(ctx: click.Context, files: tuple[Path, ...]) -> None:
    """Check files against the upload rules without uploading anything."""
    config: AppConfig = ctx.obj["config"]
    result = intake(_blobs(files), config.upload)

    for file in result.accepted:
        print_success(f"{file.name} ({format_file_size(file.size)})")
    if result.notice:
        for line in result.notice.splitlines():
            print_warning(line)

    console.print(f"\n{len(result.accepted)} file(s) ready to upload, {len(result.rejections)} rejected")
    if result.rejections:
        sys.exit(1)


# =============================================================================
# UPLOAD
# =============================================================================


@cli.command()
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--profile-id", required=True, help="Profile to upload into")
@click.option(
    "--visibility",
    type=click.Choice([level.value for level in VisibilityLevel]),
    default=VisibilityLevel.DRAFT.value,
    show_default=True,
    help="Visibility applied to every uploaded item",
)
@click.option("--tags", default="", help="Comma-separated tags applied to every uploaded item")
@click.pass_context
def upload(
    ctx: click.Context,
    files: tuple[Path, ...],
    profile_id: str,
    visibility: str,
    tags: str,
) -> None:
    """Upload files, then save their metadata.

    Example:
        journey-archive upload scan_1987.pdf cup_final.jpg --profile-id p-123
    """
    config: AppConfig = ctx.obj["config"]
    print_header("Journey Archive upload")

    transport = build_transport(config)
    if isinstance(transport, InMemoryBackend):
        print_warning("No backend URL configured; uploading to a temporary in-memory archive.")
        transport.create_profile(profile_id=profile_id)

    session = ArchiveSession.from_config(Profile(id=profile_id), config, transport=transport)
    level = VisibilityLevel(visibility)

    async def run() -> bool:
        try:
            outcome = await session.upload(_blobs(files))
            if outcome.intake.notice:
                for line in outcome.intake.notice.splitlines():
                    print_warning(line)
            print_queue_table(outcome.snapshot)

            collector = session.open_batch(outcome.snapshot)
            if collector is None:
                return False
            collector.apply_to_all("visibility", level)
            if tags:
                collector.apply_to_all("tags", tags)
            result = await collector.save()
            if not result.success:
                print_error(result.error or "Failed to save metadata")
                return False
            print_success(f"Saved {len(collector.records)} item(s) as {visibility_label(level)}")
            return not outcome.failed
        finally:
            await session.aclose()

    try:
        ok = asyncio.run(run())
    except ArchiveError as e:
        print_error(e.user_message)
        sys.exit(1)
    if not ok:
        sys.exit(1)


# =============================================================================
# READINESS
# =============================================================================


@cli.command()
@click.argument("profile_json", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def readiness(ctx: click.Context, profile_json: Path) -> None:
    """Check whether the profile in PROFILE_JSON can be submitted."""
    config: AppConfig = ctx.obj["config"]
    try:
        profile = Profile.model_validate(_load_json(profile_json))
    except ValidationError as e:
        raise click.ClickException(f"Invalid profile: {e}") from e

    report = check_readiness(profile, config.review)
    console.print(f"Status: {status_label(profile.status)}")
    console.print(f"Name length: {report.name_length}")
    console.print(f"Introduction length: {report.introduction_length}")

    if report.ready:
        print_success("Ready to submit")
    else:
        for message in report.messages:
            print_warning(message)

    actions = available_actions(profile, config.review)
    console.print(f"Available actions: {', '.join(a.value for a in actions) or 'none'}")
    if not report.ready:
        sys.exit(1)


# =============================================================================
# PREVIEW
# =============================================================================


@cli.command()
@click.argument("items_json", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--role",
    type=click.Choice([role.value for role in ViewerRole]),
    help="Only list what this viewer sees",
)
def preview(items_json: Path, role: str | None) -> None:
    """Show which viewer roles can see the contributions in ITEMS_JSON."""
    data = _load_json(items_json)
    if not isinstance(data, list):
        raise click.ClickException("Expected a JSON list of contributions")
    try:
        items = [Contribution.from_payload(entry) for entry in data]
    except ValidationError as e:
        raise click.ClickException(f"Invalid contribution: {e}") from e

    matrix = disclosure_matrix(items)
    roles = [ViewerRole(role)] if role else list(ViewerRole)

    table = Table(title="Who can see what")
    table.add_column("Title", style="cyan")
    table.add_column("Status")
    table.add_column("Visibility")
    for viewer in roles:
        table.add_column(viewer.value, justify="center")

    for item in items:
        marks = ["[green]yes[/green]" if matrix[item.id][v] else "[dim]no[/dim]" for v in roles]
        table.add_row(
            item.title or item.id,
            status_label(item.status),
            visibility_label(item.visibility),
            *marks,
        )
    console.print(table)


# =============================================================================
# CONFIG
# =============================================================================


@cli.command("config")
@click.pass_context
def show_config(ctx: click.Context) -> None:
    """Print the effective configuration as JSON."""
    config: AppConfig = ctx.obj["config"]
    console.print_json(json.dumps(config.to_summary()))


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
