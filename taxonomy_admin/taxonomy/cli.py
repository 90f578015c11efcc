"""
``flask taxonomy`` commands for reconciliation, export and import.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import click
from flask.cli import with_appcontext

from .errors import TaxonomyError
from .pipeline import ReconciliationEngine, ReferenceIntegrityChecker
from .serialization import ALL_KINDS, SUPPORTED_FORMATS, TaxonomyExporter, TaxonomyImporter


def _echo_lines(title: str, lines) -> None:
    if not lines:
        return
    click.echo(f"{title}:")
    for line in lines:
        click.echo(f"  - {line}")


@click.group(name="taxonomy")
def taxonomy_cli():
    """Taxonomy integrity, reconciliation and import/export commands."""


@taxonomy_cli.command("status")
@click.option("--json", "as_json", is_flag=True, help="Emit the snapshot as JSON.")
@with_appcontext
def status_command(as_json: bool):
    """Show counts, orphaned records and inconsistent references."""
    snapshot = ReferenceIntegrityChecker().compute_status()
    if as_json:
        click.echo(json.dumps(snapshot.as_dict(), indent=2))
        return
    if snapshot.degraded:
        click.echo(f"Status is degraded: {snapshot.error}")
    click.echo("Active / total records:")
    for kind, active in snapshot.active_counts.items():
        click.echo(f"  {kind}: {active} / {snapshot.total_counts.get(kind, 0)}")
    click.echo("Owner references:")
    for relation, count in snapshot.owner_reference_counts.items():
        click.echo(f"  {relation}: {count}")
    click.echo(f"Orphaned records: {snapshot.orphaned_total}")
    click.echo(f"Inconsistent references: {len(snapshot.inconsistent)}")


@taxonomy_cli.command("sync")
@with_appcontext
def sync_command():
    """Null dangling references and renumber display order."""
    result = ReconciliationEngine().sync_integration()
    click.echo(
        f"Repaired {result.relations_repaired} references on {result.owner_records_updated} owners; "
        f"reordered {result.records_reordered} records."
    )
    _echo_lines("Warnings", result.warnings)
    _echo_lines("Errors", result.errors)


@taxonomy_cli.command("cleanup-orphaned")
@with_appcontext
def cleanup_orphaned_command():
    """Delete taxonomy records that no owner references."""
    result = ReconciliationEngine().cleanup_orphaned()
    click.echo(f"Deleted {result.deleted_count} orphaned records.")
    for kind, count in result.deleted_per_kind.items():
        if count:
            click.echo(f"  {kind}: {count}")
    _echo_lines("Skipped", result.skipped)
    _echo_lines("Errors", result.errors)


@taxonomy_cli.command("reset-assignments")
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt.")
@with_appcontext
def reset_assignments_command(yes: bool):
    """Clear every taxonomy reference held by users and projects."""
    if not yes:
        click.confirm("This clears every taxonomy assignment on users and projects. Continue?", abort=True)
    result = ReconciliationEngine().reset_all_assignments()
    click.echo(f"Cleared {result.total_cleared} references.")
    _echo_lines("Errors", result.errors)


@taxonomy_cli.command("export")
@click.argument("kind", default=ALL_KINDS)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(SUPPORTED_FORMATS, case_sensitive=False),
    default="json",
    show_default=True,
)
@click.option("--output", type=click.Path(dir_okay=False, path_type=Path), help="Destination file.")
@with_appcontext
def export_command(kind: str, fmt: str, output: Optional[Path]):
    """Export KIND (or 'all') to a JSON or CSV file."""
    try:
        artifact = TaxonomyExporter().export(kind, fmt)
    except TaxonomyError as exc:
        raise click.ClickException(str(exc)) from exc
    destination = output or Path(artifact.filename)
    destination.write_bytes(artifact.content)
    click.echo(f"Wrote {artifact.record_count} records to {destination}")


@taxonomy_cli.command("import")
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--kind", "default_kind", help="Kind for records that do not name one.")
@click.option("--commit", "do_commit", is_flag=True, help="Write records; preview only otherwise.")
@with_appcontext
def import_command(file_path: Path, default_kind: Optional[str], do_commit: bool):
    """Preview FILE and optionally commit it."""
    importer = TaxonomyImporter()
    try:
        preview = importer.preview(file_path.read_bytes(), filename=file_path.name, default_kind=default_kind)
    except TaxonomyError as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo(f"Parsed {preview.total_records} {preview.format} records from {file_path.name}.")
    for record in preview.sample:
        click.echo(f"  {json.dumps(record, default=str)}")
    _echo_lines("Notes", preview.notes)
    if not do_commit:
        click.echo("Preview only; re-run with --commit to write records.")
        return

    result = importer.commit(preview)
    click.echo(
        f"Committed {result.successful} records ({result.inserted} inserted, {result.updated} updated), "
        f"{result.failed} failed."
    )
    _echo_lines("Errors", result.errors)
