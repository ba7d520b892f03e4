"""CLI output formatting functions.

This module contains functions for displaying CA configuration results,
backup snapshots and GAL sync reports on the command line.
"""

from typing import TYPE_CHECKING

import click

if TYPE_CHECKING:
    from winadmin.ca.reconciler import ApplyResult
    from winadmin.ca.settings import SettingsSnapshot
    from winadmin.gal.reconciler import SyncReport


def _summary_line(text: str) -> str:
    lines = [line for line in text.strip().splitlines() if line.strip()]
    return lines[-1].strip() if lines else ""


def show_apply_result(result: "ApplyResult", show_verification: bool = True) -> None:
    """
    Display the per-setting outcome of a configuration run.

    Args:
        result: The ApplyResult returned by the reconciler
        show_verification: Also print the read-back dump
    """
    click.echo("\n=== Settings Applied ===")
    for setting in result.results:
        key = f"{result.target_id}\\{setting.name}"
        if setting.success:
            click.echo(click.style(f"  OK      {key} = {setting.value}", fg="green"))
        else:
            click.echo(click.style(f"  FAILED  {key} = {setting.value}", fg="red"))
            detail = _summary_line(setting.output)
            if detail:
                click.echo(f"          {detail}")

    if result.backup_path is not None:
        click.echo(f"\nBackup: {result.backup_path}")

    if show_verification and result.verification:
        click.echo("\n=== Verification ===")
        click.echo(result.verification)

    click.echo(
        f"\n{len(result.succeeded)} of {len(result.results)} setting(s) applied."
    )


def show_snapshot(snapshot: "SettingsSnapshot", index: int) -> None:
    """Display a backup snapshot summary."""
    stamp = snapshot.taken_at.isoformat(sep=" ") if snapshot.taken_at else "unknown"
    click.echo(f"Snapshot #{index} of {snapshot.target_id} taken {stamp}:")
    for name in snapshot.names():
        click.echo(f"  {snapshot.target_id}\\{name}")


def show_sync_report(report: "SyncReport") -> None:
    """Display the counts of a GAL sync run."""
    click.echo("\n" + "=" * 50)
    click.echo(f"Address list: {report.source_name}")
    click.echo(f"  Created:  {report.created}")
    click.echo(f"  Updated:  {report.updated}")
    click.echo(f"  Skipped:  {report.skipped}")
    if report.duplicates:
        click.echo(
            click.style(
                f"  Duplicate local contacts: {report.duplicates}", fg="yellow"
            )
        )
    click.echo("=" * 50)
