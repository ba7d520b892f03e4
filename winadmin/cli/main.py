"""
Command-line interface for winadmin.

Provides CLI commands for configuring a Root Certificate Authority,
restoring its settings from a backup, and synchronizing the Global Address
List into the local Outlook contacts folder.

Usage:
    # Show help
    winadmin --help

    # Configure the CA with default period units
    winadmin ca-config --aia-fqdn pki.example.com

    # Configure the CA with custom period units (prompted)
    winadmin ca-config --custom

    # Restore the newest backup snapshot
    winadmin ca-restore

    # Sync the Global Address List into Outlook contacts
    winadmin gal-sync --verbose
"""

import signal
import sys
import threading
from pathlib import Path
from typing import Optional

import click

from winadmin import __version__
from winadmin.backup.recorder import BackupError, BackupRecorder
from winadmin.ca.reconciler import ConfigurationReconciler
from winadmin.ca.registry import CertutilRegistry
from winadmin.ca.services import (
    AuditPolicy,
    AuditPolicyError,
    ServiceController,
    ServiceError,
)
from winadmin.ca.settings import (
    PERIOD_SPECS,
    CAConfiguration,
    SettingsValidationError,
    validate_period_units,
)
from winadmin.cli.formatters import show_apply_result, show_snapshot, show_sync_report
from winadmin.config.generator import save_config_file
from winadmin.config.loader import (
    DEFAULT_CONFIG_FILE,
    ConfigError,
    ConfigLoader,
    with_defaults,
)
from winadmin.gal.outlook import OutlookAddressList, OutlookContactStore, connect_outlook
from winadmin.gal.reconciler import DirectoryReconciler, DirectorySyncError
from winadmin.utils import default_backup_path, resolve_config_dir
from winadmin.utils.logging import cleanup_old_logs, get_logger, setup_logging

# Exit status when the run finished but some settings were not applied
EXIT_PARTIAL_FAILURE = 2


def get_config_dir(config_dir: Optional[str]) -> Path:
    """Get the configuration directory path."""
    return resolve_config_dir(config_dir)


def get_config_file(config_file: Optional[str], config_dir: Path) -> Path:
    """Get the configuration file path."""
    if config_file:
        return Path(config_file)
    return config_dir / DEFAULT_CONFIG_FILE


def resolve_backup_path(ctx: click.Context, backup_path: Optional[str]) -> Path:
    """CLI flag, then config file, then ~/.winadmin/backups/."""
    config = ctx.obj["config"]
    if backup_path:
        return Path(backup_path)
    if config.get("backup_path"):
        return Path(config["backup_path"])
    return default_backup_path(ctx.obj["config_dir"])


def build_restart_hook(ctx: click.Context, service_name: str, timeout: float):
    """
    Return the settings-applied hook that restarts the CA service.

    A restart failure is logged and remembered in ctx.obj["restart_failed"]
    instead of aborting; the settings are already written at that point.
    """
    logger = get_logger(__name__)
    controller = ServiceController(timeout=timeout)
    ctx.obj["restart_failed"] = False

    def restart() -> None:
        click.echo(f"\nRestarting {service_name}...")
        try:
            controller.restart(service_name)
        except ServiceError as e:
            ctx.obj["restart_failed"] = True
            logger.error(f"Service restart failed: {e}")
            click.echo(click.style(f"Service restart failed: {e}", fg="red"), err=True)

    return restart


@click.group()
@click.version_option(version=__version__, prog_name="winadmin")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output with detailed logging."
)
@click.option(
    "--config-dir",
    "-c",
    type=click.Path(exists=False, file_okay=False, dir_okay=True),
    envvar="WINADMIN_CONFIG_DIR",
    help="Configuration directory path (default: ~/.winadmin).",
)
@click.option(
    "--config-file",
    "-f",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    envvar="WINADMIN_CONFIG_FILE",
    help="Configuration file path (default: <config dir>/config.yaml).",
)
@click.option(
    "--log-file",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    help="Append log lines to this file instead of the dated log.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_dir: Optional[str],
    config_file: Optional[str],
    log_file: Optional[str],
) -> None:
    """
    Windows administration reconcilers.

    Configures a Root Certificate Authority with an auditable backup and
    keeps Outlook contacts in step with the Global Address List.
    """
    ctx.ensure_object(dict)

    resolved_config_dir = get_config_dir(config_dir)
    resolved_config_file = get_config_file(config_file, resolved_config_dir)

    ctx.obj["config_dir"] = resolved_config_dir
    ctx.obj["config_file"] = resolved_config_file

    config = {}
    try:
        loader = ConfigLoader(config_dir=resolved_config_dir)
        config = loader.load_from_file(resolved_config_file)
        if config:
            loader.validate(config)
    except ConfigError as e:
        # Allow the CLI to work without a usable config file
        click.echo(
            click.style(f"Warning: Configuration error: {e}", fg="yellow"), err=True
        )
        config = {}

    config = with_defaults(config)
    ctx.obj["config"] = config

    effective_verbose = verbose or config["verbose"]
    ctx.obj["verbose"] = effective_verbose

    log_dir = Path(config["log_dir"]) if config.get("log_dir") else None
    effective_log_file = log_file or config.get("log_file")
    setup_logging(
        verbose=effective_verbose,
        log_dir=log_dir or resolved_config_dir / "logs",
        log_file=Path(effective_log_file) if effective_log_file else None,
    )

    if not effective_log_file:
        cleanup_old_logs(
            log_dir=log_dir or resolved_config_dir / "logs",
            keep_count=config["log_retention_count"],
        )


# =============================================================================
# CA Config Command
# =============================================================================


@cli.command("ca-config")
@click.option(
    "--custom",
    is_flag=True,
    help="Use custom CRL and validity period units (prompted when not given).",
)
@click.option("--dsconfig-dn", help="Active Directory configuration partition DN.")
@click.option("--aia-fqdn", help="Host name for the AIA and CDP publication URLs.")
@click.option("--crl-period-units", help="CRL validity, in weeks (custom mode).")
@click.option(
    "--crl-delta-period-units", help="Delta CRL validity, in days (custom mode)."
)
@click.option(
    "--crl-overlap-period-units", help="CRL overlap, in hours (custom mode)."
)
@click.option(
    "--validity-period-units", help="Issued certificate validity, in years (custom mode)."
)
@click.option(
    "--backup/--no-backup",
    default=None,
    help="Record current values before changing them (default: on).",
)
@click.option(
    "--backup-path",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    help="Append-only backup file.",
)
@click.option("--no-restart", is_flag=True, help="Do not restart the CA service.")
@click.option(
    "--no-validate",
    is_flag=True,
    help="Forward custom period units without checking them.",
)
@click.pass_context
def ca_config_command(
    ctx: click.Context,
    custom: bool,
    dsconfig_dn: Optional[str],
    aia_fqdn: Optional[str],
    crl_period_units: Optional[str],
    crl_delta_period_units: Optional[str],
    crl_overlap_period_units: Optional[str],
    validity_period_units: Optional[str],
    backup: Optional[bool],
    backup_path: Optional[str],
    no_restart: bool,
    no_validate: bool,
) -> None:
    """
    Configure the Root CA registry settings.

    Backs up the current values, applies DSConfigDN, the CRL and validity
    periods, the AIA/CDP publication URLs and the audit filter, enables
    Certification Services auditing and restarts the CA service.

    DSConfigDN is prompted for on every run unless --dsconfig-dn is given;
    the AIA FQDN is prompted for only when neither the flag nor the config
    file provides it.

    Examples:

        # Default periods (52 weeks CRL, 5 years validity)
        winadmin ca-config --aia-fqdn pki.example.com

        # Custom periods
        winadmin ca-config --custom --crl-period-units 26
    """
    logger = get_logger(__name__)
    config = ctx.obj["config"]
    timeout = config["command_timeout"]

    if not dsconfig_dn:
        dsconfig_dn = click.prompt(
            "DSConfigDN (e.g. CN=Configuration,DC=example,DC=com)",
            default=config.get("dsconfig_dn"),
        )
    if not aia_fqdn:
        aia_fqdn = config.get("aia_fqdn") or click.prompt("AIA FQDN")

    custom_units = None
    if custom:
        given = {
            "CRLPeriodUnits": crl_period_units,
            "CRLDeltaPeriodUnits": crl_delta_period_units,
            "CRLOverlapPeriodUnits": crl_overlap_period_units,
            "ValidityPeriodUnits": validity_period_units,
        }
        custom_units = {}
        for spec in PERIOD_SPECS:
            value = given[spec.name]
            if value is None:
                value = click.prompt(
                    f"{spec.name} ({spec.unit})", default=spec.default
                )
            custom_units[spec.name] = str(value)

    ca_config = CAConfiguration(
        ds_config_dn=dsconfig_dn,
        aia_fqdn=aia_fqdn,
        custom_units=custom_units,
        target_id=config["ca_target"],
    )

    if ca_config.custom_mode and config["validate_custom_units"] and not no_validate:
        try:
            validate_period_units(ca_config.period_specs())
        except SettingsValidationError as e:
            logger.error(f"Invalid period units: {e}")
            click.echo(click.style(f"Invalid period units: {e}", fg="red"), err=True)
            sys.exit(1)

    do_backup = config["backup_enabled"] if backup is None else backup
    resolved_backup_path = resolve_backup_path(ctx, backup_path)

    on_settings_applied = None
    if not no_restart:
        on_settings_applied = build_restart_hook(
            ctx, config["ca_service_name"], timeout
        )

    reconciler = ConfigurationReconciler(
        CertutilRegistry(target_id=ca_config.target_id, timeout=timeout),
        recorder=BackupRecorder(),
        on_settings_applied=on_settings_applied,
    )

    mode = "custom" if ca_config.custom_mode else "default"
    click.echo(f"Configuring {ca_config.target_id} ({mode} period units)...")
    logger.info(f"Starting CA configuration in {mode} mode")

    try:
        result = reconciler.apply(
            ca_config.target_id,
            ca_config.desired_settings(),
            do_backup=do_backup,
            backup_path=resolved_backup_path,
        )
    except BackupError as e:
        logger.error(f"Backup failed, no settings were changed: {e}")
        click.echo(
            click.style(f"Backup failed, no settings were changed: {e}", fg="red"),
            err=True,
        )
        sys.exit(1)

    audit_failed = False
    try:
        AuditPolicy(timeout=timeout).set_auditing(
            config["audit_category"], success=True, failure=True
        )
    except AuditPolicyError as e:
        audit_failed = True
        logger.error(f"Audit policy change failed: {e}")
        click.echo(click.style(f"Audit policy change failed: {e}", fg="red"), err=True)

    show_apply_result(result, show_verification=True)

    if result.failed or audit_failed or ctx.obj.get("restart_failed"):
        click.echo(
            click.style("\nConfiguration finished with errors.", fg="yellow"), err=True
        )
        sys.exit(EXIT_PARTIAL_FAILURE)

    click.echo(click.style("\nCA configuration completed successfully!", fg="green"))


# =============================================================================
# CA Restore Command
# =============================================================================


@cli.command("ca-restore")
@click.option(
    "--backup-path",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    help="Backup file to restore from.",
)
@click.option(
    "--index",
    type=int,
    default=-1,
    show_default=True,
    help="Snapshot to restore (0 = oldest, -1 = newest).",
)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.option("--no-restart", is_flag=True, help="Do not restart the CA service.")
@click.pass_context
def ca_restore_command(
    ctx: click.Context,
    backup_path: Optional[str],
    index: int,
    yes: bool,
    no_restart: bool,
) -> None:
    """
    Re-apply CA settings recorded in the backup file.

    The current values are backed up again before the restore.

    Examples:

        # Restore the newest snapshot
        winadmin ca-restore

        # Restore the oldest snapshot without prompting
        winadmin ca-restore --index 0 --yes
    """
    logger = get_logger(__name__)
    config = ctx.obj["config"]
    timeout = config["command_timeout"]
    resolved_backup_path = resolve_backup_path(ctx, backup_path)
    recorder = BackupRecorder()

    try:
        snapshots = recorder.load(resolved_backup_path)
    except BackupError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    if not snapshots:
        click.echo(
            click.style(f"No snapshots found in {resolved_backup_path}", fg="yellow"),
            err=True,
        )
        sys.exit(1)

    try:
        snapshot = snapshots[index]
    except IndexError:
        click.echo(
            click.style(
                f"Snapshot {index} does not exist ({len(snapshots)} available)",
                fg="red",
            ),
            err=True,
        )
        sys.exit(1)

    show_snapshot(snapshot, index if index >= 0 else len(snapshots) + index)

    if not yes and not click.confirm("\nRestore these settings?"):
        click.echo("Restore cancelled.")
        return

    on_settings_applied = None
    if not no_restart:
        on_settings_applied = build_restart_hook(
            ctx, config["ca_service_name"], timeout
        )

    reconciler = ConfigurationReconciler(
        CertutilRegistry(target_id=snapshot.target_id, timeout=timeout),
        recorder=recorder,
        on_settings_applied=on_settings_applied,
    )

    try:
        result, skipped = reconciler.restore(
            snapshot, do_backup=True, backup_path=resolved_backup_path
        )
    except BackupError as e:
        logger.error(f"Backup failed, no settings were changed: {e}")
        click.echo(
            click.style(f"Backup failed, no settings were changed: {e}", fg="red"),
            err=True,
        )
        sys.exit(1)

    show_apply_result(result, show_verification=ctx.obj["verbose"])

    if skipped:
        click.echo(
            click.style(
                f"Skipped (no recorded value): {', '.join(skipped)}", fg="yellow"
            )
        )

    if result.failed or ctx.obj.get("restart_failed"):
        sys.exit(EXIT_PARTIAL_FAILURE)

    click.echo(click.style("\nRestore completed successfully!", fg="green"))


# =============================================================================
# GAL Sync Command
# =============================================================================


@cli.command("gal-sync")
@click.option("--primary", help="Online address list (default: Global Address List).")
@click.option(
    "--secondary",
    help="Fallback address list (default: Offline Global Address List).",
)
@click.option(
    "--no-fallback", is_flag=True, help="Do not fall back to the offline list."
)
@click.pass_context
def gal_sync_command(
    ctx: click.Context,
    primary: Optional[str],
    secondary: Optional[str],
    no_fallback: bool,
) -> None:
    """
    Sync the Global Address List into Outlook contacts.

    Creates a contact for every directory user that has none and refreshes
    the name, title, company and phone numbers of existing ones. Contacts
    are never deleted. Press Ctrl+C to stop after the current entry.

    Examples:

        winadmin gal-sync

        winadmin gal-sync --primary "All Users" --no-fallback
    """
    logger = get_logger(__name__)
    config = ctx.obj["config"]

    primary_name = primary or config["primary_address_list"]
    secondary_name = secondary or config["secondary_address_list"]

    stop = threading.Event()

    def request_stop(signum, frame) -> None:
        logger.warning("Interrupt received, stopping after the current entry...")
        stop.set()

    previous_handler = signal.signal(signal.SIGINT, request_stop)
    try:
        namespace = connect_outlook()
        fallback = None if no_fallback else OutlookAddressList(namespace, secondary_name)

        click.echo(f"Synchronizing '{primary_name}' into Outlook contacts...")
        report = DirectoryReconciler().sync(
            OutlookAddressList(namespace, primary_name),
            OutlookContactStore(namespace),
            secondary=fallback,
            should_stop=stop.is_set,
        )
    except DirectorySyncError as e:
        logger.error(f"GAL sync failed: {e}")
        click.echo(click.style(f"\nGAL sync failed: {e}", fg="red"), err=True)
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Unexpected error during GAL sync: {e}")
        click.echo(click.style(f"\nGAL sync failed: {e}", fg="red"), err=True)
        sys.exit(1)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    show_sync_report(report)

    if report.cancelled:
        click.echo(click.style("\nSync cancelled before completion.", fg="yellow"))
        sys.exit(1)

    click.echo(click.style("\nGAL sync completed successfully!", fg="green"))


# =============================================================================
# Init-Config Command
# =============================================================================


@cli.command("init-config")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Overwrite existing configuration file if it exists.",
)
@click.pass_context
def init_config_command(ctx: click.Context, force: bool) -> None:
    """
    Generate a default configuration file.

    Creates a configuration file with all available options documented
    and commented out.

    Examples:

        winadmin init-config

        winadmin init-config --force
    """
    logger = get_logger(__name__)
    config_file = ctx.obj["config_file"]

    click.echo(f"Creating configuration file: {config_file}")

    success, error = save_config_file(config_file, overwrite=force)

    if success:
        click.echo(click.style("Configuration file created successfully!", fg="green"))
        click.echo(f"\nLocation: {config_file}")
        logger.info(f"Created configuration file: {config_file}")
    else:
        click.echo(click.style(f"Error: {error}", fg="red"), err=True)
        logger.error(f"Failed to create configuration file: {error}")
        sys.exit(1)
