"""CLI interface for flpclean."""

import logging
import sys
from datetime import datetime
from pathlib import Path

import click

from flpclean.config import (
    Config,
    InvalidConfigurationError,
    MatchMode,
    ScannerConfig,
    normalize_extensions,
)
from flpclean.engine import (
    cancel_scan,
    compute_retention,
    default_roots,
    execute_cleanup,
    preview_cleanup,
    start_scan,
)
from flpclean.history import History
from flpclean.models import CleanupResult, RetentionDecision, ScanReport, ScanStatus
from flpclean.retention import summarize
from flpclean.scanner.progress import ProgressReporter, format_bytes

MAX_LISTED_ERRORS = 10


@click.group()
@click.option("-v", "--verbose", count=True, help="Log more detail (-vv for debug output)")
@click.pass_context
def cli(ctx: click.Context, verbose: int) -> None:
    ctx.ensure_object(dict)
    ctx.obj["config"] = Config()
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def scan_options(func):
    """Options shared by every command that scans."""
    options = [
        click.argument(
            "roots",
            nargs=-1,
            type=click.Path(exists=True, file_okay=False, path_type=Path),
        ),
        click.option("--max-depth", type=int, default=None, help="Deepest folder level to enter"),
        click.option("--threads", type=int, default=None, help="Worker threads (default: CPU count)"),
        click.option(
            "--mode",
            type=click.Choice([m.value for m in MatchMode]),
            default=MatchMode.MARKER.value,
            help="How backups are recognised",
        ),
        click.option(
            "--extension",
            "extensions",
            multiple=True,
            help="Project file extension, repeatable (default: .flp)",
        ),
        click.option("--follow-symlinks", is_flag=True, help="Descend into symlinked folders"),
        click.option(
            "--group-by-folder",
            is_flag=True,
            help="Treat same-named projects in different folders as different projects",
        ),
        click.option("--progress-interval", type=int, default=1000, help="Print status every N files"),
        click.option("--list", "list_files", is_flag=True, help="List every backup file"),
        click.option("--history-db", type=click.Path(path_type=Path), help="Path to history database"),
        click.option("--no-history", is_flag=True, help="Do not record this run"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@cli.command()
@scan_options
@click.pass_context
def scan(ctx: click.Context, roots: tuple[Path, ...], **options) -> None:
    """Find backups and show what a cleanup would remove."""
    config: Config = ctx.obj["config"]
    _apply_scan_options(config, options)

    report = _run_scan(config.scanner, roots)
    decisions = compute_retention(report)
    _print_report(report, decisions, options["list_files"])

    preview = preview_cleanup(decisions)
    _print_preview(preview)

    history_path = _history_path(config, options)
    if history_path is not None:
        with History(history_path) as history:
            scan_run_id = history.record_scan(report)
            history.record_cleanup(preview, scan_run_id)

    if report.status is ScanStatus.CANCELLED:
        sys.exit(130)


@cli.command()
@scan_options
@click.option("--dry-run", is_flag=True, help="Only show what would be deleted")
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Do not ask for confirmation")
@click.option("--auto-clean", is_flag=True, help="Delete without asking once the scan completes")
@click.pass_context
def clean(
    ctx: click.Context,
    roots: tuple[Path, ...],
    dry_run: bool,
    assume_yes: bool,
    auto_clean: bool,
    **options,
) -> None:
    """Delete all but the latest backup of every project."""
    config: Config = ctx.obj["config"]
    _apply_scan_options(config, options)
    config.cleanup.dry_run = dry_run
    config.cleanup.auto_clean = config.cleanup.auto_clean or auto_clean

    report = _run_scan(config.scanner, roots)
    decisions = compute_retention(report)
    _print_report(report, decisions, options["list_files"])

    history_path = _history_path(config, options)
    history = History(history_path) if history_path is not None else None
    try:
        scan_run_id = history.record_scan(report) if history else None

        preview = preview_cleanup(decisions)
        _print_preview(preview)
        if preview.deleted_count == 0:
            click.echo("Nothing to clean.")
            return

        if config.cleanup.dry_run:
            if history:
                history.record_cleanup(preview, scan_run_id)
            return

        completed = report.status is ScanStatus.COMPLETED
        skip_prompt = assume_yes or (config.cleanup.auto_clean and completed)
        if not skip_prompt:
            if not completed:
                click.echo("The scan did not finish; only backups found so far will be cleaned.")
            click.confirm(
                f"Delete {preview.deleted_count:,} old backups ({format_bytes(preview.freed_bytes)})?",
                abort=True,
            )

        result = execute_cleanup(decisions)
        if history:
            history.record_cleanup(result, scan_run_id)
    finally:
        if history:
            history.close()

    _print_cleanup(result)


@cli.command("history")
@click.option("--limit", type=int, default=20, help="Number of runs to show")
@click.option("--history-db", type=click.Path(path_type=Path), help="Path to history database")
@click.pass_context
def history_cmd(ctx: click.Context, limit: int, history_db: Path | None) -> None:
    """Show previous scans and cleanups."""
    config: Config = ctx.obj["config"]
    db_path = history_db or config.history_path

    if not db_path.exists():
        click.echo("No history found. Run 'flpclean scan' first.")
        return

    with History(db_path) as history:
        entries = history.recent(limit)

    if not entries:
        click.echo("No runs recorded.")
        return

    click.echo("\nRuns:")
    click.echo("-" * 91)
    header = "Roots".ljust(30) + "Status".ljust(11) + "Backups".rjust(9)
    header += "Projects".rjust(10) + "Freed".rjust(13) + "  " + "Started".ljust(16)
    click.echo(header)
    click.echo("-" * 91)

    for entry in entries:
        if entry.freed_bytes is None:
            freed = "-"
        elif entry.dry_run:
            freed = f"({format_bytes(entry.freed_bytes)})"
        else:
            freed = format_bytes(entry.freed_bytes)
        click.echo(
            f"{_describe_roots(entry.roots, 29):<30}"
            f"{entry.status:<11}"
            f"{entry.backups_found:>9,}"
            f"{entry.project_count:>10,}"
            f"{freed:>13}  "
            f"{_format_started(entry.started_at_unix):<16}"
        )


def _apply_scan_options(config: Config, options: dict) -> None:
    scanner = config.scanner
    scanner.max_depth = options["max_depth"]
    scanner.thread_count = options["threads"]
    scanner.mode = MatchMode(options["mode"])
    if options["extensions"]:
        scanner.extensions = normalize_extensions(options["extensions"])
    scanner.follow_symlinks = options["follow_symlinks"]
    scanner.group_by_folder = options["group_by_folder"]
    scanner.progress_interval = options["progress_interval"]
    _fail_on_invalid(scanner.validate)


def _history_path(config: Config, options: dict) -> Path | None:
    if options["no_history"]:
        return None
    return options["history_db"] or config.history_path


def _run_scan(scanner: ScannerConfig, roots: tuple[Path, ...]) -> ScanReport:
    scan_roots = list(roots) or default_roots()
    click.echo(f"Scanning {', '.join(str(r) for r in scan_roots)}")

    reporter = ProgressReporter(interval=scanner.progress_interval)
    handle = _fail_on_invalid(
        lambda: start_scan(
            scan_roots,
            scanner.max_depth,
            scanner.thread_count,
            mode=scanner.mode,
            extensions=scanner.extensions,
            follow_symlinks=scanner.follow_symlinks,
            group_by_folder=scanner.group_by_folder,
            on_progress=reporter.report_if_needed,
        )
    )

    try:
        while handle.is_running:
            handle.wait(timeout=0.2)
    except KeyboardInterrupt:
        cancel_scan(handle)
        handle.wait()

    report = handle.report()
    if report.status is ScanStatus.CANCELLED:
        reporter.report_cancellation(handle.progress)
    else:
        reporter.report_completion(handle.progress)
    return report


def _fail_on_invalid(action):
    try:
        return action()
    except InvalidConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _print_report(
    report: ScanReport,
    decisions: dict[str, RetentionDecision],
    list_files: bool,
) -> None:
    summary = summarize(decisions)

    click.echo()
    click.echo(f"Scan {report.status.value}: {report.scanned_directory_count:,} folders searched")
    click.echo(f"  Projects found: {summary.project_count:,}")
    click.echo(f"  Total backup files: {report.matched_file_count:,}")
    click.echo(f"  Projects with multiple backups: {summary.projects_with_old_backups:,}")
    click.echo(f"  Size of all backups: {format_bytes(report.total_bytes)}")

    if report.errors:
        click.echo(f"  Folders or files that could not be read: {len(report.errors):,}")
        for error in report.errors[:MAX_LISTED_ERRORS]:
            click.echo(f"    {error.kind.value}: {error.path}")
        if len(report.errors) > MAX_LISTED_ERRORS:
            click.echo(f"    ... and {len(report.errors) - MAX_LISTED_ERRORS:,} more")

    for decision in decisions.values():
        if not decision.delete and not list_files:
            continue
        click.echo()
        click.echo(f"Project: {decision.keep.project_name}")
        click.echo(f"  Backups: {len(decision.records)}")
        click.echo(f"  Keep:    {_describe(decision.keep)}")
        if list_files:
            for record in decision.delete:
                click.echo(f"  Delete:  {_describe(record)}")
        elif decision.delete:
            click.echo(
                f"  Delete:  {len(decision.delete)} older "
                f"({format_bytes(decision.reclaimable_bytes)})"
            )


def _describe(record) -> str:
    when = record.timestamp.strftime("%Y-%m-%d %H:%M")
    return f"{when}  {format_bytes(record.size_bytes):>10}  {record.path}"


def _print_preview(preview: CleanupResult) -> None:
    click.echo()
    click.echo(
        f"Cleanup would delete {preview.deleted_count:,} files "
        f"and free {format_bytes(preview.freed_bytes)}"
    )


def _print_cleanup(result: CleanupResult) -> None:
    click.echo()
    click.echo("Cleanup Complete:")
    click.echo(f"  Deleted: {result.deleted_count:,} files")
    click.echo(f"  Freed: {format_bytes(result.freed_bytes)}")
    if result.failures:
        click.echo(f"  Failed: {len(result.failures):,} files")
        for failure in result.failures:
            click.echo(f"    {failure.kind.value}: {failure.path}")


def _format_started(unix_timestamp: float | None) -> str:
    if not unix_timestamp:
        return "unknown"
    started = datetime.fromtimestamp(unix_timestamp)
    if started.date() == datetime.now().date():
        return started.strftime("today %H:%M")
    return started.strftime("%Y-%m-%d %H:%M")


def _describe_roots(roots: str, width: int) -> str:
    """First root of a run, with a count of the others, cut from the left to fit."""
    first, *others = roots.split(";")
    suffix = f" (+{len(others)})" if others else ""
    room = width - len(suffix)
    if len(first) > room:
        first = "..." + first[len(first) - room + 3 :]
    return first + suffix


def main() -> None:
    """Entry point for the CLI."""
    cli(standalone_mode=True)  # pylint: disable=no-value-for-parameter


if __name__ == "__main__":
    main()
