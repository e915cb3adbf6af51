"""Command line interface for DotBrain."""

from __future__ import annotations

import asyncio
import difflib
import signal
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.progress import BarColumn, Progress, TextColumn
from rich.syntax import Syntax
from rich.table import Table

from dotbrain.classification.client import AIService
from dotbrain.classification.engine import Classifier
from dotbrain.classification.errors import ClassificationError, ProviderError
from dotbrain.classification.models import PendingConfirmation, ProcessedFileResult
from dotbrain.classification.providers import AIProvider, ProviderClient, default_clients
from dotbrain.config import ConfigError, ConfigManager, DotBrainConfig
from dotbrain.credentials import (
    CredentialStore,
    KeyringCredentialStore,
    has_api_key,
    save_api_key,
)
from dotbrain.ingestion.extractors import ContentExtractor
from dotbrain.logging_setup import configure_logging
from dotbrain.organization.mover import PARAMover, ParaMoveError
from dotbrain.organization.reconciler import ConfirmationResolver
from dotbrain.pipeline import PipelineOrchestrator, PipelineResult, ScanTarget
from dotbrain.stats.store import StatisticsError, StatisticsStore
from dotbrain.vault.layout import VaultLayout
from dotbrain.vault.models import PARACategory
from dotbrain.watch import InboxWatcher

console = Console()

STATS_FILENAME = "stats.json"


@dataclass(slots=True)
class _Runtime:
    """Objects shared by the commands of one invocation."""

    manager: ConfigManager
    config: DotBrainConfig
    layout: VaultLayout
    statistics: StatisticsStore
    credentials: CredentialStore


def _credential_store() -> CredentialStore:
    return KeyringCredentialStore()


def _provider_clients(config: DotBrainConfig) -> Dict[AIProvider, ProviderClient]:
    return default_clients(timeout=config.ai.timeout_seconds)


def _load_runtime(*, verbose: bool = False) -> _Runtime:
    manager = ConfigManager()
    config = manager.load()
    configure_logging(config.logging, manager.state_dir, verbose=verbose)
    layout = VaultLayout(
        root=Path(config.vault.root).expanduser(), inbox_dirname=config.vault.inbox_dirname
    )
    return _Runtime(
        manager=manager,
        config=config,
        layout=layout,
        statistics=StatisticsStore(manager.state_dir / STATS_FILENAME),
        credentials=_credential_store(),
    )


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    details: Any | None = None,
    original: Exception | None = None,
) -> None:
    """Emit a standardized error and terminate the command appropriately.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        details: Optional structured details to include in the payload.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """
    if json_output:
        payload: dict[str, Any] = {"error": {"code": code, "message": message}}
        if details is not None:
            payload["error"]["details"] = details
        console.print_json(data=payload)
        raise SystemExit(1)

    if isinstance(original, click.ClickException):
        raise original

    raise click.ClickException(message) from original


def _emit_message(message: Any, *, mode: str, quiet: bool, summary_only: bool) -> None:
    """Print ``message`` unless quiet or summary settings suppress its ``mode``."""
    if quiet and mode != "error":
        return
    if summary_only and mode not in {"summary", "warning", "error"}:
        return
    console.print(message)


def _format_summary_line(command: str, root: Path | str, metrics: dict[str, Any]) -> str:
    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for {root}: {parts}.[/green]"


def _resolve_output_flags(
    ctx: click.Context,
    config: DotBrainConfig,
    *,
    quiet: bool,
    summary_mode: bool,
    json_output: bool,
) -> tuple[bool, bool]:
    explicit_quiet = ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE
    explicit_summary = ctx.get_parameter_source("summary_mode") == ParameterSource.COMMANDLINE

    quiet_enabled = quiet if explicit_quiet else config.cli.quiet_default
    summary_only = summary_mode if explicit_summary else config.cli.summary_default

    if json_output:
        if explicit_quiet and quiet_enabled:
            raise click.ClickException("--json cannot be combined with --quiet.")
        if explicit_summary and summary_only:
            raise click.ClickException("--json cannot be combined with --summary.")
        return False, False
    if quiet_enabled and summary_only:
        raise click.ClickException(
            "Quiet and summary modes cannot both be enabled. Adjust CLI defaults or flags."
        )
    return quiet_enabled, summary_only


def _parse_category(_ctx: click.Context, _param: click.Parameter, value: str) -> PARACategory:
    category = PARACategory.parse(value)
    if category is None:
        choices = ", ".join(c.value for c in PARACategory)
        raise click.BadParameter(f"'{value}' is not a PARA category ({choices}).")
    return category


def _parse_provider(_ctx: click.Context, _param: click.Parameter, value: Optional[str]) -> Optional[AIProvider]:
    if value is None:
        return None
    try:
        return AIProvider(value.strip().lower())
    except ValueError as exc:
        raise click.BadParameter(f"'{value}' is not a provider (claude, gemini).") from exc


# ---------------------------------------------------------------------- #
# Pipeline helpers                                                       #
# ---------------------------------------------------------------------- #


async def _run_pipeline(
    runtime: _Runtime,
    target: ScanTarget,
    *,
    on_progress=None,
    cancel_event: threading.Event | None = None,
) -> PipelineResult:
    ai = runtime.config.ai
    service = AIService(
        runtime.credentials,
        clients=_provider_clients(runtime.config),
        statistics=runtime.statistics,
        default_provider=ai.provider,
        max_retries=ai.max_retries,
        backoff_base=ai.backoff_base_seconds,
        fast_max_tokens=ai.fast_max_tokens,
        precise_max_tokens=ai.precise_max_tokens,
    )
    async with service:
        orchestrator = PipelineOrchestrator(
            runtime.layout,
            Classifier(
                service,
                batch_size=ai.batch_size,
                confidence_threshold=ai.confidence_threshold,
            ),
            statistics=runtime.statistics,
            extractor=ContentExtractor(runtime.config.processing.extract_max_chars),
            large_file_bytes=runtime.config.processing.large_file_mb * 1024 * 1024,
        )
        return await orchestrator.run(target, on_progress=on_progress, cancel_event=cancel_event)


@contextmanager
def _interrupt_cancels(cancel_event: threading.Event) -> Iterator[None]:
    """Turn the first Ctrl-C into a cancellation request; a second one aborts."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return
    previous = signal.getsignal(signal.SIGINT)

    def _handler(signum: int, frame: Any) -> None:
        if cancel_event.is_set():
            raise KeyboardInterrupt
        cancel_event.set()

    signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _execute_with_progress(runtime: _Runtime, target: ScanTarget, *, show: bool) -> PipelineResult:
    cancel_event = threading.Event()
    with _interrupt_cancels(cancel_event):
        if not show:
            return asyncio.run(_run_pipeline(runtime, target, cancel_event=cancel_event))
        with Progress(
            TextColumn("{task.description}"), BarColumn(), console=console, transient=True
        ) as progress:
            task = progress.add_task("Starting", total=1.0)

            def _update(fraction: float, status: str) -> None:
                progress.update(task, completed=fraction, description=status)

            return asyncio.run(
                _run_pipeline(runtime, target, on_progress=_update, cancel_event=cancel_event)
            )


def _result_record(result: ProcessedFileResult) -> dict[str, Any]:
    return result.model_dump(mode="json")


def _pending_record(pending: PendingConfirmation) -> dict[str, Any]:
    return {
        "file_name": pending.candidate.file_name,
        "path": str(pending.candidate.path),
        "reason": pending.reason.value,
        "options": [option.model_dump(mode="json") for option in pending.options],
    }


def _pipeline_payload(target: ScanTarget, result: PipelineResult) -> dict[str, Any]:
    return {
        "target": target.describe(),
        "total": result.total,
        "cancelled": result.cancelled,
        "counts": {
            "processed": result.success_count,
            "failed": result.failure_count,
            "deduplicated": result.deduplicated_count,
            "pending": len(result.needs_confirmation),
        },
        "processed": [_result_record(item) for item in result.processed],
        "needs_confirmation": [_pending_record(item) for item in result.needs_confirmation],
    }


def _render_results(result: PipelineResult, *, quiet: bool, summary_only: bool) -> None:
    if result.processed:
        table = Table(title="Processed")
        table.add_column("File")
        table.add_column("Status")
        table.add_column("Category")
        table.add_column("Detail")
        for item in result.processed:
            style = "red" if not item.is_success else ""
            table.add_row(
                item.file_name,
                f"[{style}]{item.status.value}[/{style}]" if style else item.status.value,
                item.para.value if item.para else "-",
                item.message,
            )
        _emit_message(table, mode="detail", quiet=quiet, summary_only=summary_only)


def _resolve_pending(
    runtime: _Runtime,
    pending_items: list[PendingConfirmation],
    *,
    accept: bool,
    interactive: bool,
    quiet: bool,
    summary_only: bool,
) -> list[ProcessedFileResult]:
    resolver = ConfirmationResolver(runtime.layout, statistics=runtime.statistics)
    resolved: list[ProcessedFileResult] = []
    for pending in pending_items:
        if accept:
            resolved.append(resolver.apply(pending, 0))
            continue
        if not interactive:
            primary = pending.primary
            _emit_message(
                f"[yellow]{pending.candidate.file_name}: suggested "
                f"{primary.para.folder_name}/{primary.target_folder or '-'} "
                f"({primary.confidence:.2f}, {pending.reason.value})[/yellow]",
                mode="warning",
                quiet=quiet,
                summary_only=summary_only,
            )
            continue

        console.print(f"[bold]{pending.candidate.file_name}[/bold] ({pending.reason.value})")
        for number, option in enumerate(pending.options, start=1):
            console.print(
                f"  {number}. {option.para.folder_name}/{option.target_folder or '-'}"
                f"  [dim]{option.confidence:.2f}[/dim]"
            )
        console.print("  0. skip")
        choice = click.prompt(
            "Choose", type=click.IntRange(0, len(pending.options)), default=1
        )
        if choice == 0:
            resolver.discard(pending)
            continue
        resolved.append(resolver.apply(pending, choice - 1))
    return resolved


def _process_target(
    ctx: click.Context,
    target: ScanTarget,
    *,
    command: str,
    root: Path,
    accept: bool,
    interactive: bool,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
    runtime: _Runtime,
) -> None:
    quiet_enabled, summary_only = _resolve_output_flags(
        ctx, runtime.config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
    )
    if json_output and interactive:
        raise click.ClickException("--json cannot be combined with --interactive.")

    result = _execute_with_progress(
        runtime, target, show=not (json_output or quiet_enabled or summary_only)
    )
    resolved: list[ProcessedFileResult] = []
    if not result.cancelled:
        resolved = _resolve_pending(
            runtime,
            result.needs_confirmation,
            accept=accept,
            interactive=interactive,
            quiet=quiet_enabled or json_output,
            summary_only=summary_only,
        )

    if json_output:
        payload = _pipeline_payload(target, result)
        payload["resolved"] = [_result_record(item) for item in resolved]
        console.print_json(data=payload)
        return

    _render_results(result, quiet=quiet_enabled, summary_only=summary_only)
    for item in resolved:
        _emit_message(
            f"[cyan]{item.file_name} -> {item.target_path}[/cyan]"
            if item.is_success
            else f"[red]{item.file_name}: {item.message}[/red]",
            mode="detail" if item.is_success else "error",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )
    if result.cancelled:
        _emit_message(
            "[yellow]Interrupted; remaining entries were left untouched.[/yellow]",
            mode="warning",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )
    _emit_message(
        _format_summary_line(
            command,
            root,
            {
                "processed": result.success_count,
                "failed": result.failure_count,
                "deduplicated": result.deduplicated_count,
                "pending": len(result.needs_confirmation) - len(resolved),
                "filed": sum(1 for item in resolved if item.is_success),
            },
        ),
        mode="summary",
        quiet=quiet_enabled,
        summary_only=summary_only,
    )


def _pipeline_errors(exc: Exception, json_output: bool) -> None:
    if isinstance(exc, ConfigError):
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
    if isinstance(exc, ClassificationError):
        _handle_cli_error(
            str(exc), code="classification_error", json_output=json_output, original=exc
        )
    if isinstance(exc, ParaMoveError):
        _handle_cli_error(str(exc), code="folder_error", json_output=json_output, original=exc)
    if isinstance(exc, StatisticsError):
        _handle_cli_error(str(exc), code="stats_error", json_output=json_output, original=exc)
    if isinstance(exc, ProviderError):
        _handle_cli_error(
            str(exc),
            code="provider_error",
            json_output=json_output,
            details={"kind": exc.kind.value, "status": exc.status},
            original=exc,
        )
    if isinstance(exc, OSError):
        _handle_cli_error(
            f"Filesystem error: {exc}", code="io_error", json_output=json_output, original=exc
        )
    _handle_cli_error(
        f"Unexpected error: {exc}",
        code="internal_error",
        json_output=json_output,
        details={"exception": type(exc).__name__},
        original=exc,
    )


_PIPELINE_ERRORS = (ConfigError, ClassificationError, ParaMoveError, StatisticsError, ProviderError, OSError)


# ---------------------------------------------------------------------- #
# Commands                                                               #
# ---------------------------------------------------------------------- #


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="dotbrain")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """DotBrain files your notes and documents into a PARA vault."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


def _runtime(ctx: click.Context, *, json_output: bool = False) -> _Runtime:
    try:
        return _load_runtime(verbose=bool((ctx.obj or {}).get("verbose")))
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        raise


@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Create the inbox and category folders of the vault."""
    runtime = _runtime(ctx)
    created = runtime.layout.ensure_structure()
    for path in created:
        console.print(f"[green]Created {path}[/green]")
    if not created:
        console.print(f"[yellow]Vault already initialized at {runtime.layout.root}.[/yellow]")


_output_options = [
    click.option("--accept", is_flag=True, help="File every deferred item under its top suggestion."),
    click.option("-i", "--interactive", is_flag=True, help="Choose a destination for each deferred item."),
    click.option("--json", "json_output", is_flag=True, help="Emit JSON describing the run."),
    click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines."),
    click.option("--quiet", is_flag=True, help="Suppress non-error output."),
]


def _with_output_options(func):
    for option in reversed(_output_options):
        func = option(func)
    return func


@cli.command()
@_with_output_options
@click.pass_context
def inbox(
    ctx: click.Context,
    accept: bool,
    interactive: bool,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Classify everything in the inbox and propose where to file it."""
    runtime = _runtime(ctx, json_output=json_output)
    try:
        _process_target(
            ctx,
            ScanTarget.inbox(),
            command="inbox",
            root=runtime.layout.inbox_path,
            accept=accept,
            interactive=interactive,
            json_output=json_output,
            summary_mode=summary_mode,
            quiet=quiet,
            runtime=runtime,
        )
    except click.ClickException:
        raise
    except _PIPELINE_ERRORS as exc:
        _pipeline_errors(exc, json_output)


@cli.command()
@click.argument("category", callback=_parse_category)
@click.argument("folder")
@_with_output_options
@click.pass_context
def reorganize(
    ctx: click.Context,
    category: PARACategory,
    folder: str,
    accept: bool,
    interactive: bool,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Re-check the notes of FOLDER inside CATEGORY and fix their metadata."""
    runtime = _runtime(ctx, json_output=json_output)
    target = ScanTarget.folder(category, folder)
    try:
        _process_target(
            ctx,
            target,
            command="reorganize",
            root=runtime.layout.folder_path(category, target.folder_name or folder),
            accept=accept,
            interactive=interactive,
            json_output=json_output,
            summary_mode=summary_mode,
            quiet=quiet,
            runtime=runtime,
        )
    except click.ClickException:
        raise
    except _PIPELINE_ERRORS as exc:
        _pipeline_errors(exc, json_output)


@cli.command()
@click.argument("category", callback=_parse_category)
@click.option("--json", "json_output", is_flag=True, help="Emit JSON output.")
@click.pass_context
def folders(ctx: click.Context, category: PARACategory, json_output: bool) -> None:
    """List the subfolders of CATEGORY with file counts and summaries."""
    runtime = _runtime(ctx, json_output=json_output)
    summaries = PARAMover(runtime.layout).list_folders(category)
    if json_output:
        console.print_json(
            data={
                "category": category.value,
                "folders": [
                    {"name": s.name, "file_count": s.file_count, "summary": s.summary}
                    for s in summaries
                ],
            }
        )
        return
    if not summaries:
        console.print(f"[yellow]No folders in {category.folder_name}.[/yellow]")
        return
    table = Table(title=category.folder_name)
    table.add_column("Folder")
    table.add_column("Files", justify="right")
    table.add_column("Summary")
    for summary in summaries:
        table.add_row(summary.name, str(summary.file_count), summary.summary)
    console.print(table)


@cli.command()
@click.argument("name")
@click.argument("source", callback=_parse_category)
@click.argument("target", callback=_parse_category)
@click.option("--no-suffix", is_flag=True, help="Fail instead of renaming when TARGET has NAME.")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON output.")
@click.pass_context
def move(
    ctx: click.Context,
    name: str,
    source: PARACategory,
    target: PARACategory,
    no_suffix: bool,
    json_output: bool,
) -> None:
    """Move folder NAME from SOURCE to TARGET and update its notes."""
    runtime = _runtime(ctx, json_output=json_output)
    mover = PARAMover(runtime.layout, on_conflict="error" if no_suffix else "suffix")
    try:
        updated = mover.move_folder(name, source, target)
    except ParaMoveError as exc:
        _handle_cli_error(str(exc), code="folder_error", json_output=json_output, original=exc)
        return
    except OSError as exc:
        _handle_cli_error(
            f"Move failed: {exc}", code="io_error", json_output=json_output, original=exc
        )
        return

    runtime.statistics.record_activity(name, target.value, "moved")
    if json_output:
        console.print_json(
            data={"name": name, "source": source.value, "target": target.value, "updated": updated}
        )
        return
    console.print(
        f"[green]Moved {name} from {source.folder_name} to {target.folder_name} "
        f"({updated} notes updated).[/green]"
    )


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Emit JSON output.")
@click.option("--limit", type=int, default=10, show_default=True, help="Recent activity to show.")
@click.pass_context
def stats(ctx: click.Context, json_output: bool, limit: int) -> None:
    """Show vault file counts, API cost, and recent activity."""
    runtime = _runtime(ctx, json_output=json_output)
    try:
        collected = runtime.statistics.collect(runtime.layout)
    except StatisticsError as exc:
        _handle_cli_error(str(exc), code="stats_error", json_output=json_output, original=exc)
        return

    if json_output:
        payload = collected.model_dump(mode="json")
        payload["recent_activity"] = payload["recent_activity"][:limit]
        console.print_json(data=payload)
        return

    table = Table(title="Vault")
    table.add_column("Category")
    table.add_column("Files", justify="right")
    for category in PARACategory:
        table.add_row(category.display_name, str(collected.by_category.get(category.value, 0)))
    table.add_row("[bold]Total[/bold]", f"[bold]{collected.total_files}[/bold]")
    console.print(table)
    console.print(
        f"API cost: ${collected.api_cost:.3f}  Duplicates removed: {collected.duplicates_found}"
    )
    for entry in collected.recent_activity[:limit]:
        console.print(
            f"  {entry.date:%Y-%m-%d %H:%M}  {entry.action:<12} {entry.category:<9} {entry.file_name}"
        )


@cli.group()
def key() -> None:
    """Manage provider API keys in the system keychain."""


@key.command("set")
@click.argument("provider", callback=_parse_provider)
@click.option("--value", prompt=True, hide_input=True, help="API key to store.")
@click.pass_context
def key_set(ctx: click.Context, provider: AIProvider, value: str) -> None:
    """Store the API key for PROVIDER."""
    runtime = _runtime(ctx)
    try:
        save_api_key(runtime.credentials, provider, value)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    console.print(f"[green]Saved {provider.display_name} API key.[/green]")


@key.command("delete")
@click.argument("provider", callback=_parse_provider)
@click.pass_context
def key_delete(ctx: click.Context, provider: AIProvider) -> None:
    """Remove the stored API key for PROVIDER."""
    runtime = _runtime(ctx)
    if runtime.credentials.delete(provider.account):
        console.print(f"[green]Deleted {provider.display_name} API key.[/green]")
    else:
        console.print(f"[yellow]No stored {provider.display_name} API key.[/yellow]")


@cli.command()
@click.argument("name", required=False, callback=_parse_provider)
@click.pass_context
def provider(ctx: click.Context, name: Optional[AIProvider]) -> None:
    """Show the active provider, or switch to NAME."""
    runtime = _runtime(ctx)
    if name is not None:
        runtime.statistics.set_selected_provider(name.value)
        console.print(f"[green]Using {name.display_name}.[/green]")
        if not has_api_key(runtime.credentials, name):
            console.print(
                f"[yellow]No {name.display_name} API key stored; run "
                f"`dotbrain key set {name.value}`.[/yellow]"
            )
        return

    selected = runtime.statistics.selected_provider() or runtime.config.ai.provider
    for candidate in AIProvider:
        marker = "*" if candidate.value == selected else " "
        key_state = "key stored" if has_api_key(runtime.credentials, candidate) else "no key"
        console.print(
            f"{marker} {candidate.value:<7} {candidate.fast_model} / "
            f"{candidate.precise_model} ({key_state})"
        )


@cli.command()
@click.option("--debounce", type=float, help="Override debounce interval in seconds.")
@click.option("--once", is_flag=True, help="Process current inbox contents once and exit.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def watch(
    ctx: click.Context,
    debounce: float | None,
    once: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Watch the inbox and classify new files as they arrive."""
    runtime = _runtime(ctx)
    quiet_enabled, summary_only = _resolve_output_flags(
        ctx, runtime.config, quiet=quiet, summary_mode=summary_mode, json_output=False
    )
    if debounce is not None and debounce <= 0:
        raise click.ClickException("--debounce must be greater than zero.")

    def _process() -> None:
        try:
            result = asyncio.run(_run_pipeline(runtime, ScanTarget.inbox()))
        except _PIPELINE_ERRORS as exc:
            _emit_message(
                f"[red]Inbox run failed: {exc}[/red]",
                mode="error",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
            return
        _render_results(result, quiet=quiet_enabled, summary_only=summary_only)
        for pending in result.needs_confirmation:
            _emit_message(
                f"[yellow]{pending.candidate.file_name}: awaiting confirmation "
                f"(suggested {pending.primary.para.folder_name}/"
                f"{pending.primary.target_folder or '-'})[/yellow]",
                mode="warning",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
        _emit_message(
            _format_summary_line(
                "watch",
                runtime.layout.inbox_path,
                {
                    "processed": result.success_count,
                    "failed": result.failure_count,
                    "pending": len(result.needs_confirmation),
                },
            ),
            mode="summary",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )

    if once:
        _process()
        return

    watcher = InboxWatcher(
        runtime.layout.inbox_path,
        _process,
        debounce_seconds=debounce or runtime.config.watch.debounce_seconds,
    )
    watcher.start()
    _emit_message(
        f"[cyan]Watching {runtime.layout.inbox_path}. Press Ctrl+C to stop.[/cyan]",
        mode="detail",
        quiet=quiet_enabled,
        summary_only=summary_only,
    )
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        _emit_message(
            "[yellow]Watch stopped by user request.[/yellow]",
            mode="summary",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )
    finally:
        watcher.stop()


@cli.group()
def config() -> None:
    """Manage DotBrain configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules."""
    manager = ConfigManager()
    try:
        resolved = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(resolved.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY."""
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        before = manager.read_text().splitlines()
        if not any(segment.strip() for segment in key.split(".")):
            raise click.ClickException("KEY must specify a dotted path such as 'ai.provider'.")
        manager.set_value(key, value)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    after = manager.read_text().splitlines()
    diff = list(
        difflib.unified_diff(
            before,
            after,
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
    )
    # The header timestamp always changes; only report real value changes.
    meaningful = [
        line
        for line in diff
        if line.startswith(("+", "-"))
        and not line.startswith(("+++", "---", "+# Last updated", "-# Last updated"))
    ]
    if not meaningful:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return
    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {key}.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
