"""
Command-line interface for gh-md-sync.

This module provides the Typer-based CLI for pulling, pushing, diffing
and scaffolding issues in the local JSON + Markdown mirror.
"""

import asyncio
import logging
import os
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, NoReturn

import click
import typer
from pydantic import BaseModel, ConfigDict
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from typer.core import TyperGroup

from . import __version__
from .exceptions import ConfigError, GhMdSyncError, RemoteClientError
from .file_store import IssueFileStore
from .gitea_client import GiteaClient
from .github_client import GitHubClient
from .models import (
    DEFAULT_LOCAL_ONLY_FIELDS,
    DiffLineKind,
    IssueDiff,
    PullResult,
    PushResult,
    StatusEntry,
    SyncConfig,
)
from .provider import RemoteIssueClient
from .sync import IssueSync, run_sync

DIFF_LINE_WIDTH = 70


class SyncGroup(TyperGroup):
    """Command group that exits with status 1 on an unknown command."""

    def resolve_command(
        self, ctx: click.Context, args: list[str]
    ) -> tuple[str | None, click.Command | None, list[str]]:
        try:
            return super().resolve_command(ctx, args)
        except click.UsageError as e:
            e.exit_code = 1
            raise


# Create Typer app
app = typer.Typer(
    name="gh-md-sync",
    help="Sync remote issues with local JSON + Markdown files",
    add_completion=False,
    rich_markup_mode="rich",
    cls=SyncGroup,
    context_settings={"help_option_names": ["-h", "--help"]},
)

console = Console()
error_console = Console(stderr=True)


class ProviderChoice(str, Enum):
    """Remote provider options."""

    GITHUB = "github"
    GITEA = "gitea"


class LogLevel(str, Enum):
    """Log level options."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class CliOptions(BaseModel):
    """Global options shared by every command."""

    model_config = ConfigDict(frozen=True)

    repo: str | None = None
    issues_dir: Path = Path("issues")
    local_fields: tuple[str, ...] = DEFAULT_LOCAL_ONLY_FIELDS
    title_prefix: str = "[CTT]"
    provider: ProviderChoice = ProviderChoice.GITHUB
    gitea_url: str | None = None
    gitea_token: str | None = None
    timeout: float | None = None

    def to_config(self) -> SyncConfig:
        if not self.repo:
            raise ConfigError(
                "No repository configured",
                "Pass --repo owner/name or set GH_MD_SYNC_REPO",
            )
        return SyncConfig(
            repo=self.repo,
            issues_dir=self.issues_dir,
            local_only_fields=self.local_fields,
            title_prefix=self.title_prefix,
        )


def _create_provider(options: CliOptions) -> RemoteIssueClient:
    """Create the appropriate remote client based on choice."""
    if options.provider == ProviderChoice.GITEA:
        if not options.gitea_url:
            raise ConfigError(
                "--gitea-url is required when using Gitea provider",
                "Pass --gitea-url or set GITEA_URL",
            )
        token = options.gitea_token or os.environ.get("GITEA_TOKEN", "")
        if not token:
            raise ConfigError(
                "--gitea-token is required when using Gitea provider",
                "Pass --gitea-token or set GITEA_TOKEN",
            )
        return GiteaClient(base_url=options.gitea_url, token=token, timeout=options.timeout)
    return GitHubClient(timeout=options.timeout)


def setup_logging(level: LogLevel, verbose: bool = False) -> None:
    """Configure logging with Rich handler."""
    log_level = getattr(logging, level.value.upper())

    if verbose:
        log_level = logging.DEBUG

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=error_console, show_time=False, show_path=False)],
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"gh-md-sync version {__version__}")
        raise typer.Exit


def _usage_error(usage: str) -> NoReturn:
    error_console.print(f"Usage: gh-md-sync {usage}")
    raise typer.Exit(1)


@contextmanager
def _handle_errors() -> Iterator[None]:
    """Turn tool errors into a printed diagnostic and exit status 1."""
    try:
        yield
    except GhMdSyncError as e:
        if isinstance(e, RemoteClientError) and e.command:
            error_console.print(f"[red]Command failed:[/red] {escape(e.command)}")
        error_console.print(f"[red]Error:[/red] {escape(e.message)}")
        if e.hint:
            error_console.print(f"[dim]Hint: {escape(e.hint)}[/dim]")
        raise typer.Exit(1) from None
    except KeyboardInterrupt:
        error_console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(130) from None


def _run(ctx: typer.Context, factory: Callable[[IssueSync], Any]) -> Any:
    options: CliOptions = ctx.obj
    config = options.to_config()
    return run_sync(factory, config, provider=_create_provider(options))


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    repo: Annotated[
        str | None,
        typer.Option(
            "-R",
            "--repo",
            help="Repository in owner/repo format",
            envvar="GH_MD_SYNC_REPO",
            show_default=False,
        ),
    ] = None,
    issues_dir: Annotated[
        Path,
        typer.Option(
            "-d",
            "--dir",
            help="Directory holding the issue files",
            envvar="GH_MD_SYNC_DIR",
        ),
    ] = Path("issues"),
    local_field: Annotated[
        list[str] | None,
        typer.Option(
            "--local-field",
            help="Local-only metadata key preserved on pull (repeatable)",
            show_default=False,
        ),
    ] = None,
    title_prefix: Annotated[
        str,
        typer.Option(
            "--title-prefix",
            help="Project tag prepended to titles of created issues",
        ),
    ] = "[CTT]",
    provider: Annotated[
        ProviderChoice,
        typer.Option(
            "-p",
            "--provider",
            help="Remote provider (github or gitea)",
        ),
    ] = ProviderChoice.GITHUB,
    gitea_url: Annotated[
        str | None,
        typer.Option(
            "--gitea-url",
            help="Gitea server URL (e.g., https://gitea.example.com)",
            envvar="GITEA_URL",
        ),
    ] = None,
    gitea_token: Annotated[
        str | None,
        typer.Option(
            "--gitea-token",
            help="Gitea API token (or set GITEA_TOKEN env var)",
            envvar="GITEA_TOKEN",
        ),
    ] = None,
    timeout: Annotated[
        float | None,
        typer.Option(
            "--timeout",
            help="Timeout per remote call in seconds (default: wait indefinitely)",
            min=1,
            show_default=False,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "-v",
            "--verbose",
            help="Enable verbose output",
        ),
    ] = False,
    log_level: Annotated[
        LogLevel,
        typer.Option(
            "--log-level",
            help="Set log level",
        ),
    ] = LogLevel.INFO,
    _version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = None,
) -> None:
    """
    Keep a directory of issue files in sync with a remote tracker.

    Each issue is stored as [bold]{number}-{slug}.json[/bold] (metadata)
    and [bold]{number}-{slug}.md[/bold] (body).

    Examples:

        gh-md-sync -R owner/repo pull 1

        gh-md-sync -R owner/repo push --all

        gh-md-sync -R owner/repo diff 2

        gh-md-sync -R owner/repo create kafka-migration
    """
    setup_logging(log_level, verbose)

    ctx.obj = CliOptions(
        repo=repo,
        issues_dir=issues_dir,
        local_fields=tuple(local_field) if local_field else DEFAULT_LOCAL_ONLY_FIELDS,
        title_prefix=title_prefix,
        provider=provider,
        gitea_url=gitea_url,
        gitea_token=gitea_token,
        timeout=timeout,
    )

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(0)


@app.command()
def pull(
    ctx: typer.Context,
    number: Annotated[
        int | None,
        typer.Argument(help="Issue number", show_default=False),
    ] = None,
    all_issues: Annotated[
        bool,
        typer.Option("--all", help="Pull every tracked issue"),
    ] = False,
) -> None:
    """Pull issues from the remote into the local files."""
    if not all_issues and number is None:
        _usage_error("pull <number|--all>")

    with _handle_errors():
        if all_issues:
            _run(ctx, lambda s: s.pull_all(on_result=_display_pull))
        else:
            _display_pull(_run(ctx, lambda s: s.pull(number)))


@app.command()
def push(
    ctx: typer.Context,
    number: Annotated[
        int | None,
        typer.Argument(help="Issue number", show_default=False),
    ] = None,
    all_issues: Annotated[
        bool,
        typer.Option("--all", help="Push every tracked issue"),
    ] = False,
) -> None:
    """Push local title, body and labels to the remote."""
    if not all_issues and number is None:
        _usage_error("push <number|--all>")

    with _handle_errors():
        if all_issues:
            _run(ctx, lambda s: s.push_all(on_result=_display_push))
        else:
            _display_push(_run(ctx, lambda s: s.push(number)))


@app.command()
def diff(
    ctx: typer.Context,
    number: Annotated[
        int | None,
        typer.Argument(help="Issue number", show_default=False),
    ] = None,
) -> None:
    """Show the differences between the local files and the remote."""
    if number is None:
        _usage_error("diff <number>")

    with _handle_errors():
        result = _run(ctx, lambda s: s.diff(number))

    console.print(f"Diff for issue #{number}:\n")
    _display_diff(result)


@app.command()
def status(ctx: typer.Context) -> None:
    """Show the sync status of every tracked issue."""
    with _handle_errors():
        config = ctx.obj.to_config()
        entries = _run(ctx, lambda s: s.status())

    console.print(f"Sync status for [bold]{escape(config.repo)}[/bold]:\n")

    if not entries:
        console.print("No local issues found.")
        return

    for entry in entries:
        _display_status(entry)


@app.command()
def create(
    ctx: typer.Context,
    slug: Annotated[
        str | None,
        typer.Argument(help="Slug for the new issue, e.g. kafka-migration", show_default=False),
    ] = None,
) -> None:
    """Scaffold a new local issue from the template."""
    if not slug:
        _usage_error("create <slug>")

    console.print(f"Creating new issue: {escape(slug)}")

    with _handle_errors():
        options: CliOptions = ctx.obj
        syncer = IssueSync(options.to_config(), provider=_create_provider(options))
        result = syncer.create(slug)

    console.print(f"  [green]✓[/green] Created {escape(result.metadata_file)}")
    console.print(f"  [green]✓[/green] Created {escape(result.body_file)}")
    console.print("\nEdit the files, then run:")
    console.print(f"  {escape(result.follow_up)}", soft_wrap=True)
    console.print(f"  # Then update {escape(result.metadata_file)} with the issue number")


@app.command("list")
def list_issues(ctx: typer.Context) -> None:
    """List the issues tracked in the local directory."""
    options: CliOptions = ctx.obj
    store = IssueFileStore(options.issues_dir)
    numbers = store.list_numbers()

    if not numbers:
        console.print("[yellow]No local issues found[/yellow]")
        raise typer.Exit(0)

    table = Table(title=f"Local issues: {options.issues_dir}")
    table.add_column("#", justify="right")
    table.add_column("State", justify="center")
    table.add_column("Title")
    table.add_column("Labels")
    table.add_column("Synced", justify="center")

    with _handle_errors():
        for number in numbers:
            files = store.find(number)
            if files is None:
                continue
            record = store.read_metadata(files.metadata_path)

            # Truncate long titles
            title = record.title
            if len(title) > 50:
                title = title[:47] + "..."

            table.add_row(
                str(number),
                record.state,
                escape(title),
                escape(", ".join(record.labels)) or "-",
                "yes" if record.issue_number is not None else "no",
            )

    console.print(table)
    console.print(f"\nTotal: {len(numbers)} issues")


@app.command()
def check(ctx: typer.Context) -> None:
    """
    Check provider status.

    Verifies that the provider (GitHub CLI or Gitea server) is accessible
    and authenticated.
    """
    options: CliOptions = ctx.obj
    provider_name = options.provider.value.title()

    async def _check(issue_provider: RemoteIssueClient) -> bool:
        try:
            return await issue_provider.check_connection()
        finally:
            await issue_provider.close()

    with console.status(f"Checking {provider_name} connection..."), _handle_errors():
        asyncio.run(_check(_create_provider(options)))

    console.print(f"[green]✓[/green] {provider_name} is reachable and authenticated")


@app.command("help")
def help_command(ctx: typer.Context) -> None:
    """Show this help."""
    typer.echo(ctx.parent.get_help() if ctx.parent else ctx.get_help())


def _display_pull(result: PullResult) -> None:
    console.print(f"Pulling issue #{result.issue_number}...")
    if result.created:
        console.print(f"  Created new files: {escape(result.metadata_file.removesuffix('.json'))}.*")
    console.print(f"  [green]✓[/green] Updated {escape(result.metadata_file)}")
    console.print(f"  [green]✓[/green] Updated {escape(result.body_file)}")
    console.print(f"  Labels: {escape(', '.join(result.labels)) or '(none)'}")
    console.print()


def _display_push(result: PushResult) -> None:
    console.print(f"Pushing issue #{result.issue_number}...")
    console.print(f"  [green]✓[/green] Updated title: {escape(result.title)}")
    console.print(f"  [green]✓[/green] Updated body from {escape(result.body_file)}")
    console.print(f"  [green]✓[/green] Synced labels: {escape(', '.join(result.labels)) or '(none)'}")
    if result.labels_failed:
        console.print(
            f"  [yellow]⚠[/yellow] Label changes failed: {escape(', '.join(result.labels_failed))}"
        )
    console.print()


def _display_diff(result: IssueDiff) -> None:
    """Print a diff report with removed (remote) and added (local) markers."""
    if result.in_sync:
        console.print("[green]✓[/green] Local and remote are in sync")
        return

    if result.has_metadata_changes:
        console.print("── Metadata (.json) ──\n")
        for field in result.fields:
            console.print(f"  {field.field}:")
            console.print(f"    [red]- {escape(field.remote or '')}[/red]")
            console.print(f"    [green]+ {escape(field.local or '')}[/green]")
            console.print()
        if not result.labels.is_empty:
            console.print("  labels:")
            for label in result.labels.removed:
                console.print(f"    [red]- {escape(label)}[/red]")
            for label in result.labels.added:
                console.print(f"    [green]+ {escape(label)}[/green]")
            console.print()

    if result.body_differs:
        console.print("── Body (.md) ──\n")
        console.print(
            f"  Local: {result.local_body_length} chars, "
            f"remote: {result.remote_body_length} chars\n"
        )
        for line in result.body_lines:
            text = escape(line.text[:DIFF_LINE_WIDTH])
            if line.kind == DiffLineKind.SEPARATOR:
                console.print()
            elif line.kind == DiffLineKind.REMOVED:
                console.print(f"  {line.line_number:>3} - [red]{text}[/red]")
            elif line.kind == DiffLineKind.ADDED:
                console.print(f"  {line.line_number:>3} + [green]{text}[/green]")
            else:
                console.print(f"  {line.line_number:>3}   {text}")


def _display_status(entry: StatusEntry) -> None:
    if not entry.found:
        console.print(f"#{entry.issue_number} {escape(entry.title)}")
        console.print("    [yellow]⚠ Not found on remote[/yellow]\n")
        return

    icon = "[green]✓[/green]" if entry.in_sync else "[yellow]⚠[/yellow]"
    console.print(f"{icon} #{entry.issue_number} {escape(entry.title)}")

    if not entry.title_match:
        console.print("    Title differs")
    if not entry.labels_match:
        console.print(
            f"    Labels differ: local({len(entry.local_labels)}) "
            f"vs remote({len(entry.remote_labels)})"
        )
    if not entry.state_match:
        console.print(f"    State differs: {entry.local_state} vs {entry.remote_state}")

    console.print(f"    Labels: {escape(', '.join(entry.local_labels)) or '(none)'}")
    console.print()


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
