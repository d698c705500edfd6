"""CLI principal (Typer).

Comandos:
- `pipelines`, `prs`, `workitems`: una consulta agregada y una tabla Rich.
- `dashboard` (por defecto): vista en vivo que se refresca cada intervalo.
- `logs`, `pr show|vote|comment`: detalle de un proyecto vía `MultiClient.client_for`.
- `auth`: guarda organización/proyectos/PAT en el .env del usuario.
- `doctor run`: diagnóstico de configuración y conectividad.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable
from enum import Enum
from importlib.metadata import PackageNotFoundError, version as package_version
from pathlib import Path
from typing import NoReturn, TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler

from adapters.azdevops.errors import AzureDevOpsError
from adapters.azdevops.threads import filter_system_threads
from adapters.json_exporter import export_items_json
from cli import doctor
from cli.ui_components import (
    build_dashboard,
    build_log_panel,
    build_logs_table,
    build_pipelines_table,
    build_pull_requests_table,
    build_threads_view,
    build_timeline_tree,
    build_work_items_table,
    print_banner,
)
from core.config import AppSettings, write_user_env_vars
from core.domain.errors import AllProjectsFailedError, MultiClientConfigError
from core.domain.models import (
    VOTE_APPROVE,
    VOTE_APPROVE_WITH_SUGGESTIONS,
    VOTE_NO_VOTE,
    VOTE_REJECT,
    VOTE_WAIT_FOR_AUTHOR,
)
from core.interfaces.project_client import ProjectDetailClient
from core.services.dashboard import DashboardPoller
from core.services.multi_project import MultiClient, build_multi_client

T = TypeVar("T")

app = typer.Typer(
    help="Terminal dashboard for Azure DevOps pipelines, pull requests and work items.",
    invoke_without_command=True,
)
app.add_typer(doctor.app, name="doctor")
pr_app = typer.Typer(no_args_is_help=True, help="Pull request detail: threads, votes and comments.")
app.add_typer(pr_app, name="pr")

_console = Console()
_err_console = Console(stderr=True)

TopOption = typer.Option(None, "--top", "-n", min=1, help="Items per project (default: config).")
JsonOption = typer.Option(None, "--json", help="Also export the results to this JSON file.")
ThemeOption = typer.Option(None, "--theme", help="Color theme (dark/light).")


def get_version() -> str:
    try:
        return package_version("azdo-tui")
    except PackageNotFoundError:
        return "dev"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=_err_console, show_path=False)],
        force=True,
    )
    # httpx registra cada request en INFO; solo interesa con --verbose.
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _fail(message: str) -> NoReturn:
    _err_console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(code=1)


def load_settings() -> AppSettings:
    try:
        return AppSettings()
    except ValidationError as exc:
        _fail(f"invalid configuration:\n{exc}")


def require_client(settings: AppSettings) -> MultiClient:
    missing = []
    if not settings.organization:
        missing.append("AZDO_TUI_ORGANIZATION")
    if not settings.projects:
        missing.append("AZDO_TUI_PROJECTS")
    if not settings.pat_value():
        missing.append("AZDO_TUI_PAT")
    if missing:
        _fail(
            f"missing configuration: {', '.join(missing)}.\n"
            "Run `azdo-tui auth` or set the variables in your environment/.env file."
        )

    try:
        return build_multi_client(settings)
    except MultiClientConfigError as exc:
        _fail(str(exc))


def _fetch(coro: Awaitable[T]) -> T:
    try:
        return asyncio.run(coro)  # type: ignore[arg-type]
    except (AllProjectsFailedError, AzureDevOpsError) as exc:
        _fail(str(exc))


def _maybe_export(items: list, output: Path | None) -> None:
    if output is None:
        return
    path = export_items_json(items=items, output_path=output)
    _err_console.print(f"[green]Exported {len(items)} items to:[/green] {path}")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr."),
) -> None:
    _configure_logging(verbose)
    if ctx.invoked_subcommand is None:
        _run_dashboard(top=None, interval=None, theme=None)


@app.command()
def pipelines(
    top: int | None = TopOption,
    output: Path | None = JsonOption,
    theme: str | None = ThemeOption,
) -> None:
    """List recent pipeline runs across all configured projects."""

    settings = load_settings()
    client = require_client(settings)
    runs = _fetch(client.list_pipeline_runs(top or settings.top))
    _console.print(
        build_pipelines_table(
            runs,
            show_project=client.is_multi_project(),
            project_label=settings.display_name_for,
            theme=theme or settings.theme,
        )
    )
    _maybe_export(runs, output)


@app.command()
def prs(
    top: int | None = TopOption,
    output: Path | None = JsonOption,
    theme: str | None = ThemeOption,
) -> None:
    """List active pull requests across all configured projects."""

    settings = load_settings()
    client = require_client(settings)
    pull_requests = _fetch(client.list_pull_requests(top or settings.top))
    _console.print(
        build_pull_requests_table(
            pull_requests,
            show_project=client.is_multi_project(),
            project_label=settings.display_name_for,
            theme=theme or settings.theme,
        )
    )
    _maybe_export(pull_requests, output)


@app.command()
def workitems(
    top: int | None = TopOption,
    output: Path | None = JsonOption,
    theme: str | None = ThemeOption,
) -> None:
    """List active work items assigned to you across all configured projects."""

    settings = load_settings()
    client = require_client(settings)
    items = _fetch(client.list_work_items(top or settings.top))
    _console.print(
        build_work_items_table(
            items,
            show_project=client.is_multi_project(),
            project_label=settings.display_name_for,
            theme=theme or settings.theme,
        )
    )
    _maybe_export(items, output)


def _run_dashboard(*, top: int | None, interval: int | None, theme: str | None) -> None:
    settings = load_settings()
    client = require_client(settings)
    theme = theme or settings.theme
    poller = DashboardPoller(
        client,
        top=top or settings.top,
        interval=interval or settings.polling_interval_seconds,
    )

    print_banner(_console, organization=client.get_org(), projects=client.projects())

    def render():
        return build_dashboard(poller, project_label=settings.display_name_for, theme=theme)

    async def loop() -> None:
        with Live(render(), console=_console, refresh_per_second=2) as live:
            while True:
                await poller.refresh()
                live.update(render())
                await asyncio.sleep(poller.interval)

    try:
        asyncio.run(loop())
    except KeyboardInterrupt:
        _console.print("[dim]bye[/dim]")


@app.command()
def dashboard(
    top: int | None = TopOption,
    interval: int | None = typer.Option(None, "--interval", "-i", min=1, help="Refresh interval in seconds."),
    theme: str | None = ThemeOption,
) -> None:
    """Live dashboard with all three views, refreshed periodically (Ctrl+C to exit)."""

    _run_dashboard(top=top, interval=interval, theme=theme)


class Vote(str, Enum):
    approve = "approve"
    suggest = "suggest"
    wait = "wait"
    reject = "reject"
    reset = "reset"


_VOTE_VALUES = {
    Vote.approve: VOTE_APPROVE,
    Vote.suggest: VOTE_APPROVE_WITH_SUGGESTIONS,
    Vote.wait: VOTE_WAIT_FOR_AUTHOR,
    Vote.reject: VOTE_REJECT,
    Vote.reset: VOTE_NO_VOTE,
}


def require_project_client(settings: AppSettings, client: MultiClient, project: str) -> ProjectDetailClient:
    """Cliente de un proyecto concreto; acepta nombre de API o display name."""

    name = project
    if client.client_for(name) is None:
        name = next((p for p in client.projects() if settings.display_name_for(p) == project), project)
    project_client = client.client_for(name)
    if project_client is None:
        _fail(f"project {project!r} is not configured (available: {', '.join(client.projects())})")
    if not isinstance(project_client, ProjectDetailClient):
        _fail(f"project {project!r} does not support detail views")
    return project_client


@app.command()
def logs(
    project: str = typer.Argument(..., help="Project name (API or display name)."),
    build_id: int = typer.Argument(..., help="Pipeline run (build) id."),
    log_id: int | None = typer.Option(None, "--log", "-l", help="Print the content of this log."),
    tail: int | None = typer.Option(None, "--tail", min=1, help="Only the last N lines of the log."),
    theme: str | None = ThemeOption,
) -> None:
    """Show the stage/job/task timeline of a run, or the text of one of its logs."""

    settings = load_settings()
    project_client = require_project_client(settings, require_client(settings), project)
    theme = theme or settings.theme

    if log_id is not None:
        content = _fetch(project_client.get_build_log_content(build_id, log_id))
        _console.print(build_log_panel(content, title=f"Build {build_id} • log #{log_id}", tail=tail, theme=theme))
        return

    async def load():
        return await asyncio.gather(
            project_client.get_build_timeline(build_id),
            project_client.list_build_logs(build_id),
        )

    timeline, build_logs = _fetch(load())
    label = settings.display_name_for(project_client.project)
    _console.print(build_timeline_tree(timeline, title=f"{label} • build {build_id}", theme=theme))
    _console.print(build_logs_table(build_logs, theme=theme))
    _console.print("[dim]Use --log <ID> to print a log.[/dim]")


@pr_app.command("show")
def pr_show(
    project: str = typer.Argument(..., help="Project name (API or display name)."),
    repository_id: str = typer.Argument(..., help="Repository id or name."),
    pull_request_id: int = typer.Argument(..., help="Pull request id."),
    include_system: bool = typer.Option(False, "--all", help="Include system-generated threads."),
    theme: str | None = ThemeOption,
) -> None:
    """Show the comment threads of a pull request."""

    settings = load_settings()
    project_client = require_project_client(settings, require_client(settings), project)
    threads = _fetch(project_client.get_pr_threads(repository_id, pull_request_id))
    if not include_system:
        threads = filter_system_threads(threads)
    _console.print(f"[bold]PR {pull_request_id}[/bold] • {len(threads)} thread(s)")
    _console.print(build_threads_view(threads, theme=theme or settings.theme))


@pr_app.command("vote")
def pr_vote(
    project: str = typer.Argument(..., help="Project name (API or display name)."),
    repository_id: str = typer.Argument(..., help="Repository id or name."),
    pull_request_id: int = typer.Argument(..., help="Pull request id."),
    vote: Vote = typer.Argument(..., help="approve, suggest, wait, reject or reset."),
) -> None:
    """Vote on a pull request as the PAT's user."""

    settings = load_settings()
    project_client = require_project_client(settings, require_client(settings), project)
    _fetch(project_client.vote_pull_request(repository_id, pull_request_id, _VOTE_VALUES[vote]))
    _console.print(f"[green]Voted {vote.value} on PR {pull_request_id}.[/green]")


@pr_app.command("comment")
def pr_comment(
    project: str = typer.Argument(..., help="Project name (API or display name)."),
    repository_id: str = typer.Argument(..., help="Repository id or name."),
    pull_request_id: int = typer.Argument(..., help="Pull request id."),
    text: str = typer.Argument(..., help="Comment text."),
) -> None:
    """Add a general comment (new thread) to a pull request."""

    if not text.strip():
        raise typer.BadParameter("comment cannot be empty")

    settings = load_settings()
    project_client = require_project_client(settings, require_client(settings), project)
    thread = _fetch(project_client.add_pr_comment(repository_id, pull_request_id, text.strip()))
    _console.print(f"[green]Comment added (thread {thread.id}).[/green]")


@app.command()
def auth() -> None:
    """Set or update the Personal Access Token (stored in the user config .env)."""

    settings = load_settings()

    organization = typer.prompt(
        "Azure DevOps organization",
        default=settings.organization or None,
    ).strip()
    projects_default = ",".join(settings.project_names()) or None
    projects_raw = typer.prompt("Projects (comma separated)", default=projects_default).strip()
    token = typer.prompt("Personal Access Token", hide_input=True).strip()

    if not organization or not projects_raw or not token:
        raise typer.BadParameter("organization, projects and PAT are required")

    projects = [p.strip() for p in projects_raw.split(",") if p.strip()]
    # Conserva display_name de proyectos ya configurados.
    entries = []
    for name in projects:
        label = settings.display_name_for(name)
        entries.append({"name": name, "display_name": label} if label != name else name)

    env_path = write_user_env_vars(
        {
            "AZDO_TUI_ORGANIZATION": organization,
            "AZDO_TUI_PROJECTS": json.dumps(entries, ensure_ascii=False),
            "AZDO_TUI_PAT": token,
        }
    )
    _console.print(f"[green]Saved configuration to:[/green] {env_path}")


@app.command(name="version")
def show_version() -> None:
    """Show version information."""

    _console.print(f"azdo-tui version {get_version()}")


def run() -> None:
    app()
