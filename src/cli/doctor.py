"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from adapters.azdevops.errors import AzureDevOpsError
from core.config import AppSettings, get_user_env_file
from core.domain.errors import MultiClientConfigError
from core.services.multi_project import MultiClient, build_multi_client

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


async def check_projects(client: MultiClient) -> dict[str, tuple[bool, str]]:
    """Pide una ejecución de pipeline por proyecto para validar PAT y nombres."""

    projects = client.projects()

    async def check(project: str) -> tuple[bool, str]:
        project_client = client.client_for(project)
        if project_client is None:
            return False, "not registered"
        try:
            runs = await project_client.list_pipeline_runs(1)
        except AzureDevOpsError as exc:
            return False, str(exc)
        return True, f"OK ({len(runs)} recent run(s) visible)"

    results = await asyncio.gather(*(check(project) for project in projects))
    return dict(zip(projects, results))


@app.command()
def run() -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AppSettings()

    table = Table(title="azdo-tui Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    # Config
    table.add_row("User config", "OK" if get_user_env_file().exists() else "MISSING", str(get_user_env_file()))
    table.add_row(
        "Organization",
        "OK" if settings.organization else "MISSING",
        settings.organization or "set AZDO_TUI_ORGANIZATION",
    )
    table.add_row(
        "Projects",
        "OK" if settings.projects else "MISSING",
        ", ".join(settings.display_name_for(p) for p in settings.project_names()) or "set AZDO_TUI_PROJECTS",
    )
    table.add_row("PAT", "OK" if settings.pat_value() else "MISSING", "run `azdo-tui auth`")

    client: MultiClient | None = None
    if settings.organization and settings.projects and settings.pat_value():
        try:
            client = build_multi_client(settings)
        except MultiClientConfigError as exc:
            table.add_row("Client setup", "FAIL", str(exc))

    # Connectivity (best-effort)
    if client is not None:
        for project, (ok, detail) in asyncio.run(check_projects(client)).items():
            table.add_row(f"Project {settings.display_name_for(project)}", "OK" if ok else "FAIL", detail)

    _console.print(table)

    if client is None:
        _console.print(
            "\n[yellow]Note:[/yellow] Connectivity checks are skipped until organization, projects and PAT are set."
        )
