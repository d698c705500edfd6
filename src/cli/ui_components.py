"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- Permite reutilizar tablas/paneles entre los comandos de listado y el dashboard.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from rich.align import Align
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from core.domain.models import (
    BuildLog,
    PipelineRun,
    PullRequest,
    Thread,
    Timeline,
    TimelineRecord,
    WorkItem,
    format_duration,
)
from core.services.dashboard import ConnectionState, DashboardPoller, FeedState

ProjectLabel = Callable[[str], str]

THEMES: dict[str, dict[str, str]] = {
    "dark": {
        "accent": "cyan",
        "muted": "dim",
        "success": "green",
        "failure": "red",
        "warning": "yellow",
        "running": "blue",
    },
    "light": {
        "accent": "blue",
        "muted": "grey50",
        "success": "dark_green",
        "failure": "red3",
        "warning": "dark_orange",
        "running": "navy_blue",
    },
}


def theme_colors(name: str) -> dict[str, str]:
    return THEMES.get(name, THEMES["dark"])


def print_banner(console: Console, *, organization: str, projects: Sequence[str]) -> None:
    """Imprime el banner de bienvenida."""

    title = Text("azdo-tui", style="bold cyan")
    subtitle = Text(f"{organization} • {', '.join(projects)}", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def _run_status(run: PipelineRun, colors: dict[str, str]) -> Text:
    if run.status != "completed":
        return Text(run.status or "-", style=colors["running"])
    style = {
        "succeeded": colors["success"],
        "failed": colors["failure"],
        "partiallySucceeded": colors["warning"],
        "canceled": colors["muted"],
    }.get(run.result, "")
    return Text(run.result or "-", style=style)


def build_pipelines_table(
    runs: Sequence[PipelineRun],
    *,
    show_project: bool,
    project_label: ProjectLabel = str,
    theme: str = "dark",
) -> Table:
    colors = theme_colors(theme)
    table = Table(title="Pipeline Runs", expand=True)
    table.add_column("Status", no_wrap=True)
    if show_project:
        table.add_column("Project", style=colors["accent"], no_wrap=True)
    table.add_column("Pipeline", style="white")
    table.add_column("Branch", style="magenta")
    table.add_column("Build", style=colors["muted"])
    table.add_column("Queued", no_wrap=True)
    table.add_column("Duration", justify="right")

    for run in runs:
        row = [_run_status(run, colors)]
        if show_project:
            row.append(project_label(run.origin_project))
        row.extend(
            [
                run.definition.name,
                run.branch_short_name,
                run.build_number,
                run.timestamp(),
                run.duration(),
            ]
        )
        table.add_row(*row)
    return table


def _review_summary(pr: PullRequest) -> str:
    approvals = sum(1 for r in pr.reviewers if r.vote > 0)
    rejections = sum(1 for r in pr.reviewers if r.vote < 0)
    if not pr.reviewers:
        return "-"
    return f"+{approvals} / -{rejections}"


def build_pull_requests_table(
    prs: Sequence[PullRequest],
    *,
    show_project: bool,
    project_label: ProjectLabel = str,
    theme: str = "dark",
) -> Table:
    colors = theme_colors(theme)
    table = Table(title="Pull Requests", expand=True)
    table.add_column("ID", justify="right", no_wrap=True)
    if show_project:
        table.add_column("Project", style=colors["accent"], no_wrap=True)
    table.add_column("Title", style="white")
    table.add_column("Repository", style=colors["muted"])
    table.add_column("Branches", style="magenta")
    table.add_column("Author")
    table.add_column("Reviews", justify="right")

    for pr in prs:
        title = Text(pr.title)
        if pr.is_draft:
            title = Text.assemble(("[draft] ", colors["muted"]), pr.title)
        row: list[str | Text] = [str(pr.id)]
        if show_project:
            row.append(project_label(pr.origin_project))
        row.extend(
            [
                title,
                pr.repository.name,
                f"{pr.source_branch_short_name} → {pr.target_branch_short_name}",
                pr.created_by.display_name,
                _review_summary(pr),
            ]
        )
        table.add_row(*row)
    return table


def build_work_items_table(
    items: Sequence[WorkItem],
    *,
    show_project: bool,
    project_label: ProjectLabel = str,
    theme: str = "dark",
) -> Table:
    colors = theme_colors(theme)
    table = Table(title="Work Items", expand=True)
    table.add_column("", no_wrap=True)
    table.add_column("ID", justify="right", no_wrap=True)
    if show_project:
        table.add_column("Project", style=colors["accent"], no_wrap=True)
    table.add_column("Title", style="white")
    table.add_column("State")
    table.add_column("Assigned To", style=colors["muted"])
    table.add_column("Priority", justify="right")

    for item in items:
        row = [item.type_icon(), str(item.id)]
        if show_project:
            row.append(project_label(item.origin_project))
        row.extend(
            [
                item.fields.title,
                f"{item.state_icon()} {item.fields.state}",
                item.assigned_to_name(),
                str(item.fields.priority or "-"),
            ]
        )
        table.add_row(*row)
    return table


def _record_result(record: TimelineRecord, colors: dict[str, str]) -> Text:
    if record.state != "completed":
        return Text(f"◐ {record.state or 'pending'}", style=colors["running"])
    icon, style = {
        "succeeded": ("✓", colors["success"]),
        "failed": ("✗", colors["failure"]),
        "succeededWithIssues": ("⚠", colors["warning"]),
        "canceled": ("○", colors["muted"]),
        "skipped": ("○", colors["muted"]),
    }.get(record.result or "", ("•", ""))
    return Text(f"{icon} {record.result or '-'}", style=style)


def build_timeline_tree(timeline: Timeline, *, title: str, theme: str = "dark") -> Tree:
    """Árbol Stage → Job → Task del timeline de un build, en orden de ejecución."""

    colors = theme_colors(theme)
    ids = {record.id for record in timeline.records}
    children: dict[str | None, list[TimelineRecord]] = {}
    for record in timeline.records:
        parent = record.parent_id if record.parent_id in ids else None
        children.setdefault(parent, []).append(record)

    root = Tree(Text(title, style=f"bold {colors['accent']}"))

    def add(node: Tree, parent: str | None) -> None:
        for record in sorted(children.get(parent, []), key=lambda r: r.order):
            label = Text.assemble(
                _record_result(record, colors),
                "  ",
                (record.name, "bold" if record.type == "Stage" else ""),
                (f"  [{record.type}]", colors["muted"]),
            )
            if record.start_time and record.finish_time:
                seconds = (record.finish_time - record.start_time).total_seconds()
                label.append(f"  {format_duration(seconds)}", style=colors["muted"])
            if record.log is not None:
                label.append(f"  log #{record.log.id}", style=colors["accent"])
            branch = node.add(label)
            for issue in record.issues:
                style = colors["failure"] if issue.type == "error" else colors["warning"]
                branch.add(Text(issue.message, style=style))
            add(branch, record.id)

    add(root, None)
    return root


def build_logs_table(logs: Sequence[BuildLog], *, theme: str = "dark") -> Table:
    colors = theme_colors(theme)
    table = Table(title="Logs", expand=False)
    table.add_column("ID", justify="right", style=colors["accent"], no_wrap=True)
    table.add_column("Lines", justify="right")
    table.add_column("Created", style=colors["muted"], no_wrap=True)
    for log in logs:
        created = log.created_on.strftime("%Y-%m-%d %H:%M") if log.created_on else "-"
        table.add_row(str(log.id), str(log.line_count), created)
    return table


def build_log_panel(content: str, *, title: str, tail: int | None = None, theme: str = "dark") -> Panel:
    """Contenido de un log; `tail` limita a las últimas N líneas."""

    colors = theme_colors(theme)
    lines = content.splitlines()
    if tail is not None and len(lines) > tail:
        lines = lines[-tail:]
    return Panel(Text("\n".join(lines)), title=title, border_style=colors["muted"])


def build_threads_view(threads: Sequence[Thread], *, theme: str = "dark") -> Group:
    """Hilos de un PR (ya filtrados de mensajes del sistema)."""

    colors = theme_colors(theme)
    if not threads:
        return Group(Text("No comments.", style=colors["muted"]))

    panels: list[Panel] = []
    for thread in threads:
        title = thread.status_description()
        context = thread.thread_context
        if thread.is_code_comment() and context is not None:
            location = context.file_path
            if context.right_file_start is not None:
                location += f":{context.right_file_start.line}"
            title = f"{title} • {location}"

        body = Text()
        for index, comment in enumerate(thread.comments):
            if index:
                body.append("\n")
            body.append(comment.author.display_name or "?", style=f"bold {colors['accent']}")
            body.append(f": {comment.content}")
        style = colors["warning"] if thread.status in {"active", "pending"} else colors["muted"]
        panels.append(Panel(body, title=title, title_align="left", border_style=style))
    return Group(*panels)


def build_status_bar(poller: DashboardPoller, *, theme: str = "dark") -> Text:
    colors = theme_colors(theme)
    state = poller.state
    style = {
        ConnectionState.CONNECTED: colors["success"],
        ConnectionState.CONNECTING: colors["warning"],
        ConnectionState.ERROR: colors["failure"],
    }[state]

    text = Text.assemble(("● ", style), (state.value, style))
    text.append(f"  •  {poller.client.get_org()}", style=colors["muted"])
    text.append(f"  •  refresh every {int(poller.interval)}s", style=colors["muted"])
    now = datetime.now(timezone.utc).astimezone().strftime("%H:%M:%S")
    text.append(f"  •  {now}", style=colors["muted"])
    return text


def _feed_error_line(feed: FeedState, colors: dict[str, str]) -> Text | None:
    if not feed.has_error:
        return None
    return Text(f"{feed.name}: {feed.recovery_message()} ({feed.error})", style=colors["failure"])


def build_dashboard(
    poller: DashboardPoller,
    *,
    project_label: ProjectLabel = str,
    theme: str = "dark",
) -> Group:
    """Vista completa del dashboard: estado, errores y las tres tablas."""

    colors = theme_colors(theme)
    show_project = poller.client.is_multi_project()
    parts: list[Text | Table] = [build_status_bar(poller, theme=theme)]
    for feed in poller.feeds:
        line = _feed_error_line(feed, colors)
        if line is not None:
            parts.append(line)

    parts.append(
        build_pipelines_table(
            poller.pipelines.items, show_project=show_project, project_label=project_label, theme=theme
        )
    )
    parts.append(
        build_pull_requests_table(
            poller.pull_requests.items, show_project=show_project, project_label=project_label, theme=theme
        )
    )
    parts.append(
        build_work_items_table(
            poller.work_items.items, show_project=show_project, project_label=project_label, theme=theme
        )
    )
    return Group(*parts)
