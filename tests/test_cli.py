from __future__ import annotations

import asyncio
import json
import sys

import pytest
from rich.console import Console
from typer.testing import CliRunner

from conftest import FakeProjectClient, factory_for, make_run, make_work_item, minutes_ago
from adapters.azdevops.errors import AzureDevOpsHTTPError
from cli import doctor
from cli import main as cli_main
from cli.ui_components import build_pipelines_table, build_work_items_table
from core import config as core_config
from core.config import AppSettings
from core.domain.models import VOTE_REJECT, BuildLog, Thread, Timeline
from core.services.multi_project import MultiClient

runner = CliRunner()


def _headers(table) -> list[str]:
    return [str(column.header) for column in table.columns]


def test_project_column_only_for_multi_project() -> None:
    runs = [make_run(1, project="Alpha", queued=minutes_ago(1))]

    assert "Project" in _headers(build_pipelines_table(runs, show_project=True))
    assert "Project" not in _headers(build_pipelines_table(runs, show_project=False))


def test_project_column_uses_display_name() -> None:
    item = make_work_item(5, changed=minutes_ago(1))
    item.project_name = "beta-internal"
    table = build_work_items_table([item], show_project=True, project_label={"beta-internal": "Beta"}.get)

    console = Console(record=True, width=160)
    console.print(table)
    output = console.export_text()

    assert "Beta" in output
    assert "beta-internal" not in output


@pytest.fixture
def configured(monkeypatch: pytest.MonkeyPatch) -> dict[str, FakeProjectClient]:
    settings = AppSettings(_env_file=None, organization="contoso", projects=["Alpha", "Beta"], pat="pat")
    fakes = {
        "Alpha": FakeProjectClient("Alpha", runs=[make_run(1, project="Alpha", queued=minutes_ago(1))]),
        "Beta": FakeProjectClient("Beta", runs=[make_run(2, project="Beta", queued=minutes_ago(2))]),
    }
    monkeypatch.setattr(cli_main, "load_settings", lambda: settings)
    monkeypatch.setattr(
        cli_main,
        "build_multi_client",
        lambda s: MultiClient(s.organization, s.project_names(), s.pat_value(), client_factory=factory_for(fakes)),
    )
    return fakes


def test_pipelines_command_renders_and_exports(configured, tmp_path) -> None:
    output = tmp_path / "runs.json"

    result = runner.invoke(cli_main.app, ["pipelines", "--top", "3", "--json", str(output)])

    assert result.exit_code == 0, result.output
    assert configured["Alpha"].calls == [("pipelines", 3)]
    exported = json.loads(output.read_text(encoding="utf-8"))
    assert [run["id"] for run in exported] == [1, 2]


def test_pipelines_command_fails_when_all_projects_fail(configured) -> None:
    for fake in configured.values():
        fake.error = RuntimeError("down")

    result = runner.invoke(cli_main.app, ["pipelines"])

    assert result.exit_code == 1


def test_missing_configuration_is_reported(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli_main, "load_settings", lambda: AppSettings(_env_file=None, organization="", projects=[]))

    result = runner.invoke(cli_main.app, ["workitems"])

    assert result.exit_code == 1


def test_version_command() -> None:
    result = runner.invoke(cli_main.app, ["version"])

    assert result.exit_code == 0
    assert "azdo-tui version" in result.output


class FakeDetailClient(FakeProjectClient):
    """Cliente con operaciones de detalle; registra votos y comentarios."""

    def __init__(self, project: str, **kwargs) -> None:
        super().__init__(project, **kwargs)
        self.votes: list[tuple[str, int, int]] = []
        self.comments: list[tuple[str, int, str]] = []

    async def get_build_timeline(self, build_id: int) -> Timeline:
        return Timeline.model_validate(
            {
                "id": f"t{build_id}",
                "records": [
                    {"id": "s1", "type": "Stage", "name": "Build", "state": "completed", "result": "failed", "order": 1},
                    {
                        "id": "j1",
                        "parentId": "s1",
                        "type": "Job",
                        "name": "Compile",
                        "state": "completed",
                        "result": "failed",
                        "order": 1,
                        "log": {"id": 5},
                        "issues": [{"type": "error", "message": "missing semicolon"}],
                    },
                ],
            }
        )

    async def list_build_logs(self, build_id: int) -> list[BuildLog]:
        return [BuildLog.model_validate({"id": 5, "lineCount": 3})]

    async def get_build_log_content(self, build_id: int, log_id: int) -> str:
        return "step one\nstep two\nstep three\n"

    async def get_pr_threads(self, repository_id: str, pull_request_id: int) -> list[Thread]:
        return [
            Thread.model_validate(
                {"id": 1, "status": "active", "comments": [{"content": "Please rename", "author": {"displayName": "Jane"}}]}
            ),
            Thread.model_validate(
                {"id": 2, "status": "closed", "comments": [{"content": "Bob voted 10", "author": {"displayName": "Bob"}}]}
            ),
        ]

    async def vote_pull_request(self, repository_id: str, pull_request_id: int, vote: int) -> None:
        self.votes.append((repository_id, pull_request_id, vote))

    async def add_pr_comment(self, repository_id: str, pull_request_id: int, content: str) -> Thread:
        self.comments.append((repository_id, pull_request_id, content))
        return Thread.model_validate({"id": 99, "status": "active"})


@pytest.fixture
def detail_client(monkeypatch: pytest.MonkeyPatch) -> FakeDetailClient:
    settings = AppSettings(
        _env_file=None,
        organization="contoso",
        projects=["Alpha", {"name": "beta-internal", "display_name": "Beta"}],
        pat="pat",
    )
    fakes = {"Alpha": FakeDetailClient("Alpha"), "beta-internal": FakeDetailClient("beta-internal")}
    monkeypatch.setattr(cli_main, "load_settings", lambda: settings)
    monkeypatch.setattr(
        cli_main,
        "build_multi_client",
        lambda s: MultiClient(s.organization, s.project_names(), s.pat_value(), client_factory=factory_for(fakes)),
    )
    return fakes["beta-internal"]


def test_logs_command_shows_timeline_and_log_list(detail_client) -> None:
    result = runner.invoke(cli_main.app, ["logs", "Beta", "42"])

    assert result.exit_code == 0, result.output
    assert "Compile" in result.output
    assert "missing semicolon" in result.output
    assert "log #5" in result.output


def test_logs_command_prints_log_tail(detail_client) -> None:
    result = runner.invoke(cli_main.app, ["logs", "beta-internal", "42", "--log", "5", "--tail", "2"])

    assert result.exit_code == 0, result.output
    assert "step three" in result.output
    assert "step one" not in result.output


def test_unknown_project_is_rejected(detail_client) -> None:
    result = runner.invoke(cli_main.app, ["logs", "Gamma", "42"])

    assert result.exit_code == 1


def test_pr_show_hides_system_threads_by_default(detail_client) -> None:
    result = runner.invoke(cli_main.app, ["pr", "show", "Beta", "repo-1", "7"])
    everything = runner.invoke(cli_main.app, ["pr", "show", "Beta", "repo-1", "7", "--all"])

    assert result.exit_code == 0, result.output
    assert "Please rename" in result.output
    assert "voted 10" not in result.output
    assert "voted 10" in everything.output


def test_pr_vote_and_comment_go_to_the_selected_project(detail_client) -> None:
    vote = runner.invoke(cli_main.app, ["pr", "vote", "Beta", "repo-1", "7", "reject"])
    comment = runner.invoke(cli_main.app, ["pr", "comment", "Beta", "repo-1", "7", "  Looks good  "])

    assert vote.exit_code == 0, vote.output
    assert comment.exit_code == 0, comment.output
    assert detail_client.votes == [("repo-1", 7, VOTE_REJECT)]
    assert detail_client.comments == [("repo-1", 7, "Looks good")]


def test_pr_vote_rejects_unknown_vote(detail_client) -> None:
    result = runner.invoke(cli_main.app, ["pr", "vote", "Beta", "repo-1", "7", "maybe"])

    assert result.exit_code != 0
    assert detail_client.votes == []


def test_auth_keeps_display_names_and_writes_private_file(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    env_path = tmp_path / "azdo-tui" / ".env"
    monkeypatch.setattr(core_config, "get_user_env_file", lambda: env_path)
    settings = AppSettings(
        _env_file=None,
        organization="contoso",
        projects=[{"name": "beta-internal", "display_name": "Beta"}],
        pat="old",
    )
    monkeypatch.setattr(cli_main, "load_settings", lambda: settings)

    result = runner.invoke(cli_main.app, ["auth"], input="\nbeta-internal, Alpha\nnew-secret\n")

    assert result.exit_code == 0, result.output
    values = core_config._parse_env_lines(env_path.read_text(encoding="utf-8"))
    assert values["AZDO_TUI_ORGANIZATION"] == "contoso"
    assert values["AZDO_TUI_PAT"] == "new-secret"
    assert json.loads(values["AZDO_TUI_PROJECTS"]) == [
        {"name": "beta-internal", "display_name": "Beta"},
        "Alpha",
    ]
    if not sys.platform.startswith("win"):
        assert env_path.stat().st_mode & 0o777 == 0o600


def test_check_projects_reports_each_project() -> None:
    fakes = {
        "Healthy": FakeProjectClient("Healthy", runs=[make_run(1, project="Healthy", queued=minutes_ago(1))]),
        "Broken": FakeProjectClient("Broken", error=AzureDevOpsHTTPError(401, "authentication failed (HTTP 401)")),
    }
    client = MultiClient("contoso", list(fakes), "pat", client_factory=factory_for(fakes))

    results = asyncio.run(doctor.check_projects(client))

    assert results["Healthy"] == (True, "OK (1 recent run(s) visible)")
    assert results["Broken"][0] is False
    assert "401" in results["Broken"][1]


def test_doctor_run_lists_failing_project(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    settings = AppSettings(_env_file=None, organization="contoso", projects=["Healthy", "Broken"], pat="pat")
    fakes = {
        "Healthy": FakeProjectClient("Healthy"),
        "Broken": FakeProjectClient("Broken", error=AzureDevOpsHTTPError(404, "not found")),
    }
    monkeypatch.setattr(doctor, "AppSettings", lambda: settings)
    monkeypatch.setattr(doctor, "get_user_env_file", lambda: tmp_path / ".env")
    monkeypatch.setattr(
        doctor,
        "build_multi_client",
        lambda s: MultiClient(s.organization, s.project_names(), s.pat_value(), client_factory=factory_for(fakes)),
    )

    result = runner.invoke(cli_main.app, ["doctor", "run"])

    assert result.exit_code == 0, result.output
    assert "FAIL" in result.output
    assert "MISSING" in result.output
