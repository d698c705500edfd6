from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from core.config import AppSettings
from core.domain.models import PipelineRun, PullRequest, WorkItem

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


def minutes_ago(minutes: int) -> datetime:
    return NOW - timedelta(minutes=minutes)


def make_run(run_id: int, *, project: str, queued: datetime) -> PipelineRun:
    return PipelineRun.model_validate(
        {
            "id": run_id,
            "buildNumber": f"2025.{run_id}",
            "status": "completed",
            "result": "succeeded",
            "sourceBranch": "refs/heads/main",
            "queueTime": queued.isoformat(),
            "definition": {"id": 1, "name": "CI"},
            "project": {"id": f"{project}-id", "name": project},
        }
    )


def make_pr(pr_id: int, *, created: datetime) -> PullRequest:
    return PullRequest.model_validate(
        {
            "pullRequestId": pr_id,
            "title": f"PR {pr_id}",
            "status": "active",
            "creationDate": created.isoformat(),
            "sourceRefName": "refs/heads/feature/x",
            "targetRefName": "refs/heads/main",
            "createdBy": {"displayName": "Jane Smith"},
            "repository": {"id": "repo-1", "name": "app"},
        }
    )


def make_work_item(item_id: int, *, changed: datetime) -> WorkItem:
    return WorkItem.model_validate(
        {
            "id": item_id,
            "rev": 1,
            "fields": {
                "System.Title": f"Item {item_id}",
                "System.State": "Active",
                "System.WorkItemType": "Task",
                "System.ChangedDate": changed.isoformat(),
            },
        }
    )


class FakeProjectClient:
    """`ProjectClient` en memoria: devuelve listas fijas o lanza un error."""

    def __init__(
        self,
        project: str,
        *,
        runs: list[PipelineRun] | None = None,
        pull_requests: list[PullRequest] | None = None,
        work_items: list[WorkItem] | None = None,
        error: Exception | None = None,
    ) -> None:
        self._project = project
        self.runs = runs or []
        self.pull_requests = pull_requests or []
        self.work_items = work_items or []
        self.error = error
        self.calls: list[tuple[str, int]] = []

    @property
    def project(self) -> str:
        return self._project

    def _answer(self, name: str, top: int, items: list[Any]) -> list[Any]:
        self.calls.append((name, top))
        if self.error is not None:
            raise self.error
        return [item.model_copy() for item in items[:top]]

    async def list_pipeline_runs(self, top: int) -> list[PipelineRun]:
        return self._answer("pipelines", top, self.runs)

    async def list_pull_requests(self, top: int) -> list[PullRequest]:
        return self._answer("pull_requests", top, self.pull_requests)

    async def list_work_items(self, top: int) -> list[WorkItem]:
        return self._answer("work_items", top, self.work_items)


def factory_for(fakes: dict[str, FakeProjectClient]):
    def factory(organization: str, project: str, token: str) -> FakeProjectClient:
        return fakes[project]

    return factory


@pytest.fixture
def settings(monkeypatch: pytest.MonkeyPatch) -> AppSettings:
    for key in ("AZDO_TUI_ORGANIZATION", "AZDO_TUI_PROJECTS", "AZDO_TUI_PAT"):
        monkeypatch.delenv(key, raising=False)
    return AppSettings(_env_file=None)
