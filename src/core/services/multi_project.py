"""Multi-project aggregation.

`MultiClient` turns one `ProjectClient` per configured project into a single
data source for the UI: every aggregate query fans out to all projects
concurrently, stamps the origin project where the payload lacks it, merges
the successful results newest-first and only fails when every project
failed.

The UI never needs to know how many projects exist or which ones are
currently healthy; `is_multi_project()` is the only hint it gets (to decide
whether a project column is worth rendering).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, TypeVar

from adapters.azdevops.client import AzureDevOpsClient
from core.config import AppSettings
from core.domain.errors import AllProjectsFailedError, MultiClientConfigError
from core.domain.models import PipelineRun, PullRequest, WorkItem
from core.interfaces.project_client import ProjectClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

ClientFactory = Callable[[str, str, str], ProjectClient]


@dataclass
class ProjectOutcome:
    """Result of one project's call within a fan-out (never retained)."""

    project: str
    items: list[Any] = field(default_factory=list)
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _validate_projects(projects: Sequence[str]) -> list[str]:
    if isinstance(projects, str):
        raise MultiClientConfigError("projects must be a list of names, not a single string")
    names = list(projects)
    if not names:
        raise MultiClientConfigError("at least one project is required")

    seen: set[str] = set()
    for index, name in enumerate(names):
        if not name:
            raise MultiClientConfigError(f"project name at index {index} cannot be empty")
        if name in seen:
            raise MultiClientConfigError(f"project {name!r} is listed more than once")
        seen.add(name)
    return names


def tag_items(items: Iterable[T], project: str, *, self_describing: bool) -> list[T]:
    """Stamp `project_name` on items whose payload does not carry the project."""

    tagged = list(items)
    if not self_describing:
        for item in tagged:
            item.project_name = project  # type: ignore[attr-defined]
    return tagged


def merge_sorted(outcomes: Iterable[ProjectOutcome]) -> list[Any]:
    """Concatenate successful outcomes, newest `sort_timestamp` first.

    The sort is stable: equal timestamps keep outcome order (registry order)
    and, within a project, the order its client returned.
    """

    merged: list[Any] = []
    for outcome in outcomes:
        if outcome.ok:
            merged.extend(outcome.items)
    merged.sort(key=lambda item: item.sort_timestamp, reverse=True)
    return merged


def resolve_outcomes(outcomes: Sequence[ProjectOutcome]) -> list[Any]:
    """Apply the partial-failure policy to a complete set of outcomes."""

    failed = {outcome.project: outcome.error for outcome in outcomes if outcome.error is not None}
    if outcomes and len(failed) == len(outcomes):
        raise AllProjectsFailedError(failed)  # type: ignore[arg-type]

    for project, error in failed.items():
        logger.warning("project %s failed, excluding it from results: %s", project, error)
    return merge_sorted(outcomes)


class MultiClient:
    """Aggregation handle over one client per project of an organization.

    The registry is built once here and is read-only afterwards, so fan-out
    tasks read it without any locking.
    """

    def __init__(
        self,
        organization: str,
        projects: Sequence[str],
        token: str,
        *,
        settings: AppSettings | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        if not organization:
            raise MultiClientConfigError("organization cannot be empty")
        names = _validate_projects(projects)

        if client_factory is None:

            def client_factory(org: str, project: str, pat: str) -> ProjectClient:
                return AzureDevOpsClient(org, project, pat, settings=settings)

        clients: dict[str, ProjectClient] = {}
        for name in names:
            try:
                clients[name] = client_factory(organization, name, token)
            except ValueError as exc:
                raise MultiClientConfigError(
                    f"failed to create client for project {name!r}: {exc}"
                ) from exc

        self._organization = organization
        self._token = token
        self._clients: Mapping[str, ProjectClient] = MappingProxyType(clients)

    def get_org(self) -> str:
        return self._organization

    def projects(self) -> list[str]:
        """Registered project names. Order is not part of the contract."""

        return list(self._clients)

    def is_multi_project(self) -> bool:
        return len(self._clients) > 1

    def client_for(self, project: str) -> ProjectClient | None:
        return self._clients.get(project)

    async def _fan_out(
        self,
        call: Callable[[ProjectClient], Awaitable[list[T]]],
        *,
        self_describing: bool,
    ) -> list[T]:
        projects = list(self._clients)
        results = await asyncio.gather(
            *(call(self._clients[project]) for project in projects),
            return_exceptions=True,
        )

        outcomes: list[ProjectOutcome] = []
        for project, result in zip(projects, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                outcomes.append(ProjectOutcome(project=project, error=result))
                continue
            outcomes.append(
                ProjectOutcome(
                    project=project,
                    items=tag_items(result, project, self_describing=self_describing),
                )
            )
        return resolve_outcomes(outcomes)

    async def list_pipeline_runs(self, top: int) -> list[PipelineRun]:
        return await self._fan_out(
            lambda client: client.list_pipeline_runs(top),
            self_describing=PipelineRun.self_describes_project,
        )

    async def list_pull_requests(self, top: int) -> list[PullRequest]:
        return await self._fan_out(
            lambda client: client.list_pull_requests(top),
            self_describing=PullRequest.self_describes_project,
        )

    async def list_work_items(self, top: int) -> list[WorkItem]:
        return await self._fan_out(
            lambda client: client.list_work_items(top),
            self_describing=WorkItem.self_describes_project,
        )


def build_multi_client(settings: AppSettings) -> MultiClient:
    """Build a `MultiClient` from `AppSettings` (organization, projects, PAT)."""

    return MultiClient(
        settings.organization,
        settings.project_names(),
        settings.pat_value(),
        settings=settings,
    )
