"""Cliente REST de Azure DevOps ligado a un proyecto.

Responsabilidad:
- Autenticación Basic con PAT y `api-version` fija.
- Traducir respuestas HTTP a modelos del dominio o a errores tipados.

Cada llamada abre su propio `httpx.AsyncClient` (vía `build_async_client`),
así varias corrutinas pueden usar el mismo cliente en paralelo sin estado
compartido de conexión.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from adapters.azdevops.errors import AzureDevOpsError, AzureDevOpsParseError, http_error_for
from adapters.http_client import basic_auth_header, build_async_client
from core.config import AppSettings
from core.domain.models import (
    BuildLog,
    PipelineRun,
    PullRequest,
    Thread,
    Timeline,
    WorkItem,
)

logger = logging.getLogger(__name__)

API_VERSION = "7.1"

# Azure DevOps acepta hasta 200 ids por petición de work items.
WORK_ITEMS_BATCH_SIZE = 200
WORK_ITEMS_MAX_TOP = 50

_WORK_ITEM_FIELDS = (
    "System.Id",
    "System.Title",
    "System.State",
    "System.WorkItemType",
    "System.AssignedTo",
    "Microsoft.VSTS.Common.Priority",
    "System.ChangedDate",
    "System.IterationPath",
    "System.Description",
)

MY_ACTIVE_WORK_ITEMS_QUERY = """SELECT [System.Id] FROM WorkItems
WHERE [System.AssignedTo] = @Me
  AND [System.State] <> 'Closed'
  AND [System.State] <> 'Removed'
ORDER BY [System.ChangedDate] DESC"""

T = TypeVar("T", bound=BaseModel)


class AzureDevOpsClient:
    """Cliente de un único proyecto (`dev.azure.com/<org>/<project>`)."""

    _host = "https://dev.azure.com"

    def __init__(
        self,
        organization: str,
        project: str,
        token: str,
        *,
        settings: AppSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        base_url: str | None = None,
    ) -> None:
        if not organization:
            raise ValueError("organization cannot be empty")
        if not project:
            raise ValueError("project cannot be empty")
        if not token:
            raise ValueError("PAT cannot be empty")

        self._organization = organization
        self._project = project
        self._token = token
        self._settings = settings or AppSettings()
        self._transport = transport
        host = (base_url or self._host).rstrip("/")
        self._org_url = f"{host}/{quote(organization)}/_apis"
        self._base_url = f"{host}/{quote(organization)}/{quote(project)}/_apis"
        self._user_id: str | None = None

    @property
    def organization(self) -> str:
        return self._organization

    @property
    def project(self) -> str:
        return self._project

    def __repr__(self) -> str:
        return f"AzureDevOpsClient(organization={self._organization!r}, project={self._project!r})"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        accept: str | None = None,
    ) -> httpx.Response:
        headers = {"Authorization": basic_auth_header(self._token)}
        if accept:
            headers["Accept"] = accept
        query = {"api-version": API_VERSION, **(params or {})}

        try:
            async with build_async_client(
                self._settings, extra_headers=headers, transport=self._transport
            ) as client:
                response = await client.request(method, url, params=query, json=json)
        except httpx.HTTPError as exc:
            raise AzureDevOpsError(f"failed to execute request: {exc}") from exc

        if not response.is_success:
            logger.debug("%s %s -> HTTP %s", method, url, response.status_code)
            raise http_error_for(response.status_code)
        return response

    async def _get(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self._request("GET", self._base_url + path, **kwargs)

    @staticmethod
    def _json(response: httpx.Response, what: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise AzureDevOpsParseError(
                f"failed to parse Azure DevOps API response for {what}: {exc}"
            ) from exc

    def _parse_model(self, response: httpx.Response, model: type[T], what: str) -> T:
        data = self._json(response, what)
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise AzureDevOpsParseError(
                f"failed to parse Azure DevOps API response for {what}: {exc}. "
                "This may indicate an API structure change"
            ) from exc

    def _parse_value_list(self, response: httpx.Response, model: type[T], what: str) -> list[T]:
        data = self._json(response, what)
        if not isinstance(data, dict):
            raise AzureDevOpsParseError(f"unexpected payload for {what}: expected an object")
        try:
            return TypeAdapter(list[model]).validate_python(data.get("value") or [])
        except ValidationError as exc:
            raise AzureDevOpsParseError(
                f"failed to parse Azure DevOps API response for {what}: {exc}. "
                "This may indicate an API structure change"
            ) from exc

    # ------------------------------------------------------------------
    # Pipelines
    # ------------------------------------------------------------------

    async def list_pipeline_runs(self, top: int) -> list[PipelineRun]:
        """Ejecuciones más recientes (orden de cola descendente)."""

        response = await self._get(
            "/build/builds",
            params={"$top": top, "queryOrder": "queueTimeDescending"},
        )
        return self._parse_value_list(response, PipelineRun, "pipeline runs")

    async def get_build_timeline(self, build_id: int) -> Timeline:
        response = await self._get(f"/build/builds/{build_id}/timeline")
        return self._parse_model(response, Timeline, "build timeline")

    async def list_build_logs(self, build_id: int) -> list[BuildLog]:
        response = await self._get(f"/build/builds/{build_id}/logs")
        return self._parse_value_list(response, BuildLog, "build logs")

    async def get_build_log_content(self, build_id: int, log_id: int) -> str:
        response = await self._get(f"/build/builds/{build_id}/logs/{log_id}", accept="text/plain")
        return response.text

    # ------------------------------------------------------------------
    # Pull requests
    # ------------------------------------------------------------------

    async def list_pull_requests(self, top: int) -> list[PullRequest]:
        """PRs activos de todos los repositorios del proyecto."""

        response = await self._get(
            "/git/pullrequests",
            params={"$top": top, "searchCriteria.status": "active"},
        )
        return self._parse_value_list(response, PullRequest, "pull requests")

    async def get_pr_threads(self, repository_id: str, pull_request_id: int) -> list[Thread]:
        response = await self._get(
            f"/git/repositories/{repository_id}/pullRequests/{pull_request_id}/threads"
        )
        return self._parse_value_list(response, Thread, "PR threads")

    async def get_current_user_id(self) -> str:
        """Id del usuario autenticado (nivel organización, cacheado)."""

        if self._user_id:
            return self._user_id

        response = await self._request("GET", f"{self._org_url}/connectionData")
        data = self._json(response, "connection data")
        user_id = ""
        if isinstance(data, dict):
            user = data.get("authenticatedUser")
            if isinstance(user, dict):
                user_id = str(user.get("id") or "")
        if not user_id:
            raise AzureDevOpsParseError("connection data did not contain a user ID")

        self._user_id = user_id
        return user_id

    async def vote_pull_request(self, repository_id: str, pull_request_id: int, vote: int) -> None:
        user_id = await self.get_current_user_id()
        await self._request(
            "PUT",
            self._base_url
            + f"/git/repositories/{repository_id}/pullRequests/{pull_request_id}/reviewers/{user_id}",
            json={"vote": vote},
        )

    async def add_pr_comment(self, repository_id: str, pull_request_id: int, content: str) -> Thread:
        response = await self._request(
            "POST",
            self._base_url + f"/git/repositories/{repository_id}/pullRequests/{pull_request_id}/threads",
            json={
                "comments": [{"parentCommentId": 0, "content": content, "commentType": "text"}],
                "status": "active",
            },
        )
        return self._parse_model(response, Thread, "thread")

    # ------------------------------------------------------------------
    # Work items
    # ------------------------------------------------------------------

    async def query_work_item_ids(self, query: str, top: int) -> list[int]:
        response = await self._request(
            "POST",
            self._base_url + "/wit/wiql",
            params={"$top": top},
            json={"query": query},
        )
        data = self._json(response, "work item query")
        refs = data.get("workItems") if isinstance(data, dict) else None
        if not isinstance(refs, list):
            raise AzureDevOpsParseError("unexpected payload for work item query: missing workItems")
        try:
            return [int(ref["id"]) for ref in refs if isinstance(ref, dict) and "id" in ref]
        except (TypeError, ValueError) as exc:
            raise AzureDevOpsParseError(
                f"failed to parse Azure DevOps API response for work item query: {exc}"
            ) from exc

    async def get_work_items(self, ids: list[int]) -> list[WorkItem]:
        if not ids:
            return []

        items: list[WorkItem] = []
        for start in range(0, len(ids), WORK_ITEMS_BATCH_SIZE):
            batch = ids[start : start + WORK_ITEMS_BATCH_SIZE]
            response = await self._get(
                "/wit/workitems",
                params={
                    "ids": ",".join(str(i) for i in batch),
                    "fields": ",".join(_WORK_ITEM_FIELDS),
                },
            )
            items.extend(self._parse_value_list(response, WorkItem, "work items"))
        return items

    async def list_work_items(self, top: int) -> list[WorkItem]:
        """Work items activos asignados al usuario del PAT (máximo 50)."""

        top = min(top, WORK_ITEMS_MAX_TOP)
        ids = await self.query_work_item_ids(MY_ACTIVE_WORK_ITEMS_QUERY, top)
        if not ids:
            return []
        return await self.get_work_items(ids)
