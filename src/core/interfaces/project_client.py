"""Contrato del cliente por proyecto.

Por qué Protocol:
- Define un contrato estructural (duck typing) sin herencia rígida.
- El agregador multi-proyecto puede usar el cliente real de Azure DevOps o
  un doble en memoria en los tests, sin acoplarse a HTTP.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from core.domain.models import BuildLog, PipelineRun, PullRequest, Thread, Timeline, WorkItem


@runtime_checkable
class ProjectClient(Protocol):
    """Contrato mínimo de un cliente ligado a un único proyecto.

    Reglas de diseño:
    - Una corrutina por tipo de entidad; `top` limita cada llamada.
    - Los fallos se propagan como excepciones (el agregador decide la política).
    """

    @property
    def project(self) -> str: ...

    async def list_pipeline_runs(self, top: int) -> list[PipelineRun]: ...

    async def list_pull_requests(self, top: int) -> list[PullRequest]: ...

    async def list_work_items(self, top: int) -> list[WorkItem]: ...


@runtime_checkable
class ProjectDetailClient(ProjectClient, Protocol):
    """Operaciones de detalle de un proyecto (logs de build, hilos y votos de PR).

    Se piden vía `MultiClient.client_for(project)`: nunca se agregan.
    """

    async def get_build_timeline(self, build_id: int) -> Timeline: ...

    async def list_build_logs(self, build_id: int) -> list[BuildLog]: ...

    async def get_build_log_content(self, build_id: int, log_id: int) -> str: ...

    async def get_pr_threads(self, repository_id: str, pull_request_id: int) -> list[Thread]: ...

    async def vote_pull_request(self, repository_id: str, pull_request_id: int, vote: int) -> None: ...

    async def add_pr_comment(self, repository_id: str, pull_request_id: int, content: str) -> Thread: ...
