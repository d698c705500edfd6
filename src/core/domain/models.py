"""Modelos del dominio (Pydantic v2).

Por qué Pydantic en el dominio:
- Nos da validación estricta y documentación autocontenida (Field) sin acoplar
  el Core a librerías de I/O.
- Los alias mapean 1:1 los payloads JSON de Azure DevOps (camelCase y
  referencias `System.*` de work items).

Nota:
- Estos modelos describen *qué* es la información, no *cómo* se obtiene.
- Cada entidad agregable declara `self_describes_project` y `sort_timestamp`:
  el agregador multi-proyecto solo depende de esas dos capacidades.
"""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict


def _short_ref(ref: str, prefixes: tuple[str, ...] = ("refs/heads/",)) -> str:
    for prefix in prefixes:
        if ref.startswith(prefix):
            return ref[len(prefix) :]
    return ref


def format_duration(seconds: float) -> str:
    """Duración legible sin milisegundos (`42s`, `3m5s`, `1h2m3s`)."""

    total = int(seconds)
    if total < 60:
        return f"{total}s"
    if total < 3600:
        return f"{total // 60}m{total % 60}s"
    return f"{total // 3600}h{(total % 3600) // 60}m{total % 60}s"


class _ApiModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class Identity(_ApiModel):
    id: str = ""
    display_name: str = Field(default="", alias="displayName")
    unique_name: str = Field(
        default="",
        alias="uniqueName",
        description="Normalmente el email del usuario.",
    )


class ProjectRef(_ApiModel):
    id: str = ""
    name: str = ""


class Repository(_ApiModel):
    id: str = ""
    name: str = ""


class PipelineDefinition(_ApiModel):
    id: int = 0
    name: str = ""


class Link(_ApiModel):
    href: str = ""


class Links(_ApiModel):
    web: Link = Field(default_factory=Link)


# ---------------------------------------------------------------------------
# Pipelines
# ---------------------------------------------------------------------------


class PipelineRun(_ApiModel):
    """Ejecución de pipeline (build).

    El payload de Azure DevOps ya incluye `project`, así que el agregador no
    necesita estampar el proyecto de origen.
    """

    self_describes_project: ClassVar[bool] = True

    id: int
    build_number: str = Field(default="", alias="buildNumber")
    status: str = Field(
        default="",
        description="inProgress, completed, canceling, postponed, notStarted.",
    )
    result: str = Field(
        default="",
        description="succeeded, failed, canceled, partiallySucceeded, none.",
    )
    source_branch: str = Field(default="", alias="sourceBranch")
    source_version: str = Field(default="", alias="sourceVersion")
    queue_time: datetime = Field(..., alias="queueTime")
    start_time: datetime | None = Field(default=None, alias="startTime")
    finish_time: datetime | None = Field(default=None, alias="finishTime")
    definition: PipelineDefinition = Field(default_factory=PipelineDefinition)
    project: ProjectRef = Field(default_factory=ProjectRef)
    links: Links = Field(default_factory=Links, alias="_links")

    @property
    def sort_timestamp(self) -> datetime:
        return self.queue_time

    @property
    def origin_project(self) -> str:
        return self.project.name

    @property
    def branch_short_name(self) -> str:
        return _short_ref(self.source_branch, ("refs/heads/", "refs/tags/"))

    def duration(self) -> str:
        if self.start_time is None or self.finish_time is None:
            return "-"
        return format_duration((self.finish_time - self.start_time).total_seconds())

    def timestamp(self) -> str:
        return self.queue_time.strftime("%Y-%m-%d %H:%M")


class TimelineIssue(_ApiModel):
    type: str = ""
    message: str = ""


class LogReference(_ApiModel):
    id: int = 0
    type: str = ""
    url: str = ""


class TimelineRecord(_ApiModel):
    id: str
    parent_id: str | None = Field(default=None, alias="parentId")
    type: str = Field(default="", description="Stage, Job, Task, Phase, Checkpoint.")
    name: str = ""
    state: str = ""
    result: str | None = None
    order: int = 0
    start_time: datetime | None = Field(default=None, alias="startTime")
    finish_time: datetime | None = Field(default=None, alias="finishTime")
    log: LogReference | None = None
    issues: list[TimelineIssue] = Field(default_factory=list)


class Timeline(_ApiModel):
    id: str = ""
    change_id: int = Field(default=0, alias="changeId")
    records: list[TimelineRecord] = Field(default_factory=list)


class BuildLog(_ApiModel):
    id: int
    type: str = ""
    url: str = ""
    line_count: int = Field(default=0, alias="lineCount")
    created_on: datetime | None = Field(default=None, alias="createdOn")
    last_changed_on: datetime | None = Field(default=None, alias="lastChangedOn")


# ---------------------------------------------------------------------------
# Pull requests
# ---------------------------------------------------------------------------

VOTE_APPROVE = 10
VOTE_APPROVE_WITH_SUGGESTIONS = 5
VOTE_NO_VOTE = 0
VOTE_WAIT_FOR_AUTHOR = -5
VOTE_REJECT = -10

_VOTE_DESCRIPTIONS = {
    VOTE_APPROVE: "Approved",
    VOTE_APPROVE_WITH_SUGGESTIONS: "Approved with suggestions",
    VOTE_NO_VOTE: "No vote",
    VOTE_WAIT_FOR_AUTHOR: "Waiting for author",
    VOTE_REJECT: "Rejected",
}


class Reviewer(_ApiModel):
    id: str = ""
    display_name: str = Field(default="", alias="displayName")
    vote: int = 0

    def vote_description(self) -> str:
        return _VOTE_DESCRIPTIONS.get(self.vote, "Unknown")


class PullRequest(_ApiModel):
    """Pull request activo.

    La API no indica el proyecto: `project_name` lo estampa el agregador.
    """

    self_describes_project: ClassVar[bool] = False

    id: int = Field(..., alias="pullRequestId")
    title: str = ""
    description: str = ""
    status: str = Field(default="", description="active, completed, abandoned.")
    creation_date: datetime = Field(..., alias="creationDate")
    source_ref_name: str = Field(default="", alias="sourceRefName")
    target_ref_name: str = Field(default="", alias="targetRefName")
    is_draft: bool = Field(default=False, alias="isDraft")
    created_by: Identity = Field(default_factory=Identity, alias="createdBy")
    repository: Repository = Field(default_factory=Repository)
    reviewers: list[Reviewer] = Field(default_factory=list)
    project_name: str | None = Field(
        default=None,
        description="Proyecto de origen (lo asigna el agregador, no la API).",
    )

    @property
    def sort_timestamp(self) -> datetime:
        return self.creation_date

    @property
    def origin_project(self) -> str:
        return self.project_name or ""

    @property
    def source_branch_short_name(self) -> str:
        return _short_ref(self.source_ref_name)

    @property
    def target_branch_short_name(self) -> str:
        return _short_ref(self.target_ref_name)


class ThreadPosition(_ApiModel):
    line: int = 0
    offset: int = 0


class ThreadContext(_ApiModel):
    file_path: str = Field(default="", alias="filePath")
    right_file_start: ThreadPosition | None = Field(default=None, alias="rightFileStart")
    right_file_end: ThreadPosition | None = Field(default=None, alias="rightFileEnd")


class Comment(_ApiModel):
    id: int = 0
    parent_comment_id: int = Field(default=0, alias="parentCommentId")
    content: str = ""
    published_date: datetime | None = Field(default=None, alias="publishedDate")
    comment_type: str = Field(default="", alias="commentType")
    author: Identity = Field(default_factory=Identity)


_THREAD_STATUS = {
    "active": "Active",
    "fixed": "Resolved",
    "wontFix": "Won't fix",
    "closed": "Closed",
    "pending": "Pending",
}


class Thread(_ApiModel):
    id: int = 0
    status: str = ""
    thread_context: ThreadContext | None = Field(default=None, alias="threadContext")
    comments: list[Comment] = Field(default_factory=list)
    is_deleted: bool = Field(default=False, alias="isDeleted")
    published_date: datetime | None = Field(default=None, alias="publishedDate")

    def is_code_comment(self) -> bool:
        return self.thread_context is not None and bool(self.thread_context.file_path)

    def status_description(self) -> str:
        return _THREAD_STATUS.get(self.status, "Unknown")


# ---------------------------------------------------------------------------
# Work items
# ---------------------------------------------------------------------------

_TYPE_ICONS = {
    "Bug": "🐛",
    "Task": "📋",
    "User Story": "📖",
    "Feature": "⭐",
    "Epic": "🎯",
    "Issue": "❗",
}


class WorkItemFields(_ApiModel):
    title: str = Field(default="", alias="System.Title")
    state: str = Field(default="", alias="System.State")
    work_item_type: str = Field(default="", alias="System.WorkItemType")
    assigned_to: Identity | None = Field(default=None, alias="System.AssignedTo")
    priority: int = Field(default=0, alias="Microsoft.VSTS.Common.Priority")
    changed_date: datetime = Field(..., alias="System.ChangedDate")
    iteration_path: str = Field(default="", alias="System.IterationPath")
    description: str = Field(default="", alias="System.Description")


class WorkItem(_ApiModel):
    """Work item asignado al usuario actual.

    Igual que los PRs, no trae el proyecto: lo estampa el agregador.
    """

    self_describes_project: ClassVar[bool] = False

    id: int
    rev: int = 0
    url: str = ""
    fields: WorkItemFields
    project_name: str | None = Field(
        default=None,
        description="Proyecto de origen (lo asigna el agregador, no la API).",
    )

    @property
    def sort_timestamp(self) -> datetime:
        return self.fields.changed_date

    @property
    def origin_project(self) -> str:
        return self.project_name or ""

    def type_icon(self) -> str:
        return _TYPE_ICONS.get(self.fields.work_item_type, "📄")

    def state_icon(self) -> str:
        # Flujo: New -> Active -> Resolved/Ready for Test -> Closed
        state = self.fields.state.lower()
        if state == "active":
            return "◐"
        if state == "resolved" or "ready" in state:
            return "●"
        if state == "closed":
            return "✓"
        if state == "removed":
            return "✗"
        return "○"

    def assigned_to_name(self) -> str:
        if self.fields.assigned_to is None:
            return "-"
        return self.fields.assigned_to.display_name
