"""Dashboard refresh state.

Keeps the UI-facing state of the live dashboard out of the CLI layer: one
`FeedState` per entity kind (error bookkeeping plus last known good data)
and a `DashboardPoller` that refreshes all feeds from a `MultiClient`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from core.services.multi_project import MultiClient

logger = logging.getLogger(__name__)

MAX_RECOVERABLE_ERRORS = 5

DEFAULT_INTERVAL_SECONDS = 30.0
MIN_INTERVAL_SECONDS = 5.0


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass
class FeedState:
    """State of one dashboard feed (pipelines, PRs or work items)."""

    name: str
    items: list[Any] = field(default_factory=list)
    error: BaseException | None = None
    consecutive_errors: int = 0
    last_error_at: datetime | None = None
    last_success_at: datetime | None = None

    def process(
        self,
        items: list[Any] | None = None,
        error: BaseException | None = None,
    ) -> list[Any]:
        """Record a refresh outcome and return what the UI should display."""

        if error is not None:
            self.error = error
            self.consecutive_errors += 1
            self.last_error_at = datetime.now(timezone.utc)
            return list(self.items)

        self.items = list(items or [])
        self.error = None
        self.consecutive_errors = 0
        self.last_success_at = datetime.now(timezone.utc)
        return list(self.items)

    @property
    def has_error(self) -> bool:
        return self.error is not None

    @property
    def loaded(self) -> bool:
        return self.last_success_at is not None

    def is_recoverable(self) -> bool:
        return self.consecutive_errors <= MAX_RECOVERABLE_ERRORS

    def recovery_message(self) -> str:
        if self.error is None:
            return ""
        if self.is_recoverable():
            return "Connection issue. Retrying..."
        return "Connection failed. Check your network and press Ctrl+C to exit."


def clamp_interval(seconds: float) -> float:
    if seconds <= 0:
        return DEFAULT_INTERVAL_SECONDS
    return max(seconds, MIN_INTERVAL_SECONDS)


class DashboardPoller:
    """Refreshes the three feeds of the dashboard from a `MultiClient`."""

    def __init__(self, client: MultiClient, *, top: int, interval: float) -> None:
        self.client = client
        self.top = top
        self.interval = clamp_interval(interval)
        self.pipelines = FeedState("pipelines")
        self.pull_requests = FeedState("pull_requests")
        self.work_items = FeedState("work_items")

    @property
    def feeds(self) -> tuple[FeedState, FeedState, FeedState]:
        return (self.pipelines, self.pull_requests, self.work_items)

    @property
    def state(self) -> ConnectionState:
        if any(feed.has_error for feed in self.feeds):
            return ConnectionState.ERROR
        if all(feed.loaded for feed in self.feeds):
            return ConnectionState.CONNECTED
        return ConnectionState.CONNECTING

    async def refresh(self) -> None:
        results = await asyncio.gather(
            self.client.list_pipeline_runs(self.top),
            self.client.list_pull_requests(self.top),
            self.client.list_work_items(self.top),
            return_exceptions=True,
        )
        for feed, result in zip(self.feeds, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.debug("refresh of %s failed: %s", feed.name, result)
                feed.process(error=result)
            else:
                feed.process(items=result)
