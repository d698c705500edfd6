from __future__ import annotations

import asyncio

import pytest

from conftest import FakeProjectClient, factory_for, make_pr, make_run, minutes_ago
from core.services.dashboard import (
    DEFAULT_INTERVAL_SECONDS,
    MAX_RECOVERABLE_ERRORS,
    MIN_INTERVAL_SECONDS,
    ConnectionState,
    DashboardPoller,
    FeedState,
    clamp_interval,
)
from core.services.multi_project import MultiClient


def test_feed_keeps_last_known_good_items_on_error() -> None:
    feed = FeedState("pipelines")
    assert feed.process(items=["a", "b"]) == ["a", "b"]

    shown = feed.process(error=RuntimeError("offline"))

    assert shown == ["a", "b"]
    assert feed.has_error
    assert feed.consecutive_errors == 1
    assert feed.recovery_message() == "Connection issue. Retrying..."


def test_feed_becomes_unrecoverable_after_threshold() -> None:
    feed = FeedState("pipelines")
    for _ in range(MAX_RECOVERABLE_ERRORS):
        feed.process(error=RuntimeError("offline"))
    assert feed.is_recoverable()

    feed.process(error=RuntimeError("offline"))

    assert not feed.is_recoverable()
    assert "Connection failed" in feed.recovery_message()


def test_feed_success_resets_error_state() -> None:
    feed = FeedState("work_items")
    feed.process(error=RuntimeError("offline"))
    feed.process(items=[])

    assert not feed.has_error
    assert feed.consecutive_errors == 0
    assert feed.loaded
    assert feed.recovery_message() == ""


@pytest.mark.parametrize(
    ("requested", "expected"),
    [(0, DEFAULT_INTERVAL_SECONDS), (-3, DEFAULT_INTERVAL_SECONDS), (1, MIN_INTERVAL_SECONDS), (90, 90)],
)
def test_clamp_interval(requested: float, expected: float) -> None:
    assert clamp_interval(requested) == expected


def test_poller_refresh_updates_every_feed() -> None:
    fakes = {
        "Alpha": FakeProjectClient(
            "Alpha",
            runs=[make_run(1, project="Alpha", queued=minutes_ago(1))],
            pull_requests=[make_pr(2, created=minutes_ago(2))],
        ),
        "Beta": FakeProjectClient("Beta", error=RuntimeError("down")),
    }
    client = MultiClient("contoso", list(fakes), "pat", client_factory=factory_for(fakes))
    poller = DashboardPoller(client, top=10, interval=2)

    assert poller.interval == MIN_INTERVAL_SECONDS
    assert poller.state is ConnectionState.CONNECTING

    asyncio.run(poller.refresh())

    assert poller.state is ConnectionState.CONNECTED
    assert [run.id for run in poller.pipelines.items] == [1]
    assert [pr.project_name for pr in poller.pull_requests.items] == ["Alpha"]
    assert poller.work_items.items == []


def test_poller_reports_error_when_every_project_fails() -> None:
    fakes = {"Alpha": FakeProjectClient("Alpha", error=RuntimeError("down"))}
    client = MultiClient("contoso", ["Alpha"], "pat", client_factory=factory_for(fakes))
    poller = DashboardPoller(client, top=5, interval=30)

    asyncio.run(poller.refresh())

    assert poller.state is ConnectionState.ERROR
    assert all(feed.consecutive_errors == 1 for feed in poller.feeds)
