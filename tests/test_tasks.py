"""Tests for background task tracking."""

import asyncio

from category_notify.metrics import MetricsCollector
from category_notify.tasks import BackgroundTasks


async def test_drain_waits_for_tasks():
    background = BackgroundTasks()
    done = []

    async def work():
        await asyncio.sleep(0.01)
        done.append(True)

    background.spawn(work(), name="work")
    assert len(background) == 1

    await background.drain()
    assert done == [True]
    assert len(background) == 0


async def test_failures_do_not_escape():
    background = BackgroundTasks()

    async def boom():
        raise RuntimeError("boom")

    task = background.spawn(boom(), name="boom")
    await background.drain()

    assert task.done()
    assert isinstance(task.exception(), RuntimeError)


async def test_drain_includes_tasks_spawned_while_draining():
    background = BackgroundTasks()
    done = []

    async def child():
        done.append("child")

    async def parent():
        await asyncio.sleep(0)
        background.spawn(child(), name="child")

    background.spawn(parent(), name="parent")
    await background.drain()

    assert done == ["child"]


async def test_reports_running_tasks_as_gauge():
    metrics = MetricsCollector()
    background = BackgroundTasks(metrics=metrics)
    release = asyncio.Event()

    background.spawn(release.wait(), name="wait")
    assert metrics.get("background_tasks") == 1

    release.set()
    await background.drain()
    assert metrics.get("background_tasks") == 0
