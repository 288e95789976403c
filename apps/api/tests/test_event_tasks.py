import asyncio
import logging

import pytest

from services.event_tasks import EventTaskRunner


@pytest.mark.asyncio
async def test_submitted_tasks_run_and_are_untracked_when_done():
    runner = EventTaskRunner(grace_seconds=1)
    runner.start()
    seen = []

    async def work():
        seen.append("done")

    runner.submit(work())
    await runner.drain()

    assert seen == ["done"]
    assert runner.pending == 0
    await runner.stop()


@pytest.mark.asyncio
async def test_task_exceptions_are_logged_not_raised(caplog):
    runner = EventTaskRunner(grace_seconds=1)
    runner.start()

    async def boom():
        raise RuntimeError("processing exploded")

    with caplog.at_level(logging.ERROR, logger="services.event_tasks"):
        runner.submit(boom(), name="webhook-delivery")
        await runner.drain()
        await asyncio.sleep(0)

    assert runner.pending == 0
    assert any("webhook-delivery" in record.getMessage() for record in caplog.records)
    await runner.stop()


@pytest.mark.asyncio
async def test_stop_waits_for_in_flight_work():
    runner = EventTaskRunner(grace_seconds=2)
    runner.start()
    finished = []

    async def slow():
        await asyncio.sleep(0.05)
        finished.append(True)

    runner.submit(slow())
    await runner.stop()

    assert finished == [True]


@pytest.mark.asyncio
async def test_stop_cancels_work_past_grace_period():
    runner = EventTaskRunner(grace_seconds=0.01)
    runner.start()
    started = asyncio.Event()

    async def hang():
        started.set()
        await asyncio.sleep(30)

    task = runner.submit(hang())
    await started.wait()
    await runner.stop()

    assert task.cancelled()
    assert runner.pending == 0


@pytest.mark.asyncio
async def test_submit_after_stop_is_rejected():
    runner = EventTaskRunner()
    runner.start()
    await runner.stop()

    async def work():
        return None

    with pytest.raises(RuntimeError):
        runner.submit(work())
