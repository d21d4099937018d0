import asyncio

from scheduler import SchedulerManager
from sync import SyncCoordinator


def test_disabled_interval_does_not_start(fake_source):
    manager = SchedulerManager(SyncCoordinator(fake_source))
    assert manager.interval_minutes == 0
    manager.start()
    assert not manager.scheduler.running


def test_job_requests_a_full_resync(fake_source):
    async def scenario():
        coordinator = SyncCoordinator(fake_source)
        await coordinator.start()
        manager = SchedulerManager(coordinator)
        await manager._run_job("test")
        await asyncio.sleep(0)
        await coordinator.refresh_all()
        await coordinator.aclose()

    asyncio.run(scenario())
    # start, scheduled resync, then the explicit refresh_all
    assert fake_source.fetch_calls["categories"] == 3


def test_job_retries_a_failed_subscription(fake_source):
    fake_source.subscribe_failures["incomes"] = "realtime unavailable"

    async def scenario():
        coordinator = SyncCoordinator(fake_source)
        await coordinator.start()
        before = coordinator.incomes.subscribed
        del fake_source.subscribe_failures["incomes"]
        await SchedulerManager(coordinator)._run_job("test")
        after = (coordinator.incomes.subscribed, coordinator.incomes.has_error)
        await coordinator.aclose()
        return before, after

    before, after = asyncio.run(scenario())
    assert before is False
    assert after == (True, False)
