"""Tests for background task management."""

import asyncio

from autodirector.core.tasks import TaskManager


class TestTaskManager:
    """Test TaskManager class."""

    def test_submit_records_result(self):
        """A finished task leaves a successful TaskResult."""
        manager = TaskManager()

        async def job():
            return 42

        async def main():
            manager.submit("answer", job())
            await manager.wait()

        asyncio.run(main())
        result = manager.result("answer")
        assert result.success is True
        assert result.result == 42
        assert result.duration_seconds is not None

    def test_failure_is_captured(self):
        """Exceptions become a failed TaskResult, not a crash."""
        manager = TaskManager()

        async def job():
            raise RuntimeError("boom")

        async def main():
            manager.submit("bad", job())
            await manager.wait()

        asyncio.run(main())
        result = manager.result("bad")
        assert result.success is False
        assert isinstance(result.error, RuntimeError)

    def test_is_running_until_done(self):
        """is_running is True while the task is in flight."""
        manager = TaskManager()
        seen = []

        async def job(gate: asyncio.Event):
            await gate.wait()

        async def main():
            gate = asyncio.Event()
            manager.submit("slow", job(gate))
            seen.append(manager.is_running("slow"))
            gate.set()
            await manager.wait()
            seen.append(manager.is_running("slow"))

        asyncio.run(main())
        assert seen == [True, False]

    def test_callback_invoked(self):
        """The callback receives the TaskResult."""
        manager = TaskManager()
        received = []

        async def job():
            return "ok"

        async def main():
            manager.submit("cb", job(), callback=received.append)
            await manager.wait()

        asyncio.run(main())
        assert [r.result for r in received] == ["ok"]

    def test_shutdown_forgets_results(self):
        """shutdown drains tasks and clears results."""
        manager = TaskManager()

        async def job():
            return 1

        async def main():
            manager.submit("one", job())
            await manager.shutdown()

        asyncio.run(main())
        assert manager.result("one") is None

    def test_results_are_bounded(self):
        """Only the newest max_results outcomes are kept."""
        manager = TaskManager(max_results=3)

        async def job(n):
            return n

        async def main():
            for n in range(100):
                manager.submit(f"run-{n}", job(n))
            await manager.wait()

        asyncio.run(main())
        assert len(manager._results) == 3
        assert manager.result("run-0") is None
        assert manager.result("run-99").result == 99

    def test_shutdown_drains_in_flight(self):
        """shutdown waits for running tasks before returning."""
        manager = TaskManager()
        finished = []

        async def job():
            await asyncio.sleep(0.01)
            finished.append(True)

        async def main():
            manager.submit("slow", job())
            await manager.shutdown()

        asyncio.run(main())
        assert finished == [True]
        assert manager.is_running("slow") is False
