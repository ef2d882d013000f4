"""Background task management for AutoDirector.

Runs accepted workflow runs as asyncio tasks on the serving event loop so the
HTTP layer can return a run id immediately and poll later.

Usage:
    from autodirector.core.tasks import TaskManager

    manager = TaskManager()
    manager.submit(f"run-{run_id}", executor.run(plan, record))
"""

import asyncio
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Coroutine, Optional

from autodirector.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class TaskResult:
    """Result of a background task.

    Attributes:
        task_name: Name of the task
        success: Whether task completed successfully
        result: Return value if successful
        error: Exception if failed
        started_at: When task started
        completed_at: When task finished
    """

    task_name: str
    success: bool
    result: Any = None
    error: Optional[BaseException] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        """Calculate task duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None


class TaskManager:
    """Tracks background coroutines by name.

    Tasks are held by strong reference until they finish, so the event loop
    never garbage-collects a run that is still executing. Only the most
    recent ``max_results`` outcomes are kept; older ones are evicted.
    """

    def __init__(self, max_results: int = 100) -> None:
        """Initialize task manager.

        Args:
            max_results: How many finished TaskResults to keep
        """
        self.max_results = max_results
        self._tasks: dict[str, asyncio.Task] = {}
        self._results: OrderedDict[str, TaskResult] = OrderedDict()

    def _remember(self, outcome: TaskResult) -> None:
        self._results.pop(outcome.task_name, None)
        self._results[outcome.task_name] = outcome
        while len(self._results) > self.max_results:
            self._results.popitem(last=False)

    def submit(
        self,
        task_name: str,
        coro: Coroutine[Any, Any, Any],
        callback: Optional[Callable[[TaskResult], None]] = None,
    ) -> asyncio.Task:
        """Schedule a coroutine on the running event loop.

        Args:
            task_name: Name for tracking
            coro: Coroutine to run
            callback: Function to call with TaskResult when complete

        Returns:
            The scheduled asyncio.Task
        """
        started_at = datetime.now()

        async def wrapper() -> TaskResult:
            try:
                result = await coro
                outcome = TaskResult(
                    task_name=task_name,
                    success=True,
                    result=result,
                    started_at=started_at,
                    completed_at=datetime.now(),
                )
            except Exception as e:
                logger.error(f"Task {task_name} failed: {e}", exc_info=True)
                outcome = TaskResult(
                    task_name=task_name,
                    success=False,
                    error=e,
                    started_at=started_at,
                    completed_at=datetime.now(),
                )
            self._remember(outcome)
            self._tasks.pop(task_name, None)
            if callback:
                callback(outcome)
            return outcome

        task = asyncio.get_running_loop().create_task(wrapper(), name=task_name)
        self._tasks[task_name] = task
        return task

    def is_running(self, task_name: str) -> bool:
        """Check if a task is currently running."""
        task = self._tasks.get(task_name)
        return task is not None and not task.done()

    def result(self, task_name: str) -> Optional[TaskResult]:
        """Result of a finished task, or None while running/unknown."""
        return self._results.get(task_name)

    async def wait(self) -> None:
        """Wait for every in-flight task to finish."""
        pending = list(self._tasks.values())
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def shutdown(self) -> None:
        """Drain in-flight tasks and forget finished results."""
        await self.wait()
        self._tasks.clear()
        self._results.clear()
