"""Orchestrator - periodic sweep caller for headless deployments.

Coordinates recurring tasks:
    - Sweep of every persisted job type (AUTODIRECTOR_SWEEP_MINUTES)

Sweeps themselves are externally triggered by design; the orchestrator is
just an in-process periodic caller for deployments with no cron.
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from autodirector.core.logging import get_logger

logger = get_logger(__name__)

# How often the orchestrator checks for tasks ready to run (seconds)
_CHECK_INTERVAL_SECONDS = 30


class Orchestrator:
    """Background task coordinator."""

    def __init__(self, check_interval: float = _CHECK_INTERVAL_SECONDS) -> None:
        self._running: bool = False
        self._tasks: dict[str, dict] = {}
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._check_interval = check_interval

    def start(self) -> None:
        """Start orchestrator in a background daemon thread."""
        if self._running:
            logger.warning("Orchestrator already running")
            return

        self._running = True
        self._stop_event.clear()

        self._thread = threading.Thread(
            target=self._run_loop,
            name="autodirector-orchestrator",
            daemon=True,
        )
        self._thread.start()

        logger.info(
            "Orchestrator started (background)",
            extra={"context": {"tasks": list(self._tasks.keys())}},
        )

    def stop(self) -> None:
        """Stop orchestrator gracefully.

        Signals the background thread to stop and waits for it to finish
        (with a 10-second timeout).
        """
        if not self._running:
            return

        logger.info("Orchestrator stopping...")
        self._running = False
        self._stop_event.set()

        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=10)
            if self._thread.is_alive():
                logger.warning("Orchestrator thread did not stop within timeout")

        self._thread = None
        logger.info("Orchestrator stopped")

    def register_task(
        self,
        name: str,
        func: Callable[[], object],
        interval: timedelta,
    ) -> None:
        """Register a recurring task.

        Args:
            name: Unique task name (e.g. 'sweep_all')
            func: Callable to execute. Should take no arguments.
            interval: How often to run the task.
        """
        self._tasks[name] = {
            "func": func,
            "interval": interval,
            "last_run": None,
        }
        logger.info(
            "Task registered",
            extra={"context": {"name": name, "interval_seconds": interval.total_seconds()}},
        )

    def run_headless(self) -> None:
        """Run the loop on the calling thread until stopped or interrupted."""
        if self._running:
            logger.warning("Orchestrator already running")
            return

        self._running = True
        self._stop_event.clear()

        logger.info(
            "Orchestrator started (headless)",
            extra={"context": {"tasks": list(self._tasks.keys())}},
        )

        try:
            self._run_loop()
        except KeyboardInterrupt:
            logger.info("Orchestrator interrupted by keyboard")
        finally:
            self._running = False
            logger.info("Orchestrator headless mode stopped")

    def is_running(self) -> bool:
        """Check if orchestrator is running."""
        return self._running

    def run_due(self, now: Optional[datetime] = None) -> list[str]:
        """Run every task whose interval has elapsed. Returns their names.

        A failing task is logged and never stops the others.
        """
        now = now or datetime.now(timezone.utc)
        ran: list[str] = []

        for name, task_info in self._tasks.items():
            last_run = task_info["last_run"]
            interval = task_info["interval"]

            if last_run is not None and (now - last_run) < interval:
                continue

            logger.info(f"Running task: {name}", extra={"context": {"task": name}})
            try:
                task_info["func"]()
                logger.info(f"Task completed: {name}", extra={"context": {"task": name}})
            except Exception as exc:
                logger.error(
                    f"Task failed: {name}",
                    extra={"context": {"task": name, "error": str(exc)}},
                    exc_info=True,
                )
            task_info["last_run"] = datetime.now(timezone.utc)
            ran.append(name)

        return ran

    def _run_loop(self) -> None:
        logger.debug("Orchestrator loop started")

        while self._running:
            self.run_due()

            # Sleep in small increments so we can respond to stop signals quickly
            if self._stop_event.wait(timeout=self._check_interval):
                break

        logger.debug("Orchestrator loop ended")
