"""Executor: runs a plan's steps in order against one RunContext.

State machine:
    running -> done   (every step dispatched without a fault)
    running -> error  (a step fault, or an unexpected handler exception)

Unknown step kinds are logged and skipped; they never fail a run. A step
fault stops the run: later steps never start. Nothing raised by a handler
escapes run(); the outcome is always recorded on the RunRecord.

Usage:
    executor = Executor(handlers.table(), InMemoryRunRepository())
    record = await executor.run(plan)          # inline
    run_id = executor.execute(plan)            # background, poll runs.get()
"""

from typing import Optional

from autodirector.core.exceptions import StepFault
from autodirector.core.logging import get_logger
from autodirector.core.tasks import TaskManager
from autodirector.engine.context import BrowserFactory, RunContext, RunRecord, RunStatus
from autodirector.engine.handlers import Handler
from autodirector.engine.runs import RunRepository
from autodirector.engine.steps import DIRECT_KINDS, Plan, Step, StepKind

logger = get_logger(__name__)


class Executor:
    """Sequential step dispatcher."""

    def __init__(
        self,
        handlers: dict[StepKind, Handler],
        runs: RunRepository,
        tasks: Optional[TaskManager] = None,
        browser_factory: Optional[BrowserFactory] = None,
    ):
        self._handlers = dict(handlers)
        self.runs = runs
        self.tasks = tasks or TaskManager()
        self.browser_factory = browser_factory

    def execute(self, plan: Plan) -> str:
        """Start a run in the background and return its id.

        Must be called from inside a running event loop.
        """
        record = RunRecord.new()
        self.runs.save(record)
        self.tasks.submit(f"run-{record.id}", self.run(plan, record))
        logger.info(
            "Run accepted",
            extra={"context": {"run_id": record.id, "steps": len(plan.steps)}},
        )
        return record.id

    @staticmethod
    def is_direct(plan: Plan) -> bool:
        """Single no-browser step: runs without any browser session."""
        return len(plan.steps) == 1 and plan.steps[0].step_kind in DIRECT_KINDS

    async def run(self, plan: Plan, record: Optional[RunRecord] = None) -> RunRecord:
        """Run a plan to completion and return its terminal record."""
        if record is None:
            record = RunRecord.new()
        self.runs.save(record)

        ctx = RunContext(run_id=record.id, sink=record.append_log)
        if self.is_direct(plan):
            ctx.note(f"Direct path: {plan.steps[0].kind}")
        elif plan.needs_browser:
            ctx.browser_factory = self.browser_factory

        status = RunStatus.DONE
        try:
            for index, step in enumerate(plan.steps, start=1):
                ctx = await self._dispatch(index, step, ctx, record)
                self.runs.save(record)
        except StepFault as e:
            status = RunStatus.ERROR
            ctx.note(f"Step fault: {e}")
            logger.warning(
                f"Run {record.id} faulted: {e}",
                extra={"context": {"run_id": record.id}},
            )
        except Exception as e:
            status = RunStatus.ERROR
            ctx.note(f"Unexpected error: {type(e).__name__}: {e}")
            logger.error(
                f"Run {record.id} failed unexpectedly",
                extra={"context": {"run_id": record.id}},
                exc_info=True,
            )
        finally:
            try:
                await ctx.close()
            except Exception as e:
                logger.debug(f"Browser close error: {e}")

        ctx.note(f"Run {status.value}")
        record.finish(status, output=ctx.last_text)
        self.runs.save(record)
        logger.info(
            f"Run {record.id} {status.value}",
            extra={"context": {"run_id": record.id, "artifacts": len(record.artifacts)}},
        )
        return record

    async def _dispatch(
        self, index: int, step: Step, ctx: RunContext, record: RunRecord
    ) -> RunContext:
        kind = step.step_kind
        handler = self._handlers.get(kind) if kind is not None else None
        if handler is None:
            ctx.note(f"Step {index}: unknown step kind '{step.kind}', skipped")
            logger.warning(
                "Unknown step kind skipped",
                extra={"context": {"run_id": record.id, "kind": step.kind}},
            )
            return ctx

        ctx.note(f"Step {index}: {step.kind}")
        before = ctx.last_artifact
        try:
            ctx = await handler(step, ctx)
        except StepFault as e:
            raise type(e)(f"step {index} ({step.kind}): {e}") from e

        if ctx.last_artifact is not None and ctx.last_artifact is not before:
            record.add_artifact(ctx.last_artifact)
        return ctx
