"""Scheduler sweeps: re-run every persisted job once.

Sweeps are triggered from outside (HTTP endpoint, CLI, orchestrator). Each
job is handled in isolation: a failure is logged, counted, and the sweep
moves on to the next job.

    - Monitors: sha256 of the page bytes; the first sweep only records a
      baseline, later sweeps notify (with a fresh screenshot) on change.
    - Briefings: topical news digest on every sweep; frequency is not
      checked here, the caller's sweep cadence decides.
    - Competitor watches: always notify, "No updates" included.
    - Job alerts: notify only when at least one item matches a keyword.
"""

import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from autodirector.core.exceptions import AutoDirectorError
from autodirector.core.logging import get_logger
from autodirector.engine.context import BrowserFactory
from autodirector.engine.handlers import ActionHandlers
from autodirector.engine.templates import render_subject, render_template
from autodirector.integrations.feeds import FeedItem
from autodirector.store.jobs import (
    Briefing,
    CompetitorWatch,
    JobAlert,
    JobStore,
    JobType,
    Monitor,
    utc_now_iso,
)

logger = get_logger(__name__)


@dataclass
class SweepResult:
    """Outcome of one sweep over one job type.

    Attributes:
        job_type: Collection swept
        processed: Jobs attempted
        changed: Notifications sent
        errors: Jobs that failed
    """

    job_type: str
    processed: int = 0
    changed: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_type": self.job_type,
            "processed": self.processed,
            "changed": self.changed,
            "errors": self.errors,
        }


def fingerprint(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


class _MonitorBrowser:
    """Browser session owned by a single monitor sweep."""

    def __init__(self, factory: Optional[BrowserFactory]):
        self.factory = factory
        self.browser: Any = None

    @property
    def available(self) -> bool:
        return self.factory is not None

    def get(self) -> Any:
        if self.browser is None:
            self.browser = self.factory()
        return self.browser

    async def close(self) -> None:
        browser, self.browser = self.browser, None
        if browser is not None:
            await browser.close()


class SweepRunner:
    """Runs sweeps against a JobStore using the action handlers' capabilities."""

    def __init__(
        self,
        store: JobStore,
        handlers: ActionHandlers,
        browser_factory: Optional[BrowserFactory] = None,
    ):
        self.store = store
        self.handlers = handlers
        self.caps = handlers.caps
        self.browser_factory = browser_factory

    # ------------------------------------------------------------------
    # Monitors
    # ------------------------------------------------------------------

    async def sweep_monitors(self) -> SweepResult:
        result = SweepResult(JobType.MONITOR.value)
        # One browser session per sweep, opened on the first change
        session = _MonitorBrowser(self.browser_factory)
        try:
            for job in self.store.load(JobType.MONITOR):
                result.processed += 1
                try:
                    if await self._check_monitor(job, session):
                        result.changed += 1
                except Exception as e:
                    result.errors += 1
                    logger.warning(
                        f"Monitor check failed: {e}",
                        extra={"context": {"job_id": job.id, "url": job.url}},
                    )
        finally:
            await session.close()
        self._log_result(result)
        return result

    async def _check_monitor(self, job: Monitor, session: _MonitorBrowser) -> bool:
        content = await self.caps.web.fetch(job.url)
        current = fingerprint(content)
        checked_at = utc_now_iso()
        previous = job.last_fingerprint
        job.last_checked_at = checked_at

        if previous is None or previous == current:
            job.last_fingerprint = current
            self.store.update(job)
            return False

        attachments: list[Path] = []
        link = None
        if session.available:
            try:
                path = self.handlers.new_artifact_path("png")
                await session.get().screenshot(job.url, path)
                attachments.append(path)
                link = self.handlers.public_link(
                    self.handlers.artifact_for(path, "screenshot", job.url)
                )
            except AutoDirectorError as e:
                logger.warning(
                    f"Change screenshot failed, notifying without it: {e}",
                    extra={"context": {"job_id": job.id}},
                )

        body = render_template(
            "monitor_changed",
            url=job.url,
            checked_at=checked_at,
            link=link,
            attached=bool(attachments),
        )
        try:
            await self.handlers.send_mail(
                job.notify_to,
                render_subject("monitor_changed", url=job.url),
                body,
                attachments=attachments,
            )
        except AutoDirectorError:
            # Keep the old fingerprint so the next sweep notifies again
            self.store.update(job)
            raise

        job.last_fingerprint = current
        self.store.update(job)
        logger.info(
            "Monitor change notified",
            extra={"context": {"job_id": job.id, "url": job.url}},
        )
        return True

    # ------------------------------------------------------------------
    # Briefings
    # ------------------------------------------------------------------

    async def sweep_briefings(self) -> SweepResult:
        result = SweepResult(JobType.BRIEFING.value)
        for job in self.store.load(JobType.BRIEFING):
            result.processed += 1
            try:
                await self._send_briefing(job)
                result.changed += 1
            except Exception as e:
                result.errors += 1
                logger.warning(
                    f"Briefing failed: {e}",
                    extra={"context": {"job_id": job.id, "topic": job.topic}},
                )
        self._log_result(result)
        return result

    async def _send_briefing(self, job: Briefing) -> None:
        items = await self.caps.feeds.news(job.topic)
        body = render_template(
            "news_digest",
            heading=f"{job.frequency.capitalize()} briefing",
            topic=job.topic,
            items=items,
        )
        subject = render_subject("briefing", frequency=job.frequency, topic=job.topic)
        await self.handlers.send_mail(job.notify_to, subject, body)
        job.last_sent_at = utc_now_iso()
        self.store.update(job)

    # ------------------------------------------------------------------
    # Feed-based jobs
    # ------------------------------------------------------------------

    async def _collect(self, feeds: list[str], job_id: str) -> tuple[list[FeedItem], list[str]]:
        """Items from every feed; unreadable feeds are reported, not fatal."""
        items: list[FeedItem] = []
        failed: list[str] = []
        for feed in feeds:
            try:
                items.extend(await self.caps.feeds.fetch_items(feed, limit=10))
            except AutoDirectorError as e:
                failed.append(feed)
                logger.warning(
                    f"Feed unreadable: {e}",
                    extra={"context": {"job_id": job_id, "feed": feed}},
                )
        return items, failed

    async def sweep_competitor_watches(self) -> SweepResult:
        result = SweepResult(JobType.COMPETITOR_WATCH.value)
        for job in self.store.load(JobType.COMPETITOR_WATCH):
            result.processed += 1
            try:
                await self._send_competitor_watch(job)
                result.changed += 1
            except Exception as e:
                result.errors += 1
                logger.warning(
                    f"Competitor watch failed: {e}", extra={"context": {"job_id": job.id}}
                )
        self._log_result(result)
        return result

    async def _send_competitor_watch(self, job: CompetitorWatch) -> None:
        items, failed = await self._collect(job.feeds, job.id)
        body = render_template(
            "feed_digest", heading="Competitor updates", items=items, errors=failed
        )
        subject = render_subject("competitor_watch", count=len(items))
        await self.handlers.send_mail(job.notify_to, subject, body)

    async def sweep_job_alerts(self) -> SweepResult:
        result = SweepResult(JobType.JOB_ALERT.value)
        for job in self.store.load(JobType.JOB_ALERT):
            result.processed += 1
            try:
                if await self._send_job_alert(job):
                    result.changed += 1
            except Exception as e:
                result.errors += 1
                logger.warning(f"Job alert failed: {e}", extra={"context": {"job_id": job.id}})
        self._log_result(result)
        return result

    async def _send_job_alert(self, job: JobAlert) -> bool:
        items, _ = await self._collect(job.feeds, job.id)
        matches = [item for item in items if item.matches(job.keywords)]
        if not matches:
            return False
        body = render_template(
            "feed_digest",
            heading=f"Openings matching {', '.join(job.keywords)}",
            items=matches,
            errors=[],
        )
        subject = render_subject("job_alert", keywords=", ".join(job.keywords))
        await self.handlers.send_mail(job.notify_to, subject, body)
        return True

    # ------------------------------------------------------------------
    # All
    # ------------------------------------------------------------------

    async def sweep(self, job_type: JobType) -> SweepResult:
        dispatch = {
            JobType.MONITOR: self.sweep_monitors,
            JobType.BRIEFING: self.sweep_briefings,
            JobType.COMPETITOR_WATCH: self.sweep_competitor_watches,
            JobType.JOB_ALERT: self.sweep_job_alerts,
        }
        return await dispatch[job_type]()

    async def sweep_all(self) -> dict[str, SweepResult]:
        """Every job type in turn. A store failure on one type is counted."""
        results: dict[str, SweepResult] = {}
        for job_type in JobType:
            try:
                results[job_type.value] = await self.sweep(job_type)
            except AutoDirectorError as e:
                logger.error(
                    f"Sweep of {job_type.value} aborted: {e}",
                    extra={"context": {"job_type": job_type.value}},
                )
                results[job_type.value] = SweepResult(job_type.value, errors=1)
        return results

    def _log_result(self, result: SweepResult) -> None:
        logger.info(f"Sweep finished: {result.job_type}", extra={"context": result.to_dict()})
