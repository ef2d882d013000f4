"""Persisted recurring jobs, one JSON file per job type.

Each collection is loaded fully and rewritten atomically (temp file, then
os.replace) on every mutation. A lock serializes writers within one
JobStore instance; separate processes sharing a data directory are not
coordinated.

Usage:
    from autodirector.store.jobs import JobStore, JobType

    store = JobStore(config.data_dir)
    monitor = store.add_monitor("https://example.com", "a@b.com")
    for m in store.load(JobType.MONITOR):
        ...
"""

import json
import os
import tempfile
import threading
import uuid
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from autodirector.core.exceptions import StoreError
from autodirector.core.logging import get_logger

logger = get_logger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# JOB TYPES
# =============================================================================


class JobType(str, Enum):
    """Collection names; each maps to <value>.json in the data directory."""

    MONITOR = "monitors"
    BRIEFING = "briefings"
    COMPETITOR_WATCH = "competitor_watches"
    JOB_ALERT = "job_alerts"


@dataclass
class Monitor:
    """Page watched for content changes."""

    url: str
    notify_to: str
    last_fingerprint: Optional[str] = None
    last_checked_at: Optional[str] = None
    id: str = field(default_factory=_new_id)
    created_at: str = field(default_factory=utc_now_iso)


@dataclass
class Briefing:
    """Topical news digest sent on every sweep.

    frequency is informational: sweeps do not filter on it.
    """

    topic: str
    notify_to: str
    frequency: str = "daily"
    last_sent_at: Optional[str] = None
    id: str = field(default_factory=_new_id)
    created_at: str = field(default_factory=utc_now_iso)


@dataclass
class CompetitorWatch:
    """Feeds summarized on every sweep, even when empty."""

    feeds: list[str]
    notify_to: str
    id: str = field(default_factory=_new_id)
    created_at: str = field(default_factory=utc_now_iso)


@dataclass
class JobAlert:
    """Feeds filtered by keywords; notifies only on matches."""

    keywords: list[str]
    feeds: list[str]
    notify_to: str
    id: str = field(default_factory=_new_id)
    created_at: str = field(default_factory=utc_now_iso)


Job = Union[Monitor, Briefing, CompetitorWatch, JobAlert]

JOB_CLASSES: dict[JobType, type] = {
    JobType.MONITOR: Monitor,
    JobType.BRIEFING: Briefing,
    JobType.COMPETITOR_WATCH: CompetitorWatch,
    JobType.JOB_ALERT: JobAlert,
}


def job_type_of(job: Job) -> JobType:
    for job_type, cls in JOB_CLASSES.items():
        if isinstance(job, cls):
            return job_type
    raise StoreError(f"Not a persisted job: {type(job).__name__}")


def _job_from_dict(job_type: JobType, data: dict[str, Any]) -> Job:
    cls = JOB_CLASSES[job_type]
    known = {f.name for f in fields(cls)}
    kwargs = {k: v for k, v in data.items() if k in known}
    # Older records use "to"
    if "notify_to" not in kwargs and "to" in data:
        kwargs["notify_to"] = data["to"]
    try:
        return cls(**kwargs)
    except TypeError as e:
        raise StoreError(f"Malformed {job_type.value} record: {e}") from e


# =============================================================================
# STORE
# =============================================================================


class JobStore:
    """File-backed collections of persisted jobs."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self._lock = threading.Lock()

    def path_for(self, job_type: JobType) -> Path:
        return self.data_dir / f"{job_type.value}.json"

    def _read(self, job_type: JobType) -> tuple[list[Job], bool]:
        """Read a collection. Second value is True if ids had to be assigned."""
        path = self.path_for(job_type)
        if not path.exists():
            return [], False
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            raise StoreError(f"Could not read {path.name}: {e}") from e
        if not isinstance(raw, list):
            raise StoreError(f"{path.name} does not hold a list")

        migrated = any(isinstance(item, dict) and not item.get("id") for item in raw)
        jobs = [_job_from_dict(job_type, item) for item in raw if isinstance(item, dict)]
        return jobs, migrated

    def _write(self, job_type: JobType, jobs: list[Job]) -> None:
        path = self.path_for(job_type)
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.data_dir, prefix=f".{job_type.value}.", suffix=".tmp")
        except OSError as e:
            raise StoreError(f"Could not write {path.name}: {e}") from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump([asdict(job) for job in jobs], f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, path)
        except OSError as e:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise StoreError(f"Could not write {path.name}: {e}") from e

    def load(self, job_type: JobType) -> list[Job]:
        """Load a whole collection.

        Records written before ids existed get one, and the file is
        rewritten so the ids stay stable.

        Raises:
            StoreError: If the file cannot be read or parsed
        """
        with self._lock:
            jobs, migrated = self._read(job_type)
            if migrated:
                self._write(job_type, jobs)
                logger.info(
                    "Assigned ids to legacy job records",
                    extra={"context": {"job_type": job_type.value, "count": len(jobs)}},
                )
            return jobs

    def save(self, job_type: JobType, jobs: list[Job]) -> None:
        """Replace a whole collection."""
        with self._lock:
            self._write(job_type, jobs)

    def append(self, job: Job) -> Job:
        """Add a job and persist immediately."""
        job_type = job_type_of(job)
        with self._lock:
            jobs, _ = self._read(job_type)
            jobs.append(job)
            self._write(job_type, jobs)
        logger.info(
            "Job added",
            extra={"context": {"job_type": job_type.value, "job_id": job.id}},
        )
        return job

    def update(self, job: Job) -> None:
        """Rewrite the stored record with the same id.

        A job removed from the file by hand in the meantime is not re-added.
        """
        job_type = job_type_of(job)
        with self._lock:
            jobs, _ = self._read(job_type)
            for index, existing in enumerate(jobs):
                if existing.id == job.id:
                    jobs[index] = job
                    self._write(job_type, jobs)
                    return
        logger.warning(
            "Job vanished before update",
            extra={"context": {"job_type": job_type.value, "job_id": job.id}},
        )

    def add_monitor(self, url: str, notify_to: str) -> Monitor:
        job = Monitor(url=url, notify_to=notify_to)
        self.append(job)
        return job

    def add_briefing(self, topic: str, notify_to: str, frequency: str = "daily") -> Briefing:
        job = Briefing(topic=topic, notify_to=notify_to, frequency=frequency)
        self.append(job)
        return job

    def add_competitor_watch(self, feeds: list[str], notify_to: str) -> CompetitorWatch:
        job = CompetitorWatch(feeds=list(feeds), notify_to=notify_to)
        self.append(job)
        return job

    def add_job_alert(self, keywords: list[str], feeds: list[str], notify_to: str) -> JobAlert:
        job = JobAlert(keywords=list(keywords), feeds=list(feeds), notify_to=notify_to)
        self.append(job)
        return job

    def counts(self) -> dict[str, int]:
        return {job_type.value: len(self.load(job_type)) for job_type in JobType}
