"""Run state: the per-run scratch context and the observable run record."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from autodirector.core.exceptions import CapabilityUnavailable, ValidationError
from autodirector.core.logging import get_logger

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RunStatus(str, Enum):
    """Lifecycle of a run. DONE and ERROR are terminal."""

    RUNNING = "running"
    DONE = "done"
    ERROR = "error"


TERMINAL_STATUSES = frozenset({RunStatus.DONE, RunStatus.ERROR})


@dataclass
class Artifact:
    """A file produced by a run.

    Attributes:
        path: Local file path
        href: Public relative reference ("/runs/<file>")
        source_url: URL the artifact was captured from, if any
        kind: screenshot, pdf or image
    """

    path: str
    href: str
    source_url: Optional[str] = None
    kind: str = "screenshot"

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "href": self.href,
            "source_url": self.source_url,
            "kind": self.kind,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Artifact":
        return cls(
            path=data["path"],
            href=data["href"],
            source_url=data.get("source_url"),
            kind=data.get("kind", "screenshot"),
        )


@dataclass
class RunRecord:
    """Externally observable status of one execution.

    Mutated in place while RUNNING; any mutation after a terminal status
    raises ValidationError.
    """

    id: str
    status: RunStatus = RunStatus.RUNNING
    log: list[str] = field(default_factory=list)
    artifacts: list[Artifact] = field(default_factory=list)
    output: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    finished_at: Optional[datetime] = None

    @classmethod
    def new(cls) -> "RunRecord":
        return cls(id=uuid.uuid4().hex[:12])

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def _guard(self) -> None:
        if self.is_terminal:
            raise ValidationError(f"Run {self.id} is {self.status.value}; record is final")

    def append_log(self, line: str) -> None:
        self._guard()
        self.log.append(line)

    def add_artifact(self, artifact: Artifact) -> None:
        self._guard()
        self.artifacts.append(artifact)

    def finish(self, status: RunStatus, output: Optional[str] = None) -> None:
        """Move to a terminal status.

        Raises:
            ValidationError: If already terminal or status is not terminal
        """
        self._guard()
        if status not in TERMINAL_STATUSES:
            raise ValidationError(f"Cannot finish run with status {status.value}")
        self.output = output
        self.status = status
        self.finished_at = _utcnow()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "log": list(self.log),
            "artifacts": [a.to_dict() for a in self.artifacts],
            "output": self.output,
            "created_at": self.created_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RunRecord":
        finished = data.get("finished_at")
        return cls(
            id=data["id"],
            status=RunStatus(data.get("status", "running")),
            log=list(data.get("log", [])),
            artifacts=[Artifact.from_dict(a) for a in data.get("artifacts", [])],
            output=data.get("output"),
            created_at=datetime.fromisoformat(data["created_at"])
            if data.get("created_at")
            else _utcnow(),
            finished_at=datetime.fromisoformat(finished) if finished else None,
        )


# Anything with screenshot/pdf/anchors/close coroutines (see integrations.browser)
BrowserFactory = Callable[[], Any]


@dataclass
class RunContext:
    """Scratch state threaded through one plan's execution.

    Attributes:
        run_id: Id of the run this context belongs to
        last_artifact: Most recent artifact produced
        last_text: Most recent text output
        log: Timestamped lines, append-only
        browser: Browser session, opened on first use
        browser_factory: Creates the session; None when the run needs none
        sink: Called with each new log line
    """

    run_id: str
    last_artifact: Optional[Artifact] = None
    last_text: Optional[str] = None
    log: list[str] = field(default_factory=list)
    browser: Any = None
    browser_factory: Optional[BrowserFactory] = None
    sink: Optional[Callable[[str], None]] = None

    def note(self, message: str) -> str:
        line = f"[{_utcnow().strftime('%H:%M:%S')}] {message}"
        self.log.append(line)
        if self.sink is not None:
            self.sink(line)
        return line

    async def get_browser(self) -> Any:
        """The run's browser session, launched on first call.

        Raises:
            CapabilityUnavailable: If this run has no browser factory
        """
        if self.browser is None:
            if self.browser_factory is None:
                raise CapabilityUnavailable("Headless browser is not available for this run")
            self.browser = self.browser_factory()
            self.note("Browser session opened")
        return self.browser

    async def close(self) -> None:
        """Close the browser session if one was opened."""
        browser = self.browser
        self.browser = None
        if browser is None:
            return
        close: Optional[Callable[[], Awaitable[None]]] = getattr(browser, "close", None)
        if close is not None:
            await close()
