"""Run record repositories.

The executor only depends on RunRepository. InMemoryRunRepository keeps the
live objects (tests, single-shot CLI); JsonRunRepository writes one JSON file
per run so records survive a restart.
"""

import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from autodirector.core.exceptions import StoreError
from autodirector.core.logging import get_logger
from autodirector.engine.context import RunRecord

logger = get_logger(__name__)


class RunRepository(ABC):
    """Where run records live while and after they execute."""

    @abstractmethod
    def save(self, record: RunRecord) -> None:
        pass

    @abstractmethod
    def get(self, run_id: str) -> Optional[RunRecord]:
        pass


class InMemoryRunRepository(RunRepository):
    def __init__(self) -> None:
        self._records: dict[str, RunRecord] = {}

    def save(self, record: RunRecord) -> None:
        self._records[record.id] = record

    def get(self, run_id: str) -> Optional[RunRecord]:
        return self._records.get(run_id)

    def __len__(self) -> int:
        return len(self._records)


class JsonRunRepository(RunRepository):
    """One <id>.json file per run under a directory."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, run_id: str) -> Path:
        # Ids are generated hex; anything else cannot name a file here
        safe = "".join(c for c in run_id if c.isalnum() or c in "-_")
        return self.directory / f"{safe}.json"

    def save(self, record: RunRecord) -> None:
        path = self._path(record.id)
        with self._lock:
            fd, tmp = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(record.to_dict(), f, indent=2)
                os.replace(tmp, path)
            except OSError as e:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise StoreError(f"Could not write run record {record.id}: {e}") from e

    def get(self, run_id: str) -> Optional[RunRecord]:
        path = self._path(run_id)
        if not run_id or not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return RunRecord.from_dict(json.load(f))
        except (OSError, ValueError, KeyError) as e:
            raise StoreError(f"Could not read run record {run_id}: {e}") from e
