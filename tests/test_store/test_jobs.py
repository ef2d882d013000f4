"""Tests for the persisted job store (autodirector/store/jobs.py)."""

import json

import pytest

from autodirector.core.exceptions import StoreError
from autodirector.store.jobs import (
    Briefing,
    JobStore,
    JobType,
    Monitor,
    job_type_of,
)


class TestAppendAndLoad:
    """Collections persist one JSON file per job type."""

    def test_empty_collection(self, store):
        assert store.load(JobType.MONITOR) == []

    def test_add_monitor_persists(self, store):
        job = store.add_monitor("https://a.com", "me@x.com")
        path = store.path_for(JobType.MONITOR)
        assert path.name == "monitors.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data[0]["id"] == job.id
        assert data[0]["url"] == "https://a.com"
        assert data[0]["last_fingerprint"] is None

    def test_reload_from_new_store(self, store, mock_config):
        store.add_briefing("AI", "me@x.com", "weekly")
        store.add_job_alert(["python"], ["https://f/1"], "me@x.com")
        other = JobStore(mock_config.data_dir)
        [briefing] = other.load(JobType.BRIEFING)
        assert isinstance(briefing, Briefing)
        assert briefing.frequency == "weekly"
        assert other.load(JobType.JOB_ALERT)[0].keywords == ["python"]

    def test_counts(self, store):
        store.add_monitor("https://a.com", "me@x.com")
        store.add_competitor_watch(["https://f/1"], "me@x.com")
        assert store.counts() == {
            "monitors": 1,
            "briefings": 0,
            "competitor_watches": 1,
            "job_alerts": 0,
        }

    def test_no_temp_files_left(self, store, mock_config):
        store.add_monitor("https://a.com", "me@x.com")
        assert [p.name for p in mock_config.data_dir.iterdir()] == ["monitors.json"]


class TestUpdate:
    def test_update_by_id(self, store):
        first = store.add_monitor("https://a.com", "me@x.com")
        store.add_monitor("https://b.com", "me@x.com")
        first.last_fingerprint = "abc"
        store.update(first)
        jobs = store.load(JobType.MONITOR)
        assert [j.last_fingerprint for j in jobs] == ["abc", None]

    def test_vanished_job_not_readded(self, store):
        store.add_monitor("https://a.com", "me@x.com")
        store.update(Monitor(url="https://gone.com", notify_to="me@x.com"))
        assert [j.url for j in store.load(JobType.MONITOR)] == ["https://a.com"]


class TestLegacyRecords:
    """Files written before ids existed."""

    def test_ids_assigned_and_rewritten(self, store, mock_config):
        mock_config.data_dir.mkdir(parents=True)
        store.path_for(JobType.MONITOR).write_text(
            json.dumps([{"url": "https://a.com", "to": "me@x.com", "extra": 1}]),
            encoding="utf-8",
        )
        [job] = store.load(JobType.MONITOR)
        assert job.notify_to == "me@x.com"
        assert job.id

        stored = json.loads(store.path_for(JobType.MONITOR).read_text(encoding="utf-8"))
        assert stored[0]["id"] == job.id
        assert store.load(JobType.MONITOR)[0].id == job.id

    def test_corrupt_file(self, store, mock_config):
        mock_config.data_dir.mkdir(parents=True)
        store.path_for(JobType.BRIEFING).write_text("{oops", encoding="utf-8")
        with pytest.raises(StoreError, match="briefings.json"):
            store.load(JobType.BRIEFING)

    def test_not_a_list(self, store, mock_config):
        mock_config.data_dir.mkdir(parents=True)
        store.path_for(JobType.BRIEFING).write_text("{}", encoding="utf-8")
        with pytest.raises(StoreError, match="does not hold a list"):
            store.load(JobType.BRIEFING)

    def test_missing_required_field(self, store, mock_config):
        mock_config.data_dir.mkdir(parents=True)
        store.path_for(JobType.MONITOR).write_text(json.dumps([{"id": "x1"}]), encoding="utf-8")
        with pytest.raises(StoreError, match="Malformed monitors record"):
            store.load(JobType.MONITOR)


class TestJobTypeOf:
    def test_known(self):
        assert job_type_of(Monitor(url="u", notify_to="t")) is JobType.MONITOR

    def test_unknown(self):
        with pytest.raises(StoreError):
            job_type_of(object())
