"""Tests for the executor (autodirector/engine/executor.py).

Covers:
    - Steps run in order against one context
    - A fault stops the run and later steps never start
    - Unknown kinds are skipped without failing the run
    - Direct path opens no browser
    - Background execute() and polling through the repository
"""

import asyncio
from pathlib import Path

from autodirector.engine.context import RunStatus
from autodirector.engine.executor import Executor
from autodirector.engine.steps import Plan, Step
from autodirector.integrations.mailbox import MailboxMessage


def _plan(*steps: tuple[str, dict]) -> Plan:
    return Plan(steps=[Step(kind, params) for kind, params in steps])


class TestRunHappyPath:
    """Successful runs."""

    def test_screenshot_then_notify(self, executor, caps, runs, fake_browser):
        """Artifact is recorded and mailed; run ends done."""
        plan = _plan(
            ("capture_screenshot", {"url": "cnn.com"}),
            ("notify_with_artifact", {"to": "a@b.com"}),
        )
        record = asyncio.run(executor.run(plan))

        assert record.status is RunStatus.DONE
        assert len(record.artifacts) == 1
        assert record.artifacts[0].source_url == "https://cnn.com"
        assert caps.mail.send.await_count == 1
        assert caps.mail.send.await_args.kwargs["attachments"] == [
            Path(record.artifacts[0].path)
        ]
        assert fake_browser.closed is True
        assert runs.get(record.id) is record
        assert record.log[-1].endswith("Run done")

    def test_output_is_last_text(self, executor, fake_browser):
        fake_browser.anchor_list = []
        record = asyncio.run(executor.run(_plan(("extract_links", {"url": "a.com"}))))
        assert record.status is RunStatus.DONE
        assert record.output == "1. https://a.com - https://a.com"

    def test_empty_plan_is_done(self, executor):
        record = asyncio.run(executor.run(Plan()))
        assert record.status is RunStatus.DONE
        assert record.artifacts == []


class TestFaults:
    """Fault handling."""

    def test_bad_scheme_stops_run(self, executor, caps, fake_browser):
        """bad:// faults before navigation and the notify step never starts."""
        plan = _plan(
            ("capture_screenshot", {"url": "bad://x"}),
            ("notify_with_artifact", {"to": "a@b.com"}),
        )
        record = asyncio.run(executor.run(plan))

        assert record.status is RunStatus.ERROR
        assert any("Unsupported URL scheme" in line for line in record.log)
        assert not any("Step 2" in line for line in record.log)
        assert fake_browser.calls == []
        caps.mail.send.assert_not_awaited()

    def test_fault_message_names_step(self, executor):
        record = asyncio.run(executor.run(_plan(("notify_with_text", {"to": "a@b.com"}))))
        fault = [line for line in record.log if "Step fault:" in line]
        assert len(fault) == 1
        assert "step 1 (notify_with_text)" in fault[0]

    def test_unexpected_exception_recorded(self, executor, caps):
        """Non-fault exceptions still end the run in error."""
        caps.feeds.news.side_effect = RuntimeError("kaboom")
        record = asyncio.run(
            executor.run(_plan(("send_news_digest", {"topic": "AI", "to": "a@b.com"})))
        )
        assert record.status is RunStatus.ERROR
        assert any("Unexpected error: RuntimeError: kaboom" in line for line in record.log)

    def test_unknown_kind_skipped(self, executor):
        """A plan of only unknown kinds is done, with a skip line."""
        record = asyncio.run(executor.run(_plan(("teleport", {}))))
        assert record.status is RunStatus.DONE
        assert any("unknown step kind 'teleport', skipped" in line for line in record.log)

    def test_unknown_kind_does_not_block_later_steps(self, executor, caps):
        record = asyncio.run(
            executor.run(
                _plan(
                    ("teleport", {}),
                    ("send_news_digest", {"topic": "AI", "to": "a@b.com"}),
                )
            )
        )
        assert record.status is RunStatus.DONE
        caps.feeds.news.assert_awaited_once()


class TestBrowserLifecycle:
    """Browser sessions only for plans that need them."""

    def test_direct_path_opens_no_browser(self, handlers, runs, caps):
        """A single forward step runs without calling the browser factory."""
        opened = []

        def factory():
            opened.append(1)
            raise AssertionError("browser must not open")

        caps.mailbox.latest_message.return_value = MailboxMessage(
            raw=b"Subject: Hi\r\n\r\nhello", subject="Hi", sender="ann@x.com"
        )
        executor = Executor(handlers.table(), runs, browser_factory=factory)
        record = asyncio.run(executor.run(_plan(("forward_latest_message", {"to": "a@b.com"}))))

        assert record.status is RunStatus.DONE
        assert opened == []
        assert any("Direct path: forward_latest_message" in line for line in record.log)

    def test_no_browser_capability_faults(self, handlers, runs):
        """Capture without a browser factory is a capability fault."""
        executor = Executor(handlers.table(), runs, browser_factory=None)
        record = asyncio.run(executor.run(_plan(("capture_pdf", {"url": "a.com"}))))
        assert record.status is RunStatus.ERROR
        assert any("browser is not available" in line for line in record.log)

    def test_browser_closed_after_fault(self, executor, fake_browser):
        fake_browser.fail_with = "net::ERR_NAME_NOT_RESOLVED"
        record = asyncio.run(executor.run(_plan(("capture_pdf", {"url": "nope.invalid"}))))
        assert record.status is RunStatus.ERROR
        assert fake_browser.closed is True


class TestExecute:
    """Background execution."""

    def test_execute_returns_id_then_completes(self, executor, runs):
        """execute() returns immediately; the record finishes later."""

        async def main():
            run_id = executor.execute(_plan(("teleport", {})))
            first = runs.get(run_id).status
            await executor.tasks.wait()
            return run_id, first

        run_id, first = asyncio.run(main())
        assert first is RunStatus.RUNNING
        assert runs.get(run_id).status is RunStatus.DONE

    def test_is_direct(self):
        assert Executor.is_direct(_plan(("send_news_digest", {}))) is True
        assert Executor.is_direct(_plan(("capture_pdf", {}))) is False
        assert (
            Executor.is_direct(_plan(("send_news_digest", {}), ("notify_with_text", {})))
            is False
        )
