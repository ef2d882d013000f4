"""Shared pytest fixtures for AutoDirector tests.

Fixtures:
    - mock_config: Test configuration (paths under tmp_path, mail configured)
    - registry: ServiceRegistry built from mock_config
    - fake_browser: In-memory browser session recording its calls
    - browser_factory: Factory returning fake_browser
    - caps: Capabilities with AsyncMock adapters
    - store: JobStore in tmp_path
    - handlers: ActionHandlers wired to the above
    - runs: InMemoryRunRepository
    - executor: Executor over handlers, runs and browser_factory
"""

from pathlib import Path
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from autodirector.core.config import Config, reset_config
from autodirector.core.exceptions import BrowserError
from autodirector.core.services import ServiceRegistry, reset_service_registry
from autodirector.engine.executor import Executor
from autodirector.engine.handlers import ActionHandlers, Capabilities
from autodirector.engine.runs import InMemoryRunRepository
from autodirector.integrations.browser import Anchor
from autodirector.integrations.mail import MailReceipt
from autodirector.store.jobs import JobStore

SERVICE_EMAIL = "svc@x.com"


class FakeBrowser:
    """Stands in for PlaywrightBrowser: writes small files, records calls."""

    def __init__(self, anchors: Optional[list[Anchor]] = None):
        self.anchor_list = anchors or []
        self.calls: list[tuple[str, str]] = []
        self.fail_with: Optional[str] = None
        self.closed = False

    def _maybe_fail(self, url: str) -> None:
        if self.fail_with:
            raise BrowserError(f"Navigation to {url} failed: {self.fail_with}")

    async def screenshot(self, url: str, path: Path, full_page: bool = True) -> Path:
        self.calls.append(("screenshot", url))
        self._maybe_fail(url)
        Path(path).write_bytes(b"\x89PNG fake")
        return Path(path)

    async def pdf(self, url: str, path: Path) -> Path:
        self.calls.append(("pdf", url))
        self._maybe_fail(url)
        Path(path).write_bytes(b"%PDF-1.4 fake")
        return Path(path)

    async def anchors(self, url: str) -> list[Anchor]:
        self.calls.append(("anchors", url))
        self._maybe_fail(url)
        return list(self.anchor_list)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def clean_singletons():
    """Reset cached config and registry between tests."""
    reset_config()
    reset_service_registry()
    yield
    reset_config()
    reset_service_registry()


@pytest.fixture
def mock_config(tmp_path: Path) -> Config:
    """Test configuration with mail and mailbox configured."""
    return Config(
        data_dir=tmp_path / "data",
        runs_dir=tmp_path / "runs",
        log_path=tmp_path / "logs",
        service_email=SERVICE_EMAIL,
        smtp_user=SERVICE_EMAIL,
        smtp_password="app-password",
        imap_user=SERVICE_EMAIL,
        imap_password="app-password",
        openai_api_key="sk-test",
        oracle_enabled=False,
        debug=True,
    )


@pytest.fixture
def registry(mock_config: Config) -> ServiceRegistry:
    return ServiceRegistry(mock_config)


@pytest.fixture
def fake_browser() -> FakeBrowser:
    return FakeBrowser()


@pytest.fixture
def browser_factory(fake_browser: FakeBrowser):
    return lambda: fake_browser


@pytest.fixture
def caps() -> Capabilities:
    """Capabilities whose every external call is an AsyncMock."""
    mail = MagicMock()
    mail.send = AsyncMock(
        side_effect=lambda to, subject, text, html=None, attachments=(): MailReceipt(
            message_id="<test@x>", to=to, subject=subject
        )
    )
    mailbox = MagicMock()
    mailbox.latest_message = AsyncMock(return_value=None)
    web = MagicMock()
    web.fetch = AsyncMock(return_value=b"<html>v1</html>")
    feeds = MagicMock()
    feeds.news = AsyncMock(return_value=[])
    feeds.fetch_items = AsyncMock(return_value=[])
    images = MagicMock()
    images.generate = AsyncMock()
    return Capabilities(mail=mail, mailbox=mailbox, web=web, feeds=feeds, images=images)


@pytest.fixture
def store(mock_config: Config) -> JobStore:
    return JobStore(mock_config.data_dir)


@pytest.fixture
def handlers(mock_config, caps, store, registry) -> ActionHandlers:
    return ActionHandlers(mock_config, caps, store, registry)


@pytest.fixture
def runs() -> InMemoryRunRepository:
    return InMemoryRunRepository()


@pytest.fixture
def executor(handlers, runs, browser_factory) -> Executor:
    return Executor(handlers.table(), runs, browser_factory=browser_factory)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks tests requiring external services")
