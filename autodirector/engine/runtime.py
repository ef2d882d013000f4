"""Wiring: one Runtime holds every collaborator the HTTP layer and CLI use."""

import functools
from dataclasses import dataclass
from typing import Optional

from autodirector.ai.oracle import ClaudePlannerOracle
from autodirector.ai.planner import Planner
from autodirector.autonomous.sweeps import SweepRunner
from autodirector.core.config import Config, get_config
from autodirector.core.logging import get_logger
from autodirector.core.services import ServiceRegistry
from autodirector.core.tasks import TaskManager
from autodirector.engine.context import BrowserFactory
from autodirector.engine.executor import Executor
from autodirector.engine.handlers import ActionHandlers, Capabilities
from autodirector.engine.runs import JsonRunRepository, RunRepository
from autodirector.integrations.browser import PlaywrightBrowser
from autodirector.integrations.feeds import FeedClient
from autodirector.integrations.images import OpenAIImageGenerator
from autodirector.integrations.mail import SmtpMailSender
from autodirector.integrations.mailbox import ImapMailboxReader
from autodirector.integrations.web import WebClient
from autodirector.store.jobs import JobStore

logger = get_logger(__name__)


@dataclass
class Runtime:
    config: Config
    registry: ServiceRegistry
    planner: Planner
    handlers: ActionHandlers
    executor: Executor
    runs: RunRepository
    store: JobStore
    sweeps: SweepRunner


def build_capabilities(config: Config) -> Capabilities:
    web = WebClient(timeout=config.http_timeout)
    return Capabilities(
        mail=SmtpMailSender.from_config(config),
        mailbox=ImapMailboxReader.from_config(config),
        web=web,
        feeds=FeedClient(web),
        images=OpenAIImageGenerator.from_config(config),
    )


def build_runtime(
    config: Optional[Config] = None,
    registry: Optional[ServiceRegistry] = None,
    capabilities: Optional[Capabilities] = None,
    runs: Optional[RunRepository] = None,
    browser_factory: Optional[BrowserFactory] = None,
) -> Runtime:
    """Assemble a Runtime. Every collaborator can be swapped (tests do)."""
    config = config or get_config()
    registry = registry or ServiceRegistry(config)
    capabilities = capabilities or build_capabilities(config)
    if runs is None:
        runs = JsonRunRepository(config.data_dir / "run_records")
    store = JobStore(config.data_dir)

    if browser_factory is None and registry.is_available("browser"):
        browser_factory = functools.partial(
            PlaywrightBrowser, navigation_timeout_ms=config.navigation_timeout_ms
        )

    handlers = ActionHandlers(config, capabilities, store, registry)
    executor = Executor(
        handlers.table(), runs, tasks=TaskManager(), browser_factory=browser_factory
    )
    planner = Planner(own_address=config.own_address, oracle=ClaudePlannerOracle(config))

    logger.debug("Runtime assembled", extra={"context": {"data_dir": str(config.data_dir)}})
    return Runtime(
        config=config,
        registry=registry,
        planner=planner,
        handlers=handlers,
        executor=executor,
        runs=runs,
        store=store,
        sweeps=SweepRunner(store, handlers, browser_factory=browser_factory),
    )
