"""Action handlers: one coroutine per StepKind.

Every handler has the shape ``handle(step, ctx) -> ctx``. Handlers raise
StepFault for anything that stops the step from running (missing parameter,
missing context field, capability failure or absence). IntegrationError and
StoreError raised inside a handler are converted to StepFault by the table
wrapper so the executor only has one fault type to deal with.

Usage:
    handlers = ActionHandlers(config, capabilities, job_store, registry)
    table = handlers.table()
    ctx = await table[StepKind.CAPTURE_SCREENSHOT](step, ctx)
"""

import functools
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Sequence

from autodirector.core.config import Config
from autodirector.core.exceptions import (
    CapabilityUnavailable,
    IntegrationError,
    StepFault,
    StoreError,
)
from autodirector.core.logging import get_logger
from autodirector.core.services import ServiceRegistry
from autodirector.engine.context import Artifact, RunContext
from autodirector.engine.links import format_links, select_links
from autodirector.engine.steps import (
    Step,
    StepKind,
    as_list,
    is_web_url,
    normalize_url,
    require_params,
)
from autodirector.engine.templates import render_subject, render_template
from autodirector.integrations.feeds import FeedClient, news_search_url
from autodirector.integrations.images import OpenAIImageGenerator
from autodirector.integrations.mail import MailReceipt, SmtpMailSender
from autodirector.integrations.mailbox import ImapMailboxReader
from autodirector.integrations.web import WebClient
from autodirector.store.jobs import JobStore

logger = get_logger(__name__)

Handler = Callable[[Step, RunContext], Awaitable[RunContext]]

DEFAULT_NEWS_LIMIT = 8


@dataclass
class Capabilities:
    """Non-browser capability adapters shared by handlers and sweeps."""

    mail: SmtpMailSender
    mailbox: ImapMailboxReader
    web: WebClient
    feeds: FeedClient
    images: OpenAIImageGenerator


def new_artifact_name(ext: str) -> str:
    """<epoch-ms>-<random hex>.<ext>"""
    return f"{int(time.time() * 1000)}-{secrets.token_hex(4)}.{ext}"


def _guarded(kind: StepKind, func: Handler) -> Handler:
    @functools.wraps(func)
    async def handler(step: Step, ctx: RunContext) -> RunContext:
        try:
            return await func(step, ctx)
        except StepFault:
            raise
        except (IntegrationError, StoreError) as e:
            raise StepFault(f"{kind.value} failed: {e}") from e

    return handler


class ActionHandlers:
    """Handlers bound to one set of capabilities."""

    def __init__(
        self,
        config: Config,
        capabilities: Capabilities,
        job_store: JobStore,
        registry: ServiceRegistry,
    ):
        self.config = config
        self.caps = capabilities
        self.job_store = job_store
        self.registry = registry

    def table(self) -> dict[StepKind, Handler]:
        """StepKind -> handler, built once per executor."""
        raw: dict[StepKind, Handler] = {
            StepKind.CAPTURE_SCREENSHOT: self.capture_screenshot,
            StepKind.CAPTURE_PDF: self.capture_pdf,
            StepKind.EXTRACT_LINKS: self.extract_links,
            StepKind.GENERATE_IMAGE: self.generate_image,
            StepKind.NOTIFY_WITH_ARTIFACT: self.notify_with_artifact,
            StepKind.NOTIFY_WITH_TEXT: self.notify_with_text,
            StepKind.FORWARD_LATEST_MESSAGE: self.forward_latest_message,
            StepKind.SEND_NEWS_DIGEST: self.send_news_digest,
            StepKind.ADD_MONITOR: self.add_monitor,
            StepKind.ADD_BRIEFING: self.add_briefing,
            StepKind.ADD_COMPETITOR_WATCH: self.add_competitor_watch,
            StepKind.ADD_JOB_ALERT: self.add_job_alert,
        }
        return {kind: _guarded(kind, func) for kind, func in raw.items()}

    # ------------------------------------------------------------------
    # Shared helpers (also used by sweeps)
    # ------------------------------------------------------------------

    def _params(self, step: Step) -> dict[str, Any]:
        return require_params(step, defaults={"to": self.config.default_to})

    def require_capability(self, service_key: str) -> None:
        """Raise CapabilityUnavailable naming what is missing."""
        status = self.registry.check(service_key)
        if not status.available:
            raise CapabilityUnavailable(f"{status.name} is not available: {status.reason}")

    def checked_url(self, kind: str, raw: Any) -> str:
        """Normalize a URL and reject anything but http(s)."""
        url = normalize_url(raw)
        if not is_web_url(url):
            raise StepFault(f"{kind}: Unsupported URL scheme in '{raw}' (only http and https)")
        return url

    def new_artifact_path(self, ext: str) -> Path:
        self.config.runs_dir.mkdir(parents=True, exist_ok=True)
        return self.config.runs_dir / new_artifact_name(ext)

    def artifact_for(self, path: Path, kind: str, source_url: Optional[str]) -> Artifact:
        return Artifact(path=str(path), href=f"/runs/{path.name}", source_url=source_url, kind=kind)

    def public_link(self, artifact: Artifact) -> Optional[str]:
        if not self.config.public_base_url:
            return None
        return self.config.public_base_url.rstrip("/") + artifact.href

    async def send_mail(
        self,
        to: str,
        subject: str,
        text: str,
        attachments: Sequence[Path] = (),
    ) -> MailReceipt:
        """Send through the mail capability, checking availability first."""
        self.require_capability("mail")
        return await self.caps.mail.send(to, subject, text, attachments=attachments)

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    async def capture_screenshot(self, step: Step, ctx: RunContext) -> RunContext:
        params = self._params(step)
        url = self.checked_url(step.kind, params["url"])
        browser = await ctx.get_browser()
        path = self.new_artifact_path("png")
        await browser.screenshot(url, path, full_page=bool(params.get("full_page", True)))
        ctx.last_artifact = self.artifact_for(path, "screenshot", url)
        ctx.note(f"Screenshot of {url} saved as {ctx.last_artifact.href}")
        return ctx

    async def capture_pdf(self, step: Step, ctx: RunContext) -> RunContext:
        params = self._params(step)
        url = self.checked_url(step.kind, params["url"])
        browser = await ctx.get_browser()
        path = self.new_artifact_path("pdf")
        await browser.pdf(url, path)
        ctx.last_artifact = self.artifact_for(path, "pdf", url)
        ctx.note(f"PDF of {url} saved as {ctx.last_artifact.href}")
        return ctx

    async def extract_links(self, step: Step, ctx: RunContext) -> RunContext:
        params = self._params(step)
        url = self.checked_url(step.kind, params["url"])
        browser = await ctx.get_browser()
        anchors = await browser.anchors(url)
        links = select_links(anchors, url, params.get("count", 10))
        ctx.last_text = format_links(links, params.get("format", "text"))
        ctx.note(f"Extracted {len(links)} link(s) from {url} ({len(anchors)} anchors on page)")
        return ctx

    async def generate_image(self, step: Step, ctx: RunContext) -> RunContext:
        params = self._params(step)
        self.require_capability("image_generation")
        image = await self.caps.images.generate(str(params["prompt"]), params.get("size"))

        data = image.data
        if data is None and image.url:
            data = await self.caps.web.fetch(image.url)
        if not data:
            raise StepFault("generate_image: provider returned an empty image")

        path = self.new_artifact_path("png")
        path.write_bytes(data)
        ctx.last_artifact = self.artifact_for(path, "image", image.url)
        ctx.note(f"Image generated and saved as {ctx.last_artifact.href}")
        return ctx

    # ------------------------------------------------------------------
    # Notify
    # ------------------------------------------------------------------

    async def notify_with_artifact(self, step: Step, ctx: RunContext) -> RunContext:
        params = self._params(step)
        artifact = ctx.last_artifact
        if artifact is None:
            raise StepFault("notify_with_artifact: no artifact to send (nothing was captured)")

        body = render_template(
            "artifact",
            message=params.get("message"),
            kind=artifact.kind,
            source_url=artifact.source_url,
            link=self.public_link(artifact),
        )
        subject = params.get("subject") or render_subject("artifact")
        await self.send_mail(params["to"], subject, body, attachments=[Path(artifact.path)])
        ctx.note(f"Sent {artifact.kind} {artifact.href} to {params['to']}")
        return ctx

    async def notify_with_text(self, step: Step, ctx: RunContext) -> RunContext:
        params = self._params(step)
        if ctx.last_text is None:
            raise StepFault("notify_with_text: no text to send (nothing was produced)")

        body = render_template("text", text=ctx.last_text)
        subject = params.get("subject") or render_subject("text")
        await self.send_mail(params["to"], subject, body)
        ctx.note(f"Sent text result to {params['to']}")
        return ctx

    async def forward_latest_message(self, step: Step, ctx: RunContext) -> RunContext:
        params = self._params(step)
        self.require_capability("mailbox")
        self.require_capability("mail")

        message = await self.caps.mailbox.latest_message()
        if message is None:
            raise StepFault("forward_latest_message: mailbox is empty")

        body = render_template(
            "forward", sender=message.sender, subject=message.subject, raw=message.text
        )
        subject = render_subject("forward", subject=message.subject or "(no subject)")
        await self.send_mail(params["to"], subject, body)
        ctx.last_text = f"Forwarded '{message.subject}' from {message.sender}"
        ctx.note(f"{ctx.last_text} to {params['to']}")
        return ctx

    async def send_news_digest(self, step: Step, ctx: RunContext) -> RunContext:
        params = self._params(step)
        self.require_capability("mail")
        topic = str(params["topic"]).strip()
        limit = params.get("limit") or DEFAULT_NEWS_LIMIT

        items = await self.caps.feeds.news(topic, limit=int(limit))
        body = render_template("news_digest", heading="Google News", topic=topic, items=items)
        await self.send_mail(params["to"], render_subject("news_digest", topic=topic), body)
        ctx.last_text = body
        ctx.note(f"News digest on '{topic}' ({len(items)} item(s)) sent to {params['to']}")
        return ctx

    # ------------------------------------------------------------------
    # Persisted jobs
    # ------------------------------------------------------------------

    async def add_monitor(self, step: Step, ctx: RunContext) -> RunContext:
        params = self._params(step)
        url = self.checked_url(step.kind, params["url"])
        job = self.job_store.add_monitor(url, params["to"])
        ctx.last_text = f"Monitoring {url} for changes; notifications go to {job.notify_to}."
        ctx.note(f"Monitor {job.id} added for {url}")
        return ctx

    async def add_briefing(self, step: Step, ctx: RunContext) -> RunContext:
        params = self._params(step)
        frequency = str(params.get("frequency") or "daily").lower()
        job = self.job_store.add_briefing(str(params["topic"]).strip(), params["to"], frequency)
        ctx.last_text = f"{frequency.capitalize()} briefing on '{job.topic}' for {job.notify_to}."
        ctx.note(f"Briefing {job.id} added on '{job.topic}'")
        return ctx

    async def add_competitor_watch(self, step: Step, ctx: RunContext) -> RunContext:
        params = self._params(step)
        feeds = [self.checked_url(step.kind, f) for f in as_list(params["feeds"])]
        if not feeds:
            raise StepFault("add_competitor_watch: missing required parameter(s): feeds")
        job = self.job_store.add_competitor_watch(feeds, params["to"])
        ctx.last_text = f"Watching {len(feeds)} competitor feed(s) for {job.notify_to}."
        ctx.note(f"Competitor watch {job.id} added ({len(feeds)} feed(s))")
        return ctx

    async def add_job_alert(self, step: Step, ctx: RunContext) -> RunContext:
        params = self._params(step)
        keywords = as_list(params["keywords"])
        if not keywords:
            raise StepFault("add_job_alert: missing required parameter(s): keywords")
        feeds = [self.checked_url(step.kind, f) for f in as_list(params.get("feeds"))]
        if not feeds:
            feeds = [news_search_url(" ".join(keywords) + " jobs")]
        job = self.job_store.add_job_alert(keywords, feeds, params["to"])
        ctx.last_text = f"Job alert for {', '.join(keywords)} set up for {job.notify_to}."
        ctx.note(f"Job alert {job.id} added ({len(feeds)} feed(s))")
        return ctx
