"""Headless browser capability backed by Playwright (Chromium).

One PlaywrightBrowser is one browser session: the executor opens it lazily
for a run that contains browser steps and closes it when the run ends.

Usage:
    from autodirector.integrations.browser import PlaywrightBrowser

    browser = PlaywrightBrowser(navigation_timeout_ms=45000)
    try:
        await browser.screenshot("https://example.com", Path("runs/shot.png"))
    finally:
        await browser.close()
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from autodirector.core.exceptions import BrowserError
from autodirector.core.logging import get_logger
from autodirector.integrations.base import IntegrationBase

logger = get_logger(__name__)

VIEWPORT = {"width": 1366, "height": 768}
WAIT_UNTIL = "networkidle"

# Runs in the page: resolved href plus visible text of every anchor
_ANCHOR_SCRIPT = """
(nodes) => nodes.map((a) => ({
    href: a.href || "",
    text: (a.innerText || a.textContent || "").trim(),
}))
"""


@dataclass
class Anchor:
    """A hyperlink found on a page.

    Attributes:
        href: Absolute URL as resolved by the browser
        text: Visible anchor text
    """

    href: str
    text: str


class PlaywrightBrowser(IntegrationBase):
    """Lazily launched Chromium session."""

    def __init__(self, navigation_timeout_ms: int = 45000, headless: bool = True):
        self.navigation_timeout_ms = navigation_timeout_ms
        self.headless = headless
        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None

    def is_configured(self) -> bool:
        return True

    @property
    def is_open(self) -> bool:
        return self._browser is not None

    async def _get_context(self) -> Any:
        if self._context is not None:
            return self._context

        try:
            from playwright.async_api import async_playwright

            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(headless=self.headless)
            self._context = await self._browser.new_context(viewport=VIEWPORT)
        except Exception as e:
            await self.close()
            raise BrowserError(f"Could not launch browser: {e}") from e

        logger.info("Browser session started")
        return self._context

    async def _open(self, url: str) -> Any:
        context = await self._get_context()
        try:
            page = await context.new_page()
        except Exception as e:
            raise BrowserError(f"Could not open a page for {url}: {e}") from e
        try:
            await page.goto(url, wait_until=WAIT_UNTIL, timeout=self.navigation_timeout_ms)
        except Exception as e:
            await page.close()
            raise BrowserError(f"Navigation to {url} failed: {e}") from e
        return page

    async def screenshot(self, url: str, path: Path, full_page: bool = True) -> Path:
        """Navigate to url and save a PNG screenshot.

        Raises:
            BrowserError: On launch, navigation or rendering failure
        """
        page = await self._open(url)
        try:
            await page.screenshot(path=str(path), full_page=full_page)
        except Exception as e:
            raise BrowserError(f"Screenshot of {url} failed: {e}") from e
        finally:
            await page.close()
        logger.info("Screenshot saved", extra={"context": {"url": url, "path": str(path)}})
        return path

    async def pdf(self, url: str, path: Path) -> Path:
        """Navigate to url and print it to PDF (Chromium headless only)."""
        page = await self._open(url)
        try:
            await page.pdf(path=str(path), print_background=True)
        except Exception as e:
            raise BrowserError(f"PDF of {url} failed: {e}") from e
        finally:
            await page.close()
        logger.info("PDF saved", extra={"context": {"url": url, "path": str(path)}})
        return path

    async def anchors(self, url: str) -> list[Anchor]:
        """Navigate to url and list every anchor with an href."""
        page = await self._open(url)
        try:
            items = await page.eval_on_selector_all("a[href]", _ANCHOR_SCRIPT)
        except Exception as e:
            raise BrowserError(f"Reading links from {url} failed: {e}") from e
        finally:
            await page.close()
        return [Anchor(href=item.get("href", ""), text=item.get("text", "")) for item in items]

    async def close(self) -> None:
        """Close the session. Safe to call more than once."""
        browser: Optional[Any] = self._browser
        playwright: Optional[Any] = self._playwright
        self._context = None
        self._browser = None
        self._playwright = None

        if browser is not None:
            try:
                await browser.close()
            except Exception as e:
                logger.debug(f"Browser close error: {e}")
        if playwright is not None:
            try:
                await playwright.stop()
            except Exception as e:
                logger.debug(f"Playwright stop error: {e}")
