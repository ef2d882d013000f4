"""Plain HTTP fetches (page bytes for fingerprinting, feed documents, images)."""

import asyncio
from typing import Optional

import requests  # type: ignore[import-untyped]

from autodirector.core.exceptions import FetchError
from autodirector.core.logging import get_logger
from autodirector.integrations.base import IntegrationBase

logger = get_logger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; MediadAutoDirector/0.3; +https://mediad.app)"


class WebClient(IntegrationBase):
    """requests-based fetcher with a bounded timeout and small retry."""

    def __init__(
        self,
        timeout: float = 20.0,
        max_retries: int = 2,
        session: Optional[requests.Session] = None,
    ):
        self.timeout = timeout
        self.max_retries = max_retries
        self._session = session or requests.Session()
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    def is_configured(self) -> bool:
        return True

    def fetch_sync(self, url: str) -> bytes:
        """GET url and return the raw body.

        Raises:
            FetchError: On network error, timeout, or non-2xx status
        """

        def _get() -> bytes:
            response = self._session.get(url, timeout=self.timeout)
            response.raise_for_status()
            return response.content

        content = self.with_retry(
            _get,
            max_retries=self.max_retries,
            exceptions=(requests.RequestException,),
            error_cls=FetchError,
        )
        logger.debug("Fetched", extra={"context": {"url": url, "bytes": len(content)}})
        return content

    async def fetch(self, url: str) -> bytes:
        return await asyncio.to_thread(self.fetch_sync, url)
