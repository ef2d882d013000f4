"""Image generation via the OpenAI Images API.

The request never carries a response_format parameter: newer image models
reject it and return base64 by default, while older ones return a hosted
URL. Both shapes are accepted.
"""

import asyncio
import base64
from dataclasses import dataclass
from typing import Any, Optional

from autodirector.core.config import Config
from autodirector.core.exceptions import ImageGenerationError
from autodirector.core.logging import get_logger
from autodirector.integrations.base import IntegrationBase

logger = get_logger(__name__)

DEFAULT_SIZE = "1024x1024"


@dataclass
class GeneratedImage:
    """Provider output: inline bytes or a hosted URL.

    Attributes:
        data: Decoded image bytes when returned inline
        url: Hosted image URL when returned by reference
    """

    data: Optional[bytes] = None
    url: Optional[str] = None


class OpenAIImageGenerator(IntegrationBase):
    """Lazy OpenAI client, images.generate only."""

    def __init__(self, api_key: Optional[str], model: str = "gpt-image-1", timeout: float = 60.0):
        self._api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client: Any = None

    @classmethod
    def from_config(cls, config: Config) -> "OpenAIImageGenerator":
        return cls(config.openai_api_key, model=config.image_model, timeout=config.oracle_timeout)

    def is_configured(self) -> bool:
        return bool(self._api_key)

    def _get_client(self) -> Any:
        if self._client is None:
            if not self._api_key:
                raise ImageGenerationError("OPENAI_API_KEY not set")
            from openai import OpenAI

            self._client = OpenAI(api_key=self._api_key, timeout=self.timeout)
        return self._client

    def generate_sync(self, prompt: str, size: Optional[str] = None) -> GeneratedImage:
        """Generate one image.

        Raises:
            ImageGenerationError: On provider failure or an empty response
        """
        client = self._get_client()
        try:
            response = client.images.generate(
                model=self.model,
                prompt=prompt,
                size=size or DEFAULT_SIZE,
                n=1,
            )
        except Exception as e:
            raise ImageGenerationError(f"Image generation failed: {e}") from e

        if not response.data:
            raise ImageGenerationError("Image provider returned no images")

        item = response.data[0]
        b64 = getattr(item, "b64_json", None)
        url = getattr(item, "url", None)
        if b64:
            return GeneratedImage(data=base64.b64decode(b64))
        if url:
            return GeneratedImage(url=url)
        raise ImageGenerationError("Image provider returned neither inline data nor a URL")

    async def generate(self, prompt: str, size: Optional[str] = None) -> GeneratedImage:
        logger.info("Generating image", extra={"context": {"model": self.model}})
        return await asyncio.to_thread(self.generate_sync, prompt, size)
