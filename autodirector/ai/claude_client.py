"""Shared Claude API client mixin."""

from typing import Any, Optional

from autodirector.core.config import Config, get_config
from autodirector.core.exceptions import OracleError
from autodirector.core.logging import get_logger

logger = get_logger(__name__)


class ClaudeClientMixin:
    """Mixin providing lazy Anthropic client initialization.

    Classes using this mixin either set ``self._config`` or rely on the
    process-wide config.
    """

    _client: Optional[Any] = None
    _config: Optional[Config] = None

    def _get_claude_config(self) -> Config:
        """Return the app config."""
        return self._config or get_config()

    def is_available(self) -> bool:
        """Check if the Claude API key is configured."""
        return bool(self._get_claude_config().claude_api_key)

    def _get_client(self) -> Any:
        """Get or create the Anthropic client (lazy singleton)."""
        if self._client is None:
            config = self._get_claude_config()
            if not config.claude_api_key:
                raise OracleError("CLAUDE_API_KEY not configured")
            import anthropic

            self._client = anthropic.Anthropic(
                api_key=config.claude_api_key, timeout=config.oracle_timeout
            )
        return self._client

    def _complete(self, prompt: str, system: str = "", max_tokens: int = 1024) -> str:
        """One-shot message, returning the first text block.

        Raises:
            OracleError: On any API failure or an empty reply
        """
        config = self._get_claude_config()
        client = self._get_client()
        kwargs: dict[str, Any] = {
            "model": config.planner_model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system
        try:
            response = client.messages.create(**kwargs)
        except Exception as e:
            raise OracleError(f"Claude request failed: {e}") from e

        if not response.content:
            raise OracleError("Claude returned an empty response")
        logger.debug(
            "Claude call",
            extra={
                "context": {
                    "model": config.planner_model,
                    "input_tokens": response.usage.input_tokens,
                    "output_tokens": response.usage.output_tokens,
                }
            },
        )
        return response.content[0].text
