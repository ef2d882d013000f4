"""Planner oracle: Claude turns free text into steps from a closed vocabulary.

The reply is untrusted. It must parse as JSON and every step must validate
against OracleStep with a known kind, otherwise the whole reply is thrown
away and the caller gets an empty list.
"""

import asyncio
import json
import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError

from autodirector.ai.claude_client import ClaudeClientMixin
from autodirector.core.config import Config
from autodirector.core.exceptions import OracleError
from autodirector.core.logging import get_logger
from autodirector.engine.steps import REQUIRED_PARAMS, Step, StepKind

logger = get_logger(__name__)

_SYSTEM_PROMPT = (
    "You convert a user's request into a JSON workflow for an automation "
    "service. Reply with JSON only, no prose and no code fences."
)

_PROMPT_TEMPLATE = """Allowed step kinds and their required params:
{vocabulary}

Optional params: capture_screenshot.full_page, extract_links.count (1-20),
extract_links.format ("text" or "csv"), generate_image.size,
notify_with_artifact.subject, notify_with_artifact.message,
notify_with_text.subject, send_news_digest.limit, add_briefing.frequency
("daily" or "weekly"), add_job_alert.feeds.

Reply with a JSON array of steps, each {{"kind": "...", "params": {{...}}}}.
If the request cannot be expressed with these kinds, reply with [].

Request:
{text}
"""

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class OracleStep(BaseModel):
    """One step as the oracle must return it."""

    model_config = ConfigDict(extra="forbid")

    kind: StepKind
    params: dict[str, Any] = Field(default_factory=dict)


def _vocabulary() -> str:
    return "\n".join(
        f"- {kind.value}: {', '.join(params)}" for kind, params in REQUIRED_PARAMS.items()
    )


def build_prompt(text: str) -> str:
    return _PROMPT_TEMPLATE.format(vocabulary=_vocabulary(), text=text)


def parse_oracle_reply(reply: str) -> list[Step]:
    """Validate an oracle reply into Steps.

    Accepts a single step object, a list of steps, or {"steps": [...]}.
    Any JSON or schema problem, including one unknown kind, yields [].
    """
    cleaned = _FENCE_RE.sub("", (reply or "").strip())
    try:
        data = json.loads(cleaned)
    except ValueError:
        logger.info("Oracle reply is not JSON; discarding")
        return []

    if isinstance(data, dict) and "steps" in data and "kind" not in data:
        data = data["steps"]
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        logger.info("Oracle reply has unexpected shape; discarding")
        return []

    try:
        validated = [OracleStep.model_validate(item) for item in data]
    except PydanticValidationError as e:
        logger.info(
            "Oracle reply failed validation; discarding",
            extra={"context": {"errors": e.error_count()}},
        )
        return []

    return [Step(kind=item.kind.value, params=dict(item.params)) for item in validated]


class ClaudePlannerOracle(ClaudeClientMixin):
    """Planner fallback backed by Claude."""

    def __init__(self, config: Optional[Config] = None):
        self._config = config
        self._client = None

    def is_available(self) -> bool:
        config = self._get_claude_config()
        return bool(config.claude_api_key and config.oracle_enabled)

    def plan_sync(self, text: str) -> list[Step]:
        """Ask Claude for steps. Never raises; failures mean no steps."""
        try:
            reply = self._complete(build_prompt(text), system=_SYSTEM_PROMPT)
        except OracleError as e:
            logger.warning(f"Planner oracle unavailable: {e}")
            return []
        return parse_oracle_reply(reply)

    async def plan(self, text: str) -> list[Step]:
        return await asyncio.to_thread(self.plan_sync, text)
