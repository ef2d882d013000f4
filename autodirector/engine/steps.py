"""Step model: the typed vocabulary shared by the planner and the executor.

This module defines:
    - StepKind: every action the executor knows how to dispatch
    - Step / Plan dataclasses
    - Required-parameter table and dispatch-time validation
    - Input normalization (legacy action names, flat step shapes, URLs)

A Step stores its kind as a plain string so that an unknown kind is a
representable value the executor can skip, not a parse error.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional

from autodirector.core.exceptions import StepFault, ValidationError

# =============================================================================
# ENUMERATIONS
# =============================================================================


class StepKind(str, Enum):
    """Kinds of step the executor dispatches."""

    CAPTURE_SCREENSHOT = "capture_screenshot"
    CAPTURE_PDF = "capture_pdf"
    EXTRACT_LINKS = "extract_links"
    GENERATE_IMAGE = "generate_image"
    NOTIFY_WITH_ARTIFACT = "notify_with_artifact"
    NOTIFY_WITH_TEXT = "notify_with_text"
    FORWARD_LATEST_MESSAGE = "forward_latest_message"
    SEND_NEWS_DIGEST = "send_news_digest"
    ADD_MONITOR = "add_monitor"
    ADD_BRIEFING = "add_briefing"
    ADD_COMPETITOR_WATCH = "add_competitor_watch"
    ADD_JOB_ALERT = "add_job_alert"


# Kinds that need a browser session
BROWSER_KINDS = frozenset(
    {StepKind.CAPTURE_SCREENSHOT, StepKind.CAPTURE_PDF, StepKind.EXTRACT_LINKS}
)

# Kinds that run on the direct no-browser path when they are a plan's only step
DIRECT_KINDS = frozenset({StepKind.FORWARD_LATEST_MESSAGE, StepKind.SEND_NEWS_DIGEST})

REQUIRED_PARAMS: dict[StepKind, tuple[str, ...]] = {
    StepKind.CAPTURE_SCREENSHOT: ("url",),
    StepKind.CAPTURE_PDF: ("url",),
    StepKind.EXTRACT_LINKS: ("url",),
    StepKind.GENERATE_IMAGE: ("prompt",),
    StepKind.NOTIFY_WITH_ARTIFACT: ("to",),
    StepKind.NOTIFY_WITH_TEXT: ("to",),
    StepKind.FORWARD_LATEST_MESSAGE: ("to",),
    StepKind.SEND_NEWS_DIGEST: ("topic", "to"),
    StepKind.ADD_MONITOR: ("url", "to"),
    StepKind.ADD_BRIEFING: ("topic", "to"),
    StepKind.ADD_COMPETITOR_WATCH: ("feeds", "to"),
    StepKind.ADD_JOB_ALERT: ("keywords", "to"),
}

# Action names accepted from older clients
LEGACY_ACTIONS: dict[str, StepKind] = {
    "screenshot_url": StepKind.CAPTURE_SCREENSHOT,
    "gmail_send_last": StepKind.NOTIFY_WITH_ARTIFACT,
}

_KIND_VALUES = {k.value for k in StepKind}


# =============================================================================
# DATACLASSES
# =============================================================================


@dataclass
class Step:
    """One typed action.

    Attributes:
        kind: Step kind (a StepKind value, or anything else for unknown kinds)
        params: Parameters for the handler
    """

    kind: str
    params: dict[str, Any] = field(default_factory=dict)

    @property
    def step_kind(self) -> Optional[StepKind]:
        """The StepKind, or None for an unknown kind."""
        if self.kind in _KIND_VALUES:
            return StepKind(self.kind)
        return None

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "params": dict(self.params)}

    @classmethod
    def from_dict(cls, data: Any) -> "Step":
        """Build a Step from wire input.

        Accepts {"kind", "params"}, flat {"kind", "url", ...} and the legacy
        {"action": "screenshot_url", "url": ...} shapes.

        Raises:
            ValidationError: If data is not a mapping or names no kind
        """
        if isinstance(data, Step):
            return data
        if not isinstance(data, dict):
            raise ValidationError(f"Step must be an object, got {type(data).__name__}")

        raw_kind = data.get("kind") or data.get("action") or data.get("type")
        if not raw_kind or not isinstance(raw_kind, str):
            raise ValidationError("Step has no kind")

        kind = raw_kind.strip()
        if kind in LEGACY_ACTIONS:
            kind = LEGACY_ACTIONS[kind].value

        params: dict[str, Any] = {}
        nested = data.get("params")
        if isinstance(nested, dict):
            params.update(nested)
        for key, value in data.items():
            if key in ("kind", "action", "type", "params"):
                continue
            params.setdefault(key, value)

        return cls(kind=kind, params=params)


@dataclass
class Plan:
    """Ordered steps produced from free text.

    Attributes:
        steps: Steps to run, in order
        start_url: First URL found in the text, if any
        source: What produced the plan ("heuristic:<name>", "oracle", "none")
        target: Resolved recipient address, if any
    """

    steps: list[Step] = field(default_factory=list)
    start_url: Optional[str] = None
    source: str = "none"
    target: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.steps

    @property
    def needs_browser(self) -> bool:
        return any(step.step_kind in BROWSER_KINDS for step in self.steps)

    def to_dict(self) -> dict[str, Any]:
        return {
            "steps": [step.to_dict() for step in self.steps],
            "start_url": self.start_url,
            "source": self.source,
            "target": self.target,
        }


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*://")


def normalize_url(raw: Any) -> str:
    """Tidy a user-supplied URL.

    Fixes the "https;//" typo and adds https:// when no scheme is given.
    Other schemes are left alone so that callers can reject them.
    """
    if raw is None:
        return ""
    url = str(raw).strip()
    if not url:
        return ""
    url = re.sub(r"^(https?);//", r"\1://", url, flags=re.IGNORECASE)
    if url.startswith("//"):
        return "https:" + url
    if not _SCHEME_RE.match(url):
        url = "https://" + url
    return url


def is_web_url(url: str) -> bool:
    """True for http(s) URLs with a host."""
    match = re.match(r"^(https?)://([^/\s?#]+)", url, flags=re.IGNORECASE)
    return match is not None


def steps_from_payload(value: Any) -> list[Step]:
    """Normalize a single step object or a sequence into a list of Steps.

    Raises:
        ValidationError: If value is neither a step object nor a sequence
    """
    if value is None:
        return []
    if isinstance(value, (dict, Step)):
        return [Step.from_dict(value)]
    if isinstance(value, (list, tuple)):
        return [Step.from_dict(item) for item in value]
    raise ValidationError(f"Steps must be an object or a list, got {type(value).__name__}")


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def require_params(step: Step, defaults: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    """Resolve a step's parameters and check the required ones are present.

    Args:
        step: Step being dispatched
        defaults: Fallback values (e.g. {"to": DEFAULT_TO})

    Returns:
        Params with defaults applied

    Raises:
        StepFault: Naming the missing keys
    """
    params = dict(step.params)
    for key, value in (defaults or {}).items():
        if _is_blank(params.get(key)) and not _is_blank(value):
            params[key] = value

    kind = step.step_kind
    required: Iterable[str] = REQUIRED_PARAMS.get(kind, ()) if kind else ()
    missing = [key for key in required if _is_blank(params.get(key))]
    if missing:
        raise StepFault(f"{step.kind}: missing required parameter(s): {', '.join(missing)}")
    return params


def as_list(value: Any) -> list[str]:
    """Comma/newline separated string or list -> list of non-empty strings."""
    if value is None:
        return []
    if isinstance(value, str):
        parts = re.split(r"[,\n]", value)
    else:
        parts = [str(v) for v in value]
    return [p.strip() for p in parts if p and p.strip()]
