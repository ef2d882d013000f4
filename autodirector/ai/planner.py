"""Planner: free text to a Plan.

Understands:
    - "forward my last email to a@b.com"
    - "send me news on electric cars to a@b.com"
    - "screenshot cnn.com and email it to a@b.com" (also pdf / links)
    - "watch competitors https://x.com/feed ... to a@b.com"
    - "job alert for python, remote to a@b.com"
    - "monitor https://example.com and tell a@b.com"
    - "weekly news briefing on AI to a@b.com"
    - "extract https://example.com to csv"

Heuristic matchers are evaluated in a fixed order and the first match wins.
Text no matcher understands goes to the planner oracle (when one is
configured); anything the oracle cannot express becomes an empty plan.
plan() never raises.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Optional

from autodirector.core.logging import get_logger
from autodirector.engine.steps import Plan, Step, StepKind, normalize_url

logger = get_logger(__name__)

# =============================================================================
# PATTERNS
# =============================================================================

_EMAIL_RE = re.compile(r"[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}")

# Absolute URLs, the "https;//" typo, and www. hosts
_URL_RE = re.compile(r"(?:https?[:;]//|www\.)[^\s<>\"']+", re.IGNORECASE)

# Bare domain right after a capture/watch keyword: "screenshot cnn.com"
_BARE_DOMAIN_RE = re.compile(
    r"\b(?:screenshot|snapshot|capture|pdf|links|extract|monitor|track|watch)\b"
    r"(?:\s+(?:of|from|on|the|page|site|website|all|links))*"
    r"\s+((?:[a-z0-9\-]+\.)+[a-z]{2,}(?:/[^\s]*)?)",
    re.IGNORECASE,
)

_TRAILING_PUNCT = ".,;:!?)]}'\""

_TOPIC_RE = re.compile(
    r"\b(?:on|about|for|regarding)\s+(.+?)"
    r"(?=\s+(?:to|and|then|daily|weekly|every|each)\b|[.!?,;]|$)",
    re.IGNORECASE,
)

_KEYWORDS_RE = re.compile(
    r"\b(?:for|about|matching|on|with)\s+(.+?)"
    r"(?=\s+(?:to|jobs?|alerts?|from|in\s+feeds?|daily|weekly|every)\b|[.!?;]|$)",
    re.IGNORECASE,
)


def _words(*words: str) -> re.Pattern:
    return re.compile(r"\b(?:" + "|".join(words) + r")\b", re.IGNORECASE)


_FORWARD = _words("forward", "fwd")
_MAIL_NOUN = _words("gmail", "email", "e-mail", "mail", "inbox", "message")
_NEWS = _words("google news", "news", "headlines")
_SEND = _words("send", "email", "e-mail", "mail")
_SCREENSHOT = _words("screenshot", "screen shot", "snapshot", "capture")
_PDF = _words("pdf")
_LINKS = _words("links")
_CSV = _words("csv")
_EXTRACT = _words("extract", "csv")
_RECURRING = _words("monitor", "track", "watch", "daily", "weekly", "every", "recurring")
_MONITOR = _words("monitor", "track", "watch")
_COMPETITOR = _words("competitor", "competitors")
_JOBS = _words("job", "jobs")
_ALERT = _words("alert", "alerts")
_DAILY = _words("daily", "every day")
_WEEKLY = _words("weekly", "every week")


# =============================================================================
# SIGNALS
# =============================================================================


@dataclass
class Signals:
    """What the matchers look at.

    Attributes:
        text: Original text
        emails: Every address found, in order
        urls: Every URL found, normalized, in order
        target: Recipient (own address excluded), or None
        topic: Topic phrase, or None
        keywords: Comma/and separated keyword phrases
        recurring: A recurrence keyword is present
    """

    text: str
    emails: list[str] = field(default_factory=list)
    urls: list[str] = field(default_factory=list)
    target: Optional[str] = None
    topic: Optional[str] = None
    keywords: list[str] = field(default_factory=list)
    recurring: bool = False

    @property
    def url(self) -> Optional[str]:
        return self.urls[0] if self.urls else None

    def has(self, pattern: re.Pattern) -> bool:
        return pattern.search(self.text) is not None


def _strip_punct(value: str) -> str:
    return value.rstrip(_TRAILING_PUNCT)


def extract_urls(text: str) -> list[str]:
    """URLs in order of appearance, normalized and de-duplicated.

    Both patterns can hit the same text ("watch www.cnn.com"); a match whose
    span overlaps one already taken is the same URL and is dropped.
    """
    found: list[tuple[int, int, str]] = []
    for match in _URL_RE.finditer(text):
        found.append((match.start(), match.end(), _strip_punct(match.group(0))))
    for match in _BARE_DOMAIN_RE.finditer(text):
        found.append((match.start(1), match.end(1), _strip_punct(match.group(1))))

    urls: list[str] = []
    taken: list[tuple[int, int]] = []
    for start, end, raw in sorted(found):
        if any(start < t_end and t_start < end for t_start, t_end in taken):
            continue
        taken.append((start, end))
        url = normalize_url(raw)
        if url and url not in urls:
            urls.append(url)
    return urls


def pick_target(emails: list[str], own_address: Optional[str]) -> Optional[str]:
    """First address that is not the service's own."""
    own = (own_address or "").strip().lower()
    for email in emails:
        if email.lower() != own:
            return email
    return None


def _clean_phrase(text: str) -> str:
    text = _EMAIL_RE.sub(" ", text)
    text = _URL_RE.sub(" ", text)
    return text


def extract_topic(text: str) -> Optional[str]:
    match = _TOPIC_RE.search(_clean_phrase(text))
    if not match:
        return None
    topic = " ".join(match.group(1).split()).strip(_TRAILING_PUNCT + " ")
    topic = re.sub(r"^(?:the\s+)?(?:latest\s+)?", "", topic, flags=re.IGNORECASE)
    return topic or None


def extract_keywords(text: str) -> list[str]:
    match = _KEYWORDS_RE.search(_clean_phrase(text))
    if not match:
        return []
    parts = re.split(r",|\bor\b|\band\b", match.group(1), flags=re.IGNORECASE)
    return [" ".join(p.split()) for p in parts if p.strip()]


def extract_signals(text: str, own_address: Optional[str] = None) -> Signals:
    emails = [_strip_punct(e) for e in _EMAIL_RE.findall(text)]
    return Signals(
        text=text,
        emails=emails,
        urls=extract_urls(_EMAIL_RE.sub(" ", text)),
        target=pick_target(emails, own_address),
        topic=extract_topic(text),
        keywords=extract_keywords(text),
        recurring=_RECURRING.search(text) is not None,
    )


# =============================================================================
# MATCHERS
# =============================================================================


@dataclass(frozen=True)
class Matcher:
    """A named heuristic: when predicate holds, build produces the steps."""

    name: str
    predicate: Callable[[Signals], bool]
    build: Callable[[Signals], list[Step]]


def _build_forward(s: Signals) -> list[Step]:
    return [Step(StepKind.FORWARD_LATEST_MESSAGE.value, {"to": s.target})]


def _build_news_now(s: Signals) -> list[Step]:
    return [Step(StepKind.SEND_NEWS_DIGEST.value, {"topic": s.topic, "to": s.target})]


def _build_capture(s: Signals) -> list[Step]:
    if s.has(_PDF):
        steps = [Step(StepKind.CAPTURE_PDF.value, {"url": s.url})]
    elif s.has(_SCREENSHOT):
        steps = [Step(StepKind.CAPTURE_SCREENSHOT.value, {"url": s.url})]
    else:
        fmt = "csv" if s.has(_CSV) else "text"
        steps = [Step(StepKind.EXTRACT_LINKS.value, {"url": s.url, "format": fmt})]

    if s.target:
        notify = (
            StepKind.NOTIFY_WITH_TEXT
            if steps[0].kind == StepKind.EXTRACT_LINKS.value
            else StepKind.NOTIFY_WITH_ARTIFACT
        )
        steps.append(Step(notify.value, {"to": s.target}))
    return steps


def _build_competitor_watch(s: Signals) -> list[Step]:
    return [Step(StepKind.ADD_COMPETITOR_WATCH.value, {"feeds": list(s.urls), "to": s.target})]


def _build_job_alert(s: Signals) -> list[Step]:
    params: dict = {"keywords": list(s.keywords), "to": s.target}
    if s.urls:
        params["feeds"] = list(s.urls)
    return [Step(StepKind.ADD_JOB_ALERT.value, params)]


def _build_monitor(s: Signals) -> list[Step]:
    return [Step(StepKind.ADD_MONITOR.value, {"url": s.url, "to": s.target})]


def _build_briefing(s: Signals) -> list[Step]:
    frequency = "weekly" if s.has(_WEEKLY) else "daily"
    return [
        Step(
            StepKind.ADD_BRIEFING.value,
            {"topic": s.topic, "to": s.target, "frequency": frequency},
        )
    ]


def _build_extract(s: Signals) -> list[Step]:
    steps = [Step(StepKind.EXTRACT_LINKS.value, {"url": s.url, "format": "csv"})]
    if s.target:
        steps.append(Step(StepKind.NOTIFY_WITH_TEXT.value, {"to": s.target}))
    return steps


# Evaluated in order; first match wins
MATCHERS: tuple[Matcher, ...] = (
    Matcher(
        "forward_latest",
        lambda s: s.has(_FORWARD) and s.has(_MAIL_NOUN) and bool(s.target),
        _build_forward,
    ),
    Matcher(
        "news_now",
        lambda s: s.has(_NEWS)
        and s.has(_SEND)
        and bool(s.target)
        and bool(s.topic)
        and not s.recurring,
        _build_news_now,
    ),
    Matcher(
        "capture",
        lambda s: (s.has(_SCREENSHOT) or s.has(_PDF) or s.has(_LINKS))
        and bool(s.url)
        and not s.recurring,
        _build_capture,
    ),
    Matcher(
        "competitor_watch",
        lambda s: s.has(_COMPETITOR) and bool(s.urls) and bool(s.target),
        _build_competitor_watch,
    ),
    Matcher(
        "job_alert",
        lambda s: s.has(_JOBS) and s.has(_ALERT) and bool(s.keywords) and bool(s.target),
        _build_job_alert,
    ),
    Matcher(
        "monitor",
        lambda s: s.has(_MONITOR) and bool(s.url) and bool(s.target),
        _build_monitor,
    ),
    Matcher(
        "briefing",
        lambda s: (s.has(_DAILY) or s.has(_WEEKLY))
        and s.has(_NEWS)
        and bool(s.topic)
        and bool(s.target),
        _build_briefing,
    ),
    Matcher(
        "extract",
        lambda s: s.has(_EXTRACT) and bool(s.url),
        _build_extract,
    ),
)


# =============================================================================
# PLANNER
# =============================================================================


class Planner:
    """Heuristics first, oracle second, empty plan last."""

    def __init__(self, own_address: Optional[str] = None, oracle=None):
        """Initialize planner.

        Args:
            own_address: The service's own address, never picked as target
            oracle: Object with ``is_available()`` and ``async plan(text)``
        """
        self.own_address = own_address
        self.oracle = oracle

    def match(self, text: str) -> Optional[Plan]:
        """Heuristic pass only. None when no matcher applies."""
        signals = extract_signals(text, self.own_address)
        for matcher in MATCHERS:
            if matcher.predicate(signals):
                logger.info(
                    f"Heuristic match: {matcher.name}",
                    extra={"context": {"matcher": matcher.name}},
                )
                return Plan(
                    steps=matcher.build(signals),
                    start_url=signals.url,
                    source=f"heuristic:{matcher.name}",
                    target=signals.target,
                )
        return None

    async def plan(self, text: str) -> Plan:
        """Free text to Plan. Never raises."""
        if not isinstance(text, str) or not text.strip():
            return Plan()

        try:
            heuristic = self.match(text)
            if heuristic is not None:
                return heuristic

            signals = extract_signals(text, self.own_address)
            if self.oracle is None or not self.oracle.is_available():
                logger.info("No heuristic match and no oracle; empty plan")
                return Plan(start_url=signals.url, target=signals.target)

            steps = await self.oracle.plan(text)
            if not steps:
                return Plan(start_url=signals.url, target=signals.target)
            return Plan(
                steps=steps,
                start_url=signals.url,
                source="oracle",
                target=signals.target,
            )
        except Exception as e:
            logger.error(f"Planning failed: {e}", exc_info=True)
            return Plan()
