"""Notification text rendered with Jinja2.

Template types:
    - artifact: body sent with a screenshot/PDF/image attachment
    - text: body for plain text results
    - news_digest: topical news (send_news_digest, briefings)
    - feed_digest: competitor watches and job alerts
    - monitor_changed: page-change notice
    - forward: forwarded mailbox message

Usage:
    from autodirector.engine.templates import render_template, render_subject

    body = render_template("news_digest", topic="AI", items=items, heading="News")
    subject = render_subject("news_digest", topic="AI")
"""

from pathlib import Path
from typing import Any, Optional

import jinja2

from autodirector.core.logging import get_logger

logger = get_logger(__name__)

TEMPLATE_DIR = Path(__file__).parent.parent / "mail_templates"

DEFAULT_SUBJECT = "Mediad AutoDirector"

# Default subject lines per template
_DEFAULT_SUBJECTS: dict[str, str] = {
    "artifact": DEFAULT_SUBJECT,
    "text": "Mediad AutoDirector: results",
    "news_digest": "News: {topic}",
    "briefing": "{frequency} briefing: {topic}",
    "competitor_watch": "Competitor watch: {count} update(s)",
    "job_alert": "Job alert: {keywords}",
    "monitor_changed": "Page changed: {url}",
    "forward": "Fwd: {subject}",
}

# Jinja2 environment (created once, reused)
_env: Optional[jinja2.Environment] = None


def _get_env() -> jinja2.Environment:
    """Get or create the Jinja2 environment."""
    global _env
    if _env is None:
        _env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=jinja2.select_autoescape(["html"]),
            keep_trailing_newline=True,
        )
    return _env


def render_template(template_name: str, **kwargs: Any) -> str:
    """Render a plain-text template.

    Args:
        template_name: Template name (without ".txt.j2")
        **kwargs: Template variables

    Returns:
        Rendered text
    """
    template = _get_env().get_template(f"{template_name}.txt.j2")
    return template.render(**kwargs).strip() + "\n"


def render_subject(template_name: str, **kwargs: Any) -> str:
    """Default subject line for a template type.

    Unknown types and missing fields fall back to the service name.
    """
    pattern = _DEFAULT_SUBJECTS.get(template_name, DEFAULT_SUBJECT)
    try:
        subject = pattern.format(**kwargs)
    except (KeyError, IndexError):
        logger.debug(f"Subject for {template_name} missing fields, using default")
        return DEFAULT_SUBJECT
    return subject[:1].upper() + subject[1:]


def list_templates() -> list[str]:
    """List available template names."""
    return sorted(p.name[: -len(".txt.j2")] for p in TEMPLATE_DIR.glob("*.txt.j2"))
