"""Service registry for tracking capability availability.

Central registry that tracks which external capabilities are configured
and usable. Action handlers consult it before touching a capability so that
"not configured" surfaces as an explicit fault with the missing keys named,
never as a silent no-op or a crash deep inside a client library.

Usage:
    from autodirector.core.services import get_service_registry

    registry = get_service_registry()
    status = registry.check("mail")
    if not status.available:
        print(status.reason)

    # Quick boolean gate
    if registry.is_available("planner_oracle"):
        ...

    # Full readiness report (for /status and CLI diagnostics)
    report = registry.readiness_report()
"""

import importlib.util
from dataclasses import dataclass, field
from typing import Optional

from autodirector.core.config import Config, get_config
from autodirector.core.exceptions import ConfigurationError
from autodirector.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ServiceStatus:
    """Status of a single capability.

    Attributes:
        name: Human-readable service name
        service_key: Registry lookup key
        configured: Whether credentials are present
        available: Whether the service can be used right now
        reason: Why the service is unavailable (empty if available)
        credentials_present: Which credential fields are set
        credentials_missing: Which credential fields are missing
    """

    name: str
    service_key: str
    configured: bool = False
    available: bool = False
    reason: str = ""
    credentials_present: list[str] = field(default_factory=list)
    credentials_missing: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "service": self.service_key,
            "configured": self.configured,
            "available": self.available,
            "reason": self.reason,
            "credentials_present": list(self.credentials_present),
            "credentials_missing": list(self.credentials_missing),
        }


@dataclass
class ReadinessReport:
    """Readiness report across all capabilities.

    Attributes:
        services: Status of every registered service
        ready: True when every service is available
        summary: Human-readable summary string
    """

    services: list[ServiceStatus] = field(default_factory=list)
    ready: bool = False
    summary: str = ""


def _credential_status(
    label: str, creds: dict[str, Optional[str]]
) -> tuple[list[str], list[str], str]:
    """Split credentials into present/missing and describe the gap."""
    present = [k for k, v in creds.items() if v]
    missing = [k for k, v in creds.items() if not v]

    # Partial credentials are a specific problem worth calling out
    if present and missing:
        reason = (
            f"Partial {label} config: have {', '.join(present)} "
            f"but missing {', '.join(missing)}"
        )
    elif missing:
        reason = f"{label} not configured ({', '.join(missing)} not set)"
    else:
        reason = ""
    return present, missing, reason


class ServiceRegistry:
    """Central registry of all external capabilities.

    Checks config once, caches results, provides clear status
    for every capability the engine depends on.
    """

    def __init__(self, config: Optional[Config] = None) -> None:
        self._config = config
        self._statuses: dict[str, ServiceStatus] = {}
        self._refresh()

    def _refresh(self) -> None:
        """Re-check all capability configurations against current config."""
        config = self._config or get_config()
        self._statuses.clear()

        # ------------------------------------------------------------------
        # Outbound mail (SMTP)
        # ------------------------------------------------------------------
        present, missing, reason = _credential_status(
            "Mail",
            {"GMAIL_USER": config.smtp_user, "GMAIL_APP_PASSWORD": config.smtp_password},
        )
        configured = not missing
        self._statuses["mail"] = ServiceStatus(
            name=f"Mail sender (SMTP {config.smtp_host})",
            service_key="mail",
            configured=configured,
            available=configured,
            reason=reason,
            credentials_present=present,
            credentials_missing=missing,
        )

        # ------------------------------------------------------------------
        # Inbound mailbox (IMAP)
        # ------------------------------------------------------------------
        present, missing, reason = _credential_status(
            "Mailbox",
            {"IMAP_USER": config.imap_user, "IMAP_PASSWORD": config.imap_password},
        )
        configured = not missing
        self._statuses["mailbox"] = ServiceStatus(
            name=f"Mailbox reader (IMAP {config.imap_host})",
            service_key="mailbox",
            configured=configured,
            available=configured,
            reason=reason,
            credentials_present=present,
            credentials_missing=missing,
        )

        # ------------------------------------------------------------------
        # Planner oracle (Claude)
        # ------------------------------------------------------------------
        present, missing, reason = _credential_status(
            "Planner oracle", {"CLAUDE_API_KEY": config.claude_api_key}
        )
        configured = not missing
        available = configured and config.oracle_enabled
        if configured and not config.oracle_enabled:
            reason = "Planner oracle disabled (AUTODIRECTOR_ORACLE_ENABLED=false)"
        self._statuses["planner_oracle"] = ServiceStatus(
            name="Planner oracle (Anthropic Claude)",
            service_key="planner_oracle",
            configured=configured,
            available=available,
            reason=reason,
            credentials_present=present,
            credentials_missing=missing,
        )

        # ------------------------------------------------------------------
        # Image generation (OpenAI)
        # ------------------------------------------------------------------
        present, missing, reason = _credential_status(
            "Image generation", {"OPENAI_API_KEY": config.openai_api_key}
        )
        configured = not missing
        available = configured and config.images_enabled
        if configured and not config.images_enabled:
            reason = "Image generation disabled (AUTODIRECTOR_IMAGES_ENABLED=false)"
        self._statuses["image_generation"] = ServiceStatus(
            name="Image generation (OpenAI)",
            service_key="image_generation",
            configured=configured,
            available=available,
            reason=reason,
            credentials_present=present,
            credentials_missing=missing,
        )

        # ------------------------------------------------------------------
        # Browser (no credentials, needs the playwright package)
        # ------------------------------------------------------------------
        installed = importlib.util.find_spec("playwright") is not None
        self._statuses["browser"] = ServiceStatus(
            name="Headless browser (Playwright Chromium)",
            service_key="browser",
            configured=True,
            available=installed,
            reason="" if installed else "playwright package is not installed",
        )

    def check(self, service_key: str) -> ServiceStatus:
        """Check status of a specific service.

        Args:
            service_key: Service identifier (e.g. "mail", "browser")

        Returns:
            ServiceStatus for the requested service

        Raises:
            KeyError: If service_key is not registered
        """
        if service_key not in self._statuses:
            raise KeyError(
                f"Unknown service '{service_key}'. "
                f"Known services: {', '.join(sorted(self._statuses.keys()))}"
            )
        return self._statuses[service_key]

    def is_available(self, service_key: str) -> bool:
        """Quick boolean check: can this service be used right now?"""
        try:
            return self.check(service_key).available
        except KeyError:
            return False

    def require(self, service_key: str) -> None:
        """Assert that a service is available, or raise with a clear message.

        Args:
            service_key: Service identifier

        Raises:
            ConfigurationError: If the service is not available
        """
        status = self.check(service_key)
        if not status.available:
            raise ConfigurationError(f"{status.name} is not available: {status.reason}")

    def readiness_report(self) -> ReadinessReport:
        """Generate a readiness report for all services.

        Returns:
            ReadinessReport with per-service status
        """
        services = list(self._statuses.values())
        ready = all(svc.available for svc in services)

        lines = [f"  Overall: {'READY' if ready else 'DEGRADED'}"]
        for svc in services:
            icon = "+" if svc.available else "-"
            detail = svc.reason if svc.reason else "configured"
            lines.append(f"    [{icon}] {svc.name}: {detail}")

        return ReadinessReport(services=services, ready=ready, summary="\n".join(lines))

    def log_status(self) -> None:
        """Log the current service status at startup."""
        for svc in self._statuses.values():
            if svc.available:
                logger.info(
                    f"Service ready: {svc.name}",
                    extra={"context": {"service": svc.service_key}},
                )
            elif svc.credentials_present and svc.credentials_missing:
                # Partial config is a warning - likely a mistake
                logger.warning(
                    f"Service partially configured: {svc.name} - {svc.reason}",
                    extra={
                        "context": {
                            "service": svc.service_key,
                            "present": svc.credentials_present,
                            "missing": svc.credentials_missing,
                        }
                    },
                )
            else:
                logger.info(
                    f"Service not available: {svc.name} - {svc.reason}",
                    extra={"context": {"service": svc.service_key}},
                )


# Singleton
_registry: Optional[ServiceRegistry] = None


def get_service_registry() -> ServiceRegistry:
    """Return the cached ServiceRegistry singleton."""
    global _registry
    if _registry is None:
        _registry = ServiceRegistry()
    return _registry


def reset_service_registry() -> None:
    """Reset the cached registry. Used for testing."""
    global _registry
    _registry = None
