"""Configuration management for AutoDirector.

Loads configuration from environment variables and .env file.
Provides validation and sensible defaults.

Usage:
    from autodirector.core.config import get_config, validate_config

    config = get_config()
    issues = validate_config(config)
    if issues:
        for issue in issues:
            print(f"Config issue: {issue}")
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass
class Config:
    """Application configuration.

    Attributes:
        data_dir: Directory holding the persisted job collections
        runs_dir: Directory for artifacts (screenshots, PDFs, images)
        log_path: Directory for log files
        service_email: The service's own address, never chosen as a target
        default_to: Recipient used when a notify step has no "to"
        smtp_host: Outbound mail server
        smtp_port: Outbound mail port (implicit TLS)
        smtp_user: Outbound mail login (GMAIL_USER)
        smtp_password: Outbound mail app password (GMAIL_APP_PASSWORD)
        mail_from_name: Display name on outbound mail
        imap_host: Inbound mailbox server
        imap_user: Inbound mailbox login (defaults to smtp_user)
        imap_password: Inbound mailbox password (defaults to smtp_password)
        claude_api_key: Anthropic API key for the planner oracle
        planner_model: Claude model used by the planner oracle
        oracle_enabled: Feature flag for the planner oracle fallback
        openai_api_key: OpenAI API key for image generation
        image_model: OpenAI image model
        images_enabled: Feature flag for image generation
        public_base_url: Absolute base used for artifact links in mail
        port: HTTP port
        sweep_interval_minutes: Orchestrator sweep cadence
        navigation_timeout_ms: Browser navigation timeout
        http_timeout: Plain HTTP fetch timeout (seconds)
        mail_timeout: SMTP/IMAP socket timeout (seconds)
        oracle_timeout: Planner oracle request timeout (seconds)
        debug: Enable debug mode
        dry_run: Log but don't send emails
    """

    data_dir: Path = field(default_factory=lambda: Path.home() / ".autodirector" / "data")
    runs_dir: Path = field(default_factory=lambda: Path.home() / ".autodirector" / "runs")
    log_path: Path = field(default_factory=lambda: Path.home() / ".autodirector" / "logs")

    service_email: Optional[str] = None
    default_to: Optional[str] = None

    # Outbound mail
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 465
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    mail_from_name: str = "Mediad"

    # Inbound mailbox
    imap_host: str = "imap.gmail.com"
    imap_user: Optional[str] = None
    imap_password: Optional[str] = None

    # Planner oracle
    claude_api_key: Optional[str] = None
    planner_model: str = "claude-sonnet-4-20250514"
    oracle_enabled: bool = True

    # Image generation
    openai_api_key: Optional[str] = None
    image_model: str = "gpt-image-1"
    images_enabled: bool = True

    public_base_url: Optional[str] = None
    port: int = 10000
    sweep_interval_minutes: int = 60

    # Timeouts
    navigation_timeout_ms: int = 45000
    http_timeout: float = 20.0
    mail_timeout: float = 30.0
    oracle_timeout: float = 60.0

    # Feature flags
    debug: bool = False
    dry_run: bool = False

    @property
    def own_address(self) -> Optional[str]:
        """The address the service sends from (explicit or the SMTP login)."""
        return self.service_email or self.smtp_user


def load_env_file(path: Path) -> dict[str, str]:
    """Parse .env file.

    Handles:
        - KEY=VALUE format
        - Comments (lines starting with #)
        - Blank lines
        - Quoted values

    Args:
        path: Path to .env file

    Returns:
        Dictionary of environment variables
    """
    env_vars: dict[str, str] = {}

    if not path.exists():
        return env_vars

    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()

            if not line or line.startswith("#"):
                continue

            if "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()

                if value and value[0] in ('"', "'") and value[-1] == value[0]:
                    value = value[1:-1]

                if key:
                    env_vars[key] = value

    return env_vars


def _get_path(key: str, default: Path, env_vars: dict[str, str]) -> Path:
    """Get path from environment, expanding ~ and resolving."""
    value = os.environ.get(key) or env_vars.get(key)
    if value:
        return Path(value).expanduser().resolve()
    return default


def _get_str(key: str, env_vars: dict[str, str], default: Optional[str] = None) -> Optional[str]:
    """Get string from environment."""
    return os.environ.get(key) or env_vars.get(key) or default


def _get_int(key: str, default: int, env_vars: dict[str, str]) -> int:
    """Get integer from environment, keeping the default on garbage."""
    value = os.environ.get(key) or env_vars.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_bool(key: str, default: bool, env_vars: dict[str, str]) -> bool:
    """Get boolean from environment."""
    value = os.environ.get(key) or env_vars.get(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


DEFAULT_DATA_DIR = Path.home() / ".autodirector" / "data"
DEFAULT_RUNS_DIR = Path.home() / ".autodirector" / "runs"
DEFAULT_LOG_PATH = Path.home() / ".autodirector" / "logs"


def load_config(env_file: Optional[Path] = None) -> Config:
    """Load configuration from environment and .env file.

    Priority:
        1. Environment variables (highest)
        2. .env file
        3. Default values (lowest)

    Args:
        env_file: Path to .env file. Defaults to .env in current directory.

    Returns:
        Loaded configuration
    """
    if env_file is None:
        env_file = Path.cwd() / ".env"

    env_vars = load_env_file(Path(env_file))

    smtp_user = _get_str("GMAIL_USER", env_vars)
    smtp_password = _get_str("GMAIL_APP_PASSWORD", env_vars)

    return Config(
        data_dir=_get_path("AUTODIRECTOR_DATA_DIR", DEFAULT_DATA_DIR, env_vars),
        runs_dir=_get_path("AUTODIRECTOR_RUNS_DIR", DEFAULT_RUNS_DIR, env_vars),
        log_path=_get_path("AUTODIRECTOR_LOG_PATH", DEFAULT_LOG_PATH, env_vars),
        service_email=_get_str("AUTODIRECTOR_SERVICE_EMAIL", env_vars),
        default_to=_get_str("DEFAULT_TO", env_vars),
        smtp_host=_get_str("SMTP_HOST", env_vars, "smtp.gmail.com") or "smtp.gmail.com",
        smtp_port=_get_int("SMTP_PORT", 465, env_vars),
        smtp_user=smtp_user,
        smtp_password=smtp_password,
        mail_from_name=_get_str("MAIL_FROM_NAME", env_vars, "Mediad") or "Mediad",
        imap_host=_get_str("IMAP_HOST", env_vars, "imap.gmail.com") or "imap.gmail.com",
        imap_user=_get_str("IMAP_USER", env_vars, smtp_user),
        imap_password=_get_str("IMAP_PASSWORD", env_vars, smtp_password),
        claude_api_key=_get_str("CLAUDE_API_KEY", env_vars),
        planner_model=_get_str("AUTODIRECTOR_PLANNER_MODEL", env_vars, Config.planner_model)
        or Config.planner_model,
        oracle_enabled=_get_bool("AUTODIRECTOR_ORACLE_ENABLED", True, env_vars),
        openai_api_key=_get_str("OPENAI_API_KEY", env_vars),
        image_model=_get_str("AUTODIRECTOR_IMAGE_MODEL", env_vars, Config.image_model)
        or Config.image_model,
        images_enabled=_get_bool("AUTODIRECTOR_IMAGES_ENABLED", True, env_vars),
        public_base_url=_get_str("PUBLIC_BASE_URL", env_vars),
        port=_get_int("PORT", 10000, env_vars),
        sweep_interval_minutes=_get_int("AUTODIRECTOR_SWEEP_MINUTES", 60, env_vars),
        debug=_get_bool("AUTODIRECTOR_DEBUG", False, env_vars),
        dry_run=_get_bool("AUTODIRECTOR_DRY_RUN", False, env_vars),
    )


def validate_config(config: Config) -> list[str]:
    """Validate configuration.

    Checks:
        - Data, runs and log directories exist or can be created
        - Paths are writable
        - Credential combinations are complete

    Args:
        config: Configuration to validate

    Returns:
        List of issues (empty if valid)
    """
    issues: list[str] = []

    for label, directory in (
        ("Data", config.data_dir),
        ("Runs", config.runs_dir),
        ("Log", config.log_path),
    ):
        try:
            directory.mkdir(parents=True, exist_ok=True)
            if not os.access(directory, os.W_OK):
                issues.append(f"{label} directory not writable: {directory}")
        except OSError as e:
            issues.append(f"Cannot create {label.lower()} directory {directory}: {e}")

    # Outbound mail credentials (all or none)
    smtp_creds = {
        "GMAIL_USER": config.smtp_user,
        "GMAIL_APP_PASSWORD": config.smtp_password,
    }
    present = [k for k, v in smtp_creds.items() if v]
    missing = [k for k, v in smtp_creds.items() if not v]

    if present and missing:
        issues.append(
            f"CRITICAL: Partial mail credentials will cause send failures. "
            f"Have: {', '.join(present)}. Missing: {', '.join(missing)}."
        )

    imap_creds = {
        "IMAP_USER": config.imap_user,
        "IMAP_PASSWORD": config.imap_password,
    }
    imap_present = [k for k, v in imap_creds.items() if v]
    imap_missing = [k for k, v in imap_creds.items() if not v]
    if imap_present and imap_missing:
        issues.append(
            f"Partial mailbox credentials. "
            f"Have: {', '.join(imap_present)}. Missing: {', '.join(imap_missing)}."
        )

    if config.oracle_enabled and not config.claude_api_key:
        issues.append("Planner oracle enabled but CLAUDE_API_KEY is missing (heuristics only).")

    if config.images_enabled and not config.openai_api_key:
        issues.append("Image generation enabled but OPENAI_API_KEY is missing.")

    if config.sweep_interval_minutes < 1:
        issues.append(
            f"AUTODIRECTOR_SWEEP_MINUTES must be at least 1 (got {config.sweep_interval_minutes})."
        )

    return issues


# Singleton config
_config: Optional[Config] = None


def get_config() -> Config:
    """Return cached configuration singleton.

    Loads configuration on first call, returns cached version thereafter.

    Returns:
        Application configuration
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Reset cached configuration.

    Used primarily for testing.
    """
    global _config
    _config = None
