"""AutoDirector Exception Hierarchy.

All custom exceptions inherit from AutoDirectorError.
StepFault is its own branch because a fault aborts the remainder of a run,
which is categorically different from an integration failing in isolation
(for example during a sweep, where the next job still runs).

Exception Hierarchy:
    AutoDirectorError (base)
    ├── ConfigurationError
    ├── ValidationError
    ├── StoreError
    ├── IntegrationError
    │   ├── BrowserError
    │   ├── MailError
    │   ├── MailboxError
    │   ├── OracleError
    │   ├── ImageGenerationError
    │   └── FetchError
    └── StepFault
        └── CapabilityUnavailable
"""


class AutoDirectorError(Exception):
    """Base exception for all AutoDirector errors.

    All custom exceptions inherit from this class,
    allowing for broad exception handling when needed.
    """

    pass


class ConfigurationError(AutoDirectorError):
    """Configuration is invalid or missing.

    Raised when:
        - Required environment variable is missing
        - A capability is required but its credentials are absent
        - Path is not writable
    """

    pass


class ValidationError(AutoDirectorError):
    """Data validation failed.

    Raised when:
        - A request payload has the wrong shape
        - A terminal run record is mutated
    """

    pass


class StoreError(AutoDirectorError):
    """Job store operation failed.

    Raised when:
        - A collection file cannot be read or parsed
        - A collection file cannot be rewritten
    """

    pass


class IntegrationError(AutoDirectorError):
    """External integration failed.

    Base class for capability-specific errors.
    """

    pass


class BrowserError(IntegrationError):
    """Headless browser failed.

    Raised when:
        - Chromium cannot be launched
        - Navigation times out or errors
        - Screenshot or PDF rendering fails
    """

    pass


class MailError(IntegrationError):
    """Outbound mail transport failed.

    Raised when:
        - SMTP connection or login fails
        - The server rejects the message
    """

    pass


class MailboxError(IntegrationError):
    """Inbound mailbox read failed.

    Raised when:
        - IMAP connection or login fails
        - Folder selection or fetch fails
    """

    pass


class OracleError(IntegrationError):
    """Planner oracle call failed."""

    pass


class ImageGenerationError(IntegrationError):
    """Image generation provider call failed."""

    pass


class FetchError(IntegrationError):
    """Plain HTTP fetch (page content, feeds) failed."""

    pass


class StepFault(AutoDirectorError):
    """A step could not run.

    Raised by action handlers when:
        - A required parameter is missing
        - A required context field (artifact, text) is unset
        - The capability the step depends on failed

    This aborts the remainder of the run. It is never swallowed by the
    executor; it is recorded on the run record instead.
    """

    pass


class CapabilityUnavailable(StepFault):
    """The capability a step needs is not configured.

    The message names the missing configuration so operators can tell
    "your task can't run" apart from "your task failed".
    """

    pass
