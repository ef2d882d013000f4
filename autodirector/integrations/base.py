"""Base classes for external integrations.

All integrations inherit from IntegrationBase, which provides:
    - Configuration check interface
    - Retry with exponential backoff
    - Logging patterns
"""

import time
from abc import ABC, abstractmethod
from typing import Callable, Optional, TypeVar

from autodirector.core.exceptions import IntegrationError
from autodirector.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class IntegrationBase(ABC):
    """Abstract base class for all external integrations.

    Subclasses must implement:
        - is_configured(): Check if credentials are present
    """

    @abstractmethod
    def is_configured(self) -> bool:
        """Check if required credentials/configuration are present.

        Returns:
            True if all required config is present
        """
        pass

    def with_retry(
        self,
        func: Callable[[], T],
        max_retries: int = 2,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        exceptions: tuple = (Exception,),
        error_cls: type[IntegrationError] = IntegrationError,
    ) -> T:
        """Execute function with exponential backoff retry.

        Only wrap idempotent calls (fetches), never sends.

        Args:
            func: Function to execute
            max_retries: Maximum retry attempts
            base_delay: Initial delay between retries (seconds)
            max_delay: Maximum delay between retries
            exceptions: Exception types to catch and retry
            error_cls: IntegrationError subclass raised when retries run out

        Returns:
            Function result

        Raises:
            IntegrationError: If all retries exhausted
        """
        last_exception: Optional[Exception] = None
        delay = base_delay

        for attempt in range(max_retries + 1):
            try:
                return func()
            except exceptions as e:
                last_exception = e
                if attempt < max_retries:
                    logger.warning(
                        f"Retry {attempt + 1}/{max_retries} after {delay}s: {e}",
                        extra={"context": {"attempt": attempt + 1}},
                    )
                    time.sleep(delay)
                    delay = min(delay * 2, max_delay)

        raise error_cls(
            f"Operation failed after {max_retries + 1} attempts: {last_exception}"
        ) from last_exception
