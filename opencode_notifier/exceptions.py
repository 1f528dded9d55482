"""
Exception hierarchy for the notifier.

All exceptions inherit from NotifierError for easy catching.
"""

from typing import Optional


class NotifierError(Exception):
    """Base exception for the notifier.

    All other exceptions in this module inherit from this,
    allowing callers to catch any notifier error with a single except.
    """
    pass


class ConfigurationError(NotifierError):
    """Error in configuration.

    Raised when:
    - Config file not found or not a mapping
    - YAML/JSON parsing fails
    - A pattern is empty or not a valid regex
    - A profile is requested that does not exist
    - Line mode is started without a bot token or targets
    """
    pass


class DeliveryError(NotifierError):
    """A Discord API call failed.

    Carries the request shape and HTTP status (None for network errors and
    timeouts) so callers can classify the failure.
    """

    def __init__(
        self,
        method: str,
        path: str,
        status: Optional[int] = None,
        detail: str = "",
    ):
        self.method = method
        self.path = path
        self.status = status
        self.detail = detail
        code = status if status is not None else "network"
        super().__init__(f"Discord API {method} {path} failed ({code}): {detail}")

    def is_permission_error(self) -> bool:
        """Permission/validation failures that will not fix themselves."""
        text = str(self).lower()
        return (
            self.status in (400, 403)
            or "missing access" in text
            or "missing permissions" in text
            or "invalid form body" in text
        )

    def is_wrong_endpoint(self) -> bool:
        """The parent channel does not accept message-started threads (e.g. forums)."""
        text = str(self).lower()
        return (
            self.status in (404, 405)
            or "channel type" in text
            or "cannot execute action" in text
        )


class ThreadCreationError(DeliveryError):
    """Discord answered a thread creation call without a usable thread id."""
    pass
