"""Error types shared across the conversation pipeline.

Only ``ProviderError`` aborts a conversation turn. The lookup errors are raised
by tool executors and contained to a single failed tool result.
"""


class ProviderError(Exception):
    """A model provider could not be reached or answered with an error.

    Attributes:
        message: Human readable error surfaced to the caller
        status_code: HTTP status of the failed response, if there was one
        provider: Name of the provider that failed
    """

    def __init__(self, message: str, status_code: int | None = None, provider: str | None = None):
        self.message = message
        self.status_code = status_code
        self.provider = provider
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """Whether repeating the same request may succeed."""
        return self.status_code == 429 or (self.status_code is not None and self.status_code >= 500)


class EntityNotFoundError(LookupError):
    """A tool argument referenced a contact or task that does not exist."""


class DocumentNotFoundError(LookupError):
    """The persistence layer was asked to change a document it does not hold."""


class TurnInProgressError(RuntimeError):
    """A session already has a conversation turn running."""
