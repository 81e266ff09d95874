"""Infrastructure errors that fail a whole turn.

Tool problems are never raised from the orchestration core; they are turned
into feedback for the model. Only the conditions below escape to the caller.
"""


class FinchError(Exception):
    """Base exception for Finch."""

    pass


class ConfigurationError(FinchError):
    """Invalid settings or an implementation path that cannot be loaded."""

    pass


class ModelProviderError(FinchError):
    """The model collaborator failed to produce a response."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class StoreError(FinchError):
    """The durable store failed to read or persist."""

    pass


class TurnCancelledError(FinchError):
    """The caller abandoned the turn while it was in flight."""

    pass
