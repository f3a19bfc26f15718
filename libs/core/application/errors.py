class ConsoleError(Exception):
    """Base error for operator console failures."""


class ValidationFailure(ConsoleError, ValueError):
    """Operator input rejected locally, never sent to the backend."""


class CommandFailure(ConsoleError):
    """Backend rejected or could not complete a command."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SnapshotFailure(ConsoleError):
    """One-shot state fetch failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ActionInFlight(ConsoleError):
    """An action for the same target is still waiting for the backend."""


class ModalStateError(ConsoleError):
    """Action requires an open alert modal."""
