from __future__ import annotations

from typing import Any


class PledgeError(Exception):
    """Base class for errors raised by pledge itself."""


class UsageError(PledgeError, TypeError):
    """Raised synchronously when the public API is called the wrong way."""


class CycleError(PledgeError, TypeError):
    """Rejection reason for a pledge that was resolved with itself."""

    def __init__(self, pledge: Any) -> None:
        self.pledge = pledge
        super().__init__(
            f"Chaining cycle detected for {pledge!r}\n"
            "Hint: a pledge cannot be resolved with itself or with a value that adopts it"
        )


class PendingError(PledgeError):
    """Raised when the outcome of a still-pending pledge is read."""

    def __init__(self, pledge: Any) -> None:
        self.pledge = pledge
        super().__init__(
            f"{pledge!r} has not settled yet\n"
            "Hint: attach a reaction with .then() or drain its scheduler first"
        )


class AggregateFailure(PledgeError):
    """Rejection reason bundling one reason per input, in input order."""

    def __init__(self, errors: tuple[Any, ...], message: str = "All pledges were rejected") -> None:
        self.errors = tuple(errors)
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.args[0]!r}, errors={self.errors!r})"


class NoInputsError(AggregateFailure):
    """Rejection reason of ``any`` when it was given nothing to wait for."""

    def __init__(self) -> None:
        super().__init__((), "No pledges were provided")


class RejectedWithValue(PledgeError):
    """Carries a rejection reason that is not an exception out of ``await``."""

    def __init__(self, reason: Any) -> None:
        self.reason = reason
        super().__init__(f"Pledge rejected with non-exception reason: {reason!r}")


__all__ = [
    "AggregateFailure",
    "CycleError",
    "NoInputsError",
    "PendingError",
    "PledgeError",
    "RejectedWithValue",
    "UsageError",
]
