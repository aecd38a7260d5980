"""Descriptors for settled pledges, as produced by ``all_settled`` and ``Pledge.outcome()``."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Literal, TypeVar

from frozendict import frozendict

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)

Status = Literal["fulfilled", "rejected"]


class SettledResult(Generic[T_co]):
    """Sum type describing how a pledge settled."""

    __slots__ = ()

    @property
    def status(self) -> Status:
        raise NotImplementedError

    def is_fulfilled(self) -> bool:
        """Return ``True`` when the pledge was fulfilled."""

        return isinstance(self, Fulfilled)

    def is_rejected(self) -> bool:
        """Return ``True`` when the pledge was rejected."""

        return isinstance(self, Rejected)

    def to_dict(self) -> frozendict[str, Any]:
        """Immutable ``{"status": ..., "value" | "reason": ...}`` mapping."""

        if isinstance(self, Fulfilled):
            return frozendict(status=self.status, value=self.value)
        if isinstance(self, Rejected):
            return frozendict(status=self.status, reason=self.reason)
        raise TypeError(f"Unknown settled result {self!r}")


@dataclass(frozen=True)
class Fulfilled(SettledResult[T], Generic[T]):
    """Fulfillment descriptor."""
    value: T

    @property
    def status(self) -> Status:
        return "fulfilled"


@dataclass(frozen=True)
class Rejected(SettledResult[Any]):
    """Rejection descriptor."""
    reason: Any

    @property
    def status(self) -> Status:
        return "rejected"


__all__ = [
    "Fulfilled",
    "Rejected",
    "SettledResult",
    "Status",
]
