"""Value types shared by the settlement core, the resolution procedure and the reactions."""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

if TYPE_CHECKING:
    from pledge.core import Pledge

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)

Task = Callable[[], None]
ResolveFn = Callable[[Any], None]
RejectFn = Callable[[Any], None]
Executor = Callable[[ResolveFn, RejectFn], Any]
Handler = Callable[[Any], Any]


class PledgeState(Enum):
    """Settlement state. Moves from PENDING at most once and never back."""

    PENDING = "pending"
    FULFILLED = "fulfilled"
    REJECTED = "rejected"

    @property
    def is_settled(self) -> bool:
        return self is not PledgeState.PENDING


@runtime_checkable
class Thenable(Protocol[T_co]):
    """Anything exposing a callable ``then(on_fulfilled, on_rejected)``."""

    def then(self, on_fulfilled: Any = ..., on_rejected: Any = ...) -> Any: ...


@dataclass(frozen=True)
class Reaction:
    """Handlers registered by one ``then`` call plus the pledge they settle.

    A handler of ``None`` means pass-through: the source outcome is forwarded
    to ``downstream`` unchanged.
    """

    on_fulfilled: Handler | None
    on_rejected: Handler | None
    downstream: Pledge[Any]

    def handler_for(self, state: PledgeState) -> Handler | None:
        if state is PledgeState.FULFILLED:
            return self.on_fulfilled
        if state is PledgeState.REJECTED:
            return self.on_rejected
        raise ValueError(f"No handler for a {state.value} pledge")


@dataclass
class CallGuard:
    """One-shot latch shared by a pair of settlement capabilities.

    Only the first ``claim()`` returns True; every later claim, from either
    capability or from any thread, returns False.
    """

    _fired: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def fired(self) -> bool:
        return self._fired

    def claim(self) -> bool:
        with self._lock:
            if self._fired:
                return False
            self._fired = True
            return True


__all__ = [
    "CallGuard",
    "Executor",
    "Handler",
    "PledgeState",
    "Reaction",
    "RejectFn",
    "ResolveFn",
    "Task",
    "Thenable",
]
