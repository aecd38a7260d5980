"""Aggregation combinators over collections of pledges.

Each combinator builds one aggregate Pledge and observes its inputs only
through ``then``. Items that are not pledges are adopted with
``Pledge.resolve`` first, so plain values count as already fulfilled.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pledge._validators import ensure_callable, ensure_iterable
from pledge.core import Pledge
from pledge.errors import AggregateFailure, NoInputsError
from pledge.scheduler import Scheduler
from pledge.settled import Fulfilled, Rejected, SettledResult
from pledge.types import RejectFn, ResolveFn

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class _Tally:
    """Index-aligned slots plus a countdown, completed at most once."""

    total: int
    slots: list[Any] = field(init=False)
    remaining: int = field(init=False)
    completed: bool = field(default=False, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        self.slots = [None] * self.total
        self.remaining = self.total

    def record(self, index: int, value: Any) -> bool:
        """Store ``value`` at ``index``; True only for the call that fills the last slot."""
        with self._lock:
            if self.completed:
                return False
            self.slots[index] = value
            self.remaining -= 1
            if self.remaining == 0:
                self.completed = True
                return True
            return False


def _coerce(items: Iterable[Any], scheduler: Scheduler | None) -> list[Pledge[Any]]:
    return [
        item if isinstance(item, Pledge) else Pledge.resolve(item, scheduler=scheduler)
        for item in ensure_iterable(items, name="items")
    ]


def _slot_handler(tally: _Tally, index: int, wrap: Callable[[Any], Any], done: Callable[[list[Any]], None]):
    def handler(value: Any) -> None:
        if tally.record(index, wrap(value)):
            done(list(tally.slots))

    return handler


def _identity(value: Any) -> Any:
    return value


def all_(items: Iterable[Any], *, scheduler: Scheduler | None = None) -> Pledge[list[Any]]:
    """Fulfill with every input's value, in input order.

    Rejects with the first rejection reason to arrive. An empty ``items``
    fulfills with ``[]``.
    """

    def executor(resolve: ResolveFn, reject: RejectFn) -> None:
        pledges = _coerce(items, scheduler)
        if not pledges:
            resolve([])
            return
        tally = _Tally(len(pledges))
        for index, pledge in enumerate(pledges):
            pledge.then(_slot_handler(tally, index, _identity, resolve), reject)

    return Pledge(executor, scheduler=scheduler)


def race(items: Iterable[Any], *, scheduler: Scheduler | None = None) -> Pledge[Any]:
    """Settle with the outcome of whichever input settles first.

    An empty ``items`` yields a pledge that stays pending forever.
    """

    def executor(resolve: ResolveFn, reject: RejectFn) -> None:
        pledges = _coerce(items, scheduler)
        if not pledges:
            logger.debug("race() over no inputs will never settle")
        for pledge in pledges:
            pledge.then(resolve, reject)

    return Pledge(executor, scheduler=scheduler)


def all_settled(
    items: Iterable[Any], *, scheduler: Scheduler | None = None
) -> Pledge[list[SettledResult[Any]]]:
    """Fulfill with a Fulfilled/Rejected descriptor per input once all have settled.

    Never rejects. An empty ``items`` fulfills with ``[]``.
    """

    def executor(resolve: ResolveFn, reject: RejectFn) -> None:
        pledges = _coerce(items, scheduler)
        if not pledges:
            resolve([])
            return
        tally = _Tally(len(pledges))
        for index, pledge in enumerate(pledges):
            pledge.then(
                _slot_handler(tally, index, Fulfilled, resolve),
                _slot_handler(tally, index, Rejected, resolve),
            )

    return Pledge(executor, scheduler=scheduler)


def any_(items: Iterable[Any], *, scheduler: Scheduler | None = None) -> Pledge[Any]:
    """Fulfill with the first input value to arrive.

    Rejects with AggregateFailure holding every reason, in input order, once
    all inputs have rejected. An empty ``items`` rejects with NoInputsError.
    """

    def executor(resolve: ResolveFn, reject: RejectFn) -> None:
        pledges = _coerce(items, scheduler)
        if not pledges:
            reject(NoInputsError())
            return
        tally = _Tally(len(pledges))

        def give_up(reasons: list[Any]) -> None:
            reject(AggregateFailure(tuple(reasons)))

        for index, pledge in enumerate(pledges):
            pledge.then(resolve, _slot_handler(tally, index, _identity, give_up))

    return Pledge(executor, scheduler=scheduler)


def try_(fn: Callable[..., T], *args: Any, **kwargs: Any) -> Pledge[T]:
    """Call ``fn(*args, **kwargs)`` now and wrap its result or exception in a Pledge.

    Pledges are created on the default scheduler; use ``try_on`` to pick one.
    """
    return try_on(None, fn, *args, **kwargs)


def try_on(scheduler: Scheduler | None, fn: Callable[..., T], *args: Any, **kwargs: Any) -> Pledge[T]:
    """Like ``try_``, with the result pledge bound to ``scheduler``."""
    ensure_callable(fn, name="fn")
    return Pledge(lambda resolve, _reject: resolve(fn(*args, **kwargs)), scheduler=scheduler)


@dataclass(frozen=True)
class Resolvers(Generic[T]):
    """A pending pledge together with its settlement capabilities.

    Unpacks as ``pledge, resolve, reject``.
    """

    pledge: Pledge[T]
    resolve: ResolveFn
    reject: RejectFn

    def __iter__(self) -> Iterator[Any]:
        return iter((self.pledge, self.resolve, self.reject))


def with_resolvers(*, scheduler: Scheduler | None = None) -> Resolvers[Any]:
    """Create a pending pledge whose capabilities are returned as data."""
    captured: dict[str, Callable[[Any], None]] = {}

    def executor(resolve: ResolveFn, reject: RejectFn) -> None:
        captured["resolve"] = resolve
        captured["reject"] = reject

    pledge: Pledge[Any] = Pledge(executor, scheduler=scheduler)
    return Resolvers(pledge=pledge, resolve=captured["resolve"], reject=captured["reject"])


__all__ = [
    "Resolvers",
    "all_",
    "all_settled",
    "any_",
    "race",
    "try_",
    "try_on",
    "with_resolvers",
]
