"""The resolution procedure: settling a pledge with an arbitrary value.

``resolve_pledge(target, x)`` first classifies ``x`` into one of:

- SamePledge:        ``x`` is a Pledge; adopt its outcome on a later turn
- GenericThenable:   ``x`` has a callable ``then``; call it on a later turn
                     with a guarded pair of capabilities
- ThenLookupFailed:  reading ``x.then`` raised; reject with that error
- PlainValue / NonThenable: fulfill directly

The probing order matters. Pledges are recognised before their ``then`` is
read, and ``then`` is read exactly once, before anything is scheduled.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, Any

from pledge.errors import CycleError
from pledge.types import CallGuard, Thenable
from pledge.utils import describe

if TYPE_CHECKING:
    from pledge.core import Pledge

logger = logging.getLogger(__name__)

# Values of these types never carry a ``then`` worth probing.
_PRIMITIVE_TYPES = (type(None), bool, int, float, complex, str, bytes)


@dataclass(frozen=True)
class PlainValue:
    value: Any


@dataclass(frozen=True)
class SamePledge:
    pledge: Pledge[Any]


@dataclass(frozen=True)
class GenericThenable:
    value: Thenable[Any]
    then: Callable[..., Any]


@dataclass(frozen=True)
class NonThenable:
    value: Any


@dataclass(frozen=True)
class ThenLookupFailed:
    value: Any
    error: Exception


Candidate = PlainValue | SamePledge | GenericThenable | NonThenable | ThenLookupFailed


def _class_has_bound_then(cls: type) -> bool:
    """Whether ``cls.then`` is bound to the class rather than to its instances.

    A plain function in the class body is an instance method; reading it off
    the class would hand the fulfil capability over as ``self``.
    """
    for klass in cls.__mro__:
        if "then" in vars(klass):
            return isinstance(vars(klass)["then"], (classmethod, staticmethod))
    # Only reachable through the metaclass, where it is bound to ``cls``.
    return True


def classify(x: Any) -> Candidate:
    """Decide how a settlement value must be treated."""
    # Import here to avoid circular imports
    from pledge.core import Pledge

    if isinstance(x, Pledge):
        return SamePledge(x)
    if isinstance(x, _PRIMITIVE_TYPES):
        return PlainValue(x)
    if isinstance(x, type) and not _class_has_bound_then(x):
        return NonThenable(x)
    try:
        # AttributeError means there is no then member at all.
        then = getattr(x, "then", None)
    except Exception as exc:
        return ThenLookupFailed(x, exc)
    if callable(then):
        return GenericThenable(x, then)
    return NonThenable(x)


@dataclass(frozen=True)
class GuardedCapability:
    """Settlement capability handed to a foreign ``then``.

    Both capabilities of one adoption attempt share a CallGuard, so only the
    first call through either of them has any effect.
    """

    guard: CallGuard
    action: Callable[[Any], Any]

    def __call__(self, value: Any = None) -> None:
        if self.guard.claim():
            self.action(value)
        else:
            logger.debug("ignored repeated thenable callback with %s", describe(value))


def resolve_pledge(target: Pledge[Any], x: Any) -> None:
    """Settle ``target`` with ``x``, adopting ``x`` when it is thenable."""
    if not target.is_pending():
        logger.debug("ignored resolve of settled %r", target)
        return

    if x is target:
        logger.debug("cycle detected while resolving %r", target)
        target._reject(CycleError(target))
        return

    candidate = classify(x)
    if isinstance(candidate, SamePledge):
        target._scheduler.enqueue(partial(_adopt_pledge, target, candidate.pledge))
    elif isinstance(candidate, GenericThenable):
        target._scheduler.enqueue(partial(_adopt_thenable, target, candidate))
    elif isinstance(candidate, ThenLookupFailed):
        logger.debug("reading then of %s raised %r", describe(candidate.value), candidate.error)
        target._reject(candidate.error)
    else:
        target._fulfill(candidate.value)


def _adopt_pledge(target: Pledge[Any], inner: Pledge[Any]) -> None:
    logger.debug("%r adopts %r", target, inner)
    inner.then(partial(resolve_pledge, target), target._reject)


def _adopt_thenable(target: Pledge[Any], candidate: GenericThenable) -> None:
    logger.debug("%r adopts thenable %s", target, describe(candidate.value))
    guard = CallGuard()
    on_fulfilled = GuardedCapability(guard, partial(resolve_pledge, target))
    on_rejected = GuardedCapability(guard, target._reject)
    try:
        candidate.then(on_fulfilled, on_rejected)
    except Exception as exc:
        if guard.claim():
            target._reject(exc)
        else:
            logger.debug("ignored %r raised by then after it settled %r", exc, target)


__all__ = [
    "Candidate",
    "GenericThenable",
    "GuardedCapability",
    "NonThenable",
    "PlainValue",
    "SamePledge",
    "ThenLookupFailed",
    "classify",
    "resolve_pledge",
]
