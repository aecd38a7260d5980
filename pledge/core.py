"""The Pledge type: a deferred value settled exactly once.

A Pledge starts PENDING and is settled by the ``resolve`` / ``reject``
capabilities handed to its executor. Reactions attached with ``then`` run on
the pledge's scheduler, in registration order, never inside the call that
registered them.

Example:
    seen = []
    Pledge.resolve(20).then(lambda v: v + 1).then(seen.append)
    run_until_idle()
    assert seen == [21]
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from collections.abc import Callable, Generator, Iterable
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from pledge._validators import callable_or_none, ensure_callable
from pledge.errors import PendingError, RejectedWithValue, UsageError
from pledge.reactions import drain
from pledge.resolution import resolve_pledge
from pledge.scheduler import Scheduler, get_default_scheduler
from pledge.settled import Fulfilled, Rejected, SettledResult
from pledge.types import Executor, PledgeState, Reaction
from pledge.utils import DEBUG_PLEDGES, CreationSite, capture_creation_site, describe

if TYPE_CHECKING:
    from pledge.combinators import Resolvers

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")


def _pending_executor(resolve: Callable[[Any], None], reject: Callable[[Any], None]) -> None:
    pass


def _awaitable_error(reason: Any) -> BaseException:
    # Futures refuse StopIteration, so it travels wrapped like any other value.
    if isinstance(reason, BaseException) and not isinstance(reason, StopIteration):
        return reason
    error = RejectedWithValue(reason)
    if isinstance(reason, StopIteration):
        error.__cause__ = reason
    return error


class Pledge(Generic[T]):
    """A deferred value that is fulfilled or rejected at most once."""

    def __init__(self, executor: Executor, *, scheduler: Scheduler | None = None) -> None:
        if not callable(executor):
            raise UsageError(
                f"Pledge executor must be callable, got {type(executor).__name__}\n"
                "Hint: use Pledge(lambda resolve, reject: ...) or Pledge.with_resolvers()"
            )
        self._state = PledgeState.PENDING
        self._outcome: Any = None
        self._reactions: deque[Reaction] = deque()
        self._drain_scheduled = False
        self._lock = threading.Lock()
        self._scheduler: Scheduler = scheduler if scheduler is not None else get_default_scheduler()
        self.created_at: CreationSite | None = (
            capture_creation_site(skip_frames=2) if DEBUG_PLEDGES else None
        )

        try:
            executor(self._resolve, self._reject)
        except Exception as exc:
            logger.debug("executor of %r raised %r", self, exc)
            self._reject(exc)

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def _resolve(self, value: Any = None) -> None:
        resolve_pledge(self, value)

    def _reject(self, reason: Any = None) -> None:
        self._settle(PledgeState.REJECTED, reason)

    def _fulfill(self, value: Any) -> None:
        self._settle(PledgeState.FULFILLED, value)

    def _settle(self, state: PledgeState, outcome: Any) -> bool:
        with self._lock:
            if self._state is not PledgeState.PENDING:
                settled = False
            else:
                self._state = state
                self._outcome = outcome
                settled = True
        if not settled:
            logger.debug("ignored %s of settled %r", state.value, self)
            return False
        logger.debug("%r settled", self)
        drain(self)
        return True

    def _claim_drain(self) -> bool:
        with self._lock:
            if (
                self._state is PledgeState.PENDING
                or self._drain_scheduled
                or not self._reactions
            ):
                return False
            self._drain_scheduled = True
            return True

    def _next_reaction(self) -> Reaction | None:
        with self._lock:
            if self._reactions:
                return self._reactions.popleft()
            self._drain_scheduled = False
            return None

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> PledgeState:
        return self._state

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    def is_pending(self) -> bool:
        return self._state is PledgeState.PENDING

    def is_fulfilled(self) -> bool:
        return self._state is PledgeState.FULFILLED

    def is_rejected(self) -> bool:
        return self._state is PledgeState.REJECTED

    def outcome(self) -> SettledResult[T]:
        """Describe how this pledge settled.

        Raises:
            PendingError: if the pledge has not settled yet.
        """
        with self._lock:
            state, outcome = self._state, self._outcome
        if state is PledgeState.FULFILLED:
            return Fulfilled(outcome)
        if state is PledgeState.REJECTED:
            return Rejected(outcome)
        raise PendingError(self)

    def __repr__(self) -> str:
        state = self._state
        if state is PledgeState.PENDING:
            text = "<Pledge pending"
        else:
            text = f"<Pledge {state.value}: {describe(self._outcome, 40)}"
        if self.created_at is not None:
            text += f" created at {self.created_at}"
        return text + ">"

    # ------------------------------------------------------------------
    # Chaining
    # ------------------------------------------------------------------

    def then(
        self,
        on_fulfilled: Callable[[T], Any] | None = None,
        on_rejected: Callable[[Any], Any] | None = None,
    ) -> Pledge[Any]:
        """Register reactions and return the pledge of their result.

        Missing or non-callable handlers pass the outcome through unchanged.
        A handler that raises rejects the returned pledge with the exception;
        a handler that returns a thenable makes the returned pledge adopt it.
        """
        downstream: Pledge[Any] = Pledge(_pending_executor, scheduler=self._scheduler)
        reaction = Reaction(
            on_fulfilled=callable_or_none(on_fulfilled),
            on_rejected=callable_or_none(on_rejected),
            downstream=downstream,
        )
        with self._lock:
            self._reactions.append(reaction)
        drain(self)
        return downstream

    def catch(self, on_rejected: Callable[[Any], Any]) -> Pledge[Any]:
        return self.then(None, on_rejected)

    def finally_(self, cleanup: Callable[[], Any]) -> Pledge[T]:
        """Run ``cleanup()`` on either path and pass the original outcome on.

        The outcome is forwarded once whatever ``cleanup`` returned has
        settled. If ``cleanup`` raises or returns a pledge that rejects, that
        rejection replaces the original outcome.
        """
        ensure_callable(cleanup, name="cleanup")
        scheduler = self._scheduler

        def on_fulfilled(value: T) -> Pledge[T]:
            return Pledge.resolve(cleanup(), scheduler=scheduler).then(lambda _: value)

        def on_rejected(reason: Any) -> Pledge[Any]:
            def rethrow(_: Any) -> Pledge[Any]:
                if isinstance(reason, Exception):
                    raise reason
                return Pledge.reject(reason, scheduler=scheduler)

            return Pledge.resolve(cleanup(), scheduler=scheduler).then(rethrow)

        return self.then(on_fulfilled, on_rejected)

    # ------------------------------------------------------------------
    # asyncio interop
    # ------------------------------------------------------------------

    def __await__(self) -> Generator[Any, None, T]:
        return self.as_future().__await__()

    def as_future(self, loop: asyncio.AbstractEventLoop | None = None) -> asyncio.Future[T]:
        """Mirror this pledge into an asyncio Future on ``loop``.

        The pledge only settles the future; cancelling the future leaves the
        pledge untouched. Rejection reasons that are not exceptions are
        wrapped in RejectedWithValue.
        """
        if loop is None:
            loop = asyncio.get_running_loop()
        future: asyncio.Future[T] = loop.create_future()

        def _set(setter: Callable[[Any], None], payload: Any) -> None:
            if not future.done():
                setter(payload)

        def on_fulfilled(value: T) -> None:
            loop.call_soon_threadsafe(_set, future.set_result, value)

        def on_rejected(reason: Any) -> None:
            loop.call_soon_threadsafe(_set, future.set_exception, _awaitable_error(reason))

        self.then(on_fulfilled, on_rejected)
        return future

    # ------------------------------------------------------------------
    # Constructors and combinators
    # ------------------------------------------------------------------

    @classmethod
    def resolve(cls, value: U = None, *, scheduler: Scheduler | None = None) -> Pledge[U]:
        """Pledge resolved with ``value`` (adopting it when it is thenable)."""
        return cls(lambda resolve, _reject: resolve(value), scheduler=scheduler)

    @classmethod
    def reject(cls, reason: Any = None, *, scheduler: Scheduler | None = None) -> Pledge[Any]:
        """Pledge already rejected with ``reason``."""
        return cls(lambda _resolve, reject: reject(reason), scheduler=scheduler)

    @classmethod
    def all(cls, items: Iterable[Any], *, scheduler: Scheduler | None = None) -> Pledge[list[Any]]:
        from pledge.combinators import all_

        return all_(items, scheduler=scheduler)

    @classmethod
    def race(cls, items: Iterable[Any], *, scheduler: Scheduler | None = None) -> Pledge[Any]:
        """Settle like whichever input settles first.

        An empty ``items`` gives a pledge that never settles.
        """
        from pledge.combinators import race

        return race(items, scheduler=scheduler)

    @classmethod
    def all_settled(
        cls, items: Iterable[Any], *, scheduler: Scheduler | None = None
    ) -> Pledge[list[SettledResult[Any]]]:
        from pledge.combinators import all_settled

        return all_settled(items, scheduler=scheduler)

    @classmethod
    def any(cls, items: Iterable[Any], *, scheduler: Scheduler | None = None) -> Pledge[Any]:
        from pledge.combinators import any_

        return any_(items, scheduler=scheduler)

    @classmethod
    def try_(cls, fn: Callable[..., U], *args: Any, **kwargs: Any) -> Pledge[U]:
        from pledge.combinators import try_

        return try_(fn, *args, **kwargs)

    @classmethod
    def try_on(
        cls, scheduler: Scheduler | None, fn: Callable[..., U], *args: Any, **kwargs: Any
    ) -> Pledge[U]:
        from pledge.combinators import try_on

        return try_on(scheduler, fn, *args, **kwargs)

    @classmethod
    def with_resolvers(cls, *, scheduler: Scheduler | None = None) -> Resolvers:
        from pledge.combinators import with_resolvers

        return with_resolvers(scheduler=scheduler)


__all__ = ["Pledge"]
