"""
pledge - deferred values with thenable interop for Python.

A Pledge is settled once, to a value or a rejection reason, by the code that
created it. Consumers chain reactions with ``then`` before or after
settlement; reactions run later, on an injectable scheduler, in the order
they were registered. Any object with a callable ``then`` is adopted.

Example:
    from pledge import Pledge, run_until_idle

    p, resolve, reject = Pledge.with_resolvers()
    p.then(lambda v: print("got", v))
    resolve(42)
    run_until_idle()  # prints "got 42"
"""

__version__ = "0.3.0"

from pledge.combinators import (
    Resolvers,
    all_,
    all_settled,
    any_,
    race,
    try_,
    try_on,
    with_resolvers,
)
from pledge.core import Pledge
from pledge.errors import (
    AggregateFailure,
    CycleError,
    NoInputsError,
    PendingError,
    PledgeError,
    RejectedWithValue,
    UsageError,
)
from pledge.scheduler import (
    AsyncioScheduler,
    MicrotaskQueue,
    Scheduler,
    get_default_scheduler,
    run_until_idle,
    set_default_scheduler,
    using_scheduler,
)
from pledge.settled import Fulfilled, Rejected, SettledResult
from pledge.types import CallGuard, PledgeState, Reaction, Thenable

__all__ = [
    # Core
    "Pledge",
    "PledgeState",
    "Reaction",
    "CallGuard",
    "Thenable",
    # Combinators
    "Resolvers",
    "all_",
    "all_settled",
    "any_",
    "race",
    "try_",
    "try_on",
    "with_resolvers",
    # Settled descriptors
    "Fulfilled",
    "Rejected",
    "SettledResult",
    # Scheduling
    "AsyncioScheduler",
    "MicrotaskQueue",
    "Scheduler",
    "get_default_scheduler",
    "run_until_idle",
    "set_default_scheduler",
    "using_scheduler",
    # Errors
    "AggregateFailure",
    "CycleError",
    "NoInputsError",
    "PendingError",
    "PledgeError",
    "RejectedWithValue",
    "UsageError",
]
