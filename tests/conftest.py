"""
Pytest configuration for pledge tests.

Every test gets a fresh MicrotaskQueue installed as the default scheduler, so
nothing runs until the test drains it. The resolved / rejected / deferred
fixtures form the conformance-style adapter over the public constructors.
"""

from collections.abc import Callable, Iterator
from typing import Any

import pytest

from pledge import MicrotaskQueue, Pledge, Resolvers, set_default_scheduler


@pytest.fixture(autouse=True)
def microtasks() -> Iterator[MicrotaskQueue]:
    queue = MicrotaskQueue()
    previous = set_default_scheduler(queue)
    yield queue
    queue.clear()
    set_default_scheduler(previous)


@pytest.fixture
def resolved() -> Callable[[Any], Pledge[Any]]:
    """Adapter: an already-resolved pledge."""
    return Pledge.resolve


@pytest.fixture
def rejected() -> Callable[[Any], Pledge[Any]]:
    """Adapter: an already-rejected pledge."""
    return Pledge.reject


@pytest.fixture
def deferred() -> Callable[[], Resolvers[Any]]:
    """Adapter: a pending pledge with its resolve/reject capabilities."""
    return Pledge.with_resolvers


@pytest.fixture
def never() -> Pledge[Any]:
    """A pledge that is never settled."""
    return Pledge(lambda resolve, reject: None)
