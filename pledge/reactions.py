"""Dispatching reactions of settled pledges onto their scheduler."""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING, Any

from pledge.resolution import resolve_pledge
from pledge.types import PledgeState, Reaction

if TYPE_CHECKING:
    from pledge.core import Pledge

logger = logging.getLogger(__name__)


def drain(pledge: Pledge[Any]) -> None:
    """Schedule delivery of ``pledge``'s queued reactions.

    Does nothing while the pledge is pending or when a delivery task is
    already queued; that task re-reads the reaction list until it is empty,
    so reactions registered in the meantime are still delivered, in order.
    """
    if pledge._claim_drain():
        pledge._scheduler.enqueue(partial(run_reactions, pledge))


def run_reactions(pledge: Pledge[Any]) -> None:
    state = pledge.state
    outcome = pledge._outcome
    while (reaction := pledge._next_reaction()) is not None:
        dispatch(reaction, state, outcome)


def dispatch(reaction: Reaction, state: PledgeState, outcome: Any) -> None:
    """Run one reaction and settle its downstream pledge with the result."""
    downstream = reaction.downstream
    handler = reaction.handler_for(state)
    if handler is None:
        if state is PledgeState.FULFILLED:
            resolve_pledge(downstream, outcome)
        else:
            downstream._reject(outcome)
        return

    try:
        result = handler(outcome)
    except Exception as exc:
        logger.debug("handler %r raised %r", handler, exc)
        downstream._reject(exc)
        return
    resolve_pledge(downstream, result)


__all__ = [
    "dispatch",
    "drain",
    "run_reactions",
]
