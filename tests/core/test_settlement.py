"""Settlement state machine: one-shot transitions, executors and chaining."""

from __future__ import annotations

from typing import Any

import pytest

from pledge import (
    Fulfilled,
    MicrotaskQueue,
    PendingError,
    Pledge,
    PledgeState,
    Rejected,
    UsageError,
)


class TestConstruction:
    def test_executor_runs_synchronously_with_two_capabilities(self) -> None:
        calls: list[tuple[bool, bool]] = []

        Pledge(lambda resolve, reject: calls.append((callable(resolve), callable(reject))))

        assert calls == [(True, True)]

    def test_new_pledge_is_pending(self) -> None:
        pledge = Pledge(lambda resolve, reject: None)

        assert pledge.state is PledgeState.PENDING
        assert pledge.is_pending()
        assert not pledge.is_fulfilled()
        assert not pledge.is_rejected()

    @pytest.mark.parametrize("executor", [None, 42, "resolve"])
    def test_non_callable_executor_is_a_usage_error(self, executor: Any) -> None:
        with pytest.raises(UsageError, match="executor must be callable"):
            Pledge(executor)

    def test_usage_error_is_a_type_error(self) -> None:
        with pytest.raises(TypeError):
            Pledge(None)

    def test_executor_exception_rejects(self) -> None:
        error = RuntimeError("boom")

        def executor(resolve, reject):
            raise error

        pledge = Pledge(executor)

        assert pledge.is_rejected()
        assert pledge.outcome() == Rejected(error)

    def test_executor_exception_after_resolve_is_ignored(self) -> None:
        def executor(resolve, reject):
            resolve("kept")
            raise RuntimeError("too late")

        pledge = Pledge(executor)

        assert pledge.outcome() == Fulfilled("kept")

    def test_resolve_without_argument_fulfills_with_none(self, deferred) -> None:
        pledge, resolve, _ = deferred()
        resolve()
        assert pledge.outcome() == Fulfilled(None)


class TestOneShotSettlement:
    def test_first_resolve_wins(self, deferred) -> None:
        pledge, resolve, reject = deferred()

        resolve(1)
        reject("ignored")
        resolve(2)

        assert pledge.state is PledgeState.FULFILLED
        assert pledge.outcome() == Fulfilled(1)

    def test_first_reject_wins(self, deferred) -> None:
        pledge, resolve, reject = deferred()

        reject("first")
        resolve("ignored")
        reject("second")

        assert pledge.state is PledgeState.REJECTED
        assert pledge.outcome() == Rejected("first")

    def test_reason_can_be_any_object(self, rejected) -> None:
        reason = {"code": 7}
        assert rejected(reason).outcome().reason is reason

    def test_outcome_of_pending_pledge_raises(self, never) -> None:
        with pytest.raises(PendingError, match="has not settled yet"):
            never.outcome()

    def test_settled_state_survives_later_reactions(
        self, resolved, microtasks: MicrotaskQueue
    ) -> None:
        pledge = resolved("value")
        pledge.then(lambda v: "other")
        microtasks.run_until_idle()
        assert pledge.outcome() == Fulfilled("value")


class TestThen:
    def test_then_returns_a_new_pending_pledge(self, resolved) -> None:
        source = resolved(1)

        downstream = source.then(lambda v: v)

        assert downstream is not source
        assert downstream.is_pending()

    def test_reaction_never_runs_inside_then(
        self, resolved, microtasks: MicrotaskQueue
    ) -> None:
        seen: list[int] = []

        resolved(1).then(seen.append)

        assert seen == []
        microtasks.run_until_idle()
        assert seen == [1]

    def test_reaction_runs_after_later_settlement(
        self, deferred, microtasks: MicrotaskQueue
    ) -> None:
        seen: list[str] = []
        pledge, resolve, _ = deferred()
        pledge.then(seen.append)

        microtasks.run_until_idle()
        assert seen == []

        resolve("late")
        microtasks.run_until_idle()
        assert seen == ["late"]

    def test_handler_result_settles_downstream(
        self, resolved, microtasks: MicrotaskQueue
    ) -> None:
        downstream = resolved(20).then(lambda v: v + 1).then(lambda v: v * 2)
        microtasks.run_until_idle()
        assert downstream.outcome() == Fulfilled(42)

    def test_missing_handlers_pass_outcome_through(
        self, resolved, rejected, microtasks: MicrotaskQueue
    ) -> None:
        value_through = resolved(3).then(None, lambda r: "unused")
        reason_through = rejected("r").then(lambda v: "unused")

        microtasks.run_until_idle()

        assert value_through.outcome() == Fulfilled(3)
        assert reason_through.outcome() == Rejected("r")

    def test_non_callable_handlers_are_ignored(
        self, resolved, rejected, microtasks: MicrotaskQueue
    ) -> None:
        value_through = resolved(5).then(42, "x")
        reason_through = rejected("r").then(42, "x")

        microtasks.run_until_idle()

        assert value_through.outcome() == Fulfilled(5)
        assert reason_through.outcome() == Rejected("r")

    def test_raising_handler_rejects_downstream_only(
        self, resolved, microtasks: MicrotaskQueue
    ) -> None:
        error = ValueError("handler failed")

        def handler(value):
            raise error

        source = resolved(1)
        downstream = source.then(handler)
        microtasks.run_until_idle()

        assert source.outcome() == Fulfilled(1)
        assert downstream.outcome() == Rejected(error)

    def test_rejection_handler_return_value_fulfills(
        self, rejected, microtasks: MicrotaskQueue
    ) -> None:
        downstream = rejected("bad").then(None, lambda r: f"handled {r}")
        microtasks.run_until_idle()
        assert downstream.outcome() == Fulfilled("handled bad")

    def test_handler_returning_pledge_is_adopted(
        self, resolved, deferred, microtasks: MicrotaskQueue
    ) -> None:
        inner, resolve_inner, _ = deferred()
        downstream = resolved(1).then(lambda v: inner)

        microtasks.run_until_idle()
        assert downstream.is_pending()

        resolve_inner("inner value")
        microtasks.run_until_idle()
        assert downstream.outcome() == Fulfilled("inner value")

    def test_downstream_shares_source_scheduler(self) -> None:
        scheduler = MicrotaskQueue()
        source = Pledge.resolve(1, scheduler=scheduler)
        assert source.then(lambda v: v).scheduler is scheduler


class TestCatch:
    def test_catch_recovers_rejection(self, rejected, microtasks: MicrotaskQueue) -> None:
        recovered = rejected("bad").catch(lambda r: f"handled {r}")
        microtasks.run_until_idle()
        assert recovered.outcome() == Fulfilled("handled bad")

    def test_catch_passes_fulfillment_through(
        self, resolved, microtasks: MicrotaskQueue
    ) -> None:
        calls: list[Any] = []
        result = resolved(3).catch(calls.append)
        microtasks.run_until_idle()
        assert result.outcome() == Fulfilled(3)
        assert calls == []

    def test_catch_after_failed_handler(self, resolved, microtasks: MicrotaskQueue) -> None:
        def explode(value):
            raise KeyError(value)

        result = resolved("k").then(explode).catch(lambda exc: type(exc).__name__)
        microtasks.run_until_idle()
        assert result.outcome() == Fulfilled("KeyError")


class TestFinally:
    def test_cleanup_runs_on_fulfillment_and_value_passes_through(
        self, resolved, microtasks: MicrotaskQueue
    ) -> None:
        calls: list[str] = []

        def cleanup():
            calls.append("cleanup")
            return "discarded"

        result = resolved("value").finally_(cleanup)
        microtasks.run_until_idle()

        assert calls == ["cleanup"]
        assert result.outcome() == Fulfilled("value")

    def test_cleanup_runs_on_rejection_and_reason_passes_through(
        self, rejected, microtasks: MicrotaskQueue
    ) -> None:
        calls: list[str] = []

        result = rejected("reason").finally_(lambda: calls.append("cleanup"))
        microtasks.run_until_idle()

        assert calls == ["cleanup"]
        assert result.outcome() == Rejected("reason")

    def test_raising_cleanup_replaces_outcome(
        self, resolved, microtasks: MicrotaskQueue
    ) -> None:
        error = RuntimeError("cleanup failed")

        def cleanup():
            raise error

        result = resolved("value").finally_(cleanup)
        microtasks.run_until_idle()

        assert result.outcome() == Rejected(error)

    def test_rejected_cleanup_pledge_replaces_reason(
        self, rejected, microtasks: MicrotaskQueue
    ) -> None:
        result = rejected("original").finally_(lambda: Pledge.reject("cleanup"))
        microtasks.run_until_idle()
        assert result.outcome() == Rejected("cleanup")

    def test_exception_path_takes_as_many_turns_as_value_path(
        self, resolved, rejected, microtasks: MicrotaskQueue
    ) -> None:
        error = ValueError("boom")

        fulfilled_path = resolved("value").finally_(lambda: None)
        fulfilled_turns = microtasks.run_until_idle()

        rejected_path = rejected(error).finally_(lambda: None)
        rejected_turns = microtasks.run_until_idle()

        assert fulfilled_path.outcome() == Fulfilled("value")
        assert rejected_path.outcome().reason is error
        assert rejected_turns == fulfilled_turns

    def test_outcome_waits_for_cleanup_pledge(
        self, resolved, deferred, microtasks: MicrotaskQueue
    ) -> None:
        gate, open_gate, _ = deferred()

        result = resolved("value").finally_(lambda: gate)
        microtasks.run_until_idle()
        assert result.is_pending()

        open_gate("ignored")
        microtasks.run_until_idle()
        assert result.outcome() == Fulfilled("value")

    def test_non_callable_cleanup_is_a_usage_error(self, resolved) -> None:
        with pytest.raises(UsageError, match="cleanup must be callable"):
            resolved(1).finally_("not callable")


class TestRepr:
    def test_repr_shows_state(self, resolved, rejected, never) -> None:
        assert repr(never) == "<Pledge pending>"
        assert repr(resolved(1)) == "<Pledge fulfilled: 1>"
        assert repr(rejected("no")) == "<Pledge rejected: 'no'>"
