"""Tests for single-owner enforcement on the state machines."""

from __future__ import annotations

import threading

import pytest

from gatekeep.core.errors import ConcurrentAccess, InvalidTransition
from gatekeep.core.models import CycleState
from gatekeep.remediation.sequencer import RemediationSequencer
from gatekeep.tdd.cycle import TDDCycle


def _run_in_thread(func) -> list[BaseException]:
    errors: list[BaseException] = []

    def target():
        try:
            func()
        except BaseException as exc:  # noqa: BLE001
            errors.append(exc)

    worker = threading.Thread(target=target, name="other-worker")
    worker.start()
    worker.join()
    return errors


def test_other_thread_cannot_mutate_cycle(gate):
    cycle = TDDCycle(gate)
    errors = _run_in_thread(lambda: cycle.begin_red_phase("t::a"))

    assert len(errors) == 1
    assert isinstance(errors[0], ConcurrentAccess)
    assert cycle.get("t::a") is None


def test_concurrent_access_is_an_invalid_transition():
    assert issubclass(ConcurrentAccess, InvalidTransition)


def test_adopt_moves_ownership(gate):
    cycle = TDDCycle(gate)

    def take_over():
        cycle.adopt()
        cycle.begin_red_phase("t::a")

    assert _run_in_thread(take_over) == []
    assert cycle.get("t::a").state is CycleState.RED
    with pytest.raises(ConcurrentAccess):
        cycle.begin_red_phase("t::b")


def test_other_thread_cannot_advance_plan(gate):
    sequencer = RemediationSequencer(gate)
    errors = _run_in_thread(lambda: sequencer.advance_plan())

    assert len(errors) == 1
    assert isinstance(errors[0], ConcurrentAccess)


def test_inspection_is_allowed_from_any_thread(gate):
    cycle = TDDCycle(gate)
    cycle.begin_red_phase("t::a")
    seen = []
    assert _run_in_thread(lambda: seen.append(cycle.snapshot())) == []
    assert seen[0].active.test_id == "t::a"
