from __future__ import annotations

from typing import List, Optional

import pytest

from nest_plugin.deferred import DeferredQueue
from nest_plugin.nest_tracker import (
    PLACE_MESSAGE,
    RETRIEVE_REPLACED_MESSAGE,
    RETRIEVE_UNCHANGED_MESSAGE,
    UNSET_ITEM_ID,
    VALUABLE_ITEM_MESSAGE,
    NestOutcomeTracker,
    TrackerCycleState,
)
from nest_plugin.observation import ItemObservation


class _Harness:
    def __init__(self, state: Optional[TrackerCycleState] = None) -> None:
        self.dialog_id: Optional[int] = None
        self.submitted: List[ItemObservation] = []
        self.deferred = DeferredQueue()
        self.tracker = NestOutcomeTracker(
            lambda: self.dialog_id,
            self.submitted.append,
            self.deferred.schedule,
            state=state,
        )

    @property
    def state(self) -> TrackerCycleState:
        return self.tracker.state

    def send(self, message: str, *, dialog_id: Optional[int] = None) -> None:
        """Deliver a message, then let the host tick with ``dialog_id`` shown."""
        self.tracker.handle_message(message)
        self.dialog_id = dialog_id
        self.deferred.drain()

    def place(self, item_id: int) -> None:
        self.send(PLACE_MESSAGE, dialog_id=item_id)


@pytest.fixture
def harness() -> _Harness:
    return _Harness()


def test_initial_state_is_idle(harness):
    assert harness.state.awaiting_retrieval is False
    assert harness.state.last_placed_item_id == UNSET_ITEM_ID


def test_place_then_replaced_submits_placed_id(harness):
    harness.place(995)

    assert harness.submitted == []
    assert harness.state.awaiting_retrieval is True
    assert harness.state.last_placed_item_id == 995

    harness.send(RETRIEVE_REPLACED_MESSAGE, dialog_id=5075)

    assert harness.submitted == [ItemObservation(995, transformed=True)]
    assert harness.state == TrackerCycleState()


def test_place_then_unchanged_submits_retrieved_item_id(harness):
    harness.place(995)
    harness.send(RETRIEVE_UNCHANGED_MESSAGE, dialog_id=1234)

    assert harness.submitted == [ItemObservation(1234, transformed=False)]
    assert harness.state == TrackerCycleState()


def test_place_lookup_is_deferred_to_next_tick(harness):
    harness.dialog_id = 100
    harness.tracker.handle_message(PLACE_MESSAGE)

    assert harness.state.awaiting_retrieval is False
    assert harness.deferred.pending == 1

    harness.dialog_id = 995
    harness.deferred.drain()

    assert harness.state.last_placed_item_id == 995


@pytest.mark.parametrize("dialog_id", [None, 0, -5])
def test_place_without_dialog_item_changes_nothing(harness, dialog_id):
    harness.send(PLACE_MESSAGE, dialog_id=dialog_id)

    assert harness.state == TrackerCycleState()
    assert harness.submitted == []


def test_replaced_without_captured_placement_resets_without_submitting():
    harness = _Harness(TrackerCycleState(awaiting_retrieval=True))

    harness.send(RETRIEVE_REPLACED_MESSAGE, dialog_id=42)

    assert harness.submitted == []
    assert harness.state == TrackerCycleState()


def test_retrieval_waits_while_dialog_item_missing(harness):
    harness.place(995)
    harness.send(RETRIEVE_UNCHANGED_MESSAGE, dialog_id=None)

    assert harness.submitted == []
    assert harness.state.awaiting_retrieval is True
    assert harness.state.last_placed_item_id == 995


@pytest.mark.parametrize("awaiting", [False, True])
def test_valuable_item_submits_immediately_and_resets(awaiting):
    state = TrackerCycleState(awaiting_retrieval=awaiting, last_placed_item_id=995 if awaiting else UNSET_ITEM_ID)
    harness = _Harness(state)
    harness.dialog_id = 2577

    harness.tracker.handle_message(VALUABLE_ITEM_MESSAGE)

    assert harness.submitted == [ItemObservation(2577, transformed=False)]
    assert harness.state == TrackerCycleState()
    assert harness.deferred.pending == 0


def test_valuable_item_without_dialog_item_is_ignored(harness):
    harness.place(995)
    harness.dialog_id = None

    harness.tracker.handle_message(VALUABLE_ITEM_MESSAGE)

    assert harness.submitted == []
    assert harness.state.awaiting_retrieval is True
    assert harness.state.last_placed_item_id == 995


@pytest.mark.parametrize("message", [RETRIEVE_UNCHANGED_MESSAGE, RETRIEVE_REPLACED_MESSAGE])
def test_retrieval_outside_cycle_is_ignored(harness, message):
    assert harness.tracker.handle_message(message) is False
    harness.dialog_id = 995
    harness.deferred.drain()

    assert harness.submitted == []
    assert harness.state == TrackerCycleState()


@pytest.mark.parametrize(
    "message",
    [
        "",
        "You place your item in the nest",
        "you retrieve your item from the nest.",
        "The bird's nest is empty.",
    ],
)
def test_unrelated_messages_never_change_state(harness, message):
    harness.place(995)
    before = TrackerCycleState(harness.state.awaiting_retrieval, harness.state.last_placed_item_id)

    assert harness.tracker.handle_message(message) is False
    harness.deferred.drain()

    assert harness.state == before
    assert harness.submitted == []


def test_session_boundary_ends_wait_but_keeps_placed_id(harness):
    harness.place(995)

    harness.tracker.on_session_boundary()

    assert harness.state.awaiting_retrieval is False
    assert harness.state.last_placed_item_id == 995

    harness.send(RETRIEVE_REPLACED_MESSAGE, dialog_id=12)
    assert harness.submitted == []


def test_new_placement_overwrites_stale_cycle(harness):
    harness.place(995)
    harness.place(5073)
    harness.send(RETRIEVE_REPLACED_MESSAGE, dialog_id=1)

    assert harness.submitted == [ItemObservation(5073, transformed=True)]


def test_stale_retrieval_callback_does_not_submit_twice(harness):
    captured = []
    tracker = NestOutcomeTracker(lambda: 995, harness.submitted.append, captured.append)
    tracker.handle_message(PLACE_MESSAGE)
    captured.pop()()
    tracker.handle_message(RETRIEVE_REPLACED_MESSAGE)
    callback = captured.pop()

    callback()
    callback()

    assert harness.submitted == [ItemObservation(995, transformed=True)]
    assert tracker.state == TrackerCycleState()


def test_duplicate_retrieval_messages_submit_once(harness):
    harness.place(995)
    harness.tracker.handle_message(RETRIEVE_UNCHANGED_MESSAGE)
    harness.tracker.handle_message(RETRIEVE_UNCHANGED_MESSAGE)
    harness.dialog_id = 995
    harness.deferred.drain()

    assert harness.submitted == [ItemObservation(995, transformed=False)]


def test_state_is_cleared_even_when_submit_raises():
    state = TrackerCycleState()

    def _boom(_observation):
        raise RuntimeError("network down")

    tracker = NestOutcomeTracker(lambda: 995, _boom, lambda callback: callback(), state=state)
    tracker.handle_message(PLACE_MESSAGE)

    with pytest.raises(RuntimeError):
        tracker.handle_message(RETRIEVE_REPLACED_MESSAGE)

    assert state == TrackerCycleState()


def test_session_boundary_before_placement_lookup_discards_it(harness):
    harness.dialog_id = 995
    harness.tracker.handle_message(PLACE_MESSAGE)
    harness.tracker.on_session_boundary()
    harness.deferred.drain()

    assert harness.state == TrackerCycleState()

    harness.send(RETRIEVE_REPLACED_MESSAGE, dialog_id=12)

    assert harness.submitted == []
    assert harness.deferred.pending == 0


def test_placement_after_session_boundary_still_tracks(harness):
    harness.tracker.handle_message(PLACE_MESSAGE)
    harness.tracker.on_session_boundary()
    harness.place(5073)

    assert harness.state.awaiting_retrieval is True
    assert harness.state.last_placed_item_id == 5073
