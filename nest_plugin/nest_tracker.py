"""Infer nest outcomes from game chat messages.

Placing an item in a bird nest and later retrieving it tells us whether that
item type transforms. The game never reports this directly: it only prints a
message-box line, and the item involved is shown in the dialog widget that the
client renders alongside it. :class:`NestOutcomeTracker` watches those lines,
reads the dialog item id through a host lookup, and emits at most one
:class:`~nest_plugin.observation.ItemObservation` per place/retrieve cycle.

The dialog widget is often not populated yet when the message arrives, so the
place and retrieve steps read it on a later host tick via ``schedule_deferred``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .observation import ItemObservation

_LOGGER = logging.getLogger("NestTracker.Tracker")

UNSET_ITEM_ID = -1

PLACE_MESSAGE = "You place your item in the nest."
VALUABLE_ITEM_MESSAGE = "That item is quite valuable. It's probably not a good idea to put it in a random nest."
RETRIEVE_UNCHANGED_MESSAGE = "You retrieve your item from the nest."
RETRIEVE_REPLACED_MESSAGE = (
    "You go to retrieve your item from the nest, but find that it has been replaced with something else."
)


@dataclass
class TrackerCycleState:
    """State for the single nest interaction in flight."""

    awaiting_retrieval: bool = False
    last_placed_item_id: int = UNSET_ITEM_ID

    def reset(self) -> None:
        self.awaiting_retrieval = False
        self.last_placed_item_id = UNSET_ITEM_ID


class NestOutcomeTracker:
    """Two-phase handler: match the message now, resolve the item id later."""

    def __init__(
        self,
        dialog_item_id: Callable[[], Optional[int]],
        submit: Callable[[ItemObservation], None],
        schedule_deferred: Callable[[Callable[[], None]], None],
        *,
        state: Optional[TrackerCycleState] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._dialog_item_id = dialog_item_id
        self._submit = submit
        self._schedule_deferred = schedule_deferred
        self._state = state if state is not None else TrackerCycleState()
        self._logger = logger or _LOGGER
        # Bumped on every session boundary; placement lookups queued before it are stale.
        self._session_generation = 0

    @property
    def state(self) -> TrackerCycleState:
        return self._state

    # Public API ---------------------------------------------------------

    def handle_message(self, message: str) -> bool:
        """Process one message-box line.

        Returns ``True`` when the line is a nest message the tracker acted on
        (including steps that were deferred), ``False`` when it was ignored.
        """

        if message == PLACE_MESSAGE:
            generation = self._session_generation
            self._schedule_deferred(lambda: self._resolve_placement(generation))
            return True

        if message == VALUABLE_ITEM_MESSAGE:
            self._handle_valuable_item()
            return True

        if not self._state.awaiting_retrieval:
            return False

        if message == RETRIEVE_UNCHANGED_MESSAGE:
            self._schedule_deferred(lambda: self._resolve_retrieval(transformed=False))
            return True
        if message == RETRIEVE_REPLACED_MESSAGE:
            self._schedule_deferred(lambda: self._resolve_retrieval(transformed=True))
            return True
        return False

    def on_session_boundary(self) -> None:
        # The placed id is left as-is; the next placement overwrites it.
        if self._state.awaiting_retrieval:
            self._logger.debug("Session boundary during nest cycle; abandoning retrieval wait")
        self._state.awaiting_retrieval = False
        self._session_generation += 1

    # Implementation details --------------------------------------------

    def _lookup_item_id(self) -> Optional[int]:
        item_id = self._dialog_item_id()
        if item_id is None or item_id <= 0:
            return None
        return item_id

    def _handle_valuable_item(self) -> None:
        item_id = self._lookup_item_id()
        if item_id is None:
            self._logger.debug("Valuable item message without dialog item; ignoring")
            return
        self._state.reset()
        self._emit(ItemObservation(item_id, transformed=False))

    def _resolve_placement(self, generation: int) -> None:
        if generation != self._session_generation:
            self._logger.debug("Nest placement from a previous session; ignoring")
            return
        item_id = self._lookup_item_id()
        if item_id is None:
            self._logger.debug("Nest placement seen but dialog item was not available")
            return
        self._state.awaiting_retrieval = True
        self._state.last_placed_item_id = item_id
        self._logger.debug("Item %d placed in nest; awaiting retrieval", item_id)

    def _resolve_retrieval(self, *, transformed: bool) -> None:
        if not self._state.awaiting_retrieval:
            return
        item_id = self._lookup_item_id()
        if item_id is None:
            self._logger.debug("Nest retrieval seen but dialog item was not available")
            return
        placed_id = self._state.last_placed_item_id
        self._state.reset()
        if not transformed:
            self._emit(ItemObservation(item_id, transformed=False))
        elif placed_id == UNSET_ITEM_ID:
            self._logger.debug("Nest item replaced but the placed item id was never captured")
        else:
            self._emit(ItemObservation(placed_id, transformed=True))

    def _emit(self, observation: ItemObservation) -> None:
        self._logger.debug(
            "Nest outcome resolved: item=%d transformed=%s",
            observation.item_id,
            observation.transformed,
        )
        self._submit(observation)
