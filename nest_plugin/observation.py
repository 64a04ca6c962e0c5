"""Data records exchanged with the nest crowdsourcing service."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

UNKNOWN = "unknown"
TRANSFORMED = "yes"
NOT_TRANSFORMED = "no"

FILTER_ALL = "All"
FILTER_OPTIONS = ("All", "Unknown", "Transformed", "Not Transformed")

_FILTER_STATES = {
    "Unknown": UNKNOWN,
    "Transformed": TRANSFORMED,
    "Not Transformed": NOT_TRANSFORMED,
}

_STATE_DESCRIPTIONS = {
    UNKNOWN: "Unknown if item transforms.",
    TRANSFORMED: "Item transforms.",
    NOT_TRANSFORMED: "Item does not transform.",
}

_STATE_BADGES = {
    UNKNOWN: ("?", "#ffff00"),
    TRANSFORMED: ("Y", "#00ff00"),
    NOT_TRANSFORMED: ("N", "#ff0000"),
}

UNKNOWN_ITEM_NAME = "Unknown Item"


@dataclass(frozen=True)
class ItemObservation:
    """One confirmed nest outcome, ready to be submitted."""

    item_id: int
    transformed: bool

    def to_payload(self) -> Dict[str, Any]:
        return {"itemId": int(self.item_id), "transformed": bool(self.transformed)}


@dataclass
class RemoteItemRecord:
    """Item entry as listed by the service; the name is filled in locally."""

    item_id: int
    transformed_state: str = UNKNOWN
    item_name: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "RemoteItemRecord":
        try:
            item_id = int(payload.get("itemId"))
        except (TypeError, ValueError):
            raise ValueError(f"Item record has no usable itemId: {payload!r}") from None
        raw_state = payload.get("transformedState")
        state = str(raw_state).strip().lower() if raw_state is not None else UNKNOWN
        return cls(item_id=item_id, transformed_state=state or UNKNOWN)

    @property
    def display_name(self) -> str:
        name = (self.item_name or "").strip()
        return name or UNKNOWN_ITEM_NAME


def filter_to_transformed_state(filter_label: Optional[str]) -> Optional[str]:
    """Map a panel filter label to the service's ``transformedState`` value.

    ``All`` and unrecognised labels mean "no filter" and return ``None``.
    """
    if not filter_label:
        return None
    return _FILTER_STATES.get(filter_label)


def describe_state(state: Optional[str]) -> str:
    return _STATE_DESCRIPTIONS.get(state or "", "Transformation state unknown.")


def state_badge(state: Optional[str]) -> Tuple[str, str]:
    """Return the ``(symbol, colour)`` used to tag an item of the given state."""
    return _STATE_BADGES.get(state or "", ("?", "#ffffff"))
