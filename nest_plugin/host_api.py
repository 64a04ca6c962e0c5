"""Registry for lookups the host client provides to the nest tracker."""
from __future__ import annotations

import logging
from typing import Any, Callable, Optional

_LOGGER = logging.getLogger("NestTracker.HostAPI")

_dialog_item_provider: Optional[Callable[[], Optional[int]]] = None
_item_name_resolver: Optional[Callable[[int], Optional[str]]] = None


def register_dialog_item_provider(provider: Callable[[], Optional[int]]) -> None:
    """Register a callable returning the item id shown in the open dialog.

    The host calls this during startup. The provider must be synchronous and
    side-effect free; it returns ``None`` when no dialog widget is present.
    """

    global _dialog_item_provider
    _dialog_item_provider = provider


def unregister_dialog_item_provider() -> None:
    global _dialog_item_provider
    _dialog_item_provider = None


def register_item_name_resolver(resolver: Callable[[int], Optional[str]]) -> None:
    """Register a callable that maps an item id to its in-game name."""

    global _item_name_resolver
    _item_name_resolver = resolver


def unregister_item_name_resolver() -> None:
    global _item_name_resolver
    _item_name_resolver = None


def current_dialog_item_id() -> Optional[int]:
    """Return the dialog item id, or ``None`` when it is not available now.

    Non-positive ids and provider failures are both reported as ``None``; the
    dialog may simply not have rendered yet.
    """

    provider = _dialog_item_provider
    if provider is None:
        return None
    try:
        raw = provider()
    except Exception as exc:
        _log_debug("Dialog item provider raised error: %s", exc)
        return None
    item_id = _coerce_item_id(raw)
    if item_id is None or item_id <= 0:
        return None
    return item_id


def resolve_item_name(item_id: int) -> Optional[str]:
    resolver = _item_name_resolver
    if resolver is None:
        return None
    try:
        name = resolver(item_id)
    except Exception as exc:
        _log_debug("Item name resolver failed for %s: %s", item_id, exc)
        return None
    if name is None:
        return None
    text = str(name).strip()
    return text or None


def _coerce_item_id(raw: Any) -> Optional[int]:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def _log_debug(message: str, *args: Any) -> None:
    _LOGGER.debug(message, *args)
