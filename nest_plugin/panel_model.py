"""Toolkit-independent state behind the nest tracker panel."""
from __future__ import annotations

from typing import Callable, List, Optional, Protocol

from .observation import (
    FILTER_ALL,
    FILTER_OPTIONS,
    RemoteItemRecord,
    describe_state,
)

PAGE_SIZE = 28
LOADING_STATUS = "Loading data..."
LOADED_STATUS = "Data loaded."
RANDOM_LOADING_STATUS = "Loading random items..."
INVALID_ID_STATUS = "Invalid Item ID"
DETAILS_PLACEHOLDER = "Click on an item to get details!"
RANDOM_BUTTON_LABEL = f"Get {PAGE_SIZE} Random Unknown Items"


class _ItemSource(Protocol):
    def load_items_by_id(self, listener, item_id: int) -> None: ...
    def load_items_with_filter(self, listener, filter_label: str, page: int, size: int) -> None: ...
    def load_random_unknown_items(self, listener, count: int) -> None: ...


class NestPanelModel:
    """Paging, filtering and selection state for the item list.

    Every read is issued with ``listener`` as the target so the view can
    marshal results onto its own thread before calling :meth:`update_data`
    or :meth:`set_error`. Without a listener the model receives them directly.
    """

    def __init__(
        self,
        source: _ItemSource,
        *,
        name_resolver: Callable[[int], Optional[str]] = lambda _item_id: None,
        listener: Optional[object] = None,
        on_change: Optional[Callable[[], None]] = None,
        page_size: int = PAGE_SIZE,
    ) -> None:
        self._source = source
        self._resolve_name = name_resolver
        self.listener = listener or self
        self._on_change = on_change
        self.page_size = page_size
        self.current_page = 0
        self.filter_label = FILTER_ALL
        self.status = LOADING_STATUS
        self.items: List[RemoteItemRecord] = []
        self.total = 0
        self.pagination_text = ""
        self.next_enabled = True
        self.previous_enabled = False
        self.selected_index: Optional[int] = None

    @property
    def filter_options(self) -> tuple:
        return FILTER_OPTIONS

    # User actions ---------------------------------------------------------

    def load_initial(self) -> None:
        self._set_status(LOADING_STATUS)
        self._request_page()

    def change_filter(self, filter_label: str) -> None:
        self.filter_label = filter_label if filter_label in FILTER_OPTIONS else FILTER_ALL
        self.current_page = 0
        self._set_status(LOADING_STATUS)
        self._request_page()

    def search(self, text: str) -> None:
        value = (text or "").strip()
        if not value:
            return
        try:
            item_id = int(value)
        except ValueError:
            self.set_error(INVALID_ID_STATUS)
            return
        self._set_status(f"Searching for item ID: {item_id}")
        self._source.load_items_by_id(self.listener, item_id)

    def previous_page(self) -> None:
        if self.current_page <= 0:
            return
        self.current_page -= 1
        self._set_status(LOADING_STATUS)
        self._request_page()

    def next_page(self) -> None:
        self.current_page += 1
        self._set_status(LOADING_STATUS)
        self._request_page()

    def random_items(self) -> None:
        self._set_status(RANDOM_LOADING_STATUS)
        self._source.load_random_unknown_items(self.listener, self.page_size)

    def select(self, index: Optional[int]) -> str:
        if index is None or index < 0 or index >= len(self.items):
            self.selected_index = None
        else:
            self.selected_index = index
        self._changed()
        return self.details_text()

    # Listener callbacks ---------------------------------------------------

    def update_data(self, total: int, records: List[RemoteItemRecord]) -> None:
        for record in records:
            record.item_name = self._resolve_name(record.item_id)
        self.items = list(records)
        self.total = int(total)
        self.selected_index = None
        self.status = LOADED_STATUS
        start = self.current_page * self.page_size + 1
        end = self.current_page * self.page_size + len(self.items)
        self.pagination_text = f"Showing {start}-{end} of {self.total}"
        self.next_enabled = len(self.items) == self.page_size
        self.previous_enabled = self.current_page > 0
        self._changed()

    def set_error(self, message: str) -> None:
        self._set_status(message)

    # Rendering helpers ----------------------------------------------------

    @property
    def selected_item(self) -> Optional[RemoteItemRecord]:
        if self.selected_index is None:
            return None
        return self.items[self.selected_index]

    def details_text(self) -> str:
        item = self.selected_item
        if item is None:
            return DETAILS_PLACEHOLDER
        return (
            f"Name: {item.display_name}\n"
            f"Item ID: {item.item_id}\n"
            f"Status: {describe_state(item.transformed_state)}"
        )

    def _request_page(self) -> None:
        self._source.load_items_with_filter(self.listener, self.filter_label, self.current_page, self.page_size)

    def _set_status(self, text: str) -> None:
        self.status = text
        self._changed()

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()
