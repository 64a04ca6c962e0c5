"""Tk frame that shows crowdsourced nest data inside the host client."""
from __future__ import annotations

import logging
import queue
from typing import Callable, List, Optional

from .observation import RemoteItemRecord, state_badge
from .panel_model import RANDOM_BUTTON_LABEL, NestPanelModel

_LOGGER = logging.getLogger("NestTracker.Panel")
_POLL_INTERVAL_MS = 100


class PanelListener:
    """Queues listener calls made on the request worker for the Tk thread."""

    def __init__(self) -> None:
        self._queue: "queue.Queue[Callable[[NestPanelModel], None]]" = queue.Queue()

    def update_data(self, total: int, records: List[RemoteItemRecord]) -> None:
        self._queue.put(lambda model: model.update_data(total, records))

    def set_error(self, message: str) -> None:
        self._queue.put(lambda model: model.set_error(message))

    def deliver(self, model: NestPanelModel) -> int:
        delivered = 0
        while True:
            try:
                action = self._queue.get_nowait()
            except queue.Empty:
                return delivered
            action(model)
            delivered += 1


class NestTrackerPanel:  # pragma: no cover - Tk integration
    """Builds the item list, details box, filter/search and paging controls."""

    def __init__(self, parent, source, name_resolver: Callable[[int], Optional[str]]) -> None:
        import tkinter as tk
        from tkinter import ttk

        self._listener = PanelListener()
        self.model = NestPanelModel(
            source,
            name_resolver=name_resolver,
            listener=self._listener,
            on_change=self._render,
        )
        self._var_status = tk.StringVar(value=self.model.status)
        self._var_filter = tk.StringVar(value=self.model.filter_label)
        self._var_search = tk.StringVar()
        self._var_pagination = tk.StringVar()
        self._poll_handle = None

        frame = ttk.Frame(parent, padding=(10, 10))
        self._frame = frame

        ttk.Label(frame, textvariable=self._var_status).grid(row=0, column=0, columnspan=3, sticky="w")

        ttk.Label(frame, text="Filter: ").grid(row=1, column=0, sticky="w", pady=(5, 0))
        filter_combo = ttk.Combobox(
            frame,
            values=list(self.model.filter_options),
            state="readonly",
            textvariable=self._var_filter,
        )
        filter_combo.grid(row=1, column=1, columnspan=2, sticky="we", pady=(5, 0))
        filter_combo.bind("<<ComboboxSelected>>", lambda _event: self.model.change_filter(self._var_filter.get()))

        ttk.Label(frame, text="Search Item ID: ").grid(row=2, column=0, sticky="w", pady=(5, 0))
        search_entry = ttk.Entry(frame, textvariable=self._var_search)
        search_entry.grid(row=2, column=1, sticky="we", pady=(5, 0))
        search_entry.bind("<Return>", lambda _event: self.model.search(self._var_search.get()))
        ttk.Button(frame, text="Search", command=lambda: self.model.search(self._var_search.get())).grid(
            row=2, column=2, sticky="e", pady=(5, 0)
        )

        self._details = tk.Text(frame, height=4, width=30, wrap="word")
        self._details.grid(row=3, column=0, columnspan=3, sticky="we", pady=(5, 5))
        self._details.configure(state="disabled")

        self._item_list = tk.Listbox(frame, height=14, activestyle="none", exportselection=False)
        self._item_list.grid(row=4, column=0, columnspan=3, sticky="nsew")
        self._item_list.bind("<<ListboxSelect>>", self._on_item_selected)

        ttk.Button(frame, text=RANDOM_BUTTON_LABEL, command=self.model.random_items).grid(
            row=5, column=0, columnspan=3, pady=(5, 0)
        )
        ttk.Label(frame, textvariable=self._var_pagination).grid(row=6, column=0, columnspan=3)

        self._prev_button = ttk.Button(frame, text="Previous", command=self.model.previous_page)
        self._prev_button.grid(row=7, column=0, sticky="w")
        self._next_button = ttk.Button(frame, text="Next", command=self.model.next_page)
        self._next_button.grid(row=7, column=2, sticky="e")

        frame.columnconfigure(1, weight=1)
        frame.rowconfigure(4, weight=1)
        self._render()
        self._schedule_poll()

    @property
    def frame(self):
        return self._frame

    def load_initial(self) -> None:
        self.model.load_initial()

    def destroy(self) -> None:
        if self._poll_handle is not None:
            try:
                self._frame.after_cancel(self._poll_handle)
            except Exception as exc:
                _LOGGER.debug("Failed to cancel panel poll: %s", exc)
            self._poll_handle = None

    def _schedule_poll(self) -> None:
        self._poll_handle = self._frame.after(_POLL_INTERVAL_MS, self._poll)

    def _poll(self) -> None:
        self._listener.deliver(self.model)
        self._schedule_poll()

    def _on_item_selected(self, _event) -> None:
        selection = self._item_list.curselection()
        self.model.select(selection[0] if selection else None)

    def _render(self) -> None:
        model = self.model
        self._var_status.set(model.status)
        self._var_pagination.set(model.pagination_text)
        self._prev_button.state(["!disabled"] if model.previous_enabled else ["disabled"])
        self._next_button.state(["!disabled"] if model.next_enabled else ["disabled"])
        if self._item_list.size() != len(model.items) or model.selected_index is None:
            self._item_list.delete(0, "end")
            for index, item in enumerate(model.items):
                symbol, colour = state_badge(item.transformed_state)
                self._item_list.insert("end", f"[{symbol}] {item.display_name} ({item.item_id})")
                self._item_list.itemconfigure(index, foreground=colour, background="#333333")
        self._details.configure(state="normal")
        self._details.delete("1.0", "end")
        self._details.insert("1.0", model.details_text())
        self._details.configure(state="disabled")
