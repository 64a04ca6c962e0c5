"""Preferences management and Tk UI for the Global Nest Tracker plugin."""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from .crowdsourcing_api import DEFAULT_API_BASE_URL

PREFERENCES_FILE = "nest_tracker_settings.json"
TIMEOUT_MIN = 1.0
TIMEOUT_MAX = 30.0
TIMEOUT_DEFAULT = 10.0
RETENTION_DEFAULT = 3


@dataclass
class Preferences:
    """Simple JSON-backed preferences store."""

    plugin_dir: Path
    api_base_url: str = DEFAULT_API_BASE_URL
    submit_enabled: bool = True
    request_timeout: float = TIMEOUT_DEFAULT
    log_submissions: bool = False
    submission_log_retention: int = RETENTION_DEFAULT

    def __post_init__(self) -> None:
        self.plugin_dir = Path(self.plugin_dir)
        self._path = self.plugin_dir / PREFERENCES_FILE
        self._load()

    # Persistence ---------------------------------------------------------

    def _load(self) -> None:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except json.JSONDecodeError:
            return
        if not isinstance(data, dict):
            return
        url = str(data.get("api_base_url") or "").strip()
        self.api_base_url = url or DEFAULT_API_BASE_URL
        self.submit_enabled = bool(data.get("submit_enabled", True))
        try:
            timeout = float(data.get("request_timeout", TIMEOUT_DEFAULT))
        except (TypeError, ValueError):
            timeout = TIMEOUT_DEFAULT
        self.request_timeout = clamp_timeout(timeout)
        self.log_submissions = bool(data.get("log_submissions", False))
        try:
            retention = int(data.get("submission_log_retention", RETENTION_DEFAULT))
        except (TypeError, ValueError):
            retention = RETENTION_DEFAULT
        self.submission_log_retention = max(1, retention)

    def save(self) -> None:
        payload: Dict[str, Any] = {
            "api_base_url": str(self.api_base_url or DEFAULT_API_BASE_URL),
            "submit_enabled": bool(self.submit_enabled),
            "request_timeout": float(self.request_timeout),
            "log_submissions": bool(self.log_submissions),
            "submission_log_retention": int(self.submission_log_retention),
        }
        self.plugin_dir.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def clamp_timeout(value: float) -> float:
    return max(TIMEOUT_MIN, min(float(value), TIMEOUT_MAX))


class PreferencesPanel:
    """Builds a Tkinter frame that edits nest tracker preferences."""

    def __init__(
        self,
        parent,
        preferences: Preferences,
        set_submit_enabled_callback: Optional[Callable[[bool], None]] = None,
        set_log_submissions_callback: Optional[Callable[[bool], None]] = None,
    ) -> None:  # pragma: no cover - Tk integration
        import tkinter as tk
        from tkinter import ttk

        self._preferences = preferences
        self._set_submit_enabled = set_submit_enabled_callback
        self._set_log_submissions = set_log_submissions_callback
        self._var_submit = tk.BooleanVar(value=preferences.submit_enabled)
        self._var_log = tk.BooleanVar(value=preferences.log_submissions)
        self._var_url = tk.StringVar(value=preferences.api_base_url)
        self._var_timeout = tk.DoubleVar(value=preferences.request_timeout)
        self._status_var = tk.StringVar(value="")

        frame = ttk.Frame(parent)
        row = 0

        submit_checkbox = ttk.Checkbutton(
            frame,
            text="Submit nest outcomes to the Global Nest Tracker",
            variable=self._var_submit,
            onvalue=True,
            offvalue=False,
            command=self._on_submit_toggle,
        )
        submit_checkbox.grid(row=row, column=0, columnspan=2, sticky="w")
        row += 1

        log_checkbox = ttk.Checkbutton(
            frame,
            text="Keep a local log of submitted outcomes",
            variable=self._var_log,
            onvalue=True,
            offvalue=False,
            command=self._on_log_toggle,
        )
        log_checkbox.grid(row=row, column=0, columnspan=2, sticky="w", pady=(8, 0))
        row += 1

        ttk.Label(frame, text="Service URL:").grid(row=row, column=0, sticky="w", pady=(12, 0))
        url_entry = ttk.Entry(frame, textvariable=self._var_url, width=50)
        url_entry.grid(row=row, column=1, sticky="we", pady=(12, 0), padx=(6, 0))
        row += 1

        ttk.Label(frame, text="Request timeout (s):").grid(row=row, column=0, sticky="w", pady=(8, 0))
        timeout_spin = ttk.Spinbox(
            frame,
            from_=TIMEOUT_MIN,
            to=TIMEOUT_MAX,
            increment=1.0,
            width=5,
            textvariable=self._var_timeout,
        )
        timeout_spin.grid(row=row, column=1, sticky="w", pady=(8, 0), padx=(6, 0))
        row += 1

        status_label = ttk.Label(frame, textvariable=self._status_var, wraplength=400, justify="left")
        status_label.grid(row=row, column=0, columnspan=2, sticky="w", pady=(10, 0))
        frame.columnconfigure(1, weight=1)
        self._frame = frame

    @property
    def frame(self):  # pragma: no cover - Tk integration
        return self._frame

    def apply(self) -> None:  # pragma: no cover - Tk integration
        url = (self._var_url.get() or "").strip()
        self._preferences.api_base_url = url or DEFAULT_API_BASE_URL
        try:
            timeout = float(self._var_timeout.get())
        except (TypeError, ValueError):
            timeout = self._preferences.request_timeout
        self._preferences.request_timeout = clamp_timeout(timeout)
        self._preferences.save()

    def _on_submit_toggle(self) -> None:  # pragma: no cover - Tk event
        value = bool(self._var_submit.get())
        self._preferences.submit_enabled = value
        if self._set_submit_enabled:
            try:
                self._set_submit_enabled(value)
            except Exception as exc:
                self._status_var.set(f"Failed to update submission setting: {exc}")
                return
        self._preferences.save()

    def _on_log_toggle(self) -> None:  # pragma: no cover - Tk event
        value = bool(self._var_log.get())
        self._preferences.log_submissions = value
        if self._set_log_submissions:
            try:
                self._set_log_submissions(value)
            except Exception as exc:
                self._status_var.set(f"Failed to update submission log setting: {exc}")
                return
        self._preferences.save()
