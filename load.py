"""Primary entry point for the Global Nest Tracker plugin."""
from __future__ import annotations

import importlib
import logging
import threading
from pathlib import Path
from typing import Any, Optional

if __package__:
    from .version import __version__ as NEST_TRACKER_VERSION
    from .nest_plugin import host_api
    from .nest_plugin.crowdsourcing_api import NestCrowdsourcingClient
    from .nest_plugin.crowdsourcing_manager import NestCrowdsourcingManager
    from .nest_plugin.deferred import DeferredQueue
    from .nest_plugin.logging_utils import build_submission_logger, close_submission_logger
    from .nest_plugin.nest_tracker import NestOutcomeTracker
    from .nest_plugin.preferences import Preferences, PreferencesPanel
    from .nest_plugin.request_worker import RequestWorker
else:  # pragma: no cover - host loads as top-level module
    from version import __version__ as NEST_TRACKER_VERSION
    from nest_plugin import host_api
    from nest_plugin.crowdsourcing_api import NestCrowdsourcingClient
    from nest_plugin.crowdsourcing_manager import NestCrowdsourcingManager
    from nest_plugin.deferred import DeferredQueue
    from nest_plugin.logging_utils import build_submission_logger, close_submission_logger
    from nest_plugin.nest_tracker import NestOutcomeTracker
    from nest_plugin.preferences import Preferences, PreferencesPanel
    from nest_plugin.request_worker import RequestWorker

PLUGIN_NAME = "Global Nest Tracker"
PLUGIN_VERSION = NEST_TRACKER_VERSION
LOGGER_NAME = "NestTracker"
LOG_TAG = "GlobalNestTracker"

NEST_MESSAGE_TYPE = "MESBOX"
SESSION_BOUNDARY_STATES = {"HOPPING", "LOGIN_SCREEN"}

DEFAULT_LOG_LEVEL = logging.INFO


def _host_logger() -> Optional[logging.Logger]:
    """Return the logger the host exposes as ``config.logger``, if it has one."""
    try:
        module = importlib.import_module("config")
    except ImportError:
        return None
    logger_obj = getattr(module, "logger", None)
    return logger_obj if isinstance(logger_obj, logging.Logger) else None


def _host_log_level() -> int:
    host_logger = _host_logger()
    if host_logger is not None and host_logger.getEffectiveLevel() != logging.NOTSET:
        return host_logger.getEffectiveLevel()
    return DEFAULT_LOG_LEVEL


class _HostLogHandler(logging.Handler):
    """Forwards plugin records to the host logger, or to the root logger without a host."""

    def emit(self, record: logging.LogRecord) -> None:
        target = _host_logger() or logging.getLogger()
        if target.isEnabledFor(record.levelno):
            target.log(record.levelno, self.format(record))


def _configure_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(_host_log_level())
    if not any(isinstance(handler, _HostLogHandler) for handler in logger.handlers):
        handler = _HostLogHandler()
        handler.setFormatter(logging.Formatter(f"[{LOG_TAG}] %(name)s: %(message)s"))
        logger.addHandler(handler)
    logger.propagate = False
    return logger


LOGGER = _configure_logger()


class _PluginRuntime:
    """Owns the tracker, the request stack and the panel for one plugin session."""

    def __init__(self, plugin_dir: str, preferences: Preferences) -> None:
        self.plugin_dir = Path(plugin_dir)
        self._preferences = preferences
        self._lock = threading.Lock()
        self._running = False
        self.deferred = DeferredQueue(logging.getLogger(f"{LOGGER_NAME}.Deferred"))
        self.worker = RequestWorker(logging.getLogger(f"{LOGGER_NAME}.Worker"))
        self._submission_log: Optional[logging.Logger] = None
        self.manager = self._build_manager()
        self.tracker = NestOutcomeTracker(
            host_api.current_dialog_item_id,
            self.manager.submit_observation,
            self.deferred.schedule,
            logger=logging.getLogger(f"{LOGGER_NAME}.Tracker"),
        )
        self.panel: Optional[Any] = None

    # Lifecycle ------------------------------------------------------------

    def start(self) -> str:
        with self._lock:
            if self._running:
                return PLUGIN_NAME
            self.worker.start()
            self._apply_submission_log()
            self._running = True
        LOGGER.info("Plugin started (version %s, service %s)", PLUGIN_VERSION, self.manager.client.base_url)
        return PLUGIN_NAME

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
        LOGGER.info("Plugin stopping")
        if self.panel is not None:
            self.panel.destroy()
            self.panel = None
        self.deferred.clear()
        self.worker.stop()
        self.manager.client.close()
        if self._submission_log is not None:
            close_submission_logger(self._submission_log)
            self._submission_log = None

    # Host events ----------------------------------------------------------

    def handle_chat_message(self, message_type: str, message: str) -> None:
        if not self._running:
            return
        if str(message_type or "").upper() != NEST_MESSAGE_TYPE:
            return
        if not isinstance(message, str):
            return
        self.tracker.handle_message(message)

    def handle_game_state(self, state: str) -> None:
        if not self._running:
            return
        if str(state or "").upper() in SESSION_BOUNDARY_STATES:
            self.tracker.on_session_boundary()

    def tick(self) -> int:
        if not self._running:
            return 0
        return self.deferred.drain()

    # Panel ----------------------------------------------------------------

    def build_panel(self, parent) -> Any:  # pragma: no cover - Tk integration
        if __package__:
            from .nest_plugin.panel import NestTrackerPanel
        else:
            from nest_plugin.panel import NestTrackerPanel

        self.panel = NestTrackerPanel(parent, self.manager, host_api.resolve_item_name)
        self.panel.load_initial()
        return self.panel.frame

    # Preferences ----------------------------------------------------------

    def set_submit_enabled(self, value: bool) -> None:
        self._preferences.submit_enabled = bool(value)
        LOGGER.debug("Nest submissions %s", "enabled" if self._preferences.submit_enabled else "disabled")

    def set_log_submissions(self, value: bool) -> None:
        self._preferences.log_submissions = bool(value)
        self._apply_submission_log()

    def on_preferences_updated(self) -> None:
        LOGGER.debug(
            "Applying updated preferences: api_base_url=%s submit_enabled=%s request_timeout=%.1f "
            "log_submissions=%s submission_log_retention=%d",
            self._preferences.api_base_url,
            self._preferences.submit_enabled,
            self._preferences.request_timeout,
            self._preferences.log_submissions,
            self._preferences.submission_log_retention,
        )
        old_client = self.manager.replace_client(self._build_client())
        old_client.close()
        self._apply_submission_log()

    # Helpers --------------------------------------------------------------

    def _build_client(self) -> NestCrowdsourcingClient:
        return NestCrowdsourcingClient(
            self._preferences.api_base_url,
            timeout=self._preferences.request_timeout,
        )

    def _build_manager(self) -> NestCrowdsourcingManager:
        return NestCrowdsourcingManager(
            self._build_client(),
            self.worker,
            logging.getLogger(f"{LOGGER_NAME}.Crowdsourcing"),
            submit_enabled=lambda: bool(self._preferences.submit_enabled),
            submission_log=self._submission_log,
        )

    def _apply_submission_log(self) -> None:
        if self._preferences.log_submissions:
            self._submission_log = build_submission_logger(
                self.plugin_dir / "logs",
                retention=self._preferences.submission_log_retention,
            )
        elif self._submission_log is not None:
            close_submission_logger(self._submission_log)
            self._submission_log = None
        self.manager.set_submission_log(self._submission_log)


# Host hook functions ------------------------------------------------------

_plugin: Optional[_PluginRuntime] = None
_preferences: Optional[Preferences] = None
_prefs_panel: Optional[PreferencesPanel] = None


def plugin_start3(plugin_dir: str) -> str:
    global _plugin, _preferences
    if _plugin is not None:
        return _plugin.start()
    LOGGER.info("Initialising Global Nest Tracker plugin from %s", plugin_dir)
    _preferences = Preferences(Path(plugin_dir))
    _plugin = _PluginRuntime(plugin_dir, _preferences)
    return _plugin.start()


def plugin_stop() -> None:
    global _prefs_panel, _plugin, _preferences
    if _plugin:
        try:
            _plugin.stop()
        finally:
            _plugin = None
    _prefs_panel = None
    _preferences = None


def plugin_app(parent) -> Optional[Any]:  # pragma: no cover - host Tk frame hook
    if _plugin is None:
        return None
    try:
        return _plugin.build_panel(parent)
    except Exception as exc:
        LOGGER.exception("Failed to build nest tracker panel: %s", exc)
        return None


def plugin_prefs(parent) -> Optional[Any]:  # pragma: no cover - optional settings pane
    global _prefs_panel
    if _preferences is None:
        LOGGER.debug("Preferences not initialised; returning no UI")
        return None
    try:
        panel = PreferencesPanel(
            parent,
            _preferences,
            _plugin.set_submit_enabled if _plugin else None,
            _plugin.set_log_submissions if _plugin else None,
        )
    except Exception as exc:
        LOGGER.exception("Failed to build preferences panel: %s", exc)
        return None
    _prefs_panel = panel
    return panel.frame


def plugin_prefs_save() -> None:  # pragma: no cover - save hook
    if _prefs_panel is None:
        LOGGER.debug("No preferences panel to save")
        return
    try:
        _prefs_panel.apply()
        if _plugin:
            _plugin.on_preferences_updated()
    except Exception as exc:
        LOGGER.exception("Failed to save preferences: %s", exc)


def chat_message(message_type: str, message: str) -> None:
    if _plugin:
        _plugin.handle_chat_message(message_type, message)


def game_state_changed(state: str) -> None:
    if _plugin:
        _plugin.handle_game_state(state)


def client_tick() -> None:
    if _plugin:
        _plugin.tick()


# Metadata expected by some plugin loaders
name = PLUGIN_NAME
version = PLUGIN_VERSION
