from __future__ import annotations

import logging

import pytest

import load
from nest_plugin import host_api
from nest_plugin.nest_tracker import PLACE_MESSAGE, RETRIEVE_REPLACED_MESSAGE
from nest_plugin.observation import ItemObservation


def test_plugin_start_stop_idempotent(monkeypatch, tmp_path):
    class DummyPrefs:
        def __init__(self, *_args, **_kwargs):
            pass

        def save(self):
            return

    class DummyRuntime:
        def __init__(self, *args, **kwargs):
            self.started = 0
            self.stopped = 0

        def start(self):
            self.started += 1
            return load.PLUGIN_NAME

        def stop(self):
            self.stopped += 1

    monkeypatch.setattr(load, "_PluginRuntime", DummyRuntime)
    monkeypatch.setattr(load, "Preferences", DummyPrefs)

    result1 = load.plugin_start3(str(tmp_path))
    runtime = load._plugin
    result2 = load.plugin_start3(str(tmp_path))

    assert result1 == load.PLUGIN_NAME
    assert result2 == load.PLUGIN_NAME
    assert load._plugin is runtime
    assert runtime.started == 2

    load.plugin_stop()
    load.plugin_stop()

    assert load._plugin is None
    assert runtime.stopped == 1


def test_hooks_are_noops_without_plugin():
    load.plugin_stop()
    load.chat_message("MESBOX", PLACE_MESSAGE)
    load.game_state_changed("HOPPING")
    load.client_tick()


@pytest.fixture
def runtime(monkeypatch, tmp_path):
    monkeypatch.delenv("NEST_TRACKER_API_URL", raising=False)
    runtime = load._PluginRuntime(str(tmp_path), load.Preferences(tmp_path))
    submitted = []
    monkeypatch.setattr(runtime.manager, "submit_observation", submitted.append)
    runtime.tracker._submit = runtime.manager.submit_observation
    runtime.submitted = submitted
    runtime.start()
    yield runtime
    runtime.stop()
    host_api.unregister_dialog_item_provider()


def test_runtime_routes_nest_messages_through_tick(runtime):
    host_api.register_dialog_item_provider(lambda: 995)

    runtime.handle_chat_message("MESBOX", PLACE_MESSAGE)
    assert runtime.tracker.state.awaiting_retrieval is False

    assert runtime.tick() == 1
    assert runtime.tracker.state.last_placed_item_id == 995

    runtime.handle_chat_message("mesbox", RETRIEVE_REPLACED_MESSAGE)
    runtime.tick()

    assert runtime.submitted == [ItemObservation(995, transformed=True)]


def test_runtime_ignores_other_message_types(runtime):
    host_api.register_dialog_item_provider(lambda: 995)

    runtime.handle_chat_message("GAMEMESSAGE", PLACE_MESSAGE)

    assert runtime.tick() == 0
    assert runtime.tracker.state.awaiting_retrieval is False


@pytest.mark.parametrize("state, expected", [("HOPPING", False), ("LOGIN_SCREEN", False), ("LOGGED_IN", True)])
def test_runtime_session_boundary_states(runtime, state, expected):
    runtime.tracker.state.awaiting_retrieval = True
    runtime.tracker.state.last_placed_item_id = 995

    runtime.handle_game_state(state)

    assert runtime.tracker.state.awaiting_retrieval is expected
    assert runtime.tracker.state.last_placed_item_id == 995


def test_runtime_stop_drops_pending_deferred_work(runtime):
    runtime.handle_chat_message("MESBOX", PLACE_MESSAGE)
    runtime.stop()

    assert runtime.deferred.pending == 0
    assert runtime.tick() == 0


def test_preferences_update_swaps_client(runtime):
    runtime._preferences.api_base_url = "https://nests.example"
    old_client = runtime.manager.client

    runtime.on_preferences_updated()

    assert runtime.manager.client is not old_client
    assert runtime.manager.client.base_url == "https://nests.example/"


def test_submission_log_toggle_writes_file(runtime, tmp_path):
    runtime.set_log_submissions(True)
    runtime.manager._submission_log.info("itemId=%d transformed=%s", 995, "true")

    log_file = tmp_path / "logs" / "nest-submissions.log"
    assert log_file.exists()
    assert "itemId=995 transformed=true" in log_file.read_text(encoding="utf-8")

    runtime.set_log_submissions(False)
    assert runtime.manager._submission_log is None


def test_plugin_logger_does_not_propagate():
    logger = logging.getLogger(load.LOGGER_NAME)
    assert logger is load.LOGGER
    assert logger.propagate is False
    assert any(getattr(handler, "_host_handler", False) for handler in logger.handlers)


def test_runtime_hop_between_place_and_tick_keeps_tracker_idle(runtime):
    host_api.register_dialog_item_provider(lambda: 995)

    runtime.handle_chat_message("MESBOX", PLACE_MESSAGE)
    runtime.handle_game_state("HOPPING")
    runtime.tick()

    assert runtime.tracker.state.awaiting_retrieval is False

    runtime.handle_chat_message("MESBOX", RETRIEVE_REPLACED_MESSAGE)
    runtime.tick()

    assert runtime.submitted == []


def test_log_records_forward_to_host_logger(monkeypatch):
    records = []

    class _Collector(logging.Handler):
        def emit(self, record):
            records.append(record)

    host_logger = logging.getLogger("test-host")
    host_logger.setLevel(logging.DEBUG)
    collector = _Collector()
    host_logger.addHandler(collector)
    monkeypatch.setattr(load, "_host_logger", lambda: host_logger)
    try:
        logging.getLogger(f"{load.LOGGER_NAME}.Tracker").warning("nest cycle abandoned")
    finally:
        host_logger.removeHandler(collector)

    assert [record.getMessage() for record in records] == [
        f"[{load.LOG_TAG}] {load.LOGGER_NAME}.Tracker: nest cycle abandoned"
    ]
