"""Tests for config, logging and listener sets."""

import json
import logging

import aissh.core.config as config_module
from aissh.agent import AgentSettings
from aissh.core.config import AgentConfig, TransportConfig, reload_config
from aissh.core.errors import AISSHError, ConnectionLostError, NotConnectedError, TransportError
from aissh.core.listeners import ListenerSet
from aissh.core.logging import ColorFormatter, StructuredFormatter, setup_logging
from aissh.transport import TransportManager


# ─── Config ──────────────────────────────────────────────────────


class TestConfig:
    def test_defaults(self):
        cfg = TransportConfig()
        assert (cfg.host, cfg.port, cfg.endpoint_timeout) == ("localhost", 3001, 10.0)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("AISSH_BACKEND_PORT", "4100")
        monkeypatch.setenv("AISSH_AGENT_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("AISSH_AGENT_SAFE_MODE", "off")
        monkeypatch.setenv("AISSH_LLM_MODEL", "gpt-4o-mini")

        cfg = reload_config()
        try:
            assert cfg is config_module.config
            assert cfg.transport.port == 4100
            assert cfg.agent.max_attempts == 5
            assert cfg.agent.safe_mode is False
            assert cfg.llm.model == "gpt-4o-mini"
        finally:
            monkeypatch.undo()
            reload_config()

    def test_agent_settings_from_config(self):
        settings = AgentSettings.from_config(AgentConfig(max_attempts=3, safe_mode=False))
        assert settings.max_attempts == 3
        assert settings.safe_mode is False

    def test_transport_from_config(self):
        manager = TransportManager.from_config(TransportConfig(host="backend", port=4200))
        assert manager.endpoint.uri == "ws://backend:4200/"


# ─── Errors ──────────────────────────────────────────────────────


class TestErrors:
    def test_hierarchy(self):
        assert issubclass(NotConnectedError, TransportError)
        assert issubclass(ConnectionLostError, AISSHError)
        assert str(NotConnectedError()) == "Not connected to backend"


# ─── Logging ─────────────────────────────────────────────────────


def _record(**extra):
    record = logging.LogRecord("aissh.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogging:
    def test_structured_formatter(self):
        line = StructuredFormatter().format(_record(session_id="s1", duration_ms=12))
        entry = json.loads(line)
        assert entry["msg"] == "hello world"
        assert entry["level"] == "INFO"
        assert entry["session_id"] == "s1"
        assert entry["duration_ms"] == 12
        assert "attempt" not in entry

    def test_color_formatter_restores_record(self):
        record = _record()
        out = ColorFormatter(use_color=True).format(record)
        assert "\033[" in out
        assert record.levelname == "INFO"
        assert "\033[" not in ColorFormatter(use_color=False).format(record)

    def test_color_formatter_tags_session_and_event(self):
        record = _record(session_id="s1", event="ssh-connect")
        out = ColorFormatter(use_color=False).format(record)
        assert out.endswith("INFO: (s1 ssh-connect) hello world")
        assert ColorFormatter(use_color=False).format(_record()).endswith("INFO: hello world")

    def test_structured_formatter_forwards_event(self):
        entry = json.loads(StructuredFormatter().format(_record(session_id="s1", event="ssh-error")))
        assert (entry["session_id"], entry["event"]) == ("s1", "ssh-error")

    def test_explicit_level_beats_env(self, monkeypatch):
        monkeypatch.setenv("AISSH_LOG_LEVEL", "error")
        root = logging.getLogger()
        saved = (root.level, list(root.handlers))
        try:
            setup_logging("info")
            assert root.level == logging.INFO
        finally:
            root.setLevel(saved[0])
            root.handlers[:] = saved[1]

    def test_setup_logging_json(self, monkeypatch):
        monkeypatch.setenv("AISSH_LOG_FORMAT", "json")
        monkeypatch.setenv("AISSH_LOG_LEVEL", "debug")
        root = logging.getLogger()
        saved = (root.level, list(root.handlers))
        try:
            setup_logging()
            assert root.level == logging.DEBUG
            assert isinstance(root.handlers[0].formatter, StructuredFormatter)
            assert logging.getLogger("websockets").level == logging.WARNING
        finally:
            root.setLevel(saved[0])
            root.handlers[:] = saved[1]


# ─── ListenerSet ─────────────────────────────────────────────────


class TestListenerSet:
    def test_emit_in_order(self):
        seen = []
        listeners = ListenerSet()
        listeners.subscribe(lambda x: seen.append(("a", x)))
        listeners.subscribe(lambda x: seen.append(("b", x)))
        assert listeners.emit(1) == 2
        assert seen == [("a", 1), ("b", 1)]

    def test_unsubscribe_is_idempotent(self):
        listeners = ListenerSet()
        unsubscribe = listeners.subscribe(print)
        unsubscribe()
        unsubscribe()
        assert len(listeners) == 0

    def test_duplicate_subscribe(self):
        listeners = ListenerSet()
        listeners.subscribe(print)
        listeners.subscribe(print)
        assert len(listeners) == 1

    def test_failing_listener_does_not_block_others(self, caplog):
        seen = []

        def broken(x):
            raise RuntimeError("bad listener")

        listeners = ListenerSet("data")
        listeners.subscribe(broken)
        listeners.subscribe(seen.append)
        with caplog.at_level(logging.ERROR):
            assert listeners.emit("x") == 1
        assert seen == ["x"]
        assert "bad listener" in caplog.text

    def test_unsubscribe_during_emit(self):
        seen = []
        listeners = ListenerSet()

        def once(x):
            seen.append(x)
            handle()

        handle = listeners.subscribe(once)
        listeners.emit(1)
        listeners.emit(2)
        assert seen == [1]
