"""Tests for the session layer — SessionRegistry and CommandExecutor."""

import asyncio
import logging

import pytest

from aissh.session.commands import NOT_CONNECTED, SessionCommandRunner, to_terminal
from aissh.session.models import (
    GLOBAL_SESSION,
    SYSTEM_SESSION,
    LogEntry,
    LogType,
    Session,
    SessionStatus,
    split_log_lines,
)
from aissh.transport.frames import Event


class Recorder:
    """Collects everything the registry's three streams deliver."""

    def __init__(self, registry, session_id=None):
        self.data = []
        self.logs = []
        self.statuses = []
        registry.on_data(lambda d, sid: self.data.append((sid, d)), session_id=session_id)
        registry.on_log(self.logs.append, session_id=session_id)
        registry.on_status(self.statuses.append, session_id=session_id)


# ── Models ───────────────────────────────────────────────────────


class TestModels:
    def test_split_log_lines_skips_blank_and_strips_cr(self):
        assert split_log_lines("a\r\nb\r\n\r\n  \nc") == ["a", "b", "c"]

    def test_status_parse_unknown_is_error(self):
        assert SessionStatus.parse("connected") is SessionStatus.CONNECTED
        assert SessionStatus.parse("weird") is SessionStatus.ERROR

    def test_session_buffer_is_bounded(self):
        session = Session(id="s1", buffer_size=3)
        for i in range(5):
            session.logs.append(LogEntry(type=LogType.INFO, content=str(i), session_id="s1"))
        assert session.lines() == ["2", "3", "4"]

    def test_to_terminal(self):
        assert to_terminal("a\nb") == "a\r\nb\r\n"
        assert to_terminal("a\r\nb\r\n") == "a\r\nb\r\n"


# ── Registry ─────────────────────────────────────────────────────


class TestSessionRegistry:
    @pytest.mark.asyncio
    async def test_connect_emits_connect_frame(self, registry, channel):
        rec = Recorder(registry)
        assert await registry.connect("10.0.0.5", "root", "pw", "s1") is True

        assert channel.sent[-1].event == Event.CONNECT.value
        assert channel.sent[-1].data == {
            "ip": "10.0.0.5",
            "username": "root",
            "password": "pw",
            "serverId": "s1",
        }
        assert rec.statuses[0].status is SessionStatus.CONNECTING
        assert registry.get("s1").ip == "10.0.0.5"

    @pytest.mark.asyncio
    async def test_lifecycle_logs_carry_session_and_event(self, registry, channel, caplog):
        with caplog.at_level(logging.INFO, logger="aissh.session"):
            await registry.connect("10.0.0.5", "root", "pw", "s1")
            channel.receive(Event.ERROR, serverId="s1", message="auth failed")
            await registry.disconnect("s1")

        tagged = [(r.session_id, r.event) for r in caplog.records if hasattr(r, "event")]
        assert tagged == [
            ("s1", "ssh-connect"),
            ("s1", "ssh-error"),
            ("s1", "ssh-disconnect"),
        ]

    @pytest.mark.asyncio
    async def test_connect_with_backend_down(self, registry, channel):
        rec = Recorder(registry)
        channel.fail_with = OSError("connection refused")

        assert await registry.connect("10.0.0.5", "root", "pw", "s1") is False
        assert channel.sent == []
        # The failure reached the global stream and the system log
        assert any(sid == GLOBAL_SESSION and "connection refused" in d for sid, d in rec.data)
        assert any(e.session_id == SYSTEM_SESSION and e.type is LogType.ERROR for e in rec.logs)
        assert registry.status_of("s1") is SessionStatus.ERROR

    @pytest.mark.asyncio
    async def test_data_frame_fans_out(self, registry, channel):
        await registry.connect("h", "u", "p", "s1")
        rec = Recorder(registry)

        channel.receive(Event.DATA, serverId="s1", data="total 0\r\nfoo\r\n\r\n")

        assert rec.data == [("s1", "total 0\r\nfoo\r\n\r\n")]
        assert [(e.type, e.content) for e in rec.logs] == [
            (LogType.INFO, "total 0"),
            (LogType.INFO, "foo"),
        ]
        assert registry.get("s1").lines() == ["total 0", "foo"]

    @pytest.mark.asyncio
    async def test_status_frame(self, registry, channel):
        await registry.connect("h", "u", "p", "s1")
        rec = Recorder(registry)

        channel.receive(Event.STATUS, serverId="s1", status="connected", message="SSH Connection Established")

        assert rec.statuses[-1].status is SessionStatus.CONNECTED
        assert rec.statuses[-1].message == "SSH Connection Established"
        assert registry.status_of("s1") is SessionStatus.CONNECTED
        assert rec.logs[-1].content == "SSH Connection Established"

    @pytest.mark.asyncio
    async def test_error_frame(self, registry, channel):
        await registry.connect("h", "u", "p", "s1")
        rec = Recorder(registry)

        channel.receive(Event.ERROR, serverId="s1", message="Authentication failed")

        assert rec.logs[-1].type is LogType.ERROR
        assert rec.logs[-1].content == "Authentication failed"
        assert "[Error] Authentication failed" in rec.data[-1][1]
        assert registry.status_of("s1") is SessionStatus.ERROR

    @pytest.mark.asyncio
    async def test_events_keep_arrival_order(self, registry, channel):
        await registry.connect("h", "u", "p", "s1")
        rec = Recorder(registry)
        for i in range(20):
            channel.receive(Event.DATA, serverId="s1", data=f"line {i}\n")
        assert [e.content for e in rec.logs] == [f"line {i}" for i in range(20)]

    @pytest.mark.asyncio
    async def test_scoped_listeners_filter_by_session(self, registry, channel):
        await registry.connect("h", "u", "p", "s1")
        await registry.connect("h", "u", "p", "s2")
        rec = Recorder(registry, session_id="s1")

        channel.receive(Event.DATA, serverId="s1", data="mine\n")
        channel.receive(Event.DATA, serverId="s2", data="theirs\n")

        assert [e.content for e in rec.logs] == ["mine"]
        assert [d for _, d in rec.data] == ["mine\n"]

    @pytest.mark.asyncio
    async def test_scoped_listeners_hear_transport_failures(self, registry, channel):
        await registry.connect("h", "u", "p", "s1")
        rec = Recorder(registry, session_id="s1")

        channel.drop("reset by peer")

        assert any(sid == GLOBAL_SESSION for sid, _ in rec.data)
        assert any(e.session_id == SYSTEM_SESSION for e in rec.logs)
        assert rec.statuses[-1].status is SessionStatus.ERROR

    @pytest.mark.asyncio
    async def test_disconnect_destroys_session(self, registry, channel):
        await registry.connect("h", "u", "p", "s1")
        channel.receive(Event.DATA, serverId="s1", data="hello\n")
        rec = Recorder(registry, session_id="s1")
        session = registry.get("s1")

        await registry.disconnect("s1")

        assert channel.sent[-1].event == Event.DISCONNECT.value
        assert rec.statuses[-1].status is SessionStatus.DISCONNECTED
        assert rec.statuses[-1].message == "Disconnected by user"
        assert registry.get("s1") is None
        assert len(session.logs) == 0

        # Listeners bound to s1 are gone
        channel.receive(Event.DATA, serverId="s1", data="late\n")
        assert "late\n" not in [d for _, d in rec.data]

    @pytest.mark.asyncio
    async def test_disconnect_while_socket_idle(self, registry, channel):
        rec = Recorder(registry)
        await registry.disconnect("s1")
        assert channel.sent == []
        assert rec.statuses[-1].message == "Disconnected (socket idle)"

    @pytest.mark.asyncio
    async def test_unsubscribe(self, registry, channel):
        await registry.connect("h", "u", "p", "s1")
        seen = []
        unsubscribe = registry.on_data(lambda d, sid: seen.append(d))
        channel.receive(Event.DATA, serverId="s1", data="a")
        unsubscribe()
        channel.receive(Event.DATA, serverId="s1", data="b")
        assert seen == ["a"]

    @pytest.mark.asyncio
    async def test_input_and_resize_frames(self, registry, channel):
        await registry.connect("h", "u", "p", "s1")
        await registry.send_input("ls\r", "s1")
        await registry.resize(120, 40, "s1")
        assert channel.sent[-2].data == {"serverId": "s1", "data": "ls\r"}
        assert channel.sent[-1].data == {"serverId": "s1", "cols": 120, "rows": 40}


# ── CommandExecutor ──────────────────────────────────────────────


class TestCommandExecutor:
    @pytest.mark.asyncio
    async def test_not_connected_returns_immediately(self, executor, registry, channel):
        rec = Recorder(registry)
        result = await asyncio.wait_for(executor.execute("ls", "s1"), timeout=0.5)

        assert result == NOT_CONNECTED
        assert channel.sent == []
        # The command was still echoed
        assert rec.logs[0].type is LogType.COMMAND

    @pytest.mark.asyncio
    async def test_ok_output(self, executor, registry, channel):
        channel.exec_handler = lambda f: {"status": "ok", "output": "a\nb\n"}
        await registry.connect("h", "u", "p", "s1")
        rec = Recorder(registry)

        result = await executor.execute("ls /tmp", "s1")

        assert result == "a\nb\n"
        assert channel.sent[-1].event == Event.EXEC.value
        assert channel.sent[-1].data == {"serverId": "s1", "command": "ls /tmp"}
        assert [(e.type, e.content) for e in rec.logs] == [
            (LogType.COMMAND, "$ ls /tmp"),
            (LogType.INFO, "a"),
            (LogType.INFO, "b"),
        ]
        # Echo first, then CRLF-normalized output
        assert "[AI] $ ls /tmp" in rec.data[0][1]
        assert rec.data[1] == ("s1", "a\r\nb\r\n")

    @pytest.mark.asyncio
    async def test_empty_output(self, executor, registry, channel):
        channel.exec_handler = lambda f: {"status": "ok"}
        await registry.connect("h", "u", "p", "s1")
        assert await executor.execute("true", "s1") == ""

    @pytest.mark.asyncio
    async def test_backend_error(self, executor, registry, channel):
        channel.exec_handler = lambda f: {"status": "error", "message": "Session not found"}
        await registry.connect("h", "u", "p", "s1")
        rec = Recorder(registry)

        assert await executor.execute("ls", "s1") == "Error: Session not found"
        assert rec.logs[-1].type is LogType.ERROR
        assert "[AI Error]: Session not found" in rec.data[-1][1]

    @pytest.mark.asyncio
    async def test_backend_error_without_message(self, executor, registry, channel):
        channel.exec_handler = lambda f: {"status": "error"}
        await registry.connect("h", "u", "p", "s1")
        assert await executor.execute("ls", "s1") == "Error: Unknown error"

    @pytest.mark.asyncio
    async def test_timeout(self, registry, channel):
        from aissh.session.commands import CommandExecutor

        channel.exec_handler = lambda f: None
        await registry.connect("h", "u", "p", "s1")
        result = await CommandExecutor(registry, timeout=0.02).execute("sleep 100", "s1")
        assert result.startswith("Error: Command timed out")

    @pytest.mark.asyncio
    async def test_connection_lost_mid_command(self, executor, registry, channel):
        channel.exec_handler = lambda f: None
        await registry.connect("h", "u", "p", "s1")

        task = asyncio.create_task(executor.execute("ls", "s1"))
        await asyncio.sleep(0)
        channel.drop("reset by peer")

        result = await task
        assert result.startswith("Error: ")
        assert "reset by peer" in result

    @pytest.mark.asyncio
    async def test_send_command_echoes_then_emits(self, executor, registry, channel):
        await registry.connect("h", "u", "p", "s1")
        rec = Recorder(registry)

        await executor.send_command("top", "s1")

        assert rec.logs[-1].content == "$ top"
        assert "$ top" in rec.data[-1][1]
        assert channel.sent[-1].event == Event.COMMAND.value
        assert channel.sent[-1].id is None

    @pytest.mark.asyncio
    async def test_session_runner(self, executor, registry, channel):
        channel.exec_handler = lambda f: {"status": "ok", "output": f.data["serverId"]}
        await registry.connect("h", "u", "p", "s7")
        assert await SessionCommandRunner(executor, "s7").execute("hostname") == "s7"
