"""Tests for the presence session lifecycle and the Discord adapter."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock, call

import pytest
from pypresence.exceptions import DiscordNotFound, InvalidID, InvalidPipe, PyPresenceException

from samwise.channel import Clear, SetStatus, StatusChannel
from samwise.config import DiscordConfig
from samwise.errors import ChannelClosedError, SessionError
from samwise.presence import (
    ConnectionObserver,
    DiscordConnection,
    LoggingObserver,
    PresenceSession,
    SessionState,
)

LIFECYCLE = [
    SessionState.STARTING,
    SessionState.AWAITING_READY,
    SessionState.ACTIVE,
    SessionState.DRAINING,
    SessionState.TERMINATED,
]


class RecordingObserver:
    def __init__(self) -> None:
        self.events: list[str] = []

    def on_connected(self) -> None:
        self.events.append("connected")

    def on_disconnected(self) -> None:
        self.events.append("disconnected")

    def on_error(self, error: BaseException) -> None:
        self.events.append(f"error:{type(error).__name__}")


def _session(connection, channel, **discord) -> PresenceSession:
    return PresenceSession(connection, channel, DiscordConfig(client_id=1234, **discord))


class TestPresenceSession:
    def test_set_then_close_drains_to_terminated(self, make_connection):
        connection = make_connection()
        channel = StatusChannel()
        channel.send(SetStatus("a"))
        channel.close()

        session = _session(connection, channel)
        session.run()

        assert session.applied == [SetStatus("a")]
        assert session.history == LIFECYCLE
        assert session.state is SessionState.TERMINATED
        assert connection.calls == [
            ("start",),
            ("wait_ready", None),
            ("set_activity", "coding", "a"),
            ("join",),
        ]

    def test_clear_message_clears_activity(self, make_connection):
        connection = make_connection()
        channel = StatusChannel()
        channel.send(Clear())
        channel.close()

        _session(connection, channel).run()

        assert connection.activity_calls == [("clear_activity",)]

    def test_every_message_applied_in_order(self, make_connection):
        connection = make_connection()
        channel = StatusChannel()
        for message in [SetStatus("a"), SetStatus("b"), Clear(), SetStatus("c")]:
            channel.send(message)
        channel.close()

        _session(connection, channel, state="hacking").run()

        assert connection.activity_calls == [
            ("set_activity", "hacking", "a"),
            ("set_activity", "hacking", "b"),
            ("clear_activity",),
            ("set_activity", "hacking", "c"),
        ]

    def test_ready_timeout_passed_to_connection(self, make_connection):
        connection = make_connection()
        channel = StatusChannel()
        channel.close()

        _session(connection, channel, ready_timeout=2.5).run()

        assert ("wait_ready", 2.5) in connection.calls

    def test_command_failure_is_fatal_and_closes_channel(self, make_connection):
        connection = make_connection(fail_on="set_activity", error=SessionError("pipe closed"))
        channel = StatusChannel()
        channel.send(SetStatus("a"))
        channel.send(SetStatus("b"))

        session = _session(connection, channel)
        with pytest.raises(SessionError, match="pipe closed"):
            session.run()

        assert session.state is SessionState.TERMINATED
        assert SessionState.DRAINING not in session.history
        assert ("join",) not in connection.calls
        assert session.applied == []
        with pytest.raises(ChannelClosedError):
            channel.send(Clear())

    def test_ready_failure_is_fatal(self, make_connection):
        connection = make_connection(fail_on="wait_ready", error=SessionError("not ready"))
        channel = StatusChannel()
        session = _session(connection, channel)

        with pytest.raises(SessionError):
            session.run()

        assert session.history == [
            SessionState.STARTING,
            SessionState.AWAITING_READY,
            SessionState.TERMINATED,
        ]

    def test_default_observer_logs(self, make_connection):
        connection = make_connection()
        _session(connection, StatusChannel())
        assert len(connection.observers) == 1
        assert isinstance(connection.observers[0], LoggingObserver)
        assert isinstance(connection.observers[0], ConnectionObserver)

    def test_explicit_observers_registered_before_start(self, make_connection):
        connection = make_connection()
        observer = RecordingObserver()
        channel = StatusChannel()
        channel.close()

        PresenceSession(connection, channel, DiscordConfig(client_id=1), [observer]).run()

        assert connection.observers == [observer]
        assert observer.events == ["connected", "disconnected"]

    def test_thread_applies_messages_and_terminates(self, make_connection):
        connection = make_connection()
        channel = StatusChannel()
        session = _session(connection, channel)

        session.start()
        channel.send(SetStatus("a"))
        channel.close()
        session.join(timeout=5)

        assert session.applied == [SetStatus("a")]
        assert session.state is SessionState.TERMINATED
        assert not session.running

    def test_thread_join_reraises_session_error(self, make_connection):
        connection = make_connection(fail_on="clear_activity", error=SessionError("gone"))
        channel = StatusChannel()
        session = _session(connection, channel)

        session.start()
        channel.send(Clear())
        with pytest.raises(SessionError, match="gone"):
            session.join(timeout=5)

    def test_join_holds_until_stop(self, make_connection):
        connection = make_connection(hold_join=True)
        channel = StatusChannel()
        session = _session(connection, channel)

        session.start()
        channel.close()
        with pytest.raises(TimeoutError):
            session.join(timeout=0.1)
        assert session.state is SessionState.DRAINING

        session.stop()
        session.join(timeout=5)
        assert session.state is SessionState.TERMINATED

    def test_start_twice_rejected(self, make_connection):
        channel = StatusChannel()
        session = _session(make_connection(), channel)
        session.start()
        try:
            with pytest.raises(SessionError):
                session.start()
        finally:
            channel.close()
            session.join(timeout=5)


class TestDiscordConnection:
    def _connection(self, rpc: MagicMock, **kwargs) -> tuple[DiscordConnection, RecordingObserver]:
        factory = MagicMock(return_value=rpc)
        connection = DiscordConnection(1234, rpc_factory=factory, **kwargs)
        observer = RecordingObserver()
        connection.add_observer(observer)
        connection.start()
        factory.assert_called_once()
        assert factory.call_args == call("1234")
        return connection, observer

    def test_ready_then_activity_commands(self):
        rpc = MagicMock()
        connection, observer = self._connection(rpc)

        connection.wait_ready()
        connection.set_activity("coding", "did X")
        connection.clear_activity()

        rpc.connect.assert_called_once_with()
        rpc.update.assert_called_once_with(state="coding", details="did X")
        rpc.clear.assert_called_once_with()
        assert observer.events == ["connected"]

    def test_ready_retries_until_discord_is_running(self):
        rpc = MagicMock()
        rpc.connect.side_effect = [DiscordNotFound(), ConnectionRefusedError(), None]
        connection, observer = self._connection(rpc, reconnect_delay=0)

        connection.wait_ready()

        assert rpc.connect.call_count == 3
        assert observer.events == [
            "error:DiscordNotFound",
            "error:ConnectionRefusedError",
            "connected",
        ]

    def test_failed_handshake_closes_its_event_loop(self):
        rpc = MagicMock()
        rpc.loop.is_closed.return_value = False
        rpc.connect.side_effect = [DiscordNotFound(), None]
        connection, _ = self._connection(rpc, reconnect_delay=0)

        connection.wait_ready()

        rpc.loop.close.assert_called_once_with()

    def test_closed_loop_is_not_closed_again(self):
        rpc = MagicMock()
        rpc.loop.is_closed.return_value = True
        rpc.connect.side_effect = [InvalidPipe(), None]
        connection, _ = self._connection(rpc, reconnect_delay=0)

        connection.wait_ready()

        rpc.loop.close.assert_not_called()

    def test_ready_timeout_raises(self):
        rpc = MagicMock()
        rpc.connect.side_effect = DiscordNotFound()
        connection, _ = self._connection(rpc, reconnect_delay=0.01)

        with pytest.raises(SessionError, match="not ready"):
            connection.wait_ready(timeout=0.05)

    def test_invalid_client_id_is_fatal(self):
        rpc = MagicMock()
        rpc.connect.side_effect = InvalidID()
        connection, observer = self._connection(rpc)

        with pytest.raises(SessionError, match="client id 1234"):
            connection.wait_ready()
        assert rpc.connect.call_count == 1
        assert observer.events == ["error:InvalidID"]

    def test_stop_interrupts_ready_wait(self):
        rpc = MagicMock()
        rpc.connect.side_effect = DiscordNotFound()
        connection, _ = self._connection(rpc, reconnect_delay=60)
        connection.stop()

        with pytest.raises(SessionError, match="stopped"):
            connection.wait_ready()

    def test_set_activity_failure_wrapped(self):
        rpc = MagicMock()
        rpc.update.side_effect = PyPresenceException("payload rejected")
        connection, observer = self._connection(rpc)

        with pytest.raises(SessionError, match="failed to set Discord activity"):
            connection.set_activity("coding", "x")
        assert observer.events == ["error:PyPresenceException"]

    def test_clear_failure_wrapped(self):
        rpc = MagicMock()
        rpc.clear.side_effect = BrokenPipeError()
        connection, _ = self._connection(rpc)

        with pytest.raises(SessionError, match="failed to clear Discord activity"):
            connection.clear_activity()

    def test_join_waits_for_stop_then_closes(self):
        rpc = MagicMock()
        connection, observer = self._connection(rpc)
        done = threading.Event()

        def join():
            connection.join()
            done.set()

        thread = threading.Thread(target=join)
        thread.start()
        assert not done.wait(0.05)
        rpc.close.assert_not_called()

        connection.stop()
        thread.join(timeout=5)
        assert done.is_set()
        rpc.close.assert_called_once_with()
        assert observer.events == ["disconnected"]

    def test_commands_before_start_rejected(self):
        connection = DiscordConnection(1234, rpc_factory=MagicMock())
        with pytest.raises(SessionError):
            connection.set_activity("coding", "x")
