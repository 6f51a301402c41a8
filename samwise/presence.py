"""Presence session: owns the Discord RPC connection on a dedicated thread.

The session walks a fixed lifecycle::

    STARTING -> AWAITING_READY -> ACTIVE -> DRAINING -> TERMINATED

While ACTIVE it applies every ``StatusMessage`` from its channel, in order.
When the channel is closed and drained it joins the connection, which holds
the last activity visible until ``stop()`` is requested.

The connection is only ever touched from the session thread, apart from
``stop()``, which just sets an event.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from pypresence import Presence
from pypresence.exceptions import (
    ConnectionTimeout,
    DiscordNotFound,
    InvalidID,
    InvalidPipe,
    PyPresenceException,
)

from .channel import Clear, SetStatus, StatusChannel, StatusMessage
from .config import DiscordConfig
from .errors import SessionError

logger = logging.getLogger(__name__)

RECONNECT_DELAY_S = 5.0


class SessionState(str, Enum):
    STARTING = "starting"
    AWAITING_READY = "awaiting_ready"
    ACTIVE = "active"
    DRAINING = "draining"
    TERMINATED = "terminated"


@runtime_checkable
class ConnectionObserver(Protocol):
    """Receives informational connection events. Never affects session state."""

    def on_connected(self) -> None: ...

    def on_disconnected(self) -> None: ...

    def on_error(self, error: BaseException) -> None: ...


class LoggingObserver:
    """ConnectionObserver that writes events to the log."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def on_connected(self) -> None:
        self._log.info("Discord RPC connected")

    def on_disconnected(self) -> None:
        self._log.info("Discord RPC disconnected")

    def on_error(self, error: BaseException) -> None:
        self._log.warning("Discord RPC error: %s", error)


class PresenceConnection(Protocol):
    """The command surface of an external presence connection."""

    def add_observer(self, observer: ConnectionObserver) -> None: ...

    def start(self) -> None: ...

    def wait_ready(self, timeout: float | None = None) -> None: ...

    def set_activity(self, state: str, details: str) -> None: ...

    def clear_activity(self) -> None: ...

    def join(self) -> None: ...

    def stop(self) -> None: ...


class DiscordConnection:
    """PresenceConnection over a pypresence ``Presence`` client.

    ``wait_ready`` keeps retrying the IPC handshake while Discord is not
    running, so without a timeout it waits for as long as it takes.
    """

    def __init__(
        self,
        client_id: int,
        rpc_factory: Callable[..., Any] = Presence,
        reconnect_delay: float = RECONNECT_DELAY_S,
    ) -> None:
        self._client_id = client_id
        self._rpc_factory = rpc_factory
        self._reconnect_delay = reconnect_delay
        self._rpc: Any = None
        self._observers: list[ConnectionObserver] = []
        self._stop_requested = threading.Event()

    def add_observer(self, observer: ConnectionObserver) -> None:
        self._observers.append(observer)

    def _notify(self, event: str, *args: Any) -> None:
        for observer in self._observers:
            getattr(observer, f"on_{event}")(*args)

    def _require_rpc(self) -> Any:
        if self._rpc is None:
            raise SessionError("Discord RPC used before start()")
        return self._rpc

    def start(self) -> None:
        # pypresence creates its own event loop for the IPC pipe on the
        # calling (session) thread.
        self._rpc = self._rpc_factory(str(self._client_id))

    def wait_ready(self, timeout: float | None = None) -> None:
        rpc = self._require_rpc()
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            try:
                rpc.connect()
            except InvalidID as exc:
                self._notify("error", exc)
                raise SessionError(f"Discord rejected client id {self._client_id}") from exc
            except (DiscordNotFound, InvalidPipe, ConnectionTimeout, OSError) as exc:
                self._notify("error", exc)
                _close_stale_loop(rpc)
                delay = self._reconnect_delay
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise SessionError(
                            f"Discord RPC not ready after {timeout:g}s"
                        ) from exc
                    delay = min(delay, remaining)
                if self._stop_requested.wait(delay):
                    raise SessionError("stopped before Discord RPC became ready") from exc
                continue
            except PyPresenceException as exc:
                self._notify("error", exc)
                raise SessionError(f"failed to wait for Discord RPC ready: {exc}") from exc
            self._notify("connected")
            return

    def set_activity(self, state: str, details: str) -> None:
        try:
            self._require_rpc().update(state=state, details=details)
        except (PyPresenceException, OSError) as exc:
            self._notify("error", exc)
            raise SessionError(f"failed to set Discord activity: {exc}") from exc

    def clear_activity(self) -> None:
        try:
            self._require_rpc().clear()
        except (PyPresenceException, OSError) as exc:
            self._notify("error", exc)
            raise SessionError(f"failed to clear Discord activity: {exc}") from exc

    def join(self) -> None:
        """Block until ``stop()`` is requested, then close the connection."""
        rpc = self._require_rpc()
        self._stop_requested.wait()
        try:
            rpc.close()
        except (PyPresenceException, OSError) as exc:
            self._notify("error", exc)
            raise SessionError(f"failed to join Discord RPC client: {exc}") from exc
        self._notify("disconnected")

    def stop(self) -> None:
        self._stop_requested.set()


class PresenceSession:
    """Consumes status messages and applies them to a presence connection.

    ``start()`` runs the lifecycle on a daemon thread; ``join()`` waits for it
    and re-raises whatever error ended it. ``run()`` executes the same
    lifecycle on the calling thread.
    """

    def __init__(
        self,
        connection: PresenceConnection,
        channel: StatusChannel,
        config: DiscordConfig,
        observers: list[ConnectionObserver] | None = None,
    ) -> None:
        self._connection = connection
        self._channel = channel
        self._config = config
        self._thread: threading.Thread | None = None
        self.state = SessionState.STARTING
        self.history: list[SessionState] = [SessionState.STARTING]
        self.applied: list[StatusMessage] = []
        self.error: BaseException | None = None

        for observer in observers if observers is not None else [LoggingObserver()]:
            self._connection.add_observer(observer)

    def _transition(self, state: SessionState) -> None:
        logger.debug("Presence session %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def _apply(self, message: StatusMessage) -> None:
        if isinstance(message, SetStatus):
            self._connection.set_activity(self._config.state, message.text)
            logger.info("Status is set")
        elif isinstance(message, Clear):
            self._connection.clear_activity()
            logger.info("Status cleared")
        else:
            raise SessionError(f"unknown status message: {message!r}")
        self.applied.append(message)

    def run(self) -> None:
        """Run the full lifecycle on this thread. Raises the first fatal error."""
        try:
            self._connection.start()
            self._transition(SessionState.AWAITING_READY)
            self._connection.wait_ready(self._config.ready_timeout)
            logger.info("RPC is ready")
            self._transition(SessionState.ACTIVE)

            while True:
                message = self._channel.receive()
                if message is None:
                    break
                self._apply(message)

            self._transition(SessionState.DRAINING)
            self._connection.join()
        except Exception:
            # The producer's next send raises ChannelClosedError.
            self._channel.close()
            raise
        finally:
            self._transition(SessionState.TERMINATED)

    def _run_in_thread(self) -> None:
        try:
            self.run()
        except Exception as exc:
            logger.debug("Presence session failed", exc_info=True)
            self.error = exc

    def start(self) -> None:
        if self._thread is not None:
            raise SessionError("presence session already started")
        self._thread = threading.Thread(
            target=self._run_in_thread, name="samwise-presence", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        """Ask the connection to finish its join once draining is reached."""
        self._connection.stop()

    def join(self, timeout: float | None = None) -> None:
        """Wait for the session thread; re-raise the error that ended it."""
        if self._thread is None:
            raise SessionError("presence session was never started")
        self._thread.join(timeout)
        if self._thread.is_alive():
            raise TimeoutError("presence session still running")
        if self.error is not None:
            raise self.error

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()


def _close_stale_loop(rpc: Any) -> None:
    """Close the loop a failed ``connect()`` left behind; the retry makes a new one."""
    loop = getattr(rpc, "loop", None)
    if loop is not None and not loop.is_closed():
        loop.close()
