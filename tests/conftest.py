from __future__ import annotations

import threading

import pytest

from samwise.config import AgentConfig, Config, DiscordConfig, ModelConfig


class ScriptedSource:
    """Snapshot source that replays a fixed list of diffs."""

    def __init__(self, snapshots: list[str | Exception]) -> None:
        self._snapshots = list(snapshots)
        self.calls = 0

    def snapshot(self) -> str:
        item = self._snapshots[min(self.calls, len(self._snapshots) - 1)]
        self.calls += 1
        if isinstance(item, Exception):
            raise item
        return item


class ScriptedSummarizer:
    """Summarizer that returns canned replies and records what it was asked."""

    def __init__(self, replies: list[str | Exception] | None = None) -> None:
        self._replies = list(replies or ["did X"])
        self.requests: list[tuple[str, str, str]] = []

    async def summarize(self, preamble: str, context: str, prompt: str) -> str:
        self.requests.append((preamble, context, prompt))
        item = self._replies[min(len(self.requests) - 1, len(self._replies) - 1)]
        if isinstance(item, Exception):
            raise item
        return item


class FakeConnection:
    """PresenceConnection that records commands instead of talking to Discord."""

    def __init__(
        self,
        *,
        fail_on: str | None = None,
        error: Exception | None = None,
        hold_join: bool = False,
        ignore_stop: bool = False,
    ) -> None:
        self.calls: list[tuple] = []
        self.observers: list = []
        self._fail_on = fail_on
        self._error = error
        self._hold_join = hold_join
        self._ignore_stop = ignore_stop
        self._stopped = threading.Event()

    def _maybe_fail(self, name: str) -> None:
        if name == self._fail_on:
            raise self._error or RuntimeError(f"{name} failed")

    def add_observer(self, observer) -> None:
        self.observers.append(observer)

    def start(self) -> None:
        self.calls.append(("start",))
        self._maybe_fail("start")

    def wait_ready(self, timeout: float | None = None) -> None:
        self.calls.append(("wait_ready", timeout))
        self._maybe_fail("wait_ready")
        for observer in self.observers:
            observer.on_connected()

    def set_activity(self, state: str, details: str) -> None:
        self.calls.append(("set_activity", state, details))
        self._maybe_fail("set_activity")

    def clear_activity(self) -> None:
        self.calls.append(("clear_activity",))
        self._maybe_fail("clear_activity")

    def join(self) -> None:
        self.calls.append(("join",))
        if self._hold_join:
            self._stopped.wait()
        self._maybe_fail("join")
        for observer in self.observers:
            observer.on_disconnected()

    def stop(self) -> None:
        if not self._ignore_stop:
            self._stopped.set()

    def release(self) -> None:
        """Let a held join return regardless of ``ignore_stop``."""
        self._stopped.set()

    @property
    def activity_calls(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in ("set_activity", "clear_activity")]


@pytest.fixture
def config() -> Config:
    return Config(
        agent=AgentConfig(preamble="You summarize diffs.", prompt="What am I doing?"),
        discord=DiscordConfig(client_id=1234, max_length=120),
        model=ModelConfig(name="openai/gpt-4o-mini"),
        interval=0,
    )


@pytest.fixture
def make_source():
    return ScriptedSource


@pytest.fixture
def make_summarizer():
    return ScriptedSummarizer


@pytest.fixture
def make_connection():
    return FakeConnection
