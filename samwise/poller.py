"""Poll loop: snapshot, deduplicate, summarize, and emit status messages."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from .activity import format_activity
from .channel import Clear, SetStatus, StatusChannel, StatusMessage
from .config import Config
from .errors import ChannelClosedError
from .snapshot import SnapshotSource
from .summarizer import Summarizer

logger = logging.getLogger(__name__)


class Decision(str, Enum):
    """What a tick should do with the snapshot it just took."""

    CLEAR = "clear"
    SKIP = "skip"
    SUMMARIZE = "summarize"


class Deduplicator:
    """Remembers the last summarized snapshot so unchanged diffs are not resent."""

    def __init__(self) -> None:
        self.last_seen: str | None = None

    def decide(self, snapshot: str) -> Decision:
        if not snapshot:
            return Decision.CLEAR
        if snapshot == self.last_seen:
            return Decision.SKIP
        return Decision.SUMMARIZE

    def remember(self, snapshot: str) -> None:
        self.last_seen = snapshot


class Poller:
    """Produces status messages from the working tree, one tick at a time.

    Owns its ``Deduplicator``; nothing else reads or writes it. Any failure
    from the snapshot source, the summarizer, or the channel propagates.
    """

    def __init__(
        self,
        config: Config,
        source: SnapshotSource,
        summarizer: Summarizer,
        channel: StatusChannel,
    ) -> None:
        self._config = config
        self._source = source
        self._summarizer = summarizer
        self._channel = channel
        self.dedup = Deduplicator()

    async def tick(self) -> StatusMessage | None:
        """Run one poll step. Returns the message sent, if any."""
        if self._channel.closed:
            raise ChannelClosedError("status channel closed, presence session has stopped")
        snapshot = self._source.snapshot()
        decision = self.dedup.decide(snapshot)

        if decision is Decision.CLEAR:
            logger.debug("No changes, clearing status")
            message: StatusMessage = Clear()
            self._channel.send(message)
            return message

        if decision is Decision.SKIP:
            logger.debug("Diff unchanged, skipping")
            return None

        agent = self._config.agent
        summary = await self._summarizer.summarize(agent.preamble, snapshot, agent.prompt)
        message = SetStatus(format_activity(summary, self._config.discord.max_length))
        self._channel.send(message)
        self.dedup.remember(snapshot)
        logger.info("Status: %s", message.text)
        return message

    async def run(self, *, once: bool = False) -> None:
        """Tick until an error propagates, or exactly once with ``once``."""
        if once:
            await self.tick()
            return
        logger.info("Polling every %gs", self._config.interval)
        while True:
            await self.tick()
            await asyncio.sleep(self._config.interval)
