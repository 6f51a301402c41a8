"""Wires the poll loop to the presence session and owns their shutdown order."""

from __future__ import annotations

import asyncio
import logging

from .channel import StatusChannel
from .config import Config
from .errors import ChannelClosedError, SamwiseError, SessionError
from .poller import Poller
from .presence import DiscordConnection, PresenceConnection, PresenceSession
from .snapshot import GitDiffSource, SnapshotSource
from .summarizer import LiteLLMSummarizer, Summarizer

logger = logging.getLogger(__name__)

# How long a failing run waits for the session thread to wind down.
SHUTDOWN_TIMEOUT_S = 10.0


class Orchestrator:
    """Runs the poller on the event loop and the presence session on its thread.

    Shutdown always closes the channel and joins the session. When the poller
    fails with ``ChannelClosedError`` the session died first, so the session's
    error is raised instead.
    """

    def __init__(
        self,
        config: Config,
        *,
        source: SnapshotSource | None = None,
        summarizer: Summarizer | None = None,
        connection: PresenceConnection | None = None,
    ) -> None:
        self.config = config
        self.channel = StatusChannel()
        self.poller = Poller(
            config,
            source or GitDiffSource(config.working_dir),
            summarizer or LiteLLMSummarizer.from_config(config.model),
            self.channel,
        )
        self.session = PresenceSession(
            connection or DiscordConnection(config.discord.client_id),
            self.channel,
            config.discord,
        )

    async def run(self, *, once: bool = False) -> None:
        """Poll (forever, or one tick with ``once``), then drain the session.

        After a one-shot tick the session holds the status visible until
        ``stop()`` is called (Ctrl+C at the CLI).
        """
        self.session.start()
        try:
            await self.poller.run(once=once)
            logger.info("Producer finished, draining presence session")
            self.channel.close()
            await asyncio.to_thread(self.session.join)
        except ChannelClosedError:
            self.stop()
            await self._join_session(SHUTDOWN_TIMEOUT_S)
            raise
        except BaseException as exc:
            await self._shutdown_after(exc)
            raise

    async def _join_session(self, timeout: float | None) -> None:
        try:
            await asyncio.to_thread(self.session.join, timeout)
        except TimeoutError as exc:
            raise SessionError("presence session did not shut down") from exc

    async def _shutdown_after(self, exc: BaseException) -> None:
        self.stop()
        try:
            await self._join_session(SHUTDOWN_TIMEOUT_S)
        except SamwiseError as session_exc:
            if session_exc is not exc:
                logger.warning("Presence session ended with: %s", session_exc)

    def stop(self) -> None:
        """Close the channel and release the connection's final join."""
        self.channel.close()
        self.session.stop()
