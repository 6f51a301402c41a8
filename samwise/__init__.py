"""samwise: summarize your uncommitted git changes into Discord rich presence."""

__version__ = "0.1.0"

from .activity import format_activity
from .channel import Clear, SetStatus, StatusChannel, StatusMessage
from .config import Config
from .errors import (
    ChannelClosedError,
    ConfigError,
    DiffError,
    SamwiseError,
    SessionError,
    SummarizerError,
)
from .orchestrator import Orchestrator
from .poller import Decision, Deduplicator, Poller
from .presence import PresenceSession, SessionState

__all__ = [
    "__version__",
    "ChannelClosedError",
    "Clear",
    "Config",
    "ConfigError",
    "Decision",
    "Deduplicator",
    "DiffError",
    "Orchestrator",
    "Poller",
    "PresenceSession",
    "SamwiseError",
    "SessionError",
    "SetStatus",
    "StatusChannel",
    "StatusMessage",
    "SummarizerError",
    "format_activity",
]
