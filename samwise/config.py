"""Samwise configuration: a YAML file loaded once at startup, read-only after.

Usage::

    config = Config.from_file()              # ~/.config/samwise/config.yaml
    config = Config.from_file("./samwise.yaml")

The file groups settings by collaborator::

    interval: 60
    model:
      name: openai/gpt-4o-mini
    agent:
      preamble: You summarize diffs.
      prompt: Describe what I am working on in one sentence.
    discord:
      client_id: 123456789012345678

Values missing from the file fall back to environment variables (``.env``
files are honoured via python-dotenv).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .errors import ConfigError

CONFIG_DIR = Path.home() / ".config" / "samwise"
DEFAULT_CONFIG_FILE = CONFIG_DIR / "config.yaml"

DEFAULT_INTERVAL = 60.0
DEFAULT_MODEL = "openai/gpt-4o-mini"
DEFAULT_STATE = "coding"

# Discord rejects activity text fields longer than 128 characters.
MIN_STATUS_LENGTH = 120
MAX_STATUS_LENGTH = 128

TEMPLATE = """\
# samwise configuration
interval: 60            # seconds between diff checks

# working_dir: ~/code/project   # repository to watch (default: current directory)

model:
  name: openai/gpt-4o-mini
  # api_key: sk-...             # or set OPENAI_API_KEY
  # base_url: http://localhost:11434/v1

agent:
  preamble: >-
    You are given the output of `git diff` for a developer's working tree.
  prompt: >-
    In one short sentence, describe what the developer is working on.

discord:
  client_id: 0                  # your Discord application id
  state: coding
  max_length: 128
  # ready_timeout: 30           # seconds; omit to wait forever
"""


@dataclass(frozen=True)
class ModelConfig:
    """Completion provider settings."""

    name: str = DEFAULT_MODEL
    api_key: str | None = None
    base_url: str | None = None


@dataclass(frozen=True)
class AgentConfig:
    """Text sent to the model around each snapshot."""

    preamble: str
    prompt: str


@dataclass(frozen=True)
class DiscordConfig:
    """Presence session identity and payload limits."""

    client_id: int
    state: str = DEFAULT_STATE
    max_length: int = MAX_STATUS_LENGTH
    ready_timeout: float | None = None


@dataclass(frozen=True)
class Config:
    """Complete, immutable samwise configuration."""

    agent: AgentConfig
    discord: DiscordConfig
    model: ModelConfig = field(default_factory=ModelConfig)
    interval: float = DEFAULT_INTERVAL
    working_dir: str | None = None

    @classmethod
    def from_file(cls, path: str | Path | None = None) -> Config:
        """Load config from a YAML file, defaulting to the user config dir."""
        load_dotenv()
        if path is None:
            path = os.getenv("SAMWISE_CONFIG") or DEFAULT_CONFIG_FILE
        path = Path(path).expanduser()
        if not path.exists():
            raise ConfigError("file not found (run `samwise init` to create one)", path)
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as exc:
            raise ConfigError(f"failed to read config file: {exc}", path) from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"failed to parse config file: {exc}", path) from exc
        if not isinstance(data, dict):
            raise ConfigError("config file must contain a YAML mapping", path)
        try:
            return cls._from_dict(data)
        except ConfigError as exc:
            raise ConfigError(exc.details, path) from exc

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> Config:
        """Build a Config from a plain dict, applying env fallbacks and validation."""
        model_data = _section(data, "model")
        agent_data = _section(data, "agent")
        discord_data = _section(data, "discord")

        model = ModelConfig(
            name=str(model_data.get("name") or os.getenv("SAMWISE_MODEL", DEFAULT_MODEL)),
            api_key=model_data.get("api_key") or os.getenv("OPENAI_API_KEY"),
            base_url=model_data.get("base_url") or os.getenv("OPENAI_BASE_URL"),
        )
        agent = AgentConfig(
            preamble=_required_text(agent_data, "agent.preamble", "preamble"),
            prompt=_required_text(agent_data, "agent.prompt", "prompt"),
        )

        client_id = discord_data.get("client_id") or os.getenv("SAMWISE_DISCORD_CLIENT_ID")
        if client_id is None:
            raise ConfigError("missing required key 'discord.client_id'")
        discord = DiscordConfig(
            client_id=_as_int(client_id, "discord.client_id"),
            state=str(discord_data.get("state", DEFAULT_STATE)),
            max_length=_as_int(discord_data.get("max_length", MAX_STATUS_LENGTH), "discord.max_length"),
            ready_timeout=_optional_float(discord_data.get("ready_timeout"), "discord.ready_timeout"),
        )

        working_dir = data.get("working_dir")
        config = cls(
            agent=agent,
            discord=discord,
            model=model,
            interval=_as_float(data.get("interval", DEFAULT_INTERVAL), "interval"),
            working_dir=str(Path(working_dir).expanduser()) if working_dir else None,
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Check value ranges, raising ConfigError on the first violation."""
        if self.interval < 0:
            raise ConfigError(f"'interval' must be >= 0, got {self.interval}")
        if self.discord.client_id <= 0:
            raise ConfigError("'discord.client_id' must be a positive application id")
        if not MIN_STATUS_LENGTH <= self.discord.max_length <= MAX_STATUS_LENGTH:
            raise ConfigError(
                f"'discord.max_length' must be between {MIN_STATUS_LENGTH} and "
                f"{MAX_STATUS_LENGTH}, got {self.discord.max_length}"
            )
        if self.discord.ready_timeout is not None and self.discord.ready_timeout <= 0:
            raise ConfigError("'discord.ready_timeout' must be positive when set")

    def with_overrides(
        self, *, interval: float | None = None, working_dir: str | None = None
    ) -> Config:
        """Return a copy with CLI overrides applied."""
        config = self
        if interval is not None:
            config = replace(config, interval=interval)
        if working_dir is not None:
            config = replace(config, working_dir=str(Path(working_dir).expanduser()))
        config.validate()
        return config


def write_template(path: str | Path | None = None) -> Path:
    """Write the commented template config. Refuses to overwrite."""
    path = Path(path or DEFAULT_CONFIG_FILE).expanduser()
    if path.exists():
        raise ConfigError("file already exists", path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(TEMPLATE, encoding="utf-8")
    return path


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a mapping")
    return value


def _required_text(data: dict[str, Any], dotted: str, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"missing required key '{dotted}'")
    return value


def _as_int(value: Any, key: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"'{key}' must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{key}' must be an integer, got {value!r}") from exc


def _as_float(value: Any, key: str) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"'{key}' must be a number")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{key}' must be a number, got {value!r}") from exc


def _optional_float(value: Any, key: str) -> float | None:
    if value is None:
        return None
    return _as_float(value, key)
