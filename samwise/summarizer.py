"""LiteLLM summarizer: turns a diff into a one-line description of the work.

Usage::

    summarizer = LiteLLMSummarizer(model="openai/gpt-4o-mini")
    text = await summarizer.summarize(preamble, diff, prompt)
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import litellm

from .config import ModelConfig
from .errors import SummarizerError

logger = logging.getLogger(__name__)


class Summarizer(Protocol):
    """Async completion: (preamble, context, prompt) -> text."""

    async def summarize(self, preamble: str, context: str, prompt: str) -> str: ...


def build_messages(preamble: str, context: str, prompt: str) -> list[dict[str, Any]]:
    """Build the chat messages: preamble as system, diff attached to the prompt."""
    attachment = f'<attachments>\n<file id="git-diff">\n{context}\n</file>\n</attachments>'
    return [
        {"role": "system", "content": preamble},
        {"role": "user", "content": f"{prompt}\n\n{attachment}"},
    ]


class LiteLLMSummarizer:
    """Summarizer backed by ``litellm.acompletion`` (any LiteLLM provider)."""

    # Generous ceiling for a single non-streaming call.
    DEFAULT_TIMEOUT: float = 120.0

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self._litellm = litellm
        self._model = model
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout or self.DEFAULT_TIMEOUT

        litellm.suppress_debug_info = True

    @classmethod
    def from_config(cls, config: ModelConfig) -> LiteLLMSummarizer:
        return cls(model=config.name, api_key=config.api_key, base_url=config.base_url)

    def _build_kwargs(self, messages: list[dict[str, Any]]) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "timeout": self._timeout,
        }
        if self._api_key:
            kwargs["api_key"] = self._api_key
        if self._base_url:
            kwargs["base_url"] = self._base_url
        return kwargs

    async def summarize(self, preamble: str, context: str, prompt: str) -> str:
        kwargs = self._build_kwargs(build_messages(preamble, context, prompt))
        try:
            response = await self._litellm.acompletion(**kwargs)
        except Exception as exc:
            raise SummarizerError(f"failed to run prompt against {self._model}: {exc}") from exc

        try:
            content = response.choices[0].message.content or ""
        except (AttributeError, IndexError) as exc:
            raise SummarizerError(f"unexpected completion response from {self._model}") from exc

        logger.debug("Summary from %s: %s", self._model, content)
        return content.strip()
