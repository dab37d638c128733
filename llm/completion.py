"""
llm/completion.py — Ordered provider/model fallback for every LLM call.

THE CORE CONCEPT: fallback across providers, not retries of one provider
  A completion request carries a chain like:

      [(openrouter, "google/gemini-2.0-flash-001"), (deepseek, "deepseek-chat")]

  complete() walks the chain in order. The first entry that returns a
  non-empty body wins. An entry that raises, or answers with no content,
  is logged and skipped. When the chain runs out, CompletionExhausted is
  raised — the only error this module ever surfaces.

  There is no backoff and no repeat of the same entry. If a provider is
  down, the next provider is the retry.

USAGE:
  from llm.completion import CompletionService
  from config import settings

  completer = CompletionService.from_settings(settings)
  text = await completer.complete([
      {"role": "system", "content": "You are terse."},
      {"role": "user", "content": "Name one planet."},
  ])
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from llm.client import build_providers

logger = logging.getLogger(__name__)


class CompletionProvider(Protocol):
    name: str

    async def complete(
        self, messages: list[dict], model: str, *, temperature: float = ...
    ) -> str | None: ...


class CompletionExhausted(Exception):
    """Every entry in the fallback chain failed or returned no content."""

    def __init__(self, attempts: list[tuple[str, str]]) -> None:
        self.attempts = attempts
        detail = "; ".join(f"{label}: {reason}" for label, reason in attempts)
        super().__init__(
            f"All {len(attempts)} fallback chain entries failed"
            + (f" ({detail})" if detail else "")
        )


@dataclass(frozen=True)
class ChainEntry:
    """One (provider, model) pair in a fallback chain."""
    provider: CompletionProvider
    model: str

    @property
    def label(self) -> str:
        return f"{self.provider.name}:{self.model}"


def parse_chain_entry(entry: str) -> tuple[str, str]:
    """
    Split "provider:model" on the first colon.

    "openrouter:meta-llama/llama-3:free" → ("openrouter", "meta-llama/llama-3:free")
    Raises ValueError when either side is empty.
    """
    provider, sep, model = entry.partition(":")
    provider, model = provider.strip().lower(), model.strip()
    if not sep or not provider or not model:
        raise ValueError(f"Invalid fallback chain entry {entry!r} — expected 'provider:model'")
    return provider, model


class CompletionService:
    """
    Sends a message list to the first chain entry that answers.

    The default chain is fixed at construction; complete() accepts an
    override chain for callers that need a different model order.
    """

    def __init__(self, chain: list[ChainEntry], *, temperature: float = 0.1) -> None:
        if not chain:
            raise ValueError("Fallback chain must contain at least one entry")
        self._chain = list(chain)
        self._temperature = temperature

    @classmethod
    def from_settings(cls, settings, providers: dict | None = None) -> "CompletionService":
        """
        Build the chain from settings.fallback_chain.

        Entries naming a provider without credentials are dropped with a
        warning. Raises ValueError if nothing usable remains.
        """
        if providers is None:
            providers = build_providers(settings)

        chain: list[ChainEntry] = []
        for entry in settings.fallback_chain:
            name, model = parse_chain_entry(entry)
            provider = providers.get(name)
            if provider is None:
                logger.warning("Skipping chain entry %r: provider %r not configured", entry, name)
                continue
            chain.append(ChainEntry(provider=provider, model=model))

        return cls(chain, temperature=settings.completion_temperature)

    @property
    def chain(self) -> list[ChainEntry]:
        return list(self._chain)

    async def complete(
        self,
        messages: list[dict],
        chain: list[ChainEntry] | None = None,
    ) -> str:
        """
        Return the first non-empty completion from the chain.

        Raises CompletionExhausted when every entry raised or returned
        None/blank content, and ValueError when the override chain is empty.
        Nothing else escapes.
        """
        entries = self._chain if chain is None else chain
        if not entries:
            raise ValueError("Fallback chain must contain at least one entry")

        attempts: list[tuple[str, str]] = []
        for entry in entries:
            try:
                content = await entry.provider.complete(
                    messages, entry.model, temperature=self._temperature
                )
            except Exception as e:
                reason = f"{type(e).__name__}: {e}"
                logger.warning("Completion via %s failed: %s", entry.label, reason)
                attempts.append((entry.label, reason))
                continue

            if content is None or not content.strip():
                logger.warning("Completion via %s returned no content", entry.label)
                attempts.append((entry.label, "empty response"))
                continue

            return content

        logger.error("Fallback chain exhausted after %d attempt(s)", len(attempts))
        raise CompletionExhausted(attempts)
