"""
tests/unit/test_completion.py — Unit tests for llm/completion.py

Covers: chain entry parsing, fallback order, empty-content handling,
        CompletionExhausted, per-call chain override, from_settings().
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import pytest
from unittest.mock import AsyncMock, MagicMock

from config import Settings
from llm.completion import (
    ChainEntry,
    CompletionExhausted,
    CompletionService,
    parse_chain_entry,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def make_provider(name: str, *responses):
    """
    Provider whose complete() yields `responses` in order.
    An Exception instance in the list is raised instead of returned.
    """
    provider = MagicMock()
    provider.name = name
    provider.complete = AsyncMock(side_effect=list(responses))
    return provider


MESSAGES = [{"role": "user", "content": "Summarize climate change."}]


# ── parse_chain_entry() ────────────────────────────────────────────────────────

class TestParseChainEntry:
    def test_simple_entry(self):
        assert parse_chain_entry("deepseek:deepseek-chat") == ("deepseek", "deepseek-chat")

    def test_splits_on_first_colon_only(self):
        assert parse_chain_entry("openrouter:meta-llama/llama-3:free") == (
            "openrouter",
            "meta-llama/llama-3:free",
        )

    def test_provider_lowercased(self):
        assert parse_chain_entry("OpenRouter:google/gemini-2.0-flash-001")[0] == "openrouter"

    @pytest.mark.parametrize("entry", ["deepseek", ":model", "provider:", "  :  "])
    def test_invalid_entry_raises(self, entry):
        with pytest.raises(ValueError, match="provider:model"):
            parse_chain_entry(entry)


# ── ChainEntry ────────────────────────────────────────────────────────────────

class TestChainEntry:
    def test_label(self):
        entry = ChainEntry(provider=make_provider("deepseek"), model="deepseek-chat")
        assert entry.label == "deepseek:deepseek-chat"


# ── CompletionService.complete() ──────────────────────────────────────────────

class TestComplete:
    @pytest.mark.asyncio
    async def test_first_entry_wins(self):
        first = make_provider("openrouter", "first answer")
        second = make_provider("deepseek", "second answer")
        service = CompletionService([ChainEntry(first, "m1"), ChainEntry(second, "m2")])

        assert await service.complete(MESSAGES) == "first answer"
        second.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_falls_back_on_exception(self):
        first = make_provider("openrouter", RuntimeError("503 Service Unavailable"))
        second = make_provider("deepseek", "fallback answer")
        service = CompletionService([ChainEntry(first, "m1"), ChainEntry(second, "m2")])

        assert await service.complete(MESSAGES) == "fallback answer"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("empty", [None, "", "   \n"])
    async def test_falls_back_on_empty_content(self, empty):
        first = make_provider("openrouter", empty)
        second = make_provider("deepseek", "real answer")
        service = CompletionService([ChainEntry(first, "m1"), ChainEntry(second, "m2")])

        assert await service.complete(MESSAGES) == "real answer"

    @pytest.mark.asyncio
    async def test_each_entry_tried_once_in_order(self):
        calls = []

        def recorder(label, result):
            async def complete(messages, model, *, temperature=0.1):
                calls.append(label)
                if isinstance(result, Exception):
                    raise result
                return result
            return complete

        a, b, c = make_provider("a"), make_provider("b"), make_provider("c")
        a.complete = recorder("a", RuntimeError("down"))
        b.complete = recorder("b", None)
        c.complete = recorder("c", "ok")
        service = CompletionService([ChainEntry(a, "m"), ChainEntry(b, "m"), ChainEntry(c, "m")])

        assert await service.complete(MESSAGES) == "ok"
        assert calls == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_same_provider_different_models(self):
        provider = make_provider("openrouter", RuntimeError("rate limited"), "from model two")
        service = CompletionService([
            ChainEntry(provider, "model-one"),
            ChainEntry(provider, "model-two"),
        ])

        assert await service.complete(MESSAGES) == "from model two"
        models = [c.args[1] for c in provider.complete.await_args_list]
        assert models == ["model-one", "model-two"]

    @pytest.mark.asyncio
    async def test_exhausted_when_every_entry_fails(self):
        first = make_provider("openrouter", RuntimeError("boom"))
        second = make_provider("deepseek", None)
        service = CompletionService([ChainEntry(first, "m1"), ChainEntry(second, "m2")])

        with pytest.raises(CompletionExhausted) as exc_info:
            await service.complete(MESSAGES)

        attempts = exc_info.value.attempts
        assert [label for label, _ in attempts] == ["openrouter:m1", "deepseek:m2"]
        assert "RuntimeError" in attempts[0][1]
        assert attempts[1][1] == "empty response"

    @pytest.mark.asyncio
    async def test_exhausted_message_names_attempts(self):
        provider = make_provider("deepseek", RuntimeError("timeout"))
        service = CompletionService([ChainEntry(provider, "deepseek-chat")])

        with pytest.raises(CompletionExhausted, match="deepseek:deepseek-chat"):
            await service.complete(MESSAGES)

    @pytest.mark.asyncio
    async def test_temperature_passed_through(self):
        provider = make_provider("deepseek", "ok")
        service = CompletionService([ChainEntry(provider, "m")], temperature=0.3)

        await service.complete(MESSAGES)

        assert provider.complete.await_args.kwargs["temperature"] == 0.3

    @pytest.mark.asyncio
    async def test_override_chain(self):
        default = make_provider("openrouter", "default")
        override = make_provider("azure", "override")
        service = CompletionService([ChainEntry(default, "m")])

        assert await service.complete(MESSAGES, chain=[ChainEntry(override, "gpt-4o")]) == "override"
        default.complete.assert_not_called()

    def test_empty_chain_rejected(self):
        with pytest.raises(ValueError):
            CompletionService([])

    @pytest.mark.asyncio
    async def test_empty_override_chain_rejected(self):
        provider = make_provider("openrouter", "unused")
        service = CompletionService([ChainEntry(provider, "m")])

        with pytest.raises(ValueError, match="at least one entry"):
            await service.complete(MESSAGES, chain=[])
        provider.complete.assert_not_called()

    def test_chain_property_is_a_copy(self):
        service = CompletionService([ChainEntry(make_provider("a"), "m")])
        service.chain.clear()
        assert len(service.chain) == 1


# ── from_settings() ───────────────────────────────────────────────────────────

class TestFromSettings:
    def test_builds_chain_in_configured_order(self):
        providers = {"openrouter": make_provider("openrouter"), "deepseek": make_provider("deepseek")}
        s = Settings(fallback_chain=["deepseek:deepseek-chat", "openrouter:google/gemini-2.0-flash-001"])

        service = CompletionService.from_settings(s, providers=providers)

        assert [e.label for e in service.chain] == [
            "deepseek:deepseek-chat",
            "openrouter:google/gemini-2.0-flash-001",
        ]

    def test_unconfigured_provider_skipped(self):
        providers = {"deepseek": make_provider("deepseek")}
        s = Settings(fallback_chain=["openrouter:some/model", "deepseek:deepseek-chat"])

        service = CompletionService.from_settings(s, providers=providers)

        assert [e.label for e in service.chain] == ["deepseek:deepseek-chat"]

    def test_nothing_configured_raises(self):
        s = Settings(fallback_chain=["openrouter:some/model"])
        with pytest.raises(ValueError):
            CompletionService.from_settings(s, providers={})

    def test_temperature_from_settings(self):
        s = Settings(fallback_chain=["deepseek:deepseek-chat"], completion_temperature=0.7)
        service = CompletionService.from_settings(s, providers={"deepseek": make_provider("deepseek")})
        assert service._temperature == 0.7
