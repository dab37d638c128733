"""
pipeline/aggregator.py — One query in, one de-duplicated (and re-ranked) hit list out.

THE PIPELINE:

  1. Expand   — ask the LLM for up to 3 alternative phrasings (optional)
  2. Fan out  — search the original + alternatives concurrently;
                a failed search contributes zero hits
  3. Merge    — concatenate in priority order [original, alt1, alt2, alt3],
                keeping each query's own order; first occurrence of a URL wins
  4. Re-rank  — ask the LLM for a most-to-least relevant URL order (optional,
                only with 2+ hits) and adopt it only if it validates

WHY THE LLM STEPS ARE ADVISORY:
  Steps 1 and 4 can be disabled, time out, or return garbage. The merged,
  de-duplicated list from steps 2–3 is always a correct answer on its own;
  the LLM can only re-order it, never drop or duplicate a hit.

USAGE:
  from pipeline.aggregator import SearchAggregator

  aggregator = SearchAggregator(provider=make_search_provider(settings), completer=completer)
  hits = await aggregator.search("climate change")
  for hit in hits:
      print(hit.url)
"""

import asyncio
import json
import logging

from llm.completion import CompletionExhausted, CompletionService
from pipeline.parsers import parse_alternative_queries, parse_ranked_urls, reconcile_ranking
from prompts.search import ALTERNATIVE_QUERIES_PROMPT, RERANK_PROMPT, RERANK_SYSTEM_PROMPT
from tools.search import SearchHit

logger = logging.getLogger(__name__)


class SearchAggregator:
    """
    Multi-query search with URL de-duplication and optional LLM re-ranking.

    completer=None disables both LLM steps regardless of the flags.
    """

    def __init__(
        self,
        provider,
        completer: CompletionService | None = None,
        *,
        expand_queries: bool = True,
        rerank: bool = True,
        max_alternatives: int = 3,
        allow_partial_ranking: bool = False,
    ) -> None:
        self._provider = provider
        self._completer = completer
        self._expand_queries = expand_queries
        self._rerank = rerank
        self._max_alternatives = max(0, min(max_alternatives, 3))
        self._allow_partial_ranking = allow_partial_ranking

    @classmethod
    def from_settings(cls, settings, provider, completer=None) -> "SearchAggregator":
        return cls(
            provider,
            completer,
            expand_queries=settings.enable_query_expansion,
            rerank=settings.enable_reranking,
            max_alternatives=settings.max_alternative_queries,
            allow_partial_ranking=settings.rerank_allow_partial,
        )

    async def search(self, query: str) -> list[SearchHit]:
        """
        Run the full expand → fan out → merge → re-rank pipeline.

        Never raises on provider or LLM failure; returns [] when every
        search failed.
        """
        alternatives = await self.generate_alternative_queries(query)
        queries = [query, *alternatives]
        logger.info("Searching %d queries: %s", len(queries), queries)

        per_query = await self._search_all(queries)
        hits = merge_hits(per_query)
        logger.info("Total unique hits: %d", len(hits))

        if len(hits) <= 1:
            logger.debug("Skipping re-ranking — %d hit(s)", len(hits))
            return hits

        return await self.rerank(query, hits)

    # ── Step 1: query expansion ───────────────────────────────────────────────

    async def generate_alternative_queries(self, query: str) -> list[str]:
        """Return up to max_alternatives rephrasings; [] if disabled or on failure."""
        if not (self._expand_queries and self._completer and self._max_alternatives):
            return []

        messages = [
            {"role": "system", "content": ALTERNATIVE_QUERIES_PROMPT.format(n=self._max_alternatives)},
            {"role": "user", "content": query},
        ]
        try:
            text = await self._completer.complete(messages)
        except CompletionExhausted as e:
            logger.warning("Alternative query generation failed: %s", e)
            return []

        alternatives = parse_alternative_queries(text, query, limit=self._max_alternatives)
        logger.info("Alternative queries generated: %s", alternatives)
        return alternatives

    # ── Step 2: fan out ───────────────────────────────────────────────────────

    async def _search_all(self, queries: list[str]) -> list[list[SearchHit]]:
        """
        Search every query concurrently. The returned lists line up with
        `queries` regardless of which search finished first.
        """
        results = await asyncio.gather(
            *(self._provider.search(q) for q in queries),
            return_exceptions=True,
        )

        per_query: list[list[SearchHit]] = []
        for q, result in zip(queries, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning("Search failed for query %r: %s: %s", q, type(result).__name__, result)
                per_query.append([])
            else:
                logger.debug("Found %d hits for query %r", len(result), q)
                per_query.append(list(result))
        return per_query

    # ── Step 4: re-rank ───────────────────────────────────────────────────────

    async def rerank(self, query: str, hits: list[SearchHit]) -> list[SearchHit]:
        """
        Ask the LLM for a relevance order and adopt it only if it validates.
        Any failure returns `hits` unchanged.
        """
        if not (self._rerank and self._completer) or len(hits) <= 1:
            return hits

        results_json = json.dumps(
            [{"index": i, "url": h.url, "snippet": h.snippet} for i, h in enumerate(hits, 1)],
            ensure_ascii=False,
            indent=2,
        )
        messages = [
            {"role": "system", "content": RERANK_SYSTEM_PROMPT},
            {"role": "user", "content": RERANK_PROMPT.format(query=query, results_json=results_json)},
        ]
        try:
            text = await self._completer.complete(messages)
        except CompletionExhausted as e:
            logger.warning("Re-ranking failed: %s", e)
            return hits

        original = [h.url for h in hits]
        ranked = reconcile_ranking(
            parse_ranked_urls(text),
            original,
            allow_partial=self._allow_partial_ranking,
        )
        if ranked is None:
            logger.warning("Re-ranking rejected — not a permutation of the %d hits", len(hits))
            return hits

        by_url = {h.url: h for h in hits}
        logger.info("Applied LLM re-ranking to %d hits", len(hits))
        return [by_url[url] for url in ranked]


def merge_hits(per_query: list[list[SearchHit]]) -> list[SearchHit]:
    """
    Flatten per-query hit lists in priority order, keeping the first hit
    seen for each exact URL string.
    """
    merged: dict[str, SearchHit] = {}
    for hits in per_query:
        for hit in hits:
            if hit.url not in merged:
                merged[hit.url] = hit
    return list(merged.values())
