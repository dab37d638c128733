"""
pipeline/summarizer.py — query + URLs → partial, webpage and general summaries.

THE THREE STAGES:

  1. Fetch + partial (per URL, concurrent)
       ContentFetcher resolves the URL to text. A failed fetch becomes a
       Failed partial immediately — no LLM call. Otherwise the page text
       (truncated to max_page_words) goes to the model with an
       "extract everything relevant to the query, verbatim facts" prompt.

  2. General (once)
       Waits for the partials of the first top_n URLs only. The successful
       ones are wrapped in <Webpage i's partial summary> markers and sent in
       one call. With no successful partial the model is not called and a
       fixed placeholder is returned.

  3. Webpage (per URL, concurrent)
       Each URL's partial is condensed to a few query-focused sentences as
       soon as that partial is ready. These calls never hold up stage 2.

FAILURE POLICY:
  Per-URL failures (fetch or LLM) are values: Failed(reason) on that URL's
  summary, and the rest of the request carries on. The only error that
  escapes summarize() is SummarizationError, raised when the single
  general-summary call exhausts its fallback chain — and it carries every
  partial and webpage summary computed so far.

USAGE:
  from pipeline.summarizer import SummarizationPipeline

  pipeline = SummarizationPipeline(completer, fetcher)
  report = await pipeline.summarize("climate change", urls)
  for partial in report.partials:
      print(partial.url, partial.display_text[:80])
  print(report.general.text)
"""

import asyncio
import logging

from llm.completion import CompletionExhausted, CompletionService
from pipeline.state import (
    Failed,
    GeneralSummary,
    NO_CONTENT_SUMMARY,
    Ok,
    PartialSummary,
    SummaryReport,
    WebpageSummary,
)
from prompts.summarizer import (
    GENERAL_ENTRY,
    GENERAL_PROMPT,
    GENERAL_SYSTEM_PROMPT,
    PARTIAL_PROMPT,
    PARTIAL_SYSTEM_PROMPT,
    WEBPAGE_PROMPT,
    WEBPAGE_SYSTEM_PROMPT,
)
from tools.extract import truncate_to_tokens
from tools.fetch import ContentFetcher

logger = logging.getLogger(__name__)


class SummarizationError(Exception):
    """
    The general summary could not be generated.

    partials and webpage_summaries hold everything that was computed before
    (and alongside) the failed call, so the caller can still show them.
    """

    def __init__(
        self,
        message: str,
        partials: list[PartialSummary],
        webpage_summaries: list[WebpageSummary],
    ) -> None:
        super().__init__(message)
        self.partials = partials
        self.webpage_summaries = webpage_summaries


class SummarizationPipeline:
    """
    Layered summarization over a list of URLs.

    Each stage is also callable on its own (summarize_page,
    summarize_webpage, summarize_general) for callers that drive one URL
    or one stage per request.
    """

    def __init__(
        self,
        completer: CompletionService,
        fetcher: ContentFetcher,
        *,
        top_n: int = 5,
        max_page_words: int = 6000,
        webpage_sentences: int = 4,
        general_paragraphs: int = 3,
    ) -> None:
        self._completer = completer
        self._fetcher = fetcher
        self._top_n = top_n
        self._max_page_words = max_page_words
        self._webpage_sentences = webpage_sentences
        self._general_paragraphs = general_paragraphs

    @classmethod
    def from_settings(cls, settings, completer, fetcher) -> "SummarizationPipeline":
        return cls(
            completer,
            fetcher,
            top_n=settings.top_n,
            max_page_words=settings.max_page_words,
            webpage_sentences=settings.webpage_summary_sentences,
            general_paragraphs=settings.general_summary_paragraphs,
        )

    async def summarize(
        self,
        query: str,
        urls: list[str],
        *,
        top_n: int | None = None,
    ) -> SummaryReport:
        """
        Run all three stages for `urls`.

        partials and webpage_summaries line up index-for-index with urls.
        The general summary is built from the partials of urls[:top_n].

        Raises SummarizationError only if the general-summary call fails.
        """
        top_n = self._top_n if top_n is None else top_n

        partial_tasks = [
            asyncio.create_task(self.summarize_page(query, url)) for url in urls
        ]
        webpage_tasks = [
            asyncio.create_task(self._webpage_when_ready(query, task))
            for task in partial_tasks
        ]

        general: GeneralSummary | None = None
        general_error: CompletionExhausted | None = None
        try:
            top_partials = await asyncio.gather(*partial_tasks[:top_n])
            try:
                general = await self.summarize_general(query, list(top_partials))
            except CompletionExhausted as e:
                general_error = e

            partials = list(await asyncio.gather(*partial_tasks))
            webpage_summaries = list(await asyncio.gather(*webpage_tasks))
        except BaseException:
            for task in (*partial_tasks, *webpage_tasks):
                task.cancel()
            raise

        if general_error is not None:
            logger.error("General summary failed for %r: %s", query, general_error)
            raise SummarizationError(
                f"Could not generate general summary: {general_error}",
                partials,
                webpage_summaries,
            ) from general_error

        return SummaryReport(
            query=query,
            partials=partials,
            webpage_summaries=webpage_summaries,
            general=general,
        )

    # ── Stage 1: fetch + partial ──────────────────────────────────────────────

    async def summarize_page(self, query: str, url: str) -> PartialSummary:
        """Fetch one URL and extract its query-relevant content. Never raises."""
        outcome = await self._fetcher.fetch(url)
        if not outcome.success:
            logger.warning("No content for %s: %s", url, outcome.error)
            return PartialSummary(url=url, result=Failed(outcome.error or "fetch failed"))

        text = truncate_to_tokens(outcome.text, max_words=self._max_page_words)
        messages = [
            {"role": "system", "content": PARTIAL_SYSTEM_PROMPT},
            {"role": "user", "content": PARTIAL_PROMPT.format(query=query, text=text)},
        ]
        try:
            summary = await self._completer.complete(messages)
        except CompletionExhausted as e:
            logger.warning("Partial summary failed for %s: %s", url, e)
            return PartialSummary(url=url, result=Failed(f"completion failed: {e}"))

        logger.info("Partial summary generated for %s (%d chars)", url, len(summary))
        return PartialSummary(url=url, result=Ok(summary.strip()))

    # ── Stage 2: general ──────────────────────────────────────────────────────

    async def summarize_general(
        self,
        query: str,
        partials: list[PartialSummary],
    ) -> GeneralSummary:
        """
        Synthesize the successful partials into one answer.

        Returns the NO_CONTENT_SUMMARY placeholder without calling the model
        when no partial succeeded. Raises CompletionExhausted otherwise.
        """
        entries = [
            GENERAL_ENTRY.format(index=i, text=p.text)
            for i, p in enumerate(partials)
            if p.ok
        ]
        if not entries:
            logger.warning("No usable partial summaries for %r — skipping general summary", query)
            return GeneralSummary(text=NO_CONTENT_SUMMARY)

        messages = [
            {
                "role": "system",
                "content": GENERAL_SYSTEM_PROMPT.format(paragraphs=self._general_paragraphs),
            },
            {
                "role": "user",
                "content": GENERAL_PROMPT.format(query=query, summaries="\n".join(entries)),
            },
        ]
        text = await self._completer.complete(messages)
        logger.info("General summary generated from %d partial(s)", len(entries))
        return GeneralSummary(text=text.strip(), source_prompt=messages)

    # ── Stage 3: webpage ──────────────────────────────────────────────────────

    async def summarize_webpage(self, query: str, partial: PartialSummary) -> WebpageSummary:
        """Condense one partial summary into a short paragraph. Never raises."""
        if not partial.ok:
            return WebpageSummary(url=partial.url, result=Failed("no partial summary"))

        messages = [
            {
                "role": "system",
                "content": WEBPAGE_SYSTEM_PROMPT.format(sentences=self._webpage_sentences),
            },
            {
                "role": "user",
                "content": WEBPAGE_PROMPT.format(query=query, partial_summary=partial.text),
            },
        ]
        try:
            summary = await self._completer.complete(messages)
        except CompletionExhausted as e:
            logger.warning("Webpage summary failed for %s: %s", partial.url, e)
            return WebpageSummary(url=partial.url, result=Failed(f"completion failed: {e}"))

        return WebpageSummary(url=partial.url, result=Ok(summary.strip()))

    async def _webpage_when_ready(
        self,
        query: str,
        partial_task: "asyncio.Task[PartialSummary]",
    ) -> WebpageSummary:
        partial = await partial_task
        return await self.summarize_webpage(query, partial)
