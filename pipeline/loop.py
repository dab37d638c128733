"""
pipeline/loop.py — Full query run: validate → search → summarize.

THE RUN:

  1. Guardrails validate the query (empty / oversized → FAILED, no I/O)
  2. SearchAggregator expands, searches, de-duplicates and re-ranks
  3. The first max_urls_per_run hit URLs go to SummarizationPipeline;
     the first top_n of those feed the general summary
  4. The trace is saved whatever happened

WHAT run_query() RETURNS:
  Always returns a QueryRun, never raises.
  status=SUCCESS  → hits, partial/webpage summaries and a general summary
  status=PARTIAL  → no hits (report=None), or the general summary failed
                    (report kept, general=None)
  status=FAILED   → invalid query or an unexpected crash

PROGRESS CALLBACK:
  Pass on_progress=callable to get a plain string message at each step.

USAGE:
  from pipeline.loop import run_query, shutdown

  run = await run_query("climate change")
  print(run.status)
  print(run.report.general.text)
  await shutdown()
"""

import logging
from typing import Callable

from config import settings as default_settings
from llm.completion import CompletionService
from observability.tracer import Tracer
from pipeline.aggregator import SearchAggregator
from pipeline.guardrails import validate_query
from pipeline.state import QueryRun, SummaryReport
from pipeline.summarizer import SummarizationError, SummarizationPipeline
from tools.browser import shutdown_browser
from tools.fetch import ContentFetcher
from tools.search import make_search_provider

logger = logging.getLogger(__name__)


# ── Builders ──────────────────────────────────────────────────────────────────

def build_completion_service(settings=default_settings) -> CompletionService:
    return CompletionService.from_settings(settings)


def build_aggregator(settings=default_settings, completer=None) -> SearchAggregator:
    return SearchAggregator.from_settings(
        settings,
        make_search_provider(settings),
        completer,
    )


def build_pipeline(settings=default_settings, completer=None) -> SummarizationPipeline:
    if completer is None:
        completer = build_completion_service(settings)
    return SummarizationPipeline.from_settings(
        settings,
        completer,
        ContentFetcher.from_settings(settings),
    )


# ── Run ───────────────────────────────────────────────────────────────────────

async def run_query(
    query: str,
    *,
    aggregator: SearchAggregator | None = None,
    pipeline: SummarizationPipeline | None = None,
    settings=default_settings,
    on_progress: Callable[[str], None] | None = None,
    save_trace: bool = True,
) -> QueryRun:
    """
    Search for `query` and summarize the results.

    aggregator and pipeline are built from settings when not given.
    Never raises. All exceptions are recorded in run.errors.
    """
    try:
        query = validate_query(query)
    except ValueError as e:
        run = QueryRun(query=query if isinstance(query, str) else "")
        run.errors.append(str(e))
        run.record_failure(f"Invalid query: {e}")
        return run

    run = QueryRun(query=query)
    tracer = Tracer(query=query)

    def _progress(msg: str) -> None:
        logger.info(msg)
        if on_progress:
            on_progress(msg)

    try:
        if aggregator is None or pipeline is None:
            completer = build_completion_service(settings)
            aggregator = aggregator or build_aggregator(settings, completer)
            pipeline = pipeline or build_pipeline(settings, completer)

        _progress(f"Searching: {query[:70]}")
        with tracer.span("search") as span:
            run.hits = await aggregator.search(query)
            span.metadata["n_hits"] = len(run.hits)
            span.metadata["urls"] = [h.url for h in run.hits]

        if not run.hits:
            _progress("No search results")
            run.record_partial(None, "No search results")
            return run

        urls = [h.url for h in run.hits[: settings.max_urls_per_run]]
        _progress(f"Summarizing {len(urls)} pages")
        with tracer.span("summarize") as span:
            span.metadata["n_urls"] = len(urls)
            span.metadata["top_n"] = settings.top_n
            try:
                report = await pipeline.summarize(query, urls, top_n=settings.top_n)
            except SummarizationError as e:
                span.metadata["general_error"] = str(e)
                report = SummaryReport(
                    query=query,
                    partials=e.partials,
                    webpage_summaries=e.webpage_summaries,
                    general=None,
                )
                run.errors.append(str(e))
                run.record_partial(report, "General summary could not be generated")
            else:
                run.record_success(report)
            span.metadata["n_partials_ok"] = run.n_partials_ok
            span.metadata["n_webpage_ok"] = run.n_webpage_ok

        _progress(f"Run complete: {run.status.value}")

    except Exception as e:
        logger.exception("Unexpected error while running query %r", query)
        run.errors.append(f"Unexpected error in query run: {type(e).__name__}: {e}")
        run.record_failure(f"Unexpected error: {type(e).__name__}")

    finally:
        tracer.finish(run)
        if save_trace:
            try:
                path = tracer.save(settings.log_dir)
                logger.info("Trace saved → %s", path)
            except OSError as e:
                logger.warning("Could not save trace: %s", e)

    return run


async def shutdown() -> None:
    """Release the process-wide headless browser, if one was started."""
    await shutdown_browser()
