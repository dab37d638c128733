"""
pipeline/state.py — Summary types, the tagged result type, and the run record.

Design principles:
  - Dataclasses, not dicts — typos become AttributeError, not silent new keys
  - Per-item failure is a VALUE, not an exception. Each summary carries an
    Outcome that is either Ok(text) or Failed(reason). "Not attempted yet"
    is simply the absence of a summary; it never looks like a failure.
  - One QueryRun per query — status machine RUNNING → SUCCESS / PARTIAL / FAILED

THE THREE SUMMARY LAYERS:
  PartialSummary  — page-local extraction of query-relevant content
  WebpageSummary  — a short, query-focused paragraph built from one partial
  GeneralSummary  — one cross-page synthesis built from the partials;
                    keeps its source prompt so a chat can continue from it

USAGE:
  from pipeline.state import Ok, Failed, PartialSummary

  partial = PartialSummary(url="https://x.com", result=Failed("fetch failed"))
  partial.ok            # False
  partial.text          # None
  partial.display_text  # "Failed to load the webpage content."
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Union

# User-visible sentinel for a page whose content could not be obtained.
FAILED_TO_LOAD = "Failed to load the webpage content."

# Returned instead of a general summary when no partial summary succeeded.
NO_CONTENT_SUMMARY = "Could not generate summary as no website content could be processed."


# ── Tagged result ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Ok:
    text: str


@dataclass(frozen=True)
class Failed:
    reason: str


Outcome = Union[Ok, Failed]


# ── Summary layers ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class _SummaryBase:
    url: str
    result: Outcome

    @property
    def ok(self) -> bool:
        return isinstance(self.result, Ok)

    @property
    def text(self) -> str | None:
        """The summary text, or None when this layer failed for the URL."""
        return self.result.text if isinstance(self.result, Ok) else None

    @property
    def failure_reason(self) -> str | None:
        return self.result.reason if isinstance(self.result, Failed) else None

    @property
    def display_text(self) -> str:
        """Text safe to show a user — the sentinel when the layer failed."""
        return self.text if self.text is not None else FAILED_TO_LOAD

    def to_dict(self) -> dict:
        return {"url": self.url, "text": self.text, "error": self.failure_reason}


@dataclass(frozen=True)
class PartialSummary(_SummaryBase):
    """First stage: query-relevant content condensed from one page."""


@dataclass(frozen=True)
class WebpageSummary(_SummaryBase):
    """Second stage: a short paragraph condensed from one PartialSummary."""


@dataclass(frozen=True)
class GeneralSummary:
    """
    Cross-page synthesis for one query.

    source_prompt is the exact message list sent to the model (empty when no
    model was called). chat_history() appends the answer so a follow-up
    conversation can pick up where the summary left off.
    """
    text: str
    source_prompt: list[dict] = field(default_factory=list)

    def chat_history(self) -> list[dict]:
        return [*self.source_prompt, {"role": "assistant", "content": self.text}]

    def to_dict(self) -> dict:
        return {"text": self.text, "sourcePrompt": list(self.source_prompt)}


@dataclass
class SummaryReport:
    """Everything SummarizationPipeline.summarize() produces for one query."""
    query: str
    partials: list[PartialSummary]
    webpage_summaries: list[WebpageSummary]
    general: GeneralSummary | None

    @property
    def urls(self) -> list[str]:
        return [p.url for p in self.partials]

    def to_dict(self) -> dict:
        return {
            "query": self.query,
            "partials": [p.to_dict() for p in self.partials],
            "webpageSummaries": [w.to_dict() for w in self.webpage_summaries],
            "general": self.general.to_dict() if self.general else None,
        }


# ── Run record ─────────────────────────────────────────────────────────────────

class RunStatus(str, Enum):
    """
    The lifecycle of one query run.

    RUNNING  → search / summarization in progress
    SUCCESS  → hits found and every layer of summary produced
    PARTIAL  → something usable came back but not everything
               (no hits, or the general summary could not be generated)
    FAILED   → invalid input or an unexpected error; nothing to show
    """
    RUNNING = "running"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class QueryRun:
    """
    The complete record of one run_query() call.

    hits are the (possibly re-ranked) search results. report holds the
    summaries; on PARTIAL it may be a report whose general summary is the
    placeholder, a report without a general summary when that
    call failed, or None when there was nothing to summarize.
    """
    query: str
    hits: list = field(default_factory=list)
    report: SummaryReport | None = None
    status: RunStatus = RunStatus.RUNNING
    stop_reason: str = ""
    errors: list[str] = field(default_factory=list)
    started_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    completed_at: str = ""

    def record_success(self, report: SummaryReport) -> None:
        self.report = report
        self.status = RunStatus.SUCCESS
        self.completed_at = datetime.now(timezone.utc).isoformat()

    def record_partial(self, report: SummaryReport | None, reason: str) -> None:
        """
        Mark run as PARTIAL — something came back but not everything.
        Partial results are still returned to the caller.
        """
        self.report = report
        self.status = RunStatus.PARTIAL
        self.stop_reason = reason
        self.completed_at = datetime.now(timezone.utc).isoformat()

    def record_failure(self, reason: str) -> None:
        self.status = RunStatus.FAILED
        self.stop_reason = reason
        self.completed_at = datetime.now(timezone.utc).isoformat()

    @property
    def is_running(self) -> bool:
        return self.status == RunStatus.RUNNING

    @property
    def n_partials_ok(self) -> int:
        return sum(1 for p in self.report.partials if p.ok) if self.report else 0

    @property
    def n_webpage_ok(self) -> int:
        return sum(1 for w in self.report.webpage_summaries if w.ok) if self.report else 0

    def to_dict(self) -> dict:
        return {
            "query": self.query,
            "status": self.status.value,
            "stopReason": self.stop_reason,
            "errors": list(self.errors),
            "hits": [h.to_dict() for h in self.hits],
            "report": self.report.to_dict() if self.report else None,
            "startedAt": self.started_at,
            "completedAt": self.completed_at,
        }
