"""
observability/tracer.py — Span-based tracing for one query run.

THE CORE CONCEPT:
  Every meaningful step in a run is a Span: a named unit of work with a
  start time, end time, status, and metadata dict.

  A Trace collects all spans for one run and saves them to disk as JSON,
  a permanent record of what happened for that query:
    - Which alternative queries were searched and how many hits survived
    - Which URLs were summarized and how many partials succeeded
    - How long the general summary took
    - Where failures happened and why

WHAT GETS TRACED:
  - search     → n_hits, urls, duration
  - summarize  → n_urls, top_n, n_partials_ok, n_webpage_ok, duration
  - run        → overall: status, hits, urls, general summary length, duration

USAGE:
  tracer = Tracer(query="...", run_id="abc123")

  with tracer.span("search") as span:
      hits = await aggregator.search(query)
      span.metadata["n_hits"] = len(hits)

  tracer.finish(run)
  path = tracer.save(settings.log_dir)
"""

import json
import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)


# ── Span ──────────────────────────────────────────────────────────────────────

@dataclass
class Span:
    """
    One named step in a run.

    status is "success" or "error".
    metadata holds step-specific data (n_hits, urls, n_partials_ok, etc.).
    """
    name: str
    step: int
    started_at: float       # time.monotonic(), for duration math
    ended_at: float = 0.0
    duration_ms: float = 0.0
    status: str = "success"
    metadata: dict = field(default_factory=dict)
    error: str = ""

    def finish(self, status: str = "success", error: str = "") -> None:
        self.ended_at = time.monotonic()
        self.duration_ms = round((self.ended_at - self.started_at) * 1000, 2)
        self.status = status
        self.error = error


# ── Trace ─────────────────────────────────────────────────────────────────────

@dataclass
class Trace:
    """
    Complete record of one query run: all spans + summary stats.

    Saved to <log_dir>/traces/{run_id}.json after the run completes.
    """
    run_id: str
    query: str
    started_at: str         # ISO timestamp
    completed_at: str = ""
    spans: list[Span] = field(default_factory=list)

    # Summary stats (filled by finish())
    status: str = "running"
    n_hits: int = 0
    n_urls: int = 0
    n_partials_ok: int = 0
    n_webpage_ok: int = 0
    general_summary_chars: int = 0
    total_duration_ms: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


# ── Tracer ────────────────────────────────────────────────────────────────────

class Tracer:
    """
    Collects spans for one run and saves the trace to disk.

    On error inside a span's with-block the span status is set to "error"
    and the exception is re-raised; the tracer never swallows errors.
    """

    def __init__(self, query: str, run_id: str | None = None) -> None:
        self._query = query
        self._run_id = run_id or uuid.uuid4().hex[:12]
        self._started = time.monotonic()
        self._trace = Trace(
            run_id=self._run_id,
            query=query,
            started_at=datetime.now(timezone.utc).isoformat(),
        )
        self._step_counter = 0

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def trace(self) -> Trace:
        return self._trace

    @contextmanager
    def span(self, name: str):
        """
        Context manager that creates, times, and closes a span.

        Usage:
            with tracer.span("summarize") as span:
                span.metadata["n_urls"] = len(urls)
                report = await pipeline.summarize(query, urls)

        On exception: span is marked "error", exception is re-raised.
        """
        self._step_counter += 1
        s = Span(name=name, step=self._step_counter, started_at=time.monotonic())
        self._trace.spans.append(s)
        try:
            yield s
            s.finish(status="success")
        except Exception as exc:
            s.finish(status="error", error=f"{type(exc).__name__}: {exc}")
            raise

    def finish(self, run) -> None:
        """
        Populate summary stats from the final QueryRun.
        Call this after all spans are done.
        """
        elapsed = time.monotonic() - self._started
        self._trace.completed_at = datetime.now(timezone.utc).isoformat()
        self._trace.total_duration_ms = round(elapsed * 1000, 2)
        self._trace.status = run.status.value
        self._trace.n_hits = len(run.hits)
        self._trace.n_urls = len(run.report.partials) if run.report else 0
        self._trace.n_partials_ok = run.n_partials_ok
        self._trace.n_webpage_ok = run.n_webpage_ok
        general = run.report.general if run.report else None
        self._trace.general_summary_chars = len(general.text) if general else 0

    def save(self, log_dir: Path | str | None = None) -> Path:
        """
        Write the trace to <log_dir>/traces/{run_id}.json (default log_dir:
        "logs/" next to the project root). Returns the path written.
        Creates the directory if needed.
        """
        if log_dir is None:
            log_dir = Path(__file__).parent.parent / "logs"
        trace_dir = Path(log_dir) / "traces"
        trace_dir.mkdir(parents=True, exist_ok=True)

        path = trace_dir / f"{self._run_id}.json"
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self._trace.to_dict(), f, indent=2, default=str)

        logger.debug("Trace saved to %s", path)
        return path
