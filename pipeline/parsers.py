"""
pipeline/parsers.py — Turn free-text model output into validated structures.

Every parser here has an explicit accept/reject contract and never raises
on malformed model output. A rejected parse means "fall back to the
deterministic behaviour", never "fail the request".

  parse_alternative_queries()  — "one query per line" → list[str] (may be empty)
  parse_ranked_urls()          — "one URL per line"   → list[str] (may be empty)
  reconcile_ranking()          — candidate order + original order
                                 → adopted order, or None (reject)
  parse_suggested_searches()   — chat reply → (answer, [suggestions])
"""

import logging
import re

from pipeline.guardrails import deduplicate_queries

logger = logging.getLogger(__name__)

# "1. ", "2) ", "- ", "* ", "• " at the start of a line
_LIST_MARKER = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")

SUGGESTION_MARKER = "Suggested searches:"


def _strip_list_marker(line: str) -> str:
    return _LIST_MARKER.sub("", line, count=1).strip()


# ── Alternative queries ───────────────────────────────────────────────────────

def parse_alternative_queries(text: str, original: str, limit: int = 3) -> list[str]:
    """
    Parse one query per line.

    Drops blank lines, list markers, surrounding quotes, repeats of the
    original query and duplicates; keeps at most `limit` in model order.
    """
    if not text or limit <= 0:
        return []

    candidates = []
    for line in text.splitlines():
        query = _strip_list_marker(line).strip().strip('"').strip("'").strip()
        if query:
            candidates.append(query)

    original_key = " ".join(original.split()).lower()
    candidates = [q for q in candidates if " ".join(q.split()).lower() != original_key]
    return deduplicate_queries(candidates)[:limit]


# ── Re-ranking ────────────────────────────────────────────────────────────────

def parse_ranked_urls(text: str) -> list[str]:
    """
    Parse one URL per line, in order. Numbering, bullets and angle brackets
    around a URL are removed; blank lines are dropped. Duplicates are kept
    so reconcile_ranking() can see them.
    """
    if not text:
        return []

    urls = []
    for line in text.splitlines():
        url = _strip_list_marker(line).strip().strip("<>").strip()
        if url:
            urls.append(url)
    return urls


def reconcile_ranking(
    candidate: list[str],
    original: list[str],
    *,
    allow_partial: bool = False,
) -> list[str] | None:
    """
    Validate an LLM-proposed ordering against the original URL list.

    Strict (default): accept only an exact permutation — same URLs, none
    missing, none duplicated, none unknown. Anything else returns None.

    allow_partial=True: unknown and repeated URLs are skipped, URLs the
    model left out are appended in their original order. The result is
    accepted only if it ends up the same size as the original.

    Returns the adopted order, or None when the candidate is rejected.
    """
    known = set(original)

    if not allow_partial:
        # equal length + equal sets on a duplicate-free original ⇒ no repeats
        if len(candidate) != len(original) or set(candidate) != known:
            return None
        return list(candidate)

    seen: set[str] = set()
    ranked: list[str] = []
    for url in candidate:
        if url not in known or url in seen:
            logger.warning("Ranking contains unknown or duplicate URL: %s", url)
            continue
        seen.add(url)
        ranked.append(url)

    for url in original:
        if url not in seen:
            logger.warning("Ranking missed %s — appending to end", url)
            seen.add(url)
            ranked.append(url)

    if len(ranked) != len(original):
        return None
    return ranked


# ── Chat suggestions ──────────────────────────────────────────────────────────

def parse_suggested_searches(text: str) -> tuple[str, list[str]]:
    """
    Split a chat reply into (answer, suggested searches).

    Suggestions are the "-" bullets after a line starting with
    "Suggested searches:". Without the marker the whole reply is the
    answer and the suggestion list is empty.
    """
    if not text:
        return "", []

    lines = text.splitlines()
    marker_index = next(
        (i for i, line in enumerate(lines) if line.strip().startswith(SUGGESTION_MARKER)),
        None,
    )
    if marker_index is None:
        return text.strip(), []

    answer = "\n".join(lines[:marker_index]).strip()
    suggestions = []
    for line in lines[marker_index + 1:]:
        line = line.strip()
        if line.startswith("-"):
            suggestion = line[1:].strip()
            if suggestion:
                suggestions.append(suggestion)
    return answer, suggestions
