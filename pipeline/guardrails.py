"""
pipeline/guardrails.py — Input validation before any network or LLM call.

WHAT GUARDRAILS DO:
  They catch bad inputs before they waste a search call, an LLM call, or a
  browser page:
    - run_query("")          → rejected, no search issued
    - run_query("x" * 5000)  → rejected, no oversized prompt
    - a chat history with a bogus role → rejected before the model sees it

LAYERS COVERED:
  1. Query validation       — before search
  2. Chat history shape     — before a follow-up completion

URL safety lives in tools/urls.py, next to the fetcher that enforces it.

USAGE:
  from pipeline.guardrails import validate_query

  clean = validate_query(query)     # raises ValueError on bad input
"""

MAX_QUERY_LENGTH = 500

CHAT_ROLES = frozenset({"system", "user", "assistant"})


# ── Query validation ──────────────────────────────────────────────────────────

def validate_query(query: str) -> str:
    """
    Return the stripped query, or raise ValueError with a readable message.

    Search queries can legitimately be one short word ("apple"), so only
    emptiness and excessive length are rejected.
    """
    if not isinstance(query, str):
        raise ValueError(f"Query must be a string, got {type(query).__name__}")

    query = query.strip()

    if not query:
        raise ValueError("Query cannot be empty")

    if len(query) > MAX_QUERY_LENGTH:
        raise ValueError(
            f"Query too long ({len(query)} chars). "
            f"Maximum is {MAX_QUERY_LENGTH} characters."
        )

    return query


# ── Chat history ──────────────────────────────────────────────────────────────

def validate_history(history: list) -> list[dict]:
    """
    Check a chat history is a list of {"role", "content"} messages.

    Raises ValueError naming the first bad entry. Returns the history as a
    list of plain dicts with only role and content kept.
    """
    if not isinstance(history, list):
        raise ValueError(f"History must be a list, got {type(history).__name__}")

    cleaned = []
    for i, message in enumerate(history):
        if not isinstance(message, dict):
            raise ValueError(f"History item {i} must be an object with role and content")
        role, content = message.get("role"), message.get("content")
        if role not in CHAT_ROLES:
            raise ValueError(f"History item {i} has invalid role {role!r}")
        if not isinstance(content, str) or not content:
            raise ValueError(f"History item {i} must have non-empty string content")
        cleaned.append({"role": role, "content": content})
    return cleaned


# ── Query deduplication ───────────────────────────────────────────────────────

def deduplicate_queries(queries: list[str]) -> list[str]:
    """
    Remove duplicate queries (case- and whitespace-insensitive), preserving order.
    """
    seen: set[str] = set()
    result = []
    for q in queries:
        normalized = " ".join(q.split()).lower()
        if normalized and normalized not in seen:
            seen.add(normalized)
            result.append(q)
    return result
