"""
prompts/search.py — Prompts for query expansion and result re-ranking.
"""

ALTERNATIVE_QUERIES_PROMPT = """\
Given the user query, generate up to {n} alternative search queries that explore different facets or interpretations.
Return only the queries, one per line. Do not number them. Do not include the original query in the list."""


RERANK_SYSTEM_PROMPT = """\
Based on the original user query, re-rank the following search results from most relevant to least relevant.
Return only the list of URLs in the desired order, one URL per line, with no numbering or commentary.
Ensure every original URL is present in the output exactly once."""

RERANK_PROMPT = """\
Original query: {query}

Results (JSON):
{results_json}"""
