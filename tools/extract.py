"""
tools/extract.py — Turn fetched HTML into LLM-ready plain text.

THE CORE CONCEPT: From messy HTML to body text
  A direct HTTP GET hands back the raw document: scripts, stylesheets,
  navigation menus, headers, footers, image tags. None of it is content.
  html_to_text() removes those regions and returns the <body> text with
  whitespace collapsed — the same text the heavy (browser) path produces
  from the rendered DOM.

IS THE FAST RESULT GOOD ENOUGH?
  A JavaScript single-page app fetched without a browser usually yields a
  near-empty body or a "please enable JavaScript" notice. is_content_sufficient()
  catches both cases:
    - fewer than min_chars characters (default 150), or
    - a case-insensitive "JavaScript required" phrase, or a literal <noscript> tag.
  Either one sends the URL down the heavy path.

OPTIONAL MAIN-CONTENT EXTRACTION:
  extract_main_content() runs trafilatura, which keeps only the article body
  (no sidebars, no cookie banners). It is opt-in via
  settings.fast_extractor = "trafilatura"; markup stripping is the default.

USAGE:
  from tools.extract import html_to_text, is_content_sufficient

  text = html_to_text(html)
  if is_content_sufficient(text):
      ...
"""

import logging
import re

import trafilatura
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

# Regions removed before reading body text. The heavy path removes the same set.
NON_CONTENT_SELECTOR = (
    'script, style, noscript, link[rel="stylesheet"], header, footer, nav, img'
)

JS_REQUIRED_PATTERNS = (
    re.compile(r"enable javascript", re.IGNORECASE),
    re.compile(r"javascript is required", re.IGNORECASE),
    re.compile(r"requires javascript", re.IGNORECASE),
    re.compile(r"<noscript>", re.IGNORECASE),
)

DEFAULT_MIN_CHARS = 150

_WHITESPACE_RUN = re.compile(r"\s\s+")


# ── Markup stripping ──────────────────────────────────────────────────────────

def html_to_text(html: str | None) -> str | None:
    """
    Strip non-content markup and return collapsed <body> text.

    Returns None for empty input, unparseable HTML, or a document with no text.
    """
    if not html:
        return None

    try:
        soup = BeautifulSoup(html, "html.parser")
        for element in soup.select(NON_CONTENT_SELECTOR):
            element.decompose()
        root = soup.body or soup
        text = collapse_whitespace(root.get_text(" "))
    except Exception as e:
        logger.warning("HTML parse error: %s: %s", type(e).__name__, e)
        return None

    return text or None


def collapse_whitespace(text: str) -> str:
    """Replace every run of two or more whitespace characters with one space."""
    if not text:
        return ""
    return _WHITESPACE_RUN.sub(" ", text).strip()


# ── Sufficiency heuristic ─────────────────────────────────────────────────────

def is_content_sufficient(text: str | None, min_chars: int = DEFAULT_MIN_CHARS) -> bool:
    """
    Decide whether fast-path text can be used without rendering the page.

    False when the text is missing, shorter than min_chars, or matches a
    "JavaScript required" pattern.
    """
    if not text:
        return False

    if len(text) < min_chars:
        logger.debug("Content too short (%d chars)", len(text))
        return False

    if any(pattern.search(text) for pattern in JS_REQUIRED_PATTERNS):
        logger.debug("Detected 'JavaScript required' pattern")
        return False

    return True


# ── trafilatura main-content extraction ───────────────────────────────────────

def extract_main_content(html: str, url: str = "") -> str:
    """
    Extract the main article text with trafilatura.

    favor_recall keeps more of the page than the default precision mode;
    the summarizer would rather see a little boilerplate than lose facts.
    Returns "" when trafilatura finds nothing or fails.
    """
    if not html:
        return ""

    try:
        result = trafilatura.extract(
            html,
            url=url or None,
            include_tables=True,
            include_links=False,
            include_images=False,
            output_format="txt",
            favor_recall=True,
        )
    except Exception as e:
        logger.warning("trafilatura error for %s: %s: %s", url or "<html>", type(e).__name__, e)
        return ""

    return collapse_whitespace(clean_text(result or ""))


# ── Text cleanup ──────────────────────────────────────────────────────────────

def clean_text(text: str) -> str:
    """
    Normalize extracted text for LLM consumption.

    Removes zero-width and soft-hyphen noise, straightens curly quotes,
    collapses 3+ blank lines to 2 and strips trailing spaces per line.
    """
    if not text:
        return ""

    text = text.replace("\r\n", "\n").replace("\r", "\n")

    # \u00ad = soft hyphen, \u200b = zero-width space, \u200c/\u200d = zero-width joiners
    text = re.sub(r"[\u00ad\u200b\u200c\u200d\ufeff]", "", text)

    text = text.replace("\u2018", "'").replace("\u2019", "'")
    text = text.replace("\u201c", '"').replace("\u201d", '"')

    text = re.sub(r"\n{3,}", "\n\n", text)

    lines = [line.rstrip() for line in text.split("\n")]
    return "\n".join(lines).strip()


def truncate_to_tokens(text: str, max_words: int = 6000) -> str:
    """
    Truncate text to approximately max_words words.

    Word count stands in for tokens (1 token ≈ 0.75 words). A long page is
    cut before it reaches the partial-summary prompt.
    """
    words = text.split()
    if len(words) <= max_words:
        return text
    return " ".join(words[:max_words]) + " [truncated]"
