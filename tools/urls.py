"""
tools/urls.py — Decide whether a URL may be fetched at all.

ContentFetcher checks every URL here before any network I/O. Search results
are untrusted input: a hit pointing at file://, localhost or an intranet
address resolves to a failed fetch instead of a request.

USAGE:
  from tools.urls import is_safe_url

  if not is_safe_url(url):
      skip()
"""

import re

_BLOCKED_HOSTS = re.compile(
    r"^(localhost|127\.\d+\.\d+\.\d+|0\.0\.0\.0"
    r"|10\.\d+\.\d+\.\d+|172\.(1[6-9]|2\d|3[01])\.\d+\.\d+"
    r"|192\.168\.\d+\.\d+|169\.254\.\d+\.\d+|::1|\[::1\])$",
    re.IGNORECASE,
)


def is_safe_url(url: str) -> bool:
    """
    Return True if the URL is safe to fetch.

    Blocks:
      - Empty or non-string URLs
      - Non-http/https schemes (file://, ftp://, data://, etc.)
      - Localhost, link-local and private IPv4 ranges
    """
    if not url or not isinstance(url, str):
        return False

    url = url.strip()

    if not url.lower().startswith(("http://", "https://")):
        return False

    without_scheme = url.split("://", 1)[1]
    authority = without_scheme.split("/")[0].split("?")[0].split("#")[0]
    host = authority.rsplit("@", 1)[-1]
    if host.startswith("["):
        host = host.split("]")[0] + "]"
    else:
        host = host.split(":")[0]
    host = host.lower()

    if not host:
        return False

    if _BLOCKED_HOSTS.match(host):
        return False

    return True
