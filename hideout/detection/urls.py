"""URL extraction and normalisation helpers."""

from __future__ import annotations

import re

# Scheme URLs, www-prefixed hosts and bare ``name.tld`` tokens.
_URL_RE = re.compile(
    r"https?://[^\s]+|www\.[^\s]+|[a-zA-Z0-9-]+\.[a-zA-Z]{2,}[^\s]*",
    re.IGNORECASE,
)

# Punctuation that commonly trails a URL in prose.
_TRAILING_PUNCT = ".,;:!?)]}'\""


def extract_urls(text: str) -> list[str]:
    """Return URL-like tokens in order of appearance, without duplicates."""
    found: list[str] = []
    for match in _URL_RE.finditer(text):
        token = match.group(0).rstrip(_TRAILING_PUNCT)
        if token:
            found.append(token)
    return list(dict.fromkeys(found))


def normalize_url(url: str) -> str:
    """Canonical cache key: trimmed, lower-cased, scheme-prefixed, no trailing slash."""
    normalized = url.strip().lower()
    if not normalized:
        return ""
    if not normalized.startswith(("http://", "https://")):
        normalized = f"http://{normalized}"
    return normalized.rstrip("/")
