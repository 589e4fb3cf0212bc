"""Post text length, preview wrapping and thread splitting."""

import re
import textwrap
import unicodedata

_SHORT_URL_LENGTH = 23
_URL_RE = re.compile(r"https?://\S+", flags=re.IGNORECASE)
_TRAILING_PUNCTUATION = ".,!?;:'\""
_THREAD_SEPARATOR_RE = re.compile(r"^\s*---\s*$", flags=re.MULTILINE)


def count_post_length(text: str) -> int:
    """Length of *text* as X counts it.

    The text is NFC-normalized first, and every URL counts as a t.co link of
    23 characters whatever its real length.
    """
    text = unicodedata.normalize("NFC", text)
    urls = [_trim_url(match.group(0)) for match in _URL_RE.finditer(text)]
    return len(text) - sum(map(len, urls)) + _SHORT_URL_LENGTH * len(urls)


def _trim_url(candidate: str) -> str:
    """Drop trailing punctuation and unbalanced closing parens from a URL match."""
    url = candidate.rstrip(_TRAILING_PUNCTUATION)
    while url.endswith(")") and url.count(")") > url.count("("):
        url = url[:-1].rstrip(_TRAILING_PUNCTUATION)
    return url


def wrap_preview(text: str, width: int = 72) -> str:
    """Wrap each line to *width* columns, keeping blank lines and URLs intact."""
    wrapped: list[str] = []
    for line in text.splitlines():
        if not line.strip():
            wrapped.append("")
            continue
        wrapped.extend(
            textwrap.wrap(line, width=width, break_long_words=False, break_on_hyphens=False)
        )
    return "\n".join(wrapped)


def split_thread(content: str) -> list[str]:
    """Split editor content into thread parts on lines holding only ``---``."""
    parts = (part.strip() for part in _THREAD_SEPARATOR_RE.split(content))
    return [part for part in parts if part]
