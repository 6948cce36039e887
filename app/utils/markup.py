"""
Cleaning of CRM operator text before it is relayed to a messenger.

Operator messages arrive with HTML tags, BB-style markers ([b], [br],
[url=...]...[/url], [USER=1]...[/USER]) and HTML entities.
"""

from __future__ import annotations

import html
import re
from typing import Optional

_BR_RE = re.compile(r"\[br\s*/?\]|<br\s*/?>", re.IGNORECASE)
_HTML_TAG_RE = re.compile(r"<[^>]+>")
_PAIRED_MARKER_RE = re.compile(
    r"\[(\w+)(?:=[^\]]*)?\](.*?)\[/\1\]", re.IGNORECASE | re.DOTALL
)
_LONE_MARKER_RE = re.compile(
    r"\[/?(?:b|i|u|s|br|code|pre|quote|size|color)(?:=[^\]]*)?\]",
    re.IGNORECASE,
)
_INLINE_SPACE_RE = re.compile(r"[ \t\f\v]+")
_BLANK_LINES_RE = re.compile(r"\n{3,}")

_TRIM_CHARS = " \t\n\r\x00\x0b:-"


def clean_crm_markup(text: Optional[str]) -> str:
    """Strip CRM markup and return plain text. Plain input comes back unchanged."""
    if not text:
        return ""
    cleaned = _BR_RE.sub("\n", text)
    cleaned = _HTML_TAG_RE.sub("", cleaned)
    # nested markers unwrap from the inside out
    previous = None
    while previous != cleaned:
        previous = cleaned
        cleaned = _PAIRED_MARKER_RE.sub(r"\2", cleaned)
    cleaned = _LONE_MARKER_RE.sub("", cleaned)
    cleaned = html.unescape(cleaned)
    lines = [_INLINE_SPACE_RE.sub(" ", line).strip() for line in cleaned.split("\n")]
    cleaned = _BLANK_LINES_RE.sub("\n\n", "\n".join(lines))
    return cleaned.strip(_TRIM_CHARS)
