"""Text normalization, truncation and summarization helpers.

Everything here is a pure function over strings.
"""

import hashlib
import math
import re
from typing import Optional

ELLIPSIS = "…"

ANSI_PATTERN = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")
CONTROL_PATTERN = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")
LINE_CONTROL_PATTERN = re.compile(r"[\x00-\x1f\x7f]")
TRAILING_SPACE_PATTERN = re.compile(r"[ \t]+\n")
BLANK_RUN_PATTERN = re.compile(r"\n{3,}")
WHITESPACE_PATTERN = re.compile(r"\s+")
CODE_FENCE_PATTERN = re.compile(r"```.*?```", re.DOTALL)
SENTENCE_SPLIT_PATTERN = re.compile(r"(?<=[.!?])\s+|\n+")
LIST_MARKER_PATTERN = re.compile(r"^[-*\d.)\s]+")

SUMMARY_BULLET_CHARS = 420
SUMMARY_FALLBACK_CHARS = 820
SUMMARY_MIN_FRAGMENT = 8
DEDUPE_KEY_CHARS = 800

EMPTY_SUMMARY = "- Nothing to summarize."


def _as_text(value) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def strip_ansi(value) -> str:
    """Remove ANSI CSI escape sequences (colors, cursor movement)."""
    return ANSI_PATTERN.sub("", _as_text(value))


def normalize_text(raw) -> str:
    """Normalize multi-line assistant output.

    Strips escape sequences and control characters, converts CRLF to LF,
    drops trailing spaces before newlines, collapses 3+ newlines to 2 and trims.
    """
    text = strip_ansi(raw).replace("\r\n", "\n")
    text = CONTROL_PATTERN.sub("", text)
    text = TRAILING_SPACE_PATTERN.sub("\n", text)
    text = BLANK_RUN_PATTERN.sub("\n\n", text)
    return text.strip()


def truncate(text, max_chars: int) -> str:
    """Cut text to at most max_chars characters, ending with an ellipsis.

    Idempotent: truncate(truncate(s, n), n) == truncate(s, n).
    """
    text = _as_text(text)
    if len(text) <= max_chars:
        return text
    if max_chars <= 0:
        return ""
    return text[: max_chars - 1].rstrip() + ELLIPSIS


def normalize_single_line(value, max_chars: int = 120) -> str:
    """Collapse all whitespace to single spaces, trim and truncate."""
    text = WHITESPACE_PATTERN.sub(" ", _as_text(value)).strip()
    return truncate(text, max_chars)


def normalize_line(value) -> str:
    """Normalize one line of CLI output for pattern matching."""
    text = LINE_CONTROL_PATTERN.sub(" ", strip_ansi(value))
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def heuristic_summary(text, max_bullets: int) -> str:
    """Turn assistant output into a short bullet list.

    Code fences are dropped, the remainder is split on sentence boundaries and
    fragments shorter than 8 characters are discarded. If nothing survives the
    whole text becomes a single truncated bullet.
    """
    cleaned = CODE_FENCE_PATTERN.sub(" ", normalize_text(text))
    cleaned = WHITESPACE_PATTERN.sub(" ", cleaned).strip()
    if not cleaned:
        return EMPTY_SUMMARY

    chunks = [chunk.strip() for chunk in SENTENCE_SPLIT_PATTERN.split(cleaned)]
    bullets = []
    for chunk in chunks:
        if len(chunk) < SUMMARY_MIN_FRAGMENT:
            continue
        item = LIST_MARKER_PATTERN.sub("", chunk).strip()
        if not item:
            continue
        bullets.append(f"- {truncate(item, SUMMARY_BULLET_CHARS)}")
        if len(bullets) >= max_bullets:
            break

    if not bullets:
        return f"- {truncate(cleaned, SUMMARY_FALLBACK_CHARS)}"
    return "\n".join(bullets)


def format_duration_ms(value: Optional[float]) -> str:
    """Human readable duration: 850ms, 42s, 3m 5s, 1h 2m 3s."""
    if value is None or not isinstance(value, (int, float)):
        return "n/a"
    if math.isnan(value) or math.isinf(value) or value < 0:
        return "n/a"

    rounded_ms = int(value + 0.5)
    if rounded_ms < 1000:
        return f"{rounded_ms}ms"

    total_seconds = int(rounded_ms / 1000 + 0.5)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}h {minutes}m {seconds}s"
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def text_dedupe_key(value) -> str:
    """Content key for "the same message text", used for dedup windows."""
    collapsed = WHITESPACE_PATTERN.sub(" ", normalize_text(value)).strip()
    if not collapsed:
        return ""
    digest = hashlib.sha256(collapsed[:DEDUPE_KEY_CHARS].encode()).hexdigest()[:16]
    return f"text:{digest}"
