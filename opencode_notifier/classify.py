"""Pattern and heuristic classification shared by line mode and event mode.

Line mode tests normalized CLI lines against user supplied pattern lists.
Event mode classifies whole assistant messages (intermediate analysis noise),
status values (termination kinds) and retry messages (user interrupts).
All keyword lists are data on a Classifier instance and can be overridden
from the `classifier` config section.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from .exceptions import ConfigurationError
from .text import normalize_single_line, normalize_text

REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
}

DEFAULT_BUILD_COMPLETE_PATTERNS = [
    "build complete",
    "build completed",
    "completed successfully",
    "all checks passed",
]

DEFAULT_WAITING_INPUT_PATTERNS = [
    "waiting for input",
    "ready for input",
    "user input required",
    "type your message",
]

# Any single match marks a message as intermediate analysis.
DEFAULT_HARD_MARKERS = [
    r"/\[search-mode\]/i",
    r"/\[analyze-mode\]/i",
    r"/<analysis>/i",
    r"/<results>/i",
    r"/<files>/i",
    r"/<answer>/i",
    r"/^\s*goal\*{0,2}\b/im",
    r"/^\s*definition of done\*{0,2}\b/im",
    r"/^\s*plan\*{0,2}\b/im",
    r"/@[a-z0-9_-]+\s+subagent/i",
    r"/launch multiple background agents/i",
    r"/do not edit files; rely on repository read\/search only/i",
]

# Only suggestive on their own; SOFT_MARKER_THRESHOLD of them are required.
DEFAULT_SOFT_MARKERS = [
    r"/literal request\s*:/i",
    r"/actual need\*{0,2}\s*:/i",
    r"/success looks like\*{0,2}\s*:/i",
    r"/opencode\s*-\s*ses_[a-z0-9]+/i",
    r"/maximize search effort/i",
]
SOFT_MARKER_THRESHOLD = 2

DEFAULT_INTERRUPT_KEYWORDS = [
    r"/(input|required|enter|token|api[\s_-]?key|choose|choice|select|confirm|permission"
    r"|approve|approval|respond|reply|prompt|question|manual"
    r"|승인|선택|입력|토큰|권한|확인|응답|인증)/i",
]

# Transient infrastructure trouble is never a reason to page a human.
DEFAULT_TRANSIENT_KEYWORDS = [
    r"/(rate limit|quota|429|network|timeout|timed out|connection|econn|dns"
    r"|service unavailable|backoff|일시|네트워크|타임아웃|연결|한도)/i",
]

# Evaluated in order; the first matching kind wins.
DEFAULT_TERMINATION_RULES = [
    ("cancelled", r"/(cancel|cancelled|canceled|abort|aborted|취소)/i"),
    ("interrupted", r"/(interrupt|interrupted|stop|stopped|terminate|terminated|killed|halt|중단|멈춤)/i"),
    ("failed", r"/(fail|failed|failure|error|errored|exception|timeout|timed out|crash|crashed"
               r"|panic|fatal|denied|rejected|실패|오류|예외|타임아웃|거부)/i"),
]

DEFAULT_SUBAGENT_TITLE_PATTERNS = [
    r"/\(@[a-z0-9_-]+\s+subagent\)/i",
]

DEFAULT_DELEGATION_TOOLS = [
    "task",
    "delegate_task",
    "call_omo_agent",
    "background_task",
]

JUNIOR_AGENT_PATTERN = re.compile(r"-junior\b", re.IGNORECASE)
MENTION_PATTERN = re.compile(r"\B@[a-z0-9_-]+\b", re.IGNORECASE)
SUBAGENT_WORD_PATTERN = re.compile(r"\bsubagent\b", re.IGNORECASE)


def _parse_regex_literal(value: str) -> Optional[re.Pattern]:
    """Parse `/body/flags`; returns None if value is not in that form."""
    if not value.startswith("/"):
        return None
    last_slash = value.rfind("/")
    if last_slash == 0:
        return None
    body = value[1:last_slash]
    flag_chars = value[last_slash + 1:] or "i"
    if not body or any(c not in REGEX_FLAGS for c in flag_chars):
        return None

    flags = 0
    for c in flag_chars:
        flags |= REGEX_FLAGS[c]
    try:
        return re.compile(body, flags)
    except re.error as e:
        raise ConfigurationError(f"Invalid regex pattern {value!r}: {e}")


def compile_pattern(value) -> re.Pattern:
    """Compile a literal substring (case-insensitive) or a `/regex/flags` string."""
    if isinstance(value, re.Pattern):
        return value
    if not isinstance(value, str) or not value:
        raise ConfigurationError("Pattern values must be non-empty strings")

    literal = _parse_regex_literal(value)
    if literal is not None:
        return literal
    return re.compile(re.escape(value), re.IGNORECASE)


def compile_patterns(values: Optional[Iterable], fallback: Sequence = ()) -> list[re.Pattern]:
    """Compile a pattern list, using fallback when values is empty or missing."""
    source = list(values) if values else list(fallback)
    return [compile_pattern(value) for value in source]


def matches_any(text: str, patterns: Sequence[re.Pattern]) -> bool:
    """True if any pattern matches; empty text never matches."""
    if not text:
        return False
    return any(pattern.search(text) for pattern in patterns)


@dataclass(frozen=True)
class LineSignal:
    """What a single CLI line says about the assistant."""
    build_complete: bool = False
    waiting_input: bool = False


def classify_line(
    line: str,
    build_complete: Sequence[re.Pattern],
    waiting_input: Sequence[re.Pattern],
) -> LineSignal:
    """Classify a normalized CLI line against both pattern lists."""
    return LineSignal(
        build_complete=matches_any(line, build_complete),
        waiting_input=matches_any(line, waiting_input),
    )


class MarkerClassifier:
    """Two-tier marker test: one hard marker, or `soft_threshold` soft markers."""

    def __init__(
        self,
        hard_markers: Sequence,
        soft_markers: Sequence,
        soft_threshold: int = SOFT_MARKER_THRESHOLD,
    ):
        self.hard_markers = compile_patterns(hard_markers)
        self.soft_markers = compile_patterns(soft_markers)
        self.soft_threshold = max(1, int(soft_threshold))

    def matches(self, text: str) -> bool:
        if not text:
            return False
        if matches_any(text, self.hard_markers):
            return True
        hits = sum(1 for marker in self.soft_markers if marker.search(text))
        return hits >= self.soft_threshold


class KeywordClassifier:
    """Positive keywords must match and no negative keyword may match."""

    def __init__(self, positive: Sequence, negative: Sequence = ()):
        self.positive = compile_patterns(positive)
        self.negative = compile_patterns(negative)

    def matches(self, text: str) -> bool:
        if not text:
            return False
        return matches_any(text, self.positive) and not matches_any(text, self.negative)


@dataclass
class Classifier:
    """All heuristic keyword data used by the engines.

    Example:
        classifier = Classifier()
        classifier.classify_termination("aborted")  # -> "cancelled"
    """

    hard_markers: list = field(default_factory=lambda: list(DEFAULT_HARD_MARKERS))
    soft_markers: list = field(default_factory=lambda: list(DEFAULT_SOFT_MARKERS))
    soft_marker_threshold: int = SOFT_MARKER_THRESHOLD
    interrupt_keywords: list = field(default_factory=lambda: list(DEFAULT_INTERRUPT_KEYWORDS))
    transient_keywords: list = field(default_factory=lambda: list(DEFAULT_TRANSIENT_KEYWORDS))
    termination_rules: list = field(default_factory=lambda: list(DEFAULT_TERMINATION_RULES))
    subagent_title_patterns: list = field(
        default_factory=lambda: list(DEFAULT_SUBAGENT_TITLE_PATTERNS)
    )
    delegation_tools: list = field(default_factory=lambda: list(DEFAULT_DELEGATION_TOOLS))

    def __post_init__(self):
        self._analysis = MarkerClassifier(
            self.hard_markers, self.soft_markers, self.soft_marker_threshold
        )
        self._interrupt = KeywordClassifier(self.interrupt_keywords, self.transient_keywords)
        self._termination = [
            (kind, compile_pattern(pattern)) for kind, pattern in self.termination_rules
        ]
        self._subagent_titles = compile_patterns(self.subagent_title_patterns)
        self._delegation_tools = {tool.strip().lower() for tool in self.delegation_tools}

    def is_intermediate_analysis(self, value) -> bool:
        """True for search/analysis scaffolding that should never be notified."""
        return self._analysis.matches(normalize_text(value))

    def classify_termination(self, value) -> Optional[str]:
        """Map a status/reason token to cancelled, interrupted or failed."""
        token = "" if value is None else str(value)
        if not token:
            return None
        for kind, pattern in self._termination:
            if pattern.search(token):
                return kind
        return None

    def is_user_interrupt_prompt(self, value) -> bool:
        """A retry message that asks the human for something (not a rate limit)."""
        return self._interrupt.matches("" if value is None else str(value))

    def is_subagent_title(self, value) -> bool:
        title = normalize_single_line(value, 240)
        if not title:
            return False
        if matches_any(title, self._subagent_titles):
            return True
        return bool(MENTION_PATTERN.search(title) and SUBAGENT_WORD_PATTERN.search(title))

    def is_delegation_tool(self, value) -> bool:
        tool = ("" if value is None else str(value)).strip().lower()
        return bool(tool) and tool in self._delegation_tools

    def is_junior_agent(self, value) -> bool:
        return isinstance(value, str) and bool(JUNIOR_AGENT_PATTERN.search(value))

    @classmethod
    def from_config(cls, raw: Optional[dict]) -> "Classifier":
        """Build from a `classifier` config mapping; missing keys keep defaults."""
        if not raw:
            return cls()
        kwargs = {}
        for key in (
            "hard_markers",
            "soft_markers",
            "interrupt_keywords",
            "transient_keywords",
            "subagent_title_patterns",
            "delegation_tools",
        ):
            if raw.get(key):
                kwargs[key] = list(raw[key])
        if raw.get("termination_rules"):
            kwargs["termination_rules"] = [
                (str(kind), pattern) for kind, pattern in _rule_items(raw["termination_rules"])
            ]
        if raw.get("soft_marker_threshold") is not None:
            kwargs["soft_marker_threshold"] = int(raw["soft_marker_threshold"])
        return cls(**kwargs)


def _rule_items(rules):
    """Accept `{kind: pattern}` mappings or `[[kind, pattern], ...]` lists."""
    if isinstance(rules, dict):
        return list(rules.items())
    items = []
    for rule in rules:
        if isinstance(rule, dict):
            items.append((rule.get("kind"), rule.get("pattern")))
        else:
            kind, pattern = rule
            items.append((kind, pattern))
    return items
