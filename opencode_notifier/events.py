"""Inbound plugin events: session identity, titles, notices and event kinds.

Events arrive as opaque `{type, properties, timestampMs}` records. The engine
never reads the properties bag directly; it goes through the extractors here,
each of which scans an ordered list of candidate paths (first match wins).
"""

import re
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from .classify import Classifier
from .session import Notice
from .text import normalize_single_line

GENERIC_SESSION_TITLES = {
    "새 작업",
    "새 세션",
    "new task",
    "new session",
    "new chat",
    "untitled",
}
TIMESTAMPED_GENERIC_TITLE = re.compile(
    r"^(new session|child session)\s*-\s*\d{4}-\d{2}-\d{2}t\d{2}:\d{2}:\d{2}\.\d{3}z$",
    re.IGNORECASE,
)

TITLE_PATHS = [
    ("info", "title"),
    ("info", "session", "title"),
    ("info", "sessionTitle"),
    ("info", "name"),
    ("info", "session", "name"),
    ("part", "title"),
    ("part", "session", "title"),
    ("part", "sessionTitle"),
    ("part", "name"),
    ("part", "session", "name"),
    ("session", "title"),
    ("session", "name"),
    ("status", "title"),
    ("title",),
    ("sessionTitle",),
]

PERMISSION_EVENT_TYPES = {"permission.asked", "permission.requested"}
EXPLICIT_INTERRUPT_MARKERS = (
    "input.required",
    "input.requested",
    "interrupt.required",
    "question.required",
)
SUBTASK_STATUSES = {"pending", "running", "completed", "error"}


@dataclass
class Event:
    """One record from the host plugin runtime."""
    type: str
    properties: dict = field(default_factory=dict)
    timestamp_ms: Optional[int] = None
    title: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "Event":
        if isinstance(data, Event):
            return data
        if not isinstance(data, dict):
            return cls(type="")
        props = data.get("properties")
        timestamp = data.get("timestampMs", data.get("timestamp_ms"))
        return cls(
            type=data.get("type") if isinstance(data.get("type"), str) else "",
            properties=props if isinstance(props, dict) else {},
            timestamp_ms=timestamp if isinstance(timestamp, (int, float)) else None,
            title=data.get("title") if isinstance(data.get("title"), str) else None,
        )


def dig(obj: Any, *path: str) -> Any:
    """Walk nested dicts; returns None as soon as a step is missing."""
    for key in path:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def pick_string(candidates: list, max_chars: int = 120) -> str:
    """First non-empty candidate string, normalized to a single line."""
    for candidate in candidates:
        if not isinstance(candidate, str):
            continue
        normalized = normalize_single_line(candidate, max_chars)
        if normalized:
            return normalized
    return ""


# --- Session identity ---

def get_session_id(event: Event) -> Optional[str]:
    """Session id via ordered fallback; None means the event is ignored."""
    props = event.properties
    for path in (("sessionID",), ("info", "sessionID"), ("part", "sessionID")):
        value = dig(props, *path)
        if isinstance(value, str) and value:
            return value

    info_id = dig(props, "info", "id")
    if isinstance(info_id, str) and info_id and event.type.startswith("session."):
        return info_id
    return None


def is_generic_session_title(value) -> bool:
    """Placeholder titles that carry no information about the session."""
    normalized = normalize_single_line(value, 200).lower()
    if not normalized:
        return True
    if normalized in GENERIC_SESSION_TITLES:
        return True
    return bool(TIMESTAMPED_GENERIC_TITLE.match(normalized))


def extract_session_title(event: Event) -> str:
    """First specific title among the candidate fields, else the first generic one."""
    candidates = [dig(event.properties, *path) for path in TITLE_PATHS]
    candidates.append(event.title)

    generic_fallback = ""
    for value in candidates:
        if not isinstance(value, str):
            continue
        normalized = normalize_single_line(value)
        if not normalized:
            continue
        if not is_generic_session_title(normalized):
            return normalized
        if not generic_fallback:
            generic_fallback = normalized
    return generic_fallback


def should_apply_session_title(current, candidate) -> bool:
    """Titles only ever improve: never downgrade a specific title to a generic one."""
    next_title = normalize_single_line(candidate, 200)
    if not next_title:
        return False
    next_generic = is_generic_session_title(next_title)

    current_title = normalize_single_line(current, 200)
    if not current_title:
        return not next_generic
    if current_title == next_title:
        return False

    # generic -> generic gains nothing, specific -> generic is a downgrade
    return not next_generic


# --- Notices ---

def extract_interrupt_notice(event: Event, classifier: Classifier) -> Optional[Notice]:
    """Detect a mid-turn request for human input."""
    props = event.properties
    event_type = normalize_single_line(event.type, 120)
    event_type_lower = event_type.lower()
    if not event_type_lower:
        return None

    if event_type_lower in PERMISSION_EVENT_TYPES:
        permission_name = pick_string(
            [
                props.get("permission"),
                dig(props, "request", "permission"),
                dig(props, "permission", "name"),
                dig(props, "permission", "permission"),
                dig(props, "permission", "type"),
            ],
            80,
        )
        permission_pattern = pick_string(
            [
                props.get("pattern"),
                dig(props, "permission", "pattern"),
                dig(props, "request", "pattern"),
            ],
            120,
        )
        detail = " | ".join(part for part in (permission_name, permission_pattern) if part)
        return Notice(kind="permission_required", event_type=event_type, detail=detail)

    if event_type_lower == "session.status" and dig(props, "status", "type") == "retry":
        message = pick_string(
            [dig(props, "status", "message"), dig(props, "status", "reason")], 180
        )
        if classifier.is_user_interrupt_prompt(message):
            return Notice(kind="input_required", event_type=event_type, detail=message)

    if not any(marker in event_type_lower for marker in EXPLICIT_INTERRUPT_MARKERS):
        return None

    detail = pick_string(
        [
            dig(props, "prompt", "message"),
            dig(props, "prompt", "reason"),
            dig(props, "interrupt", "message"),
            dig(props, "interrupt", "reason"),
            props.get("reason"),
            dig(props, "status", "message"),
        ],
        180,
    )
    return Notice(kind="input_required", event_type=event_type, detail=detail)


def extract_termination_notice(event: Event, classifier: Classifier) -> Optional[Notice]:
    """Detect cancellation, interruption or failure from any status-like field."""
    props = event.properties
    candidates = [
        dig(props, "status", "type"),
        dig(props, "status", "reason"),
        props.get("reason"),
        dig(props, "error", "type"),
        dig(props, "error", "reason"),
        event.type,
    ]
    for candidate in candidates:
        if not isinstance(candidate, str):
            continue
        kind = classifier.classify_termination(candidate)
        if kind:
            return Notice(
                kind=kind,
                event_type=event.type,
                detail=normalize_single_line(candidate, 60),
            )
    return None


# --- Event kinds ---

@dataclass(frozen=True)
class UserMessage:
    message_id: str


@dataclass(frozen=True)
class AssistantMessage:
    message_id: str
    agent: Optional[str] = None


@dataclass(frozen=True)
class ToolPart:
    message_id: str
    tool: str
    status: str
    call_id: str


@dataclass(frozen=True)
class SubtaskPart:
    part_id: Optional[str]
    agent: Optional[str]


@dataclass(frozen=True)
class TextPart:
    message_id: str
    text: str


@dataclass(frozen=True)
class SessionStatus:
    status_type: Optional[str]


@dataclass(frozen=True)
class SessionIdle:
    pass


@dataclass(frozen=True)
class SessionLifecycle:
    parent_id: Optional[str]


@dataclass(frozen=True)
class Unrecognized:
    type: str


EventKind = Union[
    UserMessage,
    AssistantMessage,
    ToolPart,
    SubtaskPart,
    TextPart,
    SessionStatus,
    SessionIdle,
    SessionLifecycle,
    Unrecognized,
]


def _parse_message_updated(event: Event) -> EventKind:
    info = event.properties.get("info")
    message_id = dig(info, "id")
    if not isinstance(message_id, str):
        return Unrecognized(event.type)
    role = dig(info, "role")
    if role == "user":
        return UserMessage(message_id=message_id)
    if role == "assistant":
        agent = dig(info, "agent")
        return AssistantMessage(message_id=message_id, agent=agent if isinstance(agent, str) else None)
    return Unrecognized(event.type)


def _parse_part_updated(event: Event) -> EventKind:
    part = event.properties.get("part")
    if not isinstance(part, dict):
        return Unrecognized(event.type)
    part_type = part.get("type")
    message_id = part.get("messageID")

    if part_type == "tool" and isinstance(message_id, str):
        tool = part.get("tool") if isinstance(part.get("tool"), str) else ""
        raw_status = normalize_single_line(dig(part, "state", "status"), 40).lower()
        status = raw_status if raw_status in SUBTASK_STATUSES else "running"
        call_id = part.get("callID")
        if not isinstance(call_id, str) or not call_id:
            call_id = f"{message_id}:{tool}"
        return ToolPart(message_id=message_id, tool=tool, status=status, call_id=call_id)

    if part_type == "subtask":
        part_id = part.get("id")
        agent = part.get("agent")
        return SubtaskPart(
            part_id=part_id if isinstance(part_id, str) and part_id else None,
            agent=agent if isinstance(agent, str) else None,
        )

    if part_type == "text" and isinstance(message_id, str):
        text = part.get("text")
        return TextPart(message_id=message_id, text=text if isinstance(text, str) else "")

    return Unrecognized(event.type)


def parse_event(event: Event) -> EventKind:
    """Map a raw event onto one of the known kinds; anything else is Unrecognized."""
    if event.type == "message.updated":
        return _parse_message_updated(event)
    if event.type == "message.part.updated":
        return _parse_part_updated(event)
    if event.type == "session.status":
        status_type = dig(event.properties, "status", "type")
        return SessionStatus(status_type=status_type if isinstance(status_type, str) else None)
    if event.type == "session.idle":
        return SessionIdle()
    if event.type in ("session.created", "session.updated"):
        parent_id = dig(event.properties, "info", "parentID")
        if isinstance(parent_id, str) and parent_id.strip():
            return SessionLifecycle(parent_id=parent_id.strip())
        return SessionLifecycle(parent_id=None)
    return Unrecognized(event.type)
