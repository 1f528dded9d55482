"""Per-session mutable state and the store that owns it."""

from dataclasses import dataclass, field
from typing import Optional

from .taskqueue import SerialTaskQueue

INTERRUPT_KINDS = ("permission_required", "input_required")


@dataclass(frozen=True)
class Notice:
    """A termination or interrupt that should reach the human."""
    kind: str  # cancelled, interrupted, failed, permission_required, input_required
    event_type: str = ""
    detail: str = ""

    @property
    def is_interrupt(self) -> bool:
        return self.kind in INTERRUPT_KINDS

    def dedupe_key(self) -> str:
        if self.is_interrupt:
            return f"interrupt:{self.kind}:{self.event_type}:{self.detail}"
        return f"termination:{self.kind}:{self.detail}"


@dataclass
class Subtask:
    status: str  # pending, running, completed, error
    tool: str = ""


@dataclass
class StatusMessage:
    """The progress message last posted for one delivery target."""
    request_id: str
    channel_id: str
    message_id: str


@dataclass
class SessionState:
    """Everything the engine knows about one logical session.

    Times are epoch milliseconds; 0 means "not set".
    """
    session_id: str
    workspace_name: str = "OpenCode"
    is_child_session: bool = False
    session_title: str = ""

    assistant_message_ids: set = field(default_factory=set)
    user_message_ids: set = field(default_factory=set)
    muted_assistant_message_ids: set = field(default_factory=set)
    delegation_message_ids: set = field(default_factory=set)
    text_by_message_id: dict = field(default_factory=dict)

    last_assistant_message_id: Optional[str] = None
    last_assistant_text: str = ""
    waiting_for_input_ready: bool = False
    pending_termination_notice: Optional[Notice] = None
    pending_interrupt_notice: Optional[Notice] = None

    last_notified_message_id: Optional[str] = None
    notified_message_ids: set = field(default_factory=set)
    last_notified_text_key: str = ""
    last_notified_at: float = 0

    response_started_at: float = 0
    last_assistant_updated_at: float = 0

    # Progress tracking: one request spans a user message to its terminal notice
    current_request_id: Optional[str] = None
    current_request_preview: str = ""
    current_request_started_at: float = 0
    subtask_by_call_id: dict = field(default_factory=dict)  # call id -> Subtask
    last_progress_snapshot_key: str = ""
    status_message_by_target: dict = field(default_factory=dict)  # target key -> StatusMessage

    progress_queue: SerialTaskQueue = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        if self.progress_queue is None:
            self.progress_queue = SerialTaskQueue(name=f"progress:{self.session_id}")

    def mark_child(self) -> None:
        # Sticky: nothing ever resets it.
        self.is_child_session = True

    def is_subagent(self, classifier) -> bool:
        return self.is_child_session or classifier.is_subagent_title(self.session_title)

    def clear_pending(self) -> None:
        self.pending_termination_notice = None
        self.pending_interrupt_notice = None

    def start_request(self, message_id: str, now: float) -> None:
        self.user_message_ids.add(message_id)
        self.current_request_id = message_id
        self.current_request_started_at = now
        self.current_request_preview = ""
        self.subtask_by_call_id.clear()
        self.last_progress_snapshot_key = ""

        cached = self.text_by_message_id.get(message_id)
        if isinstance(cached, str) and cached.strip():
            self.current_request_preview = cached

    def reset_request(self) -> None:
        self.current_request_id = None
        self.current_request_preview = ""
        self.current_request_started_at = 0
        self.subtask_by_call_id.clear()
        self.user_message_ids.clear()
        self.last_progress_snapshot_key = ""

    def was_notified(self, message_id: Optional[str]) -> bool:
        return bool(message_id) and message_id in self.notified_message_ids

    def record_notified(self, message_id: Optional[str]) -> None:
        # Never moves back to None: a notice sent with no candidate keeps the old id
        if not message_id:
            return
        self.last_notified_message_id = message_id
        self.notified_message_ids.add(message_id)

    def adopt_assistant_text(self, message_id: str, text: str, now: float) -> None:
        """Make text the notification candidate; ready iff never notified and not delegated."""
        self.muted_assistant_message_ids.discard(message_id)
        self.last_assistant_message_id = message_id
        self.last_assistant_text = text
        self.last_assistant_updated_at = now
        self.waiting_for_input_ready = (
            not self.was_notified(message_id)
            and message_id not in self.delegation_message_ids
        )

    def mute_assistant_message(self, message_id: str) -> None:
        self.muted_assistant_message_ids.add(message_id)
        if self.last_assistant_message_id == message_id:
            self.last_assistant_message_id = None
            self.last_assistant_text = ""

    def elapsed_ms(self, now: float) -> Optional[float]:
        started_at = self.response_started_at or self.last_assistant_updated_at
        if started_at <= 0:
            return None
        return max(0, now - started_at)


class SessionStore:
    """Owns every SessionState; get_or_create is the only way in."""

    def __init__(self, workspace_name: str = "OpenCode"):
        self.workspace_name = workspace_name
        self._sessions: dict[str, SessionState] = {}

    def get_or_create(self, session_id: str) -> SessionState:
        state = self._sessions.get(session_id)
        if state is None:
            state = SessionState(session_id=session_id, workspace_name=self.workspace_name)
            self._sessions[session_id] = state
        return state

    def get(self, session_id: str) -> Optional[SessionState]:
        return self._sessions.get(session_id)

    def __contains__(self, session_id) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self):
        return iter(self._sessions.values())
