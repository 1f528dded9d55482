"""
Trigger engine for plugin events.

Consumes one event at a time, updates the session it belongs to and decides
whether a notification goes out. The decision sequence lives in
notify_if_ready; handle_event only moves state and calls it at the
points where a human might need to know something.

Usage:
    engine = build_engine(config, workspace_name="my-repo")
    for record in events:
        engine.handle_event(record)
"""

import logging
import time
from pathlib import Path
from typing import Callable, Optional

from .classify import Classifier
from .compose import MessageComposer
from .config import NotifierConfig, has_usable_discord_config
from .discord import DeliveryAdapter, DiscordClient, DryRunDelivery, ThreadRouteStore
from .eventlog import EventLog
from .events import (
    AssistantMessage,
    Event,
    SessionIdle,
    SessionLifecycle,
    SessionStatus,
    SubtaskPart,
    TextPart,
    ToolPart,
    UserMessage,
    extract_interrupt_notice,
    extract_session_title,
    extract_termination_notice,
    get_session_id,
    parse_event,
    should_apply_session_title,
)
from .exceptions import DeliveryError
from .session import Notice, SessionState, SessionStore, Subtask
from .text import normalize_single_line, normalize_text, text_dedupe_key

logger = logging.getLogger(__name__)

IDLE_TRIGGERS = ("session.idle", "session.status: idle")
FORCED_PROGRESS_PHASES = ("completed", "cancelled", "waiting_user")


def wall_clock_ms() -> float:
    return time.time() * 1000


def is_idle_trigger(trigger_kind: str) -> bool:
    return normalize_single_line(trigger_kind, 60).lower() in IDLE_TRIGGERS


def terminal_phase(termination: Optional[Notice]) -> str:
    if termination is None:
        return "completed"
    if termination.kind == "failed":
        return "failed"
    return "cancelled"


class TriggerEngine:
    """Event-mode notification engine.

    delivery is anything with deliver_notification(state, render) and
    upsert_status(state, request_id, render): a DeliveryAdapter in
    production, DryRunDelivery for --dry-run, a recorder in tests.
    """

    def __init__(
        self,
        config: NotifierConfig,
        delivery,
        workspace_name: str = "OpenCode",
        classifier: Optional[Classifier] = None,
        composer: Optional[MessageComposer] = None,
        clock: Optional[Callable[[], float]] = None,
        event_log: Optional[EventLog] = None,
    ):
        self.config = config
        self.delivery = delivery
        self.classifier = classifier or config.build_classifier()
        self.composer = composer or MessageComposer(config)
        self.clock = clock or wall_clock_ms
        self.event_log = event_log or EventLog(None)
        self.sessions = SessionStore(workspace_name)

    @property
    def delivery_ready(self) -> bool:
        if not self.config.enabled:
            return False
        return self.config.dry_run or has_usable_discord_config(self.config)

    def _decision(self, state: SessionState, trigger_kind: str, decision: str, error: Optional[str] = None) -> str:
        if decision == "sent":
            logger.info(f"Notification sent for session {state.session_id} ({trigger_kind})")
        else:
            logger.debug(f"Notification {decision} for session {state.session_id} ({trigger_kind})")
        self.event_log.log(
            "notify",
            session_id=state.session_id,
            result=decision,
            error=error,
            extra={"trigger": trigger_kind},
        )
        return decision

    # --- Progress messages ---

    def upsert_progress(
        self,
        state: SessionState,
        phase: str,
        detail: str = "",
        elapsed_ms: Optional[float] = None,
        result_preview: str = "",
    ) -> None:
        """Queue an edit-in-place progress update for the session's open request."""
        if not self.delivery_ready or not state.current_request_id:
            return

        request_id = state.current_request_id

        def task():
            if state.current_request_id != request_id:
                return
            snapshot_key = self.composer.progress_snapshot_key(state, phase, detail)
            if phase not in FORCED_PROGRESS_PHASES and snapshot_key == state.last_progress_snapshot_key:
                return
            state.last_progress_snapshot_key = snapshot_key

            try:
                self.delivery.upsert_status(
                    state,
                    request_id,
                    lambda: self.composer.progress_body(state, phase, detail, elapsed_ms, result_preview),
                )
            except DeliveryError as e:
                logger.error(f"Progress update ({phase}) failed for session {state.session_id}: {e}")
                self.event_log.log("progress", session_id=state.session_id, result="failed",
                                   error=str(e), extra={"phase": phase})

        state.progress_queue.submit(task)

    def finalize_request(self, state: SessionState, termination: Optional[Notice], elapsed_ms: Optional[float]) -> None:
        """Post the terminal progress status and close the request."""
        if not state.current_request_id:
            return
        phase = terminal_phase(termination)
        self.upsert_progress(
            state,
            phase,
            detail=termination.detail if termination else "",
            elapsed_ms=elapsed_ms,
            result_preview=state.last_assistant_text if phase == "completed" else "",
        )
        state.reset_request()

    # --- Decision ---

    def notify_if_ready(self, state: SessionState, trigger_kind: str, now: Optional[float] = None) -> str:
        """Run every guard and send if all pass. Returns the decision label."""
        now = self.clock() if now is None else now
        trigger = self.config.trigger

        if not self.config.enabled:
            return self._decision(state, trigger_kind, "disabled")
        if not self.delivery_ready:
            return self._decision(state, trigger_kind, "unconfigured")

        termination = state.pending_termination_notice
        interrupt = state.pending_interrupt_notice

        # A sub-agent waiting on a human still deserves a notice
        is_subagent = state.is_subagent(self.classifier)
        if is_subagent and not interrupt:
            return self._decision(state, trigger_kind, "subagent")

        elapsed_ms = state.elapsed_ms(now)
        can_finalize = (
            bool(state.current_request_id)
            and not interrupt
            and (termination is not None or is_idle_trigger(trigger_kind))
        )

        def suppress(decision: str) -> str:
            if can_finalize:
                self.finalize_request(state, termination, elapsed_ms)
            return self._decision(state, trigger_kind, decision)

        if not state.waiting_for_input_ready and not termination and not interrupt:
            return suppress("not_ready")

        since_last = now - state.last_notified_at if state.last_notified_at else None
        if not interrupt and since_last is not None and since_last < trigger.cooldown_ms:
            return suppress("cooldown")

        if not termination and not interrupt:
            last_id = state.last_assistant_message_id
            if trigger.require_assistant_message and not last_id:
                return suppress("no_assistant_message")
            if self.classifier.is_intermediate_analysis(state.last_assistant_text):
                return suppress("intermediate")
            if state.was_notified(last_id):
                return suppress("already_notified")
            if last_id and last_id in state.delegation_message_ids:
                return suppress("delegated")

        if interrupt:
            text_key = interrupt.dedupe_key()
        elif termination:
            text_key = termination.dedupe_key()
        else:
            text_key = text_dedupe_key(state.last_assistant_text)

        if (
            text_key
            and text_key == state.last_notified_text_key
            and since_last is not None
            and since_last < trigger.dedupe_window_ms
        ):
            return suppress("duplicate")

        def render(omit_header: bool) -> str:
            return self.composer.notification(
                state,
                trigger_kind,
                termination=termination,
                interrupt=interrupt,
                measured_at=now,
                elapsed_ms=elapsed_ms,
                omit_header=omit_header,
                is_subagent=is_subagent,
            )

        try:
            self.delivery.deliver_notification(state, render)
        except DeliveryError as e:
            logger.error(f"Notification failed for session {state.session_id} ({trigger_kind}): {e}")
            # Timers reset regardless so elapsed time never gets stuck
            state.response_started_at = 0
            state.last_assistant_updated_at = 0
            return self._decision(state, trigger_kind, "delivery_failed", error=str(e))

        if interrupt:
            self.upsert_progress(
                state,
                "waiting_user",
                detail=interrupt.detail or interrupt.event_type,
                elapsed_ms=elapsed_ms,
            )
        elif state.current_request_id:
            self.finalize_request(state, termination, elapsed_ms)

        state.last_notified_at = now
        state.record_notified(state.last_assistant_message_id)
        state.last_notified_text_key = text_key
        state.response_started_at = 0
        state.last_assistant_updated_at = 0
        state.waiting_for_input_ready = False
        state.clear_pending()
        return self._decision(state, trigger_kind, "sent")

    # --- Event handling ---

    def handle_event(self, raw) -> None:
        """Apply one plugin event. Events without a session id are ignored."""
        event = Event.from_dict(raw)
        session_id = get_session_id(event)
        if not session_id:
            return

        now = event.timestamp_ms if event.timestamp_ms is not None else self.clock()
        state = self.sessions.get_or_create(session_id)

        title = extract_session_title(event)
        if should_apply_session_title(state.session_title, title):
            state.session_title = title

        interrupt = extract_interrupt_notice(event, self.classifier)
        if interrupt:
            state.pending_interrupt_notice = interrupt
            state.waiting_for_input_ready = True
            self.upsert_progress(state, "waiting_user", detail=interrupt.detail or interrupt.event_type)
            self.notify_if_ready(state, f"interrupt: {interrupt.kind}", now)
            return

        kind = parse_event(event)

        if isinstance(kind, SessionLifecycle) and kind.parent_id:
            state.mark_child()

        if state.is_subagent(self.classifier):
            state.waiting_for_input_ready = False
            state.clear_pending()
            return

        if isinstance(kind, UserMessage):
            state.start_request(kind.message_id, now)
            self.upsert_progress(state, "started")
            return

        if isinstance(kind, AssistantMessage):
            self._on_assistant_message(state, kind, now)
            return

        if isinstance(kind, ToolPart):
            self._on_tool_part(state, kind)
            return

        if isinstance(kind, SubtaskPart):
            if state.current_request_id:
                subtask_id = kind.part_id or f"{state.current_request_id}:subtask:{len(state.subtask_by_call_id) + 1}"
                state.subtask_by_call_id[subtask_id] = Subtask(status="running", tool=kind.agent or "subtask")
                self.upsert_progress(state, "in_progress")
            return

        if isinstance(kind, TextPart):
            self._on_text_part(state, kind, now)
            return

        if isinstance(kind, SessionStatus):
            self._on_session_status(state, event, kind, now)
            return

        # Other roles and part types carry nothing for the engine
        if event.type in ("message.updated", "message.part.updated"):
            return

        termination = extract_termination_notice(event, self.classifier)
        if termination:
            state.pending_termination_notice = termination
            state.pending_interrupt_notice = None
            state.waiting_for_input_ready = True
            self.notify_if_ready(state, event.type, now)
            return

        if isinstance(kind, SessionIdle) and self.config.trigger.notify_on_session_idle:
            self.notify_if_ready(state, "session.idle", now)

    def _on_assistant_message(self, state: SessionState, kind: AssistantMessage, now: float) -> None:
        if self.classifier.is_junior_agent(kind.agent):
            state.mark_child()

        state.assistant_message_ids.add(kind.message_id)
        state.waiting_for_input_ready = False
        state.clear_pending()
        if not state.response_started_at:
            state.response_started_at = now

        cached = state.text_by_message_id.get(kind.message_id)
        if not isinstance(cached, str) or not cached.strip():
            return
        if self.classifier.is_intermediate_analysis(cached):
            state.muted_assistant_message_ids.add(kind.message_id)
            return
        state.adopt_assistant_text(kind.message_id, cached, now)

    def _on_tool_part(self, state: SessionState, kind: ToolPart) -> None:
        if not self.classifier.is_delegation_tool(kind.tool):
            return

        state.delegation_message_ids.add(kind.message_id)
        state.subtask_by_call_id[kind.call_id] = Subtask(status=kind.status, tool=kind.tool)
        if state.last_assistant_message_id == kind.message_id:
            state.waiting_for_input_ready = False
        if state.current_request_id:
            self.upsert_progress(state, "in_progress")

    def _on_text_part(self, state: SessionState, kind: TextPart, now: float) -> None:
        text = normalize_text(kind.text)
        state.text_by_message_id[kind.message_id] = text

        if state.current_request_id == kind.message_id and kind.message_id in state.user_message_ids:
            state.current_request_preview = text
            self.upsert_progress(state, "in_progress")

        if (
            kind.message_id not in state.assistant_message_ids
            and state.last_assistant_message_id != kind.message_id
        ):
            return

        if not state.response_started_at:
            state.response_started_at = now

        if self.classifier.is_intermediate_analysis(text):
            state.mute_assistant_message(kind.message_id)
            state.waiting_for_input_ready = False
            return

        state.adopt_assistant_text(kind.message_id, text, now)
        state.clear_pending()

    def _on_session_status(self, state: SessionState, event: Event, kind: SessionStatus, now: float) -> None:
        termination = extract_termination_notice(event, self.classifier)
        if termination:
            state.pending_termination_notice = termination
            state.pending_interrupt_notice = None
            state.waiting_for_input_ready = True
            self.notify_if_ready(state, f"session.status: {kind.status_type or termination.kind}", now)
            return

        if kind.status_type in ("busy", "retry"):
            # Still responding: re-arm the timer, nothing pending yet
            state.response_started_at = now
            state.waiting_for_input_ready = (
                bool(state.last_assistant_message_id) and not state.was_notified(state.last_assistant_message_id)
            )
            state.clear_pending()
            return

        if kind.status_type == "idle" and self.config.trigger.notify_on_status_idle:
            self.notify_if_ready(state, "session.status: idle", now)


class NoopEngine:
    """Stand-in when the real engine could not be built: every event is ignored."""

    def __init__(self):
        self.sessions = SessionStore()

    def handle_event(self, raw) -> None:
        return None

    def notify_if_ready(self, state, trigger_kind: str, now: Optional[float] = None) -> str:
        return "disabled"


def build_engine(
    config: NotifierConfig,
    workspace_name: str = "OpenCode",
    delivery=None,
    clock: Optional[Callable[[], float]] = None,
    event_log: Optional[EventLog] = None,
    route_store_path: Optional[Path] = None,
):
    """Build a TriggerEngine; any initialization failure yields a NoopEngine."""
    try:
        if config.environment.requires_setup:
            logger.warning(
                f"Runtime environment label is not registered (environment key: "
                f"{config.environment.runtime_key}). Add it under environment.labels_by_key."
            )
        if not config.enabled:
            logger.info("Notifications disabled by config")
        elif not config.dry_run and not has_usable_discord_config(config):
            logger.warning("Discord bot token or targets missing; notifications disabled")

        if delivery is None:
            if config.dry_run:
                delivery = DryRunDelivery()
            else:
                client = DiscordClient(config.discord.bot_token, config.discord.timeout_ms)
                delivery = DeliveryAdapter(config, client, ThreadRouteStore(route_store_path))

        if event_log is None:
            event_log = EventLog(config.logging.directory)

        return TriggerEngine(
            config,
            delivery,
            workspace_name=workspace_name,
            clock=clock,
            event_log=event_log,
        )
    except Exception as e:
        logger.error(f"Notifier initialization failed, events will be ignored: {e}")
        return NoopEngine()
