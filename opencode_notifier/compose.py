"""Rendering of notification, progress and thread texts.

Every renderer returns a complete string already truncated to its limit, so a
notification is either delivered whole or not at all.
"""

from datetime import datetime
from typing import Optional

from .config import DISCORD_THREAD_NAME_LIMIT, NotifierConfig
from .session import Notice, SessionState
from .text import (
    format_duration_ms,
    heuristic_summary,
    normalize_single_line,
    normalize_text,
    truncate,
)

UNREGISTERED_ENVIRONMENT = "unregistered environment"
MISSING_ASSISTANT_MESSAGE = "The last assistant message has not been found yet."
MISSING_LINE_MESSAGE = "No assistant message was extracted. Check the parser settings."
EMPTY_RAW = "(empty)"
RAW_BLOCK_CHARS = 700
THREAD_STARTER_CHARS = 180

# Bare status words that add nothing under the headline
UNINFORMATIVE_DETAILS = {
    "cancel", "cancelled", "canceled", "abort", "aborted",
    "interrupt", "interrupted", "stop", "stopped", "terminate", "terminated",
    "fail", "failed", "failure", "error", "errored",
}

TERMINATION_HEADLINES = {
    "cancelled": "- This response was cancelled by the user.",
    "failed": "- This response failed.",
    "interrupted": "- This response was interrupted.",
}

STATUS_LABELS = {
    "completed": "✅ **Completed**",
    "failed": "❌ **Failed**",
    "cancelled": "🛑 **Stopped (cancelled)**",
    "waiting_user": "🟠 **Waiting for user response**",
}
WORKING_LABEL = "🔄 **Working...**"


def format_timestamp(epoch_ms: Optional[float]) -> str:
    """Local wall-clock time for an epoch-millisecond timestamp."""
    if not epoch_ms or epoch_ms <= 0:
        return ""
    return datetime.fromtimestamp(epoch_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


def render_result(
    body: str,
    header_title: str = "",
    environment_notice: str = "",
    metadata_lines: Optional[list] = None,
    include_raw_block: bool = False,
    raw_text: str = "",
    mention_user_id: Optional[str] = None,
    max_chars: int = 1900,
    omit_header: bool = False,
) -> str:
    """Event-mode notification layout. Empty sections are skipped."""
    header_title = (header_title or "").strip()
    environment_notice = (environment_notice or "").strip()
    metadata = "\n".join(
        f"🔹 {line.strip()}" for line in (metadata_lines or []) if isinstance(line, str) and line.strip()
    )

    sections = [
        f"📋 **{header_title}**" if not omit_header and header_title else None,
        f"> ⚙️ **Environment**: {environment_notice}" if not omit_header and environment_notice else None,
        metadata or None,
        (body or "").strip() or None,
        # Truncate inside the fence so the block always closes
        f"📦 **Raw output**\n```text\n{truncate(raw_text or EMPTY_RAW, RAW_BLOCK_CHARS)}\n```"
        if include_raw_block else None,
    ]
    content = "\n\n".join(section for section in sections if section)

    mention = (mention_user_id or "").strip()
    if mention:
        content = f"🔔 <@{mention}>\n\n{content}"

    return truncate(content, max_chars)


def render_work_status(
    phase: str,
    prompt_preview: str = "",
    subtask_summary: str = "",
    detail: str = "",
    started_at_label: str = "",
    elapsed_label: str = "",
    result_preview: str = "",
) -> str:
    """Progress message layout: status line, prompt, status/result."""
    phase = "in_progress" if phase == "started" else (phase or "in_progress")
    prompt_preview = normalize_single_line(prompt_preview, 160)
    started_at_label = normalize_single_line(started_at_label, 80)
    elapsed_label = normalize_single_line(elapsed_label, 80)
    result_preview = normalize_single_line(result_preview, 320)
    detail = normalize_single_line(detail, 220)

    status_line = STATUS_LABELS.get(phase, WORKING_LABEL)
    time_info = []
    if started_at_label:
        time_info.append(f"🕒 {started_at_label}")
    if elapsed_label:
        time_info.append(f"⏱️ {elapsed_label}")
    if time_info:
        status_line = f"{status_line} `[ {' | '.join(time_info)} ]`"

    if phase == "completed":
        result = result_preview or "Could not collect the result."
    elif phase == "failed":
        result = result_preview or (f"Failure reason: {detail}" if detail else "Could not collect the failure reason.")
    elif phase == "cancelled":
        result = f"Cancel reason: {detail}" if detail else "Ended by user cancellation."
    elif phase == "waiting_user":
        result = f"Waiting for user input: {detail}" if detail else "Waiting for a choice, token input or approval."
    else:
        result = "Generating result..."
        if subtask_summary:
            result = f"{result} ({subtask_summary})"

    lines = [
        status_line,
        "",
        "🗣️ **User prompt**",
        f"> {prompt_preview}" if prompt_preview else "> *(collecting prompt...)*",
        "",
        "📄 **Status and result**",
        f"> {result}",
    ]
    return "\n".join(lines)


class MessageComposer:
    """Builds every outbound text from config and session state."""

    def __init__(self, config: NotifierConfig):
        self.config = config

    # --- Shared pieces ---

    @property
    def environment_label(self) -> str:
        return self.config.environment.label or UNREGISTERED_ENVIRONMENT

    def environment_notice(self) -> str:
        env = self.config.environment
        if not (env.requires_setup and env.runtime_key):
            return ""
        return "\n".join([
            "⚠️ **This runtime environment has no registered label.**",
            f"- Environment key: `{truncate(env.runtime_key, 120)}`",
            "- Fix: add a label for this key under `environment.labels_by_key` in the config file.",
        ])

    def header_title(self, state: SessionState) -> str:
        session_label = state.session_title or state.session_id
        title = normalize_single_line(self.config.message.title, 120)
        decorated = f"[{self.environment_label}] {title}" if title else f"[{self.environment_label}]"
        return f"{decorated} | {state.workspace_name} - {session_label}"

    def metadata_lines(self, measured_at: float, elapsed_ms: Optional[float], trigger_kind: str) -> list[str]:
        if not self.config.message.include_metadata:
            return []
        lines = [f"- Time: {format_timestamp(measured_at)}"]
        if elapsed_ms is not None:
            lines.append(f"- Elapsed: {format_duration_ms(elapsed_ms)}")
        lines.append(f"- Trigger: {trigger_kind}")
        lines.append(f"- Mode: {self.config.message.mode}")
        return lines

    def render_body(self, text: str, missing: str) -> str:
        """Primary body by message mode."""
        normalized = normalize_text(text)
        mode = self.config.message.mode
        if not normalized:
            return f"- {missing}" if mode == "summary" else f"({missing})"
        if mode == "summary":
            return heuristic_summary(normalized, self.config.message.summary_max_bullets)
        return normalized

    # --- Notices ---

    def termination_body(self, notice: Notice) -> str:
        headline = TERMINATION_HEADLINES.get(notice.kind, TERMINATION_HEADLINES["interrupted"])
        if not notice.detail or notice.detail.lower() in UNINFORMATIVE_DETAILS:
            return headline
        return f"{headline}\n- Status: {notice.detail}"

    def interrupt_body(self, notice: Notice, is_subagent: bool) -> str:
        if notice.kind == "permission_required":
            state_label = "permission/choice confirmation needed"
        else:
            state_label = "user input needed"
        lines = [
            "🚨 **INTERRUPT NOTICE**",
            f"- State: {state_label}",
            f"- Scope: {'sub-agent' if is_subagent else 'main-agent'}",
            "- The agent is waiting for your response (choice, token input or approval).",
        ]
        if notice.event_type:
            lines.append(f"- Event: {notice.event_type}")
        if notice.detail:
            lines.append(f"- Detail: {notice.detail}")
        return "\n".join(lines)

    # --- Event mode ---

    def notification(
        self,
        state: SessionState,
        trigger_kind: str,
        termination: Optional[Notice] = None,
        interrupt: Optional[Notice] = None,
        measured_at: Optional[float] = None,
        elapsed_ms: Optional[float] = None,
        omit_header: bool = False,
        is_subagent: bool = False,
    ) -> str:
        message = self.config.message
        normalized = normalize_text(state.last_assistant_text)

        if interrupt:
            body = self.interrupt_body(interrupt, is_subagent)
        elif termination:
            body = self.termination_body(termination)
        else:
            body = self.render_body(normalized, MISSING_ASSISTANT_MESSAGE)

        if elapsed_ms is not None and elapsed_ms < 0:
            elapsed_ms = None

        return render_result(
            body=body,
            header_title=self.header_title(state),
            environment_notice=self.environment_notice(),
            metadata_lines=self.metadata_lines(measured_at or 0, elapsed_ms, trigger_kind),
            include_raw_block=(
                not termination
                and not interrupt
                and message.include_raw_in_code_block
                and message.mode != "raw"
            ),
            raw_text=normalized or EMPTY_RAW,
            mention_user_id=self.config.discord.mention_user_id,
            max_chars=message.max_chars,
            omit_header=omit_header,
        )

    # --- Progress messages ---

    def subtask_summary(self, state: SessionState) -> str:
        counts = {"pending": 0, "running": 0, "completed": 0, "error": 0}
        for subtask in state.subtask_by_call_id.values():
            status = str(getattr(subtask, "status", "")).lower()
            if status in counts:
                counts[status] += 1

        parts = []
        working = counts["pending"] + counts["running"]
        if working:
            parts.append(f"🔄 {working} running")
        if counts["completed"]:
            parts.append(f"✅ {counts['completed']} done")
        if counts["error"]:
            parts.append(f"❌ {counts['error']} failed")
        return " / ".join(parts)

    def progress_body(
        self,
        state: SessionState,
        phase: str,
        detail: str = "",
        elapsed_ms: Optional[float] = None,
        result_preview: str = "",
    ) -> str:
        return render_work_status(
            phase=phase,
            prompt_preview=state.current_request_preview,
            subtask_summary=self.subtask_summary(state),
            detail=normalize_single_line(detail, 180),
            started_at_label=format_timestamp(state.current_request_started_at),
            elapsed_label=format_duration_ms(elapsed_ms) if elapsed_ms is not None else "",
            result_preview=result_preview,
        )

    def progress_snapshot_key(self, state: SessionState, phase: str, detail: str = "") -> str:
        return "|".join([
            phase,
            state.current_request_id or "",
            normalize_single_line(state.current_request_preview, 120),
            self.subtask_summary(state),
            normalize_single_line(detail, 120),
        ])

    # --- Threads ---

    def thread_name(self, state: SessionState) -> str:
        workspace = normalize_single_line(state.workspace_name, 42) or "OpenCode"
        label = normalize_single_line(state.session_title or state.session_id, 54) or state.session_id
        return truncate(f"{workspace} | {label}", DISCORD_THREAD_NAME_LIMIT)

    def thread_starter_text(self, state: SessionState) -> str:
        label = normalize_single_line(state.session_title or state.session_id, 90) or state.session_id
        return truncate(f"🧵 OpenCode session thread: {label}", THREAD_STARTER_CHARS)

    # --- Line mode ---

    def line_notification(
        self,
        text: str,
        measured_at: float,
        elapsed_ms: Optional[float],
        command_preview: str = "",
    ) -> str:
        message = self.config.message
        normalized = normalize_text(text)
        if elapsed_ms is not None and elapsed_ms < 0:
            elapsed_ms = None

        sections = [f"**[{self.environment_label}] {message.title}**"]
        notice = self.environment_notice()
        if notice:
            sections.append(notice)

        if message.include_metadata:
            metadata = [f"- Time: {format_timestamp(measured_at)}"]
            if elapsed_ms is not None:
                metadata.append(f"- Elapsed: {format_duration_ms(elapsed_ms)}")
            metadata.append("- Trigger: build complete -> waiting for input")
            metadata.append(f"- Mode: {message.mode}")
            metadata.append(f"- Command: `{truncate(command_preview, 120)}`")
            sections.append("\n".join(metadata))

        sections.append("**Summary of the reply**" if message.mode == "summary" else "**Assistant reply**")
        sections.append(self.render_body(normalized, MISSING_LINE_MESSAGE))

        if message.include_raw_in_code_block and message.mode != "raw":
            sections.append("**Raw tail**")
            sections.append(f"```text\n{truncate(normalized or EMPTY_RAW, RAW_BLOCK_CHARS)}\n```")

        content = "\n\n".join(section for section in sections if section)
        if self.config.discord.mention_user_id:
            content = f"<@{self.config.discord.mention_user_id}>\n{content}"

        return truncate(content, message.max_chars)
