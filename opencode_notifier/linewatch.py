"""
Line-mode notifier.

Watches the text output of a wrapped assistant CLI. A notification goes out
when a "waiting for input" line follows a "build complete" line within the
ready window, at most once per cooldown.

Usage:
    notifier = LineNotifier(config, send=delivery.send_plain)
    for line in output:
        notifier.handle_line(line, "stdout")
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Optional

from .classify import (
    DEFAULT_BUILD_COMPLETE_PATTERNS,
    DEFAULT_WAITING_INPUT_PATTERNS,
    Classifier,
    classify_line,
    compile_patterns,
    matches_any,
)
from .compose import MessageComposer
from .config import NotifierConfig
from .engine import wall_clock_ms
from .eventlog import EventLog
from .exceptions import DeliveryError
from .text import normalize_line, normalize_text

logger = logging.getLogger(__name__)


@dataclass
class BufferEntry:
    line: str
    source: str  # stdout or stderr
    time: float


class LineNotifier:
    """Rolling output buffer plus the build-complete -> waiting-input trigger."""

    def __init__(
        self,
        config: NotifierConfig,
        send: Callable[[str], None],
        clock: Optional[Callable[[], float]] = None,
        event_log: Optional[EventLog] = None,
        composer: Optional[MessageComposer] = None,
        classifier: Optional[Classifier] = None,
        once: bool = False,
    ):
        self.config = config
        self.send = send
        self.clock = clock or wall_clock_ms
        self.event_log = event_log or EventLog(None)
        self.composer = composer or MessageComposer(config)
        self.classifier = classifier or config.build_classifier()
        self.once = once

        detection = config.detection
        parser = config.parser
        self.build_complete_patterns = compile_patterns(
            detection.build_complete_patterns, DEFAULT_BUILD_COMPLETE_PATTERNS
        )
        self.waiting_input_patterns = compile_patterns(
            detection.waiting_input_patterns, DEFAULT_WAITING_INPUT_PATTERNS
        )
        self.block_start_patterns = compile_patterns(parser.assistant_block_start_patterns)
        self.block_end_patterns = compile_patterns(parser.assistant_block_end_patterns)
        self.noise_patterns = compile_patterns(parser.noise_patterns)

        self.buffer: deque[BufferEntry] = deque(maxlen=parser.max_buffer_lines)
        self.last_build_complete_at: float = 0
        self.last_notification_at: float = 0
        self.pending = False
        self.notification_enabled = config.enabled
        self.notification_count = 0

    def handle_line(self, line: str, source: str = "stdout", timestamp_ms: Optional[float] = None) -> str:
        """
        Buffer one output line and fire a notification if it completes the trigger.

        Returns:
            The notify decision for waiting-input lines, "buffered" for other
            lines and "empty" for lines that normalize to nothing
        """
        normalized = normalize_line(line)
        if not normalized:
            return "empty"

        now = self.clock() if timestamp_ms is None else timestamp_ms
        entry = BufferEntry(line=normalized, source=source, time=now)
        self.buffer.append(entry)

        signal = classify_line(normalized, self.build_complete_patterns, self.waiting_input_patterns)
        if signal.build_complete:
            self.last_build_complete_at = entry.time
            logger.info(f"Build completion matched: {normalized}")

        if signal.waiting_input:
            return self.notify_if_ready(normalized, entry.time)
        return "buffered"

    # --- Extraction ---

    def find_last_matching_entry(self, patterns) -> Optional[BufferEntry]:
        for entry in reversed(self.buffer):
            if matches_any(entry.line, patterns):
                return entry
        return None

    def extract_assistant_block(self) -> str:
        """Most recent start..end block; an unterminated trailing block wins."""
        if not self.block_start_patterns:
            return ""

        active = False
        current: list[str] = []
        last_complete = ""

        for entry in self.buffer:
            text = entry.line
            if not active:
                if matches_any(text, self.block_start_patterns):
                    active = True
                    current = []
                continue

            if self.block_end_patterns and matches_any(text, self.block_end_patterns):
                if current:
                    last_complete = "\n".join(current)
                active = False
                current = []
                continue

            current.append(text)

        if active and current:
            return "\n".join(current)
        return last_complete

    def extract_tail_message(self) -> str:
        """Last tail_lines lines that are neither trigger lines nor noise."""
        lines: list[str] = []
        for entry in reversed(self.buffer):
            text = entry.line
            if matches_any(text, self.waiting_input_patterns):
                continue
            if matches_any(text, self.build_complete_patterns):
                continue
            if matches_any(text, self.noise_patterns):
                continue
            lines.append(text)
            if len(lines) >= self.config.parser.tail_lines:
                break
        return "\n".join(reversed(lines))

    def extract_message(self) -> str:
        extracted = normalize_text(self.extract_assistant_block())
        if extracted:
            return extracted
        tail = normalize_text(self.extract_tail_message())
        if self.classifier.is_intermediate_analysis(tail):
            return ""
        return tail

    # --- Decision ---

    def _decision(self, decision: str, trigger_line: str, error: Optional[str] = None) -> str:
        self.event_log.log(
            "line_notify",
            result=decision,
            error=error,
            extra={"trigger": trigger_line},
        )
        return decision

    def notify_if_ready(self, trigger_line: str, now: Optional[float] = None) -> str:
        now = self.clock() if now is None else now

        if not self.notification_enabled:
            return "disabled"
        if self.pending:
            return "pending"
        if not self.last_build_complete_at:
            return "no_build_complete"
        if now - self.last_build_complete_at > self.config.detection.ready_window_ms:
            return "outside_window"
        if self.last_notification_at and now - self.last_notification_at < self.config.detection.cooldown_ms:
            return "cooldown"

        self.pending = True
        try:
            extracted = self.extract_message()
            if extracted and self.classifier.is_intermediate_analysis(extracted):
                logger.info("Skipped notification: extracted text looks like an intermediate analysis block")
                return self._decision("intermediate", trigger_line)

            start_entry = self.find_last_matching_entry(self.build_complete_patterns)
            started_at = start_entry.time if start_entry else self.last_build_complete_at
            elapsed_ms = max(0, now - started_at)

            content = self.composer.line_notification(
                extracted,
                measured_at=now,
                elapsed_ms=elapsed_ms,
                command_preview=self.config.command.preview,
            )
            self.send(content)

            self.last_notification_at = now
            self.notification_count += 1
            logger.info(f"Notification sent (count={self.notification_count}) on line: {trigger_line}")

            if self.once:
                self.notification_enabled = False
                logger.info("--once enabled: further notifications disabled")
            return self._decision("sent", trigger_line)

        except DeliveryError as e:
            logger.error(f"Notification failed: {e}")
            return self._decision("delivery_failed", trigger_line, error=str(e))
        finally:
            self.pending = False
