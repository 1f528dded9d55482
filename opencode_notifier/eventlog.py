"""JSONL decision log.

One line per engine decision, so "why didn't I get pinged?" can be answered
after the fact:

    {"ts": "...", "run_id": "1a2b3c4d", "session_id": "ses_1", "event": "notify",
     "result": "cooldown", "error": null, "trigger": "session.idle"}
"""

import json
import logging
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Run ID for this notifier process
_run_id: str = str(uuid.uuid4())[:8]


def get_run_id() -> str:
    return _run_id


class EventLog:
    """Append-only JSONL writer; EventLog(None) discards everything."""

    def __init__(self, log_dir: Optional[Path]):
        self.log_dir = Path(log_dir) if log_dir else None
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.log_dir is not None

    def get_log_file(self) -> Optional[Path]:
        """Get today's log file path."""
        if self.log_dir is None:
            return None
        return self.log_dir / f"{datetime.now().strftime('%Y-%m-%d')}.jsonl"

    def log(
        self,
        event: str,
        session_id: Optional[str] = None,
        result: str = "ok",
        error: Optional[str] = None,
        extra: Optional[dict] = None,
    ) -> None:
        """Log an event to the JSONL log file."""
        if not self.enabled:
            return

        entry = {
            "ts": datetime.now().isoformat(),
            "run_id": _run_id,
            "session_id": session_id,
            "event": event,
            "result": result,
            "error": error,
        }
        if extra:
            entry.update(extra)

        with self._lock:
            try:
                self.log_dir.mkdir(parents=True, exist_ok=True)
                with open(self.get_log_file(), "a", encoding="utf-8") as f:
                    f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
            except OSError as e:
                logger.warning(f"Could not write event log: {e}")
