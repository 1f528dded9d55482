"""Persisted map of session -> Discord thread, so threads survive restarts."""

import json
import logging
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from ..config import user_config_dirs
from ..events import is_generic_session_title
from ..text import normalize_single_line

logger = logging.getLogger(__name__)

THREAD_ROUTE_STORE_FILE = "opencode-notifier-session-threads.json"
THREAD_ROUTE_STORE_VERSION = 1
THREAD_ROUTE_MAX_AGE_MS = 1000 * 60 * 60 * 24 * 21  # 21 days


def default_route_store_path() -> Path:
    return user_config_dirs()[0] / THREAD_ROUTE_STORE_FILE


def thread_identity_keys(workspace_name: str, session_id: str, session_title: str = "") -> list[str]:
    """Identity keys for a session: by id, and by title when the title is specific.

    The title key lets a session find its old thread after its id changes.
    """
    workspace = normalize_single_line(workspace_name, 80).lower() or "workspace"
    keys = []

    session_id = normalize_single_line(session_id, 120)
    if session_id:
        keys.append(f"workspace:{workspace}|session:{session_id}")

    title = normalize_single_line(session_title, 160)
    if title and not is_generic_session_title(title):
        keys.append(f"workspace:{workspace}|title:{title.lower()}")

    return keys


def route_key(parent_channel_id: str, identity_key: str) -> str:
    return f"{parent_channel_id}::{identity_key}"


class ThreadRouteStore:
    """Versioned JSON document of `{parent::identity: {threadId, updatedAt}}`.

    Entries older than max_age_ms are pruned on load. Every change is written
    through immediately (temp file + rename). Write failures are logged; the
    in-memory routes stay usable.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        max_age_ms: float = THREAD_ROUTE_MAX_AGE_MS,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.path = Path(path) if path else default_route_store_path()
        self.max_age_ms = max_age_ms
        self.clock = clock or (lambda: time.time() * 1000)
        self._lock = threading.Lock()
        self.routes: dict = {}
        self.load()

    def _normalize(self, raw) -> dict:
        if not isinstance(raw, dict) or not isinstance(raw.get("routes"), dict):
            return {}

        now = self.clock()
        routes = {}
        for key, value in raw["routes"].items():
            if not isinstance(key, str) or not isinstance(value, dict):
                continue
            thread_id = normalize_single_line(value.get("threadId"), 120)
            if not thread_id:
                continue
            updated_at = value.get("updatedAt")
            if isinstance(updated_at, bool) or not isinstance(updated_at, (int, float)):
                updated_at = now
            if now - updated_at > self.max_age_ms:
                continue
            routes[key] = {"threadId": thread_id, "updatedAt": updated_at}
        return routes

    def load(self) -> None:
        with self._lock:
            if not self.path.exists():
                self.routes = {}
                return
            try:
                self.routes = self._normalize(json.loads(self.path.read_text(encoding="utf-8")))
            except (OSError, ValueError) as e:
                logger.warning(f"Could not load thread routes from {self.path}: {e}")
                self.routes = {}

    def _persist(self) -> None:
        self.routes = self._normalize({"routes": self.routes})
        document = {"version": THREAD_ROUTE_STORE_VERSION, "routes": self.routes}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_file = self.path.with_suffix(".tmp")
            tmp_file.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")
            tmp_file.replace(self.path)
        except OSError as e:
            logger.warning(f"Could not save thread routes to {self.path}: {e}")

    def find(self, parent_channel_id: str, identity_keys: list[str]) -> Optional[str]:
        with self._lock:
            for identity_key in identity_keys:
                entry = self.routes.get(route_key(parent_channel_id, identity_key))
                if entry and entry.get("threadId"):
                    return entry["threadId"]
        return None

    def remember(self, parent_channel_id: str, identity_keys: list[str], thread_id: str) -> None:
        with self._lock:
            now = self.clock()
            changed = False
            for identity_key in identity_keys:
                key = route_key(parent_channel_id, identity_key)
                if self.routes.get(key, {}).get("threadId") == thread_id:
                    continue
                self.routes[key] = {"threadId": thread_id, "updatedAt": now}
                changed = True
            if changed:
                self._persist()

    def forget(self, parent_channel_id: str, identity_keys: list[str]) -> None:
        with self._lock:
            changed = False
            for identity_key in identity_keys:
                if self.routes.pop(route_key(parent_channel_id, identity_key), None) is not None:
                    changed = True
            if changed:
                self._persist()

    def __len__(self) -> int:
        return len(self.routes)
