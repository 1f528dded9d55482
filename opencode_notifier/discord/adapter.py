"""Delivery adapter: maps logical targets to Discord channels and posts to them.

Channel targets get one thread per session when session threads are enabled.
The thread is looked up in memory, then in the persisted route store, and
only then created. A parent channel whose thread creation failed with a
permission/validation error is never asked again for the process lifetime.
"""

import logging
import sys
import threading
from typing import Callable, Optional, TextIO

from ..compose import MessageComposer
from ..config import NotifierConfig, Target
from ..exceptions import DeliveryError
from ..session import SessionState, StatusMessage
from .client import DiscordClient
from .routes import ThreadRouteStore, thread_identity_keys

logger = logging.getLogger(__name__)


class DeliveryAdapter:
    """Sends engine output to every configured target."""

    def __init__(
        self,
        config: NotifierConfig,
        client: DiscordClient,
        route_store: Optional[ThreadRouteStore] = None,
        composer: Optional[MessageComposer] = None,
    ):
        self.config = config
        self.client = client
        self.route_store = route_store
        self.composer = composer or MessageComposer(config)

        self.dm_channel_cache: dict[str, str] = {}
        self.thread_channel_cache: dict[str, str] = {}  # "parent::session" -> thread id
        self.thread_disabled_channels: set = set()
        self._thread_lock = threading.Lock()

    @property
    def targets(self) -> list[Target]:
        return self.config.discord.targets

    def uses_session_thread(self, target: Target) -> bool:
        return self.config.discord.session_threads_enabled and target.type == "channel"

    def _identity_keys(self, state: SessionState) -> list[str]:
        return thread_identity_keys(state.workspace_name, state.session_id, state.session_title)

    # --- Channel resolution ---

    def resolve_channel(
        self,
        target: Target,
        state: Optional[SessionState] = None,
        force_refresh: bool = False,
    ) -> str:
        """Concrete channel id for a target (DM channel, session thread or parent)."""
        if target.type == "channel":
            if not self.uses_session_thread(target) or state is None or not state.session_id:
                return target.id
            return self._resolve_session_thread(target, state, force_refresh)

        if target.type != "user":
            raise DeliveryError("RESOLVE", target.key, detail=f"unknown target type: {target.type}")

        cached = self.dm_channel_cache.get(target.id)
        if cached:
            return cached
        channel_id = self.client.create_dm_channel(target.id)
        self.dm_channel_cache[target.id] = channel_id
        return channel_id

    def _resolve_session_thread(self, target: Target, state: SessionState, force_refresh: bool) -> str:
        cache_key = f"{target.id}::{state.session_id}"
        identity_keys = self._identity_keys(state)

        with self._thread_lock:
            if force_refresh:
                self.thread_channel_cache.pop(cache_key, None)
                if self.route_store is not None:
                    self.route_store.forget(target.id, identity_keys)
            else:
                cached = self.thread_channel_cache.get(cache_key)
                if cached:
                    return cached
                stored = self.route_store.find(target.id, identity_keys) if self.route_store else None
                if stored:
                    self.thread_channel_cache[cache_key] = stored
                    return stored
                if target.id in self.thread_disabled_channels:
                    return target.id

            try:
                thread_id = self._create_session_thread(target.id, state)
            except DeliveryError as e:
                if e.is_permission_error():
                    self.thread_disabled_channels.add(target.id)
                logger.warning(f"Session thread creation failed, using parent channel {target.id}: {e}")
                return target.id

            self.thread_channel_cache[cache_key] = thread_id
            if self.route_store is not None:
                self.route_store.remember(target.id, identity_keys, thread_id)
            logger.info(f"Created session thread {thread_id} in channel {target.id}")
            return thread_id

    def _create_session_thread(self, parent_channel_id: str, state: SessionState) -> str:
        name = self.composer.thread_name(state)
        starter = self.composer.thread_starter_text(state)
        minutes = self.config.discord.session_thread_auto_archive_minutes
        try:
            return self.client.create_thread_from_message(parent_channel_id, name, starter, minutes)
        except DeliveryError as e:
            if not e.is_wrong_endpoint():
                raise
            logger.debug(f"Channel {parent_channel_id} rejected message threads, trying forum route")
            return self.client.create_forum_thread(parent_channel_id, name, starter, minutes)

    def with_target_channel(
        self,
        target: Target,
        state: Optional[SessionState],
        handler: Callable[[str, bool], object],
    ):
        """Run handler(channel_id, is_thread); a failed thread delivery is retried once on the parent."""
        channel_id = self.resolve_channel(target, state)
        is_thread = target.type == "channel" and channel_id != target.id

        try:
            return handler(channel_id, is_thread)
        except DeliveryError as e:
            if not (self.uses_session_thread(target) and is_thread):
                raise
            logger.warning(f"Delivery to thread {channel_id} failed, retrying on parent channel: {e}")
            return handler(target.id, False)

    # --- Engine-facing operations ---

    def deliver_notification(self, state: SessionState, render: Callable[[bool], str]) -> None:
        """Post a notification to every target; render(omit_header) builds the text."""
        mention = self.config.discord.mention_user_id
        for target in self.targets:
            self.with_target_channel(
                target,
                state,
                lambda channel_id, is_thread: self.client.post_message(
                    channel_id, render(is_thread), mention
                ),
            )

    def upsert_status(self, state: SessionState, request_id: str, render: Callable[[], str]) -> None:
        """Edit the request's progress message in place, or post a new one."""
        for target in self.targets:
            def handler(channel_id: str, is_thread: bool, target=target):
                entry = state.status_message_by_target.get(target.key)
                content = render()
                if entry and entry.request_id == request_id and entry.channel_id == channel_id:
                    try:
                        self.client.edit_message(channel_id, entry.message_id, content)
                        return
                    except DeliveryError as e:
                        logger.debug(f"Status edit failed, posting a new message: {e}")

                sent = self.client.post_message(channel_id, content)
                if isinstance(sent.get("id"), str) and sent["id"]:
                    state.status_message_by_target[target.key] = StatusMessage(
                        request_id=request_id,
                        channel_id=channel_id,
                        message_id=sent["id"],
                    )

            self.with_target_channel(target, state, handler)

    def send_plain(self, content: str) -> None:
        """Line mode: one message per target, no threads."""
        mention = self.config.discord.mention_user_id
        for target in self.targets:
            self.client.post_message(self.resolve_channel(target), content, mention)


class DryRunDelivery:
    """Prints payloads instead of calling Discord."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdout
        self.sent: list[str] = []

    def _print(self, label: str, content: str) -> None:
        logger.info("Dry run mode: Discord API call skipped.")
        self.sent.append(content)
        print(f"\n----- DRY RUN {label} BEGIN -----\n{content}\n----- DRY RUN {label} END -----\n", file=self.stream)

    def deliver_notification(self, state: SessionState, render: Callable[[bool], str]) -> None:
        self._print("PAYLOAD", render(False))

    def upsert_status(self, state: SessionState, request_id: str, render: Callable[[], str]) -> None:
        self._print("STATUS", render())

    def send_plain(self, content: str) -> None:
        self._print("PAYLOAD", content)
