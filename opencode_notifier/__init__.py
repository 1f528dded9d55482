"""
opencode-notifier - Discord notifications for an AI coding assistant.

This package provides:
- Event mode: consumes host plugin events and pings when a turn finishes,
  is cancelled or fails, or when the assistant waits on a human
- Line mode: wraps the assistant CLI and pings on build-complete -> waiting-input
- Progress status messages edited in place, one thread per session
- Deduplication, cooldowns and intermediate-analysis suppression

Quick start:
    from opencode_notifier import load_config, build_engine

    config = load_config(profile="work")
    engine = build_engine(config, workspace_name="my-repo")
    engine.handle_event({"type": "session.idle", "properties": {"sessionID": "ses_1"}})

CLI usage:
    opencode-notifier run -- opencode
    opencode-notifier events < events.jsonl
"""

__version__ = "0.1.0"

from .config import (
    NotifierConfig,
    TriggerConfig,
    MessageConfig,
    DiscordConfig,
    EnvironmentConfig,
    Target,
    load_config,
    validate_config,
    has_usable_discord_config,
)
from .exceptions import (
    NotifierError,
    ConfigurationError,
    DeliveryError,
    ThreadCreationError,
)
from .classify import Classifier
from .events import Event
from .session import Notice, SessionState, SessionStore
from .compose import MessageComposer
from .engine import TriggerEngine, NoopEngine, build_engine
from .linewatch import LineNotifier
from .eventlog import EventLog

__all__ = [
    "__version__",
    # Config
    "NotifierConfig",
    "TriggerConfig",
    "MessageConfig",
    "DiscordConfig",
    "EnvironmentConfig",
    "Target",
    "load_config",
    "validate_config",
    "has_usable_discord_config",
    # Exceptions
    "NotifierError",
    "ConfigurationError",
    "DeliveryError",
    "ThreadCreationError",
    # Engines
    "Classifier",
    "Event",
    "Notice",
    "SessionState",
    "SessionStore",
    "MessageComposer",
    "TriggerEngine",
    "NoopEngine",
    "build_engine",
    "LineNotifier",
    "EventLog",
]
