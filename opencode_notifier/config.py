"""
Configuration management for the notifier.

Supports:
- Programmatic configuration via dataclasses
- YAML file loading (JSON config files are valid YAML and load the same way)
- camelCase keys from the plugin's JSON format, next to snake_case
- Named profiles merged over the base document
- Environment variable and .env overrides for credentials
"""

import logging
import os
import re
import sys
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from .classify import Classifier
from .exceptions import ConfigurationError
from .text import normalize_single_line

logger = logging.getLogger(__name__)

# Discord platform limits
DISCORD_CONTENT_LIMIT = 2000
DISCORD_THREAD_NAME_LIMIT = 100
DISCORD_THREAD_AUTO_ARCHIVE_MINUTES = (60, 1440, 4320, 10080)
DEFAULT_AUTO_ARCHIVE_MINUTES = 1440

MESSAGE_MODES = ("raw", "cleaned", "summary")
DEFAULT_TITLE = "OpenCode ready for input"
DEFAULT_WORKSPACE_NAME = "OpenCode"
DEFAULT_COMMAND_CANDIDATES = ["opencode", "oh-my-opencode", "opencode-cli"]

MIN_DEDUPE_WINDOW_MS = 1000
MAX_DEDUPE_WINDOW_MS = 300_000
MIN_MESSAGE_CHARS = 300

CONFIG_FILE_NAMES = [
    "opencode-notifier.yaml",
    "opencode-notifier.yml",
    "opencode-notifier.json",
    "opencode-notifier-plugin.json",
]
LEGACY_CONFIG_FILE_NAME = "opencode-notifier.config.json"

LOG_DIR = Path.home() / ".opencode-notifier" / "logs"

PLACEHOLDER_MARKERS = ("PUT_YOUR", "YOUR_", "DISCORD_BOT_TOKEN")

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _as_number(value, default):
    """Finite int/float or the default; bools and strings are not numbers."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if value != value or value in (float("inf"), float("-inf")):
        return default
    return value


def _as_bool(value, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    return default


def _string_list(values) -> list[str]:
    """Unique non-empty strings, order preserved."""
    if not isinstance(values, (list, tuple)):
        return []
    result = []
    for value in values:
        if not isinstance(value, str):
            continue
        text = value.strip()
        if text and text not in result:
            result.append(text)
    return result


def is_placeholder(value) -> bool:
    """Empty or template values such as "PUT_YOUR_BOT_TOKEN_HERE"."""
    text = ("" if value is None else str(value)).strip()
    if not text:
        return True
    upper = text.upper()
    return any(marker in upper for marker in PLACEHOLDER_MARKERS)


@dataclass
class TriggerConfig:
    """When event mode is allowed to notify."""

    notify_on_session_idle: bool = True
    notify_on_status_idle: bool = False
    cooldown_ms: float = 60000
    dedupe_window_ms: float = 15000
    require_assistant_message: bool = True

    def __post_init__(self):
        self.notify_on_session_idle = _as_bool(self.notify_on_session_idle, True)
        self.notify_on_status_idle = _as_bool(self.notify_on_status_idle, False)
        self.require_assistant_message = _as_bool(self.require_assistant_message, True)
        self.cooldown_ms = _as_number(self.cooldown_ms, 60000)
        if self.cooldown_ms < 0:
            raise ConfigurationError("trigger.cooldown_ms cannot be negative")
        window = _as_number(self.dedupe_window_ms, 15000)
        self.dedupe_window_ms = min(max(MIN_DEDUPE_WINDOW_MS, window), MAX_DEDUPE_WINDOW_MS)


@dataclass
class MessageConfig:
    """How notification bodies are rendered."""

    mode: str = "summary"  # raw, cleaned, summary
    title: str = DEFAULT_TITLE
    include_metadata: bool = False
    include_raw_in_code_block: bool = False
    max_chars: int = 1900
    summary_max_bullets: int = 8

    def __post_init__(self):
        if self.mode not in MESSAGE_MODES:
            self.mode = "summary"
        if not isinstance(self.title, str) or not self.title.strip():
            self.title = DEFAULT_TITLE
        self.title = self.title.strip()
        self.include_metadata = _as_bool(self.include_metadata, False)
        self.include_raw_in_code_block = _as_bool(self.include_raw_in_code_block, False)
        max_chars = int(_as_number(self.max_chars, 1900))
        self.max_chars = min(max(MIN_MESSAGE_CHARS, max_chars), DISCORD_CONTENT_LIMIT)
        self.summary_max_bullets = int(_as_number(self.summary_max_bullets, 8))
        if self.summary_max_bullets < 1:
            raise ConfigurationError("message.summary_max_bullets must be positive")


@dataclass(frozen=True)
class Target:
    """A delivery destination: a Discord user (DM) or channel."""

    type: str  # user, channel
    id: str

    @property
    def key(self) -> str:
        return f"{self.type}:{self.id}"


def sanitize_targets(raw_targets) -> list[Target]:
    """Lower-case types, drop malformed entries and duplicates."""
    if not isinstance(raw_targets, (list, tuple)):
        return []

    targets = []
    seen = set()
    for raw in raw_targets:
        if isinstance(raw, Target):
            raw = {"type": raw.type, "id": raw.id}
        if not isinstance(raw, dict):
            continue
        if not isinstance(raw.get("type"), str) or not isinstance(raw.get("id"), str):
            continue

        target_type = normalize_single_line(raw["type"], 20).lower()
        target_id = normalize_single_line(raw["id"], 120)
        if not target_type or not target_id:
            continue

        target = Target(type=target_type, id=target_id)
        if target.key in seen:
            continue
        seen.add(target.key)
        targets.append(target)
    return targets


@dataclass
class DiscordConfig:
    """Bot credentials, targets and thread behaviour."""

    bot_token: str = ""
    targets: list = field(default_factory=list)
    mention_user_id: Optional[str] = None
    timeout_ms: float = 10000
    session_threads_enabled: bool = True
    session_thread_auto_archive_minutes: int = DEFAULT_AUTO_ARCHIVE_MINUTES

    def __post_init__(self):
        if not isinstance(self.bot_token, str):
            self.bot_token = ""
        self.targets = sanitize_targets(self.targets)
        if not isinstance(self.mention_user_id, str) or not self.mention_user_id.strip():
            self.mention_user_id = None
        self.timeout_ms = _as_number(self.timeout_ms, 10000)
        if self.timeout_ms <= 0:
            raise ConfigurationError("discord.timeout_ms must be positive")
        self.session_threads_enabled = _as_bool(self.session_threads_enabled, True)

        minutes = _as_number(self.session_thread_auto_archive_minutes, DEFAULT_AUTO_ARCHIVE_MINUTES)
        minutes = int(round(minutes))
        if minutes not in DISCORD_THREAD_AUTO_ARCHIVE_MINUTES:
            minutes = DEFAULT_AUTO_ARCHIVE_MINUTES
        self.session_thread_auto_archive_minutes = minutes


def resolve_runtime_environment_key(env: Optional[dict] = None) -> str:
    """OPENCODE_ENV_KEY, else platform:host:user."""
    env = os.environ if env is None else env
    explicit = normalize_single_line(env.get("OPENCODE_ENV_KEY"), 160)
    if explicit:
        return explicit

    host = normalize_single_line(
        env.get("OPENCODE_ENV_HOST") or env.get("COMPUTERNAME") or env.get("HOSTNAME") or "unknown-host",
        60,
    ).lower()
    user = normalize_single_line(
        env.get("OPENCODE_ENV_USER") or env.get("USERNAME") or env.get("USER") or "unknown-user",
        60,
    ).lower()
    return f"{sys.platform}:{host}:{user}"


def sanitize_environment_labels(raw_labels) -> Dict[str, str]:
    if not isinstance(raw_labels, dict):
        return {}
    labels = {}
    for raw_key, raw_label in raw_labels.items():
        key = normalize_single_line(raw_key, 160)
        label = normalize_single_line(raw_label, 60)
        if key and label:
            labels[key] = label
    return labels


@dataclass
class EnvironmentConfig:
    """Human labels for the machines the notifier runs on.

    runtime_key is resolved from the process environment unless given.
    """

    labels_by_key: dict = field(default_factory=dict)
    runtime_key: str = ""

    def __post_init__(self):
        self.labels_by_key = sanitize_environment_labels(self.labels_by_key)
        if not self.runtime_key:
            self.runtime_key = resolve_runtime_environment_key()

    @property
    def label(self) -> str:
        return self.labels_by_key.get(self.runtime_key, "")

    @property
    def requires_setup(self) -> bool:
        return not self.label


@dataclass
class DetectionConfig:
    """Line mode: which lines mean "build complete" and "waiting for input"."""

    build_complete_patterns: list = field(default_factory=list)
    waiting_input_patterns: list = field(default_factory=list)
    ready_window_ms: float = 120000
    cooldown_ms: float = 90000

    def __post_init__(self):
        self.build_complete_patterns = _string_list(self.build_complete_patterns)
        self.waiting_input_patterns = _string_list(self.waiting_input_patterns)
        self.ready_window_ms = _as_number(self.ready_window_ms, 120000)
        self.cooldown_ms = _as_number(self.cooldown_ms, 90000)
        if self.ready_window_ms <= 0:
            raise ConfigurationError("detection.ready_window_ms must be positive")
        if self.cooldown_ms < 0:
            raise ConfigurationError("detection.cooldown_ms cannot be negative")


@dataclass
class ParserConfig:
    """Line mode: how the assistant's reply is cut out of the output buffer."""

    assistant_block_start_patterns: list = field(default_factory=list)
    assistant_block_end_patterns: list = field(default_factory=list)
    noise_patterns: list = field(default_factory=list)
    tail_lines: int = 24
    max_buffer_lines: int = 800

    def __post_init__(self):
        self.assistant_block_start_patterns = _string_list(self.assistant_block_start_patterns)
        self.assistant_block_end_patterns = _string_list(self.assistant_block_end_patterns)
        self.noise_patterns = _string_list(self.noise_patterns)
        self.tail_lines = int(_as_number(self.tail_lines, 24))
        self.max_buffer_lines = int(_as_number(self.max_buffer_lines, 800))
        if self.tail_lines <= 0:
            raise ConfigurationError("parser.tail_lines must be positive")
        if self.max_buffer_lines <= 0:
            raise ConfigurationError("parser.max_buffer_lines must be positive")


@dataclass
class CommandConfig:
    """Line mode: the assistant CLI to wrap."""

    command: str = "opencode"
    args: list = field(default_factory=list)
    command_candidates: list = field(default_factory=list)
    use_shell: bool = False
    cwd: Optional[Path] = None
    env: dict = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.command, str) or not self.command.strip():
            raise ConfigurationError("command.command must be a non-empty string")
        self.args = [str(arg) for arg in self.args] if isinstance(self.args, (list, tuple)) else []
        self.command_candidates = _string_list(self.command_candidates)
        self.use_shell = _as_bool(self.use_shell, False)
        if isinstance(self.cwd, str):
            self.cwd = Path(os.path.expanduser(self.cwd))
        self.env = {str(k): str(v) for k, v in self.env.items()} if isinstance(self.env, dict) else {}

    @property
    def preview(self) -> str:
        return " ".join([self.command, *self.args]).strip()


@dataclass
class ClassifierConfig:
    """Overrides for the heuristic keyword lists; None keeps the built-in list."""

    hard_markers: Optional[list] = None
    soft_markers: Optional[list] = None
    soft_marker_threshold: Optional[int] = None
    interrupt_keywords: Optional[list] = None
    transient_keywords: Optional[list] = None
    termination_rules: Optional[Any] = None
    subagent_title_patterns: Optional[list] = None
    delegation_tools: Optional[list] = None

    def build(self) -> Classifier:
        raw = {f.name: getattr(self, f.name) for f in fields(self)}
        return Classifier.from_config(raw)


@dataclass
class LoggingConfig:
    """Decision log (JSONL) settings."""

    enabled: bool = True
    log_dir: Path = field(default_factory=lambda: LOG_DIR)

    def __post_init__(self):
        if isinstance(self.log_dir, str):
            self.log_dir = Path(os.path.expanduser(self.log_dir))

    @property
    def directory(self) -> Optional[Path]:
        return self.log_dir if self.enabled else None


SECTIONS = {
    "trigger": TriggerConfig,
    "message": MessageConfig,
    "discord": DiscordConfig,
    "environment": EnvironmentConfig,
    "detection": DetectionConfig,
    "parser": ParserConfig,
    "command": CommandConfig,
    "classifier": ClassifierConfig,
    "logging": LoggingConfig,
}
SECTION_ALIASES = {
    "open_code": "command",
    "opencode": "command",
}


def snake_case(key: str) -> str:
    """notifyOnSessionIdle -> notify_on_session_idle; snake_case passes through."""
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _section_kwargs(name: str, raw) -> dict:
    """Snake-case one section's keys and drop the ones the dataclass lacks."""
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config section '{name}' must be a mapping")

    known = {f.name for f in fields(SECTIONS[name])}
    kwargs = {}
    for key, value in raw.items():
        snake = snake_case(str(key))
        if snake not in known:
            logger.warning(f"Ignoring unknown config key: {name}.{key}")
            continue
        kwargs[snake] = value
    return kwargs


def deep_merge(base: dict, override: dict) -> dict:
    """Recursive dict merge; override wins, nested mappings merge."""
    result = dict(base)
    for key, value in override.items():
        previous = result.get(key)
        if isinstance(previous, dict) and isinstance(value, dict):
            result[key] = deep_merge(previous, value)
        else:
            result[key] = value
    return result


def apply_profile(raw: dict, profile: Optional[str]) -> dict:
    """Merge `profiles.<profile>` over the document and drop `profiles`."""
    if not profile:
        return raw

    profiles = raw.get("profiles")
    if not isinstance(profiles, dict):
        raise ConfigurationError("--profile requires a 'profiles' section in the config file")

    selected = profiles.get(profile)
    if not isinstance(selected, dict):
        available = ", ".join(profiles) or "(none)"
        raise ConfigurationError(f"Unknown profile '{profile}'. Available: {available}")

    merged = deep_merge(raw, selected)
    merged.pop("profiles", None)
    return merged


@dataclass
class NotifierConfig:
    """Master configuration.

    Example usage:
        # Defaults
        config = NotifierConfig.default()

        # From file, with a profile
        config = NotifierConfig.from_yaml(Path("opencode-notifier.yaml"), profile="work")

        # Programmatic
        config = NotifierConfig(
            discord=DiscordConfig(bot_token="...", targets=[{"type": "user", "id": "123"}]),
        )
    """

    enabled: bool = True
    dry_run: bool = False
    trigger: TriggerConfig = field(default_factory=TriggerConfig)
    message: MessageConfig = field(default_factory=MessageConfig)
    discord: DiscordConfig = field(default_factory=DiscordConfig)
    environment: EnvironmentConfig = field(default_factory=EnvironmentConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    parser: ParserConfig = field(default_factory=ParserConfig)
    command: CommandConfig = field(default_factory=CommandConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    source_path: Optional[Path] = None

    @classmethod
    def from_yaml(cls, path: Path, profile: Optional[str] = None) -> "NotifierConfig":
        """Load configuration from a YAML (or JSON) file.

        Raises:
            ConfigurationError: If file not found or invalid
        """
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {path}")

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}")

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file must contain a mapping: {path}")

        config = cls.from_dict(data, profile=profile)
        config.source_path = path
        return config

    @classmethod
    def from_dict(cls, data: Dict[str, Any], profile: Optional[str] = None) -> "NotifierConfig":
        """Create config from a (possibly camelCase) dictionary."""
        data = apply_profile(data or {}, profile)

        sections: Dict[str, dict] = {}
        top_level: Dict[str, Any] = {}
        for key, value in data.items():
            name = snake_case(str(key))
            name = SECTION_ALIASES.get(name, name)
            if name in SECTIONS:
                sections[name] = _section_kwargs(name, value)
            elif name in ("enabled", "dry_run"):
                top_level[name] = value
            elif name not in ("profiles", "$schema"):
                logger.warning(f"Ignoring unknown config key: {key}")

        return cls(
            enabled=_as_bool(top_level.get("enabled"), True),
            dry_run=_as_bool(top_level.get("dry_run"), False),
            **{name: SECTIONS[name](**kwargs) for name, kwargs in sections.items()},
        )

    @classmethod
    def default(cls) -> "NotifierConfig":
        """Create configuration with all defaults."""
        return cls()

    @classmethod
    def from_env(cls) -> "NotifierConfig":
        """Default configuration with environment variable overrides."""
        return cls.default().apply_env_overrides()

    def apply_env_overrides(self) -> "NotifierConfig":
        """Apply environment variable overrides in place.

        Supported environment variables:
        - OPENCODE_NOTIFIER_BOT_TOKEN (or DISCORD_BOT_TOKEN): bot credential
        - OPENCODE_NOTIFIER_MENTION_USER_ID: user to mention
        - OPENCODE_NOTIFIER_ENABLED: enable/disable notifications (true/false)
        - OPENCODE_NOTIFIER_DRY_RUN: print payloads instead of sending (true/false)
        - OPENCODE_NOTIFIER_LOG_DIR: decision log directory
        """
        if token := os.environ.get("OPENCODE_NOTIFIER_BOT_TOKEN") or os.environ.get("DISCORD_BOT_TOKEN"):
            self.discord.bot_token = token
        if mention := os.environ.get("OPENCODE_NOTIFIER_MENTION_USER_ID"):
            self.discord.mention_user_id = mention
        if enabled := os.environ.get("OPENCODE_NOTIFIER_ENABLED"):
            self.enabled = enabled.lower() == "true"
        if dry_run := os.environ.get("OPENCODE_NOTIFIER_DRY_RUN"):
            self.dry_run = dry_run.lower() == "true"
        if log_dir := os.environ.get("OPENCODE_NOTIFIER_LOG_DIR"):
            self.logging.log_dir = Path(os.path.expanduser(log_dir))
        return self

    def build_classifier(self) -> Classifier:
        """Classifier with this config's keyword overrides; defaults fill the gaps."""
        return self.classifier.build()

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary (for display). The bot token is masked."""
        return {
            "enabled": self.enabled,
            "dry_run": self.dry_run,
            "trigger": {
                "notify_on_session_idle": self.trigger.notify_on_session_idle,
                "notify_on_status_idle": self.trigger.notify_on_status_idle,
                "cooldown_ms": self.trigger.cooldown_ms,
                "dedupe_window_ms": self.trigger.dedupe_window_ms,
                "require_assistant_message": self.trigger.require_assistant_message,
            },
            "message": {
                "mode": self.message.mode,
                "title": self.message.title,
                "include_metadata": self.message.include_metadata,
                "include_raw_in_code_block": self.message.include_raw_in_code_block,
                "max_chars": self.message.max_chars,
                "summary_max_bullets": self.message.summary_max_bullets,
            },
            "discord": {
                "bot_token": "***" if self.discord.bot_token else "",
                "targets": [{"type": t.type, "id": t.id} for t in self.discord.targets],
                "mention_user_id": self.discord.mention_user_id,
                "timeout_ms": self.discord.timeout_ms,
                "session_threads_enabled": self.discord.session_threads_enabled,
                "session_thread_auto_archive_minutes": self.discord.session_thread_auto_archive_minutes,
            },
            "environment": {
                "runtime_key": self.environment.runtime_key,
                "label": self.environment.label,
                "requires_setup": self.environment.requires_setup,
            },
            "detection": {
                "ready_window_ms": self.detection.ready_window_ms,
                "cooldown_ms": self.detection.cooldown_ms,
            },
            "parser": {
                "tail_lines": self.parser.tail_lines,
                "max_buffer_lines": self.parser.max_buffer_lines,
            },
            "command": {
                "command": self.command.command,
                "args": list(self.command.args),
            },
            "logging": {
                "enabled": self.logging.enabled,
                "log_dir": str(self.logging.log_dir),
            },
        }


def has_usable_discord_config(config: NotifierConfig) -> bool:
    """A real token and at least one target, none of them placeholders."""
    if is_placeholder(config.discord.bot_token):
        return False
    if not config.discord.targets:
        return False
    return all(not is_placeholder(target.id) for target in config.discord.targets)


def user_config_dirs(env: Optional[dict] = None) -> list[Path]:
    """The host's user-level config directories, most specific first."""
    env = os.environ if env is None else env
    dirs: list[Path] = []

    explicit = normalize_single_line(env.get("OPENCODE_CONFIG_DIR") or env.get("OPENCODE_CONFIG_HOME"), 260)
    if explicit:
        dirs.append(Path(explicit).expanduser().resolve())
    for var in ("XDG_CONFIG_HOME", "APPDATA", "LOCALAPPDATA"):
        base = normalize_single_line(env.get(var), 260)
        if base:
            dirs.append(Path(base) / "opencode")
    dirs.append(Path.home() / ".config" / "opencode")

    unique = []
    for directory in dirs:
        if directory not in unique:
            unique.append(directory)
    return unique


def config_candidates(
    directory: Optional[Path] = None,
    worktree: Optional[Path] = None,
) -> list[Path]:
    """Every path a config file is looked for at, in priority order."""
    cwd_root = Path(directory or Path.cwd()).resolve()
    worktree_root = Path(worktree).resolve() if worktree else cwd_root
    config_dirs = [worktree_root / ".opencode", cwd_root / ".opencode", *user_config_dirs()]

    candidates = []
    for config_dir in config_dirs:
        candidates.extend(config_dir / name for name in CONFIG_FILE_NAMES)
    for root in (worktree_root, cwd_root, *user_config_dirs()):
        candidates.append(root / LEGACY_CONFIG_FILE_NAME)

    unique = []
    for candidate in candidates:
        if candidate not in unique:
            unique.append(candidate)
    return unique


def find_config_file(
    directory: Optional[Path] = None,
    worktree: Optional[Path] = None,
) -> Optional[Path]:
    for candidate in config_candidates(directory, worktree):
        if candidate.is_file():
            return candidate
    return None


def load_config(
    path: Optional[Path] = None,
    profile: Optional[str] = None,
    directory: Optional[Path] = None,
    worktree: Optional[Path] = None,
) -> NotifierConfig:
    """Explicit path, else the first discovered file, else defaults; then env overrides."""
    load_dotenv()
    load_dotenv(Path.home() / ".env")

    if path is None:
        path = find_config_file(directory, worktree)

    if path is None:
        if profile:
            raise ConfigurationError(f"--profile '{profile}' given but no config file was found")
        config = NotifierConfig.default()
    else:
        config = NotifierConfig.from_yaml(Path(path), profile=profile)
        logger.info(f"Loaded config: {path}")

    return config.apply_env_overrides()


def resolve_workspace_name(directory=None, worktree=None) -> str:
    """Base name of the worktree (else the directory, else cwd)."""
    root = Path(worktree or directory or Path.cwd()).resolve()
    return normalize_single_line(root.name, 80) or DEFAULT_WORKSPACE_NAME


def validate_config(config: NotifierConfig, require_delivery: bool = False) -> list[str]:
    """
    Validate configuration. Returns list of warnings.
    Raises ConfigurationError for fatal issues.

    require_delivery is set by line mode, which refuses to start without
    a bot token and targets unless it is a dry run.
    """
    errors = []
    warnings = []

    usable = has_usable_discord_config(config)
    if require_delivery and not config.dry_run:
        if is_placeholder(config.discord.bot_token):
            errors.append("discord.bot_token is required unless --dry-run is used")
        if not config.discord.targets:
            errors.append("discord.targets must contain at least one target unless --dry-run is used")
    elif not usable:
        warnings.append("Discord is not configured (token or targets missing); notifications are disabled")

    for target in config.discord.targets:
        if target.type not in ("user", "channel"):
            errors.append(f"discord.targets: unknown target type '{target.type}' (use user or channel)")
        elif is_placeholder(target.id):
            warnings.append(f"discord.targets: {target.type} id '{target.id}' looks like a placeholder")

    if config.discord.mention_user_id and is_placeholder(config.discord.mention_user_id):
        warnings.append("discord.mention_user_id looks like a placeholder")

    if config.environment.requires_setup:
        warnings.append(
            f"Environment label not registered for key '{config.environment.runtime_key}' "
            "(add it under environment.labels_by_key)"
        )

    if not config.enabled:
        warnings.append("Notifications are disabled (enabled: false)")

    if errors:
        raise ConfigurationError("\n".join(errors))

    return warnings
