"""Tests for configuration loading and validation."""

import json
import logging
import os
import sys
import pytest
from unittest.mock import patch

from opencode_notifier.config import (
    DiscordConfig,
    EnvironmentConfig,
    MessageConfig,
    NotifierConfig,
    Target,
    TriggerConfig,
    find_config_file,
    has_usable_discord_config,
    is_placeholder,
    load_config,
    resolve_runtime_environment_key,
    resolve_workspace_name,
    snake_case,
    validate_config,
)
from opencode_notifier.exceptions import ConfigurationError

from conftest import make_config


class TestFromDict:
    """Test NotifierConfig.from_dict."""

    def test_camel_case_keys(self):
        """Plugin-style camelCase keys map onto the dataclass fields."""
        config = NotifierConfig.from_dict({
            "dryRun": True,
            "trigger": {"notifyOnStatusIdle": True, "cooldownMs": 0},
            "discord": {
                "botToken": "abc",
                "targets": [{"type": "USER", "id": " 42 "}],
                "sessionThreadAutoArchiveMinutes": 60,
            },
        })
        assert config.dry_run is True
        assert config.trigger.notify_on_status_idle is True
        assert config.trigger.cooldown_ms == 0
        assert config.discord.bot_token == "abc"
        assert config.discord.targets == [Target(type="user", id="42")]
        assert config.discord.session_thread_auto_archive_minutes == 60

    def test_snake_case_passes_through(self):
        assert snake_case("sessionThreadAutoArchiveMinutes") == "session_thread_auto_archive_minutes"
        assert snake_case("already_snake") == "already_snake"

    def test_open_code_section_alias(self):
        config = NotifierConfig.from_dict({"openCode": {"command": "oh-my-opencode", "args": ["--tui"]}})
        assert config.command.command == "oh-my-opencode"
        assert config.command.preview == "oh-my-opencode --tui"

    def test_unknown_keys_are_ignored(self, caplog):
        with caplog.at_level(logging.WARNING):
            config = NotifierConfig.from_dict({"trigger": {"bogusKey": 1}, "mystery": True})
        assert config.trigger.cooldown_ms == 60000
        assert "trigger.bogusKey" in caplog.text
        assert "mystery" in caplog.text

    def test_non_mapping_section_raises(self):
        with pytest.raises(ConfigurationError):
            NotifierConfig.from_dict({"trigger": ["not", "a", "mapping"]})

    def test_duplicate_and_malformed_targets_dropped(self):
        config = DiscordConfig(targets=[
            {"type": "user", "id": "1"},
            {"type": "user", "id": "1"},
            {"type": "channel"},
            "garbage",
            {"type": "channel", "id": "2"},
        ])
        assert [t.key for t in config.targets] == ["user:1", "channel:2"]


class TestClamping:
    """Out-of-range values are clamped or replaced with defaults."""

    def test_dedupe_window_clamped(self):
        assert TriggerConfig(dedupe_window_ms=10).dedupe_window_ms == 1000
        assert TriggerConfig(dedupe_window_ms=10 ** 9).dedupe_window_ms == 300_000

    def test_non_numeric_uses_default(self):
        assert TriggerConfig(cooldown_ms="soon").cooldown_ms == 60000
        assert TriggerConfig(cooldown_ms=True).cooldown_ms == 60000

    def test_negative_cooldown_raises(self):
        with pytest.raises(ConfigurationError):
            TriggerConfig(cooldown_ms=-1)

    def test_message_limits(self):
        assert MessageConfig(max_chars=50).max_chars == 300
        assert MessageConfig(max_chars=5000).max_chars == 2000
        assert MessageConfig(mode="poetry").mode == "summary"
        assert MessageConfig(title="   ").title == "OpenCode ready for input"

    def test_invalid_auto_archive_falls_back(self):
        assert DiscordConfig(session_thread_auto_archive_minutes=1000).session_thread_auto_archive_minutes == 1440
        assert DiscordConfig(session_thread_auto_archive_minutes=4320).session_thread_auto_archive_minutes == 4320

    def test_blank_mention_is_none(self):
        assert DiscordConfig(mention_user_id="  ").mention_user_id is None


class TestProfiles:
    """Named profiles merge over the base document."""

    RAW = {
        "message": {"mode": "raw", "title": "Base"},
        "profiles": {
            "work": {"message": {"title": "Work"}},
        },
    }

    def test_profile_overrides_nested_keys(self):
        config = NotifierConfig.from_dict(self.RAW, profile="work")
        assert config.message.title == "Work"
        assert config.message.mode == "raw"

    def test_no_profile_uses_base(self):
        config = NotifierConfig.from_dict(self.RAW)
        assert config.message.title == "Base"

    def test_unknown_profile_raises(self):
        with pytest.raises(ConfigurationError) as exc:
            NotifierConfig.from_dict(self.RAW, profile="home")
        assert "Available: work" in str(exc.value)

    def test_profile_without_profiles_section(self):
        with pytest.raises(ConfigurationError):
            NotifierConfig.from_dict({"message": {}}, profile="work")


class TestFromYaml:
    """Test NotifierConfig.from_yaml."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc:
            NotifierConfig.from_yaml(tmp_path / "nope.yaml")
        assert "not found" in str(exc.value)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("trigger: [unclosed")
        with pytest.raises(ConfigurationError) as exc:
            NotifierConfig.from_yaml(path)
        assert "Invalid YAML" in str(exc.value)

    def test_non_mapping_document(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- one\n- two\n")
        with pytest.raises(ConfigurationError):
            NotifierConfig.from_yaml(path)

    def test_json_plugin_config_loads(self, tmp_path):
        """The plugin's JSON config is valid YAML."""
        path = tmp_path / "opencode-notifier-plugin.json"
        path.write_text(json.dumps({
            "enabled": True,
            "discord": {"botToken": "abc", "targets": [{"type": "channel", "id": "9"}]},
        }))
        config = NotifierConfig.from_yaml(path)
        assert config.discord.targets[0].id == "9"
        assert config.source_path == path

    def test_empty_file_is_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        config = NotifierConfig.from_yaml(path)
        assert config.enabled is True


class TestEnvOverrides:
    """Test apply_env_overrides."""

    def test_token_and_flags(self, tmp_path):
        env = {
            "OPENCODE_NOTIFIER_BOT_TOKEN": "env-token",
            "OPENCODE_NOTIFIER_MENTION_USER_ID": "77",
            "OPENCODE_NOTIFIER_ENABLED": "false",
            "OPENCODE_NOTIFIER_DRY_RUN": "TRUE",
            "OPENCODE_NOTIFIER_LOG_DIR": str(tmp_path),
        }
        with patch.dict(os.environ, env):
            config = NotifierConfig.default().apply_env_overrides()

        assert config.discord.bot_token == "env-token"
        assert config.discord.mention_user_id == "77"
        assert config.enabled is False
        assert config.dry_run is True
        assert config.logging.log_dir == tmp_path

    def test_discord_bot_token_fallback(self):
        with patch.dict(os.environ, {"DISCORD_BOT_TOKEN": "fallback"}):
            os.environ.pop("OPENCODE_NOTIFIER_BOT_TOKEN", None)
            config = NotifierConfig.from_env()
        assert config.discord.bot_token == "fallback"


class TestEnvironmentLabel:
    def test_explicit_key(self):
        assert resolve_runtime_environment_key({"OPENCODE_ENV_KEY": "  box-1 "}) == "box-1"

    def test_platform_host_user(self):
        key = resolve_runtime_environment_key({"HOSTNAME": "DevBox", "USER": "Sam"})
        assert key == f"{sys.platform}:devbox:sam"

    def test_label_lookup(self):
        env = EnvironmentConfig(labels_by_key={"k": "Laptop"}, runtime_key="k")
        assert env.label == "Laptop"
        assert env.requires_setup is False

        unknown = EnvironmentConfig(labels_by_key={"k": "Laptop"}, runtime_key="other")
        assert unknown.requires_setup is True


class TestUsableDiscordConfig:
    """Test has_usable_discord_config and is_placeholder."""

    def test_usable(self):
        assert has_usable_discord_config(make_config())

    def test_placeholder_token(self):
        config = make_config(discord=DiscordConfig(
            bot_token="PUT_YOUR_BOT_TOKEN_HERE", targets=[{"type": "user", "id": "1"}]
        ))
        assert not has_usable_discord_config(config)

    def test_no_targets(self):
        config = make_config(discord=DiscordConfig(bot_token="real"))
        assert not has_usable_discord_config(config)

    def test_placeholder_target(self):
        config = make_config(discord=DiscordConfig(
            bot_token="real", targets=[{"type": "user", "id": "YOUR_USER_ID"}]
        ))
        assert not has_usable_discord_config(config)

    def test_is_placeholder(self):
        assert is_placeholder("")
        assert is_placeholder(None)
        assert is_placeholder("your_token")
        assert not is_placeholder("MTIz.abc")


class TestValidateConfig:
    """Test validate_config function."""

    def test_valid_config_returns_empty_warnings(self):
        assert validate_config(make_config()) == []

    def test_line_mode_requires_token(self):
        config = make_config(discord=DiscordConfig(targets=[{"type": "user", "id": "1"}]))
        with pytest.raises(ConfigurationError) as exc:
            validate_config(config, require_delivery=True)
        assert "bot_token" in str(exc.value)

    def test_line_mode_requires_targets(self):
        config = make_config(discord=DiscordConfig(bot_token="real"))
        with pytest.raises(ConfigurationError) as exc:
            validate_config(config, require_delivery=True)
        assert "targets" in str(exc.value)

    def test_dry_run_skips_delivery_requirement(self):
        config = make_config(dry_run=True, discord=DiscordConfig())
        warnings = validate_config(config, require_delivery=True)
        assert all("bot_token" not in w for w in warnings)

    def test_event_mode_warns_without_discord(self):
        config = make_config(discord=DiscordConfig())
        warnings = validate_config(config)
        assert len(warnings) == 1
        assert "not configured" in warnings[0]

    def test_unknown_target_type_raises(self):
        config = make_config(discord=DiscordConfig(bot_token="real", targets=[{"type": "webhook", "id": "1"}]))
        with pytest.raises(ConfigurationError) as exc:
            validate_config(config)
        assert "unknown target type 'webhook'" in str(exc.value)

    def test_placeholder_mention_warns(self):
        config = make_config(discord=DiscordConfig(
            bot_token="real", targets=[{"type": "user", "id": "1"}], mention_user_id="YOUR_ID"
        ))
        warnings = validate_config(config)
        assert any("mention_user_id" in w for w in warnings)

    def test_unregistered_environment_warns(self):
        config = make_config(environment=EnvironmentConfig(runtime_key="elsewhere"))
        warnings = validate_config(config)
        assert len(warnings) == 1
        assert "elsewhere" in warnings[0]

    def test_disabled_warns(self):
        warnings = validate_config(make_config(enabled=False))
        assert warnings == ["Notifications are disabled (enabled: false)"]


class TestDiscovery:
    """Config file lookup order."""

    @pytest.fixture(autouse=True)
    def isolated_user_dirs(self, tmp_path):
        with patch("opencode_notifier.config.user_config_dirs", return_value=[tmp_path / "user"]):
            yield

    def test_worktree_dotdir_wins(self, tmp_path):
        project = tmp_path / "project"
        (project / ".opencode").mkdir(parents=True)
        (project / ".opencode" / "opencode-notifier.yaml").write_text("enabled: true\n")
        (project / "opencode-notifier.config.json").write_text("{}")

        assert find_config_file(project) == project.resolve() / ".opencode" / "opencode-notifier.yaml"

    def test_legacy_file(self, tmp_path):
        project = tmp_path / "project"
        project.mkdir()
        (project / "opencode-notifier.config.json").write_text("{}")

        assert find_config_file(project) == project.resolve() / "opencode-notifier.config.json"

    def test_user_dir(self, tmp_path):
        (tmp_path / "user").mkdir()
        (tmp_path / "user" / "opencode-notifier.yml").write_text("enabled: false\n")

        assert find_config_file(tmp_path / "empty") == tmp_path / "user" / "opencode-notifier.yml"

    def test_nothing_found(self, tmp_path):
        assert find_config_file(tmp_path / "empty") is None

    def test_load_config_defaults_when_missing(self, tmp_path):
        config = load_config(directory=tmp_path / "empty")
        assert config.source_path is None

    def test_load_config_profile_without_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config(profile="work", directory=tmp_path / "empty")

    def test_load_config_explicit_path(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text("message:\n  title: Custom\n")
        config = load_config(path)
        assert config.message.title == "Custom"
        assert config.source_path == path


class TestMisc:
    def test_workspace_name(self, tmp_path):
        assert resolve_workspace_name(worktree=tmp_path / "my-repo") == "my-repo"
        assert resolve_workspace_name(directory=tmp_path / "other") == "other"

    def test_to_dict_masks_token(self):
        data = make_config().to_dict()
        assert data["discord"]["bot_token"] == "***"
        assert data["discord"]["targets"] == [{"type": "channel", "id": "100"}]
        assert data["environment"]["label"] == "Test Box"

    def test_classifier_overrides(self):
        config = NotifierConfig.from_dict({"classifier": {"delegationTools": ["spawn_agent"]}})
        classifier = config.build_classifier()
        assert classifier.is_delegation_tool("spawn_agent")
        assert not classifier.is_delegation_tool("task")
