"""Shared fixtures for notifier tests."""

import pytest

from opencode_notifier.config import (
    DiscordConfig,
    EnvironmentConfig,
    LoggingConfig,
    MessageConfig,
    NotifierConfig,
    TriggerConfig,
)
from opencode_notifier.exceptions import DeliveryError

START_MS = 1_700_000_000_000


class ManualClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: float = START_MS):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> float:
        self.now += ms
        return self.now


class FakeDelivery:
    """Records what the engine would have sent."""

    def __init__(self):
        self.notifications: list[str] = []
        self.statuses: list[tuple] = []  # (request_id, content)
        self.plain: list[str] = []
        self.fail_next = 0

    def _maybe_fail(self):
        if self.fail_next:
            self.fail_next -= 1
            raise DeliveryError("POST", "/channels/100/messages", status=500, detail="boom")

    def deliver_notification(self, state, render):
        self._maybe_fail()
        self.notifications.append(render(False))

    def upsert_status(self, state, request_id, render):
        self.statuses.append((request_id, render()))

    def send_plain(self, content):
        self._maybe_fail()
        self.plain.append(content)

    @property
    def phases(self) -> list[str]:
        """First line of each status message, which names the phase."""
        return [content.splitlines()[0] for _, content in self.statuses]


def make_config(**overrides) -> NotifierConfig:
    """Usable config with a fixed environment label and no decision log."""
    defaults = dict(
        trigger=TriggerConfig(),
        message=MessageConfig(mode="raw"),
        discord=DiscordConfig(
            bot_token="test-bot-token",
            targets=[{"type": "channel", "id": "100"}],
        ),
        environment=EnvironmentConfig(
            labels_by_key={"test-env": "Test Box"},
            runtime_key="test-env",
        ),
        logging=LoggingConfig(enabled=False),
    )
    defaults.update(overrides)
    return NotifierConfig(**defaults)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def delivery():
    return FakeDelivery()


@pytest.fixture
def config():
    return make_config()
