"""External collaborators consumed by the engine.

Account settings (Do Not Disturb and per-channel configuration) and templates
are owned elsewhere; the engine reads them through these protocols on every
use, so settings changes apply to the next occurrence without a restart.
The in-memory implementations back the HTTP surface and the tests.
"""

import threading
from typing import Dict, Optional, Protocol, Tuple, runtime_checkable

from modules.reminders.models import (
    Channel,
    ChannelConfig,
    DoNotDisturbConfig,
    NotificationTemplate,
)


class AccountSettingsProvider(Protocol):
    def get_dnd_config(self, account_id: str) -> Optional[DoNotDisturbConfig]:
        ...

    def get_channel_config(
        self, account_id: str, channel: Channel
    ) -> Optional[ChannelConfig]:
        ...


class TemplateSource(Protocol):
    def get_template(self, template_id: str) -> Optional[NotificationTemplate]:
        ...


@runtime_checkable
class AccountSettingsStore(AccountSettingsProvider, Protocol):
    """Account settings that can also be changed through the engine."""

    def put_dnd_config(self, config: DoNotDisturbConfig) -> None:
        ...

    def clear_dnd_config(self, account_id: str) -> None:
        ...

    def put_channel_config(self, config: ChannelConfig) -> None:
        ...


@runtime_checkable
class TemplateStore(TemplateSource, Protocol):
    def put(self, template: NotificationTemplate) -> None:
        ...


def default_channel_config(account_id: str, channel: Channel) -> ChannelConfig:
    """Configuration used when an account has none for ``channel``.

    In-app delivery is on by default and addressed to the account itself;
    every other channel is off until the account opts in.
    """
    if channel == Channel.IN_APP:
        return ChannelConfig(channel=channel, account_id=account_id, address=account_id)
    return ChannelConfig(channel=channel, account_id=account_id, enabled=False)


class InMemoryAccountSettings:
    def __init__(self):
        self._dnd: Dict[str, DoNotDisturbConfig] = {}
        self._channels: Dict[Tuple[str, Channel], ChannelConfig] = {}
        self._lock = threading.Lock()

    def put_dnd_config(self, config: DoNotDisturbConfig) -> None:
        with self._lock:
            self._dnd[config.account_id] = config

    def clear_dnd_config(self, account_id: str) -> None:
        with self._lock:
            self._dnd.pop(account_id, None)

    def put_channel_config(self, config: ChannelConfig) -> None:
        with self._lock:
            self._channels[(config.account_id, config.channel)] = config

    def get_dnd_config(self, account_id: str) -> Optional[DoNotDisturbConfig]:
        with self._lock:
            return self._dnd.get(account_id)

    def get_channel_config(
        self, account_id: str, channel: Channel
    ) -> Optional[ChannelConfig]:
        with self._lock:
            return self._channels.get((account_id, channel))


class InMemoryTemplateSource:
    def __init__(self):
        self._templates: Dict[str, NotificationTemplate] = {}
        self._lock = threading.Lock()

    def put(self, template: NotificationTemplate) -> None:
        with self._lock:
            self._templates[template.id] = template

    def get_template(self, template_id: str) -> Optional[NotificationTemplate]:
        with self._lock:
            return self._templates.get(template_id)
