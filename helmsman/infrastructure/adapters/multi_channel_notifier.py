"""
Multi-Channel Notifier

Architectural Intent:
- Implements NotificationPort by fanning one event out to every configured
  channel concurrently
- Delivery counts as successful when at least one channel accepts it
"""

import asyncio
import logging

from helmsman.domain.ports.notification_port import NotificationPort
from helmsman.domain.value_objects.notification_event import NotificationEvent

logger = logging.getLogger(__name__)


class MultiChannelNotifier:
    def __init__(self, channels: list[NotificationPort]) -> None:
        self.channels = list(channels)

    async def send(self, event: NotificationEvent) -> bool:
        if not self.channels:
            logger.warning("No notification channels configured, dropping %r", event.title)
            return False

        results = await asyncio.gather(
            *(channel.send(event) for channel in self.channels), return_exceptions=True
        )
        delivered = 0
        for channel, result in zip(self.channels, results):
            name = getattr(channel, "name", type(channel).__name__)
            if isinstance(result, BaseException):
                logger.warning("Channel %s raised: %s", name, result)
            elif result:
                delivered += 1
            else:
                logger.warning("Channel %s did not deliver %r", name, event.title)
        return delivered > 0
