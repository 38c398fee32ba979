"""In-process publish/subscribe registry."""

from __future__ import annotations

from typing import Any, Callable, Mapping

from loguru import logger

from publicious.domain.channel import Channel
from publicious.domain.models import (
    PublishOptions,
    RegistryOptions,
    Removal,
    SubscribeOptions,
    Subscribed,
)
from publicious.services.scheduler import Scheduler, TurnQueue


class PubSub:
    """Publish/subscribe registry keyed by channel name.

    Channels are created on first subscribe and dropped once their last
    subscriber is removed. Handlers are called synchronously, by priority
    (0 first, 4 last) and then in subscription order.
    """

    def __init__(
        self,
        options: RegistryOptions | Mapping[str, Any] | None = None,
        *,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.options = RegistryOptions.resolve(options)
        self.scheduler = scheduler if scheduler is not None else TurnQueue()
        self._channels: dict[str, Channel] = {}

    def __contains__(self, channel_name: object) -> bool:
        return channel_name in self._channels

    @property
    def channels(self) -> tuple[str, ...]:
        return tuple(self._channels)

    def _discard(self, channel: Channel) -> None:
        if self._channels.get(channel.name) is channel:
            del self._channels[channel.name]
            logger.debug("Channel <{}> has no subscribers left, dropped", channel.name)

    def subscribe(
        self,
        channel_name: str,
        handler: Callable[..., Any],
        options: SubscribeOptions | Mapping[str, Any] | None = None,
        context: Any = None,
    ) -> Subscribed:
        """Register ``handler`` on ``channel_name``.

        Raises DuplicateSubscriptionError if this exact handler is already
        subscribed to the channel.
        """
        if not callable(handler):
            raise TypeError(f"handler must be callable, got {type(handler).__name__}")
        priority = SubscribeOptions.resolve(options).priority

        channel = self._channels.get(channel_name)
        if channel is None:
            channel = Channel(channel_name, self.scheduler, on_empty=self._discard)
            self._channels[channel_name] = channel
            logger.debug("Channel <{}> created", channel_name)
        channel.subscribe(handler, priority, context)
        return Subscribed(channel=channel, handler=handler)

    def unsubscribe(self, channel_name: str, handler: Callable[..., Any]) -> bool:
        """Remove ``handler``; True only if it was removed during this call."""
        channel = self._channels.get(channel_name)
        if channel is None or not callable(handler):
            return False
        return channel.unsubscribe(handler) is Removal.REMOVED

    def publish(self, channel_name: str, *args: Any, suppress_errors: bool | None = None) -> Any:
        """Call the channel's handlers with ``args``.

        A trailing ``PublishOptions`` (or a mapping with ``suppress_errors``)
        is taken off the arguments and decides, unless ``suppress_errors`` is
        given as a keyword, whether the last handler error is re-raised.
        """
        channel = self._channels.get(channel_name)
        if channel is None:
            return None

        payload = list(args)
        if payload and PublishOptions.is_options(payload[-1]):
            call_options = PublishOptions.resolve(payload.pop())
            if suppress_errors is None:
                suppress_errors = call_options.suppress_errors
        if suppress_errors is None:
            suppress_errors = self.options.suppress_errors

        return channel.publish(payload, suppress_errors)

    # Mediator compatible names
    on = subscribe
    bind = subscribe
    off = unsubscribe
    remove = unsubscribe
    emit = publish
    trigger = publish
