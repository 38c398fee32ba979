"""Exceptions raised by the registry and its channels."""

from __future__ import annotations

from typing import Any


class PubSubError(Exception):
    """Base class for registry errors."""


class DuplicateSubscriptionError(PubSubError, ValueError):
    """The exact handler is already subscribed to the channel.

    Two registrations of the same handler could not be told apart on removal,
    so the second one is rejected.
    """

    def __init__(self, channel: str, subscription: Any) -> None:
        self.channel = channel
        self.subscription = subscription
        super().__init__(
            f"Function {subscription} has already been passed as a subscriber "
            f"to <{channel}>; will not be able to safely remove."
        )


class InvalidTransitionError(PubSubError, RuntimeError):
    def __init__(self, channel: str, state: Any, signal: Any) -> None:
        self.channel = channel
        self.state = state
        self.signal = signal
        super().__init__(f"Channel <{channel}> cannot handle '{signal}' while {state}")
