"""Domain models for the publish/subscribe registry."""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Callable, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

from publicious.services.identity import describe, fingerprint

MIN_PRIORITY = 0
MAX_PRIORITY = 4
DEFAULT_PRIORITY = MAX_PRIORITY


class ChannelState(StrEnum):
    IDLE = "idle"
    PUBLISHING = "publishing"
    INTERRUPTED = "interrupted"


class ChannelSignal(StrEnum):
    BEGIN = "begin"
    INTERRUPT = "interrupt"
    FINISH = "finish"


class Removal(StrEnum):
    """Outcome of removing a handler from a channel."""

    REMOVED = "removed"
    DEFERRED = "deferred"
    NOT_FOUND = "not_found"


def clamp_priority(priority: int) -> int:
    return max(MIN_PRIORITY, min(priority, MAX_PRIORITY))


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------


class Subscription(BaseModel):
    """A handler, its identity fingerprint and the context it is called with."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    handler: Callable[..., Any]
    context: Any = None
    fingerprint: int

    @classmethod
    def create(cls, handler: Callable[..., Any], context: Any = None) -> Subscription:
        return cls(handler=handler, context=context, fingerprint=fingerprint(handler))

    def invoke(self, args: list[Any]) -> Any:
        # The context stands in for the receiver, so it goes first.
        if self.context is None:
            return self.handler(*args)
        return self.handler(self.context, *args)

    def __str__(self) -> str:
        return describe(self.handler, self.context)


class Subscribed(BaseModel):
    """Returned from ``subscribe``: the channel joined and the original handler."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    channel: Any
    handler: Callable[..., Any]


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


class SubscribeOptions(BaseModel):
    priority: int = DEFAULT_PRIORITY

    @field_validator("priority", mode="before")
    @classmethod
    def _coerce_priority(cls, value: Any) -> int:
        # Anything that is not a number falls back to the lowest priority.
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return DEFAULT_PRIORITY
        return clamp_priority(int(value))

    @classmethod
    def resolve(cls, options: SubscribeOptions | Mapping[str, Any] | None) -> SubscribeOptions:
        if isinstance(options, SubscribeOptions):
            return options
        if isinstance(options, Mapping):
            return cls.model_validate(dict(options))
        return cls()


class PublishOptions(BaseModel):
    """Per-call publish settings, passed as the trailing publish argument."""

    model_config = ConfigDict(populate_by_name=True)

    suppress_errors: bool | None = Field(default=None, alias="suppressErrors")

    @staticmethod
    def is_options(value: Any) -> bool:
        """Structural check: does ``value`` look like a publish options object?"""
        if isinstance(value, PublishOptions):
            return True
        return isinstance(value, Mapping) and (
            "suppress_errors" in value or "suppressErrors" in value
        )

    @classmethod
    def resolve(cls, value: PublishOptions | Mapping[str, Any]) -> PublishOptions:
        if isinstance(value, PublishOptions):
            return value
        return cls.model_validate(dict(value))


class RegistryOptions(BaseModel):
    """Defaults applied by a registry to every publish that does not override them."""

    model_config = ConfigDict(populate_by_name=True)

    suppress_errors: bool = Field(default=True, alias="suppressErrors")

    @classmethod
    def resolve(cls, value: RegistryOptions | Mapping[str, Any] | None) -> RegistryOptions:
        if isinstance(value, RegistryOptions):
            return value
        return cls.model_validate(dict(value or {}))
