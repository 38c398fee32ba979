"""A named channel: its subscribers and the publish state machine."""

from __future__ import annotations

from typing import Any, Callable, Sequence

from loguru import logger

from publicious.domain.errors import InvalidTransitionError
from publicious.domain.models import (
    DEFAULT_PRIORITY,
    ChannelSignal,
    ChannelState,
    Removal,
    Subscription,
)
from publicious.repos.subscribers import Node, PriorityList
from publicious.services.scheduler import Scheduler

TRANSITIONS: dict[tuple[ChannelState, ChannelSignal], ChannelState] = {
    (ChannelState.IDLE, ChannelSignal.BEGIN): ChannelState.PUBLISHING,
    (ChannelState.IDLE, ChannelSignal.INTERRUPT): ChannelState.IDLE,
    (ChannelState.PUBLISHING, ChannelSignal.INTERRUPT): ChannelState.INTERRUPTED,
    (ChannelState.PUBLISHING, ChannelSignal.FINISH): ChannelState.IDLE,
    (ChannelState.INTERRUPTED, ChannelSignal.INTERRUPT): ChannelState.INTERRUPTED,
    (ChannelState.INTERRUPTED, ChannelSignal.FINISH): ChannelState.IDLE,
}


class Channel:
    """Subscribers of one channel name and the state of its current publish.

    Handlers receive the channel as their last argument and may call
    ``interrupt`` (or ``stop_propagation``) on it to skip the handlers that
    have not run yet. Publishing a channel that is already publishing, and
    removing the handler that is running right now, are both handed to the
    scheduler instead of happening in place.
    """

    def __init__(
        self,
        name: str,
        scheduler: Scheduler,
        on_empty: Callable[[Channel], None] | None = None,
    ) -> None:
        self.name = name
        self.state = ChannelState.IDLE
        self._scheduler = scheduler
        self._on_empty = on_empty
        self._subscribers = PriorityList(label=name)
        self._calling: Node | None = None

    def __repr__(self) -> str:
        return f"Channel({self.name!r}, state={self.state}, subscribers={len(self._subscribers)})"

    @property
    def namespace(self) -> str:
        return self.name

    @property
    def publishing(self) -> bool:
        return self.state is not ChannelState.IDLE

    @property
    def interrupted(self) -> bool:
        return self.state is ChannelState.INTERRUPTED

    def has_subscribers(self) -> bool:
        return bool(self._subscribers)

    def handlers(self) -> list[Callable[..., Any]]:
        return self._subscribers.handlers()

    def _transition(self, signal: ChannelSignal) -> None:
        try:
            self.state = TRANSITIONS[(self.state, signal)]
        except KeyError:
            raise InvalidTransitionError(self.name, self.state, signal) from None

    def interrupt(self) -> None:
        """Stop the current publish before the next handler runs."""
        self._transition(ChannelSignal.INTERRUPT)

    stop_propagation = interrupt

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    def subscribe(
        self,
        handler: Callable[..., Any],
        priority: int = DEFAULT_PRIORITY,
        context: Any = None,
    ) -> Subscription:
        subscription = Subscription.create(handler, context)
        self._subscribers.append(subscription, priority)
        return subscription

    def unsubscribe(self, handler: Callable[..., Any]) -> Removal:
        node = self._subscribers.find(handler)
        if node is None:
            return Removal.NOT_FOUND

        # Unlinking the running node would clear the ``next`` link the
        # publish loop is about to follow.
        if node is self._calling and not self.interrupted:
            logger.debug("Deferring removal of running subscriber {} from <{}>", node.subscription, self.name)
            self._scheduler.call_soon(self.unsubscribe, handler)
            return Removal.DEFERRED

        self._subscribers.unlink(node)
        if not self._subscribers and self._on_empty is not None:
            self._on_empty(self)
        return Removal.REMOVED

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def publish(self, args: Sequence[Any] = (), suppress_errors: bool = True) -> Any:
        """Call every subscriber with ``args`` followed by this channel.

        Returns ``None``, or a future when the call had to be deferred and
        errors are not suppressed.
        """
        if self.publishing:
            return self._defer_publish(args, suppress_errors)

        last_error: Exception | None = None
        # Deferred work queued by the handlers runs once the turn closes,
        # after the channel is idle again.
        with self._scheduler.turn():
            self._transition(ChannelSignal.BEGIN)
            try:
                for node in self._subscribers:
                    if self.interrupted:
                        logger.debug("Publish on <{}> interrupted", self.name)
                        break
                    self._calling = node
                    try:
                        node.subscription.invoke([*args, self])
                    except Exception as err:
                        logger.opt(exception=err).error(
                            "Publish error <{!r}> from subscriber - {} on <{}>",
                            err,
                            node.subscription,
                            self.name,
                        )
                        last_error = err
                    finally:
                        self._calling = None
            finally:
                self._transition(ChannelSignal.FINISH)

        if last_error is not None and not suppress_errors:
            raise last_error
        return None

    def _defer_publish(self, args: Sequence[Any], suppress_errors: bool) -> Any:
        logger.debug("Deferring re-entrant publish on <{}>", self.name)
        if suppress_errors:
            self._scheduler.call_soon(self.publish, args, True)
            return None
        future = self._scheduler.create_future()
        self._scheduler.call_soon(self._run_deferred, future, args)
        return future

    def _run_deferred(self, future: Any, args: Sequence[Any]) -> None:
        try:
            result = self.publish(args, suppress_errors=False)
        except Exception as err:
            if not future.done():
                future.set_exception(err)
            return
        if result is None:
            if not future.done():
                future.set_result(None)
            return
        # Still busy: follow the next deferral through.
        result.add_done_callback(lambda done: _copy_outcome(done, future))


def _copy_outcome(source: Any, target: Any) -> None:
    if target.done():
        return
    if source.cancelled():
        target.cancel()
        return
    error = source.exception()
    if error is not None:
        target.set_exception(error)
    else:
        target.set_result(None)
