"""Tests for the priority-bucketed subscriber list."""

import pytest

from publicious.domain.errors import DuplicateSubscriptionError
from publicious.domain.models import Subscription
from publicious.repos.subscribers import PriorityList


def _make_handler(name: str = "handler"):
    def handler(*args):
        return name

    return handler


def _add(subscribers: PriorityList, handler, priority: int = 4):
    return subscribers.append(Subscription.create(handler), priority)


def test_orders_by_priority_then_insertion():
    subscribers = PriorityList("foo")
    low, high, mid, high_again = (_make_handler(n) for n in ("low", "high", "mid", "high2"))
    _add(subscribers, low, 4)
    _add(subscribers, high, 0)
    _add(subscribers, mid, 2)
    _add(subscribers, high_again, 0)

    assert subscribers.handlers() == [high, high_again, mid, low]
    assert len(subscribers) == 4


def test_priority_is_clamped():
    subscribers = PriorityList("foo")
    assert _add(subscribers, _make_handler(), 9).priority == 4
    assert _add(subscribers, _make_handler(), -3).priority == 0


def test_same_handler_twice_is_rejected():
    subscribers = PriorityList("foo")
    handler = _make_handler()
    _add(subscribers, handler)
    with pytest.raises(DuplicateSubscriptionError, match="<foo>"):
        _add(subscribers, handler, 1)
    assert len(subscribers) == 1


def test_colliding_handlers_are_found_by_reference():
    subscribers = PriorityList("foo")
    first, second = _make_handler(), _make_handler()
    first_node = _add(subscribers, first)
    second_node = _add(subscribers, second)

    assert subscribers.find(first) is first_node
    assert subscribers.find(second) is second_node
    assert subscribers.find(_make_handler()) is None


def test_unlink_head_middle_and_tail_keep_links_consistent():
    subscribers = PriorityList("foo")
    handlers = [_make_handler(str(i)) for i in range(4)]
    nodes = [_add(subscribers, h) for h in handlers]

    subscribers.unlink(nodes[1])
    assert nodes[0].next is nodes[2]
    assert nodes[2].prev is nodes[0]
    assert nodes[1].prev is None and nodes[1].next is None

    subscribers.unlink(nodes[0])
    assert nodes[2].prev is None

    subscribers.unlink(nodes[3])
    assert nodes[2].next is None
    assert subscribers.handlers() == [handlers[2]]

    # the bucket's tail must have moved back, new nodes link after nodes[2]
    late = _add(subscribers, _make_handler("late"))
    assert nodes[2].next is late
    assert late.prev is nodes[2]


def test_unlinking_last_node_empties_the_list():
    subscribers = PriorityList("foo")
    handler = _make_handler()
    node = _add(subscribers, handler)
    subscribers.unlink(node)

    assert not subscribers
    assert subscribers.find(handler) is None
    # a removed handler may subscribe again
    _add(subscribers, handler)
    assert len(subscribers) == 1


def test_unlink_detached_node_raises():
    subscribers = PriorityList("foo")
    node = _add(subscribers, _make_handler())
    subscribers.unlink(node)
    with pytest.raises(ValueError):
        subscribers.unlink(node)


def test_iteration_sees_nodes_appended_during_the_walk():
    subscribers = PriorityList("foo")
    first = _make_handler("first")
    late_same_bucket = _make_handler("late")
    late_lower_bucket = _make_handler("lower")
    late_higher_bucket = _make_handler("higher")
    _add(subscribers, first, 2)

    seen = []
    for node in subscribers:
        seen.append(node.subscription.handler)
        if node.subscription.handler is first:
            _add(subscribers, late_same_bucket, 2)
            _add(subscribers, late_lower_bucket, 4)
            _add(subscribers, late_higher_bucket, 0)

    assert seen == [first, late_same_bucket, late_lower_bucket]


def test_iteration_skips_nodes_removed_ahead_of_the_cursor():
    subscribers = PriorityList("foo")
    handlers = [_make_handler(str(i)) for i in range(3)]
    nodes = [_add(subscribers, h) for h in handlers]

    seen = []
    for node in subscribers:
        seen.append(node)
        if node is nodes[0]:
            subscribers.unlink(nodes[1])

    assert seen == [nodes[0], nodes[2]]
