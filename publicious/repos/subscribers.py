"""In-memory subscriber storage for a single channel."""

from __future__ import annotations

from typing import Any, Callable, Iterator

from publicious.domain.errors import DuplicateSubscriptionError
from publicious.domain.models import MAX_PRIORITY, Subscription, clamp_priority
from publicious.services.identity import fingerprint, same_handler


class Node:
    """Doubly linked list element owned by one priority bucket."""

    __slots__ = ("subscription", "priority", "prev", "next")

    def __init__(self, subscription: Subscription, priority: int) -> None:
        self.subscription = subscription
        self.priority = priority
        self.prev: Node | None = None
        self.next: Node | None = None

    def __repr__(self) -> str:
        return f"Node({self.subscription}, priority={self.priority})"


class _Bucket:
    __slots__ = ("head", "tail")

    def __init__(self) -> None:
        self.head: Node | None = None
        self.tail: Node | None = None


class PriorityList:
    """Subscribers in five priority buckets, indexed by handler fingerprint.

    Iteration reads a node's ``next`` only once the consumer is done with the
    node, so the list may be changed from inside the loop body: nodes appended
    behind the cursor are reached, nodes removed ahead of it are skipped.
    """

    def __init__(self, label: str = "") -> None:
        self.label = label
        self._buckets = [_Bucket() for _ in range(MAX_PRIORITY + 1)]
        self._index: dict[int, list[Node]] = {}
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def __bool__(self) -> bool:
        return self._size > 0

    def __iter__(self) -> Iterator[Node]:
        for bucket in self._buckets:
            node = bucket.head
            while node is not None:
                yield node
                node = node.next

    def append(self, subscription: Subscription, priority: int) -> Node:
        siblings = self._index.setdefault(subscription.fingerprint, [])
        for existing in siblings:
            if same_handler(existing.subscription.handler, subscription.handler):
                raise DuplicateSubscriptionError(self.label, existing.subscription)

        node = Node(subscription, clamp_priority(priority))
        bucket = self._buckets[node.priority]
        if bucket.tail is None:
            bucket.head = node
        else:
            bucket.tail.next = node
            node.prev = bucket.tail
        bucket.tail = node

        siblings.append(node)
        self._size += 1
        return node

    def find(self, handler: Callable[..., Any]) -> Node | None:
        for node in self._index.get(fingerprint(handler), ()):
            if same_handler(node.subscription.handler, handler):
                return node
        return None

    def unlink(self, node: Node) -> None:
        siblings = self._index.get(node.subscription.fingerprint, [])
        if not any(candidate is node for candidate in siblings):
            raise ValueError(f"{node!r} is not linked into <{self.label}>")

        bucket = self._buckets[node.priority]
        if node.prev is None:
            bucket.head = node.next
        else:
            node.prev.next = node.next
        if node.next is None:
            bucket.tail = node.prev
        else:
            node.next.prev = node.prev
        node.prev = None
        node.next = None

        siblings[:] = [candidate for candidate in siblings if candidate is not node]
        if not siblings:
            del self._index[node.subscription.fingerprint]
        self._size -= 1

    def handlers(self) -> list[Callable[..., Any]]:
        """Handlers in invocation order."""
        return [node.subscription.handler for node in self]
