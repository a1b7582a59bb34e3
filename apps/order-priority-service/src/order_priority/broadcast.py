"""Fire-and-forget broadcast channel for dashboard subscribers."""

from __future__ import annotations

from collections import deque
from threading import Lock
from typing import Any, Protocol
from uuid import uuid4

from .errors import DispatchFailure


class Broadcaster(Protocol):
    def publish(self, channel: str, payload: dict[str, Any]) -> None: ...


class Subscription:
    """Bounded per-subscriber buffer; when full the oldest message is dropped."""

    def __init__(self, channel: str, max_size: int) -> None:
        self.subscription_id = uuid4().hex
        self.channel = channel
        self._messages: deque[dict[str, Any]] = deque(maxlen=max(max_size, 1))
        self._lock = Lock()
        self.dropped = 0

    def offer(self, payload: dict[str, Any]) -> None:
        with self._lock:
            if len(self._messages) == self._messages.maxlen:
                self.dropped += 1
            self._messages.append(payload)

    def drain(self) -> list[dict[str, Any]]:
        with self._lock:
            messages = list(self._messages)
            self._messages.clear()
            return messages

    def pending(self) -> int:
        with self._lock:
            return len(self._messages)


class InMemoryBroadcaster:
    """In-process pub/sub; subscribers only see messages published after they join."""

    def __init__(self, *, queue_size: int = 256) -> None:
        self._queue_size = queue_size
        self._lock = Lock()
        self._subscriptions: dict[str, dict[str, Subscription]] = {}

    def subscribe(self, channel: str) -> Subscription:
        subscription = Subscription(channel, self._queue_size)
        with self._lock:
            self._subscriptions.setdefault(channel, {})[subscription.subscription_id] = subscription
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions.get(subscription.channel, {}).pop(subscription.subscription_id, None)

    def subscriber_count(self, channel: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(channel, {}))

    def publish(self, channel: str, payload: dict[str, Any]) -> None:
        """Offer `payload` to every subscriber of `channel`.

        Raises DispatchFailure after the fan-out when any subscriber could not
        take the message; the others still receive it.
        """

        with self._lock:
            targets = list(self._subscriptions.get(channel, {}).values())
        failed: list[str] = []
        for subscription in targets:
            try:
                subscription.offer(payload)
            except Exception:
                failed.append(subscription.subscription_id)
        if failed:
            raise DispatchFailure(
                f"{len(failed)} of {len(targets)} subscribers on {channel} rejected the message"
            )

    def reset(self) -> None:
        with self._lock:
            self._subscriptions.clear()
