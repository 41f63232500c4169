"""Fan-out of published messages to any number of subscribers."""

from __future__ import annotations

import queue
from enum import Enum
from typing import Any, Generic, Tuple, TypeVar

T = TypeVar("T")


class _Command(Enum):
    STOP = "stop"
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"
    PUBLISH = "publish"


class Broker(Generic[T]):
    """Delivers each published message to every current subscriber.

    :meth:`start` runs the dispatch loop and blocks until :meth:`stop`; run it
    in its own thread. Subscriptions are bounded queues, and a message is
    dropped for a subscriber whose queue is full so that a slow subscriber
    never blocks the broker.
    """

    SUBSCRIPTION_BUFFER = 5

    def __init__(self) -> None:
        self._commands: "queue.Queue[Tuple[_Command, Any]]" = queue.Queue()

    def start(self) -> None:
        """Dispatch commands until the broker is stopped."""
        subscribers = set()
        while True:
            command, arg = self._commands.get()
            if command is _Command.STOP:
                return
            if command is _Command.SUBSCRIBE:
                subscribers.add(arg)
            elif command is _Command.UNSUBSCRIBE:
                subscribers.discard(arg)
            else:
                for sub in subscribers:
                    try:
                        sub.put_nowait(arg)
                    except queue.Full:
                        pass

    def stop(self) -> None:
        self._commands.put((_Command.STOP, None))

    def subscribe(self) -> "queue.Queue[T]":
        """Return a new queue that receives messages published from now on."""
        subscription: "queue.Queue[T]" = queue.Queue(self.SUBSCRIPTION_BUFFER)
        self._commands.put((_Command.SUBSCRIBE, subscription))
        return subscription

    def unsubscribe(self, subscription: "queue.Queue[T]") -> None:
        self._commands.put((_Command.UNSUBSCRIBE, subscription))

    def publish(self, msg: T) -> None:
        self._commands.put((_Command.PUBLISH, msg))