"""
Same-device event bus.

In-process stand-in for the browser BroadcastChannel: every open "tab"
(orchestrator) of the same user on this device opens a channel with the
same name, and a message posted on one channel reaches all the others but
never the sender. Delivery is scheduled on the event loop, never inline.

Dependencies: asyncio
System role: Cross-tab notification for the Session Orchestrator
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable

logger = logging.getLogger(__name__)

MessageHandler = Callable[["BroadcastMessage"], Any]


@dataclass(frozen=True)
class BroadcastMessage:
    """One cross-tab notification."""

    type: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))


class BroadcastChannel:
    """A named channel bound to one tab."""

    def __init__(self, name: str, bus: "DeviceEventBus") -> None:
        self.name = name
        self._bus = bus
        self._handlers: list[MessageHandler] = []
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def on_message(self, handler: MessageHandler) -> None:
        self._handlers.append(handler)

    def post_message(self, type: str, payload: dict[str, Any] | None = None) -> BroadcastMessage:
        """Send to every other open channel with this name."""
        message = BroadcastMessage(type=type, payload=payload or {})
        if not self._closed:
            self._bus._dispatch(self, message)
        return message

    def _deliver(self, message: BroadcastMessage) -> None:
        if self._closed:
            return
        for handler in list(self._handlers):
            try:
                result = handler(message)
                if asyncio.iscoroutine(result):
                    task = asyncio.ensure_future(result)
                    self._tasks.add(task)
                    task.add_done_callback(self._tasks.discard)
            except Exception:
                logger.exception("Broadcast handler failed", extra={"channel": self.name})

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._handlers.clear()
        self._bus._remove(self)


class DeviceEventBus:
    """Registry of open channels on this device."""

    def __init__(self) -> None:
        self._channels: dict[str, list[BroadcastChannel]] = {}
        self._lock = threading.Lock()

    def channel(self, name: str) -> BroadcastChannel:
        channel = BroadcastChannel(name, self)
        with self._lock:
            self._channels.setdefault(name, []).append(channel)
        return channel

    def open_channels(self, name: str) -> int:
        with self._lock:
            return len(self._channels.get(name, []))

    def _remove(self, channel: BroadcastChannel) -> None:
        with self._lock:
            peers = self._channels.get(channel.name, [])
            if channel in peers:
                peers.remove(channel)
            if not peers:
                self._channels.pop(channel.name, None)

    def _dispatch(self, sender: BroadcastChannel, message: BroadcastMessage) -> None:
        with self._lock:
            targets = [c for c in self._channels.get(sender.name, []) if c is not sender]
        loop = asyncio.get_running_loop()
        for target in targets:
            loop.call_soon(target._deliver, message)
        logger.debug(
            "Broadcast posted",
            extra={"channel": sender.name, "type": message.type, "receivers": len(targets)},
        )


# Shared bus for every orchestrator in this process
device_bus = DeviceEventBus()
