"""BroadcastHub implementation for fanning events out to WebSocket subscribers."""

import asyncio
import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Protocol

from fastapi import WebSocketDisconnect

from ..logging_config import get_logger
from ..models import BroadcastEvent, EventType, now_millis

logger = get_logger(__name__)

# Seconds a single send may take before the subscriber is considered gone
DEFAULT_SEND_TIMEOUT = 5.0


class ISubscriberTransport(Protocol):
    """The slice of a WebSocket the hub relies on."""

    async def accept(self) -> None:
        ...

    async def send_text(self, data: str) -> None:
        ...

    async def receive_text(self) -> str:
        ...


class IBroadcastHub(Protocol):
    """Fan-out of typed events to live subscribers."""

    async def publish(self, event_type: EventType | str, data: Any) -> int:
        """Send an event to every connected subscriber; returns delivered count."""
        ...

    def active_subscriber_count(self) -> int:
        """Number of subscribers currently in a sendable state."""
        ...


@dataclass
class Subscriber:
    """One connected client."""

    id: str
    transport: ISubscriberTransport
    connected: bool = True
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class BroadcastHub:
    """Decouples event producers from the changing set of subscribers."""

    def __init__(self, send_timeout: float = DEFAULT_SEND_TIMEOUT):
        self._subscribers: dict[str, Subscriber] = {}
        self._send_timeout = send_timeout

    def register(self, transport: ISubscriberTransport) -> Subscriber:
        """Record a new subscriber."""
        subscriber = Subscriber(id=uuid.uuid4().hex, transport=transport)
        self._subscribers[subscriber.id] = subscriber
        logger.info(
            "Subscriber connected",
            extra={"context": {"subscriber_id": subscriber.id, "total": len(self._subscribers)}},
        )
        return subscriber

    def unregister(self, subscriber_id: str) -> None:
        """Forget a subscriber; unknown ids are ignored."""
        subscriber = self._subscribers.pop(subscriber_id, None)
        if subscriber is None:
            return
        subscriber.connected = False
        logger.info(
            "Subscriber disconnected",
            extra={"context": {"subscriber_id": subscriber_id, "total": len(self._subscribers)}},
        )

    def active_subscriber_count(self) -> int:
        """Number of subscribers currently in a sendable state."""
        return sum(1 for s in self._subscribers.values() if s.connected)

    async def publish(self, event_type: EventType | str, data: Any) -> int:
        """Send an event to every connected subscriber.

        Failed sends mark the subscriber as not connected and are logged;
        they never raise and never stop delivery to the others. Removal
        happens in handle_connection.
        """
        event = BroadcastEvent.create(event_type, data)
        message = event.to_json()

        targets = [s for s in list(self._subscribers.values()) if s.connected]
        if not targets:
            logger.debug("Broadcast %s skipped, no subscribers", event.type)
            return 0

        results = await asyncio.gather(
            *[self._send(subscriber, message) for subscriber in targets],
            return_exceptions=True,
        )
        sent = sum(1 for result in results if result is True)

        logger.debug("Broadcast %s to %d/%d subscribers", event.type, sent, len(targets))
        return sent

    async def _send(self, subscriber: Subscriber, message: str) -> bool:
        if not subscriber.connected:
            return False
        try:
            await asyncio.wait_for(
                self._send_locked(subscriber, message), timeout=self._send_timeout
            )
            return True
        except asyncio.TimeoutError:
            subscriber.connected = False
            logger.warning(
                "Send to subscriber timed out after %.1fs",
                self._send_timeout,
                extra={"context": {"subscriber_id": subscriber.id}},
            )
            return False
        except Exception as e:
            subscriber.connected = False
            logger.warning(
                "Send to subscriber failed: %s",
                e,
                extra={"context": {"subscriber_id": subscriber.id}},
            )
            return False

    @staticmethod
    async def _send_locked(subscriber: Subscriber, message: str) -> None:
        async with subscriber.send_lock:
            await subscriber.transport.send_text(message)

    async def _send_json(self, subscriber: Subscriber, payload: dict) -> bool:
        return await self._send(subscriber, json.dumps(payload))

    async def _handle_control(self, subscriber: Subscriber, text: str) -> None:
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            logger.warning(
                "Ignoring non-JSON message from subscriber",
                extra={"context": {"subscriber_id": subscriber.id, "payload": text[:100]}},
            )
            return

        if isinstance(data, dict) and data.get("type") == "ping":
            await self._send_json(subscriber, {"type": "pong"})
        else:
            logger.debug("Ignoring subscriber message: %s", text[:100])

    async def handle_connection(self, websocket: ISubscriberTransport) -> None:
        """Serve one subscriber until it disconnects."""
        await websocket.accept()
        subscriber = self.register(websocket)

        try:
            await self._send_json(
                subscriber,
                {"type": "connection", "status": "connected", "timestamp": now_millis()},
            )
            while True:
                text = await websocket.receive_text()
                await self._handle_control(subscriber, text)
        except WebSocketDisconnect:
            pass
        except Exception as e:
            logger.warning(
                "Subscriber transport error: %s",
                e,
                extra={"context": {"subscriber_id": subscriber.id}},
            )
        finally:
            self.unregister(subscriber.id)
