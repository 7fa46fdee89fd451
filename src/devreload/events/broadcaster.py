"""Reload broadcaster with per-client bounded queues."""
import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Any

import structlog

from devreload.errors import CapacityError
from devreload.events.types import CLOSE, Notification

logger = structlog.get_logger()


@dataclass(eq=False)
class Client:
    """A connected reload listener.

    Attributes:
        id: Unique client identifier (UUID).
        queue: Bounded outbound queue of Notifications (and the close
            sentinel on shutdown).
        alive: False once the client has been unregistered.
        dropped: Notifications discarded by the drop-oldest policy.
    """

    id: str
    queue: asyncio.Queue[Any] = field(repr=False)
    alive: bool = True
    dropped: int = 0

    def offer(self, item: Any) -> bool:
        """Enqueue without blocking, dropping the oldest entry when full.

        Args:
            item: Notification or close sentinel.

        Returns:
            True if the item is now queued.
        """
        try:
            self.queue.put_nowait(item)
            return True
        except asyncio.QueueFull:
            pass

        try:
            self.queue.get_nowait()
            self.dropped += 1
            self.queue.put_nowait(item)
            return True
        except (asyncio.QueueEmpty, asyncio.QueueFull):
            return False

    def drain(self) -> None:
        """Discard everything still queued."""
        while not self.queue.empty():
            self.queue.get_nowait()


class Broadcaster:
    """Pub/sub hub fanning reload notifications out to every client.

    Registry mutations and publishing share one lock, so a client whose
    ``subscribe()`` completed before ``publish()`` started always gets the
    notification, and an unregistered client never receives a later one.
    Publishing never awaits a client: each has a bounded queue and a full
    queue loses its oldest entry.

    Attributes:
        queue_size: Capacity of each client queue.
        max_clients: Maximum number of registered clients.
    """

    def __init__(
        self,
        queue_size: int = 1,
        max_clients: int = 100,
    ) -> None:
        """Initialize broadcaster.

        Args:
            queue_size: Capacity of each client queue.
            max_clients: Maximum concurrent clients allowed.
        """
        if queue_size < 1:
            raise ValueError("queue_size must be at least 1")
        self._clients: dict[str, Client] = {}
        self._queue_size = queue_size
        self._max_clients = max_clients
        self._lock = asyncio.Lock()
        self._dropped_count = 0
        self._published = 0
        self._closed = False

    @property
    def client_count(self) -> int:
        """Number of registered clients."""
        return len(self._clients)

    @property
    def dropped_notifications(self) -> int:
        """Notifications discarded by the drop-oldest policy."""
        return self._dropped_count

    @property
    def published(self) -> int:
        """Number of publish() calls completed."""
        return self._published

    def is_registered(self, client: Client) -> bool:
        """Whether the client is currently in the registry."""
        return self._clients.get(client.id) is client

    async def subscribe(self) -> Client:
        """Register a new client.

        Returns:
            Handle bound to the new client's queue.

        Raises:
            CapacityError: If the broadcaster is full or shut down.
        """
        async with self._lock:
            if self._closed:
                raise CapacityError("Broadcaster is shut down")
            if len(self._clients) >= self._max_clients:
                raise CapacityError("Maximum clients reached")

            client = Client(
                id=str(uuid.uuid4()),
                queue=asyncio.Queue(maxsize=self._queue_size),
            )
            self._clients[client.id] = client

        logger.debug(
            "client_registered",
            client_id=client.id,
            clients=len(self._clients),
        )
        return client

    async def unsubscribe(self, client: Client) -> None:
        """Remove a client from the registry. Idempotent.

        Args:
            client: Client to remove.
        """
        async with self._lock:
            self._unregister(client)

    def _unregister(self, client: Client) -> None:
        client.alive = False
        if self._clients.get(client.id) is client:
            del self._clients[client.id]
            logger.debug(
                "client_unregistered",
                client_id=client.id,
                clients=len(self._clients),
            )

    async def publish(self, notification: Notification) -> int:
        """Deliver a notification to every registered client.

        Args:
            notification: Notification to deliver.

        Returns:
            Number of clients the notification was queued for.
        """
        delivered = 0
        async with self._lock:
            for client in list(self._clients.values()):
                dropped_before = client.dropped
                if client.offer(notification):
                    delivered += 1
                else:
                    logger.warning("client_queue_unrecoverable", client_id=client.id)
                    self._unregister(client)
                    continue

                if client.dropped > dropped_before:
                    self._dropped_count += client.dropped - dropped_before
                    logger.debug(
                        "client_queue_overflow",
                        client_id=client.id,
                        dropped=client.dropped,
                    )
            self._published += 1

        logger.info("reload_published", delivered_to=delivered)
        return delivered

    async def close_all(self) -> int:
        """Close every client stream and refuse further subscriptions.

        Returns:
            Number of clients that were closed.
        """
        async with self._lock:
            self._closed = True
            clients = list(self._clients.values())
            for client in clients:
                client.alive = False
                client.offer(CLOSE)
            self._clients.clear()

        logger.info(
            "broadcaster_closed",
            closed_clients=len(clients),
            dropped_notifications=self._dropped_count,
        )
        return len(clients)
