"""Per-client connection lifecycle for reload listeners."""

import asyncio
import contextlib
from collections.abc import AsyncIterator
from typing import Protocol

import structlog
from starlette.websockets import WebSocket, WebSocketState

from devreload.errors import CapacityError, InvalidTransitionError
from devreload.events.broadcaster import Broadcaster, Client
from devreload.events.types import CLOSE, ConnectionState, Notification

logger = structlog.get_logger()

TRANSITIONS: dict[ConnectionState, frozenset[ConnectionState]] = {
    ConnectionState.CONNECTING: frozenset({
        ConnectionState.REGISTERED,
        ConnectionState.CLOSING,
    }),
    ConnectionState.REGISTERED: frozenset({
        ConnectionState.NOTIFYING,
        ConnectionState.CLOSING,
    }),
    ConnectionState.NOTIFYING: frozenset({
        ConnectionState.REGISTERED,
        ConnectionState.CLOSING,
    }),
    ConnectionState.CLOSING: frozenset({ConnectionState.CLOSED}),
    ConnectionState.CLOSED: frozenset(),
}


class Transport(Protocol):
    """Bidirectional client connection carrying reload frames."""

    async def accept(self) -> None:
        """Complete the connection handshake."""
        ...

    async def send(self, frame: str) -> None:
        """Write one frame to the client."""
        ...

    async def receive(self) -> None:
        """Return once the client disconnects; raise on transport error."""
        ...

    async def close(self) -> None:
        """Release the connection. Must be idempotent."""
        ...


class WebSocketTransport:
    """Transport over a Starlette WebSocket."""

    def __init__(self, websocket: WebSocket) -> None:
        """Initialize WebSocket transport.

        Args:
            websocket: Connection not yet accepted.
        """
        self._ws = websocket

    @property
    def peer(self) -> str | None:
        """Remote host of the connection."""
        return self._ws.client.host if self._ws.client else None

    async def accept(self) -> None:
        """Complete the WebSocket handshake."""
        await self._ws.accept()

    async def send(self, frame: str) -> None:
        """Send one frame as a text message.

        Args:
            frame: Frame payload, e.g. ``reload``.
        """
        await self._ws.send_text(frame)

    async def receive(self) -> None:
        """Read until the client disconnects.

        Raises:
            RuntimeError: If the WebSocket is not connected.
        """
        while True:
            message = await self._ws.receive()
            if message["type"] == "websocket.disconnect":
                return
            # Anything the agent sends (pings, hellos) is ignored.

    async def close(self) -> None:
        """Send a close frame unless either side already disconnected."""
        if self._ws.application_state == WebSocketState.DISCONNECTED:
            return
        if self._ws.client_state == WebSocketState.DISCONNECTED:
            return
        # The peer may vanish between the state check and the close frame.
        with contextlib.suppress(RuntimeError, OSError):
            await self._ws.close()


class ConnectionHandler:
    """Drives one client through Connecting -> Registered -> Closed.

    The handler owns the client's broadcaster registration for its whole
    connected lifetime. Transport failures move it to Closing and are
    never raised to other clients or to the broadcaster.

    Attributes:
        state: Current lifecycle state.
        client: Registered client, once open.
    """

    def __init__(self, broadcaster: Broadcaster) -> None:
        """Initialize connection handler.

        Args:
            broadcaster: Hub the client registers with.
        """
        self._broadcaster = broadcaster
        self._state = ConnectionState.CONNECTING
        self._client: Client | None = None
        self._delivered = 0

    @property
    def state(self) -> ConnectionState:
        """Current lifecycle state."""
        return self._state

    @property
    def client(self) -> Client | None:
        """Registered client, if any."""
        return self._client

    @property
    def delivered(self) -> int:
        """Notifications handed to the transport."""
        return self._delivered

    def _transition(self, target: ConnectionState) -> None:
        if target not in TRANSITIONS[self._state]:
            raise InvalidTransitionError(
                f"Cannot move from {self._state.value} to {target.value}"
            )
        logger.debug(
            "connection_transition",
            client_id=self._client.id if self._client else None,
            from_state=self._state.value,
            to_state=target.value,
        )
        self._state = target

    async def open(self) -> Client:
        """Register with the broadcaster.

        Returns:
            The registered client.

        Raises:
            CapacityError: If the broadcaster refuses the client; the
                handler is then Closed.
        """
        if self._state is not ConnectionState.CONNECTING:
            raise InvalidTransitionError(f"Cannot open from {self._state.value}")
        try:
            self._client = await self._broadcaster.subscribe()
        except CapacityError:
            self._transition(ConnectionState.CLOSING)
            self._transition(ConnectionState.CLOSED)
            raise
        self._transition(ConnectionState.REGISTERED)
        return self._client

    async def notifications(self) -> AsyncIterator[Notification]:
        """Iterate notifications queued for this client.

        Each yielded notification puts the handler in Notifying; resuming
        the iterator (write succeeded) returns it to Registered. Ends when
        the client is closed by shutdown.

        Yields:
            Notifications in publish order.
        """
        client = self._client
        if client is None:
            raise InvalidTransitionError("Connection is not registered")

        while self._state is ConnectionState.REGISTERED:
            item = await client.queue.get()
            if item is CLOSE:
                return
            self._transition(ConnectionState.NOTIFYING)
            yield item
            self._delivered += 1
            if self._state is ConnectionState.NOTIFYING:
                self._transition(ConnectionState.REGISTERED)

    async def close(self) -> None:
        """Unregister and release the client queue. Idempotent."""
        if self._state is ConnectionState.CLOSED:
            return
        if self._state is not ConnectionState.CLOSING:
            self._transition(ConnectionState.CLOSING)

        if self._client is not None:
            await self._broadcaster.unsubscribe(self._client)
            self._client.drain()

        self._transition(ConnectionState.CLOSED)
        logger.info(
            "client_disconnected",
            client_id=self._client.id if self._client else None,
            delivered=self._delivered,
            clients=self._broadcaster.client_count,
        )

    async def _pump(self, transport: Transport) -> None:
        async for notification in self.notifications():
            await transport.send(notification.frame)

    async def serve(self, transport: Transport) -> None:
        """Run the full lifecycle over a bidirectional transport.

        Sends each notification as a frame while concurrently reading
        from the transport to notice client disconnects. Returns once the
        connection is Closed; transport errors are logged, not raised.

        Args:
            transport: Accepted-on-demand client connection.
        """
        try:
            await transport.accept()
            await self.open()
        except CapacityError:
            logger.warning("client_rejected", reason="capacity")
            await transport.close()
            return
        except Exception as e:
            logger.warning("client_handshake_failed", error=str(e))
            await self.close()
            await transport.close()
            return

        logger.info(
            "client_connected",
            client_id=self._client.id if self._client else None,
            clients=self._broadcaster.client_count,
        )

        sender = asyncio.create_task(self._pump(transport))
        receiver = asyncio.create_task(transport.receive())
        try:
            done, _ = await asyncio.wait(
                {sender, receiver},
                return_when=asyncio.FIRST_COMPLETED,
            )
            for task in done:
                if task.cancelled():
                    continue
                error = task.exception()
                if error is not None:
                    logger.info(
                        "client_transport_error",
                        client_id=self._client.id if self._client else None,
                        error=repr(error),
                    )
        finally:
            for task in (sender, receiver):
                task.cancel()
            for task in (sender, receiver):
                with contextlib.suppress(asyncio.CancelledError, Exception):
                    await task
            await self.close()
            await transport.close()
