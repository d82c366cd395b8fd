"""
Channel Registry — in-process pub/sub for live notifications.

Each authenticated connection is subscribed to exactly two channels:
``user:<id>`` and ``org:<id>``. Publishing is fire-and-forget: events go
into the queues of whoever is subscribed right now, nothing is queued for
absent connections and nothing is confirmed.

Usage:
- Connect:   connection = await registry.connect(token)
- Stream:    async for frame in registry.stream(connection): ...
- Publish:   registry.publish(org_channel(org_id), event_dict)

One registry is created at process start and passed to publishers.
"""

import asyncio
import json
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from typing import AsyncGenerator, Optional

import structlog

from roundwatch.auth.identity import Identity, IdentityVerifier

logger = structlog.get_logger(__name__)


def user_channel(user_id: uuid.UUID | str) -> str:
    return f"user:{user_id}"


def org_channel(organization_id: uuid.UUID | str) -> str:
    return f"org:{organization_id}"


@dataclass(eq=False)
class Connection:
    """A live subscriber. Lives exactly as long as its stream."""
    identity: Identity
    queue: asyncio.Queue
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    channels: tuple[str, ...] = ()


class ChannelRegistry:
    """
    Registry of live connections keyed by channel.

    Only connect/disconnect mutate subscriptions.
    """

    def __init__(
        self,
        verifier: IdentityVerifier,
        queue_size: int = 100,
        keepalive_seconds: float = 30.0,
    ):
        self.verifier = verifier
        self.queue_size = queue_size
        self.keepalive_seconds = keepalive_seconds
        self._subscribers: dict[str, set[Connection]] = defaultdict(set)

    @property
    def connection_count(self) -> int:
        return len({c for conns in self._subscribers.values() for c in conns})

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscribers.get(channel, ()))

    async def connect(self, token: Optional[str]) -> Connection:
        """
        Authenticate and subscribe a new connection.

        Raises ConnectionRejected with the reason when the credential is
        missing, invalid, or points to an unknown identity.
        """
        identity = await self.verifier.verify(token)
        connection = Connection(
            identity=identity,
            queue=asyncio.Queue(maxsize=self.queue_size),
            channels=(
                user_channel(identity.user_id),
                org_channel(identity.organization_id),
            ),
        )
        for channel in connection.channels:
            self._subscribers[channel].add(connection)
        logger.info(
            "connection_subscribed",
            connection_id=connection.id,
            user_id=str(identity.user_id),
            channels=list(connection.channels),
        )
        return connection

    def disconnect(self, connection: Connection) -> None:
        for channel in connection.channels:
            subscribers = self._subscribers.get(channel)
            if subscribers is None:
                continue
            subscribers.discard(connection)
            if not subscribers:
                del self._subscribers[channel]
        logger.info("connection_removed", connection_id=connection.id)

    async def stream(self, connection: Connection) -> AsyncGenerator[str, None]:
        """
        Yield SSE-formatted frames for a connection until the client leaves.

        Sends a keepalive comment when idle. Leaving the generator (client
        disconnect, cancellation) removes the connection from its channels.
        """
        try:
            while True:
                try:
                    data = await asyncio.wait_for(
                        connection.queue.get(), timeout=self.keepalive_seconds
                    )
                    yield f"data: {json.dumps(data, ensure_ascii=False, default=str)}\n\n"
                except asyncio.TimeoutError:
                    # SSE comment = keepalive (not data, won't trigger onmessage)
                    yield ": keepalive\n\n"
        finally:
            self.disconnect(connection)

    def publish(self, channel: str, event: dict) -> int:
        """
        Put an event on every connection subscribed to a channel.

        Never blocks and never raises. Returns the number of recipients;
        zero when nobody is listening.
        """
        connections = list(self._subscribers.get(channel, ()))
        delivered = 0
        for connection in connections:
            try:
                connection.queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning("event_queue_full", channel=channel, connection_id=connection.id)

        logger.debug(
            "event_published",
            channel=channel,
            event_type=event.get("type"),
            recipients=delivered,
        )
        return delivered

    # ── Event helpers ──────────────────────────────────────────────────

    def emit_message(self, organization_id: uuid.UUID | str, team_id: uuid.UUID | str, data: dict) -> int:
        """Team chat message, broadcast to the team's organization."""
        return self.publish(
            org_channel(organization_id),
            {"type": "team_message", "teamId": str(team_id), **data},
        )

    def emit_notification(self, user_id: uuid.UUID | str, notification: dict) -> int:
        return self.publish(
            user_channel(user_id),
            {"type": "notification", "notification": notification},
        )
