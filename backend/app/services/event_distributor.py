from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import itertools
import logging
from threading import Lock
from typing import Any, Protocol

from fastapi import WebSocket

from app.models.user import UserRole

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    allocation_created = "allocation_created"
    allocation_updated = "allocation_updated"
    acknowledgment_submitted = "acknowledgment_submitted"
    live_status_changed = "live_status_changed"
    replacement_applied = "replacement_applied"


@dataclass(frozen=True)
class RecipientScope:
    kind: str
    key: str

    @classmethod
    def user(cls, user_id: str) -> "RecipientScope":
        return cls("user", user_id)

    @classmethod
    def role(cls, role: Any) -> "RecipientScope":
        return cls("role", getattr(role, "value", role))

    @classmethod
    def department_heads(cls, department: str) -> "RecipientScope":
        return cls("role", f"{UserRole.hod.value}:{department}")

    @property
    def channel_key(self) -> str:
        return f"{self.kind}:{self.key}"


@dataclass(frozen=True)
class NotificationEvent:
    kind: EventKind
    scopes: tuple[RecipientScope, ...]
    payload: dict = field(default_factory=dict)
    assignment_id: str | None = None


class Channel(Protocol):
    def push(self, payload: dict) -> bool:
        """Queue a payload without blocking. Returns False once the channel is gone."""


class WebSocketChannel:
    """Delivery handle for one websocket connection.

    `push` may be called from any thread; payloads are handed to the connection's event loop
    and sent in arrival order by `pump`.
    """

    def __init__(self, websocket: WebSocket, *, queue_size: int = 256) -> None:
        self._websocket = websocket
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue[dict] = asyncio.Queue(maxsize=max(1, queue_size))
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True

    def push(self, payload: dict) -> bool:
        if self._closed or self._loop.is_closed():
            return False
        try:
            self._loop.call_soon_threadsafe(self._enqueue, payload)
        except RuntimeError:
            return False
        return True

    def _enqueue(self, payload: dict) -> None:
        try:
            self._queue.put_nowait(payload)
        except asyncio.QueueFull:
            logger.warning("Dropping %s push for a slow websocket client", payload.get("event"))

    async def pump(self) -> None:
        try:
            while True:
                payload = await self._queue.get()
                await self._websocket.send_json(payload)
        finally:
            self._closed = True


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc).isoformat()
    return value.isoformat()


def _role_scopes(roles: Iterable[Any], department: str | None) -> list[RecipientScope]:
    scopes: list[RecipientScope] = []
    for role in roles:
        value = getattr(role, "value", role)
        if value == UserRole.hod.value:
            # Department heads only hear about duties of their own department.
            if department:
                scopes.append(RecipientScope.department_heads(department))
            continue
        scopes.append(RecipientScope.role(value))
    return scopes


class EventDistributor:
    def __init__(self) -> None:
        self._channels: dict[str, set[Channel]] = defaultdict(set)
        self._memberships: dict[Channel, tuple[str, ...]] = {}
        self._lock = Lock()
        self._sequence = itertools.count(1)

    def register(
        self,
        user_id: str,
        roles: Iterable[Any],
        channel: Channel,
        *,
        department: str | None = None,
    ) -> list[str]:
        keys = [RecipientScope.user(user_id).channel_key]
        for scope in _role_scopes(roles, department):
            key = scope.channel_key
            if key not in keys:
                keys.append(key)
        with self._lock:
            previous = self._memberships.get(channel, ())
            for key in previous:
                self._discard(key, channel)
            for key in keys:
                self._channels[key].add(channel)
            self._memberships[channel] = tuple(keys)
        logger.debug("Registered channel for user %s on %s", user_id, ", ".join(keys))
        return keys

    def unregister(self, channel: Channel) -> None:
        with self._lock:
            keys = self._memberships.pop(channel, ())
            for key in keys:
                self._discard(key, channel)

    def _discard(self, key: str, channel: Channel) -> None:
        members = self._channels.get(key)
        if not members:
            return
        members.discard(channel)
        if not members:
            self._channels.pop(key, None)

    def channels_for(self, scopes: Iterable[RecipientScope]) -> list[Channel]:
        with self._lock:
            return self._resolve(scopes)

    def _resolve(self, scopes: Iterable[RecipientScope]) -> list[Channel]:
        targets: dict[Channel, None] = {}
        for scope in scopes:
            for channel in self._channels.get(scope.channel_key, ()):
                targets[channel] = None
        return list(targets)

    def connection_count(self, user_id: str) -> int:
        with self._lock:
            return len(self._channels.get(RecipientScope.user(user_id).channel_key, ()))

    def channel_count(self) -> int:
        with self._lock:
            return len(self._memberships)

    def publish(self, event: NotificationEvent) -> int:
        """Push an event to every channel in its scopes, once per channel.

        Returns the number of channels that accepted the push. Having no connected recipient
        is not an error; those viewers reconcile on their next read.
        """
        with self._lock:
            targets = self._resolve(event.scopes)
            sequence = next(self._sequence)

        message = {
            "event": event.kind.value,
            "sequence": sequence,
            "assignment_id": event.assignment_id,
            "emitted_at": _iso(datetime.now(timezone.utc)),
            "data": event.payload,
        }
        delivered = 0
        stale: list[Channel] = []
        for channel in targets:
            try:
                accepted = channel.push(message)
            except Exception:  # pragma: no cover - transport dependent
                logger.debug("Push to channel failed", exc_info=True)
                accepted = False
            if accepted:
                delivered += 1
            else:
                stale.append(channel)

        for channel in stale:
            self.unregister(channel)
        if stale:
            logger.debug("Removed %d stale channel(s) while publishing %s", len(stale), event.kind.value)
        logger.debug(
            "Published %s #%d to %d channel(s)",
            event.kind.value,
            sequence,
            delivered,
            extra={"assignment_id": event.assignment_id or "-"},
        )
        return delivered

    def clear(self) -> None:
        with self._lock:
            self._channels.clear()
            self._memberships.clear()


event_distributor = EventDistributor()
