"""Activity broadcast actor.

A single asyncio task drains one command queue and is the only code that
touches the `ActivityHub`. WebSocket handlers and camera threads submit
commands; broadcasts therefore go out in ingestion order.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from pawtrack.api.schemas.models import snapshot_to_payload
from pawtrack.core.broadcast.hub import ActivityHub, ActivitySnapshot
from pawtrack.core.types import ActivityEvent

logger = logging.getLogger(__name__)

UPDATE_EVENT = "pet-activities-update"


class Listener(Protocol):
    async def send_json(self, data: Any) -> None: ...


@dataclass(frozen=True)
class IngestActivity:
    source_id: str
    event: ActivityEvent


@dataclass(frozen=True)
class RequestSnapshot:
    source_id: str


@dataclass(frozen=True)
class SourceDisconnected:
    source_id: str


@dataclass(frozen=True)
class ResizeHistory:
    history_capacity: int
    snapshot_history: int


Command = IngestActivity | RequestSnapshot | SourceDisconnected | ResizeHistory


class Broadcaster:
    def __init__(self, hub: ActivityHub) -> None:
        self.hub = hub
        self._listeners: dict[str, Listener] = {}
        self._queue: asyncio.Queue[Command | None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the consumer task on the running event loop."""

        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._task = asyncio.create_task(self._run(self._queue))

    async def stop(self) -> None:
        """Process commands queued so far, then stop the consumer."""

        if self._task is None or self._queue is None:
            return
        await self._queue.put(None)
        await self._task
        self._task = None

    def register(self, source_id: str, listener: Listener) -> None:
        self._listeners[source_id] = listener

    async def submit(self, command: Command) -> None:
        if self._queue is None:
            raise RuntimeError("Broadcaster is not running")
        await self._queue.put(command)

    def submit_threadsafe(self, command: Command) -> None:
        """Submit from a non-event-loop thread (e.g. the camera worker)."""

        if self._loop is None or self._queue is None or self._loop.is_closed():
            logger.warning("Broadcaster is not running; dropping %s", type(command).__name__)
            return
        self._loop.call_soon_threadsafe(self._queue.put_nowait, command)

    def resize_history(self, history_capacity: int, snapshot_history: int) -> None:
        """Apply new history bounds.

        While the consumer runs the change is queued behind pending commands;
        otherwise the hub is updated directly.
        """

        if self.running:
            self.submit_threadsafe(ResizeHistory(history_capacity, snapshot_history))
        else:
            self.hub.resize(history_capacity, snapshot_history)

    async def _run(self, queue: asyncio.Queue[Command | None]) -> None:
        while True:
            command = await queue.get()
            if command is None:
                return
            try:
                await self._handle(command)
            except Exception:
                logger.exception("Failed to handle %s", type(command).__name__)

    async def _handle(self, command: Command) -> None:
        if isinstance(command, IngestActivity):
            await self._broadcast(self.hub.ingest(command.source_id, command.event))
        elif isinstance(command, RequestSnapshot):
            listener = self._listeners.get(command.source_id)
            if listener is not None:
                await self._send(command.source_id, listener, self.hub.snapshot())
        elif isinstance(command, SourceDisconnected):
            self._listeners.pop(command.source_id, None)
            logger.info("Source disconnected: %s", command.source_id)
            await self._broadcast(self.hub.remove_source(command.source_id))
        elif isinstance(command, ResizeHistory):
            self.hub.resize(command.history_capacity, command.snapshot_history)

    async def _broadcast(self, snapshot: ActivitySnapshot) -> None:
        for source_id, listener in list(self._listeners.items()):
            await self._send(source_id, listener, snapshot)

    async def _send(self, source_id: str, listener: Listener, snapshot: ActivitySnapshot) -> None:
        try:
            await listener.send_json({"event": UPDATE_EVENT, "data": snapshot_to_payload(snapshot)})
        except Exception:
            # Delivery is at-most-once; a dead listener is dropped.
            logger.warning("Dropping listener %s after failed send", source_id)
            self._listeners.pop(source_id, None)
