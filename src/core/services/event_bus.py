"""
EventBus — thread-safe, in-process broadcast for installer progress.

Every progress event (global logs, step logs, step transitions, run
start/complete/failure) is published here and fanned out to every
connected observer.  The browser connects through the SSE endpoint
(``GET /events``); the CLI and tests attach a queue directly.

Delivery model
──────────────
- Fire-and-forget.  ``publish()`` never blocks and never raises.
- No buffering and no replay: an event published while nobody is
  attached is dropped.  Observers must attach *before* triggering
  the actions they want to watch.
- A reconnecting browser rebuilds its view from the ``state:snapshot``
  event sent on connect (the installer state, not past events).
- Each subscriber owns a bounded ``queue.Queue``; a subscriber whose
  queue fills up is dropped.

Message standard (v1)
─────────────────────
Every event is a dict with these fields::

    {
        "v": 1,                     # schema version
        "ts": 1739648400.123,       # server timestamp
        "seq": 47,                  # monotonic sequence
        "type": "step:log",         # <domain>:<action>
        "key": "DOWNLOADING_LUNA",  # step identifier, "" for global events
        "data": { ... },            # event-specific payload
    }
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Any, Callable, Generator

logger = logging.getLogger(__name__)

_SCHEMA_VERSION = 1


class EventBus:
    """Thread-safe, in-process broadcast with per-subscriber queues.

    Parameters
    ----------
    subscriber_queue_size : int
        Maximum backlog per subscriber.  If a subscriber can't consume
        fast enough, its queue fills and the subscriber is dropped.
    """

    def __init__(self, *, subscriber_queue_size: int = 500) -> None:
        self._lock = threading.Lock()
        self._seq: int = 0
        self._subscribers: list[queue.Queue[dict]] = []
        self._subscriber_queue_size = subscriber_queue_size
        self._instance_id: str = time.strftime("%Y-%m-%dT%H:%M:%S")
        self._snapshot_provider: Callable[[], dict] | None = None

    @property
    def instance_id(self) -> str:
        """Server instance identifier (boot timestamp)."""
        return self._instance_id

    @property
    def seq(self) -> int:
        """Current sequence number (monotonically increasing)."""
        with self._lock:
            return self._seq

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def set_snapshot_provider(self, provider: Callable[[], dict] | None) -> None:
        """Register the callable that builds ``state:snapshot`` payloads."""
        self._snapshot_provider = provider

    # ── Publishing ──────────────────────────────────────────────

    def publish(
        self,
        event_type: str,
        *,
        key: str = "",
        data: dict[str, Any] | None = None,
    ) -> dict:
        """Broadcast an event to all attached subscribers.

        Parameters
        ----------
        event_type : str
            Event type in ``<domain>:<action>`` format.
        key : str
            Step identifier.  Empty for global events.
        data : dict | None
            Event-specific payload.

        Returns
        -------
        dict
            The full event dict with ``seq`` assigned.
        """
        with self._lock:
            self._seq += 1
            event: dict[str, Any] = {
                "v": _SCHEMA_VERSION,
                "ts": time.time(),
                "seq": self._seq,
                "type": event_type,
                "key": key,
                "data": data or {},
            }

            dead: list[queue.Queue[dict]] = []
            for q in self._subscribers:
                try:
                    q.put_nowait(event)
                except queue.Full:
                    dead.append(q)
            for q in dead:
                self._subscribers.remove(q)
                logger.info("Dropped unresponsive subscriber (queue full)")

        logger.debug("event %s key=%s", event_type, key or "-")

        return event

    # ── Subscribing ─────────────────────────────────────────────

    def attach(self) -> queue.Queue[dict]:
        """Register a new subscriber queue and return it."""
        q: queue.Queue[dict] = queue.Queue(maxsize=self._subscriber_queue_size)
        with self._lock:
            self._subscribers.append(q)
        return q

    def detach(self, q: queue.Queue[dict]) -> None:
        """Remove a subscriber queue.  Unknown queues are ignored."""
        with self._lock:
            if q in self._subscribers:
                self._subscribers.remove(q)

    def subscribe(
        self,
        *,
        heartbeat_interval: float = 30.0,
    ) -> Generator[dict, None, None]:
        """Yield events for an SSE client.  Blocks between events.

        The first two events are per-client: ``sys:ready`` and
        ``state:snapshot``.  After that the client receives every
        published event until the generator is closed.

        Parameters
        ----------
        heartbeat_interval : float
            Seconds between heartbeat events when idle.
        """
        q = self.attach()
        logger.info("SSE client connected (subscribers=%d)", self.subscriber_count)

        try:
            yield self._make_event("sys:ready", {"instance_id": self._instance_id})
            yield self._make_event("state:snapshot", self._snapshot())

            while True:
                try:
                    yield q.get(timeout=heartbeat_interval)
                except queue.Empty:
                    # Per-client keep-alive, not broadcast
                    yield self._make_event("sys:heartbeat", {})
        finally:
            self.detach(q)
            logger.info("SSE client disconnected (subscribers=%d)", self.subscriber_count)

    # ── Internal helpers ────────────────────────────────────────

    def _snapshot(self) -> dict:
        if self._snapshot_provider is None:
            return {}
        try:
            return self._snapshot_provider()
        except Exception as exc:
            logger.warning("Snapshot provider failed: %s", exc)
            return {}

    def _make_event(self, event_type: str, data: dict) -> dict:
        """Create a per-client event (NOT broadcast)."""
        with self._lock:
            self._seq += 1
            return {
                "v": _SCHEMA_VERSION,
                "ts": time.time(),
                "seq": self._seq,
                "type": event_type,
                "key": "",
                "data": data,
            }


# ── Module-level singleton ──────────────────────────────────────

bus = EventBus()
"""The global event bus instance.

Import and use::

    from src.core.services.event_bus import bus
    bus.publish("step:log", key="SETUP", data={...})
"""
