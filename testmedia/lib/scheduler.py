# Test Media Source
# Copyright (C) 2024-2026 Test Media Source contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Scheduler: the single cooperative timeline every component runs on.

All state transitions, scripted-event ticks and delayed replies are posted
onto the asyncio event loop.  Nothing blocks: a delay is only a scheduling
offset.  Pending timers are filed under a token so a whole class of them can
be cancelled at once:

    scheduler.post_delayed(self._on_track_end, 3000, token=self._track_timer)
    scheduler.remove(self._track_timer)     # no-op if it already fired

When no token is given the callback itself is the key, so
``scheduler.remove(callback)`` cancels every pending post of it.
"""

import asyncio
import logging

log = logging.getLogger(__name__)


class Scheduler:
    """Token-keyed delayed callbacks on top of an asyncio loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
        self._loop = loop
        self._pending: dict[object, set[asyncio.TimerHandle]] = {}

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now_ms(self) -> float:
        """Monotonic loop time in milliseconds."""
        return self.loop.time() * 1000.0

    # ── Posting ──

    def post(self, callback, token=None) -> asyncio.TimerHandle:
        """Run *callback* on the next loop iteration (never inline)."""
        return self.post_delayed(callback, 0, token)

    def post_delayed(self, callback, delay_ms: float, token=None) -> asyncio.TimerHandle:
        key = callback if token is None else token
        handles = self._pending.setdefault(key, set())
        handle: asyncio.TimerHandle | None = None

        def fire():
            handles.discard(handle)
            if not handles and self._pending.get(key) is handles:
                del self._pending[key]
            try:
                callback()
            except Exception:
                log.exception("Scheduled callback %r failed", callback)

        handle = self.loop.call_later(max(0.0, delay_ms) / 1000.0, fire)
        handles.add(handle)
        return handle

    def post_threadsafe(self, callback):
        """Marshal a trigger from another thread onto the timeline.

        The loop must already be bound: other threads have no running loop.
        """
        if self._loop is None:
            raise RuntimeError("Scheduler is not bound to an event loop yet")
        self._loop.call_soon_threadsafe(self.post, callback)

    # ── Cancellation ──

    def remove(self, token) -> None:
        """Cancel everything pending under *token*."""
        handles = self._pending.pop(token, None)
        if not handles:
            return
        for handle in handles:
            handle.cancel()

    def has_pending(self, token) -> bool:
        return bool(self._pending.get(token))

    def cancel_all(self) -> None:
        for token in list(self._pending):
            self.remove(token)
