# Test Media Source
# Copyright (C) 2024-2026 Test Media Source contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
MediaSession: where the player publishes what clients get to see.

Keeps the last published playback state, queue and metadata, and hands every
change to the registered listeners as ``listener(kind, payload)`` where kind
is one of ``state``, ``queue``, ``metadata``, ``active``,
``children_changed``, ``extras`` or ``message``.  The service turns those into
WebSocket pushes; tests read the attributes directly.
"""

import enum
import logging
from dataclasses import dataclass, field

from .models import ErrorCode, EventState, ResolutionIntent

log = logging.getLogger(__name__)


class PlaybackAction(enum.IntFlag):
    """Transport actions a client may offer, media-session bit values."""
    NONE = 0
    STOP = 1 << 0
    PAUSE = 1 << 1
    PLAY = 1 << 2
    REWIND = 1 << 3
    SKIP_TO_PREVIOUS = 1 << 4
    SKIP_TO_NEXT = 1 << 5
    FAST_FORWARD = 1 << 6
    SEEK_TO = 1 << 8
    PLAY_FROM_MEDIA_ID = 1 << 10
    SKIP_TO_QUEUE_ITEM = 1 << 12
    PREPARE = 1 << 14


@dataclass(frozen=True)
class PlaybackState:
    state: EventState
    position_ms: int = 0
    speed: float = 1.0
    actions: PlaybackAction = PlaybackAction.NONE
    error_code: ErrorCode | None = None
    error_message: str | None = None
    resolution: ResolutionIntent = ResolutionIntent.NONE
    resolution_label: str | None = None
    custom_actions: tuple = ()
    active_queue_id: int | None = None

    def to_dict(self) -> dict:
        data = {
            "state": self.state.name,
            "position": self.position_ms,
            "speed": self.speed,
            "actions": [a.name for a in PlaybackAction if a and a in self.actions],
            "custom_actions": [a.to_dict() for a in self.custom_actions],
            "active_queue_id": self.active_queue_id,
        }
        if self.error_code is not None:
            data["error_code"] = self.error_code.name
            data["error_message"] = self.error_message
        if self.resolution is not ResolutionIntent.NONE:
            data["resolution"] = {"intent": self.resolution.value,
                                  "label": self.resolution_label}
        return data


@dataclass(frozen=True)
class QueueItem:
    queue_id: int
    description: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"queue_id": self.queue_id, **self.description}


class MediaSession:

    def __init__(self):
        self.playback_state: PlaybackState | None = None
        self.queue: list[QueueItem] = []
        self.metadata: dict | None = None
        self.extras: dict = {}
        self.active = False
        self._listeners = []

    def add_listener(self, listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, kind: str, payload) -> None:
        for listener in list(self._listeners):
            listener(kind, payload)

    # ── Publishing ──

    def set_playback_state(self, state: PlaybackState) -> None:
        self.playback_state = state
        log.info("Playback state %s @%dms", state.state.name, state.position_ms)
        self._emit("state", state)

    def set_queue(self, queue: list[QueueItem]) -> None:
        self.queue = list(queue)
        self._emit("queue", self.queue)

    def set_metadata(self, metadata: dict | None) -> None:
        self.metadata = metadata
        self._emit("metadata", metadata)

    def set_active(self, active: bool) -> None:
        if self.active != active:
            self.active = active
            self._emit("active", active)

    def set_extras(self, extras: dict) -> None:
        self.extras = dict(extras)
        self._emit("extras", self.extras)

    def notify_children_changed(self, parent_id: str) -> None:
        self._emit("children_changed", parent_id)

    def show_message(self, message: str) -> None:
        log.info("Message: %s", message)
        self._emit("message", message)
