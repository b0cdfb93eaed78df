# Test Media Source
# Copyright (C) 2024-2026 Test Media Source contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Player: simulates every media interaction; no sound is ever produced.

Playing an item replays its scripted events: each event waits for its own
``post_delay_ms`` on the scheduler, then publishes the playback state it
describes.  A PLAYING event on an item with a known duration also arms a
one-shot timer that stops playback when the track would have ended.

Events flagged ``premium_required`` only fire for paid accounts.  For any
other account the event is dropped silently AND the script stops there: no
further events are scheduled until playback is restarted.  This is on
purpose, it is how upgrade / login-gating flows are exercised.

Transport verbs:
    play_from_id(id)   prepare_from_id(id)   prepare()   play()   pause()
    stop()   seek_to(ms)   skip_to_next()   skip_to_previous()
    skip_to_queue_item(i)   add_to_queue(id)   remove_from_queue(id)
    custom_action(action_id)   on_audio_focus_change(change)
"""

import enum
import logging

from .library import Library
from .models import (
    ErrorCode,
    EventAction,
    EventState,
    ItemFlag,
    MediaNode,
    PlaybackEvent,
    PlayerCustomAction,
    ResolutionIntent,
)
from .prefs import AccountType, Prefs
from .session import MediaSession, PlaybackAction, PlaybackState, QueueItem

log = logging.getLogger(__name__)

NO_ACTIVE_ITEM_MESSAGE = "null active item or empty events"


class PlayerState(enum.Enum):
    STOPPED = "stopped"
    PAUSED = "paused"
    PLAYING = "playing"
    ERROR = "error"


class AudioFocusChange(enum.Enum):
    GAIN = "gain"
    LOSS = "loss"
    LOSS_TRANSIENT = "loss_transient"
    LOSS_TRANSIENT_CAN_DUCK = "loss_transient_can_duck"


class Player:

    def __init__(self, library: Library, scheduler, session: MediaSession,
                 prefs: Prefs, request_audio_focus=None):
        self._library = library
        self._scheduler = scheduler
        self._session = session
        self._prefs = prefs
        self._request_audio_focus = request_audio_focus or (lambda: True)

        # Timer tokens
        self._track_timer = object()
        self._event_trigger = object()

        # Position is only updated when the state changes.
        self._position_ms = 0.0
        self._speed = 1.0
        self._playback_start_ms = 0.0
        self._is_playing = False
        self._state = PlayerState.STOPPED
        self._queue: list[MediaNode] = []
        self._queue_paths: list[str] = []
        self._active_index = -1
        self._next_event_index = -1
        self._resume_on_focus_gain = False
        self._hearts: dict[MediaNode, int] = {}

        self._custom_action_handlers = {
            PlayerCustomAction.HEART_PLUS_PLUS: self._on_heart_plus_plus,
            PlayerCustomAction.HEART_LESS_LESS: self._on_heart_less_less,
            PlayerCustomAction.REQUEST_LOCATION: self._on_request_location,
        }

    # ── Introspection ──

    @property
    def state(self) -> PlayerState:
        return self._state

    @property
    def is_playing(self) -> bool:
        return self._is_playing

    @property
    def queue(self) -> list[MediaNode]:
        return list(self._queue)

    @property
    def active_index(self) -> int:
        return self._active_index

    @property
    def active_item(self) -> MediaNode | None:
        if 0 <= self._active_index < len(self._queue):
            return self._queue[self._active_index]
        return None

    @property
    def position_ms(self) -> int:
        """Current position, including time elapsed in the running segment."""
        position = self._position_ms
        if self._is_playing:
            position += (self._scheduler.now_ms() - self._playback_start_ms) * self._speed
        return int(self._clamp_position(position))

    def hearts(self, node: MediaNode) -> int:
        return self._hearts.get(node, 0)

    # ── Queue ──

    def build_queue(self, parent_id: str) -> None:
        """Replace the queue with the playable children of *parent_id*."""
        parent = self._library.resolve(parent_id)
        self._queue = self._library.children_of(parent, ItemFlag.PLAYABLE)
        self._queue_paths = [parent_id] * len(self._queue)
        self._publish_queue()

    def add_to_queue(self, media_id: str) -> bool:
        node = self._library.resolve(media_id)
        if node is None or not node.is_playable:
            return False
        self._queue.append(node)
        self._queue_paths.append(self._library.parent_path(media_id))
        self._publish_queue()
        return True

    def remove_from_queue(self, media_id: str) -> bool:
        node = self._library.resolve(media_id)
        if node is None or not node.is_playable or node not in self._queue:
            return False
        active = self.active_item
        kept = [(item, path) for item, path in zip(self._queue, self._queue_paths)
                if item is not node]
        self._queue = [item for item, _ in kept]
        self._queue_paths = [path for _, path in kept]
        if active is not None and active in self._queue:
            self._active_index = self._queue.index(active)
        self._publish_queue()
        return True

    def set_active_queue_item(self, node: MediaNode | None) -> None:
        """Activate *node* if it is queued, otherwise the first item."""
        if node is None or node not in self._queue:
            self._active_index = 0
        else:
            self._active_index = self._queue.index(node)

    def _publish_queue(self) -> None:
        items = [QueueItem(i, node.describe(path))
                 for i, (node, path) in enumerate(zip(self._queue, self._queue_paths))]
        self._session.set_queue(items)

    # ── Transport verbs ──

    def play_from_id(self, media_id: str) -> None:
        self.build_queue(self._library.parent_path(media_id))
        self.set_active_queue_item(self._library.resolve(media_id))
        self._play_active_queue_item(new_item=True)

    def prepare_from_id(self, media_id: str) -> None:
        self.build_queue(self._library.parent_path(media_id))
        self.set_active_queue_item(self._library.resolve(media_id))
        self.prepare_active_item()

    def prepare(self) -> None:
        self._session.set_active(True)

    def prepare_active_item(self) -> None:
        """Publish a paused placeholder for the active item without playing it."""
        active = self.active_item
        if active is None:
            return
        if self._is_playing:
            self._stop_playback()
        # The previous item's script must not carry on against this one.
        self._scheduler.remove(self._event_trigger)
        self._publish_metadata(active)
        self._state = PlayerState.PAUSED
        self._publish_state(EventState.PAUSED, PlaybackAction.PLAY)

    def play(self) -> None:
        self._play_active_queue_item()

    def pause(self) -> None:
        if self._is_playing:
            self._position_ms = self.position_ms
        self._scheduler.remove(self._track_timer)
        self._scheduler.remove(self._event_trigger)
        self._is_playing = False
        self._state = PlayerState.PAUSED
        self._publish_state(EventState.PAUSED, PlaybackAction.PLAY)

    def stop(self) -> None:
        self._stop_playback()
        self._scheduler.remove(self._event_trigger)
        self._state = PlayerState.STOPPED
        self._publish_state(EventState.STOPPED, PlaybackAction.PLAY)

    def seek_to(self, position_ms: int) -> None:
        was_playing = self._is_playing
        if was_playing:
            self._scheduler.remove(self._track_timer)
            self._is_playing = False
        self._position_ms = self._clamp_position(float(position_ms))
        # Focus is already held while playing.
        self._start_playback(request_audio_focus=not was_playing)

    def skip_to_next(self) -> None:
        self._move_active_index(self._active_index + 1)

    def skip_to_previous(self) -> None:
        self._move_active_index(self._active_index - 1)

    def skip_to_queue_item(self, queue_id: int) -> None:
        self._move_active_index(queue_id)

    def _move_active_index(self, index: int) -> None:
        # Out of range is accepted, it reads as "no active item" until corrected.
        self._active_index = max(-1, min(int(index), len(self._queue)))
        self._play_active_queue_item(new_item=True)

    def custom_action(self, action_id: str) -> bool:
        action = PlayerCustomAction.from_id(action_id)
        active = self.active_item
        if action is None or active is None:
            log.warning("Ignoring custom action %s (active item: %s)", action_id,
                        active.media_id if active else None)
            return False
        self._custom_action_handlers[action](active)
        return True

    def on_audio_focus_change(self, change: AudioFocusChange) -> None:
        if change is AudioFocusChange.GAIN:
            if self._resume_on_focus_gain:
                self._resume_on_focus_gain = False
                self._start_playback(request_audio_focus=False)
        elif change is AudioFocusChange.LOSS:
            self._resume_on_focus_gain = False
            self.pause()
        elif change in (AudioFocusChange.LOSS_TRANSIENT,
                        AudioFocusChange.LOSS_TRANSIENT_CAN_DUCK):
            self._resume_on_focus_gain = self._is_playing
            self.pause()
        else:
            log.warning("Unknown audio focus change %s", change)

    # ── Publishing ──

    def set_playback_state(self, event: PlaybackEvent) -> None:
        """Publish the state described by *event*."""
        log.info("setPlaybackState %s", event)
        error_code = event.error_code if event.state is EventState.ERROR else None
        resolution_label = None
        if event.resolution is ResolutionIntent.PREFS:
            resolution_label = event.action_label
        self._session.set_playback_state(PlaybackState(
            state=event.state,
            position_ms=int(self._position_ms),
            speed=self._speed,
            actions=self._actions(PlaybackAction.PAUSE),
            error_code=error_code,
            error_message=event.error_message,
            resolution=event.resolution,
            resolution_label=resolution_label,
            **self._active_item_state(),
        ))

    def _publish_state(self, state: EventState, action: PlaybackAction) -> None:
        self._session.set_playback_state(PlaybackState(
            state=state,
            position_ms=int(self._position_ms),
            speed=self._speed,
            actions=self._actions(action),
            **self._active_item_state(),
        ))

    def _publish_error(self, code: ErrorCode, message: str) -> None:
        self._session.set_playback_state(PlaybackState(
            state=EventState.ERROR,
            position_ms=int(self._position_ms),
            speed=self._speed,
            error_code=code,
            error_message=message,
        ))

    def _publish_metadata(self, node: MediaNode) -> None:
        path = self._queue_paths[self._active_index] if self.active_item is node else ""
        self._session.set_metadata(node.describe(path))

    def _active_item_state(self) -> dict:
        active = self.active_item
        if active is None:
            return {}
        return {"custom_actions": active.custom_actions,
                "active_queue_id": self._active_index}

    def _actions(self, actions: PlaybackAction) -> PlaybackAction:
        actions |= (PlaybackAction.PLAY_FROM_MEDIA_ID | PlaybackAction.SEEK_TO
                    | PlaybackAction.PREPARE)
        if self._queue:
            actions |= PlaybackAction.SKIP_TO_QUEUE_ITEM
            if self._active_index < len(self._queue):
                actions |= PlaybackAction.SKIP_TO_NEXT
            if self._active_index > 0:
                actions |= PlaybackAction.SKIP_TO_PREVIOUS
        return actions

    # ── Scripted playback ──

    def _play_active_queue_item(self, new_item: bool = False) -> None:
        # Resuming keeps the paused position, a different item starts at 0.
        if self._is_playing or new_item:
            self._stop_playback()
        self._start_playback(request_audio_focus=True)

    def _start_playback(self, request_audio_focus: bool) -> None:
        if request_audio_focus and not self._request_audio_focus():
            log.info("Audio focus denied")
            return

        active = self.active_item
        if active is None or not active.events:
            self._scheduler.remove(self._event_trigger)
            self._stop_playback()
            self._state = PlayerState.STOPPED
            self._publish_error(ErrorCode.APP_ERROR, NO_ACTIVE_ITEM_MESSAGE)
            return

        self._publish_metadata(active)
        self._scheduler.remove(self._event_trigger)
        self._next_event_index = 0
        self._scheduler.post_delayed(self._on_process_media_event,
                                     active.events[0].post_delay_ms,
                                     token=self._event_trigger)

    def _on_process_media_event(self) -> None:
        active = self.active_item
        if active is None:
            return
        if not 0 <= self._next_event_index < len(active.events):
            log.warning("Event cursor %d out of range for %s",
                        self._next_event_index, active.media_id)
            return

        event = active.events[self._next_event_index]
        if event.toggle_item_id:
            self._toggle_item(event.toggle_item_id)

        if event.premium_required and self._prefs.account_type is not AccountType.PAID:
            log.info("Ignoring event that needs a paid account: %s", event)
            return
        if event.action is EventAction.RESET_METADATA:
            self._session.set_metadata(self._session.metadata)
        else:
            self.set_playback_state(event)

        if event.state is EventState.PLAYING:
            self._session.set_active(True)
            if self._is_playing:
                self._position_ms = float(self.position_ms)
            self._playback_start_ms = self._scheduler.now_ms()
            duration = active.duration
            if duration > 0:
                remaining = (duration - self._position_ms) / self._speed
                self._scheduler.remove(self._track_timer)
                self._scheduler.post_delayed(self._on_track_end, max(0.0, remaining),
                                             token=self._track_timer)
            self._is_playing = True
            self._state = PlayerState.PLAYING
        else:
            if self._is_playing:
                self._stop_playback()
            self._state = _player_state_for(event.state, self._state)

        self._next_event_index += 1
        if self._next_event_index < len(active.events):
            self._scheduler.post_delayed(self._on_process_media_event,
                                         active.events[self._next_event_index].post_delay_ms,
                                         token=self._event_trigger)

    def _on_track_end(self) -> None:
        log.info("Track ended")
        self.stop()

    def _stop_playback(self) -> None:
        """Reset the position clock; doesn't publish a state."""
        self._position_ms = 0.0
        self._scheduler.remove(self._track_timer)
        self._is_playing = False

    def _clamp_position(self, position: float) -> float:
        position = max(0.0, position)
        active = self.active_item
        if active is not None and active.duration > 0:
            position = min(position, float(active.duration))
        return position

    def _toggle_item(self, media_id: str) -> None:
        if self._library.toggle_hidden(media_id) is not None:
            self._session.notify_children_changed(self._library.parent_path(media_id))

    # ── Custom actions ──

    def _on_heart_plus_plus(self, node: MediaNode) -> None:
        self._hearts[node] = self._hearts.get(node, 0) + 1
        self._session.show_message(str(self._hearts[node]))

    def _on_heart_less_less(self, node: MediaNode) -> None:
        self._hearts[node] = self._hearts.get(node, 0) - 1
        self._session.show_message(str(self._hearts[node]))

    def _on_request_location(self, node: MediaNode) -> None:
        log.info("Location requested while playing %s", node.media_id)
        self._session.show_message("Location requested")


def _player_state_for(event_state: EventState, current: PlayerState) -> PlayerState:
    if event_state is EventState.ERROR:
        return PlayerState.ERROR
    if event_state is EventState.PAUSED:
        return PlayerState.PAUSED
    if event_state in (EventState.STOPPED, EventState.NONE):
        return PlayerState.STOPPED
    return current
