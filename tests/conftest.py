"""Shared fixtures: a virtual-clock scheduler and a small on-disk content tree."""

import json
from pathlib import Path

import pytest

from testmedia.library import Library
from testmedia.loader import AssetLoader
from testmedia.prefs import BrowseNodeType, Prefs
from testmedia.session import MediaSession


class ManualScheduler:
    """Drop-in Scheduler whose clock only moves on ``advance()``.

    Timers due at the same instant run in posting order.
    """

    def __init__(self):
        self._now = 0.0
        self._seq = 0
        self._timers = []  # [due_ms, seq, key, callback]

    def now_ms(self) -> float:
        return self._now

    def post(self, callback, token=None):
        self.post_delayed(callback, 0, token)

    def post_delayed(self, callback, delay_ms, token=None):
        key = callback if token is None else token
        self._seq += 1
        self._timers.append([self._now + max(0, delay_ms), self._seq, key, callback])

    def remove(self, token):
        self._timers = [t for t in self._timers if t[2] != token]

    def has_pending(self, token) -> bool:
        return any(t[2] == token for t in self._timers)

    def cancel_all(self):
        self._timers = []

    @property
    def pending(self) -> int:
        return len(self._timers)

    def advance(self, ms: float):
        """Run every timer due within the next *ms* milliseconds."""
        target = self._now + ms
        while True:
            due = [t for t in self._timers if t[0] <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t[0], t[1]))
            self._timers.remove(timer)
            self._now = timer[0]
            timer[3]()
        self._now = target


class Recorder:
    """Session listener that keeps everything published, in order."""

    def __init__(self):
        self.events = []

    def __call__(self, kind, payload):
        self.events.append((kind, payload))

    def of(self, kind):
        return [payload for k, payload in self.events if k == kind]

    def states(self):
        return [state.state for state in self.of("state")]


def _playing(post_delay_ms=0, **extra):
    return {"state": "PLAYING", "post_delay_ms": post_delay_ms, **extra}


TREE = {
    "id": "tree",
    "title": "Test tree",
    "children": [
        {
            "id": "rock",
            "title": "Rock",
            "flags": ["browsable"],
            "children": [
                {
                    "id": "song1",
                    "title": "Song One",
                    "flags": ["playable"],
                    "duration": 3000,
                    "custom_actions": ["HEART_PLUS_PLUS", "HEART_LESS_LESS", "REQUEST_LOCATION"],
                    "browse_actions": ["DOWNLOAD"],
                    "events": [_playing()],
                },
                {
                    "id": "song2",
                    "title": "Song Two",
                    "flags": ["playable"],
                    "duration": 3000,
                    "events": [_playing()],
                },
            ],
        },
        {
            "id": "jazz",
            "title": "Jazz",
            "flags": ["browsable"],
            "include": "media_items/jazz.json",
        },
        {
            "id": "scripts",
            "title": "Scripts",
            "flags": ["browsable"],
            "children": [
                {
                    "id": "premium",
                    "title": "Premium",
                    "flags": ["playable"],
                    "duration": 10000,
                    "events": [
                        {"state": "BUFFERING"},
                        _playing(100, premium_required=True),
                        {"state": "PAUSED", "post_delay_ms": 100},
                    ],
                },
                {"id": "silent", "title": "Silent", "flags": ["playable"], "duration": 1000},
                {
                    "id": "auth",
                    "title": "Auth",
                    "flags": ["playable"],
                    "events": [{
                        "state": "ERROR",
                        "error_code": "AUTHENTICATION_EXPIRED",
                        "error_message": "expired",
                        "action_label": "Sign in",
                        "resolution": "PREFS",
                    }],
                },
                {
                    "id": "toggler",
                    "title": "Toggler",
                    "flags": ["playable"],
                    "events": [_playing(toggle_item_id="_ROOT_#rock#song2#")],
                },
                {
                    "id": "reset",
                    "title": "Reset",
                    "flags": ["playable"],
                    "events": [_playing(), _playing(100, action="RESET_METADATA")],
                },
            ],
        },
        {
            "id": "live",
            "title": "Live",
            "flags": ["browsable"],
            "self_update_ms": 1000,
            "children": [
                {"id": "live1", "title": "Live 1", "flags": ["playable"]},
                {"id": "live2", "title": "Live 2", "flags": ["playable"]},
                {"id": "live3", "title": "Live 3", "flags": ["playable"]},
            ],
        },
        {"id": "nothing", "title": "Nothing", "flags": ["browsable"]},
    ],
}

JAZZ = {
    "id": "jazz",
    "children": [
        {"id": "blue", "title": "Blue Song", "flags": ["playable"], "events": [_playing()]},
    ],
}

FAVORITES = {
    "id": "favorites",
    "children": [
        {"id": "fav", "title": "Fav", "flags": ["playable"], "events": [_playing()]},
    ],
}

ROOT_CHILD_IDS = ["_ROOT_#rock#", "_ROOT_#jazz#", "_ROOT_#scripts#", "_ROOT_#live#",
                  "_ROOT_#nothing#"]


@pytest.fixture
def write_asset(tmp_path: Path):
    """Write a JSON asset below the temporary assets dir."""

    def write(relative_path: str, data):
        path = tmp_path / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(data, str):
            path.write_text(data)
        else:
            path.write_text(json.dumps(data))
        return path

    return write


@pytest.fixture
def assets_dir(tmp_path: Path, write_asset) -> str:
    write_asset("media_items/only_nodes.json", TREE)
    write_asset("media_items/jazz.json", JAZZ)
    write_asset("media_items/favorites.json", FAVORITES)
    write_asset("media_items/empty.json", {"id": "empty"})
    return str(tmp_path)


@pytest.fixture
def library(assets_dir) -> Library:
    lib = Library(AssetLoader(assets_dir))
    lib.set_browse_root(BrowseNodeType.NODE_CHILDREN)
    return lib


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def prefs() -> Prefs:
    return Prefs()


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def session(recorder) -> MediaSession:
    media_session = MediaSession()
    media_session.add_listener(recorder)
    return media_session
