# Test Media Source
# Copyright (C) 2024-2026 Test Media Source contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Media items and scripted playback events.

A ``MediaNode`` is one entry of the simulated content tree.  Nodes are built
bottom-up by the loader and are read-only afterwards, except for the few
fields the Library mutates to simulate live edits (hidden flag, reveal
counter, browse action list).  A node's externally visible id is its tree
path: ancestor ids joined by ``TREE_PATH_SEPARATOR``, e.g. ``_ROOT_#rock#song1#``.
"""

import enum
from dataclasses import dataclass, field

TREE_PATH_SEPARATOR = "#"
ROOT_MEDIA_ID = "_ROOT_"
ROOT_PATH = ROOT_MEDIA_ID + TREE_PATH_SEPARATOR

ACTION_ID_PREFIX = "testmedia."


def parent_path(media_id: str) -> str:
    """Return the path of the parent of *media_id* (with trailing separator).

    ``"r#n"`` and ``"r#n#"`` both map to ``"r#"``; ids of two characters or
    less have no parent.
    """
    length = len(media_id)
    if length <= 2:
        return ""
    cut = media_id.rfind(TREE_PATH_SEPARATOR, 0, length - 1)
    return media_id[:cut + 1]


class ItemFlag(enum.IntFlag):
    NONE = 0
    BROWSABLE = 1
    PLAYABLE = 2


class ContentStyle(enum.Enum):
    """How a client should lay out children; names are the asset file values."""
    NONE = 0
    LIST = 1
    GRID = 2
    LIST_CATEGORY = 3
    GRID_CATEGORY = 4


class EventState(enum.Enum):
    NONE = 0
    STOPPED = 1
    PAUSED = 2
    PLAYING = 3
    FAST_FORWARDING = 4
    REWINDING = 5
    BUFFERING = 6
    ERROR = 7
    CONNECTING = 8
    SKIPPING_TO_PREVIOUS = 9
    SKIPPING_TO_NEXT = 10
    SKIPPING_TO_QUEUE_ITEM = 11


class ErrorCode(enum.Enum):
    UNKNOWN_ERROR = 0
    APP_ERROR = 1
    NOT_SUPPORTED = 2
    AUTHENTICATION_EXPIRED = 3
    PREMIUM_ACCOUNT_REQUIRED = 4
    CONCURRENT_STREAM_LIMIT = 5
    PARENTAL_CONTROL_RESTRICTED = 6
    NOT_AVAILABLE_IN_REGION = 7
    CONTENT_ALREADY_PLAYING = 8
    SKIP_LIMIT_REACHED = 9
    ACTION_ABORTED = 10
    END_OF_QUEUE = 11


class ResolutionIntent(enum.Enum):
    NONE = "none"
    PREFS = "prefs"          # open the settings screen


class EventAction(enum.Enum):
    NONE = "none"
    RESET_METADATA = "reset_metadata"


class PlayerCustomAction(enum.Enum):
    """Custom actions shown next to the transport controls."""
    HEART_PLUS_PLUS = ("heart_plus_plus", "Heart ++", "ic_heart_plus_plus")
    HEART_LESS_LESS = ("heart_less_less", "Heart --", "ic_heart_less_less")
    REQUEST_LOCATION = ("location", "Location", "ic_location")

    def __init__(self, short_id, label, icon):
        self.action_id = ACTION_ID_PREFIX + short_id
        self.label = label
        self.icon = icon

    @classmethod
    def from_id(cls, action_id: str):
        for action in cls:
            if action.action_id == action_id:
                return action
        return None

    def to_dict(self) -> dict:
        return {"id": self.action_id, "label": self.label, "icon": self.icon}


class BrowseAction(enum.Enum):
    """Custom actions attached to browse items."""
    DOWNLOAD = ("DOWNLOAD", "Download", "drawable/ic_download_for_offline")
    DOWNLOADING = ("DOWNLOADING", "Downloading", "drawable/ic_downloading")
    DOWNLOADED = ("DOWNLOAD-COMPLETE", "Downloaded", "drawable/ic_done_outline")
    FAVORITE = ("FAVORITE", "Favorite", "drawable/ic_favorite")
    FAVORITED = ("FAVORITED", "Favorited", "drawable/ic_favorited")
    ADD_TO_QUEUE = ("ADD_TO_QUEUE", "Add to queue", "drawable/ic_playlist_add_check")
    REMOVE_FROM_QUEUE = ("REMOVE_FROM_QUEUE", "Remove from queue", "drawable/ic_playlist_remove")
    ERROR_ACTION = ("ERROR_ACTION", "Error action", "drawable/ic_close")
    BROWSE_ACTION = ("BROWSE_ACTION", "Browse action", "drawable/ic_subdirectory_arrow_left")
    PBV_ACTION = ("PBV_ACTION", "Open playback", "drawable/ic_queue_music")

    def __init__(self, short_id, label, icon):
        self.action_id = ACTION_ID_PREFIX + short_id
        self.label = label
        self.icon = icon

    @classmethod
    def from_id(cls, action_id: str | None):
        for action in cls:
            if action.action_id == action_id:
                return action
        return None

    def to_dict(self) -> dict:
        return {"id": self.action_id, "label": self.label, "icon": self.icon, "extras": {}}


@dataclass(frozen=True)
class PlaybackEvent:
    """One scripted, timed playback-state transition of a node."""
    state: EventState
    error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR
    error_message: str | None = None
    action_label: str | None = None
    resolution: ResolutionIntent = ResolutionIntent.NONE
    action: EventAction = EventAction.NONE
    post_delay_ms: int = 0
    toggle_item_id: str | None = None
    premium_required: bool = False


@dataclass(eq=False)
class MediaNode:
    """A browsable category or playable track.

    Equality is identity: the same node may be reachable from several paths
    when files are included from more than one place.
    """
    media_id: str
    title: str | None = None
    subtitle: str | None = None
    flags: ItemFlag = ItemFlag.NONE
    duration_ms: int = 0
    playable_style: ContentStyle = ContentStyle.NONE
    browsable_style: ContentStyle = ContentStyle.NONE
    single_item_style: ContentStyle = ContentStyle.NONE
    self_update_ms: int = 0
    custom_actions: tuple[PlayerCustomAction, ...] = ()
    events: tuple[PlaybackEvent, ...] = ()
    children: tuple["MediaNode", ...] = ()
    include: str | None = None
    extras: dict = field(default_factory=dict)
    # Mutable subset, written only through the Library.
    browse_actions: list[str] = field(default_factory=list)
    hidden: bool = False
    reveal_counter: int = 0

    def test_flag(self, flag: ItemFlag) -> bool:
        return bool(self.flags & flag)

    @property
    def is_playable(self) -> bool:
        return self.test_flag(ItemFlag.PLAYABLE)

    @property
    def is_browsable(self) -> bool:
        return self.test_flag(ItemFlag.BROWSABLE)

    @property
    def duration(self) -> int:
        """Track length in ms, or -1 when unspecified."""
        return self.duration_ms if self.duration_ms > 0 else -1

    def path(self, parent: str) -> str:
        return parent + self.media_id + TREE_PATH_SEPARATOR

    def describe(self, parent: str) -> dict:
        """JSON-able description sent to clients for this node under *parent*."""
        desc = {
            "id": self.path(parent),
            "title": self.title,
            "subtitle": self.subtitle,
            "browsable": self.is_browsable,
            "playable": self.is_playable,
            "style": {
                "playable": self.playable_style.value,
                "browsable": self.browsable_style.value,
                "single_item": self.single_item_style.value,
            },
            "extras": dict(self.extras),
        }
        if self.duration > 0:
            desc["duration"] = self.duration
        if self.browse_actions:
            desc["browse_actions"] = list(self.browse_actions)
        return desc
