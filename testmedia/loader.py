# Test Media Source
# Copyright (C) 2024-2026 Test Media Source contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Builds MediaNode trees from the JSON asset files under ``media_items/``.

File format (every key optional except ``id``):

    {
      "id": "rock",
      "title": "Rock", "subtitle": "...", "extras": {"artist": "..."},
      "flags": ["browsable"],                 # and/or "playable"
      "duration": 30000,                      # ms
      "playable_style": "GRID", "browsable_style": "LIST", "single_item_style": "NONE",
      "self_update_ms": 0,
      "custom_actions": ["HEART_PLUS_PLUS"],
      "browse_actions": ["DOWNLOAD", "FAVORITE"],
      "events": [{"state": "BUFFERING"}, {"state": "PLAYING", "post_delay_ms": 800}],
      "children": [ ... ],
      "include": "media_items/more.json"
    }

A file's top-level object is its root; only the root's children are used when
another node includes the file.
"""

import json
import logging
import os

from .models import (
    BrowseAction,
    ContentStyle,
    ErrorCode,
    EventAction,
    EventState,
    ItemFlag,
    MediaNode,
    PlaybackEvent,
    PlayerCustomAction,
    ResolutionIntent,
)

log = logging.getLogger(__name__)

DEFAULT_ASSETS_DIR = os.path.dirname(os.path.abspath(__file__))


def _enum(enum_cls, name, default):
    if name is None:
        return default
    try:
        return enum_cls[str(name).upper()]
    except KeyError:
        log.warning("Unknown %s '%s', using %s", enum_cls.__name__, name, default.name)
        return default


def _flags(names) -> ItemFlag:
    flags = ItemFlag.NONE
    for name in names or []:
        flags |= _enum(ItemFlag, name, ItemFlag.NONE)
    return flags


def parse_event(data: dict) -> PlaybackEvent:
    return PlaybackEvent(
        state=_enum(EventState, data.get("state"), EventState.NONE),
        error_code=_enum(ErrorCode, data.get("error_code"), ErrorCode.UNKNOWN_ERROR),
        error_message=data.get("error_message"),
        action_label=data.get("action_label"),
        resolution=_enum(ResolutionIntent, data.get("resolution"), ResolutionIntent.NONE),
        action=_enum(EventAction, data.get("action"), EventAction.NONE),
        post_delay_ms=int(data.get("post_delay_ms", 0)),
        toggle_item_id=data.get("toggle_item_id"),
        premium_required=bool(data.get("premium_required", False)),
    )


def parse_node(data: dict) -> MediaNode:
    """Build a node and its subtree (children first)."""
    children = tuple(parse_node(child) for child in data.get("children", []))

    custom_actions = []
    for name in data.get("custom_actions", []):
        action = PlayerCustomAction.__members__.get(str(name).upper())
        if action is None:
            log.warning("Unknown custom action '%s'", name)
            continue
        custom_actions.append(action)

    browse_actions = []
    for name in data.get("browse_actions", []):
        action = BrowseAction.__members__.get(str(name).upper())
        if action is None:
            log.warning("Unknown browse action '%s'", name)
            continue
        browse_actions.append(action.action_id)

    return MediaNode(
        media_id=str(data["id"]),
        title=data.get("title"),
        subtitle=data.get("subtitle"),
        flags=_flags(data.get("flags")),
        duration_ms=int(data.get("duration", 0)),
        playable_style=_enum(ContentStyle, data.get("playable_style"), ContentStyle.NONE),
        browsable_style=_enum(ContentStyle, data.get("browsable_style"), ContentStyle.NONE),
        single_item_style=_enum(ContentStyle, data.get("single_item_style"), ContentStyle.NONE),
        self_update_ms=int(data.get("self_update_ms", 0)),
        custom_actions=tuple(custom_actions),
        events=tuple(parse_event(e) for e in data.get("events", [])),
        children=children,
        include=data.get("include") or None,
        extras=dict(data.get("extras", {})),
        browse_actions=browse_actions,
    )


class AssetLoader:
    """Reads asset files relative to *assets_dir*."""

    def __init__(self, assets_dir: str | None = None):
        self.assets_dir = assets_dir or DEFAULT_ASSETS_DIR

    def load_source(self, path: str) -> MediaNode | None:
        """Parse one asset file. Returns None (logged) when missing or invalid."""
        root_dir = os.path.realpath(self.assets_dir)
        full_path = os.path.realpath(os.path.join(root_dir, path))
        if os.path.commonpath([root_dir, full_path]) != root_dir:
            log.error("Refusing asset outside %s: %s", root_dir, path)
            return None
        try:
            with open(full_path) as f:
                data = json.load(f)
        except FileNotFoundError:
            log.error("Asset not found: %s", full_path)
            return None
        except (OSError, json.JSONDecodeError) as e:
            log.error("Unable to read %s: %s", full_path, e)
            return None

        try:
            root = parse_node(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            log.error("Malformed asset %s: %s", full_path, e)
            return None
        log.debug("Loaded %s (%d top-level children)", path, len(root.children))
        return root
