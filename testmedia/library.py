# Test Media Source
# Copyright (C) 2024-2026 Test Media Source contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Library: resolves tree paths to MediaNodes and caches parsed asset files.

Paths look like ``_ROOT_#rock#song1#``: the first segment is either the
synthetic browse root or the name of an asset file, each further segment is
the short id of a child.  A node's children are its own children followed by
the top-level children of its ``include`` file, which is loaded on first use
and cached by path forever.  Includes are followed one level at a time, only
when a listing asks for them, so a file may include itself further down.

The Library is the only writer of the mutable node fields (hidden flag,
reveal counter, browse action list).
"""

import logging
from typing import NamedTuple

from .loader import AssetLoader
from .models import (
    ROOT_MEDIA_ID,
    TREE_PATH_SEPARATOR,
    BrowseAction,
    ItemFlag,
    MediaNode,
    parent_path,
)
from .prefs import BrowseNodeType

log = logging.getLogger(__name__)

MAX_SEARCH_DEPTH = 4
FAVORITES_PATH = "media_items/favorites.json"

ROOT_ASSET_PATHS = {
    BrowseNodeType.NULL: None,
    BrowseNodeType.EMPTY: "media_items/empty.json",
    BrowseNodeType.QUEUE_ONLY: "media_items/empty.json",
    BrowseNodeType.SINGLE_TAB: "media_items/single_node.json",
    BrowseNodeType.NODE_CHILDREN: "media_items/only_nodes.json",
    BrowseNodeType.LEAF_CHILDREN: "media_items/simple_leaves.json",
    BrowseNodeType.MIXED_CHILDREN: "media_items/mixed.json",
    BrowseNodeType.UNTAGGED: "media_items/untagged.json",
}


class SearchHit(NamedTuple):
    path: str
    node: MediaNode


def _source_path(name: str) -> str:
    """Map a leading path segment such as ``favorites`` to its asset file."""
    if not name.endswith(".json"):
        name += ".json"
    if "/" not in name:
        name = "media_items/" + name
    return name


class Library:

    def __init__(self, loader: AssetLoader):
        self._loader = loader
        self._root_paths = dict(ROOT_ASSET_PATHS)
        # Root item of each loaded asset file, keyed by the file's path.
        self._sources: dict[str, MediaNode] = {}
        self._browse_root: MediaNode | None = None
        # Favorites are not necessarily reached through the browse tree.
        self._load_source(FAVORITES_PATH)

    # ── Browse root ──

    def source_path(self, kind: BrowseNodeType | None) -> str | None:
        return self._root_paths.get(kind)

    def set_browse_root(self, kind: BrowseNodeType | None) -> None:
        """Back ``_ROOT_`` with the file for *kind*; NULL/None means no root."""
        path = self._root_paths.get(kind)
        self._browse_root = MediaNode(ROOT_MEDIA_ID, include=path) if path else None
        log.info("Browse root: %s", path)

    @property
    def browse_root(self) -> MediaNode | None:
        return self._browse_root

    # ── Lookups ──

    @staticmethod
    def parent_path(media_id: str) -> str:
        return parent_path(media_id)

    def children_of(self, node: MediaNode | None,
                    filter_flag: ItemFlag = ItemFlag.NONE) -> list[MediaNode]:
        """Direct children then included children, optionally filtered by flag."""
        if node is None:
            return []
        children = list(node.children)
        if node.include:
            included = self._load_source(node.include)
            if included is not None:
                children.extend(included.children)
        if filter_flag == ItemFlag.NONE:
            return children
        return [child for child in children if child.test_flag(filter_flag)]

    def resolve(self, media_id: str | None) -> MediaNode | None:
        if not media_id:
            return None
        segments = media_id.split(TREE_PATH_SEPARATOR)
        # A trailing separator closes the last segment, it does not open a new one.
        while len(segments) > 1 and segments[-1] == "":
            segments.pop()
        first = segments[0]
        if not first:
            return None
        if first == ROOT_MEDIA_ID:
            node = self._browse_root
        else:
            node = self._load_source(_source_path(first))
        for short_id in segments[1:]:
            if node is None:
                break
            node = self._child_by_id(self.children_of(node), short_id)
        if node is None:
            log.debug("Unable to resolve %s", media_id)
        return node

    def reveal_children(self, node: MediaNode) -> list[MediaNode]:
        """Children currently exposed by *node*, skipping hidden ones.

        Self-updating nodes expose only their first ``reveal_counter``
        children; each listing advances the counter, wrapping at the child
        count, so the node appears to populate progressively.
        """
        children = self.children_of(node)
        count = len(children)
        if count == 0:
            return []
        shown = node.reveal_counter if node.self_update_ms > 0 else count
        visible = [child for child in children[:shown] if not child.hidden]
        if node.self_update_ms > 0:
            node.reveal_counter = (node.reveal_counter + 1) % count
        return visible

    def search(self, root_path: str, query: str,
               max_depth: int = MAX_SEARCH_DEPTH) -> list[SearchHit]:
        """Case-insensitive title search, depth-first, at most *max_depth* levels.

        Hidden nodes are never hits, but their descendants are still visited.
        """
        hits: list[SearchHit] = []
        root = self.resolve(root_path)
        if root is None or not query:
            return hits
        self._add_search_results(root_path, root, query.casefold(), hits, max_depth)
        return hits

    def _add_search_results(self, path, node, needle, hits, depth):
        if depth <= 0:
            return
        for child in self.children_of(node):
            child_path = child.path(path)
            if not child.hidden and child.title and needle in child.title.casefold():
                hits.append(SearchHit(child_path, child))
            self._add_search_results(child_path, child, needle, hits, depth - 1)

    # ── Mutations ──

    def toggle_hidden(self, media_id: str) -> MediaNode | None:
        node = self.resolve(media_id)
        if node is None:
            log.error("toggle_hidden can't find: %s", media_id)
            return None
        node.hidden = not node.hidden
        log.info("%s is now %s", media_id, "hidden" if node.hidden else "visible")
        return node

    def replace_action(self, node: MediaNode, old: BrowseAction, new: BrowseAction) -> None:
        """Swap *old* for *new* in place, or append *new* when *old* is absent."""
        actions = node.browse_actions
        try:
            index = actions.index(old.action_id)
        except ValueError:
            actions.append(new.action_id)
        else:
            actions[index] = new.action_id

    # ── Source cache ──

    def _load_source(self, path: str) -> MediaNode | None:
        root = self._sources.get(path)
        if root is None:
            root = self._loader.load_source(path)
            if root is not None:
                self._sources[path] = root
            else:
                log.error("Unable to load: %s", path)
        return root

    @staticmethod
    def _child_by_id(children, short_id):
        for child in children:
            if child.media_id == short_id:
                return child
        return None
