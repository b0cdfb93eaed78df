"""Tests for the content-tree resolver."""

import pytest

from testmedia.library import Library
from testmedia.loader import AssetLoader
from testmedia.models import ROOT_PATH, BrowseAction, ItemFlag, MediaNode, parent_path
from testmedia.prefs import BrowseNodeType


@pytest.mark.parametrize("media_id, expected", [
    ("", ""),
    ("r", ""),
    ("r#", ""),
    ("r#n", "r#"),
    ("r#n#", "r#"),
    ("_ROOT_#advanced#single style node", "_ROOT_#advanced#"),
    ("_ROOT_#advanced#single style node#", "_ROOT_#advanced#"),
])
def test_parent_path(media_id, expected):
    assert parent_path(media_id) == expected
    assert Library.parent_path(media_id) == expected


class TestResolve:
    """Tests for Library.resolve."""

    def test_resolves_nested_path(self, library):
        node = library.resolve("_ROOT_#rock#song1#")
        assert node is not None
        assert node.title == "Song One"

    def test_trailing_separator_is_optional(self, library):
        assert library.resolve("_ROOT_#rock#song1") is library.resolve("_ROOT_#rock#song1#")

    def test_resolve_is_idempotent(self, library):
        first = library.resolve("_ROOT_#jazz#blue#")
        assert first is not None
        assert library.resolve("_ROOT_#jazz#blue#") is first

    def test_follows_includes(self, library):
        node = library.resolve("_ROOT_#jazz#blue#")
        assert node.title == "Blue Song"

    def test_first_segment_names_a_source_file(self, library):
        assert library.resolve("jazz#blue#") is library.resolve("_ROOT_#jazz#blue#")
        assert library.resolve("media_items/jazz.json#blue#").title == "Blue Song"

    def test_favorites_are_preloaded(self, library):
        assert library.resolve("favorites#fav#").title == "Fav"

    @pytest.mark.parametrize("media_id", [
        None, "", "#", "_ROOT_#missing#", "_ROOT_#rock#song1#deeper#", "nofile#x#",
    ])
    def test_unknown_paths_resolve_to_none(self, library, media_id):
        assert library.resolve(media_id) is None

    def test_null_root(self, library):
        library.set_browse_root(BrowseNodeType.NULL)
        assert library.browse_root is None
        assert library.resolve(ROOT_PATH) is None

    def test_empty_root_is_found_but_empty(self, library):
        library.set_browse_root(BrowseNodeType.EMPTY)
        root = library.resolve(ROOT_PATH)
        assert root is not None
        assert library.children_of(root) == []

    def test_source_segment_cannot_leave_assets_dir(self, write_asset, tmp_path):
        write_asset("assets/media_items/favorites.json", {"id": "favorites"})
        write_asset("secret.json", {"id": "secret", "children": [{"id": "x"}]})
        library = Library(AssetLoader(str(tmp_path / "assets")))
        assert library.resolve("../secret.json#") is None
        assert library.resolve("../secret.json#x#") is None


class TestChildren:
    """Tests for children_of and reveal_children."""

    def test_children_keep_file_order(self, library):
        root = library.resolve(ROOT_PATH)
        ids = [child.media_id for child in library.children_of(root)]
        assert ids == ["rock", "jazz", "scripts", "live", "nothing"]

    def test_direct_children_come_before_included(self, write_asset, assets_dir):
        write_asset("media_items/both.json", {
            "id": "both",
            "include": "media_items/jazz.json",
            "children": [{"id": "own", "title": "Own"}],
        })
        library = Library(AssetLoader(assets_dir))
        node = library.resolve("both#")
        assert [c.media_id for c in library.children_of(node)] == ["own", "blue"]

    def test_filter_by_flag(self, library):
        root = library.resolve(ROOT_PATH)
        assert library.children_of(root, ItemFlag.PLAYABLE) == []
        assert len(library.children_of(root, ItemFlag.BROWSABLE)) == 5

    def test_children_of_none(self, library):
        assert library.children_of(None) == []

    def test_reveal_skips_hidden_children(self, library):
        library.toggle_hidden("_ROOT_#rock#song2#")
        rock = library.resolve("_ROOT_#rock#")
        assert [c.media_id for c in library.reveal_children(rock)] == ["song1"]
        assert [c.media_id for c in library.children_of(rock)] == ["song1", "song2"]
        # Hidden nodes still resolve.
        assert library.resolve("_ROOT_#rock#song2#").hidden

    def test_self_updating_node_reveals_progressively(self, library):
        live = library.resolve("_ROOT_#live#")
        sizes = [len(library.reveal_children(live)) for _ in range(4)]
        assert sizes == [0, 1, 2, 0]

    def test_static_node_lists_everything(self, library):
        rock = library.resolve("_ROOT_#rock#")
        for _ in range(3):
            assert len(library.reveal_children(rock)) == 2


class TestSearch:
    """Tests for Library.search."""

    def test_case_insensitive_depth_first(self, library):
        hits = library.search(ROOT_PATH, "SONG")
        assert [hit.path for hit in hits] == [
            "_ROOT_#rock#song1#", "_ROOT_#rock#song2#", "_ROOT_#jazz#blue#",
        ]
        assert hits[0].node is library.resolve("_ROOT_#rock#song1#")

    def test_hidden_nodes_are_not_hits(self, library):
        library.toggle_hidden("_ROOT_#rock#song1#")
        paths = [hit.path for hit in library.search(ROOT_PATH, "song")]
        assert "_ROOT_#rock#song1#" not in paths

    def test_descendants_of_hidden_nodes_are_searched(self, library):
        library.toggle_hidden("_ROOT_#rock#")
        paths = [hit.path for hit in library.search(ROOT_PATH, "song")]
        assert "_ROOT_#rock#song1#" in paths
        assert [hit.path for hit in library.search(ROOT_PATH, "rock")] == []

    def test_depth_limit(self, library):
        assert [h.path for h in library.search(ROOT_PATH, "rock", max_depth=1)] == ["_ROOT_#rock#"]
        assert library.search(ROOT_PATH, "song", max_depth=1) == []

    def test_no_root_or_no_query(self, library):
        assert library.search("_ROOT_#missing#", "song") == []
        assert library.search(ROOT_PATH, "") == []


class TestMutations:
    """Tests for toggle_hidden and replace_action."""

    def test_toggle_hidden_flips_back(self, library):
        node = library.toggle_hidden("_ROOT_#rock#song1#")
        assert node.hidden
        library.toggle_hidden("_ROOT_#rock#song1#")
        assert not node.hidden

    def test_toggle_unknown(self, library):
        assert library.toggle_hidden("_ROOT_#nope#") is None

    def test_replace_action_in_place(self, library):
        node = MediaNode("n", browse_actions=[BrowseAction.DOWNLOAD.action_id,
                                              BrowseAction.FAVORITE.action_id])
        library.replace_action(node, BrowseAction.DOWNLOAD, BrowseAction.DOWNLOADING)
        assert node.browse_actions == [BrowseAction.DOWNLOADING.action_id,
                                       BrowseAction.FAVORITE.action_id]

    def test_replace_missing_action_appends(self, library):
        node = library.resolve("_ROOT_#rock#song1#")
        library.replace_action(node, BrowseAction.FAVORITE, BrowseAction.FAVORITED)
        assert node.browse_actions == [BrowseAction.DOWNLOAD.action_id,
                                       BrowseAction.FAVORITED.action_id]
