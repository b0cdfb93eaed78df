"""Tests for preferences and the JSON config loader."""

import json

import pytest

from testmedia.lib import config
from testmedia.prefs import (
    AccountType,
    BrowseNodeType,
    LoginEventOrder,
    Prefs,
    ReplyDelay,
)


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """Point the config loader at a temporary file."""
    path = tmp_path / "config.json"
    monkeypatch.setattr(config, "_SEARCH_PATHS", [str(path)])
    monkeypatch.setattr(config, "_config", None)

    def write(data):
        path.write_text(json.dumps(data))
        config.reload_config()

    return write


class TestPrefEnums:

    def test_reply_delays(self):
        assert [d.delay_ms for d in ReplyDelay] == [0, 50, 150, 500, 2000, 5000, 10000]
        assert ReplyDelay.MEDIUM.title == "Medium(500)"

    def test_from_id(self):
        assert BrowseNodeType.from_id("queue-only") is BrowseNodeType.QUEUE_ONLY
        assert AccountType.from_id("bogus") is None
        assert AccountType.from_id("bogus", AccountType.FREE) is AccountType.FREE


class TestPrefs:

    def test_defaults(self):
        prefs = Prefs()
        assert prefs.account_type is AccountType.PAID
        assert prefs.root_node_type is BrowseNodeType.NODE_CHILDREN
        assert prefs.reply_delay is ReplyDelay.NONE
        assert prefs.login_event_order is LoginEventOrder.PLAYBACK_STATE_UPDATE_FIRST

    def test_unknown_key_rejected(self):
        with pytest.raises(KeyError):
            Prefs(volume=3)

    def test_listener_sees_old_and_new(self):
        prefs = Prefs()
        changes = []
        prefs.register_change_listener("account_type", lambda old, new: changes.append((old, new)))
        prefs.set("account_type", AccountType.FREE)
        prefs.set("account_type", AccountType.FREE)
        assert changes == [(AccountType.PAID, AccountType.FREE)]

    def test_unregistered_listener_is_not_called(self):
        prefs = Prefs()
        changes = []

        def listener(old, new):
            changes.append(new)

        prefs.register_change_listener("reply_delay", listener)
        prefs.unregister_change_listener("reply_delay", listener)
        prefs.unregister_change_listener("reply_delay", listener)
        prefs.set("reply_delay", ReplyDelay.LONG)
        assert changes == []

    def test_set_checks_type(self):
        with pytest.raises(TypeError):
            Prefs().set("account_type", ReplyDelay.LONG)

    def test_set_by_id(self):
        prefs = Prefs()
        assert prefs.set_by_id("reply_delay", "short+")
        assert prefs.reply_delay is ReplyDelay.SHORT_PLUS
        assert not prefs.set_by_id("reply_delay", "forever")
        assert not prefs.set_by_id("colour", "red")
        assert prefs.to_dict()["reply_delay"] == "short+"


class TestConfig:

    def test_cfg_from(self):
        data = {"service": {"port": 9000}, "device": "X"}
        assert config.cfg_from(data, "service", "port") == 9000
        assert config.cfg_from(data, "service", "host", default="h") == "h"
        assert config.cfg_from(data, "device") == "X"
        assert config.cfg_from(data, "device", "sub", default=1) == 1
        assert config.cfg_from(data, "missing", default={}) == {}

    def test_cfg_reads_file(self, config_file):
        config_file({"service": {"port": 9001}, "prefs": {}})
        assert config.cfg("service", "port") == 9001

    def test_missing_file_gives_empty_config(self, config_file):
        config.reload_config()
        assert config.cfg("service", "port", default=8780) == 8780

    def test_invalid_json_is_skipped(self, config_file, tmp_path):
        (tmp_path / "config.json").write_text("{broken")
        assert config.reload_config() == {}

    def test_validation_warnings(self, config_file, caplog):
        config_file({"service": {"port": "80"}, "prefs": {"shoe_size": "42"}})
        assert "service.port should be an integer" in caplog.text
        assert "unknown prefs key 'shoe_size'" in caplog.text

    def test_prefs_from_config(self, config_file):
        config_file({"prefs": {
            "account_type": "free",
            "root_node_type": "leaves",
            "reply_delay": "nonsense",
        }})
        prefs = Prefs.from_config()
        assert prefs.account_type is AccountType.FREE
        assert prefs.root_node_type is BrowseNodeType.LEAF_CHILDREN
        assert prefs.reply_delay is ReplyDelay.NONE
