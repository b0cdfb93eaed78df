# Test Media Source
# Copyright (C) 2024-2026 Test Media Source contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Operator-controlled knobs the core switches on.

Each knob is an enum whose members carry a stable id (the value written in
config.json) and a display title.  ``Prefs`` holds the live values and
notifies listeners on change; one instance is owned by the service and
injected into the components that read it.
"""

import enum
import logging

from .lib.config import cfg

log = logging.getLogger(__name__)


class PrefEnum(enum.Enum):
    """Enum member = (id, title[, extra...])."""

    @property
    def pref_id(self) -> str:
        return self.value[0]

    @property
    def title(self) -> str:
        return self.value[1]

    @classmethod
    def from_id(cls, pref_id, default=None):
        for member in cls:
            if member.pref_id == pref_id:
                return member
        return default


class AccountType(PrefEnum):
    FREE = ("free", "Free")
    PAID = ("paid", "Paid")
    NONE = ("none", "None")


class ReplyDelay(PrefEnum):
    """For simulating various backend reply speeds."""
    NONE = ("none", "None", 0)
    SHORT = ("short", "Short", 50)
    SHORT_PLUS = ("short+", "Short+", 150)
    MEDIUM = ("medium", "Medium", 500)
    MEDIUM_PLUS = ("medium+", "Medium+", 2000)
    LONG = ("long", "Long", 5000)
    EXTRA_LONG = ("extra-long", "Extra-Long", 10000)

    @property
    def delay_ms(self) -> int:
        return self.value[2]

    @property
    def title(self) -> str:
        return f"{self.value[1]}({self.delay_ms})"


class BrowseNodeType(PrefEnum):
    NODE_CHILDREN = ("nodes", "Only browse-able content")
    NULL = ("null", "Null (error)")
    EMPTY = ("empty", "Empty")
    QUEUE_ONLY = ("queue-only", "Queue only")
    SINGLE_TAB = ("single-tab", "Single browse-able tab")
    LEAF_CHILDREN = ("leaves", "Only playable content (basic working and error cases)")
    MIXED_CHILDREN = ("mixed", "Mixed content (apps are not supposed to do that)")
    UNTAGGED = ("untagged", "Untagged media items (not playable or browsable)")


class LoginEventOrder(PrefEnum):
    """Order of events after login: well-behaved apps publish state first."""
    PLAYBACK_STATE_UPDATE_FIRST = ("state-first", "Update playback state first")
    BROWSE_TREE_LOAD_FIRST = ("tree-first", "Load browse tree first")


_DEFAULTS = {
    "account_type": AccountType.PAID,
    "root_node_type": BrowseNodeType.NODE_CHILDREN,
    "reply_delay": ReplyDelay.NONE,
    "login_event_order": LoginEventOrder.PLAYBACK_STATE_UPDATE_FIRST,
}


class Prefs:
    """Live preference values with per-key change listeners."""

    def __init__(self, **values):
        self._values = dict(_DEFAULTS)
        for key, value in values.items():
            if key not in _DEFAULTS:
                raise KeyError(f"Unknown pref: {key}")
            self._values[key] = value
        self._listeners: dict[str, list] = {key: [] for key in _DEFAULTS}

    @classmethod
    def from_config(cls):
        """Build prefs from the ``prefs`` config section, ignoring bad ids."""
        values = {}
        for key, default in _DEFAULTS.items():
            pref_id = cfg("prefs", key)
            if pref_id is None:
                continue
            value = type(default).from_id(pref_id)
            if value is None:
                log.warning("Unknown %s '%s' in config, using '%s'",
                            key, pref_id, default.pref_id)
                continue
            values[key] = value
        return cls(**values)

    @property
    def account_type(self) -> AccountType:
        return self._values["account_type"]

    @property
    def root_node_type(self) -> BrowseNodeType:
        return self._values["root_node_type"]

    @property
    def reply_delay(self) -> ReplyDelay:
        return self._values["reply_delay"]

    @property
    def login_event_order(self) -> LoginEventOrder:
        return self._values["login_event_order"]

    def get(self, key: str):
        return self._values[key]

    def set(self, key: str, value) -> None:
        """Store *value* and call ``listener(old, new)`` if it changed."""
        old = self._values[key]
        if not isinstance(value, type(old)):
            raise TypeError(f"{key} expects {type(old).__name__}, got {value!r}")
        if old is value:
            return
        self._values[key] = value
        log.info("Pref %s: %s -> %s", key, old.pref_id, value.pref_id)
        for listener in list(self._listeners[key]):
            listener(old, value)

    def set_by_id(self, key: str, pref_id: str) -> bool:
        """Set from a config/wire id. Returns False for unknown keys or ids."""
        if key not in self._values:
            return False
        value = type(self._values[key]).from_id(pref_id)
        if value is None:
            return False
        self.set(key, value)
        return True

    def register_change_listener(self, key: str, listener) -> None:
        self._listeners[key].append(listener)

    def unregister_change_listener(self, key: str, listener) -> None:
        try:
            self._listeners[key].remove(listener)
        except ValueError:
            pass

    def to_dict(self) -> dict:
        return {key: value.pref_id for key, value in self._values.items()}
