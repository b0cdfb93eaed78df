# Test Media Source
# Copyright (C) 2024-2026 Test Media Source contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
ActionResultSender: delayed, coalescing delivery of custom-action results.

Usage:

    ActionResultSender(scheduler) \\
        .set_refresh_media_id(media_id) \\
        .set_message("Download complete") \\
        .send_to_delayed(BrowseAction.DOWNLOADING, 5000, result.send_result) \\
        .on_complete(lambda: library.replace_action(node, old, new)) \\
        .send()

Each sender gets its own token unless the caller passes one.  Sending with a
token that still has a pending delivery cancels that delivery and its
completion before arming the new pair, so the newest result wins.  Delivery
is always asynchronous, even with no delay.
"""

import logging

log = logging.getLogger(__name__)

RESULT_REFRESH_ITEM = "refresh_item"
RESULT_OPEN_PLAYBACK = "show_playing_item"
RESULT_BROWSE_NODE = "browse_node"
RESULT_MESSAGE = "message"


def _noop(*args):
    pass


class ActionResultSender:

    def __init__(self, scheduler):
        self._scheduler = scheduler
        self._result: dict = {}
        self._send_function = _noop
        self._complete_function = _noop
        self._delay_ms = 0
        self._token = object()

    # ── Payload ──

    def put(self, key: str, value):
        self._result[key] = value
        return self

    def remove(self, key: str):
        self._result.pop(key, None)
        return self

    def set_refresh_media_id(self, media_id: str):
        return self.put(RESULT_REFRESH_ITEM, media_id)

    def set_show_playback_view(self, show: bool):
        if show:
            return self.put(RESULT_OPEN_PLAYBACK, True)
        return self.remove(RESULT_OPEN_PLAYBACK)

    def set_browse_node(self, media_id: str):
        return self.put(RESULT_BROWSE_NODE, media_id)

    def set_message(self, message: str):
        return self.put(RESULT_MESSAGE, message)

    # ── Delivery ──

    def send_to(self, send_function, token=None):
        if token is not None:
            self._token = token
        self._send_function = send_function
        return self

    def send_to_delayed(self, token, delay_ms: int, send_function):
        self._token = token
        self._delay_ms = delay_ms
        self._send_function = send_function
        return self

    def on_complete(self, complete_function):
        self._complete_function = complete_function
        return self

    @property
    def token(self):
        return self._token

    @property
    def result(self) -> dict:
        return dict(self._result)

    def send(self) -> None:
        self._scheduler.remove(self._token)
        self._scheduler.post_delayed(self._complete_function, self._delay_ms, token=self._token)
        self._scheduler.post_delayed(self._deliver, self._delay_ms, token=self._token)
        log.debug("Result for token %s armed (%dms): %s", self._token, self._delay_ms, self._result)

    def _deliver(self):
        self._send_function(dict(self._result))
