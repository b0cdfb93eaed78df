# Test Media Source
# Copyright (C) 2024-2026 Test Media Source contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Test Media Service (testmedia)

Delivers a scripted content tree and a simulated player to a media client.
The tree comes from the JSON assets in ``media_items/``; a handful of
preferences (account type, root kind, reply delay, login event order) turn
it into a wide range of browsing and playback scenarios, error cases
included.

Browse requests are answered through ``Result`` objects: with a reply delay
configured the lookup is detached and runs later on the scheduler, which is
how slow backends are simulated.

Port: 8780
"""

import asyncio
import logging

from aiohttp import web

from .action_result import RESULT_MESSAGE, RESULT_REFRESH_ITEM, ActionResultSender
from .lib.config import cfg
from .lib.scheduler import Scheduler
from .lib.source_base import SourceBase
from .library import Library
from .loader import AssetLoader
from .models import (
    ROOT_PATH,
    TREE_PATH_SEPARATOR,
    BrowseAction,
    ErrorCode,
    EventState,
    ItemFlag,
    MediaNode,
    PlaybackEvent,
    ResolutionIntent,
    parent_path,
)
from .player import AudioFocusChange, Player
from .prefs import AccountType, BrowseNodeType, LoginEventOrder, Prefs, ReplyDelay
from .session import MediaSession, PlaybackAction, PlaybackState

log = logging.getLogger(__name__)

DOWNLOAD_DELAY_MS = 5_000
LOGIN_STATE_DELAY_MS = 3_000
FAVORITES_MEDIA_ID = "favorites"

MSG_DOWNLOAD_COMPLETE = "Download complete"
MSG_DOWNLOAD_REMOVED = "Download removed"
MSG_DOWNLOAD_CANCELLED = "Download cancelled"
MSG_ADDED_FAVORITE = "Added to favorites"
MSG_REMOVED_FAVORITE = "Removed from favorites"
MSG_ERROR = "Something went wrong"
MSG_NO_ACCOUNT = "No account"
MSG_SELECT_ACCOUNT = "Select account"


class Result:
    """Reply to one client request, possibly delivered later.

    ``listener(kind, value)`` sees every progress update, result and error.
    """

    def __init__(self, listener=None):
        self.detached = False
        self.done = False
        self.is_error = False
        self.value = None
        self.progress_updates: list = []
        self._listener = listener
        self._waiters: list[asyncio.Future] = []

    def detach(self):
        self.detached = True

    def send_progress_update(self, value):
        if self.done:
            log.warning("Progress update after result was sent, dropped")
            return
        self.progress_updates.append(value)
        self._notify("progress", value)

    def send_result(self, value):
        self._finish(value, is_error=False)

    def send_error(self, value):
        self._finish(value, is_error=True)

    async def wait(self):
        """Wait for the final value (returns it; check ``is_error``)."""
        if not self.done:
            future = asyncio.get_running_loop().create_future()
            self._waiters.append(future)
            await future
        return self.value

    def _finish(self, value, is_error):
        if self.done:
            log.warning("Result already sent, dropping %r", value)
            return
        self.done = True
        self.is_error = is_error
        self.value = value
        self._notify("error" if is_error else "result", value)
        for future in self._waiters:
            if not future.done():
                future.set_result(value)
        self._waiters.clear()

    def _notify(self, kind, value):
        if self._listener is not None:
            self._listener(kind, value)


def _as_parent(media_id: str) -> str:
    if media_id.endswith(TREE_PATH_SEPARATOR):
        return media_id
    return media_id + TREE_PATH_SEPARATOR


class TestMediaService(SourceBase):
    id = "testmedia"
    name = "Test Media"
    port = 8780

    def __init__(self, prefs: Prefs | None = None, loader: AssetLoader | None = None,
                 scheduler=None, request_audio_focus=None):
        super().__init__()
        self.port = cfg("service", "port", default=self.port)
        self.prefs = prefs or Prefs.from_config()
        self.scheduler = scheduler or Scheduler()
        self.library = Library(loader or AssetLoader(cfg("library", "assets_dir")))
        self.session = MediaSession()
        self.player = Player(self.library, self.scheduler, self.session, self.prefs,
                             request_audio_focus=request_audio_focus)
        self._broadcast_tasks: set[asyncio.Task] = set()
        # Download results still waiting for their delayed completion.
        self._pending_downloads: dict[tuple, Result] = {}

        self._browse_action_handlers = {
            BrowseAction.DOWNLOAD: self._on_download,
            BrowseAction.DOWNLOADING: self._on_remove_download,
            BrowseAction.DOWNLOADED: self._on_remove_download,
            BrowseAction.FAVORITE: self._on_favorite,
            BrowseAction.FAVORITED: self._on_unfavorite,
            BrowseAction.ADD_TO_QUEUE: self._on_add_to_queue,
            BrowseAction.REMOVE_FROM_QUEUE: self._on_remove_from_queue,
            BrowseAction.ERROR_ACTION: self._on_error_action,
            BrowseAction.BROWSE_ACTION: self._on_browse_action,
            BrowseAction.PBV_ACTION: self._on_show_playback_view,
        }

        self.session.add_listener(self._on_session_change)
        self.prefs.register_change_listener("account_type", self._on_account_changed)
        self.prefs.register_change_listener("root_node_type", self._on_root_node_type_changed)
        self.prefs.register_change_listener("reply_delay", self._on_reply_delay_changed)

        self.library.set_browse_root(self.prefs.root_node_type)
        self.session.set_extras(self.root_extras())
        self.update_playback_state(self.prefs.account_type)

    # ── Root ──

    def favorites_item(self) -> dict:
        return MediaNode(FAVORITES_MEDIA_ID, title="Favorites",
                         flags=ItemFlag.BROWSABLE).describe("")

    def root_extras(self) -> dict:
        return {
            "browse_actions": [action.to_dict() for action in BrowseAction],
            "search_supported": True,
            "favorites": self.favorites_item(),
        }

    def get_root(self) -> dict:
        return {"id": ROOT_PATH, "extras": self.root_extras()}

    def invalidate_root(self):
        self.session.set_extras(self.root_extras())
        self.session.notify_children_changed(ROOT_PATH)

    # ── Browsing ──

    def load_children(self, parent_id: str) -> Result:
        log.info("load_children parent_id: %s", parent_id)
        parent_id = _as_parent(parent_id)
        result = Result()

        def task():
            node = self._resolve_for_account(parent_id)
            if node is None:
                result.send_result(None)
                return
            if not self.library.children_of(node):
                result.send_result([])
                return
            items = [child.describe(parent_id) for child in self.library.reveal_children(node)]
            result.send_result(items)
            if node.self_update_ms > 0:
                self.scheduler.post_delayed(
                    lambda: self.session.notify_children_changed(parent_id),
                    node.self_update_ms)

        self._run_with_reply_delay(task, result)

        if (self.prefs.root_node_type is BrowseNodeType.QUEUE_ONLY
                and parent_id == ROOT_PATH):
            leaves = self.library.source_path(BrowseNodeType.LEAF_CHILDREN)
            self.player.build_queue(_as_parent(leaves))
            self.player.set_active_queue_item(None)
            self.player.prepare_active_item()
        return result

    def load_item(self, item_id: str) -> Result:
        result = Result()

        def task():
            node = self.library.resolve(item_id)
            if node is None:
                result.send_result(None)
            else:
                result.send_result(node.describe(parent_path(_as_parent(item_id))))

        self._run_with_reply_delay(task, result)
        return result

    def search(self, query: str) -> Result:
        log.info("search query: %s", query)
        result = Result()

        def task():
            if self._resolve_for_account(ROOT_PATH) is None:
                result.send_result(None)
                return
            hits = self.library.search(ROOT_PATH, query)
            result.send_result([hit.node.describe(parent_path(hit.path)) for hit in hits])

        self._run_with_reply_delay(task, result)
        return result

    def toggle_item(self, media_id: str) -> bool:
        if self.library.toggle_hidden(media_id) is None:
            return False
        self.session.notify_children_changed(parent_path(media_id))
        return True

    def _resolve_for_account(self, media_id: str) -> MediaNode | None:
        if self.prefs.account_type is AccountType.NONE:
            return None
        return self.library.resolve(media_id)

    def _run_with_reply_delay(self, task, result: Result):
        delay = self.prefs.reply_delay
        if delay is ReplyDelay.NONE:
            task()
        else:
            result.detach()
            self.scheduler.post_delayed(task, delay.delay_ms)

    # ── Browse custom actions ──

    def browse_action(self, action_id: str, media_id: str | None, listener=None) -> Result:
        result = Result(listener)
        action = BrowseAction.from_id(action_id)
        node = self.library.resolve(media_id) if media_id else None
        if action is None or node is None:
            log.error("browse_action invalid action %s or node %s", action_id, media_id)
            result.send_error({})
            return result

        result.detach()
        self._browse_action_handlers[action](action, node, media_id, result)
        return result

    def _sender(self, media_id: str) -> ActionResultSender:
        return ActionResultSender(self.scheduler).set_refresh_media_id(media_id)

    def _on_download(self, action, node, media_id, result):
        token = (BrowseAction.DOWNLOADING, media_id)
        self._supersede_download(token)
        self._pending_downloads[token] = result

        def deliver(payload):
            if self._pending_downloads.get(token) is result:
                del self._pending_downloads[token]
            result.send_result(payload)

        self._sender(media_id) \
            .send_to(result.send_progress_update, token=(BrowseAction.DOWNLOAD, media_id)) \
            .on_complete(lambda: self.library.replace_action(
                node, BrowseAction.DOWNLOAD, BrowseAction.DOWNLOADING)) \
            .send()
        self._sender(media_id) \
            .set_message(MSG_DOWNLOAD_COMPLETE) \
            .send_to_delayed(token, DOWNLOAD_DELAY_MS, deliver) \
            .on_complete(lambda: self.library.replace_action(
                node, BrowseAction.DOWNLOADING, BrowseAction.DOWNLOADED)) \
            .send()

    def _on_remove_download(self, action, node, media_id, result):
        # Shares the pending download's token, so an in-flight download is cancelled.
        token = (BrowseAction.DOWNLOADING, media_id)
        self._supersede_download(token)
        self._sender(media_id) \
            .set_message(MSG_DOWNLOAD_REMOVED) \
            .send_to(result.send_result, token=token) \
            .on_complete(lambda: self.library.replace_action(
                node, action, BrowseAction.DOWNLOAD)) \
            .send()

    def _supersede_download(self, token):
        """Answer a download whose delayed completion is about to be replaced."""
        superseded = self._pending_downloads.pop(token, None)
        if superseded is not None and not superseded.done:
            log.info("Download of %s cancelled", token[1])
            superseded.send_error({RESULT_REFRESH_ITEM: token[1],
                                   RESULT_MESSAGE: MSG_DOWNLOAD_CANCELLED})

    def _on_favorite(self, action, node, media_id, result):
        self._sender(media_id) \
            .set_message(MSG_ADDED_FAVORITE) \
            .send_to(result.send_result) \
            .on_complete(lambda: self.library.replace_action(
                node, action, BrowseAction.FAVORITED)) \
            .send()

    def _on_unfavorite(self, action, node, media_id, result):
        self._sender(media_id) \
            .set_message(MSG_REMOVED_FAVORITE) \
            .send_to(result.send_result) \
            .on_complete(lambda: self.library.replace_action(
                node, action, BrowseAction.FAVORITE)) \
            .send()

    def _on_add_to_queue(self, action, node, media_id, result):
        self.player.add_to_queue(media_id)
        self._sender(media_id) \
            .set_show_playback_view(True) \
            .send_to(result.send_result) \
            .on_complete(lambda: self.library.replace_action(
                node, BrowseAction.ADD_TO_QUEUE, BrowseAction.REMOVE_FROM_QUEUE)) \
            .send()

    def _on_remove_from_queue(self, action, node, media_id, result):
        self.player.remove_from_queue(media_id)
        self._sender(media_id) \
            .set_show_playback_view(True) \
            .send_to(result.send_result) \
            .on_complete(lambda: self.library.replace_action(
                node, BrowseAction.REMOVE_FROM_QUEUE, BrowseAction.ADD_TO_QUEUE)) \
            .send()

    def _on_error_action(self, action, node, media_id, result):
        self._sender(media_id) \
            .set_message(MSG_ERROR) \
            .send_to(result.send_error) \
            .send()

    def _on_browse_action(self, action, node, media_id, result):
        self._sender(media_id) \
            .set_browse_node(media_id) \
            .send_to(result.send_result) \
            .send()

    def _on_show_playback_view(self, action, node, media_id, result):
        self._sender(media_id) \
            .set_show_playback_view(True) \
            .send_to(result.send_result) \
            .send()

    # ── Preferences ──

    def update_playback_state(self, account_type: AccountType):
        if account_type is AccountType.NONE:
            self.session.set_metadata(None)
            self.player.stop()
            self.player.set_playback_state(PlaybackEvent(
                state=EventState.ERROR,
                error_code=ErrorCode.AUTHENTICATION_EXPIRED,
                error_message=MSG_NO_ACCOUNT,
                action_label=MSG_SELECT_ACCOUNT,
                resolution=ResolutionIntent.PREFS,
            ))
        else:
            self.session.set_playback_state(PlaybackState(
                state=EventState.PAUSED, position_ms=0, speed=0.0,
                actions=PlaybackAction.PREPARE))

    def _on_account_changed(self, old, new):
        if self.prefs.login_event_order is LoginEventOrder.PLAYBACK_STATE_UPDATE_FIRST:
            self.update_playback_state(new)
        else:
            self.scheduler.post_delayed(lambda: self.update_playback_state(new),
                                        LOGIN_STATE_DELAY_MS)
        self.invalidate_root()

    def _on_root_node_type_changed(self, old, new):
        self.library.set_browse_root(new)
        self.invalidate_root()

    def _on_reply_delay_changed(self, old, new):
        self.invalidate_root()

    # ── Session → WebSocket ──

    def _on_session_change(self, kind, payload):
        if kind == "state":
            payload = payload.to_dict()
        elif kind == "queue":
            payload = [item.to_dict() for item in payload]
        self._post_broadcast(kind, payload)

    def _post_broadcast(self, event_type, data):
        if not self._ws_clients:
            return
        task = asyncio.get_running_loop().create_task(self.broadcast(event_type, data))
        self._broadcast_tasks.add(task)
        task.add_done_callback(self._broadcast_tasks.discard)

    async def on_ws_connect(self, ws):
        if self.session.playback_state is not None:
            await self.send_json(ws, "state", self.session.playback_state.to_dict())
        await self.send_json(ws, "queue", [item.to_dict() for item in self.session.queue])
        await self.send_json(ws, "metadata", self.session.metadata)

    # ── HTTP ──

    def add_routes(self, app: web.Application):
        app.router.add_get("/root", self._handle_root)
        app.router.add_get("/children", self._handle_children)
        app.router.add_get("/item", self._handle_item)
        app.router.add_get("/search", self._handle_search)
        app.router.add_post("/action", self._handle_action)

    async def _handle_root(self, request):
        return self.json_response(self.get_root())

    async def _handle_children(self, request):
        result = self.load_children(request.query.get("id", ROOT_PATH))
        return self.json_response({"status": "ok", "items": await result.wait()})

    async def _handle_item(self, request):
        result = self.load_item(request.query.get("id", ""))
        return self.json_response({"status": "ok", "item": await result.wait()})

    async def _handle_search(self, request):
        result = self.search(request.query.get("query", ""))
        return self.json_response({"status": "ok", "items": await result.wait()})

    async def _handle_action(self, request):
        try:
            data = await request.json()
        except ValueError:
            data = {}
        result = self.browse_action(
            data.get("action", ""), data.get("media_id"),
            listener=lambda kind, value: self._post_broadcast("action_" + kind, value))
        value = await result.wait()
        if result.is_error:
            return self.json_response({"status": "error", "result": value}, status=400)
        return self.json_response({"status": "ok", "result": value,
                                   "progress": result.progress_updates})

    async def handle_status(self) -> dict:
        state = self.session.playback_state
        return {
            "source": self.id,
            "name": self.name,
            "prefs": self.prefs.to_dict(),
            "player": {
                "state": self.player.state.value,
                "position": self.player.position_ms,
                "queue_size": len(self.player.queue),
                "active_index": self.player.active_index,
            },
            "playback_state": state.to_dict() if state else None,
        }

    async def handle_command(self, cmd, data) -> dict:
        player = self.player
        media_id = data.get("id", "")
        if cmd == "play_from_id":
            player.play_from_id(media_id)
        elif cmd == "prepare_from_id":
            player.prepare_from_id(media_id)
        elif cmd == "prepare":
            player.prepare()
        elif cmd == "play":
            player.play()
        elif cmd == "pause":
            player.pause()
        elif cmd == "stop":
            player.stop()
        elif cmd == "seek":
            player.seek_to(int(data.get("position", 0)))
        elif cmd == "next":
            player.skip_to_next()
        elif cmd == "prev":
            player.skip_to_previous()
        elif cmd == "skip_to":
            player.skip_to_queue_item(int(data.get("queue_id", 0)))
        elif cmd == "add_to_queue":
            player.add_to_queue(media_id)
        elif cmd == "remove_from_queue":
            player.remove_from_queue(media_id)
        elif cmd == "custom_action":
            if not player.custom_action(data.get("action", "")):
                return {"status": "error", "message": f"Invalid action: {data.get('action')}"}
        elif cmd == "focus":
            try:
                change = AudioFocusChange(data.get("change"))
            except ValueError:
                return {"status": "error", "message": f"Unknown focus change: {data.get('change')}"}
            player.on_audio_focus_change(change)
        elif cmd == "toggle":
            if not self.toggle_item(media_id):
                return {"status": "error", "message": f"Not found: {media_id}"}
        elif cmd == "set_pref":
            if not self.prefs.set_by_id(data.get("key", ""), data.get("value", "")):
                return {"status": "error",
                        "message": f"Bad pref: {data.get('key')}={data.get('value')}"}
        else:
            return {"status": "error", "message": f"Unknown: {cmd}"}
        return {"state": player.state.value, "position": player.position_ms}

    async def on_stop(self):
        self.prefs.unregister_change_listener("account_type", self._on_account_changed)
        self.prefs.unregister_change_listener("root_node_type", self._on_root_node_type_changed)
        self.prefs.unregister_change_listener("reply_delay", self._on_reply_delay_changed)
        self.session.remove_listener(self._on_session_change)
        self.scheduler.cancel_all()
        for token in list(self._pending_downloads):
            self._supersede_download(token)
