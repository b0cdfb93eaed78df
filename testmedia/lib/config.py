# Test Media Source
# Copyright (C) 2024-2026 Test Media Source contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Shared configuration loader for the test media service.

Loads a single JSON config file.  Search order:
  1. /etc/testmedia/config.json   (system-wide install)
  2. config.json                  (CWD, handy for local runs)
  3. ../../config/default.json    (repo fallback)

Usage:
    from .config import cfg

    port         = cfg("service", "port", default=8780)
    account      = cfg("prefs", "account_type", default="paid")
    prefs        = cfg("prefs")  # returns the whole dict
"""

import json
import logging
import os

logger = logging.getLogger(__name__)

_config: dict | None = None

_SEARCH_PATHS = [
    "/etc/testmedia/config.json",
    "config.json",
    os.path.join(os.path.dirname(__file__), "..", "..", "config", "default.json"),
]

_PREF_KEYS = ("account_type", "root_node_type", "reply_delay", "login_event_order")


def _validate(config: dict, path: str) -> None:
    """Warn about missing or suspicious config values."""
    service = config.get("service") or {}
    port = service.get("port")
    if port is not None and not isinstance(port, int):
        logger.warning("Config %s: service.port should be an integer, got %r", path, port)
    prefs = config.get("prefs")
    if prefs is None:
        logger.warning("Config %s: missing 'prefs' section, using built-in defaults", path)
        return
    for key in prefs:
        if key not in _PREF_KEYS:
            logger.warning("Config %s: unknown prefs key '%s'", path, key)
    assets_dir = cfg_from(config, "library", "assets_dir")
    if assets_dir and not os.path.isdir(assets_dir):
        logger.warning("Config %s: library.assets_dir '%s' does not exist", path, assets_dir)


def load_config() -> dict:
    """Load config from the first JSON file found. Cached after first call."""
    global _config
    if _config is not None:
        return _config

    for path in _SEARCH_PATHS:
        try:
            with open(path) as f:
                _config = json.load(f)
                logger.info("Config loaded from %s", path)
                _validate(_config, path)
                return _config
        except FileNotFoundError:
            continue
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in %s: %s", path, e)
            continue

    logger.warning("No config.json found, using empty config")
    _config = {}
    return _config


def cfg_from(config: dict, section: str, key: str | None = None, *, default=None):
    """Read a value out of an already loaded config dict."""
    val = config.get(section)
    if key is None:
        return val if val is not None else default
    if isinstance(val, dict):
        return val.get(key, default)
    return default


def cfg(section: str, key: str | None = None, *, default=None):
    """Read a config value.

    cfg("service")                        → config["service"]
    cfg("service", "port")                → config["service"]["port"]
    cfg("prefs", "reply_delay", default="none")  → config["prefs"]["reply_delay"] or "none"
    """
    return cfg_from(load_config(), section, key, default=default)


def reload_config():
    """Force re-read from disk (for testing or hot-reload)."""
    global _config
    _config = None
    return load_config()
