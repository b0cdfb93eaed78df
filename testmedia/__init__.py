# Test Media Source
# Copyright (C) 2024-2026 Test Media Source contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Scripted media source for exercising media clients."""

__version__ = "0.1.0"
