# Test Media Source
# Copyright (C) 2024-2026 Test Media Source contributors
# SPDX-License-Identifier: GPL-3.0-or-later

import asyncio
import logging

from .browser import TestMediaService

logging.basicConfig(level=logging.INFO, format='[%(levelname)s] %(message)s')


async def run():
    """Main entry point."""
    service = TestMediaService()
    await service.run()


def main():
    asyncio.run(run())


if __name__ == "__main__":
    main()
