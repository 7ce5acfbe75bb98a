# src/gymadmin_core/charts/loaders.py

from __future__ import annotations

import asyncio
import importlib
import logging

logger = logging.getLogger(__name__)


class ModuleDependencyLoader:
    """
    DependencyLoader that treats locators as importable module names
    (e.g. "matplotlib.pyplot"). Imports run in a worker thread so a slow
    import does not block the event loop.
    """

    async def load(self, locator: str) -> None:
        logger.debug("Importing chart dependency %s", locator)
        await asyncio.to_thread(importlib.import_module, locator)
