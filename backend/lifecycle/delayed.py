"""
Default delayed-phase module: work that may run long after the page is usable.

DELAYED_MODULE may point at any module exposing load_delayed(page, pipeline);
the hook may be sync or async.
"""

from __future__ import annotations

import logging

from decoration.base import DecorationPipeline
from page.document import Page

logger = logging.getLogger(__name__)

DELAYED_MARKER_CLASS = "delayed-loaded"


async def load_delayed(page: Page, pipeline: DecorationPipeline) -> None:
    page.add_class(page.body, DELAYED_MARKER_CLASS)
    logger.debug("Delayed phase ran for %s", page.url)
