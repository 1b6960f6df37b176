"""
Synthetic blocks built from implicit content patterns before generic decoration.
Always best-effort: a failure is logged and decoration carries on.
"""

from __future__ import annotations

import logging

from bs4.element import Tag

from decoration.base import DecorationPipeline
from ops.ops_events import log_auto_block_failed
from page.document import Page

logger = logging.getLogger(__name__)


def build_hero_block(page: Page, pipeline: DecorationPipeline, main: Tag) -> None:
    """Wrap a leading picture and the first h1 into a hero block in a new first section."""
    h1 = main.find("h1")
    picture = main.find("picture")
    if h1 is None or picture is None or not page.precedes(picture, h1):
        return
    section = page.new_tag("div")
    section.append(pipeline.build_block("hero", [picture, h1]))
    page.prepend(main, section)


def build_auto_blocks(page: Page, pipeline: DecorationPipeline, main: Tag) -> None:
    try:
        build_hero_block(page, pipeline, main)
    except Exception as e:
        logger.exception("Auto Blocking failed")
        log_auto_block_failed("hero", str(e))


def decorate_main(page: Page, pipeline: DecorationPipeline, main: Tag) -> None:
    """Decorate the main element: buttons, icons, synthetic blocks, sections, blocks."""
    pipeline.decorate_buttons(main)
    pipeline.decorate_icons(main)
    build_auto_blocks(page, pipeline, main)
    pipeline.decorate_sections(main)
    pipeline.decorate_blocks(main)
