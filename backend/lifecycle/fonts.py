"""Deferred font stylesheet warm-up and its persisted "already warmed" flag."""

from __future__ import annotations

from core.config import Settings
from decoration.base import DecorationPipeline
from ops.ops_events import log_storage_failure
from page.document import Page
from page.session_storage import StorageUnavailableError

FONTS_LOADED_KEY = "fonts-loaded"


def fonts_stylesheet(settings: Settings) -> str:
    return f"{settings.code_base_path}/styles/fonts.css"


def should_warm_fonts(page: Page, settings: Settings) -> bool:
    """Wide viewport (proxy for a fast connection) or fonts already loaded this session.

    May raise StorageUnavailableError; the caller decides how to degrade.
    """
    if page.viewport_width >= settings.desktop_min_width:
        return True
    return bool(page.session_storage.get_item(FONTS_LOADED_KEY))


async def load_fonts(page: Page, pipeline: DecorationPipeline, settings: Settings) -> None:
    """Load fonts.css and remember it for later navigations (not on localhost)."""
    await pipeline.load_css(fonts_stylesheet(settings))
    if "localhost" in page.hostname:
        return
    try:
        page.session_storage.set_item(FONTS_LOADED_KEY, "true")
    except StorageUnavailableError as e:
        log_storage_failure(FONTS_LOADED_KEY, "write", str(e))
