import logging
from typing import Optional

from core.config import Settings, get_settings
from core.logging import setup_logging
from decoration.base import DecorationPipeline
from decoration.static_pipeline import StaticDecorationPipeline
from lifecycle.orchestrator import LifecycleOrchestrator
from page.document import Page

logger = logging.getLogger(__name__)


async def load_page(
    page: Page,
    pipeline: Optional[DecorationPipeline] = None,
    *,
    settings: Optional[Settings] = None,
) -> LifecycleOrchestrator:
    """Run the full page lifecycle for one page session and return its orchestrator.

    The delayed phase is still pending when this returns; await
    orchestrator.join_background() to wait for it.
    """
    settings = settings if settings is not None else get_settings()
    setup_logging(settings)
    if pipeline is None:
        pipeline = StaticDecorationPipeline(page, code_base_path=settings.code_base_path)
    orchestrator = LifecycleOrchestrator(page, pipeline, settings=settings)
    logger.info("Loading %s (env=%s)", page.url, settings.env)
    await orchestrator.run()
    return orchestrator
