"""
Lifecycle orchestrator: eager -> lazy -> delayed.

Eager gets the first section on screen (LCP), lazy decorates the rest of the
page, delayed is scheduled after a quiet period and never awaited. The
decisioning client bootstrap starts before eager and runs in the background;
eager waits for it to settle (either way) before revealing content.
Best-effort work runs as tracked background tasks; their failures are logged.
"""

from __future__ import annotations

import asyncio
import importlib
import inspect
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional, Set

from core.config import Settings, get_settings
from decoration.base import DecorationPipeline
from decoration.observer import DecoratedSubscription, DecorationObserver
from lifecycle.auto_blocks import decorate_main
from lifecycle.fonts import FONTS_LOADED_KEY, load_fonts, should_warm_fonts
from ops.ops_events import (
    log_background_task_failed,
    log_phase_end,
    log_phase_start,
    log_region_load_failed,
    log_storage_failure,
    log_summary,
)
from page.document import Page
from page.session_storage import StorageUnavailableError
from personalization.bootstrap import bootstrap
from personalization.command_buffer import ClientShim, get_client_shim
from personalization.decisions import AppliedPropositionsLog, DecisionApplier
from personalization.errors import BootstrapError

logger = logging.getLogger(__name__)

APPEAR_CLASS = "appear"
PAGE_LANG = "en"


class LifecyclePhase(str, Enum):
    EAGER = "eager"
    LAZY = "lazy"
    DELAYED = "delayed"


PHASE_ORDER = (LifecyclePhase.EAGER, LifecyclePhase.LAZY, LifecyclePhase.DELAYED)


class LifecycleOrchestrator:
    """Drives one page session through its phases."""

    def __init__(
        self,
        page: Page,
        pipeline: DecorationPipeline,
        *,
        settings: Optional[Settings] = None,
        shim: Optional[ClientShim] = None,
        observer: Optional[DecorationObserver] = None,
        applied_log: Optional[AppliedPropositionsLog] = None,
        event_data: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.page = page
        self.pipeline = pipeline
        self.settings = settings if settings is not None else get_settings()
        self.shim = shim if shim is not None else get_client_shim()
        self.observer = observer if observer is not None else DecorationObserver(page)
        self.decisions = DecisionApplier(
            page,
            self.shim,
            self.observer,
            applied_log=applied_log,
            event_data=event_data,
            report_display=self.settings.report_proposition_display,
            spawn=self._spawn_apply,
        )
        self.phase: Optional[LifecyclePhase] = None
        self.completed_phases: List[LifecyclePhase] = []
        self.appeared = False
        self.personalization_available: Optional[bool] = None
        self.decision_subscription: Optional[DecoratedSubscription] = None
        self._bootstrap_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()
        self._phase_started_at = 0.0

    # --- background tasks ---------------------------------------------------

    def _spawn(self, coro: Awaitable[Any], name: str) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        task.set_name(name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _spawn_apply(self, coro: Awaitable[Any]) -> asyncio.Task:
        return self._spawn(coro, "apply-decisions")

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            log_background_task_failed(task.get_name(), f"{type(error).__name__}: {error!s}")

    @property
    def background_tasks(self) -> Set[asyncio.Task]:
        return set(self._tasks)

    async def join_background(self) -> None:
        """Wait for every tracked background task, including ones spawned meanwhile."""
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def close(self) -> None:
        """End the page session: cancel outstanding work and release the decisioning client."""
        for task in list(self._tasks):
            task.cancel()
        await self.join_background()
        await self.shim.aclose()

    # --- phases -------------------------------------------------------------

    def _enter(self, phase: LifecyclePhase) -> None:
        for earlier in PHASE_ORDER[: PHASE_ORDER.index(phase)]:
            if earlier not in self.completed_phases:
                raise RuntimeError(f"{phase.value} phase cannot start before {earlier.value} completes")
        if phase in self.completed_phases:
            raise RuntimeError(f"{phase.value} phase already ran")
        self.phase = phase
        self._phase_started_at = log_phase_start(phase.value)

    def _leave(self, phase: LifecyclePhase) -> None:
        self.completed_phases.append(phase)
        log_phase_end(phase.value, time.perf_counter() - self._phase_started_at)

    async def _next_frame(self) -> None:
        """Yield once so pending rendering work can run before continuing."""
        await asyncio.sleep(0)

    def _warm_fonts(self) -> None:
        self._spawn(load_fonts(self.page, self.pipeline, self.settings), "fonts")

    # --- personalization ----------------------------------------------------

    def start_personalization(self) -> asyncio.Task:
        """Start the decisioning bootstrap (once); chain decision fetch when the page asks for it."""
        if self._bootstrap_task is None:
            self._bootstrap_task = self._spawn(self._bootstrap(), "bootstrap")
            if self.page.get_metadata("target"):
                self._spawn(self._personalize(), "personalize")
        return self._bootstrap_task

    async def _bootstrap(self) -> bool:
        try:
            await bootstrap(
                self.settings.decisioning_module,
                self.settings.decisioning_config(),
                page=self.page,
                shim=self.shim,
            )
        except BootstrapError as e:
            logger.error("Failed to load decisioning client: %s", e)
            self.personalization_available = False
            return False
        self.personalization_available = True
        return True

    async def _personalize(self) -> None:
        if self._bootstrap_task is None or not await self._bootstrap_task:
            return
        self.decision_subscription = await self.decisions.fetch_and_apply()

    # --- eager / lazy / delayed ---------------------------------------------

    async def load_eager(self) -> None:
        """Everything needed to get the first section on screen."""
        self._enter(LifecyclePhase.EAGER)
        self.page.lang = PAGE_LANG
        self.pipeline.decorate_template_and_theme()
        main = self.page.main
        if main is not None:
            decorate_main(self.page, self.pipeline, main)
            await asyncio.wait([self.start_personalization()])
            await self._next_frame()
            self.page.add_class(self.page.body, APPEAR_CLASS)
            self.appeared = True
            await self.pipeline.load_section(main.select_one("div.section"), self.pipeline.wait_for_first_image)

        try:
            if should_warm_fonts(self.page, self.settings):
                self._warm_fonts()
        except StorageUnavailableError as e:
            log_storage_failure(FONTS_LOADED_KEY, "read", str(e))
        self._leave(LifecyclePhase.EAGER)

    async def load_lazy(self) -> None:
        """Everything that does not need to be delayed."""
        self._enter(LifecyclePhase.LAZY)
        main = self.page.main
        if main is not None:
            await self.pipeline.load_sections(main)

        fragment = self.page.fragment
        element = self.page.get_element_by_id(fragment) if fragment else None
        if element is not None:
            self.page.scroll_into_view(element)

        results = await asyncio.gather(
            self.pipeline.load_header(self.page.header),
            self.pipeline.load_footer(self.page.footer),
            return_exceptions=True,
        )
        for region, result in zip(("header", "footer"), results):
            if isinstance(result, Exception):
                log_region_load_failed(region, region, f"{type(result).__name__}: {result!s}")

        self._spawn(self.pipeline.load_css(f"{self.settings.code_base_path}/styles/lazy-styles.css"), "lazy-styles")
        self._warm_fonts()
        self._leave(LifecyclePhase.LAZY)

    def load_delayed(self) -> asyncio.Task:
        """Schedule late work after the quiet period; returns the (not awaited) task."""
        self._enter(LifecyclePhase.DELAYED)
        task = self._spawn(self._run_delayed(), "delayed")
        self._leave(LifecyclePhase.DELAYED)
        return task

    async def _run_delayed(self) -> None:
        await asyncio.sleep(self.settings.delayed_seconds)
        module = await asyncio.to_thread(importlib.import_module, self.settings.delayed_module)
        hook = getattr(module, "load_delayed", None)
        if hook is None:
            logger.warning("%s has no load_delayed hook", self.settings.delayed_module)
            return
        result = hook(self.page, self.pipeline)
        if inspect.isawaitable(result):
            await result

    async def run(self) -> None:
        """Load the page: eager, then lazy, then schedule delayed."""
        self.start_personalization()
        await self.load_eager()
        await self.load_lazy()
        self.load_delayed()
        log_summary(
            {
                "url": self.page.url,
                "appeared": self.appeared,
                "personalization_available": self.personalization_available,
                "phases": [p.value for p in self.completed_phases],
            }
        )
