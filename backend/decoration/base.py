"""
Abstract base for the generic decoration pipeline.

The lifecycle orchestrator only sequences these calls; it never implements them.
Region status attributes are owned by the pipeline:
data-section-status / data-block-status move pending -> loading -> loaded | error
and never revert from loaded.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional, Sequence

from bs4.element import PageElement, Tag

SECTION_STATUS_ATTR = "data-section-status"
BLOCK_STATUS_ATTR = "data-block-status"

STATUS_PENDING = "pending"
STATUS_LOADING = "loading"
STATUS_LOADED = "loaded"
STATUS_ERROR = "error"

FirstImageWaiter = Callable[[Tag], Awaitable[None]]


class DecorationPipeline(ABC):
    """Generic page decoration: synchronous DOM shaping plus asynchronous region loading."""

    @abstractmethod
    def decorate_template_and_theme(self) -> None:
        """Apply template/theme metadata as body classes."""
        ...

    @abstractmethod
    def decorate_buttons(self, container: Tag) -> None:
        ...

    @abstractmethod
    def decorate_icons(self, container: Tag) -> None:
        ...

    @abstractmethod
    def decorate_sections(self, container: Tag) -> None:
        """Mark top-level regions as sections with status pending."""
        ...

    @abstractmethod
    def decorate_blocks(self, container: Tag) -> None:
        """Mark blocks inside sections with status pending."""
        ...

    @abstractmethod
    def build_block(self, name: str, elems: Sequence[PageElement]) -> Tag:
        """Construct a detached block element holding elems."""
        ...

    @abstractmethod
    async def load_section(self, section: Optional[Tag], on_first_image: Optional[FirstImageWaiter] = None) -> None:
        """Load one section's blocks; resolves once the section (and optionally its first image) is loaded."""
        ...

    @abstractmethod
    async def load_sections(self, container: Tag) -> None:
        ...

    @abstractmethod
    async def load_header(self, header: Optional[Tag]) -> None:
        ...

    @abstractmethod
    async def load_footer(self, footer: Optional[Tag]) -> None:
        ...

    @abstractmethod
    async def load_css(self, href: str) -> None:
        """Inject a stylesheet once; resolves when it is in place."""
        ...

    @abstractmethod
    async def wait_for_first_image(self, section: Tag) -> None:
        ...
