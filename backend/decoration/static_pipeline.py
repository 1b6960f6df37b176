"""
StaticDecorationPipeline: a working generic decoration pipeline over a Page.

Shapes authored content into sections and blocks, moves region status through
pending -> loading -> loaded (or error), and injects stylesheets as <link> tags.
Block behaviour is pluggable through block_decorators (name -> callable taking the
block element; may be async). A decorator that raises puts the block in error.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from bs4.element import NavigableString, PageElement, Tag

from decoration.base import (
    BLOCK_STATUS_ATTR,
    SECTION_STATUS_ATTR,
    STATUS_ERROR,
    STATUS_LOADED,
    STATUS_LOADING,
    STATUS_PENDING,
    DecorationPipeline,
    FirstImageWaiter,
)
from ops.ops_events import log_region_load_failed
from page.document import Page, class_list

logger = logging.getLogger(__name__)

BlockDecorator = Callable[[Tag], Any]


def to_class_name(name: str) -> str:
    """Sanitize a string into a CSS class name ("Hero Banner" -> "hero-banner")."""
    if not isinstance(name, str):
        return ""
    return re.sub(r"-+", "-", re.sub(r"[^0-9a-z]", "-", name.lower())).strip("-")


def _only_child(parent: Tag, child: Tag) -> bool:
    tags = [c for c in parent.children if isinstance(c, Tag)]
    text = "".join(str(c) for c in parent.children if isinstance(c, NavigableString))
    return len(tags) == 1 and tags[0] is child and not text.strip()


def read_block_config(block: Tag) -> Dict[str, str]:
    """Two-column key/value rows of a configuration block."""
    config: Dict[str, str] = {}
    for row in block.find_all("div", recursive=False):
        cols = row.find_all("div", recursive=False)
        if len(cols) < 2:
            continue
        key = to_class_name(cols[0].get_text(strip=True))
        if key:
            config[key] = cols[1].get_text(" ", strip=True)
    return config


class StaticDecorationPipeline(DecorationPipeline):
    """Decoration pipeline that works entirely on the in-memory document."""

    def __init__(
        self,
        page: Page,
        *,
        code_base_path: str = "",
        block_decorators: Optional[Mapping[str, BlockDecorator]] = None,
        load_block_styles: bool = True,
    ) -> None:
        self._page = page
        self._code_base_path = code_base_path.rstrip("/")
        self._decorators: Dict[str, BlockDecorator] = dict(block_decorators or {})
        self._load_block_styles = load_block_styles
        self.loaded_stylesheets: List[str] = []

    # --- synchronous decoration ---------------------------------------------

    def decorate_template_and_theme(self) -> None:
        body = self._page.body
        template = self._page.get_metadata("template")
        if template:
            self._page.add_class(body, to_class_name(template))
        theme = self._page.get_metadata("theme")
        if theme:
            self._page.add_class(body, *(to_class_name(t) for t in theme.split(",")))

    def decorate_buttons(self, container: Tag) -> None:
        for a in container.find_all("a", href=True):
            if not a.get_text(strip=True) or a.find("img") is not None:
                continue
            parent = a.parent
            if parent is None or not _only_child(parent, a):
                continue
            grandparent = parent.parent
            if parent.name in ("p", "div"):
                self._page.add_class(a, "button")
                self._page.add_class(parent, "button-container")
            elif parent.name in ("strong", "em") and grandparent is not None and grandparent.name == "p":
                if not _only_child(grandparent, parent):
                    continue
                self._page.add_class(a, "button", "primary" if parent.name == "strong" else "secondary")
                self._page.add_class(grandparent, "button-container")

    def decorate_icons(self, container: Tag) -> None:
        for span in container.select("span.icon"):
            names = [c[len("icon-"):] for c in class_list(span) if c.startswith("icon-")]
            if not names or span.find("img") is not None:
                continue
            img = self._page.new_tag(
                "img",
                src=f"{self._code_base_path}/icons/{names[0]}.svg",
                alt="",
                loading="lazy",
                data_icon_name=names[0],
            )
            self._page.append(span, img)

    def decorate_sections(self, container: Tag) -> None:
        for section in container.find_all("div", recursive=False):
            if section.has_attr(SECTION_STATUS_ATTR):
                continue
            self._wrap_section_content(section)
            self._page.add_class(section, "section")
            self._page.set_attribute(section, SECTION_STATUS_ATTR, STATUS_PENDING)
            meta = section.find("div", class_="section-metadata")
            if meta is None:
                continue
            for key, value in read_block_config(meta).items():
                if key == "style":
                    self._page.add_class(section, *(to_class_name(s) for s in value.split(",")))
                else:
                    self._page.set_attribute(section, f"data-{key}", value)
            wrapper = meta.parent
            self._page.remove(meta)
            if wrapper is not None and wrapper is not section and not wrapper.find(True):
                self._page.remove(wrapper)

    def _wrap_section_content(self, section: Tag) -> None:
        """Group default content into .default-content-wrapper; give each block its own wrapper."""
        wrappers: List[Tag] = []
        default_content = False
        for child in list(section.children):
            if not isinstance(child, Tag):
                continue
            if child.name == "div" or not default_content:
                wrapper = self._page.new_tag("div")
                wrappers.append(wrapper)
                default_content = child.name != "div"
                if default_content:
                    wrapper["class"] = ["default-content-wrapper"]
            wrappers[-1].append(child.extract())
        self._page.replace_children(section, wrappers)

    def decorate_blocks(self, container: Tag) -> None:
        for block in container.select("div.section > div > div"):
            self._decorate_block(block)

    def _decorate_block(self, block: Tag) -> None:
        classes = class_list(block)
        if not classes or block.has_attr(BLOCK_STATUS_ATTR):
            return
        name = classes[0]
        self._page.add_class(block, "block")
        self._page.set_attribute(block, "data-block-name", name)
        self._page.set_attribute(block, BLOCK_STATUS_ATTR, STATUS_PENDING)
        wrapper = block.parent
        if wrapper is not None:
            self._page.add_class(wrapper, f"{name}-wrapper")
        section = block.find_parent("div", class_="section")
        if section is not None:
            self._page.add_class(section, f"{name}-container")

    def build_block(self, name: str, elems: Sequence[PageElement]) -> Tag:
        block = self._page.new_tag("div", class_=name)
        row = self._page.new_tag("div")
        cell = self._page.new_tag("div")
        for elem in elems:
            cell.append(elem.extract())
        row.append(cell)
        block.append(row)
        return block

    # --- asynchronous loading -----------------------------------------------

    async def load_block(self, block: Tag) -> None:
        if block.get(BLOCK_STATUS_ATTR) in (STATUS_LOADING, STATUS_LOADED):
            return
        name = block.get("data-block-name") or (class_list(block) or ["block"])[0]
        self._page.set_attribute(block, BLOCK_STATUS_ATTR, STATUS_LOADING)
        try:
            if self._load_block_styles:
                await self.load_css(f"{self._code_base_path}/blocks/{name}/{name}.css")
            decorator = self._decorators.get(name)
            if decorator is not None:
                result = decorator(block)
                if inspect.isawaitable(result):
                    await result
        except Exception as e:
            logger.exception("failed to load block %s", name)
            log_region_load_failed("block", name, str(e))
            self._page.set_attribute(block, BLOCK_STATUS_ATTR, STATUS_ERROR)
            return
        self._page.set_attribute(block, BLOCK_STATUS_ATTR, STATUS_LOADED)

    async def load_section(self, section: Optional[Tag], on_first_image: Optional[FirstImageWaiter] = None) -> None:
        if section is None:
            return
        if section.get(SECTION_STATUS_ATTR) in (STATUS_LOADING, STATUS_LOADED):
            return
        self._page.set_attribute(section, SECTION_STATUS_ATTR, STATUS_LOADING)
        for block in section.select("div.block"):
            await self.load_block(block)
        if on_first_image is not None:
            await on_first_image(section)
        self._page.set_attribute(section, SECTION_STATUS_ATTR, STATUS_LOADED)

    async def load_sections(self, container: Tag) -> None:
        for section in container.select("div.section"):
            await self.load_section(section)

    async def _load_region(self, region: Optional[Tag], name: str) -> None:
        if region is None:
            return
        block = self.build_block(name, [])
        self._page.append(region, block)
        self._decorate_block(block)
        await self.load_block(block)

    async def load_header(self, header: Optional[Tag]) -> None:
        await self._load_region(header, "header")

    async def load_footer(self, footer: Optional[Tag]) -> None:
        await self._load_region(footer, "footer")

    async def load_css(self, href: str) -> None:
        head = self._page.head
        if head.find("link", href=href) is None:
            link = self._page.new_tag("link", rel="stylesheet", href=href)
            self._page.append(head, link)
            self.loaded_stylesheets.append(href)
        await asyncio.sleep(0)

    async def wait_for_first_image(self, section: Tag) -> None:
        img = section.find("img")
        if img is None:
            return
        if img.get("loading") == "lazy":
            self._page.set_attribute(img, "loading", "eager")
        await asyncio.sleep(0)
