"""
Proposition target resolution.

Decisioning selectors address elements by position with a jQuery-style
`:eq(N)` (0-based). Those tokens are rewritten to CSS `:nth-child()` (1-based),
keeping any class qualifier in the `of S` argument. A literal prehiding selector
always wins over the logical one.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

import soupsieve
from bs4.element import Tag

from page.document import Page
from personalization.schema import PropositionItem

logger = logging.getLogger(__name__)

_EQ_TOKEN = re.compile(r"(\.\S+)?:eq\((\d+)\)")


def _nth_child(match: "re.Match[str]") -> str:
    classes, index = match.group(1), int(match.group(2))
    if classes:
        return f":nth-child({index + 1} of {classes})"
    return f":nth-child({index + 1})"


def to_css_selector(selector: str) -> str:
    """'.foo:eq(2)' -> ':nth-child(3 of .foo)'; 'div:eq(0)' -> 'div:nth-child(1)'."""
    return _EQ_TOKEN.sub(_nth_child, selector)


def element_selector(item: PropositionItem) -> Optional[str]:
    if item.data.prehiding_selector:
        return item.data.prehiding_selector
    if item.data.selector:
        return to_css_selector(item.data.selector)
    return None


def resolve_element(page: Page, item: PropositionItem) -> Optional[Tag]:
    """First element the item targets, or None when it is not on this page."""
    selector = element_selector(item)
    if not selector:
        return None
    try:
        return page.select_one(selector)
    except soupsieve.SelectorSyntaxError as e:
        logger.debug("Unusable selector %r for item %s: %s", selector, item.id, e)
        return None
