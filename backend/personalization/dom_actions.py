"""
DOM action renderers used by the decisioning client's applyPropositions.

Each renderer receives the resolved target element and the item's `content`.
All changes go through Page helpers so they show up on the mutation stream.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping

from bs4.element import Tag

from page.document import Page, parse_fragment
from personalization.schema import PropositionItem
from personalization.selectors import resolve_element

logger = logging.getLogger(__name__)

Renderer = Callable[[Page, Tag, Any], None]


def _parse_style(value: str) -> Dict[str, str]:
    styles: Dict[str, str] = {}
    for decl in (value or "").split(";"):
        name, sep, val = decl.partition(":")
        if sep and name.strip():
            styles[name.strip()] = val.strip()
    return styles


def _set_html(page: Page, el: Tag, content: Any) -> None:
    page.set_inner_html(el, str(content or ""))


def _set_text(page: Page, el: Tag, content: Any) -> None:
    page.set_text(el, str(content or ""))


def _set_attribute(page: Page, el: Tag, content: Any) -> None:
    if not isinstance(content, Mapping):
        raise ValueError("setAttribute content must be an object of name -> value")
    for name, value in content.items():
        page.set_attribute(el, str(name), str(value))


def _set_image_source(page: Page, el: Tag, content: Any) -> None:
    img = el if el.name == "img" else el.find("img")
    if img is None:
        raise ValueError("setImageSource target has no <img>")
    page.set_attribute(img, "src", str(content))
    if img.has_attr("srcset"):
        page.remove_attribute(img, "srcset")
    picture = img.find_parent("picture")
    if picture is not None:
        for source in picture.find_all("source"):
            page.remove(source)


def _set_style(page: Page, el: Tag, content: Any) -> None:
    if not isinstance(content, Mapping):
        raise ValueError("setStyle content must be an object of property -> value")
    priority = content.get("priority")
    styles = _parse_style(el.get("style", ""))
    for name, value in content.items():
        if name == "priority":
            continue
        styles[str(name)] = f"{value} !{priority}" if priority else str(value)
    page.set_attribute(el, "style", "; ".join(f"{k}: {v}" for k, v in styles.items()))


def _append_html(page: Page, el: Tag, content: Any) -> None:
    page.append(el, *parse_fragment(str(content or "")))


def _prepend_html(page: Page, el: Tag, content: Any) -> None:
    for node in reversed(parse_fragment(str(content or ""))):
        page.prepend(el, node)


def _replace_html(page: Page, el: Tag, content: Any) -> None:
    nodes = parse_fragment(str(content or ""))
    if nodes:
        page.insert_before(el, *nodes)
    page.remove(el)


def _insert_before(page: Page, el: Tag, content: Any) -> None:
    page.insert_before(el, *parse_fragment(str(content or "")))


def _insert_after(page: Page, el: Tag, content: Any) -> None:
    page.insert_after(el, *parse_fragment(str(content or "")))


def _remove(page: Page, el: Tag, content: Any) -> None:
    page.remove(el)


RENDERERS: Dict[str, Renderer] = {
    "setHtml": _set_html,
    "setText": _set_text,
    "setAttribute": _set_attribute,
    "setImageSource": _set_image_source,
    "swapImage": _set_image_source,
    "setStyle": _set_style,
    "appendHtml": _append_html,
    "prependHtml": _prepend_html,
    "replaceHtml": _replace_html,
    "insertBefore": _insert_before,
    "insertAfter": _insert_after,
    "remove": _remove,
}


def render_item(page: Page, item: PropositionItem) -> bool:
    """Apply one DOM-action item. Returns False when the target or action kind is unknown."""
    renderer = RENDERERS.get(item.data.type or "")
    if renderer is None:
        logger.warning("Unsupported DOM action %r (item %s)", item.data.type, item.id)
        return False
    target = resolve_element(page, item)
    if target is None:
        logger.debug("No element for item %s (selector %r)", item.id, item.data.selector)
        return False
    renderer(page, target, item.data.content)
    return True
