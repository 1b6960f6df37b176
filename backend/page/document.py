"""
Page: the HTML document a lifecycle run decorates and personalizes.

Wraps a BeautifulSoup tree and routes every structural change through a
MutationBus so observers see the same stream a browser MutationObserver would.
Collaborators must mutate the tree through the helpers below.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Optional
from urllib.parse import urlsplit

from bs4 import BeautifulSoup
from bs4.element import Doctype, NavigableString, PageElement, Tag

from page.mutations import ATTRIBUTES, CHILD_LIST, MutationBus, MutationRecord
from page.session_storage import MemorySessionStorage, SessionStorage

DEFAULT_VIEWPORT_WIDTH = 1280


def parse_fragment(html: str) -> List[PageElement]:
    """Parse an HTML snippet into detached nodes ready to be inserted."""
    return list(BeautifulSoup(html, "html.parser").contents)


def class_list(element: Tag) -> List[str]:
    """Classes of element as a list (bs4 keeps parsed classes as a list, assigned ones as a string)."""
    value = element.get("class")
    if not value:
        return []
    if isinstance(value, str):
        return value.split()
    return list(value)


class Page:
    """One document for one page session."""

    def __init__(
        self,
        html: str,
        *,
        url: str = "about:blank",
        viewport_width: int = DEFAULT_VIEWPORT_WIDTH,
        session_storage: Optional[SessionStorage] = None,
    ) -> None:
        self.soup = BeautifulSoup(html, "html.parser")
        self.url = url
        self.viewport_width = viewport_width
        self.session_storage: SessionStorage = session_storage or MemorySessionStorage()
        self.mutations = MutationBus()
        self.scrolled_to: Optional[Tag] = None
        self._ensure_structure()

    def _ensure_structure(self) -> None:
        html = self.soup.find("html")
        if html is None:
            html = self.soup.new_tag("html")
            for node in list(self.soup.contents):
                if isinstance(node, Doctype):
                    continue
                html.append(node.extract())
            self.soup.append(html)
        if html.find("body", recursive=False) is None:
            body = self.soup.new_tag("body")
            for node in list(html.contents):
                if isinstance(node, Tag) and node.name == "head":
                    continue
                body.append(node.extract())
            html.append(body)
        if html.find("head", recursive=False) is None:
            html.insert(0, self.soup.new_tag("head"))

    # --- lookups -------------------------------------------------------------

    @property
    def html(self) -> Tag:
        return self.soup.find("html")

    @property
    def head(self) -> Tag:
        return self.html.find("head", recursive=False)

    @property
    def body(self) -> Tag:
        return self.html.find("body", recursive=False)

    @property
    def main(self) -> Optional[Tag]:
        return self.soup.find("main")

    @property
    def header(self) -> Optional[Tag]:
        return self.soup.find("header")

    @property
    def footer(self) -> Optional[Tag]:
        return self.soup.find("footer")

    @property
    def fragment(self) -> str:
        """URL fragment without the leading '#', or '' when there is none."""
        return urlsplit(self.url).fragment

    @property
    def hostname(self) -> str:
        return urlsplit(self.url).hostname or ""

    @property
    def lang(self) -> Optional[str]:
        return self.html.get("lang")

    @lang.setter
    def lang(self, value: str) -> None:
        self.set_attribute(self.html, "lang", value)

    def select_one(self, selector: str) -> Optional[Tag]:
        return self.soup.select_one(selector)

    def select(self, selector: str) -> List[Tag]:
        return list(self.soup.select(selector))

    def get_element_by_id(self, element_id: str) -> Optional[Tag]:
        if not element_id:
            return None
        return self.soup.find(id=element_id)

    def get_metadata(self, name: str) -> str:
        """Content of <meta name=...> (or property=... for namespaced names), comma-joined; '' if absent."""
        attr = "property" if ":" in name else "name"
        values = [m.get("content", "") for m in self.head.find_all("meta", attrs={attr: name})]
        return ", ".join(values)

    def has_class(self, element: Tag, name: str) -> bool:
        return name in class_list(element)

    def document_index(self, element: Tag) -> int:
        """Pre-order position of element among all tags of the document."""
        for i, node in enumerate(self.soup.find_all(True)):
            if node is element:
                return i
        raise ValueError(f"<{element.name}> is not attached to this document")

    def precedes(self, first: Tag, second: Tag) -> bool:
        """True if first comes before second in document order."""
        return self.document_index(first) < self.document_index(second)

    def scroll_into_view(self, element: Tag) -> None:
        self.scrolled_to = element

    # --- mutation helpers ----------------------------------------------------

    def new_tag(self, name: str, **attrs: Any) -> Tag:
        return self.soup.new_tag(name, attrs={k.rstrip("_").replace("_", "-"): v for k, v in attrs.items()})

    def set_attribute(self, element: Tag, name: str, value: str) -> None:
        element[name] = value
        self.mutations.publish(
            MutationRecord(type=ATTRIBUTES, target=element, attribute_name=name, value=str(value))
        )

    def remove_attribute(self, element: Tag, name: str) -> None:
        if name in element.attrs:
            del element[name]
            self.mutations.publish(MutationRecord(type=ATTRIBUTES, target=element, attribute_name=name))

    def add_class(self, element: Tag, *names: str) -> None:
        classes = class_list(element)
        added = [n for n in names if n and n not in classes]
        if not added:
            return
        classes.extend(added)
        element["class"] = classes
        self.mutations.publish(
            MutationRecord(type=ATTRIBUTES, target=element, attribute_name="class", value=" ".join(classes))
        )

    def append(self, parent: Tag, *children: PageElement) -> None:
        for child in children:
            parent.append(child)
        self._child_list(parent, added=children)

    def prepend(self, parent: Tag, child: PageElement) -> None:
        parent.insert(0, child)
        self._child_list(parent, added=(child,))

    def insert_before(self, reference: Tag, *nodes: PageElement) -> None:
        parent = reference.parent
        for node in nodes:
            reference.insert_before(node)
        self._child_list(parent, added=nodes)

    def insert_after(self, reference: Tag, *nodes: PageElement) -> None:
        parent = reference.parent
        anchor: PageElement = reference
        for node in nodes:
            anchor.insert_after(node)
            anchor = node
        self._child_list(parent, added=nodes)

    def remove(self, element: PageElement) -> None:
        parent = element.parent
        element.extract()
        if parent is not None:
            self._child_list(parent, removed=(element,))

    def replace_children(self, element: Tag, nodes: Iterable[PageElement]) -> None:
        removed = tuple(element.contents)
        element.clear()
        added = tuple(nodes)
        for node in added:
            element.append(node)
        self._child_list(element, added=added, removed=removed)

    def set_inner_html(self, element: Tag, html: str) -> None:
        self.replace_children(element, parse_fragment(html))

    def set_text(self, element: Tag, text: str) -> None:
        self.replace_children(element, [NavigableString(text)])

    def _child_list(
        self,
        parent: Optional[Tag],
        added: Iterable[PageElement] = (),
        removed: Iterable[PageElement] = (),
    ) -> None:
        if parent is None:
            return
        self.mutations.publish(
            MutationRecord(
                type=CHILD_LIST,
                target=parent,
                added=tuple(n for n in added if isinstance(n, Tag)),
                removed=tuple(n for n in removed if isinstance(n, Tag)),
            )
        )
