"""
Patch variants, one per injection strategy.

A patch knows how to write its value into an element and how to tell
whether the element still shows that value. The second half is what the
mutation observer uses to detect theme re-renders.
"""

from dataclasses import dataclass
from typing import Any, Optional, Tuple, Union

from bs4 import BeautifulSoup, Tag

from ..models import Strategy
from .dom import PageDocument


def _squash(text: str) -> str:
    return " ".join((text or "").split())


@dataclass(frozen=True)
class TextPatch:
    value: str
    strategy = Strategy.TEXT

    def apply(self, document: PageDocument, element: Tag) -> bool:
        document.set_text(element, self.value)
        return True

    def is_applied(self, element: Tag) -> bool:
        return element.get_text() == self.value


@dataclass(frozen=True)
class HtmlPatch:
    markup: str
    strategy = Strategy.HTML

    @property
    def rendered(self) -> str:
        # what the parser turns the markup into once it is in the tree
        return BeautifulSoup(self.markup, "html.parser").decode()

    def apply(self, document: PageDocument, element: Tag) -> bool:
        document.set_inner_html(element, self.markup)
        return True

    def is_applied(self, element: Tag) -> bool:
        return element.decode_contents() == self.rendered


@dataclass(frozen=True)
class ImageSrcPatch:
    src: str
    alt: str
    strategy = Strategy.IMAGE_SRC

    def apply(self, document: PageDocument, element: Tag) -> bool:
        if element.name != "img":
            return False
        document.set_attribute(element, "src", self.src)
        document.set_attribute(element, "alt", self.alt)
        # a responsive source set would win over the new src
        document.remove_attribute(element, "srcset")
        document.remove_attribute(element, "data-srcset")
        return True

    def is_applied(self, element: Tag) -> bool:
        return element.name == "img" and element.get("src") == self.src


@dataclass(frozen=True)
class ListTextPatch:
    items: Tuple[str, ...]
    strategy = Strategy.LIST_TEXT

    def apply(self, document: PageDocument, element: Tag) -> bool:
        if element.name in ("ul", "ol"):
            document.clear_children(element)
            for item in self.items:
                document.append_child(element, document.create_element("li", item))
            return True

        container = document.create_element("ul")
        for item in self.items:
            container.append(document.create_element("li", item))
        document.clear_children(element)
        document.append_child(element, container)
        return True

    def is_applied(self, element: Tag) -> bool:
        if element.name in ("ul", "ol"):
            target = element
        else:
            children = [c for c in element.children if isinstance(c, Tag)]
            if len(children) != 1 or children[0].name != "ul":
                return False
            target = children[0]
        texts = tuple(li.get_text() for li in target.find_all("li", recursive=False))
        return texts == self.items


Patch = Union[TextPatch, HtmlPatch, ImageSrcPatch, ListTextPatch]


@dataclass
class AppliedPatch:
    """One successful write, kept so drift can be checked later."""
    field: str
    selector_used: str
    strategy: Strategy
    patch: Patch

    def to_dict(self):
        return {"field": self.field, "selector": self.selector_used, "strategy": self.strategy.value}


def _as_items(value: Any) -> Tuple[str, ...]:
    if isinstance(value, (list, tuple)):
        raw = value
    else:
        raw = str(value).splitlines()
    return tuple(_squash(str(v)) for v in raw if v is not None and _squash(str(v)))


def build_patch(strategy: Strategy, field_name: str, value: Any) -> Optional[Patch]:
    """Patch for a payload value, or None when the value has nothing to write."""
    if strategy == Strategy.TEXT:
        text = " ".join(_as_items(value)) if isinstance(value, (list, tuple)) else str(value)
        return TextPatch(text) if text.strip() else None

    if strategy == Strategy.HTML:
        markup = str(value)
        return HtmlPatch(markup) if markup.strip() else None

    if strategy == Strategy.IMAGE_SRC:
        if isinstance(value, dict):
            src = str(value.get("src") or value.get("url") or "")
            alt = str(value.get("alt") or "")
        else:
            src, alt = str(value), ""
        if not src.strip():
            return None
        return ImageSrcPatch(src.strip(), alt or f"Variant {field_name}")

    if strategy == Strategy.LIST_TEXT:
        items = _as_items(value)
        return ListTextPatch(items) if items else None

    raise ValueError(f"Unsupported strategy: {strategy!r}")
