"""
PageDocument - a mutable product page backed by BeautifulSoup.

Offers the handful of browser primitives the injection runtime needs (CSS
query, text/markup/attribute writes, element creation, ancestor matching)
and a MutationObserver. Every write through PageDocument is reported to the
connected observers; records are queued and delivered together on the next
event loop turn, like the browser's microtask delivery. Without a running
loop, records wait for flush_mutations().

Writes made directly on bs4 tags bypass the observers.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional
from urllib.parse import parse_qs, urlparse

import soupsieve
from bs4 import BeautifulSoup, NavigableString, Tag

logger = logging.getLogger(__name__)

CHILD_LIST = "childList"
ATTRIBUTES = "attributes"


@dataclass
class MutationRecord:
    type: str
    target: Tag
    attribute_name: Optional[str] = None


class MutationObserver:
    """Queues MutationRecords and hands them to callback(records, observer) in batches."""

    def __init__(self, callback: Callable[[List[MutationRecord], "MutationObserver"], Any]):
        self.callback = callback
        self.document: Optional["PageDocument"] = None
        self.child_list = False
        self.attributes = False
        self._records: List[MutationRecord] = []
        self._scheduled = False

    def observe(self, document: "PageDocument", *, child_list: bool = True, attributes: bool = True):
        if self.document is not None and self.document is not document:
            self.disconnect()
        self.document = document
        self.child_list = child_list
        self.attributes = attributes
        document._attach(self)

    def disconnect(self):
        if self.document is not None:
            self.document._detach(self)
        self.document = None
        self._records = []
        self._scheduled = False

    def take_records(self) -> List[MutationRecord]:
        records, self._records = self._records, []
        return records

    @property
    def connected(self) -> bool:
        return self.document is not None

    def _wants(self, record: MutationRecord) -> bool:
        if record.type == CHILD_LIST:
            return self.child_list
        if record.type == ATTRIBUTES:
            return self.attributes
        return False

    def _enqueue(self, record: MutationRecord):
        self._records.append(record)
        if self._scheduled:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # picked up by PageDocument.flush_mutations()
            return
        self._scheduled = True
        loop.call_soon(self._deliver)

    def _deliver(self):
        self._scheduled = False
        if not self.connected:
            return
        records = self.take_records()
        if not records:
            return
        try:
            self.callback(records, self)
        except Exception as e:
            logger.error(f"Mutation observer callback failed: {e}")


class PageDocument:
    """One rendered page: URL, DOM tree and the runtime bound to it."""

    def __init__(self, html: str = "", url: str = ""):
        self.url = url
        self.soup = BeautifulSoup(html or "", "html.parser")
        # at most one injection runtime per document
        self.active_runtime: Any = None
        self._observers: List[MutationObserver] = []

    # -- location -------------------------------------------------------

    @property
    def path(self) -> str:
        return urlparse(self.url).path or "/"

    @property
    def host(self) -> str:
        return urlparse(self.url).hostname or ""

    def query_param(self, name: str) -> Optional[str]:
        values = parse_qs(urlparse(self.url).query).get(name)
        return values[0] if values else None

    # -- queries --------------------------------------------------------

    def query_selector(self, selector: str) -> Optional[Tag]:
        """First match or None. Invalid selectors match nothing."""
        try:
            return self.soup.select_one(selector)
        except (soupsieve.SelectorSyntaxError, ValueError, NotImplementedError) as e:
            logger.debug(f"Unusable selector {selector!r}: {e}")
            return None

    def query_selector_all(self, selector: str) -> List[Tag]:
        try:
            return list(self.soup.select(selector))
        except (soupsieve.SelectorSyntaxError, ValueError, NotImplementedError) as e:
            logger.debug(f"Unusable selector {selector!r}: {e}")
            return []

    def get_element_by_id(self, element_id: str) -> Optional[Tag]:
        return self.soup.find(id=element_id)

    @staticmethod
    def matches(element: Tag, selector: str) -> bool:
        try:
            return soupsieve.match(selector, element)
        except (soupsieve.SelectorSyntaxError, ValueError, NotImplementedError):
            return False

    @staticmethod
    def closest(element: Tag, selector: str) -> Optional[Tag]:
        """Element itself or its nearest ancestor matching selector."""
        try:
            return soupsieve.closest(selector, element)
        except (soupsieve.SelectorSyntaxError, ValueError, NotImplementedError):
            return None

    @staticmethod
    def text_of(element: Tag) -> str:
        return element.get_text()

    @staticmethod
    def inner_html(element: Tag) -> str:
        return element.decode_contents()

    def serialize(self) -> str:
        return str(self.soup)

    # -- writes ---------------------------------------------------------

    def create_element(self, tag_name: str, text: Optional[str] = None) -> Tag:
        el = self.soup.new_tag(tag_name)
        if text is not None:
            el.append(NavigableString(text))
        return el

    def set_text(self, element: Tag, text: str):
        element.clear()
        element.append(NavigableString(text))
        self._notify(MutationRecord(CHILD_LIST, element))

    def set_inner_html(self, element: Tag, markup: str):
        fragment = BeautifulSoup(markup or "", "html.parser")
        element.clear()
        for child in list(fragment.contents):
            element.append(child.extract())
        self._notify(MutationRecord(CHILD_LIST, element))

    def clear_children(self, element: Tag):
        element.clear()
        self._notify(MutationRecord(CHILD_LIST, element))

    def append_child(self, parent: Tag, child: Tag):
        parent.append(child)
        self._notify(MutationRecord(CHILD_LIST, parent))

    def replace_element(self, element: Tag, markup: str) -> Optional[Tag]:
        """Swap an element for freshly parsed markup (what re-rendering themes do)."""
        parent = element.parent
        fragment = BeautifulSoup(markup or "", "html.parser")
        new_nodes = list(fragment.contents)
        for node in new_nodes:
            element.insert_before(node.extract())
        element.extract()
        if parent is not None:
            self._notify(MutationRecord(CHILD_LIST, parent))
        return next((n for n in new_nodes if isinstance(n, Tag)), None)

    def set_attribute(self, element: Tag, name: str, value: str):
        element[name] = value
        self._notify(MutationRecord(ATTRIBUTES, element, name))

    def remove_attribute(self, element: Tag, name: str):
        if name in element.attrs:
            del element[name]
            self._notify(MutationRecord(ATTRIBUTES, element, name))

    # -- observers ------------------------------------------------------

    def flush_mutations(self):
        """Deliver queued records synchronously (for code running without a loop)."""
        for observer in list(self._observers):
            observer._deliver()

    def _attach(self, observer: MutationObserver):
        if observer not in self._observers:
            self._observers.append(observer)

    def _detach(self, observer: MutationObserver):
        if observer in self._observers:
            self._observers.remove(observer)

    def _notify(self, record: MutationRecord):
        for observer in list(self._observers):
            if observer._wants(record):
                observer._enqueue(record)
