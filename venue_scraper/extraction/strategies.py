"""
Named, ordered extraction strategies.

A strategy is a pure function ``soup -> value | None``. ``first_match`` runs a
list of them in order and returns the first non-empty result, so the
precedence of each field's selectors can be tested on its own.
"""
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup, Tag

from venue_scraper.data_quality.cleaning import clean_text

Extractor = Callable[[Any], Any]


@dataclass(frozen=True)
class Strategy:
    name: str
    func: Extractor

    def __call__(self, node):
        return self.func(node)


def _is_empty(value) -> bool:
    return value is None or value == "" or value == [] or value == {}


def first_match(node, strategies: Sequence[Strategy]) -> Tuple[Optional[str], Any]:
    """Returns (strategy name, value) for the first strategy with a non-empty result."""
    for strategy in strategies:
        value = strategy(node)
        if not _is_empty(value):
            return strategy.name, value
    return None, None


def first_value(node, strategies: Sequence[Strategy], default=None):
    _, value = first_match(node, strategies)
    return default if value is None else value


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


def element_text(element: Optional[Tag]) -> str:
    if element is None:
        return ""
    return clean_text(element.get_text(" "))


def select_text(selector: str) -> Strategy:
    """Text of the first element matching selector that has any text."""
    def _select(node):
        for element in node.select(selector):
            text = element_text(element)
            if text:
                return text
        return None
    return Strategy(selector, _select)


def select_texts(selector: str) -> Strategy:
    """Texts of every element matching selector, in document order, without blanks or repeats."""
    def _select(node):
        seen = []
        for element in node.select(selector):
            text = element_text(element)
            if text and text not in seen:
                seen.append(text)
        return seen
    return Strategy(selector, _select)


def texts_for(node, selectors: Sequence[str]) -> List[str]:
    """Collects texts across several selectors, de-duplicated, keeping first-seen order."""
    collected: List[str] = []
    for selector in selectors:
        for text in select_texts(selector)(node):
            if text not in collected:
                collected.append(text)
    return collected
