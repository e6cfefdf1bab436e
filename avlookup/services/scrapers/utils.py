"""Selector helpers over BeautifulSoup.

Each helper accepts a single CSS selector or a prioritized list of them and
returns the first non-empty result, so per-site fallbacks can live in the YAML
configs instead of in branching code.
"""

from __future__ import annotations

import re
import urllib.parse
from collections.abc import Iterable
from typing import Any

from bs4 import BeautifulSoup, Tag

from ...utils import clean_text

Selectors = str | Iterable[str] | None

_MAGNET_PATTERN = re.compile(r"""magnet:\?xt=urn:[^"'\s<>]+""")


def make_soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


def _as_list(selectors: Selectors) -> list[str]:
    if selectors is None:
        return []
    if isinstance(selectors, str):
        return [selectors]
    return [s for s in selectors if isinstance(s, str)]


def select_first(root: BeautifulSoup | Tag, selectors: Selectors) -> Tag | None:
    for selector in _as_list(selectors):
        tag = root.select_one(selector)
        if isinstance(tag, Tag):
            return tag
    return None


def select_all(root: BeautifulSoup | Tag, selectors: Selectors) -> list[Tag]:
    """Tags matched by the first selector that matches anything."""
    for selector in _as_list(selectors):
        tags = [t for t in root.select(selector) if isinstance(t, Tag)]
        if tags:
            return tags
    return []


def first_text(root: BeautifulSoup | Tag, selectors: Selectors) -> str | None:
    for selector in _as_list(selectors):
        for tag in root.select(selector):
            if isinstance(tag, Tag):
                text = clean_text(tag.get_text(" "))
                if text:
                    return text
    return None


def all_texts(root: BeautifulSoup | Tag, selectors: Selectors) -> list[str]:
    """Non-empty texts from the first selector that yields any, order kept."""
    for selector in _as_list(selectors):
        texts = [
            clean_text(tag.get_text(" "))
            for tag in root.select(selector)
            if isinstance(tag, Tag)
        ]
        texts = [t for t in texts if t]
        if texts:
            return texts
    return []


def first_attr(
    root: BeautifulSoup | Tag, selectors: Selectors, attribute: str
) -> str | None:
    for selector in _as_list(selectors):
        for tag in root.select(selector):
            if not isinstance(tag, Tag):
                continue
            value = tag.get(attribute)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


def all_attrs(
    root: BeautifulSoup | Tag, selectors: Selectors, attribute: str
) -> list[str]:
    for selector in _as_list(selectors):
        values: list[str] = []
        for tag in root.select(selector):
            if not isinstance(tag, Tag):
                continue
            value = tag.get(attribute)
            if isinstance(value, str) and value.strip():
                values.append(value.strip())
        if values:
            return values
    return []


def absolute_url(base_url: str, href: str) -> str:
    """Resolves relative and protocol-relative links against ``base_url``."""
    if href.startswith("//"):
        return f"https:{href}"
    return urllib.parse.urljoin(base_url, href)


def extract_magnets_from_text(body: str) -> list[str]:
    """Unique magnet URIs found anywhere in raw markup, in page order."""
    seen: list[str] = []
    for match in _MAGNET_PATTERN.finditer(body):
        uri = match.group(0).replace("&amp;", "&")
        if uri not in seen:
            seen.append(uri)
    return seen


def dedupe(values: Iterable[Any]) -> list[Any]:
    out: list[Any] = []
    for value in values:
        if value not in out:
            out.append(value)
    return out
