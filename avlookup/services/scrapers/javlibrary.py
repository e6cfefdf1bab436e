from __future__ import annotations

import re
import urllib.parse

from bs4 import BeautifulSoup

from ...config import logger
from ...errors import NotFoundError, ParseError, TransportError
from ...models import ListingItem, PartialRecord
from ...utils import (
    extract_duration_minutes,
    extract_first_int,
    extract_identifier,
    extract_release_date,
    normalize_identifier,
)
from .base_scraper import HtmlSource, SourceKind
from .utils import (
    absolute_url,
    all_texts,
    dedupe,
    first_attr,
    first_text,
    make_soup,
    select_all,
    select_first,
)

_SCORE_PATTERN = re.compile(r"\d+(?:\.\d+)?")


class JavLibrarySource(HtmlSource):
    """Secondary metadata source, searched by identifier across site locales."""

    kind = SourceKind.SECONDARY_METADATA
    config_name = "javlibrary"

    async def _search_page(self, query: str) -> tuple[BeautifulSoup, str]:
        """The first locale's search page that could be fetched, with its URL."""
        last_error: TransportError | None = None
        for locale in self.config.get("locales", ["en"]):
            url = self.url_for(
                "search_path", locale=locale, query=urllib.parse.quote_plus(query)
            )
            try:
                html = await self._fetch_page(url)
            except TransportError as exc:
                logger.debug(f"[SCRAPER] {self.name}: Locale '{locale}' failed: {exc}")
                last_error = exc
                continue
            return make_soup(html), url
        if last_error is not None:
            raise last_error
        raise TransportError("No locales configured", source=self.name)

    def _is_detail_page(self, soup: BeautifulSoup) -> bool:
        return select_first(soup, self.results_selectors.get("detail_marker")) is not None

    async def search(self, query: str) -> list[ListingItem]:
        soup, _ = await self._search_page(query.strip())
        if self._is_detail_page(soup):
            record = self._parse_detail(soup, extract_identifier(query))
            return [ListingItem(identifier=record.identifier, title=record.title)]

        items: list[ListingItem] = []
        seen: set[str] = set()
        for item in select_all(soup, self.results_selectors.get("item")):
            title = first_text(item, self.results_selectors.get("item_title")) or ""
            identifier = extract_identifier(
                first_text(item, self.results_selectors.get("item_id")) or title
            )
            if identifier is None or identifier in seen:
                continue
            seen.add(identifier)
            items.append(ListingItem(identifier=identifier, title=title))
        if not items:
            raise NotFoundError(f"No results for '{query}'", source=self.name)
        return items

    async def fetch_detail(self, identifier: str) -> PartialRecord:
        identifier = normalize_identifier(identifier)
        logger.info(f"[SCRAPER] {self.name}: Looking up {identifier}")
        soup, page_url = await self._search_page(identifier)
        if self._is_detail_page(soup):
            return self._parse_detail(soup, identifier)

        href = first_attr(soup, self.results_selectors.get("result_link"), "href")
        if href is None:
            raise NotFoundError(f"No results for {identifier}", source=self.name)
        detail_html = await self._fetch_page(absolute_url(page_url, href))
        return self._parse_detail(make_soup(detail_html), identifier)

    def _parse_detail(self, soup: BeautifulSoup, requested: str | None) -> PartialRecord:
        sel = self.details_selectors
        title = first_text(soup, sel.get("title"))
        if not title:
            raise ParseError("Detail page has no title", source=self.name)

        page_identifier = extract_identifier(first_text(soup, sel.get("identifier")))
        if requested and page_identifier and page_identifier != requested:
            raise NotFoundError(
                f"Detail page is for {page_identifier}, not {requested}", source=self.name
            )
        identifier = requested or page_identifier or extract_identifier(title)
        if not identifier:
            raise ParseError("Detail page has no identifier", source=self.name)

        date_text = first_text(soup, sel.get("release_date"))
        duration_text = first_text(soup, sel.get("duration"))
        score_text = first_text(soup, sel.get("rating"))
        score = _SCORE_PATTERN.search(score_text) if score_text else None
        cover = first_attr(soup, sel.get("cover"), "src")

        return PartialRecord(
            identifier=identifier,
            title=title,
            cast=dedupe(all_texts(soup, sel.get("cast"))),
            release_date=extract_release_date(date_text) or date_text,
            cover_url=absolute_url(self.base_url, cover) if cover else None,
            duration_minutes=(
                extract_duration_minutes(duration_text) or extract_first_int(duration_text)
            ),
            director=first_text(soup, sel.get("director")),
            studio=first_text(soup, sel.get("studio")),
            label=first_text(soup, sel.get("label")),
            genres=dedupe(all_texts(soup, sel.get("genres"))),
            rating=float(score.group(0)) if score else None,
        )
