from __future__ import annotations

import json
import re
import urllib.parse
from typing import Any

from bs4 import BeautifulSoup, Tag
from thefuzz import fuzz, process

from ...config import logger
from ...errors import NotFoundError, ParseError, TransportError
from ...models import (
    ActorRanking,
    ActorRankingEntry,
    ListingItem,
    MagnetRecord,
    PartialRecord,
)
from ...utils import (
    clean_text,
    extract_duration_minutes,
    extract_first_int,
    extract_identifier,
    extract_rating,
    extract_release_date,
    normalize_identifier,
    parse_codec,
    parse_resolution,
)
from .base_scraper import HtmlSource, SourceKind
from .utils import (
    absolute_url,
    all_attrs,
    all_texts,
    dedupe,
    extract_magnets_from_text,
    first_attr,
    first_text,
    make_soup,
    select_all,
    select_first,
)

_ACTOR_MATCH_THRESHOLD = 80
_FLOAT_PATTERN = re.compile(r"\d+(?:\.\d+)?")
_SIZE_TOKEN_PATTERN = re.compile(r"\d+(?:\.\d+)?\s*[KMGT]i?B", re.IGNORECASE)
_LEADING_IDENTIFIER_PATTERN = re.compile(r"\s*([A-Za-z]{2,5})[-_ ]?(\d{2,5})\b")
_LD_JSON_TYPES = {"VideoObject", "Movie"}

# Label keywords per field, checked in this order. "Release date" labels come
# before the publisher labels because both start with the same characters.
_LABELED_FIELDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("identifier", ("id", "番號", "番号", "品番")),
    (
        "release_date",
        ("released date", "release date", "發行日期", "发行日期", "日期", "配信開始日", "発売日"),
    ),
    ("duration", ("duration", "length", "時長", "时长", "長さ", "収録時間")),
    ("director", ("director", "導演", "导演", "監督")),
    ("studio", ("maker", "studio", "片商", "メーカー")),
    ("label", ("publisher", "label", "發行", "发行", "レーベル")),
    ("series", ("series", "系列", "シリーズ")),
    ("rating", ("rating", "評分", "评分")),
    ("genres", ("tags", "genre", "類別", "类别", "ジャンル")),
    ("cast", ("actor", "演員", "演员", "出演")),
)


def _field_for_label(label: str) -> str | None:
    key = clean_text(label).rstrip(":：").strip().lower()
    if not key:
        return None
    for field_name, keywords in _LABELED_FIELDS:
        if any(key == keyword or key.startswith(keyword) for keyword in keywords):
            return field_name
    return None


def _first_float(text: str | None) -> float | None:
    if not text:
        return None
    match = _FLOAT_PATTERN.search(text)
    return float(match.group(0)) if match else None


def _value_items(value: Tag) -> list[str]:
    """Anchor texts of a labeled value, or its comma separated parts."""
    anchors = [clean_text(a.get_text(" ")) for a in value.select("a")]
    items = [a for a in anchors if a]
    if items:
        return dedupe(items)
    parts = re.split(r"[,，、]", value.get_text(" "))
    return dedupe(p for p in (clean_text(part) for part in parts) if p)


def _ld_list(value: Any) -> list[Any]:
    """JSON-LD allows a single value where a list is expected."""
    if isinstance(value, list):
        return value
    if isinstance(value, (dict, str)):
        return [value]
    return []


def _ld_image_url(value: Any) -> str | None:
    if isinstance(value, dict):
        value = value.get("url") or value.get("contentUrl")
    return value if isinstance(value, str) and value.strip() else None


def _strip_identifier(text: str, identifier: str) -> str:
    """Drops a leading content code from a card title."""
    match = _LEADING_IDENTIFIER_PATTERN.match(text)
    if match and f"{match.group(1).upper()}-{match.group(2)}" == identifier:
        remainder = clean_text(text[match.end() :]).lstrip("-_ ")
        if remainder:
            return remainder
    return text


class JavDBSource(HtmlSource):
    """Primary metadata source.

    Besides detail lookups it backs the listing capabilities (actor titles,
    top titles, actor rankings) and play URL resolution.
    """

    kind = SourceKind.PRIMARY_METADATA
    config_name = "javdb"

    def _search_url(self, query: str) -> str:
        return self.url_for("search_path", query=urllib.parse.quote_plus(query))

    def _is_detail_page(self, soup: BeautifulSoup) -> bool:
        return select_first(soup, self.results_selectors.get("detail_marker")) is not None

    # --- Listings ---

    def _card_text(self, card: Tag) -> str:
        text = first_text(card, self.results_selectors.get("card_title"))
        if text:
            return text
        title_attr = card.get("title")
        if isinstance(title_attr, str) and title_attr.strip():
            return clean_text(title_attr)
        return clean_text(card.get_text(" "))

    def _listing_from_cards(self, soup: BeautifulSoup) -> list[ListingItem]:
        items: list[ListingItem] = []
        seen: set[str] = set()
        for card in select_all(soup, self.results_selectors.get("card")):
            text = self._card_text(card)
            identifier = extract_identifier(text)
            if identifier is None:
                href = card.get("href")
                if not isinstance(href, str) or not href.strip("/"):
                    continue
                identifier = href.rstrip("/").rsplit("/", 1)[-1].upper()
            if identifier in seen:
                continue
            seen.add(identifier)
            items.append(
                ListingItem(identifier=identifier, title=_strip_identifier(text, identifier))
            )
        return items

    def _pick_result_url(self, soup: BeautifulSoup, identifier: str) -> str | None:
        """Detail URL of the card matching ``identifier``, else the first result."""
        for card in select_all(soup, self.results_selectors.get("card")):
            href = card.get("href")
            if isinstance(href, str) and extract_identifier(self._card_text(card)) == identifier:
                return absolute_url(self.base_url, href)
        href = first_attr(soup, self.results_selectors.get("result_link"), "href")
        if href is None:
            return None
        logger.debug(
            f"[SCRAPER] {self.name}: No card matched {identifier}; using first result."
        )
        return absolute_url(self.base_url, href)

    async def search(self, query: str) -> list[ListingItem]:
        query = query.strip()
        html = await self._fetch_page(self._search_url(query))
        soup = make_soup(html)
        if self._is_detail_page(soup):
            record = self._parse_detail(soup, html, extract_identifier(query))
            return [ListingItem(identifier=record.identifier, title=record.title)]

        items = self._listing_from_cards(soup)
        if not items:
            raise NotFoundError(f"No results for '{query}'", source=self.name)
        logger.info(f"[SCRAPER] {self.name}: Found {len(items)} results for '{query}'.")
        return items

    async def list_actor_titles(self, actor: str) -> list[ListingItem]:
        """Titles credited to ``actor``.

        The actor search may list titles directly or list matching actors; in
        the latter case the closest name is followed to its filmography.
        """
        url = self.url_for("actor_search_path", query=urllib.parse.quote_plus(actor))
        soup = make_soup(await self._fetch_page(url))
        items = self._listing_from_cards(soup)
        if items:
            return items

        actor_url = self._best_actor_url(soup, actor)
        if actor_url is None:
            raise NotFoundError(f"No actor matching '{actor}'", source=self.name)
        soup = make_soup(await self._fetch_page(actor_url))
        items = self._listing_from_cards(soup)
        if not items:
            raise NotFoundError(f"No titles listed for '{actor}'", source=self.name)
        return items

    def _best_actor_url(self, soup: BeautifulSoup, actor: str) -> str | None:
        choices: dict[str, str] = {}
        for box in select_all(soup, self.results_selectors.get("actor_box")):
            href = box.get("href")
            name = first_text(box, self.results_selectors.get("actor_box_name"))
            if not name:
                title_attr = box.get("title")
                name = clean_text(title_attr if isinstance(title_attr, str) else box.get_text(" "))
            if isinstance(href, str) and name:
                choices[absolute_url(self.base_url, href)] = name
        if not choices:
            return None

        best_match = process.extractOne(actor, choices, scorer=fuzz.token_set_ratio)
        if not best_match or best_match[1] < _ACTOR_MATCH_THRESHOLD:
            logger.info(
                f"[SCRAPER] {self.name}: No confident actor match for '{actor}'. "
                f"Best was: {best_match}"
            )
            return None
        return best_match[2]

    async def top(self, limit: int = 20) -> list[ListingItem]:
        """Most recent titles first, then trending ones, up to ``limit``."""
        items: list[ListingItem] = []
        seen: set[str] = set()
        for path in self.config.get("top_paths", []):
            if len(items) >= limit:
                break
            try:
                html = await self._fetch_page(f"{self.base_url}{path}")
            except TransportError as exc:
                logger.debug(f"[SCRAPER] {self.name}: Top page {path} failed: {exc}")
                continue
            for item in self._listing_from_cards(make_soup(html)):
                if item.identifier not in seen:
                    seen.add(item.identifier)
                    items.append(item)
        if not items:
            raise NotFoundError("No top titles listed", source=self.name)
        return items[:limit]

    # --- Actor rankings ---

    def _actor_names(self, soup: BeautifulSoup) -> list[str]:
        names: list[str] = []
        for box in select_all(soup, self.results_selectors.get("actor_box")):
            name = first_text(box, self.results_selectors.get("actor_box_name"))
            if not name:
                title_attr = box.get("title")
                name = clean_text(title_attr if isinstance(title_attr, str) else box.get_text(" "))
            if name:
                names.append(name)
        if not names:
            names = all_texts(soup, self.results_selectors.get("actor_anchor"))
        return dedupe(names)

    def _total_pages(self, soup: BeautifulSoup, page: int) -> int:
        numbers = [
            extract_first_int(text)
            for text in all_texts(soup, self.results_selectors.get("pagination_link"))
        ]
        return max([n for n in numbers if n is not None] + [page])

    async def actors(
        self, page: int = 1, per_page: int = 50, uncensored_only: bool = False
    ) -> ActorRanking:
        """Actor ranking page. Hotness follows presentation order."""
        path_key = (
            "uncensored_actor_ranking_paths" if uncensored_only else "actor_ranking_paths"
        )
        for template in self.config.get(path_key, []):
            url = f"{self.base_url}{template.format(page=page)}"
            try:
                html = await self._fetch_page(url)
            except TransportError as exc:
                logger.debug(f"[SCRAPER] {self.name}: Ranking page {url} failed: {exc}")
                continue
            soup = make_soup(html)
            names = self._actor_names(soup)[:per_page]
            if not names:
                continue
            entries = [
                ActorRankingEntry(name=name, hotness=max(per_page - idx, 1))
                for idx, name in enumerate(names)
            ]
            total = self._total_pages(soup, page) * per_page
            return ActorRanking(entries=entries, page=page, per_page=per_page, total=total)
        raise NotFoundError(f"No actor ranking on page {page}", source=self.name)

    # --- Play URL ---

    async def fetch_play_url(self, identifier: str) -> str:
        """Play link from the search page, then the detail page, else the search URL."""
        identifier = normalize_identifier(identifier)
        search_url = self._search_url(identifier)
        soup = make_soup(await self._fetch_page(search_url))
        href = first_attr(soup, self.results_selectors.get("play_link"), "href")
        if href:
            return absolute_url(self.base_url, href)

        if not self._is_detail_page(soup):
            detail_url = self._pick_result_url(soup, identifier)
            if detail_url:
                detail_soup = make_soup(await self._fetch_page(detail_url))
                href = first_attr(detail_soup, self.results_selectors.get("play_link"), "href")
                if href:
                    return absolute_url(self.base_url, href)
        return search_url

    # --- Details ---

    async def fetch_detail(self, identifier: str) -> PartialRecord:
        identifier = normalize_identifier(identifier)
        logger.info(f"[SCRAPER] {self.name}: Looking up {identifier}")
        html = await self._fetch_page(self._search_url(identifier))
        soup = make_soup(html)
        if self._is_detail_page(soup):
            return self._parse_detail(soup, html, identifier)

        detail_url = self._pick_result_url(soup, identifier)
        if detail_url is None:
            raise NotFoundError(f"No results for {identifier}", source=self.name)
        detail_html = await self._fetch_page(detail_url)
        return self._parse_detail(make_soup(detail_html), detail_html, identifier)

    def _labeled_values(self, soup: BeautifulSoup) -> dict[str, Tag]:
        sel = self.details_selectors
        found: dict[str, Tag] = {}
        for block_key, label_key, value_key in (
            ("info_block", "info_label", "info_value"),
            ("row_block", "row_label", "row_value"),
        ):
            for block in select_all(soup, sel.get(block_key)):
                label = select_first(block, sel.get(label_key))
                value = select_first(block, sel.get(value_key))
                if label is None or value is None:
                    continue
                field_name = _field_for_label(label.get_text(" "))
                if field_name and field_name not in found:
                    found[field_name] = value
            if found:
                break
        return found

    def _parse_detail(
        self, soup: BeautifulSoup, html: str, requested: str | None
    ) -> PartialRecord:
        sel = self.details_selectors
        title = first_text(soup, sel.get("title"))
        if not title:
            raise ParseError("Detail page has no title", source=self.name)

        labeled = self._labeled_values(soup)
        id_value = labeled.get("identifier")
        page_identifier = extract_identifier(
            clean_text(id_value.get_text("")) if id_value is not None else title
        )
        if requested and page_identifier and page_identifier != requested:
            raise NotFoundError(
                f"Detail page is for {page_identifier}, not {requested}", source=self.name
            )
        identifier = requested or page_identifier
        if not identifier:
            raise ParseError("Detail page has no identifier", source=self.name)

        record = PartialRecord(identifier=identifier, title=title)
        self._apply_labeled(record, labeled)
        self._apply_links(record, soup)
        self._apply_body_text(record, soup)
        self._apply_json_ld(record, soup)
        record.genres = sorted(set(record.genres))

        record.magnets, record.magnet_uris = self._parse_magnets(soup, html)
        logger.debug(
            f"[SCRAPER] {self.name}: Parsed {identifier} with {len(record.magnets)} magnets"
        )
        return record

    def _apply_labeled(self, record: PartialRecord, labeled: dict[str, Tag]) -> None:
        for field_name, value in labeled.items():
            text = clean_text(value.get_text(" "))
            if field_name in ("cast", "genres"):
                setattr(record, field_name, _value_items(value))
            elif field_name in ("director", "studio", "label", "series"):
                anchor = first_text(value, "a")
                setattr(record, field_name, anchor or text or None)
            elif field_name == "release_date":
                record.release_date = extract_release_date(text) or text or None
            elif field_name == "duration":
                record.duration_minutes = extract_duration_minutes(text) or extract_first_int(text)
            elif field_name == "rating":
                record.rating = _first_float(text)

    def _apply_links(self, record: PartialRecord, soup: BeautifulSoup) -> None:
        sel = self.details_selectors
        if not record.cast:
            record.cast = dedupe(all_texts(soup, sel.get("actors")))
        if record.director is None:
            record.director = first_text(soup, sel.get("director"))
        if record.studio is None:
            record.studio = first_text(soup, sel.get("studio"))
        if record.label is None:
            record.label = first_text(soup, sel.get("label"))
        if record.series is None:
            record.series = first_text(soup, sel.get("series"))
        if not record.genres:
            record.genres = all_texts(soup, sel.get("tags"))
        if record.plot is None:
            record.plot = first_text(soup, sel.get("plot"))

        cover = first_attr(soup, sel.get("cover"), "src") or first_attr(
            soup, sel.get("cover_meta"), "content"
        )
        if cover:
            record.cover_url = absolute_url(self.base_url, cover)
        images = all_attrs(soup, sel.get("preview_images"), "src") or all_attrs(
            soup, sel.get("preview_images"), "data-src"
        )
        record.preview_images = dedupe(absolute_url(self.base_url, img) for img in images)

    def _apply_body_text(self, record: PartialRecord, soup: BeautifulSoup) -> None:
        body = clean_text(soup.get_text(" "))
        if record.release_date is None:
            record.release_date = extract_release_date(body)
        if record.duration_minutes is None:
            record.duration_minutes = extract_duration_minutes(body)
        if record.rating is None:
            record.rating = extract_rating(body)

    def _json_ld_objects(self, soup: BeautifulSoup) -> list[dict[str, Any]]:
        objects: list[dict[str, Any]] = []
        for script in select_all(soup, self.details_selectors.get("ld_json")):
            try:
                data = json.loads(script.string or script.get_text())
            except ValueError:
                logger.debug(f"[SCRAPER] {self.name}: Skipping malformed JSON-LD block")
                continue
            if isinstance(data, dict):
                candidates = data.get("@graph", [data])
            elif isinstance(data, list):
                candidates = data
            else:
                continue
            for candidate in candidates:
                if isinstance(candidate, dict) and candidate.get("@type") in _LD_JSON_TYPES:
                    objects.append(candidate)
        return objects

    def _apply_json_ld(self, record: PartialRecord, soup: BeautifulSoup) -> None:
        for data in self._json_ld_objects(soup):
            description = data.get("description")
            if record.plot is None and isinstance(description, str) and description.strip():
                record.plot = clean_text(description)

            duration = data.get("duration")
            if record.duration_minutes is None and isinstance(duration, str):
                record.duration_minutes = extract_duration_minutes(duration)

            if not record.cast:
                names = [
                    clean_text(a.get("name"))
                    for a in _ld_list(data.get("actor"))
                    if isinstance(a, dict) and isinstance(a.get("name"), str)
                ]
                record.cast = dedupe(n for n in names if n)

            images = [
                absolute_url(self.base_url, url)
                for url in map(_ld_image_url, _ld_list(data.get("image")))
                if url
            ]
            if images and record.cover_url is None:
                record.cover_url = images[0]
            if images and not record.preview_images:
                record.preview_images = images[1:]

            company = data.get("productionCompany")
            if record.studio is None and isinstance(company, dict):
                name = company.get("name")
                record.studio = clean_text(name) or None if isinstance(name, str) else None

    def _parse_magnets(
        self, soup: BeautifulSoup, html: str
    ) -> tuple[list[MagnetRecord], list[str]]:
        sel = self.details_selectors
        records: list[MagnetRecord] = []
        for row in select_all(soup, sel.get("magnet_row")):
            url = first_attr(row, sel.get("magnet_link"), "href")
            if not url or any(r.url == url for r in records):
                continue
            name = first_text(row, sel.get("magnet_name"))
            meta = first_text(row, sel.get("magnet_meta")) or ""
            size_match = _SIZE_TOKEN_PATTERN.search(meta)
            records.append(
                MagnetRecord(
                    url=url,
                    name=name,
                    size=size_match.group(0) if size_match else None,
                    date=first_text(row, sel.get("magnet_date")),
                    resolution=parse_resolution(name),
                    codec=parse_codec(name),
                )
            )
        uris = dedupe([r.url for r in records] + extract_magnets_from_text(html))
        return records, uris
