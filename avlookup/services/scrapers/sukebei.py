from __future__ import annotations

import urllib.parse
from dataclasses import dataclass

from bs4 import BeautifulSoup, Tag

from ...config import logger
from ...errors import NotFoundError
from ...models import ListingItem, MagnetRecord, PartialRecord
from ...utils import (
    clean_text,
    extract_first_int,
    extract_identifier,
    normalize_identifier,
    parse_codec,
    parse_resolution,
    title_mentions,
)
from ..merge import aggregate_magnets
from .base_scraper import HtmlSource, SourceKind
from .utils import (
    absolute_url,
    all_attrs,
    dedupe,
    extract_magnets_from_text,
    first_attr,
    first_text,
    make_soup,
    select_all,
    select_first,
)


@dataclass
class TorrentRow:
    """One row of a listing page."""

    name: str
    view_url: str | None = None
    magnet: MagnetRecord | None = None


def _cell_text(cells: list[Tag], index: int | None) -> str | None:
    if index is None or index >= len(cells):
        return None
    return clean_text(cells[index].get_text(" ")) or None


class SukebeiSource(HtmlSource):
    """Torrent index. Its records mostly carry magnets and a title."""

    kind = SourceKind.TORRENT_INDEX
    config_name = "sukebei"

    def _parse_row(self, row: Tag) -> TorrentRow | None:
        sel = self.results_selectors
        link = select_first(row, sel.get("name_link"))
        if link is None:
            return None
        title_attr = link.get("title")
        name = clean_text(title_attr if isinstance(title_attr, str) else link.get_text(" "))
        if not name:
            return None
        href = link.get("href")
        view_url = absolute_url(self.base_url, href) if isinstance(href, str) else None

        magnet: MagnetRecord | None = None
        magnet_url = first_attr(row, sel.get("magnet_link"), "href")
        if magnet_url:
            cells = row.find_all("td")
            magnet = MagnetRecord(
                url=magnet_url,
                name=name,
                size=_cell_text(cells, sel.get("size_cell")),
                date=_cell_text(cells, sel.get("date_cell")),
                seeders=extract_first_int(_cell_text(cells, sel.get("seeders_cell"))),
                leechers=extract_first_int(_cell_text(cells, sel.get("leechers_cell"))),
                downloads=extract_first_int(_cell_text(cells, sel.get("downloads_cell"))),
                resolution=parse_resolution(name),
                codec=parse_codec(name),
            )
        return TorrentRow(name=name, view_url=view_url, magnet=magnet)

    def _parse_rows(self, soup: BeautifulSoup) -> list[TorrentRow]:
        rows = []
        for row in select_all(soup, self.results_selectors.get("rows")):
            parsed = self._parse_row(row)
            if parsed is not None:
                rows.append(parsed)
        return rows

    def _listing(self, rows: list[TorrentRow]) -> list[ListingItem]:
        items: list[ListingItem] = []
        seen: set[str] = set()
        for row in rows:
            identifier = extract_identifier(row.name)
            if identifier is None or identifier in seen:
                continue
            seen.add(identifier)
            items.append(ListingItem(identifier=identifier, title=row.name))
        return items

    async def _search_rows(self, query: str) -> list[TorrentRow]:
        url = self.url_for("search_path", query=urllib.parse.quote_plus(query))
        return self._parse_rows(make_soup(await self._fetch_page(url)))

    async def search(self, query: str) -> list[ListingItem]:
        items = self._listing(await self._search_rows(query.strip()))
        if not items:
            raise NotFoundError(f"No torrents for '{query}'", source=self.name)
        return items

    async def latest(self, limit: int = 20) -> list[ListingItem]:
        """Front page listing, newest uploads first."""
        html = await self._fetch_page(self.url_for("latest_path"))
        items = self._listing(self._parse_rows(make_soup(html)))
        if not items:
            raise NotFoundError("Front page lists nothing", source=self.name)
        return items[:limit]

    async def fetch_detail(self, identifier: str) -> PartialRecord:
        identifier = normalize_identifier(identifier)
        rows = await self._search_rows(identifier)
        matching = [row for row in rows if title_mentions(row.name, identifier)]
        if not matching:
            raise NotFoundError(f"No torrents mention {identifier}", source=self.name)

        record = PartialRecord(identifier=identifier, title=matching[0].name)
        magnets = [row.magnet for row in matching if row.magnet is not None]
        if not magnets and matching[0].view_url:
            magnets = await self._magnets_from_view_page(
                matching[0].view_url, matching[0].name
            )

        record.magnets = aggregate_magnets([], magnets)
        record.magnet_uris = [m.url for m in record.magnets]
        logger.info(
            f"[SCRAPER] {self.name}: {len(record.magnets)} magnets for {identifier} "
            f"from {len(matching)} matching rows."
        )
        return record

    async def _magnets_from_view_page(
        self, view_url: str, fallback_name: str
    ) -> list[MagnetRecord]:
        html = await self._fetch_page(view_url)
        soup = make_soup(html)
        name = first_text(soup, self.details_selectors.get("title")) or fallback_name
        uris = dedupe(
            all_attrs(soup, self.details_selectors.get("magnet_link"), "href")
            + extract_magnets_from_text(html)
        )
        return [
            MagnetRecord(
                url=uri,
                name=name,
                resolution=parse_resolution(name),
                codec=parse_codec(name),
            )
            for uri in uris
        ]
