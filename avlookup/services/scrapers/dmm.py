from __future__ import annotations

import re
from typing import Any

from ...config import ScraperConfig, logger
from ...errors import ConfigurationMissingError, NotFoundError, ParseError
from ...models import ListingItem, PartialRecord
from ...utils import clean_text, extract_first_int, extract_identifier, normalize_identifier
from ..http_client import HttpTransport
from .base_scraper import MetadataSource, SourceKind

_API_URL = "https://api.dmm.com/affiliate/v3/ItemList"
_SEARCH_HITS = 20
_DETAIL_HITS = 5
# Catalog content ids look like "ssis00001" or "h_1234abc00123".
_CONTENT_ID_PATTERN = re.compile(r"^(?:h_\d+)?(?:\d+)?([a-z]{2,5})(\d+)", re.IGNORECASE)


def content_id_to_identifier(content_id: str) -> str | None:
    """Maps a catalog content id such as ``ssis00001`` to ``SSIS-001``."""
    match = _CONTENT_ID_PATTERN.match(content_id.strip())
    if not match:
        return None
    digits = str(int(match.group(2))).zfill(3)
    return f"{match.group(1).upper()}-{digits}"


def _names(info: dict[str, Any], key: str) -> list[str]:
    entries = info.get(key) or []
    if isinstance(entries, dict):
        entries = [entries]
    names = [
        clean_text(entry.get("name"))
        for entry in entries
        if isinstance(entry, dict) and isinstance(entry.get("name"), str)
    ]
    return [name for name in names if name]


def _first_name(info: dict[str, Any], key: str) -> str | None:
    names = _names(info, key)
    return names[0] if names else None


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


class DmmSource(MetadataSource):
    """Commercial catalog source backed by the affiliate ItemList JSON API.

    Only usable when both halves of the credential pair are configured;
    otherwise every call raises ``ConfigurationMissingError`` without touching
    the network.
    """

    kind = SourceKind.COMMERCIAL_CATALOG
    name = "DMM"

    def __init__(self, transport: HttpTransport, config: ScraperConfig) -> None:
        super().__init__(transport)
        self.api_id = config.dmm_api_id
        self.affiliate_id = config.dmm_affiliate_id

    def _params(self, keyword: str, hits: int) -> dict[str, Any]:
        if not (self.api_id and self.affiliate_id):
            raise ConfigurationMissingError(
                "api_id and affiliate_id are required", source=self.name
            )
        return {
            "api_id": self.api_id,
            "affiliate_id": self.affiliate_id,
            "site": "DMM",
            "service": "digital",
            "floor": "videoa",
            "hits": hits,
            "sort": "-date",
            "keyword": keyword,
            "output": "json",
        }

    async def _query(self, keyword: str, hits: int) -> list[dict[str, Any]]:
        params = self._params(keyword, hits)
        payload = await self.transport.get_json(_API_URL, params=params, source=self.name)
        result = payload.get("result") if isinstance(payload, dict) else None
        if not isinstance(result, dict):
            raise ParseError("Response has no 'result' object", source=self.name)
        items = result.get("items") or []
        if not isinstance(items, list):
            raise ParseError("'items' is not a list", source=self.name)
        return [item for item in items if isinstance(item, dict)]

    async def search(self, query: str) -> list[ListingItem]:
        items: list[ListingItem] = []
        seen: set[str] = set()
        for item in await self._query(query.strip(), _SEARCH_HITS):
            title = clean_text(item.get("title")) if isinstance(item.get("title"), str) else ""
            content_id = item.get("content_id")
            identifier = (
                content_id_to_identifier(content_id) if isinstance(content_id, str) else None
            ) or extract_identifier(title)
            if identifier is None or identifier in seen:
                continue
            seen.add(identifier)
            items.append(ListingItem(identifier=identifier, title=title))
        if not items:
            raise NotFoundError(f"No catalog items for '{query}'", source=self.name)
        return items

    async def fetch_detail(self, identifier: str) -> PartialRecord:
        identifier = normalize_identifier(identifier)
        for item in await self._query(identifier, _DETAIL_HITS):
            content_id = item.get("content_id")
            # Items without a content id cannot be checked and are taken as is.
            if not isinstance(content_id, str) or (
                content_id_to_identifier(content_id) == identifier
            ):
                logger.info(f"[SCRAPER] {self.name}: Catalog hit for {identifier}")
                return self._to_record(item, identifier)
            logger.debug(
                f"[SCRAPER] {self.name}: Skipping catalog item {content_id} for {identifier}"
            )
        raise NotFoundError(f"No catalog item for {identifier}", source=self.name)

    def _to_record(self, item: dict[str, Any], identifier: str) -> PartialRecord:
        # Catalog values are kept as given, empty strings included.
        info = _as_dict(item.get("iteminfo"))
        images = _as_dict(item.get("imageURL"))
        review = _as_dict(item.get("review"))
        samples = _as_dict(_as_dict(item.get("sampleImageURL")).get("sample_s"))

        # "volume" holds the runtime in minutes for video floors.
        duration = review.get("duration") or item.get("duration") or item.get("volume")
        rating: float | None = None
        if review.get("average") is not None:
            try:
                rating = float(review["average"])
            except (TypeError, ValueError):
                logger.debug(f"[SCRAPER] {self.name}: Ignoring rating {review['average']!r}")

        title = item.get("title")
        release_date = item.get("date")
        cover = images.get("large") or images.get("list")
        preview_images = samples.get("image") or []
        if isinstance(preview_images, str):
            preview_images = [preview_images]
        elif not isinstance(preview_images, list):
            preview_images = []

        return PartialRecord(
            identifier=identifier,
            title=title if isinstance(title, str) else "",
            cast=_names(info, "actress"),
            release_date=release_date if isinstance(release_date, str) else None,
            cover_url=cover if isinstance(cover, str) else None,
            duration_minutes=extract_first_int(str(duration)) if duration else None,
            director=_first_name(info, "director"),
            studio=_first_name(info, "maker"),
            label=_first_name(info, "label"),
            series=_first_name(info, "series"),
            genres=_names(info, "genre"),
            rating=rating,
            preview_images=[i for i in preview_images if isinstance(i, str)],
        )
