# avlookup/services/search_logic.py

from __future__ import annotations

from collections.abc import Coroutine
from typing import Any, TypeVar

from ..config import ScraperConfig, logger
from ..errors import NotFoundError, SourceError
from ..models import ActorRanking, ListingItem, PartialRecord
from ..utils import looks_like_identifier, looks_uncensored, normalize_identifier
from .http_client import HttpTransport
from .merge import backfill_magnets, enrich_bitrates, merge, rank_actors
from .scrapers import (
    DmmSource,
    JavDBSource,
    JavLibrarySource,
    MetadataSource,
    SukebeiSource,
)

T = TypeVar("T")

# The only fields the secondary source may fill on a catalog hit.
CATALOG_BACKFILL_FIELDS = (
    "plot",
    "cast",
    "cover_url",
    "release_date",
    "duration_minutes",
)


class LookupOrchestrator:
    """
    Runs each operation through its fallback chain of sources.

    Sources are asked one at a time. A ``SourceError`` from any of them means
    "no answer" and the chain moves on; only exhausting the whole chain of a
    detail or play lookup surfaces, as ``NotFoundError``. Listing operations
    return an empty result instead.
    """

    def __init__(
        self,
        config: ScraperConfig,
        transport: HttpTransport | None = None,
        *,
        primary: Any = None,
        secondary: MetadataSource | None = None,
        catalog: MetadataSource | None = None,
        torrent_index: Any = None,
    ) -> None:
        self.config = config
        self._owns_transport = transport is None
        self.transport = transport or HttpTransport(config)
        self.primary = primary or JavDBSource(
            self.transport, base_url=config.javdb_base_url
        )
        self.secondary = secondary or JavLibrarySource(self.transport)
        if catalog is None and config.catalog_enabled:
            catalog = DmmSource(self.transport, config)
        self.catalog = catalog
        self.torrent_index = torrent_index or SukebeiSource(self.transport)

    async def __aenter__(self) -> LookupOrchestrator:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_transport:
            await self.transport.aclose()

    async def _attempt(self, source: Any, call: Coroutine[Any, Any, T]) -> T | None:
        name = getattr(source, "name", type(source).__name__)
        try:
            return await call
        except SourceError as exc:
            logger.debug(f"[SEARCH] {name} gave no answer: {exc}")
            return None
        except Exception as exc:  # noqa: BLE001
            logger.warning(f"[SEARCH] {name} failed unexpectedly: {exc!r}")
            return None

    async def _backfill_magnets(self, record: PartialRecord) -> PartialRecord:
        if record.has_magnets:
            return record
        donor = await self._attempt(
            self.torrent_index, self.torrent_index.fetch_detail(record.identifier)
        )
        return backfill_magnets(record, donor) if donor is not None else record

    # --- Details ---

    async def fetch_detail(self, identifier: str) -> PartialRecord:
        identifier = normalize_identifier(identifier)
        logger.info(f"[SEARCH] Resolving details for {identifier}")

        if self.catalog is not None:
            record = await self._attempt(
                self.catalog, self.catalog.fetch_detail(identifier)
            )
            if record is not None:
                supplement = await self._attempt(
                    self.secondary, self.secondary.fetch_detail(identifier)
                )
                if supplement is not None:
                    record = merge(record, supplement, fields=CATALOG_BACKFILL_FIELDS)
                record = await self._backfill_magnets(record)
                return enrich_bitrates(record)

        record = await self._attempt(self.primary, self.primary.fetch_detail(identifier))
        if record is not None:
            supplement = await self._attempt(
                self.secondary, self.secondary.fetch_detail(identifier)
            )
            if supplement is not None:
                record = merge(record, supplement)
            record = await self._backfill_magnets(record)
            return enrich_bitrates(record)

        record = await self._attempt(
            self.secondary, self.secondary.fetch_detail(identifier)
        )
        if record is not None:
            record = await self._backfill_magnets(record)
            return enrich_bitrates(record)

        record = await self._attempt(
            self.torrent_index, self.torrent_index.fetch_detail(identifier)
        )
        if record is not None:
            return enrich_bitrates(record)

        logger.warning(f"[SEARCH] Every source failed for {identifier}")
        raise NotFoundError(f"No details found for {identifier}", source="lookup")

    # --- Listings ---

    def _filter(
        self, items: list[ListingItem], uncensored_only: bool
    ) -> list[ListingItem]:
        if not uncensored_only:
            return items
        return [item for item in items if looks_uncensored(item.title)]

    async def search(
        self, query: str, uncensored_only: bool = False
    ) -> list[ListingItem]:
        """Identifier-shaped queries resolve directly; anything else is a search."""
        query = query.strip()
        if looks_like_identifier(query):
            try:
                record = await self.fetch_detail(query)
            except NotFoundError:
                logger.info(f"[SEARCH] No direct hit for '{query}'; searching instead.")
            else:
                return [ListingItem(identifier=record.identifier, title=record.title)]

        items = await self._attempt(self.primary, self.primary.search(query))
        items = self._filter(items or [], uncensored_only)
        if not items:
            items = await self._attempt(
                self.torrent_index, self.torrent_index.search(query)
            )
            items = self._filter(items or [], uncensored_only)
        logger.info(f"[SEARCH] {len(items)} results for '{query}'")
        return items

    async def list_actor_titles(
        self, actor: str, uncensored_only: bool = False
    ) -> list[ListingItem]:
        actor = actor.strip()
        items = await self._attempt(self.primary, self.primary.list_actor_titles(actor))
        items = self._filter(items or [], uncensored_only)
        if not items:
            items = await self._attempt(
                self.torrent_index, self.torrent_index.search(actor)
            )
            items = self._filter(items or [], uncensored_only)
        return items

    async def top(
        self, limit: int = 20, uncensored_only: bool = False
    ) -> list[ListingItem]:
        items = await self._attempt(self.primary, self.primary.top(limit))
        items = self._filter(items or [], uncensored_only)
        if not items:
            items = await self._attempt(
                self.torrent_index, self.torrent_index.latest(limit)
            )
            items = self._filter(items or [], uncensored_only)
        return items[:limit]

    async def actors(
        self, page: int = 1, per_page: int = 50, uncensored_only: bool = False
    ) -> ActorRanking:
        ranking = await self._attempt(
            self.primary, self.primary.actors(page, per_page, uncensored_only)
        )
        if ranking is None:
            return ActorRanking(entries=[], page=page, per_page=per_page, total=0)
        ranking.entries = rank_actors(ranking.entries)
        return ranking

    async def get_play_url(self, identifier: str) -> str:
        identifier = normalize_identifier(identifier)
        url = await self._attempt(self.primary, self.primary.fetch_play_url(identifier))
        if url is None:
            raise NotFoundError(f"No play URL for {identifier}", source="lookup")
        return url
