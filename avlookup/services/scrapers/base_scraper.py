# avlookup/services/scrapers/base_scraper.py

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

from ...config import logger
from ...models import ListingItem, PartialRecord
from ..http_client import HttpTransport

CONFIG_DIR = Path(__file__).resolve().parent / "configs"

# Cache for site configurations to avoid repeated disk reads.
_config_cache: dict[Path, dict[str, Any]] = {}

_REQUIRED_KEYS = {
    "site_name",
    "base_url",
    "search_path",
    "results_page_selectors",
    "details_page_selectors",
}


class SourceKind(enum.Enum):
    """Source variants, declared in detail-fetch fallback priority order."""

    PRIMARY_METADATA = "primary_metadata"
    SECONDARY_METADATA = "secondary_metadata"
    COMMERCIAL_CATALOG = "commercial_catalog"
    TORRENT_INDEX = "torrent_index"


def load_site_config(config_path: Path) -> dict[str, Any]:
    """Load and minimally validate a YAML site configuration.

    Configuration files are cached in-memory after the first load. Subsequent
    calls with the same ``config_path`` return the cached data.
    """

    resolved_path = config_path.resolve()
    cached = _config_cache.get(resolved_path)
    if cached is not None:
        return cached

    if not resolved_path.exists():
        raise FileNotFoundError(f"Scraper config not found: {resolved_path}")

    with resolved_path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}

    missing = _REQUIRED_KEYS - data.keys()
    if missing:
        raise ValueError(f"Config missing keys: {', '.join(sorted(missing))}")

    _config_cache[resolved_path] = data
    logger.debug(f"[CONFIG] Loaded site config for {data['site_name']}")
    return data


def load_bundled_config(name: str) -> dict[str, Any]:
    return load_site_config(CONFIG_DIR / f"{name}.yaml")


class MetadataSource(ABC):
    """
    Contract shared by every provider adapter.

    Implementations raise ``NotFoundError`` when the provider has nothing for
    the request, ``TransportError`` when it could not be reached and
    ``ParseError`` when its markup lacks the expected structure.
    """

    kind: SourceKind
    name: str = "source"

    def __init__(self, transport: HttpTransport) -> None:
        self.transport = transport

    @abstractmethod
    async def search(self, query: str) -> list[ListingItem]:
        """Listing items matching a free-text query or identifier."""

    @abstractmethod
    async def fetch_detail(self, identifier: str) -> PartialRecord:
        """The provider's partial record for a normalized identifier."""


class HtmlSource(MetadataSource):
    """A source scraped from HTML pages described by a YAML site config."""

    config_name: str = ""

    def __init__(
        self,
        transport: HttpTransport,
        site_config: dict[str, Any] | None = None,
        base_url: str | None = None,
    ) -> None:
        super().__init__(transport)
        self.config = site_config or load_bundled_config(self.config_name)
        self.name = self.config["site_name"]
        self.base_url: str = (base_url or self.config["base_url"]).rstrip("/")
        self.results_selectors: dict[str, Any] = self.config["results_page_selectors"]
        self.details_selectors: dict[str, Any] = self.config["details_page_selectors"]

    def url_for(self, path_key: str, **params: Any) -> str:
        path = self.config[path_key].format(**params)
        return f"{self.base_url}{path}"

    async def _fetch_page(self, url: str) -> str:
        return await self.transport.get_text(url, source=self.name)
