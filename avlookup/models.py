from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional


@dataclass
class MagnetRecord:
    """A discovered magnet link plus best-effort metadata.

    Attributes:
        url: The magnet URI; the uniqueness key within any aggregated list.
        name: Display name reported by the source.
        size: Human-readable size string as the source printed it.
        date: Publish date string.
        seeders: Seeder count, when the source reports one.
        leechers: Leecher count.
        downloads: Completed download count.
        resolution: Resolution hint parsed from the name (e.g. ``1080p``).
        codec: Codec hint parsed from the name (``x264``, ``x265``, ``av1``).
        avg_bitrate_mbps: Derived bitrate estimate; never authoritative.
    """

    url: str
    name: Optional[str] = None
    size: Optional[str] = None
    date: Optional[str] = None
    seeders: Optional[int] = None
    leechers: Optional[int] = None
    downloads: Optional[int] = None
    resolution: Optional[str] = None
    codec: Optional[str] = None
    avg_bitrate_mbps: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class PartialRecord:
    """One source's view of an identifier's metadata.

    ``None`` means unknown and an empty list means the same for list fields.
    Every record in ``magnets`` has its URL listed in ``magnet_uris``.
    """

    identifier: str
    title: str = ""
    cast: list[str] = field(default_factory=list)
    release_date: Optional[str] = None
    cover_url: Optional[str] = None
    plot: Optional[str] = None
    duration_minutes: Optional[int] = None
    director: Optional[str] = None
    studio: Optional[str] = None
    label: Optional[str] = None
    series: Optional[str] = None
    genres: list[str] = field(default_factory=list)
    rating: Optional[float] = None
    preview_images: list[str] = field(default_factory=list)
    magnets: list[MagnetRecord] = field(default_factory=list)
    magnet_uris: list[str] = field(default_factory=list)

    @property
    def has_magnets(self) -> bool:
        return bool(self.magnets or self.magnet_uris)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ListingItem:
    """Identifier and title pair used by search, actor and "top" listings."""

    identifier: str
    title: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ActorRankingEntry:
    """An actor and a hotness rank that is only meaningful within one fetch."""

    name: str
    hotness: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ActorRanking:
    entries: list[ActorRankingEntry]
    page: int
    per_page: int
    total: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# Fields of ``PartialRecord`` in declaration order, magnets excluded.
RECORD_SCALAR_FIELDS = (
    "release_date",
    "cover_url",
    "plot",
    "duration_minutes",
    "director",
    "studio",
    "label",
    "series",
    "rating",
)
RECORD_LIST_FIELDS = ("cast", "genres", "preview_images")
