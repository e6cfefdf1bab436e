# avlookup/services/merge.py

from __future__ import annotations

import copy
from collections.abc import Iterable

from ..config import logger
from ..models import (
    RECORD_LIST_FIELDS,
    RECORD_SCALAR_FIELDS,
    ActorRankingEntry,
    MagnetRecord,
    PartialRecord,
)
from ..utils import estimate_bitrate, parse_size_to_bytes


def merge(
    primary: PartialRecord,
    secondary: PartialRecord,
    fields: Iterable[str] | None = None,
) -> PartialRecord:
    """
    Field-level merge where ``primary`` wins whenever it has a value.

    A scalar is unknown when ``None``, a list when empty and the title when
    blank. Magnet lists are unioned by URL with the primary's entries first.
    When ``fields`` is given only those fields are backfilled and magnets are
    left untouched. Neither input is modified.
    """
    merged = copy.deepcopy(primary)
    allowed = set(fields) if fields is not None else None

    def wanted(name: str) -> bool:
        return allowed is None or name in allowed

    filled: list[str] = []
    if wanted("title") and not merged.title.strip() and secondary.title.strip():
        merged.title = secondary.title
        filled.append("title")

    for name in RECORD_SCALAR_FIELDS:
        if not wanted(name):
            continue
        if getattr(merged, name) is None and getattr(secondary, name) is not None:
            setattr(merged, name, copy.deepcopy(getattr(secondary, name)))
            filled.append(name)

    for name in RECORD_LIST_FIELDS:
        if not wanted(name):
            continue
        if not getattr(merged, name) and getattr(secondary, name):
            setattr(merged, name, list(getattr(secondary, name)))
            filled.append(name)

    if allowed is None:
        merged.magnets = aggregate_magnets(merged.magnets, secondary.magnets)
        merged.magnet_uris = aggregate_uris(
            aggregate_uris(merged.magnet_uris, secondary.magnet_uris),
            [m.url for m in merged.magnets],
        )

    if filled:
        logger.debug(f"[MERGE] {merged.identifier}: filled {', '.join(filled)}")
    return merged


def backfill_magnets(record: PartialRecord, donor: PartialRecord) -> PartialRecord:
    """Takes the donor's magnets only when ``record`` has none of its own."""
    if record.has_magnets:
        return record
    merged = copy.deepcopy(record)
    merged.magnets = aggregate_magnets([], donor.magnets)
    merged.magnet_uris = aggregate_uris(
        donor.magnet_uris, [m.url for m in merged.magnets]
    )
    logger.debug(
        f"[MERGE] {record.identifier}: backfilled {len(merged.magnet_uris)} magnets"
    )
    return merged


def enrich_bitrates(record: PartialRecord) -> PartialRecord:
    """Estimates a bitrate for magnets that lack one, from size and duration."""
    enriched = copy.deepcopy(record)
    for magnet in enriched.magnets:
        if magnet.avg_bitrate_mbps is not None:
            continue
        parsed = parse_size_to_bytes(magnet.size)
        bitrate = estimate_bitrate(
            parsed[0] if parsed else None, enriched.duration_minutes
        )
        magnet.avg_bitrate_mbps = round(bitrate, 2) if bitrate is not None else None
    return enriched


# --- Magnet aggregation ---


def aggregate_magnets(
    existing: list[MagnetRecord], incoming: Iterable[MagnetRecord]
) -> list[MagnetRecord]:
    """Appends incoming records whose URL is new; existing order is kept."""
    result = [copy.copy(m) for m in existing]
    seen = {m.url for m in result}
    for magnet in incoming:
        if magnet.url in seen:
            continue
        seen.add(magnet.url)
        result.append(copy.copy(magnet))
    return result


def aggregate_uris(existing: list[str], incoming: Iterable[str]) -> list[str]:
    result = list(existing)
    for uri in incoming:
        if uri not in result:
            result.append(uri)
    return result


def rank_by_seeders(records: Iterable[MagnetRecord]) -> list[MagnetRecord]:
    """Sorted by descending seeders; unknown counts as zero and ties keep order."""
    return sorted(records, key=lambda m: m.seeders or 0, reverse=True)


def rank_actors(entries: Iterable[ActorRankingEntry]) -> list[ActorRankingEntry]:
    return sorted(entries, key=lambda e: (-e.hotness, e.name))
