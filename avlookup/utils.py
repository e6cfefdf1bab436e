# avlookup/utils.py

import re
from collections.abc import Callable

_IDENTIFIER_PATTERN = re.compile(r"([A-Za-z]{2,5})[-_ ]?(\d{2,5})")
_IDENTIFIER_PREFIX_PATTERN = re.compile(r"^[A-Za-z]{2,5}[-_ ]?\d{2,5}")
_DATE_PATTERN = re.compile(r"\b((?:19|20)\d{2}-\d{2}-\d{2})\b")

_SIZE_PATTERN = re.compile(r"([0-9]+(?:\.[0-9]+)?)\s*([KMGT]i?B)\b", re.IGNORECASE)
_SIZE_MULTIPLIERS = {
    "KB": 1024,
    "KIB": 1024,
    "MB": 1024**2,
    "MIB": 1024**2,
    "GB": 1024**3,
    "GIB": 1024**3,
    "TB": 1024**4,
    "TIB": 1024**4,
}

_UNCENSORED_KEYWORDS = (
    "uncensored",
    "uncensored leak",
    "uncensored crack",
    "無修正",
    "无码",
    "無碼",
    "無修正流出",
    "無碼流出",
    "无码流出",
    "无修正",
)


def clean_text(text: str | None) -> str:
    """Collapses runs of whitespace and strips the ends."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip()


def extract_first_int(text: str | None) -> int | None:
    """Safely extracts the first integer from a string, ignoring separators."""
    if not text:
        return None
    match = re.search(r"\d[\d,]*", text.strip())
    if not match:
        return None
    return int(match.group(0).replace(",", ""))


# --- Identifier ---


def extract_identifier(text: str | None) -> str | None:
    """
    Finds a content code such as ``abc123`` or ``ABC_123`` anywhere in ``text``
    and returns it in canonical ``LETTERS-DIGITS`` upper-case form.
    """
    if not text:
        return None
    match = _IDENTIFIER_PATTERN.search(text)
    if not match:
        return None
    return f"{match.group(1).upper()}-{match.group(2)}"


def looks_like_identifier(text: str | None) -> bool:
    """True when the text starts with something shaped like a content code."""
    if not text:
        return False
    return bool(_IDENTIFIER_PREFIX_PATTERN.match(text.strip()))


def normalize_identifier(text: str) -> str:
    """Canonical form of ``text`` when it holds a code, else its upper-cased self."""
    return extract_identifier(text) or text.strip().upper()


def title_mentions(title: str, identifier: str) -> bool:
    """True when ``title`` names ``identifier``, in dashed or compact spelling.

    The number must not run on into more digits, so ``ABC-123`` is not
    found in ``ABC-1234``.
    """
    match = _IDENTIFIER_PREFIX_PATTERN.match(identifier.strip())
    if not match:
        return identifier.strip().upper() in title.upper()
    letters, digits = _IDENTIFIER_PATTERN.match(match.group(0)).groups()
    pattern = rf"(?<![A-Z]){letters.upper()}[-_ ]?0*{int(digits)}(?!\d)"
    return re.search(pattern, title.upper()) is not None


# --- Dates ---


def extract_release_date(text: str | None) -> str | None:
    """Returns the first ``YYYY-MM-DD`` token found in ``text``."""
    if not text:
        return None
    match = _DATE_PATTERN.search(text)
    return match.group(1) if match else None


# --- Duration ---


def _duration_from_label(text: str) -> int | None:
    match = re.search(
        r"(?:duration|length|时长|時長|長さ|収録時間)\s*[:：]?\s*(\d{1,4})",
        text,
        re.IGNORECASE,
    )
    return int(match.group(1)) if match else None


def _duration_from_minutes_token(text: str) -> int | None:
    # Digits after a decimal point belong to ratings such as "4.47分".
    match = re.search(
        r"(?<![\d.])(\d{2,3})\s*(?:min|分钟|分鐘|分)", text, re.IGNORECASE
    )
    return int(match.group(1)) if match else None


def _duration_from_iso8601(text: str) -> int | None:
    match = re.search(r"PT(?=\d)(?:(\d+)H)?(?:(\d+)M)?", text)
    if not match or (match.group(1) is None and match.group(2) is None):
        return None
    hours = int(match.group(1) or 0)
    minutes = int(match.group(2) or 0)
    return hours * 60 + minutes


# Order matters: labeled fields beat loose tokens, which beat ISO-8601 values.
_DURATION_STRATEGIES: tuple[Callable[[str], int | None], ...] = (
    _duration_from_label,
    _duration_from_minutes_token,
    _duration_from_iso8601,
)


def extract_duration_minutes(text: str | None) -> int | None:
    """Runs the duration strategies in order and returns the first hit."""
    if not text:
        return None
    for strategy in _DURATION_STRATEGIES:
        minutes = strategy(text)
        if minutes is not None:
            return minutes
    return None


# --- Rating ---


def _rating_from_label(text: str) -> float | None:
    match = re.search(
        r"(?:rating|评分|評分|score)\s*[:：]?\s*([0-9]+(?:\.[0-9]+)?)",
        text,
        re.IGNORECASE,
    )
    return float(match.group(1)) if match else None


def _rating_from_adjacent_number(text: str) -> float | None:
    match = re.search(
        r"([0-9]+\.[0-9]+)\s*(?:分|rating|score|评分|評分)", text, re.IGNORECASE
    )
    return float(match.group(1)) if match else None


_RATING_STRATEGIES: tuple[Callable[[str], float | None], ...] = (
    _rating_from_label,
    _rating_from_adjacent_number,
)


def extract_rating(text: str | None) -> float | None:
    if not text:
        return None
    for strategy in _RATING_STRATEGIES:
        rating = strategy(text)
        if rating is not None:
            return rating
    return None


# --- Sizes and bitrate ---


def parse_size_to_bytes(text: str | None) -> tuple[int, str] | None:
    """
    Converts strings like ``'1.5 GiB'`` or ``'700MB'`` to ``(bytes, UNIT)``.
    Decimal and binary unit spellings are both treated as powers of 1024.
    """
    if not text:
        return None
    match = _SIZE_PATTERN.search(text.replace(",", ""))
    if not match:
        return None
    unit = match.group(2).upper()
    multiplier = _SIZE_MULTIPLIERS.get(unit)
    if multiplier is None:
        return None
    return int(float(match.group(1)) * multiplier), unit


def estimate_bitrate(
    size_bytes: int | None, duration_minutes: int | None
) -> float | None:
    """Average bitrate in Mbps; a hint only, computed when both inputs are known."""
    if size_bytes is None or not duration_minutes or duration_minutes <= 0:
        return None
    return size_bytes * 8 / (duration_minutes * 60) / 1_000_000


# --- Torrent name hints ---

_CODEC_PATTERNS = {
    # Prefer more specific/modern codecs first
    "av1": re.compile(r"(?i)\bav1\b"),
    "x265": re.compile(r"(?i)\b(?:x\s*265|h\s*[.\s]?265|hevc)\b"),
    "x264": re.compile(r"(?i)\b(?:x\s*264|h\s*[.\s]?264|h264|avc)\b"),
}
_RESOLUTION_PATTERN = re.compile(r"(?i)\b(\d{3,4}p|\d{3,4}x\d{3,4}|4k)\b")


def parse_codec(title: str | None) -> str | None:
    """Extracts codec information from a torrent title.

    Handles common variants and spacing/punctuation, e.g.:
    - "H264", "H.264", "H 264", "x264", "AVC" -> "x264"
    - "H265", "H.265", "H 265", "x265", "HEVC" -> "x265"
    - "AV1" -> "av1"
    """
    if not title:
        return None
    for normalized, pattern in _CODEC_PATTERNS.items():
        if pattern.search(title):
            return normalized
    return None


def parse_resolution(title: str | None) -> str | None:
    if not title:
        return None
    match = _RESOLUTION_PATTERN.search(title)
    if not match:
        return None
    value = match.group(1)
    return value.upper() if value.lower() == "4k" else value.lower()


def looks_uncensored(text: str | None) -> bool:
    """Keyword heuristic over titles and tags."""
    if not text:
        return False
    lower = text.lower()
    return any(keyword in lower for keyword in _UNCENSORED_KEYWORDS)
