# avlookup/config.py

import configparser
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

# --- Constants ---
DEFAULT_CONFIG_PATH = "config.ini"
DEFAULT_JAVDB_BASE = "https://javdb.com"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_REDIRECTS = 10
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/125.0 Safari/537.36"
)

# Setup basic logging
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("avlookup")
logging.getLogger("httpx").setLevel(logging.WARNING)

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class ScraperConfig:
    """Settings shared by the orchestrator, the adapters and the transport.

    Attributes:
        debug: Emit DEBUG level diagnostics.
        javdb_base_url: Base URL of the primary metadata source.
        session_cookie: Optional pre-set ``Cookie`` header for the primary source.
        proxy: Optional proxy URL applied to every request.
        use_catalog: Whether the commercial catalog was explicitly enabled.
        dmm_api_id: First half of the catalog credential pair.
        dmm_affiliate_id: Second half of the catalog credential pair.
        timeout: Per-request timeout in seconds.
        max_redirects: Upper bound on followed redirects.
    """

    debug: bool = False
    javdb_base_url: str = DEFAULT_JAVDB_BASE
    session_cookie: str | None = None
    proxy: str | None = None
    use_catalog: bool = False
    dmm_api_id: str | None = None
    dmm_affiliate_id: str | None = None
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    max_redirects: int = DEFAULT_MAX_REDIRECTS

    @property
    def catalog_credentials(self) -> bool:
        return bool(self.dmm_api_id) and bool(self.dmm_affiliate_id)

    @property
    def catalog_enabled(self) -> bool:
        return self.use_catalog and self.catalog_credentials


def get_configuration(
    config_path: str = DEFAULT_CONFIG_PATH,
    environ: Mapping[str, str] | None = None,
) -> ScraperConfig:
    """
    Builds the scraper configuration from an optional INI file, then applies
    environment variable overrides. A missing file simply means defaults.
    """
    env = os.environ if environ is None else environ
    parser = configparser.ConfigParser()

    if os.path.exists(config_path):
        with open(config_path, encoding="utf-8") as f:
            parser.read_string(f.read())
        logger.info(f"[CONFIG] Loaded configuration from '{config_path}'.")
    else:
        logger.debug(f"[CONFIG] No '{config_path}' found; using defaults.")

    debug = _get_bool(parser, "general", "debug", env.get("AV_DEBUG"))
    proxy = _get_str(parser, "network", "proxy", env.get("AV_HTTP_PROXY"))
    timeout = _get_float(
        parser, "network", "timeout", DEFAULT_TIMEOUT_SECONDS
    )
    max_redirects = _get_int(
        parser, "network", "max_redirects", DEFAULT_MAX_REDIRECTS
    )

    base_url = _get_str(parser, "javdb", "base_url", env.get("AV_JAVDB_BASE"))
    cookie = _get_str(parser, "javdb", "cookie", env.get("AV_JAVDB_COOKIE"))

    use_catalog = _get_bool(parser, "dmm", "enabled", env.get("AV_USE_DMM"))
    api_id = _get_str(parser, "dmm", "api_id", env.get("DMM_API_ID"))
    affiliate_id = _get_str(
        parser, "dmm", "affiliate_id", env.get("DMM_AFFILIATE_ID")
    )

    config = ScraperConfig(
        debug=debug,
        javdb_base_url=(base_url or DEFAULT_JAVDB_BASE).rstrip("/"),
        session_cookie=cookie,
        proxy=proxy,
        use_catalog=use_catalog,
        dmm_api_id=api_id,
        dmm_affiliate_id=affiliate_id,
        timeout=timeout,
        max_redirects=max_redirects,
    )

    if config.use_catalog and not config.catalog_credentials:
        logger.warning(
            "[CONFIG] DMM catalog requested but the credential pair is incomplete; "
            "the catalog source stays disabled."
        )
    elif config.catalog_enabled:
        logger.info("[CONFIG] DMM catalog source enabled.")

    return config


def apply_verbosity(config: ScraperConfig) -> None:
    """Raises or lowers the package logger according to ``config.debug``."""
    logger.setLevel(logging.DEBUG if config.debug else logging.INFO)


def _get_str(
    parser: configparser.ConfigParser,
    section: str,
    key: str,
    override: str | None,
) -> str | None:
    if override is not None and override.strip():
        return override.strip()
    value = parser.get(section, key, fallback=None)
    if value is None or not value.strip():
        return None
    return value.strip()


def _get_bool(
    parser: configparser.ConfigParser,
    section: str,
    key: str,
    override: str | None,
) -> bool:
    raw = _get_str(parser, section, key, override)
    return raw is not None and raw.lower() in _TRUTHY


def _get_float(
    parser: configparser.ConfigParser, section: str, key: str, default: float
) -> float:
    raw = parser.get(section, key, fallback=None)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"'{key}' in [{section}] must be a number, got {raw!r}")
    if value <= 0:
        raise ValueError(f"'{key}' in [{section}] must be positive, got {raw!r}")
    return value


def _get_int(
    parser: configparser.ConfigParser, section: str, key: str, default: int
) -> int:
    raw = parser.get(section, key, fallback=None)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"'{key}' in [{section}] must be an integer, got {raw!r}")
    if value < 0:
        raise ValueError(f"'{key}' in [{section}] must not be negative, got {raw!r}")
    return value
