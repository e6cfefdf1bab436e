from .base_scraper import (
    HtmlSource,
    MetadataSource,
    SourceKind,
    load_bundled_config,
    load_site_config,
)
from .dmm import DmmSource, content_id_to_identifier
from .javdb import JavDBSource
from .javlibrary import JavLibrarySource
from .sukebei import SukebeiSource

__all__ = [
    "HtmlSource",
    "MetadataSource",
    "SourceKind",
    "load_bundled_config",
    "load_site_config",
    "DmmSource",
    "content_id_to_identifier",
    "JavDBSource",
    "JavLibrarySource",
    "SukebeiSource",
]
