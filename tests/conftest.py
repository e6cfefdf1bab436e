import sys
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

# Ensure root path is available for imports
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from avlookup.config import ScraperConfig  # noqa: E402
from avlookup.services.http_client import HttpTransport  # noqa: E402


@pytest.fixture
def make_config():
    def _make(**overrides) -> ScraperConfig:
        return ScraperConfig(**overrides)

    return _make


@pytest.fixture
def config(make_config) -> ScraperConfig:
    return make_config()


@pytest.fixture
def transport():
    """A transport double; tests set ``get_text``/``get_json`` return values."""
    fake = Mock(spec=HttpTransport)
    fake.get_text = AsyncMock()
    fake.get_json = AsyncMock()
    fake.aclose = AsyncMock()
    return fake
