import json

import httpx
import pytest

from avlookup.config import ScraperConfig
from avlookup.errors import ParseError, TransportError
from avlookup.services.http_client import HttpTransport


class DummyResponse:
    def __init__(self, text: str = "", status_code: int = 200, url: str = "") -> None:
        self.text = text
        self.status_code = status_code
        self._url = url

    def json(self):
        return json.loads(self.text)

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            request = httpx.Request("GET", self._url)
            response = httpx.Response(self.status_code, request=request)
            raise httpx.HTTPStatusError("error", request=request, response=response)


class DummyClient:
    instances: list["DummyClient"] = []

    def __init__(self, *args, response=None, error=None, **kwargs) -> None:
        self.kwargs = kwargs
        self.calls: list[tuple[str, dict | None, dict | None]] = []
        self.response = response
        self.error = error
        self.closed = False
        DummyClient.instances.append(self)

    async def get(self, url, params=None, headers=None):
        self.calls.append((url, params, headers))
        if self.error:
            raise self.error
        return self.response or DummyResponse("<html></html>", url=url)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def _reset_instances():
    DummyClient.instances = []


def _patch_client(mocker, **client_kwargs):
    def factory(*args, **kwargs):
        return DummyClient(*args, **{**kwargs, **client_kwargs})

    return mocker.patch(
        "avlookup.services.http_client.httpx.AsyncClient", side_effect=factory
    )


@pytest.mark.asyncio
async def test_client_created_once_with_config(mocker):
    _patch_client(mocker)
    config = ScraperConfig(proxy="http://proxy:3128", timeout=5.0, max_redirects=4)

    async with HttpTransport(config) as transport:
        await transport.get_text("https://sukebei.nyaa.si/")
        await transport.get_text("https://sukebei.nyaa.si/?q=x")

    assert len(DummyClient.instances) == 1
    client = DummyClient.instances[0]
    assert client.kwargs["proxy"] == "http://proxy:3128"
    assert client.kwargs["timeout"] == 5.0
    assert client.kwargs["max_redirects"] == 4
    assert client.kwargs["follow_redirects"] is True
    assert client.kwargs["headers"]["Referer"] == "https://javdb.com/"
    assert client.closed is True


@pytest.mark.asyncio
async def test_cookie_only_sent_to_primary_source(mocker):
    _patch_client(mocker)
    config = ScraperConfig(session_cookie="over18=1")
    transport = HttpTransport(config)

    await transport.get_text("https://javdb.com/search?q=ABC-123")
    await transport.get_text("https://www.javlibrary.com/en/")
    await transport.aclose()

    calls = DummyClient.instances[0].calls
    assert calls[0][2] == {"Cookie": "over18=1"}
    assert calls[1][2] == {}


@pytest.mark.asyncio
async def test_status_error_becomes_transport_error(mocker):
    _patch_client(mocker, response=DummyResponse(status_code=503, url="https://x/"))
    transport = HttpTransport(ScraperConfig())

    with pytest.raises(TransportError) as excinfo:
        await transport.get_text("https://x/", source="JavDB")

    assert "503" in str(excinfo.value)
    assert excinfo.value.source == "JavDB"


@pytest.mark.asyncio
async def test_network_error_becomes_transport_error(mocker):
    _patch_client(mocker, error=httpx.ConnectError("boom"))
    transport = HttpTransport(ScraperConfig())

    with pytest.raises(TransportError):
        await transport.get_text("https://x/")


@pytest.mark.asyncio
async def test_get_json_decodes_and_reports_bad_payload(mocker):
    _patch_client(mocker, response=DummyResponse('{"result": {"items": []}}'))
    transport = HttpTransport(ScraperConfig())
    assert await transport.get_json("https://api/", params={"a": 1}) == {
        "result": {"items": []}
    }

    DummyClient.instances[0].response = DummyResponse("not json")
    with pytest.raises(ParseError):
        await transport.get_json("https://api/", source="DMM")
    assert DummyClient.instances[0].calls[0][1] == {"a": 1}
