from unittest.mock import AsyncMock

import pytest

from avlookup.errors import NotFoundError, TransportError
from avlookup.services.scrapers.javlibrary import JavLibrarySource

DETAIL_HTML = """
<html><body>
<div id="video_title"><h3 class="post-title text"><a href="/en/?v=javli1">SSIS-001 Library Title</a></h3></div>
<div id="video_jacket"><img id="video_jacket_img" src="//pics.dmm.co.jp/ssis001pl.jpg"></div>
<div id="video_id"><table><tr><td class="header">ID:</td><td class="text">SSIS-001</td></tr></table></div>
<div id="video_date"><table><tr><td class="header">Release Date:</td><td class="text">2021-02-19</td></tr></table></div>
<div id="video_length"><table><tr><td class="header">Length:</td><td><span class="text">150</span> minute(s)</td></tr></table></div>
<div id="video_director"><table><tr><td class="header">Director:</td><td class="text"><span class="director"><a href="vl_director.php?d=x">Dir Name</a></span></td></tr></table></div>
<div id="video_maker"><table><tr><td class="header">Maker:</td><td class="text"><span class="maker"><a href="vl_maker.php?m=x">S1 NO.1 STYLE</a></span></td></tr></table></div>
<div id="video_label"><table><tr><td class="header">Label:</td><td class="text"><span class="label"><a href="vl_label.php?l=x">S1 Label</a></span></td></tr></table></div>
<div id="video_review"><table><tr><td class="header">User Rating:</td><td class="text"><span class="score">(8.50)</span></td></tr></table></div>
<div id="video_genres"><table><tr><td class="header">Genre(s):</td><td class="text">
  <span class="genre"><a href="vl_genre.php?g=a">Solowork</a></span>
  <span class="genre"><a href="vl_genre.php?g=b">Idol</a></span></td></tr></table></div>
<div id="video_cast"><table><tr><td class="header">Cast:</td><td class="text">
  <span class="cast"><span class="star"><a href="vl_star.php?s=x">Mikami Yua</a></span></span></td></tr></table></div>
</body></html>
"""

SEARCH_HTML = """
<html><body><div class="videothumblist"><div class="videos">
  <div class="video" id="vid_javli1"><a href="./?v=javli1" title="SSIS-001 Library Title">
    <div class="id">SSIS-001</div><div class="title">SSIS-001 Library Title</div></a></div>
  <div class="video" id="vid_javli2"><a href="./?v=javli2" title="SSIS-001 Blu-ray">
    <div class="id">SSIS-001</div><div class="title">SSIS-001 Blu-ray</div></a></div>
  <div class="video" id="vid_javli3"><a href="./?v=javli3" title="SSIS-010 Next">
    <div class="id">SSIS-010</div><div class="title">SSIS-010 Next</div></a></div>
</div></div></body></html>
"""


@pytest.fixture
def source(transport):
    return JavLibrarySource(transport)


def _pages(mocker, source, *pages):
    return mocker.patch.object(source, "_fetch_page", AsyncMock(side_effect=list(pages)))


@pytest.mark.asyncio
async def test_fetch_detail_parses_direct_hit(mocker, source):
    fetch = _pages(mocker, source, DETAIL_HTML)

    record = await source.fetch_detail("ssis-001")

    fetch.assert_awaited_once_with(
        "https://www.javlibrary.com/en/vl_searchbyid.php?keyword=SSIS-001"
    )
    assert record.identifier == "SSIS-001"
    assert record.title == "SSIS-001 Library Title"
    assert record.release_date == "2021-02-19"
    assert record.duration_minutes == 150
    assert record.director == "Dir Name"
    assert record.studio == "S1 NO.1 STYLE"
    assert record.label == "S1 Label"
    assert record.rating == 8.5
    assert record.genres == ["Solowork", "Idol"]
    assert record.cast == ["Mikami Yua"]
    assert record.cover_url == "https://pics.dmm.co.jp/ssis001pl.jpg"
    assert record.plot is None


@pytest.mark.asyncio
async def test_fetch_detail_follows_first_listing(mocker, source):
    fetch = _pages(mocker, source, SEARCH_HTML, DETAIL_HTML)

    record = await source.fetch_detail("SSIS-001")

    assert fetch.await_args_list[1].args == ("https://www.javlibrary.com/en/?v=javli1",)
    assert record.title == "SSIS-001 Library Title"


@pytest.mark.asyncio
async def test_locales_are_tried_in_order(mocker, source):
    fetch = _pages(
        mocker,
        source,
        TransportError("HTTP 403", source="JavLibrary"),
        SEARCH_HTML,
        DETAIL_HTML,
    )

    await source.fetch_detail("SSIS-001")

    assert fetch.await_args_list[1].args == (
        "https://www.javlibrary.com/cn/vl_searchbyid.php?keyword=SSIS-001",
    )
    assert fetch.await_args_list[2].args == ("https://www.javlibrary.com/cn/?v=javli1",)


@pytest.mark.asyncio
async def test_all_locales_failing_raises_transport_error(mocker, source):
    error = TransportError("HTTP 503", source="JavLibrary")
    fetch = _pages(mocker, source, error, error, error)

    with pytest.raises(TransportError):
        await source.fetch_detail("SSIS-001")
    assert fetch.await_count == 3


@pytest.mark.asyncio
async def test_detail_for_other_identifier_is_not_found(mocker, source):
    _pages(mocker, source, DETAIL_HTML.replace("SSIS-001", "SSIS-002"))

    with pytest.raises(NotFoundError):
        await source.fetch_detail("SSIS-001")


@pytest.mark.asyncio
async def test_empty_search_is_not_found(mocker, source):
    _pages(mocker, source, "<html><body><p>No results</p></body></html>")

    with pytest.raises(NotFoundError):
        await source.fetch_detail("SSIS-001")


@pytest.mark.asyncio
async def test_search_lists_unique_identifiers(mocker, source):
    _pages(mocker, source, SEARCH_HTML)

    items = await source.search("SSIS")

    assert [(i.identifier, i.title) for i in items] == [
        ("SSIS-001", "SSIS-001 Library Title"),
        ("SSIS-010", "SSIS-010 Next"),
    ]
