import json
from unittest.mock import AsyncMock

import pytest

from avlookup.__main__ import main
from avlookup.config import ScraperConfig
from avlookup.errors import NotFoundError
from avlookup.models import ActorRanking, ListingItem, PartialRecord


@pytest.fixture
def orchestrator(mocker):
    mocker.patch("avlookup.__main__.get_configuration", return_value=ScraperConfig())
    fake = AsyncMock()
    fake.__aenter__.return_value = fake
    fake.__aexit__.return_value = False
    mocker.patch("avlookup.__main__.LookupOrchestrator", return_value=fake)
    return fake


def test_detail_prints_record_json(orchestrator, capsys):
    orchestrator.fetch_detail.return_value = PartialRecord(
        identifier="SSIS-001", title="タイトル"
    )

    assert main(["detail", "ssis001"]) == 0

    out = capsys.readouterr().out
    assert "タイトル" in out
    payload = json.loads(out)
    assert payload["identifier"] == "SSIS-001"
    assert payload["magnets"] == []
    orchestrator.fetch_detail.assert_awaited_once_with("ssis001")


def test_search_passes_uncensored_flag(orchestrator, capsys):
    orchestrator.search.return_value = [ListingItem("ABC-001", "t")]

    assert main(["search", "abc", "--uncen"]) == 0

    orchestrator.search.assert_awaited_once_with("abc", uncensored_only=True)
    assert json.loads(capsys.readouterr().out) == [
        {"identifier": "ABC-001", "title": "t"}
    ]


def test_actors_uses_paging_options(orchestrator, capsys):
    orchestrator.actors.return_value = ActorRanking(
        entries=[], page=2, per_page=10, total=0
    )

    assert main(["actors", "--page", "2", "--per-page", "10"]) == 0

    orchestrator.actors.assert_awaited_once_with(2, 10, uncensored_only=False)
    assert json.loads(capsys.readouterr().out)["page"] == 2


def test_play_wraps_url(orchestrator, capsys):
    orchestrator.get_play_url.return_value = "https://javdb.com/v/abc/play"

    assert main(["play", "SSIS-001"]) == 0

    assert json.loads(capsys.readouterr().out) == {
        "url": "https://javdb.com/v/abc/play"
    }


def test_not_found_exits_with_status_one(orchestrator, capsys):
    orchestrator.fetch_detail.side_effect = NotFoundError("nothing", source="lookup")

    assert main(["detail", "SSIS-001"]) == 1
    assert capsys.readouterr().out == ""


def test_missing_argument_is_usage_error(orchestrator):
    with pytest.raises(SystemExit):
        main(["detail"])
