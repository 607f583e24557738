"""Tests for the DOI content-negotiation source."""

import asyncio

import httpx
import pytest

from metascrape.scraping.gating import StaticPreferenceStore
from metascrape.scraping.models import PaperRecord, PubType
from metascrape.scraping.pipeline import scrape
from metascrape.scraping.scrapers.doi import CSL_JSON, DOI_MIRROR_HOST, DOIScraper, normalize_doi


ATTENTION_CSL = {
    "type": "paper-conference",
    "title": "Attention is all you need",
    "author": [
        {"given": "Ashish", "family": "Vaswani"},
        {"given": "Noam", "family": "Shazeer"},
        {"literal": "Google Brain Team"},
    ],
    "container-title": "Advances in Neural Information Processing Systems",
    "issued": {"date-parts": [[2017, 12, 4]]},
    "volume": "30",
    "page": "5998-6008",
    "publisher": "Curran Associates Inc.",
    "DOI": "10.5555/3295222.3295349",
}


class OneShotNetwork:
    def __init__(self, response):
        self.response = response
        self.calls = []

    async def get(self, url, headers=None):
        self.calls.append((url, dict(headers or {})))
        return self.response


class TestDOIPreProcess:
    """Tests for DOIScraper request building and gating."""

    def test_request(self):
        request = DOIScraper(StaticPreferenceStore()).pre_process(PaperRecord(doi="10.5555/3295222.3295349"))

        assert request.enabled is True
        assert request.url == "https://doi.org/10.5555/3295222.3295349"
        assert request.headers["Accept"] == CSL_JSON
        assert request.mirror_host == DOI_MIRROR_HOST

    def test_prefixed_doi_normalized(self):
        request = DOIScraper(StaticPreferenceStore()).pre_process(PaperRecord(doi="https://doi.org/10.1000/abc"))
        assert request.url == "https://doi.org/10.1000/abc"

    def test_disabled_without_doi(self):
        assert DOIScraper(StaticPreferenceStore()).pre_process(PaperRecord(title="x")).enabled is False

    def test_disabled_by_preference(self):
        request = DOIScraper(StaticPreferenceStore({"doi": False})).pre_process(PaperRecord(doi="10.1000/abc"))
        assert request.enabled is False

    def test_normalize_doi_blank(self):
        assert normalize_doi(None) == ""
        assert normalize_doi("   ") == ""


class TestDOIParsing:
    """Tests for DOIScraper.parsing_process()."""

    def test_fills_empty_record(self):
        record = PaperRecord(doi="10.5555/3295222.3295349")
        network = OneShotNetwork(httpx.Response(200, json=ATTENTION_CSL))

        asyncio.run(scrape(DOIScraper(StaticPreferenceStore()), record, network))

        assert network.calls[0][1]["Accept"] == CSL_JSON
        assert record.title == "Attention is all you need"
        assert record.authors == "Ashish Vaswani, Noam Shazeer, Google Brain Team"
        assert record.pub_time == "2017"
        assert record.pub_type is PubType.CONFERENCE
        assert record.publication == "Advances in Neural Information Processing Systems"
        assert record.volume == "30"
        assert record.pages == "5998-6008"
        assert record.publisher == "Curran Associates Inc."

    def test_replaces_unresolved_marker(self):
        record = PaperRecord(title="Attention Is All You Need", doi="10.5555/3295222.3295349")
        record.set_value("publication", "dblp://conf/nips", source="dblp")
        record.set_value("pub_type", PubType.OTHER, source="dblp")

        DOIScraper(StaticPreferenceStore()).parsing_process(httpx.Response(200, json=ATTENTION_CSL), record)

        assert record.publication == "Advances in Neural Information Processing Systems"
        assert record.pub_type is PubType.CONFERENCE
        assert record.origin("publication").source == "doi"
        assert record.title == "Attention Is All You Need"

    def test_replaces_preprint_venue(self):
        record = PaperRecord(doi="10.5555/3295222.3295349", publication="arXiv")

        DOIScraper(StaticPreferenceStore()).parsing_process(httpx.Response(200, json=ATTENTION_CSL), record)

        assert record.publication == "Advances in Neural Information Processing Systems"

    def test_keeps_user_venue(self):
        record = PaperRecord(doi="10.5555/3295222.3295349", publication="NeurIPS 2017", pub_type=PubType.OTHER)

        DOIScraper(StaticPreferenceStore()).parsing_process(httpx.Response(200, json=ATTENTION_CSL), record)

        assert record.publication == "NeurIPS 2017"
        assert record.pub_type is PubType.OTHER

    def test_journal_article_with_list_fields(self):
        item = {
            "type": "journal-article",
            "title": ["Deep learning"],
            "container-title": ["Nature"],
            "author": [{"given": "Yann", "family": "LeCun"}],
            "published-print": {"date-parts": [[2015]]},
            "volume": 521,
            "issue": "7553",
        }
        record = PaperRecord(doi="10.1038/nature14539")

        DOIScraper(StaticPreferenceStore()).parsing_process(httpx.Response(200, json=item), record)

        assert record.title == "Deep learning"
        assert record.publication == "Nature"
        assert record.pub_type is PubType.JOURNAL
        assert record.pub_time == "2015"
        assert record.volume == "521"
        assert record.number == "7553"

    def test_unknown_type_is_other(self):
        record = PaperRecord(doi="10.1/x")
        DOIScraper(StaticPreferenceStore()).parsing_process(
            httpx.Response(200, json={"title": "Dataset", "type": "dataset"}), record
        )
        assert record.pub_type is PubType.OTHER

    @pytest.mark.parametrize("body", ["<html>not found</html>", "[]", '{"type": "book"}'])
    def test_unusable_bodies_mean_no_match(self, body):
        record = PaperRecord(doi="10.1/x", publication="arXiv")
        before = record.snapshot()

        DOIScraper(StaticPreferenceStore()).parsing_process(httpx.Response(200, text=body), record)

        assert record.snapshot() == before
