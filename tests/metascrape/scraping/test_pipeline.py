"""Tests for the scrape() driver: gating, delegation and error propagation."""

import asyncio

import httpx
import pytest

from metascrape.scraping.contract import DelegatingScraper, ScraperContract, dig, load_json_body
from metascrape.scraping.exceptions import NetworkError
from metascrape.scraping.models import PaperRecord, ScraperRequest
from metascrape.scraping.pipeline import MAX_DELEGATION_DEPTH, scrape


class CountingNetwork:
    def __init__(self, response=None, error=None):
        self.response = response if response is not None else httpx.Response(200, json={"title": "Found"})
        self.error = error
        self.calls = []

    async def get(self, url, headers=None):
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return self.response


class TitleScraper:
    """Writes the response's "title" into empty record fields."""

    def __init__(self, name="title_source", enabled=True):
        self.name = name
        self.enabled = enabled
        self.pre_processed = 0

    def pre_process(self, record):
        self.pre_processed += 1
        return ScraperRequest(url=f"https://example.org/{self.name}", enabled=self.enabled)

    def parsing_process(self, response, record):
        body = load_json_body(response) or {}
        record.set_value("publisher", body.get("title"), source=self.name)
        return record


class Router(DelegatingScraper):
    name = "router"

    def __init__(self, delegate, forward):
        super().__init__(delegate)
        self.forward = forward

    def select_source(self, record):
        return self.delegate if self.forward(record) else self

    def pre_process(self, record):
        return ScraperRequest(url="https://example.org/router", enabled=True)

    def parsing_process(self, response, record):
        record.set_value("publisher", "router", source=self.name)
        return record


class Loop(DelegatingScraper):
    name = "loop"

    def select_source(self, record):
        return Loop(self)

    def pre_process(self, record):
        return ScraperRequest(url="https://example.org/loop", enabled=True)

    def parsing_process(self, response, record):
        return record


class TestScrape:
    """Tests for scrape()."""

    def test_disabled_source_makes_no_call(self):
        record = PaperRecord(title="Attention Is All You Need", publication="NeurIPS")
        before = record.snapshot()
        network = CountingNetwork()

        result = asyncio.run(scrape(TitleScraper(enabled=False), record, network))

        assert result.snapshot() == before
        assert network.calls == []

    def test_enabled_source_fetches_and_parses(self):
        network = CountingNetwork()
        record = asyncio.run(scrape(TitleScraper(), PaperRecord(title="x"), network))

        assert network.calls == ["https://example.org/title_source"]
        assert record.publisher == "Found"

    def test_force_overrides_gating(self):
        network = CountingNetwork()
        record = asyncio.run(scrape(TitleScraper(enabled=False), PaperRecord(title="x"), network, force=True))

        assert len(network.calls) == 1
        assert record.publisher == "Found"

    def test_network_error_propagates(self):
        network = CountingNetwork(error=NetworkError("down", url="https://example.org/title_source"))

        with pytest.raises(NetworkError):
            asyncio.run(scrape(TitleScraper(), PaperRecord(title="x"), network))

    def test_sources_satisfy_contract(self):
        assert isinstance(TitleScraper(), ScraperContract)
        assert isinstance(Router(TitleScraper(), lambda record: False), ScraperContract)


class TestDelegation:
    """Tests for routing through DelegatingScraper.select_source()."""

    def test_forwards_to_delegate(self):
        delegate = TitleScraper(name="delegate")
        network = CountingNetwork()

        record = asyncio.run(scrape(Router(delegate, lambda r: bool(r.doi)), PaperRecord(title="x", doi="10.1/a"), network))

        assert network.calls == ["https://example.org/delegate"]
        assert delegate.pre_processed == 1
        assert record.origin("publisher").source == "delegate"

    def test_runs_itself_when_not_forwarding(self):
        delegate = TitleScraper(name="delegate")
        network = CountingNetwork()

        record = asyncio.run(scrape(Router(delegate, lambda r: bool(r.doi)), PaperRecord(title="x"), network))

        assert network.calls == ["https://example.org/router"]
        assert delegate.pre_processed == 0
        assert record.publisher == "router"

    def test_routing_evaluated_per_call(self):
        delegate = TitleScraper(name="delegate")
        router = Router(delegate, lambda r: bool(r.doi))
        record = PaperRecord(title="x")
        network = CountingNetwork()

        asyncio.run(scrape(router, record, network))
        record.set_value("doi", "10.1/a")
        asyncio.run(scrape(router, record, network))

        assert network.calls == ["https://example.org/router", "https://example.org/delegate"]

    def test_endless_delegation_rejected(self):
        with pytest.raises(RuntimeError):
            asyncio.run(scrape(Loop(TitleScraper()), PaperRecord(title="x"), CountingNetwork()))

    def test_longest_allowed_chain_runs_final_source(self):
        final = TitleScraper(name="final")
        head = final
        for _ in range(MAX_DELEGATION_DEPTH):
            head = Router(head, lambda r: True)
        network = CountingNetwork()

        asyncio.run(scrape(head, PaperRecord(title="x"), network))

        assert network.calls == ["https://example.org/final"]

    def test_chain_past_the_limit_rejected(self):
        head = TitleScraper(name="final")
        for _ in range(MAX_DELEGATION_DEPTH + 1):
            head = Router(head, lambda r: True)

        with pytest.raises(RuntimeError):
            asyncio.run(scrape(head, PaperRecord(title="x"), CountingNetwork()))


class TestBodyHelpers:
    def test_load_json_body_malformed(self):
        assert load_json_body(httpx.Response(200, text="<html>")) is None
        assert load_json_body(None) is None

    def test_dig_through_lists(self):
        assert dig({"issued": {"date-parts": [[2017, 12]]}}, "issued", "date-parts", 0, 0) == 2017
        assert dig({"issued": {"date-parts": []}}, "issued", "date-parts", 0, 0) is None
