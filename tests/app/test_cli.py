"""Tests for the typer CLI with the network replaced by a stub."""

import json

import httpx
from typer.testing import CliRunner

from app import cli


DOI = "10.5555/3295222.3295349"
CSL_ITEM = {
    "type": "paper-conference",
    "title": "Attention is all you need",
    "author": [{"given": "Ashish", "family": "Vaswani"}],
    "container-title": "Advances in Neural Information Processing Systems",
    "issued": {"date-parts": [[2017]]},
}

runner = CliRunner()


class StubNetwork:
    def __init__(self, payload):
        self.payload = payload
        self.calls = []

    async def get(self, url, headers=None):
        self.calls.append(url)
        return httpx.Response(200, json=self.payload)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return None


def test_enrich_prints_record_json(monkeypatch, tmp_path):
    network = StubNetwork(CSL_ITEM)
    monkeypatch.setattr(cli, "_network", lambda config: network)

    result = runner.invoke(
        cli.app,
        ["enrich", "--doi", DOI, "--order", "doi", "--config", str(tmp_path / "absent.yaml")],
    )

    assert result.exit_code == 0, result.output
    record = json.loads(result.stdout[result.stdout.index("{"):])
    assert record["title"] == "Attention is all you need"
    assert record["publication"] == "Advances in Neural Information Processing Systems"
    assert record["pub_type"] == "CONFERENCE"
    assert network.calls == [f"https://doi.org/{DOI}"]


def test_enrich_requires_title_or_doi(tmp_path):
    result = runner.invoke(cli.app, ["enrich", "--config", str(tmp_path / "absent.yaml")])
    assert result.exit_code == 1


def test_list_scrapers(monkeypatch, tmp_path):
    monkeypatch.setattr(cli, "_network", lambda config: StubNetwork({}))
    config_file = tmp_path / "scrapers.yaml"
    config_file.write_text("scrapers:\n  doi:\n    enabled: false\n", encoding="utf-8")

    result = runner.invoke(cli.app, ["list-scrapers", "--config", str(config_file)])

    assert result.exit_code == 0, result.output
    lines = {line.split()[0]: line.split()[1:] for line in result.stdout.splitlines() if line.strip()}
    assert lines["doi"] == ["builtin", "disabled"]
    assert lines["dblp_venue"] == ["builtin", "enabled"]


def test_list_scrapers_year_searches_follow_dblp_preference(monkeypatch, tmp_path):
    monkeypatch.setattr(cli, "_network", lambda config: StubNetwork({}))
    config_file = tmp_path / "scrapers.yaml"
    config_file.write_text(
        "scrapers:\n  dblp:\n    enabled: false\n  dblp_by_time_0:\n    enabled: true\n  dblp_venue:\n    enabled: false\n",
        encoding="utf-8",
    )

    result = runner.invoke(cli.app, ["list-scrapers", "--config", str(config_file)])

    assert result.exit_code == 0, result.output
    lines = {line.split()[0]: line.split()[1:] for line in result.stdout.splitlines() if line.strip()}
    assert lines["dblp"] == ["builtin", "disabled"]
    assert lines["dblp_by_time_0"] == ["builtin", "disabled"]
    assert lines["dblp_by_time_1"] == ["builtin", "disabled"]
    # the venue step is gated by the marker, not by a preference
    assert lines["dblp_venue"] == ["builtin", "enabled"]
