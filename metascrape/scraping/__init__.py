"""Scraping pipeline for bibliographic metadata.

Every source follows the same three steps:

1. pre_process(record) -> ScraperRequest   (gating decides `enabled`)
2. fetch_with_fallback(request, network)   (one retry on a mirror host)
3. parsing_process(response, record)       (first title match wins)

`scrape` drives one source; `ScraperRegistry.enrich` runs an ordered list
of sources over one record so later sources see earlier writes.

Usage:
    from metascrape.scraping import (
        HttpxNetworkTool, PaperRecord, StaticPreferenceStore,
        build_default_registry, DEFAULT_ORDER,
    )

    async with HttpxNetworkTool() as network:
        registry = build_default_registry(StaticPreferenceStore(), network)
        record = await registry.enrich(PaperRecord(title="..."), DEFAULT_ORDER)
"""

from metascrape.scraping.contract import DelegatingScraper, ScraperContract
from metascrape.scraping.exceptions import NetworkError, ScraperError
from metascrape.scraping.fetch import HttpxNetworkTool, NetworkTool, fetch_with_fallback
from metascrape.scraping.gating import (
    PreferenceStore,
    StaticPreferenceStore,
    YamlPreferenceStore,
    is_preprint,
)
from metascrape.scraping.models import (
    FieldOrigin,
    PaperRecord,
    PubType,
    ScraperPreference,
    ScraperRequest,
    classify_pub_type,
)
from metascrape.scraping.normalize import NormalizeOptions, normalize
from metascrape.scraping.pipeline import scrape
from metascrape.scraping.registry import DEFAULT_ORDER, ScraperRegistry, build_default_registry

__all__ = [
    "DelegatingScraper",
    "ScraperContract",
    "NetworkError",
    "ScraperError",
    "HttpxNetworkTool",
    "NetworkTool",
    "fetch_with_fallback",
    "PreferenceStore",
    "StaticPreferenceStore",
    "YamlPreferenceStore",
    "is_preprint",
    "FieldOrigin",
    "PaperRecord",
    "PubType",
    "ScraperPreference",
    "ScraperRequest",
    "classify_pub_type",
    "NormalizeOptions",
    "normalize",
    "scrape",
    "DEFAULT_ORDER",
    "ScraperRegistry",
    "build_default_registry",
]
