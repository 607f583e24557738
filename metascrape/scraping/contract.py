"""Scraper contract.

A metadata source implements two record-facing operations; fetching is
shared and lives in `metascrape.scraping.fetch`:

    pre_process(record) -> ScraperRequest      never raises
    parsing_process(response, record) -> record   bad bodies mean "no match"

`DelegatingScraper` is the composition variant: before running, it picks
per call either itself or a held delegate source.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Optional, Protocol, runtime_checkable

import httpx

from metascrape.scraping.models import PaperRecord, ScraperRequest


@runtime_checkable
class ScraperContract(Protocol):
    """Shape every metadata source exposes, built-in or extension-provided."""

    name: str

    def pre_process(self, record: PaperRecord) -> ScraperRequest:
        """Build the request; disqualified records give enabled=False."""
        ...

    def parsing_process(self, response: httpx.Response, record: PaperRecord) -> PaperRecord:
        """Apply the response to the record; never raises on bad bodies."""
        ...


class DelegatingScraper(ABC):
    """Source that may forward a whole run to another source.

    `select_source` is evaluated on every run, so the same record can be
    routed differently across passes as its fields change.
    """

    name: str = ""

    def __init__(self, delegate: ScraperContract):
        self.delegate = delegate

    @abstractmethod
    def select_source(self, record: PaperRecord) -> ScraperContract:
        """Return `self` to run this source, or the delegate to forward."""

    @abstractmethod
    def pre_process(self, record: PaperRecord) -> ScraperRequest:
        ...

    @abstractmethod
    def parsing_process(self, response: httpx.Response, record: PaperRecord) -> PaperRecord:
        ...


def load_json_body(response: Optional[httpx.Response]) -> Optional[Any]:
    """Decode a JSON response body, or None if it is missing or malformed."""
    if response is None:
        return None
    try:
        return json.loads(response.text)
    except (ValueError, TypeError):
        return None


def dig(data: Any, *keys: Any, default: Any = None) -> Any:
    """Walk nested dicts/lists; return `default` on any missing step.

    Examples:
        >>> dig({"result": {"hits": {"@sent": "1"}}}, "result", "hits", "@sent")
        '1'
        >>> dig({"result": None}, "result", "hits", default={})
        {}
    """
    current = data
    for key in keys:
        if isinstance(current, dict) and key in current:
            current = current[key]
        elif isinstance(current, list) and isinstance(key, int) and -len(current) <= key < len(current):
            current = current[key]
        else:
            return default
    return current if current is not None else default
