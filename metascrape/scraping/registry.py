"""Scraper registry: named sources run in a fixed order over one record.

Usage:
------
from metascrape.scraping.registry import build_default_registry, DEFAULT_ORDER

async with HttpxNetworkTool() as network:
    registry = build_default_registry(preferences, network, log_service)
    record = await registry.enrich(PaperRecord(title="Attention Is All You Need"), DEFAULT_ORDER)
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from metascrape.scraping.contract import ScraperContract
from metascrape.scraping.fetch import NetworkTool
from metascrape.scraping.gating import PreferenceStore, source_args
from metascrape.scraping.models import PaperRecord
from metascrape.scraping.pipeline import scrape
from metascrape.scraping.scrapers.dblp import (
    DBLPByTimeScraper,
    DBLPScraper,
    DBLPVenueScraper,
    UnresolvedVenuePolicy,
)
from metascrape.scraping.scrapers.doi import DOIScraper
from metascrape.utils.log_service import LogService


# =============================================================================
# Constants
# =============================================================================

DEFAULT_ORDER = ["doi", "dblp", "dblp_by_time_0", "dblp_by_time_1", "dblp_venue"]
DEFAULT_PARALLEL = 3

LOG_TAG = "scraperRegistry"


@dataclass(frozen=True)
class RegisteredScraper:
    name: str
    scraper: ScraperContract
    builtin: bool = True


class ScraperRegistry:
    """Holds built-in and extension-provided sources by name."""

    def __init__(self, network: NetworkTool, log_service: Optional[LogService] = None):
        self.network = network
        self.log_service = log_service or LogService()
        self._scrapers: Dict[str, RegisteredScraper] = {}

    def register(self, name: str, scraper: ScraperContract, builtin: bool = True) -> None:
        """Register a source under `name`, replacing any previous one.

        Raises:
            TypeError: `scraper` does not implement the scraper contract
            ValueError: a non-builtin source would replace a built-in one
        """
        if not isinstance(scraper, ScraperContract):
            raise TypeError(f"{name!r} does not implement pre_process/parsing_process")
        if not builtin and self.is_builtin(name):
            raise ValueError(f"{name!r} is a built-in source and cannot be replaced by an extension")
        self._scrapers[name] = RegisteredScraper(name=name, scraper=scraper, builtin=builtin)

    def unregister(self, name: str) -> bool:
        return self._scrapers.pop(name, None) is not None

    def get(self, name: str) -> Optional[ScraperContract]:
        entry = self._scrapers.get(name)
        return entry.scraper if entry else None

    def is_builtin(self, name: str) -> bool:
        entry = self._scrapers.get(name)
        return bool(entry and entry.builtin)

    def preference_key(self, name: str) -> Optional[str]:
        """Preference that gates `name`; None when no preference gates it.

        Sources without a ``preference_key`` attribute are gated by their
        own name.
        """
        entry = self._scrapers.get(name)
        if entry is None:
            return name
        return getattr(entry.scraper, "preference_key", name)

    def names(self) -> List[str]:
        return list(self._scrapers)

    async def enrich(self, record: PaperRecord, order: Sequence[str], force: bool = False) -> PaperRecord:
        """Run the named sources one after another over `record`.

        Later sources see fields written by earlier ones. A failing source,
        or one that returns anything but a PaperRecord, is reported through
        the log service and the next one runs on the record as it was.

        Args:
            record: Draft to enrich in place
            order: Source names, in run order
            force: Fetch even when a source's gating disables it

        Returns:
            The same record object
        """
        for name in order:
            entry = self._scrapers.get(name)
            if entry is None:
                self.log_service.warning(f"Unknown scraper {name}, skipped", source_tag=LOG_TAG)
                continue

            title = record.title
            try:
                result = await scrape(entry.scraper, record, self.network, force=force)
                if not isinstance(result, PaperRecord):
                    raise TypeError(f"Scraper {name} returned {type(result).__name__}, not a PaperRecord")
            except Exception as e:
                self.log_service.error(
                    f"Scraper {name} failed for '{title}'",
                    error=e,
                    notify_user=not entry.builtin,
                    source_tag=LOG_TAG,
                )
                continue
            record = result
        return record

    async def enrich_many(
        self,
        records: Sequence[PaperRecord],
        order: Sequence[str],
        force: bool = False,
        parallel: int = DEFAULT_PARALLEL,
    ) -> List[PaperRecord]:
        """Enrich distinct records concurrently, at most `parallel` at a time."""
        semaphore = asyncio.Semaphore(max(1, parallel))

        async def _run(record: PaperRecord) -> PaperRecord:
            async with semaphore:
                return await self.enrich(record, order, force=force)

        return list(await asyncio.gather(*(_run(record) for record in records)))


def build_default_registry(
    preferences: PreferenceStore,
    network: NetworkTool,
    log_service: Optional[LogService] = None,
) -> ScraperRegistry:
    """Registry with the built-in DOI and dblp sources."""
    registry = ScraperRegistry(network, log_service)

    doi = DOIScraper(preferences)
    policy = UnresolvedVenuePolicy.KEEP if source_args(preferences, "dblp_venue") == "keep-unresolved" else UnresolvedVenuePolicy.CLEAR

    registry.register(doi.name, doi)
    registry.register("dblp", DBLPScraper(preferences))
    for offset in (0, 1):
        scraper = DBLPByTimeScraper(preferences, offset=offset)
        registry.register(scraper.name, scraper)
    registry.register("dblp_venue", DBLPVenueScraper(preferences, delegate=doi, unresolved_policy=policy))
    return registry
