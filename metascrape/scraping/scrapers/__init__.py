"""Built-in metadata sources."""

from metascrape.scraping.scrapers.dblp import (
    DBLPByTimeScraper,
    DBLPScraper,
    DBLPVenueScraper,
    UnresolvedVenuePolicy,
)
from metascrape.scraping.scrapers.doi import DOIScraper

__all__ = [
    "DBLPScraper",
    "DBLPByTimeScraper",
    "DBLPVenueScraper",
    "UnresolvedVenuePolicy",
    "DOIScraper",
]
