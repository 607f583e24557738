"""metascrape - bibliographic record enrichment from external metadata sources."""

__version__ = "0.1.0"
