"""Gating: whether a source should run for a record.

Decisions combine record state (is the venue still a preprint, is there a
DOI) with the per-source preference read from a `PreferenceStore`. Stores
are read-only from the pipeline's point of view.
"""

from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable

from metascrape.scraping.models import PaperRecord, ScraperPreference
from metascrape.utils.config_loader import ConfigLoader


PREPRINT_MARKERS = ("arxiv", "openreview", "biorxiv", "medrxiv", "chemrxiv")

# dblp venue args value that forces the venue search even when a DOI is known
USE_DBLP_FOR_VENUE = "use-dblp"


# =============================================================================
# Preference stores
# =============================================================================


@runtime_checkable
class PreferenceStore(Protocol):
    """Read access to per-source scraper preferences."""

    def get(self, name: str) -> ScraperPreference:
        ...


class StaticPreferenceStore:
    """In-memory preferences, keyed by source name.

    Values may be ScraperPreference objects, dicts, or plain booleans
    (shorthand for the enable flag).
    """

    def __init__(self, preferences: Optional[Mapping[str, Any]] = None):
        self._preferences: Dict[str, ScraperPreference] = {
            name: _to_preference(value) for name, value in (preferences or {}).items()
        }

    def get(self, name: str) -> ScraperPreference:
        return self._preferences.get(name, ScraperPreference())


class YamlPreferenceStore:
    """Preferences from the `scrapers:` section of a YAML config file."""

    def __init__(self, config: ConfigLoader | str | Path, section: str = "scrapers"):
        self.config = config if isinstance(config, ConfigLoader) else ConfigLoader(config)
        self.section = section

    def get(self, name: str) -> ScraperPreference:
        return _to_preference(self.config.get(f"{self.section}.{name}"))


def _to_preference(value: Any) -> ScraperPreference:
    if value is None:
        return ScraperPreference()
    if isinstance(value, ScraperPreference):
        return value
    if isinstance(value, bool):
        return ScraperPreference(enabled=value)
    if isinstance(value, Mapping):
        return ScraperPreference.model_validate(dict(value))
    raise TypeError(f"Unsupported scraper preference value: {value!r}")


# =============================================================================
# Gating rules
# =============================================================================


def is_enabled(preferences: PreferenceStore, name: str) -> bool:
    return preferences.get(name).enabled


def source_args(preferences: PreferenceStore, name: str) -> Optional[str]:
    """Free-form argument string configured for a source, if any."""
    return preferences.get(name).args


def is_preprint(record: PaperRecord) -> bool:
    """True when the record has no venue yet, or only a preprint server.

    Examples:
        >>> is_preprint(PaperRecord(title="x"))
        True
        >>> is_preprint(PaperRecord(title="x", publication="arXiv preprint"))
        True
        >>> is_preprint(PaperRecord(title="x", publication="NeurIPS"))
        False
    """
    publication = (record.publication or "").strip()
    if not publication:
        return True
    if publication == "CoRR":
        return True
    lowered = publication.lower()
    return any(marker in lowered for marker in PREPRINT_MARKERS)
