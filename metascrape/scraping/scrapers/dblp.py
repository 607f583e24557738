"""DBLP sources.

- DBLPScraper: publication search by title, for records whose venue is
  missing or a preprint server. A hit leaves an unresolved venue marker
  (``dblp://conf/nips``) in `publication`.
- DBLPByTimeScraper: same search pinned to ``year:<pub_time + offset>``.
- DBLPVenueScraper: resolves the marker to a venue name via the venue
  search, or forwards to the DOI source when the record has a DOI.

API: https://dblp.org/faq/How+to+use+the+dblp+search+API.html
"""

import re
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx

from metascrape.scraping.contract import DelegatingScraper, ScraperContract, dig, load_json_body
from metascrape.scraping.gating import (
    USE_DBLP_FOR_VENUE,
    PreferenceStore,
    is_enabled,
    is_preprint,
    source_args,
)
from metascrape.scraping.models import PaperRecord, ScraperRequest, classify_pub_type
from metascrape.scraping.normalize import build_query, matches


# =============================================================================
# Constants
# =============================================================================

DBLP_HOST = "dblp.org"
DBLP_MIRROR_HOST = "dblp.uni-trier.de"
DBLP_PUBLICATION_SEARCH = f"https://{DBLP_HOST}/search/publ/api"
DBLP_VENUE_SEARCH = f"https://{DBLP_HOST}/search/venue/api"

VENUE_MARKER = "dblp://"

# Preprint mirror inside dblp: key prefix journals/corr with venue "CoRR"
CORR_KEY = "journals/corr"
CORR_VENUE = "CoRR"

_AUTHOR_INDEX_RE = re.compile(r"[0-9]")


def _search_url(base: str, query: str) -> str:
    return str(httpx.URL(base, params={"q": query, "format": "json"}))


def _hits(payload: Any) -> List[Dict[str, Any]]:
    """Hit list of a dblp search payload; [] for anything malformed."""
    try:
        sent = int(dig(payload, "result", "hits", "@sent", default=0))
    except (TypeError, ValueError):
        return []
    if sent <= 0:
        return []
    hits = dig(payload, "result", "hits", "hit", default=[])
    if isinstance(hits, dict):
        hits = [hits]
    if not isinstance(hits, list):
        return []
    return [hit for hit in hits if isinstance(hit, dict)]


def _author_names(authors: Any) -> List[str]:
    """Author names with dblp homonym indices ("Jian Sun 0001") removed."""
    entries = authors.get("author") if isinstance(authors, dict) else None
    if isinstance(entries, dict):
        entries = [entries]
    if not isinstance(entries, list):
        return []

    names = []
    for entry in entries:
        text = entry.get("text") if isinstance(entry, dict) else entry
        if isinstance(text, str):
            name = _AUTHOR_INDEX_RE.sub("", text).strip()
            if name:
                names.append(name)
    return names


# =============================================================================
# Publication search
# =============================================================================


class DBLPScraper:
    """Publication search by title."""

    name = "dblp"
    preference_key = "dblp"

    def __init__(self, preferences: PreferenceStore):
        self.preferences = preferences

    def build_query(self, record: PaperRecord) -> Optional[str]:
        query = build_query(record.title)
        return query or None

    def pre_process(self, record: PaperRecord) -> ScraperRequest:
        query = self.build_query(record)
        enabled = bool(query) and is_preprint(record) and is_enabled(self.preferences, self.preference_key)
        url = _search_url(DBLP_PUBLICATION_SEARCH, query or "")
        return ScraperRequest(url=url, headers={}, enabled=enabled, mirror_host=DBLP_MIRROR_HOST)

    def parsing_process(self, response: httpx.Response, record: PaperRecord) -> PaperRecord:
        for hit in _hits(load_json_body(response)):
            info = hit.get("info")
            if not isinstance(info, dict) or not isinstance(info.get("title"), str):
                continue
            if not matches(info["title"], record.title):
                continue
            self._apply_hit(info, record)
            break
        return record

    def _apply_hit(self, info: Dict[str, Any], record: PaperRecord) -> None:
        key = info.get("key") if isinstance(info.get("key"), str) else ""
        venue = info.get("venue") if isinstance(info.get("venue"), str) else ""
        pub_key = "/".join(key.split("/")[:2])

        # The arXiv copy indexed by dblp says nothing new about the venue.
        if pub_key == CORR_KEY and venue == CORR_VENUE:
            return

        source = self.name
        # Replacing a preprint venue is the point of this source.
        upgrade = is_preprint(record)

        if info.get("doi"):
            record.set_value("doi", info["doi"], source=source)
        record.set_value("title", info["title"].replace("&amp;", "&"), source=source)
        record.set_value("authors", ", ".join(_author_names(info.get("authors"))), source=source)
        record.set_value("pub_time", str(info.get("year") or ""), source=source)
        record.set_value("pub_type", classify_pub_type(info.get("type")), force=upgrade, source=source)

        marker = VENUE_MARKER + (venue if pub_key == CORR_KEY else pub_key)
        record.set_value("publication", marker, force=upgrade, source=source)

        for name in ("volume", "pages", "number", "publisher"):
            if info.get(name):
                record.set_value(name, info[name], source=source)


class DBLPByTimeScraper(DBLPScraper):
    """Publication search restricted to the record's year plus `offset`.

    Lets a second pass look at neighbouring years (a preprint from 2016
    published at a 2017 conference) without touching fetch or parse.
    """

    def __init__(self, preferences: PreferenceStore, offset: int = 0):
        super().__init__(preferences)
        self.offset = offset
        self.name = f"dblp_by_time_{offset}"

    def build_query(self, record: PaperRecord) -> Optional[str]:
        query = build_query(record.title)
        try:
            year = int((record.pub_time or "").strip())
        except ValueError:
            return None
        if not query:
            return None
        return f"{query} year:{year + self.offset}"

    def pre_process(self, record: PaperRecord) -> ScraperRequest:
        query = self.build_query(record)
        enabled = bool(query) and is_enabled(self.preferences, self.preference_key) and is_preprint(record)
        url = _search_url(DBLP_PUBLICATION_SEARCH, query or "")
        return ScraperRequest(url=url, headers={}, enabled=enabled, mirror_host=DBLP_MIRROR_HOST)


# =============================================================================
# Venue resolution
# =============================================================================


class UnresolvedVenuePolicy(str, Enum):
    """What the venue source does when no venue hit matches the marker.

    CLEAR empties `publication` (forced write) so a stale marker is never
    shown as a venue. KEEP leaves the marker for a later pass.
    """
    CLEAR = "clear"
    KEEP = "keep"


class DBLPVenueScraper(DelegatingScraper):
    """Resolves ``dblp://<key>`` markers to venue names.

    With a DOI on the record the DOI source is used instead, unless the
    ``dblp`` preference args is ``use-dblp``.
    """

    name = "dblp_venue"
    # Gated on the marker only; `dblp_venue` args pick the unresolved policy.
    preference_key = None

    def __init__(
        self,
        preferences: PreferenceStore,
        delegate: ScraperContract,
        unresolved_policy: UnresolvedVenuePolicy = UnresolvedVenuePolicy.CLEAR,
    ):
        super().__init__(delegate)
        self.preferences = preferences
        self.unresolved_policy = unresolved_policy

    def select_source(self, record: PaperRecord) -> ScraperContract:
        if record.doi and source_args(self.preferences, "dblp") != USE_DBLP_FOR_VENUE:
            return self.delegate
        return self

    def pre_process(self, record: PaperRecord) -> ScraperRequest:
        publication = record.publication or ""
        enabled = publication.startswith(VENUE_MARKER)
        url = _search_url(DBLP_VENUE_SEARCH, publication[len(VENUE_MARKER):] if enabled else "")
        return ScraperRequest(url=url, headers={}, enabled=enabled, mirror_host=DBLP_MIRROR_HOST)

    def parsing_process(self, response: httpx.Response, record: PaperRecord) -> PaperRecord:
        publication = record.publication or ""
        # Forced passes reach here without a marker; user venues stay.
        if not publication.startswith(VENUE_MARKER):
            return record

        venue_id = publication[len(VENUE_MARKER):] + "/"

        for hit in _hits(load_json_body(response)):
            info = hit.get("info")
            if not isinstance(info, dict):
                continue
            url = info.get("url")
            venue = info.get("venue")
            if isinstance(url, str) and isinstance(venue, str) and venue_id.lower() in url:
                # The marker was scraper-set; the resolved name replaces it.
                record.set_value("publication", venue, force=True, source=self.name)
                return record

        if self.unresolved_policy is UnresolvedVenuePolicy.CLEAR:
            record.set_value("publication", "", force=True, source=self.name)
        return record
