"""DOI source via content negotiation.

Asks doi.org for CSL-JSON (``application/vnd.citationstyles.csl+json``),
which Crossref, DataCite and mEDRA all serve. The lookup is keyed by the
DOI itself, so there is no candidate list to match against.
"""

from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from metascrape.scraping.contract import dig, load_json_body
from metascrape.scraping.gating import PreferenceStore, is_enabled, is_preprint
from metascrape.scraping.models import PaperRecord, PubType, ScraperRequest


DOI_HOST = "doi.org"
DOI_MIRROR_HOST = "dx.doi.org"
CSL_JSON = "application/vnd.citationstyles.csl+json"

_DOI_PREFIXES = ("https://doi.org/", "http://doi.org/", "https://dx.doi.org/", "http://dx.doi.org/", "doi:")

# CSL item types -> PubType
CSL_PUB_TYPES: Dict[str, PubType] = {
    "journal-article": PubType.JOURNAL,
    "article-journal": PubType.JOURNAL,
    "proceedings-article": PubType.CONFERENCE,
    "paper-conference": PubType.CONFERENCE,
    "book": PubType.BOOK,
    "book-chapter": PubType.BOOK,
    "chapter": PubType.BOOK,
    "monograph": PubType.BOOK,
}


def normalize_doi(doi: Optional[str]) -> str:
    """Bare DOI without resolver prefixes or surrounding whitespace.

    Examples:
        >>> normalize_doi(" https://doi.org/10.1000/XYZ ")
        '10.1000/XYZ'
        >>> normalize_doi("doi:10.1000/abc")
        '10.1000/abc'
    """
    value = (doi or "").strip()
    lowered = value.lower()
    for prefix in _DOI_PREFIXES:
        if lowered.startswith(prefix):
            return value[len(prefix):].strip()
    return value


def _first_text(value: Any) -> str:
    """CSL fields are strings or lists of strings."""
    if isinstance(value, list):
        value = value[0] if value else ""
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value.strip() if isinstance(value, str) else ""


def _csl_authors(authors: Any) -> str:
    if not isinstance(authors, list):
        return ""
    names = []
    for author in authors:
        if not isinstance(author, dict):
            continue
        name = " ".join(
            part.strip() for part in (author.get("given"), author.get("family")) if isinstance(part, str) and part.strip()
        )
        name = name or _first_text(author.get("literal")) or _first_text(author.get("name"))
        if name:
            names.append(name)
    return ", ".join(names)


def _csl_year(item: Dict[str, Any]) -> str:
    for key in ("issued", "published-print", "published-online", "created"):
        year = dig(item, key, "date-parts", 0, 0)
        if isinstance(year, (int, str)) and str(year).strip():
            return str(year).strip()
    return ""


class DOIScraper:
    """Fills a record from the CSL-JSON registered for its DOI."""

    name = "doi"
    preference_key = "doi"

    def __init__(self, preferences: PreferenceStore):
        self.preferences = preferences

    def pre_process(self, record: PaperRecord) -> ScraperRequest:
        doi = normalize_doi(record.doi)
        enabled = bool(doi) and is_enabled(self.preferences, self.preference_key)
        url = f"https://{DOI_HOST}/{quote(doi, safe='/')}"
        return ScraperRequest(url=url, headers={"Accept": CSL_JSON}, enabled=enabled, mirror_host=DOI_MIRROR_HOST)

    def parsing_process(self, response: httpx.Response, record: PaperRecord) -> PaperRecord:
        item = load_json_body(response)
        if not isinstance(item, dict) or not _first_text(item.get("title")):
            return record

        source = self.name
        publication = _first_text(item.get("container-title"))
        # A known venue replaces an unresolved marker or a preprint server.
        upgrade = bool(publication) and (record.has_unresolved_venue() or is_preprint(record))

        record.set_value("title", _first_text(item.get("title")), source=source)
        record.set_value("authors", _csl_authors(item.get("author")), source=source)
        record.set_value("pub_time", _csl_year(item), source=source)

        csl_type = item.get("type") if isinstance(item.get("type"), str) else ""
        record.set_value("pub_type", CSL_PUB_TYPES.get(csl_type, PubType.OTHER), force=upgrade, source=source)

        if publication:
            record.set_value("publication", publication, force=upgrade, source=source)

        record.set_value("volume", _first_text(item.get("volume")), source=source)
        record.set_value("pages", _first_text(item.get("page")), source=source)
        record.set_value("number", _first_text(item.get("issue")), source=source)
        record.set_value("publisher", _first_text(item.get("publisher")), source=source)
        return record
