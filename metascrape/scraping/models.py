"""Data models for the scraping pipeline.

Defines:
- PubType and the label classifier
- PaperRecord, the draft being enriched, with per-field provenance
- ScraperRequest, produced by pre_process and consumed by the fetch layer
- ScraperPreference, the per-source switch read from configuration
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, PrivateAttr


# =============================================================================
# Publication type
# =============================================================================


class PubType(int, Enum):
    """Closed classification of a publication venue."""
    JOURNAL = 0
    CONFERENCE = 1
    OTHER = 2
    BOOK = 3


def classify_pub_type(label: Optional[str]) -> PubType:
    """Map a free-text type label to a PubType.

    Checks are ordered and case-sensitive; the first hit wins, so
    "Journal and Conference Papers" is a JOURNAL.
    """
    if not label:
        return PubType.OTHER
    if "Journal" in label:
        return PubType.JOURNAL
    if "Conference" in label:
        return PubType.CONFERENCE
    if "Book" in label:
        return PubType.BOOK
    return PubType.OTHER


# =============================================================================
# Paper record
# =============================================================================


class FieldOrigin(str, Enum):
    """Who wrote the current value of a record field."""
    USER = "user"
    SCRAPER = "scraper"


@dataclass(frozen=True)
class FieldProvenance:
    origin: FieldOrigin
    source: Optional[str] = None  # scraper name for SCRAPER writes


RECORD_FIELDS = (
    "title",
    "authors",
    "pub_time",
    "pub_type",
    "publication",
    "doi",
    "volume",
    "pages",
    "number",
    "publisher",
)

_TEXT_FIELDS = ("title", "authors", "pub_time", "publication")

# "dblp://conf/nips", "crossref://..." and the like
_VENUE_MARKER_RE = re.compile(r"^[a-z][a-z0-9+.-]*://")


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


class PaperRecord(BaseModel):
    """Bibliographic draft enriched in place by scrapers.

    Values passed at construction are user-set. Afterwards fields should only
    change through `set_value`, which refuses to overwrite a non-empty value
    unless the write is forced.
    """
    model_config = ConfigDict(extra="forbid")

    title: str = ""
    authors: str = ""
    pub_time: str = ""
    pub_type: Optional[PubType] = None
    publication: str = ""
    doi: Optional[str] = None
    volume: Optional[str] = None
    pages: Optional[str] = None
    number: Optional[str] = None
    publisher: Optional[str] = None

    _provenance: Dict[str, FieldProvenance] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        for name in RECORD_FIELDS:
            if not _is_empty(getattr(self, name)):
                self._provenance[name] = FieldProvenance(FieldOrigin.USER)

    @staticmethod
    def _coerce(name: str, value: Any) -> Any:
        if name == "pub_type":
            return None if _is_empty(value) else PubType(value)
        if _is_empty(value):
            return "" if name in _TEXT_FIELDS else None
        return str(value)

    def set_value(self, name: str, value: Any, force: bool = False, source: Optional[str] = None) -> bool:
        """Write one field, honoring provenance.

        Args:
            name: Field name (one of RECORD_FIELDS)
            value: New value; None or "" means empty
            force: Overwrite unconditionally, including clearing to empty
            source: Name of the scraper performing the write

        Returns:
            True if the field was written
        """
        if name not in RECORD_FIELDS:
            raise KeyError(f"Unknown record field: {name}")

        value = self._coerce(name, value)
        if not force:
            if _is_empty(value) or not self.is_empty(name):
                return False

        setattr(self, name, value)
        if _is_empty(value):
            self._provenance.pop(name, None)
        elif source is None:
            self._provenance[name] = FieldProvenance(FieldOrigin.USER)
        else:
            self._provenance[name] = FieldProvenance(FieldOrigin.SCRAPER, source)
        return True

    def is_empty(self, name: str) -> bool:
        return _is_empty(getattr(self, name))

    def origin(self, name: str) -> Optional[FieldProvenance]:
        """Provenance of a field, or None when the field is empty."""
        return self._provenance.get(name)

    def has_unresolved_venue(self) -> bool:
        """True when `publication` still holds a scheme-prefixed venue key."""
        return bool(_VENUE_MARKER_RE.match(self.publication or ""))

    @property
    def author_list(self) -> List[str]:
        return [a.strip() for a in self.authors.split(",") if a.strip()]

    def snapshot(self) -> Dict[str, Any]:
        """Plain dict of field values (pub_type as its name)."""
        data = self.model_dump()
        data["pub_type"] = self.pub_type.name if self.pub_type is not None else None
        return data


# =============================================================================
# Requests and preferences
# =============================================================================


@dataclass(frozen=True)
class ScraperRequest:
    """One outgoing request, built by pre_process.

    mirror_host is the alternate host tried once if the primary fails.
    """
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    enabled: bool = False
    mirror_host: Optional[str] = None


class ScraperPreference(BaseModel):
    """Per-source preference: enable flag plus a free-form argument."""
    model_config = ConfigDict(extra="ignore")

    enabled: bool = True
    args: Optional[str] = None
