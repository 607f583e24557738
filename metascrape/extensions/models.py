"""Pydantic models for installed extensions."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_AUTHOR = "community"


class ExtensionError(Exception):
    """Raised when an extension cannot be loaded or is malformed."""

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error


class ExtensionInfo(BaseModel):
    """Metadata of an installed extension, validated once at install time.

    `defaulted_fields` names the metadata values the extension did not
    supply (or supplied malformed) and that were filled with defaults.
    """
    model_config = ConfigDict(extra="forbid")

    id: str
    name: str
    version: str = "0.0.0"
    author: str = DEFAULT_AUTHOR
    description: str = ""
    verified: bool = True
    preference: Dict[str, Any] = Field(default_factory=dict)
    location: str
    origin_location: Optional[str] = None  # set for installs from a local path
    has_dispose: bool = False
    provides_scraper: bool = False
    defaulted_fields: List[str] = Field(default_factory=list)

    @property
    def installed_from_path(self) -> bool:
        return self.origin_location is not None


def _text(value: Any) -> Optional[str]:
    return value.strip() if isinstance(value, str) and value.strip() else None


def build_extension_info(
    instance: Any,
    package_name: str,
    version: Optional[str],
    location: str,
    origin_location: Optional[str],
    preference: Optional[Dict[str, Any]],
    provides_scraper: bool,
) -> ExtensionInfo:
    """Read optional metadata off an initialized extension instance.

    Args:
        instance: Object returned by the extension's initialize()
        package_name: Module/package name used when id or name is missing
        version: Package version if known
        location: Where the extension code lives after install
        origin_location: Local path it was installed from, if any
        preference: Per-extension preference mapping from config
        provides_scraper: Whether the instance satisfies ScraperContract
    """
    defaulted = []

    ext_id = _text(getattr(instance, "id", None))
    if ext_id is None:
        ext_id = package_name
        defaulted.append("id")

    name = _text(getattr(instance, "name", None))
    if name is None:
        name = package_name
        defaulted.append("name")

    author = _text(getattr(instance, "author", None))
    if author is None:
        author = DEFAULT_AUTHOR
        defaulted.append("author")

    description = _text(getattr(instance, "description", None))
    if description is None:
        description = ""
        defaulted.append("description")

    return ExtensionInfo(
        id=ext_id,
        name=name,
        version=version or "0.0.0",
        author=author,
        description=description,
        preference=dict(preference or {}),
        location=location,
        origin_location=origin_location,
        has_dispose=callable(getattr(instance, "dispose", None)),
        provides_scraper=provides_scraper,
        defaulted_fields=defaulted,
    )
