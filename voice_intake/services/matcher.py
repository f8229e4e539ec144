"""
Directory matching of caller-provided location and organization names.

Both sides are normalized aggressively before an exact comparison: Unicode
compatibility forms are unified, case is folded, diacritics are removed and runs
of whitespace collapse to a single space. "  LINCOLN   Schóol " therefore matches
"Lincoln School".
"""

import unicodedata
from typing import Iterable, Optional

from voice_intake.models.records import DirectoryEntry


def normalize_key(value: Optional[str]) -> str:
    """Return the comparison key for a free-text name."""
    text = unicodedata.normalize("NFKC", str(value or "")).casefold()
    decomposed = unicodedata.normalize("NFKD", text)
    folded = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(folded.split())


def find_matching_entry(entries: Iterable[DirectoryEntry], location: str,
                        organization: str) -> Optional[DirectoryEntry]:
    """
    Find the directory entry whose location and organization both match.

    Args:
        entries: Current directory snapshot
        location: Location name as collected from the caller
        organization: Organization name as collected from the caller

    Returns:
        The first matching entry, or None
    """
    location_key = normalize_key(location)
    organization_key = normalize_key(organization)
    if not location_key or not organization_key:
        return None
    for entry in entries:
        if (normalize_key(entry.locationName) == location_key
                and normalize_key(entry.organizationName) == organization_key):
            return entry
    return None
