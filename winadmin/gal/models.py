"""
Data model for Global Address List synchronization.

DirectoryEntry is the read-only identity resolved from the organization's
directory; LocalContact is the record in the local contacts store that is
kept in agreement with it, keyed by email address.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class EntryKind(str, Enum):
    """Kind of an address-list entry."""

    USER = "user"  # resolvable directory user
    RESOURCE = "resource"  # room or equipment mailbox
    DISTRIBUTION_LIST = "distribution_list"
    OTHER = "other"


# Fields copied from the directory to the local contact, in copy order.
# Email is the match key: copied on create, never on update.
MATCH_KEY = "email"
MAPPED_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "job_title",
    "company",
    "business_phone",
    "mobile_phone",
)
UPDATABLE_FIELDS = tuple(f for f in MAPPED_FIELDS if f != MATCH_KEY)


@dataclass(frozen=True)
class DirectoryEntry:
    """
    A resolved directory identity.

    Attributes:
        display_name: Name shown in the address list
        kind: Entry kind reported by the directory
        email: Primary SMTP address (the match key)
        first_name: Given name
        last_name: Family name
        job_title: Job title
        company: Company name
        business_phone: Business telephone number
        mobile_phone: Mobile telephone number
    """

    display_name: str
    kind: EntryKind
    email: str
    first_name: str = ""
    last_name: str = ""
    job_title: str = ""
    company: str = ""
    business_phone: str = ""
    mobile_phone: str = ""


@dataclass
class LocalContact:
    """
    A contact in the local store.

    Attributes:
        email: Email address used to match directory entries
        first_name .. mobile_phone: Fields mirrored from the directory
        handle: Store-specific object backing this record (e.g. a COM item);
                not part of the contact's value
    """

    email: str
    first_name: str = ""
    last_name: str = ""
    job_title: str = ""
    company: str = ""
    business_phone: str = ""
    mobile_phone: str = ""
    handle: Any = field(default=None, compare=False, repr=False)

    @classmethod
    def from_directory(cls, entry: DirectoryEntry) -> "LocalContact":
        """Create a contact with every mapped field copied verbatim."""
        return cls(**{name: getattr(entry, name) for name in MAPPED_FIELDS})

    def apply_directory(self, entry: DirectoryEntry) -> list[str]:
        """
        Overwrite every mapped field except the match key.

        Returns:
            Names of the fields whose value changed
        """
        changed = []
        for name in UPDATABLE_FIELDS:
            value = getattr(entry, name)
            if getattr(self, name) != value:
                changed.append(name)
            setattr(self, name, value)
        return changed

    def field_values(self) -> dict[str, str]:
        """Mapped field values, without the store handle."""
        return {name: getattr(self, name) for name in MAPPED_FIELDS}


def optional_text(value: Optional[Any]) -> str:
    """Normalize a possibly-missing directory attribute to a string."""
    return "" if value is None else str(value)
