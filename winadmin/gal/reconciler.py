"""
Directory reconciler for Global Address List synchronization.

Brings the local contacts store into agreement with the organization's
directory:
- Select the online address list, falling back to the offline copy
- Skip entries that are not resolvable directory users
- Match each user to a local contact by email address
- Create missing contacts and overwrite the mapped fields of existing ones

The sync is one-way and additive: local contacts that are absent from the
directory are never deleted. There is no rollback; if a run aborts, the
contacts already written in that run stay written.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from winadmin.gal.models import DirectoryEntry, EntryKind, LocalContact

logger = logging.getLogger(__name__)


class DirectorySyncError(Exception):
    """Base exception for fatal directory sync errors."""

    pass


class DirectorySourceUnavailable(DirectorySyncError):
    """Raised when neither the primary nor the secondary directory has entries."""

    pass


class LocalStoreUnavailable(DirectorySyncError):
    """Raised when the local contacts collection cannot be opened."""

    pass


class MatchPolicy(str, Enum):
    """Which local contact is treated as the match when several share an email."""

    FIRST_MATCH = "first_match"  # the store's first search result wins


class AddressEntry(Protocol):
    """One unresolved entry of an address list."""

    display_name: str
    kind: EntryKind

    def resolve(self) -> Optional[DirectoryEntry]: ...


class DirectorySource(Protocol):
    """An enumerable address list."""

    name: str

    def count(self) -> int: ...

    def entries(self) -> Iterable[AddressEntry]: ...


class ContactCollection(Protocol):
    """A searchable, appendable collection of local contacts."""

    def search(self, email: str) -> list[LocalContact]: ...

    def create(self, contact: LocalContact) -> LocalContact: ...

    def update(self, contact: LocalContact) -> None: ...


class LocalStore(Protocol):
    """Provider of the target contacts collection."""

    name: str

    def open(self) -> ContactCollection: ...


@dataclass
class SyncReport:
    """
    Counts from one sync run.

    Attributes:
        created: Local contacts created
        updated: Existing local contacts overwritten
        skipped: Entries that were not resolvable users
        duplicates: Matches where the local store held more than one contact
        cancelled: True if the run was stopped before the last entry
        source_name: Address list the entries came from
    """

    created: int = 0
    updated: int = 0
    skipped: int = 0
    duplicates: int = 0
    cancelled: bool = False
    source_name: str = ""

    @property
    def processed(self) -> int:
        return self.created + self.updated + self.skipped


def _entry_count(source: DirectorySource) -> int:
    try:
        return source.count()
    except DirectorySourceUnavailable as e:
        logger.warning(f"Address list '{source.name}' is unavailable: {e}")
        return 0


def resolve_directory_source(
    primary: DirectorySource, secondary: Optional[DirectorySource] = None
) -> DirectorySource:
    """
    Pick the address list to read from.

    The primary (online) list is used when it can be opened and has entries;
    otherwise the secondary (offline) list is tried.

    Raises:
        DirectorySourceUnavailable: If neither list has entries
    """
    count = _entry_count(primary)
    if count > 0:
        logger.info(f"Using address list '{primary.name}' ({count} entries)")
        return primary

    if secondary is not None:
        logger.warning(
            f"Address list '{primary.name}' is empty or unavailable; "
            f"trying '{secondary.name}'"
        )
        count = _entry_count(secondary)
        if count > 0:
            logger.info(f"Using address list '{secondary.name}' ({count} entries)")
            return secondary

    names = [primary.name] + ([secondary.name] if secondary is not None else [])
    raise DirectorySourceUnavailable(
        f"No entries found in {' or '.join(repr(n) for n in names)}"
    )


class DirectoryReconciler:
    """
    Create-or-update local contacts from a directory.

    Attributes:
        match_policy: How duplicate local matches are resolved

    Usage:
        reconciler = DirectoryReconciler()
        report = reconciler.sync(
            gal, contacts_store, secondary=offline_gal, should_stop=stop.is_set
        )
        print(f"{report.created} created, {report.updated} updated")
    """

    def __init__(self, match_policy: MatchPolicy = MatchPolicy.FIRST_MATCH):
        try:
            self.match_policy = MatchPolicy(match_policy)
        except ValueError as e:
            raise ValueError(f"Unsupported match policy: {match_policy}") from e

    def _select(self, matches: list[LocalContact], email: str) -> LocalContact:
        if len(matches) > 1:
            logger.warning(
                f"{len(matches)} local contacts share {email}; updating the first"
            )
        return matches[0]

    def sync(
        self,
        directory_source: DirectorySource,
        local_store: LocalStore,
        secondary: Optional[DirectorySource] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> SyncReport:
        """
        Reconcile the local store against the directory.

        Args:
            directory_source: Primary (online) address list
            local_store: Store holding the target contacts collection
            secondary: Fallback (offline) address list
            should_stop: Checked before each entry; returning True ends the
                         run early with a partial report

        Returns:
            SyncReport with aggregate counts

        Raises:
            DirectorySourceUnavailable: If no address list has entries
            LocalStoreUnavailable: If the contacts collection cannot be opened
        """
        source = resolve_directory_source(directory_source, secondary)
        collection = local_store.open()
        logger.info(f"Syncing '{source.name}' into '{local_store.name}'")

        report = SyncReport(source_name=source.name)

        for raw in source.entries():
            if should_stop is not None and should_stop():
                logger.warning("Sync cancelled; remaining entries not processed")
                report.cancelled = True
                break

            if raw.kind != EntryKind.USER:
                logger.debug(f"Skipping {raw.display_name} ({raw.kind.value})")
                report.skipped += 1
                continue

            entry = raw.resolve()
            if entry is None:
                logger.debug(f"Skipping {raw.display_name}: not a resolvable user")
                report.skipped += 1
                continue

            if not entry.email:
                logger.warning(f"Skipping {raw.display_name}: no primary email address")
                report.skipped += 1
                continue

            matches = collection.search(entry.email)
            if not matches:
                collection.create(LocalContact.from_directory(entry))
                report.created += 1
                logger.info(f"Created contact {entry.display_name} <{entry.email}>")
                continue

            if len(matches) > 1:
                report.duplicates += 1
            contact = self._select(matches, entry.email)
            changed = contact.apply_directory(entry)
            report.updated += 1
            if changed:
                collection.update(contact)
                logger.info(
                    f"Updated contact {entry.display_name} <{entry.email}>: "
                    f"{', '.join(changed)}"
                )
            else:
                logger.debug(f"Contact {entry.display_name} <{entry.email}> is current")

        logger.info(
            f"Sync finished: {report.created} created, {report.updated} updated, "
            f"{report.skipped} skipped"
        )
        return report
