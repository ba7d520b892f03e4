"""
Outlook desktop-automation adapters.

Implements the directory source and local store interfaces on top of the
Outlook object model (COM, via pywin32):
- OutlookAddressList: an address list such as "Global Address List"
- OutlookAddressEntry: one entry, resolved through GetExchangeUser()
- OutlookContactStore / OutlookContactCollection: the default Contacts folder

Email lookups use Items.Restrict on Email1Address, so matching follows
Outlook's own (case-insensitive) comparison.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any, Optional

from winadmin.gal.models import DirectoryEntry, EntryKind, LocalContact, optional_text
from winadmin.gal.reconciler import DirectorySourceUnavailable, LocalStoreUnavailable

logger = logging.getLogger(__name__)

# OlDefaultFolders.olFolderContacts
OL_FOLDER_CONTACTS = 10

# OlItemType.olContactItem
OL_CONTACT_ITEM = 2

# OlAddressEntryUserType values
OL_EXCHANGE_USER = 0
OL_EXCHANGE_DISTRIBUTION_LIST = 1
OL_EXCHANGE_REMOTE_USER = 5
OL_OUTLOOK_DISTRIBUTION_LIST = 11

# OlDisplayType values for resource mailboxes
OL_EQUIPMENT = 7
OL_ROOM = 8

USER_TYPES = {OL_EXCHANGE_USER, OL_EXCHANGE_REMOTE_USER}
DISTRIBUTION_LIST_TYPES = {OL_EXCHANGE_DISTRIBUTION_LIST, OL_OUTLOOK_DISTRIBUTION_LIST}
RESOURCE_DISPLAY_TYPES = {OL_EQUIPMENT, OL_ROOM}

# LocalContact field -> ContactItem property
CONTACT_PROPERTIES = {
    "first_name": "FirstName",
    "last_name": "LastName",
    "email": "Email1Address",
    "job_title": "JobTitle",
    "company": "CompanyName",
    "business_phone": "BusinessTelephoneNumber",
    "mobile_phone": "MobileTelephoneNumber",
}

# DirectoryEntry field -> ExchangeUser property
EXCHANGE_USER_PROPERTIES = {
    "first_name": "FirstName",
    "last_name": "LastName",
    "email": "PrimarySmtpAddress",
    "job_title": "JobTitle",
    "company": "CompanyName",
    "business_phone": "BusinessTelephoneNumber",
    "mobile_phone": "MobileTelephoneNumber",
}


def _com_error() -> type[Exception]:
    import pywintypes

    return pywintypes.com_error


def connect_outlook() -> Any:
    """
    Attach to (or start) Outlook and return its MAPI namespace.

    Raises:
        LocalStoreUnavailable: If Outlook cannot be started
    """
    import win32com.client

    try:
        application = win32com.client.Dispatch("Outlook.Application")
        return application.GetNamespace("MAPI")
    except _com_error() as e:
        raise LocalStoreUnavailable(f"Cannot start Outlook: {e}") from e


def entry_kind(address_entry: Any) -> EntryKind:
    """Classify an Outlook AddressEntry."""
    if getattr(address_entry, "DisplayType", None) in RESOURCE_DISPLAY_TYPES:
        return EntryKind.RESOURCE
    user_type = address_entry.AddressEntryUserType
    if user_type in USER_TYPES:
        return EntryKind.USER
    if user_type in DISTRIBUTION_LIST_TYPES:
        return EntryKind.DISTRIBUTION_LIST
    return EntryKind.OTHER


def _items(collection: Any) -> Iterator[Any]:
    # COM collections are 1-based
    for index in range(1, collection.Count + 1):
        yield collection.Item(index)


class OutlookAddressEntry:
    """An address-list entry that resolves to a directory user."""

    def __init__(self, address_entry: Any):
        self._entry = address_entry
        self.display_name = ""
        # Unreadable entries stay OTHER so the sync skips them
        self.kind = EntryKind.OTHER
        if address_entry is None:
            return
        try:
            self.display_name = optional_text(address_entry.Name)
            self.kind = entry_kind(address_entry)
        except _com_error() as e:
            logger.warning(f"Cannot read address entry {self.display_name!r}: {e}")
            self.kind = EntryKind.OTHER

    def resolve(self) -> Optional[DirectoryEntry]:
        """Return the full user record, or None if the entry has none."""
        if self._entry is None:
            return None
        try:
            user = self._entry.GetExchangeUser()
            if user is None:
                return None
            values = {
                field: optional_text(getattr(user, prop, None))
                for field, prop in EXCHANGE_USER_PROPERTIES.items()
            }
        except _com_error() as e:
            logger.debug(f"GetExchangeUser failed for {self.display_name}: {e}")
            return None
        return DirectoryEntry(display_name=self.display_name, kind=self.kind, **values)


class OutlookAddressList:
    """
    A named Outlook address list.

    Usage:
        namespace = connect_outlook()
        gal = OutlookAddressList(namespace, "Global Address List")
        for entry in gal.entries():
            ...
    """

    def __init__(self, namespace: Any, name: str):
        self.namespace = namespace
        self.name = name

    def _address_list(self) -> Any:
        try:
            return self.namespace.AddressLists.Item(self.name)
        except _com_error() as e:
            raise DirectorySourceUnavailable(
                f"Address list '{self.name}' not found: {e}"
            ) from e

    def count(self) -> int:
        try:
            return self._address_list().AddressEntries.Count
        except _com_error() as e:
            raise DirectorySourceUnavailable(
                f"Cannot read address list '{self.name}': {e}"
            ) from e

    def entries(self) -> Iterator[OutlookAddressEntry]:
        address_entries = self._address_list().AddressEntries
        for index in range(1, address_entries.Count + 1):
            try:
                address_entry = address_entries.Item(index)
            except _com_error() as e:
                logger.warning(f"Cannot read entry {index} of '{self.name}': {e}")
                address_entry = None
            yield OutlookAddressEntry(address_entry)


def _contact_from_item(item: Any) -> LocalContact:
    values = {
        field: optional_text(getattr(item, prop, None))
        for field, prop in CONTACT_PROPERTIES.items()
    }
    return LocalContact(handle=item, **values)


def _restrict_filter(email: str) -> str:
    escaped = email.replace("'", "''")
    return f"[{CONTACT_PROPERTIES['email']}] = '{escaped}'"


class OutlookContactCollection:
    """The items of an Outlook contacts folder."""

    def __init__(self, folder: Any):
        self.folder = folder

    def search(self, email: str) -> list[LocalContact]:
        matches = self.folder.Items.Restrict(_restrict_filter(email))
        return [_contact_from_item(item) for item in _items(matches)]

    def create(self, contact: LocalContact) -> LocalContact:
        item = self.folder.Items.Add(OL_CONTACT_ITEM)
        for field, prop in CONTACT_PROPERTIES.items():
            setattr(item, prop, getattr(contact, field))
        item.Save()
        contact.handle = item
        return contact

    def update(self, contact: LocalContact) -> None:
        item = contact.handle
        if item is None:
            raise ValueError(f"Contact {contact.email} is not backed by an Outlook item")
        for field, prop in CONTACT_PROPERTIES.items():
            if field == "email":
                continue
            setattr(item, prop, getattr(contact, field))
        item.Save()


class OutlookContactStore:
    """The current profile's default Contacts folder."""

    name = "Contacts"

    def __init__(self, namespace: Any):
        self.namespace = namespace

    def open(self) -> OutlookContactCollection:
        try:
            folder = self.namespace.GetDefaultFolder(OL_FOLDER_CONTACTS)
        except _com_error() as e:
            raise LocalStoreUnavailable(f"Contacts folder not available: {e}") from e
        if folder is None:
            raise LocalStoreUnavailable("Contacts folder not available")
        self.name = optional_text(getattr(folder, "Name", None)) or self.name
        return OutlookContactCollection(folder)
