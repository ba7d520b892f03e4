"""
Tests for the Outlook adapters.

The Outlook object model is replaced with MagicMock objects shaped like the
COM collections (1-based Item(), integer Count), so these tests run without
Outlook or pywin32.
"""

from unittest.mock import MagicMock, PropertyMock, patch

import pytest
from conftest import FakeStore

from winadmin.gal.models import EntryKind, LocalContact
from winadmin.gal.outlook import (
    OL_CONTACT_ITEM,
    OL_FOLDER_CONTACTS,
    OutlookAddressEntry,
    OutlookAddressList,
    OutlookContactCollection,
    OutlookContactStore,
    entry_kind,
)
from winadmin.gal.reconciler import (
    DirectoryReconciler,
    DirectorySourceUnavailable,
    LocalStoreUnavailable,
)


class FakeComError(Exception):
    pass


@pytest.fixture(autouse=True)
def com_error():
    with patch("winadmin.gal.outlook._com_error", return_value=FakeComError):
        yield FakeComError


def com_collection(items):
    collection = MagicMock()
    collection.Count = len(items)
    collection.Item.side_effect = lambda index: items[index - 1]
    return collection


def address_entry(name="Alice Anders", user_type=0, display_type=0, user=None):
    entry = MagicMock()
    entry.Name = name
    entry.AddressEntryUserType = user_type
    entry.DisplayType = display_type
    entry.GetExchangeUser.return_value = user
    return entry


def exchange_user(**overrides):
    user = MagicMock()
    user.FirstName = "Alice"
    user.LastName = "Anders"
    user.PrimarySmtpAddress = "a@x.com"
    user.JobTitle = "Engineer"
    user.CompanyName = "Example Corp"
    user.BusinessTelephoneNumber = "+1 555 0100"
    user.MobileTelephoneNumber = None
    for key, value in overrides.items():
        setattr(user, key, value)
    return user


def unreadable_entry(name):
    entry = MagicMock()
    entry.Name = name
    entry.DisplayType = 0
    type(entry).AddressEntryUserType = PropertyMock(
        side_effect=FakeComError("access denied")
    )
    return entry


def contact_item(email="a@x.com", first="Alice"):
    item = MagicMock()
    item.Email1Address = email
    item.FirstName = first
    item.LastName = "Anders"
    item.JobTitle = ""
    item.CompanyName = ""
    item.BusinessTelephoneNumber = ""
    item.MobileTelephoneNumber = ""
    return item


class TestEntryKind:
    """Tests for AddressEntry classification."""

    def test_exchange_user(self):
        assert entry_kind(address_entry(user_type=0)) == EntryKind.USER

    def test_remote_user(self):
        assert entry_kind(address_entry(user_type=5)) == EntryKind.USER

    def test_distribution_lists(self):
        assert entry_kind(address_entry(user_type=1)) == EntryKind.DISTRIBUTION_LIST
        assert entry_kind(address_entry(user_type=11)) == EntryKind.DISTRIBUTION_LIST

    def test_room_and_equipment_are_resources(self):
        assert entry_kind(address_entry(display_type=8)) == EntryKind.RESOURCE
        assert entry_kind(address_entry(display_type=7)) == EntryKind.RESOURCE

    def test_other_types(self):
        assert entry_kind(address_entry(user_type=10)) == EntryKind.OTHER


class TestOutlookAddressEntry:
    """Tests for resolving address entries to directory users."""

    def test_resolve_maps_exchange_user(self):
        entry = OutlookAddressEntry(address_entry(user=exchange_user()))

        resolved = entry.resolve()

        assert resolved.display_name == "Alice Anders"
        assert resolved.kind == EntryKind.USER
        assert resolved.email == "a@x.com"
        assert resolved.company == "Example Corp"
        assert resolved.mobile_phone == ""

    def test_resolve_none_without_exchange_user(self):
        assert OutlookAddressEntry(address_entry(user=None)).resolve() is None

    def test_resolve_none_on_com_error(self):
        raw = address_entry()
        raw.GetExchangeUser.side_effect = FakeComError("not an Exchange user")

        assert OutlookAddressEntry(raw).resolve() is None


class TestOutlookAddressList:
    """Tests for address-list enumeration."""

    def test_count_and_entries(self):
        raw_entries = [address_entry("A"), address_entry("B", user_type=1)]
        address_list = MagicMock()
        address_list.AddressEntries = com_collection(raw_entries)
        namespace = MagicMock()
        namespace.AddressLists.Item.return_value = address_list

        gal = OutlookAddressList(namespace, "Global Address List")

        assert gal.count() == 2
        entries = list(gal.entries())
        assert [e.display_name for e in entries] == ["A", "B"]
        assert [e.kind for e in entries] == [
            EntryKind.USER,
            EntryKind.DISTRIBUTION_LIST,
        ]
        namespace.AddressLists.Item.assert_called_with("Global Address List")

    def test_unreadable_entry_classified_other(self):
        broken = unreadable_entry("Broken")

        entry = OutlookAddressEntry(broken)

        assert entry.display_name == "Broken"
        assert entry.kind == EntryKind.OTHER

    def test_entry_that_cannot_be_fetched_is_other(self):
        first = address_entry("A")

        def item(index):
            if index == 2:
                raise FakeComError("item unavailable")
            return first

        entries = MagicMock()
        entries.Count = 2
        entries.Item.side_effect = item
        address_list = MagicMock()
        address_list.AddressEntries = entries
        namespace = MagicMock()
        namespace.AddressLists.Item.return_value = address_list

        listed = list(OutlookAddressList(namespace, "Global Address List").entries())

        assert [e.kind for e in listed] == [EntryKind.USER, EntryKind.OTHER]
        assert listed[1].resolve() is None

    def test_sync_skips_unreadable_entry(self):
        """One bad entry is skipped and the rest of the list still syncs."""
        broken = unreadable_entry("Broken")
        raw_entries = [
            address_entry("Alice Anders", user=exchange_user()),
            broken,
            address_entry(
                "Bob Brown",
                user=exchange_user(
                    FirstName="Bob", LastName="Brown", PrimarySmtpAddress="b@x.com"
                ),
            ),
        ]
        address_list = MagicMock()
        address_list.AddressEntries = com_collection(raw_entries)
        namespace = MagicMock()
        namespace.AddressLists.Item.return_value = address_list
        store = FakeStore()

        report = DirectoryReconciler().sync(
            OutlookAddressList(namespace, "Global Address List"), store
        )

        assert (report.created, report.skipped) == (2, 1)
        assert [c.email for c in store.collection.contacts] == ["a@x.com", "b@x.com"]

    def test_missing_list_unavailable(self):
        namespace = MagicMock()
        namespace.AddressLists.Item.side_effect = FakeComError("not found")

        with pytest.raises(DirectorySourceUnavailable, match="Offline"):
            OutlookAddressList(namespace, "Offline Global Address List").count()


class TestOutlookContactCollection:
    """Tests for contact search, create and update."""

    def test_search_uses_email_restriction(self):
        folder = MagicMock()
        folder.Items.Restrict.return_value = com_collection([contact_item()])
        collection = OutlookContactCollection(folder)

        matches = collection.search("a@x.com")

        folder.Items.Restrict.assert_called_once_with("[Email1Address] = 'a@x.com'")
        assert len(matches) == 1
        assert matches[0].email == "a@x.com"
        assert matches[0].first_name == "Alice"
        assert matches[0].handle is not None

    def test_search_escapes_quotes(self):
        folder = MagicMock()
        folder.Items.Restrict.return_value = com_collection([])

        assert OutlookContactCollection(folder).search("o'brien@x.com") == []
        folder.Items.Restrict.assert_called_once_with(
            "[Email1Address] = 'o''brien@x.com'"
        )

    def test_create_sets_properties_and_saves(self):
        item = MagicMock()
        folder = MagicMock()
        folder.Items.Add.return_value = item
        contact = LocalContact(email="a@x.com", first_name="Alice", company="Example")

        created = OutlookContactCollection(folder).create(contact)

        folder.Items.Add.assert_called_once_with(OL_CONTACT_ITEM)
        assert item.Email1Address == "a@x.com"
        assert item.FirstName == "Alice"
        assert item.CompanyName == "Example"
        item.Save.assert_called_once_with()
        assert created.handle is item

    def test_update_keeps_email(self):
        item = contact_item(email="A@X.com")
        contact = LocalContact(email="a@x.com", first_name="Alicia", handle=item)

        OutlookContactCollection(MagicMock()).update(contact)

        assert item.FirstName == "Alicia"
        assert item.Email1Address == "A@X.com"
        item.Save.assert_called_once_with()

    def test_update_requires_handle(self):
        with pytest.raises(ValueError):
            OutlookContactCollection(MagicMock()).update(LocalContact(email="a@x.com"))


class TestOutlookContactStore:
    """Tests for opening the default Contacts folder."""

    def test_open_default_folder(self):
        folder = MagicMock()
        folder.Name = "Contacts"
        namespace = MagicMock()
        namespace.GetDefaultFolder.return_value = folder

        collection = OutlookContactStore(namespace).open()

        namespace.GetDefaultFolder.assert_called_once_with(OL_FOLDER_CONTACTS)
        assert collection.folder is folder

    def test_open_failure_unavailable(self):
        namespace = MagicMock()
        namespace.GetDefaultFolder.side_effect = FakeComError("no profile")

        with pytest.raises(LocalStoreUnavailable):
            OutlookContactStore(namespace).open()

    def test_missing_folder_unavailable(self):
        namespace = MagicMock()
        namespace.GetDefaultFolder.return_value = None

        with pytest.raises(LocalStoreUnavailable):
            OutlookContactStore(namespace).open()
