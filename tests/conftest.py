"""
Shared in-memory fakes for the reconciler tests.

The fakes implement the SettingRegistry, DirectorySource and LocalStore
interfaces without touching certutil or Outlook, and record every call so
tests can assert on ordering.
"""

import logging
from typing import Optional

import pytest

from winadmin.ca.registry import RegistryError, WriteOutcome
from winadmin.gal.models import DirectoryEntry, EntryKind, LocalContact
from winadmin.gal.reconciler import DirectorySourceUnavailable, LocalStoreUnavailable
from winadmin.utils.logging import LOGGER_NAME


class FakeRegistry:
    """Dictionary-backed SettingRegistry that logs every call."""

    def __init__(self, values=None, failing=(), raising=(), read_raising=()):
        self.values = dict(values or {})
        self.failing = set(failing)
        self.raising = set(raising)
        self.read_raising = set(read_raising)
        self.calls: list[tuple[str, str]] = []

    def read(self, name: str) -> str:
        self.calls.append(("read", name))
        if name in self.read_raising:
            raise RegistryError(f"timed out reading {name}")
        if name not in self.values:
            return f"CA\\{name}: The system cannot find the file specified."
        return f"  {name} REG_SZ = {self.values[name]}"

    def write(self, name: str, value: str) -> WriteOutcome:
        self.calls.append(("write", name))
        if name in self.raising:
            raise RegistryError(f"certutil timed out writing {name}")
        if name in self.failing:
            return WriteOutcome(False, "CertUtil: -setreg command FAILED: 0x80070005")
        self.values[name] = value
        return WriteOutcome(True, "CertUtil: -setreg command completed successfully.")

    def read_all(self) -> str:
        self.calls.append(("read_all", ""))
        return "\n".join(f"  {k} REG_SZ = {v}" for k, v in self.values.items())

    def writes(self) -> list[str]:
        return [name for op, name in self.calls if op == "write"]


class FakeAddressEntry:
    """Address-list entry with a canned resolution."""

    def __init__(self, display_name, kind, resolved: Optional[DirectoryEntry] = None):
        self.display_name = display_name
        self.kind = kind
        self._resolved = resolved
        self.resolve_calls = 0

    def resolve(self) -> Optional[DirectoryEntry]:
        self.resolve_calls += 1
        return self._resolved


class FakeDirectory:
    """Address list over a fixed entry list."""

    def __init__(self, name, entries=(), unavailable=False):
        self.name = name
        self._entries = list(entries)
        self.unavailable = unavailable
        self.enumerated = False

    def count(self) -> int:
        if self.unavailable:
            raise DirectorySourceUnavailable(f"{self.name} not found")
        return len(self._entries)

    def entries(self):
        self.enumerated = True
        return iter(self._entries)


class FakeCollection:
    """List-backed contact collection with exact email matching."""

    def __init__(self, contacts=()):
        self.contacts = [LocalContact(**c.field_values()) for c in contacts]
        self.created: list[LocalContact] = []
        self.updated: list[LocalContact] = []

    def search(self, email: str) -> list[LocalContact]:
        return [c for c in self.contacts if c.email == email]

    def create(self, contact: LocalContact) -> LocalContact:
        self.contacts.append(contact)
        self.created.append(contact)
        return contact

    def update(self, contact: LocalContact) -> None:
        self.updated.append(contact)

    def snapshot(self) -> list[dict]:
        return [c.field_values() for c in self.contacts]


class FakeStore:
    """LocalStore that hands out one FakeCollection."""

    name = "Contacts"

    def __init__(self, collection=None, missing=False):
        self.collection = collection if collection is not None else FakeCollection()
        self.missing = missing
        self.opened = 0

    def open(self) -> FakeCollection:
        self.opened += 1
        if self.missing:
            raise LocalStoreUnavailable("Contacts folder not available")
        return self.collection

    @property
    def writes(self) -> int:
        return len(self.collection.created) + len(self.collection.updated)


def make_user(email="a@x.com", first="Alice", last="Anders", **overrides):
    """Build a resolvable user address entry."""
    values = dict(
        display_name=f"{first} {last}",
        kind=EntryKind.USER,
        email=email,
        first_name=first,
        last_name=last,
        job_title="Engineer",
        company="Example Corp",
        business_phone="+1 555 0100",
        mobile_phone="+1 555 0199",
    )
    values.update(overrides)
    entry = DirectoryEntry(**values)
    return FakeAddressEntry(entry.display_name, EntryKind.USER, entry)


@pytest.fixture
def registry():
    """FakeRegistry pre-populated with typical CA values."""
    return FakeRegistry(
        {
            "CRLPeriodUnits": "1",
            "CRLPeriod": "Weeks",
            "ValidityPeriodUnits": "2",
            "ValidityPeriod": "Years",
        }
    )


@pytest.fixture
def store():
    """Empty FakeStore."""
    return FakeStore()


@pytest.fixture(autouse=True)
def reset_winadmin_logger():
    """Undo setup_logging() so caplog sees records in every test."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.propagate = True
    logger.disabled = False
    logger.setLevel(logging.NOTSET)
