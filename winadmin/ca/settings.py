"""
Certificate Authority setting definitions.

Describes the registry-backed CA settings that winadmin manages:
- The four period-unit settings and their fixed unit companions
- Default values used outside custom mode
- The desired-settings map built from operator input
- Optional validation of custom period-unit values
- SettingsSnapshot, the write-once capture taken before any mutation
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional

# Registry node used by certutil (CA\<SettingName>)
DEFAULT_TARGET = "CA"

# Setting names
DS_CONFIG_DN = "DSConfigDN"
CRL_PERIOD_UNITS = "CRLPeriodUnits"
CRL_DELTA_PERIOD_UNITS = "CRLDeltaPeriodUnits"
CRL_OVERLAP_PERIOD_UNITS = "CRLOverlapPeriodUnits"
VALIDITY_PERIOD_UNITS = "ValidityPeriodUnits"
CA_CERT_PUBLICATION_URLS = "CACertPublicationURLs"
CRL_PUBLICATION_URLS = "CRLPublicationURLs"
AUDIT_FILTER = "AuditFilter"

# Audit every CA event category (start/stop, backup/restore, requests,
# revocations, security, key archival, configuration changes)
AUDIT_FILTER_ALL = "127"

# certutil separates REG_MULTI_SZ entries with a literal backslash-n
MULTI_VALUE_SEPARATOR = "\\n"

# Publication URL templates. %1 = server DNS name, %3 = CA name,
# %4 = certificate name suffix, %8 = CRL name suffix, %9 = delta CRL allowed
AIA_LOCAL_TEMPLATE = r"1:%WINDIR%\system32\CertSrv\CertEnroll\%1_%3%4.crt"
AIA_HTTP_TEMPLATE = "2:http://{fqdn}/CertEnroll/%1_%3%4.crt"
CDP_LOCAL_TEMPLATE = r"65:%WINDIR%\system32\CertSrv\CertEnroll\%3%8%9.crl"
CDP_HTTP_TEMPLATE = "6:http://{fqdn}/CertEnroll/%3%8%9.crl"

_UNITS_SUFFIX = "Units"


class SettingsValidationError(Exception):
    """Raised when a custom setting value is rejected."""

    pass


@dataclass(frozen=True)
class SettingSpec:
    """
    A period-unit setting whose unit never varies.

    Attributes:
        name: Registry value name (e.g. "CRLPeriodUnits")
        default: Value applied in default mode
        unit: Fixed unit written to the companion setting (e.g. "Weeks")
        override: Operator-supplied value used in custom mode
        allow_zero: Whether 0 is an acceptable custom value
    """

    name: str
    default: str
    unit: str
    override: Optional[str] = None
    allow_zero: bool = False

    @property
    def unit_setting(self) -> str:
        """Name of the companion unit setting ("CRLPeriodUnits" -> "CRLPeriod")."""
        if self.name.endswith(_UNITS_SUFFIX):
            return self.name[: -len(_UNITS_SUFFIX)]
        return f"{self.name}Unit"

    @property
    def value(self) -> str:
        """The value to apply: the override when given, otherwise the default."""
        return self.override if self.override is not None else self.default

    def with_override(self, override: Optional[str]) -> SettingSpec:
        return replace(self, override=override)


PERIOD_SPECS: tuple[SettingSpec, ...] = (
    SettingSpec(CRL_PERIOD_UNITS, "52", "Weeks"),
    SettingSpec(CRL_DELTA_PERIOD_UNITS, "0", "Days", allow_zero=True),
    SettingSpec(CRL_OVERLAP_PERIOD_UNITS, "12", "Hours"),
    SettingSpec(VALIDITY_PERIOD_UNITS, "5", "Years"),
)

# Unit settings applied unconditionally after the variable settings
FIXED_UNIT_SETTINGS: dict[str, str] = {
    spec.unit_setting: spec.unit for spec in PERIOD_SPECS
}

# Settings captured in every backup even when they are not being changed
ALWAYS_BACKED_UP: tuple[str, ...] = tuple(FIXED_UNIT_SETTINGS) + (AUDIT_FILTER,)


def default_period_units() -> dict[str, str]:
    """Return the default-mode period-unit values in application order."""
    return {spec.name: spec.default for spec in PERIOD_SPECS}


def resolve_period_specs(
    custom_values: Optional[Mapping[str, Optional[str]]] = None,
) -> tuple[SettingSpec, ...]:
    """
    Attach operator overrides to the period-unit specs.

    Args:
        custom_values: Mapping of setting name to custom value. None selects
                       default mode. Values are forwarded verbatim.

    Returns:
        The specs with overrides applied
    """
    if custom_values is None:
        return PERIOD_SPECS
    unknown = set(custom_values) - {spec.name for spec in PERIOD_SPECS}
    if unknown:
        raise SettingsValidationError(
            f"Unknown period setting(s): {', '.join(sorted(unknown))}"
        )
    return tuple(spec.with_override(custom_values.get(spec.name)) for spec in PERIOD_SPECS)


def validate_period_units(specs: Iterable[SettingSpec]) -> None:
    """
    Check that period-unit values are whole numbers.

    CRLDeltaPeriodUnits accepts 0 (delta CRLs disabled); every other
    period must be strictly positive.

    Raises:
        SettingsValidationError: Listing every rejected setting
    """
    problems = []
    for spec in specs:
        value = spec.value.strip()
        if not re.fullmatch(r"\d+", value):
            problems.append(f"{spec.name}={spec.value!r} is not a whole number")
        elif int(value) == 0 and not spec.allow_zero:
            problems.append(f"{spec.name} must be greater than 0")
    if problems:
        raise SettingsValidationError("; ".join(problems))


def aia_publication_urls(fqdn: str) -> str:
    """Build the CACertPublicationURLs value for an AIA host."""
    return MULTI_VALUE_SEPARATOR.join(
        [AIA_LOCAL_TEMPLATE, AIA_HTTP_TEMPLATE.format(fqdn=fqdn)]
    )


def cdp_publication_urls(fqdn: str) -> str:
    """Build the CRLPublicationURLs value for a CRL distribution host."""
    return MULTI_VALUE_SEPARATOR.join(
        [CDP_LOCAL_TEMPLATE, CDP_HTTP_TEMPLATE.format(fqdn=fqdn)]
    )


@dataclass
class CAConfiguration:
    """
    Fully resolved operator input for one CA configuration run.

    The CLI fills this in from flags, the config file and prompts; the
    reconciler never prompts.
    """

    ds_config_dn: str
    aia_fqdn: str
    custom_units: Optional[dict[str, str]] = None
    target_id: str = DEFAULT_TARGET

    @property
    def custom_mode(self) -> bool:
        return self.custom_units is not None

    def period_specs(self) -> tuple[SettingSpec, ...]:
        return resolve_period_specs(self.custom_units)

    def desired_settings(self) -> dict[str, str]:
        """
        Build the ordered desired-settings map.

        The fixed unit settings are not included; the reconciler applies them
        after these values.
        """
        desired = {DS_CONFIG_DN: self.ds_config_dn}
        for spec in self.period_specs():
            desired[spec.name] = spec.value
        desired[CA_CERT_PUBLICATION_URLS] = aia_publication_urls(self.aia_fqdn)
        desired[CRL_PUBLICATION_URLS] = cdp_publication_urls(self.aia_fqdn)
        desired[AUDIT_FILTER] = AUDIT_FILTER_ALL
        return desired


@dataclass(frozen=True)
class SettingsSnapshot:
    """
    Values captured immediately before mutation.

    Write-once audit artifact: created by the reconciler, appended to the
    backup sink, never changed afterwards.

    Attributes:
        target_id: Registry node the values were read from (e.g. "CA")
        entries: Ordered (setting name, captured value) pairs
        taken_at: Capture time (None for entries recovered from a backup
                  file written without a snapshot header)
    """

    target_id: str
    entries: tuple[tuple[str, str], ...] = field(default_factory=tuple)
    taken_at: Optional[datetime] = None

    def keyed_entries(self) -> list[tuple[str, str]]:
        """Entries keyed as "<target>\\<name>" for the backup file."""
        return [(f"{self.target_id}\\{name}", value) for name, value in self.entries]

    def names(self) -> list[str]:
        return [name for name, _ in self.entries]

    def as_dict(self) -> dict[str, str]:
        return dict(self.entries)

    def header(self) -> str:
        stamp = self.taken_at.isoformat() if self.taken_at else "unknown"
        return f"# snapshot {self.target_id} {stamp}"
