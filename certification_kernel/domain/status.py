"""
Module: certification_kernel.domain.status
Responsibility: The closed status and certificate-type vocabularies, and the
    boundary parsers that turn caller input into vocabulary members.
Architecture position: Kernel > Domain.  Pure, zero I/O.  Imported by every
    other layer; imports nothing from the kernel except exceptions.

Invariants enforced:
    - A status is exactly one CustomerStatus member.  Anything else is
      rejected with UnknownStatusError, never coerced or stored.
    - A category is a CertificateType member or UNCATEGORIZED ("OTHER"),
      the bucket used for customers without a certificate type.

Failure modes:
    - UnknownStatusError for values outside the status vocabulary.
    - UnknownCategoryError for values outside the category vocabulary.
"""

from enum import Enum
from typing import Any

from certification_kernel.exceptions import UnknownCategoryError, UnknownStatusError


class CustomerStatus(str, Enum):
    """Position of a customer in the certification pipeline."""

    NEW = "NEW"
    NOTIFIED = "NOTIFIED"
    SUBMITTED = "SUBMITTED"
    CERTIFIED = "CERTIFIED"
    ABORTED = "ABORTED"
    CERTIFIED_ELSEWHERE = "CERTIFIED_ELSEWHERE"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    def __str__(self) -> str:
        return self.value


_DISPLAY_NAMES = {
    CustomerStatus.NEW: "New",
    CustomerStatus.NOTIFIED: "Notified",
    CustomerStatus.SUBMITTED: "Submitted",
    CustomerStatus.CERTIFIED: "Certified",
    CustomerStatus.ABORTED: "Aborted",
    CustomerStatus.CERTIFIED_ELSEWHERE: "Certified Elsewhere",
}

_BY_DISPLAY_NAME = {name.lower(): status for status, name in _DISPLAY_NAMES.items()}


class CertificateType(str, Enum):
    """Certificate categories used for the per-category monthly breakdown."""

    # Crane and machinery
    Q1_COMMAND = "Q1_COMMAND"
    Q2_MOBILE_CRANE = "Q2_MOBILE_CRANE"
    Q2_BRIDGE_CRANE = "Q2_BRIDGE_CRANE"
    Q2_GANTRY_CRANE = "Q2_GANTRY_CRANE"
    Q2_TOWER_CRANE = "Q2_TOWER_CRANE"
    Q2_HOIST = "Q2_HOIST"
    # Industrial vehicles
    N1_FORKLIFT = "N1_FORKLIFT"
    N2_SIGHTSEEING_CAR = "N2_SIGHTSEEING_CAR"
    # Boilers and pressure vessels
    G1_INDUSTRIAL_BOILER = "G1_INDUSTRIAL_BOILER"
    G3_BOILER_WATER_TREATMENT = "G3_BOILER_WATER_TREATMENT"
    R1_QUICK_OPEN_PRESSURE_VESSEL = "R1_QUICK_OPEN_PRESSURE_VESSEL"
    R2_MOBILE_PRESSURE_VESSEL = "R2_MOBILE_PRESSURE_VESSEL"
    P_GAS_FILLING = "P_GAS_FILLING"
    A_SPECIAL_EQUIPMENT_SAFETY = "A_SPECIAL_EQUIPMENT_SAFETY"
    T_ELEVATOR_OPERATION = "T_ELEVATOR_OPERATION"
    # Construction trades
    CONSTRUCTION_ELECTRICIAN = "CONSTRUCTION_ELECTRICIAN"
    CONSTRUCTION_WELDER = "CONSTRUCTION_WELDER"
    CONSTRUCTION_SCAFFOLDER = "CONSTRUCTION_SCAFFOLDER"
    CONSTRUCTION_LIFTING_EQUIPMENT = "CONSTRUCTION_LIFTING_EQUIPMENT"
    CONSTRUCTION_SIGNALMAN = "CONSTRUCTION_SIGNALMAN"
    CONSTRUCTION_MATERIAL_HOIST_DRIVER = "CONSTRUCTION_MATERIAL_HOIST_DRIVER"
    CONSTRUCTION_GONDOLA_INSTALLER = "CONSTRUCTION_GONDOLA_INSTALLER"
    # Electrical work
    LOW_VOLTAGE_ELECTRICIAN = "LOW_VOLTAGE_ELECTRICIAN"
    WELDING_THERMAL_CUTTING = "WELDING_THERMAL_CUTTING"
    HIGH_VOLTAGE_ELECTRICIAN = "HIGH_VOLTAGE_ELECTRICIAN"
    # Work at height
    HIGH_ALTITUDE_INSTALLATION = "HIGH_ALTITUDE_INSTALLATION"
    HIGH_ALTITUDE_SCAFFOLDING = "HIGH_ALTITUDE_SCAFFOLDING"
    REFRIGERATION_AIR_CONDITIONING = "REFRIGERATION_AIR_CONDITIONING"
    # Mining, petroleum and chemical safety
    COAL_MINE_SAFETY = "COAL_MINE_SAFETY"
    METAL_NONMETAL_MINE_SAFETY = "METAL_NONMETAL_MINE_SAFETY"
    OIL_GAS_SAFETY = "OIL_GAS_SAFETY"
    HAZARDOUS_CHEMICALS_SAFETY = "HAZARDOUS_CHEMICALS_SAFETY"
    METALLURGY_SAFETY = "METALLURGY_SAFETY"
    FIREWORKS_SAFETY = "FIREWORKS_SAFETY"
    OTHERS = "OTHERS"

    def __str__(self) -> str:
        return self.value


# Category bucket for certified customers with no certificate type.
UNCATEGORIZED = "OTHER"

ALL_STATUSES: frozenset[CustomerStatus] = frozenset(CustomerStatus)


def parse_status(value: Any) -> CustomerStatus:
    """
    Parse caller input into a CustomerStatus.

    Accepts a member, its canonical name ("CERTIFIED_ELSEWHERE") or its
    display name ("Certified Elsewhere", case-insensitive).

    Raises:
        UnknownStatusError: value is not in the vocabulary.
    """
    if isinstance(value, CustomerStatus):
        return value
    if isinstance(value, str):
        candidate = value.strip()
        try:
            return CustomerStatus(candidate.upper())
        except ValueError:
            pass
        status = _BY_DISPLAY_NAME.get(candidate.lower())
        if status is not None:
            return status
    raise UnknownStatusError(value)


def parse_certificate_type(value: Any) -> CertificateType | None:
    """Parse an optional certificate type; None and blank strings mean unset."""
    if value is None or isinstance(value, CertificateType):
        return value
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            return CertificateType(value.strip().upper())
        except ValueError:
            pass
    raise UnknownCategoryError(value)


def parse_category(value: Any) -> str:
    """
    Parse an aggregate category key.

    Returns the canonical string key: a CertificateType value or
    UNCATEGORIZED.
    """
    if isinstance(value, str) and value.strip().upper() == UNCATEGORIZED:
        return UNCATEGORIZED
    certificate_type = parse_certificate_type(value)
    if certificate_type is None:
        raise UnknownCategoryError(value)
    return certificate_type.value


def category_of(certificate_type: CertificateType | str | None) -> str:
    """Aggregate category for a customer's certificate type."""
    if certificate_type is None:
        return UNCATEGORIZED
    return parse_category(certificate_type)
