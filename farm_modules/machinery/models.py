"""
Machinery Domain Models (``farm_modules.machinery.models``).

Responsibility
--------------
Enumerations and frozen value objects for the machinery module: meter and
rate units, pool and allocation scopes, rate-card modes, and the DTOs passed
between charge generation, rate resolution and callers.

Architecture
------------
Layer: **Modules** -- pure domain data structures, no database identity and
no I/O.  ``orm.py`` stores the enum values as plain strings.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from farm_kernel.exceptions import UnsupportedMeterUnitError


class MeterUnit(str, Enum):
    """Unit a machine's meter reads in."""
    HOURS = "HOURS"
    KM = "KM"
    JOB = "JOB"


class RateUnit(str, Enum):
    """Unit a rate card prices in."""
    HOUR = "HOUR"
    KM = "KM"
    JOB = "JOB"


class RateCardMode(str, Enum):
    MACHINE = "MACHINE"
    MACHINE_TYPE = "MACHINE_TYPE"


class PricingModel(str, Enum):
    """FIXED and COST_PLUS both bill ``base_rate`` per unit."""
    FIXED = "FIXED"
    COST_PLUS = "COST_PLUS"


class PoolScope(str, Enum):
    SHARED = "SHARED"
    HARI_ONLY = "HARI_ONLY"


# Internal services use the same two scopes as work logs.
AllocationScope = PoolScope


class MachineryAllocationType(str, Enum):
    MACHINERY_CHARGE = "MACHINERY_CHARGE"
    MACHINERY_MAINTENANCE = "MACHINERY_MAINTENANCE"
    MACHINERY_SERVICE = "MACHINERY_SERVICE"
    MACHINERY_USAGE = "MACHINERY_USAGE"


# Only meters that map onto a billable rate unit can be priced.
_METER_TO_RATE_UNIT: dict[str, RateUnit] = {
    MeterUnit.HOURS.value: RateUnit.HOUR,
    MeterUnit.KM.value: RateUnit.KM,
}


def rate_unit_for_meter(machine_id: UUID, meter_unit: str) -> RateUnit:
    """
    Rate unit that prices a machine's meter readings.

    Raises:
        UnsupportedMeterUnitError: meter unit has no billable rate unit.
    """
    try:
        return _METER_TO_RATE_UNIT[meter_unit]
    except KeyError:
        raise UnsupportedMeterUnitError(str(machine_id), str(meter_unit)) from None


@dataclass(frozen=True)
class ResolvedRate:
    """A rate card picked for one work log."""
    work_log_id: UUID
    rate_card_id: UUID
    rate_unit: str
    rate: Decimal
    applies_to_mode: str


@dataclass(frozen=True)
class ChargeGenerationRequest:
    """Parameters of one charge-generation call."""
    tenant_id: UUID
    project_id: UUID
    landlord_party_id: UUID
    from_date: date
    to_date: date
    pool_scope: str | None = None
    charge_date: date | None = None

    def __post_init__(self) -> None:
        if self.from_date > self.to_date:
            raise ValueError(
                f"from_date {self.from_date} is after to_date {self.to_date}"
            )


@dataclass(frozen=True)
class ChargeLineDraft:
    """A priced work log waiting to become a charge line."""
    work_log_id: UUID
    usage_qty: Decimal
    unit: str
    rate: Decimal
    amount: Decimal
    rate_card_id: UUID


@dataclass(frozen=True)
class ChargeDraft:
    """Everything needed to create one machinery charge for one pool scope."""
    pool_scope: str
    lines: tuple[ChargeLineDraft, ...] = field(default_factory=tuple)

    @property
    def total_amount(self) -> Decimal:
        return sum((line.amount for line in self.lines), Decimal("0"))
