"""
Machinery Module (``farm_modules.machinery``).

Responsibility
--------------
Machine usage and its cost:

- Work logs record meter usage and post a quantity-only MACHINERY_USAGE
  allocation (no ledger lines).
- Rate cards price usage: a card for the machine wins over a card for its
  machine type; the latest effective card wins within each.
- The charge generator bills POSTED, uncharged usage to a landlord, one
  charge per pool scope, and posts Dr MACHINERY_SERVICE_EXPENSE /
  Cr DUE_TO_LANDLORD.
- Maintenance jobs post Dr MACHINERY_MAINTENANCE_EXPENSE against AP or
  accrued expenses.
- Internal services post against the internal clearing account and may be
  paid in kind through an inventory issue.

Every document reverses through the same kernel primitive.
"""

from farm_modules.machinery.charge_generation import (
    MachineryChargeGenerator,
    generation_key,
)
from farm_modules.machinery.charge_posting import (
    MACHINERY_CHARGE,
    MachineryChargePostingService,
)
from farm_modules.machinery.maintenance_posting import (
    MACHINE_MAINTENANCE_JOB,
    MachineMaintenancePostingService,
)
from farm_modules.machinery.models import (
    ChargeDraft,
    ChargeGenerationRequest,
    ChargeLineDraft,
    MachineryAllocationType,
    MeterUnit,
    PoolScope,
    PricingModel,
    RateCardMode,
    RateUnit,
    ResolvedRate,
)
from farm_modules.machinery.orm import (
    Machine,
    MachineMaintenanceJob,
    MachineMaintenanceJobLine,
    MachineRateCard,
    MachineryCharge,
    MachineryChargeLine,
    MachineryService,
    MachineWorkLog,
)
from farm_modules.machinery.rates import RateResolver
from farm_modules.machinery.service_posting import (
    MACHINERY_SERVICE,
    MachineryServicePostingService,
    in_kind_issue_key,
)
from farm_modules.machinery.work_log_posting import (
    MACHINE_WORK_LOG,
    MachineWorkLogPostingService,
)

__all__ = [
    "MACHINERY_CHARGE",
    "MACHINERY_SERVICE",
    "MACHINE_MAINTENANCE_JOB",
    "MACHINE_WORK_LOG",
    "ChargeDraft",
    "ChargeGenerationRequest",
    "ChargeLineDraft",
    "Machine",
    "MachineMaintenanceJob",
    "MachineMaintenanceJobLine",
    "MachineMaintenancePostingService",
    "MachineRateCard",
    "MachineWorkLog",
    "MachineWorkLogPostingService",
    "MachineryAllocationType",
    "MachineryCharge",
    "MachineryChargeGenerator",
    "MachineryChargeLine",
    "MachineryChargePostingService",
    "MachineryService",
    "MachineryServicePostingService",
    "MeterUnit",
    "PoolScope",
    "PricingModel",
    "RateCardMode",
    "RateResolver",
    "RateUnit",
    "ResolvedRate",
    "generation_key",
    "in_kind_issue_key",
]
