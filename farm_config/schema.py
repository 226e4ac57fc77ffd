"""
Configuration schema (``farm_config.schema``).

Frozen dataclasses describing the posting configuration of a deployment:
ledger currency, rounding, document numbering and the map from posting role
to the tenant's well-known account code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

# Posting roles every deployment must map to an account code.
REQUIRED_ACCOUNT_ROLES: tuple[str, ...] = (
    "MACHINERY_SERVICE_EXPENSE",
    "MACHINERY_MAINTENANCE_EXPENSE",
    "MACHINERY_INTERNAL_SERVICE_CLEARING",
    "DUE_TO_LANDLORD",
    "AP",
    "ACCRUED_EXPENSES",
    "LABOUR_EXPENSE",
    "WAGES_PAYABLE",
    "INPUTS_EXPENSE",
    "INVENTORY_INPUTS",
    "CASH",
    "BANK",
    "AR",
    "PROJECT_REVENUE",
    "PARTY_CONTROL_HARI",
    "PARTY_CONTROL_KAMDAR",
)


@dataclass(frozen=True)
class NumberingDef:
    prefix: str
    width: int

    def format(self, value: int) -> str:
        return f"{self.prefix}{value:0{self.width}d}"


@dataclass(frozen=True)
class PostingConfig:
    """
    Runtime posting configuration.

    Guarantees:
        - Every role in REQUIRED_ACCOUNT_ROLES has an account code.
        - ``account_codes`` is read-only.
    """

    config_id: str
    version: int
    checksum: str
    currency_code: str
    amount_places: int
    charge_numbering: NumberingDef
    account_codes: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "account_codes", MappingProxyType(dict(self.account_codes)))

    def account_code(self, role: str) -> str:
        """Account code for a posting role.

        Raises:
            ValueError: role not configured.
        """
        try:
            return self.account_codes[role]
        except KeyError:
            raise ValueError(f"No account code configured for role {role!r}") from None
