"""
Configuration loader (``farm_config.loader``).

Responsibility
--------------
Loads a configuration set's YAML file and parses it into a frozen
``PostingConfig``.  The single public entry point for runtime config is
``farm_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys or account roles  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from farm_config.schema import REQUIRED_ACCOUNT_ROLES, NumberingDef, PostingConfig


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _require(data: dict[str, Any], key: str, where: str) -> Any:
    if key not in data or data[key] is None:
        raise ValueError(f"Missing required configuration key {where}.{key}")
    return data[key]


def parse_numbering(data: dict[str, Any]) -> NumberingDef:
    width = int(_require(data, "width", "numbering"))
    if width < 1:
        raise ValueError("numbering.width must be positive")
    return NumberingDef(prefix=str(_require(data, "prefix", "numbering")), width=width)


def parse_posting_config(data: dict[str, Any]) -> PostingConfig:
    """Parse and validate a configuration set dict."""
    ledger = _require(data, "ledger", "root")
    currency = str(_require(ledger, "currency", "ledger")).upper()
    if len(currency) != 3 or not currency.isalpha():
        raise ValueError(f"ledger.currency must be an ISO 4217 code, got {currency!r}")

    places = int(ledger.get("amount_places", 2))
    if not 0 <= places <= 9:
        raise ValueError("ledger.amount_places must be between 0 and 9")

    numbering = _require(data, "numbering", "root")
    accounts = dict(_require(data, "accounts", "root"))
    missing = [role for role in REQUIRED_ACCOUNT_ROLES if not accounts.get(role)]
    if missing:
        raise ValueError(f"accounts section is missing roles: {', '.join(missing)}")

    return PostingConfig(
        config_id=str(_require(data, "config_id", "root")),
        version=int(data.get("version", 1)),
        checksum=compute_checksum(data),
        currency_code=currency,
        amount_places=places,
        charge_numbering=parse_numbering(_require(numbering, "machinery_charge", "numbering")),
        account_codes={role: str(code) for role, code in accounts.items()},
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization; deterministic."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
