"""
Transaction Ledger Configuration Schema.

Defines the tunables of closing, split validation and display fallbacks.
Values can be loaded from a YAML fragment::

    transactions:
      split_tolerance: "0.5"
      rounding_places: 2
      closed_lead_status: Closed
      archive_on_reactivate: false
"""

from dataclasses import dataclass, fields
from decimal import Decimal
from pathlib import Path
from typing import Any, Self

import yaml

from realty_kernel.logging_config import get_logger
from realty_modules.transactions.models import LeadStatus

logger = get_logger("modules.transactions.config")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data or {}


@dataclass
class TransactionConfig:
    """Configuration schema for the transaction ledger module."""

    # Allowed distance of the split percentage total from 100
    split_tolerance: Decimal = Decimal("0.5")

    # Decimal places kept when a split list is persisted
    rounding_places: int = 2

    # Status the counterparty lead moves to when a closing names it
    closed_lead_status: LeadStatus = LeadStatus.CLOSED

    # Agency share when the listing broker is known (broker gets the rest)
    agency_default_share: Decimal = Decimal("50")

    # Append a terminal ledger entry when a closed rental is reactivated
    archive_on_reactivate: bool = False

    # Display fallbacks
    external_counterparty_label: str = "External client"
    unknown_beneficiary_label: str = "Unknown"
    currency_symbol: str = "R$"

    def __post_init__(self):
        self.split_tolerance = Decimal(str(self.split_tolerance))
        self.agency_default_share = Decimal(str(self.agency_default_share))
        if not isinstance(self.closed_lead_status, LeadStatus):
            self.closed_lead_status = LeadStatus(self.closed_lead_status)

        if self.split_tolerance < 0:
            raise ValueError("split_tolerance cannot be negative")
        if self.rounding_places < 0:
            raise ValueError("rounding_places cannot be negative")
        if not Decimal("0") <= self.agency_default_share <= Decimal("100"):
            raise ValueError("agency_default_share must be between 0 and 100")

        logger.info(
            "transaction_config_initialized",
            extra={
                "split_tolerance": str(self.split_tolerance),
                "rounding_places": self.rounding_places,
                "closed_lead_status": self.closed_lead_status.value,
                "archive_on_reactivate": self.archive_on_reactivate,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the standard defaults."""
        return cls()

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> Self:
        """Build config from a parsed mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown transaction config keys: {sorted(unknown)}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: Path | str) -> Self:
        """Load config from a YAML file (optionally nested under ``transactions``)."""
        data = load_yaml_file(Path(path))
        section = data.get("transactions", data)
        return cls.from_mapping(section)
