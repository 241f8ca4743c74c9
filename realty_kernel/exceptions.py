"""
Typed Exception Hierarchy for the Realty Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Commission and rent figures end up on dashboards and payouts.  Callers must be
able to tell "the user typed an end date before the start date" apart from
"the store rejected the write" without parsing message strings.  Every error:

  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (not just a message string)

Example:
    try:
        service.close(asset, request)
    except MissingCounterpartyAgentError as e:
        api_response(code=e.code, asset=e.asset_id)
    except PartiallyAppliedError as e:
        show_warning(e.failed_step, committed=e.committed)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    RealtyLedgerError (base)
    |
    +-- ValidationError                 raised BEFORE any store access
    |   +-- InvalidTransitionError
    |   +-- MissingCounterpartyAgentError
    |   +-- InvalidPeriodError
    |   +-- InvalidAmountError
    |   +-- SplitTotalError
    |   +-- DuplicateBeneficiaryError
    |   +-- SplitIndexError
    |
    +-- PersistenceError                raised AFTER a store attempt
        +-- RecordNotFoundError
        +-- ReferentialConstraintError
        +-- RecordSchemaError
        +-- LedgerImmutabilityError
        +-- PartiallyAppliedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                          | When Raised
-------------|-------------------------------|------------------------------------
Validation   | INVALID_TRANSITION            | Action not allowed from asset status
             | MISSING_COUNTERPARTY_AGENT    | Counterparty given without agent
             | INVALID_PERIOD                | Missing/ill-ordered period dates
             | INVALID_AMOUNT                | Negative value or commission
             | SPLIT_TOTAL_INVALID           | Split percentages do not sum to 100
             | DUPLICATE_BENEFICIARY         | Beneficiary already in the split
             | SPLIT_INDEX_OUT_OF_RANGE      | No split at the given position
-------------|-------------------------------|------------------------------------
Persistence  | RECORD_NOT_FOUND              | Update/delete target missing
             | REFERENTIAL_CONSTRAINT        | Delete blocked by a reference
             | RECORD_SCHEMA_INVALID         | Stored record cannot be coerced
             | LEDGER_IMMUTABLE              | Update/delete of a ledger entry
             | PARTIALLY_APPLIED             | Second write of two failed
"""

from typing import Any


class RealtyLedgerError(Exception):
    """
    Base exception for all realty ledger errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "REALTY_LEDGER_ERROR"


# Validation exceptions


class ValidationError(RealtyLedgerError):
    """Bad input to an operation.  Nothing was written."""

    code: str = "VALIDATION_ERROR"


class InvalidTransitionError(ValidationError):
    """The requested action is not allowed from the asset's current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, asset_id: str, current_status: str, action: str, reason: str = ""):
        self.asset_id = asset_id
        self.current_status = current_status
        self.action = action
        self.reason = reason
        message = f"Cannot {action} asset {asset_id} in status {current_status}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class MissingCounterpartyAgentError(ValidationError):
    """An internal closing names a counterparty lead but no responsible agent."""

    code: str = "MISSING_COUNTERPARTY_AGENT"

    def __init__(self, asset_id: str, counterparty_lead_id: str):
        self.asset_id = asset_id
        self.counterparty_lead_id = counterparty_lead_id
        super().__init__(
            f"Closing asset {asset_id} with counterparty {counterparty_lead_id} "
            "requires the responsible agent"
        )


class InvalidPeriodError(ValidationError):
    """Period dates are missing or not correctly ordered."""

    code: str = "INVALID_PERIOD"

    def __init__(self, asset_id: str, reason: str):
        self.asset_id = asset_id
        self.reason = reason
        super().__init__(f"Invalid period for asset {asset_id}: {reason}")


class InvalidAmountError(ValidationError):
    """A monetary amount is negative."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, amount: Any):
        self.field = field
        self.amount = amount
        super().__init__(f"{field} cannot be negative: {amount}")


class SplitTotalError(ValidationError):
    """Commission split percentages do not add up to 100 within tolerance."""

    code: str = "SPLIT_TOTAL_INVALID"

    def __init__(self, total_percentage: Any, tolerance: Any):
        self.total_percentage = total_percentage
        self.tolerance = tolerance
        super().__init__(
            f"Split percentages must sum to 100% (+/- {tolerance}); "
            f"current total is {total_percentage}%"
        )


class DuplicateBeneficiaryError(ValidationError):
    """The beneficiary already has an entry in the split list."""

    code: str = "DUPLICATE_BENEFICIARY"

    def __init__(self, beneficiary_id: str):
        self.beneficiary_id = beneficiary_id
        super().__init__(f"Beneficiary {beneficiary_id} is already in the split")


class SplitIndexError(ValidationError):
    """No split exists at the requested position."""

    code: str = "SPLIT_INDEX_OUT_OF_RANGE"

    def __init__(self, index: int, size: int):
        self.index = index
        self.size = size
        super().__init__(f"Split index {index} out of range for {size} split(s)")


# Persistence exceptions


class PersistenceError(RealtyLedgerError):
    """The record store rejected or failed a read or write."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, message: str, table: str | None = None, record_id: str | None = None):
        self.table = table
        self.record_id = record_id
        super().__init__(message)


class RecordNotFoundError(PersistenceError):
    """No record with the given id exists in the table."""

    code: str = "RECORD_NOT_FOUND"

    def __init__(self, table: str, record_id: str):
        super().__init__(f"No record {record_id} in {table}", table=table, record_id=record_id)


class ReferentialConstraintError(PersistenceError):
    """Deletion blocked because other records still reference this one."""

    code: str = "REFERENTIAL_CONSTRAINT"

    def __init__(self, table: str, record_id: str, referenced_by: str | None = None):
        self.referenced_by = referenced_by
        detail = f" (referenced by {referenced_by})" if referenced_by else ""
        super().__init__(
            f"Cannot delete {record_id} from {table}: record is still referenced{detail}",
            table=table,
            record_id=record_id,
        )


class RecordSchemaError(PersistenceError):
    """A stored record does not match the table's typed schema."""

    code: str = "RECORD_SCHEMA_INVALID"

    def __init__(self, table: str, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(
            f"Invalid {table}.{field} value {value!r}: {reason}",
            table=table,
        )


class LedgerImmutabilityError(PersistenceError):
    """Attempted to modify or delete an append-only ledger record."""

    code: str = "LEDGER_IMMUTABLE"

    def __init__(self, table: str, record_id: str, operation: str):
        self.operation = operation
        super().__init__(
            f"Ledger record {record_id} in {table} is append-only; {operation} rejected",
            table=table,
            record_id=record_id,
        )


class PartiallyAppliedError(PersistenceError):
    """
    The first write of a two-write operation committed, the second failed.

    ``committed`` holds the entity that IS persisted (the closed asset, or the
    appended ledger entry); ``failed_step`` names the write that did not happen.
    The caller decides whether to retry the second step.
    """

    code: str = "PARTIALLY_APPLIED"

    def __init__(self, operation: str, failed_step: str, committed: Any, cause: Exception):
        self.operation = operation
        self.failed_step = failed_step
        self.committed = committed
        self.cause = cause
        super().__init__(
            f"{operation} partially applied: {failed_step} failed ({cause})"
        )
