"""
Realty Modules.

Business modules built on the Realty Kernel.  Each module contains:
- Domain models (frozen dataclasses)
- Workflows (state machines)
- Configuration schemas
- Pure functions for the rules, and a service owning the store writes

Modules:
- Transactions: asset closing, renewal, readjustment, commission splits,
  effective-value resolution and portfolio reports
"""

from realty_modules import transactions

__all__ = ["transactions"]
