"""
Realty Kernel

Shared infrastructure for the transaction and commission ledger:
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging
- Injectable clock
- Record store contract with in-memory and SQLAlchemy implementations
- Append-only enforcement for ledger rows
"""

__version__ = "0.1.0"
