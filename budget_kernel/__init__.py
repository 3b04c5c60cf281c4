"""
Budget Kernel

Domain layer for the household budget engine:
- Decimal-only money helpers
- Immutable category, transaction and budget records
- Annual special-budget configuration
- Recurring irregular payment definitions and saving balances
- Structured logging and typed exceptions
"""

__version__ = "0.1.0"
