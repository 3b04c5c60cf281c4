"""
Typed Exception Hierarchy for the Budget Kernel.

===============================================================================
SCOPE
===============================================================================

The calculation core favours total functions: an empty transaction list, a
missing budget or an unconstructible period is a normal state in a household
budget and yields a default (0, empty tuple, None) rather than an exception.

Exceptions are reserved for broken preconditions that the caller is
responsible for:
  1. A category table that violates the two-level major/minor hierarchy
  2. An annual allocation config that lists the same category twice
  3. A settings file that cannot be turned into a valid configuration

Every class carries a ``code`` class attribute (machine-readable) and stores
its context as attributes rather than only in the message.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BudgetKernelError (base)
    |
    +-- CategoryError
    |   +-- CategoryHierarchyError
    |
    +-- AllocationError
    |   +-- DuplicateAllocationCategoryError
    |
    +-- ConfigurationError
        +-- InvalidConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|------------------------------------
Category        | CATEGORY_HIERARCHY_INVALID    | Minor's parent missing or nested
----------------|-------------------------------|------------------------------------
Allocation      | DUPLICATE_ALLOCATION_CATEGORY | Same category twice in one config
----------------|-------------------------------|------------------------------------
Configuration   | INVALID_CONFIGURATION         | Settings value cannot be parsed

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        usage = allocator.calculate_annual_budget_usage(params)
    except DuplicateAllocationCategoryError as e:
        return {"error": e.code, "category_ids": e.category_ids}
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID


class BudgetKernelError(Exception):
    """
    Base exception for all budget kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BUDGET_KERNEL_ERROR"


# Category exceptions


class CategoryError(BudgetKernelError):
    """Base exception for category table errors."""

    code: str = "CATEGORY_ERROR"


class CategoryHierarchyError(CategoryError):
    """
    A minor category points at a parent that is missing or is itself a minor.

    Categories are at most two levels deep.
    """

    code: str = "CATEGORY_HIERARCHY_INVALID"

    def __init__(self, category_id: UUID, parent_id: UUID | None, reason: str):
        self.category_id = category_id
        self.parent_id = parent_id
        self.reason = reason
        super().__init__(
            f"Invalid hierarchy for category {category_id} "
            f"(parent {parent_id}): {reason}"
        )


# Allocation exceptions


class AllocationError(BudgetKernelError):
    """Base exception for annual allocation errors."""

    code: str = "ALLOCATION_ERROR"


class DuplicateAllocationCategoryError(AllocationError):
    """An annual budget config lists the same category more than once."""

    code: str = "DUPLICATE_ALLOCATION_CATEGORY"

    def __init__(self, year: int, category_ids: Iterable[UUID]):
        self.year = year
        self.category_ids = tuple(sorted(category_ids, key=str))
        ids = ", ".join(str(c) for c in self.category_ids)
        super().__init__(
            f"Annual budget config for {year} has duplicate categories: {ids}"
        )


# Configuration exceptions


class ConfigurationError(BudgetKernelError):
    """Base exception for settings errors."""

    code: str = "CONFIGURATION_ERROR"


class InvalidConfigurationError(ConfigurationError):
    """A settings value is missing, malformed or out of range."""

    code: str = "INVALID_CONFIGURATION"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid value for '{field}' ({value!r}): {reason}")
