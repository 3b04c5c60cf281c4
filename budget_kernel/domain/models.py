"""
Models -- Immutable records consumed by the budget engines.

Responsibility:
    Categories (two-level major/minor hierarchy held in an id-keyed table),
    transactions, budgets with an explicit overall/category scope, and the
    transaction filter shared by aggregation and allocation.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Categories never hold references to each other, only ids. The
      parent -> children index is derived once by ``CategoryTree``.
    - A minor category's parent exists and is itself a major
      (``CategoryTree.check_hierarchy``).
    - Budget periods are valid (year, month) pairs with start <= end.

Failure modes:
    - ValueError from ``Budget`` on invalid month or reversed period.
    - CategoryHierarchyError from ``CategoryTree.check_hierarchy``.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID

from budget_kernel.domain.values import ZERO, safe_multiply
from budget_kernel.exceptions import CategoryHierarchyError

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def month_index(year: int, month: int) -> int:
    """Months since year 0, so (year, month) pairs compare as integers."""
    return year * 12 + month - 1


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Category:
    """
    A major (no parent) or minor (has parent) spending category.

    Contract:
        Read-only to the core; created and edited by the host application.
    """

    id: UUID
    name: str
    parent_id: UUID | None = None
    display_order: int = 0
    allows_annual_budget: bool = False
    updated_at: datetime = EPOCH

    @property
    def is_major(self) -> bool:
        return self.parent_id is None

    @property
    def is_minor(self) -> bool:
        return self.parent_id is not None


class CategoryTree:
    """
    Flat id -> Category table with a derived parent -> children index.

    Contract:
        Built once per calculation call from plain ``Category`` records.
        Lookups of unknown ids return None or an empty tuple.

    Guarantees:
        - ``children_ids`` is ordered by (display_order, name).
        - ``full_name`` is ``"{parent} > {name}"`` for a minor whose parent is
          known, else the category's own name.
    """

    def __init__(self, categories: Iterable[Category] = ()):
        self._by_id: dict[UUID, Category] = {c.id: c for c in categories}
        children: dict[UUID, list[Category]] = {}
        for category in self._by_id.values():
            if category.parent_id is not None:
                children.setdefault(category.parent_id, []).append(category)
        self._children: dict[UUID, tuple[UUID, ...]] = {
            parent_id: tuple(
                c.id for c in sorted(kids, key=lambda c: (c.display_order, c.name))
            )
            for parent_id, kids in children.items()
        }

    def __contains__(self, category_id: object) -> bool:
        return category_id in self._by_id

    def __iter__(self) -> Iterator[Category]:
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)

    @property
    def categories(self) -> tuple[Category, ...]:
        return tuple(self._by_id.values())

    def get(self, category_id: UUID | None) -> Category | None:
        if category_id is None:
            return None
        return self._by_id.get(category_id)

    def is_major(self, category_id: UUID) -> bool:
        category = self._by_id.get(category_id)
        return category is not None and category.is_major

    def parent_id(self, category_id: UUID) -> UUID | None:
        category = self._by_id.get(category_id)
        return category.parent_id if category is not None else None

    def parent_of(self, category_id: UUID) -> Category | None:
        category = self._by_id.get(category_id)
        if category is None or category.parent_id is None:
            return None
        return self._by_id.get(category.parent_id)

    def children_ids(self, category_id: UUID) -> tuple[UUID, ...]:
        return self._children.get(category_id, ())

    def full_name(self, category_id: UUID) -> str | None:
        category = self._by_id.get(category_id)
        if category is None:
            return None
        parent = self.parent_of(category_id)
        if parent is None:
            return category.name
        return f"{parent.name} > {category.name}"

    def display_order_key(self, category_id: UUID) -> tuple[int, int, str]:
        """Sort key: (parent order, own order, full name).

        A major sorts by its own order in both leading positions so that it
        lands directly before its children.
        """
        category = self._by_id.get(category_id)
        if category is None:
            return (0, 0, "")
        parent = self.parent_of(category_id)
        parent_order = parent.display_order if parent else category.display_order
        return (parent_order, category.display_order, self.full_name(category_id) or "")

    def check_hierarchy(self) -> None:
        """Raise CategoryHierarchyError unless every minor hangs off a known major."""
        for category in self._by_id.values():
            if category.parent_id is None:
                continue
            if category.parent_id == category.id:
                raise CategoryHierarchyError(
                    category.id, category.parent_id, "category is its own parent"
                )
            parent = self._by_id.get(category.parent_id)
            if parent is None:
                raise CategoryHierarchyError(
                    category.id, category.parent_id, "parent category not found"
                )
            if parent.parent_id is not None:
                raise CategoryHierarchyError(
                    category.id, category.parent_id, "parent category is itself a minor"
                )


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Transaction:
    """
    A single household ledger line.

    ``amount`` is signed: positive is income, negative is expense.
    """

    id: UUID
    date: date
    amount: Decimal
    title: str = ""
    is_included_in_calculation: bool = True
    is_transfer: bool = False
    financial_institution_id: UUID | None = None
    major_category_id: UUID | None = None
    minor_category_id: UUID | None = None
    updated_at: datetime = EPOCH

    @property
    def is_income(self) -> bool:
        return self.amount > 0

    @property
    def is_expense(self) -> bool:
        return self.amount < 0

    @property
    def absolute_amount(self) -> Decimal:
        return abs(self.amount)

    @property
    def effective_category_id(self) -> UUID | None:
        """Minor category if set, else major."""
        return self.minor_category_id or self.major_category_id


# ---------------------------------------------------------------------------
# Budgets
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OverallScope:
    """The household-wide budget (not tied to a category)."""


@dataclass(frozen=True)
class CategoryScope:
    """A budget for one major or minor category."""

    category_id: UUID


BudgetScope = OverallScope | CategoryScope

OVERALL = OverallScope()


@dataclass(frozen=True)
class Budget:
    """
    A monthly budget amount active over an inclusive (year, month) range.

    Contract:
        ``amount`` is a monthly rate; ``annual_budget_amount`` multiplies it by
        the months the budget is active in a given year.
    """

    id: UUID
    amount: Decimal
    start_year: int
    start_month: int
    end_year: int
    end_month: int
    scope: BudgetScope = OVERALL
    updated_at: datetime = EPOCH

    def __post_init__(self) -> None:
        for label, month in (("start_month", self.start_month), ("end_month", self.end_month)):
            if not 1 <= month <= 12:
                raise ValueError(f"{label} must be within 1..12, got {month}")
        if self.start_index > self.end_index:
            raise ValueError(
                f"Budget period starts after it ends: "
                f"{self.start_year}-{self.start_month:02d} > "
                f"{self.end_year}-{self.end_month:02d}"
            )

    @property
    def start_index(self) -> int:
        return month_index(self.start_year, self.start_month)

    @property
    def end_index(self) -> int:
        return month_index(self.end_year, self.end_month)

    @property
    def is_overall(self) -> bool:
        return isinstance(self.scope, OverallScope)

    @property
    def category_id(self) -> UUID | None:
        match self.scope:
            case CategoryScope(category_id=category_id):
                return category_id
            case _:
                return None

    @property
    def total_month_count(self) -> int:
        return self.end_index - self.start_index + 1

    def contains(self, year: int, month: int) -> bool:
        return self.start_index <= month_index(year, month) <= self.end_index

    def months_active(self, year: int) -> int:
        first = max(self.start_index, month_index(year, 1))
        last = min(self.end_index, month_index(year, 12))
        return max(0, last - first + 1)

    def overlaps(self, year: int) -> bool:
        return self.months_active(year) > 0

    def annual_budget_amount(self, year: int) -> Decimal:
        months = self.months_active(year)
        if months == 0:
            return ZERO
        return safe_multiply(self.amount, months)


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AggregationFilter:
    """
    Which transactions take part in a calculation.

    Defaults: only calculation targets, transfers excluded, every
    institution and category.
    """

    include_only_calculation_target: bool = True
    exclude_transfers: bool = True
    financial_institution_id: UUID | None = None
    category_id: UUID | None = None

    DEFAULT: ClassVar[AggregationFilter]

    def matches(self, transaction: Transaction) -> bool:
        if self.include_only_calculation_target and not transaction.is_included_in_calculation:
            return False
        if self.exclude_transfers and transaction.is_transfer:
            return False
        if (
            self.financial_institution_id is not None
            and transaction.financial_institution_id != self.financial_institution_id
        ):
            return False
        if self.category_id is not None and self.category_id not in (
            transaction.major_category_id,
            transaction.minor_category_id,
        ):
            return False
        return True


AggregationFilter.DEFAULT = AggregationFilter()
DEFAULT_FILTER = AggregationFilter.DEFAULT


def as_category_tree(categories: CategoryTree | Iterable[Category]) -> CategoryTree:
    """Accept either a prepared tree or plain category records."""
    if isinstance(categories, CategoryTree):
        return categories
    return CategoryTree(categories)
