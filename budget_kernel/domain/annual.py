"""
Annual -- Annual special-budget configuration.

Responsibility:
    The yearly pool of money set aside to absorb overruns, the default
    policy that governs how it is drawn, and per-category allocation lines
    with optional policy overrides. Also the editor-side finalization that
    turns draft rows into allocation lines or reports why it cannot.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Allocation amounts are non-negative.
    - Finalization never yields a partial result: either every row is valid
      (and, for the manual policy, the rows sum to the pool total) or an
      ``AllocationFinalizationError`` is reported.

Failure modes:
    - ValueError from ``AnnualBudgetAllocation`` / ``AnnualBudgetConfig`` on
      negative amounts.
    - Duplicate category ids are *reported* by ``duplicate_category_ids``;
      the allocation validator turns them into an exception.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

from budget_kernel.domain.models import CategoryTree
from budget_kernel.domain.values import safe_sum


class AnnualBudgetPolicy(str, Enum):
    """How a category's spend is drawn from the annual pool."""

    AUTOMATIC = "automatic"  # Overspend is drawn automatically
    MANUAL = "manual"  # Overspend is surfaced, user decides
    FULL_COVERAGE = "full_coverage"  # All spend is drawn
    DISABLED = "disabled"  # Nothing is drawn


@dataclass(frozen=True)
class AnnualBudgetAllocation:
    """One category's share of the annual pool."""

    category_id: UUID
    amount: Decimal
    policy_override: AnnualBudgetPolicy | None = None

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError(f"Allocation amount cannot be negative: {self.amount}")


@dataclass(frozen=True)
class AnnualBudgetConfig:
    """
    The annual pool for one year.

    Contract:
        Category ids are expected to be unique across ``allocations``; the
        editor and the allocation validator enforce it.
    """

    year: int
    total_amount: Decimal
    policy: AnnualBudgetPolicy = AnnualBudgetPolicy.AUTOMATIC
    allocations: tuple[AnnualBudgetAllocation, ...] = ()

    def __post_init__(self) -> None:
        if self.total_amount < 0:
            raise ValueError(f"Annual total cannot be negative: {self.total_amount}")
        if not isinstance(self.allocations, tuple):
            object.__setattr__(self, "allocations", tuple(self.allocations))

    @property
    def allocation_total_amount(self) -> Decimal:
        return safe_sum(a.amount for a in self.allocations)

    @property
    def policy_overrides(self) -> dict[UUID, AnnualBudgetPolicy]:
        return {
            a.category_id: a.policy_override
            for a in self.allocations
            if a.policy_override is not None
        }

    @property
    def allocation_amounts(self) -> dict[UUID, Decimal]:
        return {a.category_id: a.amount for a in self.allocations}

    def effective_policy(self, category_id: UUID) -> AnnualBudgetPolicy:
        return self.policy_overrides.get(category_id, self.policy)

    def duplicate_category_ids(self) -> set[UUID]:
        counts = Counter(a.category_id for a in self.allocations)
        return {category_id for category_id, n in counts.items() if n > 1}

    def full_coverage_category_ids(self, tree: CategoryTree) -> set[UUID]:
        """Categories fully charged to the pool, majors expanded to their children.

        Used to exclude these categories from the headline monthly total.
        """
        ids: set[UUID] = set()
        for allocation in self.allocations:
            policy = allocation.policy_override or self.policy
            if policy is not AnnualBudgetPolicy.FULL_COVERAGE:
                continue
            ids.add(allocation.category_id)
            category = tree.get(allocation.category_id)
            if category is not None and category.is_major:
                ids.update(tree.children_ids(category.id))
        return ids


# ---------------------------------------------------------------------------
# Finalization
# ---------------------------------------------------------------------------


class AllocationFinalizationError(str, Enum):
    NO_ALLOCATIONS = "no_allocations"
    MANUAL_DOES_NOT_MATCH_TOTAL = "manual_does_not_match_total"


@dataclass(frozen=True)
class AllocationDraft:
    """An editor row; any field may still be blank."""

    category_id: UUID | None = None
    amount: Decimal | None = None
    policy_override: AnnualBudgetPolicy | None = None


@dataclass(frozen=True)
class AllocationFinalizationResult:
    allocations: tuple[AnnualBudgetAllocation, ...] = ()
    error: AllocationFinalizationError | None = None

    @property
    def is_success(self) -> bool:
        return self.error is None


def finalize_allocations(
    drafts: Sequence[AllocationDraft],
    total_amount: Decimal,
    policy: AnnualBudgetPolicy,
) -> AllocationFinalizationResult:
    """Turn editor rows into allocation lines.

    Every row needs a category and a positive amount, otherwise the result is
    ``NO_ALLOCATIONS``. Under the manual policy the amounts must add up to
    ``total_amount`` exactly.
    """
    allocations: list[AnnualBudgetAllocation] = []
    for draft in drafts:
        if draft.category_id is None or draft.amount is None or draft.amount <= 0:
            return AllocationFinalizationResult(
                error=AllocationFinalizationError.NO_ALLOCATIONS
            )
        allocations.append(
            AnnualBudgetAllocation(
                category_id=draft.category_id,
                amount=draft.amount,
                policy_override=draft.policy_override,
            )
        )

    if not allocations:
        return AllocationFinalizationResult(
            error=AllocationFinalizationError.NO_ALLOCATIONS
        )

    if policy is AnnualBudgetPolicy.MANUAL:
        if safe_sum(a.amount for a in allocations) != total_amount:
            return AllocationFinalizationResult(
                error=AllocationFinalizationError.MANUAL_DOES_NOT_MATCH_TOTAL
            )

    return AllocationFinalizationResult(allocations=tuple(allocations))
