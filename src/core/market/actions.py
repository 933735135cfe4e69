"""Per-hour action budget.

Every player gets ACTIONS_PER_HOUR points per game hour. An action that
does not fit in what is left is never silently refused or silently pushed
into the next hour: try_consume() answers with a decision request, and the
caller either aborts (nothing changed) or calls commit_overflow(), which
spends the rest of this hour and books the remainder as debt on the next.

The debt can exceed a full hour's allotment. After reset_for_new_hour()
actions_used may be above actions_available; headroom is then zero and the
part the hour cannot absorb carries into the one after.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from src.core.errors import ValidationError

ACTIONS_PER_HOUR = 4


class DecisionKind(str, Enum):
    CONSUMED = "consumed"
    NEEDS_OVERFLOW_DECISION = "needs_overflow_decision"


class OverflowChoice(str, Enum):
    BORROW = "borrow"  # spend what is left, carry the rest into next hour
    ABORT = "abort"  # drop the action, nothing changes


@dataclass(frozen=True)
class ActionDecision:
    kind: DecisionKind
    cost: int
    actions_used: int
    actions_available: int
    remaining: int  # headroom before the action
    overflow: int = 0  # actions that would land on the next hour

    @property
    def consumed(self) -> bool:
        return self.kind is DecisionKind.CONSUMED


@dataclass
class ActionBudget:
    actions_available: int = ACTIONS_PER_HOUR
    actions_used: int = 0
    overflow_into_next_hour: int = 0

    @property
    def remaining(self) -> int:
        return max(0, self.actions_available - self.actions_used)

    def evaluate(self, cost: int) -> ActionDecision:
        """What try_consume(cost) would answer, without touching state."""
        if cost < 1:
            raise ValidationError("Action cost must be at least 1", {"cost": cost})
        remaining = self.remaining
        if cost <= remaining:
            return ActionDecision(
                kind=DecisionKind.CONSUMED,
                cost=cost,
                actions_used=self.actions_used + cost,
                actions_available=self.actions_available,
                remaining=remaining,
            )
        return ActionDecision(
            kind=DecisionKind.NEEDS_OVERFLOW_DECISION,
            cost=cost,
            actions_used=self.actions_used,
            actions_available=self.actions_available,
            remaining=remaining,
            overflow=cost - remaining,
        )

    def try_consume(self, cost: int) -> ActionDecision:
        decision = self.evaluate(cost)
        if decision.consumed:
            self.actions_used += cost
        return decision

    def commit_overflow(self, cost: int) -> int:
        """Spend the rest of this hour on `cost`; return the overflow booked.

        If the action fits after all, it is simply consumed and 0 returned.
        """
        decision = self.evaluate(cost)
        if decision.consumed:
            self.actions_used += cost
            return 0
        self.actions_used = max(self.actions_used, self.actions_available)
        self.overflow_into_next_hour += decision.overflow
        return decision.overflow

    def reset_for_new_hour(
        self, overflow: int | None = None, allotment: int = ACTIONS_PER_HOUR
    ) -> None:
        if overflow is None:
            overflow = self.overflow_into_next_hour
        if overflow < 0:
            raise ValidationError("Overflow cannot be negative", {"overflow": overflow})
        # debt this hour could not absorb rolls forward with the new overflow
        unpaid = max(0, self.actions_used - self.actions_available)
        self.actions_used = unpaid + overflow
        self.actions_available = allotment
        self.overflow_into_next_hour = 0


def budget_for(
    actions_used: int, actions_overflow: int, actions_available: int = ACTIONS_PER_HOUR
) -> ActionBudget:
    """Rebuild a budget from the stored player columns."""
    return ActionBudget(
        actions_available=actions_available,
        actions_used=actions_used,
        overflow_into_next_hour=actions_overflow,
    )
