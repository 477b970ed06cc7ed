"""FIFO allocation engine - core business logic for applying money to debts"""

from decimal import Decimal
from typing import Dict, List, Sequence

from debt_ledger.domain.exceptions import InvalidAmountError, InvariantViolationError
from debt_ledger.domain.models import AllocationPlan, DebtAllocation, OutstandingDebt
from debt_ledger.domain.money import ZERO, money_sum, to_money


def total_outstanding(debts: Sequence[OutstandingDebt]) -> Decimal:
    """Sum of remaining balances across a debt queue"""
    return money_sum(d.amount for d in debts)


def allocate_fifo(
    debts: Sequence[OutstandingDebt],
    payment_amount: Decimal,
    credit_available: Decimal = ZERO,
) -> AllocationPlan:
    """
    Distribute new money plus available credit across debts, oldest first.

    Requirements:
    - debts must already be in queue order (oldest first)
    - each debt takes min(remaining funds, debt balance)
    - zero-balance debts are skipped, no zero-amount allocation is ever emitted
    - iteration stops as soon as funds run out
    - anything left after the queue is exhausted is returned as `remaining`
      and becomes credit

    Args:
        debts: FIFO-ordered outstanding debts
        payment_amount: new money received (0 for a pure credit application)
        credit_available: credit balance made available to this run

    Returns:
        AllocationPlan with one DebtAllocation per debt touched

    Example:
        debts 50, 60, 40 and a payment of 100
        → allocations [50 (paid), 50 (10 left)], remaining 0
    """
    payment_amount = to_money(payment_amount)
    credit_available = to_money(credit_available)
    if payment_amount < 0 or credit_available < 0:
        raise InvalidAmountError("Allocation funds cannot be negative")

    remaining = payment_amount + credit_available
    allocations: List[DebtAllocation] = []

    for debt in debts:
        if remaining <= 0:
            break

        balance = to_money(debt.amount)
        take = min(remaining, balance)
        if take <= 0:
            continue

        allocations.append(
            DebtAllocation(debt_id=debt.debt_id, amount=take, remaining_amount=balance - take)
        )
        remaining -= take

    plan = AllocationPlan(
        payment_amount=payment_amount,
        credit_used=credit_available,
        allocations=allocations,
        remaining=remaining,
    )
    verify_plan(plan, debts)
    return plan


def verify_plan(plan: AllocationPlan, debts: Sequence[OutstandingDebt]) -> None:
    """
    Check the bookkeeping of a plan before anything is persisted.

    Raises:
        InvariantViolationError: if funds are not conserved, a debt is
            over-allocated or allocated twice, or an allocation is not positive
    """
    balances: Dict[int, Decimal] = {d.debt_id: to_money(d.amount) for d in debts}
    seen = set()

    for allocation in plan.allocations:
        if allocation.debt_id in seen:
            raise InvariantViolationError(f"Debt {allocation.debt_id} allocated twice by one event")
        seen.add(allocation.debt_id)

        if allocation.amount <= 0:
            raise InvariantViolationError(f"Non-positive allocation to debt {allocation.debt_id}")

        balance = balances.get(allocation.debt_id)
        if balance is None:
            raise InvariantViolationError(f"Allocation to debt {allocation.debt_id} outside the queue")
        if allocation.amount > balance or allocation.remaining_amount != balance - allocation.amount:
            raise InvariantViolationError(f"Allocation exceeds balance of debt {allocation.debt_id}")

    if plan.remaining < 0:
        raise InvariantViolationError("Allocation left a negative remainder")

    allocated = money_sum(a.amount for a in plan.allocations)
    if allocated != plan.applied_to_debt:
        raise InvariantViolationError(
            f"Allocated {allocated} but applied_to_debt is {plan.applied_to_debt}"
        )
