"""Core balance accounting for a group's expense ledger.

All arithmetic happens on integer minor units (paise, cents, ...) so that the
balances of a group always add up to exactly zero. Amounts are converted back
to display-scale ``Decimal`` only at the boundary.
"""

import logging
from collections.abc import Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal
from fractions import Fraction

from .models import Expense, Member

logger = logging.getLogger(__name__)

DEFAULT_DECIMALS = 2

# Largest amount the ledger accepts; keeps minor units well within Decimal
# precision for every supported currency scale
MAX_AMOUNT = Decimal("1000000000000")


def to_minor_units(amount: Decimal, decimals: int = DEFAULT_DECIMALS) -> int:
    """
    Convert a Decimal amount to integer minor units.
    Uses ROUND_HALF_UP for consistency.

    Args:
        amount: Amount in currency units
        decimals: Number of minor-unit digits of the currency

    Returns:
        Amount in minor units (integer)
    """
    minor = Decimal(amount).scaleb(decimals)
    return int(minor.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(units: int, decimals: int = DEFAULT_DECIMALS) -> Decimal:
    """Convert integer minor units back to a display-scale Decimal (exact)."""
    return Decimal(units).scaleb(-decimals)


def allocate_shares(total_minor: int, weights: Sequence[Decimal]) -> list[int]:
    """
    Split an integer amount proportionally to weights, losing nothing.

    Steps:
    1. Compute each exact share as a fraction of the total
    2. Floor every share to whole minor units
    3. Hand the leftover units, one each, to the largest fractional remainders
       (earlier positions win ties)

    Args:
        total_minor: Amount to split, in minor units
        weights: Positive relative weights, one per recipient

    Returns:
        Shares in minor units, in the order of ``weights``, summing to
        ``total_minor``
    """
    if not weights:
        return []

    fractions = [Fraction(w) for w in weights]
    total_weight = sum(fractions)
    if total_weight <= 0:
        # Equal split
        fractions = [Fraction(1)] * len(weights)
        total_weight = Fraction(len(weights))

    exact = [Fraction(total_minor) * w / total_weight for w in fractions]
    shares = [int(share) for share in exact]  # non-negative, so int() floors
    leftover = total_minor - sum(shares)

    by_remainder = sorted(
        range(len(exact)), key=lambda i: (-(exact[i] - shares[i]), i)
    )
    for i in by_remainder[:leftover]:
        shares[i] += 1

    assert sum(shares) == total_minor, "Allocation failed"
    return shares


def expense_debits(
    expense: Expense, decimals: int = DEFAULT_DECIMALS
) -> dict[str, int]:
    """
    Compute what each included participant owes for one expense.

    The amount split is what the contributors were actually credited, in
    minor units, so credits and debits of an expense always cancel out.

    Returns:
        Mapping member_id -> owed minor units; empty when the expense
        contributes nothing (zero total or nobody included)
    """
    paid = sum(to_minor_units(c.amount, decimals) for c in expense.contributions)
    included = expense.included_participants
    if paid <= 0 or not included:
        return {}

    shares = allocate_shares(paid, [p.weight for p in included])
    return {p.member_id: share for p, share in zip(included, shares, strict=True)}


def calc_minor_balances(
    members: Iterable[Member],
    expenses: Iterable[Expense],
    decimals: int = DEFAULT_DECIMALS,
) -> dict[str, int]:
    """
    Derive every member's net position in minor units.

    Positive means the member is owed money, negative means they owe money.

    Args:
        members: Registered members (every one gets an entry)
        expenses: The expense ledger

    Returns:
        Mapping member_id -> signed minor units, summing to exactly zero
    """
    balances = {m.id: 0 for m in members}

    for expense in expenses:
        debits = expense_debits(expense, decimals)
        if not debits:
            logger.debug(f"Skipping expense {expense.id}: nothing to split")
            continue

        for contribution in expense.contributions:
            assert contribution.member_id in balances, (
                f"Expense {expense.id} references unknown member "
                f"{contribution.member_id}"
            )
            balances[contribution.member_id] += to_minor_units(
                contribution.amount, decimals
            )

        for member_id, owed in debits.items():
            assert member_id in balances, (
                f"Expense {expense.id} references unknown member {member_id}"
            )
            balances[member_id] -= owed

    assert sum(balances.values()) == 0, "Balances do not sum to zero"
    return balances


def calc_balances(
    members: Iterable[Member],
    expenses: Iterable[Expense],
    decimals: int = DEFAULT_DECIMALS,
) -> dict[str, Decimal]:
    """
    Derive every member's net position in currency units.

    This is a pure function of (members, expenses).
    """
    return {
        member_id: from_minor_units(units, decimals)
        for member_id, units in calc_minor_balances(
            members, expenses, decimals
        ).items()
    }
