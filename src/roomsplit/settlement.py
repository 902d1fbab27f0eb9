"""Settlement planning: turn net balances into a short list of transfers.

The planner is greedy. It matches the largest remaining debt against the
largest remaining credit, one transfer at a time. For ``N`` members with a
nonzero balance it never produces more than ``N - 1`` transfers, and it always
gives the same output for the same balances. It is not guaranteed to find
the smallest possible number of transfers; that problem is NP-hard in general.
"""

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal

from .balances import DEFAULT_DECIMALS, from_minor_units, to_minor_units
from .models import Transfer

logger = logging.getLogger(__name__)


def simplify_minor(
    balances: Mapping[str, int], tolerance: int = 0
) -> list[tuple[str, str, int]]:
    """
    Plan transfers over integer minor-unit balances.

    Steps:
    1. Split members into creditors (> tolerance) and debtors (< -tolerance)
    2. Sort both by magnitude, largest first (member id breaks ties)
    3. Walk both lists with two cursors, paying min(debt, credit) each step;
       a cursor moves on once its remaining amount is within tolerance
    4. Stop when either list runs out; leftovers are rounding noise

    Args:
        balances: Mapping member_id -> signed minor units
        tolerance: Absolute amount (minor units) treated as settled

    Returns:
        List of (from_member_id, to_member_id, amount) tuples
    """
    creditors = sorted(
        ((mid, amount) for mid, amount in balances.items() if amount > tolerance),
        key=lambda x: (-x[1], x[0]),
    )
    debtors = sorted(
        ((mid, -amount) for mid, amount in balances.items() if amount < -tolerance),
        key=lambda x: (-x[1], x[0]),
    )

    transfers: list[tuple[str, str, int]] = []
    i, j = 0, 0
    debt = debtors[0][1] if debtors else 0
    credit = creditors[0][1] if creditors else 0

    while i < len(debtors) and j < len(creditors):
        pay = min(debt, credit)
        transfers.append((debtors[i][0], creditors[j][0], pay))
        debt -= pay
        credit -= pay

        if debt <= tolerance:
            i += 1
            if i < len(debtors):
                debt = debtors[i][1]
        if credit <= tolerance:
            j += 1
            if j < len(creditors):
                credit = creditors[j][1]

    return transfers


def simplify(
    balances: Mapping[str, Decimal],
    tolerance: Decimal = Decimal("0"),
    decimals: int = DEFAULT_DECIMALS,
) -> list[Transfer]:
    """
    Produce a settlement plan that brings every balance back to zero.

    Args:
        balances: Mapping member_id -> signed balance in currency units
        tolerance: Balances within this distance of zero count as settled
        decimals: Number of minor-unit digits of the currency

    Returns:
        Ordered list of transfers (debtor pays creditor)
    """
    minor = {
        member_id: to_minor_units(amount, decimals)
        for member_id, amount in balances.items()
    }
    planned = simplify_minor(minor, to_minor_units(tolerance, decimals))

    transfers = [
        Transfer(
            from_member_id=debtor,
            to_member_id=creditor,
            amount=from_minor_units(amount, decimals),
        )
        for debtor, creditor, amount in planned
    ]

    logger.info(
        f"Planned {len(transfers)} transfer(s) for "
        f"{sum(1 for units in minor.values() if units != 0)} unsettled member(s)"
    )
    return transfers


def apply_transfers(
    balances: Mapping[str, Decimal], transfers: Iterable[Transfer]
) -> dict[str, Decimal]:
    """
    Apply transfers to balances as if every payment had been made.

    Paying raises the payer's (negative) balance and lowers the receiver's
    (positive) balance by the same amount.

    Returns:
        New balances mapping; ``balances`` is left untouched
    """
    result = dict(balances)
    for transfer in transfers:
        result[transfer.from_member_id] = (
            result.get(transfer.from_member_id, Decimal("0")) + transfer.amount
        )
        result[transfer.to_member_id] = (
            result.get(transfer.to_member_id, Decimal("0")) - transfer.amount
        )
    return result
