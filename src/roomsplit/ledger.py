"""Expense ledger operations over immutable group snapshots."""

import logging
from collections.abc import Iterable
from decimal import Decimal

from .balances import DEFAULT_DECIMALS, MAX_AMOUNT
from .exceptions import NotFoundError, ValidationError
from .models import Contribution, Expense, GroupState, Member, ParticipantShare

logger = logging.getLogger(__name__)


def new_expense(
    description: str,
    contributions: Iterable[Contribution],
    participants: Iterable[ParticipantShare],
    total_amount: Decimal | None = None,
) -> Expense:
    """
    Build an expense record with a fresh id and creation time.

    Args:
        description: Free-text description (trimmed)
        contributions: Who paid how much
        participants: Who shares the cost, and with which weight
        total_amount: Stated total; derived from contributions when omitted

    Returns:
        The new expense (not yet validated against any group)
    """
    return Expense(
        description=description.strip(),
        total_amount=total_amount,
        contributions=tuple(contributions),
        participants=tuple(participants),
    )


def _check_amount(amount: Decimal, decimals: int, field: str) -> None:
    """Reject amounts the ledger cannot book exactly in minor units."""
    if not amount.is_finite():
        raise ValidationError(f"Amount must be a finite number: {amount}", field=field)
    if amount < 0:
        raise ValidationError(f"Amount cannot be negative: {amount}", field=field)
    if amount > MAX_AMOUNT:
        raise ValidationError(
            f"Amount {amount} exceeds the maximum of {MAX_AMOUNT:,}", field=field
        )
    step = Decimal(1).scaleb(-decimals)
    if amount.as_tuple().exponent < -decimals and amount != amount.quantize(step):
        raise ValidationError(
            f"Amount {amount} has more than {decimals} decimal place(s)", field=field
        )


def validate_expense(
    members: Iterable[Member],
    expense: Expense,
    decimals: int = DEFAULT_DECIMALS,
) -> None:
    """
    Check an expense against the ledger rules.

    Args:
        members: Registered members the expense may reference
        expense: Expense to check
        decimals: Minor-unit digits of the currency; finer amounts are refused

    Raises:
        ValidationError: If any amount is negative, too large or finer than the
            currency's smallest unit, the stated total does not equal the
            contributions exactly, a member appears twice, no participant is
            included, or a member reference is dangling
    """
    known_ids = {m.id for m in members}

    if not expense.contributions:
        raise ValidationError(
            f"Expense '{expense.description}' has no contributions",
            field="contributions",
        )

    for contribution in expense.contributions:
        _check_amount(contribution.amount, decimals, field="contributions")

    total = expense.total_amount
    if total is None:
        raise ValidationError("Expense total is missing", field="total_amount")
    _check_amount(total, decimals, field="total_amount")

    # Exact equality on the amounts as entered
    if expense.contributed_amount != total:
        raise ValidationError(
            f"Contributions add up to {expense.contributed_amount}, "
            f"but the expense total is {total}",
            field="contributions",
        )

    _require_unique(
        [c.member_id for c in expense.contributions], field="contributions"
    )
    _require_unique([p.member_id for p in expense.participants], field="participants")

    if not expense.included_participants:
        raise ValidationError(
            "At least one participant must be included", field="participants"
        )

    referenced = [c.member_id for c in expense.contributions] + [
        p.member_id for p in expense.participants
    ]
    for member_id in referenced:
        if member_id not in known_ids:
            raise ValidationError(
                f"Expense references unknown member '{member_id}'",
                field="member_id",
            )


def _require_unique(member_ids: list[str], field: str) -> None:
    seen: set[str] = set()
    for member_id in member_ids:
        if member_id in seen:
            raise ValidationError(
                f"Member '{member_id}' appears more than once in {field}",
                field=field,
            )
        seen.add(member_id)


def add_expense(
    state: GroupState, expense: Expense, decimals: int = DEFAULT_DECIMALS
) -> GroupState:
    """
    Append a validated expense to the ledger.

    Returns:
        A new snapshot containing the expense; ``state`` is left untouched
    """
    if any(e.id == expense.id for e in state.expenses):
        raise ValidationError(f"Expense id '{expense.id}' already exists", field="id")

    validate_expense(state.members, expense, decimals)

    logger.info(
        f"Added expense '{expense.description}' ({expense.id}): "
        f"{expense.total_amount} split over "
        f"{len(expense.included_participants)} participants"
    )
    return state.model_copy(update={"expenses": (*state.expenses, expense)})


def get_expense(state: GroupState, expense_id: str) -> Expense:
    """Look up an expense by id."""
    for expense in state.expenses:
        if expense.id == expense_id:
            return expense
    raise NotFoundError("expense", expense_id)


def remove_expense(state: GroupState, expense_id: str) -> GroupState:
    """Delete an expense permanently."""
    expense = get_expense(state, expense_id)
    logger.info(f"Removed expense '{expense.description}' ({expense_id})")
    return state.model_copy(
        update={"expenses": tuple(e for e in state.expenses if e.id != expense_id)}
    )


def prune_member(expense: Expense, member_id: str) -> Expense | None:
    """
    Drop every reference to a member from an expense.

    The total is re-derived from the remaining contributions, so a removed
    payer takes their payment with them.

    Returns:
        The pruned expense, the same expense if it never referenced the member,
        or None if nothing is left to split (no included participants or a
        zero total)
    """
    if not expense.references(member_id):
        return expense

    contributions = tuple(c for c in expense.contributions if c.member_id != member_id)
    participants = tuple(p for p in expense.participants if p.member_id != member_id)
    total = sum((c.amount for c in contributions), Decimal("0"))

    if total <= 0 or not any(p.included for p in participants):
        logger.debug(f"Expense {expense.id} dropped with member {member_id}")
        return None

    return expense.model_copy(
        update={
            "contributions": contributions,
            "participants": participants,
            "total_amount": total,
        }
    )
