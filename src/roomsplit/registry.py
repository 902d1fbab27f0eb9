"""Member registry operations over immutable group snapshots."""

import logging

from .exceptions import NotFoundError, ValidationError
from .ledger import prune_member
from .models import GroupState, Member

logger = logging.getLogger(__name__)


def _clean_name(name: str) -> str:
    cleaned = name.strip()
    if not cleaned:
        raise ValidationError("Member name cannot be empty", field="name")
    return cleaned


def _clean_email(email: str | None) -> str | None:
    if email is None or not email.strip():
        return None
    cleaned = email.strip()
    if "@" not in cleaned:
        raise ValidationError(f"Not an email address: '{cleaned}'", field="email")
    return cleaned


def add_member(
    state: GroupState, name: str, email: str | None = None
) -> tuple[GroupState, Member]:
    """
    Register a new member.

    Args:
        state: Current snapshot
        name: Display name (trimmed, must not be empty)
        email: Optional address used for settlement notices

    Returns:
        Tuple of (new snapshot, the created member)
    """
    member = Member(name=_clean_name(name), email=_clean_email(email))
    logger.info(f"Added member '{member.name}' ({member.id})")
    return state.model_copy(update={"members": (*state.members, member)}), member


def get_member(state: GroupState, member_id: str) -> Member:
    """Look up a member by id."""
    for member in state.members:
        if member.id == member_id:
            return member
    raise NotFoundError("member", member_id)


def resolve_member(state: GroupState, ref: str) -> Member:
    """
    Find a member by id, falling back to a case-insensitive name match.

    Raises:
        NotFoundError: If nothing matches
        ValidationError: If the name matches more than one member
    """
    for member in state.members:
        if member.id == ref:
            return member

    wanted = ref.strip().lower()
    matches = [m for m in state.members if m.name.lower() == wanted]
    if len(matches) > 1:
        raise ValidationError(
            f"'{ref}' matches {len(matches)} members; use the member id instead",
            field="member_id",
        )
    if not matches:
        raise NotFoundError("member", ref)
    return matches[0]


def rename_member(
    state: GroupState,
    member_id: str,
    name: str | None = None,
    email: str | None = None,
) -> GroupState:
    """Change a member's display name and/or email. Identity never changes."""
    member = get_member(state, member_id)
    update: dict[str, str | None] = {}
    if name is not None:
        update["name"] = _clean_name(name)
    if email is not None:
        update["email"] = _clean_email(email)

    renamed = member.model_copy(update=update)
    logger.info(f"Updated member {member_id}: '{member.name}' -> '{renamed.name}'")
    return state.model_copy(
        update={
            "members": tuple(renamed if m.id == member_id else m for m in state.members)
        }
    )


def remove_member(state: GroupState, member_id: str) -> GroupState:
    """
    Remove a member and cascade the removal through the ledger.

    Every contribution and participant share of the member is dropped. An
    expense that is left with no included participants, or with nothing paid,
    is removed entirely, so balances keep summing to zero.
    """
    member = get_member(state, member_id)

    expenses = []
    dropped = 0
    for expense in state.expenses:
        pruned = prune_member(expense, member_id)
        if pruned is None:
            dropped += 1
        else:
            expenses.append(pruned)

    logger.info(
        f"Removed member '{member.name}' ({member_id}); "
        f"{dropped} expense(s) dropped with them"
    )
    return GroupState(
        members=tuple(m for m in state.members if m.id != member_id),
        expenses=tuple(expenses),
    )
