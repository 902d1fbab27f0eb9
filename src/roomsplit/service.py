"""Service layer that composes the ledger engine with storage and notifications.

The engine itself is a set of pure functions over ``GroupState`` snapshots.
This service holds the one authoritative snapshot, swaps it only after a
mutation succeeds, and then saves it explicitly.
"""

import logging
from collections.abc import Mapping, Sequence
from decimal import Decimal

from . import ledger, registry
from .balances import calc_balances
from .config import Settings
from .db import Database
from .exceptions import ImportFormatError, StorageError, ValidationError
from .interchange import export_json, export_state, import_json, import_state
from .models import (
    Contribution,
    Expense,
    GroupState,
    Member,
    NotificationOutcome,
    ParticipantShare,
    Transfer,
)
from .notifications import Notifier, notify_transfers
from .settlement import simplify

logger = logging.getLogger(__name__)


class GroupService:
    """Service for managing one group's members, expenses and settlements."""

    def __init__(self, settings: Settings, database: Database):
        """Initialize the group service."""
        self.settings = settings
        self.db = database
        self._state: GroupState | None = None

    # ========================================================================
    # Snapshot handling
    # ========================================================================

    @property
    def state(self) -> GroupState:
        """The current authoritative snapshot (loaded on first access)."""
        if self._state is None:
            self._state = self._load_state()
        return self._state

    def _load_state(self) -> GroupState:
        data = self.db.load(self.settings.state_key)
        if data is None:
            logger.debug("No saved group found, starting empty")
            return GroupState()
        try:
            return import_state(data, self.settings.currency_decimals)
        except ImportFormatError as e:
            raise StorageError(f"Saved group is not a valid snapshot: {e}") from e

    def _commit(self, state: GroupState) -> GroupState:
        """Make ``state`` authoritative and persist it."""
        self.db.save(self.settings.state_key, export_state(state))
        self._state = state
        logger.debug(
            f"Saved snapshot: {len(state.members)} members, "
            f"{len(state.expenses)} expenses"
        )
        return state

    # ========================================================================
    # Members
    # ========================================================================

    def find_member(self, ref: str) -> Member:
        """Find a member by id or name."""
        return registry.resolve_member(self.state, ref)

    def add_member(self, name: str, email: str | None = None) -> Member:
        """Register a member."""
        state, member = registry.add_member(self.state, name, email)
        self._commit(state)
        return member

    def rename_member(
        self, ref: str, name: str | None = None, email: str | None = None
    ) -> Member:
        """Update a member's name and/or email."""
        member = self.find_member(ref)
        state = self._commit(registry.rename_member(self.state, member.id, name, email))
        return registry.get_member(state, member.id)

    def remove_member(self, ref: str) -> Member:
        """Remove a member, cascading through the ledger."""
        member = self.find_member(ref)
        self._commit(registry.remove_member(self.state, member.id))
        return member

    # ========================================================================
    # Expenses
    # ========================================================================

    def add_expense(
        self,
        description: str,
        contributions: Mapping[str, Decimal],
        weights: Mapping[str, Decimal] | None = None,
        excluded: Sequence[str] = (),
        total_amount: Decimal | None = None,
    ) -> Expense:
        """
        Record an expense.

        Args:
            description: What the money was spent on
            contributions: Mapping member_id -> amount that member paid
            weights: Mapping member_id -> weight of the members sharing the
                cost; every member at weight 1 when omitted
            excluded: Member ids that do not share the cost
            total_amount: Stated total, checked against the contributions

        Returns:
            The recorded expense
        """
        if weights is None:
            weights = {m.id: Decimal(1) for m in self.state.members}

        unknown_exclusions = set(excluded) - set(weights)
        if unknown_exclusions:
            raise ValidationError(
                f"Cannot exclude members that are not sharing the expense: "
                f"{', '.join(sorted(unknown_exclusions))}",
                field="participants",
            )

        expense = ledger.new_expense(
            description,
            contributions=[
                Contribution(member_id=member_id, amount=amount)
                for member_id, amount in contributions.items()
            ],
            participants=[
                ParticipantShare(
                    member_id=member_id,
                    weight=weight,
                    included=member_id not in excluded,
                )
                for member_id, weight in weights.items()
            ],
            total_amount=total_amount,
        )
        self._commit(
            ledger.add_expense(self.state, expense, self.settings.currency_decimals)
        )
        return expense

    def remove_expense(self, expense_id: str) -> Expense:
        """Delete an expense."""
        expense = ledger.get_expense(self.state, expense_id)
        self._commit(ledger.remove_expense(self.state, expense_id))
        return expense

    # ========================================================================
    # Balances and settlement
    # ========================================================================

    def balances(self) -> dict[str, Decimal]:
        """Net position of every member."""
        state = self.state
        return calc_balances(
            state.members, state.expenses, self.settings.currency_decimals
        )

    def settlement_plan(self) -> list[Transfer]:
        """Transfers that settle every balance."""
        return simplify(
            self.balances(),
            tolerance=self.settings.settlement_tolerance,
            decimals=self.settings.currency_decimals,
        )

    def notify_settlement(
        self, notifier: Notifier, transfers: Sequence[Transfer] | None = None
    ) -> list[NotificationOutcome]:
        """
        Send a notice for every transfer of the settlement plan.

        The whole plan is computed before the first notice goes out.
        """
        if transfers is None:
            transfers = self.settlement_plan()

        outcomes = notify_transfers(
            transfers,
            self.state.members_by_id(),
            notifier,
            currency_code=self.settings.currency_code,
            decimals=self.settings.currency_decimals,
        )

        sent = sum(1 for outcome in outcomes if outcome.success)
        logger.info(f"Delivered {sent} of {len(outcomes)} settlement notice(s)")
        return outcomes

    # ========================================================================
    # Import / export
    # ========================================================================

    def export_json(self) -> str:
        """Current snapshot as a JSON document."""
        return export_json(self.state)

    def import_json(self, text: str) -> GroupState:
        """Replace the current snapshot with an imported one (all-or-nothing)."""
        return self._commit(import_json(text, self.settings.currency_decimals))

    def reset(self) -> None:
        """Clear all members and expenses."""
        self._commit(GroupState())
        logger.info("Cleared all members and expenses")
