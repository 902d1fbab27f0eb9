"""Pydantic domain models for RoomSplit."""

import uuid
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

# JSON documents use camelCase keys, Python code uses snake_case. Records are
# immutable; changes go through model_copy.
_RECORD_CONFIG = ConfigDict(
    frozen=True, alias_generator=to_camel, populate_by_name=True
)


def new_id() -> str:
    """Generate a fresh opaque identifier."""
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ============================================================================
# Ledger Models
# ============================================================================


class Member(BaseModel):
    """A participant in the group."""

    model_config = _RECORD_CONFIG

    id: str = Field(default_factory=new_id)
    name: str
    email: str | None = None


class Contribution(BaseModel):
    """How much one member actually paid toward one expense."""

    model_config = _RECORD_CONFIG

    member_id: str
    amount: Decimal


class ParticipantShare(BaseModel):
    """How much of an expense one member is responsible for, relative to others."""

    model_config = _RECORD_CONFIG

    member_id: str
    weight: Decimal = Decimal(1)
    included: bool = True

    @field_validator("weight", mode="before")
    @classmethod
    def _default_missing_weight(cls, value: Any) -> Any:
        if value is None or value == "":
            return Decimal(1)
        return value

    @field_validator("weight")
    @classmethod
    def _default_non_positive_weight(cls, value: Decimal) -> Decimal:
        # Non-positive weights fall back to an equal share
        return value if value > 0 else Decimal(1)


_TOTAL_KEYS = ("totalAmount", "total_amount", "amount")


def _stated_total(data: dict) -> Any:
    return next((data[k] for k in _TOTAL_KEYS if data.get(k) is not None), None)


def _sum_contributions(items: Any) -> Decimal | None:
    """Sum raw contribution input, or None if it is not summable.

    Malformed input is left for field validation to report.
    """
    total = Decimal("0")
    try:
        for item in items:
            amount = item.amount if isinstance(item, Contribution) else item["amount"]
            total += amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (ArithmeticError, KeyError, TypeError, ValueError):
        return None
    return total


class Expense(BaseModel):
    """A shared expense.

    Every expense carries an explicit contribution list and participant list.
    A single-payer expense is one contribution; an equal split is every
    participant at weight 1. Input that uses the ``payerId`` shorthand is
    expanded into a one-element contribution list.

    When ``total_amount`` is omitted it is derived from the contributions.
    Whether a stated total matches the contributions is checked by the
    ledger, not here.
    """

    model_config = _RECORD_CONFIG

    id: str = Field(default_factory=new_id)
    description: str = ""
    total_amount: Decimal | None = Field(
        default=None,
        validation_alias=AliasChoices(*_TOTAL_KEYS),
        serialization_alias="totalAmount",
    )
    contributions: tuple[Contribution, ...] = ()
    participants: tuple[ParticipantShare, ...] = ()
    created_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="before")
    @classmethod
    def _normalize_input(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)

        payer_key = next((k for k in ("payerId", "payer_id") if k in data), None)
        if payer_key is not None:
            payer_id = data.pop(payer_key)
            if not data.get("contributions"):
                data["contributions"] = [
                    {"memberId": payer_id, "amount": _stated_total(data)}
                ]

        if _stated_total(data) is None:
            derived = _sum_contributions(data.get("contributions") or ())
            if derived is not None:
                data["total_amount"] = derived
        return data

    @property
    def contributed_amount(self) -> Decimal:
        """Sum of all contributions."""
        return sum((c.amount for c in self.contributions), Decimal("0"))

    @property
    def included_participants(self) -> list[ParticipantShare]:
        """Participants that share the cost of this expense."""
        return [p for p in self.participants if p.included]

    def references(self, member_id: str) -> bool:
        """Whether any contribution or participant share points at a member."""
        return any(c.member_id == member_id for c in self.contributions) or any(
            p.member_id == member_id for p in self.participants
        )


class GroupState(BaseModel):
    """Immutable snapshot of the whole group: members plus the expense ledger."""

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    members: tuple[Member, ...] = ()
    expenses: tuple[Expense, ...] = ()

    def member_ids(self) -> set[str]:
        """Ids of all registered members."""
        return {m.id for m in self.members}

    def members_by_id(self) -> dict[str, Member]:
        """Members keyed by id."""
        return {m.id: m for m in self.members}


# ============================================================================
# Settlement Models
# ============================================================================


class Transfer(BaseModel):
    """A recommended payment from one member to another."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_member_id: str = Field(alias="from")
    to_member_id: str = Field(alias="to")
    amount: Decimal


class NotificationResult(BaseModel):
    """What the notifier reports back for a single send."""

    success: bool
    error: str | None = None


class NotificationOutcome(BaseModel):
    """Delivery outcome of one settlement notice."""

    transfer: Transfer
    recipient: str | None = None
    success: bool = False
    skipped: bool = False
    error: str | None = None
