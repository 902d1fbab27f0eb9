"""RoomSplit - Track shared expenses and settle up with as few payments as possible."""

__version__ = "0.1.0"

from .balances import calc_balances, from_minor_units, to_minor_units
from .config import Settings, load_settings
from .db import Database
from .models import (
    Contribution,
    Expense,
    GroupState,
    Member,
    ParticipantShare,
    Transfer,
)
from .service import GroupService
from .settlement import simplify

__all__ = [
    "Settings",
    "load_settings",
    "Database",
    "Contribution",
    "Expense",
    "GroupState",
    "Member",
    "ParticipantShare",
    "Transfer",
    "calc_balances",
    "from_minor_units",
    "to_minor_units",
    "simplify",
    "GroupService",
]
