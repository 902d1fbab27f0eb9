"""JSON import/export of a group snapshot.

The interchange shape is ``{"members": [...], "expenses": [...]}`` with
camelCase record keys, the same shape the service persists.
"""

import json
import logging
from datetime import date
from typing import Any

import pydantic

from .balances import DEFAULT_DECIMALS
from .exceptions import ImportFormatError, ValidationError
from .ledger import validate_expense
from .models import Expense, GroupState, Member

logger = logging.getLogger(__name__)


def export_state(state: GroupState) -> dict[str, Any]:
    """Convert a snapshot to a JSON-compatible dict."""
    return state.model_dump(mode="json", by_alias=True)


def export_json(state: GroupState, indent: int = 2) -> str:
    """Serialize a snapshot to a JSON document."""
    return json.dumps(export_state(state), indent=indent)


def export_filename(day: date) -> str:
    """Default file name for an export taken on ``day``."""
    return f"roommate-expenses-{day.isoformat()}.json"


def import_state(data: Any, decimals: int = DEFAULT_DECIMALS) -> GroupState:
    """
    Parse and validate an imported snapshot.

    Nothing is replaced unless the whole payload is valid: both top-level
    fields present and array-typed, every record well formed, ids unique,
    and every expense passing the ledger rules against the imported members.

    Raises:
        ImportFormatError: If the payload is not a valid snapshot
    """
    if not isinstance(data, dict):
        raise ImportFormatError("Import must be a JSON object")
    for field in ("members", "expenses"):
        if not isinstance(data.get(field), list):
            raise ImportFormatError(
                f"Import must contain a '{field}' array", field=field
            )

    try:
        members = tuple(Member.model_validate(m) for m in data["members"])
        expenses = tuple(Expense.model_validate(e) for e in data["expenses"])
    except pydantic.ValidationError as e:
        raise ImportFormatError(f"Invalid record in import: {e}") from e

    _require_unique_ids([m.id for m in members], "members")
    _require_unique_ids([e.id for e in expenses], "expenses")

    for expense in expenses:
        try:
            validate_expense(members, expense, decimals)
        except ValidationError as e:
            raise ImportFormatError(
                f"Invalid expense '{expense.description}' ({expense.id}): {e}",
                field=e.field,
            ) from e

    logger.info(f"Imported {len(members)} members and {len(expenses)} expenses")
    return GroupState(members=members, expenses=expenses)


def import_json(text: str, decimals: int = DEFAULT_DECIMALS) -> GroupState:
    """Parse a JSON document into a validated snapshot."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ImportFormatError(f"Import is not valid JSON: {e}") from e
    return import_state(data, decimals)


def _require_unique_ids(ids: list[str], field: str) -> None:
    if len(set(ids)) != len(ids):
        raise ImportFormatError(f"Duplicate ids in '{field}'", field=field)
