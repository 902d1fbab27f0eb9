"""Interactive UI components for picking members."""

import logging
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from .models import Member

logger = logging.getLogger(__name__)


class MemberCompleter(Completer):
    """Fuzzy search completer for group members."""

    def __init__(self, members: list[Member]):
        """Initialize the completer with available members."""
        self.members = members

        # Build display labels and label-to-id mapping
        self.searchable = []
        self.label_to_id = {}
        for member in members:
            label = member_label(member)
            self.searchable.append((member.id, label))
            self.label_to_id[label] = member.id

    def get_completions(self, document: Document, complete_event: Any):
        """Get fuzzy-matched completions."""
        query = document.text.lower()

        for _member_id, label in self.searchable:
            if not query:
                yield Completion(text=label, start_position=0, display=label)
            elif fuzzy_match(query, label.lower()):
                yield Completion(
                    text=label, start_position=-len(document.text), display=label
                )


def member_label(member: Member) -> str:
    """Label shown for a member in pickers."""
    return f"{member.name} <{member.email}>" if member.email else member.name


def fuzzy_match(query: str, text: str) -> bool:
    """
    Fuzzy match: all characters in query must appear in order in text.

    Example:
        query="asa" matches "Asha"
        query="rv" matches "Ravi"
    """
    query_idx = 0
    for char in text:
        if query_idx < len(query) and char == query[query_idx]:
            query_idx += 1
    return query_idx == len(query)


def select_member_interactive(members: list[Member], prompt: str) -> str | None:
    """
    Interactive member selection with fuzzy search.

    Args:
        members: Members to choose from
        prompt: What the member is being chosen for

    Returns:
        Selected member id, or None to cancel
    """
    if not members:
        return None

    print(f"\n👤 {prompt}")
    print("   Type to search, press Enter to confirm, Ctrl+C to cancel\n")

    completer = MemberCompleter(members)
    session: PromptSession[str] = PromptSession(completer=completer)

    try:
        while True:
            result = session.prompt("Member: ", complete_while_typing=True)

            if not result:
                return None

            member_id = completer.label_to_id.get(result)
            if member_id is None:
                # Accept a plain name as typed, when it is unambiguous
                matches = [m for m in members if m.name.lower() == result.lower()]
                if len(matches) == 1:
                    member_id = matches[0].id

            if member_id:
                logger.info(f"User selected member: {member_id}")
                return member_id

            print("❌ Unknown member. Please select from the list or press Tab.")

    except KeyboardInterrupt:
        print("\n⏭️  Cancelled")
        return None
    except EOFError:
        return None


def confirm(question: str, default: bool = False) -> bool:
    """Simple yes/no confirmation."""
    suffix = "[Y/n]" if default else "[y/N]"
    response = input(f"{question} {suffix} ").strip().lower()
    if not response:
        return default
    return response in ("y", "yes")
