"""CLI for RoomSplit using Typer."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from .clients.email import EmailClient
from .config import Settings, load_settings
from .db import Database
from .exceptions import RoomSplitError, ValidationError
from .interchange import export_filename
from .models import Expense, Member
from .service import GroupService
from .ui import confirm, select_member_interactive

app = typer.Typer(
    name="roomsplit",
    help="Track shared expenses and settle up with as few payments as possible",
)
member_app = typer.Typer(help="Manage group members")
expense_app = typer.Typer(help="Record and review expenses")
app.add_typer(member_app, name="member")
app.add_typer(expense_app, name="expense")

console = Console()

_options = {"verbose": False}


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    # Network requests are too noisy unless debugging
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Track shared expenses and settle up."""
    _options["verbose"] = verbose
    setup_logging(verbose)


@contextmanager
def open_service() -> Iterator[tuple[GroupService, Settings]]:
    """Open the configured store and report errors the way every command does."""
    db = None
    try:
        settings = load_settings()
        db = Database(settings.database_path)
        yield GroupService(settings, db), settings
    except RoomSplitError as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if _options["verbose"]:
            raise
        sys.exit(1)
    finally:
        if db is not None:
            db.close()


# ============================================================================
# Formatting helpers
# ============================================================================


def format_money(amount: Decimal, decimals: int = 2, use_color: bool = True) -> str:
    """
    Format money in accounting style with alignment.

    Negative amounts use parentheses: (85.02)
    Positive amounts have spaces:      85.02
    The spaces ensure decimal points align in tables.
    """
    text = f"{abs(amount):,.{decimals}f}"
    if amount < 0:
        return f"([red]{text}[/red])" if use_color else f"({text})"
    if amount > 0 and use_color:
        return f" [green]{text}[/green] "
    return f" {text} "


def parse_amount(text: str, field: str = "amount") -> Decimal:
    """Parse a user-entered amount."""
    try:
        amount = Decimal(text.strip())
    except InvalidOperation as e:
        raise ValidationError(f"Not a valid amount: '{text}'", field=field) from e
    if not amount.is_finite():
        raise ValidationError(f"Not a valid amount: '{text}'", field=field)
    return amount


def _split_ref(text: str, separator: str) -> tuple[str, str | None]:
    ref, found, value = text.rpartition(separator)
    if not found:
        return text, None
    return ref, value


def _member_names(members: list[Member]) -> dict[str, str]:
    return {m.id: m.name for m in members}


# ============================================================================
# Member commands
# ============================================================================


@member_app.command("add")
def member_add(
    name: str = typer.Argument(..., help="Display name"),
    email: str | None = typer.Option(None, "--email", "-e", help="Email address"),
):
    """Add a member to the group."""
    with open_service() as (service, _settings):
        member = service.add_member(name, email)
        console.print(
            f"[green]✓ Added {member.name}[/green] [dim]({member.id})[/dim]"
        )


@member_app.command("list")
def member_list():
    """List members with their current balance."""
    with open_service() as (service, settings):
        members = service.state.members
        if not members:
            console.print("[yellow]No members yet. Add one with 'member add'.[/yellow]")
            return

        balances = service.balances()
        table = Table(title="Members", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim", width=12)
        table.add_column("Name", style="cyan")
        table.add_column("Email")
        table.add_column("Balance", justify="right", width=14)

        for member in members:
            table.add_row(
                member.id[:12],
                member.name,
                member.email or "[dim]—[/dim]",
                format_money(balances[member.id], settings.currency_decimals),
            )
        console.print(table)


@member_app.command("rename")
def member_rename(
    ref: str = typer.Argument(..., help="Member id or name"),
    name: str = typer.Argument(..., help="New display name"),
    email: str | None = typer.Option(None, "--email", "-e", help="New email address"),
):
    """Rename a member (and optionally change their email)."""
    with open_service() as (service, _settings):
        member = service.rename_member(ref, name=name, email=email)
        console.print(f"[green]✓ Updated {member.name}[/green]")


@member_app.command("remove")
def member_remove(
    ref: str = typer.Argument(..., help="Member id or name"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
):
    """
    Remove a member.

    Their payments and shares are dropped from every expense; expenses left
    with nobody to split between are deleted.
    """
    with open_service() as (service, _settings):
        member = service.find_member(ref)
        affected = sum(1 for e in service.state.expenses if e.references(member.id))

        if not yes and affected:
            console.print(
                f"\n[bold yellow]⚠️  {member.name} appears in {affected} "
                f"expense(s)[/bold yellow]"
            )
            if not confirm("Remove them anyway?"):
                console.print("[yellow]Cancelled.[/yellow]")
                return

        before = len(service.state.expenses)
        service.remove_member(member.id)
        dropped = before - len(service.state.expenses)
        console.print(f"[green]✓ Removed {member.name}[/green]")
        if dropped:
            console.print(f"[dim]{dropped} expense(s) removed with them[/dim]")


# ============================================================================
# Expense commands
# ============================================================================


@expense_app.command("add")
def expense_add(
    description: str = typer.Argument(..., help="What the money was spent on"),
    amount: str | None = typer.Option(
        None, "--amount", "-a", help="Total amount (derived from --payer if omitted)"
    ),
    paid_by: str | None = typer.Option(
        None, "--paid-by", "-p", help="Single payer who paid the full amount"
    ),
    payers: list[str] = typer.Option(
        [], "--payer", help="Multi-payer contribution as REF=AMOUNT (repeatable)"
    ),
    split: list[str] = typer.Option(
        [], "--split", "-s", help="Participant as REF or REF:WEIGHT (repeatable)"
    ),
    exclude: list[str] = typer.Option(
        [], "--exclude", "-x", help="Member who does not share the cost (repeatable)"
    ),
):
    """
    Record an expense.

    By default the cost is split equally between all members. Use --split to
    choose participants and weights (e.g. --split Asha:2 --split Ravi), and
    --exclude to leave someone out.
    """
    with open_service() as (service, settings):
        state = service.state
        if not state.members:
            console.print("[yellow]Add at least one member first.[/yellow]")
            return

        total = parse_amount(amount) if amount is not None else None

        contributions: dict[str, Decimal] = {}
        if payers:
            if paid_by:
                raise ValidationError("Use either --paid-by or --payer, not both")
            for entry in payers:
                ref, value = _split_ref(entry, "=")
                if value is None:
                    raise ValidationError(
                        f"--payer expects REF=AMOUNT, got '{entry}'", field="payer"
                    )
                member = service.find_member(ref)
                contributions[member.id] = parse_amount(value, field="payer")
        else:
            if total is None:
                raise ValidationError("--amount is required with a single payer")
            payer_id = (
                service.find_member(paid_by).id
                if paid_by
                else select_member_interactive(list(state.members), "Who paid?")
            )
            if payer_id is None:
                console.print("[yellow]No payer selected.[/yellow]")
                return
            contributions[payer_id] = total

        weights: dict[str, Decimal] | None = None
        if split:
            weights = {}
            for entry in split:
                ref, value = _split_ref(entry, ":")
                member = service.find_member(ref)
                weights[member.id] = (
                    parse_amount(value, field="weight") if value else Decimal(1)
                )

        excluded = [service.find_member(ref).id for ref in exclude]

        expense = service.add_expense(
            description,
            contributions=contributions,
            weights=weights,
            excluded=excluded,
            total_amount=total,
        )

        desc = expense.description or "(no description)"
        amount_text = format_money(
            expense.total_amount or Decimal(0), settings.currency_decimals
        )
        console.print(
            f"[green]✓ Recorded '{desc}'[/green] {amount_text} "
            f"[dim]({expense.id})[/dim]"
        )


def _describe_split(expense: Expense, names: dict[str, str]) -> str:
    parts = []
    for share in expense.included_participants:
        name = names.get(share.member_id, "?")
        parts.append(name if share.weight == 1 else f"{name} ×{share.weight}")
    return ", ".join(parts)


@expense_app.command("list")
def expense_list():
    """List expenses, most recent first."""
    with open_service() as (service, settings):
        state = service.state
        if not state.expenses:
            console.print("[yellow]No expenses yet.[/yellow]")
            return

        names = _member_names(list(state.members))
        table = Table(title="Expenses", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim", width=12)
        table.add_column("Date", width=10)
        table.add_column("Description", style="cyan", width=30)
        table.add_column("Amount", justify="right", width=14)
        table.add_column("Paid by", style="yellow")
        table.add_column("Split between", no_wrap=False)

        for expense in sorted(state.expenses, key=lambda e: e.created_at, reverse=True):
            desc = expense.description or "(no description)"
            payers = ", ".join(
                names.get(c.member_id, "?")
                if len(expense.contributions) == 1
                else f"{names.get(c.member_id, '?')} "
                f"{c.amount:,.{settings.currency_decimals}f}"
                for c in expense.contributions
            )
            table.add_row(
                expense.id[:12],
                expense.created_at.date().isoformat(),
                desc[:30] + "..." if len(desc) > 30 else desc,
                format_money(
                    expense.total_amount or Decimal(0), settings.currency_decimals
                ),
                payers,
                _describe_split(expense, names),
            )
        console.print(table)


@expense_app.command("remove")
def expense_remove(
    expense_id: str = typer.Argument(..., help="Expense id (or a unique prefix)"),
):
    """Delete an expense permanently."""
    with open_service() as (service, _settings):
        matches = [e for e in service.state.expenses if e.id.startswith(expense_id)]
        if len(matches) > 1:
            raise ValidationError(f"'{expense_id}' matches {len(matches)} expenses")
        target = matches[0].id if matches else expense_id
        expense = service.remove_expense(target)
        console.print(
            f"[green]✓ Deleted '{expense.description or '(no description)'}'[/green]"
        )


# ============================================================================
# Balances and settlement
# ============================================================================


@app.command()
def balances():
    """Show every member's net balance."""
    with open_service() as (service, settings):
        state = service.state
        if not state.members:
            console.print("[yellow]Add members to compute balances.[/yellow]")
            return

        current = service.balances()
        table = Table(
            title=f"Balances ({settings.currency_code})",
            show_header=True,
            header_style="bold magenta",
        )
        table.add_column("Member", style="cyan")
        table.add_column("Balance", justify="right", width=14)
        table.add_column("Status")

        for member in state.members:
            balance = current[member.id]
            status = (
                "[green]To receive[/green]"
                if balance > 0
                else "[red]To pay[/red]"
                if balance < 0
                else "[dim]Settled[/dim]"
            )
            table.add_row(
                member.name,
                format_money(balance, settings.currency_decimals),
                status,
            )
        console.print(table)


@app.command()
def settle(
    notify: bool = typer.Option(
        False, "--notify", "-n", help="Email each payer their transfer"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
):
    """Show who pays whom to settle all balances."""
    with open_service() as (service, settings):
        plan = service.settlement_plan()
        if not plan:
            console.print("[green]✓ All settled.[/green]")
            return

        names = _member_names(list(service.state.members))
        table = Table(
            title="Settlement Plan", show_header=True, header_style="bold magenta"
        )
        table.add_column("From", style="red")
        table.add_column("To", style="green")
        table.add_column(
            f"Amount ({settings.currency_code})", justify="right", width=14
        )
        for transfer in plan:
            table.add_row(
                names[transfer.from_member_id],
                names[transfer.to_member_id],
                format_money(transfer.amount, settings.currency_decimals, False),
            )
        console.print(table)

        if not notify:
            return

        if not yes:
            console.print(
                f"\n[bold yellow]⚠️  Ready to email {len(plan)} settlement "
                f"notice(s)[/bold yellow]"
            )
            if not confirm("Continue?"):
                console.print("[yellow]Cancelled.[/yellow]")
                return

        with EmailClient(
            settings.email_endpoint_url, timeout=settings.email_timeout
        ) as client:
            outcomes = service.notify_settlement(client, plan)

        for outcome in outcomes:
            payer = names[outcome.transfer.from_member_id]
            if outcome.success:
                console.print(
                    f"[green]✓ Notified {payer} ({outcome.recipient})[/green]"
                )
            elif outcome.skipped:
                console.print(f"[dim]– Skipped {payer}: {outcome.error}[/dim]")
            else:
                console.print(
                    f"[red]✗ Failed to notify {payer}: {outcome.error}[/red]"
                )


# ============================================================================
# Import / export / housekeeping
# ============================================================================


@app.command("export")
def export_command(
    path: Path | None = typer.Argument(
        None,
        help="Output file (default: roommate-expenses-<date>.json, '-' for stdout)",
    ),
):
    """Export members and expenses as JSON."""
    with open_service() as (service, _settings):
        document = service.export_json()
        if path is not None and str(path) == "-":
            print(document)
            return

        target = path or Path(export_filename(date.today()))
        target.write_text(document + "\n", encoding="utf-8")
        console.print(f"[green]✓ Exported to {target}[/green]")


@app.command("import")
def import_command(
    path: Path = typer.Argument(..., help="JSON file produced by 'export'"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
):
    """Replace all members and expenses with the contents of a JSON file."""
    with open_service() as (service, _settings):
        text = path.read_text(encoding="utf-8")

        if not yes and (service.state.members or service.state.expenses):
            console.print(
                "\n[bold yellow]⚠️  This replaces all current members and "
                "expenses[/bold yellow]"
            )
            if not confirm("Continue?"):
                console.print("[yellow]Cancelled.[/yellow]")
                return

        state = service.import_json(text)
        console.print(
            f"[green]✓ Imported {len(state.members)} members and "
            f"{len(state.expenses)} expenses[/green]"
        )


@app.command()
def reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
):
    """Clear all members and expenses."""
    with open_service() as (service, _settings):
        if not yes and not confirm("Clear all members & expenses?"):
            console.print("[yellow]Cancelled.[/yellow]")
            return
        service.reset()
        console.print("[green]✓ Cleared.[/green]")


@app.command()
def status():
    """Show a summary of the stored group."""
    with open_service() as (service, settings):
        state = service.state
        updated_at = service.db.get_updated_at(settings.state_key)
        plan = service.settlement_plan()

        console.print("\n[bold]Group status:[/bold]")
        console.print(f"  Members:   {len(state.members)}")
        console.print(f"  Expenses:  {len(state.expenses)}")
        console.print(f"  Transfers to settle: {len(plan)}")
        console.print(f"  Store:     {settings.database_path}")
        console.print(
            f"  Last saved: {updated_at:%Y-%m-%d %H:%M}"
            if updated_at
            else "  Last saved: [dim]never[/dim]"
        )


if __name__ == "__main__":
    app()
