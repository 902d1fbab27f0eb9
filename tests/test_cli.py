"""Tests for the Typer CLI."""

import json
from decimal import Decimal

import pytest
from typer.testing import CliRunner

from roomsplit.cli import app, format_money


@pytest.fixture
def env(tmp_path, monkeypatch):
    """Point the CLI at a temporary store and working directory."""
    monkeypatch.chdir(tmp_path)
    return {"ROOMSPLIT_DATABASE_PATH": str(tmp_path / "cli.db")}


@pytest.fixture
def runner():
    """Create a CLI runner."""
    return CliRunner()


def invoke(runner, env, *args):
    """Invoke the CLI and fail loudly on a non-zero exit."""
    result = runner.invoke(app, list(args), env=env)
    assert result.exit_code == 0, result.output
    return result


class TestFormatMoney:
    """Accounting-style money formatting."""

    def test_plain(self):
        """Negative amounts use parentheses, positive ones are padded."""
        assert format_money(Decimal("-85.02"), use_color=False) == "(85.02)"
        assert format_money(Decimal("1234.5"), use_color=False) == " 1,234.50 "


class TestCommands:
    """Full command flows against a temporary store."""

    def test_split_and_settle(self, runner, env):
        """Members, an expense, balances and a settlement plan."""
        invoke(runner, env, "member", "add", "Asha")
        invoke(runner, env, "member", "add", "Ben")
        invoke(runner, env, "member", "add", "Chen")
        invoke(
            runner,
            env,
            *["expense", "add", "Groceries", "--amount", "90", "--paid-by", "Asha"],
        )

        balances = invoke(runner, env, "balances")
        assert "60.00" in balances.output
        assert "30.00" in balances.output

        plan = invoke(runner, env, "settle")
        assert "Ben" in plan.output
        assert "Chen" in plan.output

    def test_weighted_multi_payer(self, runner, env):
        """--payer and --split build a multi-payer, weighted expense."""
        invoke(runner, env, "member", "add", "Asha")
        invoke(runner, env, "member", "add", "Ben")
        invoke(
            runner,
            env,
            "expense",
            "add",
            "Trip",
            "--payer",
            "Asha=20",
            "--payer",
            "Ben=10",
            "--split",
            "Asha",
            "--split",
            "Ben:2",
        )

        exported = invoke(runner, env, "export", "-")
        data = json.loads(exported.output)
        expense = data["expenses"][0]
        assert expense["totalAmount"] == "30"
        assert [p["weight"] for p in expense["participants"]] == ["1", "2"]

    def test_validation_error_exits_non_zero(self, runner, env):
        """Domain errors are reported with exit code 1."""
        result = runner.invoke(app, ["member", "add", "   "], env=env)

        assert result.exit_code == 1
        assert "Member name cannot be empty" in result.output

    @pytest.mark.parametrize("amount", ["1e30", "0.005"])
    def test_unbookable_amount_exits_non_zero(self, runner, env, amount):
        """Amounts out of range or finer than a paisa are refused."""
        invoke(runner, env, "member", "add", "Asha")

        result = runner.invoke(
            app,
            ["expense", "add", "Chai", "--amount", amount, "--paid-by", "Asha"],
            env=env,
        )

        assert result.exit_code == 1
        assert "Amount" in result.output

    def test_import_rejects_bad_file(self, runner, env, tmp_path):
        """Invalid import files are refused."""
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps({"members": []}))

        result = runner.invoke(app, ["import", str(bad), "--yes"], env=env)

        assert result.exit_code == 1
        assert "expenses" in result.output

    def test_export_import_round_trip(self, runner, env, tmp_path):
        """An exported file can be imported into a fresh store."""
        invoke(runner, env, "member", "add", "Asha")
        target = tmp_path / "export.json"
        invoke(runner, env, "export", str(target))

        fresh_env = {"ROOMSPLIT_DATABASE_PATH": str(tmp_path / "fresh.db")}
        invoke(runner, fresh_env, "import", str(target), "--yes")

        listed = invoke(runner, fresh_env, "member", "list")
        assert "Asha" in listed.output

    def test_all_settled(self, runner, env):
        """With nothing owed, settle says so."""
        result = invoke(runner, env, "settle")

        assert "All settled" in result.output
