"""Tests for GroupService layer."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from roomsplit.config import Settings
from roomsplit.db import Database
from roomsplit.exceptions import (
    ImportFormatError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from roomsplit.models import GroupState, NotificationResult
from roomsplit.service import GroupService


@pytest.fixture
def mock_settings(tmp_path):
    """Create settings pointing at a temporary store."""
    return Settings(_env_file=None, database_path=tmp_path / "roomsplit.db")


@pytest.fixture
def mock_db(mock_settings):
    """Create a temporary database."""
    db = Database(mock_settings.database_path)
    yield db
    db.close()


@pytest.fixture
def service(mock_settings, mock_db):
    """Create a GroupService instance."""
    return GroupService(mock_settings, mock_db)


@pytest.fixture
def roommates(service):
    """Register Asha, Ben and Chen; return their ids."""
    asha = service.add_member("Asha", "asha@example.com")
    ben = service.add_member("Ben", "ben@example.com")
    chen = service.add_member("Chen")
    return asha.id, ben.id, chen.id


class TestMembers:
    """Member operations through the service."""

    def test_starts_empty(self, service):
        """A fresh store holds an empty group."""
        assert service.state == GroupState()
        assert service.balances() == {}
        assert service.settlement_plan() == []

    def test_add_and_find(self, service, roommates):
        """Members can be found by id or name."""
        asha_id, _, _ = roommates

        assert service.find_member("asha").id == asha_id
        assert service.find_member(asha_id).name == "Asha"

    def test_rename(self, service, roommates):
        """Renaming updates the stored member."""
        _, ben_id, _ = roommates

        member = service.rename_member("Ben", name="Benjamin")

        assert member.id == ben_id
        assert service.find_member(ben_id).name == "Benjamin"

    def test_remove_unknown(self, service):
        """Removing someone who is not there is an error."""
        with pytest.raises(NotFoundError):
            service.remove_member("Nobody")


class TestExpensesAndSettlement:
    """End-to-end flow from expenses to a settlement plan."""

    def test_equal_split_defaults_to_everyone(self, service, roommates):
        """Without weights, every member shares equally."""
        asha_id, ben_id, chen_id = roommates

        service.add_expense("Groceries", contributions={asha_id: Decimal("90")})

        assert service.balances() == {
            asha_id: Decimal("60"),
            ben_id: Decimal("-30"),
            chen_id: Decimal("-30"),
        }
        plan = service.settlement_plan()
        assert [(t.from_member_id, t.to_member_id, t.amount) for t in plan] == sorted(
            [
                (ben_id, asha_id, Decimal("30")),
                (chen_id, asha_id, Decimal("30")),
            ]
        )

    def test_weights_and_exclusions(self, service, roommates):
        """Explicit weights and excluded members are honored."""
        asha_id, ben_id, chen_id = roommates

        service.add_expense(
            "Cab",
            contributions={asha_id: Decimal("30")},
            weights={asha_id: Decimal(1), ben_id: Decimal(2), chen_id: Decimal(1)},
            excluded=[chen_id],
        )

        assert service.balances() == {
            asha_id: Decimal("20"),
            ben_id: Decimal("-20"),
            chen_id: Decimal("0"),
        }

    def test_cannot_exclude_non_participant(self, service, roommates):
        """Excluding a member who is not sharing is a validation error."""
        asha_id, ben_id, chen_id = roommates

        with pytest.raises(ValidationError):
            service.add_expense(
                "Cab",
                contributions={asha_id: Decimal("30")},
                weights={asha_id: Decimal(1)},
                excluded=[chen_id],
            )

    def test_removal_cascade(self, service, roommates):
        """Removing Chen rebalances the shared expense over Asha and Ben."""
        asha_id, ben_id, _ = roommates
        service.add_expense("Groceries", contributions={asha_id: Decimal("90")})

        service.remove_member("Chen")

        assert service.balances() == {
            asha_id: Decimal("45"),
            ben_id: Decimal("-45"),
        }

    def test_sub_minor_unit_amount_rejected(self, service, roommates):
        """Half-paisa amounts are refused and nothing is saved."""
        asha_id, _, _ = roommates

        with pytest.raises(ValidationError):
            service.add_expense("Chai", contributions={asha_id: Decimal("0.005")})

        assert service.state.expenses == ()

    def test_amounts_follow_currency_scale(self, tmp_path):
        """The configured currency scale decides which amounts are accepted."""
        settings = Settings(
            _env_file=None,
            database_path=tmp_path / "yen.db",
            currency_code="JPY",
            currency_decimals=0,
        )
        with Database(settings.database_path) as db:
            yen = GroupService(settings, db)
            kenji = yen.add_member("Kenji")

            with pytest.raises(ValidationError):
                yen.add_expense("Ramen", contributions={kenji.id: Decimal("10.5")})

            yen.add_expense("Ramen", contributions={kenji.id: Decimal("1000")})
            assert len(yen.state.expenses) == 1

    def test_remove_expense(self, service, roommates):
        """Deleting the only expense settles everyone."""
        asha_id, _, _ = roommates
        expense = service.add_expense("Pizza", contributions={asha_id: Decimal("12")})

        service.remove_expense(expense.id)

        assert service.settlement_plan() == []


class TestPersistence:
    """Saving after every successful mutation."""

    def test_state_survives_new_service(self, mock_settings, mock_db, roommates):
        """A new service on the same store sees the same group."""
        asha_id, _, _ = roommates
        first = GroupService(mock_settings, mock_db)
        first.add_expense("Rent", contributions={asha_id: Decimal("300")})

        second = GroupService(mock_settings, mock_db)

        assert second.state == first.state
        assert second.balances() == first.balances()

    def test_failed_mutation_is_not_saved(self, service, mock_db, mock_settings):
        """Validation failures leave both memory and store untouched."""
        service.add_member("Asha")
        stored_before = mock_db.load(mock_settings.state_key)

        with pytest.raises(ValidationError):
            service.add_member("   ")

        assert len(service.state.members) == 1
        assert mock_db.load(mock_settings.state_key) == stored_before

    def test_corrupt_snapshot(self, mock_settings, mock_db):
        """A stored snapshot of the wrong shape is a storage error."""
        mock_db.save(mock_settings.state_key, {"members": "nope"})

        with pytest.raises(StorageError):
            GroupService(mock_settings, mock_db).state


class TestImportExport:
    """Replacing state from JSON."""

    def test_export_import(self, service, roommates, mock_settings, mock_db):
        """An export imported into an empty store reproduces the group."""
        asha_id, _, _ = roommates
        service.add_expense("Rent", contributions={asha_id: Decimal("300")})
        document = service.export_json()
        service.reset()
        assert service.state == GroupState()

        service.import_json(document)

        assert len(service.state.members) == 3
        assert service.balances()[asha_id] == Decimal("200")

    def test_invalid_import_leaves_state(self, service, roommates):
        """A rejected import does not replace anything."""
        before = service.state

        with pytest.raises(ImportFormatError):
            service.import_json('{"members": []}')

        assert service.state == before


class TestNotifySettlement:
    """Settlement notices through the service."""

    def test_notifies_each_debtor(self, service, roommates):
        """Ben gets a notice; Chen has no email and is skipped."""
        asha_id, ben_id, chen_id = roommates
        service.add_expense("Groceries", contributions={asha_id: Decimal("90")})
        notifier = MagicMock()
        notifier.send.return_value = NotificationResult(success=True)

        outcomes = service.notify_settlement(notifier)

        by_payer = {o.transfer.from_member_id: o for o in outcomes}
        assert by_payer[ben_id].success is True
        assert by_payer[ben_id].recipient == "ben@example.com"
        assert by_payer[chen_id].skipped is True
        notifier.send.assert_called_once()
        recipient, subject, body = notifier.send.call_args.args
        assert recipient == "ben@example.com"
        assert "Asha" in subject
        assert "INR 30.00" in body
