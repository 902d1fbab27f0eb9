"""Tests for the greedy settlement planner."""

import random
from decimal import Decimal

from roomsplit.models import Transfer
from roomsplit.settlement import apply_transfers, simplify, simplify_minor


def as_tuples(transfers: list[Transfer]) -> list[tuple[str, str, Decimal]]:
    """Flatten transfers for easy comparison."""
    return [(t.from_member_id, t.to_member_id, t.amount) for t in transfers]


class TestSimplifyScenarios:
    """Known balance sets and their plans."""

    def test_equal_split_scenario(self):
        """Both debtors pay the single creditor."""
        balances = {"a": Decimal("60"), "b": Decimal("-30"), "c": Decimal("-30")}

        assert as_tuples(simplify(balances)) == [
            ("b", "a", Decimal("30")),
            ("c", "a", Decimal("30")),
        ]

    def test_weighted_split_scenario(self):
        """One debtor, one creditor, one transfer."""
        balances = {"a": Decimal("20"), "b": Decimal("-20")}

        assert as_tuples(simplify(balances)) == [("b", "a", Decimal("20"))]

    def test_largest_first_matching(self):
        """The largest debt is matched against the largest credit first."""
        balances = {
            "a": Decimal("50"),
            "b": Decimal("30"),
            "c": Decimal("-20"),
            "d": Decimal("-60"),
        }

        assert as_tuples(simplify(balances)) == [
            ("d", "a", Decimal("50")),
            ("d", "b", Decimal("10")),
            ("c", "b", Decimal("20")),
        ]

    def test_amounts_keep_currency_scale(self):
        """Transfer amounts are display-scale decimals."""
        transfers = simplify({"a": Decimal("10.5"), "b": Decimal("-10.5")})

        assert str(transfers[0].amount) == "10.50"

    def test_serializes_with_from_and_to_keys(self):
        """Transfers use the from/to/amount shape for collaborators."""
        transfer = simplify({"a": Decimal("5"), "b": Decimal("-5")})[0]

        assert transfer.model_dump(by_alias=True, mode="json") == {
            "from": "b",
            "to": "a",
            "amount": "5.00",
        }


class TestSimplifyEdgeCases:
    """Empty, settled and near-zero inputs."""

    def test_empty_balances(self):
        """No balances means no transfers."""
        assert simplify({}) == []

    def test_all_settled(self):
        """All-zero balances need no transfers."""
        assert simplify({"a": Decimal("0"), "b": Decimal("0")}) == []

    def test_one_cent_is_settled_within_tolerance(self):
        """Balances within tolerance count as settled."""
        balances = {"a": Decimal("0.01"), "b": Decimal("-0.01")}

        assert simplify(balances, tolerance=Decimal("0.01")) == []
        assert as_tuples(simplify(balances)) == [("b", "a", Decimal("0.01"))]

    def test_leftover_noise_is_not_a_transfer(self):
        """Residuals within tolerance are dropped, never surfaced."""
        balances = {
            "a": Decimal("10.00"),
            "b": Decimal("-9.99"),
            "c": Decimal("-0.01"),
        }

        transfers = simplify(balances, tolerance=Decimal("0.01"))

        assert as_tuples(transfers) == [("b", "a", Decimal("9.99"))]

    def test_ties_break_by_member_id(self):
        """Equal amounts are ordered by member id, independent of input order."""
        assert simplify_minor({"y": 10, "x": 10, "z": -20}) == [
            ("z", "x", 10),
            ("z", "y", 10),
        ]


class TestSimplifyProperties:
    """Properties that must hold for any zero-sum balances."""

    @staticmethod
    def random_balances(rng: random.Random, size: int) -> dict[str, int]:
        """Random minor-unit balances summing to zero."""
        values = [rng.randint(-50000, 50000) for _ in range(size - 1)]
        values.append(-sum(values))
        return {f"m{i}": value for i, value in enumerate(values)}

    def test_plan_settles_everything(self):
        """Applying every transfer brings every balance to zero."""
        rng = random.Random(7)
        for size in range(1, 12):
            minor = self.random_balances(rng, size)
            balances = {k: Decimal(v).scaleb(-2) for k, v in minor.items()}

            settled = apply_transfers(balances, simplify(balances))

            assert all(value == 0 for value in settled.values())

    def test_transaction_bound(self):
        """At most N-1 transfers for N members with a nonzero balance."""
        rng = random.Random(11)
        for size in range(2, 15):
            minor = self.random_balances(rng, size)
            nonzero = sum(1 for v in minor.values() if v != 0)

            transfers = simplify_minor(minor)

            assert len(transfers) <= max(nonzero - 1, 0)
            assert all(amount > 0 for _, _, amount in transfers)

    def test_total_transferred_equals_total_credit(self):
        """Everything owed is paid exactly once."""
        rng = random.Random(3)
        minor = self.random_balances(rng, 9)

        transfers = simplify_minor(minor)

        assert sum(amount for _, _, amount in transfers) == sum(
            v for v in minor.values() if v > 0
        )

    def test_deterministic(self):
        """Identical balances give identical plans."""
        balances = {
            "a": Decimal("12.34"),
            "b": Decimal("-5.00"),
            "c": Decimal("-7.34"),
            "d": Decimal("0"),
        }

        assert simplify(balances) == simplify(dict(reversed(balances.items())))

    def test_input_is_not_modified(self):
        """The planner and apply_transfers leave their inputs alone."""
        balances = {"a": Decimal("20"), "b": Decimal("-20")}
        snapshot = dict(balances)

        apply_transfers(balances, simplify(balances))

        assert balances == snapshot
