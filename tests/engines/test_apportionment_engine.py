"""
Tests for the largest-remainder ApportionmentEngine.

Covers:
- Exact pro-rata splits
- Remainder allocation and the ascending-key tie-break
- Zero weights and zero totals
- Input validation
- Property-based exact-sum and fairness invariants
"""

from decimal import Decimal
from uuid import UUID

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from insolvency_engines.apportionment import ApportionmentEngine, ApportionmentResult
from insolvency_kernel.exceptions import DistributionError, DistributionInvariantError

KEY_A = UUID("00000000-0000-0000-0000-00000000000a")
KEY_B = UUID("00000000-0000-0000-0000-00000000000b")
KEY_C = UUID("00000000-0000-0000-0000-00000000000c")


class TestExactSplits:
    def setup_method(self):
        self.engine = ApportionmentEngine()

    def test_two_to_one_split(self):
        """6000 : 2000 of 4000 gives 3000 and 1000 with no remainder."""
        result = self.engine.apportion(
            total=Decimal("4000.00"),
            weights={KEY_A: Decimal("6000.00"), KEY_B: Decimal("2000.00")},
        )

        assert result.amount_for(KEY_A) == Decimal("3000.00")
        assert result.amount_for(KEY_B) == Decimal("1000.00")
        assert result.allocated == Decimal("4000.00")
        assert result.remainder_units == 0

    def test_single_recipient_takes_everything(self):
        result = self.engine.apportion(
            total=Decimal("123.45"), weights=[(KEY_A, Decimal("1.00"))]
        )
        assert result.amount_for(KEY_A) == Decimal("123.45")

    def test_shares_ordered_by_key(self):
        result = self.engine.apportion(
            total=Decimal("10.00"),
            weights=[(KEY_C, Decimal("1")), (KEY_A, Decimal("1")), (KEY_B, Decimal("1"))],
        )
        assert [s.key for s in result.shares] == [KEY_A, KEY_B, KEY_C]


class TestRemainder:
    def setup_method(self):
        self.engine = ApportionmentEngine()

    def test_three_equal_weights_lowest_key_gets_the_cent(self):
        """100.00 over three equal weights: 33.34, 33.33, 33.33."""
        result = self.engine.apportion(
            total=Decimal("100.00"),
            weights={
                KEY_C: Decimal("100.00"),
                KEY_B: Decimal("100.00"),
                KEY_A: Decimal("100.00"),
            },
        )

        assert result.amount_for(KEY_A) == Decimal("33.34")
        assert result.amount_for(KEY_B) == Decimal("33.33")
        assert result.amount_for(KEY_C) == Decimal("33.33")
        assert result.allocated == Decimal("100.00")
        assert result.remainder_units == 1

    def test_largest_fraction_wins_before_key_order(self):
        """
        1.00 split 1:2 gives exact 0.333.. and 0.666..; floors 0.33 and 0.66.
        The 0.01 remainder goes to B (fraction 0.00666..) over A (0.00333..).
        """
        result = self.engine.apportion(
            total=Decimal("1.00"),
            weights={KEY_A: Decimal("1"), KEY_B: Decimal("2")},
        )

        assert result.amount_for(KEY_A) == Decimal("0.33")
        assert result.amount_for(KEY_B) == Decimal("0.67")

    def test_share_is_floor_or_floor_plus_one_unit(self):
        result = self.engine.apportion(
            total=Decimal("0.05"),
            weights={KEY_A: Decimal("1"), KEY_B: Decimal("1"), KEY_C: Decimal("1")},
        )

        for share in result.shares:
            assert share.amount in (share.floor_amount, share.floor_amount + Decimal("0.01"))
        assert [s.amount for s in result.shares] == [
            Decimal("0.02"),
            Decimal("0.02"),
            Decimal("0.01"),
        ]


class TestZeroCases:
    def setup_method(self):
        self.engine = ApportionmentEngine()

    def test_zero_weight_recipient_gets_nothing(self):
        result = self.engine.apportion(
            total=Decimal("10.00"),
            weights={KEY_A: Decimal("0"), KEY_B: Decimal("3"), KEY_C: Decimal("3")},
        )

        assert result.amount_for(KEY_A) == Decimal("0.00")
        assert result.amount_for(KEY_B) == Decimal("5.00")
        assert result.amount_for(KEY_C) == Decimal("5.00")
        assert [s.key for s in result.nonzero_shares] == [KEY_B, KEY_C]

    def test_zero_total_gives_zero_shares(self):
        result = self.engine.apportion(
            total=Decimal("0.00"),
            weights={KEY_A: Decimal("5"), KEY_B: Decimal("5")},
        )
        assert result.nonzero_shares == ()
        assert result.allocated == Decimal("0.00")

    def test_zero_total_with_zero_weights(self):
        result = self.engine.apportion(total=Decimal("0.00"), weights={KEY_A: Decimal("0")})
        assert result.amount_for(KEY_A) == Decimal("0.00")

    def test_positive_total_with_zero_weights_rejected(self):
        with pytest.raises(ValueError, match="zero"):
            self.engine.apportion(total=Decimal("1.00"), weights={KEY_A: Decimal("0")})


class TestValidation:
    def setup_method(self):
        self.engine = ApportionmentEngine()

    def test_negative_total_rejected(self):
        with pytest.raises(ValueError, match="negative"):
            self.engine.apportion(total=Decimal("-1.00"), weights={KEY_A: Decimal("1")})

    def test_total_finer_than_quantum_rejected(self):
        with pytest.raises(ValueError, match="multiple of quantum"):
            self.engine.apportion(total=Decimal("1.005"), weights={KEY_A: Decimal("1")})

    def test_negative_weight_rejected(self):
        with pytest.raises(ValueError, match="negative"):
            self.engine.apportion(total=Decimal("1.00"), weights={KEY_A: Decimal("-1")})

    def test_duplicate_key_rejected(self):
        with pytest.raises(ValueError, match="Duplicate"):
            self.engine.apportion(
                total=Decimal("1.00"),
                weights=[(KEY_A, Decimal("1")), (KEY_A, Decimal("2"))],
            )

    def test_unbalanced_result_raises_invariant_error(self, monkeypatch):
        monkeypatch.setattr(
            ApportionmentResult,
            "allocated",
            property(lambda self: self.total - self.quantum),
        )
        with pytest.raises(DistributionInvariantError, match="allocated 9.99 of 10.00") as exc_info:
            self.engine.apportion(total=Decimal("10.00"), weights={KEY_A: Decimal("1")})

        assert isinstance(exc_info.value, DistributionError)
        assert exc_info.value.case_id is None

    def test_engine_trace_logged(self, captured_logs):
        self.engine.apportion(total=Decimal("1.00"), weights={KEY_A: Decimal("1")})

        traces = [r for r in captured_logs() if r["message"] == "ENGINE_TRACE"]
        assert len(traces) == 1
        assert traces[0]["engine_name"] == "apportionment"
        assert len(traces[0]["input_fingerprint"]) == 16
        assert traces[0]["outcome"] == "ok"
        assert traces[0]["recipient_count"] == 1
        assert traces[0]["remainder_units"] == 0

    def test_engine_trace_fingerprint_ignores_decimal_scale(self, captured_logs):
        self.engine.apportion(total=Decimal("5.00"), weights={KEY_A: Decimal("2")})
        self.engine.apportion(total=Decimal("5.00"), weights={KEY_A: Decimal("2.00")})
        self.engine.apportion(total=Decimal("5.00"), weights={KEY_A: Decimal("3")})

        prints = [
            r["input_fingerprint"] for r in captured_logs() if r["message"] == "ENGINE_TRACE"
        ]
        assert prints[0] == prints[1]
        assert prints[0] != prints[2]

    def test_engine_trace_logged_on_error(self, captured_logs):
        with pytest.raises(ValueError):
            self.engine.apportion(total=Decimal("1.00"), weights={KEY_A: Decimal("0")})

        traces = [r for r in captured_logs() if r["message"] == "ENGINE_TRACE"]
        assert len(traces) == 1
        assert traces[0]["outcome"] == "error"
        assert traces[0]["error_type"] == "ValueError"
        assert "remainder_units" not in traces[0]


# =============================================================================
# Properties
# =============================================================================

cents = st.integers(min_value=0, max_value=10**9).map(lambda n: Decimal(n).scaleb(-2))
positive_cents = st.integers(min_value=1, max_value=10**9).map(lambda n: Decimal(n).scaleb(-2))
weight_lists = st.lists(positive_cents, min_size=1, max_size=25)


class TestApportionmentProperties:
    @settings(max_examples=200, deadline=None)
    @given(total=cents, weights=weight_lists)
    def test_shares_sum_exactly_to_total(self, total, weights):
        result = ApportionmentEngine().apportion(
            total=total, weights=list(enumerate(weights))
        )
        assert result.allocated == total.quantize(Decimal("0.01"))
        assert sum(s.amount for s in result.shares) == total

    @settings(max_examples=200, deadline=None)
    @given(total=cents, weights=weight_lists)
    def test_each_share_within_one_unit_of_exact(self, total, weights):
        result = ApportionmentEngine().apportion(
            total=total, weights=list(enumerate(weights))
        )
        for share in result.shares:
            assert share.amount >= 0
            assert abs(share.amount - share.exact_share) < Decimal("0.01")

    @settings(max_examples=100, deadline=None)
    @given(total=cents, weights=weight_lists)
    def test_deterministic_regardless_of_input_order(self, total, weights):
        pairs = list(enumerate(weights))
        forward = ApportionmentEngine().apportion(total=total, weights=pairs)
        backward = ApportionmentEngine().apportion(total=total, weights=list(reversed(pairs)))
        assert [(s.key, s.amount) for s in forward.shares] == [
            (s.key, s.amount) for s in backward.shares
        ]

    @settings(max_examples=100, deadline=None)
    @given(total=cents, weights=weight_lists)
    def test_remainder_units_fewer_than_recipients(self, total, weights):
        result = ApportionmentEngine().apportion(
            total=total, weights=list(enumerate(weights))
        )
        assert 0 <= result.remainder_units < len(weights)
        assert sum(1 for s in result.shares if s.received_remainder) == result.remainder_units
