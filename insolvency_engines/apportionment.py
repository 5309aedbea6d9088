"""
Module: insolvency_engines.apportionment
Responsibility:
    Split a fixed payout total across weighted recipients pro rata, using
    the largest-remainder method so that the shares sum to the total
    exactly and every share is within one minimum currency unit of its
    exact pro-rata value.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Exact sum: sum(share.amount) == total, always.
    - Floor-then-remainder: every share is floor(exact) or floor(exact) + quantum.
    - Deterministic tie-break: equal fractional remainders are resolved by
      ascending recipient key, so identical inputs give identical output.
    - Zero-weight recipients always receive zero.
    - Purity: no clock access, no I/O.

Failure modes:
    - ValueError on a negative total, a total not a multiple of quantum,
      a negative weight, duplicate keys, or a positive total with zero
      total weight.
    - DistributionInvariantError if the shares fail to sum to the total.

Usage:
    from insolvency_engines.apportionment import ApportionmentEngine

    result = ApportionmentEngine().apportion(
        total=Decimal("100.00"),
        weights=[(creditor_a, Decimal("100.00")), (creditor_b, Decimal("100.00"))],
        quantum=Decimal("0.01"),
    )
    assert result.allocated == Decimal("100.00")
"""

from __future__ import annotations

from collections.abc import Hashable, Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal, localcontext
from typing import Any

from insolvency_engines.tracer import traced_engine
from insolvency_kernel.exceptions import DistributionInvariantError
from insolvency_kernel.logging_config import get_logger

logger = get_logger("engines.apportionment")

DEFAULT_QUANTUM = Decimal("0.01")

# Working precision for exact shares; far beyond Numeric(14, 2) inputs
EXTENDED_PRECISION = 60


@dataclass(frozen=True)
class ApportionedShare:
    """
    One recipient's share.

    Guarantees:
        - ``amount == floor_amount`` or ``amount == floor_amount + quantum``.
        - ``fractional_remainder == exact_share - floor_amount`` and lies in
          ``[0, quantum)``.
    """

    key: Any
    weight: Decimal
    exact_share: Decimal
    floor_amount: Decimal
    fractional_remainder: Decimal
    amount: Decimal

    @property
    def received_remainder(self) -> bool:
        return self.amount != self.floor_amount


@dataclass(frozen=True)
class ApportionmentResult:
    """
    Outcome of one apportionment.

    Shares are ordered by ascending key, zero shares included.
    """

    total: Decimal
    quantum: Decimal
    total_weight: Decimal
    shares: tuple[ApportionedShare, ...]
    remainder_units: int

    @property
    def allocated(self) -> Decimal:
        return sum((s.amount for s in self.shares), Decimal("0")).quantize(self.quantum)

    @property
    def nonzero_shares(self) -> tuple[ApportionedShare, ...]:
        return tuple(s for s in self.shares if s.amount != 0)

    def amount_for(self, key: Any) -> Decimal:
        for share in self.shares:
            if share.key == key:
                return share.amount
        raise KeyError(key)


def _normalize_weights(
    weights: Mapping[Hashable, Decimal] | Iterable[tuple[Hashable, Decimal]],
) -> list[tuple[Any, Decimal]]:
    pairs = list(weights.items()) if isinstance(weights, Mapping) else list(weights)
    seen: set = set()
    normalized: list[tuple[Any, Decimal]] = []
    for key, weight in pairs:
        if key in seen:
            raise ValueError(f"Duplicate apportionment key: {key!r}")
        seen.add(key)
        if not isinstance(weight, Decimal):
            weight = Decimal(str(weight))
        if weight < 0:
            raise ValueError(f"Weight cannot be negative: {key!r}={weight}")
        normalized.append((key, weight))
    normalized.sort(key=lambda pair: pair[0])
    return normalized


class ApportionmentEngine:
    """
    Largest-remainder pro-rata apportionment.

    Contract:
        ``apportion(total=..., weights=..., quantum=...)`` returns an
        ``ApportionmentResult`` whose shares sum to ``total`` exactly.

    Non-goals:
        - Does not know about claims, creditors or currencies; keys and
          weights are opaque to it beyond ordering and magnitude.
    """

    @traced_engine(
        "apportionment",
        "1.0",
        fingerprint_fields=("total", "weights", "quantum"),
        summarize=lambda r: {
            "recipient_count": len(r.shares),
            "remainder_units": r.remainder_units,
        },
    )
    def apportion(
        self,
        *,
        total: Decimal,
        weights: Mapping[Hashable, Decimal] | Iterable[tuple[Hashable, Decimal]],
        quantum: Decimal = DEFAULT_QUANTUM,
    ) -> ApportionmentResult:
        """
        Apportion ``total`` across ``weights``.

        Steps:
            1. exact_i = total * w_i / sum(w), at extended precision.
            2. floor_i = exact_i rounded down to quantum.
            3. R = (total - sum(floor_i)) / quantum remainder units go, one
               each, to the largest fractional remainders; ties by
               ascending key.  Zero-weight keys never receive a unit.

        Raises:
            ValueError: See module failure modes.
        """
        if total < 0:
            raise ValueError(f"Total cannot be negative: {total}")
        if total % quantum != 0:
            raise ValueError(f"Total {total} is not a multiple of quantum {quantum}")

        pairs = _normalize_weights(weights)
        total_weight = sum((w for _, w in pairs), Decimal("0"))

        logger.info(
            "apportionment_started",
            extra={
                "total": str(total),
                "recipient_count": len(pairs),
                "total_weight": str(total_weight),
            },
        )

        if total_weight == 0:
            if total != 0:
                logger.warning(
                    "apportionment_zero_weight",
                    extra={"total": str(total), "recipient_count": len(pairs)},
                )
                raise ValueError("Total weight cannot be zero for a positive total")
            shares = tuple(
                ApportionedShare(
                    key=key,
                    weight=weight,
                    exact_share=Decimal("0"),
                    floor_amount=Decimal("0").quantize(quantum),
                    fractional_remainder=Decimal("0"),
                    amount=Decimal("0").quantize(quantum),
                )
                for key, weight in pairs
            )
            return ApportionmentResult(total, quantum, total_weight, shares, 0)

        with localcontext() as ctx:
            ctx.prec = EXTENDED_PRECISION
            exact = [total * weight / total_weight for _, weight in pairs]
            floors = [e.quantize(quantum, rounding=ROUND_DOWN) for e in exact]
            fractions = [e - f for e, f in zip(exact, floors)]
            remainder = total - sum(floors, Decimal("0"))
            remainder_units = int(remainder / quantum)

        # Largest fractional remainder first; ascending key among equals
        eligible = [i for i, (_, weight) in enumerate(pairs) if weight > 0]
        ranked = sorted(eligible, key=lambda i: (-fractions[i], i))
        bonus = [0] * len(pairs)
        for n in range(remainder_units):
            bonus[ranked[n % len(ranked)]] += 1

        shares = tuple(
            ApportionedShare(
                key=key,
                weight=weight,
                exact_share=exact[i],
                floor_amount=floors[i],
                fractional_remainder=fractions[i],
                amount=(floors[i] + quantum * bonus[i]).quantize(quantum),
            )
            for i, (key, weight) in enumerate(pairs)
        )
        result = ApportionmentResult(total, quantum, total_weight, shares, remainder_units)

        if result.allocated != total:
            raise DistributionInvariantError(
                None, f"allocated {result.allocated} of {total}"
            )

        logger.info(
            "apportionment_completed",
            extra={
                "total": str(total),
                "remainder_units": remainder_units,
                "nonzero_shares": len(result.nonzero_shares),
            },
        )
        return result
