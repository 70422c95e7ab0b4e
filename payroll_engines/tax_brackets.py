"""
Progressive income-tax bracket resolution.

Responsibility:
    Maps a taxable amount onto a progressive bracket table and returns the
    resulting tax.  Both published forms of a progressive table resolve
    through the same canonical representation:

    * marginal ("sum of taps"):  each bracket taxes only the slice of the
      amount that falls inside it;
    * deduction ("rate minus fixed subtraction"): the whole amount is taxed
      at the bracket's rate and a fixed amount is subtracted.

    The two are the same function when the subtraction equals the
    cumulative continuity value ``d_k = d_{k-1} + (r_k - r_{k-1}) * lower_k``.
    Marginal tables derive it; deduction tables are checked against it.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Brackets are half-open ``(lower, upper]``: an amount exactly on a
      boundary is taxed in the lower bracket.
    - The first bracket starts at 0, brackets are contiguous and strictly
      ascending, and only the last bracket is unbounded.
    - Resolved tax is continuous and non-decreasing in the amount.

Failure modes:
    - ConfigurationError at table construction for an empty, gapped,
      overlapping, unordered or bounded-at-the-top table, or for a
      published deduction that breaks continuity by more than 0.01.
    - InvalidInputError for a negative or non-finite amount.

Usage:
    from decimal import Decimal
    from payroll_engines.tax_brackets import TaxBracketResolver, TaxBracketTable

    table = TaxBracketTable.from_marginal(
        name="kenya.paye",
        rows=[
            (Decimal("0"), Decimal("24000"), Decimal("0.10")),
            (Decimal("24000"), None, Decimal("0.25")),
        ],
    )
    tax = TaxBracketResolver().resolve(amount=Decimal("30000"), table=table)
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.values import ZERO, require_amount
from payroll_kernel.exceptions import ConfigurationError
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.tax_brackets")

DEDUCTION_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class TaxBracket:
    """One bracket in canonical form: ``tax = amount * rate - deduction``."""

    lower: Decimal
    upper: Decimal | None  # None = unbounded
    rate: Decimal
    deduction: Decimal = ZERO

    def contains(self, amount: Decimal) -> bool:
        """True when ``amount`` lies in ``(lower, upper]``."""
        if amount <= self.lower:
            return False
        return self.upper is None or amount <= self.upper

    def tax_for(self, amount: Decimal) -> Decimal:
        return amount * self.rate - self.deduction


@dataclass(frozen=True)
class BracketTap:
    """The slice of an amount taxed inside one bracket (informational)."""

    lower: Decimal
    upper: Decimal | None
    rate: Decimal
    taxable_slice: Decimal
    tax: Decimal


@dataclass(frozen=True)
class TaxBracketTable:
    """
    Validated progressive bracket table.

    Contract:
        Construction validates the structural invariants; a table that
        exists is safe to resolve against.

    Guarantees:
        - ``brackets`` is non-empty, starts at 0, contiguous, ascending and
          ends with an unbounded bracket.
        - Every rate is in ``[0, 1]``.

    Non-goals:
        - Effective-date versioning of tables.
    """

    name: str
    brackets: tuple[TaxBracket, ...]

    def __post_init__(self) -> None:
        _validate_brackets(self.name, self.brackets)

    @classmethod
    def from_marginal(
        cls,
        *,
        name: str,
        rows: Iterable[tuple[Decimal, Decimal | None, Decimal]],
    ) -> TaxBracketTable:
        """Build from ``(lower, upper, rate)`` rows, deriving each deduction."""
        brackets: list[TaxBracket] = []
        prev_rate = ZERO
        deduction = ZERO
        for lower, upper, rate in rows:
            deduction = deduction + (rate - prev_rate) * lower
            brackets.append(TaxBracket(lower, upper, rate, deduction))
            prev_rate = rate
        return cls(name=name, brackets=tuple(brackets))

    @classmethod
    def from_deduction(
        cls,
        *,
        name: str,
        rows: Iterable[tuple[Decimal, Decimal | None, Decimal, Decimal]],
    ) -> TaxBracketTable:
        """
        Build from ``(lower, upper, rate, deduction)`` rows.

        Published deductions are kept as printed (they are what the tax
        authority's own worksheet uses) but each must agree with its
        predecessor's continuity value within ``DEDUCTION_TOLERANCE``.
        """
        brackets = tuple(
            TaxBracket(lower, upper, rate, deduction)
            for lower, upper, rate, deduction in rows
        )
        for prev, cur in zip(brackets, brackets[1:]):
            expected = prev.deduction + (cur.rate - prev.rate) * cur.lower
            if abs(cur.deduction - expected) > DEDUCTION_TOLERANCE:
                raise ConfigurationError(
                    name,
                    f"deduction {cur.deduction} at lower bound {cur.lower} "
                    f"breaks continuity (expected {expected})",
                )
        return cls(name=name, brackets=brackets)


def _validate_brackets(name: str, brackets: tuple[TaxBracket, ...]) -> None:
    if not brackets:
        raise ConfigurationError(name, "bracket table is empty")
    if brackets[0].lower != ZERO:
        raise ConfigurationError(
            name, f"first bracket must start at 0, starts at {brackets[0].lower}"
        )
    for index, bracket in enumerate(brackets):
        if not ZERO <= bracket.rate <= Decimal("1"):
            raise ConfigurationError(
                name, f"bracket {index} rate {bracket.rate} outside [0, 1]"
            )
        is_last = index == len(brackets) - 1
        if bracket.upper is None:
            if not is_last:
                raise ConfigurationError(
                    name, f"bracket {index} is unbounded but is not the last"
                )
            continue
        if is_last:
            raise ConfigurationError(name, "last bracket must be unbounded")
        if bracket.upper <= bracket.lower:
            raise ConfigurationError(
                name,
                f"bracket {index} upper {bracket.upper} not above lower {bracket.lower}",
            )
        following = brackets[index + 1]
        if following.lower != bracket.upper:
            kind = "gap" if following.lower > bracket.upper else "overlap"
            raise ConfigurationError(
                name,
                f"{kind} between {bracket.upper} and {following.lower}",
            )


class TaxBracketResolver:
    """
    Resolve tax for an amount against a validated table.

    Results are returned at full precision; rounding happens once, where
    the caller publishes the figure.
    """

    @traced_engine("tax_brackets", "1.0", fingerprint_fields=("amount", "table"))
    def resolve(self, *, amount: Decimal, table: TaxBracketTable) -> Decimal:
        """
        Tax due on ``amount``.

        Preconditions:
            - ``amount`` is a finite, non-negative Decimal.
        Postconditions:
            - Returns 0 for amounts at or below the first lower bound.
            - Never negative.
        """
        amount = require_amount(amount, "amount")
        bracket = self.find_bracket(amount, table)
        if bracket is None:
            return ZERO
        tax = max(ZERO, bracket.tax_for(amount))
        logger.debug(
            "tax_bracket_resolved",
            extra={
                "table": table.name,
                "amount": str(amount),
                "bracket_lower": str(bracket.lower),
                "rate": str(bracket.rate),
                "tax": str(tax),
            },
        )
        return tax

    @staticmethod
    def find_bracket(amount: Decimal, table: TaxBracketTable) -> TaxBracket | None:
        """Bracket containing ``amount``; None when no tax is due."""
        for bracket in table.brackets:
            if bracket.contains(amount):
                return bracket
        return None

    def marginal_breakdown(
        self, *, amount: Decimal, table: TaxBracketTable
    ) -> tuple[BracketTap, ...]:
        """
        Per-bracket taps for ``amount``.

        For marginal tables the tap taxes sum exactly to ``resolve(amount)``;
        for deduction tables they agree within the published rounding of
        the deductions.
        """
        amount = require_amount(amount, "amount")
        taps: list[BracketTap] = []
        for bracket in table.brackets:
            if amount <= bracket.lower:
                break
            top = amount if bracket.upper is None else min(amount, bracket.upper)
            slice_ = top - bracket.lower
            taps.append(
                BracketTap(
                    lower=bracket.lower,
                    upper=bracket.upper,
                    rate=bracket.rate,
                    taxable_slice=slice_,
                    tax=slice_ * bracket.rate,
                )
            )
        return tuple(taps)
