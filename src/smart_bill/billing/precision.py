"""
Precision and rounding control.

Money is carried as ``Decimal`` between pipeline stages and quantized to the
configured internal precision after every operation. Only values placed into a
``BillingResult`` are quantized to display precision, and the difference
between the displayed and the computed total is reported as a residual.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Optional, Tuple, Union

from .errors import CalculationFailure

# Significant digits, not decimal places
DECIMAL_CONTEXT_PRECISION = 28

DEFAULT_DECIMAL_PLACES = 2
DEFAULT_INTERNAL_PRECISION = 6

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")

Number = Union[int, float, str, Decimal]


def to_decimal(value: Optional[Number]) -> Decimal:
    """Convert values to Decimal (floats go through str to avoid binary artifacts)."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise CalculationFailure(f"Boolean {value!r} is not a monetary amount")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise CalculationFailure(f"Cannot interpret {value!r} as a decimal amount") from exc


def quantize(value: Decimal, places: int) -> Decimal:
    """Quantize ``value`` to ``places`` fractional digits using ROUND_HALF_UP."""
    if not value.is_finite():
        raise CalculationFailure(f"Non-finite amount {value} reached the rounding step")
    quantizer = Decimal(10) ** -places
    with localcontext() as ctx:
        # Room for every integer digit plus the requested fraction
        ctx.prec = max(DECIMAL_CONTEXT_PRECISION, value.adjusted() + places + 2)
        try:
            return value.quantize(quantizer, rounding=ROUND_HALF_UP)
        except InvalidOperation as exc:
            raise CalculationFailure(f"Cannot round {value} to {places} places") from exc


class PrecisionController:
    """Internal and display rounding for one calculation.

    Args:
        decimal_places: Display precision of reported amounts
        internal_precision: Precision carried between pipeline stages
        round_off: Whether the final total is rounded with a recorded residual
        multiplier: Whole-bill exchange multiplier applied to reported amounts
    """

    def __init__(
        self,
        decimal_places: int = DEFAULT_DECIMAL_PLACES,
        internal_precision: int = DEFAULT_INTERNAL_PRECISION,
        round_off: bool = True,
        multiplier: Number = ONE,
    ) -> None:
        self.decimal_places = decimal_places
        # Never carry fewer digits internally than we display
        self.internal_precision = max(internal_precision, decimal_places)
        self.round_off = round_off
        self.multiplier = to_decimal(multiplier)

    def internal(self, value: Number) -> Decimal:
        return quantize(to_decimal(value), self.internal_precision)

    def scaled(self, value: Number) -> Decimal:
        """Apply the whole-bill multiplier at internal precision."""
        return self.internal(to_decimal(value) * self.multiplier)

    def display(self, value: Number) -> Decimal:
        """Reported form of an amount: multiplied, then rounded to display precision."""
        return quantize(self.scaled(value), self.decimal_places)

    def display_unscaled(self, value: Number) -> Decimal:
        """Display rounding without the multiplier (for amounts already in a target currency)."""
        return quantize(to_decimal(value), self.decimal_places)

    def percent_of(self, base: Number, rate: Number) -> Decimal:
        return self.internal(to_decimal(base) * to_decimal(rate) / HUNDRED)

    def finalize(self, total: Number) -> Tuple[Decimal, Decimal, Decimal]:
        """Round the final total.

        Returns:
            Tuple of (reported total, unrounded scaled total, rounding residual).
            The residual is zero when rounding is disabled.
        """
        unrounded = self.scaled(total)
        rounded = quantize(unrounded, self.decimal_places)
        if not self.round_off:
            return rounded, unrounded, quantize(ZERO, self.internal_precision)
        residual = self.internal(rounded - unrounded)
        return rounded, unrounded, residual
