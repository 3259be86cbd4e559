"""Currency normalization (per item, at ingestion) and conversion (whole bill, at reporting)."""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, Mapping, Optional

from ..utils.logging import get_logger
from .errors import CalculationFailure
from .precision import ZERO, PrecisionController, to_decimal

logger = get_logger(__name__)


class CurrencyConverter:
    """Moves amounts between the bill currency and the configured foreign currencies.

    ``rates`` are quoted as ``foreign = base * rate``: a foreign price is
    divided by its rate to normalize it, and a base amount is multiplied by a
    rate to produce a converted total.
    """

    def __init__(self, base_currency: str, rates: Mapping[str, Decimal],
                 precision: PrecisionController) -> None:
        self.base_currency = base_currency
        self.rates = {code: to_decimal(rate) for code, rate in rates.items()}
        self.precision = precision

    def needs_conversion(self, currency: Optional[str]) -> bool:
        return bool(currency) and currency != self.base_currency

    def normalize(self, amount: Decimal, currency: Optional[str]) -> Decimal:
        """Express ``amount`` quoted in ``currency`` in the bill's base currency."""
        if not self.needs_conversion(currency):
            return self.precision.internal(amount)
        rate = self.rates.get(currency)
        if rate is None or rate <= ZERO:
            # Validation rejects this before calculation starts
            raise CalculationFailure(
                f"No usable exchange rate for {currency} (base {self.base_currency})"
            )
        normalized = self.precision.internal(to_decimal(amount) / rate)
        logger.debug(f"Normalized {amount} {currency} -> {normalized} {self.base_currency}")
        return normalized

    def converted_totals(self, base_total: Decimal) -> Optional[Dict[str, Decimal]]:
        """Side table of the base-currency total in every configured currency."""
        if not self.rates:
            return None
        return {
            code: self.precision.display_unscaled(to_decimal(base_total) * rate)
            for code, rate in self.rates.items()
        }
