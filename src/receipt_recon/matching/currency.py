"""Conversion of amounts into the reporting currency for statistics."""

from decimal import Decimal
from typing import Mapping, Union
import logging

from ..models.ledger import MonetaryAmount

logger = logging.getLogger(__name__)

Rate = Union[Decimal, float, int, str]


def normalize(
    amount: MonetaryAmount,
    rate_table: Mapping[str, Rate],
    reporting_currency: str,
) -> Decimal:
    """
    Convert an amount into the reporting currency.

    The rate table maps currency codes to the value of one unit in the
    reporting currency. Currencies missing from the table convert at 1.

    Args:
        amount: Amount to convert (sign is preserved)
        rate_table: Currency code -> rate
        reporting_currency: Target currency code, used for logging only

    Returns:
        Magnitude in the reporting currency
    """
    rates = {code.upper(): value for code, value in rate_table.items()}
    rate = rates.get(amount.currency_code)
    if rate is None:
        return amount.magnitude
    return amount.magnitude * Decimal(str(rate))


class CurrencyNormalizer:
    """Normalizer bound to one rate table and reporting currency."""

    def __init__(self, rate_table: Mapping[str, Rate], reporting_currency: str):
        self.rate_table = {code.upper(): rate for code, rate in rate_table.items()}
        self.reporting_currency = reporting_currency.upper()
        self._warned: set[str] = set()

    def normalize(self, amount: MonetaryAmount) -> Decimal:
        code = amount.currency_code
        if (
            code not in self.rate_table
            and code != self.reporting_currency
            and code not in self._warned
        ):
            logger.warning(
                f"No exchange rate for {code}; treating 1 {code} as 1 {self.reporting_currency}"
            )
            self._warned.add(code)
        return normalize(amount, self.rate_table, self.reporting_currency)
