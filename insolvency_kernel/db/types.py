"""
Module: insolvency_kernel.db.types
Responsibility: Money and currency rules shared by every model and
    service.  Centralizes precision, rounding, amount parsing and currency
    validation so that every model and service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Currency precision.  Every monetary amount is held at exactly
      MONEY_DECIMAL_PLACES (2) places.  parse_money() rejects anything finer
      instead of rounding it away.
    - ISO 4217 enforcement.  validate_currency() rejects any string that is
      not a recognized 3-character ISO 4217 code.
    - No floats anywhere in the ledger.  parse_money() refuses float input.
    - Range.  Amounts fit the Numeric(14, 2) columns; larger values are
      refused before they reach a driver that would round or reject them.

Failure modes:
    - ValidationError on float, NaN, infinite, negative, out-of-range
      (beyond MONEY_MAX) or over-precise amounts.
    - ValidationError on invalid ISO 4217 code.
"""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation

from insolvency_kernel.exceptions import ValidationError

MONEY_DECIMAL_PLACES = 2
MONEY_QUANTUM = Decimal("0.01")
# Largest magnitude a Numeric(14, 2) column holds
MONEY_MAX = Decimal("999999999999.99")


def round_money(value: Decimal | int, rounding: str = ROUND_HALF_UP) -> Decimal:
    """
    Quantize a value to currency precision.

    This is the only sanctioned rounding function for ledger amounts.  It
    is used to normalize database aggregates (some drivers return floats or
    unscaled decimals from SUM()).

    Args:
        value: The value to quantize.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Decimal with exactly two decimal places.
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(MONEY_QUANTUM, rounding=rounding)


def parse_money(
    value: Decimal | str | int, field: str = "amount", signed: bool = False
) -> Decimal:
    """
    Parse a caller-supplied amount into a two-place Decimal.

    Preconditions: value is a Decimal, str or int.  Floats are refused
        because their binary representation cannot carry cents exactly.
    Postconditions: Returns a finite Decimal quantized to two places, with
        magnitude at most MONEY_MAX and non-negative unless ``signed``.
        The value is never rounded: an amount carrying more precision than
        the currency allows is rejected.  ``signed`` leaves the sign check
        to a caller that reports it with a more specific error.

    Raises:
        ValidationError: If the value is a float, not numeric, not finite,
            negative (unless signed), larger than MONEY_MAX, or has more
            than two decimal places.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(
            f"{field} must be a Decimal, str or int, not {type(value).__name__}",
            field=field,
        )
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"{field} is not a number: {value!r}", field=field) from exc

    if not amount.is_finite():
        raise ValidationError(f"{field} must be finite: {value!r}", field=field)
    if amount < 0 and not signed:
        raise ValidationError(f"{field} must be >= 0, got {amount}", field=field)
    if abs(amount) > MONEY_MAX:
        raise ValidationError(f"{field} exceeds {MONEY_MAX}: {amount}", field=field)
    if amount != amount.quantize(MONEY_QUANTUM, rounding=ROUND_DOWN):
        raise ValidationError(
            f"{field} has more than {MONEY_DECIMAL_PLACES} decimal places: {amount}",
            field=field,
        )
    return amount.quantize(MONEY_QUANTUM)


# ISO 4217 Currency Codes
# Source: https://www.iso.org/iso-4217-currency-codes.html
ISO_4217_CURRENCIES: set[str] = {
    # Major currencies
    "AUD", "USD", "EUR", "GBP", "JPY", "CHF", "CAD", "NZD",
    # Other currencies (alphabetical)
    "AED", "AFN", "ALL", "AMD", "ANG", "AOA", "ARS", "AWG", "AZN",
    "BAM", "BBD", "BDT", "BGN", "BHD", "BIF", "BMD", "BND", "BOB", "BRL", "BSD", "BTN", "BWP", "BYN", "BZD",
    "CDF", "CLP", "CNY", "COP", "CRC", "CUP", "CVE", "CZK",
    "DJF", "DKK", "DOP", "DZD",
    "EGP", "ERN", "ETB",
    "FJD", "FKP",
    "GEL", "GHS", "GIP", "GMD", "GNF", "GTQ", "GYD",
    "HKD", "HNL", "HTG", "HUF",
    "IDR", "ILS", "INR", "IQD", "IRR", "ISK",
    "JMD", "JOD",
    "KES", "KGS", "KHR", "KMF", "KPW", "KRW", "KWD", "KYD", "KZT",
    "LAK", "LBP", "LKR", "LRD", "LSL", "LYD",
    "MAD", "MDL", "MGA", "MKD", "MMK", "MNT", "MOP", "MRU", "MUR", "MVR", "MWK", "MXN", "MYR", "MZN",
    "NAD", "NGN", "NIO", "NOK", "NPR",
    "OMR",
    "PAB", "PEN", "PGK", "PHP", "PKR", "PLN", "PYG",
    "QAR",
    "RON", "RSD", "RUB", "RWF",
    "SAR", "SBD", "SCR", "SDG", "SEK", "SGD", "SHP", "SLE", "SOS", "SRD", "SSP", "STN", "SYP", "SZL",
    "THB", "TJS", "TMT", "TND", "TOP", "TRY", "TTD", "TWD", "TZS",
    "UAH", "UGX", "UYU", "UZS",
    "VES", "VND", "VUV",
    "WST",
    "XAF", "XCD", "XOF", "XPF",
    "YER",
    "ZAR", "ZMW", "ZWL",
}


def validate_currency(currency: str) -> str:
    """
    Validate that a currency code is a valid ISO 4217 code.

    Currency is recorded on cases and transactions but never converted.

    Returns:
        The validated currency code (uppercase).

    Raises:
        ValidationError: If the currency code is not valid.
    """
    if not currency or not isinstance(currency, str):
        raise ValidationError(f"Invalid ISO 4217 currency code: {currency!r}", field="currency")

    normalized = currency.upper().strip()

    if len(normalized) != 3 or normalized not in ISO_4217_CURRENCIES:
        raise ValidationError(f"Invalid ISO 4217 currency code: {currency!r}", field="currency")

    return normalized
