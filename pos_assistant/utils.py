"""Shared utilities used across the POS assistant."""

import re
from decimal import Decimal

_PUNCTUATION = re.compile(r"[^\w\s']", re.UNICODE)
_WHITESPACE = re.compile(r"\s+")


def normalize_phrase(value: str) -> str:
    """Normalize free text for phrase matching.

    Casefolds, turns punctuation into spaces, and collapses whitespace.
    Apostrophes are kept so contractions stay one token.

    Examples:
        >>> normalize_phrase("  That's ALL, thanks!  ")
        "that's all thanks"
        >>> normalize_phrase("C'est tout.")
        "c'est tout"
    """
    value = value.replace("’", "'").casefold()
    value = _PUNCTUATION.sub(" ", value)
    return _WHITESPACE.sub(" ", value).strip()


def contains_phrase(text: str, phrase: str) -> int:
    """Return the end offset of ``phrase`` in ``text`` on word boundaries, or -1.

    Both arguments must already be normalized.
    """
    if not phrase:
        return -1
    match = re.search(rf"(?<![\w']){re.escape(phrase)}(?![\w'])", text)
    return match.end() if match else -1


# ISO 4217 minor units for the currencies that do not use two decimals.
_MINOR_UNITS: dict[str, int] = {
    "JPY": 0, "KRW": 0, "VND": 0, "CLP": 0, "ISK": 0, "PYG": 0, "UGX": 0, "RWF": 0,
    "KWD": 3, "BHD": 3, "OMR": 3, "JOD": 3, "TND": 3,
    "CLF": 4,
}


def currency_decimals(currency: str) -> int:
    return _MINOR_UNITS.get(currency.upper(), 2)


def format_money(amount: Decimal, currency: str) -> str:
    """Render an amount in the currency's minor units, followed by its code.

    Examples:
        >>> format_money(Decimal("9"), "USD")
        '9.00 USD'
        >>> format_money(Decimal("480"), "JPY")
        '480 JPY'
    """
    exponent = Decimal(1).scaleb(-currency_decimals(currency))
    return f"{amount.quantize(exponent)} {currency}"
