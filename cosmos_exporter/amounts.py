from decimal import Decimal, InvalidOperation

# sorts below every real amount when the upstream value is malformed
UNPARSABLE_AMOUNT = Decimal('-Infinity')


def scale_amount(amount: str, coefficient: float = 1) -> float:
    """Parse a chain decimal string like ``'1234.500000000000000000'`` and divide it by ``coefficient``.

    Raises ValueError when ``amount`` is not a number.
    """
    if amount is None:
        raise ValueError('amount is missing')
    return float(amount) / coefficient


def exact_amount(amount: str) -> Decimal:
    """Parse a chain decimal string without losing precision.

    Malformed input (including NaN) maps to ``UNPARSABLE_AMOUNT`` so it can still be ordered.
    """
    try:
        value = Decimal(amount)
    except (InvalidOperation, TypeError, ValueError):
        return UNPARSABLE_AMOUNT
    if value.is_nan():
        return UNPARSABLE_AMOUNT
    return value
