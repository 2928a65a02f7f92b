"""Tolerant comparison and rounding shared by the calculators."""

DEFAULT_TOLERANCE = 0.01        # One cent
QUANTITY_PRECISION = 3
PRICE_PRECISION = 2


def precise_compare(a: float, b: float, tolerance: float = DEFAULT_TOLERANCE) -> int:
    """
    Three-way compare that treats values within *tolerance* as equal.

    Returns 0 if |a - b| <= tolerance, otherwise the sign of a - b.
    """
    diff = a - b
    if abs(diff) <= tolerance:
        return 0
    return 1 if diff > 0 else -1


def round_to(value: float, precision: int = QUANTITY_PRECISION) -> float:
    """Round half away from zero to *precision* decimal places."""
    factor = 10 ** precision
    scaled = abs(value) * factor
    rounded = int(scaled + 0.5) / factor
    result = rounded if value >= 0 else -rounded
    return result + 0.0     # no -0.0


def required_advance_amount(total: float, percentage: float) -> float:
    return total * percentage / 100
