"""
Display formatting for whole-unit currency amounts.

Amounts are stored as integers in whole currency units. These functions only
format; totals are always computed on the integers themselves.
"""

DEFAULT_CURRENCY = "PKR"


def format_amount(amount: int, currency: str = DEFAULT_CURRENCY) -> str:
    """
    Format an amount with thousands separators.

    Examples:
        >>> format_amount(12500)
        'PKR 12,500'
        >>> format_amount(0, "USD")
        'USD 0'
    """
    return f"{currency} {int(amount):,}"


def format_monthly(amount: int, currency: str = DEFAULT_CURRENCY) -> str:
    """
    Format a recurring monthly amount.

    Examples:
        >>> format_monthly(5000)
        'PKR 5,000/month'
    """
    return f"{format_amount(amount, currency)}/month"


def format_compact(amount: int) -> str:
    """
    Compact an amount with a "K" suffix and at most one decimal.

    Rounds half up to the nearest hundred using integer arithmetic and drops
    a trailing ".0".

    Examples:
        >>> format_compact(999)
        '999'
        >>> format_compact(1000)
        '1K'
        >>> format_compact(1250)
        '1.3K'
        >>> format_compact(125000)
        '125K'
    """
    amount = int(amount)
    if amount < 1000:
        return str(amount)

    tenths = (amount + 50) // 100
    whole, fraction = divmod(tenths, 10)
    if fraction == 0:
        return f"{whole}K"
    return f"{whole}.{fraction}K"
