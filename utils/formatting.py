"""
Formatting utilities.
"""


def format_currency(amount: float, currency: str = "MXN") -> str:
    """
    Format an amount as currency.

    Args:
        amount: The amount in whole units (pesos or dollars, no cents).
        currency: Currency code (default MXN).

    Returns:
        Formatted currency string, e.g. "$2,000,000 MXN".
    """
    symbols = {
        "MXN": "$",
        "USD": "$",
    }
    symbol = symbols.get(currency, "")
    return f"{symbol}{round(amount):,} {currency}"


def format_percent(value: float, decimals: int = 0) -> str:
    """
    Format a number as a percentage.

    Args:
        value: The percentage value.
        decimals: Number of decimal places.

    Returns:
        Formatted percentage string.
    """
    return f"{value:.{decimals}f}%"
