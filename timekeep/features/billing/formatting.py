"""
Duration and Earnings Formatting Module

Pure helpers for turning seconds and rates into display strings and
earnings. Rounding only happens in the display helpers.
"""

CURRENCY_SYMBOLS = {
    "USD": "$",
    "CAD": "CA$",
    "AUD": "A$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
}


def format_duration(seconds: int) -> str:
    """
    Format seconds as ``"{h}h {m}m {s}s"`` without leading zero units.

    Examples:
        3725 -> "1h 2m 5s", 300 -> "5m 0s", 42 -> "42s"
    """
    seconds = max(0, int(seconds))
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def format_clock(seconds: int) -> str:
    """Format seconds as ``HH:MM:SS`` for a live timer readout."""
    seconds = max(0, int(seconds))
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def calculate_earnings(seconds: float, hourly_rate: float) -> float:
    return seconds / 3600 * hourly_rate


def format_hours(seconds: float) -> str:
    """Decimal hours with two places."""
    return f"{seconds / 3600:.2f}"


def format_currency(amount: float, currency: str = "USD") -> str:
    """Render an amount as a two-decimal currency string, e.g. ``$1,234.50``."""
    symbol = CURRENCY_SYMBOLS.get(currency.upper())
    sign = "-" if amount < 0 else ""
    body = f"{abs(amount):,.2f}"
    if symbol is None:
        return f"{sign}{body} {currency.upper()}"
    return f"{sign}{symbol}{body}"
