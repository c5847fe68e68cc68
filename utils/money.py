"""
Currency formatting for statements, exports and activity details
"""
import enum

class Currency(str, enum.Enum):
    PKR = "PKR"
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"

CURRENCY_SYMBOLS = {
    Currency.PKR: "₨",
    Currency.USD: "$",
    Currency.EUR: "€",
    Currency.GBP: "£",
}

def format_currency(amount: float, currency: Currency = Currency.USD) -> str:
    """Format a signed amount as e.g. -$1,234.50; the sign goes before the symbol"""
    symbol = CURRENCY_SYMBOLS[Currency(currency)]
    formatted = f"{symbol}{abs(amount):,.2f}"
    # -0.004 would otherwise render as "-$0.00"
    if amount < 0 and formatted != f"{symbol}0.00":
        return f"-{formatted}"
    return formatted
