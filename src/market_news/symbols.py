"""Stock symbol extraction from free text.

Plain case-insensitive substring search over a fixed vocabulary of NSE
tickers. No tokenization: "itc" also matches inside "switch".
"""

KNOWN_STOCKS: tuple[str, ...] = (
    "reliance", "tcs", "infosys", "hdfcbank", "icicibank",
    "bhartiairtel", "itc", "sbin", "hindunilvr", "asianpaint",
    "maruti", "bajfinance", "hcltech", "wipro", "ongc",
    "tatamotors", "sunpharma", "nestleind", "kotakbank", "ltim",
)


def extract_symbols(text: str) -> list[str]:
    """Known stock symbols mentioned in ``text``, in vocabulary order."""
    text_lower = text.lower()
    return [stock for stock in KNOWN_STOCKS if stock in text_lower]
