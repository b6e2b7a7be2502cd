"""Whole-unit currency helpers (Colombian pesos, no sub-unit)"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation


def round_currency(value: float) -> int:
    """Round half-up to the nearest whole currency unit"""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def parse_currency(value: str | int | None) -> int:
    """
    Parse form input such as "1.500.000" into an integer amount.

    Dots are thousands separators in es-CO; anything unparseable is 0.
    """
    if value is None or value == "":
        return 0
    cleaned = str(value).replace(".", "").strip()
    try:
        return int(Decimal(cleaned))
    except (InvalidOperation, ValueError):
        return 0


def format_currency(amount: int) -> str:
    """Format as es-CO pesos: $ 1.500.000"""
    sign = "-" if amount < 0 else ""
    grouped = f"{abs(amount):,}".replace(",", ".")
    return f"{sign}$ {grouped}"
