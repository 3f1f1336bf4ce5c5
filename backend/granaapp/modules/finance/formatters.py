from decimal import Decimal, ROUND_HALF_UP
from datetime import date, datetime
from typing import Any, Optional

CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    return Decimal(str(value))


def format_brl(value: Any, fallback: str = "—") -> str:
    """R$ 1.234,56 (espaço simples após o símbolo)."""
    if value is None or isinstance(value, bool):
        return fallback
    try:
        amount = to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    except ArithmeticError:
        return fallback
    if not amount.is_finite():
        return fallback

    # 1,234.56 -> 1.234,56
    grouped = f"{abs(amount):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"-R$ {grouped}" if amount < 0 else f"R$ {grouped}"


def format_date_br(value: Any, fallback: str = "—") -> str:
    if not value:
        return fallback
    if isinstance(value, datetime):
        return value.strftime("%d/%m/%Y")
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    raw = str(value).strip()
    try:
        if len(raw) == 10:
            return date.fromisoformat(raw).strftime("%d/%m/%Y")
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).strftime("%d/%m/%Y")
    except ValueError:
        return raw


def format_percentage(value: Optional[float]) -> str:
    """1.0 -> '100%', 0.75 -> '75%'."""
    if value is None:
        return "—"
    percent = (to_decimal(value) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return f"{percent}%"
