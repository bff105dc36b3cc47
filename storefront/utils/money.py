# storefront/utils/money.py

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

Money = Decimal
ZERO = Decimal("0")
CENT = Decimal("0.01")


def D(x) -> Money:
    return x if isinstance(x, Decimal) else Decimal(str(x or "0"))


def round_money(x) -> Money:
    return D(x).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_money(x):
    """Decimal from client input, or None when it is not a finite number."""
    if x is None or isinstance(x, bool):
        return None
    try:
        v = Decimal(str(x).strip())
    except (InvalidOperation, ValueError):
        return None
    if not v.is_finite():
        return None
    return v


def money_str(x) -> str:
    return str(round_money(x))


def money_float(x):
    return float(round_money(x)) if x is not None else None
