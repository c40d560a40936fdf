# app/utils/money.py

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")


def parse_money(value) -> Decimal:
    """
    Convierte valores tipo 'MVR 1,234.50', '$ 1200', '1200', 1200.5 a Decimal.
    - negativos con paréntesis: (1,234.50) -> -1234.50
    - coma como separador de miles ("1,234.50"); una sola coma sin punto es decimal ("1234,50")
    Si no se puede interpretar retorna Decimal("0").
    """
    if value is None:
        return Decimal("0")

    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        try:
            return Decimal(str(value))
        except InvalidOperation:
            return Decimal("0")

    s = str(value).strip()
    if s == "" or s.lower() in ("nan", "none"):
        return Decimal("0")

    negative = False
    if s.startswith("(") and s.endswith(")"):
        negative = True
        s = s[1:-1].strip()

    # quitar moneda/letras
    s = re.sub(r"[^\d,.\-]", "", s)
    if s in ("", "-"):
        return Decimal("0")

    if s.count(",") == 1 and s.count(".") == 0:
        s = s.replace(",", ".")
    else:
        s = s.replace(",", "")

    try:
        val = Decimal(s)
    except InvalidOperation:
        return Decimal("0")
    return -val if negative else val


def quantize_money(value) -> Decimal:
    return parse_money(value).quantize(CENT, rounding=ROUND_HALF_UP)
