"""
Saudi Riyal formatting in Arabic locale, as the frontend renders it.

    format_sar(1234.5)  -> RLM + "١٬٢٣٤٫٥٠" + NBSP + "ر.س." + RLM
    format_sar(None)    -> RLM + "٠٫٠٠" + NBSP + "ر.س." + RLM
"""
from decimal import ROUND_HALF_UP, Decimal

ARABIC_DIGITS = str.maketrans("0123456789", "٠١٢٣٤٥٦٧٨٩")
ARABIC_GROUP_SEP = "٬"
ARABIC_DECIMAL_SEP = "٫"
RLM = "\u200f"
NBSP = "\u00a0"
SAR_SYMBOL = "ر.س."


def format_sar(amount, decimals: int = 2) -> str:
    value = Decimal(str(amount or 0)).quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    # group with placeholders first, then swap to Arabic separators
    latin = f"{abs(value):,.{decimals}f}"
    localized = latin.replace(",", "\x00").replace(".", ARABIC_DECIMAL_SEP).replace("\x00", ARABIC_GROUP_SEP)
    return f"{RLM}{sign}{localized.translate(ARABIC_DIGITS)}{NBSP}{SAR_SYMBOL}{RLM}"


def money_fields(name: str, amount) -> dict:
    """`{name: raw, nameFormatted: "..."}` pair used by every view model."""
    raw = float(amount or 0)
    return {name: raw, f"{name}Formatted": format_sar(raw)}
