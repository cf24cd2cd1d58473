"""String formatters for the values printed on the DANFSe.

All formatters are total: an input of unexpected shape is returned as-is
(digit-stripped where the formatter works on digits) instead of raising.
"""
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Optional, Union

FALLBACK = "-"
ACCESS_KEY_PREFIX = "NFS"
CURRENCY_PREFIX = "R$ "
# Amounts with more integer digits are passed through unformatted
MAX_AMOUNT_DIGITS = 60

_NON_DIGIT = re.compile(r"\D")
_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_DATETIME = re.compile(r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})")

Number = Union[Decimal, int, float, str, None]


def only_digits(value: Optional[str]) -> str:
    """Strip every non-digit character."""
    if not value:
        return ""
    return _NON_DIGIT.sub("", str(value))


def format_access_key(value: Optional[str]) -> str:
    """Turn the ``infNFSe/@Id`` attribute into the access key."""
    if not value:
        return ""
    value = value.strip()
    if value.startswith(ACCESS_KEY_PREFIX):
        return value[len(ACCESS_KEY_PREFIX):]
    return value


def format_tax_id(value: Optional[str]) -> str:
    """Format a CNPJ (14 digits) or CPF (11 digits).

    >>> format_tax_id("12345678000195")
    '12.345.678/0001-95'
    >>> format_tax_id("12345678901")
    '123.456.789-01'
    """
    d = only_digits(value)
    if len(d) == 14:
        return f"{d[0:2]}.{d[2:5]}.{d[5:8]}/{d[8:12]}-{d[12:14]}"
    if len(d) == 11:
        return f"{d[0:3]}.{d[3:6]}.{d[6:9]}-{d[9:11]}"
    return d


def format_postal_code(value: Optional[str]) -> str:
    """Format a CEP as ``#####-###``."""
    d = only_digits(value)
    if len(d) == 8:
        return f"{d[0:5]}-{d[5:8]}"
    return d


def format_phone(value: Optional[str]) -> str:
    """Format a phone number by its digit count.

    8 and 9 digits are local numbers, 10 and 11 carry the area code and 12 and
    13 additionally the country code.
    """
    d = only_digits(value)
    n = len(d)
    if n == 0:
        return FALLBACK
    if n == 8:
        return f"{d[0:4]}-{d[4:8]}"
    if n == 9:
        return f"{d[0:5]}-{d[5:9]}"
    if n == 10:
        return f"({d[0:2]}) {d[2:6]}-{d[6:10]}"
    if n == 11:
        return f"({d[0:2]}) {d[2:7]}-{d[7:11]}"
    if n == 12:
        return f"+{d[0:2]} ({d[2:4]}) {d[4:8]}-{d[8:12]}"
    if n == 13:
        return f"+{d[0:2]} ({d[2:4]}) {d[4:9]}-{d[9:13]}"
    return d


def format_date(value: Optional[str]) -> str:
    """``YYYY-MM-DD...`` to ``DD/MM/YYYY``."""
    if not value:
        return ""
    m = _DATE.match(value.strip())
    if not m:
        return value
    return f"{m.group(3)}/{m.group(2)}/{m.group(1)}"


def format_datetime(value: Optional[str]) -> str:
    """``YYYY-MM-DDTHH:MM:SS...`` to ``DD/MM/YYYY HH:MM:SS``.

    A value carrying only a date is formatted as a date; the time zone
    suffix is dropped.
    """
    if not value:
        return ""
    text = value.strip()
    m = _DATETIME.match(text)
    if m:
        return f"{m.group(3)}/{m.group(2)}/{m.group(1)} {m.group(4)}:{m.group(5)}:{m.group(6)}"
    return format_date(text)


def format_service_code(value: Optional[str]) -> str:
    """Format the national service code ``cTribNac`` as ``XX.XX.XX``."""
    d = only_digits(value)
    if len(d) == 6:
        return f"{d[0:2]}.{d[2:4]}.{d[4:6]}"
    return d


def to_decimal(value: Number) -> Optional[Decimal]:
    """Parse a number from the XML (dot decimal separator) or return None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, int):
        return Decimal(value)
    text = str(value).strip()
    if not text:
        return None
    try:
        result = Decimal(text)
    except InvalidOperation:
        return None
    if not result.is_finite():
        return None
    return result


def _brazilian_number(value: Decimal) -> Optional[str]:
    with localcontext() as ctx:
        ctx.prec = MAX_AMOUNT_DIGITS + 2
        try:
            quantized = value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        except InvalidOperation:
            return None
    # 1,234.56 -> 1.234,56
    return "{:,.2f}".format(quantized).replace(",", "_").replace(".", ",").replace("_", ".")


def format_money(value: Number) -> str:
    """Format an amount as ``R$ 1.234,56``.

    Non-numeric input (for example an already formatted amount or the
    fallback marker) is returned unchanged.
    """
    amount = to_decimal(value)
    text = None if amount is None else _brazilian_number(amount)
    if text is None:
        return "" if value is None else str(value)
    return CURRENCY_PREFIX + text


def format_percent(value: Number) -> str:
    """Format a rate as ``2,00 %``; non-numeric input is returned unchanged."""
    rate = to_decimal(value)
    text = None if rate is None else _brazilian_number(rate)
    if text is None:
        return "" if value is None else str(value)
    return text + " %"
