from .formatters import (
    FALLBACK,
    format_access_key,
    format_date,
    format_datetime,
    format_money,
    format_percent,
    format_phone,
    format_postal_code,
    format_service_code,
    format_tax_id,
    only_digits,
    to_decimal,
)

__all__ = [
    "FALLBACK",
    "format_access_key",
    "format_date",
    "format_datetime",
    "format_money",
    "format_percent",
    "format_phone",
    "format_postal_code",
    "format_service_code",
    "format_tax_id",
    "only_digits",
    "to_decimal",
]
