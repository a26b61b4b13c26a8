"""
Currency display helpers.
"""
from typing import Optional, Union

from propdesk.config import get_settings

NOT_SET = "Not set"


def format_currency(value: Union[int, float, str, None], prefix: Optional[str] = None) -> str:
    """
    Format an amount with the currency prefix and thousands separators.
    None, "" and non-numeric strings render as "Not set".

    >>> format_currency(1500000)
    'RWF 1,500,000'
    """
    if value is None or value == "":
        return NOT_SET
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return NOT_SET
    if amount != amount:  # NaN
        return NOT_SET
    prefix = prefix if prefix is not None else get_settings().currency_prefix
    if amount.is_integer():
        text = f"{int(amount):,}"
    else:
        text = f"{amount:,.2f}".rstrip("0").rstrip(".")
    return f"{prefix} {text}"
