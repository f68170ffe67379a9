"""US phone number helpers for display and record matching."""

from __future__ import annotations

import re

_NON_DIGITS = re.compile(r"\D")


def format_phone(value: str | None) -> str:
    """Format a US number as ``+1 (AAA)-BBB-CCCC``.

    Spreadsheet imports often carry a leading apostrophe and may or may not
    include the country code, so everything but digits is dropped and a
    single leading 1 is removed. Partial numbers render progressively.
    """
    if not value:
        return ""
    digits = _NON_DIGITS.sub("", str(value))
    if digits.startswith("1"):
        digits = digits[1:]
    digits = digits[:10]
    if not digits:
        return ""

    area, middle, last = digits[:3], digits[3:6], digits[6:10]
    if len(digits) > 6:
        return f"+1 ({area})-{middle}-{last}"
    if len(digits) > 3:
        return f"+1 ({area})-{middle}"
    return f"+1 ({area}"


def normalize_phone(value: str | None) -> str:
    """Reduce a phone number to its last 10 digits for comparisons."""
    if not value:
        return ""
    return _NON_DIGITS.sub("", str(value))[-10:]


def pick_business_and_target(
    to: str | None,
    from_: str | None,
    business_numbers: list[str],
) -> tuple[str, str, str]:
    """Work out which leg of a call is ours.

    Returns (business_phone, target_phone, direction). A call from one of our
    numbers is outbound; a call to one of them is inbound; otherwise the call
    is assumed outbound from the first configured number.
    """
    to10 = normalize_phone(to)
    from10 = normalize_phone(from_)

    def is_biz(number: str) -> bool:
        return bool(number) and number in business_numbers

    if is_biz(from10):
        business, target, direction = from10, to10, "outbound"
    elif is_biz(to10):
        business, target, direction = to10, from10, "inbound"
    else:
        business = business_numbers[0] if business_numbers else ""
        target, direction = to10 or from10, "outbound"
    return business, target, direction
