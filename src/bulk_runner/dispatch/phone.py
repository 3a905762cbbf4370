"""Phone number formatting for the messaging gateway."""

from __future__ import annotations

import re

from bulk_runner.reconcile.classifier import normalize_phone

BRAZIL_COUNTRY_CODE = "55"
_BRAZIL_AREA_CODE = re.compile(r"^(1[1-9]|[2-9][0-9])")


def format_phone_for_gateway(phone: str) -> str:
    """Digits-only number with the Brazilian country code when it is missing.

    Numbers with 10 or 11 digits that start with a valid area code get ``55``
    prepended. Returns an empty string when no digits are left.
    """

    digits = normalize_phone(phone)
    if not digits:
        return ""
    if (
        10 <= len(digits) <= 11
        and _BRAZIL_AREA_CODE.match(digits)
        and not digits.startswith(BRAZIL_COUNTRY_CODE)
    ):
        return BRAZIL_COUNTRY_CODE + digits
    return digits
