"""Phone number normalization to the canonical storage key"""

import re

from digishe_ledger.domain.exceptions import ValidationError

MIN_CANONICAL_LENGTH = 10


def normalize(raw_phone: str, country_prefix: str = "233") -> str:
    """
    Normalize a user-entered phone number to country-prefixed digits.

    Rules:
    - Strip every non-digit character
    - 10 digits with a single leading zero: replace the zero with the prefix
    - Exactly 9 digits: prepend the prefix
    - Anything else passes through unchanged

    Example:
        "050 308 8600" → "233503088600"

    Raises:
        ValidationError: If fewer than 10 digits remain
    """
    digits = re.sub(r"\D", "", raw_phone or "")

    if len(digits) == 10 and digits.startswith("0") and not digits.startswith("00"):
        digits = country_prefix + digits[1:]
    elif len(digits) == 9:
        digits = country_prefix + digits

    if len(digits) < MIN_CANONICAL_LENGTH:
        raise ValidationError("Please enter a valid phone number")

    return digits
