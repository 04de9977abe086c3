import re
from typing import Optional

CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def clean_text(value: Optional[str], max_length: int = 2000) -> Optional[str]:
    """
    Normalize free text entered by users (notes, reasons, review text).

    Strips surrounding whitespace and control characters. Values are stored
    as entered otherwise; HTML escaping happens where text is rendered into
    email templates.

    Returns:
        Cleaned string, or None for missing/blank input

    Raises:
        ValueError: If input exceeds max_length
    """
    if value is None:
        return None

    value = CONTROL_CHARS.sub("", str(value)).strip()
    if not value:
        return None

    if len(value) > max_length:
        raise ValueError(f"Input exceeds maximum length of {max_length} characters")

    return value
