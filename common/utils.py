from __future__ import annotations

import os
from typing import List, Optional


_TRUE_WORDS = frozenset({"1", "t", "true", "on", "yes", "y"})


def split_csv(value: Optional[str]) -> List[str]:
    """Split a comma-separated form value; items are trimmed and blanks dropped."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def parse_flag(value: Optional[str]) -> bool:
    """
    Lenient boolean for form fields. HTML checkboxes send "on"; anything not
    recognised as true (including garbage) is False.
    """
    if value is None:
        return False
    return value.strip().lower() in _TRUE_WORDS


def strip_extension(filename: str) -> str:
    """`Foo-Bold.ttf` -> `Foo-Bold`; only the last suffix is removed."""
    return os.path.splitext(filename)[0]
