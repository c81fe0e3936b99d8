from __future__ import annotations

import re
from typing import List, Optional, Tuple

from .exceptions import InsufficientNameParts

# credentials and generational suffixes; periods optional
_SUFFIX_RE = re.compile(r"^(ph\.?d\.?|m\.?d\.?|jr\.?|sr\.?|ii|iii|iv)$", re.IGNORECASE)


def clean_name_tokens(raw: Optional[str]) -> List[str]:
    if not raw or not isinstance(raw, str):
        return []
    tokens: List[str] = []
    for part in raw.split():
        part = part.rstrip(",")
        if not part or _SUFFIX_RE.match(part):
            continue
        tokens.append(part)
    return tokens


def parse_name(raw: Optional[str]) -> Tuple[str, str]:
    """
    Split a display name into (given, family).

    "Brian C. Keegan, Ph.D." -> ("Brian", "Keegan")

    Middle tokens are dropped on purpose; only first and last survive.
    """
    tokens = clean_name_tokens(raw)
    if len(tokens) < 2:
        raise InsufficientNameParts(raw)
    return tokens[0], tokens[-1]
