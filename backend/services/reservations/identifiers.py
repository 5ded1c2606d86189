"""
Identifier Expander

Turns compact spot identifier strings such as "A1-A5,B1,B2-B3" and comma
separated license plate lists into explicit, ordered sequences. Pure
functions: a malformed token fails the whole call, nothing is dropped.
"""

import re
from typing import List, Tuple

from .errors import BookingValidationError, _require

_PREFIXED_RANGE = re.compile(r"^([A-Z]+)(\d+)-([A-Z]+)(\d+)$", re.IGNORECASE)
_NUMERIC_RANGE = re.compile(r"^(\d+)-(\d+)$")
_NON_ALNUM = re.compile(r"[^A-Z0-9]", re.IGNORECASE)


def _split_tokens(text: str, what: str) -> List[str]:
    _require(text is not None and text.strip() != "", f"No {what} given")
    tokens = [token.strip() for token in text.split(",")]
    for position, token in enumerate(tokens, start=1):
        _require(token != "", f"Empty {what} at position {position} in '{text}'")
    return tokens


def _expand_range(token: str, start: int, end: int, prefix: str = "") -> List[str]:
    if start > end:
        raise BookingValidationError(f"Invalid range: {token} (start greater than end)")
    return [f"{prefix}{number}" for number in range(start, end + 1)]


def expand_token(token: str) -> List[str]:
    """
    Expand a single token into uppercase identifiers.

    "B2-B4" -> ["B2", "B3", "B4"], "7-9" -> ["7", "8", "9"], "c12" -> ["C12"]
    """
    match = _PREFIXED_RANGE.match(token)
    if match:
        first_prefix, first_number, last_prefix, last_number = match.groups()
        if first_prefix.upper() != last_prefix.upper():
            raise BookingValidationError(f"Mismatched letter range: {token}")
        return _expand_range(token, int(first_number), int(last_number), first_prefix.upper())

    match = _NUMERIC_RANGE.match(token)
    if match:
        return _expand_range(token, int(match.group(1)), int(match.group(2)))

    return [token.upper()]


def expand_spot_identifiers(text: str) -> List[str]:
    """
    Expand a comma separated identifier string into an ordered, deduplicated list.

    Args:
        text: e.g. "A1-A3,B5"

    Returns:
        List[str]: e.g. ["A1", "A2", "A3", "B5"]

    Raises:
        BookingValidationError: on empty tokens, inverted or mismatched ranges
    """
    expanded: List[str] = []
    seen = set()
    for token in _split_tokens(text, "spot identifier"):
        for identifier in expand_token(token):
            if identifier not in seen:
                seen.add(identifier)
                expanded.append(identifier)
    return expanded


def normalize_license_plates(text: str) -> List[str]:
    """Strip every non alphanumeric character and uppercase, one plate per comma separated entry."""
    plates = []
    for raw in _split_tokens(text, "license plate"):
        plate = _NON_ALNUM.sub("", raw).upper()
        _require(plate != "", f"License plate '{raw}' contains no letters or digits")
        plates.append(plate)
    return plates


def pair_spots_with_plates(identifiers: List[str], plates: List[str]) -> List[Tuple[str, str]]:
    _require(
        len(identifiers) == len(plates),
        f"Number of license plates ({len(plates)}) must match number of parking spots ({len(identifiers)}).",
    )
    return list(zip(identifiers, plates))
