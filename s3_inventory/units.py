from __future__ import annotations
"""Conversion between binary size units."""

from .errors import InvalidUnitError

SIZE_UNITS = ("Bytes", "KB", "MB", "GB", "TB", "PB", "EB", "ZB", "YB")
UNIT_STEP = 1024


def unit_index(unit: str) -> int:
    try:
        return SIZE_UNITS.index(unit)
    except ValueError:
        raise InvalidUnitError(f"Unknown size unit '{unit}'") from None


def convert_size(from_unit: str, amount: float, to_unit: str) -> float:
    """Convert ``amount`` expressed in ``from_unit`` into ``to_unit``.

    Zero is returned unchanged whatever the units, so empty totals stay an
    exact ``0``.
    """

    if amount == 0:
        return 0
    from_index = unit_index(from_unit)
    to_index = unit_index(to_unit)
    if to_index > from_index:
        return amount / UNIT_STEP ** (to_index - from_index)
    return amount * UNIT_STEP ** (from_index - to_index)


def unit_bytes(unit: str) -> int:
    """Return how many bytes make up one ``unit``."""

    return UNIT_STEP ** unit_index(unit)
