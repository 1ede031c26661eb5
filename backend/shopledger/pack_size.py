"""
Pack size parsing.

Products are labelled with free-text pack strings such as "1L", "90ml",
"500g" or "1.5kg". They are parsed exactly once, when the product is written,
into a PackSize normalized to a base unit so nothing downstream re-parses them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from .validation import ValidationError


BASE_UNIT_ML = "ml"
BASE_UNIT_G = "g"
BASE_UNIT_PIECE = "piece"

VALID_BASE_UNITS = [BASE_UNIT_ML, BASE_UNIT_G, BASE_UNIT_PIECE]

# suffix -> (base unit, multiplier)
_UNIT_ALIASES = {
    "ml": (BASE_UNIT_ML, 1),
    "l": (BASE_UNIT_ML, 1000),
    "ltr": (BASE_UNIT_ML, 1000),
    "litre": (BASE_UNIT_ML, 1000),
    "liter": (BASE_UNIT_ML, 1000),
    "g": (BASE_UNIT_G, 1),
    "gm": (BASE_UNIT_G, 1),
    "gms": (BASE_UNIT_G, 1),
    "gram": (BASE_UNIT_G, 1),
    "grams": (BASE_UNIT_G, 1),
    "kg": (BASE_UNIT_G, 1000),
    "pc": (BASE_UNIT_PIECE, 1),
    "pcs": (BASE_UNIT_PIECE, 1),
    "piece": (BASE_UNIT_PIECE, 1),
    "pieces": (BASE_UNIT_PIECE, 1),
    "": (BASE_UNIT_PIECE, 1),
}

_PACK_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-zA-Z]*)\s*$")


@dataclass(frozen=True)
class PackSize:
    value: int
    unit: str

    @property
    def label(self) -> str:
        if self.unit == BASE_UNIT_ML and self.value >= 1000 and self.value % 100 == 0:
            return f"{_trim(Decimal(self.value) / 1000)}L"
        if self.unit == BASE_UNIT_G and self.value >= 1000 and self.value % 100 == 0:
            return f"{_trim(Decimal(self.value) / 1000)}kg"
        if self.unit == BASE_UNIT_PIECE:
            return f"{self.value}pcs"
        return f"{self.value}{self.unit}"

    def to_dict(self) -> dict:
        return {"value": self.value, "unit": self.unit, "label": self.label}


def _trim(d: Decimal) -> str:
    return format(d.normalize(), "f")


def parse_pack_size(raw: str | None) -> PackSize | None:
    """
    Parse a free-text pack size into a normalized PackSize.

    Returns None for empty input. Raises ValidationError when the text is not
    a positive number followed by a known unit, or when the normalized value
    is not a whole number of base units (e.g. "0.5ml").
    """
    if raw is None:
        return None
    text = str(raw).strip()
    if not text:
        return None

    match = _PACK_RE.match(text)
    if not match:
        raise ValidationError(f"Unrecognized pack size: {raw!r}")

    number, suffix = match.groups()
    alias = _UNIT_ALIASES.get(suffix.lower())
    if alias is None:
        raise ValidationError(f"Unknown pack size unit: {suffix!r}")

    base_unit, multiplier = alias
    try:
        scaled = Decimal(number) * multiplier
    except InvalidOperation:
        raise ValidationError(f"Unrecognized pack size: {raw!r}")

    if scaled <= 0:
        raise ValidationError("Pack size must be positive")
    if scaled != scaled.to_integral_value():
        raise ValidationError(f"Pack size {raw!r} is not a whole number of {base_unit}")

    return PackSize(value=int(scaled), unit=base_unit)
