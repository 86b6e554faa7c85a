"""Unit algebra.

Units are represented as exponent maps (``{"m": 1, "s": -2}``) rather than a
fixed set of unit types. A ``UnitRegistry`` is a read-only table mapping each
unit symbol to a conversion factor and the base-unit exponent map it stands
for, which is all that is needed to decide compatibility and to convert
between proportional units. Offset conversions (temperature scales) are not
supported.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Tuple

from .logging_config import get_logger
from .types import IncompatibleUnits, TypeMismatch, UnknownUnit

logger = get_logger("units")

UnitMap = Dict[str, int]

_UNIT_TOKEN_RE = re.compile(r"^([A-Za-z_]+)(?:\^(-?\d+))?$")


def parse_unit_expression(text: str) -> UnitMap:
    """Parse unit text such as ``"km/h"`` or ``"kg*m/s^2"`` into an exponent map.

    The text is split on ``/`` into a numerator group followed by
    denominator groups, each of which is split on ``*``. Numerator symbols
    add their exponent, denominator symbols subtract it. Empty text is the
    dimensionless map.
    """
    unit_map: UnitMap = {}
    text = text.strip()
    if not text:
        return unit_map
    for group_index, group in enumerate(text.split("/")):
        sign = 1 if group_index == 0 else -1
        for token in group.split("*"):
            token = token.strip()
            if token == "1" and group_index == 0:
                # "1/s" style dimensionless numerator
                continue
            match = _UNIT_TOKEN_RE.match(token)
            if not match:
                raise UnknownUnit(f"Invalid unit format: '{token}' in '{text}'")
            symbol = match.group(1)
            exponent = int(match.group(2)) if match.group(2) else 1
            unit_map[symbol] = unit_map.get(symbol, 0) + sign * exponent
    return {symbol: exp for symbol, exp in unit_map.items() if exp != 0}


def format_unit_expression(unit_map: Mapping[str, int]) -> str:
    """Render an exponent map in canonical ``num*num/den*den`` form."""
    positive = []
    negative = []
    for symbol, exponent in unit_map.items():
        if exponent > 0:
            positive.append(symbol if exponent == 1 else f"{symbol}^{exponent}")
        elif exponent < 0:
            negative.append(symbol if exponent == -1 else f"{symbol}^{-exponent}")
    text = "*".join(positive) if positive else "1"
    if negative:
        text += "/" + "*".join(negative)
    return text


def combine(map1: Mapping[str, int], map2: Mapping[str, int], operation: str) -> UnitMap:
    """Add (``+``) or subtract (``-``) exponents key-wise, dropping zeros."""
    if operation not in ("+", "-"):
        raise ValueError(f"Unknown unit combination '{operation}'")
    result = dict(map1)
    for symbol, exponent in map2.items():
        delta = exponent if operation == "+" else -exponent
        result[symbol] = result.get(symbol, 0) + delta
    return {symbol: exp for symbol, exp in result.items() if exp != 0}


def scale_exponents(unit_map: Mapping[str, int], power: float) -> UnitMap:
    """Multiply every exponent by ``power``; the results must stay integral."""
    result: UnitMap = {}
    for symbol, exponent in unit_map.items():
        scaled = exponent * power
        if scaled != int(scaled):
            raise TypeMismatch(
                f"Raising '{format_unit_expression(unit_map)}' to {power:g} "
                "gives a fractional unit exponent"
            )
        if scaled:
            result[symbol] = int(scaled)
    return result


@dataclass(frozen=True)
class UnitDefinition:
    """Conversion factor to, and exponent map of, the base units of a symbol."""

    factor: float
    base: Mapping[str, int]


class UnitRegistry:
    """Read-only lookup table of known unit symbols."""

    def __init__(self, definitions: Mapping[str, Tuple[float, Mapping[str, int]]]):
        self._definitions = MappingProxyType(
            {
                symbol: UnitDefinition(float(factor), MappingProxyType(dict(base)))
                for symbol, (factor, base) in definitions.items()
            }
        )

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._definitions

    def symbols(self) -> frozenset:
        return frozenset(self._definitions)

    def lookup(self, symbol: str) -> UnitDefinition:
        try:
            return self._definitions[symbol]
        except KeyError:
            raise UnknownUnit(f"Unknown unit '{symbol}'") from None

    def simplify_to_base_units(self, unit_map: Mapping[str, int]) -> Tuple[UnitMap, float]:
        """Reduce a unit map to base units.

        Returns:
            Tuple (base_map, scale_factor) such that one of ``unit_map``
            equals ``scale_factor`` of ``base_map``.
        """
        base_map: UnitMap = {}
        scale = 1.0
        for symbol, exponent in unit_map.items():
            definition = self.lookup(symbol)
            scale *= definition.factor**exponent
            for base_symbol, base_exponent in definition.base.items():
                base_map[base_symbol] = base_map.get(base_symbol, 0) + base_exponent * exponent
        return {symbol: exp for symbol, exp in base_map.items() if exp != 0}, scale

    def are_compatible(self, map_a: Mapping[str, int], map_b: Mapping[str, int]) -> bool:
        base_a, _ = self.simplify_to_base_units(map_a)
        base_b, _ = self.simplify_to_base_units(map_b)
        return base_a == base_b

    def conversion_ratio(self, from_map: Mapping[str, int], to_map: Mapping[str, int]) -> float:
        """Return the factor turning a magnitude in ``from_map`` into ``to_map``."""
        base_from, scale_from = self.simplify_to_base_units(from_map)
        base_to, scale_to = self.simplify_to_base_units(to_map)
        if base_from != base_to:
            raise IncompatibleUnits(
                f"Cannot convert '{format_unit_expression(from_map)}' "
                f"to '{format_unit_expression(to_map)}'"
            )
        return scale_from / scale_to

    def convert(self, value: float, from_unit: str, to_unit: str) -> float:
        """Convert a magnitude between two unit expressions given as text."""
        ratio = self.conversion_ratio(
            parse_unit_expression(from_unit), parse_unit_expression(to_unit)
        )
        logger.debug("Converting %s -> %s with ratio %r", from_unit, to_unit, ratio)
        return value * ratio


DEFAULT_UNITS = UnitRegistry(
    {
        # Length
        "m": (1, {"m": 1}),
        "cm": (0.01, {"m": 1}),
        "mm": (0.001, {"m": 1}),
        "km": (1000, {"m": 1}),
        # Time
        "s": (1, {"s": 1}),
        "ms": (0.001, {"s": 1}),
        "h": (3600, {"s": 1}),
        # Mass
        "kg": (1, {"kg": 1}),
        "g": (0.001, {"kg": 1}),
        # Derived
        "N": (1, {"kg": 1, "m": 1, "s": -2}),
        "J": (1, {"kg": 1, "m": 2, "s": -2}),
        "W": (1, {"kg": 1, "m": 2, "s": -3}),
        "Pa": (1, {"kg": 1, "m": -1, "s": -2}),
        "Hz": (1, {"s": -1}),
    }
)


@dataclass(frozen=True)
class UnitValue:
    """A magnitude paired with a unit exponent map."""

    magnitude: float
    units: Mapping[str, int] = field(default_factory=dict)

    @classmethod
    def from_text(cls, magnitude: float, unit_text: str) -> "UnitValue":
        return cls(magnitude, parse_unit_expression(unit_text))

    @property
    def unit(self) -> str:
        return format_unit_expression(self.units)

    @property
    def is_dimensionless(self) -> bool:
        return not self.units

    def to(self, unit_text: str, registry: UnitRegistry = DEFAULT_UNITS) -> "UnitValue":
        target = parse_unit_expression(unit_text)
        ratio = registry.conversion_ratio(self.units, target)
        return UnitValue(self.magnitude * ratio, target)

    def add(self, other: "UnitValue", registry: UnitRegistry = DEFAULT_UNITS) -> "UnitValue":
        return self._add_or_subtract(other, "+", registry)

    def subtract(self, other: "UnitValue", registry: UnitRegistry = DEFAULT_UNITS) -> "UnitValue":
        return self._add_or_subtract(other, "-", registry)

    def _add_or_subtract(self, other: "UnitValue", op: str, registry: UnitRegistry) -> "UnitValue":
        if dict(self.units) == dict(other.units):
            converted = other.magnitude
        else:
            if not registry.are_compatible(self.units, other.units):
                verb = "add" if op == "+" else "subtract"
                raise IncompatibleUnits(
                    f"Cannot {verb} '{other.unit}' and '{self.unit}'"
                )
            converted = other.magnitude * registry.conversion_ratio(other.units, self.units)
        magnitude = self.magnitude + converted if op == "+" else self.magnitude - converted
        return UnitValue(magnitude, dict(self.units))

    def multiply(self, other: "UnitValue") -> "UnitValue":
        return UnitValue(self.magnitude * other.magnitude, combine(self.units, other.units, "+"))

    def divide(self, other: "UnitValue") -> "UnitValue":
        return UnitValue(self.magnitude / other.magnitude, combine(self.units, other.units, "-"))

    def power(self, exponent: float) -> "UnitValue":
        return UnitValue(math.pow(self.magnitude, exponent), scale_exponents(self.units, exponent))

    def negate(self) -> "UnitValue":
        return UnitValue(-self.magnitude, dict(self.units))
