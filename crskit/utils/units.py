"""Units of measure used throughout crskit.

This module defines the catalogue units (with their EPSG identifiers) that parsed and built
objects are normalised to, plus the name tables used when a unit is spelled differently by a
text dialect:
- METRE, KILOMETRE, FOOT, US_SURVEY_FOOT: linear units
- DEGREE, RADIAN, GRAD, ARC_SECOND: angular units
- UNITY, PARTS_PER_MILLION: scale units
- SECOND, YEAR: time units
"""

from __future__ import annotations

import math
import re
from enum import Enum
from typing import NamedTuple, Optional


class UnitType(Enum):
    """
    The physical quantity a unit of measure applies to.
    """

    LINEAR = "linear"
    ANGULAR = "angular"
    SCALE = "scale"
    TIME = "time"
    PARAMETRIC = "parametric"
    NONE = "none"


class Unit(NamedTuple):
    """
    A unit of measure with its factor to the SI (or radian/unity) reference unit.

    Attributes:
        name: The unit name, e.g. 'metre' or 'degree'
        conversion_factor: Multiplier converting a value in this unit to the reference unit
        unit_type: The quantity measured (linear, angular, scale, time)
        authority: Optional authority of the unit identifier
        code: Optional code of the unit identifier
    """

    name: str
    conversion_factor: float
    unit_type: UnitType
    authority: Optional[str] = None
    code: Optional[str] = None

    def to_si(self, value: float) -> float:
        return value * self.conversion_factor

    def from_si(self, value: float) -> float:
        return value / self.conversion_factor

    def is_equivalent_to(self, other: Unit) -> bool:
        if not isinstance(other, Unit):
            return False
        return self.unit_type == other.unit_type and math.isclose(
            self.conversion_factor, other.conversion_factor, rel_tol=1e-10
        )


# SI base length
METRE = Unit("metre", 1.0, UnitType.LINEAR, "EPSG", "9001")
KILOMETRE = Unit("kilometre", 1000.0, UnitType.LINEAR, "EPSG", "9036")
FOOT = Unit("foot", 0.3048, UnitType.LINEAR, "EPSG", "9002")
US_SURVEY_FOOT = Unit("US survey foot", 0.304800609601219, UnitType.LINEAR, "EPSG", "9003")

# Angles, expressed as radians per unit
RADIAN = Unit("radian", 1.0, UnitType.ANGULAR, "EPSG", "9101")
DEGREE = Unit("degree", math.pi / 180.0, UnitType.ANGULAR, "EPSG", "9122")
GRAD = Unit("grad", math.pi / 200.0, UnitType.ANGULAR, "EPSG", "9105")
ARC_SECOND = Unit("arc-second", math.pi / 648000.0, UnitType.ANGULAR, "EPSG", "9104")

# Dimensionless scale
UNITY = Unit("unity", 1.0, UnitType.SCALE, "EPSG", "9201")
PARTS_PER_MILLION = Unit("parts per million", 1e-6, UnitType.SCALE, "EPSG", "9202")

# Time
SECOND = Unit("second", 1.0, UnitType.TIME, "EPSG", "1040")
YEAR = Unit("year", 31556925.445, UnitType.TIME, "EPSG", "1029")

CATALOGUE_UNITS = (
    METRE,
    KILOMETRE,
    FOOT,
    US_SURVEY_FOOT,
    RADIAN,
    DEGREE,
    GRAD,
    ARC_SECOND,
    UNITY,
    PARTS_PER_MILLION,
    SECOND,
    YEAR,
)

# Alternative spellings seen in WKT dialects, keyed by normalised spelling
_UNIT_ALIASES = {
    "meter": METRE,
    "metre": METRE,
    "meters": METRE,
    "metres": METRE,
    "m": METRE,
    "kilometer": KILOMETRE,
    "foot": FOOT,
    "footus": US_SURVEY_FOOT,
    "ussurveyfoot": US_SURVEY_FOOT,
    "degree": DEGREE,
    "degrees": DEGREE,
    "degreesuppliertodefinerepresentation": DEGREE,
    "radian": RADIAN,
    "grad": GRAD,
    "gradian": GRAD,
    "arcsecond": ARC_SECOND,
    "unity": UNITY,
    "partspermillion": PARTS_PER_MILLION,
    "second": SECOND,
    "year": YEAR,
}

# Spelling of catalogue units in the ESRI dialect, keyed by EPSG code
ESRI_UNIT_NAMES = {
    "9001": "Meter",
    "9036": "Kilometer",
    "9002": "Foot",
    "9003": "Foot_US",
    "9101": "Radian",
    "9122": "Degree",
    "9105": "Grad",
}


def _normalise(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", name.lower())


def find_unit(name: str, conversion_factor: Optional[float] = None) -> Optional[Unit]:
    """
    Find the catalogue unit matching a name and, when given, a conversion factor.

    Args:
        name: The unit name in any supported spelling ('Degree', 'Meter', 'metre', ...)
        conversion_factor: An optional factor the catalogue unit must match

    Returns:
        The catalogue unit or None if no catalogue unit matches
    """
    unit = _UNIT_ALIASES.get(_normalise(name))
    if unit is None:
        return None
    if conversion_factor is not None and not math.isclose(
        unit.conversion_factor, conversion_factor, rel_tol=1e-10
    ):
        return None
    return unit


def normalise_unit(unit: Unit) -> Unit:
    """
    Replace a unit by its catalogue equivalent when name and factor agree.
    """
    found = find_unit(unit.name, unit.conversion_factor)
    if found is not None and found.unit_type == unit.unit_type:
        return found
    return unit


def make_unit(
    name: Optional[str],
    conversion_factor: Optional[float],
    unit_type: UnitType,
    default: Unit,
) -> Unit:
    """
    Build a unit from a name and factor the way builders receive them.

    A missing name or a zero factor selects the default unit.
    """
    if not name or not conversion_factor:
        return default
    return normalise_unit(Unit(name, float(conversion_factor), unit_type))


def esri_unit_name(unit: Unit) -> str:
    if unit.authority == "EPSG" and unit.code in ESRI_UNIT_NAMES:
        return ESRI_UNIT_NAMES[unit.code]
    return unit.name.replace(" ", "_")
