"""Name tables of the PROJ string notation.

The tables map the short identifiers PROJ strings use to model objects:
- PROJ_ELLIPSOIDS: +ellps= names with their defining parameters
- PROJ_DATUMS: +datum= names with their ellipsoid and EPSG datum code
- PROJ_PRIME_MERIDIANS: +pm= names with their Greenwich longitude in degrees
- PROJ_LINEAR_UNITS / PROJ_ANGULAR_UNITS: +units=, +xy_in= and +xy_out= identifiers
"""

from __future__ import annotations

import math
from typing import Dict, NamedTuple, Optional

from crskit.constructs.common import Identifier, is_close
from crskit.constructs.datum import (
    GREENWICH,
    WGS84_DATUM,
    WGS84_ELLIPSOID,
    Ellipsoid,
    GeodeticReferenceFrame,
)
from crskit.utils.units import (
    DEGREE,
    FOOT,
    GRAD,
    KILOMETRE,
    METRE,
    RADIAN,
    US_SURVEY_FOOT,
    Unit,
)


class ProjEllipsoid(NamedTuple):
    """
    A +ellps= entry. Exactly one of rf and b is set, neither for a sphere.
    """

    name: str
    a: float
    rf: Optional[float] = None
    b: Optional[float] = None
    epsg_code: Optional[str] = None


PROJ_ELLIPSOIDS: Dict[str, ProjEllipsoid] = {
    "WGS84": ProjEllipsoid("WGS 84", 6378137.0, rf=298.257223563, epsg_code="7030"),
    "GRS80": ProjEllipsoid("GRS 1980", 6378137.0, rf=298.257222101, epsg_code="7019"),
    "WGS72": ProjEllipsoid("WGS 72", 6378135.0, rf=298.26, epsg_code="7043"),
    "WGS66": ProjEllipsoid("WGS 66", 6378145.0, rf=298.25, epsg_code="7025"),
    "GRS67": ProjEllipsoid("GRS 1967", 6378160.0, rf=298.247167427, epsg_code="7036"),
    "clrk66": ProjEllipsoid("Clarke 1866", 6378206.4, b=6356583.8, epsg_code="7008"),
    "clrk80": ProjEllipsoid("Clarke 1880 (RGS)", 6378249.145, rf=293.465, epsg_code="7012"),
    "clrk80ign": ProjEllipsoid("Clarke 1880 (IGN)", 6378249.2, rf=293.466021293627, epsg_code="7011"),
    "krass": ProjEllipsoid("Krassowsky 1940", 6378245.0, rf=298.3, epsg_code="7024"),
    "bessel": ProjEllipsoid("Bessel 1841", 6377397.155, rf=299.1528128, epsg_code="7004"),
    "bess_nam": ProjEllipsoid("Bessel Namibia (GLM)", 6377483.865280419, rf=299.1528128, epsg_code="7046"),
    "intl": ProjEllipsoid("International 1924", 6378388.0, rf=297.0, epsg_code="7022"),
    "aust_SA": ProjEllipsoid("Australian National Spheroid", 6378160.0, rf=298.25, epsg_code="7003"),
    "airy": ProjEllipsoid("Airy 1830", 6377563.396, rf=299.3249646, epsg_code="7001"),
    "mod_airy": ProjEllipsoid("Airy Modified 1849", 6377340.189, b=6356034.446, epsg_code="7002"),
    "evrst30": ProjEllipsoid("Everest 1830 (1937 Adjustment)", 6377276.345, rf=300.8017, epsg_code="7015"),
    "helmert": ProjEllipsoid("Helmert 1906", 6378200.0, rf=298.3, epsg_code="7020"),
    "hough": ProjEllipsoid("Hough 1960", 6378270.0, rf=297.0, epsg_code="7053"),
    "sphere": ProjEllipsoid("Sphere", 6370997.0, epsg_code="7048"),
}


class ProjDatum(NamedTuple):
    name: str
    ellps: str
    epsg_code: str


PROJ_DATUMS: Dict[str, ProjDatum] = {
    "WGS84": ProjDatum("World Geodetic System 1984", "WGS84", "6326"),
    "NAD83": ProjDatum("North American Datum 1983", "GRS80", "6269"),
    "NAD27": ProjDatum("North American Datum 1927", "clrk66", "6267"),
}

PROJ_PRIME_MERIDIANS: Dict[str, float] = {
    "greenwich": 0.0,
    "lisbon": -9.131906111111112,
    "paris": 2.337229166666667,
    "bogota": -74.08091666666667,
    "madrid": -3.687938888888889,
    "rome": 12.45233333333333,
    "bern": 7.439583333333333,
    "jakarta": 106.8077194444444,
    "ferro": -17.66666666666667,
    "brussels": 4.367975,
    "stockholm": 18.05827777777778,
    "athens": 23.7163375,
    "oslo": 10.72291666666667,
}

PROJ_LINEAR_UNITS: Dict[str, Unit] = {
    "m": METRE,
    "km": KILOMETRE,
    "ft": FOOT,
    "us-ft": US_SURVEY_FOOT,
}

PROJ_ANGULAR_UNITS: Dict[str, Unit] = {
    "rad": RADIAN,
    "deg": DEGREE,
    "grad": GRAD,
}


def ellipsoid_from_table(key: str) -> Ellipsoid:
    """
    Build the ellipsoid a +ellps= name stands for.

    Raises:
        KeyError: If the name is not in the table
    """
    if key == "WGS84":
        return WGS84_ELLIPSOID
    entry = PROJ_ELLIPSOIDS[key]
    ids = (Identifier("EPSG", entry.epsg_code),) if entry.epsg_code else ()
    if entry.b is not None:
        return Ellipsoid(name=entry.name, identifiers=ids, semi_major_axis=entry.a, semi_minor_axis=entry.b)
    return Ellipsoid(name=entry.name, identifiers=ids, semi_major_axis=entry.a, inverse_flattening=entry.rf or 0.0)


def datum_from_table(key: str) -> GeodeticReferenceFrame:
    """
    Build the datum a +datum= name stands for.

    Raises:
        KeyError: If the name is not in the table
    """
    if key == "WGS84":
        return WGS84_DATUM
    entry = PROJ_DATUMS[key]
    return GeodeticReferenceFrame(
        name=entry.name,
        identifiers=(Identifier("EPSG", entry.epsg_code),),
        ellipsoid=ellipsoid_from_table(entry.ellps),
        prime_meridian=GREENWICH,
    )


def proj_ellipsoid_key(ellipsoid: Ellipsoid) -> Optional[str]:
    """
    Find the +ellps= name of an ellipsoid by its defining parameters.
    """
    a = METRE.from_si(ellipsoid.unit.to_si(ellipsoid.semi_major_axis))
    b = METRE.from_si(ellipsoid.unit.to_si(ellipsoid.computed_semi_minor_axis))
    for key, entry in PROJ_ELLIPSOIDS.items():
        if not is_close(a, entry.a, 1e-12):
            continue
        if entry.rf is None and entry.b is None:
            if ellipsoid.is_sphere:
                return key
            continue
        if entry.b is not None:
            if math.isclose(b, entry.b, abs_tol=1e-4):
                return key
        elif is_close(ellipsoid.computed_inverse_flattening, entry.rf, 1e-10):
            return key
    return None


def proj_datum_key(datum: object) -> Optional[str]:
    """
    Find the +datum= name of a datum by its EPSG code.
    """
    for key, entry in PROJ_DATUMS.items():
        if datum.has_identifier("EPSG", entry.epsg_code):
            return key
    return None


def proj_prime_meridian_key(longitude_degrees: float) -> Optional[str]:
    for key, value in PROJ_PRIME_MERIDIANS.items():
        if math.isclose(value, longitude_degrees, abs_tol=1e-8):
            return key
    return None


def proj_unit_key(unit: Unit) -> Optional[str]:
    for table in (PROJ_LINEAR_UNITS, PROJ_ANGULAR_UNITS):
        for key, known in table.items():
            if known.is_equivalent_to(unit):
                return key
    return None
