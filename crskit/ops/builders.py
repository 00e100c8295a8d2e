"""Builders assembling CRS, coordinate systems and conversions from plain values.

Names spelled the WKT1 way ("WGS_1984", "North_American_Datum_1983", ...) are turned
into registered names when a registry is given, and units spelled the way dialects
spell them ("Degree", "Metre", ...) are replaced by catalogue units.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, NamedTuple, Optional, Sequence

from crskit.codecs.wkt.names import canonical_name
from crskit.constructs.common import Identifier, normalise_name
from crskit.constructs.crs import (
    CRS,
    WGS84_NAMES,
    CompoundCRS,
    EngineeringCRS,
    GeodeticCRS,
    GeographicCRS,
    ProjectedCRS,
    VerticalCRS,
)
from crskit.constructs.cs import (
    CoordinateSystem,
    cartesian_easting_northing,
    cartesian_northing_easting,
    ellipsoidal_2d_lat_lon,
    ellipsoidal_2d_lon_lat,
    ellipsoidal_3d_lat_lon_height,
    ellipsoidal_3d_lon_lat_height,
    geocentric_xyz,
    vertical_gravity_up,
)
from crskit.constructs.datum import (
    WGS84_DATUM,
    Ellipsoid,
    GeodeticReferenceFrame,
    PrimeMeridian,
    VerticalReferenceFrame,
)
from crskit.constructs.operation import Conversion, OperationMethod, Parameter
from crskit.registry.registry_interface import RegistryInterface
from crskit.utils import method_mappings as mm
from crskit.utils.units import DEGREE, METRE, SECOND, UNITY, UnitType, make_unit

log = logging.getLogger(__name__)

_DEFAULT_UNITS = {
    UnitType.ANGULAR: DEGREE,
    UnitType.LINEAR: METRE,
    UnitType.SCALE: UNITY,
    UnitType.TIME: SECOND,
}


class Ellipsoidal2DCSType(Enum):
    LONGITUDE_LATITUDE = "longitude latitude"
    LATITUDE_LONGITUDE = "latitude longitude"


class Ellipsoidal3DCSType(Enum):
    LONGITUDE_LATITUDE_HEIGHT = "longitude latitude height"
    LATITUDE_LONGITUDE_HEIGHT = "latitude longitude height"


class Cartesian2DCSType(Enum):
    EASTING_NORTHING = "easting northing"
    NORTHING_EASTING = "northing easting"


class ParameterDescription(NamedTuple):
    """
    The description of one conversion parameter.

    Attributes:
        name: The parameter name
        value: The numeric value, or a string for file parameters
        unit_name: The unit name; None selects the default unit of the unit type
        unit_conv_factor: The factor of the unit to its SI (or radian, unity) reference
        unit_type: What the unit measures
        authority: The authority of the parameter identifier
        code: The code of the parameter identifier
    """

    name: str
    value: Any
    unit_name: Optional[str] = None
    unit_conv_factor: float = 0.0
    unit_type: UnitType = UnitType.SCALE
    authority: Optional[str] = None
    code: Optional[str] = None


def create_ellipsoidal_2d_cs(
    cs_type: Ellipsoidal2DCSType,
    unit_name: Optional[str] = None,
    unit_conv_factor: float = 0.0,
) -> CoordinateSystem:
    unit = make_unit(unit_name, unit_conv_factor, UnitType.ANGULAR, DEGREE)
    if cs_type == Ellipsoidal2DCSType.LATITUDE_LONGITUDE:
        return ellipsoidal_2d_lat_lon(unit)
    return ellipsoidal_2d_lon_lat(unit)


def create_ellipsoidal_3d_cs(
    cs_type: Ellipsoidal3DCSType,
    horizontal_unit_name: Optional[str] = None,
    horizontal_unit_conv_factor: float = 0.0,
    vertical_unit_name: Optional[str] = None,
    vertical_unit_conv_factor: float = 0.0,
) -> CoordinateSystem:
    angular = make_unit(horizontal_unit_name, horizontal_unit_conv_factor, UnitType.ANGULAR, DEGREE)
    linear = make_unit(vertical_unit_name, vertical_unit_conv_factor, UnitType.LINEAR, METRE)
    if cs_type == Ellipsoidal3DCSType.LATITUDE_LONGITUDE_HEIGHT:
        return ellipsoidal_3d_lat_lon_height(angular, linear)
    return ellipsoidal_3d_lon_lat_height(angular, linear)


def create_cartesian_2d_cs(
    cs_type: Cartesian2DCSType,
    unit_name: Optional[str] = None,
    unit_conv_factor: float = 0.0,
) -> CoordinateSystem:
    unit = make_unit(unit_name, unit_conv_factor, UnitType.LINEAR, METRE)
    if cs_type == Cartesian2DCSType.NORTHING_EASTING:
        return cartesian_northing_easting(unit)
    return cartesian_easting_northing(unit)


def _datum_name(name: Optional[str], registry: Optional[RegistryInterface]) -> str:
    if not name:
        return "unknown"
    if normalise_name(name) in WGS84_NAMES:
        return WGS84_DATUM.name
    return canonical_name(name, "geodetic_datum", registry)


def create_geodetic_datum(
    datum_name: Optional[str],
    ellipsoid_name: Optional[str],
    semi_major_metre: float,
    inv_flattening: float,
    prime_meridian_name: Optional[str] = None,
    prime_meridian_offset: float = 0.0,
    pm_angular_unit_name: Optional[str] = None,
    pm_angular_unit_conv_factor: float = 0.0,
    registry: Optional[RegistryInterface] = None,
) -> GeodeticReferenceFrame:
    """
    Build a geodetic reference frame from the values of a WKT1 DATUM clause.

    An inverse flattening of 0 gives a sphere.
    """
    ellipsoid = Ellipsoid(
        name=canonical_name(ellipsoid_name, "ellipsoid", registry) if ellipsoid_name else "unknown",
        semi_major_axis=float(semi_major_metre),
        inverse_flattening=float(inv_flattening),
    )
    prime_meridian = PrimeMeridian(
        name=prime_meridian_name or "unknown",
        longitude=float(prime_meridian_offset),
        unit=make_unit(pm_angular_unit_name, pm_angular_unit_conv_factor, UnitType.ANGULAR, DEGREE),
    )
    return GeodeticReferenceFrame(
        name=_datum_name(datum_name, registry),
        ellipsoid=ellipsoid,
        prime_meridian=prime_meridian,
    )


def create_geographic_crs(
    crs_name: Optional[str],
    datum_name: Optional[str],
    ellipsoid_name: Optional[str],
    semi_major_metre: float,
    inv_flattening: float,
    prime_meridian_name: Optional[str],
    prime_meridian_offset: float,
    pm_angular_unit_name: Optional[str],
    pm_angular_unit_conv_factor: float,
    ellipsoidal_cs: CoordinateSystem,
    registry: Optional[RegistryInterface] = None,
) -> GeographicCRS:
    """
    Build a geographic CRS from its datum values.

    Args:
        crs_name: The CRS name; a " (deprecated)" suffix marks the CRS as deprecated
        datum_name: The datum name, possibly in its WKT1 spelling
        ellipsoid_name: The ellipsoid name
        semi_major_metre: The semi-major axis, in metres
        inv_flattening: The inverse flattening, 0 for a sphere
        prime_meridian_name: The prime meridian name
        prime_meridian_offset: The prime meridian longitude
        pm_angular_unit_name: The unit of the prime meridian longitude, degree if None
        pm_angular_unit_conv_factor: The number of radians per prime meridian unit
        ellipsoidal_cs: The ellipsoidal coordinate system
        registry: The registry used to find registered datum and ellipsoid names

    Returns:
        The geographic CRS

    Examples:
        >>> cs = create_ellipsoidal_2d_cs(Ellipsoidal2DCSType.LATITUDE_LONGITUDE)
        >>> crs = create_geographic_crs("WGS 84", "WGS_1984", "WGS 84", 6378137, 298.257223563,
        ...                             "Greenwich", 0.0, "Degree", 0.0174532925199433, cs)
        >>> crs.datum.name
        'World Geodetic System 1984'
    """
    datum = create_geodetic_datum(
        datum_name,
        ellipsoid_name,
        semi_major_metre,
        inv_flattening,
        prime_meridian_name,
        prime_meridian_offset,
        pm_angular_unit_name,
        pm_angular_unit_conv_factor,
        registry,
    )
    return create_geographic_crs_from_datum(crs_name, datum, ellipsoidal_cs)


def create_geographic_crs_from_datum(
    crs_name: Optional[str], datum: GeodeticReferenceFrame, ellipsoidal_cs: CoordinateSystem
) -> GeographicCRS:
    return GeographicCRS(name=crs_name or "unknown", datum=datum, coordinate_system=ellipsoidal_cs)


def create_geocentric_crs(
    crs_name: Optional[str],
    datum_name: Optional[str],
    ellipsoid_name: Optional[str],
    semi_major_metre: float,
    inv_flattening: float,
    prime_meridian_name: Optional[str],
    prime_meridian_offset: float,
    angular_unit_name: Optional[str],
    angular_unit_conv_factor: float,
    linear_unit_name: Optional[str],
    linear_unit_conv_factor: float,
    registry: Optional[RegistryInterface] = None,
) -> GeodeticCRS:
    """
    Build a geocentric CRS from its datum values, with X, Y and Z axes in the linear unit.
    """
    datum = create_geodetic_datum(
        datum_name,
        ellipsoid_name,
        semi_major_metre,
        inv_flattening,
        prime_meridian_name,
        prime_meridian_offset,
        angular_unit_name,
        angular_unit_conv_factor,
        registry,
    )
    return create_geocentric_crs_from_datum(crs_name, datum, linear_unit_name, linear_unit_conv_factor)


def create_geocentric_crs_from_datum(
    crs_name: Optional[str],
    datum: GeodeticReferenceFrame,
    linear_unit_name: Optional[str] = None,
    linear_unit_conv_factor: float = 0.0,
) -> GeodeticCRS:
    unit = make_unit(linear_unit_name, linear_unit_conv_factor, UnitType.LINEAR, METRE)
    return GeodeticCRS(name=crs_name or "unknown", datum=datum, coordinate_system=geocentric_xyz(unit))


def create_projected_crs(
    crs_name: Optional[str],
    geodetic_crs: GeodeticCRS,
    conversion: Conversion,
    cartesian_cs: Optional[CoordinateSystem] = None,
) -> ProjectedCRS:
    """
    Build a projected CRS. The coordinate system defaults to easting, northing in metres.
    """
    if cartesian_cs is None:
        cartesian_cs = cartesian_easting_northing()
    return ProjectedCRS(
        name=crs_name or "unknown",
        base_crs=geodetic_crs,
        conversion=conversion,
        coordinate_system=cartesian_cs,
    )


def create_vertical_crs(
    crs_name: Optional[str],
    datum_name: Optional[str],
    linear_unit_name: Optional[str] = None,
    linear_unit_conv_factor: float = 0.0,
) -> VerticalCRS:
    unit = make_unit(linear_unit_name, linear_unit_conv_factor, UnitType.LINEAR, METRE)
    return VerticalCRS(
        name=crs_name or "unknown",
        datum=VerticalReferenceFrame(name=datum_name or "unknown"),
        coordinate_system=vertical_gravity_up(unit),
    )


def create_compound_crs(crs_name: Optional[str], horizontal_crs: CRS, vertical_crs: CRS) -> CompoundCRS:
    return CompoundCRS(name=crs_name or "unknown", components=(horizontal_crs, vertical_crs))


def create_engineering_crs(crs_name: Optional[str]) -> EngineeringCRS:
    """
    Build an engineering CRS made of a name only, written LOCAL_CS["name"] in WKT1.
    """
    return EngineeringCRS(name=crs_name or "unknown")


def _identifiers(authority: Optional[str], code: Optional[Any]):
    if authority and code is not None:
        return (Identifier(authority, str(code)),)
    return ()


def create_conversion(
    name: Optional[str],
    method_name: Optional[str],
    parameters: Sequence[ParameterDescription],
    authority: Optional[str] = None,
    code: Optional[str] = None,
    method_authority: Optional[str] = None,
    method_code: Optional[str] = None,
) -> Conversion:
    """
    Build a conversion from a method and parameter descriptions.

    When the method is identified by an EPSG code of the catalogue and no name is given,
    the catalogue name is used.

    Args:
        name: The conversion name
        method_name: The method name
        parameters: The parameter descriptions, in method order
        authority: The authority of the conversion identifier
        code: The code of the conversion identifier
        method_authority: The authority of the method identifier
        method_code: The code of the method identifier

    Returns:
        The conversion, not bound to CRS
    """
    if not method_name and method_authority == "EPSG":
        mapping = mm.method_by_code(method_code)
        if mapping is not None:
            method_name = mapping.name
    method = OperationMethod(
        name=method_name or "unknown",
        identifiers=_identifiers(method_authority, method_code),
    )
    params = []
    for desc in parameters:
        ids = _identifiers(desc.authority, desc.code)
        if isinstance(desc.value, str):
            params.append(Parameter(name=desc.name, identifiers=ids, string_value=desc.value))
            continue
        unit = make_unit(
            desc.unit_name,
            desc.unit_conv_factor,
            desc.unit_type,
            _DEFAULT_UNITS.get(desc.unit_type, UNITY),
        )
        params.append(Parameter(name=desc.name, identifiers=ids, value=float(desc.value), unit=unit))
    log.debug(f"built conversion {name} with {len(params)} parameters")
    return Conversion(
        name=name or "unknown",
        identifiers=_identifiers(authority, code),
        method=method,
        parameters=tuple(params),
    )
