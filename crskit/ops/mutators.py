from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Optional, Union

from crskit.constructs.common import IdentifiedObject, Identifier
from crskit.constructs.crs import (
    CRS,
    BoundCRS,
    CompoundCRS,
    GeodeticCRS,
    GeographicCRS,
    ProjectedCRS,
)
from crskit.constructs.operation import Conversion
from crskit.utils.units import DEGREE, METRE, Unit, UnitType, make_unit

log = logging.getLogger(__name__)


def alter_name(obj: IdentifiedObject, name: str) -> IdentifiedObject:
    """
    Rename an object.

    A name ending with " (deprecated)" is stored without the suffix and marks the object
    as deprecated; any other name leaves it not deprecated.

    Examples:
        >>> renamed = alter_name(WGS84, "new name (deprecated)")
        >>> renamed.name, renamed.deprecated
        ('new name', True)
    """
    return replace(obj, name=name, deprecated=False)


def alter_id(obj: IdentifiedObject, authority: str, code: Any) -> IdentifiedObject:
    """
    Replace the identifiers of an object by a single (authority, code) pair.
    """
    return replace(obj, identifiers=(Identifier(authority, str(code)),))


def _rebind(bound: BoundCRS, base_crs: CRS) -> BoundCRS:
    source = base_crs.geodetic_crs or base_crs
    return replace(
        bound,
        base_crs=base_crs,
        transformation=replace(bound.transformation, source_crs=source),
    )


def alter_geodetic_crs(crs: CRS, new_geodetic_crs: GeodeticCRS) -> CRS:
    """
    Substitute the geodetic CRS a CRS is based on, keeping the rest of its structure.

    A geodetic CRS is replaced outright; projected CRS get a new base CRS; compound CRS
    and bound CRS are altered through their horizontal component and base CRS. The name,
    identifiers and deprecated flag of the altered CRS are kept.

    Args:
        crs: The CRS to alter
        new_geodetic_crs: The geodetic CRS to substitute

    Returns:
        The altered CRS, or the CRS itself when it has no geodetic CRS
    """
    if isinstance(crs, GeodeticCRS):
        return new_geodetic_crs
    if isinstance(crs, ProjectedCRS):
        return replace(crs, base_crs=new_geodetic_crs)
    if isinstance(crs, CompoundCRS):
        horizontal = alter_geodetic_crs(crs.components[0], new_geodetic_crs)
        return replace(crs, components=(horizontal,) + crs.components[1:])
    if isinstance(crs, BoundCRS):
        return _rebind(crs, alter_geodetic_crs(crs.base_crs, new_geodetic_crs))
    log.debug(f"{crs.name} has no geodetic CRS to alter")
    return crs


def alter_cs_angular_unit(
    crs: CRS, unit: Union[Unit, str], conversion_factor: Optional[float] = None
) -> CRS:
    """
    Change the unit of the angular axes of a geographic CRS.

    Projected, compound and bound CRS are altered through their geographic CRS. Stored
    axis units change; no coordinate value is rescaled.

    Args:
        crs: The CRS to alter
        unit: The new unit, or its name
        conversion_factor: The number of radians per unit, when `unit` is a name

    Returns:
        The altered CRS

    Raises:
        TypeError: If the CRS has no geographic CRS
    """
    new_unit = _unit(unit, conversion_factor, UnitType.ANGULAR, DEGREE)
    if isinstance(crs, GeographicCRS):
        return replace(crs, coordinate_system=crs.coordinate_system.with_unit(new_unit))
    if isinstance(crs, ProjectedCRS):
        return replace(crs, base_crs=alter_cs_angular_unit(crs.base_crs, new_unit))
    if isinstance(crs, CompoundCRS):
        horizontal = alter_cs_angular_unit(crs.components[0], new_unit)
        return replace(crs, components=(horizontal,) + crs.components[1:])
    if isinstance(crs, BoundCRS):
        return _rebind(crs, alter_cs_angular_unit(crs.base_crs, new_unit))
    raise TypeError(f"{crs.name} has no angular coordinate system axes")


def alter_cs_linear_unit(
    crs: CRS, unit: Union[Unit, str], conversion_factor: Optional[float] = None
) -> CRS:
    """
    Change the unit of the linear axes of a CRS: projected, geocentric, vertical and
    engineering axes, and the height axis of geographic 3D CRS. Compound CRS are altered
    component by component and bound CRS through their base CRS.

    Args:
        crs: The CRS to alter
        unit: The new unit, or its name
        conversion_factor: The number of metres per unit, when `unit` is a name

    Returns:
        The altered CRS

    Raises:
        TypeError: If the CRS has no coordinate system
    """
    new_unit = _unit(unit, conversion_factor, UnitType.LINEAR, METRE)
    if isinstance(crs, CompoundCRS):
        components = tuple(
            alter_cs_linear_unit(c, new_unit) if c.coordinate_system is not None or isinstance(c, BoundCRS) else c
            for c in crs.components
        )
        return replace(crs, components=components)
    if isinstance(crs, BoundCRS):
        return _rebind(crs, alter_cs_linear_unit(crs.base_crs, new_unit))
    if crs.coordinate_system is None:
        raise TypeError(f"{crs.name} has no coordinate system")
    return replace(crs, coordinate_system=crs.coordinate_system.with_unit(new_unit))


def alter_parameters_linear_unit(
    crs: CRS,
    unit: Union[Unit, str],
    conversion_factor: Optional[float] = None,
    convert_to_new_unit: bool = True,
) -> CRS:
    """
    Change the unit of the linear parameters (false easting, false northing, ...) of the
    projection of a projected CRS.

    Args:
        crs: A projected CRS, or a compound or bound CRS based on one
        unit: The new unit, or its name
        conversion_factor: The number of metres per unit, when `unit` is a name
        convert_to_new_unit: Whether to rescale the values so that they keep their
            length; otherwise the numbers are kept and only the unit changes

    Returns:
        The altered CRS

    Raises:
        TypeError: If the CRS is not based on a projected CRS

    Examples:
        >>> altered = alter_parameters_linear_unit(utm31, "my unit", 2, True)
        >>> altered.conversion.parameter_value("8806")
        250000.0
    """
    new_unit = _unit(unit, conversion_factor, UnitType.LINEAR, METRE)
    if isinstance(crs, ProjectedCRS):
        params = []
        for p in crs.conversion.parameters:
            if p.value is None or p.unit.unit_type != UnitType.LINEAR:
                params.append(p)
            elif convert_to_new_unit:
                params.append(replace(p, value=p.value_in(new_unit), unit=new_unit))
            else:
                params.append(replace(p, unit=new_unit))
        return replace(crs, conversion=replace(crs.conversion, parameters=tuple(params)))
    if isinstance(crs, CompoundCRS):
        horizontal = alter_parameters_linear_unit(crs.components[0], new_unit, None, convert_to_new_unit)
        return replace(crs, components=(horizontal,) + crs.components[1:])
    if isinstance(crs, BoundCRS):
        altered = alter_parameters_linear_unit(crs.base_crs, new_unit, None, convert_to_new_unit)
        return replace(crs, base_crs=altered)
    raise TypeError(f"{crs.name} is not a projected CRS")


def convert_conversion_to_other_method(
    conversion: Conversion,
    new_method_code: Optional[Any] = None,
    new_method_name: Optional[str] = None,
) -> Conversion:
    """
    Re-express a conversion with an equivalent method, e.g. Mercator (variant A) as
    Mercator (variant B). The conversion must be bound to its source CRS, as given by
    `ProjectedCRS.deriving_conversion`, since the re-expression depends on the ellipsoid.

    Args:
        conversion: The conversion to re-express
        new_method_code: The EPSG code of the target method
        new_method_name: The EPSG name of the target method, used when no code is given

    Returns:
        A conversion equivalent (but not strictly equal) to the input one, or the input
        itself when it already uses the target method

    Raises:
        TypeError: If the object is not a conversion
        ValueError: If neither code nor name is given or the re-expression is not supported
    """
    if not isinstance(conversion, Conversion):
        raise TypeError(f"{type(conversion).__name__} is not a conversion")
    code = str(new_method_code) if new_method_code else None
    return conversion.convert_to_other_method(new_method_code=code, new_method_name=new_method_name)


def _unit(
    unit: Union[Unit, str], conversion_factor: Optional[float], unit_type: UnitType, default: Unit
) -> Unit:
    if isinstance(unit, Unit):
        return unit
    return make_unit(unit, conversion_factor, unit_type, default)
