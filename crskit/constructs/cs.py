from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, NamedTuple, Tuple

from crskit.constructs.common import IdentifiedObject, is_close
from crskit.utils.units import DEGREE, METRE, SECOND, Unit, UnitType


class CSKind(Enum):
    """
    The kind of a coordinate system.

    UNKNOWN is reported for objects that have no coordinate system.
    """

    ELLIPSOIDAL = "ellipsoidal"
    CARTESIAN = "Cartesian"
    VERTICAL = "vertical"
    SPHERICAL = "spherical"
    TEMPORAL = "temporal"
    UNKNOWN = "unknown"


class AxisInfo(NamedTuple):
    name: str
    abbreviation: str
    direction: str
    unit_conv_factor: float
    unit_name: str


@dataclass(frozen=True, kw_only=True)
class Axis(IdentifiedObject):
    abbreviation: str
    direction: str
    unit: Unit

    def _equivalent(self, other: Axis) -> bool:
        return self.direction.lower() == other.direction.lower() and (
            self.unit.is_equivalent_to(other.unit)
        )


@dataclass(frozen=True, kw_only=True)
class CoordinateSystem(IdentifiedObject):
    """
    A coordinate system: a kind and an ordered sequence of axes.

    Axis order is significant for strict comparison and for coordinate tuple layout.
    Equivalence ignores the order of interchangeable axes (e.g. latitude/longitude
    versus longitude/latitude).

    Attributes:
        kind: The coordinate system kind (ellipsoidal, Cartesian, vertical, ...)
        axes: The axes, in coordinate tuple order
    """

    kind: CSKind
    axes: Tuple[Axis, ...]

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(self, "axes", tuple(self.axes))

    @property
    def axis_count(self) -> int:
        return len(self.axes)

    def axis_info(self, index: int) -> AxisInfo:
        """
        Describe one axis of the coordinate system.

        Args:
            index: The axis position, starting at 0

        Returns:
            The axis name, abbreviation, direction, unit conversion factor and unit name

        Raises:
            IndexError: If the index is negative or beyond the last axis
        """
        if not 0 <= index < len(self.axes):
            raise IndexError(
                f"axis index {index} out of range for a {len(self.axes)} axis coordinate system"
            )
        axis = self.axes[index]
        return AxisInfo(
            axis.name,
            axis.abbreviation,
            axis.direction,
            axis.unit.conversion_factor,
            axis.unit.name,
        )

    @property
    def directions(self) -> Tuple[str, ...]:
        return tuple(a.direction.lower() for a in self.axes)

    def _axis_key(self):
        return sorted(
            (a.direction.lower(), a.unit.unit_type.value, a.unit.conversion_factor)
            for a in self.axes
        )

    def _equivalent(self, other: CoordinateSystem) -> bool:
        if self.kind != other.kind or len(self.axes) != len(other.axes):
            return False
        return all(
            d1 == d2 and t1 == t2 and is_close(f1, f2)
            for (d1, t1, f1), (d2, t2, f2) in zip(self._axis_key(), other._axis_key())
        )

    def same_axis_order(self, other: CoordinateSystem) -> bool:
        return self.directions == other.directions

    def with_unit(self, unit: Unit) -> CoordinateSystem:
        """
        Return a copy where every axis measured in the same unit type uses `unit`.
        """
        axes = tuple(
            replace(a, unit=unit) if a.unit.unit_type == unit.unit_type else a
            for a in self.axes
        )
        return replace(self, axes=axes)


def cs_type_of(obj: Any) -> CSKind:
    cs = getattr(obj, "coordinate_system", None)
    if isinstance(obj, CoordinateSystem):
        cs = obj
    return cs.kind if isinstance(cs, CoordinateSystem) else CSKind.UNKNOWN


def axis_count_of(obj: Any) -> int:
    cs = getattr(obj, "coordinate_system", None)
    if isinstance(obj, CoordinateSystem):
        cs = obj
    return cs.axis_count if isinstance(cs, CoordinateSystem) else -1


def latitude_axis(unit: Unit = DEGREE) -> Axis:
    return Axis(name="Geodetic latitude", abbreviation="Lat", direction="north", unit=unit)


def longitude_axis(unit: Unit = DEGREE) -> Axis:
    return Axis(name="Geodetic longitude", abbreviation="Lon", direction="east", unit=unit)


def ellipsoidal_height_axis(unit: Unit = METRE) -> Axis:
    return Axis(name="Ellipsoidal height", abbreviation="h", direction="up", unit=unit)


def ellipsoidal_2d_lat_lon(unit: Unit = DEGREE) -> CoordinateSystem:
    return CoordinateSystem(
        kind=CSKind.ELLIPSOIDAL, axes=(latitude_axis(unit), longitude_axis(unit))
    )


def ellipsoidal_2d_lon_lat(unit: Unit = DEGREE) -> CoordinateSystem:
    return CoordinateSystem(
        kind=CSKind.ELLIPSOIDAL, axes=(longitude_axis(unit), latitude_axis(unit))
    )


def ellipsoidal_3d_lat_lon_height(
    unit: Unit = DEGREE, height_unit: Unit = METRE
) -> CoordinateSystem:
    return CoordinateSystem(
        kind=CSKind.ELLIPSOIDAL,
        axes=(latitude_axis(unit), longitude_axis(unit), ellipsoidal_height_axis(height_unit)),
    )


def ellipsoidal_3d_lon_lat_height(
    unit: Unit = DEGREE, height_unit: Unit = METRE
) -> CoordinateSystem:
    return CoordinateSystem(
        kind=CSKind.ELLIPSOIDAL,
        axes=(longitude_axis(unit), latitude_axis(unit), ellipsoidal_height_axis(height_unit)),
    )


def cartesian_easting_northing(unit: Unit = METRE) -> CoordinateSystem:
    return CoordinateSystem(
        kind=CSKind.CARTESIAN,
        axes=(
            Axis(name="Easting", abbreviation="E", direction="east", unit=unit),
            Axis(name="Northing", abbreviation="N", direction="north", unit=unit),
        ),
    )


def cartesian_northing_easting(unit: Unit = METRE) -> CoordinateSystem:
    return CoordinateSystem(
        kind=CSKind.CARTESIAN,
        axes=(
            Axis(name="Northing", abbreviation="N", direction="north", unit=unit),
            Axis(name="Easting", abbreviation="E", direction="east", unit=unit),
        ),
    )


def geocentric_xyz(unit: Unit = METRE) -> CoordinateSystem:
    return CoordinateSystem(
        kind=CSKind.CARTESIAN,
        axes=(
            Axis(name="Geocentric X", abbreviation="X", direction="geocentricX", unit=unit),
            Axis(name="Geocentric Y", abbreviation="Y", direction="geocentricY", unit=unit),
            Axis(name="Geocentric Z", abbreviation="Z", direction="geocentricZ", unit=unit),
        ),
    )


def vertical_gravity_up(unit: Unit = METRE) -> CoordinateSystem:
    return CoordinateSystem(
        kind=CSKind.VERTICAL,
        axes=(
            Axis(name="Gravity-related height", abbreviation="H", direction="up", unit=unit),
        ),
    )


def temporal_time(unit: Unit = SECOND) -> CoordinateSystem:
    return CoordinateSystem(
        kind=CSKind.TEMPORAL,
        axes=(Axis(name="Time", abbreviation="T", direction="future", unit=unit),),
    )


def is_lat_lon_order(cs: CoordinateSystem) -> bool:
    return cs.kind == CSKind.ELLIPSOIDAL and cs.directions[:2] == ("north", "east")


def is_east_north_order(cs: CoordinateSystem) -> bool:
    return cs.directions[:2] == ("east", "north")


def angular_unit_of(cs: CoordinateSystem) -> Unit:
    for axis in cs.axes:
        if axis.unit.unit_type == UnitType.ANGULAR:
            return axis.unit
    return DEGREE


def linear_unit_of(cs: CoordinateSystem) -> Unit:
    for axis in cs.axes:
        if axis.unit.unit_type == UnitType.LINEAR:
            return axis.unit
    return METRE
