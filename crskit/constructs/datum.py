from __future__ import annotations

import math
from dataclasses import dataclass
from typing import NamedTuple, Optional, Tuple, Union

from crskit.constructs.common import (
    IdentifiedObject,
    Identifier,
    ObjectUsage,
    is_close,
    names_match,
)
from crskit.utils.units import DEGREE, METRE, Unit


class EllipsoidParameters(NamedTuple):
    semi_major: float
    semi_minor: float
    is_semi_minor_computed: bool
    inverse_flattening: float


class PrimeMeridianParameters(NamedTuple):
    longitude: float
    unit_conv_factor: float
    unit_name: str


@dataclass(frozen=True, kw_only=True)
class Ellipsoid(IdentifiedObject):
    """
    A reference ellipsoid, defined by its semi-major axis and either its inverse
    flattening or its semi-minor axis.

    Exactly one of inverse_flattening and semi_minor_axis must be given; the other is
    derived and reported as computed. An inverse flattening of 0 denotes a sphere.

    Attributes:
        semi_major_axis: The semi-major axis, in `unit`
        inverse_flattening: The inverse flattening, or None if the semi-minor axis is given
        semi_minor_axis: The semi-minor axis in `unit`, or None if the inverse flattening is given
        unit: The linear unit of the axes

    Examples:
        >>> wgs84 = Ellipsoid(name="WGS 84", semi_major_axis=6378137, inverse_flattening=298.257223563)
        >>> round(wgs84.computed_semi_minor_axis, 8)
        6356752.31424518
    """

    semi_major_axis: float
    inverse_flattening: Optional[float] = None
    semi_minor_axis: Optional[float] = None
    unit: Unit = METRE

    def __post_init__(self):
        super().__post_init__()
        if (self.inverse_flattening is None) == (self.semi_minor_axis is None):
            raise ValueError(
                f"ellipsoid {self.name} needs exactly one of inverse flattening and semi-minor axis"
            )
        if self.semi_major_axis <= 0:
            raise ValueError(
                f"ellipsoid {self.name} has a non positive semi-major axis {self.semi_major_axis}"
            )

    @property
    def is_sphere(self) -> bool:
        if self.inverse_flattening is not None:
            return self.inverse_flattening == 0
        return self.semi_minor_axis == self.semi_major_axis

    @property
    def is_semi_minor_computed(self) -> bool:
        return self.semi_minor_axis is None

    @property
    def computed_semi_minor_axis(self) -> float:
        if self.semi_minor_axis is not None:
            return self.semi_minor_axis
        if self.inverse_flattening == 0:
            return self.semi_major_axis
        return self.semi_major_axis * (1.0 - 1.0 / self.inverse_flattening)

    @property
    def computed_inverse_flattening(self) -> float:
        if self.inverse_flattening is not None:
            return self.inverse_flattening
        if self.semi_minor_axis == self.semi_major_axis:
            return 0.0
        return self.semi_major_axis / (self.semi_major_axis - self.semi_minor_axis)

    @property
    def squared_eccentricity(self) -> float:
        rf = self.computed_inverse_flattening
        if rf == 0:
            return 0.0
        f = 1.0 / rf
        return f * (2.0 - f)

    def parameters(self) -> EllipsoidParameters:
        return EllipsoidParameters(
            self.semi_major_axis,
            self.computed_semi_minor_axis,
            self.is_semi_minor_computed,
            self.computed_inverse_flattening,
        )

    def _equivalent(self, other: Ellipsoid) -> bool:
        return is_close(
            self.unit.to_si(self.semi_major_axis), other.unit.to_si(other.semi_major_axis)
        ) and is_close(
            self.unit.to_si(self.computed_semi_minor_axis),
            other.unit.to_si(other.computed_semi_minor_axis),
        )


@dataclass(frozen=True, kw_only=True)
class PrimeMeridian(IdentifiedObject):
    longitude: float = 0.0
    unit: Unit = DEGREE

    def parameters(self) -> PrimeMeridianParameters:
        return PrimeMeridianParameters(
            self.longitude, self.unit.conversion_factor, self.unit.name
        )

    @property
    def longitude_degrees(self) -> float:
        return math.degrees(self.unit.to_si(self.longitude))

    def _equivalent(self, other: PrimeMeridian) -> bool:
        return is_close(
            self.unit.to_si(self.longitude), other.unit.to_si(other.longitude)
        )


GREENWICH = PrimeMeridian(
    name="Greenwich", identifiers=(Identifier("EPSG", "8901"),), longitude=0.0
)

WGS84_ELLIPSOID = Ellipsoid(
    name="WGS 84",
    identifiers=(Identifier("EPSG", "7030"),),
    semi_major_axis=6378137.0,
    inverse_flattening=298.257223563,
)


@dataclass(frozen=True, kw_only=True)
class Datum(ObjectUsage):
    """
    Base of all datum variants. Datum names identify the datum, so equivalence
    compares them loosely on top of the defining parameters.
    """

    anchor: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class GeodeticReferenceFrame(Datum):
    ellipsoid: Ellipsoid
    prime_meridian: PrimeMeridian = GREENWICH

    def _equivalent(self, other: GeodeticReferenceFrame) -> bool:
        return (
            names_match(self.name, other.name)
            and self.ellipsoid.is_equivalent_to(other.ellipsoid)
            and self.prime_meridian.is_equivalent_to(other.prime_meridian)
        )


@dataclass(frozen=True, kw_only=True)
class DynamicGeodeticReferenceFrame(GeodeticReferenceFrame):
    frame_reference_epoch: float

    def _equivalent(self, other: DynamicGeodeticReferenceFrame) -> bool:
        return super()._equivalent(other) and is_close(
            self.frame_reference_epoch, other.frame_reference_epoch
        )


@dataclass(frozen=True, kw_only=True)
class VerticalReferenceFrame(Datum):
    def _equivalent(self, other: VerticalReferenceFrame) -> bool:
        return names_match(self.name, other.name)


@dataclass(frozen=True, kw_only=True)
class DynamicVerticalReferenceFrame(VerticalReferenceFrame):
    frame_reference_epoch: float

    def _equivalent(self, other: DynamicVerticalReferenceFrame) -> bool:
        return super()._equivalent(other) and is_close(
            self.frame_reference_epoch, other.frame_reference_epoch
        )


@dataclass(frozen=True, kw_only=True)
class DatumEnsemble(ObjectUsage):
    """
    An ordered collection of datums that are treated as one for low accuracy work.

    Attributes:
        members: The member datums, in declaration order
        accuracy: The positional accuracy of the ensemble, in metres
    """

    members: Tuple[Union[GeodeticReferenceFrame, VerticalReferenceFrame], ...]
    accuracy: float

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(self, "members", tuple(self.members))
        if len(self.members) == 0:
            raise ValueError(f"datum ensemble {self.name} has no member")
        kinds = {isinstance(m, GeodeticReferenceFrame) for m in self.members}
        if len(kinds) != 1:
            raise TypeError(
                f"datum ensemble {self.name} mixes geodetic and vertical members"
            )

    @property
    def is_geodetic(self) -> bool:
        return isinstance(self.members[0], GeodeticReferenceFrame)

    @property
    def ellipsoid(self) -> Optional[Ellipsoid]:
        return self.members[0].ellipsoid if self.is_geodetic else None

    @property
    def prime_meridian(self) -> Optional[PrimeMeridian]:
        return self.members[0].prime_meridian if self.is_geodetic else None

    def _equivalent(self, other: DatumEnsemble) -> bool:
        if len(self.members) != len(other.members):
            return False
        return all(
            names_match(a.name, b.name) for a, b in zip(self.members, other.members)
        ) and is_close(self.accuracy, other.accuracy)


@dataclass(frozen=True, kw_only=True)
class TemporalDatum(Datum):
    origin: str = ""
    calendar: str = "proleptic Gregorian"

    def _equivalent(self, other: TemporalDatum) -> bool:
        return self.origin == other.origin and self.calendar == other.calendar


@dataclass(frozen=True, kw_only=True)
class EngineeringDatum(Datum):
    pass


GeodeticDatum = Union[GeodeticReferenceFrame, DatumEnsemble]
VerticalDatum = Union[VerticalReferenceFrame, DatumEnsemble]

WGS84_DATUM = GeodeticReferenceFrame(
    name="World Geodetic System 1984",
    identifiers=(Identifier("EPSG", "6326"),),
    ellipsoid=WGS84_ELLIPSOID,
)
