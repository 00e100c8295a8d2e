from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional, Sequence, Tuple, Union

from crskit.constructs.common import Identifier, ObjectUsage, names_match, normalise_name
from crskit.constructs.cs import CoordinateSystem, CSKind, ellipsoidal_2d_lat_lon
from crskit.constructs.datum import (
    DatumEnsemble,
    DynamicGeodeticReferenceFrame,
    DynamicVerticalReferenceFrame,
    Ellipsoid,
    EngineeringDatum,
    GeodeticReferenceFrame,
    PrimeMeridian,
    TemporalDatum,
    VerticalReferenceFrame,
    WGS84_DATUM,
)
from crskit.constructs.operation import (
    ConcatenatedOperation,
    Conversion,
    Transformation,
    make_method,
    make_parameter,
)
from crskit.utils import method_mappings as mm
from crskit.utils.units import ARC_SECOND, METRE, PARTS_PER_MILLION


class ObjectType(Enum):
    """
    The variant of a model object, as reported by `object_type`.
    """

    ELLIPSOID = "ellipsoid"
    PRIME_MERIDIAN = "prime meridian"
    GEODETIC_REFERENCE_FRAME = "geodetic reference frame"
    DYNAMIC_GEODETIC_REFERENCE_FRAME = "dynamic geodetic reference frame"
    VERTICAL_REFERENCE_FRAME = "vertical reference frame"
    DYNAMIC_VERTICAL_REFERENCE_FRAME = "dynamic vertical reference frame"
    DATUM_ENSEMBLE = "datum ensemble"
    GEOGRAPHIC_2D_CRS = "geographic 2D CRS"
    GEOGRAPHIC_3D_CRS = "geographic 3D CRS"
    GEOCENTRIC_CRS = "geocentric CRS"
    PROJECTED_CRS = "projected CRS"
    VERTICAL_CRS = "vertical CRS"
    COMPOUND_CRS = "compound CRS"
    BOUND_CRS = "bound CRS"
    TEMPORAL_CRS = "temporal CRS"
    ENGINEERING_CRS = "engineering CRS"
    OTHER_CRS = "other CRS"
    CONVERSION = "conversion"
    TRANSFORMATION = "transformation"
    CONCATENATED_OPERATION = "concatenated operation"
    UNKNOWN = "unknown"


def _opt_equivalent(a: Any, b: Any) -> bool:
    if a is None or b is None:
        return a is b
    return a.is_equivalent_to(b)


@dataclass(frozen=True, kw_only=True)
class CRS(ObjectUsage):
    """
    Base of every coordinate reference system variant.

    Attributes:
        coordinate_system: The coordinate system, or None for CRS made of other CRS
            (compound, bound) or without one (some engineering CRS)
        datum: The datum or datum ensemble of single CRS, None otherwise
    """

    coordinate_system: Optional[CoordinateSystem] = None
    datum: Optional[Any] = None

    @property
    def geodetic_crs(self) -> Optional[GeodeticCRS]:
        """
        The geodetic CRS underlying this CRS, if any.
        """
        return None

    @property
    def horizontal_datum(self) -> Optional[Union[GeodeticReferenceFrame, DatumEnsemble]]:
        geodetic = self.geodetic_crs
        return geodetic.datum if geodetic is not None else None

    @property
    def axis_count(self) -> int:
        if self.coordinate_system is None:
            return -1
        return self.coordinate_system.axis_count

    def _equivalent(self, other: CRS) -> bool:
        return _opt_equivalent(self.datum, other.datum) and _opt_equivalent(
            self.coordinate_system, other.coordinate_system
        )


@dataclass(frozen=True, kw_only=True)
class GeodeticCRS(CRS):
    """
    A CRS anchored to a geodetic datum. Instances of this class with a Cartesian
    coordinate system are geocentric CRS; geographic CRS use `GeographicCRS`.
    """

    def __post_init__(self):
        super().__post_init__()
        if not isinstance(self.datum, (GeodeticReferenceFrame, DatumEnsemble)):
            raise TypeError(f"geodetic CRS {self.name} needs a geodetic datum")
        if isinstance(self.datum, DatumEnsemble) and not self.datum.is_geodetic:
            raise TypeError(f"geodetic CRS {self.name} needs a geodetic datum ensemble")
        if self.coordinate_system is None:
            raise ValueError(f"geodetic CRS {self.name} needs a coordinate system")
        if self.coordinate_system.kind not in (CSKind.CARTESIAN, CSKind.SPHERICAL, CSKind.ELLIPSOIDAL):
            raise TypeError(
                f"geodetic CRS {self.name} cannot use a {self.coordinate_system.kind.value} coordinate system"
            )

    @property
    def geodetic_crs(self) -> GeodeticCRS:
        return self

    @property
    def ellipsoid(self) -> Ellipsoid:
        return self.datum.ellipsoid

    @property
    def prime_meridian(self) -> PrimeMeridian:
        return self.datum.prime_meridian

    @property
    def is_geocentric(self) -> bool:
        return self.coordinate_system.kind == CSKind.CARTESIAN


@dataclass(frozen=True, kw_only=True)
class GeographicCRS(GeodeticCRS):
    def __post_init__(self):
        super().__post_init__()
        if self.coordinate_system.kind != CSKind.ELLIPSOIDAL:
            raise TypeError(f"geographic CRS {self.name} needs an ellipsoidal coordinate system")
        if self.coordinate_system.axis_count not in (2, 3):
            raise ValueError(f"geographic CRS {self.name} needs 2 or 3 axes")

    @property
    def is_3d(self) -> bool:
        return self.coordinate_system.axis_count == 3


@dataclass(frozen=True, kw_only=True)
class ProjectedCRS(CRS):
    """
    A CRS derived from a geodetic CRS by a map projection.

    The stored conversion is not bound to CRS; `deriving_conversion` gives the bound form.
    The datum is that of the base CRS.

    Attributes:
        base_crs: The geodetic CRS the projection applies to
        conversion: The projection
    """

    base_crs: GeodeticCRS
    conversion: Conversion

    def __post_init__(self):
        super().__post_init__()
        if not isinstance(self.base_crs, GeodeticCRS):
            raise TypeError(f"projected CRS {self.name} needs a geodetic base CRS")
        if self.coordinate_system is None or self.coordinate_system.kind != CSKind.CARTESIAN:
            raise TypeError(f"projected CRS {self.name} needs a Cartesian coordinate system")
        if self.conversion.source_crs is not None or self.conversion.target_crs is not None:
            object.__setattr__(
                self, "conversion", replace(self.conversion, source_crs=None, target_crs=None)
            )
        object.__setattr__(self, "datum", self.base_crs.datum)

    @property
    def geodetic_crs(self) -> GeodeticCRS:
        return self.base_crs.geodetic_crs

    @property
    def deriving_conversion(self) -> Conversion:
        return replace(self.conversion, source_crs=self.base_crs, target_crs=self)

    def _equivalent(self, other: ProjectedCRS) -> bool:
        return (
            self.base_crs.is_equivalent_to(other.base_crs)
            and self.deriving_conversion.is_equivalent_to(other.deriving_conversion)
            and self.coordinate_system.is_equivalent_to(other.coordinate_system)
        )


@dataclass(frozen=True, kw_only=True)
class VerticalCRS(CRS):
    def __post_init__(self):
        super().__post_init__()
        if not isinstance(self.datum, (VerticalReferenceFrame, DatumEnsemble)):
            raise TypeError(f"vertical CRS {self.name} needs a vertical datum")
        if self.coordinate_system is None or self.coordinate_system.kind != CSKind.VERTICAL:
            raise TypeError(f"vertical CRS {self.name} needs a vertical coordinate system")


@dataclass(frozen=True, kw_only=True)
class CompoundCRS(CRS):
    """
    A CRS made of an ordered list of CRS, conventionally horizontal then vertical.

    Attributes:
        components: The component CRS, in coordinate tuple order
    """

    components: Tuple[CRS, ...]

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(self, "components", tuple(self.components))
        if len(self.components) < 2:
            raise ValueError(f"compound CRS {self.name} needs at least two components")
        for c in self.components:
            if isinstance(c, CompoundCRS):
                raise TypeError(f"compound CRS {self.name} cannot nest compound CRS {c.name}")
            if not isinstance(c, CRS):
                raise TypeError(f"compound CRS {self.name} has a component that is not a CRS")

    def sub_crs(self, index: int) -> Optional[CRS]:
        if 0 <= index < len(self.components):
            return self.components[index]
        return None

    @property
    def geodetic_crs(self) -> Optional[GeodeticCRS]:
        return self.components[0].geodetic_crs

    @property
    def axis_count(self) -> int:
        return sum(c.axis_count for c in self.components)

    @property
    def horizontal_crs(self) -> CRS:
        return self.components[0]

    @property
    def vertical_crs(self) -> Optional[CRS]:
        for c in self.components[1:]:
            base = c.base_crs if isinstance(c, BoundCRS) else c
            if isinstance(base, VerticalCRS):
                return c
        return None

    def _equivalent(self, other: CompoundCRS) -> bool:
        if len(self.components) != len(other.components):
            return False
        return all(a.is_equivalent_to(b) for a, b in zip(self.components, other.components))


@dataclass(frozen=True, kw_only=True)
class BoundCRS(CRS):
    """
    A CRS carrying the transformation from itself to a hub CRS, usually WGS 84.

    Attributes:
        base_crs: The CRS being bound
        hub_crs: The CRS the transformation leads to
        transformation: The transformation from the base CRS to the hub CRS
    """

    base_crs: CRS
    hub_crs: CRS
    transformation: Transformation

    def __post_init__(self):
        super().__post_init__()
        if isinstance(self.base_crs, BoundCRS):
            raise TypeError(f"bound CRS {self.name} cannot bind another bound CRS")

    @property
    def geodetic_crs(self) -> Optional[GeodeticCRS]:
        return self.base_crs.geodetic_crs

    @property
    def axis_count(self) -> int:
        return self.base_crs.axis_count

    def _equivalent(self, other: BoundCRS) -> bool:
        return (
            self.base_crs.is_equivalent_to(other.base_crs)
            and self.hub_crs.is_equivalent_to(other.hub_crs)
            and self.transformation.is_equivalent_to(other.transformation)
        )


@dataclass(frozen=True, kw_only=True)
class TemporalCRS(CRS):
    def __post_init__(self):
        super().__post_init__()
        if not isinstance(self.datum, TemporalDatum):
            raise TypeError(f"temporal CRS {self.name} needs a temporal datum")


@dataclass(frozen=True, kw_only=True)
class EngineeringCRS(CRS):
    """
    A local CRS. Both datum and coordinate system may be absent, in which case the CRS
    is only a name.
    """

    def __post_init__(self):
        super().__post_init__()
        if self.datum is not None and not isinstance(self.datum, EngineeringDatum):
            raise TypeError(f"engineering CRS {self.name} needs an engineering datum")

    def _equivalent(self, other: EngineeringCRS) -> bool:
        if self.datum is None and self.coordinate_system is None:
            return names_match(self.name, other.name)
        return super()._equivalent(other)


@dataclass(frozen=True, kw_only=True)
class OtherCRS(CRS):
    """
    A CRS construct the model does not support, kept as its source text so that it can
    be written back unchanged.

    Attributes:
        text: The text the CRS was parsed from
    """

    text: str

    def _equivalent(self, other: OtherCRS) -> bool:
        return self.text == other.text


def is_crs(obj: Any) -> bool:
    return isinstance(obj, CRS)


def object_type(obj: Any) -> ObjectType:
    """
    Report the variant of a model object.

    Args:
        obj: Any object

    Returns:
        The object variant; UNKNOWN for anything that is not a model object
    """
    if isinstance(obj, GeographicCRS):
        return ObjectType.GEOGRAPHIC_3D_CRS if obj.is_3d else ObjectType.GEOGRAPHIC_2D_CRS
    simple = (
        (GeodeticCRS, ObjectType.GEOCENTRIC_CRS),
        (ProjectedCRS, ObjectType.PROJECTED_CRS),
        (VerticalCRS, ObjectType.VERTICAL_CRS),
        (CompoundCRS, ObjectType.COMPOUND_CRS),
        (BoundCRS, ObjectType.BOUND_CRS),
        (TemporalCRS, ObjectType.TEMPORAL_CRS),
        (EngineeringCRS, ObjectType.ENGINEERING_CRS),
        (OtherCRS, ObjectType.OTHER_CRS),
        (Ellipsoid, ObjectType.ELLIPSOID),
        (PrimeMeridian, ObjectType.PRIME_MERIDIAN),
        (DynamicGeodeticReferenceFrame, ObjectType.DYNAMIC_GEODETIC_REFERENCE_FRAME),
        (GeodeticReferenceFrame, ObjectType.GEODETIC_REFERENCE_FRAME),
        (DynamicVerticalReferenceFrame, ObjectType.DYNAMIC_VERTICAL_REFERENCE_FRAME),
        (VerticalReferenceFrame, ObjectType.VERTICAL_REFERENCE_FRAME),
        (DatumEnsemble, ObjectType.DATUM_ENSEMBLE),
        (Conversion, ObjectType.CONVERSION),
        (Transformation, ObjectType.TRANSFORMATION),
        (ConcatenatedOperation, ObjectType.CONCATENATED_OPERATION),
    )
    for cls, kind in simple:
        if isinstance(obj, cls):
            return kind
    return ObjectType.UNKNOWN


WGS84 = GeographicCRS(
    name="WGS 84",
    identifiers=(Identifier("EPSG", "4326"),),
    datum=WGS84_DATUM,
    coordinate_system=ellipsoidal_2d_lat_lon(),
)

WGS84_NAMES = {"wgs84", "wgs1984", "worldgeodeticsystem1984"}


def is_wgs84(crs: Any) -> bool:
    """
    Whether a CRS is a WGS 84 geographic or geocentric CRS, by identifier or by datum name.
    """
    if not isinstance(crs, GeodeticCRS):
        return False
    if any(crs.has_identifier("EPSG", c) for c in ("4326", "4979", "4978")):
        return True
    return normalise_name(crs.datum.name) in WGS84_NAMES


def towgs84_transformation(source_crs: CRS, values: Sequence[float]) -> Transformation:
    """
    Build the transformation described by TOWGS84 values: three translations in metres,
    optionally followed by three rotations in arc-seconds and a scale difference in parts
    per million (position vector convention).

    Values whose rotations and scale are all zero give a geocentric translations
    transformation, other values a position vector transformation.

    Raises:
        ValueError: If the number of values is neither 3 nor 7
    """
    values = [float(v) for v in values]
    if len(values) not in (3, 7):
        raise ValueError(f"TOWGS84 needs 3 or 7 values, got {len(values)}")
    if len(values) == 3 or all(v == 0 for v in values[3:]):
        mapping = mm.method_by_code(mm.GEOCENTRIC_TRANSLATIONS)
        values = values[:3]
    else:
        mapping = mm.method_by_code(mm.POSITION_VECTOR)
    units = (METRE, METRE, METRE, ARC_SECOND, ARC_SECOND, ARC_SECOND, PARTS_PER_MILLION)
    return Transformation(
        name=f"Transformation from {source_crs.name} to WGS84",
        method=make_method(mapping),
        parameters=tuple(make_parameter(pm, v, u) for pm, v, u in zip(mapping.params, values, units)),
        source_crs=source_crs,
        target_crs=WGS84,
    )


def bound_crs_to_wgs84(base_crs: CRS, values: Sequence[float]) -> BoundCRS:
    source = base_crs.geodetic_crs or base_crs
    return BoundCRS(
        name=base_crs.name,
        base_crs=base_crs,
        hub_crs=WGS84,
        transformation=towgs84_transformation(source, values),
    )
