from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from crskit.codecs.wkt.dialect import GuessedWKTDialect, guess_wkt_dialect
from crskit.codecs.wkt.names import canonical_name
from crskit.codecs.wkt.tokenizer import WKTNode, Word, tokenize
from crskit.constructs.area import AreaOfUse
from crskit.constructs.common import Identifier
from crskit.constructs.crs import (
    CRS,
    BoundCRS,
    CompoundCRS,
    EngineeringCRS,
    GeodeticCRS,
    GeographicCRS,
    OtherCRS,
    ProjectedCRS,
    TemporalCRS,
    VerticalCRS,
    bound_crs_to_wgs84,
)
from crskit.constructs.cs import (
    Axis,
    CoordinateSystem,
    CSKind,
    cartesian_easting_northing,
    ellipsoidal_2d_lat_lon,
    ellipsoidal_3d_lat_lon_height,
    geocentric_xyz,
    temporal_time,
    vertical_gravity_up,
)
from crskit.constructs.datum import (
    GREENWICH,
    DatumEnsemble,
    DynamicGeodeticReferenceFrame,
    DynamicVerticalReferenceFrame,
    Ellipsoid,
    EngineeringDatum,
    GeodeticReferenceFrame,
    PrimeMeridian,
    TemporalDatum,
    VerticalReferenceFrame,
)
from crskit.constructs.operation import (
    ConcatenatedOperation,
    Conversion,
    CoordinateOperation,
    OperationMethod,
    Parameter,
    Transformation,
    make_method,
    make_parameter,
)
from crskit.registry.registry_interface import RegistryInterface
from crskit.utils import method_mappings as mm
from crskit.utils.exceptions import WKTParseError
from crskit.utils.units import (
    DEGREE,
    METRE,
    SECOND,
    UNITY,
    Unit,
    UnitType,
    find_unit,
    normalise_unit,
)

log = logging.getLogger(__name__)

_UNIT_KEYWORDS: Dict[str, Optional[UnitType]] = {
    "UNIT": None,
    "ANGLEUNIT": UnitType.ANGULAR,
    "ANGULARUNIT": UnitType.ANGULAR,
    "LENGTHUNIT": UnitType.LINEAR,
    "SCALEUNIT": UnitType.SCALE,
    "TIMEUNIT": UnitType.TIME,
    "TEMPORALQUANTITY": UnitType.TIME,
    "PARAMETRICUNIT": UnitType.PARAMETRIC,
}
_ID_KEYWORDS = ("ID", "AUTHORITY")
_DATUM_KEYWORDS = ("DATUM", "GEODETICDATUM", "TRF")
_VDATUM_KEYWORDS = ("VDATUM", "VERTICALDATUM", "VRF", "VERT_DATUM")
_ELLIPSOID_KEYWORDS = ("ELLIPSOID", "SPHEROID")
_PRIMEM_KEYWORDS = ("PRIMEM", "PRIMEMERIDIAN")
_BASE_GEODETIC_KEYWORDS = ("BASEGEODCRS", "BASEGEOGCRS")
_OPERATION_KEYWORDS = ("CONVERSION", "COORDINATEOPERATION", "CONCATENATEDOPERATION")

# CRS constructs kept as text
UNSUPPORTED_CRS_KEYWORDS = {
    "FITTED_CS",
    "DERIVEDPROJCRS",
    "DERIVEDGEOGCRS",
    "DERIVEDGEODCRS",
    "DERIVEDVERTCRS",
    "DERIVEDENGCRS",
    "DERIVEDTIMECRS",
    "PARAMETRICCRS",
    "DERIVEDPARAMETRICCRS",
    "IMAGECRS",
}

_CS_KINDS = {
    "ellipsoidal": CSKind.ELLIPSOIDAL,
    "cartesian": CSKind.CARTESIAN,
    "vertical": CSKind.VERTICAL,
    "spherical": CSKind.SPHERICAL,
    "temporal": CSKind.TEMPORAL,
    "temporaldatetime": CSKind.TEMPORAL,
    "temporalcount": CSKind.TEMPORAL,
    "temporalmeasure": CSKind.TEMPORAL,
}

# axis names keyed by lower case spelling: (name, abbreviation)
_AXIS_NAMES = {
    "lat": ("Geodetic latitude", "Lat"),
    "latitude": ("Geodetic latitude", "Lat"),
    "geodetic latitude": ("Geodetic latitude", "Lat"),
    "lon": ("Geodetic longitude", "Lon"),
    "long": ("Geodetic longitude", "Lon"),
    "longitude": ("Geodetic longitude", "Lon"),
    "geodetic longitude": ("Geodetic longitude", "Lon"),
    "easting": ("Easting", "E"),
    "northing": ("Northing", "N"),
    "ellipsoidal height": ("Ellipsoidal height", "h"),
    "gravity-related height": ("Gravity-related height", "H"),
    "geocentric x": ("Geocentric X", "X"),
    "geocentric y": ("Geocentric Y", "Y"),
    "geocentric z": ("Geocentric Z", "Z"),
}

_DIRECTIONS = {
    "geocentricx": "geocentricX",
    "geocentricy": "geocentricY",
    "geocentricz": "geocentricZ",
}

_AXIS_NAME = re.compile(r"^\s*(.*?)\s*\(([^()]+)\)\s*$")


def _default_cs(kind: Optional[CSKind], dimension: Optional[int], unit: Unit) -> CoordinateSystem:
    """
    Build the conventional axes of a coordinate system declared only by its kind and
    dimension: latitude/longitude(/height), easting/northing, geocentric X/Y/Z, up or time.
    """
    if kind == CSKind.ELLIPSOIDAL and dimension in (None, 2):
        return ellipsoidal_2d_lat_lon(unit)
    if kind == CSKind.ELLIPSOIDAL and dimension == 3:
        return ellipsoidal_3d_lat_lon_height(unit)
    if kind == CSKind.CARTESIAN and dimension in (None, 2):
        return cartesian_easting_northing(unit)
    if kind == CSKind.CARTESIAN and dimension == 3:
        return geocentric_xyz(unit)
    if kind == CSKind.VERTICAL and dimension in (None, 1):
        return vertical_gravity_up(unit)
    if kind == CSKind.TEMPORAL and dimension in (None, 1):
        return temporal_time(unit)
    raise WKTParseError(f"cannot infer the axes of a {dimension} dimensional {kind} coordinate system")


def _guess_unit_type(param_name: str) -> UnitType:
    n = param_name.lower()
    if "easting" in n or "northing" in n or "translation" in n:
        return UnitType.LINEAR
    if "scale" in n:
        return UnitType.SCALE
    if any(w in n for w in ("latitude", "longitude", "meridian", "parallel", "azimuth", "angle", "rotation")):
        return UnitType.ANGULAR
    return UnitType.NONE


class WKTParser:
    """
    Builds model objects from WKT text in any supported dialect.

    The dialect is guessed from the text. WKT1 datum, ellipsoid and CRS names written with
    GDAL or ESRI spellings are turned back into registered names when a registry is given.
    A WKT1 TOWGS84 clause gives a BoundCRS to WGS 84. Unsupported CRS constructs are kept as
    an `OtherCRS` holding their text.

    Args:
        text: The WKT text
        registry: The registry used to canonicalise names, if any
    """

    def __init__(self, text: str, registry: Optional[RegistryInterface] = None):
        self.text = text
        self.registry = registry
        self.dialect = guess_wkt_dialect(text)
        self.esri = self.dialect == GuessedWKTDialect.WKT1_ESRI
        self._builders: Dict[str, Callable[[WKTNode], Any]] = {
            "GEODCRS": self._geodetic_crs,
            "GEODETICCRS": self._geodetic_crs,
            "GEOGCRS": self._geodetic_crs,
            "GEOGRAPHICCRS": self._geodetic_crs,
            "PROJCRS": self._projected_crs,
            "PROJECTEDCRS": self._projected_crs,
            "VERTCRS": self._vertical_crs,
            "VERTICALCRS": self._vertical_crs,
            "COMPOUNDCRS": self._compound_crs,
            "BOUNDCRS": self._bound_crs,
            "ENGCRS": self._engineering_crs,
            "ENGINEERINGCRS": self._engineering_crs,
            "TIMECRS": self._temporal_crs,
            "GEOGCS": self._wkt1_root,
            "GEOCCS": self._wkt1_root,
            "PROJCS": self._wkt1_root,
            "VERT_CS": self._wkt1_vert_cs,
            "VERTCS": self._wkt1_vert_cs,
            "COMPD_CS": self._compound_crs,
            "LOCAL_CS": self._wkt1_local_cs,
            "ELLIPSOID": self._ellipsoid,
            "SPHEROID": self._ellipsoid,
            "PRIMEM": lambda n: self._prime_meridian(n, DEGREE),
            "PRIMEMERIDIAN": lambda n: self._prime_meridian(n, DEGREE),
            "DATUM": lambda n: self._geodetic_datum(n, GREENWICH)[0],
            "GEODETICDATUM": lambda n: self._geodetic_datum(n, GREENWICH)[0],
            "TRF": lambda n: self._geodetic_datum(n, GREENWICH)[0],
            "VDATUM": self._vertical_datum,
            "VERTICALDATUM": self._vertical_datum,
            "VRF": self._vertical_datum,
            "ENSEMBLE": lambda n: self._ensemble(n, GREENWICH),
            "CONVERSION": self._conversion,
            "COORDINATEOPERATION": self._transformation,
            "CONCATENATEDOPERATION": self._concatenated_operation,
        }

    def parse(self) -> Any:
        """
        Parse the text.

        Returns:
            The model object described by the text

        Raises:
            WKTParseError: If the text is malformed, uses an unknown keyword, or describes an
                inconsistent object
        """
        root = tokenize(self.text)
        try:
            return self._object(root)
        except WKTParseError:
            raise
        except (ValueError, TypeError, IndexError) as e:
            raise WKTParseError(f"invalid {root.keyword} definition: {e}") from e

    def _object(self, node: WKTNode) -> Any:
        if node.keyword in UNSUPPORTED_CRS_KEYWORDS:
            return self._other_crs(node)
        builder = self._builders.get(node.keyword)
        if builder is None:
            raise WKTParseError(f"unsupported WKT keyword {node.keyword}")
        return builder(node)

    def _crs(self, node: WKTNode) -> CRS:
        obj = self._object(node)
        if not isinstance(obj, CRS):
            raise WKTParseError(f"{node.keyword} does not describe a CRS")
        return obj

    def _other_crs(self, node: WKTNode) -> OtherCRS:
        log.debug(f"keeping unsupported {node.keyword} as text")
        return OtherCRS(name=node.name or "unknown", text=self.text[node.start : node.end])

    # metadata

    def _ids(self, node: WKTNode) -> Tuple[Identifier, ...]:
        ids = []
        for id_node in node.find_all(*_ID_KEYWORDS):
            ids.append(Identifier(id_node.string(0), id_node.string(1)))
        return tuple(ids)

    def _remarks(self, node: WKTNode) -> Optional[str]:
        remark = node.find("REMARK")
        return remark.string(0) if remark is not None else None

    def _usage(self, node: WKTNode) -> Tuple[Optional[AreaOfUse], Optional[str]]:
        holder = node.find("USAGE") or node
        scope_node = holder.find("SCOPE")
        area_node = holder.find("AREA")
        bbox = holder.find("BBOX")
        area = None
        if bbox is not None:
            south, west, north, east = (bbox.number(i) for i in range(4))
            area = AreaOfUse(west, south, east, north, area_node.string(0) if area_node else None)
        elif area_node is not None:
            log.debug(f"area '{area_node.string(0)}' has no bounding box; dropped")
        return area, scope_node.string(0) if scope_node is not None else None

    def _identity(self, node: WKTNode, name: Optional[str] = None) -> Dict[str, Any]:
        return {
            "name": name if name is not None else node.name,
            "identifiers": self._ids(node),
            "remarks": self._remarks(node),
        }

    def _usage_identity(self, node: WKTNode, name: Optional[str] = None) -> Dict[str, Any]:
        kwargs = self._identity(node, name)
        kwargs["area_of_use"], kwargs["scope"] = self._usage(node)
        return kwargs

    def _canonical(self, name: str, table: str) -> str:
        return canonical_name(name, table, self.registry, esri=self.esri)

    # units and coordinate systems

    def _unit(self, node: WKTNode, expected: UnitType) -> Unit:
        unit_type = _UNIT_KEYWORDS[node.keyword]
        factor = node.number(1) if len(node.values) > 1 else 1.0
        if unit_type is None:
            # a bare UNIT takes the type of the catalogue unit it names
            known = find_unit(node.string(0), factor)
            unit_type = known.unit_type if known is not None else expected
        return normalise_unit(Unit(node.string(0), factor, unit_type))

    def _find_unit(self, node: WKTNode, expected: UnitType, default: Optional[Unit]) -> Optional[Unit]:
        for child in node.children:
            if child.keyword in _UNIT_KEYWORDS:
                kind = _UNIT_KEYWORDS[child.keyword]
                if kind is None or kind == expected:
                    return self._unit(child, expected)
        return default

    def _axis(self, node: WKTNode, unit: Unit) -> Tuple[int, Axis]:
        raw = node.string(0)
        direction = node.string(1) if len(node.values) > 1 else "unspecified"
        direction = _DIRECTIONS.get(direction.lower(), direction.lower())
        m = _AXIS_NAME.match(raw)
        name, abbreviation = (m.group(1), m.group(2)) if m else (raw, "")
        known = _AXIS_NAMES.get(name.lower()) or _AXIS_NAMES.get(abbreviation.lower())
        if known is not None:
            name, abbreviation = known[0], abbreviation or known[1]
        elif not name:
            name = abbreviation
        elif not abbreviation:
            abbreviation = name[:1].upper()
        order_node = node.find("ORDER")
        order = int(order_node.number(0)) if order_node is not None else 0
        for child in node.children:
            if child.keyword in _UNIT_KEYWORDS:
                unit = self._unit(child, unit.unit_type)
        return order, Axis(name=name[:1].upper() + name[1:], abbreviation=abbreviation, direction=direction, unit=unit)

    def _cs(self, node: WKTNode, default_unit: Unit) -> Optional[CoordinateSystem]:
        """
        Build the coordinate system of a WKT2 CRS node: the CS clause, the AXIS clauses and
        the unit shared by the axes. None if the node has neither CS nor AXIS clause.
        """
        cs_node = node.find("CS")
        axis_nodes = node.find_all("AXIS")
        if cs_node is None and not axis_nodes:
            return None
        kind = None
        if cs_node is not None:
            kind = _CS_KINDS.get(cs_node.string(0).lower())
            if kind is None:
                raise WKTParseError(f"unsupported coordinate system type {cs_node.string(0)}")
        shared = self._find_unit(node, default_unit.unit_type, default_unit)
        axes = sorted(
            (self._axis(a, shared) for a in axis_nodes), key=lambda pair: pair[0]
        )
        dimension = None
        if cs_node is not None and len(cs_node.values) > 1:
            dimension = int(cs_node.number(1))
            if axes and dimension != len(axes):
                raise WKTParseError(f"CS declares {dimension} axes but {len(axes)} are given")
        if not axes:
            # CS written without its AXIS clauses
            return _default_cs(kind, dimension, shared)
        return CoordinateSystem(kind=kind or CSKind.CARTESIAN, axes=tuple(a for _, a in axes))

    # datums

    def _ellipsoid(self, node: WKTNode) -> Ellipsoid:
        unit = self._find_unit(node, UnitType.LINEAR, METRE)
        rf = node.number(2)
        return Ellipsoid(
            **self._identity(node, self._canonical(node.name, "ellipsoid")),
            semi_major_axis=node.number(1),
            inverse_flattening=rf,
            unit=unit,
        )

    def _prime_meridian(self, node: WKTNode, default_unit: Unit) -> PrimeMeridian:
        unit = self._find_unit(node, UnitType.ANGULAR, default_unit)
        return PrimeMeridian(
            **self._identity(node, self._canonical(node.name, "prime_meridian")),
            longitude=node.number(1),
            unit=unit,
        )

    def _crs_prime_meridian(self, crs_node: WKTNode, default_unit: Unit) -> PrimeMeridian:
        pm_node = crs_node.find(*_PRIMEM_KEYWORDS)
        if pm_node is None:
            return GREENWICH
        return self._prime_meridian(pm_node, default_unit)

    def _geodetic_datum(
        self, node: WKTNode, prime_meridian: PrimeMeridian, frame_epoch: Optional[float] = None
    ) -> Tuple[GeodeticReferenceFrame, Optional[List[float]]]:
        ellipsoid_node = node.find(*_ELLIPSOID_KEYWORDS)
        if ellipsoid_node is None:
            raise WKTParseError(f"datum {node.name} has no ellipsoid")
        anchor = node.find("ANCHOR")
        kwargs = dict(
            **self._usage_identity(node, self._canonical(node.name, "geodetic_datum")),
            ellipsoid=self._ellipsoid(ellipsoid_node),
            prime_meridian=prime_meridian,
            anchor=anchor.string(0) if anchor is not None else None,
        )
        if frame_epoch is not None:
            datum = DynamicGeodeticReferenceFrame(**kwargs, frame_reference_epoch=frame_epoch)
        else:
            datum = GeodeticReferenceFrame(**kwargs)
        towgs84 = node.find("TOWGS84")
        values = [towgs84.number(i) for i in range(len(towgs84.values))] if towgs84 is not None else None
        return datum, values

    def _vertical_datum(self, node: WKTNode, frame_epoch: Optional[float] = None) -> VerticalReferenceFrame:
        anchor = node.find("ANCHOR")
        kwargs = dict(
            **self._usage_identity(node),
            anchor=anchor.string(0) if anchor is not None else None,
        )
        if frame_epoch is not None:
            return DynamicVerticalReferenceFrame(**kwargs, frame_reference_epoch=frame_epoch)
        return VerticalReferenceFrame(**kwargs)

    def _ensemble(self, node: WKTNode, prime_meridian: PrimeMeridian) -> DatumEnsemble:
        ellipsoid_node = node.find(*_ELLIPSOID_KEYWORDS)
        members = []
        for member in node.find_all("MEMBER"):
            if ellipsoid_node is not None:
                members.append(
                    GeodeticReferenceFrame(
                        **self._identity(member),
                        ellipsoid=self._ellipsoid(ellipsoid_node),
                        prime_meridian=prime_meridian,
                    )
                )
            else:
                members.append(VerticalReferenceFrame(**self._identity(member)))
        accuracy = node.find("ENSEMBLEACCURACY")
        if accuracy is None:
            raise WKTParseError(f"datum ensemble {node.name} has no ENSEMBLEACCURACY")
        return DatumEnsemble(
            **self._usage_identity(node), members=tuple(members), accuracy=accuracy.number(0)
        )

    def _frame_epoch(self, crs_node: WKTNode) -> Optional[float]:
        dynamic = crs_node.find("DYNAMIC")
        if dynamic is None:
            return None
        epoch = dynamic.find("FRAMEEPOCH")
        if epoch is None:
            raise WKTParseError("DYNAMIC has no FRAMEEPOCH")
        return epoch.number(0)

    def _crs_geodetic_datum(self, crs_node: WKTNode, angular_unit: Unit):
        pm = self._crs_prime_meridian(crs_node, angular_unit)
        datum_node = crs_node.find(*_DATUM_KEYWORDS)
        if datum_node is not None:
            return self._geodetic_datum(datum_node, pm, self._frame_epoch(crs_node))
        ensemble_node = crs_node.find("ENSEMBLE")
        if ensemble_node is not None:
            return self._ensemble(ensemble_node, pm), None
        raise WKTParseError(f"{crs_node.keyword} {crs_node.name} has no datum")

    # WKT2 CRS

    def _geodetic_crs(self, node: WKTNode) -> CRS:
        if node.find(*_BASE_GEODETIC_KEYWORDS) is not None or node.find("DERIVINGCONVERSION") is not None:
            return self._other_crs(node)
        cs_node = node.find("CS")
        if cs_node is not None and cs_node.string(0).lower() == "cartesian":
            angular_unit = DEGREE
            cs = self._cs(node, self._find_unit(node, UnitType.LINEAR, METRE))
        else:
            angular_unit = self._find_unit(node, UnitType.ANGULAR, DEGREE)
            cs = self._cs(node, angular_unit)
        if cs is None:
            raise WKTParseError(f"{node.keyword} {node.name} has no coordinate system")
        datum, _ = self._crs_geodetic_datum(node, angular_unit)
        cls = GeographicCRS if cs.kind == CSKind.ELLIPSOIDAL else GeodeticCRS
        return cls(**self._usage_identity(node), datum=datum, coordinate_system=cs)

    def _base_geodetic_crs(self, node: WKTNode) -> GeodeticCRS:
        angular_unit = self._find_unit(node, UnitType.ANGULAR, DEGREE)
        datum, _ = self._crs_geodetic_datum(node, angular_unit)
        cs = self._cs(node, angular_unit) or ellipsoidal_2d_lat_lon(angular_unit)
        cls = GeographicCRS if cs.kind == CSKind.ELLIPSOIDAL else GeodeticCRS
        return cls(**self._usage_identity(node), datum=datum, coordinate_system=cs)

    def _projected_crs(self, node: WKTNode) -> CRS:
        base_node = node.find(*_BASE_GEODETIC_KEYWORDS)
        conversion_node = node.find("CONVERSION")
        if base_node is None or conversion_node is None:
            raise WKTParseError(f"{node.keyword} {node.name} needs a base CRS and a conversion")
        base = self._base_geodetic_crs(base_node)
        linear_unit = self._find_unit(node, UnitType.LINEAR, METRE)
        cs = self._cs(node, linear_unit) or cartesian_easting_northing(linear_unit)
        angular_unit = self._find_unit(base_node, UnitType.ANGULAR, DEGREE)
        conversion = self._conversion(conversion_node, angular_unit, linear_unit)
        return ProjectedCRS(
            **self._usage_identity(node), base_crs=base, conversion=conversion, coordinate_system=cs
        )

    def _vertical_crs(self, node: WKTNode) -> CRS:
        if node.find("BASEVERTCRS") is not None:
            return self._other_crs(node)
        datum_node = node.find(*_VDATUM_KEYWORDS)
        if datum_node is not None:
            datum = self._vertical_datum(datum_node, self._frame_epoch(node))
        elif node.find("ENSEMBLE") is not None:
            datum = self._ensemble(node.find("ENSEMBLE"), GREENWICH)
        else:
            raise WKTParseError(f"{node.keyword} {node.name} has no vertical datum")
        linear_unit = self._find_unit(node, UnitType.LINEAR, METRE)
        cs = self._cs(node, linear_unit) or vertical_gravity_up(linear_unit)
        return VerticalCRS(**self._usage_identity(node), datum=datum, coordinate_system=cs)

    def _compound_crs(self, node: WKTNode) -> CompoundCRS:
        components = [
            self._crs(child)
            for child in node.children
            if child.keyword not in _ID_KEYWORDS + ("USAGE", "SCOPE", "AREA", "BBOX", "REMARK")
        ]
        return CompoundCRS(**self._usage_identity(node), components=tuple(components))

    def _bound_crs(self, node: WKTNode) -> BoundCRS:
        source = node.find("SOURCECRS")
        target = node.find("TARGETCRS")
        abridged = node.find("ABRIDGEDTRANSFORMATION")
        if source is None or target is None or abridged is None:
            raise WKTParseError("BOUNDCRS needs SOURCECRS, TARGETCRS and ABRIDGEDTRANSFORMATION")
        base = self._crs(source.children[0])
        hub = self._crs(target.children[0])
        method, params = self._method_and_parameters(abridged, DEGREE, METRE)
        transformation = Transformation(
            **self._usage_identity(abridged),
            method=method,
            parameters=params,
            source_crs=base.geodetic_crs or base,
            target_crs=hub,
        )
        return BoundCRS(name=base.name, base_crs=base, hub_crs=hub, transformation=transformation)

    def _engineering_crs(self, node: WKTNode) -> EngineeringCRS:
        datum_node = node.find("EDATUM", "ENGINEERINGDATUM")
        datum = EngineeringDatum(**self._identity(datum_node)) if datum_node is not None else None
        cs = self._cs(node, self._find_unit(node, UnitType.LINEAR, METRE))
        return EngineeringCRS(**self._usage_identity(node), datum=datum, coordinate_system=cs)

    def _temporal_crs(self, node: WKTNode) -> TemporalCRS:
        datum_node = node.find("TDATUM", "TIMEDATUM")
        if datum_node is None:
            raise WKTParseError(f"TIMECRS {node.name} has no TDATUM")
        origin = datum_node.find("TIMEORIGIN")
        calendar = datum_node.find("CALENDAR")
        datum = TemporalDatum(
            **self._identity(datum_node),
            origin=origin.string(0) if origin is not None else "",
            calendar=calendar.string(0) if calendar is not None else "proleptic Gregorian",
        )
        cs = self._cs(node, self._find_unit(node, UnitType.TIME, SECOND))
        return TemporalCRS(**self._usage_identity(node), datum=datum, coordinate_system=cs)

    # WKT1 CRS

    def _wkt1_root(self, node: WKTNode) -> CRS:
        crs, towgs84 = self._wkt1_crs(node)
        if towgs84:
            return bound_crs_to_wgs84(crs, towgs84)
        return crs

    def _wkt1_crs(self, node: WKTNode) -> Tuple[CRS, Optional[List[float]]]:
        if node.keyword == "GEOGCS":
            return self._wkt1_geogcs(node)
        if node.keyword == "GEOCCS":
            return self._wkt1_geoccs(node)
        return self._wkt1_projcs(node)

    def _wkt1_axes(self, node: WKTNode, unit: Unit) -> Tuple[Axis, ...]:
        return tuple(self._axis(a, unit)[1] for a in node.find_all("AXIS"))

    def _wkt1_datum(self, node: WKTNode):
        datum_node = node.find("DATUM")
        if datum_node is None:
            raise WKTParseError(f"{node.keyword} {node.name} has no DATUM")
        # WKT1 prime meridians are in degrees whatever the CRS unit
        pm = self._crs_prime_meridian(node, DEGREE)
        return self._geodetic_datum(datum_node, pm)

    def _wkt1_geogcs(self, node: WKTNode) -> Tuple[GeographicCRS, Optional[List[float]]]:
        unit = self._find_unit(node, UnitType.ANGULAR, DEGREE)
        datum, towgs84 = self._wkt1_datum(node)
        axes = self._wkt1_axes(node, unit)
        cs = CoordinateSystem(kind=CSKind.ELLIPSOIDAL, axes=axes) if axes else ellipsoidal_2d_lat_lon(unit)
        name = self._canonical(node.name, "geodetic_crs") if self.esri else node.name
        crs = GeographicCRS(**self._identity(node, name), datum=datum, coordinate_system=cs)
        return crs, towgs84

    def _wkt1_geoccs(self, node: WKTNode) -> Tuple[GeodeticCRS, Optional[List[float]]]:
        unit = self._find_unit(node, UnitType.LINEAR, METRE)
        datum, towgs84 = self._wkt1_datum(node)
        crs = GeodeticCRS(**self._identity(node), datum=datum, coordinate_system=geocentric_xyz(unit))
        return crs, towgs84

    def _wkt1_projcs(self, node: WKTNode) -> Tuple[ProjectedCRS, Optional[List[float]]]:
        geogcs = node.find("GEOGCS")
        projection = node.find("PROJECTION")
        if geogcs is None or projection is None:
            raise WKTParseError(f"PROJCS {node.name} needs GEOGCS and PROJECTION")
        base, towgs84 = self._wkt1_geogcs(geogcs)
        angular_unit = self._find_unit(geogcs, UnitType.ANGULAR, DEGREE)
        linear_unit = self._find_unit(node, UnitType.LINEAR, METRE)
        params = [(p.string(0), p.number(1)) for p in node.find_all("PARAMETER")]
        mapping = mm.method_by_wkt1_name(projection.name, [n for n, _ in params])
        conversion = self._wkt1_conversion(projection, mapping, params, angular_unit, linear_unit)
        axes = self._wkt1_axes(node, linear_unit)
        cs = CoordinateSystem(kind=CSKind.CARTESIAN, axes=axes) if axes else cartesian_easting_northing(linear_unit)
        name = self._canonical(node.name, "projected_crs") if self.esri else node.name
        crs = ProjectedCRS(
            **self._identity(node, name), base_crs=base, conversion=conversion, coordinate_system=cs
        )
        return crs, towgs84

    def _wkt1_conversion(
        self,
        projection: WKTNode,
        mapping: Optional[mm.MethodMapping],
        params: List[Tuple[str, float]],
        angular_unit: Unit,
        linear_unit: Unit,
    ) -> Conversion:
        def unit_for(unit_type: UnitType) -> Unit:
            if unit_type == UnitType.ANGULAR:
                return angular_unit
            if unit_type == UnitType.LINEAR:
                return linear_unit
            return UNITY

        if mapping is None:
            log.warning(f"unknown projection {projection.name}; keeping it by name")
            return Conversion(
                name="unnamed",
                method=OperationMethod(name=projection.name, identifiers=self._ids(projection)),
                parameters=tuple(
                    Parameter(name=n, value=v, unit=unit_for(_guess_unit_type(n))) for n, v in params
                ),
            )
        values: Dict[str, float] = {}
        for name, value in params:
            pm = mm.param_mapping(mapping, name)
            if pm is None:
                log.debug(f"ignoring parameter {name} of {mapping.name}")
                continue
            values[pm.code or pm.name] = value
        return Conversion(
            name="unnamed",
            method=make_method(mapping),
            parameters=tuple(
                make_parameter(pm, values.get(pm.code or pm.name, pm.default), unit_for(pm.unit_type))
                for pm in mapping.params
            ),
        )

    def _wkt1_vert_cs(self, node: WKTNode) -> VerticalCRS:
        datum_node = node.find("VERT_DATUM", "VDATUM")
        if datum_node is None:
            raise WKTParseError(f"{node.keyword} {node.name} has no VERT_DATUM")
        unit = self._find_unit(node, UnitType.LINEAR, METRE)
        axes = self._wkt1_axes(node, unit)
        cs = CoordinateSystem(kind=CSKind.VERTICAL, axes=axes) if axes else vertical_gravity_up(unit)
        return VerticalCRS(
            **self._identity(node),
            datum=VerticalReferenceFrame(**self._identity(datum_node)),
            coordinate_system=cs,
        )

    def _wkt1_local_cs(self, node: WKTNode) -> EngineeringCRS:
        datum_node = node.find("LOCAL_DATUM")
        datum = EngineeringDatum(**self._identity(datum_node)) if datum_node is not None else None
        unit = self._find_unit(node, UnitType.LINEAR, METRE)
        axes = self._wkt1_axes(node, unit)
        cs = CoordinateSystem(kind=CSKind.CARTESIAN, axes=axes) if axes else None
        return EngineeringCRS(**self._identity(node), datum=datum, coordinate_system=cs)

    # operations

    def _parameter(
        self,
        node: WKTNode,
        mapping: Optional[mm.MethodMapping],
        angular_unit: Unit,
        linear_unit: Unit,
    ) -> Tuple[Optional[mm.ParamMapping], Parameter]:
        ids = self._ids(node)
        code = next((i.code for i in ids if i.authority == "EPSG"), None)
        pm = mm.param_mapping(mapping, node.name, code)
        name = pm.name if pm is not None else node.name
        if pm is not None and pm.code:
            ids = (Identifier("EPSG", pm.code),)
        raw = node.values[1] if len(node.values) > 1 else None
        if raw is None:
            raise WKTParseError(f"{node.keyword} {node.name} has no value")
        if node.keyword == "PARAMETERFILE" or not isinstance(raw, Word):
            return pm, Parameter(name=name, identifiers=ids, string_value=str(raw))
        unit_type = pm.unit_type if pm is not None else _guess_unit_type(name)
        default = {UnitType.ANGULAR: angular_unit, UnitType.LINEAR: linear_unit}.get(unit_type, UNITY)
        unit = self._find_unit(node, unit_type, default)
        return pm, Parameter(name=name, identifiers=ids, value=node.number(1), unit=unit)

    def _method_and_parameters(
        self, node: WKTNode, angular_unit: Unit, linear_unit: Unit, fill_defaults: bool = False
    ) -> Tuple[OperationMethod, Tuple[Parameter, ...]]:
        method_node = node.find("METHOD", "PROJECTION")
        if method_node is None:
            raise WKTParseError(f"{node.keyword} {node.name} has no METHOD")
        ids = self._ids(method_node)
        code = next((i.code for i in ids if i.authority == "EPSG"), None)
        mapping = mm.method_by_code(code) or mm.method_by_name(method_node.name)
        method = make_method(mapping) if mapping is not None else OperationMethod(
            name=method_node.name, identifiers=ids
        )
        parsed = [
            self._parameter(p, mapping, angular_unit, linear_unit)
            for p in node.find_all("PARAMETER", "PARAMETERFILE")
        ]
        if not fill_defaults or mapping is None:
            return method, tuple(p for _, p in parsed)
        by_mapping = {pm: p for pm, p in parsed if pm is not None}
        params = []
        for pm in mapping.params:
            if pm in by_mapping:
                params.append(by_mapping[pm])
            else:
                unit = {UnitType.ANGULAR: angular_unit, UnitType.LINEAR: linear_unit}.get(pm.unit_type, UNITY)
                params.append(make_parameter(pm, pm.default, unit))
        return method, tuple(params)

    def _conversion(
        self, node: WKTNode, angular_unit: Unit = DEGREE, linear_unit: Unit = METRE
    ) -> Conversion:
        method, params = self._method_and_parameters(node, angular_unit, linear_unit, fill_defaults=True)
        return Conversion(**self._usage_identity(node), method=method, parameters=params)

    def _operation_crs(self, node: WKTNode, keyword: str) -> CRS:
        holder = node.find(keyword)
        if holder is None or not holder.children:
            raise WKTParseError(f"{node.keyword} {node.name} has no {keyword}")
        return self._crs(holder.children[0])

    def _accuracy(self, node: WKTNode) -> Optional[float]:
        accuracy = node.find("OPERATIONACCURACY")
        return accuracy.number(0) if accuracy is not None else None

    def _transformation(self, node: WKTNode) -> Transformation:
        method, params = self._method_and_parameters(node, DEGREE, METRE)
        return Transformation(
            **self._usage_identity(node),
            method=method,
            parameters=params,
            source_crs=self._operation_crs(node, "SOURCECRS"),
            target_crs=self._operation_crs(node, "TARGETCRS"),
            accuracy=self._accuracy(node),
        )

    def _concatenated_operation(self, node: WKTNode) -> ConcatenatedOperation:
        steps: List[CoordinateOperation] = []
        for step in node.find_all("STEP"):
            if not step.children or step.children[0].keyword not in _OPERATION_KEYWORDS:
                raise WKTParseError("STEP must hold an operation")
            steps.append(self._object(step.children[0]))
        return ConcatenatedOperation(
            **self._usage_identity(node),
            steps=tuple(steps),
            source_crs=self._operation_crs(node, "SOURCECRS"),
            target_crs=self._operation_crs(node, "TARGETCRS"),
            declared_accuracy=self._accuracy(node),
        )


def from_wkt(text: str, registry: Optional[RegistryInterface] = None) -> Any:
    """
    Build a model object from WKT text.

    Args:
        text: WKT in any of the WKT1 (GDAL, ESRI) or WKT2 (2015, 2018) dialects
        registry: A registry used to turn WKT1 name spellings into registered names

    Returns:
        The parsed object

    Raises:
        WKTParseError: If the text cannot be parsed

    Examples:
        >>> crs = from_wkt('GEOGCS["WGS 84",DATUM["WGS_1984",SPHEROID["WGS 84",6378137,298.257223563]],'
        ...                'PRIMEM["Greenwich",0],UNIT["degree",0.0174532925199433]]')
        >>> crs.datum.name
        'WGS 1984'
    """
    return WKTParser(text, registry).parse()
