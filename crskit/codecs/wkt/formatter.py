from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from crskit.codecs.wkt.dialect import GuessedWKTDialect, WKTDialect, guess_wkt_dialect
from crskit.codecs.wkt.names import (
    esri_datum_name,
    esri_geographic_crs_name,
    esri_name,
    gdal_datum_name,
)
from crskit.codecs.wkt.tokenizer import WKTNode, Word
from crskit.constructs.common import IdentifiedObject, ObjectUsage
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
    is_wgs84,
)
from crskit.constructs.cs import (
    CoordinateSystem,
    CSKind,
    is_east_north_order,
    is_lat_lon_order,
)
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
)
from crskit.constructs.operation import (
    ConcatenatedOperation,
    Conversion,
    CoordinateOperation,
    Parameter,
    Transformation,
    helmert_parameters,
)
from crskit.registry.registry_interface import RegistryInterface
from crskit.utils import method_mappings as mm
from crskit.utils.exceptions import FormattingOptionError, UnrepresentableError
from crskit.utils.units import DEGREE, METRE, UNITY, Unit, UnitType, esri_unit_name

log = logging.getLogger(__name__)

MULTILINE = "MULTILINE"
INDENTATION_WIDTH = "INDENTATION_WIDTH"
OUTPUT_AXIS = "OUTPUT_AXIS"

_YES_NO = {"YES", "NO"}
_OUTPUT_AXIS_VALUES = {"YES", "NO", "AUTO"}

_WKT2_UNIT_KEYWORDS = {
    UnitType.ANGULAR: "ANGLEUNIT",
    UnitType.LINEAR: "LENGTHUNIT",
    UnitType.SCALE: "SCALEUNIT",
    UnitType.TIME: "TIMEUNIT",
    UnitType.PARAMETRIC: "PARAMETRICUNIT",
}

_WKT1_AXIS_NAMES = {
    "Geodetic latitude": "Latitude",
    "Geodetic longitude": "Longitude",
}

_GEOCENTRIC_WKT1_DIRECTIONS = {
    "geocentricx": "OTHER",
    "geocentricy": "EAST",
    "geocentricz": "NORTH",
}

_WKT2_CS_NAMES = {
    CSKind.ELLIPSOIDAL: "ellipsoidal",
    CSKind.CARTESIAN: "Cartesian",
    CSKind.VERTICAL: "vertical",
    CSKind.SPHERICAL: "spherical",
}

_GDAL_VERT_DATUM_TYPE = "2005"
_GDAL_LOCAL_DATUM_TYPE = "32767"

# a quoted string, or a line break with its surrounding blanks
_LINE_BREAK = re.compile(r"(\"(?:[^\"]|\"\")*\")|[ \t]*[\r\n]\s*")


def parse_options(options: Optional[Union[Mapping[str, Any], Iterable[str]]]) -> Dict[str, str]:
    """
    Read formatting options given either as a mapping or as "KEY=VALUE" strings.

    Args:
        options: The options, or None

    Returns:
        The options keyed by upper-cased name

    Raises:
        FormattingOptionError: If an option is malformed, unknown or has an invalid value
    """
    if options is None:
        return {}
    if isinstance(options, Mapping):
        pairs = [(str(k), str(v)) for k, v in options.items()]
    else:
        pairs = []
        for option in options:
            if "=" not in option:
                raise FormattingOptionError(f"option {option} is not of the form KEY=VALUE")
            key, value = option.split("=", 1)
            pairs.append((key, value))
    parsed = {}
    for key, value in pairs:
        key, value = key.strip().upper(), value.strip()
        if key in (MULTILINE,):
            if value.upper() not in _YES_NO:
                raise FormattingOptionError(f"{key} must be YES or NO, got {value}")
            value = value.upper()
        elif key == OUTPUT_AXIS:
            if value.upper() not in _OUTPUT_AXIS_VALUES:
                raise FormattingOptionError(f"{key} must be YES, NO or AUTO, got {value}")
            value = value.upper()
        elif key == INDENTATION_WIDTH:
            if not value.isdigit():
                raise FormattingOptionError(f"{key} must be a non negative integer, got {value}")
        else:
            raise FormattingOptionError(f"unsupported option {key}")
        parsed[key] = value
    return parsed


def format_number(value: float, esri: bool = False) -> str:
    """
    Write a number with up to 15 significant digits, the way WKT writers do.

    Examples:
        >>> format_number(0.017453292519943295)
        '0.0174532925199433'
        >>> format_number(6378160, esri=True)
        '6378160.0'
    """
    if value == 0:
        value = 0.0
    text = "%.15g" % value
    if text == "-0":
        text = "0"
    if esri and "." not in text and "e" not in text and "n" not in text:
        text += ".0"
    return text


class WKTFormatter:
    """
    Writes model objects as WKT.

    Args:
        dialect: The WKT dialect to write
        options: MULTILINE (YES/NO), INDENTATION_WIDTH (integer) and OUTPUT_AXIS
            (YES/NO/AUTO), as a mapping or "KEY=VALUE" strings
        registry: The registry providing WKT1 name spellings, if any

    Raises:
        FormattingOptionError: If an option is invalid
    """

    def __init__(
        self,
        dialect: WKTDialect = WKTDialect.WKT2_2018,
        options: Optional[Union[Mapping[str, Any], Iterable[str]]] = None,
        registry: Optional[RegistryInterface] = None,
    ):
        self.dialect = dialect
        self.registry = registry
        opts = parse_options(options)
        self.esri = dialect == WKTDialect.WKT1_ESRI
        self.wkt1 = dialect.is_wkt1
        self.simplified = dialect.is_simplified
        self.multiline = opts.get(MULTILINE, "NO" if self.esri else "YES") == "YES"
        self.indentation = int(opts.get(INDENTATION_WIDTH, 4))
        self.output_axis = opts.get(OUTPUT_AXIS, "AUTO")
        self._inner_ids = True

    def format(self, obj: Any) -> str:
        """
        Write an object as WKT.

        Raises:
            UnrepresentableError: If the object cannot be written in the dialect
        """
        if isinstance(obj, IdentifiedObject) and not self.wkt1:
            self._inner_ids = not obj.identifiers
        node = self._node(obj, root=True)
        return self._serialize(node, 0)

    def _serialize(self, node: WKTNode, depth: int) -> str:
        parts = []
        for arg in node.args:
            if isinstance(arg, WKTNode):
                text = self._serialize(arg, depth + 1)
                if self.multiline:
                    text = "\n" + " " * (self.indentation * (depth + 1)) + text
                parts.append(text)
            elif isinstance(arg, Word):
                parts.append(str(arg))
            else:
                parts.append('"' + arg.replace('"', '""') + '"')
        if not parts:
            return node.keyword
        return f"{node.keyword}[{','.join(parts)}]"

    def _unrepresentable(self, what: str) -> UnrepresentableError:
        return UnrepresentableError(f"{what} cannot be written as {self.dialect.value}")

    def _num(self, value: float) -> Word:
        return Word(format_number(value, self.esri))

    # dispatch

    def _node(self, obj: Any, root: bool = False) -> WKTNode:
        if self.wkt1:
            return self._wkt1_node(obj)
        if isinstance(obj, CRS):
            node = self._wkt2_crs(obj)
        elif isinstance(obj, Ellipsoid):
            node = self._ellipsoid(obj)
        elif isinstance(obj, PrimeMeridian):
            node = self._prime_meridian(obj)
        elif isinstance(obj, DatumEnsemble):
            node = self._ensemble(obj)
        elif isinstance(obj, (GeodeticReferenceFrame, VerticalReferenceFrame)):
            node = self._datum(obj)
        elif isinstance(obj, CoordinateOperation):
            node = self._operation(obj)
        else:
            raise self._unrepresentable(type(obj).__name__)
        if root and isinstance(obj, ObjectUsage) and not isinstance(obj, OtherCRS):
            self._insert_usage(node, obj)
        return node

    # shared WKT2 blocks

    def _ids(self, obj: IdentifiedObject, always: bool = False) -> List[WKTNode]:
        if not (always or self._inner_ids):
            return []
        nodes = []
        for ident in obj.identifiers:
            code = Word(ident.code) if ident.code.isdigit() else ident.code
            nodes.append(WKTNode("ID", [ident.authority, code]))
        return nodes

    def _root_ids(self, obj: IdentifiedObject) -> List[WKTNode]:
        return self._ids(obj, always=True)

    def _remark(self, obj: IdentifiedObject) -> List[WKTNode]:
        return [WKTNode("REMARK", [obj.remarks])] if obj.remarks else []

    def _unit(self, unit: Unit) -> WKTNode:
        if self.simplified:
            keyword = "UNIT"
        else:
            keyword = _WKT2_UNIT_KEYWORDS.get(unit.unit_type, "UNIT")
        return WKTNode(keyword, [unit.name, self._num(unit.conversion_factor)])

    def _insert_usage(self, node: WKTNode, obj: ObjectUsage):
        """
        Add the usage blocks of the root object before its identifiers and remark.
        """
        usage = []
        if obj.scope:
            usage.append(WKTNode("SCOPE", [obj.scope]))
        area = obj.area_of_use
        if area is not None:
            if area.description:
                usage.append(WKTNode("AREA", [area.description]))
            usage.append(
                WKTNode(
                    "BBOX",
                    [self._num(area.south), self._num(area.west), self._num(area.north), self._num(area.east)],
                )
            )
        if not usage:
            return
        if self.dialect.is_2018:
            usage = [WKTNode("USAGE", usage)]
        position = len(node.args)
        for i, arg in enumerate(node.args):
            if isinstance(arg, WKTNode) and arg.keyword in ("ID", "REMARK"):
                position = i
                break
        node.args[position:position] = usage

    # WKT2 datums

    def _ellipsoid(self, ellipsoid: Ellipsoid) -> WKTNode:
        args = [
            ellipsoid.name,
            self._num(ellipsoid.semi_major_axis),
            self._num(ellipsoid.computed_inverse_flattening),
        ]
        if not (self.simplified and ellipsoid.unit == METRE):
            args.append(self._unit(ellipsoid.unit))
        return WKTNode("ELLIPSOID", args + self._ids(ellipsoid))

    def _prime_meridian(self, pm: PrimeMeridian) -> WKTNode:
        args = [pm.name, self._num(pm.longitude)]
        if not (self.simplified and pm.unit == DEGREE):
            args.append(self._unit(pm.unit))
        return WKTNode("PRIMEM", args + self._ids(pm))

    def _datum(self, datum: Any) -> WKTNode:
        if isinstance(datum, GeodeticReferenceFrame):
            args = [datum.name, self._ellipsoid(datum.ellipsoid)]
            keyword = "DATUM"
        else:
            args = [datum.name]
            keyword = "VDATUM"
        if datum.anchor:
            args.append(WKTNode("ANCHOR", [datum.anchor]))
        return WKTNode(keyword, args + self._ids(datum))

    def _ensemble(self, ensemble: DatumEnsemble) -> WKTNode:
        if not self.dialect.is_2018:
            # earlier revisions have no ensembles: write the ensemble as a datum
            if ensemble.is_geodetic:
                args = [ensemble.name, self._ellipsoid(ensemble.ellipsoid)]
                return WKTNode("DATUM", args + self._ids(ensemble))
            return WKTNode("VDATUM", [ensemble.name] + self._ids(ensemble))
        args: List[Any] = [ensemble.name]
        args.extend(WKTNode("MEMBER", [m.name] + self._ids(m)) for m in ensemble.members)
        if ensemble.is_geodetic:
            args.append(self._ellipsoid(ensemble.ellipsoid))
        args.append(WKTNode("ENSEMBLEACCURACY", [self._num(ensemble.accuracy)]))
        return WKTNode("ENSEMBLE", args + self._ids(ensemble))

    def _dynamic(self, datum: Any) -> List[WKTNode]:
        if not self.dialect.is_2018:
            return []
        if isinstance(datum, (DynamicGeodeticReferenceFrame, DynamicVerticalReferenceFrame)):
            epoch = WKTNode("FRAMEEPOCH", [self._num(datum.frame_reference_epoch)])
            return [WKTNode("DYNAMIC", [epoch])]
        return []

    def _datum_or_ensemble(self, datum: Any) -> WKTNode:
        if isinstance(datum, DatumEnsemble):
            return self._ensemble(datum)
        return self._datum(datum)

    # WKT2 coordinate systems

    def _axis_name(self, axis) -> str:
        name = axis.name[:1].lower() + axis.name[1:]
        if axis.abbreviation:
            return f"{name} ({axis.abbreviation})" if name else f"({axis.abbreviation})"
        return name

    def _cs(self, cs: CoordinateSystem) -> List[WKTNode]:
        kind = _WKT2_CS_NAMES.get(cs.kind)
        if cs.kind == CSKind.TEMPORAL:
            kind = "TemporalMeasure" if self.dialect.is_2018 else "temporal"
        nodes = [WKTNode("CS", [Word(kind), Word(str(cs.axis_count))])]
        if self.output_axis == "NO":
            # the unit of the first axis stands for the omitted axes
            if cs.axes:
                nodes.append(self._unit(cs.axes[0].unit))
            return nodes
        units = {a.unit for a in cs.axes}
        shared = self.simplified and len(units) == 1
        for i, axis in enumerate(cs.axes):
            args: List[Any] = [self._axis_name(axis), Word(axis.direction)]
            if not self.simplified and cs.axis_count > 1:
                args.append(WKTNode("ORDER", [Word(str(i + 1))]))
            if not shared:
                args.append(self._unit(axis.unit))
            nodes.append(WKTNode("AXIS", args))
        if shared:
            nodes.append(self._unit(cs.axes[0].unit))
        return nodes

    # WKT2 CRS

    def _wkt2_crs(self, crs: CRS) -> WKTNode:
        if isinstance(crs, OtherCRS):
            return self._other_crs(crs)
        if isinstance(crs, GeodeticCRS):
            return self._geodetic_crs(crs)
        if isinstance(crs, ProjectedCRS):
            return self._projected_crs(crs)
        if isinstance(crs, VerticalCRS):
            args = [crs.name] + self._dynamic(crs.datum) + [self._datum_or_ensemble(crs.datum)]
            args += self._cs(crs.coordinate_system)
            return WKTNode("VERTCRS", args + self._ids(crs, always=True) + self._remark(crs))
        if isinstance(crs, CompoundCRS):
            args = [crs.name] + [self._wkt2_crs(c) for c in crs.components]
            return WKTNode("COMPOUNDCRS", args + self._ids(crs, always=True) + self._remark(crs))
        if isinstance(crs, BoundCRS):
            return self._bound_crs(crs)
        if isinstance(crs, EngineeringCRS):
            args: List[Any] = [crs.name]
            if crs.datum is not None:
                args.append(WKTNode("EDATUM", [crs.datum.name] + self._ids(crs.datum)))
            if crs.coordinate_system is not None:
                args += self._cs(crs.coordinate_system)
            return WKTNode("ENGCRS", args + self._ids(crs, always=True) + self._remark(crs))
        if isinstance(crs, TemporalCRS):
            return self._temporal_crs(crs)
        raise self._unrepresentable(type(crs).__name__)

    def _other_crs(self, crs: OtherCRS) -> WKTNode:
        guessed = guess_wkt_dialect(crs.text)
        wkt1 = guessed in (GuessedWKTDialect.WKT1_GDAL, GuessedWKTDialect.WKT1_ESRI)
        if guessed == GuessedWKTDialect.NOT_WKT or wkt1 != self.wkt1:
            raise self._unrepresentable(f"CRS {crs.name}")
        # stored verbatim, on one line unless MULTILINE
        text = crs.text
        if not self.multiline:
            text = _LINE_BREAK.sub(lambda m: m.group(1) or "", text.strip())
        return WKTNode(Word(text))

    def _geodetic_crs(self, crs: GeodeticCRS, keyword: Optional[str] = None, base: bool = False) -> WKTNode:
        if keyword is None:
            if self.dialect.is_2018 and isinstance(crs, GeographicCRS):
                keyword = "GEOGCRS"
            else:
                keyword = "GEODCRS"
        args: List[Any] = [crs.name] + self._dynamic(crs.datum) + [self._datum_or_ensemble(crs.datum)]
        args.append(self._prime_meridian(crs.prime_meridian))
        if base:
            if self.simplified:
                args.append(self._unit(crs.coordinate_system.axes[0].unit))
            return WKTNode(keyword, args + self._ids(crs))
        args += self._cs(crs.coordinate_system)
        return WKTNode(keyword, args + self._ids(crs, always=True) + self._remark(crs))

    def _parameter(self, param: Parameter, implicit_units: Iterable[Unit] = ()) -> WKTNode:
        ids = self._ids(param, always=True)
        if param.string_value is not None:
            return WKTNode("PARAMETERFILE", [param.name, param.string_value] + ids)
        args: List[Any] = [param.name, self._num(param.value)]
        if not (self.simplified and param.unit in implicit_units):
            args.append(self._unit(param.unit))
        return WKTNode("PARAMETER", args + ids)

    def _method(self, op: CoordinateOperation) -> WKTNode:
        if op.method is None:
            return WKTNode("METHOD", ["unnamed"])
        return WKTNode("METHOD", [op.method.name] + self._ids(op.method, always=True))

    def _conversion(self, conv: Conversion, implicit_units: Iterable[Unit] = (), always_ids: bool = False) -> WKTNode:
        args: List[Any] = [conv.name, self._method(conv)]
        args += [self._parameter(p, implicit_units) for p in conv.parameters]
        return WKTNode("CONVERSION", args + self._ids(conv, always=always_ids))

    def _projected_crs(self, crs: ProjectedCRS) -> WKTNode:
        base_keyword = "BASEGEOGCRS" if self.dialect.is_2018 else "BASEGEODCRS"
        base = self._geodetic_crs(crs.base_crs, base_keyword, base=True)
        angular = crs.base_crs.coordinate_system.axes[0].unit
        linear = crs.coordinate_system.axes[0].unit
        args: List[Any] = [crs.name, base, self._conversion(crs.conversion, (angular, linear, UNITY))]
        args += self._cs(crs.coordinate_system)
        return WKTNode("PROJCRS", args + self._ids(crs, always=True) + self._remark(crs))

    def _bound_crs(self, crs: BoundCRS) -> WKTNode:
        transformation = crs.transformation
        abridged = [transformation.name, self._method(transformation)]
        abridged += [self._parameter(p) for p in transformation.parameters]
        abridged += self._ids(transformation)
        return WKTNode(
            "BOUNDCRS",
            [
                WKTNode("SOURCECRS", [self._wkt2_crs(crs.base_crs)]),
                WKTNode("TARGETCRS", [self._wkt2_crs(crs.hub_crs)]),
                WKTNode("ABRIDGEDTRANSFORMATION", abridged),
            ]
            + self._remark(crs),
        )

    def _temporal_crs(self, crs: TemporalCRS) -> WKTNode:
        datum: TemporalDatum = crs.datum
        datum_args: List[Any] = [datum.name]
        if self.dialect.is_2018:
            datum_args.append(WKTNode("CALENDAR", [datum.calendar]))
        if datum.origin:
            datum_args.append(WKTNode("TIMEORIGIN", [datum.origin]))
        args: List[Any] = [crs.name, WKTNode("TDATUM", datum_args + self._ids(datum))]
        if crs.coordinate_system is not None:
            args += self._cs(crs.coordinate_system)
        return WKTNode("TIMECRS", args + self._ids(crs, always=True) + self._remark(crs))

    # WKT2 operations

    def _operation(self, op: CoordinateOperation, step: bool = False) -> WKTNode:
        if isinstance(op, Conversion):
            if step:
                return self._conversion(op, always_ids=True)
            node = self._conversion(op, always_ids=True)
            node.args.extend(self._remark(op))
            return node
        if op.source_crs is None or op.target_crs is None:
            raise self._unrepresentable(f"operation {op.name} without source and target CRS")
        ends = [
            WKTNode("SOURCECRS", [self._wkt2_crs(op.source_crs)]),
            WKTNode("TARGETCRS", [self._wkt2_crs(op.target_crs)]),
        ]
        if isinstance(op, ConcatenatedOperation):
            if not self.dialect.is_2018:
                raise self._unrepresentable(f"concatenated operation {op.name}")
            args: List[Any] = [op.name] + ends
            args += [WKTNode("STEP", [self._operation(s, step=True)]) for s in op.steps]
            if op.declared_accuracy is not None:
                args.append(WKTNode("OPERATIONACCURACY", [self._num(op.declared_accuracy)]))
            return WKTNode(
                "CONCATENATEDOPERATION", args + self._ids(op, always=True) + self._remark(op)
            )
        if isinstance(op, Transformation):
            args = [op.name] + ends + [self._method(op)]
            args += [self._parameter(p) for p in op.parameters]
            if op.accuracy is not None:
                args.append(WKTNode("OPERATIONACCURACY", [self._num(op.accuracy)]))
            return WKTNode(
                "COORDINATEOPERATION", args + self._ids(op, always=True) + self._remark(op)
            )
        raise self._unrepresentable(type(op).__name__)

    # WKT1

    def _wkt1_node(self, obj: Any) -> WKTNode:
        if isinstance(obj, CRS):
            return self._wkt1_crs(obj)
        if isinstance(obj, Ellipsoid):
            return self._spheroid(obj)
        if isinstance(obj, PrimeMeridian):
            return self._wkt1_primem(obj)
        if isinstance(obj, (GeodeticReferenceFrame, DatumEnsemble)) and (
            not isinstance(obj, DatumEnsemble) or obj.is_geodetic
        ):
            return self._wkt1_datum(obj)
        raise self._unrepresentable(type(obj).__name__)

    def _authority(self, obj: IdentifiedObject) -> List[WKTNode]:
        if self.esri or not obj.identifiers:
            return []
        ident = obj.identifiers[0]
        return [WKTNode("AUTHORITY", [ident.authority, ident.code])]

    def _wkt1_unit(self, unit: Unit) -> WKTNode:
        if self.esri:
            return WKTNode("UNIT", [esri_unit_name(unit), self._num(unit.conversion_factor)])
        args: List[Any] = [unit.name, self._num(unit.conversion_factor)]
        if unit.authority and unit.code:
            args.append(WKTNode("AUTHORITY", [unit.authority, unit.code]))
        return WKTNode("UNIT", args)

    def _spheroid(self, ellipsoid: Ellipsoid) -> WKTNode:
        name = esri_name(ellipsoid, self.registry) if self.esri else ellipsoid.name
        args = [
            name,
            self._num(METRE.from_si(ellipsoid.unit.to_si(ellipsoid.semi_major_axis))),
            self._num(ellipsoid.computed_inverse_flattening),
        ]
        return WKTNode("SPHEROID", args + self._authority(ellipsoid))

    def _wkt1_primem(self, pm: PrimeMeridian) -> WKTNode:
        name = esri_name(pm, self.registry) if self.esri else pm.name
        return WKTNode("PRIMEM", [name, self._num(pm.longitude_degrees)] + self._authority(pm))

    def _wkt1_datum(self, datum: Any, towgs84: Optional[Iterable[float]] = None) -> WKTNode:
        if self.esri:
            name = esri_datum_name(datum, self.registry)
        else:
            name = gdal_datum_name(datum, self.registry)
        args: List[Any] = [name, self._spheroid(datum.ellipsoid)]
        if towgs84 is not None:
            values = list(towgs84)
            values += [0.0] * (7 - len(values))
            args.append(WKTNode("TOWGS84", [self._num(v) for v in values]))
        return WKTNode("DATUM", args + self._authority(datum))

    def _write_wkt1_axes(self, cs: CoordinateSystem, default_order: bool) -> bool:
        if self.output_axis == "YES":
            return True
        if self.output_axis == "NO" or self.esri:
            return False
        return not default_order

    def _wkt1_axes(self, cs: CoordinateSystem) -> List[WKTNode]:
        nodes = []
        for axis in cs.axes:
            direction = _GEOCENTRIC_WKT1_DIRECTIONS.get(axis.direction.lower(), axis.direction.upper())
            nodes.append(WKTNode("AXIS", [_WKT1_AXIS_NAMES.get(axis.name, axis.name), Word(direction)]))
        return nodes

    def _wkt1_crs(self, crs: CRS, towgs84: Optional[Iterable[float]] = None) -> WKTNode:
        if isinstance(crs, OtherCRS):
            return self._other_crs(crs)
        if isinstance(crs, BoundCRS):
            return self._wkt1_bound_crs(crs)
        if isinstance(crs, GeographicCRS):
            return self._geogcs(crs, towgs84)
        if isinstance(crs, GeodeticCRS):
            if not crs.is_geocentric:
                raise self._unrepresentable(f"geodetic CRS {crs.name}")
            return self._geoccs(crs, towgs84)
        if isinstance(crs, ProjectedCRS):
            return self._projcs(crs, towgs84)
        if isinstance(crs, VerticalCRS):
            return self._vert_cs(crs)
        if isinstance(crs, CompoundCRS):
            args = [crs.name] + [self._wkt1_crs(c) for c in crs.components]
            return WKTNode("COMPD_CS", args + self._authority(crs))
        if isinstance(crs, EngineeringCRS):
            return self._local_cs(crs)
        raise self._unrepresentable(f"{type(crs).__name__} {crs.name}")

    def _wkt1_bound_crs(self, crs: BoundCRS) -> WKTNode:
        if self.esri:
            raise self._unrepresentable(f"bound CRS {crs.name}")
        values = helmert_parameters(crs.transformation)
        if values is None or not is_wgs84(crs.hub_crs):
            raise self._unrepresentable(
                f"bound CRS {crs.name} whose transformation is not a Helmert transformation to WGS 84"
            )
        if not isinstance(crs.base_crs, (GeographicCRS, GeodeticCRS, ProjectedCRS)):
            raise self._unrepresentable(f"bound CRS {crs.name} with a {type(crs.base_crs).__name__} base")
        return self._wkt1_crs(crs.base_crs, values)

    def _geogcs(self, crs: GeographicCRS, towgs84: Optional[Iterable[float]] = None) -> WKTNode:
        if crs.is_3d:
            raise self._unrepresentable(f"3D geographic CRS {crs.name}")
        cs = crs.coordinate_system
        name = esri_geographic_crs_name(crs, self.registry) if self.esri else crs.name
        args: List[Any] = [
            name,
            self._wkt1_datum(crs.datum, towgs84),
            self._wkt1_primem(crs.prime_meridian),
            self._wkt1_unit(cs.axes[0].unit),
        ]
        if self._write_wkt1_axes(cs, is_lat_lon_order(cs)):
            args += self._wkt1_axes(cs)
        return WKTNode("GEOGCS", args + self._authority(crs))

    def _geoccs(self, crs: GeodeticCRS, towgs84: Optional[Iterable[float]] = None) -> WKTNode:
        cs = crs.coordinate_system
        args: List[Any] = [
            crs.name,
            self._wkt1_datum(crs.datum, towgs84),
            self._wkt1_primem(crs.prime_meridian),
            self._wkt1_unit(cs.axes[0].unit),
        ]
        if self._write_wkt1_axes(cs, cs.directions == ("geocentricx", "geocentricy", "geocentricz")):
            args += self._wkt1_axes(cs)
        return WKTNode("GEOCCS", args + self._authority(crs))

    def _wkt1_conversion(self, crs: ProjectedCRS) -> List[WKTNode]:
        conversion = crs.deriving_conversion
        mapping = conversion.method.mapping if conversion.method is not None else None
        if self.esri and mapping is not None and mapping.code == mm.MERCATOR_VARIANT_A:
            # ESRI Mercator is defined by a standard parallel
            try:
                conversion = conversion.convert_to_other_method(mm.MERCATOR_VARIANT_B)
                mapping = conversion.method.mapping
            except ValueError as e:
                log.debug(f"keeping Mercator variant A for {crs.name}: {e}")
        if mapping is None or not mapping.is_projection:
            raise self._unrepresentable(f"projection {conversion.method.name if conversion.method else None}")
        projection = (mapping.esri_name if self.esri else mapping.wkt1_name) or mapping.name.replace(" ", "_")
        angular = crs.base_crs.coordinate_system.axes[0].unit
        linear = crs.coordinate_system.axes[0].unit
        nodes = [WKTNode("PROJECTION", [projection])]
        for param in conversion.parameters:
            pm = mm.param_mapping(mapping, param.name, param.code)
            if param.value is None:
                raise self._unrepresentable(f"file parameter {param.name}")
            if pm is not None:
                name = (pm.esri_name if self.esri else pm.wkt1_name) or param.name.replace(" ", "_")
                unit_type = pm.unit_type
            else:
                name, unit_type = param.name.replace(" ", "_"), param.unit.unit_type
            if unit_type == UnitType.ANGULAR:
                value = param.value_in(angular)
            elif unit_type == UnitType.LINEAR:
                value = param.value_in(linear)
            else:
                value = param.value
            nodes.append(WKTNode("PARAMETER", [name, self._num(value)]))
        return nodes

    def _projcs(self, crs: ProjectedCRS, towgs84: Optional[Iterable[float]] = None) -> WKTNode:
        cs = crs.coordinate_system
        if not isinstance(crs.base_crs, GeographicCRS):
            raise self._unrepresentable(f"projected CRS {crs.name} on a non geographic base")
        name = esri_name(crs, self.registry) if self.esri else crs.name
        args: List[Any] = [name, self._geogcs(crs.base_crs, towgs84)]
        args += self._wkt1_conversion(crs)
        args.append(self._wkt1_unit(cs.axes[0].unit))
        if self._write_wkt1_axes(cs, is_east_north_order(cs)):
            args += self._wkt1_axes(cs)
        return WKTNode("PROJCS", args + self._authority(crs))

    def _vert_cs(self, crs: VerticalCRS) -> WKTNode:
        cs = crs.coordinate_system
        if self.esri:
            args: List[Any] = [
                esri_name(crs, self.registry),
                WKTNode("VDATUM", [esri_name(crs.datum, self.registry)]),
                WKTNode("PARAMETER", ["Vertical_Shift", self._num(0.0)]),
                WKTNode("PARAMETER", ["Direction", self._num(1.0)]),
                self._wkt1_unit(cs.axes[0].unit),
            ]
            return WKTNode("VERTCS", args)
        datum = WKTNode("VERT_DATUM", [crs.datum.name, Word(_GDAL_VERT_DATUM_TYPE)] + self._authority(crs.datum))
        args = [crs.name, datum, self._wkt1_unit(cs.axes[0].unit)]
        if self._write_wkt1_axes(cs, cs.directions == ("up",)):
            args += self._wkt1_axes(cs)
        return WKTNode("VERT_CS", args + self._authority(crs))

    def _local_cs(self, crs: EngineeringCRS) -> WKTNode:
        args: List[Any] = [crs.name]
        if crs.datum is not None:
            datum: EngineeringDatum = crs.datum
            args.append(WKTNode("LOCAL_DATUM", [datum.name, Word(_GDAL_LOCAL_DATUM_TYPE)] + self._authority(datum)))
        if crs.coordinate_system is not None:
            args.append(self._wkt1_unit(crs.coordinate_system.axes[0].unit))
            args += self._wkt1_axes(crs.coordinate_system)
        return WKTNode("LOCAL_CS", args + self._authority(crs))


def to_wkt(
    obj: Any,
    dialect: WKTDialect = WKTDialect.WKT2_2018,
    options: Optional[Union[Mapping[str, Any], Iterable[str]]] = None,
    registry: Optional[RegistryInterface] = None,
) -> str:
    """
    Write an object as WKT.

    Args:
        obj: A CRS, datum, ellipsoid, prime meridian or coordinate operation
        dialect: The WKT dialect
        options: Formatting options, see `WKTFormatter`
        registry: The registry providing WKT1 name spellings, if any

    Returns:
        The WKT text

    Raises:
        FormattingOptionError: If an option is invalid
        UnrepresentableError: If the object cannot be written in the dialect

    Examples:
        >>> from crskit.constructs.crs import WGS84
        >>> to_wkt(WGS84, WKTDialect.WKT1_GDAL, ["MULTILINE=NO"])[:15]
        'GEOGCS["WGS 84"'
    """
    return WKTFormatter(dialect, options, registry).format(obj)
