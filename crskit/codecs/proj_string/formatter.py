from __future__ import annotations

import logging
import math
from dataclasses import replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from crskit.codecs.proj_string.parser import Step, split_steps
from crskit.codecs.proj_string.tables import (
    PROJ_DATUMS,
    proj_datum_key,
    proj_ellipsoid_key,
    proj_prime_meridian_key,
    proj_unit_key,
)
from crskit.codecs.wkt.formatter import format_number
from crskit.constructs.common import normalise_name
from crskit.constructs.crs import (
    CRS,
    BoundCRS,
    CompoundCRS,
    GeodeticCRS,
    GeographicCRS,
    ProjectedCRS,
    VerticalCRS,
    is_wgs84,
)
from crskit.constructs.cs import CoordinateSystem, angular_unit_of, linear_unit_of
from crskit.constructs.datum import Ellipsoid
from crskit.constructs.operation import (
    ConcatenatedOperation,
    Conversion,
    CoordinateOperation,
    OperationMethod,
    helmert_parameters,
)
from crskit.registry.registry_interface import RegistryInterface
from crskit.utils import method_mappings as mm
from crskit.utils.exceptions import FormattingOptionError, UnrepresentableError
from crskit.utils.units import (
    ARC_SECOND,
    DEGREE,
    METRE,
    PARTS_PER_MILLION,
    RADIAN,
    UNITY,
    Unit,
    UnitType,
)

log = logging.getLogger(__name__)

USE_ETMERC = "USE_ETMERC"
MULTILINE = "MULTILINE"

_OPPOSITE = {"east": "west", "west": "east", "north": "south", "south": "north", "up": "down", "down": "up"}

_GEOGRAPHIC_DOMAIN_HELMERT = {mm.GEOCENTRIC_TRANSLATIONS, mm.POSITION_VECTOR, mm.COORDINATE_FRAME}
_COORDINATE_FRAME_METHODS = {mm.COORDINATE_FRAME, mm.COORDINATE_FRAME_GEOCENTRIC}

# methods whose effect is entirely carried by the source and target adaptations
_ADAPTATION_ONLY_METHODS = {
    mm.AXIS_ORDER_REVERSAL_2D,
    mm.AXIS_ORDER_REVERSAL_3D,
    mm.GEOGRAPHIC3D_TO_2D,
    mm.CHANGE_OF_VERTICAL_UNIT,
}

_DATUM_NAMES = {
    "worldgeodeticsystem1984": "WGS84",
    "wgs84": "WGS84",
    "northamericandatum1983": "NAD83",
    "northamericandatum1927": "NAD27",
}


class ProjStringStyle(Enum):
    """
    The two PROJ string styles.

    Values:
        PROJ_5: explicit pipelines, with unit conversion and axis swap steps
        PROJ_4: the flat +proj= form of CRS definitions, with +datum=, +towgs84= and +no_defs
    """

    PROJ_5 = "PROJ_5"
    PROJ_4 = "PROJ_4"


def parse_options(options: Optional[Union[Mapping[str, Any], Iterable[str]]]) -> Dict[str, str]:
    """
    Read PROJ string formatting options, given as a mapping or as "KEY=VALUE" strings.

    The only option is USE_ETMERC=YES|NO, which forces the Transverse Mercator algorithm
    tag to etmerc or tmerc (UTM zones included). MULTILINE output is not supported.

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
            pairs.append(tuple(option.split("=", 1)))
    parsed = {}
    for key, value in pairs:
        key, value = key.strip().upper(), value.strip().upper()
        if key == USE_ETMERC:
            if value not in ("YES", "NO"):
                raise FormattingOptionError(f"{key} must be YES or NO, got {value}")
        elif key == MULTILINE:
            raise FormattingOptionError(f"{key} is not supported for PROJ strings")
        else:
            raise FormattingOptionError(f"unsupported option {key}")
        parsed[key] = value
    return parsed


def simplify(steps: List[Step]) -> List[Step]:
    """
    Drop identity steps and cancel adjacent steps undoing each other.
    """
    out: List[Step] = []
    for step in steps:
        if _is_identity(step):
            continue
        if out and out[-1].inverted() == step:
            out.pop()
            continue
        out.append(step)
    return out


def _is_identity(step: Step) -> bool:
    if step.name == "noop":
        return True
    if step.name == "unitconvert":
        return step.get("xy_in") == step.get("xy_out") and step.get("z_in") == step.get("z_out")
    if step.name == "axisswap":
        order = [int(v) for v in (step.get("order") or "").split(",") if v]
        return order == list(range(1, len(order) + 1))
    return False


def render(steps: List[Step]) -> str:
    if not steps:
        return "+proj=noop"
    if len(steps) == 1 and not steps[0].inverse:
        return steps[0].to_string()
    return "+proj=pipeline " + " ".join(f"+step {s.to_string()}" for s in steps)


def _num(value: float) -> str:
    return format_number(value)


def _horizontal(crs: Any) -> Any:
    if isinstance(crs, BoundCRS):
        return _horizontal(crs.base_crs)
    if isinstance(crs, CompoundCRS):
        return _horizontal(crs.components[0])
    return crs


def _bound(crs: Any) -> Optional[BoundCRS]:
    if isinstance(crs, BoundCRS):
        return crs
    if isinstance(crs, CompoundCRS):
        return _bound(crs.components[0])
    return None


def _vertical(crs: Any) -> Optional[VerticalCRS]:
    if isinstance(crs, BoundCRS):
        return _vertical(crs.base_crs)
    if isinstance(crs, CompoundCRS):
        found = crs.vertical_crs
        return found.base_crs if isinstance(found, BoundCRS) else found
    return crs if isinstance(crs, VerticalCRS) else None


def _forward_mapping(method: Optional[OperationMethod]) -> Optional[mm.MethodMapping]:
    if method is None:
        return None
    if method.is_inverse:
        return mm.method_by_name(method.name[len(mm.INVERSE_PREFIX) :])
    return method.mapping


def utm_zone(conv: Conversion) -> Optional[Tuple[int, bool]]:
    """
    Recognise a Transverse Mercator conversion defining a UTM zone.

    Returns:
        The zone number and whether it is a southern zone, or None
    """
    mapping = _forward_mapping(conv.method)
    if mapping is None or mapping.code != mm.TRANSVERSE_MERCATOR:
        return None
    lat_0 = conv.parameter_value("8801", DEGREE)
    lon_0 = conv.parameter_value("8802", DEGREE)
    k = conv.parameter_value("8805", UNITY)
    x_0 = conv.parameter_value("8806", METRE)
    y_0 = conv.parameter_value("8807", METRE)
    if None in (lat_0, lon_0, k, x_0, y_0):
        return None
    if lat_0 != 0 or not math.isclose(k, 0.9996) or x_0 != 500000 or y_0 not in (0, 10000000):
        return None
    zone = (lon_0 + 183.0) / 6.0
    if not zone.is_integer() or not 1 <= zone <= 60:
        return None
    return int(zone), y_0 == 10000000


class ProjStringFormatter:
    """
    Write CRS and coordinate operations as PROJ strings.

    In the PROJ_5 style a CRS is written as the steps leading from its canonical space
    (longitude/latitude in radians, easting/northing or geocentric X/Y/Z in metres) to its
    own axis order and units, and an operation as the steps leading from the source CRS
    coordinates to the target CRS coordinates. Adjacent steps undoing each other are
    cancelled. The PROJ_4 style writes a single flat CRS definition.

    Args:
        style: The output style
        options: Formatting options, see `parse_options`
        registry: The registry providing the PROJ spelling of datums, if any
    """

    def __init__(
        self,
        style: ProjStringStyle = ProjStringStyle.PROJ_5,
        options: Optional[Union[Mapping[str, Any], Iterable[str]]] = None,
        registry: Optional[RegistryInterface] = None,
    ):
        self.style = style
        self.options = parse_options(options)
        self.registry = registry

    def format(self, obj: Any) -> str:
        if isinstance(obj, CRS):
            if self.style == ProjStringStyle.PROJ_4:
                return self._proj4_crs(obj)
            return render(simplify(self._crs_steps(obj)))
        if isinstance(obj, CoordinateOperation):
            if obj.method is not None and obj.method.is_proj_based:
                return obj.method.name[len(mm.PROJ_BASED_METHOD_PREFIX) :]
            if self.style == ProjStringStyle.PROJ_4:
                return self._proj4_operation(obj)
            return render(simplify(self._operation_steps(obj)))
        raise UnrepresentableError(f"{type(obj).__name__} has no PROJ string representation")

    # PROJ_5 CRS export

    def _crs_steps(self, crs: CRS) -> List[Step]:
        return self._definition(crs) + self._adaptation(crs)

    def _definition(self, crs: CRS) -> List[Step]:
        if isinstance(crs, BoundCRS):
            steps = self._definition(crs.base_crs)
            if not steps:
                raise UnrepresentableError(f"bound CRS {crs.name} has no geodetic base")
            extra = self._bound_params(crs)
            return [replace(steps[0], params=steps[0].params + extra)] + steps[1:]
        if isinstance(crs, CompoundCRS):
            return self._definition(crs.components[0])
        if isinstance(crs, GeographicCRS):
            return [Step("longlat", self._ellipsoid_params(crs.ellipsoid) + self._pm_params(crs))]
        if isinstance(crs, GeodeticCRS):
            return [Step("cart", self._ellipsoid_params(crs.ellipsoid) + self._pm_params(crs))]
        if isinstance(crs, ProjectedCRS):
            return [self._projection_step(crs.conversion, crs.base_crs)]
        if isinstance(crs, VerticalCRS):
            return []
        raise UnrepresentableError(f"{type(crs).__name__} {crs.name} has no PROJ string representation")

    def _adaptation(self, crs: CRS) -> List[Step]:
        """
        Steps leading from the canonical space of a CRS to its axis order and units.
        """
        if isinstance(crs, BoundCRS):
            return self._adaptation(crs.base_crs)
        if isinstance(crs, CompoundCRS):
            steps = self._adaptation(crs.components[0])
            vertical = _vertical(crs)
            if vertical is not None:
                steps.extend(self._adaptation(vertical))
            return steps
        cs = crs.coordinate_system
        if isinstance(crs, GeographicCRS):
            params = []
            unit = angular_unit_of(cs)
            if not unit.is_equivalent_to(RADIAN):
                params += [("xy_in", "rad"), ("xy_out", self._unit_key(unit))]
            if crs.is_3d:
                height_unit = linear_unit_of(cs)
                if not height_unit.is_equivalent_to(METRE):
                    params += [("z_in", "m"), ("z_out", self._unit_key(height_unit))]
            steps = [Step("unitconvert", tuple(params))] if params else []
            return steps + self._axisswap(cs, ("east", "north", "up"))
        if isinstance(crs, GeodeticCRS):
            unit = linear_unit_of(cs)
            if unit.is_equivalent_to(METRE):
                return []
            key = self._unit_key(unit)
            return [Step("unitconvert", (("xy_in", "m"), ("xy_out", key), ("z_in", "m"), ("z_out", key)))]
        if isinstance(crs, ProjectedCRS):
            steps = []
            unit = linear_unit_of(cs)
            if not unit.is_equivalent_to(METRE):
                steps.append(Step("unitconvert", (("xy_in", "m"), ("xy_out", self._unit_key(unit)))))
            canonical = ("east", "north", "up")
            if crs.conversion.method is not None and crs.conversion.method.has_identifier("EPSG", "9808"):
                canonical = ("west", "south", "up")
            return steps + self._axisswap(cs, canonical)
        if isinstance(crs, VerticalCRS):
            unit = linear_unit_of(cs)
            if unit.is_equivalent_to(METRE):
                return []
            return [Step("unitconvert", (("z_in", "m"), ("z_out", self._unit_key(unit))))]
        raise UnrepresentableError(f"{type(crs).__name__} {crs.name} has no PROJ string representation")

    def _axisswap(self, cs: CoordinateSystem, canonical: Tuple[str, ...]) -> List[Step]:
        order = []
        for direction in cs.directions:
            if direction in canonical:
                order.append(canonical.index(direction) + 1)
            elif _OPPOSITE.get(direction) in canonical:
                order.append(-(canonical.index(_OPPOSITE[direction]) + 1))
            else:
                raise UnrepresentableError(f"axis direction {direction} has no PROJ string representation")
        if len(order) == 3 and order[2] == 3:
            order = order[:2]
        if order == list(range(1, len(order) + 1)):
            return []
        return [Step("axisswap", (("order", ",".join(str(o) for o in order)),))]

    def _unit_key(self, unit: Unit) -> str:
        return proj_unit_key(unit) or _num(unit.conversion_factor)

    def _ellipsoid_params(self, ellipsoid: Ellipsoid) -> Tuple[Tuple[str, str], ...]:
        key = proj_ellipsoid_key(ellipsoid)
        if key is not None:
            return (("ellps", key),)
        a = METRE.from_si(ellipsoid.unit.to_si(ellipsoid.semi_major_axis))
        if ellipsoid.is_sphere:
            return (("R", _num(a)),)
        if ellipsoid.semi_minor_axis is not None:
            b = METRE.from_si(ellipsoid.unit.to_si(ellipsoid.semi_minor_axis))
            return (("a", _num(a)), ("b", _num(b)))
        return (("a", _num(a)), ("rf", _num(ellipsoid.inverse_flattening)))

    def _pm_params(self, crs: GeodeticCRS) -> Tuple[Tuple[str, str], ...]:
        longitude = crs.prime_meridian.longitude_degrees
        if longitude == 0:
            return ()
        return (("pm", proj_prime_meridian_key(longitude) or _num(longitude)),)

    def _bound_params(self, crs: BoundCRS) -> Tuple[Tuple[str, str], ...]:
        if not is_wgs84(crs.hub_crs):
            raise UnrepresentableError(f"bound CRS {crs.name} has a hub other than WGS 84")
        transformation = crs.transformation
        values = helmert_parameters(transformation)
        if values is not None:
            return (("towgs84", ",".join(_num(v) for v in values)),)
        mapping = _forward_mapping(transformation.method)
        if mapping is not None and mapping.code in (mm.NTV1, mm.NTV2) and transformation.grids:
            if not transformation.method.is_inverse:
                return (("nadgrids", transformation.grids[0]),)
        raise UnrepresentableError(
            f"transformation {transformation.name} of bound CRS {crs.name} has no PROJ string equivalent"
        )

    def _projection_step(self, conv: Conversion, base_crs: Optional[Any]) -> Step:
        """
        The forward projection step of a conversion, with the ellipsoid of its base CRS.
        """
        mapping = _forward_mapping(conv.method)
        if mapping is None or not mapping.is_projection or mapping.proj_name is None:
            method_name = conv.method.name if conv.method is not None else "none"
            raise UnrepresentableError(f"conversion method {method_name} has no PROJ string equivalent")
        datum_params: Tuple[Tuple[str, str], ...] = ()
        geodetic = base_crs.geodetic_crs if base_crs is not None else None
        if geodetic is not None:
            datum_params = self._ellipsoid_params(geodetic.ellipsoid) + self._pm_params(geodetic)

        if mapping.code == mm.TRANSVERSE_MERCATOR:
            etmerc = self.options.get(USE_ETMERC)
            zone = utm_zone(conv)
            if etmerc is None and zone is not None:
                params = [("zone", str(zone[0]))]
                if zone[1]:
                    params.append(("south", None))
                return Step("utm", tuple(params) + datum_params)
            name = "etmerc" if etmerc == "YES" else "tmerc"
        else:
            name = mapping.proj_name

        params: List[Tuple[str, Optional[str]]] = []
        if mapping.code == "9808":
            params.append(("axis", "wsu"))
        if mapping.code == mm.LAMBERT_CONIC_CONFORMAL_1SP:
            params.append(("lat_1", _num(self._param(conv, mapping.params[0]))))
        if mapping.code == mm.POLAR_STEREOGRAPHIC_VARIANT_B:
            params.append(("lat_0", "90" if self._param(conv, mapping.params[0]) >= 0 else "-90"))
        for pm in mapping.params:
            if pm.proj_key is None:
                continue
            params.append((pm.proj_key, _num(self._param(conv, pm))))
        return Step(name, tuple(params) + datum_params)

    def _param(self, conv: Conversion, pm: mm.ParamMapping) -> float:
        unit = {UnitType.ANGULAR: DEGREE, UnitType.LINEAR: METRE}.get(pm.unit_type, UNITY)
        for p in conv.parameters:
            if p.value is None:
                continue
            if (pm.code and p.has_identifier("EPSG", pm.code)) or any(
                s and normalise_name(s) == normalise_name(p.name) for s in (pm.name, pm.wkt1_name)
            ):
                return p.value_in(unit)
        return pm.default

    # PROJ_5 operation export

    def _operation_steps(self, op: CoordinateOperation) -> List[Step]:
        if isinstance(op, ConcatenatedOperation):
            steps = []
            for step in op.steps:
                steps.extend(self._operation_steps(step))
            return steps
        if op.method is not None and op.method.is_proj_based:
            return split_steps(op.method.name[len(mm.PROJ_BASED_METHOD_PREFIX) :])[0]
        mapping = _forward_mapping(op.method)
        if mapping is None:
            method_name = op.method.name if op.method is not None else "none"
            raise UnrepresentableError(f"operation {op.name} uses method {method_name} with no PROJ string equivalent")
        with_projection = not mapping.is_projection
        source = self._endpoint(op.source_crs, with_projection)
        target = self._endpoint(op.target_crs, with_projection)
        inverse_source = [s.inverted() for s in reversed(source)]
        return inverse_source + self._core(op, mapping) + target

    def _endpoint(self, crs: Optional[CRS], with_projection: bool) -> List[Step]:
        if crs is None:
            return []
        horizontal = _horizontal(crs)
        steps = []
        if with_projection and isinstance(horizontal, ProjectedCRS):
            steps.append(self._projection_step(horizontal.conversion, horizontal.base_crs))
        return steps + self._adaptation(crs)

    def _core(self, op: CoordinateOperation, mapping: mm.MethodMapping) -> List[Step]:
        """
        The algorithmic steps of a single operation, between the canonical spaces of its
        source and target CRS.
        """
        inverse = op.method.is_inverse
        source, target = (op.target_crs, op.source_crs) if inverse else (op.source_crs, op.target_crs)
        code = mapping.code
        if mapping.is_projection:
            steps = [self._projection_step(op, source)]
        elif code in mm.HELMERT_FAMILY:
            steps = [self._helmert_step(op, mapping)]
            if code in _GEOGRAPHIC_DOMAIN_HELMERT:
                steps.insert(0, Step("cart", self._ellipsoid_params(self._ellipsoid_of(source, op))))
                steps.append(Step("cart", self._ellipsoid_params(self._ellipsoid_of(target, op)), inverse=True))
        elif code in mm.GRID_METHODS:
            grids = op.grids
            if not grids:
                raise UnrepresentableError(f"operation {op.name} references no grid")
            grid = grids[0]
            if code == mm.NADCON:
                for ext in (".las", ".los"):
                    if grid.endswith(ext):
                        grid = grid[: -len(ext)]
            steps = [Step("hgridshift", (("grids", grid),))]
        elif code in (mm.GEOGRAPHIC2D_OFFSETS, mm.LONGITUDE_ROTATION):
            params = []
            if code == mm.GEOGRAPHIC2D_OFFSETS:
                params.append(("dlat", _num(op.parameter_value("8601", ARC_SECOND) or 0.0)))
            params.append(("dlon", _num(op.parameter_value("8602", ARC_SECOND) or 0.0)))
            if all(float(v) == 0 for _, v in params):
                return []
            steps = [Step("geogoffset", tuple(params))]
        elif code == mm.VERTICAL_OFFSET:
            offset = op.parameter_value("8603", METRE) or 0.0
            if offset == 0:
                return []
            steps = [Step("geogoffset", (("dh", _num(offset)),))]
        elif code == mm.GEOGRAPHIC_GEOCENTRIC:
            if isinstance(_horizontal(source), GeodeticCRS) and _horizontal(source).is_geocentric:
                steps = [Step("cart", self._ellipsoid_params(self._ellipsoid_of(target, op)), inverse=True)]
            else:
                steps = [Step("cart", self._ellipsoid_params(self._ellipsoid_of(source, op)))]
        elif code in _ADAPTATION_ONLY_METHODS:
            if op.source_crs is not None and op.target_crs is not None:
                return []
            if code == mm.CHANGE_OF_VERTICAL_UNIT:
                factor = op.parameter_value("1051", UNITY) or 1.0
                return [Step("unitconvert", (("z_in", "m"), ("z_out", _num(1.0 / factor))))]
            if code == mm.GEOGRAPHIC3D_TO_2D:
                return []
            return [Step("axisswap", (("order", "2,1"),))]
        else:
            raise UnrepresentableError(f"operation {op.name} uses method {mapping.name} with no PROJ string equivalent")
        if inverse:
            steps = [s.inverted() for s in reversed(steps)]
        return steps

    def _ellipsoid_of(self, crs: Optional[CRS], op: CoordinateOperation) -> Ellipsoid:
        geodetic = crs.geodetic_crs if crs is not None else None
        if geodetic is None:
            raise UnrepresentableError(f"operation {op.name} needs geodetic source and target CRS")
        return geodetic.ellipsoid

    def _helmert_step(self, op: CoordinateOperation, mapping: mm.MethodMapping) -> Step:
        params = [
            ("x", _num(op.parameter_value("8605", METRE) or 0.0)),
            ("y", _num(op.parameter_value("8606", METRE) or 0.0)),
            ("z", _num(op.parameter_value("8607", METRE) or 0.0)),
        ]
        if len(mapping.params) == 7:
            params += [
                ("rx", _num(op.parameter_value("8608", ARC_SECOND) or 0.0)),
                ("ry", _num(op.parameter_value("8609", ARC_SECOND) or 0.0)),
                ("rz", _num(op.parameter_value("8610", ARC_SECOND) or 0.0)),
                ("s", _num(op.parameter_value("8611", PARTS_PER_MILLION) or 0.0)),
            ]
            convention = "coordinate_frame" if mapping.code in _COORDINATE_FRAME_METHODS else "position_vector"
            params.append(("convention", convention))
        return Step("helmert", tuple(params))

    # PROJ_4 export

    def _proj4_crs(self, crs: CRS) -> str:
        bound = _bound(crs)
        extra = self._bound_params(bound) if bound is not None else ()
        horizontal = _horizontal(crs)
        vertical = _vertical(crs)
        if isinstance(horizontal, GeographicCRS):
            words = ["+proj=longlat"] + self._proj4_datum(horizontal, extra)
        elif isinstance(horizontal, GeodeticCRS):
            words = ["+proj=geocent"] + self._proj4_datum(horizontal, extra) + self._proj4_units(horizontal)
        elif isinstance(horizontal, ProjectedCRS):
            words = self._proj4_projected(horizontal, extra)
        elif isinstance(horizontal, VerticalCRS):
            words = []
        else:
            raise UnrepresentableError(f"{type(crs).__name__} {crs.name} has no PROJ string representation")
        if vertical is not None:
            unit = linear_unit_of(vertical.coordinate_system)
            key = proj_unit_key(unit)
            words.append(f"+vunits={key}" if key else f"+vto_meter={_num(unit.conversion_factor)}")
        words.append("+no_defs")
        return " ".join(words)

    def _proj4_projected(self, crs: ProjectedCRS, extra: Tuple[Tuple[str, str], ...]) -> List[str]:
        mapping = _forward_mapping(crs.conversion.method)
        if mapping is not None and mapping.code == "1024":
            lon_0 = self._param(crs.conversion, mapping.params[1])
            x_0 = self._param(crs.conversion, mapping.params[2])
            y_0 = self._param(crs.conversion, mapping.params[3])
            return [
                "+proj=merc",
                "+a=6378137",
                "+b=6378137",
                "+lat_ts=0",
                f"+lon_0={_num(lon_0)}",
                f"+x_0={_num(x_0)}",
                f"+y_0={_num(y_0)}",
                "+k=1",
                "+units=m",
                "+nadgrids=@null",
                "+wktext",
            ]
        step = self._projection_step(crs.conversion, None)
        words = [f"+proj={step.name}"]
        words += [f"+{k}" if v is None else f"+{k}={v}" for k, v in step.params]
        return words + self._proj4_datum(crs.base_crs, extra) + self._proj4_units(crs)

    def _proj4_datum(self, crs: GeodeticCRS, extra: Tuple[Tuple[str, str], ...]) -> List[str]:
        words = []
        key = self._proj_datum_key(crs.datum)
        if key is not None and not extra:
            words.append(f"+datum={key}")
        else:
            words += [f"+{k}={v}" for k, v in self._ellipsoid_params(crs.ellipsoid)]
        words += [f"+{k}={v}" for k, v in self._pm_params(crs)]
        words += [f"+{k}={v}" for k, v in extra]
        return words

    def _proj_datum_key(self, datum: Any) -> Optional[str]:
        if self.registry is not None:
            alias = self.registry.alias(datum, "PROJ")
            if alias in PROJ_DATUMS:
                return alias
        key = proj_datum_key(datum)
        if key is not None:
            return key
        key = _DATUM_NAMES.get(normalise_name(datum.name))
        if key is not None and proj_ellipsoid_key(datum.ellipsoid) == PROJ_DATUMS[key].ellps:
            return key
        log.debug(f"datum {datum.name} has no +datum= spelling, writing its ellipsoid")
        return None

    def _proj4_units(self, crs: CRS) -> List[str]:
        unit = linear_unit_of(crs.coordinate_system)
        key = proj_unit_key(unit)
        if key is not None:
            return [f"+units={key}"]
        return [f"+to_meter={_num(unit.conversion_factor)}"]

    def _proj4_operation(self, op: CoordinateOperation) -> str:
        if not isinstance(op, Conversion):
            raise UnrepresentableError(f"{type(op).__name__} {op.name} has no flat PROJ string representation")
        if op.method is None or op.method.is_inverse:
            raise UnrepresentableError(f"conversion {op.name} has no flat PROJ string representation")
        source = op.source_crs
        return self._projection_step(op, source).to_string()


def to_proj_string(
    obj: Any,
    style: ProjStringStyle = ProjStringStyle.PROJ_5,
    options: Optional[Union[Mapping[str, Any], Iterable[str]]] = None,
    registry: Optional[RegistryInterface] = None,
) -> str:
    """
    Write a CRS or a coordinate operation as a PROJ string.

    Args:
        obj: The CRS or operation
        style: PROJ_5 for pipelines, PROJ_4 for flat CRS definitions
        options: Formatting options, see `parse_options`
        registry: The registry providing the PROJ spelling of datums, if any

    Returns:
        The PROJ string

    Raises:
        FormattingOptionError: If an option is invalid
        UnrepresentableError: If the object has no representation in the style

    Examples:
        >>> from crskit.constructs.crs import WGS84
        >>> to_proj_string(WGS84, ProjStringStyle.PROJ_4)
        '+proj=longlat +datum=WGS84 +no_defs'
    """
    return ProjStringFormatter(style, options, registry).format(obj)
