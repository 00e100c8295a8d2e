from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Tuple

from crskit.codecs.proj_string.tables import (
    PROJ_ANGULAR_UNITS,
    PROJ_DATUMS,
    PROJ_ELLIPSOIDS,
    PROJ_LINEAR_UNITS,
    PROJ_PRIME_MERIDIANS,
    datum_from_table,
    ellipsoid_from_table,
)
from crskit.constructs.common import Identifier
from crskit.constructs.crs import (
    WGS84,
    BoundCRS,
    CompoundCRS,
    GeodeticCRS,
    GeographicCRS,
    ProjectedCRS,
    VerticalCRS,
    bound_crs_to_wgs84,
)
from crskit.constructs.cs import (
    Axis,
    CoordinateSystem,
    CSKind,
    cartesian_easting_northing,
    ellipsoidal_2d_lon_lat,
    ellipsoidal_height_axis,
    geocentric_xyz,
    vertical_gravity_up,
)
from crskit.constructs.datum import (
    GREENWICH,
    WGS84_DATUM,
    Ellipsoid,
    GeodeticReferenceFrame,
    PrimeMeridian,
    VerticalReferenceFrame,
)
from crskit.constructs.operation import (
    Conversion,
    OperationMethod,
    Transformation,
    conversion_from_mapping,
    make_method,
    make_parameter,
)
from crskit.registry.registry_interface import Category, RegistryInterface
from crskit.utils import method_mappings as mm
from crskit.utils.exceptions import NotFoundError, ProjStringParseError
from crskit.utils.units import DEGREE, METRE, RADIAN, Unit, UnitType, make_unit

log = logging.getLogger(__name__)

GEOGRAPHIC_NAMES = {"longlat", "latlong", "lonlat", "latlon"}
GEOCENTRIC_NAMES = {"geocent", "cart"}

# operations PROJ knows that carry no CRS meaning on their own
OPERATION_NAMES = {
    "pipeline",
    "noop",
    "helmert",
    "hgridshift",
    "vgridshift",
    "unitconvert",
    "axisswap",
    "geogoffset",
    "molodensky",
    "deformation",
    "affine",
    "push",
    "pop",
    "set",
}

# keys describing the datum or the output units rather than the projection
_CRS_KEYS = {
    "proj",
    "datum",
    "ellps",
    "a",
    "b",
    "rf",
    "f",
    "R",
    "pm",
    "towgs84",
    "nadgrids",
    "units",
    "to_meter",
    "vunits",
    "vto_meter",
    "axis",
    "no_defs",
    "wktext",
    "type",
    "zone",
    "south",
    "over",
}

PROJ_BASED_CONVERSION_NAME = "PROJ-based coordinate operation"


@dataclass(frozen=True)
class Step:
    """
    One operation of a PROJ string.

    Attributes:
        name: The +proj= value
        params: The other parameters, in order, with None for flags such as +south
        inverse: Whether the step runs in the inverse direction
    """

    name: str
    params: Tuple[Tuple[str, Optional[str]], ...] = ()
    inverse: bool = False

    def has(self, key: str) -> bool:
        return any(k == key for k, _ in self.params)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        for k, v in self.params:
            if k == key:
                return v
        return default

    @property
    def keys(self) -> List[str]:
        return [k for k, _ in self.params]

    def to_string(self) -> str:
        words = ["+inv"] if self.inverse else []
        words.append(f"+proj={self.name}")
        for k, v in self.params:
            words.append(f"+{k}" if v is None else f"+{k}={v}")
        return " ".join(words)

    def inverted(self) -> Step:
        """
        The step undoing this one. Unit conversions and axis swaps are inverted by
        rewriting their parameters, other steps by toggling the inverse flag.
        """
        if self.name == "unitconvert" and not self.inverse:
            swap = {"xy_in": "xy_out", "xy_out": "xy_in", "z_in": "z_out", "z_out": "z_in"}
            order = ("xy_in", "xy_out", "z_in", "z_out")
            params = [(swap.get(k, k), v) for k, v in self.params]
            params.sort(key=lambda kv: order.index(kv[0]) if kv[0] in order else len(order))
            return replace(self, params=tuple(params))
        if self.name == "axisswap" and not self.inverse and self.has("order"):
            order = [int(v) for v in self.get("order").split(",")]
            inv = [0] * len(order)
            for j, o in enumerate(order):
                inv[abs(o) - 1] = (j + 1) if o > 0 else -(j + 1)
            return replace(self, params=(("order", ",".join(str(i) for i in inv)),))
        return replace(self, inverse=not self.inverse)


def tokenize(text: str) -> List[Tuple[str, Optional[str]]]:
    """
    Split a PROJ string into (key, value) pairs. The leading '+' of each word is optional.

    Examples:
        >>> tokenize("+proj=utm +zone=31 +south")
        [('proj', 'utm'), ('zone', '31'), ('south', None)]
    """
    tokens = []
    for word in text.split():
        if word.startswith("+"):
            word = word[1:]
        if not word:
            continue
        key, sep, value = word.partition("=")
        if not key:
            raise ProjStringParseError(f"malformed word {word!r}")
        tokens.append((key, value if sep else None))
    return tokens


def split_steps(text: str) -> Tuple[List[Step], bool]:
    """
    Split a PROJ string into its steps.

    Returns:
        The steps and whether the string is an explicit pipeline

    Raises:
        ProjStringParseError: If the string is empty or a step has no +proj=
    """
    tokens = tokenize(text)
    if not tokens:
        raise ProjStringParseError("empty PROJ string")
    if ("proj", "pipeline") not in tokens:
        return [_make_step(tokens)], False

    globals_: List[Tuple[str, Optional[str]]] = []
    groups: List[List[Tuple[str, Optional[str]]]] = []
    for key, value in tokens:
        if key == "proj" and value == "pipeline":
            continue
        if key == "step":
            groups.append([])
        elif groups:
            groups[-1].append((key, value))
        else:
            globals_.append((key, value))
    if not groups:
        raise ProjStringParseError("pipeline without any step")
    steps = []
    for group in groups:
        present = {k for k, _ in group}
        group.extend((k, v) for k, v in globals_ if k not in present)
        steps.append(_make_step(group))
    return steps, True


def _make_step(tokens: List[Tuple[str, Optional[str]]]) -> Step:
    name = None
    inverse = False
    params = []
    for key, value in tokens:
        if key == "proj":
            if name is not None:
                raise ProjStringParseError(f"step declares +proj twice: {name} and {value}")
            name = value
        elif key == "inv":
            inverse = True
        else:
            params.append((key, value))
    if not name:
        raise ProjStringParseError("missing +proj= in step")
    return Step(name, tuple(params), inverse)


class ProjStringParser:
    """
    Build model objects from PROJ strings.

    Flat strings describing a geographic, geocentric or projected CRS and pipelines shaped
    like the CRS export of the formatter (a definition step followed by unit conversion
    and axis swap steps) give CRS. Any other well-formed string gives a conversion whose
    method records the string verbatim.

    Args:
        text: The PROJ string
        registry: When given, +datum= values are resolved to the registered datums
    """

    def __init__(self, text: str, registry: Optional[RegistryInterface] = None):
        self.text = text.strip()
        self.registry = registry

    def parse(self) -> Any:
        try:
            return self._parse()
        except ProjStringParseError:
            raise
        except (ValueError, TypeError, IndexError) as e:
            raise ProjStringParseError(f"invalid PROJ string {self.text!r}: {e}") from e

    def _parse(self) -> Any:
        steps, is_pipeline = split_steps(self.text)
        if not is_pipeline:
            step = steps[0]
            if step.inverse:
                return self._proj_based(steps)
            crs = self._crs_from_step(step, pipeline=False)
            if crs is not None:
                return crs
            return self._proj_based(steps)
        crs = self._crs_from_pipeline(steps)
        if crs is not None:
            return crs
        return self._proj_based(steps)

    def _proj_based(self, steps: List[Step]) -> Conversion:
        for step in steps:
            if step.name not in OPERATION_NAMES and not self._is_crs_name(step):
                raise ProjStringParseError(f"unknown PROJ operation {step.name}")
        return Conversion(
            name=PROJ_BASED_CONVERSION_NAME,
            method=OperationMethod(name=mm.PROJ_BASED_METHOD_PREFIX + self.text),
        )

    def _is_crs_name(self, step: Step) -> bool:
        return (
            step.name in GEOGRAPHIC_NAMES
            or step.name in GEOCENTRIC_NAMES
            or mm.method_by_proj_name(step.name, step.keys) is not None
        )

    # CRS definitions

    def _crs_from_step(self, step: Step, pipeline: bool) -> Any:
        if step.name in GEOGRAPHIC_NAMES:
            crs = self._geographic_crs(step, pipeline)
        elif step.name in GEOCENTRIC_NAMES:
            crs = self._geocentric_crs(step)
        elif self._is_crs_name(step):
            crs = self._projected_crs(step, pipeline)
        else:
            return None
        if pipeline:
            return crs
        return self._wrap(crs, step)

    def _crs_from_pipeline(self, steps: List[Step]) -> Any:
        first = steps[0]
        if first.inverse or not self._is_crs_name(first):
            return None
        rest = steps[1:]
        if len(rest) > 2 or any(s.inverse or s.name not in ("unitconvert", "axisswap") for s in rest):
            return None
        if [s.name for s in rest] not in ([], ["unitconvert"], ["axisswap"], ["unitconvert", "axisswap"]):
            return None
        crs = self._crs_from_step(first, pipeline=True)
        for step in rest:
            if step.name == "unitconvert":
                crs = self._apply_unitconvert(crs, step)
            else:
                crs = self._apply_axisswap(crs, step)
        return crs

    def _apply_unitconvert(self, crs: Any, step: Step) -> Any:
        cs = crs.coordinate_system
        xy_out = step.get("xy_out")
        if xy_out is not None:
            cs = cs.with_unit(self._unit(xy_out, cs.axes[0].unit.unit_type))
        z_out = step.get("z_out")
        if z_out is not None:
            if isinstance(crs, GeographicCRS) and cs.axis_count == 2:
                cs = replace(cs, axes=cs.axes + (ellipsoidal_height_axis(),))
            unit = self._unit(z_out, UnitType.LINEAR)
            cs = replace(cs, axes=cs.axes[:2] + tuple(replace(a, unit=unit) for a in cs.axes[2:]))
        return replace(crs, coordinate_system=cs)

    def _apply_axisswap(self, crs: Any, step: Step) -> Any:
        cs = crs.coordinate_system
        order = [int(v) for v in (step.get("order") or "").split(",") if v]
        if not order:
            raise ProjStringParseError("axisswap without +order")
        axes = list(cs.axes)
        if len(order) == 3 and len(axes) == 2 and isinstance(crs, GeographicCRS):
            axes.append(ellipsoidal_height_axis())
        if max(abs(o) for o in order) > len(axes):
            raise ProjStringParseError(f"axisswap order {step.get('order')} exceeds the axis count")
        swapped = [_flipped(axes[abs(o) - 1]) if o < 0 else axes[abs(o) - 1] for o in order]
        swapped.extend(axes[len(order) :])
        return replace(crs, coordinate_system=replace(cs, axes=tuple(swapped)))

    def _geographic_crs(self, step: Step, pipeline: bool) -> GeographicCRS:
        unit = RADIAN if pipeline else DEGREE
        cs = ellipsoidal_2d_lon_lat(unit)
        if step.has("axis"):
            cs = self._axis_order(cs, step.get("axis"))
        return GeographicCRS(name="unknown", datum=self._datum(step), coordinate_system=cs)

    def _geocentric_crs(self, step: Step) -> GeodeticCRS:
        return GeodeticCRS(
            name="unknown",
            datum=self._datum(step),
            coordinate_system=geocentric_xyz(self._linear_unit(step)),
        )

    def _projected_crs(self, step: Step, pipeline: bool) -> ProjectedCRS:
        if self._is_pseudo_mercator_hack(step):
            base = GeographicCRS(name="unknown", datum=WGS84_DATUM, coordinate_system=ellipsoidal_2d_lon_lat())
            mapping = mm.method_by_code("1024")
            conversion = conversion_from_mapping(mapping, {}, name="unknown")
            return ProjectedCRS(
                name="unknown",
                base_crs=base,
                conversion=conversion,
                coordinate_system=cartesian_easting_northing(),
            )
        base = GeographicCRS(
            name="unknown", datum=self._datum(step), coordinate_system=ellipsoidal_2d_lon_lat()
        )
        conversion = self._conversion(step)
        unit = METRE if pipeline else self._linear_unit(step)
        cs = cartesian_easting_northing(unit)
        if step.has("axis"):
            cs = self._axis_order(cs, step.get("axis"))
        return ProjectedCRS(name="unknown", base_crs=base, conversion=conversion, coordinate_system=cs)

    def _is_pseudo_mercator_hack(self, step: Step) -> bool:
        return (
            step.name == "merc"
            and step.get("nadgrids") == "@null"
            and step.get("a") == step.get("b")
            and step.get("a") is not None
            and float(step.get("a")) == 6378137.0
        )

    def _conversion(self, step: Step) -> Conversion:
        if step.name == "utm":
            return self._utm_conversion(step)
        if step.name == "stere" and not step.has("lat_ts") and abs(self._float(step, "lat_0", 0.0)) == 90.0:
            mapping = mm.method_by_code("9810")
        else:
            mapping = mm.method_by_proj_name(step.name, step.keys)
        if mapping is None:
            raise ProjStringParseError(f"unknown projection {step.name}")
        values: Dict[str, float] = {}
        for pm in mapping.params:
            key = pm.code or pm.name
            if pm.proj_key is None:
                continue
            synonyms = (pm.proj_key, "k_0", "k") if pm.proj_key in ("k", "k_0") else (pm.proj_key,)
            for proj_key in synonyms:
                if step.has(proj_key):
                    values[key] = self._float(step, proj_key)
                    break
        if mapping.code == "9819":
            values.setdefault("8818", 78.5)
            values.setdefault("1036", 30.28813972222222)
        return conversion_from_mapping(mapping, values, name="unknown")

    def _utm_conversion(self, step: Step) -> Conversion:
        zone_text = step.get("zone")
        if zone_text is None:
            raise ProjStringParseError("+proj=utm needs +zone")
        zone = int(zone_text)
        if not 1 <= zone <= 60:
            raise ProjStringParseError(f"invalid UTM zone {zone}")
        south = step.has("south")
        values = {
            "8801": 0.0,
            "8802": zone * 6.0 - 183.0,
            "8805": 0.9996,
            "8806": 500000.0,
            "8807": 10000000.0 if south else 0.0,
        }
        hemisphere = "S" if south else "N"
        code = str((16100 if south else 16000) + zone)
        return conversion_from_mapping(
            mm.method_by_code(mm.TRANSVERSE_MERCATOR),
            values,
            name=f"UTM zone {zone}{hemisphere}",
            identifiers=(Identifier("EPSG", code),),
        )

    def _axis_order(self, cs: CoordinateSystem, letters: str) -> CoordinateSystem:
        by_letter = {}
        for axis in cs.axes:
            by_letter[axis.direction[0]] = axis
        axes = []
        for letter in letters:
            opposite = {"e": "w", "w": "e", "n": "s", "s": "n", "u": "d", "d": "u"}.get(letter)
            if opposite is None:
                raise ProjStringParseError(f"invalid +axis={letters}")
            if letter in by_letter:
                axes.append(by_letter[letter])
            elif opposite in by_letter:
                axes.append(_flipped(by_letter[opposite]))
            elif letter in "ud" and cs.kind == CSKind.ELLIPSOIDAL:
                axes.append(ellipsoidal_height_axis() if letter == "u" else _flipped(ellipsoidal_height_axis()))
            else:
                raise ProjStringParseError(f"invalid +axis={letters}")
        return replace(cs, axes=tuple(axes))

    # datums and units

    def _datum(self, step: Step) -> GeodeticReferenceFrame:
        pm = self._prime_meridian(step)
        key = step.get("datum")
        if key is not None:
            if key not in PROJ_DATUMS:
                raise ProjStringParseError(f"unknown datum {key}")
            datum = self._registered_datum(key)
        else:
            ellipsoid = self._ellipsoid(step)
            if ellipsoid is None:
                datum = WGS84_DATUM
            else:
                datum = GeodeticReferenceFrame(name="unknown", ellipsoid=ellipsoid, prime_meridian=GREENWICH)
        if pm is not GREENWICH:
            datum = replace(datum, name="unknown", identifiers=(), prime_meridian=pm)
        return datum

    def _registered_datum(self, key: str) -> Any:
        if self.registry is not None:
            try:
                return self.registry.lookup("EPSG", PROJ_DATUMS[key].epsg_code, Category.DATUM)
            except NotFoundError:
                log.debug(f"datum {key} is not registered, using the built-in definition")
        return datum_from_table(key)

    def _ellipsoid(self, step: Step) -> Optional[Ellipsoid]:
        key = step.get("ellps")
        if key is not None:
            if key not in PROJ_ELLIPSOIDS:
                raise ProjStringParseError(f"unknown ellipsoid {key}")
            return ellipsoid_from_table(key)
        if step.has("R"):
            return Ellipsoid(name="unknown", semi_major_axis=self._float(step, "R"), inverse_flattening=0.0)
        if not step.has("a"):
            return None
        a = self._float(step, "a")
        if step.has("rf"):
            return Ellipsoid(name="unknown", semi_major_axis=a, inverse_flattening=self._float(step, "rf"))
        if step.has("b"):
            b = self._float(step, "b")
            if b == a:
                return Ellipsoid(name="unknown", semi_major_axis=a, inverse_flattening=0.0)
            return Ellipsoid(name="unknown", semi_major_axis=a, semi_minor_axis=b)
        if step.has("f"):
            f = self._float(step, "f")
            return Ellipsoid(name="unknown", semi_major_axis=a, inverse_flattening=1.0 / f if f else 0.0)
        return Ellipsoid(name="unknown", semi_major_axis=a, inverse_flattening=0.0)

    def _prime_meridian(self, step: Step) -> PrimeMeridian:
        value = step.get("pm")
        if value is None:
            return GREENWICH
        if value in PROJ_PRIME_MERIDIANS:
            if value == "greenwich":
                return GREENWICH
            return PrimeMeridian(name=value.capitalize(), longitude=PROJ_PRIME_MERIDIANS[value], unit=DEGREE)
        try:
            longitude = float(value)
        except ValueError:
            raise ProjStringParseError(f"unknown prime meridian {value}")
        if longitude == 0:
            return GREENWICH
        return PrimeMeridian(name="unknown", longitude=longitude, unit=DEGREE)

    def _linear_unit(self, step: Step, units_key: str = "units", factor_key: str = "to_meter") -> Unit:
        if step.has(units_key):
            return self._unit(step.get(units_key), UnitType.LINEAR)
        if step.has(factor_key):
            factor = self._float(step, factor_key)
            return make_unit("unknown", factor, UnitType.LINEAR, METRE)
        return METRE

    def _unit(self, key: str, unit_type: UnitType) -> Unit:
        table = PROJ_ANGULAR_UNITS if unit_type == UnitType.ANGULAR else PROJ_LINEAR_UNITS
        if key in table:
            return table[key]
        try:
            factor = float(key)
        except ValueError:
            raise ProjStringParseError(f"unknown unit {key}")
        return make_unit("unknown", factor, unit_type, RADIAN if unit_type == UnitType.ANGULAR else METRE)

    def _float(self, step: Step, key: str, default: Optional[float] = None) -> float:
        value = step.get(key)
        if value is None:
            if default is None:
                raise ProjStringParseError(f"+{key} needs a value")
            return default
        try:
            return float(value)
        except ValueError:
            raise ProjStringParseError(f"+{key}={value} is not a number")

    # bound and compound wrappers

    def _wrap(self, crs: Any, step: Step) -> Any:
        for key in step.keys:
            if key not in _CRS_KEYS and not self._is_projection_key(step, key):
                log.debug(f"ignoring +{key} in {step.name}")
        if step.has("towgs84"):
            values = [float(v) for v in step.get("towgs84").split(",")]
            if len(values) not in (3, 7):
                raise ProjStringParseError(f"+towgs84 needs 3 or 7 values, got {len(values)}")
            crs = bound_crs_to_wgs84(crs, values)
        elif step.has("nadgrids") and not self._is_pseudo_mercator_hack(step):
            crs = self._grid_bound_crs(crs, step.get("nadgrids"))
        if step.has("vunits") or step.has("vto_meter"):
            unit = self._linear_unit(step, "vunits", "vto_meter")
            vertical = VerticalCRS(
                name="unknown",
                datum=VerticalReferenceFrame(name="unknown"),
                coordinate_system=vertical_gravity_up(unit),
            )
            crs = CompoundCRS(name="unknown", components=(crs, vertical))
        return crs

    def _is_projection_key(self, step: Step, key: str) -> bool:
        mapping = mm.method_by_proj_name(step.name, step.keys)
        if mapping is None:
            return False
        return key in ("k", "k_0") or any(pm.proj_key == key for pm in mapping.params)

    def _grid_bound_crs(self, crs: Any, grids: str) -> BoundCRS:
        source = crs.geodetic_crs
        mapping = mm.method_by_code(mm.NTV2)
        transformation = Transformation(
            name=f"{source.name} to WGS 84",
            method=make_method(mapping),
            parameters=(make_parameter(mapping.params[0], grids.lstrip("@")),),
            source_crs=source,
            target_crs=WGS84,
        )
        return BoundCRS(name=crs.name, base_crs=crs, hub_crs=WGS84, transformation=transformation)


def _flipped(axis: Axis) -> Axis:
    opposite = {"east": "west", "west": "east", "north": "south", "south": "north", "up": "down", "down": "up"}
    direction = opposite.get(axis.direction.lower(), axis.direction)
    names = {"Easting": "Westing", "Northing": "Southing", "Westing": "Easting", "Southing": "Northing"}
    return replace(axis, name=names.get(axis.name, axis.name), direction=direction)


def from_proj_string(text: str, registry: Optional[RegistryInterface] = None) -> Any:
    """
    Build a CRS or an operation from a PROJ string.

    Args:
        text: A flat PROJ string ("+proj=longlat +datum=WGS84 +no_defs") or a pipeline
        registry: An optional registry used to resolve +datum= values

    Returns:
        A CRS when the string describes one, otherwise a conversion carrying the string

    Raises:
        ProjStringParseError: If the string is malformed or names an unknown operation
    """
    return ProjStringParser(text, registry).parse()
