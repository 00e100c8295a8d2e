from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Dict, List, NamedTuple, Optional, Tuple

from crskit.constructs.common import (
    IdentifiedObject,
    Identifier,
    ObjectUsage,
    is_close,
    normalise_name,
)
from crskit.utils import method_mappings as mm
from crskit.utils.units import (
    ARC_SECOND,
    DEGREE,
    METRE,
    PARTS_PER_MILLION,
    UNITY,
    Unit,
    UnitType,
)

if TYPE_CHECKING:
    from crskit.registry.registry_interface import RegistryInterface

log = logging.getLogger(__name__)


class GridUsage(NamedTuple):
    """
    A grid file needed by an operation, with what the registry knows about it.

    Attributes:
        short_name: The file name referenced by the operation parameter
        full_name: The file name to look for on disk (may differ from the short name)
        package_name: The name of the distribution package shipping the grid
        url: Where to download the grid or its package
        direct_download: Whether the url points to a directly downloadable file
        open_license: Whether the grid is openly licensed
        available: Whether the grid was found locally
    """

    short_name: str
    full_name: str
    package_name: str
    url: str
    direct_download: bool
    open_license: bool
    available: bool


@dataclass(frozen=True, kw_only=True)
class OperationMethod(IdentifiedObject):
    @property
    def mapping(self) -> Optional[mm.MethodMapping]:
        found = mm.method_by_code(self.code) if self.authority == "EPSG" else None
        return found or mm.method_by_name(self.name)

    @property
    def is_inverse(self) -> bool:
        return self.name.startswith(mm.INVERSE_PREFIX)

    @property
    def is_proj_based(self) -> bool:
        return self.name.startswith(mm.PROJ_BASED_METHOD_PREFIX)

    def _equivalent(self, other: OperationMethod) -> bool:
        if self.is_proj_based or other.is_proj_based:
            return self.name == other.name
        if self.is_inverse != other.is_inverse:
            return False
        a, b = self.mapping, other.mapping
        if a is not None and b is not None:
            return a is b
        return normalise_name(self.name) == normalise_name(other.name)


@dataclass(frozen=True, kw_only=True)
class Parameter(IdentifiedObject):
    """
    A parameter value of an operation: a number with its unit, or an opaque string
    (typically a grid file name). Exactly one of the two is set.

    Attributes:
        value: The numeric value, expressed in `unit`
        unit: The unit of the numeric value
        string_value: The string value, for file references and other opaque values
    """

    value: Optional[float] = None
    unit: Optional[Unit] = None
    string_value: Optional[str] = None

    def __post_init__(self):
        super().__post_init__()
        if (self.value is None) == (self.string_value is None):
            raise ValueError(
                f"parameter {self.name} needs exactly one of a numeric value and a string value"
            )
        if self.value is not None and self.unit is None:
            object.__setattr__(self, "unit", UNITY)

    @property
    def si_value(self) -> Optional[float]:
        if self.value is None:
            return None
        return self.unit.to_si(self.value)

    def value_in(self, unit: Unit) -> float:
        return unit.from_si(self.si_value)

    def matches(self, other: Parameter) -> bool:
        if self.authority == "EPSG" and other.authority == "EPSG":
            return self.code == other.code
        return normalise_name(self.name) == normalise_name(other.name)

    def _equivalent(self, other: Parameter) -> bool:
        if not self.matches(other):
            return False
        if self.string_value is not None or other.string_value is not None:
            return self.string_value == other.string_value
        return is_close(self.si_value, other.si_value)


def _parameters_equivalent(a: Tuple[Parameter, ...], b: Tuple[Parameter, ...]) -> bool:
    if len(a) != len(b):
        return False
    for p in a:
        q = next((q for q in b if p.matches(q)), None)
        if q is None or not p.is_equivalent_to(q):
            return False
    return True


@dataclass(frozen=True, kw_only=True)
class CoordinateOperation(ObjectUsage):
    """
    Base of conversions, transformations and concatenated operations.

    Attributes:
        method: The operation method
        parameters: The parameter values, in method order
        source_crs: The source CRS, if bound
        target_crs: The target CRS, if bound
    """

    method: Optional[OperationMethod] = None
    parameters: Tuple[Parameter, ...] = ()
    source_crs: Optional[Any] = None
    target_crs: Optional[Any] = None

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(self, "parameters", tuple(self.parameters))

    @property
    def parameter_count(self) -> int:
        return len(self.parameters)

    def parameter(self, index: int) -> Optional[Parameter]:
        if 0 <= index < len(self.parameters):
            return self.parameters[index]
        return None

    def parameter_index(
        self, name: str, authority: Optional[str] = None, code: Optional[str] = None
    ) -> int:
        """
        Find the position of a parameter by code (when an authority is given) or by name.

        Returns:
            The parameter index, or -1 if the operation has no such parameter
        """
        for i, p in enumerate(self.parameters):
            if authority is not None and code is not None:
                if p.has_identifier(authority, code):
                    return i
            elif normalise_name(p.name) == normalise_name(name):
                return i
        return -1

    def parameter_value(self, code: str, unit: Optional[Unit] = None) -> Optional[float]:
        for p in self.parameters:
            if p.has_identifier("EPSG", code):
                if p.value is None:
                    return None
                return p.value_in(unit) if unit is not None else p.value
        return None

    @property
    def grids(self) -> Tuple[str, ...]:
        """
        The grid file names referenced by the operation parameters.
        """
        names = []
        for p in self.parameters:
            if p.string_value is not None and _is_file_parameter(p):
                names.append(p.string_value)
        return tuple(names)

    def grids_used(self, registry: RegistryInterface) -> List[GridUsage]:
        """
        Describe the grids needed by the operation using the registry grid metadata.

        Grids unknown to the registry are reported with empty metadata and as unavailable.
        """
        usages = []
        for grid in self.grids:
            info = registry.grid_info(grid)
            if info is None:
                usages.append(GridUsage(grid, "", "", "", False, False, False))
            else:
                usages.append(info)
        return usages

    def is_instantiable(self, registry: RegistryInterface) -> bool:
        """
        Whether the operation can be run: every grid it needs is available locally and it
        has a PROJ string representation.
        """
        from crskit.codecs.proj_string.formatter import to_proj_string
        from crskit.utils.exceptions import UnrepresentableError

        if not all(g.available for g in self.grids_used(registry)):
            return False
        try:
            to_proj_string(self)
        except UnrepresentableError:
            return False
        return True

    def _crs_equivalent(self, other: CoordinateOperation) -> bool:
        for mine, theirs in ((self.source_crs, other.source_crs), (self.target_crs, other.target_crs)):
            if mine is not None and theirs is not None and not mine.is_equivalent_to(theirs):
                return False
        return True


def _is_file_parameter(p: Parameter) -> bool:
    if p.authority == "EPSG":
        for method in mm.METHODS:
            mapping = method.param_by_code(p.code)
            if mapping is not None:
                return mapping.is_file
    return "file" in p.name.lower()


def _inverse_name(name: str) -> str:
    if name.startswith(mm.INVERSE_PREFIX):
        return name[len(mm.INVERSE_PREFIX) :]
    return mm.INVERSE_PREFIX + name


def _inverse_method(method: Optional[OperationMethod]) -> Optional[OperationMethod]:
    if method is None:
        return None
    if method.is_inverse:
        stripped = method.name[len(mm.INVERSE_PREFIX) :]
        found = mm.method_by_name(stripped)
        if found is not None:
            return make_method(found)
        return OperationMethod(name=stripped)
    return OperationMethod(name=mm.INVERSE_PREFIX + method.name)


@dataclass(frozen=True, kw_only=True)
class Conversion(CoordinateOperation):
    """
    A datum-preserving coordinate operation, typically a map projection.

    Conversions carry no accuracy figure.
    """

    @property
    def accuracy(self) -> Optional[float]:
        return None

    @property
    def method_code(self) -> Optional[str]:
        return self.method.code if self.method is not None else None

    def inverse(self) -> Conversion:
        return replace(
            self,
            name=_inverse_name(self.name),
            identifiers=(),
            method=_inverse_method(self.method),
            source_crs=self.target_crs,
            target_crs=self.source_crs,
        )

    def convert_to_other_method(
        self, new_method_code: Optional[str] = None, new_method_name: Optional[str] = None
    ) -> Conversion:
        """
        Re-express the conversion with another method of the same projection family.

        Supported re-expressions are Mercator variant A <-> variant B, Lambert Conic
        Conformal 2SP -> 1SP, and Lambert Conic Conformal 1SP -> 2SP when the scale factor
        is 1. Converting to the conversion's own method returns the conversion unchanged.

        Args:
            new_method_code: The EPSG code of the target method
            new_method_name: The EPSG name of the target method, used when no code is given

        Returns:
            A conversion equivalent to this one, using the target method

        Raises:
            ValueError: If neither code nor name is given, the target method is unknown, the
                re-expression is not supported, or the ellipsoid needed for it is unknown
        """
        if not new_method_code and not new_method_name:
            raise ValueError("a method code or a method name is needed")
        target = (
            mm.method_by_code(new_method_code)
            if new_method_code
            else mm.method_by_name(new_method_name)
        )
        if target is None:
            raise ValueError(
                f"unknown method {new_method_code or new_method_name}"
            )
        current = self.method.mapping if self.method is not None else None
        if current is not None and current.code == target.code:
            return self
        if current is None:
            raise ValueError(f"conversion {self.name} uses an unknown method")

        pair = (current.code, target.code)
        if pair not in _RE_EXPRESSIONS:
            raise ValueError(
                f"cannot convert {current.name} to {target.name}"
            )
        ellipsoid = _ellipsoid_of(self.source_crs)
        if ellipsoid is None:
            raise ValueError(
                f"conversion {self.name} has no source CRS with an ellipsoid"
            )
        values = _RE_EXPRESSIONS[pair](self, ellipsoid)
        return conversion_from_mapping(
            target,
            values,
            name=self.name,
            identifiers=(),
            source_crs=self.source_crs,
            target_crs=self.target_crs,
            angular_unit=_unit_of_type(self, UnitType.ANGULAR, DEGREE),
            linear_unit=_unit_of_type(self, UnitType.LINEAR, METRE),
        )

    def _equivalent(self, other: Conversion) -> bool:
        if not _methods_equivalent(self.method, other.method):
            code = self.method.code if self.method is not None else None
            if code is None or other.method is None or other.method.mapping is None:
                return False
            try:
                other = other.convert_to_other_method(new_method_code=code)
            except ValueError:
                return False
        return _parameters_equivalent(self.parameters, other.parameters)


def _methods_equivalent(a: Optional[OperationMethod], b: Optional[OperationMethod]) -> bool:
    if a is None or b is None:
        return a is b
    return a.is_equivalent_to(b)


@dataclass(frozen=True, kw_only=True)
class Transformation(CoordinateOperation):
    """
    A coordinate operation between two CRS based on different datums.

    Attributes:
        accuracy: The positional accuracy in metres, or None when unknown
    """

    accuracy: Optional[float] = None

    def __post_init__(self):
        super().__post_init__()
        if self.source_crs is None or self.target_crs is None:
            raise ValueError(f"transformation {self.name} needs a source and a target CRS")
        if self.accuracy is not None and self.accuracy < 0:
            raise ValueError(f"transformation {self.name} has a negative accuracy")

    @property
    def method_code(self) -> Optional[str]:
        return self.method.code if self.method is not None else None

    def inverse(self) -> Transformation:
        """
        Build the inverse transformation.

        Helmert-family and offset methods are inverted by negating their parameters; other
        methods keep their parameters and get an "Inverse of" method.
        """
        mapping = self.method.mapping if self.method is not None else None
        negatable = mapping is not None and (
            mapping.code in mm.HELMERT_FAMILY
            or mapping.code in (mm.GEOGRAPHIC2D_OFFSETS, mm.LONGITUDE_ROTATION, mm.VERTICAL_OFFSET)
        )
        if negatable and not self.method.is_inverse:
            params = tuple(
                replace(p, value=-p.value) if p.value is not None and p.value != 0 else p
                for p in self.parameters
            )
            method = self.method
        else:
            params = self.parameters
            method = _inverse_method(self.method)
        return replace(
            self,
            name=_inverse_name(self.name),
            identifiers=(),
            method=method,
            parameters=params,
            source_crs=self.target_crs,
            target_crs=self.source_crs,
        )

    def _equivalent(self, other: Transformation) -> bool:
        return (
            _methods_equivalent(self.method, other.method)
            and _parameters_equivalent(self.parameters, other.parameters)
            and self._crs_equivalent(other)
        )


def step_accuracy(op: CoordinateOperation) -> Optional[float]:
    if isinstance(op, Conversion):
        return 0.0
    return op.accuracy


@dataclass(frozen=True, kw_only=True)
class ConcatenatedOperation(CoordinateOperation):
    """
    An ordered chain of operations where the output CRS of each step is the input CRS of
    the next one. Nested chains are flattened.

    Attributes:
        steps: The operations, in execution order
        declared_accuracy: An accuracy recorded for the whole chain, overriding the sum of
            the step accuracies
    """

    steps: Tuple[CoordinateOperation, ...]
    declared_accuracy: Optional[float] = None

    def __post_init__(self):
        super().__post_init__()
        flat = []
        for step in self.steps:
            if isinstance(step, ConcatenatedOperation):
                flat.extend(step.steps)
            else:
                flat.append(step)
        if len(flat) < 2:
            raise ValueError(f"concatenated operation {self.name} needs at least two steps")
        for i in range(len(flat) - 1):
            out_crs, in_crs = flat[i].target_crs, flat[i + 1].source_crs
            if out_crs is None or in_crs is None:
                continue
            # a horizontal step followed by a vertical one acts on other coordinates
            if (out_crs.geodetic_crs is None) != (in_crs.geodetic_crs is None):
                continue
            if not out_crs.is_equivalent_to(in_crs):
                raise ValueError(
                    f"step {i} of {self.name} ends in {out_crs.name} but step {i + 1} starts in {in_crs.name}"
                )
        object.__setattr__(self, "steps", tuple(flat))
        if self.source_crs is None:
            object.__setattr__(self, "source_crs", flat[0].source_crs)
        if self.target_crs is None:
            object.__setattr__(self, "target_crs", flat[-1].target_crs)

    @property
    def accuracy(self) -> Optional[float]:
        if self.declared_accuracy is not None:
            return self.declared_accuracy
        total = 0.0
        for step in self.steps:
            acc = step_accuracy(step)
            if acc is None:
                return None
            total += acc
        return total

    @property
    def grids(self) -> Tuple[str, ...]:
        names = []
        for step in self.steps:
            names.extend(g for g in step.grids if g not in names)
        return tuple(names)

    def inverse(self) -> ConcatenatedOperation:
        steps = tuple(step.inverse() for step in reversed(self.steps))
        return replace(
            self,
            name=" + ".join(s.name for s in steps),
            identifiers=(),
            steps=steps,
            source_crs=self.target_crs,
            target_crs=self.source_crs,
        )

    def _equivalent(self, other: ConcatenatedOperation) -> bool:
        if len(self.steps) != len(other.steps):
            return False
        return all(a.is_equivalent_to(b) for a, b in zip(self.steps, other.steps))


def make_method(mapping: mm.MethodMapping) -> OperationMethod:
    ids = (Identifier("EPSG", mapping.code),) if mapping.code else ()
    return OperationMethod(name=mapping.name, identifiers=ids)


def make_parameter(
    mapping: mm.ParamMapping,
    value: Any,
    unit: Optional[Unit] = None,
) -> Parameter:
    ids = (Identifier("EPSG", mapping.code),) if mapping.code else ()
    if mapping.is_file or isinstance(value, str):
        return Parameter(name=mapping.name, identifiers=ids, string_value=str(value))
    return Parameter(name=mapping.name, identifiers=ids, value=float(value), unit=unit)


def default_unit_for(unit_type: UnitType, angular_unit: Unit, linear_unit: Unit) -> Unit:
    if unit_type == UnitType.ANGULAR:
        return angular_unit
    if unit_type == UnitType.LINEAR:
        return linear_unit
    return UNITY


def conversion_from_mapping(
    mapping: mm.MethodMapping,
    values: Dict[str, float],
    name: str = "unknown",
    identifiers: Tuple[Identifier, ...] = (),
    angular_unit: Unit = DEGREE,
    linear_unit: Unit = METRE,
    source_crs: Any = None,
    target_crs: Any = None,
) -> Conversion:
    """
    Build a conversion of a catalogued method from values keyed by EPSG parameter code
    (or parameter name for parameters without code). Missing values take the parameter
    default; angular and linear values are expressed in the given units.
    """
    params = []
    for pm in mapping.params:
        key = pm.code or pm.name
        value = values.get(key, pm.default)
        unit = default_unit_for(pm.unit_type, angular_unit, linear_unit)
        params.append(make_parameter(pm, value, unit))
    return Conversion(
        name=name,
        identifiers=identifiers,
        method=make_method(mapping),
        parameters=tuple(params),
        source_crs=source_crs,
        target_crs=target_crs,
    )


def helmert_parameters(transformation: CoordinateOperation) -> Optional[Tuple[float, ...]]:
    """
    Express a Helmert-family transformation as the seven TOWGS84 values (translations in
    metres, rotations in arc-seconds and scale in parts per million, position vector
    convention), or three values for a translation-only transformation.

    Returns:
        The values, or None if the method is not a Helmert-family method
    """
    mapping = transformation.method.mapping if transformation.method is not None else None
    if mapping is None or mapping.code not in mm.HELMERT_FAMILY:
        return None
    if transformation.method.is_inverse:
        return None
    tx = transformation.parameter_value("8605", METRE) or 0.0
    ty = transformation.parameter_value("8606", METRE) or 0.0
    tz = transformation.parameter_value("8607", METRE) or 0.0
    if mapping.code in (mm.GEOCENTRIC_TRANSLATIONS, mm.GEOCENTRIC_TRANSLATIONS_GEOCENTRIC):
        return (tx, ty, tz)
    rx = transformation.parameter_value("8608", ARC_SECOND) or 0.0
    ry = transformation.parameter_value("8609", ARC_SECOND) or 0.0
    rz = transformation.parameter_value("8610", ARC_SECOND) or 0.0
    ds = transformation.parameter_value("8611", PARTS_PER_MILLION) or 0.0
    if mapping.code in (mm.COORDINATE_FRAME, mm.COORDINATE_FRAME_GEOCENTRIC):
        rx, ry, rz = -rx, -ry, -rz
    return (tx, ty, tz, rx, ry, rz, ds)


def _ellipsoid_of(crs: Any):
    datum = getattr(crs, "horizontal_datum", None)
    return getattr(datum, "ellipsoid", None) if datum is not None else None


def _unit_of_type(conv: Conversion, unit_type: UnitType, default: Unit) -> Unit:
    for p in conv.parameters:
        if p.unit is not None and p.unit.unit_type == unit_type:
            return p.unit
    return default


def _value(conv: Conversion, code: str, unit: Unit, default: float = 0.0) -> float:
    v = conv.parameter_value(code, unit)
    return default if v is None else v


def _mercator_a_to_b(conv: Conversion, ellipsoid) -> Dict[str, float]:
    ang = _unit_of_type(conv, UnitType.ANGULAR, DEGREE)
    lin = _unit_of_type(conv, UnitType.LINEAR, METRE)
    if _value(conv, "8801", ang) != 0:
        raise ValueError("Mercator (variant A) with a non-zero latitude of origin has no variant B form")
    k0 = _value(conv, "8805", UNITY, 1.0)
    e2 = ellipsoid.squared_eccentricity
    if k0 > 1:
        raise ValueError(f"scale factor {k0} cannot be expressed as a standard parallel")
    lat_ts = math.asin(math.sqrt((1.0 - k0 * k0) / (1.0 - k0 * k0 * e2)))
    return {
        "8823": ang.from_si(lat_ts),
        "8802": _value(conv, "8802", ang),
        "8806": _value(conv, "8806", lin),
        "8807": _value(conv, "8807", lin),
    }


def _mercator_b_to_a(conv: Conversion, ellipsoid) -> Dict[str, float]:
    ang = _unit_of_type(conv, UnitType.ANGULAR, DEGREE)
    lin = _unit_of_type(conv, UnitType.LINEAR, METRE)
    lat_ts = ang.to_si(_value(conv, "8823", ang))
    e2 = ellipsoid.squared_eccentricity
    k0 = math.cos(lat_ts) / math.sqrt(1.0 - e2 * math.sin(lat_ts) ** 2)
    return {
        "8801": 0.0,
        "8802": _value(conv, "8802", ang),
        "8805": k0,
        "8806": _value(conv, "8806", lin),
        "8807": _value(conv, "8807", lin),
    }


def _lcc_m(phi: float, e: float) -> float:
    return math.cos(phi) / math.sqrt(1.0 - (e * math.sin(phi)) ** 2)


def _lcc_t(phi: float, e: float) -> float:
    return math.tan(math.pi / 4 - phi / 2) / (
        ((1.0 - e * math.sin(phi)) / (1.0 + e * math.sin(phi))) ** (e / 2)
    )


def _lcc_2sp_to_1sp(conv: Conversion, ellipsoid) -> Dict[str, float]:
    ang = _unit_of_type(conv, UnitType.ANGULAR, DEGREE)
    lin = _unit_of_type(conv, UnitType.LINEAR, METRE)
    a = ellipsoid.unit.to_si(ellipsoid.semi_major_axis)
    e = math.sqrt(ellipsoid.squared_eccentricity)
    phi_f = ang.to_si(_value(conv, "8821", ang))
    phi_1 = ang.to_si(_value(conv, "8823", ang))
    phi_2 = ang.to_si(_value(conv, "8824", ang))
    m1, m2 = _lcc_m(phi_1, e), _lcc_m(phi_2, e)
    t1, t2, tf = _lcc_t(phi_1, e), _lcc_t(phi_2, e), _lcc_t(phi_f, e)
    if is_close(phi_1, phi_2):
        n = math.sin(phi_1)
    else:
        n = (math.log(m1) - math.log(m2)) / (math.log(t1) - math.log(t2))
    big_f = m1 / (n * t1**n)
    r_f = a * big_f * tf**n
    phi_0 = math.asin(n)
    t0 = _lcc_t(phi_0, e)
    m0 = _lcc_m(phi_0, e)
    k0 = big_f * n * t0**n / m0
    r_0 = a * big_f * t0**n
    northing = lin.to_si(_value(conv, "8827", lin)) + r_f - r_0
    return {
        "8801": ang.from_si(phi_0),
        "8802": _value(conv, "8822", ang),
        "8805": k0,
        "8806": _value(conv, "8826", lin),
        "8807": lin.from_si(northing),
    }


def _lcc_1sp_to_2sp(conv: Conversion, ellipsoid) -> Dict[str, float]:
    ang = _unit_of_type(conv, UnitType.ANGULAR, DEGREE)
    lin = _unit_of_type(conv, UnitType.LINEAR, METRE)
    k0 = _value(conv, "8805", UNITY, 1.0)
    if not is_close(k0, 1.0):
        raise ValueError("Lambert Conic Conformal (1SP) with a scale factor other than 1 has no 2SP form")
    lat_0 = _value(conv, "8801", ang)
    return {
        "8821": lat_0,
        "8822": _value(conv, "8802", ang),
        "8823": lat_0,
        "8824": lat_0,
        "8826": _value(conv, "8806", lin),
        "8827": _value(conv, "8807", lin),
    }


_RE_EXPRESSIONS = {
    (mm.MERCATOR_VARIANT_A, mm.MERCATOR_VARIANT_B): _mercator_a_to_b,
    (mm.MERCATOR_VARIANT_B, mm.MERCATOR_VARIANT_A): _mercator_b_to_a,
    (mm.LAMBERT_CONIC_CONFORMAL_2SP, mm.LAMBERT_CONIC_CONFORMAL_1SP): _lcc_2sp_to_1sp,
    (mm.LAMBERT_CONIC_CONFORMAL_1SP, mm.LAMBERT_CONIC_CONFORMAL_2SP): _lcc_1sp_to_2sp,
}
