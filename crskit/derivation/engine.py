"""Derivation of the coordinate operations converting between two CRS.

The search works on the geodetic CRS underlying both endpoints:
- bound CRS are resolved through their hub when the other endpoint shares the hub datum
- compound CRS are split into their horizontal and vertical components, and the
  operations found for each part are joined
- projected CRS contribute the inverse or forward of their projection around the core
- operations registered between the geodetic CRS (in either direction) are used directly
- otherwise, or when an allow-list asks for it, operations are composed through pivots
- a null offset is the last resort between CRS based on different datums
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Optional

from crskit.constructs.area import AreaOfUse
from crskit.constructs.common import Identifier
from crskit.constructs.crs import (
    CRS,
    BoundCRS,
    CompoundCRS,
    GeodeticCRS,
    GeographicCRS,
    ObjectType,
    ProjectedCRS,
    VerticalCRS,
    is_crs,
)
from crskit.constructs.cs import is_lat_lon_order, linear_unit_of
from crskit.constructs.operation import (
    ConcatenatedOperation,
    Conversion,
    CoordinateOperation,
    OperationMethod,
    Transformation,
    make_method,
    make_parameter,
    step_accuracy,
)
from crskit.derivation.context import (
    DerivationContext,
    GridAvailabilityPolicy,
    PivotPolicy,
    SpatialCriterion,
)
from crskit.derivation.result import DerivationResult
from crskit.registry.registry_interface import RegistryInterface
from crskit.utils import method_mappings as mm
from crskit.utils.units import ARC_SECOND, METRE, UNITY

log = logging.getLogger(__name__)

Steps = List[CoordinateOperation]


def same_datum(a: GeodeticCRS, b: GeodeticCRS) -> bool:
    return a.datum.is_equivalent_to(b.datum)


def same_crs(a: CRS, b: CRS) -> bool:
    """
    Whether two CRS are equivalent and lay out their coordinates in the same axis order.
    """
    if not a.is_equivalent_to(b):
        return False
    if a.coordinate_system is None or b.coordinate_system is None:
        return True
    return a.coordinate_system.same_axis_order(b.coordinate_system)


def _domain(crs: GeodeticCRS) -> str:
    if isinstance(crs, GeographicCRS):
        return "geog3D" if crs.is_3d else "geog2D"
    return "geocentric"


def cs_conversion(source: GeodeticCRS, target: GeodeticCRS) -> Optional[Conversion]:
    """
    Build the conversion between two geodetic CRS of the same datum that only differ by
    their coordinate system.

    Returns:
        The conversion, or None if the coordinate systems cannot be converted
    """
    name = f"Conversion from {source.name} ({_domain(source)}) to {target.name} ({_domain(target)})"
    if isinstance(source, GeographicCRS) and isinstance(target, GeographicCRS):
        if source.is_3d != target.is_3d:
            mapping = mm.method_by_code(mm.GEOGRAPHIC3D_TO_2D)
            if source.is_3d:
                method = make_method(mapping)
            else:
                method = OperationMethod(name=mm.INVERSE_PREFIX + mapping.name)
        else:
            code = mm.AXIS_ORDER_REVERSAL_3D if source.is_3d else mm.AXIS_ORDER_REVERSAL_2D
            method = make_method(mm.method_by_code(code))
            if is_lat_lon_order(source.coordinate_system) != is_lat_lon_order(target.coordinate_system):
                name = "axis order change (geographic3D horizontal)" if source.is_3d else "axis order change (2D)"
    elif source.is_geocentric != target.is_geocentric:
        method = make_method(mm.method_by_code(mm.GEOGRAPHIC_GEOCENTRIC))
    else:
        return None
    return Conversion(name=name, method=method, source_crs=source, target_crs=target)


def _zero_parameters(mapping: mm.MethodMapping, unit) -> tuple:
    return tuple(make_parameter(pm, 0.0, unit) for pm in mapping.params)


def null_geographic_offset(source: GeodeticCRS, target: GeodeticCRS) -> CoordinateOperation:
    """
    Build the operation leaving coordinates unchanged between two geodetic CRS: a
    transformation of unknown accuracy between different datums, a conversion otherwise.
    """
    if source.is_geocentric and target.is_geocentric:
        mapping = mm.method_by_code(mm.GEOCENTRIC_TRANSLATIONS_GEOCENTRIC)
        name = f"Ballpark geocentric translation from {source.name} to {target.name}"
        params = _zero_parameters(mapping, METRE)
    else:
        mapping = mm.method_by_code(mm.GEOGRAPHIC2D_OFFSETS)
        name = f"Null geographic offset from {source.name} to {target.name}"
        params = _zero_parameters(mapping, ARC_SECOND)
    if same_datum(source, target):
        return Conversion(
            name=name, method=make_method(mapping), parameters=params, source_crs=source, target_crs=target
        )
    return Transformation(
        name=name, method=make_method(mapping), parameters=params, source_crs=source, target_crs=target
    )


def ballpark_vertical(source: CRS, target: CRS) -> CoordinateOperation:
    """
    Build the fallback operation between two vertical CRS: a change of unit when they
    share their datum, a zero vertical offset of unknown accuracy otherwise.
    """
    if isinstance(source, VerticalCRS) and isinstance(target, VerticalCRS):
        if source.datum.is_equivalent_to(target.datum):
            mapping = mm.method_by_code(mm.CHANGE_OF_VERTICAL_UNIT)
            factor = (
                linear_unit_of(source.coordinate_system).conversion_factor
                / linear_unit_of(target.coordinate_system).conversion_factor
            )
            return Conversion(
                name=f"Change of vertical unit from {source.name} to {target.name}",
                method=make_method(mapping),
                parameters=(make_parameter(mapping.params[0], factor, UNITY),),
                source_crs=source,
                target_crs=target,
            )
    mapping = mm.method_by_code(mm.VERTICAL_OFFSET)
    return Transformation(
        name=f"Ballpark vertical transformation from {source.name} to {target.name}",
        method=make_method(mapping),
        parameters=_zero_parameters(mapping, METRE),
        source_crs=source,
        target_crs=target,
    )


def combine_horizontal_vertical(
    horizontal: CoordinateOperation, vertical: CoordinateOperation, source: CRS, target: CRS
) -> Optional[CoordinateOperation]:
    """
    Join a horizontal and a vertical operation into one operation between compound CRS.

    The accuracy of the result is the sum of both accuracies, unknown if either is.

    Returns:
        The operation, or None when the areas of use of both parts do not overlap
    """
    area = horizontal.area_of_use
    if area is None:
        area = vertical.area_of_use
    elif vertical.area_of_use is not None:
        area = area.intersection(vertical.area_of_use)
        if area is None:
            log.debug(f"dropping {horizontal.name} + {vertical.name}: areas do not overlap")
            return None
    return ConcatenatedOperation(
        name=f"{horizontal.name} + {vertical.name}",
        steps=(horizontal, vertical),
        source_crs=source,
        target_crs=target,
        area_of_use=area,
    )


def _horizontal_part(crs: CRS) -> CRS:
    if isinstance(crs, CompoundCRS):
        return crs.horizontal_crs
    return crs


def _projection(crs: ProjectedCRS) -> Conversion:
    return replace(crs.conversion, source_crs=crs.base_crs, target_crs=crs)


def _unproject(crs: CRS) -> Steps:
    horizontal = _horizontal_part(crs)
    if isinstance(horizontal, ProjectedCRS):
        return [_projection(horizontal).inverse()]
    return []


def _project(crs: CRS) -> Steps:
    horizontal = _horizontal_part(crs)
    if isinstance(horizontal, ProjectedCRS):
        return [_projection(horizontal)]
    return []


def _cs_steps(source: GeodeticCRS, target: GeodeticCRS) -> Optional[Steps]:
    if same_crs(source, target):
        return []
    if not same_datum(source, target):
        return None
    conv = cs_conversion(source, target)
    return [conv] if conv is not None else None


def compose(steps: Steps, source: CRS, target: CRS) -> Optional[CoordinateOperation]:
    """
    Turn a chain of steps into one operation.

    The area of use of a chain is the intersection of the areas of its transformation
    steps; conversions do not restrict it.

    Returns:
        The operation, or None when the step areas do not overlap
    """
    if not steps:
        return null_geographic_offset(source.geodetic_crs, target.geodetic_crs)
    if len(steps) == 1:
        return steps[0]
    area = None
    for step in steps:
        if isinstance(step, Conversion) or step.area_of_use is None:
            continue
        if area is None:
            area = step.area_of_use
            continue
        area = area.intersection(step.area_of_use)
        if area is None:
            log.debug(f"dropping {' + '.join(s.name for s in steps)}: step areas do not overlap")
            return None
    return ConcatenatedOperation(
        name=" + ".join(s.name for s in steps),
        steps=tuple(steps),
        area_of_use=area,
    )


def rank_operations(operations: List[CoordinateOperation]) -> List[CoordinateOperation]:
    """
    Sort operations by accuracy, known accuracies first and ties kept in their original
    order, then drop the operations equivalent to a better ranked one.
    """

    def key(i: int):
        acc = step_accuracy(operations[i])
        return (acc is None, acc if acc is not None else 0.0, i)

    ranked: List[CoordinateOperation] = []
    for i in sorted(range(len(operations)), key=key):
        op = operations[i]
        if any(op.is_equivalent_to(kept) for kept in ranked):
            log.debug(f"dropping {op.name}: equivalent to a better ranked operation")
            continue
        ranked.append(op)
    return ranked


class _Search:
    """
    The state of one derivation: the resolved authority scope and area of interest.
    """

    def __init__(self, registry: RegistryInterface, context: DerivationContext, source: CRS, target: CRS):
        self.registry = registry
        self.context = context
        self.authority = self._resolve_authority(source)
        self.area = context.area_of_interest or _common_area(source, target)

    def _resolve_authority(self, source: CRS) -> Optional[str]:
        source_authority = source.authority
        if source_authority is None and source.geodetic_crs is not None:
            source_authority = source.geodetic_crs.authority
        authority = self.context.authority_for(source_authority)
        if self.context.authority is None and authority is not None:
            if not self.registry.list_codes(authority, ObjectType.TRANSFORMATION):
                log.debug(f"{authority} registers no transformation, searching every authority")
                return None
        return authority

    # endpoint dispatch

    def between(self, source: CRS, target: CRS) -> List[CoordinateOperation]:
        if isinstance(source, BoundCRS) or isinstance(target, BoundCRS):
            return self._between_bound(source, target)
        if isinstance(source, CompoundCRS) or isinstance(target, CompoundCRS):
            return self._between_compound(source, target)
        if isinstance(source, VerticalCRS) and isinstance(target, VerticalCRS):
            return self._between_vertical(source, target)
        if isinstance(source, (GeodeticCRS, ProjectedCRS)) and isinstance(target, (GeodeticCRS, ProjectedCRS)):
            return self._between_horizontal(source, target)
        log.debug(f"no operation can relate a {type(source).__name__} to a {type(target).__name__}")
        return []

    def _between_bound(self, source: CRS, target: CRS) -> List[CoordinateOperation]:
        if not isinstance(source, BoundCRS):
            return [op.inverse() for op in self._between_bound(target, source)]
        if isinstance(target, BoundCRS):
            if same_crs(source.hub_crs, target.hub_crs):
                core = [source.transformation, target.transformation.inverse()]
                return self._assembled([core], source.base_crs, target.base_crs)
            return self.between(source.base_crs, target.base_crs)
        hub = source.hub_crs
        target_geodetic = target.geodetic_crs
        if isinstance(hub, GeodeticCRS) and target_geodetic is not None and same_datum(hub, target_geodetic):
            return self._assembled([[source.transformation]], source.base_crs, target)
        return self.between(source.base_crs, target)

    def _between_compound(self, source: CRS, target: CRS) -> List[CoordinateOperation]:
        horizontal = self.between(_horizontal_part(source), _horizontal_part(target))
        source_vertical = source.vertical_crs if isinstance(source, CompoundCRS) else None
        target_vertical = target.vertical_crs if isinstance(target, CompoundCRS) else None
        if source_vertical is None or target_vertical is None:
            return horizontal
        if source_vertical.is_equivalent_to(target_vertical):
            return horizontal
        vertical = self.between(source_vertical, target_vertical)
        if not vertical and self.context.allow_ballpark:
            log.debug(f"no registered path from {source_vertical.name} to {target_vertical.name}, using a ballpark")
            vertical = [ballpark_vertical(source_vertical, target_vertical)]
        combined = []
        for h in horizontal:
            for v in vertical:
                op = combine_horizontal_vertical(h, v, source, target)
                if op is not None:
                    combined.append(op)
        return combined

    def _between_vertical(self, source: VerticalCRS, target: VerticalCRS) -> List[CoordinateOperation]:
        found = []
        for s in source.identifiers:
            for t in target.identifiers:
                found.extend(self._registered(s, t))
        return self._filter(found)

    def _between_horizontal(self, source: CRS, target: CRS) -> List[CoordinateOperation]:
        if same_crs(source, target):
            return [null_geographic_offset(source.geodetic_crs, target.geodetic_crs)]
        source_geodetic, target_geodetic = source.geodetic_crs, target.geodetic_crs
        if same_datum(source_geodetic, target_geodetic):
            return self._assembled([[]], source, target)

        found = self._filter(self._assembled(self._direct_cores(source_geodetic, target_geodetic), source, target))
        if self._should_pivot(found):
            pivoted = self._assembled(self._pivot_cores(source_geodetic, target_geodetic), source, target)
            found.extend(self._filter(pivoted))
        if not found and self.context.allow_ballpark:
            log.debug(f"no registered path from {source.name} to {target.name}, using a null offset")
            ballpark = null_geographic_offset(source_geodetic, target_geodetic)
            found = self._assembled([[ballpark]], source, target)
        return found

    # candidate generation

    def _assembled(self, cores: List[Steps], source: CRS, target: CRS) -> List[CoordinateOperation]:
        """
        Frame each core chain with the steps leading from the source and to the target.
        """
        assembled = []
        for core in cores:
            steps = self._frame(core, source, target)
            if steps is None:
                continue
            op = compose(steps, source, target)
            if op is not None:
                assembled.append(op)
        return assembled

    def _frame(self, core: Steps, source: CRS, target: CRS) -> Optional[Steps]:
        source_geodetic, target_geodetic = source.geodetic_crs, target.geodetic_crs
        if not core:
            middle = _cs_steps(source_geodetic, target_geodetic)
            if middle is None:
                return None
            return _unproject(source) + middle + _project(target)
        head = _cs_steps(source_geodetic, core[0].source_crs.geodetic_crs)
        tail = _cs_steps(core[-1].target_crs.geodetic_crs, target_geodetic)
        if head is None or tail is None:
            log.debug(f"cannot attach {core[0].name} to {source.name} and {target.name}")
            return None
        return _unproject(source) + head + list(core) + tail + _project(target)

    def _forms(self, crs: GeodeticCRS) -> List[Identifier]:
        """
        The registry CRS standing for a geodetic CRS: its own identifiers, then (unless it
        is an identified geographic 2D CRS) the geographic 2D CRS sharing its datum.
        """
        forms = list(crs.identifiers)
        if forms and isinstance(crs, GeographicCRS) and not crs.is_3d:
            return forms
        for datum_id in crs.datum.identifiers:
            related = self.registry.query_geodetic_crs_from_datum(
                None, datum_id.authority, datum_id.code, ObjectType.GEOGRAPHIC_2D_CRS
            )
            for other in related:
                ident = other.identifier(0)
                if ident is not None and ident not in forms:
                    forms.append(ident)
        return forms

    def _registered(self, source: Identifier, target: Identifier) -> List[CoordinateOperation]:
        forward = self.registry.operations_between(source, target, self.authority)
        backward = self.registry.operations_between(target, source, self.authority)
        return forward + [op.inverse() for op in backward]

    def _direct_cores(self, source: GeodeticCRS, target: GeodeticCRS) -> List[Steps]:
        for s in self._forms(source):
            for t in self._forms(target):
                ops = self._registered(s, t)
                if ops:
                    return [[op] for op in ops]
        return []

    def _should_pivot(self, direct: List[CoordinateOperation]) -> bool:
        policy = self.context.pivot_policy
        if policy == PivotPolicy.DISALLOWED:
            return False
        if policy == PivotPolicy.ALLOWLIST:
            return True
        return not direct

    def _pivot_cores(self, source: GeodeticCRS, target: GeodeticCRS) -> List[Steps]:
        cores = []
        for s in self._forms(source):
            for t in self._forms(target):
                pivots = self.registry.pivot_candidates(s, t, self.authority)
                if self.context.pivot_policy == PivotPolicy.ALLOWLIST:
                    pivots = [p for p in pivots if p in self.context.allowed_pivots]
                for pivot in pivots:
                    for first in self._registered(s, pivot):
                        for second in self._registered(pivot, t):
                            cores.append([first, second])
                if cores:
                    return cores
        return cores

    # filtering

    def _filter(self, operations: List[CoordinateOperation]) -> List[CoordinateOperation]:
        kept = []
        for op in operations:
            if not self._area_ok(op):
                log.debug(f"dropping {op.name}: area of use does not fit")
            elif not self._grids_ok(op):
                log.debug(f"dropping {op.name}: grids not available")
            else:
                kept.append(op)
        return kept

    def _area_ok(self, op: CoordinateOperation) -> bool:
        if self.area is None or op.area_of_use is None:
            return True
        if self.context.spatial_criterion == SpatialCriterion.STRICT_CONTAINMENT:
            return op.area_of_use.contains(self.area)
        return op.area_of_use.intersects(self.area)

    def _grids_ok(self, op: CoordinateOperation) -> bool:
        policy = self.context.grid_policy
        if policy == GridAvailabilityPolicy.IGNORED or not op.grids:
            return True
        usages = [self.registry.grid_info(g) for g in op.grids]
        if policy == GridAvailabilityPolicy.DISCARD_UNAVAILABLE:
            return all(u is None or u.available for u in usages)
        return all(u is not None and u.available for u in usages)


def _common_area(source: CRS, target: CRS) -> Optional[AreaOfUse]:
    a, b = source.area_of_use, target.area_of_use
    if a is None or b is None:
        return None
    common = a.intersection(b)
    if common is None:
        log.debug(f"the areas of use of {source.name} and {target.name} do not overlap")
    return common


class OperationDeriver:
    """
    Derives the coordinate operations converting coordinates between two CRS, using the
    operations and pivots of a registry.

    Args:
        registry: The registry providing registered operations, pivots and grid metadata
        context: The search configuration; defaults to strict area containment, ignored
            grid availability and pivoting through any CRS when nothing direct is found

    Examples:
        >>> registry = NxRegistry.from_file()
        >>> nad27 = registry.lookup("EPSG", "4267", Category.CRS)
        >>> nad83 = registry.lookup("EPSG", "4269", Category.CRS)
        >>> ctx = DerivationContext(spatial_criterion=SpatialCriterion.PARTIAL_INTERSECTION)
        >>> result = OperationDeriver(registry, ctx).derive(nad27, nad83)
        >>> result[0].name
        'NAD27 to NAD83 (1)'
    """

    def __init__(self, registry: RegistryInterface, context: Optional[DerivationContext] = None):
        self.registry = registry
        self.context = context if context is not None else DerivationContext()

    def derive(self, source: CRS, target: CRS) -> DerivationResult:
        """
        Derive the operations from a source CRS to a target CRS.

        Returns:
            The operations, best first; empty when no usable path exists

        Raises:
            TypeError: If either endpoint is not a CRS
        """
        if not is_crs(source) or not is_crs(target):
            raise TypeError("operations can only be derived between two CRS")
        search = _Search(self.registry, self.context, source, target)
        operations = rank_operations(search.between(source, target))
        log.debug(f"derived {len(operations)} operations from {source.name} to {target.name}")
        return DerivationResult(source_crs=source, target_crs=target, operations=operations)


def derive_operations(
    source: CRS,
    target: CRS,
    registry: RegistryInterface,
    context: Optional[DerivationContext] = None,
) -> DerivationResult:
    """
    Derive the operations from a source CRS to a target CRS; see `OperationDeriver`.
    """
    return OperationDeriver(registry, context).derive(source, target)
