from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, List, Optional, Tuple

from crskit.constructs.common import normalise_name
from crskit.constructs.crs import (
    CRS,
    WGS84,
    BoundCRS,
    GeodeticCRS,
    bound_crs_to_wgs84,
    is_crs,
    is_wgs84,
)
from crskit.constructs.operation import (
    ConcatenatedOperation,
    Conversion,
    CoordinateOperation,
    Transformation,
    helmert_parameters,
)
from crskit.derivation.context import DerivationContext, PivotPolicy, SpatialCriterion
from crskit.derivation.engine import derive_operations
from crskit.registry.registry_interface import RegistryInterface

log = logging.getLogger(__name__)

EXACT = 100
ALIAS_NAME = 90
OTHER_NAME = 70
IDENTIFIER_ONLY = 25
AXIS_ORDER_PENALTY = 20


def _confidence(obj: CRS, candidate: CRS, registry: RegistryInterface) -> int:
    if obj.is_equivalent_to(candidate):
        if normalise_name(obj.name) == normalise_name(candidate.name):
            confidence = EXACT
        else:
            official = registry.official_name(obj.name)
            if official is not None and normalise_name(official) == normalise_name(candidate.name):
                confidence = ALIAS_NAME
            else:
                confidence = OTHER_NAME
        cs, other_cs = obj.coordinate_system, candidate.coordinate_system
        if cs is not None and other_cs is not None and not cs.same_axis_order(other_cs):
            confidence -= AXIS_ORDER_PENALTY
        return confidence
    if any(candidate.has_identifier(i.authority, i.code) for i in obj.identifiers):
        return IDENTIFIER_ONLY
    return 0


def identify(
    obj: Any, registry: RegistryInterface, authority: Optional[str] = None
) -> List[Tuple[CRS, int]]:
    """
    Find the registry CRS matching a CRS, typically one parsed from text or built by hand.

    Confidence levels:
    - 100: same definition and same name
    - 90: same definition, name known to the registry as an alias of the match
    - 70: same definition, other name
    - 25: different definition but a shared identifier
    Matches with a different axis order lose 20 points. Bound CRS are identified through
    their base CRS.

    Args:
        obj: The object to identify
        registry: The registry to search
        authority: Only consider CRS of this authority

    Returns:
        (registry CRS, confidence) pairs, highest confidence first and registration order
        among equals; empty for objects that are not CRS

    Examples:
        >>> crs = from_wkt(wkt_text, registry)
        >>> identify(crs, registry, "EPSG")[0][1]
        100
    """
    if not is_crs(obj):
        return []
    if isinstance(obj, BoundCRS):
        return identify(obj.base_crs, registry, authority)
    matches = []
    for candidate in registry.crs_objects(authority):
        if type(candidate) is not type(obj):
            continue
        confidence = _confidence(obj, candidate, registry)
        if confidence > 0:
            matches.append((candidate, confidence))
    matches.sort(key=lambda m: -m[1])
    log.debug(f"{obj.name} matched {len(matches)} registry CRS")
    return matches


def create_bound_crs(base_crs: CRS, hub_crs: CRS, transformation: Transformation) -> BoundCRS:
    """
    Bind a CRS to a hub CRS with a transformation leading from the base CRS to the hub.

    Raises:
        TypeError: If the base CRS is itself a bound CRS
    """
    return BoundCRS(name=base_crs.name, base_crs=base_crs, hub_crs=hub_crs, transformation=transformation)


def _helmert_step(op: CoordinateOperation) -> Optional[CoordinateOperation]:
    steps = op.steps if isinstance(op, ConcatenatedOperation) else (op,)
    transformations = [s for s in steps if not isinstance(s, Conversion)]
    if len(transformations) != 1 or helmert_parameters(transformations[0]) is None:
        return None
    return transformations[0]


def create_bound_crs_to_wgs84(crs: CRS, registry: RegistryInterface) -> CRS:
    """
    Bind a CRS to WGS 84 with a Helmert transformation found in the registry, the way
    WKT1 TOWGS84 clauses and PROJ +towgs84= parameters describe it.

    WGS 84 based CRS get a null transformation. The transformation chosen for other CRS
    is the best ranked direct registered Helmert transformation between the base
    geodetic CRS and WGS 84 whose area of use intersects the one of the CRS.

    Args:
        crs: The CRS to bind
        registry: The registry to search

    Returns:
        The bound CRS, or the CRS itself when it is already bound, has no geodetic CRS or
        no Helmert transformation exists
    """
    if isinstance(crs, BoundCRS):
        return crs
    geodetic = crs.geodetic_crs
    if not isinstance(geodetic, GeodeticCRS):
        log.debug(f"{crs.name} has no geodetic CRS to bind to WGS 84")
        return crs
    if is_wgs84(geodetic):
        return bound_crs_to_wgs84(crs, (0.0, 0.0, 0.0))
    context = (
        DerivationContext(pivot_policy=PivotPolicy.DISALLOWED, allow_ballpark=False)
        .with_spatial_criterion(SpatialCriterion.PARTIAL_INTERSECTION)
        .with_authority("any")
    )
    for op in derive_operations(geodetic, WGS84, registry, context):
        step = _helmert_step(op)
        if step is not None:
            transformation = replace(step, source_crs=geodetic, target_crs=WGS84)
            return create_bound_crs(crs, WGS84, transformation)
    log.debug(f"no Helmert transformation from {crs.name} to WGS 84")
    return crs
