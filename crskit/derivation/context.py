from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Optional, Tuple

from crskit.constructs.area import AreaOfUse
from crskit.constructs.common import Identifier

ANY_AUTHORITY = "any"


class SpatialCriterion(Enum):
    """
    How the area of use of a candidate operation is compared to the area of interest.

    Values:
        STRICT_CONTAINMENT: the operation area must contain the area of interest
        PARTIAL_INTERSECTION: the operation area must intersect the area of interest
    """

    STRICT_CONTAINMENT = "strict_containment"
    PARTIAL_INTERSECTION = "partial_intersection"


class GridAvailabilityPolicy(Enum):
    """
    What to do with operations that need grid files.

    Values:
        IGNORED: keep them whether or not their grids are present
        DISCARD_UNAVAILABLE: drop them when the registry reports one of their grids as
            missing locally; grids unknown to the registry do not cause a drop
        REQUIRE_KNOWN: keep them only when every grid is known to the registry and
            found locally
    """

    IGNORED = "ignored"
    DISCARD_UNAVAILABLE = "discard_unavailable"
    REQUIRE_KNOWN = "require_known"


class PivotPolicy(Enum):
    """
    Whether operations may be composed through an intermediate CRS.

    Values:
        DISALLOWED: never compose
        ANY: compose through any registry CRS when no direct operation is usable
        ALLOWLIST: always compose, only through the allowed pivots
    """

    DISALLOWED = "disallowed"
    ANY = "any"
    ALLOWLIST = "allowlist"


@dataclass(frozen=True)
class DerivationContext:
    """
    The search configuration of an operation derivation.

    Contexts are immutable; the `with_*` methods return a modified copy.

    Attributes:
        spatial_criterion: How candidate areas of use are compared to the area of interest
        grid_policy: What to do with operations needing grid files
        pivot_policy: Whether and through which CRS operations may be composed
        allowed_pivots: The (authority, code) pairs of the pivots allowed under ALLOWLIST
        authority: Only use operations and pivots of this authority; None for the
            authority of the source CRS, "any" for no restriction
        allow_ballpark: Whether to fall back to a null offset between geodetic CRS when
            nothing else is found
        area_of_interest: An area replacing the intersection of the endpoint areas

    Examples:
        >>> ctx = DerivationContext().with_spatial_criterion(SpatialCriterion.PARTIAL_INTERSECTION)
        >>> ctx = ctx.with_allowed_pivots([("EPSG", "4301")])
        >>> ctx.pivot_policy
        <PivotPolicy.ALLOWLIST: 'allowlist'>
    """

    spatial_criterion: SpatialCriterion = SpatialCriterion.STRICT_CONTAINMENT
    grid_policy: GridAvailabilityPolicy = GridAvailabilityPolicy.IGNORED
    pivot_policy: PivotPolicy = PivotPolicy.ANY
    allowed_pivots: Tuple[Identifier, ...] = field(default_factory=tuple)
    authority: Optional[str] = None
    allow_ballpark: bool = True
    area_of_interest: Optional[AreaOfUse] = None

    def with_spatial_criterion(self, criterion: SpatialCriterion) -> DerivationContext:
        return replace(self, spatial_criterion=criterion)

    def with_grid_policy(self, policy: GridAvailabilityPolicy) -> DerivationContext:
        return replace(self, grid_policy=policy)

    def with_pivots_allowed(self, allowed: bool) -> DerivationContext:
        """
        Allow or forbid pivoting. Allowing it clears any allow-list.
        """
        policy = PivotPolicy.ANY if allowed else PivotPolicy.DISALLOWED
        return replace(self, pivot_policy=policy, allowed_pivots=())

    def with_allowed_pivots(self, pivots: Iterable[Tuple[str, str]]) -> DerivationContext:
        """
        Restrict pivoting to a list of CRS.

        Args:
            pivots: The (authority, code) pairs of the allowed CRS

        Raises:
            ValueError: If the list is empty
        """
        ids = tuple(Identifier(str(a), str(c)) for a, c in pivots)
        if not ids:
            raise ValueError("the pivot allow-list must name at least one CRS")
        return replace(self, pivot_policy=PivotPolicy.ALLOWLIST, allowed_pivots=ids)

    def with_authority(self, authority: Optional[str]) -> DerivationContext:
        return replace(self, authority=authority)

    def with_ballpark(self, allowed: bool) -> DerivationContext:
        return replace(self, allow_ballpark=allowed)

    def with_area_of_interest(self, area: Optional[AreaOfUse]) -> DerivationContext:
        return replace(self, area_of_interest=area)

    def authority_for(self, source_authority: Optional[str]) -> Optional[str]:
        """
        Resolve the authority restriction for a source CRS.

        Returns:
            The authority to restrict to, or None for no restriction
        """
        if self.authority is None:
            return source_authority
        if self.authority.lower() == ANY_AUTHORITY:
            return None
        return self.authority
