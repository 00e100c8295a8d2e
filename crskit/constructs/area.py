from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union

from shapely.geometry import MultiPolygon, Polygon, box

Geometry = Union[Polygon, MultiPolygon]


@dataclass(frozen=True)
class AreaOfUse:
    """
    The geographic extent over which a CRS or a coordinate operation is valid.

    The extent is a bounding rectangle in degrees. A west bound greater than the east
    bound denotes a rectangle crossing the antimeridian; its geometry is then split
    into two boxes on either side of the 180th meridian.

    Attributes:
        west: Western bound, in degrees
        south: Southern bound, in degrees
        east: Eastern bound, in degrees
        north: Northern bound, in degrees
        description: Free-text description of the area

    Examples:
        >>> world = AreaOfUse(-180, -90, 180, 90, "World")
        >>> fiji = AreaOfUse(176.0, -20.0, -178.0, -12.0, "Fiji")
        >>> world.contains(fiji)
        True
    """

    west: float
    south: float
    east: float
    north: float
    description: Optional[str] = None

    def __post_init__(self):
        if self.south > self.north:
            raise ValueError(
                f"south bound {self.south} must not exceed north bound {self.north}"
            )

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        return (self.west, self.south, self.east, self.north)

    @property
    def crosses_antimeridian(self) -> bool:
        return self.west > self.east

    @property
    def geometry(self) -> Geometry:
        """
        The shapely geometry of the area, split at the antimeridian when needed.
        """
        if self.crosses_antimeridian:
            return MultiPolygon(
                [
                    box(self.west, self.south, 180.0, self.north),
                    box(-180.0, self.south, self.east, self.north),
                ]
            )
        return box(self.west, self.south, self.east, self.north)

    def contains(self, other: Union[AreaOfUse, Geometry]) -> bool:
        other_geom = other.geometry if isinstance(other, AreaOfUse) else other
        if other_geom.is_empty:
            return False
        return self.geometry.covers(other_geom)

    def intersects(self, other: Union[AreaOfUse, Geometry]) -> bool:
        other_geom = other.geometry if isinstance(other, AreaOfUse) else other
        inter = self.geometry.intersection(other_geom)
        return not inter.is_empty

    def intersection(self, other: AreaOfUse) -> Optional[AreaOfUse]:
        """
        Compute the area common to two areas of use.

        Args:
            other: The other area

        Returns:
            The common area, or None if the areas do not overlap
        """
        inter = self.geometry.intersection(other.geometry)
        if inter.is_empty:
            return None
        return AreaOfUse.from_geometry(inter, description=self.description)

    @classmethod
    def from_geometry(
        cls, geom: Geometry, description: Optional[str] = None
    ) -> AreaOfUse:
        """
        Build the bounding rectangle of a geometry, recombining antimeridian splits.
        """
        if isinstance(geom, MultiPolygon) and len(geom.geoms) == 2:
            a, b = sorted(geom.geoms, key=lambda g: g.bounds[0])
            if b.bounds[2] == 180.0 and a.bounds[0] == -180.0 and a.bounds[2] < b.bounds[0]:
                south = min(a.bounds[1], b.bounds[1])
                north = max(a.bounds[3], b.bounds[3])
                return cls(b.bounds[0], south, a.bounds[2], north, description)
        west, south, east, north = geom.bounds
        return cls(west, south, east, north, description)
