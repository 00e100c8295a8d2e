from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional

import geopandas as gpd
import numpy as np
import pandas as pd

from crskit.constructs.crs import CRS
from crskit.constructs.operation import CoordinateOperation, step_accuracy
from crskit.utils.crs import LATLON_CRS

_COLUMNS = ["name", "authority", "code", "accuracy", "grids", "area", "west", "south", "east", "north"]


@dataclass
class DerivationResult:
    """
    The ordered operations found between two CRS, best first.

    The result behaves as a read-only sequence of operations.

    Attributes:
        source_crs: The CRS the operations start from
        target_crs: The CRS the operations lead to
        operations: The operations, best first
    """

    source_crs: CRS
    target_crs: CRS
    operations: List[CoordinateOperation] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.operations)

    def __iter__(self) -> Iterator[CoordinateOperation]:
        return iter(self.operations)

    def __getitem__(self, index: int) -> CoordinateOperation:
        return self.operations[index]

    def get(self, index: int) -> Optional[CoordinateOperation]:
        """
        Get an operation by rank.

        Returns:
            The operation, or None if the index is negative or out of range
        """
        if 0 <= index < len(self.operations):
            return self.operations[index]
        return None

    @property
    def best(self) -> Optional[CoordinateOperation]:
        return self.get(0)

    def to_dataframe(self) -> pd.DataFrame:
        """
        Convert the operations to a pandas DataFrame, one row per operation in rank order.

        Returns:
            A DataFrame with columns name, authority, code, accuracy (NaN when unknown),
            grids (comma separated file names), area (description) and the west, south,
            east and north bounds of the area of use (NaN when the operation has none)

        Examples:
            >>> result = derive_operations(nad27, nad83, registry, ctx)
            >>> df = result.to_dataframe()
            >>> # Operations usable without grid files
            >>> df[df['grids'] == '']
        """
        rows = []
        for op in self.operations:
            area = op.area_of_use
            accuracy = step_accuracy(op)
            row = {
                "name": op.name,
                "authority": op.authority,
                "code": op.code,
                "accuracy": accuracy if accuracy is not None else np.nan,
                "grids": ",".join(op.grids),
                "area": area.description if area is not None else None,
            }
            bounds = area.bounds if area is not None else (np.nan,) * 4
            for bound, value in zip(("west", "south", "east", "north"), bounds):
                row[bound] = value
            rows.append(row)
        df = pd.DataFrame(rows, columns=_COLUMNS)
        return df

    def to_geodataframe(self) -> gpd.GeoDataFrame:
        """
        Convert the operations to a GeoDataFrame whose geometry is the area of use of each
        operation (None for operations without area), in EPSG:4326.
        """
        df = self.to_dataframe()
        df["geom"] = [op.area_of_use.geometry if op.area_of_use is not None else None for op in self.operations]
        gdf = gpd.GeoDataFrame(df, geometry="geom")

        if len(self.operations) == 0:
            return gdf

        gdf = gdf.set_crs(LATLON_CRS)

        return gdf
