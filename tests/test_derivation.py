from unittest import TestCase, mock

import geopandas as gpd

from crskit.constructs.area import AreaOfUse
from crskit.constructs.common import Identifier
from crskit.constructs.operation import ConcatenatedOperation
from crskit.derivation.context import (
    DerivationContext,
    GridAvailabilityPolicy,
    PivotPolicy,
    SpatialCriterion,
)
from crskit.derivation.engine import OperationDeriver, derive_operations
from crskit.derivation.result import DerivationResult
from crskit.ops.builders import create_compound_crs
from crskit.ops.mutators import alter_cs_linear_unit
from crskit.registry.nx.nx_registry import NxRegistry
from crskit.registry.registry_interface import Category
from crskit.utils.units import FOOT


class TestDerivationContext(TestCase):
    """Test the derivation search configuration"""

    def test_defaults(self):
        """Test the default configuration"""
        ctx = DerivationContext()

        self.assertEqual(ctx.spatial_criterion, SpatialCriterion.STRICT_CONTAINMENT)
        self.assertEqual(ctx.grid_policy, GridAvailabilityPolicy.IGNORED)
        self.assertEqual(ctx.pivot_policy, PivotPolicy.ANY)
        self.assertTrue(ctx.allow_ballpark)

    def test_with_methods_copy(self):
        """Test that with_* methods leave the original context unchanged"""
        ctx = DerivationContext()
        partial = ctx.with_spatial_criterion(SpatialCriterion.PARTIAL_INTERSECTION)

        self.assertEqual(ctx.spatial_criterion, SpatialCriterion.STRICT_CONTAINMENT)
        self.assertEqual(partial.spatial_criterion, SpatialCriterion.PARTIAL_INTERSECTION)

    def test_allowed_pivots(self):
        """Test restricting pivots to an allow-list"""
        ctx = DerivationContext().with_allowed_pivots([("EPSG", 4301)])

        self.assertEqual(ctx.pivot_policy, PivotPolicy.ALLOWLIST)
        self.assertEqual(ctx.allowed_pivots, (Identifier("EPSG", "4301"),))

        # allowing pivots again clears the list
        ctx = ctx.with_pivots_allowed(True)
        self.assertEqual(ctx.pivot_policy, PivotPolicy.ANY)
        self.assertEqual(ctx.allowed_pivots, ())

        with self.assertRaises(ValueError):
            DerivationContext().with_allowed_pivots([])

    def test_authority_for(self):
        """Test resolving the authority restriction"""
        self.assertEqual(DerivationContext().authority_for("EPSG"), "EPSG")
        self.assertIsNone(DerivationContext().with_authority("any").authority_for("EPSG"))
        self.assertEqual(DerivationContext().with_authority("ESRI").authority_for("EPSG"), "ESRI")


class TestOperationDerivation(TestCase):
    """Test deriving operations between registry CRS"""

    def setUp(self):
        self.registry = NxRegistry.from_file()
        self.partial = DerivationContext().with_spatial_criterion(SpatialCriterion.PARTIAL_INTERSECTION)

    def crs(self, code, authority="EPSG"):
        return self.registry.lookup(authority, code, Category.CRS)

    def test_registered_operations_ranked_by_accuracy(self):
        """Test that registered transformations come out best accuracy first"""
        result = derive_operations(self.crs("4267"), self.crs("4269"), self.registry, self.partial)

        self.assertEqual(len(result), 6)
        self.assertEqual(
            [op.name for op in result],
            [
                "NAD27 to NAD83 (1)",
                "NAD27 to NAD83 (2)",
                "NAD27 to NAD83 (3)",
                "NAD27 to NAD83 (4)",
                "NAD27 to NAD83 (6)",
                "NAD27 to NAD83 (5)",
            ],
        )
        self.assertEqual(result.best.name, "NAD27 to NAD83 (1)")
        self.assertIsNone(result.get(6))
        self.assertIsNone(result.get(-1))

    def test_strict_containment_falls_back_to_ballpark(self):
        """Test the null offset used when no operation covers both CRS"""
        result = derive_operations(self.crs("4267"), self.crs("4269"), self.registry)

        self.assertEqual(len(result), 1)
        self.assertEqual(result[0].name, "Null geographic offset from NAD27 to NAD83")

        # without ballpark nothing is left
        ctx = DerivationContext().with_ballpark(False)
        result = derive_operations(self.crs("4267"), self.crs("4269"), self.registry, ctx)
        self.assertEqual(len(result), 0)
        self.assertIsNone(result.best)

    def test_unknown_grids_discarded(self):
        """Test that REQUIRE_KNOWN drops operations on grids the registry does not know"""
        ctx = self.partial.with_grid_policy(GridAvailabilityPolicy.REQUIRE_KNOWN)

        with mock.patch.object(self.registry, "grid_info", return_value=None):
            result = derive_operations(self.crs("4267"), self.crs("4269"), self.registry, ctx)

        # the grid based transformations give way to a Helmert path through WGS 84
        self.assertEqual(len(result), 1)
        self.assertEqual(result[0].name, "NAD27 to WGS 84 (16) + Inverse of NAD83 to WGS 84 (1)")
        self.assertAlmostEqual(result[0].accuracy, 20.0)

    def test_pivots_disallowed(self):
        """Test that forbidding pivots leaves only the ballpark operation"""
        ctx = DerivationContext().with_pivots_allowed(False)
        result = derive_operations(self.crs("4326"), self.crs("6668"), self.registry, ctx)

        self.assertEqual(len(result), 1)
        self.assertEqual(result[0].name, "Null geographic offset from WGS 84 to JGD2011")

    def test_pivot_through_jgd2000(self):
        """Test composing two registered transformations through a pivot CRS"""
        result = derive_operations(self.crs("4326"), self.crs("6668"), self.registry)

        self.assertEqual(len(result), 1)
        self.assertEqual(result[0].name, "Inverse of JGD2000 to WGS 84 (1) + JGD2000 to JGD2011 (2)")

    def test_pivot_allow_list(self):
        """Test restricting pivots to Tokyo"""
        ctx = (
            self.partial.with_authority("EPSG")
            .with_allowed_pivots([("EPSG", "4301")])
            .with_grid_policy(GridAvailabilityPolicy.IGNORED)
        )
        result = derive_operations(self.crs("4326"), self.crs("6668"), self.registry, ctx)

        self.assertEqual(len(result), 4)
        self.assertEqual(result[1].name, "Inverse of Tokyo to WGS 84 (108) + Tokyo to JGD2011 (2)")
        accuracies = [op.accuracy for op in result]
        for actual, expected in zip(accuracies, [14.0, 18.0, 19.0, 38.0]):
            self.assertAlmostEqual(actual, expected)

    def test_any_authority_uses_esri_operations(self):
        """Test that the "any" authority lets ESRI transformations in"""
        ctx = self.partial.with_authority("any").with_allowed_pivots([("EPSG", "4612")])
        result = derive_operations(self.crs("4326"), self.crs("6668"), self.registry, ctx)

        self.assertEqual(len(result), 4)
        self.assertEqual(result[0].name, "Inverse of JGD2000 to WGS 84 (1) + JGD2000 to JGD2011 (1)")
        self.assertEqual(result[1].name, "Inverse of JGD_2000_To_WGS_1984 + JGD2000 to JGD2011 (1)")

    def test_same_datum_conversions(self):
        """Test the conversions derived between CRS sharing a datum"""
        cases = [
            ("32631", "4326", "Inverse of UTM zone 31N"),
            ("4326", "32631", "UTM zone 31N"),
            ("32631", "32632", "Inverse of UTM zone 31N + UTM zone 32N"),
            ("4326", "4979", "Conversion from WGS 84 (geog2D) to WGS 84 (geog3D)"),
            ("4326", "4978", "Conversion from WGS 84 (geog2D) to WGS 84 (geocentric)"),
        ]
        for source, target, name in cases:
            result = derive_operations(self.crs(source), self.crs(target), self.registry)
            self.assertEqual(result[0].name, name, f"{source} -> {target}")

    def test_axis_order_change(self):
        """Test the axis swap between EPSG:4326 and OGC:CRS84"""
        result = derive_operations(self.crs("4326"), self.crs("CRS84", "OGC"), self.registry)

        self.assertEqual(result[0].name, "axis order change (2D)")

    def test_projected_to_other_datum(self):
        """Test unprojecting before transforming"""
        result = derive_operations(self.crs("2154"), self.crs("4326"), self.registry)

        self.assertEqual(result[0].name, "Inverse of Lambert-93 + RGF93 to WGS 84 (1)")

    def test_compound_with_other_vertical(self):
        """Test joining the horizontal operations with a ballpark between the heights"""
        source, target = self.crs("7405"), self.crs("6871")
        result = derive_operations(source, target, self.registry, self.partial)

        self.assertGreater(len(result), 0)
        best = result.best
        self.assertIsInstance(best, ConcatenatedOperation)
        self.assertTrue(best.source_crs.is_equivalent_to(source))
        self.assertTrue(best.target_crs.is_equivalent_to(target))
        self.assertEqual(best.steps[-1].name, "Ballpark vertical transformation from ODN height to EGM2008 height")
        self.assertTrue(best.name.endswith(" + Ballpark vertical transformation from ODN height to EGM2008 height"))
        # the vertical part has no known accuracy
        self.assertIsNone(best.accuracy)

        ctx = self.partial.with_ballpark(False)
        self.assertEqual(len(derive_operations(source, target, self.registry, ctx)), 0)

    def test_compound_with_same_vertical(self):
        """Test that an unchanged vertical component adds no step"""
        source = self.crs("7405")
        result = derive_operations(source, source, self.registry)

        self.assertEqual(len(result), 1)
        self.assertNotIsInstance(result[0], ConcatenatedOperation)

        result = derive_operations(source, self.crs("4326"), self.registry)
        self.assertEqual(result[0].name, "Null geographic offset from OSGB 1936 to WGS 84")

    def test_compound_change_of_vertical_unit(self):
        """Test that heights on the same datum only change unit"""
        odn_ft = alter_cs_linear_unit(self.crs("5701"), FOOT)
        target = create_compound_crs("OSGB 1936 + ODN height (ft)", self.crs("4277"), odn_ft)
        result = derive_operations(self.crs("7405"), target, self.registry)

        self.assertEqual(len(result), 1)
        vertical = result[0].steps[-1]
        self.assertEqual(vertical.method.name, "Change of Vertical Unit")
        self.assertAlmostEqual(vertical.parameter_value("1051"), 1 / 0.3048)
        self.assertEqual(result[0].accuracy, 0.0)

    def test_area_of_interest(self):
        """Test that an area of interest selects the operations covering it"""
        # only the CONUS grids cover Kansas
        conus = AreaOfUse(-100.0, 35.0, -90.0, 40.0, "Kansas")
        ctx = DerivationContext().with_area_of_interest(conus)
        result = derive_operations(self.crs("4267"), self.crs("4269"), self.registry, ctx)

        self.assertEqual(result[0].name, "NAD27 to NAD83 (1)")
        self.assertNotIn("NAD27 to NAD83 (2)", [op.name for op in result])

    def test_derive_rejects_non_crs(self):
        """Test that operations are only derived between CRS"""
        datum = self.registry.lookup("EPSG", "6326", Category.DATUM)

        with self.assertRaises(TypeError):
            OperationDeriver(self.registry).derive(datum, self.crs("4326"))

    def test_result_to_dataframe(self):
        """Test the tabular view of derived operations"""
        result = derive_operations(self.crs("4267"), self.crs("4269"), self.registry, self.partial)
        df = result.to_dataframe()

        self.assertEqual(
            list(df.columns),
            ["name", "authority", "code", "accuracy", "grids", "area", "west", "south", "east", "north"],
        )
        self.assertEqual(len(df), 6)
        self.assertEqual(df.iloc[0]["code"], "1241")
        self.assertAlmostEqual(df.iloc[0]["accuracy"], 0.15)
        self.assertEqual(df.iloc[0]["grids"], "conus.las,conus.los")

        gdf = result.to_geodataframe()
        self.assertIsInstance(gdf, gpd.GeoDataFrame)
        self.assertEqual(gdf.crs.to_epsg(), 4326)
        self.assertIn("geom", gdf.columns)

    def test_empty_result_to_geodataframe(self):
        """Test converting an empty result"""
        result = DerivationResult(source_crs=self.crs("4326"), target_crs=self.crs("4269"))
        gdf = result.to_geodataframe()

        self.assertEqual(len(gdf), 0)
