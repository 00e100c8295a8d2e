from dataclasses import replace
from unittest import TestCase

from crskit.constructs.crs import WGS84, BoundCRS, bound_crs_to_wgs84
from crskit.derivation.identify import (
    ALIAS_NAME,
    EXACT,
    IDENTIFIER_ONLY,
    OTHER_NAME,
    AXIS_ORDER_PENALTY,
    create_bound_crs_to_wgs84,
    identify,
)
from crskit.ops.builders import (
    Ellipsoidal2DCSType,
    create_ellipsoidal_2d_cs,
    create_engineering_crs,
    create_geographic_crs,
)
from crskit.ops.mutators import alter_id
from crskit.registry.nx.nx_registry import NxRegistry
from crskit.registry.registry_interface import Category


class TestIdentify(TestCase):
    """Test matching CRS against the registry"""

    def setUp(self):
        self.registry = NxRegistry.from_file()

    def crs(self, code, authority="EPSG"):
        return self.registry.lookup(authority, code, Category.CRS)

    def test_exact_match(self):
        """Test that a registry CRS identifies as itself"""
        matches = identify(self.crs("4326"), self.registry)

        candidate, confidence = matches[0]
        self.assertTrue(candidate.has_identifier("EPSG", "4326"))
        self.assertEqual(confidence, EXACT)

        # CRS84 only differs by name and axis order
        crs84 = [c for c, _ in matches if c.has_identifier("OGC", "CRS84")]
        self.assertEqual(len(crs84), 1)
        self.assertIn((crs84[0], OTHER_NAME - AXIS_ORDER_PENALTY), matches)

    def test_authority_filter(self):
        """Test restricting candidates to one authority"""
        matches = identify(self.crs("4326"), self.registry, "OGC")

        self.assertEqual(len(matches), 1)
        self.assertTrue(matches[0][0].has_identifier("OGC", "CRS84"))
        self.assertEqual(matches[0][1], 50)

    def test_alias_name(self):
        """Test a CRS named with a registered alias"""
        crs = replace(self.crs("4326"), name="GCS_WGS_1984", identifiers=())
        matches = identify(crs, self.registry, "EPSG")

        self.assertTrue(matches[0][0].has_identifier("EPSG", "4326"))
        self.assertEqual(matches[0][1], ALIAS_NAME)

    def test_built_crs(self):
        """Test identifying a CRS assembled from WKT1 values"""
        cs = create_ellipsoidal_2d_cs(Ellipsoidal2DCSType.LATITUDE_LONGITUDE)
        crs = create_geographic_crs(
            "WGS 84", "WGS_1984", "WGS 84", 6378137, 298.257223563,
            "Greenwich", 0.0, "Degree", 0.0174532925199433, cs,
        )
        matches = identify(crs, self.registry, "EPSG")

        self.assertTrue(matches[0][0].has_identifier("EPSG", "4326"))
        self.assertEqual(matches[0][1], EXACT)

    def test_identifier_only(self):
        """Test a CRS sharing an identifier but not the definition"""
        cs = create_ellipsoidal_2d_cs(Ellipsoidal2DCSType.LATITUDE_LONGITUDE)
        crs = create_geographic_crs(
            "WGS 84", "WGS_1984", "other", 6378000, 300,
            "Greenwich", 0.0, None, 0.0, cs,
        )
        crs = alter_id(crs, "EPSG", 4326)
        matches = identify(crs, self.registry)

        self.assertEqual(len(matches), 1)
        self.assertTrue(matches[0][0].has_identifier("EPSG", "4326"))
        self.assertEqual(matches[0][1], IDENTIFIER_ONLY)

    def test_bound_crs(self):
        """Test that bound CRS are identified through their base CRS"""
        bound = bound_crs_to_wgs84(self.crs("4267"), [-8, 160, 176])
        matches = identify(bound, self.registry)

        self.assertTrue(matches[0][0].has_identifier("EPSG", "4267"))
        self.assertEqual(matches[0][1], EXACT)

    def test_not_a_crs(self):
        """Test that objects other than CRS give no match"""
        datum = self.registry.lookup("EPSG", "6326", Category.DATUM)

        self.assertEqual(identify(datum, self.registry), [])
        self.assertEqual(identify("EPSG:4326", self.registry), [])

    def test_sorted_by_confidence(self):
        """Test that matches come out highest confidence first"""
        matches = identify(self.crs("4326"), self.registry)
        confidences = [c for _, c in matches]

        self.assertEqual(confidences, sorted(confidences, reverse=True))


class TestCreateBoundCRSToWGS84(TestCase):
    """Test binding CRS to WGS 84 with registered Helmert transformations"""

    def setUp(self):
        self.registry = NxRegistry.from_file()

    def crs(self, code):
        return self.registry.lookup("EPSG", code, Category.CRS)

    def test_wgs84(self):
        """Test the null transformation of WGS 84"""
        bound = create_bound_crs_to_wgs84(self.crs("4326"), self.registry)

        self.assertIsInstance(bound, BoundCRS)
        self.assertEqual(bound.transformation.parameter_value("8605"), 0.0)
        self.assertEqual(bound.transformation.parameter_value("8606"), 0.0)
        self.assertEqual(bound.transformation.parameter_value("8607"), 0.0)

    def test_registered_helmert(self):
        """Test picking the registered Helmert transformation of each CRS"""
        cases = [("4267", "1170"), ("4179", "15994"), ("4612", "1825")]
        for code, transformation in cases:
            crs = self.crs(code)
            bound = create_bound_crs_to_wgs84(crs, self.registry)

            self.assertIsInstance(bound, BoundCRS, code)
            self.assertTrue(bound.transformation.has_identifier("EPSG", transformation), code)
            # the transformation leads from the base CRS to the hub
            self.assertEqual(bound.transformation.source_crs, crs)
            self.assertEqual(bound.transformation.target_crs, WGS84)
            self.assertEqual(bound.hub_crs, WGS84)

    def test_projected(self):
        """Test binding a projected CRS through its geodetic CRS"""
        bound = create_bound_crs_to_wgs84(self.crs("32631"), self.registry)

        self.assertIsInstance(bound, BoundCRS)
        self.assertEqual(bound.base_crs, self.crs("32631"))

    def test_unchanged(self):
        """Test the CRS returned as they are"""
        bound = bound_crs_to_wgs84(self.crs("4267"), [1, 2, 3])
        self.assertIs(create_bound_crs_to_wgs84(bound, self.registry), bound)

        local = create_engineering_crs("local")
        self.assertIs(create_bound_crs_to_wgs84(local, self.registry), local)
