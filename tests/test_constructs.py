from unittest import TestCase

from pyproj import Geod
from shapely.geometry import MultiPolygon, box

from crskit.constructs.area import AreaOfUse
from crskit.constructs.common import Comparison, Identifier, names_match
from crskit.constructs.crs import (
    WGS84,
    ObjectType,
    object_type,
    towgs84_transformation,
)
from crskit.constructs.cs import CSKind, ellipsoidal_2d_lon_lat
from crskit.constructs.datum import WGS84_DATUM, Ellipsoid
from crskit.utils.units import DEGREE


class TestAreaOfUse(TestCase):
    """Test the geographic extents of CRS and operations"""

    def test_antimeridian(self):
        """Test that an area crossing the antimeridian is split in two boxes"""
        fiji = AreaOfUse(176.0, -20.0, -178.0, -12.0, "Fiji")

        self.assertTrue(fiji.crosses_antimeridian)
        self.assertIsInstance(fiji.geometry, MultiPolygon)
        self.assertTrue(AreaOfUse(-180, -90, 180, 90, "World").contains(fiji))

    def test_contains_and_intersects(self):
        """Test comparing areas with each other and with geometries"""
        europe = AreaOfUse(-10.0, 35.0, 30.0, 70.0)
        france = AreaOfUse(-5.0, 41.0, 10.0, 51.0)

        self.assertTrue(europe.contains(france))
        self.assertFalse(france.contains(europe))
        self.assertTrue(france.intersects(box(9.0, 50.0, 12.0, 55.0)))
        self.assertFalse(france.intersects(box(20.0, 50.0, 25.0, 55.0)))

    def test_intersection(self):
        """Test the common part of two areas"""
        a = AreaOfUse(0.0, 0.0, 10.0, 10.0, "a")
        b = AreaOfUse(5.0, 5.0, 20.0, 20.0, "b")

        self.assertEqual(a.intersection(b), AreaOfUse(5.0, 5.0, 10.0, 10.0, "a"))
        self.assertIsNone(a.intersection(AreaOfUse(50.0, 50.0, 60.0, 60.0)))

    def test_invalid_bounds(self):
        """Test that the south bound cannot exceed the north bound"""
        with self.assertRaises(ValueError):
            AreaOfUse(0.0, 10.0, 10.0, 0.0)


class TestIdentifiedObject(TestCase):
    """Test the metadata common to all objects"""

    def test_deprecated_suffix(self):
        """Test that the deprecated suffix is moved to the deprecated flag"""
        ellipsoid = Ellipsoid(name="Old (deprecated)", semi_major_axis=6378137.0, inverse_flattening=298.0)

        self.assertEqual(ellipsoid.name, "Old")
        self.assertTrue(ellipsoid.deprecated)

    def test_identifiers(self):
        """Test identifier normalisation and lookup"""
        ellipsoid = Ellipsoid(
            name="e",
            identifiers=[("EPSG", 7030), ("EPSG", "7030")],
            semi_major_axis=6378137.0,
            inverse_flattening=298.257223563,
        )

        # duplicates are dropped and codes are strings
        self.assertEqual(ellipsoid.identifiers, (Identifier("EPSG", "7030"),))
        self.assertTrue(ellipsoid.has_identifier("EPSG", 7030))
        self.assertIsNone(ellipsoid.identifier(1))
        self.assertEqual(Identifier.from_string("EPSG::4326"), Identifier("EPSG", "4326"))

    def test_names_match(self):
        """Test the loose name comparison"""
        self.assertTrue(names_match("WGS_1984", "WGS 1984"))
        self.assertTrue(names_match("unknown", "anything"))
        self.assertFalse(names_match("NAD27", "NAD83"))

    def test_strict_comparison(self):
        """Test that strict comparison looks at names and equivalence does not"""
        renamed = Ellipsoid(name="other", semi_major_axis=6378137.0, inverse_flattening=298.257223563)

        self.assertTrue(renamed.is_equivalent_to(WGS84_DATUM.ellipsoid))
        self.assertFalse(renamed.is_equivalent_to(WGS84_DATUM.ellipsoid, Comparison.STRICT))

    def test_ellipsoid(self):
        """Test the derived ellipsoid values"""
        with self.assertRaises(ValueError):
            Ellipsoid(name="e", semi_major_axis=6378137.0)
        sphere = Ellipsoid(name="sphere", semi_major_axis=6371000.0, semi_minor_axis=6371000.0)
        self.assertTrue(sphere.is_sphere)
        self.assertEqual(sphere.computed_inverse_flattening, 0.0)

        # cross-check the WGS 84 semi-minor axis against PROJ
        params = WGS84_DATUM.ellipsoid.parameters()
        self.assertAlmostEqual(params.semi_minor, Geod(ellps="WGS84").b, delta=1e-6)
        self.assertAlmostEqual(params.semi_minor, 6356752.31424518, delta=1e-8)
        self.assertTrue(params.is_semi_minor_computed)


class TestCoordinateSystem(TestCase):
    """Test coordinate system queries"""

    def test_axis_info(self):
        """Test the description of one axis"""
        cs = ellipsoidal_2d_lon_lat()
        info = cs.axis_info(0)

        self.assertEqual(cs.kind, CSKind.ELLIPSOIDAL)
        self.assertEqual(info.direction, "east")
        self.assertEqual(info.abbreviation, "Lon")
        self.assertEqual(info.unit_conv_factor, DEGREE.conversion_factor)

        with self.assertRaises(IndexError):
            cs.axis_info(2)
        with self.assertRaises(IndexError):
            cs.axis_info(-1)

    def test_axis_order_ignored_by_equivalence(self):
        """Test that equivalence does not depend on axis order"""
        lon_lat = ellipsoidal_2d_lon_lat()

        self.assertTrue(lon_lat.is_equivalent_to(WGS84.coordinate_system))
        self.assertFalse(lon_lat.same_axis_order(WGS84.coordinate_system))


class TestCRSHelpers(TestCase):
    """Test object type reporting and TOWGS84 transformations"""

    def test_object_type(self):
        """Test the variant reported for model objects"""
        self.assertEqual(object_type(WGS84), ObjectType.GEOGRAPHIC_2D_CRS)
        self.assertEqual(object_type(WGS84_DATUM), ObjectType.GEODETIC_REFERENCE_FRAME)
        self.assertEqual(object_type(WGS84_DATUM.ellipsoid), ObjectType.ELLIPSOID)
        self.assertEqual(object_type("EPSG:4326"), ObjectType.UNKNOWN)

    def test_towgs84_transformation(self):
        """Test the methods chosen for three and seven values"""
        translation = towgs84_transformation(WGS84, [1, 2, 3])
        self.assertEqual(translation.method_code, "9603")
        self.assertEqual(len(translation.parameters), 3)

        # zero rotations and scale reduce to translations
        zeros = towgs84_transformation(WGS84, [1, 2, 3, 0, 0, 0, 0])
        self.assertEqual(zeros.method_code, "9603")

        full = towgs84_transformation(WGS84, [1, 2, 3, 0.1, 0.2, 0.3, 1.5])
        self.assertEqual(full.method_code, "9606")
        self.assertEqual(len(full.parameters), 7)
        self.assertEqual(full.parameter_value("8611"), 1.5)

        with self.assertRaises(ValueError):
            towgs84_transformation(WGS84, [1, 2])
