from unittest import TestCase

from crskit.constructs.crs import CompoundCRS, EngineeringCRS, GeographicCRS, ProjectedCRS
from crskit.constructs.cs import CSKind
from crskit.ops.builders import (
    Cartesian2DCSType,
    Ellipsoidal2DCSType,
    Ellipsoidal3DCSType,
    ParameterDescription,
    create_cartesian_2d_cs,
    create_compound_crs,
    create_conversion,
    create_ellipsoidal_2d_cs,
    create_ellipsoidal_3d_cs,
    create_engineering_crs,
    create_geocentric_crs,
    create_geodetic_datum,
    create_geographic_crs,
    create_projected_crs,
    create_vertical_crs,
)
from crskit.ops.conversions import conversion_utm
from crskit.registry.nx.nx_registry import NxRegistry
from crskit.registry.registry_interface import Category
from crskit.utils.units import DEGREE, FOOT, METRE, UNITY, UnitType


class TestCoordinateSystemBuilders(TestCase):
    """Test building coordinate systems"""

    def test_ellipsoidal_2d(self):
        """Test axis order and unit of 2D ellipsoidal coordinate systems"""
        cs = create_ellipsoidal_2d_cs(Ellipsoidal2DCSType.LATITUDE_LONGITUDE, "Degree", 0.0174532925199433)
        self.assertEqual(cs.kind, CSKind.ELLIPSOIDAL)
        self.assertEqual(cs.directions, ("north", "east"))
        # the dialect spelling resolves to the catalogue unit
        self.assertEqual(cs.axes[0].unit, DEGREE)

        cs = create_ellipsoidal_2d_cs(Ellipsoidal2DCSType.LONGITUDE_LATITUDE)
        self.assertEqual(cs.directions, ("east", "north"))
        self.assertEqual(cs.axes[0].unit, DEGREE)

    def test_ellipsoidal_3d(self):
        """Test the height axis of 3D ellipsoidal coordinate systems"""
        cs = create_ellipsoidal_3d_cs(Ellipsoidal3DCSType.LATITUDE_LONGITUDE_HEIGHT, None, 0.0, "foot", 0.3048)

        self.assertEqual(cs.axis_count, 3)
        self.assertEqual(cs.directions, ("north", "east", "up"))
        self.assertEqual(cs.axes[2].unit, FOOT)

    def test_cartesian_2d(self):
        """Test the two Cartesian axis orders"""
        cs = create_cartesian_2d_cs(Cartesian2DCSType.NORTHING_EASTING)
        self.assertEqual(cs.directions, ("north", "east"))
        self.assertEqual(cs.axes[0].unit, METRE)

        cs = create_cartesian_2d_cs(Cartesian2DCSType.EASTING_NORTHING, "my unit", 2.0)
        self.assertEqual(cs.directions, ("east", "north"))
        self.assertEqual(cs.axes[0].unit.conversion_factor, 2.0)


class TestCRSBuilders(TestCase):
    """Test building CRS from plain values"""

    def setUp(self):
        self.registry = NxRegistry.from_file()
        self.cs = create_ellipsoidal_2d_cs(Ellipsoidal2DCSType.LATITUDE_LONGITUDE)

    def test_wgs84_datum_names(self):
        """Test that every WGS 84 spelling gives the registered datum name"""
        for name in ("WGS_1984", "WGS84", "World Geodetic System 1984"):
            datum = create_geodetic_datum(name, "WGS 84", 6378137, 298.257223563)
            self.assertEqual(datum.name, "World Geodetic System 1984", name)

    def test_geodetic_datum(self):
        """Test datum, ellipsoid and prime meridian values"""
        datum = create_geodetic_datum(
            "North_American_Datum_1983", "GRS 1980", 6378137, 298.257222101,
            "Greenwich", 0.0, None, 0.0, self.registry,
        )
        self.assertEqual(datum.name, "North American Datum 1983")
        self.assertEqual(datum.ellipsoid.inverse_flattening, 298.257222101)
        self.assertEqual(datum.prime_meridian.unit, DEGREE)

        # a zero inverse flattening gives a sphere
        sphere = create_geodetic_datum(None, "sphere", 6371000, 0)
        self.assertEqual(sphere.name, "unknown")
        self.assertTrue(sphere.ellipsoid.is_sphere)

    def test_geographic_crs(self):
        """Test the geographic CRS built from WKT1 values"""
        crs = create_geographic_crs(
            "WGS 84", "WGS_1984", "WGS 84", 6378137, 298.257223563,
            "Greenwich", 0.0, "Degree", 0.0174532925199433, self.cs,
        )

        self.assertIsInstance(crs, GeographicCRS)
        self.assertEqual(crs.datum.name, "World Geodetic System 1984")
        self.assertTrue(crs.is_equivalent_to(self.registry.lookup("EPSG", "4326", Category.CRS)))

        deprecated = create_geographic_crs(
            "old (deprecated)", None, None, 6378137, 298.257223563, None, 0.0, None, 0.0, self.cs
        )
        self.assertEqual(deprecated.name, "old")
        self.assertTrue(deprecated.deprecated)

    def test_geocentric_crs(self):
        """Test the geocentric CRS built from datum values"""
        crs = create_geocentric_crs(
            "WGS 84", "WGS_1984", "WGS 84", 6378137, 298.257223563,
            "Greenwich", 0.0, "Degree", 0.0174532925199433, "Metre", 1.0,
        )

        self.assertTrue(crs.is_geocentric)
        self.assertEqual(crs.coordinate_system.axis_count, 3)
        self.assertTrue(crs.is_equivalent_to(self.registry.lookup("EPSG", "4978", Category.CRS)))

    def test_projected_crs(self):
        """Test the default coordinate system of projected CRS"""
        base = self.registry.lookup("EPSG", "4326", Category.CRS)
        crs = create_projected_crs("my UTM", base, conversion_utm(31))

        self.assertIsInstance(crs, ProjectedCRS)
        self.assertEqual(crs.coordinate_system.directions, ("east", "north"))
        self.assertTrue(crs.is_equivalent_to(self.registry.lookup("EPSG", "32631", Category.CRS)))

    def test_vertical_compound_engineering(self):
        """Test the remaining CRS builders"""
        vertical = create_vertical_crs("my height", "my datum", "foot", 0.3048)
        self.assertEqual(vertical.datum.name, "my datum")
        self.assertEqual(vertical.coordinate_system.axes[0].unit, FOOT)

        base = self.registry.lookup("EPSG", "4326", Category.CRS)
        compound = create_compound_crs("my compound", base, vertical)
        self.assertIsInstance(compound, CompoundCRS)
        self.assertEqual(compound.components, (base, vertical))

        local = create_engineering_crs(None)
        self.assertIsInstance(local, EngineeringCRS)
        self.assertEqual(local.name, "unknown")
        self.assertIsNone(local.coordinate_system)


class TestCreateConversion(TestCase):
    """Test building conversions from parameter descriptions"""

    def test_catalogue_method_name(self):
        """Test that an EPSG method code without name takes the catalogue name"""
        conv = create_conversion(
            "my conversion",
            None,
            [ParameterDescription("Scale factor at natural origin", 0.9996, None, 0.0, UnitType.SCALE, "EPSG", "8805")],
            method_authority="EPSG",
            method_code="9807",
        )

        self.assertEqual(conv.method.name, "Transverse Mercator")
        self.assertEqual(conv.method_code, "9807")
        self.assertEqual(conv.parameter_value("8805"), 0.9996)
        self.assertEqual(conv.parameters[0].unit, UNITY)

    def test_parameters(self):
        """Test units and string values of parameters"""
        conv = create_conversion(
            "my conversion",
            "my method",
            [
                ParameterDescription("False easting", 1000, "US survey foot", 0.304800609601219, UnitType.LINEAR),
                ParameterDescription("Latitude of origin", 45, unit_type=UnitType.ANGULAR),
                ParameterDescription("Grid file", "grid.tif"),
            ],
            authority="FOO",
            code=1,
        )

        self.assertEqual(conv.method.name, "my method")
        self.assertEqual(conv.identifiers[0].to_string(), "FOO:1")
        self.assertEqual(conv.parameters[0].unit.conversion_factor, 0.304800609601219)
        # no unit name selects the default unit of the type
        self.assertEqual(conv.parameters[1].unit, DEGREE)
        self.assertEqual(conv.parameters[2].string_value, "grid.tif")
        self.assertIsNone(conv.parameters[2].value)
