from unittest import TestCase

from crskit.constructs.common import Identifier
from crskit.ops import conversions
from crskit.utils.units import DEGREE, GRAD, METRE, UNITY, FOOT


class TestUTM(TestCase):
    """Test the UTM conversion factory"""

    def test_north(self):
        """Test a northern zone"""
        conv = conversions.conversion_utm(31)

        self.assertEqual(conv.name, "UTM zone 31N")
        self.assertEqual(conv.identifiers, (Identifier("EPSG", "16031"),))
        self.assertEqual(conv.method_code, "9807")
        self.assertEqual(conv.parameter_value("8801"), 0.0)
        self.assertEqual(conv.parameter_value("8802"), 3.0)
        self.assertEqual(conv.parameter_value("8805"), 0.9996)
        self.assertEqual(conv.parameter_value("8806"), 500000.0)
        self.assertEqual(conv.parameter_value("8807"), 0.0)

    def test_south(self):
        """Test a southern zone"""
        conv = conversions.conversion_utm(60, north=False)

        self.assertEqual(conv.name, "UTM zone 60S")
        self.assertEqual(conv.identifiers, (Identifier("EPSG", "16160"),))
        self.assertEqual(conv.parameter_value("8802"), 177.0)
        self.assertEqual(conv.parameter_value("8807"), 10000000.0)

    def test_zone_out_of_range(self):
        """Test that zones outside 1..60 are rejected"""
        for zone in (0, 61, -1):
            with self.assertRaises(ValueError):
                conversions.conversion_utm(zone)


class TestConversionFactories(TestCase):
    """Test the map projection factories"""

    def test_transverse_mercator(self):
        """Test parameter values and units"""
        conv = conversions.conversion_transverse_mercator(49, -2, 0.9996012717, 400000, -100000)

        self.assertEqual(conv.method.name, "Transverse Mercator")
        self.assertEqual(conv.name, "unknown")
        self.assertEqual(conv.parameter_value("8801"), 49.0)
        self.assertEqual(conv.parameter_value("8807"), -100000.0)

        units = {p.code: p.unit for p in conv.parameters}
        self.assertEqual(units["8801"], DEGREE)
        self.assertEqual(units["8805"], UNITY)
        self.assertEqual(units["8806"], METRE)

    def test_custom_units(self):
        """Test angles and distances in other units"""
        conv = conversions.conversion_transverse_mercator(
            0, 0, 1, 1000, 0, angular_unit=GRAD, linear_unit=FOOT
        )

        self.assertEqual(conv.parameter_value("8806"), 1000.0)
        self.assertAlmostEqual(conv.parameter_value("8806", METRE), 304.8)
        units = {p.code: p.unit for p in conv.parameters}
        self.assertEqual(units["8802"], GRAD)

    def test_lambert_conic_conformal_2sp(self):
        """Test the false origin parameters"""
        conv = conversions.conversion_lambert_conic_conformal_2sp(46.5, 3, 49, 44, 700000, 6600000)

        self.assertEqual(conv.method_code, "9802")
        self.assertEqual(conv.parameter_value("8821"), 46.5)
        self.assertEqual(conv.parameter_value("8823"), 49.0)
        self.assertEqual(conv.parameter_value("8824"), 44.0)
        self.assertEqual(conv.parameter_value("8827"), 6600000.0)

    def test_methods(self):
        """Test the method each factory selects"""
        cases = [
            (conversions.conversion_transverse_mercator_south_oriented(0, 29, 1, 0, 0), "9808"),
            (conversions.conversion_lambert_conic_conformal_1sp(46.8, 2.33, 0.99987742, 600000, 2200000), "9801"),
            (conversions.conversion_lambert_conic_conformal_2sp_belgium(90, 4.36, 49.8, 51.2, 150000, 5400000), "9803"),
            (conversions.conversion_albers_equal_area(23, -96, 29.5, 45.5, 0, 0), "9822"),
            (conversions.conversion_mercator_variant_a(0, 0, 1, 0, 0), "9804"),
            (conversions.conversion_mercator_variant_b(10, 0, 0, 0), "9805"),
            (conversions.conversion_krovak(49.5, 24.83, 30.29, 78.5, 0.9999, 0, 0), "9819"),
            (conversions.conversion_equal_earth(0, 0, 0), "1078"),
        ]
        for conv, code in cases:
            self.assertEqual(conv.method_code, code, conv.method.name)

    def test_world_projections(self):
        """Test the projections defined by a central meridian only"""
        conv = conversions.conversion_robinson(10, 0, 0)

        self.assertEqual(conv.method.name, "Robinson")
        self.assertEqual(conv.parameter_value("8802"), 10.0)
