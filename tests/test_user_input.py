from unittest import TestCase

from crskit.codecs.user_input import create_from_user_input
from crskit.constructs.common import Identifier
from crskit.constructs.crs import GeographicCRS, ProjectedCRS
from crskit.registry.nx.nx_registry import NxRegistry
from crskit.utils.exceptions import NotFoundError, ParseError, WKTParseError


class TestCreateFromUserInput(TestCase):
    """Test building objects from any textual input"""

    def setUp(self):
        self.registry = NxRegistry.from_file()

    def test_references(self):
        """Test the reference forms resolved through the registry"""
        for text in ("EPSG:4326", "EPSG::4326", "epsg:4326", "urn:ogc:def:crs:EPSG::4326"):
            crs = create_from_user_input(text, self.registry)
            self.assertEqual(crs.identifiers[0], Identifier("EPSG", "4326"), text)

    def test_proj_string(self):
        """Test that PROJ strings go to the PROJ string reader"""
        crs = create_from_user_input("+proj=utm +zone=32 +datum=WGS84", self.registry)

        self.assertIsInstance(crs, ProjectedCRS)
        self.assertEqual(crs.conversion.name, "UTM zone 32N")

    def test_wkt(self):
        """Test that WKT goes to the WKT reader"""
        crs = create_from_user_input(
            '  GEOGCS["WGS 84",DATUM["WGS_1984",SPHEROID["WGS 84",6378137,298.257223563]],'
            'PRIMEM["Greenwich",0],UNIT["degree",0.0174532925199433]]',
            self.registry,
        )

        self.assertIsInstance(crs, GeographicCRS)
        self.assertEqual(crs.datum.name, "World Geodetic System 1984")

        with self.assertRaises(WKTParseError):
            create_from_user_input('GEOGCS["WGS 84"', self.registry)

    def test_errors(self):
        """Test input that cannot be interpreted"""
        with self.assertRaises(ParseError):
            create_from_user_input("   ", self.registry)
        with self.assertRaises(ParseError):
            create_from_user_input("EPSG:4326")
        with self.assertRaises(ParseError):
            create_from_user_input("hello world", self.registry)
        with self.assertRaises(NotFoundError):
            create_from_user_input("EPSG:999999", self.registry)
