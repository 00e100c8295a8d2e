from unittest import TestCase

from crskit.codecs.proj_string.formatter import ProjStringStyle, to_proj_string
from crskit.codecs.wkt.dialect import GuessedWKTDialect, WKTDialect, guess_wkt_dialect
from crskit.codecs.wkt.formatter import format_number, parse_options, to_wkt
from crskit.codecs.wkt.parser import from_wkt
from crskit.codecs.wkt.tokenizer import tokenize
from crskit.constructs.common import Identifier
from crskit.constructs.crs import WGS84, BoundCRS, GeographicCRS, OtherCRS, ProjectedCRS, bound_crs_to_wgs84
from crskit.constructs.operation import Transformation, helmert_parameters
from crskit.derivation.engine import derive_operations
from crskit.registry.nx.nx_registry import NxRegistry
from crskit.registry.registry_interface import Category
from crskit.utils.exceptions import FormattingOptionError, UnrepresentableError, WKTParseError

GDAL_WGS84 = (
    'GEOGCS["WGS 84",DATUM["World_Geodetic_System_1984",'
    'SPHEROID["WGS 84",6378137,298.257223563,AUTHORITY["EPSG","7030"]],AUTHORITY["EPSG","6326"]],'
    'PRIMEM["Greenwich",0,AUTHORITY["EPSG","8901"]],'
    'UNIT["degree",0.0174532925199433,AUTHORITY["EPSG","9122"]],AUTHORITY["EPSG","4326"]]'
)

ESRI_WGS84 = (
    'GEOGCS["GCS_WGS_1984",DATUM["D_WGS_1984",SPHEROID["WGS_1984",6378137.0,298.257223563]],'
    'PRIMEM["Greenwich",0.0],UNIT["Degree",0.0174532925199433]]'
)

FITTED = (
    'FITTED_CS["fitted",PARAM_MT["Affine",PARAMETER["elt_0_0",1]],'
    'LOCAL_CS["local",LOCAL_DATUM["d",32767],UNIT["metre",1],AXIS["x",EAST],AXIS["y",NORTH]]]'
)

FITTED_MULTILINE = (
    'FITTED_CS["fitted",\n'
    '    PARAM_MT["Affine",\n'
    '        PARAMETER["elt_0_0",1]],\n'
    '    LOCAL_CS["local",\n'
    '        LOCAL_DATUM["d",32767],\n'
    '        UNIT["metre",1],\n'
    '        AXIS["x",EAST],\n'
    '        AXIS["y",NORTH]]]'
)


class TestWKTFormatter(TestCase):
    """Test writing objects as WKT"""

    def setUp(self):
        self.registry = NxRegistry.from_file()

    def crs(self, code, authority="EPSG"):
        return self.registry.lookup(authority, code, Category.CRS)

    def test_wkt1_gdal_without_registry(self):
        """Test the GDAL spelling derived from the datum name"""
        wkt = to_wkt(WGS84, WKTDialect.WKT1_GDAL, ["MULTILINE=NO"])

        self.assertEqual(wkt, GDAL_WGS84)

    def test_wkt1_gdal_registry_alias(self):
        """Test that the registry alias table provides the GDAL datum name"""
        wkt = to_wkt(self.crs("4326"), WKTDialect.WKT1_GDAL, ["MULTILINE=NO"], self.registry)

        self.assertIn('DATUM["WGS_1984"', wkt)
        self.assertNotIn("AXIS", wkt)

    def test_wkt1_axes(self):
        """Test when WKT1 axes are written"""
        wkt = to_wkt(WGS84, WKTDialect.WKT1_GDAL, ["MULTILINE=NO", "OUTPUT_AXIS=YES"])
        self.assertIn('AXIS["Latitude",NORTH],AXIS["Longitude",EAST]', wkt)

        # longitude first is not the WKT1 default, so the axes are written anyway
        wkt = to_wkt(self.crs("CRS84", "OGC"), WKTDialect.WKT1_GDAL, ["MULTILINE=NO"])
        self.assertIn('AXIS["Longitude",EAST],AXIS["Latitude",NORTH]', wkt)

        wkt = to_wkt(self.crs("CRS84", "OGC"), WKTDialect.WKT1_GDAL, ["MULTILINE=NO", "OUTPUT_AXIS=NO"])
        self.assertNotIn("AXIS", wkt)
        self.assertIn('UNIT["degree",0.0174532925199433', wkt)

    def test_wkt2_without_axes(self):
        """Test that OUTPUT_AXIS=NO keeps the CS clause and its unit"""
        wkt = to_wkt(self.crs("4326"), WKTDialect.WKT2_2018, ["MULTILINE=NO", "OUTPUT_AXIS=NO"])
        self.assertIn('CS[ellipsoidal,2],ANGLEUNIT["degree",0.0174532925199433', wkt)
        self.assertNotIn("AXIS[", wkt)

        wkt = to_wkt(self.crs("32631"), WKTDialect.WKT2_2015_SIMPLIFIED, ["MULTILINE=NO", "OUTPUT_AXIS=NO"])
        self.assertIn('CS[Cartesian,2],UNIT["metre",1', wkt)
        self.assertNotIn("AXIS[", wkt)

    def test_wkt2_unnamed_method(self):
        """Test that an operation without method is written with an unnamed one"""
        nad27 = self.crs("4267")
        transformation = Transformation(name="NAD27 to WGS 84", source_crs=nad27, target_crs=WGS84)
        bound = BoundCRS(name=nad27.name, base_crs=nad27, hub_crs=WGS84, transformation=transformation)

        wkt = to_wkt(bound, WKTDialect.WKT2_2018, ["MULTILINE=NO"])
        self.assertIn('ABRIDGEDTRANSFORMATION["NAD27 to WGS 84",METHOD["unnamed"]]', wkt)

    def test_wkt1_esri(self):
        """Test the ESRI names and the absence of authorities"""
        wkt = to_wkt(self.crs("4326"), WKTDialect.WKT1_ESRI, registry=self.registry)

        self.assertEqual(wkt, ESRI_WGS84)
        self.assertNotIn("AUTHORITY", wkt)

    def test_wkt1_unrepresentable(self):
        """Test objects WKT1 cannot describe"""
        with self.assertRaises(UnrepresentableError):
            to_wkt(self.crs("4979"), WKTDialect.WKT1_GDAL)

        bound = bound_crs_to_wgs84(self.crs("4267"), [-8, 160, 176])
        with self.assertRaises(UnrepresentableError):
            to_wkt(bound, WKTDialect.WKT1_ESRI)

    def test_wkt1_towgs84(self):
        """Test that a bound CRS to WGS 84 is written with TOWGS84"""
        bound = bound_crs_to_wgs84(self.crs("4267"), [-8, 160, 176])
        wkt = to_wkt(bound, WKTDialect.WKT1_GDAL, ["MULTILINE=NO"])

        self.assertTrue(wkt.startswith('GEOGCS["NAD27"'))
        self.assertIn("TOWGS84[-8,160,176,0,0,0,0]", wkt)

    def test_wkt2_2018(self):
        """Test the usage block and the identifier placement"""
        wkt = to_wkt(self.crs("4326"), WKTDialect.WKT2_2018, ["MULTILINE=NO"])

        self.assertTrue(wkt.startswith('GEOGCRS["WGS 84",DATUM["World Geodetic System 1984"'))
        self.assertIn(
            'USAGE[SCOPE["Horizontal component of 3D system."],AREA["World."],BBOX[-90,-180,90,180]]',
            wkt,
        )
        self.assertTrue(wkt.endswith('ID["EPSG",4326]]'))
        # the root identifier makes inner ones redundant
        self.assertNotIn('ID["EPSG",7030]', wkt)

    def test_wkt2_2015(self):
        """Test the 2015 revision keywords"""
        wkt = to_wkt(self.crs("4326"), WKTDialect.WKT2_2015, ["MULTILINE=NO"])

        self.assertTrue(wkt.startswith('GEODCRS["WGS 84"'))
        self.assertNotIn("USAGE", wkt)
        self.assertIn('SCOPE["Horizontal component of 3D system."]', wkt)

    def test_wkt2_simplified(self):
        """Test that the simplified dialect factors units out"""
        wkt = to_wkt(self.crs("4326"), WKTDialect.WKT2_2018_SIMPLIFIED, ["MULTILINE=NO"])

        self.assertIn('UNIT["degree",0.0174532925199433]', wkt)
        self.assertNotIn("ANGLEUNIT", wkt)
        self.assertNotIn("ORDER[", wkt)

    def test_multiline(self):
        """Test indentation of nested nodes"""
        wkt = to_wkt(WGS84, WKTDialect.WKT2_2018)
        self.assertIn('\n    DATUM["World Geodetic System 1984"', wkt)

        wkt = to_wkt(WGS84, WKTDialect.WKT2_2018, {"INDENTATION_WIDTH": 2})
        self.assertIn('\n  DATUM["World Geodetic System 1984"', wkt)
        self.assertIn('\n    ELLIPSOID["WGS 84"', wkt)

    def test_invalid_options(self):
        """Test that malformed or unknown options are rejected"""
        for options in (["MULTILINE=MAYBE"], ["FOO=BAR"], ["MULTILINE"], ["INDENTATION_WIDTH=-1"]):
            with self.assertRaises(FormattingOptionError):
                to_wkt(WGS84, WKTDialect.WKT2_2018, options)

        self.assertEqual(parse_options({"multiline": "no"}), {"MULTILINE": "NO"})

    def test_concatenated_operation(self):
        """Test that only the 2018 revision has concatenated operations"""
        op = derive_operations(self.crs("4326"), self.crs("6668"), self.registry)[0]

        with self.assertRaises(UnrepresentableError):
            to_wkt(op, WKTDialect.WKT2_2015)

        wkt = to_wkt(op, WKTDialect.WKT2_2018, ["MULTILINE=NO"])
        self.assertTrue(wkt.startswith('CONCATENATEDOPERATION["Inverse of JGD2000 to WGS 84 (1) + JGD2000 to JGD2011 (2)"'))
        self.assertEqual(wkt.count("STEP["), 2)

    def test_wkt1_projected(self):
        """Test a projected CRS in WKT1"""
        wkt = to_wkt(self.crs("32631"), WKTDialect.WKT1_GDAL, ["MULTILINE=NO"], self.registry)

        self.assertTrue(wkt.startswith('PROJCS["WGS 84 / UTM zone 31N",GEOGCS["WGS 84"'))
        self.assertIn('PROJECTION["Transverse_Mercator"]', wkt)
        self.assertIn('PARAMETER["central_meridian",3]', wkt)
        self.assertIn('PARAMETER["scale_factor",0.9996]', wkt)
        self.assertIn('PARAMETER["false_easting",500000]', wkt)
        self.assertTrue(wkt.endswith('AUTHORITY["EPSG","32631"]]'))

    def test_esri_mercator(self):
        """Test that ESRI Mercator is written with a standard parallel"""
        wkt = to_wkt(self.crs("3395"), WKTDialect.WKT1_ESRI, registry=self.registry)

        self.assertTrue(wkt.startswith('PROJCS["WGS_1984_World_Mercator",GEOGCS["GCS_WGS_1984"'))
        self.assertIn('PROJECTION["Mercator"]', wkt)
        self.assertIn('PARAMETER["Standard_Parallel_1"', wkt)
        self.assertNotIn("Scale_Factor", wkt)

    def test_format_number(self):
        """Test number formatting"""
        self.assertEqual(format_number(0.017453292519943295), "0.0174532925199433")
        self.assertEqual(format_number(6378137.0), "6378137")
        self.assertEqual(format_number(6378137.0, esri=True), "6378137.0")
        self.assertEqual(format_number(-0.0), "0")
        self.assertEqual(format_number(0.9996, esri=True), "0.9996")


class TestWKTParser(TestCase):
    """Test reading WKT"""

    def setUp(self):
        self.registry = NxRegistry.from_file()

    def test_wkt1_gdal(self):
        """Test reading a GDAL WKT1 geographic CRS"""
        crs = from_wkt(GDAL_WGS84, self.registry)

        self.assertIsInstance(crs, GeographicCRS)
        self.assertEqual(crs.identifiers[0], Identifier("EPSG", "4326"))
        self.assertEqual(crs.datum.name, "World Geodetic System 1984")
        self.assertEqual(crs.coordinate_system.directions, ("north", "east"))
        self.assertTrue(crs.is_equivalent_to(self.registry.lookup("EPSG", "4326", Category.CRS)))

    def test_wkt1_datum_without_registry(self):
        """Test that underscores in WKT1 datum names become spaces"""
        text = GDAL_WGS84.replace("World_Geodetic_System_1984", "WGS_1984")

        self.assertEqual(from_wkt(text).datum.name, "WGS 1984")
        self.assertEqual(from_wkt(text, self.registry).datum.name, "World Geodetic System 1984")

    def test_towgs84(self):
        """Test that TOWGS84 gives a bound CRS"""
        text = GDAL_WGS84.replace(
            'AUTHORITY["EPSG","7030"]],', 'AUTHORITY["EPSG","7030"]],TOWGS84[-8,160,176,0,0,0,0],'
        )
        crs = from_wkt(text)

        self.assertIsInstance(crs, BoundCRS)
        self.assertEqual(helmert_parameters(crs.transformation)[:3], (-8.0, 160.0, 176.0))

    def test_wkt1_esri(self):
        """Test that ESRI names are turned back into registered names"""
        with_registry = from_wkt(ESRI_WGS84, self.registry)
        self.assertEqual(with_registry.name, "WGS 84")
        self.assertEqual(with_registry.datum.name, "World Geodetic System 1984")

        without_registry = from_wkt(ESRI_WGS84)
        self.assertEqual(without_registry.name, "WGS 1984")

    def test_wkt2_round_trip(self):
        """Test that identifiers and usage survive writing and reading back"""
        original = self.registry.lookup("EPSG", "4326", Category.CRS)
        crs = from_wkt(to_wkt(original, WKTDialect.WKT2_2018))

        self.assertEqual(crs.identifiers, (Identifier("EPSG", "4326"),))
        self.assertEqual(crs.scope, "Horizontal component of 3D system.")
        area = crs.area_of_use
        self.assertEqual((area.west, area.south, area.east, area.north), (-180.0, -90.0, 180.0, 90.0))
        self.assertEqual(area.description, "World.")
        self.assertTrue(crs.is_equivalent_to(original))

    def test_wkt1_projected_round_trip(self):
        """Test reading back a WKT1 projected CRS"""
        original = self.registry.lookup("EPSG", "32631", Category.CRS)
        crs = from_wkt(to_wkt(original, WKTDialect.WKT1_GDAL, registry=self.registry), self.registry)

        self.assertIsInstance(crs, ProjectedCRS)
        self.assertEqual(crs.name, "WGS 84 / UTM zone 31N")
        self.assertEqual(crs.conversion.parameter_value("8802"), 3.0)
        self.assertEqual(crs.conversion.parameter_value("8805"), 0.9996)

    def test_unsupported_crs_kept_as_text(self):
        """Test that FITTED_CS is kept verbatim"""
        crs = from_wkt(FITTED)

        self.assertIsInstance(crs, OtherCRS)
        self.assertEqual(crs.name, "fitted")
        self.assertEqual(to_wkt(crs, WKTDialect.WKT1_GDAL), FITTED)
        with self.assertRaises(UnrepresentableError):
            to_wkt(crs, WKTDialect.WKT2_2018)

    def test_unsupported_crs_written_on_one_line(self):
        """Test that kept WKT is collapsed onto one line when MULTILINE=NO"""
        crs = from_wkt(FITTED_MULTILINE)

        self.assertIsInstance(crs, OtherCRS)
        self.assertEqual(to_wkt(crs, WKTDialect.WKT1_GDAL), FITTED_MULTILINE)
        self.assertEqual(to_wkt(crs, WKTDialect.WKT1_GDAL, ["MULTILINE=NO"]), FITTED)

        # blanks inside quoted names are kept
        crs = from_wkt(FITTED_MULTILINE.replace('"local"', '"a  b"'))
        self.assertEqual(
            to_wkt(crs, WKTDialect.WKT1_GDAL, ["MULTILINE=NO"]),
            FITTED.replace('"local"', '"a  b"'),
        )

    def test_wkt2_without_axes_round_trip(self):
        """Test that WKT2 written without axes reads back to an equivalent CRS"""
        for code in ("4326", "32631", "4979", "5701"):
            original = self.registry.lookup("EPSG", code, Category.CRS)
            for dialect in (
                WKTDialect.WKT2_2018,
                WKTDialect.WKT2_2018_SIMPLIFIED,
                WKTDialect.WKT2_2015,
                WKTDialect.WKT2_2015_SIMPLIFIED,
            ):
                wkt = to_wkt(original, dialect, ["OUTPUT_AXIS=NO"])
                self.assertNotIn("AXIS[", wkt)

                crs = from_wkt(wkt)
                self.assertTrue(crs.is_equivalent_to(original), f"EPSG:{code} {dialect}")
                self.assertEqual(crs.coordinate_system.axis_count, original.coordinate_system.axis_count)

    def test_bound_crs_without_helmert(self):
        """Test a bound CRS whose transformation has no TOWGS84 or PROJ string form"""
        ntf_paris = self.registry.lookup("EPSG", "4807", Category.CRS)
        wgs84 = self.registry.lookup("EPSG", "4326", Category.CRS)
        transformation = Transformation(name="unnamed", source_crs=ntf_paris, target_crs=wgs84)
        bound = BoundCRS(name=ntf_paris.name, base_crs=ntf_paris, hub_crs=wgs84, transformation=transformation)

        crs = from_wkt(to_wkt(bound, WKTDialect.WKT2_2018))
        self.assertIsInstance(crs, BoundCRS)
        self.assertEqual(crs.base_crs.name, "NTF (Paris)")
        self.assertEqual(crs.transformation.method.name, "unnamed")
        self.assertIsNone(helmert_parameters(crs.transformation))

        with self.assertRaises(UnrepresentableError):
            to_wkt(crs, WKTDialect.WKT1_GDAL)
        with self.assertRaises(UnrepresentableError):
            to_proj_string(crs, ProjStringStyle.PROJ_5)
        with self.assertRaises(UnrepresentableError):
            to_proj_string(crs, ProjStringStyle.PROJ_4)

    def test_parse_errors(self):
        """Test malformed WKT"""
        for text in ('GEOGCS["WGS 84"', 'GEOGCS["WGS 84]', 'FOO["bar"]', "not wkt at all", 'GEOGCS["x"]]'):
            with self.assertRaises(WKTParseError):
                from_wkt(text)

        # parse errors are value errors
        self.assertTrue(issubclass(WKTParseError, ValueError))

    def test_tokenize(self):
        """Test the keyword tree"""
        root = tokenize('AXIS("Easting",EAST,ORDER[1])')

        self.assertEqual(root.keyword, "AXIS")
        self.assertEqual(root.values, ["Easting", "EAST"])
        self.assertEqual(root.find("ORDER").number(0), 1.0)
        self.assertIsNone(root.find("UNIT"))


class TestGuessDialect(TestCase):
    """Test WKT dialect detection"""

    def test_guess(self):
        """Test each dialect"""
        self.assertEqual(guess_wkt_dialect(GDAL_WGS84), GuessedWKTDialect.WKT1_GDAL)
        self.assertEqual(guess_wkt_dialect(ESRI_WGS84), GuessedWKTDialect.WKT1_ESRI)
        self.assertEqual(guess_wkt_dialect('GEODCRS["x",DATUM["y",ELLIPSOID["z",1,0]]]'), GuessedWKTDialect.WKT2_2015)
        self.assertEqual(guess_wkt_dialect('GEOGCRS["x",DATUM["y",ELLIPSOID["z",1,0]]]'), GuessedWKTDialect.WKT2_2018)
        self.assertEqual(guess_wkt_dialect("+proj=longlat"), GuessedWKTDialect.NOT_WKT)
        self.assertEqual(guess_wkt_dialect("EPSG:4326"), GuessedWKTDialect.NOT_WKT)
