from unittest import TestCase

from crskit.codecs.proj_string.formatter import ProjStringStyle, parse_options, simplify, to_proj_string
from crskit.codecs.proj_string.parser import (
    PROJ_BASED_CONVERSION_NAME,
    Step,
    from_proj_string,
    split_steps,
    tokenize,
)
from crskit.constructs.common import Identifier
from crskit.constructs.crs import WGS84, BoundCRS, CompoundCRS, GeographicCRS, ProjectedCRS
from crskit.constructs.datum import WGS84_DATUM
from crskit.constructs.operation import Transformation, make_method, make_parameter
from crskit.derivation.engine import ballpark_vertical, derive_operations
from crskit.registry.nx.nx_registry import NxRegistry
from crskit.registry.registry_interface import Category
from crskit.utils import method_mappings as mm
from crskit.utils.exceptions import FormattingOptionError, ProjStringParseError, UnrepresentableError
from crskit.utils.units import DEGREE, METRE

WGS84_PIPELINE = (
    "+proj=pipeline +step +proj=longlat +ellps=WGS84 "
    "+step +proj=unitconvert +xy_in=rad +xy_out=deg +step +proj=axisswap +order=2,1"
)


class TestProjStringFormatter(TestCase):
    """Test writing PROJ strings"""

    def setUp(self):
        self.registry = NxRegistry.from_file()

    def crs(self, code):
        return self.registry.lookup("EPSG", code, Category.CRS)

    def test_proj4_geographic(self):
        """Test the flat definition of WGS 84"""
        self.assertEqual(to_proj_string(WGS84, ProjStringStyle.PROJ_4), "+proj=longlat +datum=WGS84 +no_defs")

    def test_proj5_geographic(self):
        """Test that latitude/longitude in degrees needs unit and axis steps"""
        self.assertEqual(to_proj_string(self.crs("4326")), WGS84_PIPELINE)

    def test_utm(self):
        """Test that UTM conversions are written as +proj=utm"""
        utm = self.crs("32631")

        self.assertEqual(to_proj_string(utm), "+proj=utm +zone=31 +ellps=WGS84")
        self.assertEqual(
            to_proj_string(utm, ProjStringStyle.PROJ_4, registry=self.registry),
            "+proj=utm +zone=31 +datum=WGS84 +units=m +no_defs",
        )

    def test_use_etmerc(self):
        """Test forcing the Transverse Mercator algorithm"""
        utm = self.crs("32631")

        etmerc = to_proj_string(utm, options=["USE_ETMERC=YES"])
        self.assertTrue(etmerc.startswith("+proj=etmerc "))
        self.assertIn("+lon_0=3", etmerc)
        self.assertIn("+k=0.9996", etmerc)
        self.assertTrue(etmerc.endswith("+ellps=WGS84"))

        tmerc = to_proj_string(utm, options={"USE_ETMERC": "NO"})
        self.assertTrue(tmerc.startswith("+proj=tmerc "))

    def test_invalid_options(self):
        """Test the option checks"""
        for options in (["MULTILINE=YES"], ["USE_ETMERC=MAYBE"], ["FOO=BAR"], ["USE_ETMERC"]):
            with self.assertRaises(FormattingOptionError):
                parse_options(options)

    def test_conversion_operation(self):
        """Test an operation projecting latitude/longitude degrees"""
        op = derive_operations(self.crs("4326"), self.crs("32631"), self.registry)[0]

        self.assertEqual(
            to_proj_string(op),
            "+proj=pipeline +step +proj=axisswap +order=2,1 +step +proj=unitconvert +xy_in=deg +xy_out=rad "
            "+step +proj=utm +zone=31 +ellps=WGS84",
        )

    def test_grid_transformation(self):
        """Test that NADCON grids are written without their extension"""
        op = self.registry.lookup("EPSG", "1241", Category.COORDINATE_OPERATION)
        text = to_proj_string(op)

        self.assertTrue(text.startswith("+proj=pipeline +step +proj=axisswap +order=2,1"))
        self.assertIn("+step +proj=hgridshift +grids=conus ", text)

    def test_vertical_offset(self):
        """Test that vertical offsets are written as geogoffset steps"""
        odn, egm2008 = self.crs("5701"), self.crs("3855")
        self.assertEqual(to_proj_string(ballpark_vertical(odn, egm2008)), "+proj=noop")

        mapping = mm.method_by_code(mm.VERTICAL_OFFSET)
        op = Transformation(
            name="ODN height to EGM2008 height",
            method=make_method(mapping),
            parameters=(make_parameter(mapping.params[0], 1.5, METRE),),
            source_crs=odn,
            target_crs=egm2008,
        )
        self.assertEqual(to_proj_string(op), "+proj=geogoffset +dh=1.5")
        self.assertEqual(to_proj_string(op.inverse()), "+proj=geogoffset +dh=-1.5")

    def test_unrepresentable(self):
        """Test objects without a PROJ string"""
        with self.assertRaises(UnrepresentableError):
            to_proj_string(WGS84_DATUM)

        op = self.registry.lookup("EPSG", "1241", Category.COORDINATE_OPERATION)
        with self.assertRaises(UnrepresentableError):
            to_proj_string(op, ProjStringStyle.PROJ_4)

    def test_simplify(self):
        """Test that identity steps and inverse pairs are dropped"""
        swap = Step("axisswap", (("order", "2,1"),))
        steps = [
            Step("noop"),
            Step("unitconvert", (("xy_in", "deg"), ("xy_out", "deg"))),
            swap,
            swap.inverted(),
            Step("longlat", (("ellps", "GRS80"),)),
        ]

        self.assertEqual(simplify(steps), [Step("longlat", (("ellps", "GRS80"),))])


class TestProjStringParser(TestCase):
    """Test reading PROJ strings"""

    def setUp(self):
        self.registry = NxRegistry.from_file()

    def test_tokenize(self):
        """Test splitting words"""
        self.assertEqual(tokenize("+proj=utm +zone=31 +south"), [("proj", "utm"), ("zone", "31"), ("south", None)])
        self.assertEqual(tokenize("proj=longlat"), [("proj", "longlat")])

    def test_split_steps(self):
        """Test that pipeline globals are copied into each step"""
        steps, is_pipeline = split_steps("+proj=pipeline +ellps=GRS80 +step +proj=cart +step +inv +proj=cart +ellps=WGS84")

        self.assertTrue(is_pipeline)
        self.assertEqual(steps[0], Step("cart", (("ellps", "GRS80"),)))
        self.assertEqual(steps[1], Step("cart", (("ellps", "WGS84"),), inverse=True))

    def test_step(self):
        """Test writing and inverting steps"""
        step = Step("unitconvert", (("xy_in", "rad"), ("xy_out", "deg")))
        self.assertEqual(step.inverted().to_string(), "+proj=unitconvert +xy_in=deg +xy_out=rad")

        swap = Step("axisswap", (("order", "2,-1"),))
        self.assertEqual(swap.inverted().get("order"), "-2,1")

        utm = Step("utm", (("zone", "31"), ("south", None)), inverse=True)
        self.assertEqual(utm.to_string(), "+inv +proj=utm +zone=31 +south")

    def test_geographic(self):
        """Test a flat geographic CRS"""
        crs = from_proj_string("+proj=longlat +datum=WGS84 +no_defs")

        self.assertIsInstance(crs, GeographicCRS)
        self.assertEqual(crs.datum, WGS84_DATUM)
        self.assertEqual(crs.coordinate_system.directions, ("east", "north"))
        self.assertEqual(crs.coordinate_system.axes[0].unit, DEGREE)

    def test_registered_datum(self):
        """Test that +datum= resolves to the registered datum"""
        crs = from_proj_string("+proj=longlat +datum=NAD83", self.registry)

        self.assertEqual(crs.datum.name, "North American Datum 1983")
        self.assertTrue(crs.datum.has_identifier("EPSG", "6269"))

    def test_pipeline_round_trip(self):
        """Test reading back the pipeline written for EPSG:4326"""
        crs = from_proj_string(WGS84_PIPELINE)

        self.assertIsInstance(crs, GeographicCRS)
        self.assertEqual(crs.coordinate_system.directions, ("north", "east"))
        self.assertTrue(crs.coordinate_system.axes[0].unit.is_equivalent_to(DEGREE))
        self.assertEqual(crs.ellipsoid.semi_major_axis, 6378137.0)

    def test_utm(self):
        """Test a southern UTM zone"""
        crs = from_proj_string("+proj=utm +zone=31 +south +ellps=GRS80")

        self.assertIsInstance(crs, ProjectedCRS)
        self.assertEqual(crs.conversion.name, "UTM zone 31S")
        self.assertEqual(crs.conversion.identifiers, (Identifier("EPSG", "16131"),))
        self.assertEqual(crs.conversion.parameter_value("8802"), 3.0)
        self.assertEqual(crs.conversion.parameter_value("8807"), 10000000.0)

    def test_towgs84_and_vunits(self):
        """Test the bound and compound wrappers"""
        bound = from_proj_string("+proj=longlat +ellps=GRS80 +towgs84=1,2,3 +no_defs")
        self.assertIsInstance(bound, BoundCRS)
        self.assertIsInstance(bound.base_crs, GeographicCRS)

        compound = from_proj_string("+proj=longlat +datum=WGS84 +vunits=m")
        self.assertIsInstance(compound, CompoundCRS)
        self.assertEqual(len(compound.components), 2)

    def test_proj_based_operation(self):
        """Test that operation strings are kept verbatim"""
        text = "+proj=helmert +x=1 +y=2 +z=3"
        op = from_proj_string(text)

        self.assertEqual(op.name, PROJ_BASED_CONVERSION_NAME)
        self.assertEqual(to_proj_string(op), text)

    def test_errors(self):
        """Test malformed PROJ strings"""
        for text in (
            "",
            "+proj=foo",
            "+proj=utm +zone=61",
            "+proj=utm",
            "+proj=longlat +datum=FOO",
            "+proj=longlat +ellps=FOO",
            "+proj=pipeline",
            "+zone=31",
            "+proj=longlat +towgs84=1,2",
        ):
            with self.assertRaises(ProjStringParseError, msg=text):
                from_proj_string(text)

        # parse errors are value errors
        self.assertTrue(issubclass(ProjStringParseError, ValueError))
