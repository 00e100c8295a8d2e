import os
import tempfile
from pathlib import Path
from unittest import TestCase, mock

import geopandas as gpd
import networkx as nx

from crskit.constructs.common import Identifier
from crskit.constructs.crs import GeographicCRS, ObjectType, ProjectedCRS
from crskit.constructs.operation import Transformation
from crskit.registry.nx.nx_registry import NxRegistry, default_dataset_path
from crskit.registry.nx.readers.json_readers import (
    check_references,
    merge_datasets,
    read_dataset,
    validate_dataset,
)
from crskit.registry.registry_interface import Category
from crskit.utils.exceptions import NotFoundError, RegistryError
from tests import get_test_dir


class TestNxRegistry(TestCase):
    """Test the registry backed by the bundled dataset"""

    def setUp(self):
        self.registry = NxRegistry.from_file()

    def test_registry_loads_default_dataset(self):
        """Test that the default dataset is opened and exposes its graph"""
        self.assertEqual(self.registry.path, default_dataset_path())
        self.assertEqual(self.registry.aux_paths, ())
        self.assertIsInstance(self.registry.g, nx.MultiDiGraph)
        self.assertTrue(str(self.registry).startswith("crskit NxRegistry object:"))

    def test_lookup_crs(self):
        """Test building a registered geographic CRS"""
        crs = self.registry.lookup("EPSG", "4326", Category.CRS)

        self.assertIsInstance(crs, GeographicCRS)
        self.assertEqual(crs.name, "WGS 84")
        self.assertEqual(crs.identifier(), Identifier("EPSG", "4326"))
        self.assertEqual(crs.datum.name, "World Geodetic System 1984")
        self.assertEqual(crs.area_of_use.bounds, (-180.0, -90.0, 180.0, 90.0))

        # objects are cached per dataset
        self.assertIs(crs, self.registry.lookup("EPSG", "4326", Category.CRS))

    def test_lookup_projected_crs(self):
        """Test building a registered projected CRS with its conversion"""
        crs = self.registry.lookup("EPSG", "32631", Category.CRS)

        self.assertIsInstance(crs, ProjectedCRS)
        self.assertEqual(crs.conversion.name, "UTM zone 31N")
        self.assertEqual(crs.conversion.parameter_value("8802"), 3.0)
        self.assertEqual(crs.base_crs.code, "4326")

    def test_lookup_missing_code_raises(self):
        """Test that unknown codes raise NotFoundError"""
        with self.assertRaises(NotFoundError):
            self.registry.lookup("EPSG", "99999999", Category.CRS)

        # NotFoundError is also a KeyError
        with self.assertRaises(KeyError):
            self.registry.lookup_any("EPSG", "99999999")

    def test_lookup_wrong_category_raises(self):
        """Test that a code of another category is not found"""
        with self.assertRaises(NotFoundError):
            self.registry.lookup("EPSG", "7030", Category.CRS)

        ellipsoid = self.registry.lookup("EPSG", "7030", Category.ELLIPSOID)
        self.assertEqual(ellipsoid.name, "WGS 84")

    def test_lookup_user_input(self):
        """Test resolving the textual forms of object references"""
        for text in ["EPSG:4326", "EPSG::4326", "urn:ogc:def:crs:EPSG::4326", "epsg:4326"]:
            crs = self.registry.lookup_user_input(text)
            self.assertEqual(crs.code, "4326", text)

        with self.assertRaises(ValueError):
            self.registry.lookup_user_input("not a reference")

    def test_list_codes(self):
        """Test listing codes by object type"""
        codes = self.registry.list_codes("EPSG", ObjectType.GEOGRAPHIC_2D_CRS)

        self.assertIn("4326", codes)
        self.assertNotIn("4979", codes)
        # deprecated objects are left out unless asked for
        self.assertNotIn("4226", codes)
        self.assertIn(
            "4226",
            self.registry.list_codes("EPSG", ObjectType.GEOGRAPHIC_2D_CRS, include_deprecated=True),
        )

        # bound CRS are never stored
        self.assertIsNone(self.registry.list_codes("EPSG", ObjectType.BOUND_CRS))

    def test_authorities(self):
        """Test listing the authorities of the dataset"""
        self.assertEqual(self.registry.authorities(), ["EPSG", "ESRI", "IGNF", "OGC", "PROJ"])

    def test_is_deprecated(self):
        """Test reading the deprecated flag of records"""
        self.assertTrue(self.registry.is_deprecated("EPSG", "4226"))
        self.assertFalse(self.registry.is_deprecated("EPSG", "4326"))

        with self.assertRaises(NotFoundError):
            self.registry.is_deprecated("EPSG", "99999999")

    def test_search_by_name(self):
        """Test exact and approximate name searches"""
        found = self.registry.search_by_name("WGS 84", types=[ObjectType.GEOGRAPHIC_2D_CRS])
        self.assertEqual([c.code for c in found], ["4326"])

        # approximate matches come after the exact ones
        found = self.registry.search_by_name(
            "WGS 84", types=[ObjectType.GEOGRAPHIC_2D_CRS], approximate=True
        )
        codes = [c.code for c in found]
        self.assertEqual(codes[0], "4326")
        self.assertIn("CRS84", codes)

        found = self.registry.search_by_name(
            "WGS 84", types=[ObjectType.GEOGRAPHIC_2D_CRS], approximate=True, limit=1
        )
        self.assertEqual(len(found), 1)

        found = self.registry.search_by_name("WGS 84", authority="OGC", approximate=True)
        self.assertEqual([c.code for c in found], ["CRS84"])

    def test_metadata(self):
        """Test reading dataset metadata"""
        self.assertEqual(self.registry.metadata("EPSG.VERSION"), "v10.027")
        self.assertIsNone(self.registry.metadata("NOT.A.KEY"))

    def test_grid_info(self):
        """Test describing grids"""
        grid = self.registry.grid_info("ntv2_0.gsb")

        self.assertEqual(grid.short_name, "ntv2_0.gsb")
        self.assertFalse(grid.open_license)
        self.assertIsNone(self.registry.grid_info("no_such_grid.tif"))

    def test_grid_info_finds_grid_in_extra_directory(self):
        """Test that grids present in a grid directory are reported available"""
        with tempfile.TemporaryDirectory() as d:
            Path(d, "conus.las").touch()
            registry = NxRegistry.from_file(grid_directories=[d])

            self.assertTrue(registry.grid_info("conus.las").available)

    def test_operations_between(self):
        """Test listing direct operations in registration order"""
        ops = self.registry.operations_between(
            Identifier("EPSG", "4267"), Identifier("EPSG", "4269")
        )

        self.assertTrue(all(isinstance(op, Transformation) for op in ops))
        self.assertEqual(
            [op.code for op in ops[:3]],
            ["1241", "1243", "1312"],
        )
        self.assertEqual(
            self.registry.operations_between(
                Identifier("EPSG", "4267"), Identifier("EPSG", "4269"), authority="ESRI"
            ),
            [],
        )

    def test_pivot_candidates(self):
        """Test finding the CRS two CRS are both connected to"""
        pivots = self.registry.pivot_candidates(
            Identifier("EPSG", "4326"), Identifier("EPSG", "6668")
        )

        self.assertIn(Identifier("EPSG", "4612"), pivots)
        self.assertIn(Identifier("EPSG", "4301"), pivots)
        self.assertNotIn(Identifier("EPSG", "4326"), pivots)

        self.assertEqual(
            self.registry.pivot_candidates(Identifier("EPSG", "4326"), Identifier("USER", "1")),
            [],
        )

    def test_alias_and_official_name(self):
        """Test converting between registered names and alias names"""
        datum = self.registry.lookup("EPSG", "6326", Category.DATUM)

        self.assertEqual(self.registry.alias(datum, "ESRI"), "D_WGS_1984")
        self.assertEqual(self.registry.alias(datum, "GDAL"), "WGS_1984")
        self.assertIsNone(self.registry.alias(datum, "NOBODY"))

        self.assertEqual(
            self.registry.official_name("North_American_Datum_1983", "geodetic_datum"),
            "North American Datum 1983",
        )
        self.assertIsNone(self.registry.official_name("Not_A_Datum"))

    def test_query_geodetic_crs_from_datum(self):
        """Test finding the geodetic CRS of a datum"""
        found = self.registry.query_geodetic_crs_from_datum("EPSG", "EPSG", "6326")
        codes = [c.code for c in found]
        self.assertIn("4326", codes)
        self.assertIn("4979", codes)
        self.assertIn("4978", codes)

        found = self.registry.query_geodetic_crs_from_datum(
            "EPSG", "EPSG", "6326", ObjectType.GEOCENTRIC_CRS
        )
        self.assertEqual([c.code for c in found], ["4978"])

    def test_non_deprecated(self):
        """Test finding the replacements of a deprecated object"""
        deprecated = self.registry.lookup("EPSG", "4226", Category.CRS)
        self.assertTrue(deprecated.deprecated)

        replacements = self.registry.non_deprecated(deprecated)
        self.assertEqual([c.code for c in replacements], ["4143", "4142"])

        wgs84 = self.registry.lookup("EPSG", "4326", Category.CRS)
        self.assertEqual(self.registry.non_deprecated(wgs84), [])

    def test_crs_objects(self):
        """Test listing every CRS of an authority"""
        crs_list = self.registry.crs_objects("OGC")
        self.assertEqual([c.code for c in crs_list], ["CRS84"])

    def test_to_dataframe(self):
        """Test the tabular view of the dataset"""
        df = self.registry.to_dataframe(ObjectType.PROJECTED_CRS)

        self.assertEqual(
            list(df.columns),
            ["authority", "code", "name", "type", "deprecated", "area", "west", "south", "east", "north"],
        )
        self.assertTrue((df["type"] == "projected CRS").all())
        row = df[df["code"] == "32631"].iloc[0]
        self.assertEqual(row["name"], "WGS 84 / UTM zone 31N")

    def test_areas_to_geodataframe(self):
        """Test exporting areas of use to geopandas"""
        gdf = self.registry.areas_to_geodataframe()

        self.assertIsInstance(gdf, gpd.GeoDataFrame)
        self.assertEqual(gdf.crs.to_epsg(), 4326)
        world = gdf[gdf["area_id"] == "EPSG:1262"].iloc[0]
        self.assertEqual(world["geom"].bounds, (-180.0, -90.0, 180.0, 90.0))

        # areas crossing the antimeridian are split in two
        nad83 = gdf[gdf["area_id"] == "EPSG:1350"].iloc[0]
        self.assertEqual(nad83["geom"].geom_type, "MultiPolygon")


class TestRegistryDatasets(TestCase):
    """Test loading, layering and switching registry datasets"""

    def setUp(self):
        self.overlay = get_test_dir() / "test_assets" / "overlay.json"
        self.standalone = get_test_dir() / "test_assets" / "standalone.json"
        self.malformed = get_test_dir() / "test_assets" / "malformed.json"
        self.bad_record = get_test_dir() / "test_assets" / "bad_record.json"

    def test_overlay_shadows_and_extends(self):
        """Test that overlays shadow and add objects and metadata"""
        registry = NxRegistry.from_file(aux_files=[self.overlay])

        self.assertEqual(registry.aux_paths, (self.overlay,))
        self.assertEqual(registry.metadata("EPSG.VERSION"), "v10.099")
        self.assertEqual(registry.lookup("EPSG", "4326", Category.CRS).name, "WGS 84 (overlay)")
        self.assertEqual(registry.lookup("USER", "1", Category.CRS).name, "My WGS 84")
        self.assertIn("USER", registry.authorities())

        # a shadowed object keeps its registration position
        codes = registry.list_codes("EPSG", ObjectType.GEOGRAPHIC_2D_CRS)
        self.assertEqual(codes[0], "4326")

    def test_env_var_overrides_default_dataset(self):
        """Test that CRSKIT_REGISTRY_PATH selects the default dataset"""
        with mock.patch.dict(os.environ, {"CRSKIT_REGISTRY_PATH": str(self.standalone)}):
            self.assertEqual(default_dataset_path(), self.standalone)
            registry = NxRegistry.from_file()

        self.assertEqual(registry.path, self.standalone)
        self.assertEqual(registry.authorities(), ["EPSG", "USER"])

    def test_set_dataset(self):
        """Test switching a registry to another dataset"""
        registry = NxRegistry.from_file()
        registry.set_dataset(aux_files=[self.overlay])

        self.assertEqual(registry.metadata("EPSG.VERSION"), "v10.099")

    def test_set_dataset_failure_keeps_previous_dataset(self):
        """Test that a failed switch leaves the registry unchanged"""
        registry = NxRegistry.from_file()

        with self.assertRaises(RegistryError):
            registry.set_dataset(self.malformed)

        self.assertEqual(registry.path, default_dataset_path())
        self.assertEqual(registry.lookup("EPSG", "4326", Category.CRS).name, "WGS 84")

    def test_read_dataset_errors(self):
        """Test that unreadable datasets raise RegistryError"""
        with self.assertRaises(RegistryError):
            read_dataset(self.malformed)
        with self.assertRaises(RegistryError):
            read_dataset(self.bad_record)
        with self.assertRaises(RegistryError):
            read_dataset(get_test_dir() / "test_assets" / "missing.txt")
        with self.assertRaises(RegistryError):
            read_dataset(get_test_dir() / "test_assets" / "missing.json")

    def test_set_dataset_rejects_malformed_records(self):
        """Test that malformed areas and incomplete records fail the switch, not later lookups"""
        registry = NxRegistry.from_file()

        for name in ("bad_area.json", "transformation_without_endpoints.json", "dangling_transformation.json"):
            with self.assertRaises(RegistryError):
                registry.set_dataset(aux_files=[get_test_dir() / "test_assets" / name])

            # the previous dataset is still served
            self.assertEqual(registry.aux_paths, ())
            self.assertEqual(registry.lookup("EPSG", "4326", Category.CRS).name, "WGS 84")

    def test_validate_dataset_checks_fields(self):
        """Test area rows and the fields each record type needs"""
        with self.assertRaises(RegistryError):
            validate_dataset({"areas": {"X:1": [1, 2]}})
        with self.assertRaises(RegistryError):
            validate_dataset({"areas": {"X:1": ["a", 0, 1, 1, "text"]}})
        with self.assertRaises(RegistryError):
            validate_dataset(
                {"objects": [{"authority": "X", "code": "1", "type": "transformation", "name": "t", "method": "EPSG:9603"}]}
            )

        # references are only checked once overlays are merged
        dataset = validate_dataset(
            {"objects": [{"authority": "X", "code": "1", "type": "vertical_crs", "name": "v", "datum": "X:2"}]}
        )
        with self.assertRaises(RegistryError):
            check_references(dataset)
        with self.assertRaises(RegistryError):
            NxRegistry.from_dict(dataset)

    def test_validate_dataset_requires_keys(self):
        """Test that records without their identity keys are rejected"""
        with self.assertRaises(RegistryError):
            validate_dataset({"objects": [{"authority": "USER", "code": "1", "name": "x"}]})
        with self.assertRaises(RegistryError):
            validate_dataset([])

        dataset = validate_dataset({})
        self.assertEqual(dataset["objects"], [])

    def test_merge_datasets_order(self):
        """Test that later datasets win and shadowed objects keep their position"""
        first = validate_dataset(
            {
                "objects": [
                    {"authority": "A", "code": "1", "type": "ellipsoid", "name": "one", "semi_major_axis": 1.0},
                    {"authority": "A", "code": "2", "type": "ellipsoid", "name": "two", "semi_major_axis": 2.0},
                ]
            }
        )
        second = validate_dataset(
            {
                "objects": [
                    {"authority": "A", "code": "1", "type": "ellipsoid", "name": "uno", "semi_major_axis": 1.0},
                ]
            }
        )
        merged = merge_datasets([first, second])

        self.assertEqual([o["name"] for o in merged["objects"]], ["uno", "two"])

    def test_dict_round_trip(self):
        """Test building a registry from a dict and saving it to a file"""
        registry = NxRegistry.from_file(aux_files=[self.overlay])
        copy = NxRegistry.from_dict(registry.to_dict())

        self.assertEqual(copy.lookup("USER", "1", Category.CRS).name, "My WGS 84")
        self.assertIsNone(copy.path)

        with tempfile.TemporaryDirectory() as d:
            outfile = Path(d) / "dataset.json"
            copy.to_file(outfile)
            reread = NxRegistry.from_file(outfile)
            self.assertEqual(reread.metadata("EPSG.VERSION"), "v10.099")

            with self.assertRaises(TypeError):
                copy.to_file(Path(d) / "dataset.csv")
