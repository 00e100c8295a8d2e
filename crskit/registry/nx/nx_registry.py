from __future__ import annotations

import copy
import json
import logging
import os
import re
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import geopandas as gpd
import networkx as nx
import pandas as pd
import pyproj.datadir
from pyproj.exceptions import DataDirError

from crskit.constructs.area import AreaOfUse
from crskit.constructs.common import Identifier, normalise_name
from crskit.constructs.crs import (
    CRS,
    CompoundCRS,
    EngineeringCRS,
    GeodeticCRS,
    GeographicCRS,
    ObjectType,
    ProjectedCRS,
    VerticalCRS,
)
from crskit.constructs.cs import (
    cartesian_easting_northing,
    cartesian_northing_easting,
    ellipsoidal_2d_lat_lon,
    ellipsoidal_2d_lon_lat,
    ellipsoidal_3d_lat_lon_height,
    ellipsoidal_3d_lon_lat_height,
    geocentric_xyz,
    vertical_gravity_up,
)
from crskit.constructs.datum import (
    DatumEnsemble,
    DynamicGeodeticReferenceFrame,
    Ellipsoid,
    GeodeticReferenceFrame,
    PrimeMeridian,
    VerticalReferenceFrame,
)
from crskit.constructs.operation import (
    ConcatenatedOperation,
    Conversion,
    CoordinateOperation,
    GridUsage,
    OperationMethod,
    Parameter,
    Transformation,
    make_method,
    make_parameter,
)
from crskit.registry.nx.readers.json_readers import (
    CRS_RECORD_TYPES,
    check_references,
    merge_datasets,
    nx_graph_from_dataset,
    read_dataset,
    record_key,
    validate_dataset,
)
from crskit.registry.registry_interface import Category, RegistryInterface
from crskit.utils import method_mappings as mm
from crskit.utils.crs import LATLON_CRS
from crskit.utils.exceptions import NotFoundError, RegistryError
from crskit.utils.keys import (
    ALIASES_KEY,
    ALT_NAME_KEY,
    AREA_KEY,
    AREAS_KEY,
    AUTHORITY_KEY,
    CODE_KEY,
    DEPRECATED_KEY,
    GRIDS_KEY,
    METADATA_KEY,
    NAME_KEY,
    OBJECTS_KEY,
    ORDER_KEY,
    RECORD_KEY,
    REGISTRY_PATH_ENV,
    REMARKS_KEY,
    REPLACED_BY_KEY,
    SCOPE_KEY,
    SOURCE_KEY,
    TABLE_KEY,
    TYPE_KEY,
)
from crskit.utils.units import CATALOGUE_UNITS, DEGREE, METRE, Unit

log = logging.getLogger(__name__)

DEFAULT_DATASET_PATH = Path(__file__).parents[2] / "data" / "registry.json"

_UNITS_BY_CODE: Dict[str, Unit] = {u.code: u for u in CATALOGUE_UNITS}
# EPSG registers the degree used by parameters under its own code
_UNITS_BY_CODE["9102"] = DEGREE

_CATEGORY_TYPES = {
    Category.ELLIPSOID: {"ellipsoid"},
    Category.PRIME_MERIDIAN: {"prime_meridian"},
    Category.DATUM: {"geodetic_reference_frame", "vertical_reference_frame", "datum_ensemble"},
    Category.CRS: CRS_RECORD_TYPES,
    Category.COORDINATE_OPERATION: {"conversion", "transformation", "concatenated_operation"},
}

_RECORD_OBJECT_TYPES = {
    "ellipsoid": ObjectType.ELLIPSOID,
    "prime_meridian": ObjectType.PRIME_MERIDIAN,
    "geodetic_reference_frame": ObjectType.GEODETIC_REFERENCE_FRAME,
    "vertical_reference_frame": ObjectType.VERTICAL_REFERENCE_FRAME,
    "datum_ensemble": ObjectType.DATUM_ENSEMBLE,
    "geographic_2d_crs": ObjectType.GEOGRAPHIC_2D_CRS,
    "geographic_3d_crs": ObjectType.GEOGRAPHIC_3D_CRS,
    "geocentric_crs": ObjectType.GEOCENTRIC_CRS,
    "projected_crs": ObjectType.PROJECTED_CRS,
    "vertical_crs": ObjectType.VERTICAL_CRS,
    "compound_crs": ObjectType.COMPOUND_CRS,
    "engineering_crs": ObjectType.ENGINEERING_CRS,
    "conversion": ObjectType.CONVERSION,
    "transformation": ObjectType.TRANSFORMATION,
    "concatenated_operation": ObjectType.CONCATENATED_OPERATION,
}

# Object types the registry never stores
_UNLISTED_TYPES = {
    ObjectType.BOUND_CRS,
    ObjectType.TEMPORAL_CRS,
    ObjectType.OTHER_CRS,
    ObjectType.UNKNOWN,
}

_CS_FACTORIES = {
    "lat_lon": ellipsoidal_2d_lat_lon,
    "lon_lat": ellipsoidal_2d_lon_lat,
    "lat_lon_h": ellipsoidal_3d_lat_lon_height,
    "lon_lat_h": ellipsoidal_3d_lon_lat_height,
    "xyz": geocentric_xyz,
    "east_north": cartesian_easting_northing,
    "north_east": cartesian_northing_easting,
    "up": vertical_gravity_up,
}

_URN_CATEGORIES = {
    "crs": Category.CRS,
    "datum": Category.DATUM,
    "ellipsoid": Category.ELLIPSOID,
    "meridian": Category.PRIME_MERIDIAN,
    "coordinateoperation": Category.COORDINATE_OPERATION,
}


def default_dataset_path() -> Path:
    """
    The dataset used when no explicit path is given: the value of the CRSKIT_REGISTRY_PATH
    environment variable if set, the dataset shipped with crskit otherwise.
    """
    env_path = os.environ.get(REGISTRY_PATH_ENV)
    if env_path:
        return Path(env_path)
    return DEFAULT_DATASET_PATH


def alias_table_of(obj: Any) -> Optional[str]:
    if isinstance(obj, Ellipsoid):
        return "ellipsoid"
    if isinstance(obj, PrimeMeridian):
        return "prime_meridian"
    if isinstance(obj, (GeodeticReferenceFrame, DatumEnsemble)):
        return "geodetic_datum"
    if isinstance(obj, VerticalReferenceFrame):
        return "vertical_datum"
    if isinstance(obj, GeodeticCRS):
        return "geodetic_crs"
    if isinstance(obj, ProjectedCRS):
        return "projected_crs"
    if isinstance(obj, VerticalCRS):
        return "vertical_crs"
    return None


_TABLE_RECORD_TYPES = {
    "ellipsoid": {"ellipsoid"},
    "prime_meridian": {"prime_meridian"},
    "geodetic_datum": {"geodetic_reference_frame", "datum_ensemble"},
    "vertical_datum": {"vertical_reference_frame"},
    "geodetic_crs": {"geographic_2d_crs", "geographic_3d_crs", "geocentric_crs"},
    "projected_crs": {"projected_crs"},
    "vertical_crs": {"vertical_crs"},
}


def record_object_type(record: Dict[str, Any]) -> ObjectType:
    if record[TYPE_KEY] == "geodetic_reference_frame" and "frame_reference_epoch" in record:
        return ObjectType.DYNAMIC_GEODETIC_REFERENCE_FRAME
    return _RECORD_OBJECT_TYPES[record[TYPE_KEY]]


class _Snapshot:
    """
    An immutable view of one dataset: records, graph, aliases, areas and grids, plus a
    cache of the objects already built from it.
    """

    def __init__(self, dataset: Dict[str, Any], path: Optional[Path], aux_paths: Tuple[Path, ...]):
        check_references(dataset)
        self.dataset = dataset
        self.path = path
        self.aux_paths = aux_paths
        self.graph = nx_graph_from_dataset(dataset)
        self.records: Dict[str, Dict[str, Any]] = {}
        self.order: Dict[str, int] = {}
        for i, record in enumerate(dataset[OBJECTS_KEY]):
            key = record_key(record)
            self.records[key] = record
            self.order[key] = i
        self.metadata: Dict[str, str] = dataset[METADATA_KEY]
        self.areas: Dict[str, AreaOfUse] = {}
        for area_id, (west, south, east, north, description) in dataset[AREAS_KEY].items():
            try:
                self.areas[area_id] = AreaOfUse(west, south, east, north, description)
            except ValueError as e:
                raise RegistryError(f"area {area_id} is malformed: {e}") from e
        self.grids: Dict[str, Dict[str, Any]] = {g[NAME_KEY]: g for g in dataset[GRIDS_KEY]}
        self.aliases: List[Dict[str, Any]] = dataset[ALIASES_KEY]
        self.alias_index: Dict[Tuple[str, str, str, str], str] = {}
        for a in self.aliases:
            index_key = (a[TABLE_KEY], a[AUTHORITY_KEY], str(a[CODE_KEY]), a.get(SOURCE_KEY, ""))
            self.alias_index.setdefault(index_key, a[ALT_NAME_KEY])
        self.cache: Dict[str, Any] = {}


class NxRegistry(RegistryInterface):
    """
    A registry backed by a JSON dataset and a NetworkX graph of its operations.

    CRS are graph nodes and transformations are graph edges, so direct operations are the
    edges between two nodes and pivot candidates are the common neighbours of two nodes.
    Objects are built lazily from the dataset records and cached per dataset snapshot.

    Lookups read the current snapshot without locking. `set_dataset` builds a new snapshot
    and swaps it in; if the new dataset is invalid the registry keeps serving the previous
    one.

    Attributes:
        grid_directories: Extra directories searched for grid files, before the pyproj data
            directories

    Examples:
        >>> from crskit.registry.nx.nx_registry import NxRegistry
        >>> from crskit.registry.registry_interface import Category
        >>>
        >>> registry = NxRegistry.from_file()
        >>> wgs84 = registry.lookup("EPSG", "4326", Category.CRS)
        >>> wgs84.name
        'WGS 84'
        >>> registry.metadata("EPSG.VERSION")
        'v10.027'
    """

    def __init__(
        self,
        dataset: Dict[str, Any],
        grid_directories: Optional[Sequence[Union[str, Path]]] = None,
        path: Optional[Path] = None,
        aux_paths: Sequence[Path] = (),
    ):
        self._lock = threading.RLock()
        self._snapshot = _Snapshot(validate_dataset(dataset), path, tuple(aux_paths))
        self.grid_directories = [Path(d) for d in grid_directories or []]

    def __str__(self):
        snap = self._snapshot
        output_lines = [
            "crskit NxRegistry object:\n",
            f" - dataset: {snap.path}",
            f" - objects: {len(snap.records)}",
            f" - operations: {snap.graph.number_of_edges()}",
        ]
        return "\n".join(output_lines)

    def __repr__(self):
        return self.__str__()

    @property
    def g(self) -> nx.MultiDiGraph:
        return self._snapshot.graph

    @property
    def path(self) -> Optional[Path]:
        return self._snapshot.path

    @property
    def aux_paths(self) -> Tuple[Path, ...]:
        return self._snapshot.aux_paths

    @classmethod
    def from_file(
        cls,
        file: Optional[Union[str, Path]] = None,
        aux_files: Sequence[Union[str, Path]] = (),
        grid_directories: Optional[Sequence[Union[str, Path]]] = None,
    ) -> NxRegistry:
        """
        Open a registry from a dataset file, optionally layered with overlay datasets.

        Args:
            file: The dataset path; defaults to `default_dataset_path()`
            aux_files: Overlay datasets applied in order, later ones shadowing earlier ones
            grid_directories: Extra directories searched for grid files

        Returns:
            The registry

        Raises:
            RegistryError: If a dataset cannot be read or is malformed
        """
        path = Path(file) if file is not None else default_dataset_path()
        aux_paths = tuple(Path(p) for p in aux_files)
        dataset = merge_datasets([read_dataset(path)] + [read_dataset(p) for p in aux_paths])
        log.info(f"opened registry dataset {path} with {len(aux_paths)} overlays")
        return cls(dataset, grid_directories=grid_directories, path=path, aux_paths=aux_paths)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> NxRegistry:
        """
        Build a registry from an in-memory dataset document
        """
        return cls(d)

    def to_dict(self) -> Dict[str, Any]:
        """
        Get a copy of the (merged) dataset served by the registry
        """
        return copy.deepcopy(self._snapshot.dataset)

    def to_file(self, outfile: Union[str, Path]):
        """
        Save the merged dataset to a json file.

        Raises:
            TypeError: If the file extension is not .json
        """
        outfile = Path(outfile)
        if outfile.suffix != ".json":
            raise TypeError("NxRegistry only supports writing to json files")
        with open(outfile, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

    def set_dataset(
        self,
        file: Optional[Union[str, Path]] = None,
        aux_files: Sequence[Union[str, Path]] = (),
    ):
        """
        Switch the registry to another dataset.

        The new snapshot is built before being swapped in, so a failure leaves the registry
        serving its previous dataset.

        Args:
            file: The dataset path; defaults to `default_dataset_path()`
            aux_files: Overlay datasets applied in order

        Raises:
            RegistryError: If a dataset cannot be read or is malformed
        """
        path = Path(file) if file is not None else default_dataset_path()
        aux_paths = tuple(Path(p) for p in aux_files)
        with self._lock:
            try:
                datasets = [read_dataset(path)] + [read_dataset(p) for p in aux_paths]
                snapshot = _Snapshot(merge_datasets(datasets), path, aux_paths)
            except RegistryError as e:
                log.warning(f"keeping registry dataset {self._snapshot.path}: {e}")
                raise
            self._snapshot = snapshot
        log.info(f"switched registry dataset to {path} with {len(aux_paths)} overlays")

    # object building

    def _build(self, snap: _Snapshot, key: str) -> Any:
        cached = snap.cache.get(key)
        if cached is not None:
            return cached
        record = snap.records.get(key)
        if record is None:
            raise NotFoundError(f"{key} is not registered")
        builder = getattr(self, f"_build_{record[TYPE_KEY]}")
        try:
            obj = builder(snap, record)
        except (KeyError, TypeError, ValueError) as e:
            raise RegistryError(f"registry record {key} is malformed: {e}") from e
        snap.cache[key] = obj
        return obj

    def _identity(self, snap: _Snapshot, record: Dict[str, Any], usage: bool = True) -> Dict[str, Any]:
        kwargs = {
            "name": record[NAME_KEY],
            "identifiers": (Identifier(record[AUTHORITY_KEY], str(record[CODE_KEY])),),
            "deprecated": bool(record.get(DEPRECATED_KEY, False)),
            "remarks": record.get(REMARKS_KEY),
        }
        if usage:
            kwargs["area_of_use"] = snap.areas.get(record.get(AREA_KEY))
            kwargs["scope"] = record.get(SCOPE_KEY)
        return kwargs

    @staticmethod
    def _unit(ref: Optional[str], default: Unit) -> Unit:
        if ref is None:
            return default
        authority, code = ref.split(":", 1)
        unit = _UNITS_BY_CODE.get(code) if authority == "EPSG" else None
        if unit is None:
            raise ValueError(f"unknown unit {ref}")
        return unit

    def _build_ellipsoid(self, snap: _Snapshot, record: Dict[str, Any]) -> Ellipsoid:
        return Ellipsoid(
            **self._identity(snap, record, usage=False),
            semi_major_axis=float(record["semi_major_axis"]),
            inverse_flattening=record.get("inverse_flattening"),
            semi_minor_axis=record.get("semi_minor_axis"),
            unit=self._unit(record.get("unit"), METRE),
        )

    def _build_prime_meridian(self, snap: _Snapshot, record: Dict[str, Any]) -> PrimeMeridian:
        return PrimeMeridian(
            **self._identity(snap, record, usage=False),
            longitude=float(record["longitude"]),
            unit=self._unit(record.get("unit"), DEGREE),
        )

    def _build_geodetic_reference_frame(
        self, snap: _Snapshot, record: Dict[str, Any]
    ) -> GeodeticReferenceFrame:
        kwargs = dict(
            **self._identity(snap, record),
            ellipsoid=self._build(snap, record["ellipsoid"]),
            prime_meridian=self._build(snap, record["prime_meridian"]),
            anchor=record.get("anchor"),
        )
        if "frame_reference_epoch" in record:
            return DynamicGeodeticReferenceFrame(
                **kwargs, frame_reference_epoch=float(record["frame_reference_epoch"])
            )
        return GeodeticReferenceFrame(**kwargs)

    def _build_vertical_reference_frame(
        self, snap: _Snapshot, record: Dict[str, Any]
    ) -> VerticalReferenceFrame:
        return VerticalReferenceFrame(
            **self._identity(snap, record), anchor=record.get("anchor")
        )

    def _build_datum_ensemble(self, snap: _Snapshot, record: Dict[str, Any]) -> DatumEnsemble:
        return DatumEnsemble(
            **self._identity(snap, record),
            members=tuple(self._build(snap, m) for m in record["members"]),
            accuracy=float(record["accuracy"]),
        )

    def _cs(self, record: Dict[str, Any], default_unit: Unit):
        factory = _CS_FACTORIES[record["cs"]]
        return factory(self._unit(record.get("unit"), default_unit))

    def _build_geographic_2d_crs(self, snap: _Snapshot, record: Dict[str, Any]) -> GeographicCRS:
        return GeographicCRS(
            **self._identity(snap, record),
            datum=self._build(snap, record["datum"]),
            coordinate_system=self._cs(record, DEGREE),
        )

    _build_geographic_3d_crs = _build_geographic_2d_crs

    def _build_geocentric_crs(self, snap: _Snapshot, record: Dict[str, Any]) -> GeodeticCRS:
        return GeodeticCRS(
            **self._identity(snap, record),
            datum=self._build(snap, record["datum"]),
            coordinate_system=self._cs(record, METRE),
        )

    def _build_projected_crs(self, snap: _Snapshot, record: Dict[str, Any]) -> ProjectedCRS:
        return ProjectedCRS(
            **self._identity(snap, record),
            base_crs=self._build(snap, record["base_crs"]),
            conversion=self._build(snap, record["conversion"]),
            coordinate_system=self._cs(record, METRE),
        )

    def _build_vertical_crs(self, snap: _Snapshot, record: Dict[str, Any]) -> VerticalCRS:
        return VerticalCRS(
            **self._identity(snap, record),
            datum=self._build(snap, record["datum"]),
            coordinate_system=vertical_gravity_up(self._unit(record.get("unit"), METRE)),
        )

    def _build_compound_crs(self, snap: _Snapshot, record: Dict[str, Any]) -> CompoundCRS:
        return CompoundCRS(
            **self._identity(snap, record),
            components=tuple(self._build(snap, c) for c in record["components"]),
        )

    def _build_engineering_crs(self, snap: _Snapshot, record: Dict[str, Any]) -> EngineeringCRS:
        return EngineeringCRS(**self._identity(snap, record))

    def _method_and_parameters(
        self, record: Dict[str, Any]
    ) -> Tuple[OperationMethod, Tuple[Parameter, ...]]:
        authority, code = record["method"].split(":", 1)
        mapping = mm.method_by_code(code) if authority == "EPSG" else None
        if mapping is None:
            raise ValueError(f"unknown method {record['method']}")
        params = []
        for p in record.get("parameters", []):
            pm = mapping.param_by_code(str(p[CODE_KEY]))
            if pm is None:
                raise ValueError(f"method {mapping.name} has no parameter {p[CODE_KEY]}")
            unit = self._unit(p.get("unit"), METRE) if p.get("unit") else None
            params.append(make_parameter(pm, p["value"], unit))
        return make_method(mapping), tuple(params)

    def _build_conversion(self, snap: _Snapshot, record: Dict[str, Any]) -> Conversion:
        method, params = self._method_and_parameters(record)
        return Conversion(**self._identity(snap, record), method=method, parameters=params)

    def _build_transformation(self, snap: _Snapshot, record: Dict[str, Any]) -> Transformation:
        method, params = self._method_and_parameters(record)
        accuracy = record.get("accuracy")
        return Transformation(
            **self._identity(snap, record),
            method=method,
            parameters=params,
            source_crs=self._build(snap, record["source_crs"]),
            target_crs=self._build(snap, record["target_crs"]),
            accuracy=float(accuracy) if accuracy is not None else None,
        )

    def _build_concatenated_operation(
        self, snap: _Snapshot, record: Dict[str, Any]
    ) -> ConcatenatedOperation:
        accuracy = record.get("accuracy")
        return ConcatenatedOperation(
            **self._identity(snap, record),
            steps=tuple(self._build(snap, s) for s in record["steps"]),
            source_crs=self._build(snap, record["source_crs"]),
            target_crs=self._build(snap, record["target_crs"]),
            declared_accuracy=float(accuracy) if accuracy is not None else None,
        )

    # queries

    def lookup(self, authority: str, code: str, category: Category) -> Any:
        snap = self._snapshot
        key = f"{authority}:{code}"
        record = snap.records.get(key)
        if record is None or record[TYPE_KEY] not in _CATEGORY_TYPES[category]:
            raise NotFoundError(f"{category.value} {key} is not registered")
        return self._build(snap, key)

    def lookup_any(self, authority: str, code: str) -> Any:
        """
        Build the object registered under an authority and code, whatever its category.

        Raises:
            NotFoundError: If nothing is registered under the code
        """
        return self._build(self._snapshot, f"{authority}:{code}")

    def lookup_user_input(self, text: str) -> Any:
        """
        Resolve a user-supplied object reference.

        Accepted forms are "AUTH:CODE", "AUTH::CODE" and OGC URNs such as
        "urn:ogc:def:crs:EPSG::4326" (the version field is ignored).

        Raises:
            NotFoundError: If the reference does not resolve
            ValueError: If the text is not an object reference
        """
        text = text.strip()
        if text.lower().startswith("urn:ogc:def:"):
            parts = text.split(":")
            if len(parts) < 6:
                raise ValueError(f"malformed urn {text}")
            category = _URN_CATEGORIES.get(parts[3].lower())
            if category is None:
                raise ValueError(f"unsupported urn object type {parts[3]}")
            return self.lookup(parts[4], parts[-1], category)
        m = re.fullmatch(r"([A-Za-z][\w.-]*)::?([\w.-]+)", text)
        if m is None:
            raise ValueError(f"{text} is not an object reference")
        return self.lookup_any(m.group(1).upper(), m.group(2))

    def list_codes(
        self, authority: str, object_type: ObjectType, include_deprecated: bool = False
    ) -> Optional[List[str]]:
        if object_type in _UNLISTED_TYPES:
            return None
        codes = []
        for record in self._snapshot.dataset[OBJECTS_KEY]:
            if record[AUTHORITY_KEY] != authority or record_object_type(record) != object_type:
                continue
            if record.get(DEPRECATED_KEY, False) and not include_deprecated:
                continue
            codes.append(str(record[CODE_KEY]))
        return codes

    def authorities(self) -> List[str]:
        return sorted({r[AUTHORITY_KEY] for r in self._snapshot.dataset[OBJECTS_KEY]})

    def is_deprecated(self, authority: str, code: str) -> bool:
        record = self._snapshot.records.get(f"{authority}:{code}")
        if record is None:
            raise NotFoundError(f"{authority}:{code} is not registered")
        return bool(record.get(DEPRECATED_KEY, False))

    def search_by_name(
        self,
        name: str,
        authority: Optional[str] = None,
        types: Optional[Sequence[ObjectType]] = None,
        approximate: bool = False,
        limit: int = 0,
    ) -> List[Any]:
        snap = self._snapshot
        wanted = normalise_name(name)
        type_set = set(types) if types else None
        exact, partial = [], []
        for record in snap.dataset[OBJECTS_KEY]:
            if authority is not None and record[AUTHORITY_KEY] != authority:
                continue
            if type_set is not None and record_object_type(record) not in type_set:
                continue
            candidate = normalise_name(record[NAME_KEY])
            if candidate == wanted:
                exact.append(record_key(record))
            elif approximate and wanted in candidate:
                partial.append(record_key(record))
        keys = exact + partial
        if limit > 0:
            keys = keys[:limit]
        return [self._build(snap, k) for k in keys]

    def metadata(self, key: str) -> Optional[str]:
        return self._snapshot.metadata.get(key)

    def _grid_search_dirs(self) -> List[Path]:
        dirs = list(self.grid_directories)
        try:
            dirs.extend(Path(d) for d in pyproj.datadir.get_data_dir().split(os.pathsep))
        except DataDirError as e:
            log.debug(f"no pyproj data directory: {e}")
        dirs.append(Path(pyproj.datadir.get_user_data_dir()))
        return dirs

    def grid_info(self, name: str) -> Optional[GridUsage]:
        record = self._snapshot.grids.get(name)
        if record is None:
            return None
        full_name = record.get("full_name") or name
        available = any(
            (d / candidate).is_file()
            for d in self._grid_search_dirs()
            for candidate in {name, full_name}
        )
        return GridUsage(
            short_name=name,
            full_name=full_name,
            package_name=record.get("package_name", ""),
            url=record.get("url", ""),
            direct_download=bool(record.get("direct_download", False)),
            open_license=bool(record.get("open_license", False)),
            available=available,
        )

    def operations_between(
        self, source: Identifier, target: Identifier, authority: Optional[str] = None
    ) -> List[CoordinateOperation]:
        snap = self._snapshot
        edges = snap.graph.get_edge_data(source.to_string(), target.to_string())
        if not edges:
            return []
        ordered = sorted(edges.items(), key=lambda kv: kv[1][ORDER_KEY])
        return [
            self._build(snap, key)
            for key, data in ordered
            if authority is None or data[RECORD_KEY][AUTHORITY_KEY] == authority
        ]

    def pivot_candidates(
        self, source: Identifier, target: Identifier, authority: Optional[str] = None
    ) -> List[Identifier]:
        snap = self._snapshot
        s, t = source.to_string(), target.to_string()
        if s not in snap.graph or t not in snap.graph:
            return []
        common = set(nx.all_neighbors(snap.graph, s)) & set(nx.all_neighbors(snap.graph, t))
        common -= {s, t}
        if authority is not None:
            common = {c for c in common if c.split(":", 1)[0] == authority}
        ordered = sorted(common, key=lambda k: snap.graph.nodes[k][ORDER_KEY])
        return [Identifier.from_string(k) for k in ordered]

    def _record_keys_for(self, snap: _Snapshot, obj: Any, table: str) -> List[Tuple[str, str]]:
        keys = [(i.authority, i.code) for i in obj.identifiers]
        if keys:
            return keys
        types = _TABLE_RECORD_TYPES.get(table, set())
        wanted = normalise_name(obj.name)
        return [
            (r[AUTHORITY_KEY], str(r[CODE_KEY]))
            for r in snap.dataset[OBJECTS_KEY]
            if r[TYPE_KEY] in types and normalise_name(r[NAME_KEY]) == wanted
        ]

    def alias(self, obj: Any, source: str) -> Optional[str]:
        table = alias_table_of(obj)
        if table is None:
            return None
        snap = self._snapshot
        for authority, code in self._record_keys_for(snap, obj, table):
            alt = snap.alias_index.get((table, authority, code, source))
            if alt is not None:
                return alt
        return None

    def official_name(self, alt_name: str, table: Optional[str] = None) -> Optional[str]:
        snap = self._snapshot
        wanted = normalise_name(alt_name)
        for a in snap.aliases:
            if table is not None and a[TABLE_KEY] != table:
                continue
            if normalise_name(a[ALT_NAME_KEY]) == wanted:
                record = snap.records.get(f"{a[AUTHORITY_KEY]}:{a[CODE_KEY]}")
                if record is not None:
                    return record[NAME_KEY]
        return None

    def crs_objects(self, authority: Optional[str] = None) -> List[CRS]:
        snap = self._snapshot
        return [
            self._build(snap, record_key(r))
            for r in snap.dataset[OBJECTS_KEY]
            if r[TYPE_KEY] in CRS_RECORD_TYPES
            and (authority is None or r[AUTHORITY_KEY] == authority)
        ]

    def query_geodetic_crs_from_datum(
        self,
        crs_authority: Optional[str],
        datum_authority: str,
        datum_code: str,
        crs_type: Optional[ObjectType] = None,
    ) -> List[GeodeticCRS]:
        snap = self._snapshot
        datum_key = f"{datum_authority}:{datum_code}"
        geodetic_types = _TABLE_RECORD_TYPES["geodetic_crs"]
        found = []
        for r in snap.dataset[OBJECTS_KEY]:
            if r[TYPE_KEY] not in geodetic_types or r.get("datum") != datum_key:
                continue
            if crs_authority is not None and r[AUTHORITY_KEY] != crs_authority:
                continue
            if crs_type is not None and record_object_type(r) != crs_type:
                continue
            found.append(self._build(snap, record_key(r)))
        return found

    def non_deprecated(self, obj: Any) -> List[Any]:
        snap = self._snapshot
        for ident in obj.identifiers:
            record = snap.records.get(ident.to_string())
            if record is not None:
                return [self._build(snap, k) for k in record.get(REPLACED_BY_KEY, [])]
        return []

    # tabular views

    def to_dataframe(self, object_type: Optional[ObjectType] = None) -> pd.DataFrame:
        """
        List the registry objects as a pandas DataFrame.

        Args:
            object_type: Only list objects of this type

        Returns:
            A DataFrame with columns authority, code, name, type, deprecated, area, west,
            south, east and north (area columns are NaN for objects without area)
        """
        snap = self._snapshot
        rows = []
        for r in snap.dataset[OBJECTS_KEY]:
            kind = record_object_type(r)
            if object_type is not None and kind != object_type:
                continue
            area = snap.areas.get(r.get(AREA_KEY))
            row = {
                "authority": r[AUTHORITY_KEY],
                "code": str(r[CODE_KEY]),
                "name": r[NAME_KEY],
                "type": kind.value,
                "deprecated": bool(r.get(DEPRECATED_KEY, False)),
                "area": area.description if area else None,
            }
            for bound, value in zip(("west", "south", "east", "north"), area.bounds if area else (None,) * 4):
                row[bound] = value
            rows.append(row)
        df = pd.DataFrame(
            rows,
            columns=["authority", "code", "name", "type", "deprecated", "area", "west", "south", "east", "north"],
        )
        return df

    def areas_to_geodataframe(self) -> gpd.GeoDataFrame:
        """
        List the areas of use of the dataset as a GeoDataFrame in EPSG:4326, with one row
        per area id and the area polygon (split at the antimeridian when needed).
        """
        rows = [
            {"area_id": area_id, "description": area.description, "geom": area.geometry}
            for area_id, area in self._snapshot.areas.items()
        ]
        df = pd.DataFrame(rows, columns=["area_id", "description", "geom"])
        gdf = gpd.GeoDataFrame(df, geometry="geom")
        return gdf.set_crs(LATLON_CRS)

