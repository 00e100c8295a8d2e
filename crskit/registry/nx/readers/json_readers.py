from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence, Union

import networkx as nx

from crskit.utils.exceptions import RegistryError
from crskit.utils.keys import (
    ALIASES_KEY,
    AREA_KEY,
    AREAS_KEY,
    AUTHORITY_KEY,
    CODE_KEY,
    GRIDS_KEY,
    METADATA_KEY,
    NAME_KEY,
    OBJECTS_KEY,
    ORDER_KEY,
    RECORD_KEY,
    TYPE_KEY,
)

log = logging.getLogger(__name__)

OPERATION_TYPES = {"transformation", "concatenated_operation"}
CRS_RECORD_TYPES = {
    "geographic_2d_crs",
    "geographic_3d_crs",
    "geocentric_crs",
    "projected_crs",
    "vertical_crs",
    "compound_crs",
    "engineering_crs",
}
RECORD_TYPES = CRS_RECORD_TYPES | OPERATION_TYPES | {
    "ellipsoid",
    "prime_meridian",
    "geodetic_reference_frame",
    "vertical_reference_frame",
    "datum_ensemble",
    "conversion",
}

# fields a record cannot be built without
REQUIRED_FIELDS = {
    "ellipsoid": ("semi_major_axis",),
    "prime_meridian": ("longitude",),
    "geodetic_reference_frame": ("ellipsoid", "prime_meridian"),
    "vertical_reference_frame": (),
    "datum_ensemble": ("members", "accuracy"),
    "geographic_2d_crs": ("datum", "cs"),
    "geographic_3d_crs": ("datum", "cs"),
    "geocentric_crs": ("datum", "cs"),
    "projected_crs": ("base_crs", "conversion", "cs"),
    "vertical_crs": ("datum",),
    "compound_crs": ("components",),
    "engineering_crs": (),
    "conversion": ("method",),
    "transformation": ("method", "source_crs", "target_crs"),
    "concatenated_operation": ("steps", "source_crs", "target_crs"),
}

# fields holding "AUTHORITY:CODE" references to other records
REFERENCE_FIELDS = (
    "ellipsoid",
    "prime_meridian",
    "datum",
    "members",
    "base_crs",
    "conversion",
    "components",
    "source_crs",
    "target_crs",
    "steps",
    "replaced_by",
)


def record_key(record: Dict[str, Any]) -> str:
    return f"{record[AUTHORITY_KEY]}:{record[CODE_KEY]}"


def read_dataset(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read and validate a registry dataset from a JSON file.

    Args:
        path: The path to the dataset file

    Returns:
        The dataset document, with every section present

    Raises:
        RegistryError: If the file cannot be read, is not JSON or is not a valid dataset
    """
    p = Path(path)
    if p.suffix != ".json":
        raise RegistryError(f"registry datasets must be json files, got {p}")
    try:
        with p.open("r", encoding="utf-8") as f:
            doc = json.load(f)
    except OSError as e:
        raise RegistryError(f"cannot open registry dataset {p}: {e}") from e
    except json.JSONDecodeError as e:
        raise RegistryError(f"registry dataset {p} is not valid json: {e}") from e

    return validate_dataset(doc, source=str(p))


def validate_dataset(doc: Any, source: str = "<dict>") -> Dict[str, Any]:
    """
    Check the shape of a dataset document and fill in its missing sections.

    Records are checked one by one: identity keys, a known type and the fields their type
    needs. References between records are checked by `check_references`, once overlays
    are merged.

    Raises:
        RegistryError: If the document is not a valid dataset
    """
    if not isinstance(doc, dict):
        raise RegistryError(f"registry dataset {source} must be a json object")

    dataset = {
        METADATA_KEY: dict(doc.get(METADATA_KEY, {})),
        AREAS_KEY: dict(doc.get(AREAS_KEY, {})),
        OBJECTS_KEY: list(doc.get(OBJECTS_KEY, [])),
        ALIASES_KEY: list(doc.get(ALIASES_KEY, [])),
        GRIDS_KEY: list(doc.get(GRIDS_KEY, [])),
    }

    for area_id, row in dataset[AREAS_KEY].items():
        if not isinstance(row, (list, tuple)) or len(row) != 5:
            raise RegistryError(
                f"area {area_id} of registry dataset {source} must be [west, south, east, north, description]"
            )
        if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in row[:4]):
            raise RegistryError(f"area {area_id} of registry dataset {source} has non numeric bounds")

    for i, record in enumerate(dataset[OBJECTS_KEY]):
        if not isinstance(record, dict):
            raise RegistryError(f"object {i} of registry dataset {source} must be a json object")
        for key in (AUTHORITY_KEY, CODE_KEY, TYPE_KEY, NAME_KEY):
            if key not in record:
                raise RegistryError(
                    f"object {i} of registry dataset {source} has no {key}"
                )
        if record[TYPE_KEY] not in RECORD_TYPES:
            raise RegistryError(
                f"object {record_key(record)} of registry dataset {source} has unknown type {record[TYPE_KEY]}"
            )
        for field in REQUIRED_FIELDS[record[TYPE_KEY]]:
            if record.get(field) is None:
                raise RegistryError(
                    f"{record[TYPE_KEY]} {record_key(record)} of registry dataset {source} has no {field}"
                )

    return dataset


def check_references(dataset: Dict[str, Any]):
    """
    Check that every "AUTHORITY:CODE" reference of a (merged) dataset names a record or an
    area of the dataset.

    Raises:
        RegistryError: If a reference is dangling
    """
    keys = {record_key(r) for r in dataset[OBJECTS_KEY]}
    for record in dataset[OBJECTS_KEY]:
        for field in REFERENCE_FIELDS:
            value = record.get(field)
            refs = value if isinstance(value, list) else [value]
            for ref in refs:
                if ref is not None and ref not in keys:
                    raise RegistryError(f"{field} {ref} of registry object {record_key(record)} is not registered")
        area = record.get(AREA_KEY)
        if area is not None and area not in dataset[AREAS_KEY]:
            raise RegistryError(f"area {area} of registry object {record_key(record)} is not registered")


def merge_datasets(datasets: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Layer datasets in order: later datasets shadow earlier ones for objects with the same
    authority and code, grids with the same name, areas and metadata keys.

    Shadowed objects keep their original registration position.
    """
    metadata: Dict[str, str] = {}
    areas: Dict[str, Any] = {}
    objects: Dict[str, Dict[str, Any]] = {}
    aliases: List[Dict[str, Any]] = []
    grids: Dict[str, Dict[str, Any]] = {}

    for dataset in datasets:
        metadata.update(dataset[METADATA_KEY])
        areas.update(dataset[AREAS_KEY])
        for record in dataset[OBJECTS_KEY]:
            key = record_key(record)
            if key in objects:
                log.debug(f"registry object {key} shadowed by an overlay")
            objects[key] = record
        aliases.extend(dataset[ALIASES_KEY])
        for grid in dataset[GRIDS_KEY]:
            grids[grid[NAME_KEY]] = grid

    return {
        METADATA_KEY: metadata,
        AREAS_KEY: areas,
        OBJECTS_KEY: list(objects.values()),
        ALIASES_KEY: aliases,
        GRIDS_KEY: list(grids.values()),
    }


def nx_graph_from_dataset(dataset: Dict[str, Any]) -> nx.MultiDiGraph:
    """
    Build the registry graph of a dataset.

    Every CRS is a node; every transformation and concatenated operation is an edge from
    its source CRS to its target CRS, keyed by "AUTHORITY:CODE". Nodes and edges carry the
    dataset record and its registration order.

    Args:
        dataset: A validated (and possibly merged) dataset

    Returns:
        The registry graph
    """
    g = nx.MultiDiGraph()
    g.graph[METADATA_KEY] = dataset[METADATA_KEY]

    for order, record in enumerate(dataset[OBJECTS_KEY]):
        if record[TYPE_KEY] in CRS_RECORD_TYPES:
            g.add_node(record_key(record), **{RECORD_KEY: record, ORDER_KEY: order})

    for order, record in enumerate(dataset[OBJECTS_KEY]):
        if record[TYPE_KEY] not in OPERATION_TYPES:
            continue
        source, target = record.get("source_crs"), record.get("target_crs")
        if source not in g or target not in g:
            log.warning(
                f"operation {record_key(record)} links unknown CRS {source} -> {target}; skipping"
            )
            continue
        g.add_edge(
            source, target, key=record_key(record), **{RECORD_KEY: record, ORDER_KEY: order}
        )

    return g
