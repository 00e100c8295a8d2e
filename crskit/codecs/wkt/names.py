"""Name spellings of the WKT1 dialects.

GDAL and ESRI write datum, ellipsoid and CRS names with underscores, and ESRI adds
"D_" and "GCS_" prefixes. Where the registry alias table records the historical spelling
of an object it is used verbatim; otherwise the spelling is derived from the name.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from crskit.registry.registry_interface import RegistryInterface

log = logging.getLogger(__name__)

ESRI_SOURCE = "ESRI"
GDAL_SOURCE = "GDAL"

ESRI_DATUM_PREFIX = "D_"
ESRI_GEOGCS_PREFIX = "GCS_"


def morph_to_wkt1(name: str) -> str:
    """
    Replace every run of characters other than letters, digits and '+' by a single
    underscore, the way GDAL spells WKT1 datum names.

    Examples:
        >>> morph_to_wkt1("Pulkovo 1942(58)")
        'Pulkovo_1942_58'
    """
    return re.sub(r"[^A-Za-z0-9+]+", "_", name).strip("_")


def _alias(obj: Any, source: str, registry: Optional[RegistryInterface]) -> Optional[str]:
    if registry is None:
        return None
    return registry.alias(obj, source)


def gdal_datum_name(datum: Any, registry: Optional[RegistryInterface] = None) -> str:
    return _alias(datum, GDAL_SOURCE, registry) or morph_to_wkt1(datum.name)


def esri_datum_name(datum: Any, registry: Optional[RegistryInterface] = None) -> str:
    found = _alias(datum, ESRI_SOURCE, registry)
    if found:
        return found
    name = morph_to_wkt1(datum.name)
    return name if name.startswith(ESRI_DATUM_PREFIX) else ESRI_DATUM_PREFIX + name


def esri_geographic_crs_name(crs: Any, registry: Optional[RegistryInterface] = None) -> str:
    found = _alias(crs, ESRI_SOURCE, registry)
    if found:
        return found
    name = morph_to_wkt1(crs.name)
    return name if name.startswith(ESRI_GEOGCS_PREFIX) else ESRI_GEOGCS_PREFIX + name


def esri_name(obj: Any, registry: Optional[RegistryInterface] = None) -> str:
    """
    ESRI spelling of an ellipsoid, prime meridian or projected CRS name.
    """
    return _alias(obj, ESRI_SOURCE, registry) or morph_to_wkt1(obj.name)


def canonical_name(
    name: str,
    table: str,
    registry: Optional[RegistryInterface] = None,
    esri: bool = False,
) -> str:
    """
    Turn a WKT1 spelling back into the registered name of an object.

    Args:
        name: The name as read from the WKT
        table: The alias table the object belongs to ('geodetic_datum', 'ellipsoid', ...)
        registry: The registry holding the alias table, if any
        esri: Whether the name comes from ESRI WKT

    Returns:
        The registered name if the registry knows the spelling, otherwise the name with its
        ESRI prefix removed (for ESRI) and underscores replaced by spaces (for datums)
    """
    if registry is not None:
        official = registry.official_name(name, table)
        if official is not None:
            return official
        log.debug(f"no registered name for {table} spelled {name}")
    if esri:
        prefix = {"geodetic_datum": ESRI_DATUM_PREFIX, "geodetic_crs": ESRI_GEOGCS_PREFIX}.get(table)
        if prefix and name.startswith(prefix):
            name = name[len(prefix) :]
        return name.replace("_", " ")
    if table == "geodetic_datum":
        return name.replace("_", " ")
    return name
