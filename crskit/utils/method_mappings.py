"""Catalogue of operation methods and their parameters.

Each method is described once with its EPSG name and code and with the spelling used by
the GDAL WKT1 dialect, the ESRI dialect and PROJ strings. Parameters are listed in their
EPSG order, which is also the order used when formatting.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, NamedTuple, Optional, Tuple

from crskit.utils.units import UnitType

# Method codes referenced by name elsewhere in the package
TRANSVERSE_MERCATOR = "9807"
LAMBERT_CONIC_CONFORMAL_1SP = "9801"
LAMBERT_CONIC_CONFORMAL_2SP = "9802"
MERCATOR_VARIANT_A = "9804"
MERCATOR_VARIANT_B = "9805"
POLAR_STEREOGRAPHIC_VARIANT_B = "9829"
GEOCENTRIC_TRANSLATIONS = "9603"
POSITION_VECTOR = "9606"
COORDINATE_FRAME = "9607"
GEOCENTRIC_TRANSLATIONS_GEOCENTRIC = "1031"
POSITION_VECTOR_GEOCENTRIC = "1033"
COORDINATE_FRAME_GEOCENTRIC = "1032"
NTV1 = "9614"
NTV2 = "9615"
NADCON = "9613"
GEOGRAPHIC2D_OFFSETS = "9619"
LONGITUDE_ROTATION = "9601"
GEOGRAPHIC3D_TO_2D = "9659"
GEOGRAPHIC_GEOCENTRIC = "9602"
AXIS_ORDER_REVERSAL_2D = "9843"
AXIS_ORDER_REVERSAL_3D = "9844"
CHANGE_OF_VERTICAL_UNIT = "1069"
VERTICAL_OFFSET = "9616"

INVERSE_PREFIX = "Inverse of "
PROJ_BASED_METHOD_PREFIX = "PROJ-based operation method: "

HELMERT_FAMILY = {
    GEOCENTRIC_TRANSLATIONS,
    POSITION_VECTOR,
    COORDINATE_FRAME,
    GEOCENTRIC_TRANSLATIONS_GEOCENTRIC,
    POSITION_VECTOR_GEOCENTRIC,
    COORDINATE_FRAME_GEOCENTRIC,
}

GRID_METHODS = {NTV1, NTV2, NADCON}


class ParamMapping(NamedTuple):
    name: str
    code: Optional[str]
    wkt1_name: Optional[str]
    esri_name: Optional[str]
    proj_key: Optional[str]
    unit_type: UnitType
    default: float = 0.0
    is_file: bool = False


class MethodMapping(NamedTuple):
    """
    The spellings of one operation method across dialects.

    Attributes:
        name: The EPSG method name
        code: The EPSG method code, or None for methods without EPSG code
        wkt1_name: The PROJECTION name in GDAL WKT1
        esri_name: The PROJECTION (or transformation method) name in ESRI WKT
        proj_name: The +proj= value
        params: The parameters, in EPSG order
        is_projection: Whether the method is a map projection
    """

    name: str
    code: Optional[str]
    wkt1_name: Optional[str]
    esri_name: Optional[str]
    proj_name: Optional[str]
    params: Tuple[ParamMapping, ...]
    is_projection: bool = True

    def param_by_code(self, code: str) -> Optional[ParamMapping]:
        for p in self.params:
            if p.code == code:
                return p
        return None


# Parameters shared by many projections
LAT_NATURAL_ORIGIN = ParamMapping(
    "Latitude of natural origin", "8801", "latitude_of_origin", "Latitude_Of_Origin", "lat_0", UnitType.ANGULAR
)
LON_NATURAL_ORIGIN = ParamMapping(
    "Longitude of natural origin", "8802", "central_meridian", "Central_Meridian", "lon_0", UnitType.ANGULAR
)
SCALE_NATURAL_ORIGIN = ParamMapping(
    "Scale factor at natural origin", "8805", "scale_factor", "Scale_Factor", "k", UnitType.SCALE, 1.0
)
FALSE_EASTING = ParamMapping(
    "False easting", "8806", "false_easting", "False_Easting", "x_0", UnitType.LINEAR
)
FALSE_NORTHING = ParamMapping(
    "False northing", "8807", "false_northing", "False_Northing", "y_0", UnitType.LINEAR
)
LAT_FALSE_ORIGIN = ParamMapping(
    "Latitude of false origin", "8821", "latitude_of_origin", "Latitude_Of_Origin", "lat_0", UnitType.ANGULAR
)
LON_FALSE_ORIGIN = ParamMapping(
    "Longitude of false origin", "8822", "central_meridian", "Central_Meridian", "lon_0", UnitType.ANGULAR
)
LAT_1ST_PARALLEL = ParamMapping(
    "Latitude of 1st standard parallel", "8823", "standard_parallel_1", "Standard_Parallel_1", "lat_1", UnitType.ANGULAR
)
LAT_2ND_PARALLEL = ParamMapping(
    "Latitude of 2nd standard parallel", "8824", "standard_parallel_2", "Standard_Parallel_2", "lat_2", UnitType.ANGULAR
)
EASTING_FALSE_ORIGIN = ParamMapping(
    "Easting at false origin", "8826", "false_easting", "False_Easting", "x_0", UnitType.LINEAR
)
NORTHING_FALSE_ORIGIN = ParamMapping(
    "Northing at false origin", "8827", "false_northing", "False_Northing", "y_0", UnitType.LINEAR
)
LAT_PROJECTION_CENTRE = ParamMapping(
    "Latitude of projection centre", "8811", "latitude_of_center", "Latitude_Of_Center", "lat_0", UnitType.ANGULAR
)
LON_PROJECTION_CENTRE = ParamMapping(
    "Longitude of projection centre", "8812", "longitude_of_center", "Longitude_Of_Center", "lonc", UnitType.ANGULAR
)
LON_ORIGIN = ParamMapping(
    "Longitude of origin", "8833", "central_meridian", "Central_Meridian", "lon_0", UnitType.ANGULAR
)
LAT_STD_PARALLEL = ParamMapping(
    "Latitude of standard parallel", "8832", "latitude_of_origin", "Standard_Parallel_1", "lat_ts", UnitType.ANGULAR
)

_EN = (FALSE_EASTING, FALSE_NORTHING)
_NATURAL_ORIGIN_4 = (LAT_NATURAL_ORIGIN, LON_NATURAL_ORIGIN) + _EN
_NATURAL_ORIGIN_5 = (LAT_NATURAL_ORIGIN, LON_NATURAL_ORIGIN, SCALE_NATURAL_ORIGIN) + _EN
_FALSE_ORIGIN_6 = (
    LAT_FALSE_ORIGIN,
    LON_FALSE_ORIGIN,
    LAT_1ST_PARALLEL,
    LAT_2ND_PARALLEL,
    EASTING_FALSE_ORIGIN,
    NORTHING_FALSE_ORIGIN,
)
_WORLD = (LON_NATURAL_ORIGIN,) + _EN
_LAT_TS = LAT_1ST_PARALLEL._replace(proj_key="lat_ts")

# Transformation parameters
X_TRANSLATION = ParamMapping("X-axis translation", "8605", None, "X_Axis_Translation", "x", UnitType.LINEAR)
Y_TRANSLATION = ParamMapping("Y-axis translation", "8606", None, "Y_Axis_Translation", "y", UnitType.LINEAR)
Z_TRANSLATION = ParamMapping("Z-axis translation", "8607", None, "Z_Axis_Translation", "z", UnitType.LINEAR)
X_ROTATION = ParamMapping("X-axis rotation", "8608", None, "X_Axis_Rotation", "rx", UnitType.ANGULAR)
Y_ROTATION = ParamMapping("Y-axis rotation", "8609", None, "Y_Axis_Rotation", "ry", UnitType.ANGULAR)
Z_ROTATION = ParamMapping("Z-axis rotation", "8610", None, "Z_Axis_Rotation", "rz", UnitType.ANGULAR)
SCALE_DIFFERENCE = ParamMapping("Scale difference", "8611", None, "Scale_Difference", "s", UnitType.SCALE)
LAT_LON_DIFFERENCE_FILE = ParamMapping(
    "Latitude and longitude difference file", "8656", None, "Dataset_", "grids", UnitType.NONE, is_file=True
)
LAT_DIFFERENCE_FILE = ParamMapping(
    "Latitude difference file", "8657", None, "Dataset_", "grids", UnitType.NONE, is_file=True
)
LON_DIFFERENCE_FILE = ParamMapping(
    "Longitude difference file", "8658", None, None, None, UnitType.NONE, is_file=True
)
LAT_OFFSET = ParamMapping("Latitude offset", "8601", None, "Latitude_Offset", "dlat", UnitType.ANGULAR)
LON_OFFSET = ParamMapping("Longitude offset", "8602", None, "Longitude_Offset", "dlon", UnitType.ANGULAR)
UNIT_CONVERSION_SCALAR = ParamMapping("Unit conversion scalar", "1051", None, None, None, UnitType.SCALE, 1.0)
VERTICAL_OFFSET_PARAM = ParamMapping("Vertical Offset", "8603", None, "Vertical_Offset", "dh", UnitType.LINEAR)

_TRANSLATIONS = (X_TRANSLATION, Y_TRANSLATION, Z_TRANSLATION)
_SEVEN_PARAMS = _TRANSLATIONS + (X_ROTATION, Y_ROTATION, Z_ROTATION, SCALE_DIFFERENCE)


METHODS: Tuple[MethodMapping, ...] = (
    MethodMapping("Transverse Mercator", TRANSVERSE_MERCATOR, "Transverse_Mercator", "Transverse_Mercator", "tmerc", _NATURAL_ORIGIN_5),
    MethodMapping(
        "Transverse Mercator (South Orientated)", "9808", "Transverse_Mercator_South_Orientated",
        "Transverse_Mercator_South_Orientated", "tmerc", _NATURAL_ORIGIN_5,
    ),
    MethodMapping(
        "Gauss Schreiber Transverse Mercator", None, "Gauss_Schreiber_Transverse_Mercator",
        "Gauss_Schreiber_Transverse_Mercator", "gstmerc", _NATURAL_ORIGIN_5,
    ),
    MethodMapping(
        "Lambert Conic Conformal (1SP)", LAMBERT_CONIC_CONFORMAL_1SP, "Lambert_Conformal_Conic_1SP",
        "Lambert_Conformal_Conic", "lcc", (LAT_NATURAL_ORIGIN, LON_NATURAL_ORIGIN, SCALE_NATURAL_ORIGIN._replace(proj_key="k_0")) + _EN,
    ),
    MethodMapping(
        "Lambert Conic Conformal (2SP)", LAMBERT_CONIC_CONFORMAL_2SP, "Lambert_Conformal_Conic_2SP",
        "Lambert_Conformal_Conic", "lcc", _FALSE_ORIGIN_6,
    ),
    MethodMapping(
        "Lambert Conic Conformal (2SP Belgium)", "9803", "Lambert_Conformal_Conic_2SP_Belgium",
        "Lambert_Conformal_Conic_2SP_Belgium", "lcc", _FALSE_ORIGIN_6,
    ),
    MethodMapping("Mercator (variant A)", MERCATOR_VARIANT_A, "Mercator_1SP", "Mercator", "merc", _NATURAL_ORIGIN_5),
    MethodMapping(
        "Mercator (variant B)", MERCATOR_VARIANT_B, "Mercator_2SP", "Mercator", "merc",
        (_LAT_TS, LON_NATURAL_ORIGIN) + _EN,
    ),
    MethodMapping(
        "Popular Visualisation Pseudo Mercator", "1024", "Popular_Visualisation_Pseudo_Mercator",
        "Mercator_Auxiliary_Sphere", "webmerc", _NATURAL_ORIGIN_4,
    ),
    MethodMapping("Oblique Stereographic", "9809", "Oblique_Stereographic", "Double_Stereographic", "sterea", _NATURAL_ORIGIN_5),
    MethodMapping("Polar Stereographic (variant A)", "9810", "Polar_Stereographic", "Polar_Stereographic_Variant_A", "stere", _NATURAL_ORIGIN_5),
    MethodMapping(
        "Polar Stereographic (variant B)", POLAR_STEREOGRAPHIC_VARIANT_B, "Polar_Stereographic",
        "Polar_Stereographic_Variant_B", "stere", (LAT_STD_PARALLEL, LON_ORIGIN) + _EN,
    ),
    MethodMapping("Stereographic", None, "Stereographic", "Stereographic", "stere", _NATURAL_ORIGIN_5),
    MethodMapping(
        "Lambert Azimuthal Equal Area", "9820", "Lambert_Azimuthal_Equal_Area",
        "Lambert_Azimuthal_Equal_Area", "laea", _NATURAL_ORIGIN_4,
    ),
    MethodMapping("Albers Equal Area", "9822", "Albers_Conic_Equal_Area", "Albers", "aea", _FALSE_ORIGIN_6),
    MethodMapping(
        "Equidistant Cylindrical", "1028", "Equirectangular", "Equidistant_Cylindrical", "eqc",
        (_LAT_TS, LON_NATURAL_ORIGIN) + _EN,
    ),
    MethodMapping("Cassini-Soldner", "9806", "Cassini_Soldner", "Cassini", "cass", _NATURAL_ORIGIN_4),
    MethodMapping("American Polyconic", "9818", "Polyconic", "Polyconic", "poly", _NATURAL_ORIGIN_4),
    MethodMapping(
        "Krovak", "9819", "Krovak", "Krovak", "krovak",
        (
            LAT_PROJECTION_CENTRE,
            LON_ORIGIN,
            ParamMapping("Co-latitude of cone axis", "1036", "azimuth", "Azimuth", "alpha", UnitType.ANGULAR),
            ParamMapping(
                "Latitude of pseudo standard parallel", "8818", "pseudo_standard_parallel_1",
                "Pseudo_Standard_Parallel_1", None, UnitType.ANGULAR,
            ),
            ParamMapping(
                "Scale factor on pseudo standard parallel", "8819", "scale_factor", "Scale_Factor", "k",
                UnitType.SCALE, 1.0,
            ),
        )
        + _EN,
    ),
    MethodMapping(
        "Hotine Oblique Mercator (variant B)", "9815", "Hotine_Oblique_Mercator_Azimuth_Center",
        "Hotine_Oblique_Mercator_Azimuth_Center", "omerc",
        (
            LAT_PROJECTION_CENTRE,
            LON_PROJECTION_CENTRE,
            ParamMapping("Azimuth of initial line", "8813", "azimuth", "Azimuth", "alpha", UnitType.ANGULAR),
            ParamMapping(
                "Angle from Rectified to Skew Grid", "8814", "rectified_grid_angle", "Rectified_Grid_Angle",
                "gamma", UnitType.ANGULAR,
            ),
            ParamMapping(
                "Scale factor on initial line", "8815", "scale_factor", "Scale_Factor", "k", UnitType.SCALE, 1.0
            ),
            ParamMapping("Easting at projection centre", "8816", "false_easting", "False_Easting", "x_0", UnitType.LINEAR),
            ParamMapping(
                "Northing at projection centre", "8817", "false_northing", "False_Northing", "y_0", UnitType.LINEAR
            ),
        ),
    ),
    MethodMapping("New Zealand Map Grid", "9811", "New_Zealand_Map_Grid", "New_Zealand_Map_Grid", "nzmg", _NATURAL_ORIGIN_4),
    MethodMapping(
        "Lambert Cylindrical Equal Area", "9835", "Cylindrical_Equal_Area", "Cylindrical_Equal_Area", "cea",
        (_LAT_TS, LON_NATURAL_ORIGIN) + _EN,
    ),
    MethodMapping("Azimuthal Equidistant", "1125", "Azimuthal_Equidistant", "Azimuthal_Equidistant", "aeqd", _NATURAL_ORIGIN_4),
    MethodMapping("Orthographic", "9840", "Orthographic", "Orthographic", "ortho", _NATURAL_ORIGIN_4),
    MethodMapping("Gnomonic", None, "Gnomonic", "Gnomonic", "gnom", _NATURAL_ORIGIN_4),
    MethodMapping("Mollweide", None, "Mollweide", "Mollweide", "moll", _WORLD),
    MethodMapping("Robinson", None, "Robinson", "Robinson", "robin", _WORLD),
    MethodMapping("Sinusoidal", None, "Sinusoidal", "Sinusoidal", "sinu", _WORLD),
    MethodMapping("Equal Earth", "1078", "Equal_Earth", "Equal_Earth", "eqearth", _WORLD),
    MethodMapping("Eckert IV", None, "Eckert_IV", "Eckert_IV", "eck4", _WORLD),
    MethodMapping("Eckert VI", None, "Eckert_VI", "Eckert_VI", "eck6", _WORLD),
    MethodMapping("Miller Cylindrical", None, "Miller_Cylindrical", "Miller_Cylindrical", "mill", _WORLD),
    MethodMapping("Gall Stereographic", None, "Gall_Stereographic", "Gall_Stereographic", "gall", _WORLD),
    MethodMapping("Van Der Grinten", None, "VanDerGrinten", "Van_der_Grinten_I", "vandg", _WORLD),
    # transformations and other non-projection methods
    MethodMapping(
        "Geocentric translations (geog2D domain)", GEOCENTRIC_TRANSLATIONS, None,
        "Geocentric_Translation", "helmert", _TRANSLATIONS, False,
    ),
    MethodMapping(
        "Position Vector transformation (geog2D domain)", POSITION_VECTOR, None,
        "Position_Vector", "helmert", _SEVEN_PARAMS, False,
    ),
    MethodMapping(
        "Coordinate Frame rotation (geog2D domain)", COORDINATE_FRAME, None,
        "Coordinate_Frame", "helmert", _SEVEN_PARAMS, False,
    ),
    MethodMapping(
        "Geocentric translations (geocentric domain)", GEOCENTRIC_TRANSLATIONS_GEOCENTRIC, None,
        "Geocentric_Translation", "helmert", _TRANSLATIONS, False,
    ),
    MethodMapping(
        "Position Vector transformation (geocentric domain)", POSITION_VECTOR_GEOCENTRIC, None,
        "Position_Vector", "helmert", _SEVEN_PARAMS, False,
    ),
    MethodMapping(
        "Coordinate Frame rotation (geocentric domain)", COORDINATE_FRAME_GEOCENTRIC, None,
        "Coordinate_Frame", "helmert", _SEVEN_PARAMS, False,
    ),
    MethodMapping("NTv2", NTV2, None, "NTv2", "hgridshift", (LAT_LON_DIFFERENCE_FILE,), False),
    MethodMapping("NTv1", NTV1, None, "NTv1", "hgridshift", (LAT_LON_DIFFERENCE_FILE,), False),
    MethodMapping("NADCON", NADCON, None, "NADCON", "hgridshift", (LAT_DIFFERENCE_FILE, LON_DIFFERENCE_FILE), False),
    MethodMapping(
        "Geographic2D offsets", GEOGRAPHIC2D_OFFSETS, None, "Geographic_2D_Offset", "geogoffset",
        (LAT_OFFSET, LON_OFFSET), False,
    ),
    MethodMapping("Longitude rotation", LONGITUDE_ROTATION, None, "Longitude_Rotation", "geogoffset", (LON_OFFSET,), False),
    MethodMapping("Geographic3D to 2D conversion", GEOGRAPHIC3D_TO_2D, None, None, None, (), False),
    MethodMapping("Geographic/geocentric conversions", GEOGRAPHIC_GEOCENTRIC, None, None, "cart", (), False),
    MethodMapping("Axis Order Reversal (2D)", AXIS_ORDER_REVERSAL_2D, None, None, "axisswap", (), False),
    MethodMapping("Axis Order Reversal (Geographic3D horizontal)", AXIS_ORDER_REVERSAL_3D, None, None, "axisswap", (), False),
    MethodMapping("Change of Vertical Unit", CHANGE_OF_VERTICAL_UNIT, None, None, "unitconvert", (UNIT_CONVERSION_SCALAR,), False),
    MethodMapping("Vertical Offset", VERTICAL_OFFSET, None, "Vertical_Offset", "geogoffset", (VERTICAL_OFFSET_PARAM,), False),
)


def _norm(s: str) -> str:
    return re.sub(r"[^a-z0-9]", "", s.lower())


_BY_CODE: Dict[str, MethodMapping] = {m.code: m for m in METHODS if m.code}
_BY_NAME: Dict[str, MethodMapping] = {}
for _attr in ("name", "wkt1_name", "esri_name"):
    for _m in METHODS:
        _n = getattr(_m, _attr)
        if _n:
            _BY_NAME.setdefault(_norm(_n), _m)


def method_by_code(code: Optional[str]) -> Optional[MethodMapping]:
    if code is None:
        return None
    return _BY_CODE.get(str(code))


def method_by_name(name: str) -> Optional[MethodMapping]:
    """
    Find a method by its EPSG, GDAL WKT1 or ESRI spelling.

    An ESRI spelling shared by several methods resolves to the first one declared; use
    `method_by_wkt1_name` when parameter names are available.
    """
    if name.startswith(INVERSE_PREFIX):
        return None
    return _BY_NAME.get(_norm(name))


def method_by_wkt1_name(name: str, param_names: Iterable[str] = ()) -> Optional[MethodMapping]:
    """
    Find a projection method from a WKT1 PROJECTION name and the PARAMETER names that
    follow it. Names shared by several methods are disambiguated by their parameters.
    """
    params = {_norm(p) for p in param_names}
    candidates = [
        m
        for m in METHODS
        if (m.wkt1_name and _norm(m.wkt1_name) == _norm(name))
        or (m.esri_name and _norm(m.esri_name) == _norm(name))
    ]
    if not candidates:
        return method_by_name(name)
    if len(candidates) == 1:
        return candidates[0]
    for m in candidates:
        if m.code == MERCATOR_VARIANT_B and "standardparallel1" in params:
            return m
        if m.code == LAMBERT_CONIC_CONFORMAL_2SP and "standardparallel2" in params:
            return m
        if m.code == POLAR_STEREOGRAPHIC_VARIANT_B and "scalefactor" not in params:
            return m
    for m in candidates:
        if m.code not in (MERCATOR_VARIANT_B, LAMBERT_CONIC_CONFORMAL_2SP, POLAR_STEREOGRAPHIC_VARIANT_B):
            return m
    return candidates[0]


def method_by_proj_name(proj_name: str, keys: Iterable[str] = ()) -> Optional[MethodMapping]:
    """
    Find the projection method a +proj= value stands for.

    Args:
        proj_name: The +proj= value (tmerc, lcc, merc, ...)
        keys: The other keys present in the string, used to tell variants apart

    Returns:
        The method mapping, or None if no projection uses this PROJ name
    """
    keys = set(keys)
    if proj_name in ("etmerc", "utm"):
        proj_name = "tmerc"
    if proj_name == "lcc":
        code = LAMBERT_CONIC_CONFORMAL_2SP if "lat_2" in keys else LAMBERT_CONIC_CONFORMAL_1SP
        return _BY_CODE[code]
    if proj_name == "merc":
        return _BY_CODE[MERCATOR_VARIANT_B if "lat_ts" in keys else MERCATOR_VARIANT_A]
    if proj_name == "stere":
        if "lat_ts" in keys:
            return _BY_CODE[POLAR_STEREOGRAPHIC_VARIANT_B]
        return method_by_name("Stereographic")
    if proj_name == "tmerc" and "axis" in keys:
        return _BY_CODE["9808"]
    for m in METHODS:
        if m.is_projection and m.proj_name == proj_name:
            return m
    return None


def param_mapping(
    method: Optional[MethodMapping], name: str, code: Optional[str] = None
) -> Optional[ParamMapping]:
    """
    Find a parameter of a method by code, or by any of its spellings.
    """
    if method is None:
        return None
    if code is not None:
        p = method.param_by_code(str(code))
        if p is not None:
            return p
    n = _norm(name)
    for p in method.params:
        for spelling in (p.name, p.wkt1_name, p.esri_name, p.proj_key):
            if spelling and _norm(spelling) == n:
                return p
    return None
