from __future__ import annotations

import re
from enum import Enum


class WKTDialect(Enum):
    """
    The WKT variants the formatter can write.

    Values:
        WKT2_2018: ISO 19162:2018, with every block written out
        WKT2_2018_SIMPLIFIED: ISO 19162:2018, with units factored out of axes and parameters
        WKT2_2015: ISO 19162:2015
        WKT2_2015_SIMPLIFIED: ISO 19162:2015, simplified
        WKT1_GDAL: OGC 01-009 as written by GDAL
        WKT1_ESRI: the ESRI flavour of WKT1, with ESRI names
    """

    WKT2_2018 = "WKT2_2018"
    WKT2_2018_SIMPLIFIED = "WKT2_2018_SIMPLIFIED"
    WKT2_2015 = "WKT2_2015"
    WKT2_2015_SIMPLIFIED = "WKT2_2015_SIMPLIFIED"
    WKT1_GDAL = "WKT1_GDAL"
    WKT1_ESRI = "WKT1_ESRI"

    @property
    def is_wkt1(self) -> bool:
        return self in (WKTDialect.WKT1_GDAL, WKTDialect.WKT1_ESRI)

    @property
    def is_2018(self) -> bool:
        return self in (WKTDialect.WKT2_2018, WKTDialect.WKT2_2018_SIMPLIFIED)

    @property
    def is_simplified(self) -> bool:
        return self in (WKTDialect.WKT2_2018_SIMPLIFIED, WKTDialect.WKT2_2015_SIMPLIFIED)


class GuessedWKTDialect(Enum):
    NOT_WKT = "not WKT"
    WKT1_GDAL = "WKT1_GDAL"
    WKT1_ESRI = "WKT1_ESRI"
    WKT2_2015 = "WKT2_2015"
    WKT2_2018 = "WKT2_2018"


WKT1_ROOT_KEYWORDS = {
    "GEOGCS",
    "GEOCCS",
    "PROJCS",
    "VERT_CS",
    "VERTCS",
    "COMPD_CS",
    "LOCAL_CS",
    "FITTED_CS",
    "SPHEROID",
}

WKT2_ROOT_KEYWORDS = {
    "GEODCRS",
    "GEODETICCRS",
    "GEOGCRS",
    "GEOGRAPHICCRS",
    "PROJCRS",
    "PROJECTEDCRS",
    "VERTCRS",
    "VERTICALCRS",
    "COMPOUNDCRS",
    "BOUNDCRS",
    "ENGCRS",
    "ENGINEERINGCRS",
    "TIMECRS",
    "PARAMETRICCRS",
    "DERIVEDPROJCRS",
    "DERIVEDGEOGCRS",
    "DERIVEDGEODCRS",
    "DERIVEDVERTCRS",
    "DERIVEDENGCRS",
    "DERIVEDTIMECRS",
    "DERIVEDPARAMETRICCRS",
    "IMAGECRS",
    "COORDINATEOPERATION",
    "CONCATENATEDOPERATION",
    "CONVERSION",
    "ELLIPSOID",
    "DATUM",
    "TRF",
    "GEODETICDATUM",
    "VDATUM",
    "ENSEMBLE",
}

# keywords only defined by the 2018 revision
WKT2_2018_ONLY_KEYWORDS = {
    "GEOGCRS",
    "GEOGRAPHICCRS",
    "BASEGEOGCRS",
    "USAGE",
    "DYNAMIC",
    "FRAMEEPOCH",
    "ENSEMBLE",
    "MEMBER",
    "ENSEMBLEACCURACY",
    "CONCATENATEDOPERATION",
    "DERIVEDPROJCRS",
    "BASEPROJCRS",
    "TRF",
    "VRF",
    "MODEL",
    "VELOCITYGRID",
    "COORDINATEMETADATA",
    "POINTMOTIONOPERATION",
}

_KEYWORD = re.compile(r"([A-Za-z_][A-Za-z0-9_]*)\s*[\[(]")
_ESRI_HINTS = re.compile(r'(GEOGCS|DATUM)\s*[\[(]\s*"(GCS|D)_', re.IGNORECASE)


def guess_wkt_dialect(text: str) -> GuessedWKTDialect:
    """
    Guess the WKT dialect of a text from its surface syntax.

    WKT1 texts are recognised by their root keyword and reported as ESRI when they use
    the ESRI "GCS_"/"D_" name prefixes. WKT2 texts are reported as 2018 when any keyword
    introduced by the 2018 revision appears, 2015 otherwise.

    Args:
        text: Any text

    Returns:
        The guessed dialect, NOT_WKT if the text does not look like WKT
    """
    m = _KEYWORD.match(text.strip())
    if m is None:
        return GuessedWKTDialect.NOT_WKT
    root = m.group(1).upper()
    if root in WKT1_ROOT_KEYWORDS:
        if _ESRI_HINTS.search(text):
            return GuessedWKTDialect.WKT1_ESRI
        return GuessedWKTDialect.WKT1_GDAL
    if root in WKT2_ROOT_KEYWORDS:
        keywords = {k.upper() for k in _KEYWORD.findall(text)}
        if keywords & WKT2_2018_ONLY_KEYWORDS:
            return GuessedWKTDialect.WKT2_2018
        return GuessedWKTDialect.WKT2_2015
    return GuessedWKTDialect.NOT_WKT
