from __future__ import annotations

import logging
from typing import Any, Optional

from crskit.codecs.proj_string.parser import from_proj_string
from crskit.codecs.wkt.dialect import GuessedWKTDialect, guess_wkt_dialect
from crskit.codecs.wkt.parser import from_wkt
from crskit.registry.registry_interface import RegistryInterface
from crskit.utils.exceptions import ParseError

log = logging.getLogger(__name__)


def create_from_user_input(text: str, registry: Optional[RegistryInterface] = None) -> Any:
    """
    Build an object from any of the textual forms users pass around.

    The text is read as WKT when it looks like WKT, as a PROJ string when it contains
    "+proj=" or "proj=", and otherwise as an object reference ("EPSG:4326",
    "EPSG::4326", "urn:ogc:def:crs:EPSG::4326") resolved through the registry.

    Args:
        text: The WKT, PROJ string or object reference
        registry: The registry resolving references and name spellings

    Returns:
        The object

    Raises:
        ParseError: If the text is neither WKT, a PROJ string nor a reference
        NotFoundError: If a reference does not resolve
    """
    stripped = text.strip()
    if not stripped:
        raise ParseError("empty input")
    if guess_wkt_dialect(stripped) != GuessedWKTDialect.NOT_WKT:
        log.debug("reading user input as WKT")
        return from_wkt(stripped, registry)
    if "proj=" in stripped:
        log.debug("reading user input as a PROJ string")
        return from_proj_string(stripped, registry)
    if registry is None:
        raise ParseError(f"{stripped} needs a registry to be resolved")
    try:
        return registry.lookup_user_input(stripped)
    except ValueError as e:
        raise ParseError(f"cannot interpret {stripped!r}: {e}") from e
