from __future__ import annotations

from abc import ABCMeta, abstractmethod
from enum import Enum
from typing import Any, List, Optional, Sequence

from crskit.constructs.common import Identifier
from crskit.constructs.crs import CRS, GeodeticCRS, ObjectType
from crskit.constructs.operation import CoordinateOperation, GridUsage


class Category(Enum):
    """
    The family of object a registry lookup asks for.
    """

    ELLIPSOID = "ellipsoid"
    PRIME_MERIDIAN = "prime_meridian"
    DATUM = "datum"
    CRS = "crs"
    COORDINATE_OPERATION = "coordinate_operation"


class RegistryInterface(metaclass=ABCMeta):
    """
    Abstract base class defining the interface for authority registries.

    A registry resolves (authority, code) pairs and names to model objects, lists the
    operations registered between CRS, and describes the grids those operations need.
    The derivation engine, `identify`, the codecs (for vendor name spellings) and the
    builders (for name canonicalisation) only depend on this interface.
    """

    @abstractmethod
    def lookup(self, authority: str, code: str, category: Category) -> Any:
        """
        Build the object registered under an authority and code.

        Args:
            authority: The authority name, e.g. 'EPSG'
            code: The code within the authority
            category: The family of object expected

        Returns:
            The model object

        Raises:
            NotFoundError: If no object of that category is registered under the code
        """

    @abstractmethod
    def list_codes(
        self, authority: str, object_type: ObjectType, include_deprecated: bool = False
    ) -> Optional[List[str]]:
        """
        List the codes of an authority for one object type, in registration order.

        Returns:
            The codes, or None if the registry never stores objects of that type
        """

    @abstractmethod
    def authorities(self) -> List[str]:
        """
        Get the names of the authorities known to the registry, sorted.
        """

    @abstractmethod
    def search_by_name(
        self,
        name: str,
        authority: Optional[str] = None,
        types: Optional[Sequence[ObjectType]] = None,
        approximate: bool = False,
        limit: int = 0,
    ) -> List[Any]:
        """
        Find objects by name.

        Exact matches come first, then (when approximate) names containing the searched
        text; each group keeps registration order.

        Args:
            name: The name to search for
            authority: Restrict the search to one authority
            types: Restrict the search to these object types
            approximate: Whether names merely containing the searched text match
            limit: The maximum number of results, 0 for no limit

        Returns:
            The matching objects
        """

    @abstractmethod
    def metadata(self, key: str) -> Optional[str]:
        """
        Get a dataset metadata value, e.g. 'EPSG.VERSION'.
        """

    @abstractmethod
    def grid_info(self, name: str) -> Optional[GridUsage]:
        """
        Describe a grid file and whether it is available locally.

        Returns:
            The grid description, or None if the registry has no record of the grid
        """

    @abstractmethod
    def operations_between(
        self, source: Identifier, target: Identifier, authority: Optional[str] = None
    ) -> List[CoordinateOperation]:
        """
        List the operations registered from a source CRS to a target CRS, in
        registration order. Operations registered in the other direction are not
        included.

        Args:
            source: The identifier of the source CRS
            target: The identifier of the target CRS
            authority: Only return operations of this authority; None for any
        """

    @abstractmethod
    def pivot_candidates(
        self, source: Identifier, target: Identifier, authority: Optional[str] = None
    ) -> List[Identifier]:
        """
        List the CRS linked by registered operations (in either direction) to both the
        source and the target CRS, in registration order.
        """

    @abstractmethod
    def alias(self, obj: Any, source: str) -> Optional[str]:
        """
        Get the spelling of an object's name used by a vendor source ('ESRI', 'GDAL',
        'PROJ'), found through the object identifiers.
        """

    @abstractmethod
    def official_name(self, alt_name: str, table: Optional[str] = None) -> Optional[str]:
        """
        Get the registered name of an object from one of its alternative spellings.
        """

    @abstractmethod
    def crs_objects(self, authority: Optional[str] = None) -> List[CRS]:
        """
        Build every CRS of an authority (or of all authorities), in registration order.
        """

    @abstractmethod
    def query_geodetic_crs_from_datum(
        self,
        crs_authority: Optional[str],
        datum_authority: str,
        datum_code: str,
        crs_type: Optional[ObjectType] = None,
    ) -> List[GeodeticCRS]:
        """
        List the geodetic CRS based on a datum.
        """

    @abstractmethod
    def non_deprecated(self, obj: Any) -> List[Any]:
        """
        List the objects superseding a deprecated object, in recorded order.
        """

    @abstractmethod
    def lookup_user_input(self, text: str) -> Any:
        """
        Resolve a reference such as "EPSG:4326", "EPSG::4326" or
        "urn:ogc:def:crs:EPSG::4326".

        Raises:
            NotFoundError: If the reference does not resolve
            ValueError: If the text is not an object reference
        """
