from __future__ import annotations

import math
import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, NamedTuple, Optional, Tuple

from crskit.constructs.area import AreaOfUse

DEPRECATED_SUFFIX = " (deprecated)"

# names that carry no identity and never take part in name comparisons
UNKNOWN_NAMES = {"", "unknown", "unnamed"}


class Comparison(Enum):
    """
    Strength of a comparison between two objects.

    Values:
        STRICT: Every field, including names and identifiers, must match
        EQUIVALENT: The mathematical definition must match; names, identifiers and
            interchangeable axis order are ignored
    """

    STRICT = "strict"
    EQUIVALENT = "equivalent"


class Identifier(NamedTuple):
    authority: str
    code: str

    def to_string(self) -> str:
        return f"{self.authority}:{self.code}"

    @classmethod
    def from_string(cls, s: str) -> Identifier:
        authority, code = s.split(":", 1)
        return cls(authority, code.lstrip(":"))


def is_close(a: Optional[float], b: Optional[float], rel_tol: float = 1e-10) -> bool:
    if a is None or b is None:
        return a is b
    return math.isclose(a, b, rel_tol=rel_tol, abs_tol=1e-12)


def normalise_name(name: str) -> str:
    """
    Normalise a name for loose comparison: lower case, alphanumerics only.
    """
    return re.sub(r"[^a-z0-9]", "", name.lower())


def names_match(a: str, b: str) -> bool:
    """
    Compare two names loosely; names carrying no identity match anything.
    """
    if a.lower() in UNKNOWN_NAMES or b.lower() in UNKNOWN_NAMES:
        return True
    return normalise_name(a) == normalise_name(b)


@dataclass(frozen=True, kw_only=True)
class IdentifiedObject:
    """
    Common metadata carried by every object of the model.

    Objects are immutable; "modifications" build a new object with `dataclasses.replace`.
    A name ending with " (deprecated)" is stored without the suffix and with the
    deprecated flag set.

    Attributes:
        name: The object name
        identifiers: The (authority, code) pairs of the object, in declaration order
        aliases: Alternative names
        remarks: Free-text remarks
        deprecated: Whether the object is deprecated
    """

    name: str = "unknown"
    identifiers: Tuple[Identifier, ...] = ()
    aliases: Tuple[str, ...] = ()
    remarks: Optional[str] = None
    deprecated: bool = False

    def __post_init__(self):
        if self.name.endswith(DEPRECATED_SUFFIX):
            object.__setattr__(self, "name", self.name[: -len(DEPRECATED_SUFFIX)])
            object.__setattr__(self, "deprecated", True)

        unique = []
        for ident in self.identifiers:
            ident = Identifier(str(ident[0]), str(ident[1]))
            if ident not in unique:
                unique.append(ident)
        object.__setattr__(self, "identifiers", tuple(unique))
        object.__setattr__(self, "aliases", tuple(self.aliases))

    def identifier(self, index: int = 0) -> Optional[Identifier]:
        """
        Get an identifier by position.

        Args:
            index: The position of the identifier

        Returns:
            The identifier, or None if the index is negative or out of range
        """
        if 0 <= index < len(self.identifiers):
            return self.identifiers[index]
        return None

    @property
    def authority(self) -> Optional[str]:
        ident = self.identifier(0)
        return ident.authority if ident else None

    @property
    def code(self) -> Optional[str]:
        ident = self.identifier(0)
        return ident.code if ident else None

    def has_identifier(self, authority: str, code: Any) -> bool:
        return Identifier(authority, str(code)) in self.identifiers

    def all_names(self) -> Tuple[str, ...]:
        return (self.name,) + self.aliases

    def is_equivalent_to(
        self, other: Any, criterion: Comparison = Comparison.EQUIVALENT
    ) -> bool:
        """
        Compare this object to another one.

        Objects of different variants are never equivalent.

        Args:
            other: The object to compare to
            criterion: STRICT compares every field, EQUIVALENT compares the definition only

        Returns:
            True if the objects match under the criterion
        """
        if type(self) is not type(other):
            return False
        if criterion == Comparison.STRICT:
            return self == other
        return self._equivalent(other)

    def _equivalent(self, other: Any) -> bool:
        return names_match(self.name, other.name)

    def clone(self):
        return replace(self)


@dataclass(frozen=True, kw_only=True)
class ObjectUsage(IdentifiedObject):
    """
    An identified object with a domain of validity (CRS and coordinate operations).
    """

    area_of_use: Optional[AreaOfUse] = None
    scope: Optional[str] = None


def first_identifier_string(obj: IdentifiedObject) -> Optional[str]:
    ident = obj.identifier(0)
    return ident.to_string() if ident else None
