from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Union

from crskit.utils.exceptions import WKTParseError

_OPENERS = {"[": "]", "(": ")"}
_CLOSERS = {"]", ")"}


class Word(str):
    """
    An unquoted WKT value: a number or an enumeration such as `north` or `ellipsoidal`.
    """


WKTValue = Union["WKTNode", str, Word]


@dataclass
class WKTNode:
    """
    A keyword and its bracketed arguments.

    Quoted strings are plain `str` values (with doubled quotes unescaped), unquoted
    values are `Word` instances, nested keywords are `WKTNode` instances.

    Attributes:
        keyword: The keyword, upper-cased
        args: The arguments, in text order
        start: The offset of the keyword in the parsed text
        end: The offset just after the closing bracket
    """

    keyword: str
    args: List[WKTValue] = field(default_factory=list)
    start: int = 0
    end: int = 0

    @property
    def children(self) -> List[WKTNode]:
        return [a for a in self.args if isinstance(a, WKTNode)]

    @property
    def values(self) -> List[str]:
        return [a for a in self.args if not isinstance(a, WKTNode)]

    def find(self, *keywords: str) -> Optional[WKTNode]:
        """
        Get the first direct child with one of the keywords.
        """
        for child in self.children:
            if child.keyword in keywords:
                return child
        return None

    def find_all(self, *keywords: str) -> List[WKTNode]:
        return [c for c in self.children if c.keyword in keywords]

    def walk(self) -> Iterator[WKTNode]:
        yield self
        for child in self.children:
            yield from child.walk()

    def string(self, index: int = 0) -> str:
        """
        Get the value at a position as a string.

        Raises:
            WKTParseError: If the node has no value at that position
        """
        vals = self.values
        if index >= len(vals):
            raise WKTParseError(f"{self.keyword} is missing argument {index + 1}")
        return str(vals[index])

    def number(self, index: int) -> float:
        """
        Get the value at a position as a number.

        Raises:
            WKTParseError: If the value is missing or is not a number
        """
        raw = self.string(index)
        try:
            return float(raw)
        except ValueError as e:
            raise WKTParseError(f"{self.keyword} argument {index + 1} is not a number: {raw}") from e

    @property
    def name(self) -> str:
        return self.string(0) if self.values else ""


class _Scanner:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def skip_blanks(self):
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def peek(self) -> str:
        self.skip_blanks()
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def error(self, message: str) -> WKTParseError:
        return WKTParseError(f"{message} at offset {self.pos}")

    def keyword(self) -> str:
        self.skip_blanks()
        start = self.pos
        while self.pos < len(self.text) and (self.text[self.pos].isalnum() or self.text[self.pos] == "_"):
            self.pos += 1
        if start == self.pos:
            raise self.error("expected a keyword")
        return self.text[start : self.pos].upper()

    def quoted(self) -> str:
        quote = self.text[self.pos]
        closing = "”" if quote == "“" else quote
        self.pos += 1
        chunks = []
        while True:
            end = self.text.find(closing, self.pos)
            if end < 0:
                raise self.error("unterminated string")
            chunks.append(self.text[self.pos : end])
            self.pos = end + 1
            # a doubled quote is an escaped quote
            if closing == '"' and self.text.startswith('"', self.pos):
                chunks.append('"')
                self.pos += 1
                continue
            return "".join(chunks)

    def word(self) -> Word:
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] not in ",[]()" and not self.text[self.pos].isspace():
            self.pos += 1
        if start == self.pos:
            raise self.error("expected a value")
        return Word(self.text[start : self.pos])

    def node(self) -> WKTNode:
        self.skip_blanks()
        start = self.pos
        keyword = self.keyword()
        node = WKTNode(keyword, start=start)
        opener = self.peek()
        if opener not in _OPENERS:
            # bare keyword, used for enumerations in some positions
            node.end = self.pos
            return node
        closer = _OPENERS[opener]
        self.pos += 1
        if self.peek() == closer:
            self.pos += 1
            node.end = self.pos
            return node
        while True:
            node.args.append(self.value())
            c = self.peek()
            if c == ",":
                self.pos += 1
                continue
            if c == closer:
                self.pos += 1
                node.end = self.pos
                return node
            if c in _CLOSERS:
                raise self.error(f"mismatched bracket closing {keyword}")
            raise self.error(f"expected ',' or '{closer}' in {keyword}")

    def value(self) -> WKTValue:
        c = self.peek()
        if c in ('"', "“"):
            return self.quoted()
        if c.isalpha():
            save = self.pos
            self.keyword()
            if self.peek() in _OPENERS:
                self.pos = save
                return self.node()
            self.pos = save
        return self.word()


def tokenize(text: str) -> WKTNode:
    """
    Parse WKT text into a tree of keyword nodes.

    Both square brackets and parentheses are accepted as delimiters; keywords are
    case-insensitive; doubled double quotes inside strings stand for a quote.

    Args:
        text: The WKT text

    Returns:
        The root node

    Raises:
        WKTParseError: If the text is not well-formed WKT
    """
    scanner = _Scanner(text)
    if not scanner.peek().isalpha():
        raise WKTParseError("WKT must start with a keyword")
    start = scanner.pos
    keyword = scanner.keyword()
    if scanner.peek() not in _OPENERS:
        raise WKTParseError(f"{keyword} has no bracketed content")
    scanner.pos = start
    root = scanner.node()
    if scanner.peek():
        raise scanner.error("unexpected text after the end of the WKT")
    return root
