"""Incremental, filtered JSON reading over a byte stream.

The upstream menu endpoint returns a JSON array whose objects carry many more
fields than the display needs. Rather than buffering the whole body, the array
is walked one object at a time and each object is parsed against a *filter*:
a nested mapping whose ``True`` leaves mark the members worth keeping. Members
outside the filter are syntax-checked and dropped as they stream past, and the
members that are kept are charged against a fixed working capacity so one
oversized object cannot balloon memory.

A failed object parse does not end the walk: the reader skips forward to the
closing brace of the broken object and carries on with the next one.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, Iterator, Mapping, Optional, Union, cast

logger = logging.getLogger(__name__)

JSON_CAPACITY = 768
NESTING_LIMIT = 10
# Cost of one stored member or array element, on top of its key and string bytes.
SLOT_SIZE = 16

MENU_FILTER: Dict[str, Any] = {"title": True, "model": {"service": True}}

FilterNode = Union[bool, Mapping[str, Any], None]

_WHITESPACE = frozenset(b" \t\r\n")
_NUMBER_CHARS = frozenset(b"+-0123456789.eE")
_HEX_DIGITS = frozenset(b"0123456789abcdefABCDEF")
_ESCAPES = {
    ord('"'): b'"',
    ord("\\"): b"\\",
    ord("/"): b"/",
    ord("b"): b"\b",
    ord("f"): b"\f",
    ord("n"): b"\n",
    ord("r"): b"\r",
    ord("t"): b"\t",
}
LBRACE = ord("{")
RBRACE = ord("}")
LBRACKET = ord("[")
RBRACKET = ord("]")
COMMA = ord(",")
COLON = ord(":")
QUOTE = ord('"')
BACKSLASH = ord("\\")


class JsonStreamError(ValueError):
    """Raised when an object cannot be read from the stream."""

    def __init__(self, message: str, position: int):
        super().__init__(f"{message} at byte {position}")
        self.position = position


class IncompleteInput(JsonStreamError):
    """The stream ended in the middle of a value."""


class InvalidInput(JsonStreamError):
    """The stream does not hold valid JSON at this point."""


class NoMemory(JsonStreamError):
    """The retained members do not fit in the working capacity."""


class TooDeep(JsonStreamError):
    """Objects or arrays are nested beyond the allowed depth."""


class ByteStream:
    """Peekable byte reader over an iterable of chunks (e.g. ``Response.iter_content``)."""

    def __init__(self, chunks: Iterable[bytes]):
        self._chunks = iter(chunks)
        self._buffer = b""
        self._index = 0
        self.position = 0

    def _fill(self) -> bool:
        while self._index >= len(self._buffer):
            try:
                chunk = next(self._chunks)
            except StopIteration:
                return False
            self._buffer = chunk or b""
            self._index = 0
        return True

    def available(self) -> bool:
        return self._fill()

    def peek(self) -> Optional[int]:
        if not self._fill():
            return None
        return self._buffer[self._index]

    def read(self) -> Optional[int]:
        if not self._fill():
            return None
        value = self._buffer[self._index]
        self._index += 1
        self.position += 1
        return value


class FilteredObjectParser:
    """Parse one JSON object from ``stream`` keeping only what ``filter`` selects."""

    def __init__(
        self,
        stream: ByteStream,
        filter: Mapping[str, Any],
        capacity: int = JSON_CAPACITY,
        nesting_limit: int = NESTING_LIMIT,
    ):
        self.stream = stream
        self.filter = filter
        self.capacity = capacity
        self.nesting_limit = nesting_limit
        self.used = 0

    def parse(self) -> Dict[str, Any]:
        self.used = 0
        self._skip_whitespace()
        if self._peek() != LBRACE:
            raise InvalidInput("expected '{'", self.stream.position)
        return cast(Dict[str, Any], self._parse_object(self.filter, depth=1))

    # ---------------- low level ----------------
    def _peek(self) -> int:
        c = self.stream.peek()
        if c is None:
            raise IncompleteInput("unexpected end of stream", self.stream.position)
        return c

    def _read(self) -> int:
        c = self.stream.read()
        if c is None:
            raise IncompleteInput("unexpected end of stream", self.stream.position)
        return c

    def _skip_whitespace(self) -> None:
        while self._peek() in _WHITESPACE:
            self.stream.read()

    def _expect(self, expected: int) -> None:
        c = self._read()
        if c != expected:
            raise InvalidInput(f"expected {chr(expected)!r}, got {chr(c)!r}", self.stream.position - 1)

    def _charge(self, size: int) -> None:
        self.used += size
        if self.used > self.capacity:
            raise NoMemory(f"document exceeds {self.capacity} bytes", self.stream.position)

    # ---------------- values ----------------
    def _parse_value(self, node: FilterNode, depth: int) -> Any:
        """Return the parsed value, or None when ``node`` drops it."""
        self._skip_whitespace()
        c = self._peek()
        if c == LBRACE:
            if node is True or isinstance(node, Mapping):
                return self._parse_object(node, depth + 1)
            self._parse_object(None, depth + 1)
            return None
        if c == LBRACKET:
            return self._parse_array(node is True, depth + 1)
        keep = node is True
        if c == QUOTE:
            raw = self._read_string()
            if not keep:
                return None
            self._charge(len(raw) + 1)
            return raw.decode("utf-8", errors="replace")
        if c in (ord("t"), ord("f"), ord("n")):
            value = self._read_literal()
            return value if keep else None
        if c in _NUMBER_CHARS:
            value = self._read_number()
            return value if keep else None
        raise InvalidInput(f"unexpected character {chr(c)!r}", self.stream.position)

    def _parse_object(self, node: FilterNode, depth: int) -> Optional[Dict[str, Any]]:
        if depth > self.nesting_limit:
            raise TooDeep("nesting limit exceeded", self.stream.position)
        self._expect(LBRACE)
        keep_all = node is True
        members: Optional[Dict[str, Any]] = {} if (keep_all or isinstance(node, Mapping)) else None

        self._skip_whitespace()
        if self._peek() == RBRACE:
            self.stream.read()
            return members

        while True:
            self._skip_whitespace()
            if self._peek() != QUOTE:
                raise InvalidInput("expected member name", self.stream.position)
            raw_key = self._read_string()
            key = raw_key.decode("utf-8", errors="replace")
            self._skip_whitespace()
            self._expect(COLON)

            if members is None:
                child: FilterNode = None
            elif keep_all:
                child = True
            else:
                child = node.get(key)  # type: ignore[union-attr]

            value = self._parse_value(child, depth)
            if members is not None and child and (value is not None or child is True):
                self._charge(SLOT_SIZE + len(raw_key) + 1)
                members[key] = value

            self._skip_whitespace()
            c = self._read()
            if c == COMMA:
                continue
            if c == RBRACE:
                return members
            raise InvalidInput(f"expected ',' or '}}', got {chr(c)!r}", self.stream.position - 1)

    def _parse_array(self, keep: bool, depth: int) -> Optional[list]:
        if depth > self.nesting_limit:
            raise TooDeep("nesting limit exceeded", self.stream.position)
        self._expect(LBRACKET)
        items: Optional[list] = [] if keep else None

        self._skip_whitespace()
        if self._peek() == RBRACKET:
            self.stream.read()
            return items

        while True:
            value = self._parse_value(True if keep else None, depth)
            if items is not None:
                self._charge(SLOT_SIZE)
                items.append(value)
            self._skip_whitespace()
            c = self._read()
            if c == COMMA:
                continue
            if c == RBRACKET:
                return items
            raise InvalidInput(f"expected ',' or ']', got {chr(c)!r}", self.stream.position - 1)

    # ---------------- scalars ----------------
    def _read_string(self) -> bytes:
        self._expect(QUOTE)
        out = bytearray()
        while True:
            c = self._read()
            if c == QUOTE:
                return bytes(out)
            if c != BACKSLASH:
                out.append(c)
                continue
            escape = self._read()
            if escape in _ESCAPES:
                out += _ESCAPES[escape]
            elif escape == ord("u"):
                out += self._read_unicode_escape()
            else:
                raise InvalidInput(f"invalid escape {chr(escape)!r}", self.stream.position - 1)

    def _read_hex4(self) -> int:
        digits = bytes(self._read() for _ in range(4))
        if not all(c in _HEX_DIGITS for c in digits):
            raise InvalidInput(f"invalid unicode escape {digits!r}", self.stream.position)
        return int(digits, 16)

    def _read_unicode_escape(self) -> bytes:
        code = self._read_hex4()
        if 0xD800 <= code <= 0xDBFF:
            # High surrogate: a low surrogate escape must follow.
            if self._read() != BACKSLASH or self._read() != ord("u"):
                raise InvalidInput("unpaired surrogate", self.stream.position)
            low = self._read_hex4()
            if not 0xDC00 <= low <= 0xDFFF:
                raise InvalidInput("unpaired surrogate", self.stream.position)
            code = 0x10000 + ((code - 0xD800) << 10) + (low - 0xDC00)
        elif 0xDC00 <= code <= 0xDFFF:
            raise InvalidInput("unpaired surrogate", self.stream.position)
        try:
            return chr(code).encode("utf-8")
        except ValueError:
            raise InvalidInput(f"code point {code} out of range", self.stream.position) from None

    def _read_literal(self) -> Optional[bool]:
        for word, value in ((b"true", True), (b"false", False), (b"null", None)):
            if self._peek() == word[0]:
                for expected in word:
                    self._expect(expected)
                return value
        raise InvalidInput("invalid literal", self.stream.position)

    def _read_number(self) -> Union[int, float]:
        raw = bytearray()
        while self.stream.peek() is not None and self.stream.peek() in _NUMBER_CHARS:
            raw.append(self.stream.read())  # type: ignore[arg-type]
        text = raw.decode("ascii")
        try:
            if any(ch in text for ch in ".eE"):
                return float(text)
            return int(text)
        except ValueError:
            raise InvalidInput(f"invalid number {text!r}", self.stream.position) from None


def skip_to_object_end(stream: ByteStream) -> int:
    """Consume bytes until a '}' closes at brace balance zero. Returns the bytes skipped."""
    depth = 0
    skipped = 0
    while stream.available():
        c = stream.read()
        skipped += 1
        if c == LBRACE:
            depth += 1
        elif c == RBRACE:
            if depth == 0:
                break
            depth -= 1
    return skipped


def iter_filtered_objects(
    stream: ByteStream,
    filter: Mapping[str, Any] = MENU_FILTER,
    capacity: int = JSON_CAPACITY,
    on_error: Optional[Callable[[JsonStreamError], None]] = None,
) -> Iterator[Dict[str, Any]]:
    """Walk a top-level JSON array and yield each object reduced to ``filter``.

    Objects that fail to parse are skipped; stray bytes between elements are
    discarded one at a time.
    """
    while stream.available():
        c = stream.peek()
        if c == LBRACKET:
            stream.read()
            break
        if c in _WHITESPACE:
            stream.read()
        else:
            break

    while stream.available():
        c = stream.peek()
        if c in _WHITESPACE or c == COMMA:
            stream.read()
            continue
        if c == RBRACKET:
            stream.read()
            break
        if c != LBRACE:
            stream.read()
            continue

        parser = FilteredObjectParser(stream, filter, capacity=capacity)
        try:
            document = parser.parse()
        except JsonStreamError as exc:
            skipped = skip_to_object_end(stream)
            logger.debug("Skipped unreadable menu object (%s); recovered after %s bytes", exc, skipped)
            if on_error is not None:
                on_error(exc)
            continue
        yield document
