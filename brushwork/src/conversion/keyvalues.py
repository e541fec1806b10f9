"""
Reader and writer for Valve's KeyValues text format.

KeyValues is the nested ``"key" "value"`` / ``"key" { ... }`` syntax used by
VMF maps, VMT materials and most Source engine config files.

Supported:
- quoted and unquoted tokens, escapes ``\\n \\t \\\\ \\"``
- ``//`` line comments and ``/* */`` block comments
- ``#include`` / ``#base`` macros (merged into the current block)

Keys are lower-cased while parsing; lookups should use lower-case names.
Conditional statements (``[$WIN32]``) are not supported.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

WHITESPACE = " \r\n\t"

_ESCAPES = {"n": "\n", "t": "\t", "\\": "\\", '"': '"'}


class KeyValuesError(ValueError):
    """Base class for KeyValues syntax errors."""


class InvalidEscapeError(KeyValuesError):
    def __init__(self, char: str):
        super().__init__(f"invalid escape sequence \\{char}")
        self.char = char


class UnexpectedEndError(KeyValuesError):
    def __init__(self):
        super().__init__("unexpected end")


class UnexpectedClosingBraceError(KeyValuesError):
    def __init__(self, key: str):
        super().__init__(f"unexpected closing brace after {key}")
        self.key = key


class UnknownMacroError(KeyValuesError):
    def __init__(self, macro: str):
        super().__init__(f'unknown macro "{macro}"')
        self.macro = macro


class InvalidFileError(KeyValuesError):
    def __init__(self, path: str):
        super().__init__(f'invalid file "{path}"')
        self.path = path


Value = Union[str, "KeyValues"]
IncludeHandler = Callable[[str], "KeyValues"]


class KeyValues:
    """An ordered block of ``(key, value)`` pairs; keys may repeat."""

    def __init__(self, items: Optional[List[Tuple[str, Value]]] = None):
        self._items: List[Tuple[str, Value]] = list(items or [])

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Tuple[str, Value]]:
        return iter(self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KeyValues):
            return NotImplemented
        return self._items == other._items

    def __repr__(self) -> str:
        return f"KeyValues({self._items!r})"

    def items(self) -> List[Tuple[str, Value]]:
        return list(self._items)

    def append(self, key: str, value: Value) -> None:
        self._items.append((key, value))

    def get(self, key: str) -> Optional[Value]:
        """First value stored under ``key``, or None."""
        for name, value in self._items:
            if name == key:
                return value
        return None

    def get_all(self, key: str) -> List[Value]:
        """Every value stored under ``key``, in file order."""
        return [value for name, value in self._items if name == key]

    def get_value(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """First plain string value under ``key``; blocks are skipped."""
        for name, value in self._items:
            if name == key and isinstance(value, str):
                return value
        return default

    def get_block(self, key: str) -> Optional["KeyValues"]:
        """First nested block under ``key``; plain values are skipped."""
        for name, value in self._items:
            if name == key and isinstance(value, KeyValues):
                return value
        return None

    def get_blocks(self, key: str) -> List["KeyValues"]:
        return [v for v in self.get_all(key) if isinstance(v, KeyValues)]

    # ---------------------------------------------------------------
    # Writing
    # ---------------------------------------------------------------

    def dumps(self) -> str:
        return "\n".join(_format_pair(key, value, 0) for key, value in self._items)

    def write(self, path: Union[str, Path]) -> None:
        Path(path).write_text(self.dumps() + "\n", encoding="utf-8")


def escape_token(token: str) -> str:
    return (
        token.replace("\\", "\\\\")
        .replace("\n", "\\n")
        .replace("\t", "\\t")
        .replace('"', '\\"')
    )


def _format_pair(key: str, value: Value, indent: int) -> str:
    pad = " " * (indent * 4)
    if isinstance(value, KeyValues):
        inner = "\n".join(_format_pair(k, v, indent + 1) for k, v in value)
        return f'{pad}"{escape_token(key)}"\n{pad}{{\n{inner}\n{pad}}}'
    return f'{pad}"{escape_token(key)}" "{escape_token(value)}"'


# ---------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------

class _Reader:
    """Cursor over the source text."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def peek(self) -> Optional[str]:
        if self.pos < len(self.text):
            return self.text[self.pos]
        return None

    def next(self) -> Optional[str]:
        char = self.peek()
        if char is not None:
            self.pos += 1
        return char

    def skip_whitespace(self) -> None:
        while self.peek() is not None and self.peek() in WHITESPACE:
            self.pos += 1

    def skip_comment(self) -> None:
        """Skip a comment starting at the current ``/``."""
        self.pos += 1
        if self.peek() == "*":
            end = self.text.find("*/", self.pos + 1)
            self.pos = len(self.text) if end < 0 else end + 2
            return
        # Valve's parser treats a single slash as a line comment too
        end = self.text.find("\n", self.pos)
        self.pos = len(self.text) if end < 0 else end + 1

    def read_token(self) -> str:
        """Read a quoted or unquoted token.

        Raises:
            UnexpectedEndError: On end of input inside a token.
            InvalidEscapeError: On an unknown backslash escape.
        """
        first = self.next()
        if first is None:
            raise UnexpectedEndError()
        quoted = first == '"'
        chars = [] if quoted else [first]
        while True:
            char = self.peek()
            if char is None:
                if quoted:
                    raise UnexpectedEndError()
                break
            if char == "\\":
                self.pos += 1
                escaped = self.next()
                if escaped is None:
                    raise UnexpectedEndError()
                if escaped not in _ESCAPES:
                    raise InvalidEscapeError(escaped)
                chars.append(_ESCAPES[escaped])
            elif char == '"':
                if quoted:
                    self.pos += 1
                break
            elif char in WHITESPACE or char in "{}":
                if not quoted:
                    break
                chars.append(char)
                self.pos += 1
            else:
                chars.append(char)
                self.pos += 1
        return "".join(chars)


def parse_keyvalues(text: str, include_handler: Optional[IncludeHandler] = None) -> KeyValues:
    """Parse KeyValues source text into a root block.

    Args:
        text: Source text.
        include_handler: Called with the argument of ``#include``/``#base``;
            returns the parsed block to merge.  Without one, macros raise
            :class:`InvalidFileError`.

    Raises:
        KeyValuesError: On malformed input.
    """
    reader = _Reader(text)
    current = KeyValues()
    stack: List[Tuple[str, KeyValues]] = []

    while True:
        reader.skip_whitespace()
        char = reader.peek()
        if char is None:
            break
        if char == "}":
            if not stack:
                raise UnexpectedEndError()
            name, parent = stack.pop()
            parent.append(name, current)
            current = parent
            reader.pos += 1
            continue
        if char == "/":
            reader.skip_comment()
            continue

        key = reader.read_token()
        reader.skip_whitespace()
        char = reader.peek()
        if char is None:
            raise UnexpectedEndError()
        if char == "{":
            reader.pos += 1
            stack.append((key.lower(), current))
            current = KeyValues()
        elif char == "}":
            raise UnexpectedClosingBraceError(key)
        else:
            value = reader.read_token()
            if key.startswith("#"):
                _apply_macro(current, key, value, include_handler)
            else:
                current.append(key.lower(), value)

    if stack:
        raise UnexpectedEndError()
    return current


def _apply_macro(current: KeyValues, macro: str, argument: str,
                 include_handler: Optional[IncludeHandler]) -> None:
    if macro not in ("#include", "#base"):
        raise UnknownMacroError(macro)
    if include_handler is None:
        raise InvalidFileError(argument)
    for key, value in include_handler(argument):
        current.append(key, value)


def load_keyvalues(path: Union[str, Path], _including: Tuple[Path, ...] = ()) -> KeyValues:
    """Read and parse a KeyValues file, resolving includes next to it.

    Raises:
        InvalidFileError: If the file (or an included file) cannot be read,
            or a file ends up including itself.
        KeyValuesError: On malformed input.
    """
    path = Path(path)
    resolved = path.resolve()
    if resolved in _including:
        logger.warning("Include cycle: %s", " -> ".join(str(p) for p in _including + (resolved,)))
        raise InvalidFileError(str(path))
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        raise InvalidFileError(str(path)) from None
    logger.debug("Parsing KeyValues file %s (%d bytes)", path, len(text))
    chain = _including + (resolved,)
    return parse_keyvalues(text, lambda name: load_keyvalues(path.parent / name, chain))
