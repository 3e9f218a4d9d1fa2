"""
Type descriptors for Sophia function signatures.

Types are modelled as a small tagged union of frozen dataclasses. Two front
ends produce them:

- ``parse_type`` reads a type string such as ``map(address,list(int))``
- ``from_aci`` reads a type node of the compiler's interface description
  (ACI), where composites are single-key dicts: ``{"tuple": [...]}``,
  ``{"list": [...]}``, ``{"record": [{"name", "type"}, ...]}``,
  ``{"map": [K, V]}``

``render`` is the one canonical renderer used for catalog signatures, the
argument encoder and the result decoder.

Rendering a record flattens nested records: the inner record's outer
parentheses are dropped before it is embedded, so a record of ``int`` and a
record of ``(int,bool)`` renders as ``(int,int,bool)``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Union

from forgae.errors import TypeParseError


@dataclass(frozen=True)
class Primitive:
    name: str


@dataclass(frozen=True)
class ListType:
    items: tuple[TypeNode, ...]


@dataclass(frozen=True)
class TupleType:
    items: tuple[TypeNode, ...]


@dataclass(frozen=True)
class RecordType:
    fields: tuple[tuple[str, TypeNode], ...]


@dataclass(frozen=True)
class MapType:
    key: TypeNode
    value: TypeNode


@dataclass(frozen=True)
class Applied:
    """A named type constructor that is not list/map, e.g. ``option(int)``."""

    name: str
    args: tuple[TypeNode, ...]


TypeNode = Union[Primitive, ListType, TupleType, RecordType, MapType, Applied]


def _strip_parens(s: str) -> str:
    if s.startswith("(") and s.endswith(")"):
        return s[1:-1]
    return s


def render(node: TypeNode) -> str:
    """Render a type tree to its canonical signature string."""
    if isinstance(node, Primitive):
        return node.name
    if isinstance(node, TupleType):
        return "(" + ",".join(render(t) for t in node.items) + ")"
    if isinstance(node, ListType):
        return "list(" + ",".join(render(t) for t in node.items) + ")"
    if isinstance(node, RecordType):
        parts = []
        for _, field_type in node.fields:
            rendered = render(field_type)
            if isinstance(field_type, RecordType) and field_type.fields:
                rendered = _strip_parens(rendered)
            parts.append(rendered)
        return "(" + ",".join(parts) + ")"
    if isinstance(node, MapType):
        return f"map({render(node.key)},{render(node.value)})"
    if isinstance(node, Applied):
        if not node.args:
            return node.name
        return f"{node.name}(" + ",".join(render(t) for t in node.args) + ")"
    raise TypeError(f"Not a type node: {node!r}")


def depth(node: TypeNode) -> int:
    """Nesting depth of a type tree; primitives are depth 0."""
    if isinstance(node, Primitive):
        return 0
    if isinstance(node, RecordType):
        children: Sequence[TypeNode] = [t for _, t in node.fields]
    elif isinstance(node, MapType):
        children = [node.key, node.value]
    else:
        children = node.items if not isinstance(node, Applied) else node.args
    return 1 + max((depth(c) for c in children), default=0)


# ---------------------------------------------------------------------------
# Type strings
# ---------------------------------------------------------------------------

_IDENT_EXTRA = frozenset("_.'")


class _TypeParser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def fail(self, reason: str) -> TypeParseError:
        return TypeParseError(self.text, self.pos, reason)

    def skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def peek(self) -> str:
        self.skip_ws()
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def expect(self, ch: str) -> None:
        if self.peek() != ch:
            raise self.fail(f"expected {ch!r}")
        self.pos += 1

    def ident(self) -> str:
        self.skip_ws()
        start = self.pos
        while self.pos < len(self.text) and (self.text[self.pos].isalnum() or self.text[self.pos] in _IDENT_EXTRA):
            self.pos += 1
        if start == self.pos:
            raise self.fail("expected a type name")
        return self.text[start : self.pos]

    def type_list(self) -> list[TypeNode]:
        self.expect("(")
        items: list[TypeNode] = []
        if self.peek() == ")":
            self.pos += 1
            return items
        while True:
            items.append(self.type())
            if self.peek() == ",":
                self.pos += 1
                continue
            self.expect(")")
            return items

    def type(self) -> TypeNode:
        if self.peek() == "(":
            return TupleType(tuple(self.type_list()))

        name = self.ident()
        if self.peek() != "(":
            return Primitive(name)

        args = self.type_list()
        if name == "list":
            return ListType(tuple(args))
        if name == "map":
            if len(args) != 2:
                raise self.fail(f"map takes 2 type arguments, got {len(args)}")
            return MapType(args[0], args[1])
        return Applied(name, tuple(args))

    def parse(self) -> TypeNode:
        node = self.type()
        if self.peek():
            raise self.fail("unexpected trailing input")
        return node


def parse_type(text: str) -> TypeNode:
    """
    Parse a type string into a type tree.

    Raises:
        TypeParseError: If `text` is not a well-formed type.
    """
    return _TypeParser(text).parse()


def split_top_level(text: str, sep: str = ",") -> list[str]:
    """Split on `sep` outside of any (), {} or [] nesting."""
    parts: list[str] = []
    level = 0
    current: list[str] = []
    for ch in text:
        if ch in "({[":
            level += 1
        elif ch in ")}]":
            level -= 1
        if ch == sep and level == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    parts.append("".join(current))
    return parts


def split_arguments(raw: str) -> list[tuple[str, str | None]]:
    """
    Split a source-text argument list ``a: int, b: list(int)`` into pairs.

    A missing annotation yields ``None`` for the type; an empty list yields
    no arguments at all.
    """
    if not raw or not raw.strip():
        return []

    out: list[tuple[str, str | None]] = []
    for chunk in split_top_level(raw):
        name, sep, type_str = chunk.partition(":")
        type_str = type_str.strip()
        out.append((name.strip(), "".join(type_str.split()) if sep and type_str else None))
    return out


# ---------------------------------------------------------------------------
# Interface description (ACI) nodes
# ---------------------------------------------------------------------------


def _as_items(value: Any) -> list[Any]:
    if isinstance(value, list):
        return value
    return [value]


def from_aci(node: Any) -> TypeNode:
    """
    Convert an ACI type node into a type tree.

    Raises:
        TypeParseError: If the node has an unexpected shape.
    """
    if isinstance(node, str):
        return Primitive(node)

    if isinstance(node, int) and not isinstance(node, bool):
        return Primitive(str(node))

    if isinstance(node, list):
        if len(node) == 1:
            return from_aci(node[0])
        return TupleType(tuple(from_aci(n) for n in node))

    if not isinstance(node, Mapping):
        raise TypeParseError(repr(node), 0, f"unexpected ACI node of type {type(node).__name__}")

    if "type" in node and "name" in node:
        return from_aci(node["type"])

    if len(node) != 1:
        raise TypeParseError(repr(node), 0, "composite ACI nodes must have exactly one key")

    (tag, value), = node.items()
    if tag == "tuple":
        return TupleType(tuple(from_aci(n) for n in _as_items(value)))
    if tag == "list":
        return ListType(tuple(from_aci(n) for n in _as_items(value)))
    if tag == "record":
        fields = []
        for field in _as_items(value):
            if not isinstance(field, Mapping) or "type" not in field:
                raise TypeParseError(repr(node), 0, "record fields need a name and a type")
            fields.append((str(field.get("name", "")), from_aci(field["type"])))
        return RecordType(tuple(fields))
    if tag == "map":
        items = _as_items(value)
        if len(items) != 2:
            raise TypeParseError(repr(node), 0, f"map takes 2 type arguments, got {len(items)}")
        return MapType(from_aci(items[0]), from_aci(items[1]))
    if tag == "variant":
        return Applied("variant", tuple(from_aci(n) for n in _as_items(value)))
    return Applied(str(tag), tuple(from_aci(n) for n in _as_items(value)))


def render_aci(node: Any) -> str:
    return render(from_aci(node))
