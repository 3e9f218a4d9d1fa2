"""
Function catalog extraction.

Two sources are supported:

- the compiler's interface description (ACI), the canonical path
- the raw contract source, scanned with a regex; this is lossy (no record
  field names, no user type resolution) and kept as a fallback for contracts
  the compiler cannot describe

Neither path raises on bad input: malformed descriptions and sources with no
public functions both produce an empty catalog.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from forgae.constants import RESERVED_FUNCTION_NAMES
from forgae.errors import TypeParseError
from forgae.types import render_aci, split_arguments

logger = logging.getLogger(__name__)

UNIT_TYPE = "()"

_FUNCTION_RE = re.compile(
    r"(?:public\s+)?(?:stateful\s+)?(?:function|entrypoint)\s+"
    r"([\w\-]+)\s*\(([^=]*?)\)\s*(?::\s*([^=]+?)\s*)?=",
    re.MULTILINE,
)
_PUBLIC_FUNCTION_RE = re.compile(
    r"^\s*(?:public\s+(?:stateful\s+)?function|(?:payable\s+)?(?:stateful\s+)?entrypoint)\b"
)


@dataclass(frozen=True)
class FunctionArgument:
    name: str
    type: str | None


@dataclass(frozen=True)
class FunctionDescriptor:
    name: str
    args: tuple[FunctionArgument, ...] = ()
    return_type: str = UNIT_TYPE
    stateful: bool = False

    @property
    def arg_types(self) -> tuple[str | None, ...]:
        return tuple(a.type for a in self.args)

    def signature(self) -> str:
        args = ", ".join(f"{a.name}: {a.type}" if a.type else a.name for a in self.args)
        return f"{self.name}({args}) : {self.return_type}"


@dataclass(frozen=True)
class FunctionCatalog:
    """Ordered function descriptors plus a name-keyed lookup (last wins on duplicates)."""

    functions: tuple[FunctionDescriptor, ...] = ()
    lookup: Mapping[str, FunctionDescriptor] = field(default_factory=dict)

    @classmethod
    def from_descriptors(cls, descriptors: Iterable[FunctionDescriptor]) -> FunctionCatalog:
        functions = tuple(d for d in descriptors if d.name not in RESERVED_FUNCTION_NAMES)
        lookup: dict[str, FunctionDescriptor] = {}
        for d in functions:
            if d.name in lookup:
                logger.warning(f"Function '{d.name}' declared more than once; the last declaration wins")
            lookup[d.name] = d
        return cls(functions=functions, lookup=lookup)

    @property
    def names(self) -> list[str]:
        return list(self.lookup)

    def get(self, name: str) -> FunctionDescriptor | None:
        return self.lookup.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self.lookup

    def __iter__(self) -> Iterator[FunctionDescriptor]:
        return iter(self.functions)

    def __len__(self) -> int:
        return len(self.functions)


# ---------------------------------------------------------------------------
# Source text
# ---------------------------------------------------------------------------


def _strip_comments(source: str) -> str:
    source = re.sub(r"/\*.*?\*/", "", source, flags=re.DOTALL)
    return re.sub(r"//[^\n]*", "", source)


def extract_from_source(source: str) -> FunctionCatalog:
    """
    Scan contract source for public function declarations.

    Matches ``public [stateful] function name(args) [: ret] =`` and the newer
    ``[stateful] entrypoint`` form. Private functions are skipped.
    """
    descriptors: list[FunctionDescriptor] = []
    text = _strip_comments(source or "")

    for match in _FUNCTION_RE.finditer(text):
        line_start = text.rfind("\n", 0, match.start()) + 1
        header = text[line_start : match.end()]
        if not _PUBLIC_FUNCTION_RE.match(header):
            continue

        name, raw_args, return_type = match.group(1), match.group(2), match.group(3)
        args = tuple(FunctionArgument(n, t) for n, t in split_arguments(raw_args))
        descriptors.append(
            FunctionDescriptor(
                name=name,
                args=args,
                return_type="".join(return_type.split()) if return_type else UNIT_TYPE,
                stateful="stateful" in header.split(name, 1)[0],
            )
        )

    if not descriptors:
        logger.debug("No public functions found in contract source")
    return FunctionCatalog.from_descriptors(descriptors)


# ---------------------------------------------------------------------------
# Interface description
# ---------------------------------------------------------------------------


def _aci_functions(aci: Any) -> list[Any] | None:
    """Find the function list in any of the shapes the compiler hands out."""
    if not isinstance(aci, Mapping):
        return None
    if isinstance(aci.get("functions"), list):
        return aci["functions"]
    for key in ("encoded_aci", "contract"):
        inner = aci.get(key)
        if isinstance(inner, Mapping):
            found = _aci_functions(inner)
            if found is not None:
                return found
    return None


def _descriptor_from_aci(fn: Mapping[str, Any]) -> FunctionDescriptor:
    args = []
    for arg in fn.get("arguments") or []:
        if isinstance(arg, Mapping):
            args.append(FunctionArgument(str(arg.get("name", "")), render_aci(arg.get("type"))))
        else:
            args.append(FunctionArgument("", render_aci(arg)))
    returns = fn.get("returns")
    return FunctionDescriptor(
        name=str(fn["name"]),
        args=tuple(args),
        return_type=render_aci(returns) if returns is not None else UNIT_TYPE,
        stateful=bool(fn.get("stateful", False)),
    )


def extract_from_aci(aci: Any) -> FunctionCatalog:
    """
    Build a catalog from an interface description.

    Accepts the `/aci` response, its ``encoded_aci`` member, the contract
    member, or a bare ``{"functions": [...]}`` mapping.
    """
    functions = _aci_functions(aci)
    if functions is None:
        logger.debug("Interface description has no function list")
        return FunctionCatalog()

    descriptors = []
    for fn in functions:
        if not isinstance(fn, Mapping) or "name" not in fn:
            continue
        name, arguments = fn["name"], fn.get("arguments")
        if not isinstance(name, str) or (arguments is not None and not isinstance(arguments, list)):
            logger.warning(f"Malformed interface description entry: name={name!r}, arguments={arguments!r}")
            return FunctionCatalog()
        if name in RESERVED_FUNCTION_NAMES:
            continue
        try:
            descriptors.append(_descriptor_from_aci(fn))
        except TypeParseError as e:
            logger.warning(f"Malformed interface description for '{name}': {e}")
            return FunctionCatalog()
    return FunctionCatalog.from_descriptors(descriptors)
