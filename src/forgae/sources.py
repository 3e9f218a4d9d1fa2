"""Reading contract sources and resolving their `include` dependencies."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from forgae.constants import CONTRACT_SUFFIX, CONTRACTS_DIR

logger = logging.getLogger(__name__)

_INCLUDE_RE = re.compile(r'^include\s+"([\w/.\-]+)"', re.MULTILINE | re.IGNORECASE)
_CONTRACT_NAME_RE = re.compile(r"(?:main\s+)?contract\s+([A-Za-z0-9_]+)\s*=")


@dataclass(frozen=True)
class ContractSource:
    path: Path | None
    code: str
    file_system: dict[str, str] = field(default_factory=dict)

    @property
    def label(self) -> str:
        return contract_name(self.code) or (self.path.stem if self.path else "contract")


def contract_name(code: str) -> str | None:
    """Name of the last declared contract, which is the one that gets deployed."""
    names = _CONTRACT_NAME_RE.findall(code)
    return names[-1] if names else None


def _actual_contract(code: str) -> str:
    """Drop anything preceding the first contract declaration of an included file."""
    idx = code.find("contract ")
    return code[idx:] if idx >= 0 else code


def resolve_includes(code: str, base_dir: Path, found: dict[str, str] | None = None) -> dict[str, str]:
    """
    Collect the contents of every `include "x.aes"` reachable from `code`.

    Include paths are resolved relative to the including file's directory and
    keyed by the path as written, which is what the compiler's file system
    option expects.
    """
    found = {} if found is None else found
    for rel in _INCLUDE_RE.findall(code):
        if rel in found:
            continue
        dep_path = (base_dir / rel).resolve()
        try:
            dep_code = dep_path.read_text(encoding="utf-8")
        except OSError as e:
            raise FileNotFoundError(f"Included file {rel} not found at {dep_path}") from e
        found[rel] = _actual_contract(dep_code)
        logger.debug(f"Resolved include {rel} -> {dep_path}")
        resolve_includes(dep_code, dep_path.parent, found)
    return found


def read_contract(path_or_source: str | Path) -> ContractSource:
    """
    Load a contract from a file path, or wrap inline source text.

    A string containing a newline or a `contract` declaration is treated as
    source code.
    """
    if isinstance(path_or_source, str):
        if "\n" in path_or_source or _CONTRACT_NAME_RE.search(path_or_source):
            return ContractSource(path=None, code=path_or_source, file_system={})

    path = Path(path_or_source)
    code = path.read_text(encoding="utf-8")
    return ContractSource(path=path, code=code, file_system=resolve_includes(code, path.parent))


def discover_contracts(root: Path | None = None) -> list[Path]:
    """All contract files under ``./contracts`` (or `root`), sorted."""
    root = root or Path.cwd() / CONTRACTS_DIR
    if root.is_file():
        return [root]
    return sorted(p for p in root.rglob(f"*{CONTRACT_SUFFIX}") if p.is_file())
