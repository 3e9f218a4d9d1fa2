"""Schema types for the deploy history.

These TypedDicts pin down the field names written to ``actions.jsonl`` so the
`history` command and external tooling keep reading the same keys.
"""

from __future__ import annotations

from typing import Any, TypedDict


class AuditLogEntry(TypedDict):
    """One deploy attempt, successful or not."""

    deployerType: str
    nameOrLabel: str
    transactionHash: str | None
    status: bool
    gasPrice: int
    gasUsed: int
    result: str | None
    error: str | None


class HistoryRunMetadata(TypedDict, total=False):
    """Schema for ``run_metadata.json``."""

    run_id: str
    started_at_unix_seconds: int
    network: str
    network_id: str
    command: str


class HistoryRow(TypedDict, total=False):
    """An AuditLogEntry as stored on disk, with its run id and timestamp."""

    t: int
    run_id: str
    entry: dict[str, Any]


AUDIT_ENTRY_KEYS = frozenset(AuditLogEntry.__annotations__)


def validate_audit_entry(entry: dict[str, Any]) -> list[str]:
    """Return a list of problems with an audit entry; empty when valid."""
    problems: list[str] = []
    missing = AUDIT_ENTRY_KEYS - set(entry)
    if missing:
        problems.append(f"missing keys: {sorted(missing)}")
    if "status" in entry and not isinstance(entry["status"], bool):
        problems.append("status must be a bool")
    for key in ("gasPrice", "gasUsed"):
        if key in entry and not isinstance(entry[key], int):
            problems.append(f"{key} must be an int")
    if entry.get("status") is False and not entry.get("error"):
        problems.append("failed entries must carry an error message")
    return problems
