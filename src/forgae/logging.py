from __future__ import annotations

import json
import logging
import os
import secrets
import socket
import time
from dataclasses import dataclass
from pathlib import Path

from rich.logging import RichHandler

from forgae.schema import AuditLogEntry, HistoryRow, HistoryRunMetadata, validate_audit_entry
from forgae.utils import atomic_write_json, safe_read_jsonl

logger = logging.getLogger(__name__)


def _now_unix() -> int:
    return int(time.time())


def _safe_filename(s: str) -> str:
    out = []
    for ch in s:
        if ch.isalnum() or ch in ("-", "_", "."):
            out.append(ch)
        else:
            out.append("_")
    return "".join(out)[:120]


def configure_logging(level: str = "WARNING") -> None:
    """Route stdlib logging through rich for CLI runs."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=False, show_path=False)],
    )


def default_run_id(*, prefix: str = "deploy") -> str:
    """
    Generate a unique run ID using timestamp, PID, and a random suffix.
    """
    ts = time.strftime("%Y%m%d_%H%M%S", time.gmtime())
    pid = os.getpid()
    rand = secrets.token_hex(3)
    return f"{prefix}_{ts}_pid{pid}_{rand}"


@dataclass(frozen=True)
class HistoryPaths:
    root: Path
    run_metadata: Path
    actions: Path


class HistoryLogger:
    """
    Append-only deploy history:
    - run_metadata.json: one JSON object describing the CLI run
    - actions.jsonl: one AuditLogEntry per deploy attempt
    - .hostname: identity file for the host that created the logs
    """

    def __init__(self, *, base_dir: Path, run_id: str | None = None) -> None:
        self.run_id = _safe_filename(run_id or default_run_id())
        root = base_dir / self.run_id
        root.mkdir(parents=True, exist_ok=True)
        self.paths = HistoryPaths(
            root=root,
            run_metadata=root / "run_metadata.json",
            actions=root / "actions.jsonl",
        )

        try:
            (root / ".hostname").write_text(socket.gethostname(), encoding="utf-8")
        except OSError as e:
            logger.debug(f"Could not write hostname file in {root}: {e}")

    def write_run_metadata(self, obj: HistoryRunMetadata) -> None:
        atomic_write_json(self.paths.run_metadata, {"run_id": self.run_id, **obj})

    def log_action(self, entry: AuditLogEntry) -> None:
        row: HistoryRow = {"t": _now_unix(), "run_id": self.run_id, "entry": dict(entry)}
        line = json.dumps(row, sort_keys=True) + "\n"
        with self.paths.actions.open("a", encoding="utf-8") as f:
            f.write(line)
        logger.debug(f"Recorded deploy action for {entry.get('nameOrLabel')} (status={entry.get('status')})")


def read_history(base_dir: Path) -> list[HistoryRow]:
    """Load every recorded action under `base_dir`, oldest first."""
    if not base_dir.is_dir():
        return []

    rows: list[HistoryRow] = []
    for actions in sorted(base_dir.glob("*/actions.jsonl")):
        for row in safe_read_jsonl(actions, context="deploy history"):
            entry = row.get("entry")
            if not isinstance(entry, dict):
                continue
            problems = validate_audit_entry(entry)
            if problems:
                logger.warning(f"Skipping malformed history entry in {actions}: {'; '.join(problems)}")
                continue
            rows.append(row)  # type: ignore[arg-type]
    rows.sort(key=lambda r: r.get("t", 0))
    return rows
