from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from forgae.constants import DEFAULT_SECRET_KEY, HISTORY_DIR


def load_dotenv(path: Path) -> dict[str, str]:
    """
    Minimal .env loader:
    - supports KEY=VALUE
    - strips surrounding quotes
    - ignores blank lines and `#` comments
    - does not expand variables
    """
    out: dict[str, str] = {}
    if not path.exists():
        return out

    for raw in path.read_text().splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        k, v = line.split("=", 1)
        k = k.strip()
        v = v.strip()
        if not k:
            continue
        if len(v) >= 2 and ((v[0] == v[-1] == '"') or (v[0] == v[-1] == "'")):
            v = v[1:-1]
        out[k] = v
    return out


@dataclass(frozen=True)
class Settings:
    network: str
    network_id: str | None
    secret_key: str
    history_dir: Path
    log_level: str


def load_settings(dotenv: Mapping[str, str] | None = None) -> Settings:
    """
    Resolve CLI settings.

    Precedence: process environment, then `.env` values, then built-in defaults.
    """
    dotenv = dotenv or {}

    def _get(key: str, default: str | None = None) -> str | None:
        val = os.environ.get(key)
        if val is not None and val.strip():
            return val.strip()
        val = dotenv.get(key)
        if val is not None and val.strip():
            return val.strip()
        return default

    return Settings(
        network=_get("FORGAE_NETWORK", "local") or "local",
        network_id=_get("FORGAE_NETWORK_ID"),
        secret_key=_get("FORGAE_SECRET_KEY", DEFAULT_SECRET_KEY) or DEFAULT_SECRET_KEY,
        history_dir=Path(_get("FORGAE_HISTORY_DIR", HISTORY_DIR) or HISTORY_DIR),
        log_level=(_get("FORGAE_LOG_LEVEL", "WARNING") or "WARNING").upper(),
    )
