"""Shared utility functions for retries and safe file IO."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import random
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def async_retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retryable_exceptions: tuple[type[Exception], ...] = (Exception,),
) -> T:
    """
    Retry an awaitable function with exponential backoff and jitter.

    Args:
        fn: Zero-argument function returning an awaitable.
        max_attempts: Maximum number of attempts (values < 1 mean a single try).
        base_delay: Initial delay in seconds.
        max_delay: Maximum delay in seconds.
        retryable_exceptions: Tuple of exception types that trigger a retry.

    Returns:
        The awaited result of fn.

    Raises:
        The last exception encountered if all attempts fail.
    """
    if max_attempts < 1:
        return await fn()

    last_exc: Exception | None = None
    for attempt in range(max_attempts):
        try:
            return await fn()
        except retryable_exceptions as e:
            last_exc = e
            if attempt == max_attempts - 1:
                break

            delay = min(max_delay, base_delay * (2**attempt) + random.uniform(0, 1))
            logger.warning(
                f"Async retry {attempt + 1}/{max_attempts} after {delay:.1f}s (reason: {type(e).__name__}: {e})"
            )
            await asyncio.sleep(delay)

    if last_exc is not None:
        raise last_exc
    return await fn()


def safe_read_text(path: Path, context: str = "") -> str | None:
    """
    Read text from a file with comprehensive error handling.

    Args:
        path: Path to the file.
        context: Context for error messages.

    Returns:
        File content as string, or None if reading failed.
    """
    if not path.exists():
        logger.debug(f"File not found: {path} ({context})")
        return None

    try:
        return path.read_text(encoding="utf-8")
    except (OSError, PermissionError) as e:
        logger.error(f"Failed to read {path} ({context}): {e}")
        return None


def safe_read_jsonl(path: Path, context: str = "") -> list[dict[str, Any]]:
    """
    Read a JSONL file, skipping blank and malformed lines.
    """
    text = safe_read_text(path, context=context)
    if text is None:
        return []

    rows: list[dict[str, Any]] = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            row = json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning(f"Skipping malformed line {lineno} in {path} ({context}): {e}")
            continue
        if isinstance(row, dict):
            rows.append(row)
    return rows


def atomic_write_text(path: Path, content: str) -> None:
    """
    Write text to a file atomically using a temporary file and rename.

    Args:
        path: Destination path.
        content: Text content to write.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + f".tmp.{os.getpid()}")
    try:
        tmp.write_text(content, encoding="utf-8")
        tmp.replace(path)
    except (OSError, UnicodeEncodeError) as e:
        logger.error(f"Atomic write to {path} failed: {e}")
        if tmp.exists():
            try:
                tmp.unlink()
            except OSError:
                pass
        raise


def atomic_write_json(path: Path, data: Any) -> None:
    """
    Write data to a JSON file atomically.

    Args:
        path: Destination path.
        data: Data to serialize to JSON.
    """
    json_str = json.dumps(data, indent=2, sort_keys=True) + "\n"
    atomic_write_text(path, json_str)


def safe_bool(val: Any, default: bool) -> bool:
    """
    Parse a boolean value with common string aliases (true, 1, yes).
    """
    if val is None:
        return default
    if isinstance(val, bool):
        return val
    if isinstance(val, str):
        return val.lower() in ("true", "1", "yes")
    return bool(val)
