"""
Argument encoding and result decoding for contract calls.

Arguments are turned into Sophia literals according to the declared type of
each parameter. Call options (attached amount, ttl) may trail the declared
arguments; they are split off into a fresh, immutable CallOptions for every
call.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any, Protocol

from forgae.catalog import FunctionDescriptor
from forgae.constants import DEFAULT_TTL
from forgae.crypto import hex_to_address, key_to_hex
from forgae.utils import safe_bool

logger = logging.getLogger(__name__)

_AMOUNT_KEYS = ("amount", "value")


@dataclass(frozen=True)
class CallOptions:
    amount: int = 0
    ttl: int = DEFAULT_TTL
    gas: int | None = None

    def merge(self, **changes: Any) -> CallOptions:
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


class Decodable(Protocol):
    async def decode(self, type_str: str) -> Any: ...


def _option_field(carrier: Any, key: str) -> Any:
    if isinstance(carrier, Mapping):
        return carrier.get(key)
    if isinstance(carrier, (str, bytes, int, float, bool)) or carrier is None:
        return None
    return getattr(carrier, key, None)


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _options_from(carrier: Any, base: CallOptions) -> CallOptions | None:
    """Build options from one trailing argument, or None if it carries none."""
    if isinstance(carrier, CallOptions):
        return carrier

    amount = None
    for key in _AMOUNT_KEYS:
        amount = _as_int(_option_field(carrier, key))
        if amount:
            break
    ttl = _as_int(_option_field(carrier, "ttl"))
    gas = _as_int(_option_field(carrier, "gas"))

    if not amount and ttl is None:
        return None
    return base.merge(amount=amount or None, ttl=ttl, gas=gas)


def split_call_options(
    descriptor: FunctionDescriptor,
    args: Sequence[Any],
    default: CallOptions | None = None,
) -> tuple[list[Any], CallOptions]:
    """
    Separate declared contract arguments from a trailing options object.

    When more positional values are given than the function declares, the
    last and then the second-to-last value are read for ``amount`` (or
    ``value``) and ``ttl``; fields carried by the second-to-last override
    those of the last. Values past the declared arity never reach the
    contract.
    """
    base = default or CallOptions()
    declared = len(descriptor.args)
    contract_args = list(args[:declared])

    if len(args) <= declared:
        return contract_args, base

    extras = list(args[declared:])
    options, found = base, False
    for carrier in reversed(extras[-2:]):
        merged = _options_from(carrier, options)
        if merged is not None:
            options, found = merged, True
    if found:
        return contract_args, options

    logger.debug(f"Ignoring {len(extras)} extra argument(s) to '{descriptor.name}' with no call options")
    return contract_args, base


def sophia_literal(value: Any) -> str:
    """Render a Python value as a Sophia literal."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value
    if isinstance(value, tuple):
        return "(" + ",".join(sophia_literal(v) for v in value) + ")"
    if isinstance(value, list):
        return "[" + ",".join(sophia_literal(v) for v in value) + "]"
    if isinstance(value, Mapping):
        return "{" + ",".join(f"[{sophia_literal(k)}] = {sophia_literal(v)}" for k, v in value.items()) + "}"
    return str(value)


def _quote(value: Any) -> str:
    return json.dumps(str(value), ensure_ascii=False)


def encode_argument(type_str: str | None, value: Any, *, legacy: bool = True) -> str:
    """
    Encode one argument by its declared type.

    - ``address``: ``ak_`` public key to ``0x`` hex
    - ``int``: decimal text
    - ``bool``: ``true``/``false``
    - ``string``: quoted literal
    - anything else: quoted on the legacy (source text) path, rendered as a
      raw literal on the interface-description path
    """
    t = (type_str or "").strip().lower()

    if t == "address":
        s = str(value).strip()
        return s if s.startswith(("0x", "#")) else key_to_hex(s)
    if t == "int":
        return str(int(value)) if isinstance(value, bool) else str(value)
    if t == "bool":
        return "true" if safe_bool(value, False) else "false"
    if t == "string" or legacy:
        return _quote(value)
    return sophia_literal(value)


def encode_arguments(descriptor: FunctionDescriptor, args: Sequence[Any], *, legacy: bool = True) -> list[str]:
    """
    Encode positional values against the descriptor's declared types.

    Arity is not checked: missing values are simply not encoded and the
    remote call reports the mismatch.
    """
    return [encode_argument(arg.type, value, legacy=legacy) for arg, value in zip(descriptor.args, args)]


def render_argument_tuple(literals: Sequence[str]) -> str:
    return "(" + ",".join(literals) + ")"


def _unwrap(decoded: Any) -> Any:
    if isinstance(decoded, Mapping) and "value" in decoded:
        return decoded["value"]
    if hasattr(decoded, "value"):
        return decoded.value
    return decoded


async def decode_result(call_result: Decodable, return_type: str) -> Any:
    """
    Decode a call result by the function's declared return type.

    Address results are re-encoded to their ``ak_`` public form. Decode
    errors from the remote layer propagate unchanged.
    """
    type_str = return_type.strip()
    value = _unwrap(await call_result.decode(type_str))
    if type_str == "address":
        return hex_to_address(value)
    return value
