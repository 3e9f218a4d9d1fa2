"""
Dynamic proxy tables for deployed contracts.

A ``ProxyFunctionTable`` is built once per (contract, signing identity). It
exposes a single dispatch point, ``invoke``, and a thin binding layer on top
so each cataloged function is also reachable as ``table.name(...)`` or
``table["name"](...)``:

    counter = await deployer.deploy("contracts/Counter.aes")
    await counter.tick()                       # deploying identity
    await counter.add(5, {"amount": 10})       # attach funds
    await counter.from_(other_secret).tick()   # another identity, same contract

Trailing positional values beyond a function's declared arity are call
options (see ``encoding.split_call_options``); a trailing client object
overrides the signing client for that one call.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from typing import Any, TypeVar

from forgae.catalog import FunctionCatalog, FunctionDescriptor
from forgae.client import (
    CallResult,
    ClientFactory,
    RemoteClient,
    close_client,
    http_client_factory,
    looks_like_client,
)
from forgae.constants import DEFAULT_TTL
from forgae.crypto import Keypair, resolve_keypair
from forgae.encoding import (
    CallOptions,
    decode_result,
    encode_arguments,
    render_argument_tuple,
    split_call_options,
)
from forgae.errors import UnknownFunctionError
from forgae.network import Network
from forgae.types import split_top_level

logger = logging.getLogger(__name__)

_Table = TypeVar("_Table", bound="_TableBindings")


class ProxyFunction:
    """Callable binding for one contract function on one table."""

    def __init__(self, descriptor: FunctionDescriptor, table: ProxyFunctionTable | AlternateIdentityTable) -> None:
        self.descriptor = descriptor
        self.table = table

    @property
    def name(self) -> str:
        return self.descriptor.name

    async def __call__(self, *args: Any) -> Any:
        return await self.table.invoke(self.descriptor.name, args)

    def __repr__(self) -> str:
        return f"<ProxyFunction {self.descriptor.signature()}>"


def parse_call_args(args: Any) -> list[str]:
    """Accept either a literal list or a legacy ``"(a,b)"`` argument string."""
    if args is None:
        return []
    if isinstance(args, str):
        inner = args.strip()
        if inner.startswith("(") and inner.endswith(")"):
            inner = inner[1:-1]
        return [a.strip() for a in split_top_level(inner) if a.strip()]
    return [str(a) for a in args]


class _TableBindings:
    """Attribute/item access shared by the default and alternate tables."""

    _functions: dict[str, ProxyFunction]

    def __getattr__(self, name: str) -> ProxyFunction:
        functions = self.__dict__.get("_functions", {})
        if name in functions:
            return functions[name]
        raise AttributeError(f"{type(self).__name__} has no function '{name}'")

    def __getitem__(self, name: str) -> Any:
        if name == "from":
            return self.from_identity  # type: ignore[attr-defined]
        if name == "call":
            return self.call  # type: ignore[attr-defined]
        try:
            return self._functions[name]
        except KeyError:
            raise UnknownFunctionError(name, list(self._functions)) from None

    def __contains__(self, name: object) -> bool:
        return name in self._functions

    def __iter__(self) -> Iterator[str]:
        return iter(self._functions)

    def __len__(self) -> int:
        return len(self._functions)

    def keys(self) -> list[str]:
        return list(self._functions)

    def from_(self, secret_or_keypair: Keypair | Mapping[str, str] | str) -> AlternateIdentityTable:
        return self.from_identity(secret_or_keypair)  # type: ignore[attr-defined]

    async def aclose(self) -> None:
        """Close the client this table signs with."""
        await close_client(self.client)  # type: ignore[attr-defined]

    async def __aenter__(self: _Table) -> _Table:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()


class ProxyFunctionTable(_TableBindings):
    """
    Function table bound to the deploying identity.

    Args:
        catalog: Functions exposed by the contract.
        address: Deployed contract address (``ct_...``).
        source: Contract source, needed by the compiler to encode call data.
        bytecode: Compiled bytecode, kept for callers that need it.
        client: Default client (signing identity) for every call.
        network: Network used to build clients for other identities.
        file_system: Included files required to compile `source`.
        legacy: Encode unrecognised types the way the source-text path does.
        client_factory: Builds a client for a network and keypair.
    """

    def __init__(
        self,
        catalog: FunctionCatalog,
        *,
        address: str,
        source: str,
        bytecode: str,
        client: RemoteClient,
        network: Network,
        file_system: Mapping[str, str] | None = None,
        legacy: bool = False,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self.catalog = catalog
        self.address = address
        self.source = source
        self.bytecode = bytecode
        self.client = client
        self.network = network
        self.file_system = dict(file_system or {})
        self.legacy = legacy
        self.client_factory = client_factory or http_client_factory
        self._functions = {d.name: ProxyFunction(d, self) for d in catalog.lookup.values()}

    @property
    def keypair(self) -> Keypair:
        return self.client.keypair

    def _descriptor(self, name: str) -> FunctionDescriptor:
        descriptor = self.catalog.get(name)
        if descriptor is None:
            raise UnknownFunctionError(name, self.catalog.names)
        return descriptor

    async def invoke(
        self,
        function_name: str,
        args: Sequence[Any] = (),
        options: CallOptions | None = None,
        identity_override: RemoteClient | None = None,
    ) -> Any:
        """
        Encode `args`, call `function_name` and decode the typed result.

        `options` replaces trailing-option detection when given. A trailing
        client in `args` is honoured only when no `identity_override` is
        passed explicitly.
        """
        descriptor = self._descriptor(function_name)
        args = list(args)

        client = identity_override
        if client is None and args and looks_like_client(args[-1]):
            client = args.pop()
        client = client or self.client

        if options is None:
            contract_args, call_options = split_call_options(descriptor, args)
        else:
            contract_args, call_options = args[: len(descriptor.args)], options

        literals = encode_arguments(descriptor, contract_args, legacy=self.legacy)
        logger.debug(
            f"Calling {self.address}.{function_name}{render_argument_tuple(literals)} "
            f"as {client.keypair.public_key} (amount={call_options.amount}, ttl={call_options.ttl})"
        )
        result = await client.contract_call(
            self.source,
            self.address,
            function_name,
            literals,
            call_options,
            self.file_system,
        )
        return await decode_result(result, descriptor.return_type)

    async def call(
        self,
        function_name: str,
        options: Mapping[str, Any] | None = None,
        *,
        client: RemoteClient | None = None,
    ) -> CallResult:
        """
        Raw call escape hatch; returns the undecoded result.

        `options` may carry ``args`` (literal list or ``"(a,b)"`` string),
        ``amount`` and ``ttl``. Works for functions missing from the catalog.
        """
        options = options or {}
        amount = int(options.get("amount") or 0)
        call_options = CallOptions(amount=max(amount, 0), ttl=int(options.get("ttl") or DEFAULT_TTL))
        return await (client or self.client).contract_call(
            self.source,
            self.address,
            function_name,
            parse_call_args(options.get("args")),
            call_options,
            self.file_system,
        )

    def from_identity(self, secret_or_keypair: Keypair | Mapping[str, str] | str) -> AlternateIdentityTable:
        """
        Rebind every function to another signing identity.

        Invalid secrets raise InvalidKeypairError before any client is built.
        """
        keypair = resolve_keypair(secret_or_keypair)
        client = self.client_factory(self.network, keypair)
        logger.debug(f"Created alternate identity table for {keypair.public_key}")
        return AlternateIdentityTable(self, client)

    def __repr__(self) -> str:
        return f"<ProxyFunctionTable {self.address} functions={self.keys()}>"


class AlternateIdentityTable(_TableBindings):
    """Same functions as the default table, signed by a different client."""

    def __init__(self, parent: ProxyFunctionTable, client: RemoteClient) -> None:
        self.parent = parent
        self.client = client
        self._functions = {d.name: ProxyFunction(d, self) for d in parent.catalog.lookup.values()}

    @property
    def keypair(self) -> Keypair:
        return self.client.keypair

    @property
    def address(self) -> str:
        return self.parent.address

    async def invoke(
        self,
        function_name: str,
        args: Sequence[Any] = (),
        options: CallOptions | None = None,
    ) -> Any:
        return await self.parent.invoke(function_name, args, options, identity_override=self.client)

    async def call(self, function_name: str, options: Mapping[str, Any] | None = None) -> CallResult:
        return await self.parent.call(function_name, options, client=self.client)

    def from_identity(self, secret_or_keypair: Keypair | Mapping[str, str] | str) -> AlternateIdentityTable:
        return self.parent.from_identity(secret_or_keypair)

    def __repr__(self) -> str:
        return f"<AlternateIdentityTable {self.parent.address} as {self.keypair.public_key}>"
