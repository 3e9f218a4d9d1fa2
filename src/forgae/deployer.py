"""
Deployment orchestrator.

``Deployer.deploy`` walks a contract through compile, deploy and cataloging,
attaches a proxy function table to the deployed handle, and records exactly
one audit entry per attempt whether it succeeds or fails.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from enum import Enum
from pathlib import Path
from typing import Any

from rich.console import Console

from forgae.catalog import FunctionCatalog, extract_from_aci, extract_from_source
from forgae.client import (
    ClientFactory,
    CompiledArtifact,
    DeployedHandle,
    RemoteClient,
    close_client,
    http_client_factory,
)
from forgae.constants import DEFAULT_GAS, DEFAULT_SECRET_KEY, HISTORY_DIR
from forgae.crypto import Keypair, resolve_keypair
from forgae.encoding import CallOptions, sophia_literal
from forgae.errors import ApiError
from forgae.logging import HistoryLogger
from forgae.network import Network, get_network
from forgae.proxy import AlternateIdentityTable, ProxyFunction, ProxyFunctionTable, parse_call_args
from forgae.schema import AuditLogEntry
from forgae.sources import ContractSource, contract_name, read_contract

logger = logging.getLogger(__name__)

console = Console()


class DeployState(str, Enum):
    UNINITIALIZED = "uninitialized"
    COMPILING = "compiling"
    DEPLOYING = "deploying"
    CATALOGING = "cataloging"
    READY = "ready"
    FAILED = "failed"


class DeployedContract:
    """
    A deployed contract handle merged with its function table.

    Handle fields (address, transaction, owner, ...) win over contract
    functions of the same name; those stay reachable as ``contract["name"]``.
    """

    def __init__(self, handle: DeployedHandle, table: ProxyFunctionTable, artifact: CompiledArtifact) -> None:
        self.address = handle.address
        self.transaction = handle.transaction
        self.owner = handle.owner
        self.result = handle.result
        self.bytecode = artifact.bytecode
        self.source = artifact.source
        self.table = table

    @property
    def catalog(self) -> FunctionCatalog:
        return self.table.catalog

    def __getattr__(self, name: str) -> ProxyFunction:
        table = self.__dict__.get("table")
        if table is not None and name in table:
            return table[name]
        raise AttributeError(f"Contract has no attribute or function '{name}'")

    def __getitem__(self, name: str) -> Any:
        return self.table[name]

    def from_(self, secret_or_keypair: Keypair | Mapping[str, str] | str) -> AlternateIdentityTable:
        return self.table.from_identity(secret_or_keypair)

    from_identity = from_

    async def invoke(self, function_name: str, args: Sequence[Any] = (), options: CallOptions | None = None) -> Any:
        return await self.table.invoke(function_name, args, options)

    async def call(self, function_name: str, options: Mapping[str, Any] | None = None):
        return await self.table.call(function_name, options)

    async def aclose(self) -> None:
        """Close the deploying identity's client; alternate tables close their own."""
        await self.table.aclose()

    async def __aenter__(self) -> DeployedContract:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"<DeployedContract {self.address} functions={self.table.keys()}>"


async def build_catalog(
    client: RemoteClient,
    contract: ContractSource,
    *,
    use_aci: bool = True,
) -> tuple[FunctionCatalog, bool]:
    """
    Catalog a contract's functions.

    The compiler's interface description is preferred; the source scan is
    used when it is disabled, unavailable or empty.

    Returns:
        (catalog, legacy) where legacy marks the source-text path.
    """
    if use_aci:
        try:
            aci = await client.aci(contract.code, contract.file_system)
        except ApiError as e:
            logger.warning(f"Interface description unavailable ({e.reason}); falling back to source scan")
        else:
            catalog = extract_from_aci(aci)
            if len(catalog):
                return catalog, False
            logger.debug("Interface description listed no functions; scanning source instead")
    return extract_from_source(contract.code), True


def _init_arguments(init_state: str | Sequence[Any]) -> list[str]:
    if isinstance(init_state, str):
        return parse_call_args(init_state)
    return [sophia_literal(v) for v in init_state]


class Deployer:
    """
    Deploys contracts for one signing identity on one network.

    Args:
        network: ``local``, ``testnet``, ``mainnet`` or a custom node URL.
        keypair_or_secret: Keypair, ``{"publicKey", "secretKey"}`` mapping or secret key.
        network_id: Required for custom node URLs.
        client_factory: Builds the remote client; defaults to the httpx client.
        history: Audit sink; defaults to a HistoryLogger under ``.forgae-history``.
        use_aci: Catalog functions from the compiler's interface description
            instead of scanning the source text.

    Raises:
        InvalidKeypairError: Immediately, if the key material is unusable.
        NetworkConfigError: Immediately, if the network cannot be resolved.
    """

    def __init__(
        self,
        network: str | Network = "local",
        keypair_or_secret: Keypair | Mapping[str, str] | str = DEFAULT_SECRET_KEY,
        *,
        network_id: str | None = None,
        client_factory: ClientFactory | None = None,
        history: HistoryLogger | None = None,
        use_aci: bool = True,
    ) -> None:
        self.network = network if isinstance(network, Network) else get_network(network, network_id)
        self.keypair = resolve_keypair(keypair_or_secret)
        self.client_factory = client_factory or http_client_factory
        self._history = history
        self.use_aci = use_aci
        self.state = DeployState.UNINITIALIZED

    @property
    def history(self) -> HistoryLogger:
        if self._history is None:
            self._history = HistoryLogger(base_dir=Path(HISTORY_DIR))
        return self._history

    async def read_file(self, path: str | Path) -> ContractSource:
        return read_contract(path)

    async def _get_tx_info(self, client: RemoteClient, tx_hash: str) -> dict[str, int]:
        try:
            info = await client.get_tx_info(tx_hash)
        except Exception as e:
            logger.warning(f"Could not fetch transaction info for {tx_hash}: {e}")
            return {"gasUsed": 0, "gasPrice": 0}
        return {"gasUsed": int(info.get("gasUsed", 0)), "gasPrice": int(info.get("gasPrice", 0))}

    def _record(
        self,
        label: str,
        handle: DeployedHandle | None,
        tx_info: Mapping[str, int],
        error: str | None = None,
    ) -> None:
        entry: AuditLogEntry = {
            "deployerType": type(self).__name__,
            "nameOrLabel": label,
            "transactionHash": handle.transaction if handle else None,
            "status": bool(handle and handle.transaction) and error is None,
            "gasPrice": int(tx_info.get("gasPrice", 0)),
            "gasUsed": int(tx_info.get("gasUsed", 0)),
            "result": handle.address if handle else None,
            "error": error,
        }
        self.history.log_action(entry)

    async def deploy(
        self,
        contract_path: str | Path,
        gas: int = DEFAULT_GAS,
        init_state: str | Sequence[Any] = (),
        options: Mapping[str, Any] | None = None,
    ) -> DeployedContract:
        """
        Compile, deploy and bind a contract.

        Args:
            contract_path: Path to a ``.aes`` file, or inline source.
            gas: Gas limit for the create transaction.
            init_state: Arguments for ``init``; a ``"(a,b)"`` literal string or a sequence of values.
            options: Extra call options (``amount``, ``ttl``).

        Returns:
            The deployed contract with its function table attached. The caller
            owns its client and releases it with ``aclose()``.

        Raises:
            The original compile/deploy error, after it has been recorded.
        """
        self.state = DeployState.UNINITIALIZED
        label = contract_name(str(contract_path)) or Path(str(contract_path)).stem
        client = self.client_factory(self.network, self.keypair)
        handle: DeployedHandle | None = None

        try:
            contract = await self.read_file(contract_path)
            label = contract.label

            self.state = DeployState.COMPILING
            artifact = await client.compile(contract.code, contract.file_system)

            self.state = DeployState.DEPLOYING
            opts = dict(options or {})
            call_options = CallOptions(gas=gas).merge(
                amount=int(opts["amount"]) if opts.get("amount") else None,
                ttl=int(opts["ttl"]) if opts.get("ttl") else None,
            )
            handle = await client.deploy(artifact, _init_arguments(init_state), call_options)

            self.state = DeployState.CATALOGING
            catalog, legacy = await build_catalog(client, contract, use_aci=self.use_aci)
            table = ProxyFunctionTable(
                catalog,
                address=handle.address,
                source=contract.code,
                bytecode=artifact.bytecode,
                client=client,
                network=self.network,
                file_system=contract.file_system,
                legacy=legacy,
                client_factory=self.client_factory,
            )
            deployed = DeployedContract(handle, table, artifact)
        except Exception as e:
            self.state = DeployState.FAILED
            logger.error(f"Deploy of {label} failed: {e}")
            self._record(label, handle, {"gasUsed": 0, "gasPrice": 0}, error=str(e) or type(e).__name__)
            await close_client(client)
            raise

        tx_info = await self._get_tx_info(client, handle.transaction)
        self._record(label, handle, tx_info)
        self.state = DeployState.READY

        file_name = contract.path.name if contract.path else label
        console.print(f"===== Contract: {file_name} has been deployed =====")
        return deployed
