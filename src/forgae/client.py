"""
Remote client for the node and the Sophia HTTP compiler.

The rest of forgae only depends on the ``RemoteClient`` protocol; ``HttpClient``
is the httpx implementation used by the CLI. Contract create/call
transactions are built by the node's debug API (internal endpoint), signed
locally, and posted back through the public API.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from forgae.constants import (
    ABI_VERSION,
    DEFAULT_FEE,
    DEFAULT_GAS,
    DEFAULT_GAS_PRICE,
    DEFAULT_RETRY_BASE_DELAY,
    DEFAULT_RETRY_MAX_ATTEMPTS,
    DEFAULT_RETRY_MAX_DELAY,
    HTTP_TIMEOUT_SECONDS,
    TX_POLL_ATTEMPTS,
    TX_POLL_INTERVAL_SECONDS,
    VM_VERSION,
)
from forgae.crypto import Keypair, sign_transaction
from forgae.encoding import CallOptions
from forgae.errors import ApiError, CompileError, ContractCallError
from forgae.network import Network
from forgae.utils import async_retry_with_backoff

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompiledArtifact:
    bytecode: str
    source: str
    file_system: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DeployedHandle:
    address: str
    transaction: str
    owner: str
    result: Mapping[str, Any] = field(default_factory=dict)


class RemoteClient(Protocol):
    keypair: Keypair

    async def compile(self, source: str, file_system: Mapping[str, str] | None = None) -> CompiledArtifact: ...

    async def aci(self, source: str, file_system: Mapping[str, str] | None = None) -> dict[str, Any]: ...

    async def deploy(
        self,
        artifact: CompiledArtifact,
        init_args: Sequence[str],
        options: CallOptions,
    ) -> DeployedHandle: ...

    async def contract_call(
        self,
        source: str,
        address: str,
        function: str,
        args: Sequence[str],
        options: CallOptions,
        file_system: Mapping[str, str] | None = None,
    ) -> CallResult: ...

    async def get_tx_info(self, tx_hash: str) -> dict[str, int]: ...

    async def balance(self, public_key: str) -> int: ...


ClientFactory = Callable[[Network, Keypair], RemoteClient]


def looks_like_client(obj: Any) -> bool:
    """Duck-typed client check used for per-call identity overrides."""
    return callable(getattr(obj, "contract_call", None)) and callable(getattr(obj, "balance", None))


async def close_client(client: object) -> None:
    """Release a client's connections if it holds any."""
    aclose = getattr(client, "aclose", None)
    if aclose is not None:
        await aclose()


@dataclass
class CallResult:
    """Result of a mined contract call; decoding is deferred to the compiler."""

    client: HttpClient
    function: str
    return_type: str
    return_value: str
    tx_hash: str | None = None
    gas_used: int = 0

    async def decode(self, type_str: str) -> dict[str, Any]:
        return await self.client.decode_data(self.return_value, type_str)


def _reason(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:500] or f"HTTP {resp.status_code}"
    if isinstance(body, Mapping) and "reason" in body:
        return str(body["reason"])
    if isinstance(body, list):
        messages = [str(e.get("message", e)) if isinstance(e, Mapping) else str(e) for e in body]
        return "; ".join(m.strip() for m in messages)
    return str(body)[:500]


class HttpClient:
    """
    Node + compiler client bound to one signing identity.

    Args:
        network: Resolved network endpoints.
        keypair: Identity used to sign deploy and call transactions.
        http: Optional preconfigured httpx.AsyncClient (tests inject a MockTransport here).
    """

    def __init__(
        self,
        network: Network,
        keypair: Keypair,
        *,
        http: httpx.AsyncClient | None = None,
        poll_interval: float = TX_POLL_INTERVAL_SECONDS,
        poll_attempts: int = TX_POLL_ATTEMPTS,
    ) -> None:
        self.network = network
        self.keypair = keypair
        self._http = http or httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS)
        self._poll_interval = poll_interval
        self._poll_attempts = poll_attempts

    async def __aenter__(self) -> HttpClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # -- transport -------------------------------------------------------

    async def _request(self, method: str, url: str, *, json: Any = None) -> Any:
        async def _send() -> httpx.Response:
            return await self._http.request(method, url, json=json)

        try:
            resp = await async_retry_with_backoff(
                _send,
                max_attempts=DEFAULT_RETRY_MAX_ATTEMPTS if method == "GET" else 1,
                base_delay=DEFAULT_RETRY_BASE_DELAY,
                max_delay=DEFAULT_RETRY_MAX_DELAY,
                retryable_exceptions=(httpx.TransportError,),
            )
        except httpx.TimeoutException as e:
            logger.error(f"Request timed out: {method} {url}")
            raise ApiError(url, f"timeout: {e}") from e
        except httpx.RequestError as e:
            logger.error(f"Request failed: {method} {url}: {e}")
            raise ApiError(url, f"cannot connect: {e}") from e

        if resp.status_code >= 400:
            reason = _reason(resp)
            logger.debug(f"{method} {url} -> {resp.status_code}: {reason}")
            raise ApiError(url, reason, status=resp.status_code)
        try:
            return resp.json()
        except ValueError as e:
            raise ApiError(url, f"invalid JSON response: {e}", status=resp.status_code) from e

    def _compiler(self, path: str) -> str:
        return f"{self.network.compiler_url.rstrip('/')}{path}"

    def _node(self, path: str) -> str:
        return f"{self.network.url.rstrip('/')}/v2{path}"

    def _internal(self, path: str) -> str:
        return f"{self.network.internal_url.rstrip('/')}/v2{path}"

    # -- compiler --------------------------------------------------------

    async def compile(self, source: str, file_system: Mapping[str, str] | None = None) -> CompiledArtifact:
        body = {"code": source, "options": {"file_system": dict(file_system or {})}}
        try:
            res = await self._request("POST", self._compiler("/compile"), json=body)
        except ApiError as e:
            if e.status is not None and 400 <= e.status < 500:
                raise CompileError("contract", e.reason) from e
            raise
        return CompiledArtifact(bytecode=res["bytecode"], source=source, file_system=dict(file_system or {}))

    async def aci(self, source: str, file_system: Mapping[str, str] | None = None) -> dict[str, Any]:
        body = {"code": source, "options": {"file_system": dict(file_system or {})}}
        return await self._request("POST", self._compiler("/aci"), json=body)

    async def encode_calldata(
        self,
        source: str,
        function: str,
        args: Sequence[str],
        file_system: Mapping[str, str] | None = None,
    ) -> str:
        body = {
            "source": source,
            "function": function,
            "arguments": list(args),
            "options": {"file_system": dict(file_system or {})},
        }
        res = await self._request("POST", self._compiler("/encode-calldata"), json=body)
        return res["calldata"]

    async def decode_data(self, data: str, type_str: str) -> dict[str, Any]:
        return await self._request("POST", self._compiler("/decode-data"), json={"data": data, "sophia-type": type_str})

    # -- node ------------------------------------------------------------

    async def balance(self, public_key: str) -> int:
        try:
            res = await self._request("GET", self._node(f"/accounts/{public_key}"))
        except ApiError as e:
            if e.status == 404:
                return 0
            raise
        return int(res.get("balance", 0))

    async def _next_nonce(self) -> int:
        res = await self._request("GET", self._node(f"/accounts/{self.keypair.public_key}"))
        return int(res.get("nonce", 0)) + 1

    async def _absolute_ttl(self, relative: int) -> int:
        if relative <= 0:
            return 0
        res = await self._request("GET", self._node("/key-blocks/current/height"))
        return int(res["height"]) + relative

    async def _post_signed(self, tx: str) -> str:
        signed, tx_hash = sign_transaction(tx, self.keypair.secret_key, self.network.network_id)
        res = await self._request("POST", self._node("/transactions"), json={"tx": signed})
        return res.get("tx_hash", tx_hash)

    async def wait_for_tx(self, tx_hash: str) -> dict[str, Any]:
        for _ in range(self._poll_attempts):
            tx = await self._request("GET", self._node(f"/transactions/{tx_hash}"))
            if int(tx.get("block_height", -1)) > 0:
                return tx
            await asyncio.sleep(self._poll_interval)
        raise ApiError(self._node(f"/transactions/{tx_hash}"), f"transaction {tx_hash} not mined in time")

    async def _call_info(self, tx_hash: str) -> dict[str, Any]:
        res = await self._request("GET", self._node(f"/transactions/{tx_hash}/info"))
        return res.get("call_info", res)

    async def get_tx_info(self, tx_hash: str) -> dict[str, int]:
        info = await self._call_info(tx_hash)
        return {"gasUsed": int(info.get("gas_used", 0)), "gasPrice": int(info.get("gas_price", 0))}

    async def deploy(
        self,
        artifact: CompiledArtifact,
        init_args: Sequence[str],
        options: CallOptions,
    ) -> DeployedHandle:
        call_data = await self.encode_calldata(artifact.source, "init", init_args, artifact.file_system)
        body = {
            "owner_id": self.keypair.public_key,
            "code": artifact.bytecode,
            "vm_version": VM_VERSION,
            "abi_version": ABI_VERSION,
            "deposit": 0,
            "amount": options.amount,
            "gas": options.gas or DEFAULT_GAS,
            "gas_price": DEFAULT_GAS_PRICE,
            "fee": DEFAULT_FEE,
            "ttl": await self._absolute_ttl(options.ttl),
            "nonce": await self._next_nonce(),
            "call_data": call_data,
        }
        res = await self._request("POST", self._internal("/debug/contracts/create"), json=body)
        tx_hash = await self._post_signed(res["tx"])
        mined = await self.wait_for_tx(tx_hash)
        logger.info(f"Contract {res['contract_id']} created in {tx_hash}")
        return DeployedHandle(
            address=res["contract_id"], transaction=tx_hash, owner=self.keypair.public_key, result=mined
        )

    async def contract_call(
        self,
        source: str,
        address: str,
        function: str,
        args: Sequence[str],
        options: CallOptions,
        file_system: Mapping[str, str] | None = None,
    ) -> CallResult:
        call_data = await self.encode_calldata(source, function, args, file_system)
        body = {
            "caller_id": self.keypair.public_key,
            "contract_id": address,
            "abi_version": ABI_VERSION,
            "amount": options.amount,
            "gas": options.gas or DEFAULT_GAS,
            "gas_price": DEFAULT_GAS_PRICE,
            "fee": DEFAULT_FEE,
            "ttl": await self._absolute_ttl(options.ttl),
            "nonce": await self._next_nonce(),
            "call_data": call_data,
        }
        res = await self._request("POST", self._internal("/debug/contracts/call"), json=body)
        tx_hash = await self._post_signed(res["tx"])
        await self.wait_for_tx(tx_hash)

        info = await self._call_info(tx_hash)
        return_type = str(info.get("return_type", "ok"))
        if return_type != "ok":
            raise ContractCallError(function, return_type, str(info.get("return_value", "")))
        return CallResult(
            client=self,
            function=function,
            return_type=return_type,
            return_value=str(info.get("return_value", "")),
            tx_hash=tx_hash,
            gas_used=int(info.get("gas_used", 0)),
        )


def http_client_factory(network: Network, keypair: Keypair) -> HttpClient:
    return HttpClient(network, keypair)
