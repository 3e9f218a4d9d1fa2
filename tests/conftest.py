"""
Shared pytest fixtures for forgae tests.

This module provides:
- An in-memory RemoteClient that records every call
- A client factory that hands out recording clients per identity
- Sample contract sources and interface descriptions
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

import pytest

from forgae.client import CompiledArtifact, DeployedHandle
from forgae.constants import DEFAULT_SECRET_KEY
from forgae.crypto import Keypair, encode, generate_keypair, key_to_hex, keypair_from_secret
from forgae.encoding import CallOptions
from forgae.errors import ApiError
from forgae.logging import HistoryLogger
from forgae.network import Network, get_network

CONTRACT_ADDRESS = encode("ct", bytes(range(32)))
DEPLOY_TX_HASH = encode("th", bytes(32))

COUNTER_SOURCE = """\
contract Counter =
  record state = { value : int }

  public stateful function init(start : int) = { value = start }

  public function get() : int = state.value

  public stateful function add(x : int, y : int) : int = x + y

  // private helpers never reach the catalog
  function double(a : int) : int = a * 2

  public function owner() : address = Call.origin

  public function flag(b : bool) : bool = b

  public function pair(m : map(address, list(int)), t : (int, bool)) : bool = true
"""

COUNTER_ACI = {
    "encoded_aci": {
        "contract": {
            "name": "Counter",
            "functions": [
                {"name": "init", "arguments": [{"name": "start", "type": "int"}], "returns": "Counter.state"},
                {"name": "get", "arguments": [], "returns": "int", "stateful": False},
                {
                    "name": "add",
                    "arguments": [{"name": "x", "type": "int"}, {"name": "y", "type": "int"}],
                    "returns": "int",
                    "stateful": True,
                },
                {"name": "owner", "arguments": [], "returns": "address", "stateful": False},
                {"name": "flag", "arguments": [{"name": "b", "type": "bool"}], "returns": "bool", "stateful": False},
                {
                    "name": "nested",
                    "arguments": [
                        {
                            "name": "r",
                            "type": {
                                "record": [
                                    {"name": "a", "type": "int"},
                                    {
                                        "name": "b",
                                        "type": {
                                            "record": [
                                                {"name": "c", "type": "int"},
                                                {"name": "d", "type": "bool"},
                                            ]
                                        },
                                    },
                                ]
                            },
                        }
                    ],
                    "returns": {"list": ["int"]},
                    "stateful": False,
                },
                {
                    "name": "lookup",
                    "arguments": [{"name": "m", "type": {"map": ["address", {"list": ["int"]}]}}],
                    "returns": {"option": ["int"]},
                    "stateful": False,
                },
            ],
        }
    }
}


# ---------------------------------------------------------------------------
# Fake remote client
# ---------------------------------------------------------------------------


class FakeCallResult:
    """Stands in for client.CallResult; decode echoes the stored value."""

    def __init__(self, value: Any, *, error: Exception | None = None) -> None:
        self.value = value
        self.error = error
        self.decoded_as: list[str] = []

    async def decode(self, type_str: str) -> dict[str, Any]:
        self.decoded_as.append(type_str)
        if self.error is not None:
            raise self.error
        return {"type": type_str, "value": self.value}


class FakeClient:
    """
    In-memory RemoteClient.

    `results` maps a function name to either a value or a callable taking the
    encoded argument list. Every contract call is appended to `calls`.
    """

    def __init__(self, keypair: Keypair, results: Mapping[str, Any] | None = None) -> None:
        self.keypair = keypair
        self.results = dict(results or {})
        self.calls: list[dict[str, Any]] = []
        self.deploys: list[dict[str, Any]] = []
        self.aci_response: Any = None
        self.compile_error: Exception | None = None
        self.deploy_error: Exception | None = None
        self.tx_info_error: Exception | None = None
        self.tx_info = {"gasUsed": 1234, "gasPrice": 1_000_000_000}
        self.closed = False

    async def compile(self, source: str, file_system: Mapping[str, str] | None = None) -> CompiledArtifact:
        if self.compile_error is not None:
            raise self.compile_error
        return CompiledArtifact(bytecode="cb_fakebytecode", source=source, file_system=dict(file_system or {}))

    async def aci(self, source: str, file_system: Mapping[str, str] | None = None) -> dict[str, Any]:
        if self.aci_response is None:
            raise ApiError("http://compiler/aci", "interface description not supported", status=404)
        return self.aci_response

    async def deploy(
        self, artifact: CompiledArtifact, init_args: Sequence[str], options: CallOptions
    ) -> DeployedHandle:
        self.deploys.append({"artifact": artifact, "init_args": list(init_args), "options": options})
        if self.deploy_error is not None:
            raise self.deploy_error
        return DeployedHandle(
            address=CONTRACT_ADDRESS,
            transaction=DEPLOY_TX_HASH,
            owner=self.keypair.public_key,
            result={"block_height": 7},
        )

    async def contract_call(
        self,
        source: str,
        address: str,
        function: str,
        args: Sequence[str],
        options: CallOptions,
        file_system: Mapping[str, str] | None = None,
    ) -> FakeCallResult:
        self.calls.append({"function": function, "address": address, "args": list(args), "options": options})
        result = self.results.get(function)
        if isinstance(result, Exception):
            raise result
        if callable(result):
            result = result(list(args))
        return FakeCallResult(result)

    async def get_tx_info(self, tx_hash: str) -> dict[str, int]:
        if self.tx_info_error is not None:
            raise self.tx_info_error
        return dict(self.tx_info)

    async def balance(self, public_key: str) -> int:
        return 0

    async def aclose(self) -> None:
        self.closed = True


class FakeClientFactory:
    """ClientFactory that records every client it builds."""

    def __init__(
        self,
        results: Mapping[str, Any] | None = None,
        configure: Callable[[FakeClient], None] | None = None,
    ) -> None:
        self.results = dict(results or {})
        self.configure = configure
        self.clients: list[FakeClient] = []

    def __call__(self, network: Network, keypair: Keypair) -> FakeClient:
        client = FakeClient(keypair, self.results)
        if self.configure is not None:
            self.configure(client)
        self.clients.append(client)
        return client


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def keypair() -> Keypair:
    return keypair_from_secret(DEFAULT_SECRET_KEY)


@pytest.fixture
def other_keypair() -> Keypair:
    return generate_keypair()


@pytest.fixture
def network() -> Network:
    return get_network("local")


@pytest.fixture
def counter_results(keypair: Keypair) -> dict[str, Any]:
    owner_hex = key_to_hex(keypair.public_key)
    return {
        "get": 42,
        "add": lambda args: int(args[0]) + int(args[1]),
        "owner": owner_hex,
        "flag": lambda args: args[0] == "true",
    }


@pytest.fixture
def client_factory(counter_results: dict[str, Any]) -> FakeClientFactory:
    return FakeClientFactory(counter_results)


@pytest.fixture
def history(tmp_path: Path) -> HistoryLogger:
    return HistoryLogger(base_dir=tmp_path / "history", run_id="test_run")


@pytest.fixture
def counter_file(tmp_path: Path) -> Path:
    contracts = tmp_path / "contracts"
    contracts.mkdir()
    path = contracts / "Counter.aes"
    path.write_text(COUNTER_SOURCE, encoding="utf-8")
    return path
