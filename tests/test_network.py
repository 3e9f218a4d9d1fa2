from __future__ import annotations

import pytest

from forgae.constants import (
    COMPILER_URL,
    LOCAL_NETWORK_ID,
    LOCAL_URL,
    MAINNET_NETWORK_ID,
    TESTNET_NETWORK_ID,
    TESTNET_URL,
)
from forgae.errors import NetworkConfigError
from forgae.network import get_network, internal_url_for


def test_local_network() -> None:
    network = get_network()
    assert network.name == "local"
    assert network.url == LOCAL_URL
    assert network.network_id == LOCAL_NETWORK_ID
    assert network.compiler_url == COMPILER_URL
    assert network.internal_url == LOCAL_URL.rstrip("/") + "/internal"


def test_known_remote_networks() -> None:
    testnet = get_network("testnet")
    assert testnet.url == TESTNET_URL
    assert testnet.internal_url == TESTNET_URL
    assert testnet.network_id == TESTNET_NETWORK_ID
    assert get_network("mainnet").network_id == MAINNET_NETWORK_ID


def test_custom_network() -> None:
    network = get_network("https://node.example/", "ae_custom", compiler_url="https://compiler.example")
    assert network.url == "https://node.example"
    assert network.internal_url == "https://node.example"
    assert network.network_id == "ae_custom"
    assert network.compiler_url == "https://compiler.example"


def test_custom_network_without_id_is_rejected() -> None:
    with pytest.raises(NetworkConfigError) as exc_info:
        get_network("https://node.example")
    assert "both network and networkId should be passed" in exc_info.value.message


@pytest.mark.parametrize("name", ["local", "http://localhost:3013"])
def test_local_name_with_network_id_is_rejected(name: str) -> None:
    with pytest.raises(NetworkConfigError):
        get_network(name, "ae_custom")


def test_internal_url_for() -> None:
    assert internal_url_for("http://localhost:3001/") == "http://localhost:3001/internal"
    assert internal_url_for("http://127.0.0.1:3013") == "http://127.0.0.1:3013/internal"
    assert internal_url_for("https://node.example") == "https://node.example"
