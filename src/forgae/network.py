"""Network config provider: resolve a network name to node/compiler endpoints."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from forgae.constants import (
    COMPILER_URL,
    INTERNAL_PATH_SUFFIX,
    LOCAL_NETWORK_ID,
    LOCAL_URL,
    MAINNET_NETWORK_ID,
    MAINNET_URL,
    TESTNET_NETWORK_ID,
    TESTNET_URL,
)
from forgae.errors import NetworkConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Network:
    name: str
    url: str
    internal_url: str
    network_id: str
    compiler_url: str


_KNOWN_NETWORKS = {
    "local": (LOCAL_URL, LOCAL_NETWORK_ID),
    "testnet": (TESTNET_URL, TESTNET_NETWORK_ID),
    "mainnet": (MAINNET_URL, MAINNET_NETWORK_ID),
}


def internal_url_for(url: str) -> str:
    """Localhost nodes serve their internal API under a path suffix."""
    url = url.rstrip("/")
    if "localhost" in url or "127.0.0.1" in url:
        return url + INTERNAL_PATH_SUFFIX
    return url


def get_network(name: str = "local", network_id: str | None = None, compiler_url: str | None = None) -> Network:
    """
    Resolve `name` to a Network.

    Known names are local, testnet and mainnet. Passing a network id turns
    `name` into a custom node URL; custom URLs without a network id are
    rejected, as are custom networks pointing at a local name.
    """
    compiler = compiler_url or COMPILER_URL

    if network_id is None and name in _KNOWN_NETWORKS:
        url, nid = _KNOWN_NETWORKS[name]
        return Network(name=name, url=url, internal_url=internal_url_for(url), network_id=nid, compiler_url=compiler)

    if "local" in name or network_id is None:
        raise NetworkConfigError(name, "both network and networkId should be passed")

    logger.debug(f"Using custom network {name} ({network_id})")
    return Network(
        name=name,
        url=name.rstrip("/"),
        internal_url=internal_url_for(name),
        network_id=network_id,
        compiler_url=compiler,
    )
