"""
Centralized constants for forgae configuration.

This module provides single-source-of-truth defaults for values used across
the deployer, the proxy builder and the CLI.

Environment variable overrides:
- FORGAE_LOCAL_URL: Override the local node endpoint
- FORGAE_COMPILER_URL: Override the Sophia HTTP compiler endpoint
- FORGAE_HISTORY_DIR: Directory where deploy history is written
"""

from __future__ import annotations

import os

# =============================================================================
# Networks
# =============================================================================

LOCAL_URL = os.environ.get("FORGAE_LOCAL_URL", "http://localhost:3001")
LOCAL_NETWORK_ID = "ae_devnet"

TESTNET_URL = "https://sdk-testnet.aepps.com"
TESTNET_NETWORK_ID = "ae_uat"

MAINNET_URL = "https://sdk-mainnet.aepps.com"
MAINNET_NETWORK_ID = "ae_mainnet"

COMPILER_URL = os.environ.get("FORGAE_COMPILER_URL", "http://localhost:3080")

# Localhost nodes expose their internal API under this suffix
INTERNAL_PATH_SUFFIX = "/internal"

# =============================================================================
# Transactions
# =============================================================================

# Default gas limit for contract creation
DEFAULT_GAS = 20_000_000

# Relative ttl (in key blocks) for deploy and call transactions
DEFAULT_TTL = 100

DEFAULT_GAS_PRICE = 1_000_000_000
DEFAULT_FEE = 2_000_000_000_000_000

# FATE / Sophia on Lima+ nodes
VM_VERSION = 5
ABI_VERSION = 3

ABI_TYPE = "sophia"

# Polling while waiting for a transaction to be mined
TX_POLL_INTERVAL_SECONDS = 1.0
TX_POLL_ATTEMPTS = 60

# HTTP request timeout (seconds)
HTTP_TIMEOUT_SECONDS = 30.0

# =============================================================================
# Retry Configuration
# =============================================================================

DEFAULT_RETRY_MAX_ATTEMPTS = 3
DEFAULT_RETRY_BASE_DELAY = 1.0  # seconds
DEFAULT_RETRY_MAX_DELAY = 10.0  # seconds

# =============================================================================
# Contracts
# =============================================================================

# Functions never exposed on the generated proxy table
RESERVED_FUNCTION_NAMES = frozenset({"init"})

CONTRACTS_DIR = "contracts"
CONTRACT_SUFFIX = ".aes"

# =============================================================================
# Keys
# =============================================================================

# Beneficiary of the local devnet; funded by the node's genesis block
DEFAULT_PUBLIC_KEY = "ak_2mwRmUeYmfuW93ti9HMSUJzCk1EYcQEfikVSzgo6k2VghsWhgU"
DEFAULT_SECRET_KEY = (
    "bb9f0b01c8c9553cfbaf7ef81a50f977b1326801ebf7294d1c2cbccdedf27476"
    "e9bbf604e611b5460a3b3999e9771b6f60417d73ce7c5519e12f7e127a1225ca"
)

SECRET_KEY_HEX_LENGTH = 128

# =============================================================================
# History
# =============================================================================

HISTORY_DIR = os.environ.get("FORGAE_HISTORY_DIR", ".forgae-history")
