"""
forgae doctor - environment validation.

Run this before deploying to verify the node, the compiler and the signing
identity are usable.

Usage:
    forgae-doctor                       # check the configured network
    forgae-doctor --network testnet     # check a known network
    forgae-doctor --network https://node.example --network-id ae_custom
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import httpx
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from forgae.constants import CONTRACT_SUFFIX, CONTRACTS_DIR
from forgae.crypto import keypair_from_secret
from forgae.env import load_dotenv, load_settings
from forgae.errors import ForgaeError
from forgae.network import Network, get_network

console = Console()

CHECK_TIMEOUT_SECONDS = 5.0


# ---------------------------------------------------------------------------
# Check Functions
# ---------------------------------------------------------------------------


def check_node(network: Network) -> tuple[bool, str, str | None]:
    """
    Check that the node answers on its status endpoint.

    Returns:
        (ok, message, fix_command)
    """
    url = f"{network.url.rstrip('/')}/v2/status"
    try:
        resp = httpx.get(url, timeout=CHECK_TIMEOUT_SECONDS)
    except httpx.RequestError as e:
        return False, f"Node not reachable at {network.url}: {e}", "start the node or set FORGAE_LOCAL_URL"

    if resp.status_code != 200:
        return False, f"Node at {network.url} answered HTTP {resp.status_code}", None

    try:
        status = resp.json()
    except ValueError:
        return False, f"Node at {network.url} returned a non-JSON status", None

    node_id = status.get("network_id")
    if node_id and node_id != network.network_id:
        return (
            False,
            f"Node reports network id {node_id}, expected {network.network_id}",
            f"--network-id {node_id}",
        )
    version = status.get("node_version", "unknown version")
    return True, f"Node reachable: {network.url} ({version})", None


def check_compiler(network: Network) -> tuple[bool, str, str | None]:
    """Check that the Sophia HTTP compiler is reachable."""
    url = f"{network.compiler_url.rstrip('/')}/api-version"
    try:
        resp = httpx.get(url, timeout=CHECK_TIMEOUT_SECONDS)
    except httpx.RequestError as e:
        return False, f"Compiler not reachable at {network.compiler_url}: {e}", "set FORGAE_COMPILER_URL"

    if resp.status_code != 200:
        return False, f"Compiler at {network.compiler_url} answered HTTP {resp.status_code}", None
    try:
        version = resp.json().get("api-version", "unknown")
    except ValueError:
        version = "unknown"
    return True, f"Compiler reachable: {network.compiler_url} (api {version})", None


def check_keypair(secret_key: str) -> tuple[bool, str, str | None]:
    """Check the configured secret key derives a keypair."""
    try:
        keypair = keypair_from_secret(secret_key)
    except ForgaeError as e:
        return False, e.message, "export FORGAE_SECRET_KEY=<128 hex chars>"
    return True, f"Signing identity: {keypair.public_key}", None


def check_contracts_dir(root: Path | None = None) -> tuple[bool, str, str | None]:
    """Check for a contracts directory with at least one contract."""
    root = root or Path.cwd() / CONTRACTS_DIR
    if not root.is_dir():
        return False, f"No {CONTRACTS_DIR}/ directory in {root.parent}", f"mkdir {CONTRACTS_DIR}"

    count = sum(1 for p in root.rglob(f"*{CONTRACT_SUFFIX}") if p.is_file())
    if count == 0:
        return False, f"{root} contains no {CONTRACT_SUFFIX} files", None
    return True, f"{count} contract(s) found in {root}", None


# ---------------------------------------------------------------------------
# Main Doctor Logic
# ---------------------------------------------------------------------------


def run_checks(
    network: Network,
    secret_key: str,
    contracts_root: Path | None = None,
) -> list[tuple[str, bool, str, str | None]]:
    """
    Run all environment checks.

    Returns:
        List of (check_name, passed, message, fix_command)
    """
    results: list[tuple[str, bool, str, str | None]] = []

    ok, msg, fix = check_keypair(secret_key)
    results.append(("Keypair", ok, msg, fix))
    ok, msg, fix = check_node(network)
    results.append(("Node", ok, msg, fix))
    ok, msg, fix = check_compiler(network)
    results.append(("Compiler", ok, msg, fix))
    ok, msg, fix = check_contracts_dir(contracts_root)
    results.append(("Contracts", ok, msg, fix))

    return results


def print_results(results: list[tuple[str, bool, str, str | None]]) -> bool:
    """Print check results and return overall status."""
    table = Table(title="forgae Environment Check", show_header=True)
    table.add_column("Check", style="cyan", width=12)
    table.add_column("Status", width=6)
    table.add_column("Details", style="dim")

    all_passed = True
    fixes: list[tuple[str, str]] = []

    for name, passed, message, fix in results:
        status = "[green]✓[/green]" if passed else "[red]✗[/red]"
        table.add_row(name, status, message)
        if not passed:
            all_passed = False
            if fix:
                fixes.append((name, fix))

    console.print(table)

    if fixes:
        console.print()
        console.print(
            Panel.fit(
                "\n".join([f"[bold]{name}:[/bold] {cmd}" for name, cmd in fixes]),
                title="[yellow]Suggested Fixes[/yellow]",
                border_style="yellow",
            )
        )

    return all_passed


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="forgae doctor - environment validation")
    parser.add_argument("--network", help="local, testnet, mainnet or a node URL")
    parser.add_argument("--network-id", help="Network id for a custom node URL")
    parser.add_argument("--contracts", type=Path, help=f"Contracts directory (default ./{CONTRACTS_DIR})")
    args = parser.parse_args(argv)

    settings = load_settings(load_dotenv(Path(".env")))

    console.print("[bold blue]forgae doctor[/bold blue]")
    console.print()

    try:
        network = get_network(args.network or settings.network, args.network_id or settings.network_id)
    except ForgaeError as e:
        console.print(f"[red]{e.message}[/red]")
        sys.exit(1)

    results = run_checks(network, settings.secret_key, args.contracts)
    all_passed = print_results(results)

    console.print()
    if all_passed:
        console.print("[bold green]✓ All checks passed! Ready to deploy.[/bold green]")
    else:
        console.print("[bold red]✗ Some checks failed. See suggested fixes above.[/bold red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
