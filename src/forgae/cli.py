"""
forgae command line.

    forgae compile [PATH]
    forgae deploy PATH [--network NAME] [--network-id ID] [--secret-key HEX] [--init-state ARG ...]
    forgae call PATH ADDRESS FUNCTION [ARGS ...] [--amount N]
    forgae history [--limit N]
    forgae doctor
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from collections.abc import Sequence
from pathlib import Path

from rich.console import Console
from rich.table import Table

from forgae import doctor
from forgae.catalog import FunctionCatalog
from forgae.client import HttpClient
from forgae.constants import DEFAULT_GAS
from forgae.crypto import resolve_keypair
from forgae.deployer import Deployer, build_catalog
from forgae.encoding import CallOptions
from forgae.env import Settings, load_dotenv, load_settings
from forgae.errors import ForgaeError
from forgae.logging import HistoryLogger, configure_logging, read_history
from forgae.network import Network, get_network
from forgae.proxy import ProxyFunctionTable
from forgae.sources import discover_contracts, read_contract

logger = logging.getLogger(__name__)

console = Console()


def _network(args: argparse.Namespace, settings: Settings) -> Network:
    return get_network(args.network or settings.network, args.network_id or settings.network_id)


def print_catalog(catalog: FunctionCatalog, title: str) -> None:
    table = Table(title=title, show_header=True)
    table.add_column("Function", style="cyan")
    table.add_column("Arguments")
    table.add_column("Returns", style="green")
    table.add_column("Stateful", width=8)

    for d in catalog:
        args = ", ".join(f"{a.name}: {a.type}" if a.type else a.name for a in d.args)
        table.add_row(d.name, args, d.return_type, "yes" if d.stateful else "")
    console.print(table)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def run_compile(args: argparse.Namespace, settings: Settings) -> None:
    network = _network(args, settings)
    keypair = resolve_keypair(args.secret_key or settings.secret_key)
    paths = [args.path] if args.path else discover_contracts()
    if not paths:
        console.print("[yellow]No contracts found.[/yellow]")
        return

    table = Table(title="Compiled contracts", show_header=True)
    table.add_column("Contract", style="cyan")
    table.add_column("Bytecode")

    async with HttpClient(network, keypair) as client:
        for path in paths:
            contract = read_contract(path)
            artifact = await client.compile(contract.code, contract.file_system)
            logger.info(f"Compiled {path}")
            table.add_row(str(path), f"{artifact.bytecode[:24]}... ({len(artifact.bytecode)} chars)")
    console.print(table)


async def run_deploy(args: argparse.Namespace, settings: Settings) -> None:
    network = _network(args, settings)
    history = HistoryLogger(base_dir=settings.history_dir)
    deployer = Deployer(
        network,
        args.secret_key or settings.secret_key,
        history=history,
        use_aci=not args.legacy,
    )
    history.write_run_metadata(
        {
            "started_at_unix_seconds": int(time.time()),
            "network": deployer.network.name,
            "network_id": deployer.network.network_id,
            "command": "deploy",
        }
    )

    init_state: str | list[str] = list(args.init_state)
    if len(init_state) == 1 and init_state[0].strip().startswith("("):
        init_state = init_state[0]
    contract = await deployer.deploy(args.path, gas=args.gas, init_state=init_state, options={"amount": args.amount})
    try:
        console.print(f"Address:     [bold]{contract.address}[/bold]")
        console.print(f"Transaction: {contract.transaction}")
        console.print(f"Owner:       {contract.owner}")
        print_catalog(contract.catalog, title=f"Functions of {contract.address}")
    finally:
        await contract.aclose()


async def run_call(args: argparse.Namespace, settings: Settings) -> None:
    network = _network(args, settings)
    keypair = resolve_keypair(args.secret_key or settings.secret_key)
    contract = read_contract(args.path)

    async with HttpClient(network, keypair) as client:
        catalog, legacy = await build_catalog(client, contract, use_aci=not args.legacy)
        table = ProxyFunctionTable(
            catalog,
            address=args.address,
            source=contract.code,
            bytecode="",
            client=client,
            network=network,
            file_system=contract.file_system,
            legacy=legacy,
        )
        result = await table.invoke(args.function, args.args, CallOptions(amount=args.amount))
    console.print(result)


def run_history(args: argparse.Namespace, settings: Settings) -> None:
    rows = read_history(settings.history_dir)
    if args.limit:
        rows = rows[-args.limit :]
    if not rows:
        console.print(f"[yellow]No deploys recorded in {settings.history_dir}[/yellow]")
        return

    table = Table(title="Deploy history", show_header=True)
    table.add_column("When", style="dim")
    table.add_column("Contract", style="cyan")
    table.add_column("Status", width=6)
    table.add_column("Address / Error")
    table.add_column("Gas used", justify="right")

    for row in rows:
        entry = row["entry"]
        when = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(row.get("t", 0)))
        ok = bool(entry.get("status"))
        status = "[green]✓[/green]" if ok else "[red]✗[/red]"
        detail = entry.get("result") if ok else entry.get("error")
        table.add_row(when, str(entry.get("nameOrLabel")), status, str(detail or ""), str(entry.get("gasUsed", 0)))
    console.print(table)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="forgae", description="Deploy and call Sophia contracts")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def _network_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--network", help="local, testnet, mainnet or a node URL (default: FORGAE_NETWORK or local)")
        p.add_argument("--network-id", help="Network id, required for a custom node URL")
        p.add_argument("--secret-key", help="Signing secret key (default: FORGAE_SECRET_KEY)")

    p_compile = subparsers.add_parser("compile", help="Compile one contract or every contract under ./contracts")
    p_compile.add_argument("path", nargs="?", type=Path, help="Contract file")
    _network_args(p_compile)

    p_deploy = subparsers.add_parser("deploy", help="Deploy a contract and list its functions")
    p_deploy.add_argument("path", type=Path, help="Contract file")
    p_deploy.add_argument("--init-state", nargs="*", default=[], help="Arguments for init, e.g. '(42, true)'")
    p_deploy.add_argument("--gas", type=int, default=DEFAULT_GAS)
    p_deploy.add_argument("--amount", type=int, default=0, help="Funds to attach to the create transaction")
    p_deploy.add_argument("--legacy", action="store_true", help="Catalog functions by scanning the source text")
    _network_args(p_deploy)

    p_call = subparsers.add_parser("call", help="Call a function of a deployed contract")
    p_call.add_argument("path", type=Path, help="Contract source the instance was deployed from")
    p_call.add_argument("address", help="Contract address (ct_...)")
    p_call.add_argument("function", help="Function name")
    p_call.add_argument("args", nargs="*", help="Function arguments")
    p_call.add_argument("--amount", type=int, default=0, help="Funds to attach to the call")
    p_call.add_argument("--legacy", action="store_true", help="Catalog functions by scanning the source text")
    _network_args(p_call)

    p_history = subparsers.add_parser("history", help="Show recorded deploys")
    p_history.add_argument("--limit", type=int, default=20, help="Show the last N entries (0 for all)")

    subparsers.add_parser("doctor", help="Check node, compiler and keypair")

    return parser


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    settings = load_settings(load_dotenv(Path(".env")))
    configure_logging("DEBUG" if args.verbose else settings.log_level)

    if args.command == "doctor":
        doctor.main([])
        return

    try:
        if args.command == "history":
            run_history(args, settings)
        elif args.command == "compile":
            asyncio.run(run_compile(args, settings))
        elif args.command == "deploy":
            asyncio.run(run_deploy(args, settings))
        elif args.command == "call":
            asyncio.run(run_call(args, settings))
    except ForgaeError as e:
        logger.debug(f"{args.command} failed: {e.to_dict()}")
        console.print(f"[red]{e.message}[/red]")
        sys.exit(1)
    except FileNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
