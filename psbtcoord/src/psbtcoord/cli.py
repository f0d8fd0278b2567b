"""
Command-line interface for the PSBT coordinator.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger

from psbtcoord.config import Settings, get_settings
from psbtcoord.errors import PsbtCoordError
from psbtcoord.handoff import PsbtHandoff, resolve_counterparty
from psbtcoord.lifecycle import PipelineReport, PsbtLifecycle
from psbtcoord.models import Destination, SpendInput
from psbtcoord.rpc import RpcTransport
from psbtcoord.selector import list_unspent, select_output

app = typer.Typer(
    name="psbtcoord",
    help="Coordinate multi-party PSBTs against a Bitcoin Core node",
    add_completion=False,
)


def setup_logging(level: str) -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def load_settings(
    rpc_host: str | None,
    rpc_user: str | None,
    rpc_password: str | None,
    wallet: str | None,
    signing_wallets: str | None = None,
) -> Settings:
    """Build settings from the environment, letting command-line values win."""
    overrides: dict[str, object] = {
        "rpc_host": rpc_host,
        "rpc_user": rpc_user,
        "rpc_password": rpc_password,
        "rpc_wallet": wallet,
        "signing_wallets": signing_wallets,
    }
    try:
        return get_settings(**{k: v for k, v in overrides.items() if v is not None})
    except PsbtCoordError as e:
        logger.error(str(e))
        raise typer.Exit(1)


def parse_destinations(values: list[str] | None) -> list[Destination]:
    if not values:
        logger.error("At least one --to ADDRESS=AMOUNT is required")
        raise typer.Exit(1)
    try:
        return [Destination.parse(v) for v in values]
    except ValueError as e:
        logger.error(str(e))
        raise typer.Exit(1)


def format_report(report: PipelineReport) -> str:
    lines = [
        "=== PSBT Pipeline Report ===",
        f"State: {report.state.value}",
    ]
    if report.spend_input:
        lines.append(f"Input: {report.spend_input}")
    if report.funded:
        lines.append(f"Funded: fee {report.funded.fee} BTC, changepos {report.funded.changepos}")
    if report.joined_psbt:
        lines.append("Joined: yes")
    for sig in report.signatures:
        lines.append(f"Signed by {sig.wallet}: complete={sig.complete}")
    if report.combined_psbt:
        lines.append("Combined: yes")
    if report.finalization:
        lines.append(f"Finalized: complete={report.finalization.complete}")
        if not report.finalization.complete and report.finalization.psbt:
            lines.append(f"  Partially signed PSBT: {report.finalization.psbt}")
    if report.txid:
        lines.append(f"Txid: {report.txid}")
    if report.failed_stage:
        lines.append(f"Failed at: {report.failed_stage}")
        lines.append(f"Error: {report.error}")
    lines.append("============================")
    return "\n".join(lines)


RpcHostOption = Annotated[
    str | None, typer.Option("--rpc-host", envvar="RPC_HOST", help="Bitcoin Core RPC URL")
]
RpcUserOption = Annotated[
    str | None, typer.Option("--rpc-user", envvar="RPC_USER", help="Bitcoin Core RPC user")
]
RpcPasswordOption = Annotated[
    str | None,
    typer.Option("--rpc-password", envvar="RPC_PASSWORD", help="Bitcoin Core RPC password"),
]
WalletOption = Annotated[
    str | None, typer.Option("--wallet", "-w", envvar="RPC_WALLET", help="Funding wallet name")
]
LogLevelOption = Annotated[
    str, typer.Option("--log-level", "-l", envvar="LOG_LEVEL", help="Log level")
]


@app.command("list-unspent")
def list_unspent_cmd(
    rpc_host: RpcHostOption = None,
    rpc_user: RpcUserOption = None,
    rpc_password: RpcPasswordOption = None,
    wallet: WalletOption = None,
    log_level: LogLevelOption = "INFO",
) -> None:
    """List the funding wallet's unspent outputs."""
    setup_logging(log_level)
    settings = load_settings(rpc_host, rpc_user, rpc_password, wallet)
    asyncio.run(_list_unspent(settings))


async def _list_unspent(settings: Settings) -> None:
    async with RpcTransport(settings.to_rpc_config()) as transport:
        try:
            utxos = await list_unspent(transport)
        except PsbtCoordError as e:
            logger.error(f"Failed to list unspent outputs: {e}")
            raise typer.Exit(1)

    for i, utxo in enumerate(utxos):
        flag = "" if utxo.spendable else " (not spendable)"
        typer.echo(
            f"[{i}] {utxo.txid}:{utxo.vout} {utxo.amount} BTC "
            f"{utxo.confirmations} conf {utxo.address}{flag}"
        )


async def _choose_input(
    transport: RpcTransport, txid: str | None, vout: int | None, index: int | None
) -> SpendInput:
    if txid is not None and vout is not None and index is None:
        return SpendInput(txid=txid, vout=vout)
    utxos = await list_unspent(transport)
    return select_output(utxos, txid=txid, vout=vout, index=index).to_spend_input()


@app.command()
def create(
    to: Annotated[
        list[str] | None,
        typer.Option("--to", "-t", help="Destination as ADDRESS=AMOUNT (repeatable)"),
    ] = None,
    txid: Annotated[str | None, typer.Option("--txid", help="Outpoint txid to spend")] = None,
    vout: Annotated[int | None, typer.Option("--vout", help="Outpoint index to spend")] = None,
    index: Annotated[
        int | None, typer.Option("--index", "-i", help="Position in list-unspent to spend")
    ] = None,
    export: Annotated[
        Path | None,
        typer.Option("--export", "-o", help="Write a hand-off file for the counterparty"),
    ] = None,
    party: Annotated[
        str | None, typer.Option("--party", help="Party name in the hand-off file")
    ] = None,
    rpc_host: RpcHostOption = None,
    rpc_user: RpcUserOption = None,
    rpc_password: RpcPasswordOption = None,
    wallet: WalletOption = None,
    log_level: LogLevelOption = "INFO",
) -> None:
    """Fund a PSBT from one unspent output."""
    setup_logging(log_level)
    settings = load_settings(rpc_host, rpc_user, rpc_password, wallet)
    destinations = parse_destinations(to)
    asyncio.run(_create(settings, destinations, txid, vout, index, export, party))


async def _create(
    settings: Settings,
    destinations: list[Destination],
    txid: str | None,
    vout: int | None,
    index: int | None,
    export: Path | None,
    party: str | None,
) -> None:
    async with RpcTransport(settings.to_rpc_config()) as transport:
        lifecycle = PsbtLifecycle(transport)
        try:
            spend_input = await _choose_input(transport, txid, vout, index)
            funded = await lifecycle.create(spend_input, destinations)
        except PsbtCoordError as e:
            logger.error(f"Failed to create PSBT: {e}")
            raise typer.Exit(1)

    if export is not None:
        PsbtHandoff(party=party or settings.rpc_wallet, psbt=funded.psbt).dump(export)
    typer.echo(funded.psbt)


@app.command()
def run(
    to: Annotated[
        list[str] | None,
        typer.Option("--to", "-t", help="Destination as ADDRESS=AMOUNT (repeatable)"),
    ] = None,
    txid: Annotated[str | None, typer.Option("--txid", help="Outpoint txid to spend")] = None,
    vout: Annotated[int | None, typer.Option("--vout", help="Outpoint index to spend")] = None,
    index: Annotated[
        int | None, typer.Option("--index", "-i", help="Position in list-unspent to spend")
    ] = None,
    counterparty_psbt: Annotated[
        str | None, typer.Option("--counterparty-psbt", help="Counterparty PSBT (base64)")
    ] = None,
    counterparty_file: Annotated[
        Path | None, typer.Option("--counterparty-file", help="Counterparty hand-off file")
    ] = None,
    signing_wallets: Annotated[
        str | None,
        typer.Option(
            "--signing-wallets",
            "-s",
            envvar="SIGNING_WALLETS",
            help="Wallets that sign (comma-separated). Defaults to the funding wallet.",
        ),
    ] = None,
    rpc_host: RpcHostOption = None,
    rpc_user: RpcUserOption = None,
    rpc_password: RpcPasswordOption = None,
    wallet: WalletOption = None,
    log_level: LogLevelOption = "INFO",
) -> None:
    """Run the full create, join, sign, combine, finalize and broadcast sequence."""
    setup_logging(log_level)
    settings = load_settings(rpc_host, rpc_user, rpc_password, wallet, signing_wallets)
    destinations = parse_destinations(to)
    try:
        counterparty = resolve_counterparty(settings, counterparty_psbt, counterparty_file)
    except PsbtCoordError as e:
        logger.error(str(e))
        raise typer.Exit(1)

    asyncio.run(_run_pipeline(settings, destinations, counterparty, txid, vout, index))


async def _run_pipeline(
    settings: Settings,
    destinations: list[Destination],
    counterparty: PsbtHandoff,
    txid: str | None,
    vout: int | None,
    index: int | None,
) -> None:
    async with RpcTransport(settings.to_rpc_config()) as transport:
        lifecycle = PsbtLifecycle(transport, signing_wallets=settings.get_signing_wallets())
        try:
            spend_input = await _choose_input(transport, txid, vout, index)
            broadcast_txid = await lifecycle.run(spend_input, destinations, counterparty)
        except PsbtCoordError as e:
            logger.error(f"Pipeline failed: {e}")
            typer.echo(format_report(lifecycle.report()), err=True)
            raise typer.Exit(1)

    logger.info(f"Transaction broadcast! txid: {broadcast_txid}")
    typer.echo(broadcast_txid)


def main() -> None:
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
