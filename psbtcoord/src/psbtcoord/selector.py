"""
Manual choice of the unspent output that funds a pipeline run.

There is no selection heuristic here: the operator names the output, either
by outpoint or by its position in ``listunspent``.
"""

from __future__ import annotations

from loguru import logger

from psbtcoord.constants import RpcMethod
from psbtcoord.decoder import expect
from psbtcoord.errors import SelectionError
from psbtcoord.models import UnspentOutput
from psbtcoord.rpc import RpcTransport


async def list_unspent(transport: RpcTransport, wallet: str | None = None) -> list[UnspentOutput]:
    """Fetch the wallet's unspent outputs."""
    method = RpcMethod.LIST_UNSPENT.value
    response = await transport.call(method, [], wallet_scoped=True, wallet=wallet)
    utxos = expect(response, list[UnspentOutput], "list_unspent", method)
    logger.debug(f"Wallet has {len(utxos)} unspent outputs")
    return utxos


def select_output(
    utxos: list[UnspentOutput],
    *,
    txid: str | None = None,
    vout: int | None = None,
    index: int | None = None,
) -> UnspentOutput:
    """
    Pick one output to spend.

    Args:
        utxos: Outputs as returned by ``listunspent``
        txid: Transaction ID of the outpoint (requires ``vout``)
        vout: Output index of the outpoint (requires ``txid``)
        index: Position in ``utxos``, used when no outpoint is given

    Raises:
        SelectionError: If the choice is ambiguous, missing or not spendable
    """
    if (txid is None) != (vout is None):
        raise SelectionError("Both txid and vout are required to select by outpoint")

    if txid is not None:
        if index is not None:
            raise SelectionError("Select by outpoint or by index, not both")
        matches = [u for u in utxos if u.txid == txid and u.vout == vout]
        if not matches:
            raise SelectionError(f"Output {txid}:{vout} is not in the wallet's unspent set")
        chosen = matches[0]
    elif index is not None:
        if not 0 <= index < len(utxos):
            raise SelectionError(f"Index {index} out of range ({len(utxos)} unspent outputs)")
        chosen = utxos[index]
    else:
        raise SelectionError("No output selected")

    if not chosen.spendable:
        raise SelectionError(f"Output {chosen.txid}:{chosen.vout} is not spendable")

    logger.info(f"Selected output {chosen.txid}:{chosen.vout} ({chosen.amount} BTC)")
    return chosen
