"""
Submission of finalized transactions to the network.
"""

from __future__ import annotations

from loguru import logger

from psbtcoord.constants import RpcMethod
from psbtcoord.decoder import expect
from psbtcoord.errors import (
    BroadcastError,
    IncompleteTransactionError,
    ProtocolError,
    from_protocol_error,
)
from psbtcoord.models import FinalizationResult, NonEmptyStr
from psbtcoord.rpc import SENSITIVE_LOGGING, RpcTransport


class Broadcaster:
    """Terminal step: ``sendrawtransaction`` for a fully signed transaction."""

    def __init__(self, transport: RpcTransport):
        self.transport = transport

    async def send(self, finalization: FinalizationResult) -> str:
        """
        Broadcast a finalized transaction.

        Args:
            finalization: Result of ``finalizepsbt``

        Returns:
            Transaction ID reported by the node

        Raises:
            IncompleteTransactionError: If the transaction is not fully signed.
                The node is not contacted in that case.
            BroadcastError: If the node rejects the transaction
        """
        if not finalization.complete or not finalization.hex:
            raise IncompleteTransactionError(
                "Transaction not yet fully signed, refusing to broadcast"
            )

        if SENSITIVE_LOGGING:
            logger.debug(f"Broadcasting raw transaction: {finalization.hex}")

        method = RpcMethod.SEND_RAW_TRANSACTION.value
        response = await self.transport.call(method, [finalization.hex])
        try:
            txid = expect(response, NonEmptyStr, "broadcast", method)
        except ProtocolError as e:
            logger.error(f"Failed to broadcast transaction: {e.message}")
            raise from_protocol_error(BroadcastError, e, "Node rejected transaction") from e

        logger.info(f"Broadcast transaction: {txid}")
        return txid
