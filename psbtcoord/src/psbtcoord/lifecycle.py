"""
PSBT lifecycle controller.

Drives one funded input through the remote operations that turn it into a
broadcast transaction:

1. create   - walletcreatefundedpsbt (funding wallet)
2. join     - joinpsbts with the counterparty's PSBT
3. sign     - walletprocesspsbt, once per signing party (concurrently)
4. combine  - combinepsbt over every party's signed PSBT
5. finalize - finalizepsbt
6. broadcast - sendrawtransaction, only for a complete transaction

Each operation is allowed from a fixed set of states, so a lineage can only
move forward. Any failure moves the lifecycle to FAILED and is re-raised;
nothing is retried or defaulted.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger

from psbtcoord.broadcaster import Broadcaster
from psbtcoord.constants import RpcMethod
from psbtcoord.decoder import expect
from psbtcoord.errors import (
    CombineError,
    FundingError,
    IncompleteTransactionError,
    InvalidTransitionError,
    JoinError,
    ProtocolError,
    PsbtCoordError,
    SigningError,
    from_protocol_error,
)
from psbtcoord.handoff import PsbtHandoff
from psbtcoord.models import (
    Destination,
    FinalizationResult,
    FundedPsbt,
    NonEmptyStr,
    SigningResult,
    SpendInput,
)
from psbtcoord.rpc import RpcTransport


class PsbtState(str, Enum):
    """Lifecycle states."""

    SELECTED_INPUT = "selected_input"
    FUNDED = "funded"
    JOINED = "joined"
    SIGNED = "signed"
    COMBINED = "combined"
    FINALIZED = "finalized"
    BROADCAST = "broadcast"
    FAILED = "failed"


@dataclass
class PipelineReport:
    """How far a run got, for partial-completion reporting."""

    state: PsbtState
    spend_input: SpendInput | None = None
    funded: FundedPsbt | None = None
    joined_psbt: str | None = None
    signatures: list[SigningResult] = field(default_factory=list)
    combined_psbt: str | None = None
    finalization: FinalizationResult | None = None
    txid: str | None = None
    failed_stage: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.state == PsbtState.BROADCAST


class PsbtLifecycle:
    """
    Owns one PSBT lineage from funded input to broadcast txid.
    """

    def __init__(
        self,
        transport: RpcTransport,
        signing_wallets: Sequence[str] | None = None,
        broadcaster: Broadcaster | None = None,
    ):
        """
        Args:
            transport: Transport to the node; its default wallet funds the PSBT
            signing_wallets: Wallets that sign the joined PSBT (default: funding wallet)
            broadcaster: Broadcaster for the final step (default: one on ``transport``)
        """
        self.transport = transport
        wallets = list(signing_wallets or [])
        if not wallets and transport.wallet:
            wallets = [transport.wallet]
        self.signing_wallets = wallets
        self.broadcaster = broadcaster or Broadcaster(transport)

        self.state = PsbtState.SELECTED_INPUT
        self.spend_input: SpendInput | None = None
        self.funded: FundedPsbt | None = None
        self.joined_psbt: str | None = None
        self.signatures: list[SigningResult] = []
        self.combined_psbt: str | None = None
        self.finalization: FinalizationResult | None = None
        self.txid: str | None = None
        self.failed_stage: str | None = None
        self.error: PsbtCoordError | None = None

    def _require(self, stage: str, *allowed: PsbtState) -> None:
        if self.state not in allowed:
            expected = ", ".join(s.value for s in allowed)
            raise InvalidTransitionError(
                f"Cannot {stage} in state '{self.state.value}' (expected: {expected})"
            )

    @contextmanager
    def _stage(self, stage: str) -> Iterator[None]:
        try:
            yield
        except InvalidTransitionError:
            raise
        except PsbtCoordError as e:
            self.state = PsbtState.FAILED
            self.failed_stage = stage
            self.error = e
            logger.error(f"Stage '{stage}' failed: {e}")
            raise

    async def create(
        self, spend_input: SpendInput, destinations: Sequence[Destination]
    ) -> FundedPsbt:
        """
        Fund a PSBT spending exactly ``spend_input``.

        Raises:
            FundingError: If the node refuses to fund (spent input, low balance)
        """
        self._require("create", PsbtState.SELECTED_INPUT)
        method = RpcMethod.CREATE_FUNDED_PSBT.value
        with self._stage("create"):
            if not destinations:
                raise FundingError("At least one destination is required")
            outputs = [d.to_rpc() for d in destinations]
            response = await self.transport.call(
                method, [[spend_input.to_rpc()], outputs], wallet_scoped=True
            )
            try:
                funded = expect(response, FundedPsbt, "create", method)
            except ProtocolError as e:
                raise from_protocol_error(FundingError, e, f"Cannot fund {spend_input}") from e

        self.spend_input = spend_input
        self.funded = funded
        self.state = PsbtState.FUNDED
        change = f"change at {funded.changepos}" if funded.has_change else "no change"
        logger.info(f"Funded PSBT from {spend_input} (fee {funded.fee} BTC, {change})")
        return funded

    async def join(self, psbt_a: str, psbt_b: str) -> str:
        """
        Merge two PSBTs into one.

        Raises:
            JoinError: If the node rejects the PSBTs as incompatible
        """
        self._require("join", PsbtState.FUNDED)
        method = RpcMethod.JOIN_PSBTS.value
        with self._stage("join"):
            response = await self.transport.call(method, [[psbt_a, psbt_b]])
            try:
                joined = expect(response, NonEmptyStr, "join", method)
            except ProtocolError as e:
                raise from_protocol_error(JoinError, e, "Node rejected join") from e

        self.joined_psbt = joined
        self.state = PsbtState.JOINED
        logger.info("Joined PSBTs")
        return joined

    async def _process(self, psbt: str, wallet: str) -> SigningResult:
        method = RpcMethod.PROCESS_PSBT.value
        response = await self.transport.call(method, [psbt], wallet_scoped=True, wallet=wallet)
        try:
            result = expect(response, SigningResult, "sign", method)
        except ProtocolError as e:
            raise from_protocol_error(SigningError, e, f"Wallet '{wallet}' could not sign") from e
        result = result.model_copy(update={"wallet": wallet})
        logger.info(f"Party '{wallet}' signed (complete={result.complete})")
        return result

    async def sign(self, psbt: str, wallet: str | None = None) -> SigningResult:
        """Sign ``psbt`` with one party's wallet (the funding wallet by default)."""
        self._require("sign", PsbtState.JOINED, PsbtState.SIGNED)
        target = wallet or self.transport.wallet
        with self._stage("sign"):
            if not target:
                raise SigningError("No wallet to sign with")
            result = await self._process(psbt, target)

        self.signatures.append(result)
        self.state = PsbtState.SIGNED
        return result

    async def sign_all(self, psbt: str) -> list[SigningResult]:
        """
        Sign ``psbt`` with every signing party concurrently.

        All parties finish before this returns; the first failure is raised
        once every call has completed.
        """
        self._require("sign", PsbtState.JOINED, PsbtState.SIGNED)
        with self._stage("sign"):
            if not self.signing_wallets:
                raise SigningError("No signing wallets configured")
            outcomes = await asyncio.gather(
                *(self._process(psbt, wallet) for wallet in self.signing_wallets),
                return_exceptions=True,
            )
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    raise outcome
            results = [o for o in outcomes if isinstance(o, SigningResult)]

        self.signatures.extend(results)
        self.state = PsbtState.SIGNED
        return results

    async def combine(self, psbts: Sequence[str]) -> str:
        """Merge every party's signed PSBT into one."""
        self._require("combine", PsbtState.SIGNED)
        if not psbts:
            raise InvalidTransitionError("combine needs at least one signed PSBT")
        if len(psbts) < len(self.signatures):
            logger.warning(
                f"Combining {len(psbts)} of {len(self.signatures)} signed PSBTs, "
                "the result may be incomplete"
            )

        method = RpcMethod.COMBINE_PSBT.value
        with self._stage("combine"):
            response = await self.transport.call(method, [list(psbts)])
            try:
                combined = expect(response, NonEmptyStr, "combine", method)
            except ProtocolError as e:
                raise from_protocol_error(CombineError, e, "Node rejected combine") from e

        self.combined_psbt = combined
        self.state = PsbtState.COMBINED
        logger.info(f"Combined {len(psbts)} signed PSBTs")
        return combined

    async def finalize(self, psbt: str) -> FinalizationResult:
        """
        Finalize a signed PSBT into raw transaction hex.

        Allowed after ``combine``, or directly after a single party signed
        and reported the PSBT complete.

        Raises:
            IncompleteTransactionError: If the only signer reported ``complete=false``
        """
        self._require("finalize", PsbtState.COMBINED, PsbtState.SIGNED)
        if self.state == PsbtState.SIGNED and len(self.signatures) > 1:
            raise InvalidTransitionError(
                f"{len(self.signatures)} parties signed; combine before finalizing"
            )

        method = RpcMethod.FINALIZE_PSBT.value
        with self._stage("finalize"):
            if self.state == PsbtState.SIGNED and not self.signatures[-1].complete:
                raise IncompleteTransactionError(
                    "Transaction not yet fully signed, cannot finalize"
                )
            response = await self.transport.call(method, [psbt])
            finalization = expect(response, FinalizationResult, "finalize", method)

        self.finalization = finalization
        self.state = PsbtState.FINALIZED
        logger.info(f"Finalized PSBT (complete={finalization.complete})")
        return finalization

    async def broadcast(self, finalization: FinalizationResult) -> str:
        """
        Submit the finalized transaction.

        Raises:
            IncompleteTransactionError: If ``finalization`` is not complete;
                nothing is sent to the node in that case
        """
        self._require("broadcast", PsbtState.FINALIZED)
        with self._stage("broadcast"):
            txid = await self.broadcaster.send(finalization)

        self.txid = txid
        self.state = PsbtState.BROADCAST
        return txid

    async def run(
        self,
        spend_input: SpendInput,
        destinations: Sequence[Destination],
        counterparty: PsbtHandoff,
    ) -> str:
        """
        Execute the whole lifecycle and return the broadcast txid.

        Errors propagate unchanged; ``report()`` describes how far the run got.
        """
        funded = await self.create(spend_input, destinations)

        logger.info(f"Joining with PSBT from party '{counterparty.party}'")
        joined = await self.join(funded.psbt, counterparty.psbt)

        signed = await self.sign_all(joined)
        if len(signed) > 1:
            to_finalize = await self.combine([s.psbt for s in signed])
        else:
            to_finalize = signed[0].psbt

        finalization = await self.finalize(to_finalize)
        if not finalization.complete:
            with self._stage("finalize"):
                raise IncompleteTransactionError(
                    "Transaction not yet fully signed, refusing to broadcast"
                )

        txid = await self.broadcast(finalization)
        logger.info(f"Pipeline complete, txid: {txid}")
        return txid

    def report(self) -> PipelineReport:
        return PipelineReport(
            state=self.state,
            spend_input=self.spend_input,
            funded=self.funded,
            joined_psbt=self.joined_psbt,
            signatures=list(self.signatures),
            combined_psbt=self.combined_psbt,
            finalization=self.finalization,
            txid=self.txid,
            failed_stage=self.failed_stage,
            error=str(self.error) if self.error else None,
        )
