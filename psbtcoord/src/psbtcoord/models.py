"""
Data models for the PSBT lifecycle, validated with Pydantic.

Field aliases follow the names Bitcoin Core uses in its RPC results so that
``result`` payloads validate directly into these models.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    field_validator,
    model_validator,
)

from psbtcoord.constants import JSONRPC_VERSION, NO_CHANGE_OUTPUT, SATOSHI

# Opaque PSBT, transaction hex or txid returned as a bare string
NonEmptyStr = Annotated[str, StringConstraints(min_length=1)]


class SpendInput(BaseModel):
    """Outpoint reference used to fund a new PSBT."""

    model_config = ConfigDict(frozen=True)

    txid: str = Field(..., min_length=1)
    vout: int = Field(..., ge=0)

    def to_rpc(self) -> dict[str, Any]:
        return {"txid": self.txid, "vout": self.vout}

    def __str__(self) -> str:
        return f"{self.txid}:{self.vout}"


class UnspentOutput(BaseModel):
    """One entry of ``listunspent``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    txid: str
    vout: int = Field(..., ge=0)
    address: str = ""
    label: str = ""
    script_pubkey: str = Field(default="", alias="scriptPubKey")
    amount: Decimal
    confirmations: int = 0
    spendable: bool = False
    solvable: bool = False
    descriptor: str = Field(default="", alias="desc")
    parent_descriptors: list[str] = Field(default_factory=list, alias="parent_descs")
    safe: bool = False

    def to_spend_input(self) -> SpendInput:
        return SpendInput(txid=self.txid, vout=self.vout)


class Destination(BaseModel):
    """A payment output: address and amount in BTC."""

    model_config = ConfigDict(frozen=True)

    address: str = Field(..., min_length=1)
    # Satoshi precision; finer amounts are rejected, not rounded
    amount: Decimal = Field(..., gt=0, max_digits=16, decimal_places=8)

    @classmethod
    def parse(cls, text: str) -> Destination:
        """Parse ``ADDRESS=AMOUNT`` as given on the command line."""
        address, sep, amount = text.partition("=")
        if not sep or not address.strip() or not amount.strip():
            raise ValueError(f"Invalid destination '{text}', expected ADDRESS=AMOUNT")
        return cls(address=address.strip(), amount=amount.strip())  # type: ignore[arg-type]

    def to_rpc(self) -> dict[str, str]:
        # Bitcoin Core accepts amounts as strings, which avoids float rounding
        return {self.address: format(self.amount.quantize(SATOSHI), "f")}


class FundedPsbt(BaseModel):
    """Result of ``walletcreatefundedpsbt``."""

    psbt: str = Field(..., min_length=1)
    fee: Decimal
    changepos: int = Field(..., ge=NO_CHANGE_OUTPUT)

    @property
    def has_change(self) -> bool:
        return self.changepos != NO_CHANGE_OUTPUT


class SigningResult(BaseModel):
    """Result of ``walletprocesspsbt`` for one signing party."""

    psbt: str = Field(..., min_length=1)
    complete: bool
    wallet: str | None = None


class FinalizationResult(BaseModel):
    """
    Result of ``finalizepsbt``.

    The node returns ``hex`` once every input is finalized and the PSBT
    itself otherwise.
    """

    hex: str | None = None
    psbt: str | None = None
    complete: bool

    @model_validator(mode="after")
    def check_hex_when_complete(self) -> FinalizationResult:
        if self.complete and not self.hex:
            raise ValueError("complete finalization must carry transaction hex")
        return self


class RpcRequest(BaseModel):
    jsonrpc: str = JSONRPC_VERSION
    id: str
    method: str = Field(..., min_length=1)
    params: list[Any] = Field(default_factory=list)


class RpcErrorBody(BaseModel):
    code: int | None = None
    message: str = ""


class RpcResponse(BaseModel):
    """JSON-RPC response envelope; ``result`` is decoded separately."""

    result: Any = None
    error: RpcErrorBody | None = None
    id: str | int | None = None

    @field_validator("error", mode="before")
    @classmethod
    def coerce_error(cls, v: Any) -> Any:
        # Some proxies put a bare string in the error slot
        if isinstance(v, str):
            return {"message": v}
        return v
