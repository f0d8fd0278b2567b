"""
Fake Bitcoin Core nodes for psbtcoord tests.

``FakeNode`` stands in for :class:`psbtcoord.rpc.RpcTransport`: it records
every call and answers from canned results or handler functions.
``SimulatedNode`` goes one step further and tracks which parties signed,
so completeness depends on the signatures actually collected.
"""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal
from typing import Any

from psbtcoord.models import RpcResponse

Handler = Callable[[list[Any], str | None], RpcResponse]


def ok(result: Any) -> RpcResponse:
    return RpcResponse(result=result, error=None, id="test")


def rpc_error(code: int, message: str) -> RpcResponse:
    return RpcResponse.model_validate(
        {"result": None, "error": {"code": code, "message": message}, "id": "test"}
    )


class FakeNode:
    """Recording stand-in for RpcTransport."""

    def __init__(self, wallet: str | None = "codeplanet"):
        self.wallet = wallet
        self.calls: list[tuple[str, list[Any], str | None]] = []
        self.handlers: dict[str, Handler] = {}

    def on(self, method: str, response: RpcResponse | Handler) -> None:
        if isinstance(response, RpcResponse):
            self.handlers[method] = lambda params, wallet: response
        else:
            self.handlers[method] = response

    @property
    def methods(self) -> list[str]:
        return [c[0] for c in self.calls]

    async def call(
        self,
        method: str,
        params: list[Any] | None = None,
        *,
        wallet_scoped: bool = False,
        wallet: str | None = None,
    ) -> RpcResponse:
        target = (wallet or self.wallet) if wallet_scoped else None
        self.calls.append((method, params or [], target))
        if method not in self.handlers:
            raise AssertionError(f"unexpected RPC call: {method}")
        return self.handlers[method](params or [], target)


class SimulatedNode(FakeNode):
    """
    Fake node that tracks signatures inside the PSBT token.

    PSBTs look like ``joined|alice|bob``: the template followed by the
    wallets that signed it. A transaction finalizes only when every
    required signer is present.
    """

    def __init__(self, required_signers: list[str], wallet: str | None = "codeplanet"):
        super().__init__(wallet)
        self.required = set(required_signers)
        self.on(
            "walletcreatefundedpsbt",
            ok({"psbt": "funded", "fee": Decimal("0.00000141"), "changepos": 1}),
        )
        self.on("joinpsbts", self._join)
        self.on("walletprocesspsbt", self._process)
        self.on("combinepsbt", self._combine)
        self.on("finalizepsbt", self._finalize)
        self.on("sendrawtransaction", ok("f" * 64))

    @staticmethod
    def _parse(psbt: str) -> tuple[str, set[str]]:
        template, *signers = psbt.split("|")
        return template, set(signers)

    @staticmethod
    def _encode(template: str, signers: set[str]) -> str:
        return "|".join([template, *sorted(signers)])

    def _complete(self, signers: set[str]) -> bool:
        return self.required <= signers

    def _join(self, params: list[Any], wallet: str | None) -> RpcResponse:
        return ok("joined")

    def _process(self, params: list[Any], wallet: str | None) -> RpcResponse:
        template, signers = self._parse(params[0])
        if wallet in self.required:
            signers.add(wallet)
        return ok({"psbt": self._encode(template, signers), "complete": self._complete(signers)})

    def _combine(self, params: list[Any], wallet: str | None) -> RpcResponse:
        templates: set[str] = set()
        signers: set[str] = set()
        for psbt in params[0]:
            template, sigs = self._parse(psbt)
            templates.add(template)
            signers |= sigs
        if len(templates) != 1:
            return rpc_error(-8, "PSBTs not compatible (different transactions)")
        return ok(self._encode(templates.pop(), signers))

    def _finalize(self, params: list[Any], wallet: str | None) -> RpcResponse:
        _, signers = self._parse(params[0])
        if self._complete(signers):
            return ok({"hex": "0200000001abcdef", "complete": True})
        return ok({"psbt": params[0], "complete": False})

