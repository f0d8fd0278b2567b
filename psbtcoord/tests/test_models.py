"""
Tests for psbtcoord.models
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from psbtcoord.models import (
    Destination,
    FinalizationResult,
    FundedPsbt,
    RpcResponse,
    SpendInput,
    UnspentOutput,
)


def test_spend_input_rpc_shape():
    spend = SpendInput(txid="a" * 64, vout=1)
    assert spend.to_rpc() == {"txid": "a" * 64, "vout": 1}
    assert str(spend) == f"{'a' * 64}:1"


def test_spend_input_rejects_negative_vout():
    with pytest.raises(ValidationError):
        SpendInput(txid="a" * 64, vout=-1)


def test_unspent_output_to_spend_input():
    utxo = UnspentOutput(txid="b" * 64, vout=3, amount=Decimal("0.5"), spendable=True)
    assert utxo.to_spend_input() == SpendInput(txid="b" * 64, vout=3)


def test_unspent_output_is_immutable():
    utxo = UnspentOutput(txid="b" * 64, vout=3, amount=Decimal("0.5"))
    with pytest.raises(ValidationError):
        utxo.vout = 4


def test_destination_amount_formatting():
    dest = Destination(address="bcrt1qdest", amount=Decimal("0.0001"))
    assert dest.to_rpc() == {"bcrt1qdest": "0.00010000"}


def test_destination_parse():
    dest = Destination.parse("bcrt1qdest=0.5")
    assert dest.address == "bcrt1qdest"
    assert dest.amount == Decimal("0.5")


@pytest.mark.parametrize("text", ["bcrt1qdest", "=0.1", "bcrt1qdest=", "bcrt1qdest=abc"])
def test_destination_parse_invalid(text):
    with pytest.raises(ValueError):
        Destination.parse(text)


def test_destination_amount_must_be_positive():
    with pytest.raises(ValidationError):
        Destination(address="bcrt1qdest", amount=Decimal("0"))


def test_funded_psbt_change_position():
    assert FundedPsbt(psbt="p", fee=Decimal("0.0001"), changepos=1).has_change
    assert not FundedPsbt(psbt="p", fee=Decimal("0.0001"), changepos=-1).has_change
    with pytest.raises(ValidationError):
        FundedPsbt(psbt="p", fee=Decimal("0.0001"), changepos=-2)


def test_finalization_incomplete_without_hex():
    result = FinalizationResult(psbt="p", complete=False)
    assert result.hex is None


def test_finalization_complete_requires_hex():
    with pytest.raises(ValidationError):
        FinalizationResult(complete=True)


def test_rpc_response_string_error():
    response = RpcResponse.model_validate({"result": None, "error": "boom", "id": 1})
    assert response.error is not None
    assert response.error.message == "boom"
    assert response.error.code is None


def test_destination_small_amount_plain_notation():
    dest = Destination(address="bcrt1qdest", amount=Decimal("0.00000002"))
    assert dest.to_rpc() == {"bcrt1qdest": "0.00000002"}


@pytest.mark.parametrize("amount", ["0.000000015", "1e30"])
def test_destination_rejects_unrepresentable_amount(amount):
    with pytest.raises(ValidationError):
        Destination(address="bcrt1qdest", amount=Decimal(amount))


def test_destination_parse_sub_satoshi():
    with pytest.raises(ValueError):
        Destination.parse("bcrt1qdest=0.000000015")
