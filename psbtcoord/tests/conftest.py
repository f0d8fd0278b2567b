"""
Test configuration for psbtcoord tests.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from fakes import FakeNode, SimulatedNode

from psbtcoord.config import RpcConfig
from psbtcoord.models import Destination, SpendInput


@pytest.fixture
def rpc_config() -> RpcConfig:
    return RpcConfig(
        url="http://127.0.0.1:18443",
        user="rpcuser",
        password="rpcpassword",
        wallet="codeplanet",
    )


@pytest.fixture
def spend_input() -> SpendInput:
    return SpendInput(txid="a" * 64, vout=1)


@pytest.fixture
def destinations() -> list[Destination]:
    return [
        Destination(
            address="bcrt1qpfk7t93jfl240a4qv78kplqvqntxafg03rx68p", amount=Decimal("0.0001")
        )
    ]


@pytest.fixture
def fake_node() -> FakeNode:
    return FakeNode()


@pytest.fixture
def two_party_node() -> SimulatedNode:
    return SimulatedNode(["alice", "bob"])
