"""
psbtcoord - Multi-party PSBT coordination against a Bitcoin Core node

Funds, joins, signs, combines, finalizes and broadcasts a partially signed
transaction through the node's JSON-RPC interface.
"""

__version__ = "0.1.0"

from psbtcoord.broadcaster import Broadcaster
from psbtcoord.config import RpcConfig, Settings, get_settings
from psbtcoord.decoder import decode, expect
from psbtcoord.errors import (
    BroadcastError,
    CombineError,
    ConfigurationError,
    DecodeError,
    DomainError,
    FundingError,
    IncompleteTransactionError,
    InvalidTransitionError,
    JoinError,
    ProtocolError,
    PsbtCoordError,
    SelectionError,
    SigningError,
    TransportError,
)
from psbtcoord.handoff import PsbtHandoff, resolve_counterparty
from psbtcoord.lifecycle import PipelineReport, PsbtLifecycle, PsbtState
from psbtcoord.models import (
    Destination,
    FinalizationResult,
    FundedPsbt,
    RpcResponse,
    SigningResult,
    SpendInput,
    UnspentOutput,
)
from psbtcoord.rpc import RpcTransport
from psbtcoord.selector import list_unspent, select_output

__all__ = [
    "Broadcaster",
    "BroadcastError",
    "CombineError",
    "ConfigurationError",
    "DecodeError",
    "Destination",
    "DomainError",
    "FinalizationResult",
    "FundedPsbt",
    "FundingError",
    "IncompleteTransactionError",
    "InvalidTransitionError",
    "JoinError",
    "PipelineReport",
    "ProtocolError",
    "PsbtCoordError",
    "PsbtHandoff",
    "PsbtLifecycle",
    "PsbtState",
    "RpcConfig",
    "RpcResponse",
    "RpcTransport",
    "SelectionError",
    "Settings",
    "SigningError",
    "SigningResult",
    "SpendInput",
    "TransportError",
    "UnspentOutput",
    "decode",
    "expect",
    "get_settings",
    "list_unspent",
    "resolve_counterparty",
    "select_output",
]
