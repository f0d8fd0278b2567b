"""
Bitcoin Core RPC constants used by the PSBT coordinator.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum

# JSON-RPC protocol version spoken by Bitcoin Core's legacy interface
JSONRPC_VERSION = "1.0"

# Prefix for request ids, suffixed with a per-transport counter
REQUEST_ID_PREFIX = "psbtcoord"

# Timeout for RPC calls (seconds)
DEFAULT_RPC_TIMEOUT = 30.0

DEFAULT_WALLET_NAME = "codeplanet"

# Amounts are sent to the node as strings with satoshi precision
SATOSHI = Decimal("0.00000001")

# Sentinel change position returned by walletcreatefundedpsbt
NO_CHANGE_OUTPUT = -1


class RpcMethod(str, Enum):
    """Remote procedures used by the coordinator."""

    LIST_UNSPENT = "listunspent"
    CREATE_FUNDED_PSBT = "walletcreatefundedpsbt"
    JOIN_PSBTS = "joinpsbts"
    PROCESS_PSBT = "walletprocesspsbt"
    COMBINE_PSBT = "combinepsbt"
    FINALIZE_PSBT = "finalizepsbt"
    SEND_RAW_TRANSACTION = "sendrawtransaction"
