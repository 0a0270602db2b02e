"""Chain access - JSON-RPC client and ABI helpers."""

from pebloq_wallet.chain.abi import AbiDecodeError
from pebloq_wallet.chain.client import CallRevertedError, ChainClient, ChainClientError, RPCError

__all__ = [
    "AbiDecodeError",
    "CallRevertedError",
    "ChainClient",
    "ChainClientError",
    "RPCError",
]
