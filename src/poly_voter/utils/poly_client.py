"""
Poly chain JSON-RPC client for the poly voter.

Covers the calls the voter needs on the destination chain: the startup dial
check, the done-marker lookup used for idempotency, and broadcasting signed
vote transactions.
"""

import logging
from typing import Any, Optional, Protocol

import httpx

from ..exceptions import PolyRpcError

logger = logging.getLogger(__name__)

# Cross chain manager native contract, in the reversed hex form Poly RPC expects
CROSS_CHAIN_MANAGER_CONTRACT = "0000000000000000000000000000000000000003"
DONE_TX_PREFIX = b"doneTx"


class VoteSigner(Protocol):
    """Anything able to produce a signed import-outer-transfer transaction."""

    address: Optional[str]

    async def sign_vote(self, side_chain_id: int, payload: bytes, height: int) -> bytes:
        ...


def done_tx_key(side_chain_id: int, cross_chain_id: bytes) -> bytes:
    """Storage key of the marker Poly writes once a cross-chain tx is imported."""
    return DONE_TX_PREFIX + side_chain_id.to_bytes(8, "little") + cross_chain_id


class PolyClient:
    """Async JSON-RPC client for a Poly node."""

    def __init__(
        self,
        rpc_url: str,
        request_timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> None:
        """
        Initialize the client.

        Args:
            rpc_url: Poly node JSON-RPC endpoint
            request_timeout: HTTP request timeout in seconds
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.rpc_url = rpc_url
        self.request_timeout = request_timeout
        self.transport = transport
        self._request_id = 0

    async def _rpc(self, method: str, params: list[Any]) -> Any:
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": self._request_id,
        }

        async with httpx.AsyncClient(transport=self.transport) as client:
            response = await client.post(self.rpc_url, json=payload, timeout=self.request_timeout)
            response.raise_for_status()
            body = response.json()

        if (code := body.get("error", 0)) != 0:
            raise PolyRpcError(method, code, body.get("desc", ""))
        return body.get("result")

    async def get_block_count(self) -> int:
        result = await self._rpc("getblockcount", [])
        return int(result)

    async def get_storage(self, contract: str, key: bytes) -> bytes:
        """Read raw storage of a native contract; empty bytes when unset."""
        result = await self._rpc("getstorage", [contract, key.hex()])
        if not result:
            return b""
        return bytes.fromhex(result)

    async def already_finalized(self, side_chain_id: int, cross_chain_id: bytes) -> bool:
        """
        Check whether Poly already imported the cross-chain tx.

        Args:
            side_chain_id: Source chain id registered on Poly
            cross_chain_id: Cross-chain id from the decoded payload

        Returns:
            True if the done marker is present
        """
        raw = await self.get_storage(
            CROSS_CHAIN_MANAGER_CONTRACT,
            done_tx_key(side_chain_id, cross_chain_id)
        )
        return len(raw) != 0

    async def send_raw_transaction(self, raw_tx: bytes) -> str:
        result = await self._rpc("sendrawtransaction", [raw_tx.hex()])
        return str(result)

    async def submit_vote(
        self,
        side_chain_id: int,
        payload: bytes,
        height: int,
        signer: VoteSigner
    ) -> str:
        """
        Sign and broadcast an import-outer-transfer vote.

        A returned hash means the transaction was accepted for broadcast, not
        that Poly confirmed it.

        Returns:
            Poly transaction hash

        Raises:
            SignerError: If signing fails
            PolyRpcError: If the node rejects the transaction
            httpx.HTTPError: On transport failures
        """
        raw_tx = await signer.sign_vote(side_chain_id, payload, height)
        tx_hash = await self.send_raw_transaction(raw_tx)
        logger.debug(f"Broadcast vote for height {height}: {tx_hash}")
        return tx_hash
