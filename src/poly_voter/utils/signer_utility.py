import logging
from typing import Any, Dict, Optional

import cbor2
import httpx

from ..exceptions import SignerError

logger = logging.getLogger(__name__)

DEFAULT_SIGNER_SOCKET = "/run/poly-signer.sock"


class RemoteSigner:
    """Signs Poly vote transactions through an external signing daemon.

    The voter key never enters this process. The daemon listens on a unix
    domain socket by default, or on an http(s) URL.
    """

    def __init__(self, url: str = '', timeout: float = 30.0):
        self.url = url
        self.timeout = timeout
        self.address: Optional[str] = None

    @property
    def is_http(self) -> bool:
        return self.url.startswith(('http://', 'https://'))

    def _transport(self) -> Optional[httpx.AsyncHTTPTransport]:
        if self.is_http:
            return None
        socket_path = self.url or DEFAULT_SIGNER_SOCKET
        logger.debug(f"Using signer socket: {socket_path}")
        return httpx.AsyncHTTPTransport(uds=socket_path)

    async def _signer_post(self, path: str, payload: Any) -> Any:
        base_url = self.url.rstrip('/') if self.is_http else "http://localhost"
        async with httpx.AsyncClient(transport=self._transport()) as client:
            response = await client.post(base_url + path, json=payload, timeout=self.timeout)
            response.raise_for_status()
            return response.json()

    async def fetch_address(self) -> str:
        """Fetch and remember the voter address the daemon signs with."""
        response = await self._signer_post('/poly/v1/keys/address', {"kind": "poly"})
        address = response.get("address") if isinstance(response, dict) else None
        if not address:
            raise SignerError(f"Signer returned no address: {response}")
        self.address = address
        return address

    @staticmethod
    def _decode_cbor_response(response_hex: str) -> Dict[str, Any]:
        """
        Decode the hex-encoded CBOR body returned by the signer.

        Raises:
            SignerError: If the body is not hex or not CBOR
        """
        try:
            decoded = cbor2.loads(bytes.fromhex(response_hex))
        except (ValueError, cbor2.CBORDecodeError) as e:
            raise SignerError(f"Undecodable signer reply: {e}") from e
        return decoded if isinstance(decoded, dict) else {"data": decoded}

    async def sign_vote(self, side_chain_id: int, payload: bytes, height: int) -> bytes:
        """
        Have the daemon build and sign an import-outer-transfer transaction.

        Args:
            side_chain_id: Source chain id registered on Poly
            payload: Raw MakeTxParam bytes from the source event
            height: Source height the event was observed at

        Returns:
            Serialized signed transaction ready for broadcast

        Raises:
            SignerError: If the daemon reports an error or an unusable reply
        """
        request = {
            "tx": {
                "kind": "import_outer_transfer",
                "data": {
                    "source_chain_id": side_chain_id,
                    "value": payload.hex(),
                    "height": height,
                    "proof": "",
                    "header_or_cross_chain_msg": "",
                },
            },
        }

        response = await self._signer_post('/poly/v1/tx/sign-import-outer-transfer', request)
        response_hex = response.get("data") if isinstance(response, dict) else None
        if not response_hex:
            raise SignerError(f"Signer returned no data: {response}")

        reply = self._decode_cbor_response(response_hex)
        if 'ok' in reply:
            raw_tx = reply['ok'].get('raw_tx') if isinstance(reply['ok'], dict) else None
            if not isinstance(raw_tx, (bytes, bytearray)) or not raw_tx:
                raise SignerError(f"Signer reply has no raw transaction: {reply}")
            return bytes(raw_tx)
        if 'error' in reply:
            logger.error(f"Signer refused vote at height {height}: {reply['error']}")
            raise SignerError(f"Signer refused vote: {reply['error']}")
        raise SignerError(f"Unknown signer response format: {reply}")
