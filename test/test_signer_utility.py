#!/usr/bin/env python3
"""Tests for RemoteSigner class.

This module tests the signing daemon client including socket
communication, CBOR decoding and vote signing.
"""

import unittest
from unittest.mock import AsyncMock, MagicMock, Mock, patch

import cbor2
import httpx
import pytest

from poly_voter.exceptions import SignerError
from poly_voter.utils.signer_utility import RemoteSigner


def mock_async_client(mock_client_class, body):
    """Wire a patched httpx.AsyncClient to return body from post."""
    mock_client = AsyncMock()
    mock_response = MagicMock()
    mock_response.json = MagicMock(return_value=body)
    mock_response.raise_for_status = MagicMock()
    mock_client.post = AsyncMock(return_value=mock_response)
    mock_client_class.return_value.__aenter__.return_value = mock_client
    return mock_client


class TestRemoteSigner(unittest.IsolatedAsyncioTestCase):
    """Test cases for RemoteSigner class."""

    def setUp(self):
        """Set up test fixtures."""
        self.signer = RemoteSigner()
        self.payload = bytes.fromhex("20" + "ab" * 32)

    async def test_init_default(self):
        """Test default initialization."""
        signer = RemoteSigner()
        assert signer.url == ''
        assert signer.timeout == 30.0
        assert signer.address is None

    @patch('poly_voter.utils.signer_utility.httpx.AsyncClient')
    async def test_signer_post_unix_socket(self, mock_client_class):
        """Test _signer_post using the default unix domain socket."""
        mock_client = mock_async_client(mock_client_class, {"result": "success"})

        result = await self.signer._signer_post("/test/path", {"test": "data"})

        transport_arg = mock_client_class.call_args[1]['transport']
        assert isinstance(transport_arg, httpx.AsyncHTTPTransport)
        mock_client.post.assert_called_once_with(
            "http://localhost/test/path",
            json={"test": "data"},
            timeout=30.0
        )
        assert result == {"result": "success"}

    @patch('poly_voter.utils.signer_utility.httpx.AsyncClient')
    async def test_signer_post_http_url(self, mock_client_class):
        """Test _signer_post using an HTTP URL and custom timeout."""
        mock_client = mock_async_client(mock_client_class, {"result": "success"})

        signer = RemoteSigner("http://signer.local:9000", timeout=5)
        await signer._signer_post("/test/path", {"test": "data"})

        assert mock_client_class.call_args[1]['transport'] is None
        mock_client.post.assert_called_once_with(
            "http://signer.local:9000/test/path",
            json={"test": "data"},
            timeout=5
        )

    @patch('poly_voter.utils.signer_utility.httpx.AsyncClient')
    async def test_signer_post_trailing_slash(self, mock_client_class):
        mock_client = mock_async_client(mock_client_class, {})

        await RemoteSigner("https://signer.local/")._signer_post("/poly/v1/keys/address", {})

        assert mock_client.post.call_args[0][0] == "https://signer.local/poly/v1/keys/address"

    @patch('poly_voter.utils.signer_utility.httpx.AsyncClient')
    async def test_signer_post_error_handling(self, mock_client_class):
        """HTTP errors from the daemon propagate."""
        mock_client = AsyncMock()
        mock_response = MagicMock()
        mock_response.raise_for_status = MagicMock(side_effect=httpx.HTTPStatusError(
            "Server error", request=Mock(), response=Mock()
        ))
        mock_client.post = AsyncMock(return_value=mock_response)
        mock_client_class.return_value.__aenter__.return_value = mock_client

        with pytest.raises(httpx.HTTPStatusError):
            await self.signer._signer_post("/test/path", {})

    async def test_fetch_address(self):
        """The voter address is fetched and remembered."""
        with patch.object(self.signer, '_signer_post', new_callable=AsyncMock) as mock_post:
            mock_post.return_value = {"address": "AQf4Mzu1YJrhz9f3aRkkwSm9n3qhXGSh4p"}

            address = await self.signer.fetch_address()

            mock_post.assert_called_once_with('/poly/v1/keys/address', {"kind": "poly"})
            assert address == "AQf4Mzu1YJrhz9f3aRkkwSm9n3qhXGSh4p"
            assert self.signer.address == address

    async def test_fetch_address_missing(self):
        with patch.object(self.signer, '_signer_post', new_callable=AsyncMock) as mock_post:
            mock_post.return_value = {}

            with pytest.raises(SignerError, match="no address"):
                await self.signer.fetch_address()

    async def test_decode_cbor_response(self):
        """Test CBOR response decoding."""
        encoded = cbor2.dumps({"ok": {"raw_tx": b"\x01\x02"}}).hex()
        assert self.signer._decode_cbor_response(encoded) == {"ok": {"raw_tx": b"\x01\x02"}}

    async def test_decode_cbor_response_invalid(self):
        """A reply that is not hex CBOR is a signer error."""
        with pytest.raises(SignerError, match="Undecodable"):
            self.signer._decode_cbor_response("zz-not-hex")
        with pytest.raises(SignerError, match="Undecodable"):
            self.signer._decode_cbor_response("1a00")

    async def test_sign_vote_garbled_reply(self):
        with patch.object(self.signer, '_signer_post', new_callable=AsyncMock) as mock_post:
            mock_post.return_value = {"data": "not-cbor"}

            with pytest.raises(SignerError):
                await self.signer.sign_vote(19, self.payload, 1234)

    async def test_sign_vote_success(self):
        """A signed transaction is returned as bytes."""
        with patch.object(self.signer, '_signer_post', new_callable=AsyncMock) as mock_post:
            mock_post.return_value = {"data": cbor2.dumps({"ok": {"raw_tx": b"\xde\xad\xbe\xef"}}).hex()}

            raw_tx = await self.signer.sign_vote(19, self.payload, 1234)

            assert raw_tx == b"\xde\xad\xbe\xef"
            path, request = mock_post.call_args[0]
            assert path == '/poly/v1/tx/sign-import-outer-transfer'
            data = request["tx"]["data"]
            assert data["source_chain_id"] == 19
            assert data["value"] == self.payload.hex()
            assert data["height"] == 1234
            assert data["proof"] == ""
            assert data["header_or_cross_chain_msg"] == ""

    async def test_sign_vote_refused(self):
        with patch.object(self.signer, '_signer_post', new_callable=AsyncMock) as mock_post:
            mock_post.return_value = {"data": cbor2.dumps({"error": "key locked"}).hex()}

            with pytest.raises(SignerError, match="key locked"):
                await self.signer.sign_vote(19, self.payload, 1234)

    async def test_sign_vote_missing_raw_tx(self):
        with patch.object(self.signer, '_signer_post', new_callable=AsyncMock) as mock_post:
            mock_post.return_value = {"data": cbor2.dumps({"ok": {}}).hex()}

            with pytest.raises(SignerError, match="no raw transaction"):
                await self.signer.sign_vote(19, self.payload, 1234)

    async def test_sign_vote_unknown_format(self):
        with patch.object(self.signer, '_signer_post', new_callable=AsyncMock) as mock_post:
            mock_post.return_value = {"data": cbor2.dumps({"status": "pending"}).hex()}

            with pytest.raises(SignerError, match="Unknown signer response"):
                await self.signer.sign_vote(19, self.payload, 1234)

    async def test_sign_vote_no_data(self):
        with patch.object(self.signer, '_signer_post', new_callable=AsyncMock) as mock_post:
            mock_post.return_value = {}

            with pytest.raises(SignerError, match="no data"):
                await self.signer.sign_vote(19, self.payload, 1234)


if __name__ == '__main__':
    unittest.main()
