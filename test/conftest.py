"""Shared fixtures for the poly voter tests."""

from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from poly_voter.models import CrossChainEvent, MakeTxParam

BRIDGE_ADDRESS = "0x85BfE05492aFC3D04Ff3B2ca6771ACF6f853d90d"
OTHER_ADDRESS = "0x1f54b7AF3A462aABed01D5910a3e5911e76D4B51"


def var_uint(value: int) -> bytes:
    """Shortest Poly var-uint encoding of value."""
    if value < 0xFD:
        return bytes([value])
    if value <= 0xFFFF:
        return b"\xfd" + value.to_bytes(2, "little")
    if value <= 0xFFFFFFFF:
        return b"\xfe" + value.to_bytes(4, "little")
    return b"\xff" + value.to_bytes(8, "little")


def var_bytes(data: bytes) -> bytes:
    return var_uint(len(data)) + data


def encode_make_tx_param(param: MakeTxParam) -> bytes:
    """Serialize param in the layout the bridge contract emits."""
    return (
        var_bytes(param.tx_hash)
        + var_bytes(param.cross_chain_id)
        + var_bytes(param.from_contract)
        + param.to_chain_id.to_bytes(8, "little")
        + var_bytes(param.to_contract)
        + var_bytes(param.method.encode("utf-8"))
        + var_bytes(param.args)
    )


@pytest.fixture
def make_event():
    """Factory for CrossChainEvent objects carrying an encoded MakeTxParam."""

    def _make_event(
        height: int,
        method: str = "unlock",
        cross_chain_id: Optional[bytes] = None,
        contract_address: str = BRIDGE_ADDRESS,
        log_index: int = 0,
        raw_data: Optional[bytes] = None,
    ) -> CrossChainEvent:
        ccid = cross_chain_id or f"ccid-{height}-{log_index}".encode()
        if raw_data is None:
            raw_data = encode_make_tx_param(MakeTxParam(
                tx_hash=height.to_bytes(4, "big"),
                cross_chain_id=ccid,
                from_contract=bytes.fromhex(BRIDGE_ADDRESS[2:]),
                to_chain_id=2,
                to_contract=b"\x01" * 20,
                method=method,
                args=b"\x00",
            ))
        return CrossChainEvent(
            height=height,
            contract_address=contract_address,
            tx_hash=bytes([height % 256, log_index % 256]) * 16,
            tx_id=height.to_bytes(4, "big"),
            to_chain_id=2,
            raw_data=raw_data,
            log_index=log_index,
        )

    return _make_event


@pytest.fixture
def destination():
    """Mock Poly client: nothing finalized, every submission accepted."""
    mock = MagicMock()
    mock.already_finalized = AsyncMock(return_value=False)
    mock.submit_vote = AsyncMock(return_value="ab" * 32)
    return mock


@pytest.fixture
def signer():
    mock = MagicMock()
    mock.address = "AQf4Mzu1YJrhz9f3aRkkwSm9n3qhXGSh4p"
    return mock
