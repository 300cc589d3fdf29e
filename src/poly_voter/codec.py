"""
Cross-chain payload codec for the poly voter.

This module decodes the Poly zero-copy serialization used by the bridge
contract to pack MakeTxParam payloads into CrossChainEvent logs.
"""

import logging
import struct

from .exceptions import CodecError
from .models import MakeTxParam

logger = logging.getLogger(__name__)


class ZeroCopySource:
    """Sequential reader over a serialized payload."""

    def __init__(self, data: bytes) -> None:
        self.data = bytes(data)
        self.offset = 0

    def remaining(self) -> int:
        return len(self.data) - self.offset

    def next_bytes(self, size: int) -> bytes:
        if size < 0 or size > self.remaining():
            raise CodecError(
                f"Unexpected end of payload: need {size} bytes at offset {self.offset}, "
                f"{self.remaining()} left"
            )
        chunk = self.data[self.offset:self.offset + size]
        self.offset += size
        return chunk

    def next_byte(self) -> int:
        return self.next_bytes(1)[0]

    def next_uint16(self) -> int:
        return struct.unpack("<H", self.next_bytes(2))[0]

    def next_uint32(self) -> int:
        return struct.unpack("<I", self.next_bytes(4))[0]

    def next_uint64(self) -> int:
        return struct.unpack("<Q", self.next_bytes(8))[0]

    def next_var_uint(self) -> int:
        """
        Read a variable-length unsigned integer.

        Values that fit a shorter form are rejected so that every integer has
        exactly one valid encoding.
        """
        prefix = self.next_byte()
        match prefix:
            case 0xFD:
                value = self.next_uint16()
                minimum = 0xFD
            case 0xFE:
                value = self.next_uint32()
                minimum = 0x10000
            case 0xFF:
                value = self.next_uint64()
                minimum = 0x100000000
            case _:
                return prefix

        if value < minimum:
            raise CodecError(f"Non-canonical var-uint 0x{prefix:02x} encoding of {value}")
        return value

    def next_var_bytes(self) -> bytes:
        return self.next_bytes(self.next_var_uint())

    def next_string(self) -> str:
        raw = self.next_var_bytes()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CodecError(f"Invalid UTF-8 string in payload: {e}") from e


def decode_make_tx_param(data: bytes) -> MakeTxParam:
    """
    Decode a MakeTxParam payload.

    Args:
        data: Raw payload bytes from a CrossChainEvent log

    Returns:
        The decoded MakeTxParam

    Raises:
        CodecError: If the payload is truncated or malformed
    """
    source = ZeroCopySource(data)
    param = MakeTxParam(
        tx_hash=source.next_var_bytes(),
        cross_chain_id=source.next_var_bytes(),
        from_contract=source.next_var_bytes(),
        to_chain_id=source.next_uint64(),
        to_contract=source.next_var_bytes(),
        method=source.next_string(),
        args=source.next_var_bytes(),
    )
    if source.remaining():
        logger.debug(f"Ignoring {source.remaining()} trailing bytes after MakeTxParam")
    return param
