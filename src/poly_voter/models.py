"""
Shared data models for the poly voter.

This module contains data classes and types used across the voter components.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class RelayerState(Enum):
    """Lifecycle state of the relay engine."""
    IDLE = "idle"
    CATCHING_UP = "catching_up"
    STOPPED = "stopped"


@dataclass(frozen=True, slots=True)
class CrossChainEvent:
    """A CrossChainEvent log emitted by the bridge contract on the source chain.

    Attributes:
        height: Source block number where the event was emitted
        contract_address: Address of the contract that emitted the log
        tx_hash: Source chain transaction hash
        tx_id: Transfer index assigned by the bridge contract
        to_chain_id: Destination chain selector
        raw_data: Serialized MakeTxParam payload
        log_index: Position of the log in the block
    """
    height: int
    contract_address: str
    tx_hash: bytes
    tx_id: bytes
    to_chain_id: int
    raw_data: bytes
    log_index: int = 0

    @property
    def tx_index(self) -> str:
        """Transfer index as the big-endian hex string the bridge logs use."""
        index = int.from_bytes(self.tx_id, "big")
        if index == 0:
            return "00"
        return index.to_bytes((index.bit_length() + 7) // 8, "big").hex()


@dataclass(frozen=True, slots=True)
class MakeTxParam:
    """Decoded cross-chain parameters carried in an event payload.

    The cross_chain_id is the stable identifier the destination chain uses
    to mark a transfer as done.
    """
    tx_hash: bytes
    cross_chain_id: bytes
    from_contract: bytes
    to_chain_id: int
    to_contract: bytes
    method: str
    args: bytes

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "tx_hash": self.tx_hash.hex(),
            "cross_chain_id": self.cross_chain_id.hex(),
            "from_contract": self.from_contract.hex(),
            "to_chain_id": self.to_chain_id,
            "to_contract": self.to_contract.hex(),
            "method": self.method,
            "args": self.args.hex(),
        }


@dataclass(frozen=True, slots=True)
class VoteSubmission:
    """A vote sent to the destination chain. Never persisted locally."""
    height: int
    payload: bytes
    source_tx_hash: bytes
