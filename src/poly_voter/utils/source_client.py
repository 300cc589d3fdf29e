"""
Source chain access for the poly voter.

Each SourceChainClient wraps one HTTP RPC endpoint and the bridge contract
bound at that endpoint. SourcePool holds the equivalent endpoints and picks
one per polling cycle.
"""

import logging
import random
from collections.abc import Sequence
from typing import Any, Optional

from hexbytes import HexBytes
from web3 import Web3
from web3.types import EventData

from ..models import CrossChainEvent
from .contract_utility import get_contract_abi


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray, HexBytes)):
        return bytes(value)
    if isinstance(value, str):
        return Web3.to_bytes(hexstr=value)
    raise TypeError(f"Cannot convert {type(value).__name__} to bytes")


class SourceChainClient:
    """
    Reads heights and CrossChainEvent logs from one source chain endpoint.

    """

    EVENT_NAME = "CrossChainEvent"

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        request_timeout: int = 30,
        w3: Optional[Web3] = None
    ):
        """
        Initialize the source chain client.

        Args:
            rpc_url: HTTP RPC endpoint URL
            contract_address: Address of the bridge contract
            request_timeout: HTTP request timeout in seconds
            w3: Preconfigured Web3 instance (defaults to an HTTP provider on rpc_url)
        """
        self.rpc_url = rpc_url
        self.contract_address = Web3.to_checksum_address(contract_address)

        self.w3 = w3 or Web3(Web3.HTTPProvider(
            rpc_url,
            request_kwargs={'timeout': request_timeout}
        ))

        self.contract = self.w3.eth.contract(
            address=self.contract_address,
            abi=get_contract_abi("EthCrossChainManager")
        )
        self.event_obj = getattr(self.contract.events, self.EVENT_NAME)

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def current_height(self) -> int:
        """Head height as reported by this endpoint."""
        return int(self.w3.eth.block_number)

    def events_at(self, height: int) -> list[CrossChainEvent]:
        """
        Fetch all CrossChainEvent logs emitted in the block at height.

        Args:
            height: Exact block number to query

        Returns:
            Events in emission order, empty if the block has none
        """
        logs = self.event_obj.get_logs(from_block=height, to_block=height)
        events = [self._to_event(log, height) for log in logs]
        events.sort(key=lambda event: event.log_index)

        if events:
            self.logger.debug(f"Found {len(events)} {self.EVENT_NAME} logs at height {height}")
        return events

    def _to_event(self, log: EventData, height: int) -> CrossChainEvent:
        args = log['args']
        return CrossChainEvent(
            height=int(log.get('blockNumber', height)),
            contract_address=str(log['address']),
            tx_hash=_to_bytes(log['transactionHash']),
            tx_id=_to_bytes(args['txId']),
            to_chain_id=int(args['toChainId']),
            raw_data=_to_bytes(args['rawdata']),
            log_index=int(log.get('logIndex', 0)),
        )


class SourcePool:
    """Equivalent source endpoints; one is chosen uniformly at random per cycle."""

    def __init__(self, clients: Sequence[SourceChainClient], rng: Optional[random.Random] = None):
        if not clients:
            raise ValueError("Source pool needs at least one endpoint")
        self.clients = list(clients)
        self.rng = rng or random.Random()

    @classmethod
    def from_urls(
        cls,
        rpc_urls: Sequence[str],
        contract_address: str,
        request_timeout: int = 30,
        rng: Optional[random.Random] = None
    ) -> "SourcePool":
        clients = [
            SourceChainClient(url, contract_address, request_timeout=request_timeout)
            for url in rpc_urls
        ]
        return cls(clients, rng=rng)

    def choose(self) -> SourceChainClient:
        return self.rng.choice(self.clients)

    def __len__(self) -> int:
        return len(self.clients)
