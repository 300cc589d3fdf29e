"""
Event processor for relaying CrossChainEvent logs to Poly.

This module contains the per-event relay logic, keeping it separate from the
height iteration and checkpointing done by the relay engine.
"""

import logging
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Optional

from .codec import decode_make_tx_param
from .exceptions import CodecError
from .models import CrossChainEvent, MakeTxParam, VoteSubmission

if TYPE_CHECKING:
    from .utils.poly_client import PolyClient, VoteSigner

logger = logging.getLogger(__name__)


class EventProcessor:
    """Filters source events and submits votes for the ones that qualify.

    Responsibilities:
    - Dropping logs that were not emitted by the bridge contract
    - Decoding the MakeTxParam payload
    - Enforcing the method whitelist
    - Skipping transfers Poly has already imported
    - Submitting a vote for everything else, without retrying failures
    """

    def __init__(
        self,
        bridge_contract_address: str,
        whitelist_methods: Iterable[str],
        side_chain_id: int,
        destination: "PolyClient",
        signer: "VoteSigner"
    ) -> None:
        """Initialize the EventProcessor.

        Args:
            bridge_contract_address: Only logs from this address are relayed
            whitelist_methods: Target methods allowed to be relayed
            side_chain_id: Source chain id registered on Poly
            destination: Client for the Poly chain
            signer: Signer handed to the destination client for each vote
        """
        self.bridge_contract_address = bridge_contract_address
        self.whitelist: frozenset[str] = frozenset(whitelist_methods)
        self.side_chain_id = side_chain_id
        self.destination = destination
        self.signer = signer

        # Metrics tracking
        self.events_seen = 0
        self.events_wrong_contract = 0
        self.events_invalid = 0
        self.events_not_whitelisted = 0
        self.events_already_done = 0
        self.votes_submitted = 0
        self.submissions_failed = 0

        logger.info(
            f"EventProcessor initialized for side chain {side_chain_id} "
            f"with {len(self.whitelist)} whitelisted methods"
        )

    def is_whitelisted(self, method: str) -> bool:
        return method in self.whitelist

    async def process_height(self, height: int, events: Sequence[CrossChainEvent]) -> int:
        """
        Relay all events observed at one height, in source order.

        Args:
            height: Source height the events belong to
            events: Events as returned by the source chain

        Returns:
            Number of votes submitted
        """
        relayable = 0
        submitted = 0
        for event in events:
            outcome = await self.process_event(event, height)
            if outcome is None:
                continue
            relayable += 1
            if outcome:
                submitted += 1

        logger.info(f"Source height {height} empty: {relayable == 0}")
        return submitted

    async def process_event(
        self, event: CrossChainEvent, height: Optional[int] = None
    ) -> Optional[bool]:
        """
        Filter and relay a single event.

        Returns:
            None if a local filter dropped the event, otherwise whether a vote was submitted
        """
        if height is None:
            height = event.height
        param = self.check_event(event, height)
        if param is None:
            return None
        return await self.relay(event, param, height)

    def check_event(self, event: CrossChainEvent, height: int) -> Optional[MakeTxParam]:
        """
        Apply the local filters to one event.

        Returns:
            The decoded payload, or None if the event is dropped
        """
        self.events_seen += 1

        if event.contract_address.lower() != self.bridge_contract_address.lower():
            self.events_wrong_contract += 1
            logger.warning(
                f"Event source contract invalid: {event.contract_address}, "
                f"expect: {self.bridge_contract_address}, height: {height}"
            )
            return None

        try:
            param = decode_make_tx_param(event.raw_data)
        except CodecError as e:
            self.events_invalid += 1
            logger.warning(
                f"Undecodable payload in tx 0x{event.tx_hash.hex()} at height {height}: {e}"
            )
            return None

        if not self.is_whitelisted(param.method):
            self.events_not_whitelisted += 1
            logger.warning(f"Target contract method invalid {param.method}, height: {height}")
            return None

        logger.debug(f"Decoded payload at height {height}: {param.to_dict()}")
        return param

    async def relay(self, event: CrossChainEvent, param: MakeTxParam, height: int) -> bool:
        """
        Submit a vote for a filtered event unless Poly already imported it.

        Submission errors are logged and not retried.

        Returns:
            True if a vote was submitted
        """
        try:
            done = await self.destination.already_finalized(self.side_chain_id, param.cross_chain_id)
        except Exception as e:
            # An unanswered lookup falls through to submission
            logger.warning(
                f"Done-marker lookup failed for ccid {param.cross_chain_id.hex()} at height {height}: {e}"
            )
            done = False

        if done:
            self.events_already_done += 1
            logger.info(
                f"ccid {param.cross_chain_id.hex()} (tx_hash: 0x{event.tx_hash.hex()}) already on poly"
            )
            return False

        vote = VoteSubmission(height=height, payload=event.raw_data, source_tx_hash=event.tx_hash)
        logger.info(
            f"Submitting vote, height: {vote.height}, tx index: {event.tx_index}, "
            f"value: {vote.payload.hex()}, txhash: 0x{vote.source_tx_hash.hex()}"
        )
        try:
            poly_tx_hash = await self.destination.submit_vote(
                self.side_chain_id,
                vote.payload,
                vote.height,
                self.signer
            )
        except Exception as e:
            self.submissions_failed += 1
            logger.error(f"Vote submission failed for tx 0x{event.tx_hash.hex()} at height {height}: {e}")
            return False

        self.votes_submitted += 1
        logger.info(
            f"Vote sent to poly chain: ( poly_txhash: {poly_tx_hash}, "
            f"source_txhash: 0x{event.tx_hash.hex()}, height: {height} )"
        )
        return True

    def get_stats(self) -> dict:
        """
        Get current processor statistics.

        Returns:
            Dictionary with current counters
        """
        return {
            'events_seen': self.events_seen,
            'events_wrong_contract': self.events_wrong_contract,
            'events_invalid': self.events_invalid,
            'events_not_whitelisted': self.events_not_whitelisted,
            'events_already_done': self.events_already_done,
            'votes_submitted': self.votes_submitted,
            'submissions_failed': self.submissions_failed,
        }

    def log_metrics(self) -> None:
        stats = self.get_stats()
        logger.info(
            f"Event metrics - seen: {stats['events_seen']}, "
            f"submitted: {stats['votes_submitted']}, "
            f"failed: {stats['submissions_failed']}, "
            f"already done: {stats['events_already_done']}, "
            f"dropped: {stats['events_wrong_contract'] + stats['events_invalid'] + stats['events_not_whitelisted']}"
        )
