"""
Poly voter relay engine.

This module contains the main service loop: it polls the source chain head,
walks every confirmed height in order, hands each height's events to the
EventProcessor and checkpoints progress once a whole range is relayed.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Optional

from .checkpoint import CheckpointStore
from .config import RelayerConfig
from .event_processor import EventProcessor
from .exceptions import CheckpointError
from .models import CrossChainEvent, RelayerState
from .utils.poly_client import PolyClient, VoteSigner
from .utils.signer_utility import RemoteSigner
from .utils.source_client import SourceChainClient, SourcePool

logger = logging.getLogger(__name__)

# Most recent source blocks that are never relayed from
CONFIRMATION_BLOCKS = 1


class PolyVoter:
    """
    Relays source chain CrossChainEvent logs to Poly as votes.

    The engine owns the in-memory height cursor. The checkpoint store only
    ever receives a cursor whose whole preceding range was relayed.
    """

    def __init__(
        self,
        config: RelayerConfig,
        source_pool: SourcePool,
        destination: PolyClient,
        signer: VoteSigner,
        checkpoint_store: CheckpointStore,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None
    ):
        """
        Initialize the voter.

        Args:
            config: Voter configuration
            source_pool: Source chain endpoints
            destination: Poly chain client
            signer: Vote signer
            checkpoint_store: Durable height cursor
            sleep: Replacement for the interruptible wait used by the timer and retries
        """
        self.config = config
        self.source_pool = source_pool
        self.destination = destination
        self.signer = signer
        self.checkpoint_store = checkpoint_store

        self.event_processor = EventProcessor(
            bridge_contract_address=config.source_chain.bridge_contract_address,
            whitelist_methods=config.whitelist,
            side_chain_id=config.source_chain.side_chain_id,
            destination=destination,
            signer=signer
        )

        self.state = RelayerState.IDLE
        self.next_height = 0
        self.persisted_height: Optional[int] = None

        self.shutdown_event = asyncio.Event()
        self._sleep = sleep or self._interruptible_sleep

    @classmethod
    async def connect(cls, config: RelayerConfig) -> "PolyVoter":
        """
        Build a voter from configuration and dial its collaborators.

        Raises:
            CheckpointError: If the checkpoint store cannot be opened
            PolyRpcError, SignerError, httpx.HTTPError: If Poly or the signer is unreachable
        """
        checkpoint_store = CheckpointStore(config.checkpoint_dir)
        try:
            source_pool = SourcePool.from_urls(
                config.source_chain.rpc_urls,
                config.source_chain.bridge_contract_address,
                request_timeout=config.monitoring.request_timeout
            )
            destination = PolyClient(
                config.destination_chain.rpc_url,
                request_timeout=config.monitoring.request_timeout
            )
            poly_height = await destination.get_block_count()
            logger.info(f"Connected to Poly at {config.destination_chain.rpc_url}, height {poly_height}")

            signer = RemoteSigner(
                config.destination_chain.signer_url,
                timeout=config.monitoring.request_timeout
            )
            address = await signer.fetch_address()
        except Exception:
            checkpoint_store.close()
            raise

        logger.info(f"voter {address}")
        return cls(config, source_pool, destination, signer, checkpoint_store)

    def load_start_height(self) -> int:
        """Persisted cursor, unless the operator forced a start height."""
        persisted = self.checkpoint_store.get_height()
        self.persisted_height = persisted
        if self.config.start_height > 0:
            logger.info(
                f"Start height forced to {self.config.start_height} "
                f"(persisted checkpoint was {persisted})"
            )
            return self.config.start_height
        return persisted

    async def _interruptible_sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self.shutdown_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def run(self) -> None:
        """Main loop: one cycle per polling interval until stopped."""
        self.next_height = self.load_start_height()
        self.state = RelayerState.IDLE
        logger.info(f"Poly voter starting at source height {self.next_height}")
        logger.info(f"Polling interval: {self.config.monitoring.polling_interval}s")

        try:
            while not self.shutdown_event.is_set():
                await self._sleep(self.config.monitoring.polling_interval)
                if self.shutdown_event.is_set():
                    break
                await self.run_cycle()
        except Exception as e:
            logger.error(f"Error in main loop: {e}", exc_info=True)
            raise
        finally:
            self.state = RelayerState.STOPPED
            logger.info(f"Poly voter stopped: {self.get_status()}")

    async def run_cycle(self) -> None:
        """
        Relay every confirmed height past the cursor, then checkpoint.

        Nothing is persisted when the cycle is interrupted by a shutdown.
        """
        client = self.source_pool.choose()
        try:
            height = client.current_height()
        except Exception as e:
            logger.warning(f"Failed to read source height from {getattr(client, 'rpc_url', client)}: {e}")
            return

        if self.next_height + CONFIRMATION_BLOCKS >= height:
            return

        self.state = RelayerState.CATCHING_UP
        frontier = height - CONFIRMATION_BLOCKS
        logger.debug(f"Catching up from {self.next_height} to {frontier} (source head {height})")

        while self.next_height < frontier:
            if self.shutdown_event.is_set():
                self.state = RelayerState.STOPPED
                logger.info("Quitting from signal...")
                return

            logger.info(f"Handling source height: {self.next_height}")
            events = await self.fetch_events(client, self.next_height)
            if events is None:
                self.state = RelayerState.STOPPED
                logger.info("Quitting from signal...")
                return

            await self.event_processor.process_height(self.next_height, events)
            self.next_height += 1

        self.persist()
        self.event_processor.log_metrics()
        self.state = RelayerState.IDLE

    async def fetch_events(self, client: SourceChainClient, height: int) -> Optional[list[CrossChainEvent]]:
        """
        Fetch events at height, retrying the same height until it succeeds.

        Returns:
            The events, or None if a shutdown was requested first
        """
        attempt = 0
        while not self.shutdown_event.is_set():
            try:
                return client.events_at(height)
            except Exception as e:
                attempt += 1
                logger.warning(f"Fetching events at height {height} failed (attempt {attempt}): {e}")
                await self._sleep(self.config.monitoring.retry_interval)
        return None

    def persist(self) -> bool:
        """Store the cursor; on failure keep it in memory for the next cycle."""
        try:
            self.checkpoint_store.set_height(self.next_height)
        except CheckpointError as e:
            logger.warning(f"Persisting source height {self.next_height} failed: {e}")
            return False
        self.persisted_height = self.next_height
        return True

    def get_status(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "next_height": self.next_height,
            "persisted_height": self.persisted_height,
            "source_endpoints": len(self.source_pool),
            **self.event_processor.get_stats(),
        }

    def stop(self) -> None:
        """Stop the voter service."""
        self.shutdown_event.set()

    def close(self) -> None:
        self.checkpoint_store.close()
