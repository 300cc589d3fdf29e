"""Configuration management for the poly voter.

This module provides type-safe configuration dataclasses with validation
for the voter. Configuration is loaded once at startup, either from
environment variables or from a JSON file.
"""

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Union
from urllib.parse import urlparse

from web3 import Web3

from .utils.signer_utility import DEFAULT_SIGNER_SOCKET

logger = logging.getLogger(__name__)

MAX_UINT64 = 2**64 - 1


def _validate_http_url(url: str, name: str) -> None:
    if not url:
        raise ValueError(f"{name} is required")
    parsed = urlparse(url)
    if parsed.scheme not in ('http', 'https'):
        raise ValueError(
            f"Invalid {name} scheme: {parsed.scheme}. Expected http or https"
        )


def _split_list(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _string_tuple(value: Any, name: str) -> tuple[str, ...]:
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
        raise ValueError(f"{name} must be a list of strings, got {type(value).__name__}")
    for item in value:
        if not isinstance(item, str) or not item:
            raise ValueError(f"{name} entries must be non-empty strings, got {item!r}")
    return tuple(value)


def _validate_uint64(value: Any, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if not 0 <= value <= MAX_UINT64:
        raise ValueError(f"{name} must be between 0 and {MAX_UINT64}, got {value}")


def _int_from_env(name: str, default: str) -> int:
    raw = os.environ.get(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True, slots=True)
class SourceChainConfig:
    """Configuration for the source chain.

    Attributes:
        rpc_urls: Equivalent HTTP(S) RPC endpoints, one is picked per cycle
        side_chain_id: Identifier of the source chain as registered on Poly
        bridge_contract_address: Checksummed address of the cross chain manager
    """

    rpc_urls: tuple[str, ...]
    side_chain_id: int
    bridge_contract_address: str

    def __post_init__(self) -> None:
        """Validate source chain configuration."""
        rpc_urls = _string_tuple(self.rpc_urls, "Source RPC URLs")
        if not rpc_urls:
            raise ValueError("At least one source RPC URL is required (SOURCE_RPC_URLS)")
        object.__setattr__(self, 'rpc_urls', rpc_urls)
        for url in self.rpc_urls:
            _validate_http_url(url, "source RPC URL")

        _validate_uint64(self.side_chain_id, "Side chain id")

        if not self.bridge_contract_address:
            raise ValueError(
                "Bridge contract address is required (BRIDGE_CONTRACT_ADDRESS)"
            )
        if not Web3.is_address(self.bridge_contract_address):
            raise ValueError(
                f"Invalid bridge contract address: {self.bridge_contract_address}"
            )

        checksummed = Web3.to_checksum_address(self.bridge_contract_address)
        if checksummed != self.bridge_contract_address:
            object.__setattr__(self, 'bridge_contract_address', checksummed)


@dataclass(frozen=True, slots=True)
class DestinationChainConfig:
    """Configuration for the Poly destination chain.

    Attributes:
        rpc_url: Poly node JSON-RPC endpoint
        signer_url: Unix socket path or http(s) URL of the vote signing service
    """

    rpc_url: str
    signer_url: str = DEFAULT_SIGNER_SOCKET

    def __post_init__(self) -> None:
        _validate_http_url(self.rpc_url, "Poly RPC URL")
        if not self.signer_url:
            raise ValueError("Signer URL must not be empty (SIGNER_URL)")


@dataclass(frozen=True, slots=True)
class MonitoringConfig:
    """Configuration for polling and retries."""
    polling_interval: float = 2  # seconds between head polls
    retry_interval: float = 1  # seconds between event fetch retries
    request_timeout: int = 30  # HTTP request timeout in seconds

    def __post_init__(self) -> None:
        if self.polling_interval <= 0:
            raise ValueError(f"Polling interval must be positive, got {self.polling_interval}")
        if self.polling_interval > 300:
            raise ValueError(f"Polling interval too long (max 300s), got {self.polling_interval}")

        if self.retry_interval <= 0:
            raise ValueError(f"Retry interval must be positive, got {self.retry_interval}")
        if self.retry_interval > 60:
            raise ValueError(f"Retry interval too long (max 60s), got {self.retry_interval}")

        if self.request_timeout <= 0:
            raise ValueError(f"Request timeout must be positive, got {self.request_timeout}")
        if self.request_timeout > 120:
            raise ValueError(f"Request timeout too long (max 120s), got {self.request_timeout}")


@dataclass(frozen=True, slots=True)
class RelayerConfig:
    """Main configuration for the poly voter.

    Attributes:
        source_chain: Source chain endpoints and bridge contract
        destination_chain: Poly endpoint and signer location
        monitoring: Polling and retry timings
        checkpoint_dir: Directory holding the checkpoint database
        whitelist_methods: Target contract methods allowed to be relayed
        start_height: Operator override of the persisted checkpoint (0 = none)
    """

    source_chain: SourceChainConfig
    destination_chain: DestinationChainConfig
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)
    checkpoint_dir: str = "./db"
    whitelist_methods: tuple[str, ...] = ("unlock",)
    start_height: int = 0

    def __post_init__(self) -> None:
        if not self.checkpoint_dir:
            raise ValueError("Checkpoint directory is required (CHECKPOINT_DIR)")
        object.__setattr__(
            self, 'whitelist_methods', _string_tuple(self.whitelist_methods, "Whitelist methods")
        )
        _validate_uint64(self.start_height, "Start height")

    @property
    def whitelist(self) -> frozenset[str]:
        return frozenset(self.whitelist_methods)

    @classmethod
    def from_env(cls) -> "RelayerConfig":
        """Load configuration from environment variables.

        Returns:
            RelayerConfig instance with loaded values

        Raises:
            ValueError: If required environment variables are missing or invalid
        """
        rpc_urls = _split_list(os.environ.get("SOURCE_RPC_URLS", ""))
        if not rpc_urls:
            raise ValueError(
                "SOURCE_RPC_URLS environment variable is required. "
                "Comma separated list of source chain RPC endpoints."
            )

        bridge_address = os.environ.get("BRIDGE_CONTRACT_ADDRESS", "")
        if not bridge_address:
            raise ValueError(
                "BRIDGE_CONTRACT_ADDRESS environment variable is required. "
                "This should be the cross chain manager contract on the source chain."
            )

        if "SOURCE_SIDE_CHAIN_ID" not in os.environ:
            raise ValueError(
                "SOURCE_SIDE_CHAIN_ID environment variable is required. "
                "This is the source chain id registered on Poly."
            )

        poly_rpc_url = os.environ.get("POLY_RPC_URL", "")
        if not poly_rpc_url:
            raise ValueError(
                "POLY_RPC_URL environment variable is required. "
                "Example: http://127.0.0.1:20336"
            )

        source_config = SourceChainConfig(
            rpc_urls=rpc_urls,
            side_chain_id=_int_from_env("SOURCE_SIDE_CHAIN_ID", "0"),
            bridge_contract_address=bridge_address,
        )

        destination_config = DestinationChainConfig(
            rpc_url=poly_rpc_url,
            signer_url=os.environ.get("SIGNER_URL", DEFAULT_SIGNER_SOCKET),
        )

        monitoring_config = MonitoringConfig(
            polling_interval=float(os.environ.get("POLLING_INTERVAL", "2")),
            retry_interval=float(os.environ.get("RETRY_INTERVAL", "1")),
            request_timeout=_int_from_env("REQUEST_TIMEOUT", "30"),
        )

        return cls(
            source_chain=source_config,
            destination_chain=destination_config,
            monitoring=monitoring_config,
            checkpoint_dir=os.environ.get("CHECKPOINT_DIR", "./db"),
            whitelist_methods=_split_list(os.environ.get("WHITELIST_METHODS", "unlock")),
            start_height=_int_from_env("START_HEIGHT", "0"),
        )

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "RelayerConfig":
        """Load configuration from a JSON file.

        Raises:
            ValueError: If the file is unreadable, not JSON, or invalid
        """
        config_path = Path(path)
        try:
            with config_path.open() as file:
                data: dict[str, Any] = json.load(file)
        except OSError as e:
            raise ValueError(f"Cannot read config file {config_path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ValueError(f"Config file {config_path} is not valid JSON: {e}") from e

        try:
            source = data["source_chain"]
            destination = data["destination_chain"]
            return cls(
                source_chain=SourceChainConfig(
                    rpc_urls=source["rpc_urls"],
                    side_chain_id=int(source["side_chain_id"]),
                    bridge_contract_address=source["bridge_contract_address"],
                ),
                destination_chain=DestinationChainConfig(
                    rpc_url=destination["rpc_url"],
                    signer_url=destination.get("signer_url", DEFAULT_SIGNER_SOCKET),
                ),
                monitoring=MonitoringConfig(**data.get("monitoring", {})),
                checkpoint_dir=data.get("checkpoint_dir", "./db"),
                whitelist_methods=data.get("whitelist_methods", ("unlock",)),
                start_height=int(data.get("start_height", 0)),
            )
        except KeyError as e:
            raise ValueError(f"Config file {config_path} is missing key {e}") from None
        except TypeError as e:
            raise ValueError(f"Config file {config_path} has an invalid entry: {e}") from None

    def with_start_height(self, start_height: int) -> "RelayerConfig":
        """Return a copy with the startup override replaced."""
        return replace(self, start_height=start_height)

    def log_config(self) -> None:
        """Log the configuration in a readable format for debugging."""
        logger.info("=" * 60)
        logger.info("Poly Voter Configuration")
        logger.info("=" * 60)

        logger.info("Source Chain:")
        for url in self.source_chain.rpc_urls:
            logger.info(f"  RPC URL: {url}")
        logger.info(f"  Side Chain ID: {self.source_chain.side_chain_id}")
        logger.info(f"  Bridge Contract: {self.source_chain.bridge_contract_address}")

        logger.info("Destination Chain (Poly):")
        logger.info(f"  RPC URL: {self.destination_chain.rpc_url}")
        logger.info("  Signer: [CONFIGURED]")

        logger.info("Monitoring Settings:")
        logger.info(f"  Polling Interval: {self.monitoring.polling_interval} seconds")
        logger.info(f"  Retry Interval: {self.monitoring.retry_interval} seconds")
        logger.info(f"  Request Timeout: {self.monitoring.request_timeout} seconds")

        logger.info("Voter Settings:")
        logger.info(f"  Checkpoint Dir: {self.checkpoint_dir}")
        logger.info(f"  Whitelisted Methods: {', '.join(self.whitelist_methods) or '(none)'}")
        if self.start_height:
            logger.info(f"  Forced Start Height: {self.start_height}")

        logger.info("=" * 60)
