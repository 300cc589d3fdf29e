#!/usr/bin/env python3
"""Entry point for the poly voter service.

Loads configuration, dials the chains, and runs the relay loop until
SIGINT or SIGTERM.
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import Optional

from poly_voter.config import RelayerConfig
from poly_voter.relayer import PolyVoter

logger = logging.getLogger(__name__)


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_FILE_NAME = "poly_voter.log"


def setup_logging(level: str = "INFO", log_dir: Optional[str] = None) -> Optional[logging.Handler]:
    """Configure logging for the application.

    Args:
        level: Logging level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory that also receives a copy of the log, if given

    Returns:
        The file handler attached to the root logger, if any
    """
    log_level: int = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=log_level, format=LOG_FORMAT)

    if not log_dir:
        return None

    os.makedirs(log_dir, exist_ok=True)
    file_handler = logging.FileHandler(os.path.join(log_dir, LOG_FILE_NAME))
    file_handler.setLevel(log_level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger()
    root.addHandler(file_handler)
    root.setLevel(log_level)
    return file_handler


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Poly Voter - relay source chain cross-chain events to Poly",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Environment Variables (used when --config is not given):
  SOURCE_RPC_URLS          - Comma separated source chain RPC endpoints
  SOURCE_SIDE_CHAIN_ID     - Source chain id registered on Poly
  BRIDGE_CONTRACT_ADDRESS  - Cross chain manager contract on the source chain
  POLY_RPC_URL             - Poly node JSON-RPC endpoint
  SIGNER_URL               - Vote signer socket path or URL
  CHECKPOINT_DIR           - Checkpoint directory (default: ./db)
  WHITELIST_METHODS        - Comma separated target methods (default: unlock)
  START_HEIGHT             - Forced source start height (default: 0)
  LOG_LEVEL                - Logging level (can be overridden with --log-level)
  LOG_DIR                  - Directory for a log file copy (can be overridden with --log-dir)
        """
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a JSON configuration file"
    )
    parser.add_argument(
        "--start-height",
        type=int,
        default=0,
        help="Force the source start height, overriding the checkpoint when > 0"
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level (default: INFO)"
    )
    parser.add_argument(
        "--log-dir",
        default=os.environ.get("LOG_DIR"),
        help="Also write logs to poly_voter.log in this directory (e.g. ./Log)"
    )
    return parser.parse_args(argv)


async def main() -> None:
    """Main entry point for the poly voter.

    Raises:
        SystemExit: On configuration or startup errors
    """
    args = parse_args()
    setup_logging(args.log_level, args.log_dir)
    logger.info("=== Poly Voter Starting ===")

    try:
        config = RelayerConfig.from_file(args.config) if args.config else RelayerConfig.from_env()
        if args.start_height > 0:
            config = config.with_start_height(args.start_height)
        config.log_config()
    except ValueError as e:
        logger.error(f"Configuration Error: {e}")
        logger.error("Please check your configuration:")
        logger.error("  - SOURCE_RPC_URLS: Source chain RPC endpoints")
        logger.error("  - SOURCE_SIDE_CHAIN_ID: Source chain id registered on Poly")
        logger.error("  - BRIDGE_CONTRACT_ADDRESS: Cross chain manager contract address")
        logger.error("  - POLY_RPC_URL: Poly node JSON-RPC endpoint")
        sys.exit(1)

    try:
        voter = await PolyVoter.connect(config)
    except Exception as e:
        logger.critical(f"Startup failed: {e}", exc_info=True)
        sys.exit(1)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, voter.stop)

    try:
        await voter.run()
    except Exception as e:
        logger.error(f"Fatal Error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        voter.close()


if __name__ == "__main__":
    asyncio.run(main())
