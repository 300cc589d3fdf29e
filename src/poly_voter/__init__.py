"""
Poly voter package.

Relays cross-chain deposit events from an EVM source chain to Poly as votes.
"""

from .checkpoint import CheckpointStore
from .config import RelayerConfig
from .event_processor import EventProcessor
from .models import CrossChainEvent, MakeTxParam, RelayerState
from .relayer import PolyVoter

__all__ = [
    "CheckpointStore",
    "CrossChainEvent",
    "EventProcessor",
    "MakeTxParam",
    "PolyVoter",
    "RelayerConfig",
    "RelayerState",
]
__version__ = "0.1.0"
