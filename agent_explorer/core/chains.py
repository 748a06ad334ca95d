"""
Supported chain configurations.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from .models import ChainId


@dataclass(frozen=True)
class ChainConfig:
    id: ChainId
    name: str
    shortName: str
    explorerUrl: str


SUPPORTED_CHAINS: Dict[ChainId, ChainConfig] = {
    11155111: ChainConfig(11155111, "Ethereum Sepolia", "ETH", "https://sepolia.etherscan.io"),
    84532: ChainConfig(84532, "Base Sepolia", "BASE", "https://sepolia.basescan.org"),
    80002: ChainConfig(80002, "Polygon Amoy", "POL", "https://amoy.polygonscan.com"),
}

CHAIN_IDS: List[ChainId] = list(SUPPORTED_CHAINS)

DEFAULT_CHAIN_ID: ChainId = 11155111  # Ethereum Sepolia


def get_chain_config(chain_id: ChainId) -> Optional[ChainConfig]:
    return SUPPORTED_CHAINS.get(chain_id)


def get_chain_name(chain_id: ChainId) -> str:
    """Get chain name by ID (with fallback)."""
    config = SUPPORTED_CHAINS.get(chain_id)
    return config.name if config else f"Chain {chain_id}"


def get_explorer_url(chain_id: ChainId, address: str) -> str:
    """Block explorer URL for an address, or "" for unknown chains."""
    config = SUPPORTED_CHAINS.get(chain_id)
    if not config:
        return ""
    return f"{config.explorerUrl}/address/{address}"


def get_explorer_tx_url(chain_id: ChainId, tx_hash: str) -> str:
    config = SUPPORTED_CHAINS.get(chain_id)
    if not config:
        return ""
    return f"{config.explorerUrl}/tx/{tx_hash}"


def is_supported_chain(chain_id: ChainId) -> bool:
    return chain_id in SUPPORTED_CHAINS
