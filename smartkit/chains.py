"""
Supported chains and their ERC-4337 deployments.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict

from .config import ENTRY_POINT_V07, ZERO_ADDRESS, settings
from .core.execution.errors import UnsupportedChainError


BASE_SEPOLIA = 84532
ARBITRUM_SEPOLIA = 421614
OPTIMISM_SEPOLIA = 11155420


@dataclass(frozen=True)
class ChainConfig:
    chain_id: int
    name: str
    rpc_url: str
    entry_point_address: str
    factory_address: str
    bundler_url: str
    paymaster_url: str
    block_explorer_url: str


def _pimlico_url(chain_id: int) -> str:
    if not settings.pimlico_api_key:
        return ""
    return f"https://api.pimlico.io/v2/{chain_id}/rpc?apikey={settings.pimlico_api_key}"


def _build_registry() -> Dict[int, ChainConfig]:
    registry = {
        BASE_SEPOLIA: ChainConfig(
            chain_id=BASE_SEPOLIA,
            name="Base Sepolia",
            rpc_url="https://sepolia.base.org",
            entry_point_address=ENTRY_POINT_V07,
            factory_address=settings.factory_address,
            bundler_url=_pimlico_url(BASE_SEPOLIA),
            paymaster_url=_pimlico_url(BASE_SEPOLIA),
            block_explorer_url="https://sepolia.basescan.org",
        ),
        ARBITRUM_SEPOLIA: ChainConfig(
            chain_id=ARBITRUM_SEPOLIA,
            name="Arbitrum Sepolia",
            rpc_url="https://sepolia-rollup.arbitrum.io/rpc",
            entry_point_address=ENTRY_POINT_V07,
            factory_address=os.getenv("ARBITRUM_SEPOLIA_FACTORY_ADDRESS", ZERO_ADDRESS),
            bundler_url=_pimlico_url(ARBITRUM_SEPOLIA),
            paymaster_url=_pimlico_url(ARBITRUM_SEPOLIA),
            block_explorer_url="https://sepolia.arbiscan.io",
        ),
        OPTIMISM_SEPOLIA: ChainConfig(
            chain_id=OPTIMISM_SEPOLIA,
            name="Optimism Sepolia",
            rpc_url="https://sepolia.optimism.io",
            entry_point_address=ENTRY_POINT_V07,
            factory_address=os.getenv("OP_SEPOLIA_FACTORY_ADDRESS", ZERO_ADDRESS),
            bundler_url=_pimlico_url(OPTIMISM_SEPOLIA),
            paymaster_url=_pimlico_url(OPTIMISM_SEPOLIA),
            block_explorer_url="https://sepolia-optimism.etherscan.io",
        ),
    }

    # The configured default chain honours explicit overrides from settings;
    # an unknown chain id (a local devnet) is registered from settings alone.
    default = registry.get(settings.chain_id)
    registry[settings.chain_id] = ChainConfig(
        chain_id=settings.chain_id,
        name=default.name if default else f"Chain {settings.chain_id}",
        rpc_url=settings.rpc_url,
        entry_point_address=settings.entry_point_address,
        factory_address=settings.factory_address,
        bundler_url=settings.bundler_url or (default.bundler_url if default else ""),
        paymaster_url=settings.paymaster_url or (default.paymaster_url if default else ""),
        block_explorer_url=default.block_explorer_url if default else "",
    )
    return registry


chain_registry: Dict[int, ChainConfig] = _build_registry()


def get_chain_config(chain_id: int) -> ChainConfig:
    config = chain_registry.get(chain_id)
    if config is None:
        raise UnsupportedChainError(f"Unsupported chain: {chain_id}")
    return config


def get_default_chain_config() -> ChainConfig:
    return get_chain_config(settings.chain_id)
