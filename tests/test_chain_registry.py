import pytest

from smartkit.chains import (
    ARBITRUM_SEPOLIA,
    BASE_SEPOLIA,
    OPTIMISM_SEPOLIA,
    get_chain_config,
    get_default_chain_config,
)
from smartkit.config import ENTRY_POINT_V07, settings
from smartkit.core.execution.errors import UnsupportedChainError, ValidationError


@pytest.mark.parametrize("chain_id", [BASE_SEPOLIA, ARBITRUM_SEPOLIA, OPTIMISM_SEPOLIA])
def test_supported_testnets_use_entry_point_v07(chain_id):
    config = get_chain_config(chain_id)

    assert config.chain_id == chain_id
    assert config.entry_point_address == ENTRY_POINT_V07
    assert config.block_explorer_url.startswith("https://")


def test_default_chain_follows_settings():
    config = get_default_chain_config()

    assert config.chain_id == settings.chain_id
    assert config.rpc_url == settings.rpc_url
    assert config.factory_address == settings.factory_address


def test_unknown_chain_rejected():
    with pytest.raises(UnsupportedChainError, match="Unsupported chain") as exc_info:
        get_chain_config(999_999_999)
    assert isinstance(exc_info.value, ValidationError)
