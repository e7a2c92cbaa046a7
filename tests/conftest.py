"""
Shared fakes for the relay pipeline tests.
"""

import dataclasses
from unittest.mock import AsyncMock, MagicMock

import pytest
from eth_utils import keccak, to_checksum_address

from smartkit.chains import get_chain_config
from smartkit.core.execution.erc4337_executor import UserOpExecutor
from smartkit.core.execution.nonce_manager import NonceManager
from smartkit.core.execution.signer import LocalAccountSigner
from smartkit.core.execution.userop import FeeEstimate, SponsorshipResult, UserOpGasEstimate
from smartkit.core.wallet.address import AddressDeriver
from smartkit.core.wallet.service import SmartWalletService
from smartkit.db.memory_store import InMemoryStore

# Well-known throwaway key from the eth-account documentation
OPERATOR_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
FACTORY = "0x" + "fa" * 20
PAYMASTER = "0x" + "9a" * 20
CHAIN_ID = 84532
SUBMITTED_HASH = "0x" + "ab" * 32


def fake_counterfactual_address(owner: str, salt: int) -> str:
    digest = keccak(bytes.fromhex(owner[2:].lower()) + salt.to_bytes(32, "big"))
    return to_checksum_address(digest[-20:])


@pytest.fixture
def chain_config():
    return dataclasses.replace(
        get_chain_config(CHAIN_ID),
        factory_address=FACTORY,
        bundler_url="http://bundler.test",
        paymaster_url="http://paymaster.test",
    )


@pytest.fixture
def signer():
    return LocalAccountSigner(OPERATOR_KEY)


@pytest.fixture
def chain():
    chain = MagicMock()
    chain.is_deployed = AsyncMock(return_value=False)
    chain.get_nonce = AsyncMock(return_value=0)
    chain.suggest_fees = AsyncMock(
        return_value=FeeEstimate(max_fee_per_gas=2_000_000_000, max_priority_fee_per_gas=1_000_000)
    )
    chain.get_counterfactual_address = AsyncMock(side_effect=fake_counterfactual_address)
    return chain


@pytest.fixture
def bundler():
    bundler = MagicMock()
    bundler.estimate_user_operation_gas = AsyncMock(
        return_value=UserOpGasEstimate(
            call_gas_limit=100_000,
            verification_gas_limit=150_000,
            pre_verification_gas=45_000,
        )
    )
    bundler.send_user_operation = AsyncMock(return_value=SUBMITTED_HASH)
    bundler.get_user_operation_receipt = AsyncMock(return_value=None)
    return bundler


@pytest.fixture
def paymaster():
    paymaster = MagicMock()
    paymaster.sponsor_user_operation = AsyncMock(
        return_value=SponsorshipResult(
            paymaster_and_data=PAYMASTER + "00" * 32,
            call_gas_limit=50_000,
            verification_gas_limit=70_000,
            pre_verification_gas=21_000,
        )
    )
    return paymaster


@pytest.fixture
def nonce_manager(chain):
    return NonceManager(chain_provider_factory=lambda chain_id: chain)


@pytest.fixture
def executor(chain_config, chain, bundler, paymaster, signer, nonce_manager):
    return UserOpExecutor(
        chain_id=CHAIN_ID,
        chain=chain,
        bundler=bundler,
        paymaster=paymaster,
        signer=signer,
        nonce_manager=nonce_manager,
        config=chain_config,
    )


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def poller():
    poller = MagicMock()
    poller.schedule = MagicMock()
    poller.active_hashes = []
    return poller


@pytest.fixture
def wallet_service(store, poller, signer, executor, chain):
    return SmartWalletService(
        store=store,
        poller=poller,
        signer=signer,
        executor_factory=lambda chain_id: executor,
        address_deriver_factory=lambda chain_id: AddressDeriver(chain, signer.address),
        chain_id=CHAIN_ID,
    )
