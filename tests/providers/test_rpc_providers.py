"""
Tests for the chain, bundler and paymaster JSON-RPC providers.
"""

import dataclasses

import httpx
import pytest

from smartkit.config import ENTRY_POINT_V07
from smartkit.core.execution.errors import ChainRPCError, SponsorshipError
from smartkit.core.execution.userop import UserOperation
from smartkit.providers.bundler import BundlerError, BundlerProvider, BundlerRejectedError
from smartkit.providers.chain import ChainProvider
from smartkit.providers.paymaster import PaymasterError, PaymasterProvider, SponsorshipDeniedError

NODE_URL = "http://node.test"
BUNDLER_URL = "http://bundler.test"
PAYMASTER_URL = "http://paymaster.test"
OP_HASH = "0x" + "ab" * 32


class _FakeClient:
    """Stands in for the provider's httpx.AsyncClient; replays canned responses."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []
        self.is_closed = False

    async def post(self, url, json):
        self.requests.append({"url": url, "json": json})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def aclose(self):
        self.is_closed = True


def _response(status_code: int = 200, payload=None) -> httpx.Response:
    return httpx.Response(
        status_code, json=payload, request=httpx.Request("POST", "http://rpc.test")
    )


def _ok(result) -> httpx.Response:
    return _response(payload={"jsonrpc": "2.0", "id": 1, "result": result})


def _rpc_error(message: str) -> httpx.Response:
    return _response(
        payload={"jsonrpc": "2.0", "id": 1, "error": {"code": -32500, "message": message}}
    )


def _attach(provider, *responses) -> _FakeClient:
    client = _FakeClient(responses)
    provider._client = client
    return client


@pytest.fixture
def user_op():
    return UserOperation(sender="0x" + "33" * 20, nonce=1, init_code="0x", call_data="0x")


@pytest.fixture
def chain_provider(chain_config):
    return ChainProvider(dataclasses.replace(chain_config, rpc_url=NODE_URL))


def _sent(client: _FakeClient) -> dict:
    return client.requests[-1]["json"]


# =============================================================================
# Chain node
# =============================================================================


class TestChainProvider:
    @pytest.mark.asyncio
    async def test_is_deployed(self, chain_provider):
        _attach(chain_provider, _ok("0x"), _ok("0x6080604052"))

        assert await chain_provider.is_deployed("0x" + "33" * 20) is False
        assert await chain_provider.is_deployed("0x" + "33" * 20) is True

    @pytest.mark.asyncio
    async def test_counterfactual_address_calls_factory(self, chain_provider, chain_config):
        client = _attach(chain_provider, _ok("0x" + "00" * 12 + "22" * 20))

        address = await chain_provider.get_counterfactual_address("0x" + "11" * 20, 7)

        assert address.lower() == "0x" + "22" * 20
        assert client.requests[-1]["url"] == NODE_URL
        call = _sent(client)["params"][0]
        assert call["to"] == chain_config.factory_address
        assert call["data"].endswith(hex(7)[2:].rjust(64, "0"))

    @pytest.mark.asyncio
    async def test_get_nonce_reads_entry_point(self, chain_provider):
        client = _attach(chain_provider, _ok("0x" + hex(5)[2:].rjust(64, "0")))

        assert await chain_provider.get_nonce("0x" + "33" * 20) == 5
        assert _sent(client)["params"][0]["to"] == ENTRY_POINT_V07

    @pytest.mark.asyncio
    async def test_empty_eth_call_result(self, chain_provider):
        _attach(chain_provider, _ok("0x"))

        with pytest.raises(ChainRPCError):
            await chain_provider.get_nonce("0x" + "33" * 20)

    @pytest.mark.asyncio
    async def test_suggest_fees(self, chain_provider):
        _attach(chain_provider, _ok({"baseFeePerGas": hex(1_000)}), _ok(hex(10)))

        fees = await chain_provider.suggest_fees()

        assert fees.max_fee_per_gas == 2_010
        assert fees.max_priority_fee_per_gas == 10

    @pytest.mark.asyncio
    async def test_suggest_fees_without_base_fee(self, chain_provider):
        _attach(chain_provider, _ok({}), _ok(hex(10)))

        assert await chain_provider.suggest_fees() is None

    @pytest.mark.asyncio
    async def test_http_failure_maps_to_chain_error(self, chain_provider):
        _attach(chain_provider, _response(503))

        with pytest.raises(ChainRPCError, match="HTTP 503"):
            await chain_provider.get_code("0x" + "33" * 20)

    @pytest.mark.asyncio
    async def test_timeout_maps_to_chain_error(self, chain_provider):
        _attach(chain_provider, httpx.ConnectTimeout("timed out"))

        with pytest.raises(ChainRPCError):
            await chain_provider.get_code("0x" + "33" * 20)


# =============================================================================
# Bundler
# =============================================================================


class TestBundlerProvider:
    @pytest.mark.asyncio
    async def test_send_uses_packed_form(self, chain_config, user_op):
        provider = BundlerProvider(chain_config)
        client = _attach(provider, _ok(OP_HASH))
        user_op.call_gas_limit = 1
        user_op.verification_gas_limit = 2

        result = await provider.send_user_operation(user_op)

        assert result == OP_HASH
        assert client.requests[-1]["url"] == BUNDLER_URL
        body = _sent(client)
        assert body["method"] == "eth_sendUserOperation"
        packed, entry_point = body["params"]
        assert entry_point == ENTRY_POINT_V07
        assert packed["accountGasLimits"] == "0x" + "2".rjust(32, "0") + "1".rjust(32, "0")
        assert "callGasLimit" not in packed

    @pytest.mark.asyncio
    async def test_estimate(self, chain_config, user_op):
        provider = BundlerProvider(chain_config)
        _attach(
            provider,
            _ok(
                {
                    "callGasLimit": hex(100),
                    "verificationGasLimit": hex(200),
                    "preVerificationGas": hex(300),
                }
            ),
        )

        estimate = await provider.estimate_user_operation_gas(user_op)

        assert (
            estimate.call_gas_limit,
            estimate.verification_gas_limit,
            estimate.pre_verification_gas,
        ) == (100, 200, 300)

    @pytest.mark.asyncio
    async def test_receipt_not_yet_available(self, chain_config):
        provider = BundlerProvider(chain_config)
        _attach(provider, _ok(None))

        assert await provider.get_user_operation_receipt(OP_HASH) is None

    @pytest.mark.asyncio
    async def test_receipt(self, chain_config):
        provider = BundlerProvider(chain_config)
        _attach(
            provider,
            _ok(
                {
                    "success": False,
                    "actualGasUsed": hex(21_000),
                    "receipt": {"transactionHash": "0x" + "cd" * 32, "blockNumber": hex(9)},
                }
            ),
        )

        receipt = await provider.get_user_operation_receipt(OP_HASH)

        assert receipt.success is False
        assert receipt.transaction_hash == "0x" + "cd" * 32
        assert receipt.block_number == 9
        assert receipt.gas_used == 21_000

    @pytest.mark.asyncio
    async def test_rpc_error_is_rejection(self, chain_config, user_op):
        provider = BundlerProvider(chain_config)
        _attach(provider, _rpc_error("AA21 didn't pay prefund"))

        with pytest.raises(BundlerRejectedError, match="AA21"):
            await provider.send_user_operation(user_op)

    @pytest.mark.asyncio
    async def test_unconfigured_bundler(self, chain_config, user_op):
        provider = BundlerProvider(dataclasses.replace(chain_config, bundler_url=""))

        with pytest.raises(BundlerError, match="not configured"):
            await provider.send_user_operation(user_op)
        assert (await provider.health_check())["status"] == "disabled"


# =============================================================================
# Paymaster
# =============================================================================


class TestPaymasterProvider:
    @pytest.mark.asyncio
    async def test_combined_paymaster_and_data(self, chain_config, user_op):
        provider = PaymasterProvider(chain_config, sponsorship_policy_id="sp_test")
        client = _attach(
            provider,
            _ok(
                {
                    "paymasterAndData": "0x" + "9a" * 20 + "ff",
                    "callGasLimit": hex(1),
                    "verificationGasLimit": hex(2),
                    "preVerificationGas": hex(3),
                }
            ),
        )

        result = await provider.sponsor_user_operation(user_op)

        assert result.paymaster_and_data == "0x" + "9a" * 20 + "ff"
        assert result.pre_verification_gas == 3
        assert client.requests[-1]["url"] == PAYMASTER_URL
        body = _sent(client)
        assert body["method"] == "pm_sponsorUserOperation"
        assert body["params"][2] == {"sponsorshipPolicyId": "sp_test"}

    @pytest.mark.asyncio
    async def test_split_paymaster_fields_are_packed(self, chain_config, user_op):
        provider = PaymasterProvider(chain_config)
        _attach(
            provider,
            _ok(
                {
                    "paymaster": "0x" + "9a" * 20,
                    "paymasterVerificationGasLimit": hex(0x10),
                    "paymasterPostOpGasLimit": hex(0x20),
                    "paymasterData": "0xbeef",
                    "callGasLimit": hex(1),
                    "verificationGasLimit": hex(2),
                    "preVerificationGas": hex(3),
                }
            ),
        )

        result = await provider.sponsor_user_operation(user_op)

        assert result.paymaster_and_data == (
            "0x" + "9a" * 20 + "10".rjust(32, "0") + "20".rjust(32, "0") + "beef"
        )

    @pytest.mark.asyncio
    async def test_rpc_error_is_sponsorship_denial(self, chain_config, user_op):
        provider = PaymasterProvider(chain_config)
        _attach(provider, _rpc_error("sponsorship policy exhausted"))

        with pytest.raises(SponsorshipDeniedError):
            await provider.sponsor_user_operation(user_op)

    @pytest.mark.asyncio
    async def test_empty_paymaster_data_is_denial(self, chain_config, user_op):
        provider = PaymasterProvider(chain_config)
        _attach(provider, _ok({"paymasterAndData": "0x"}))

        with pytest.raises(SponsorshipError):
            await provider.sponsor_user_operation(user_op)

    @pytest.mark.asyncio
    async def test_outage_is_infrastructure_not_denial(self, chain_config, user_op):
        provider = PaymasterProvider(chain_config)
        _attach(provider, _response(502))

        with pytest.raises(PaymasterError) as exc_info:
            await provider.sponsor_user_operation(user_op)
        assert not isinstance(exc_info.value, SponsorshipError)
