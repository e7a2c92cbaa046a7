"""
Tests for gas and fee estimation.
"""

import pytest

from smartkit.config import settings
from smartkit.core.execution.gas import GasFeeEstimator
from smartkit.core.execution.userop import DUMMY_SIGNATURE, UserOperation


def _op(**overrides) -> UserOperation:
    fields = dict(
        sender="0x1111111111111111111111111111111111111111",
        nonce=0,
        init_code="0x",
        call_data="0x",
    )
    fields.update(overrides)
    return UserOperation(**fields)


@pytest.mark.asyncio
async def test_fallback_fees_when_node_has_no_suggestion(chain, bundler):
    chain.suggest_fees.return_value = None

    fees = await GasFeeEstimator(chain, bundler).estimate_fees()

    assert fees.fallback is True
    assert fees.max_fee_per_gas == settings.fallback_max_fee_per_gas == 1_000_000_000
    assert fees.max_priority_fee_per_gas == settings.fallback_max_priority_fee_per_gas == 100_000_000


@pytest.mark.asyncio
async def test_estimation_uses_placeholder_signature(chain, bundler):
    op = _op(signature="0x" + "11" * 65)

    await GasFeeEstimator(chain, bundler).estimate_gas(op)

    sent = bundler.estimate_user_operation_gas.await_args.args[0]
    assert sent.signature == DUMMY_SIGNATURE
    # The caller's operation is untouched
    assert op.signature == "0x" + "11" * 65


@pytest.mark.asyncio
async def test_estimate_and_apply(chain, bundler):
    estimator = GasFeeEstimator(chain, bundler)
    op = _op()

    fees, gas = await estimator.estimate(op)
    estimator.apply(op, fees=fees, gas=gas)

    assert op.max_fee_per_gas == 2_000_000_000
    assert op.max_priority_fee_per_gas == 1_000_000
    assert (op.call_gas_limit, op.verification_gas_limit, op.pre_verification_gas) == (
        100_000,
        150_000,
        45_000,
    )
