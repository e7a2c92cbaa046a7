from typing import Any, Dict

from fastapi import APIRouter

from ..config import settings
from ..providers.bundler import get_bundler_provider
from ..providers.chain import get_chain_provider
from ..providers.paymaster import get_paymaster_provider

router = APIRouter()


@router.get("/healthz")
async def health_check() -> Dict[str, Any]:
    """Health check endpoint that verifies chain node, bundler and paymaster status"""

    providers = {
        "chain": get_chain_provider(settings.chain_id),
        "bundler": get_bundler_provider(settings.chain_id),
        "paymaster": get_paymaster_provider(settings.chain_id),
    }

    provider_status = {}
    for name, provider in providers.items():
        provider_status[name] = await provider.health_check()

    # The paymaster is optional; chain node and bundler are not
    required_healthy = all(
        provider_status[name]["status"] == "healthy" for name in ("chain", "bundler")
    )
    paymaster_ok = provider_status["paymaster"]["status"] in ["healthy", "disabled"]

    return {
        "status": "healthy" if required_healthy and paymaster_ok else "degraded",
        "chainId": settings.chain_id,
        "providers": provider_status,
    }
