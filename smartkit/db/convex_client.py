"""
Convex client for the relay's wallet and transaction tables.

Queries and mutations go through the Convex HTTP API. Failures surface as
ConvexError, an infrastructure error, and are never retried here.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from smartkit.config import settings
from smartkit.core.execution.errors import InfrastructureError

logger = logging.getLogger(__name__)


class ConvexError(InfrastructureError):
    """Base exception for Convex errors."""
    pass


class ConvexAuthError(ConvexError):
    """Authentication error when calling Convex."""
    pass


class ConvexQueryError(ConvexError):
    """Error executing a Convex query."""
    pass


class ConvexMutationError(ConvexError):
    """Error executing a Convex mutation."""
    pass


class ConvexClient:
    """
    Async client for Convex functions.

    Example usage:
        client = ConvexClient(
            deployment_url="https://your-deployment.convex.cloud",
            deploy_key="prod:your-deploy-key"
        )
        wallet = await client.query(
            "wallets:getWalletByProjectAndUser",
            {"projectId": "...", "userId": "..."},
        )
    """

    def __init__(
        self,
        deployment_url: Optional[str] = None,
        deploy_key: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self.deployment_url = deployment_url or settings.convex_url
        self.deploy_key = deploy_key or settings.convex_deploy_key
        self.timeout = timeout

        if not self.deployment_url:
            raise ConvexError("CONVEX_URL is required")

        self.deployment_url = self.deployment_url.rstrip("/")
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.deploy_key:
            headers["Authorization"] = f"Convex {self.deploy_key}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, headers=self.headers)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _call(
        self,
        kind: str,
        function_name: str,
        args: Optional[Dict[str, Any]],
        error_cls: type,
    ) -> Any:
        client = await self._get_client()
        try:
            response = await client.post(
                f"{self.deployment_url}/api/{kind}",
                json={"path": function_name, "args": args or {}, "format": "json"},
            )
            if response.status_code == 401:
                raise ConvexAuthError("Invalid or missing deploy key")
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise error_cls(f"{function_name} failed: HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise error_cls(f"{function_name} request failed: {e}") from e
        except ValueError as e:
            raise error_cls(f"{function_name} returned invalid JSON") from e

        if data.get("status") == "error" or "error" in data:
            message = data.get("errorMessage") or data.get("error")
            logger.warning(f"Convex {kind} {function_name} failed: {message}")
            raise error_cls(str(message))
        return data.get("value")

    async def query(self, function_name: str, args: Optional[Dict[str, Any]] = None) -> Any:
        """Execute a Convex query function, e.g. "wallets:getAllWallets"."""
        return await self._call("query", function_name, args, ConvexQueryError)

    async def mutation(self, function_name: str, args: Optional[Dict[str, Any]] = None) -> Any:
        """Execute a Convex mutation function. Usually returns the document id."""
        return await self._call("mutation", function_name, args, ConvexMutationError)

    async def health_check(self) -> Dict[str, Any]:
        try:
            await self.query("wallets:getWalletCount", {"projectId": "__healthcheck__"})
            return {"status": "ok"}
        except ConvexError as e:
            return {"status": "error", "error": str(e)}


# Singleton instance
_convex_client: Optional[ConvexClient] = None


def get_convex_client() -> ConvexClient:
    """Get the singleton Convex client instance."""
    global _convex_client
    if _convex_client is None:
        _convex_client = ConvexClient()
    return _convex_client
