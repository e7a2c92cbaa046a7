from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Type

import httpx

from ..config import settings
from ..core.execution.errors import InfrastructureError


class Provider(ABC):
    """Base provider interface"""

    name: str
    timeout_s: float = 10

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is ready to serve requests"""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Return provider health status"""
        pass


class JsonRpcProvider(Provider):
    """Provider speaking JSON-RPC 2.0 over HTTP POST."""

    # Raised when the service cannot be reached or answers with garbage.
    error_cls: Type[Exception] = InfrastructureError
    # Raised when the service answers with a JSON-RPC error object.
    rejection_cls: Type[Exception] = InfrastructureError

    def __init__(self, rpc_url: str, timeout_s: Optional[float] = None) -> None:
        self.rpc_url = rpc_url
        self.timeout_s = timeout_s or settings.rpc_timeout_seconds
        self._client: Optional[httpx.AsyncClient] = None
        self._request_id = 0

    async def ready(self) -> bool:
        return bool(self.rpc_url)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "disabled", "reason": f"{self.name} not configured"}

        try:
            result = await self._rpc_call("eth_chainId", [])
            return {"status": "healthy", "chainId": result}
        except Exception as exc:
            return {"status": "error", "reason": str(exc)}

    async def _rpc_call(self, method: str, params: List[Any]) -> Any:
        if not await self.ready():
            raise self.error_cls(f"{self.name} provider is not configured")

        if not self._client or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout_s)

        self._request_id += 1
        try:
            response = await self._client.post(
                self.rpc_url,
                json={"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise self.error_cls(
                f"{self.name} {method} failed with HTTP {exc.response.status_code}"
            ) from exc
        except httpx.RequestError as exc:
            raise self.error_cls(f"{self.name} {method} request failed: {exc}") from exc
        except ValueError as exc:
            raise self.error_cls(f"{self.name} {method} returned invalid JSON") from exc

        if "error" in payload:
            error = payload["error"] or {}
            message = error.get("message", "Unknown error") if isinstance(error, dict) else str(error)
            raise self.rejection_cls(f"{self.name} {method} rejected: {message}")
        return payload.get("result")

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
