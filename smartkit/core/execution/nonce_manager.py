"""
EntryPoint nonce management for concurrent sends.

Two sends for the same wallet can read the same on-chain nonce before either is
included, and the EntryPoint rejects the second at inclusion time. The manager
serializes nonce acquisition per wallet and hands out locally reserved nonces
ahead of the chain until the chain catches up. Each reservation expires on its
own age, so an operation the bundler silently dropped frees its nonce even while
the wallet keeps sending.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from smartkit.providers.chain import ChainProvider, get_chain_provider


@dataclass
class NonceState:
    """Tracks nonce state for a wallet on a chain."""
    address: str
    chain_id: int
    confirmed_nonce: int                        # Last seen on-chain
    pending_nonce: int                          # One past the highest reservation
    reserved_nonces: Dict[int, datetime] = field(default_factory=dict)  # nonce -> reserved at


class NonceManager:
    """
    Hands out EntryPoint nonces (key 0) for smart-account senders.

    Features:
    - Per-wallet lock around fetch-and-reserve
    - Always re-reads the chain, never hands out a nonce below it
    - Releases nonces of sends that failed before reaching the bundler
    - Forgets each reservation older than stale_after, reusing its nonce
    """

    def __init__(
        self,
        chain_provider_factory: Callable[[int], ChainProvider] = get_chain_provider,
        stale_after: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self._states: Dict[str, NonceState] = {}  # key: "{chain_id}:{address}"
        self._locks: Dict[str, asyncio.Lock] = {}
        self._chain_provider_factory = chain_provider_factory
        self._stale_after = stale_after
        self._clock = clock

    def _get_key(self, chain_id: int, address: str) -> str:
        return f"{chain_id}:{address.lower()}"

    def _get_lock(self, key: str) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    async def _fetch_on_chain_nonce(self, chain_id: int, address: str) -> int:
        return await self._chain_provider_factory(chain_id).get_nonce(address, 0)

    async def get_next_nonce(self, address: str, chain_id: int) -> int:
        """
        Reserve the next nonce for a wallet.

        Returns the lowest nonce at or above the on-chain nonce that no live
        reservation holds. Reservations the chain has passed, or older than
        stale_after, are dropped first.
        """
        key = self._get_key(chain_id, address)

        async with self._get_lock(key):
            on_chain_nonce = await self._fetch_on_chain_nonce(chain_id, address)
            now = self._clock()

            state = self._states.get(key)
            if state is None:
                state = NonceState(
                    address=address.lower(),
                    chain_id=chain_id,
                    confirmed_nonce=on_chain_nonce,
                    pending_nonce=on_chain_nonce,
                )
                self._states[key] = state

            state.confirmed_nonce = on_chain_nonce
            state.reserved_nonces = {
                n: reserved_at
                for n, reserved_at in state.reserved_nonces.items()
                if n >= on_chain_nonce and now - reserved_at <= self._stale_after
            }

            nonce = on_chain_nonce
            while nonce in state.reserved_nonces:
                nonce += 1

            state.reserved_nonces[nonce] = now
            state.pending_nonce = max(state.reserved_nonces) + 1
            return nonce

    async def release_nonce(self, address: str, chain_id: int, nonce: int) -> None:
        """
        Give a nonce back (the send failed before the bundler accepted it).
        """
        key = self._get_key(chain_id, address)

        async with self._get_lock(key):
            state = self._states.get(key)
            if state is None:
                return
            state.reserved_nonces.pop(nonce, None)
            state.pending_nonce = (
                max(state.reserved_nonces) + 1 if state.reserved_nonces else state.confirmed_nonce
            )

    async def get_state(self, address: str, chain_id: int) -> Optional[NonceState]:
        return self._states.get(self._get_key(chain_id, address))

    async def clear_state(self, address: str, chain_id: int) -> None:
        self._states.pop(self._get_key(chain_id, address), None)


# Singleton instance
_nonce_manager: Optional[NonceManager] = None


def get_nonce_manager() -> NonceManager:
    """Get the singleton nonce manager instance."""
    global _nonce_manager
    if _nonce_manager is None:
        _nonce_manager = NonceManager()
    return _nonce_manager
