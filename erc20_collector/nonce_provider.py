import threading
from typing import Dict

from loguru import logger

from .chain_client import ChainClient
from .deadline import Deadline
from .models import NonceProviderType


class FixedNonceProvider:
    def __init__(self, nonce: int = 0):
        self.nonce = nonce

    def next_nonce(self, address: str, deadline: Deadline) -> int:
        return self.nonce

    def reset(self, address: str, nonce: int):
        pass


class NetworkNonceProvider:
    """Nonces from the node's pending count, issued one at a time per address.

    Several workers may fund from the same destination at once; each of
    them gets ``max(pending count, last issued + 1)``.
    """

    def __init__(self, client: ChainClient):
        self.client = client
        self._issued: Dict[str, int] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, address: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(address.lower(), threading.Lock())

    def next_nonce(self, address: str, deadline: Deadline) -> int:
        key = address.lower()
        with self._lock_for(address):
            nonce = self.client.nonce_at(address, deadline)
            issued = self._issued.get(key)
            if issued is not None and issued >= nonce:
                nonce = issued + 1
            self._issued[key] = nonce
            return nonce

    def reset(self, address: str, nonce: int):
        """Give back an unused nonce.

        Only the most recently issued nonce can be taken back. Once a later
        one is out, the gap is left for the node to report.
        """
        key = address.lower()
        with self._lock_for(address):
            if self._issued.get(key) == nonce:
                self._issued[key] = nonce - 1
                logger.debug(f"nonce {nonce} of {address} handed back")


def new_nonce_provider(kind: NonceProviderType, client: ChainClient, fixed_nonce: int = 0):
    if NonceProviderType(kind) == NonceProviderType.NETWORK:
        return NetworkNonceProvider(client)
    return FixedNonceProvider(fixed_nonce)
