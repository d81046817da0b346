import json
import random
import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests
from loguru import logger
from web3 import HTTPProvider, Web3
from web3.exceptions import TransactionNotFound, Web3Exception
from web3.middleware import ExtraDataToPOAMiddleware

from .deadline import Deadline
from .erc20 import ERC20_ABI
from .exceptions import BroadcastError, ChainClientError

CONNECT_ATTEMPTS = 10

RPC_ERRORS = (Web3Exception, ValueError, requests.RequestException)


def rpc_error_message(error: Exception) -> str:
    """The node's own error text, without the JSON-RPC envelope."""
    response = getattr(error, "rpc_response", None)
    if isinstance(response, dict):
        rpc_error = response.get("error")
        if isinstance(rpc_error, dict) and rpc_error.get("message"):
            return str(rpc_error["message"])
    if error.args and isinstance(error.args[0], dict) and "message" in error.args[0]:
        return str(error.args[0]["message"])
    return str(error)


class DeadlineHTTPProvider(HTTPProvider):
    """HTTP provider whose request timeout can be lowered for the calling thread.

    A request already on the wire is not interrupted by cancellation; it
    ends within its own timeout, which is at most ``request_timeout``.
    """

    def __init__(self, endpoint_uri: str, request_timeout: float = 30, session: Optional[requests.Session] = None):
        self._local = threading.local()
        self.request_timeout = request_timeout
        super().__init__(endpoint_uri, request_kwargs={"timeout": request_timeout}, session=session)

    @contextmanager
    def call_timeout(self, seconds: float):
        previous = getattr(self._local, "timeout", None)
        self._local.timeout = seconds
        try:
            yield
        finally:
            self._local.timeout = previous

    def get_request_kwargs(self) -> Dict[str, Any]:
        kwargs = dict(super().get_request_kwargs())
        timeout = getattr(self._local, "timeout", None)
        if timeout is not None:
            kwargs["timeout"] = timeout
        return kwargs


def web3_connect(rpc_urls: Sequence[str], proxy: Optional[str] = None, request_timeout: float = 30,
                 poa: bool = True) -> Web3:
    attempts = 0
    last_error: Optional[Exception] = None
    while attempts < CONNECT_ATTEMPTS:
        attempts += 1
        rpc_url = random.choice(list(rpc_urls))
        try:
            session = None
            if proxy is not None:
                session = requests.Session()
                session.proxies.update({"http": proxy, "https": proxy})

            provider = DeadlineHTTPProvider(rpc_url, request_timeout, session=session)
            web3 = Web3(provider)
            if poa:
                web3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

            if web3.is_connected():
                logger.debug(f"connected to {rpc_url}")
                return web3
            logger.warning(f"rpc {rpc_url} is not reachable, attempt {attempts}/{CONNECT_ATTEMPTS}")
        except RPC_ERRORS as e:
            last_error = e
            logger.warning(f"rpc {rpc_url} connection error, attempt {attempts}/{CONNECT_ATTEMPTS}: {e}")

        time.sleep(random.randint(1, 3))

    raise ChainClientError(f"could not connect to any of {list(rpc_urls)}: {last_error}")


class ChainClient:
    """Thin, thread-safe surface over the JSON-RPC calls the collector makes."""

    def __init__(self, web3: Web3):
        self.web3 = web3
        self._chain_id: Optional[int] = None
        self._erc20_abi: List[Dict[str, Any]] = json.loads(ERC20_ABI)

    @contextmanager
    def _rpc(self, deadline: Deadline):
        """Refuse to start once cancelled; cap the HTTP timeout by the time left."""
        deadline.check()
        provider = self.web3.provider
        if isinstance(provider, DeadlineHTTPProvider):
            with provider.call_timeout(deadline.timeout_for(provider.request_timeout)):
                yield
        else:
            yield

    def chain_id(self, deadline: Deadline) -> int:
        if self._chain_id is None:
            with self._rpc(deadline):
                try:
                    self._chain_id = int(self.web3.eth.chain_id)
                except RPC_ERRORS as e:
                    raise ChainClientError(f"failed to get chain id: {e}") from e
        return self._chain_id

    def native_balance(self, address: str, deadline: Deadline) -> int:
        with self._rpc(deadline):
            try:
                return int(self.web3.eth.get_balance(Web3.to_checksum_address(address)))
            except RPC_ERRORS as e:
                raise ChainClientError(f"failed to get balance wei: {e}") from e

    def token_balance(self, address: str, token_address: str, deadline: Deadline) -> int:
        with self._rpc(deadline):
            try:
                contract = self.web3.eth.contract(address=Web3.to_checksum_address(token_address),
                                                  abi=self._erc20_abi)
                return int(contract.functions.balanceOf(Web3.to_checksum_address(address)).call())
            except RPC_ERRORS as e:
                raise ChainClientError(f"failed to get token balance of {token_address}: {e}") from e

    def estimate_gas(self, call: Dict[str, Any], deadline: Deadline) -> int:
        with self._rpc(deadline):
            try:
                return int(self.web3.eth.estimate_gas(call))
            except RPC_ERRORS as e:
                raise ChainClientError(f"failed to estimate gas: {rpc_error_message(e)}") from e

    def nonce_at(self, address: str, deadline: Deadline, block_identifier: str = "pending") -> int:
        with self._rpc(deadline):
            try:
                return int(self.web3.eth.get_transaction_count(Web3.to_checksum_address(address), block_identifier))
            except RPC_ERRORS as e:
                raise ChainClientError(f"failed to get nonce: {e}") from e

    def broadcast(self, raw_transaction: bytes, deadline: Deadline):
        with self._rpc(deadline):
            try:
                self.web3.eth.send_raw_transaction(raw_transaction)
            except RPC_ERRORS as e:
                raise BroadcastError(rpc_error_message(e)) from e

    def receipt(self, tx_hash: str, deadline: Deadline) -> Tuple[bool, bool]:
        """``(found, success)`` for a transaction hash."""
        with self._rpc(deadline):
            try:
                tx_receipt = self.web3.eth.get_transaction_receipt(tx_hash)
            except TransactionNotFound:
                return False, False
            except RPC_ERRORS as e:
                raise ChainClientError(f"failed to get receipt for {tx_hash}: {e}") from e
        if tx_receipt is None:
            return False, False
        return True, tx_receipt["status"] == 1
