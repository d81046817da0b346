"""Collect ERC-20 balances from many source accounts into one destination.

For every source account the collector

1. reads the token balance (zero balance -> skip);
2. resolves the amount (fixed amount or the whole balance);
3. gets a fee quote from the gas tracker;
4. builds and signs the token transfer;
5. tops up the source's native balance from the destination when the
   estimated fee is not covered, and waits for that top-up to be mined;
6. broadcasts the token transfer and waits for it to be mined.

Every account ends with exactly one ``Result``. Errors never escape
``collect``; they are logged and reported as ``Status.FAIL``.
"""

import concurrent.futures
import re
import traceback
from typing import List, Optional, Sequence

from loguru import logger

from .chain_client import ChainClient, web3_connect
from .config import CONFIRMATION_TIMEOUT, CollectorConfig
from .deadline import Deadline
from .exceptions import BroadcastError, CollectorError, InsufficientBalanceError, InvalidAmountError
from .gas_tracker import GasTracker
from .key_provider import masked_wallet
from .models import DestinationAccount, GasFeeQuote, Result, SourceAccount, Status, TxParams
from .nonce_provider import new_nonce_provider
from .transactor import Transactor
from .utils.logger import logging_setup

NONCE_TOO_LOW = "nonce too low"
ALREADY_KNOWN = "already known"
REPLACEMENT_TRANSACTION_UNDERPRICED = "replacement transaction underpriced"

BROADCAST_RACES = {
    NONCE_TOO_LOW: Status.SKIP,
    ALREADY_KNOWN: Status.PENDING,
    REPLACEMENT_TRANSACTION_UNDERPRICED: Status.PENDING,
}

AMOUNT_RE = re.compile(r"[0-9]+")


def classify_broadcast_error(message: str) -> Optional[Status]:
    """Status for a broadcast rejected because of a submission race.

    Matches the node's message exactly or as a ``"<marker>: detail"``
    prefix. Anything else is a real failure and yields None.
    """
    message = message.strip()
    for marker, status in BROADCAST_RACES.items():
        if message == marker or message.startswith(marker + ":"):
            return status
    return None


def resolve_amount(amount: str, balance: int) -> int:
    if not amount:
        return balance
    if not AMOUNT_RE.fullmatch(amount):
        raise InvalidAmountError(f"amount must be a base-10 integer, got {amount!r}")
    value = int(amount)
    if balance < value:
        raise InsufficientBalanceError(f"insufficient balance: {balance} < {value}")
    return value


class Collector:
    def __init__(self, transactor: Transactor, max_workers: int = 1,
                 confirmation_timeout: float = CONFIRMATION_TIMEOUT):
        self.transactor = transactor
        self.max_workers = max_workers
        self.confirmation_timeout = confirmation_timeout

    def get_chain_id(self, deadline: Optional[Deadline] = None) -> int:
        return self.transactor.chain_id(deadline or Deadline())

    def collect(self, destination: DestinationAccount, accounts: Sequence[SourceAccount],
                deadline: Optional[Deadline] = None) -> List[Result]:
        """One result per account, in the order the accounts were given."""
        if not accounts:
            return []

        run = Deadline(parent=deadline) if deadline is not None else Deadline()
        results: List[Optional[Result]] = [None] * len(accounts)
        workers = min(self.max_workers, len(accounts))
        logger.info(f"collecting from {len(accounts)} accounts in {workers} threads")

        try:
            with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
                futures = {
                    executor.submit(self._process, account, destination, run): index
                    for index, account in enumerate(accounts)
                }
                try:
                    for future in concurrent.futures.as_completed(futures):
                        results[futures[future]] = future.result()
                except BaseException:
                    # Ctrl-C and friends: let every worker resolve to fail
                    run.cancel()
                    raise
        finally:
            run.close()

        return results

    def _process(self, account: SourceAccount, destination: DestinationAccount, deadline: Deadline) -> Result:
        wallet = masked_wallet(account.address)
        try:
            result = self._collect(account, destination, deadline)
        except CollectorError as e:
            logger.error(f"[ {wallet} ] | {type(e).__name__}: {e}")
            result = Result(account, Status.FAIL)
        except Exception as e:
            logger.error(f"[ {wallet} ] | unexpected error: {e}")
            logger.error(traceback.format_exc())
            result = Result(account, Status.FAIL)

        logger.info(f"[ {wallet} ] | {result.status.value}")
        return result

    def _collect(self, account: SourceAccount, destination: DestinationAccount, deadline: Deadline) -> Result:
        wallet = masked_wallet(account.address)

        token_balance = self.transactor.balance_of(account.address, account.token, deadline)
        if token_balance == 0:
            logger.info(f"[ {wallet} ] | token balance is 0, nothing to collect")
            return Result(account, Status.SKIP)

        amount = resolve_amount(account.amount, token_balance)
        if amount == 0:
            logger.info(f"[ {wallet} ] | requested amount is 0, nothing to collect")
            return Result(account, Status.SKIP)

        fees = self.transactor.get_gas_cap_values(deadline)

        erc20_tx = self.transactor.create_erc20_tx(TxParams(
            sender=account.key_provider,
            receiver=destination.key_provider,
            amount=amount,
            gas_tip_cap=fees.priority_fee,
            gas_fee_cap=fees.max_fee,
            token_address=account.token,
        ), deadline)

        estimated_fee = erc20_tx.gas * fees.max_fee + fees.priority_fee
        native_balance = self.transactor.balance_at(account.address, deadline)
        remaining_fee = estimated_fee - native_balance
        if remaining_fee > 0:
            if not self._fund_gas(account, destination, remaining_fee, fees, deadline):
                return Result(account, Status.FAIL)

        try:
            self.transactor.transfer(erc20_tx, deadline)
        except BroadcastError as e:
            status = classify_broadcast_error(e.message)
            if status is None:
                raise
            logger.warning(f"[ {wallet} ] | broadcast of {erc20_tx.hash} rejected: {e.message}")
            if status == Status.PENDING and e.message.strip().startswith(ALREADY_KNOWN):
                return Result(account, status, erc20_tx.hash)
            return Result(account, status)

        with deadline.child(self.confirmation_timeout) as confirmation:
            mined = self.transactor.verify_tx(erc20_tx.hash, confirmation)

        if mined is None:
            logger.warning(f"[ {wallet} ] | {erc20_tx.hash} still pending")
            return Result(account, Status.PENDING, erc20_tx.hash)
        if not mined:
            logger.error(f"[ {wallet} ] | {erc20_tx.hash} reverted")
            return Result(account, Status.FAIL, erc20_tx.hash)
        return Result(account, Status.SUCCESS, erc20_tx.hash)

    def _fund_gas(self, account: SourceAccount, destination: DestinationAccount, value: int, fees: GasFeeQuote,
                  deadline: Deadline) -> bool:
        wallet = masked_wallet(account.address)
        logger.info(f"[ {wallet} ] | funding {value} wei of gas from {masked_wallet(destination.address)}")

        native_tx = self.transactor.create_tx(TxParams(
            sender=destination.key_provider,
            receiver=account.key_provider,
            amount=value,
            gas_tip_cap=fees.priority_fee,
            gas_fee_cap=fees.max_fee,
        ), deadline)
        self.transactor.transfer(native_tx, deadline)

        with deadline.child(self.confirmation_timeout) as confirmation:
            mined = self.transactor.verify_tx(native_tx.hash, confirmation)

        if mined is None:
            logger.error(f"[ {wallet} ] | funding {native_tx.hash} not mined in time")
        elif not mined:
            logger.error(f"[ {wallet} ] | funding {native_tx.hash} reverted")
        return bool(mined)


def new_evm_collector(config: CollectorConfig) -> Collector:
    if config.logger_kind is not None:
        logging_setup(config.logger_kind, config.logger_level, config.log_dir)

    web3 = web3_connect(config.rpc_urls, config.proxy, config.request_timeout, config.poa)
    client = ChainClient(web3)
    chain_id = client.chain_id(Deadline(config.request_timeout))
    logger.info(f"connected to chain {chain_id}")

    gas_tracker = GasTracker(config.gas_tracker_url, config.gas_tier, config.request_timeout, proxy=config.proxy)
    nonce_provider = new_nonce_provider(config.nonce_provider_type, client, config.fixed_nonce)
    transactor = Transactor(client, gas_tracker, nonce_provider, config.poll_interval)
    return Collector(transactor, config.max_workers, config.confirmation_timeout)
