"""Builds, signs, broadcasts and confirms collector transactions.

Two kinds of transaction are produced, both EIP-1559 (type 2):

* a native transfer from the destination account that tops up a source
  account's gas money;
* an ERC-20 ``transfer`` from the source account to the destination.

Building never retries. Broadcasting hands the node's error message back
untouched inside ``BroadcastError``. Confirmation polls the receipt every
``poll_interval`` seconds until the caller's deadline runs out.
"""

from typing import Any, Dict, Optional

from loguru import logger
from web3 import Web3

from .chain_client import ChainClient
from .deadline import Deadline
from .erc20 import transfer_data
from .exceptions import BroadcastError, Cancelled, ChainClientError, KeyProviderError
from .gas_tracker import GasTracker
from .key_provider import masked_wallet
from .models import GasFeeQuote, SignedTx, TxParams

POLL_INTERVAL = 10


class Transactor:
    def __init__(self, client: ChainClient, gas_tracker: GasTracker, nonce_provider: Any,
                 poll_interval: float = POLL_INTERVAL):
        self.client = client
        self.gas_tracker = gas_tracker
        self.nonce_provider = nonce_provider
        self.poll_interval = poll_interval

    def get_gas_cap_values(self, deadline: Deadline) -> GasFeeQuote:
        return self.gas_tracker.quote(deadline)

    def balance_at(self, address: str, deadline: Deadline) -> int:
        return self.client.native_balance(address, deadline)

    def balance_of(self, address: str, token_address: str, deadline: Deadline) -> int:
        return self.client.token_balance(address, token_address, deadline)

    def chain_id(self, deadline: Deadline) -> int:
        return self.client.chain_id(deadline)

    def _sign(self, params: TxParams, tx: Dict[str, Any], deadline: Deadline) -> SignedTx:
        tx.update({
            "type": 2,
            "chainId": self.chain_id(deadline),
            "maxPriorityFeePerGas": params.gas_tip_cap,
            "maxFeePerGas": params.gas_fee_cap,
            "nonce": self.nonce_provider.next_nonce(tx["from"], deadline),
        })
        try:
            signed = params.sender.sign_transaction(tx)
        except KeyProviderError:
            self.nonce_provider.reset(tx["from"], tx["nonce"])
            raise
        logger.info(f"[ {masked_wallet(signed.sender)} ] | created {signed.hash} nonce={signed.nonce}")
        return signed

    def create_erc20_tx(self, params: TxParams, deadline: Deadline) -> SignedTx:
        sender = params.sender.address
        receiver = params.receiver.address
        token = Web3.to_checksum_address(params.token_address)
        data = transfer_data(receiver, params.amount)
        gas_limit = self.client.estimate_gas({"from": sender, "to": token, "data": data}, deadline)

        logger.info(
            f"[ {masked_wallet(sender)} ] | erc20 tx details: token={token} receiver={masked_wallet(receiver)} "
            f"amount={params.amount} gasLimit={gas_limit} "
            f"gasTipCap={params.gas_tip_cap} gasFeeCap={params.gas_fee_cap}"
        )
        tx = {
            "from": sender,
            "to": token,
            "value": 0,
            "data": data,
            "gas": gas_limit,
        }
        return self._sign(params, tx, deadline)

    def create_tx(self, params: TxParams, deadline: Deadline) -> SignedTx:
        sender = params.sender.address
        receiver = params.receiver.address
        gas_limit = self.client.estimate_gas({"from": sender, "to": receiver, "value": params.amount}, deadline)

        logger.info(
            f"[ {masked_wallet(sender)} ] | native tx details: receiver={masked_wallet(receiver)} "
            f"value={params.amount} gasLimit={gas_limit} "
            f"gasTipCap={params.gas_tip_cap} gasFeeCap={params.gas_fee_cap}"
        )
        tx = {
            "from": sender,
            "to": receiver,
            "value": params.amount,
            "data": b"",
            "gas": gas_limit,
        }
        return self._sign(params, tx, deadline)

    def transfer(self, signed_tx: SignedTx, deadline: Deadline):
        try:
            self.client.broadcast(signed_tx.raw_transaction, deadline)
        except BroadcastError:
            # the nonce was not consumed, hand it out again
            self.nonce_provider.reset(signed_tx.sender, signed_tx.nonce)
            raise
        logger.info(f"[ {masked_wallet(signed_tx.sender)} ] | sent {signed_tx.hash}")

    def verify_tx(self, tx_hash: str, deadline: Deadline) -> Optional[bool]:
        """Wait for ``tx_hash`` to be mined.

        Returns True for a successful receipt, False for a reverted one and
        None when ``deadline`` runs out first. Raises ``Cancelled`` when the
        deadline is cancelled from above.
        """
        if not deadline.bounded:
            raise ValueError("deadline not set")
        if not tx_hash:
            raise ValueError("tx is empty")

        while True:
            if deadline.cancelled:
                logger.warning(f"failed to get receipt status for {tx_hash}: cancelled")
                raise Cancelled(f"stopped waiting for {tx_hash}")
            try:
                found, success = self.client.receipt(tx_hash, deadline)
            except ChainClientError as e:
                logger.warning(f"failed to get receipt for {tx_hash}: {e}")
            else:
                if found:
                    logger.debug(f"found transaction receipt for {tx_hash}: success={success}")
                    return success

            if deadline.expired:
                logger.warning(f"{tx_hash} not mined before the deadline")
                return None
            deadline.sleep(self.poll_interval)
