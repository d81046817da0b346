from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class Status(str, Enum):
    SUCCESS = "success"
    FAIL = "fail"
    PENDING = "pending"
    SKIP = "skip"


class NonceProviderType(str, Enum):
    FIXED = "fixed"
    NETWORK = "network"


@dataclass(frozen=True)
class SignedTx:
    hash: str
    raw_transaction: bytes
    sender: str
    nonce: int
    gas: int


@dataclass(frozen=True)
class SourceAccount:
    """Account the tokens are collected from.

    An empty ``amount`` means the whole token balance is collected.
    """
    key_provider: Any
    token: str
    amount: str = ""

    @property
    def address(self) -> str:
        return self.key_provider.address


@dataclass(frozen=True)
class DestinationAccount:
    """Account that pays for the gas top-ups and receives the tokens."""
    key_provider: Any

    @property
    def address(self) -> str:
        return self.key_provider.address


@dataclass(frozen=True)
class GasFeeQuote:
    priority_fee: int
    max_fee: int

    def __post_init__(self):
        if self.priority_fee < 0 or self.max_fee < 0:
            raise ValueError(f"negative gas fee quote: {self.priority_fee}/{self.max_fee}")


@dataclass(frozen=True)
class TxParams:
    sender: Any
    receiver: Any
    # wei / token base units
    amount: int
    # maxPriorityFeePerGas
    gas_tip_cap: int
    # maxFeePerGas
    gas_fee_cap: int
    # token contract; empty for native transfers
    token_address: str = ""


@dataclass(frozen=True)
class Result:
    source_account: SourceAccount
    status: Status
    tx_hash: Optional[str] = None
