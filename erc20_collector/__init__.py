from .collector import Collector, classify_broadcast_error, new_evm_collector
from .config import CollectorConfig
from .deadline import Deadline
from .exceptions import (
    BroadcastError,
    Cancelled,
    ChainClientError,
    CollectorError,
    GasTrackerError,
    InsufficientBalanceError,
    InvalidAmountError,
    KeyProviderError,
)
from .key_provider import (
    KeyKind,
    KeystoreDecrypter,
    KmsDecrypter,
    PlainDecrypter,
    new_decrypter,
    new_key_provider,
    new_kms_encrypted_key_provider,
)
from .models import (
    DestinationAccount,
    GasFeeQuote,
    NonceProviderType,
    Result,
    SignedTx,
    SourceAccount,
    Status,
    TxParams,
)

__all__ = [
    "BroadcastError",
    "Cancelled",
    "ChainClientError",
    "Collector",
    "CollectorConfig",
    "CollectorError",
    "Deadline",
    "DestinationAccount",
    "GasFeeQuote",
    "GasTrackerError",
    "InsufficientBalanceError",
    "InvalidAmountError",
    "KeyKind",
    "KeyProviderError",
    "KeystoreDecrypter",
    "KmsDecrypter",
    "NonceProviderType",
    "PlainDecrypter",
    "Result",
    "SignedTx",
    "SourceAccount",
    "Status",
    "TxParams",
    "classify_broadcast_error",
    "new_evm_collector",
    "new_decrypter",
    "new_key_provider",
    "new_kms_encrypted_key_provider",
]
