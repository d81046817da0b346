"""Signing capabilities for source and destination accounts.

A key provider exposes ``address`` and ``sign_transaction(tx) -> SignedTx``.
Which variant is built is decided once, from a ``KeyKind`` tag.
"""

import base64
import re
from enum import Enum
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from eth_account import Account
from eth_keys.exceptions import ValidationError as KeyValidationError
from mnemonic import Mnemonic
from web3 import Web3

from .exceptions import KeyProviderError
from .models import SignedTx

DERIVATION_PATH = "m/44'/60'/0'/0/0"
MNEMONIC_LENGTHS = (12, 15, 18, 21, 24)
PRIVATE_KEY_RE = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")
KMS_ENCRYPTION_ALGORITHM = "RSAES_OAEP_SHA_256"

Account.enable_unaudited_hdwallet_features()


class KeyKind(str, Enum):
    PRIVATE_KEY = "private_key"
    SEED_PHRASE = "seed_phrase"
    ENCRYPTED = "encrypted"


def masked_wallet(address: Optional[str]) -> str:
    if address and len(address) >= 10:
        return f"{address[:6]}...{address[-4:]}"
    return str(address)


class PrivateKeyProvider:
    def __init__(self, private_key: str):
        try:
            self._account = Account.from_key(private_key)
        except (ValueError, TypeError, KeyValidationError) as e:
            raise KeyProviderError("invalid private key") from e

    @property
    def address(self) -> str:
        return self._account.address

    def sign_transaction(self, tx: Dict[str, Any]) -> SignedTx:
        try:
            signed = self._account.sign_transaction(tx)
        except (ValueError, TypeError) as e:
            raise KeyProviderError(f"failed to sign transaction: {e}") from e
        return SignedTx(
            hash=Web3.to_hex(signed.hash),
            raw_transaction=bytes(signed.raw_transaction),
            sender=self.address,
            nonce=tx["nonce"],
            gas=tx["gas"],
        )

    def __repr__(self):
        return f"{type(self).__name__}({masked_wallet(self.address)})"


class SeedPhraseKeyProvider(PrivateKeyProvider):
    def __init__(self, seed_phrase: str, derivation_path: str = DERIVATION_PATH):
        if not is_seed_phrase(seed_phrase):
            raise KeyProviderError("invalid seed phrase")
        account = Account.from_mnemonic(" ".join(seed_phrase.split()), account_path=derivation_path)
        super().__init__(Web3.to_hex(account.key))


class PlainDecrypter:
    """For keys that are stored unencrypted."""

    def decrypt(self, data: str) -> str:
        return data

    def encrypt(self, data: str) -> str:
        return data


class KeystoreDecrypter:
    """Decrypts a Web3 Secret Storage (keystore JSON) document."""

    def __init__(self, password: str):
        self.password = password

    def decrypt(self, data: str) -> str:
        try:
            return Web3.to_hex(Account.decrypt(data, self.password))
        except (ValueError, TypeError, KeyError) as e:
            raise KeyProviderError(f"failed to decrypt keystore: {e}") from e


class KmsDecrypter:
    """Encrypts and decrypts private keys with an AWS KMS asymmetric key.

    Ciphertext travels base64 encoded; the key must allow RSAES_OAEP_SHA_256.
    """

    def __init__(self, client: Any, key_id: str, encryption_algorithm: str = KMS_ENCRYPTION_ALGORITHM):
        self.client = client
        self.key_id = key_id
        self.encryption_algorithm = encryption_algorithm

    def encrypt(self, data: str) -> str:
        try:
            response = self.client.encrypt(
                KeyId=self.key_id,
                Plaintext=data.encode(),
                EncryptionAlgorithm=self.encryption_algorithm,
            )
        except (BotoCoreError, ClientError) as e:
            raise KeyProviderError(f"kms encrypt failed: {e}") from e
        return base64.b64encode(response["CiphertextBlob"]).decode()

    def decrypt(self, data: str) -> str:
        try:
            ciphertext = base64.b64decode(data, validate=True)
        except ValueError as e:
            raise KeyProviderError("unable to decode encrypted data") from e
        try:
            response = self.client.decrypt(
                CiphertextBlob=ciphertext,
                KeyId=self.key_id,
                EncryptionAlgorithm=self.encryption_algorithm,
            )
        except (BotoCoreError, ClientError) as e:
            raise KeyProviderError(f"kms decrypt failed: {e}") from e
        try:
            return response["Plaintext"].decode().strip()
        except UnicodeDecodeError as e:
            raise KeyProviderError("decrypted key is not text") from e


def new_kms_client(region_name: Optional[str] = None):
    return boto3.client("kms", region_name=region_name)


def new_decrypter(kind: str, kms_client: Any = None, key_id: Optional[str] = None, password: Optional[str] = None):
    """Decrypter by name: ``pk``, ``kms`` or ``keystore``."""
    kind = kind.lower()
    if kind == "pk":
        return PlainDecrypter()
    if kind == "kms":
        if kms_client is None or not key_id:
            raise KeyProviderError("unsupported decryption: kms needs a client and a key id")
        return KmsDecrypter(kms_client, key_id)
    if kind == "keystore":
        if password is None:
            raise KeyProviderError("keystore decryption needs a password")
        return KeystoreDecrypter(password)
    raise KeyProviderError(f"unknown decrypter '{kind}'")


class EncryptedKeyProvider(PrivateKeyProvider):
    def __init__(self, encrypted_key: str, decrypter: Any):
        super().__init__(decrypter.decrypt(encrypted_key))


def is_seed_phrase(data: str) -> bool:
    words = data.split()
    if len(words) not in MNEMONIC_LENGTHS:
        return False
    return Mnemonic("english").check(" ".join(words))


def wallet_data_kind(wallet_data: str) -> KeyKind:
    wallet_data = wallet_data.strip()
    if is_seed_phrase(wallet_data):
        return KeyKind.SEED_PHRASE
    if PRIVATE_KEY_RE.fullmatch(wallet_data):
        return KeyKind.PRIVATE_KEY
    raise KeyProviderError("wallet data is neither a private key nor a seed phrase")


def new_key_provider(kind: KeyKind, secret: str, decrypter: Any = None):
    kind = KeyKind(kind)
    if kind == KeyKind.SEED_PHRASE:
        return SeedPhraseKeyProvider(secret)
    if kind == KeyKind.ENCRYPTED:
        if decrypter is None:
            raise KeyProviderError("encrypted key needs a decrypter")
        return EncryptedKeyProvider(secret, decrypter)
    return PrivateKeyProvider(secret)


def key_provider_from_wallet_data(wallet_data: str):
    return new_key_provider(wallet_data_kind(wallet_data), wallet_data.strip())


def new_kms_encrypted_key_provider(kms_client: Any, key_id: str, encrypted_key: str):
    return new_key_provider(KeyKind.ENCRYPTED, encrypted_key, KmsDecrypter(kms_client, key_id))
