from typing import Tuple

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_utils import keccak, to_checksum_address

TRANSFER_SIGNATURE = "transfer(address,uint256)"

ERC20_ABI = """[{"constant":true,"inputs":[{"name":"_owner","type":"address"}],"name":"balanceOf","outputs":[{"name":"balance","type":"uint256"}],"stateMutability":"view","type":"function"},{"constant":false,"inputs":[{"name":"_to","type":"address"},{"name":"_value","type":"uint256"}],"name":"transfer","outputs":[{"name":"","type":"bool"}],"stateMutability":"nonpayable","type":"function"}]"""


def selector(signature: str) -> bytes:
    return keccak(text=signature)[:4]


TRANSFER_SELECTOR = selector(TRANSFER_SIGNATURE)


def transfer_data(to_address: str, amount: int) -> bytes:
    """Calldata for ``transfer(to, amount)``: selector + two 32-byte words."""
    if amount < 0:
        raise ValueError(f"negative transfer amount: {amount}")
    return TRANSFER_SELECTOR + abi_encode(["address", "uint256"], [to_checksum_address(to_address), amount])


def decode_transfer_data(data: bytes) -> Tuple[str, int]:
    if len(data) != 4 + 32 + 32 or data[:4] != TRANSFER_SELECTOR:
        raise ValueError("not an ERC-20 transfer payload")
    to_address, amount = abi_decode(["address", "uint256"], data[4:])
    return to_checksum_address(to_address), amount
