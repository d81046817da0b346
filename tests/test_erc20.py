"""ERC-20 transfer calldata layout."""

import unittest

from erc20_collector.erc20 import TRANSFER_SELECTOR, decode_transfer_data, selector, transfer_data

RECIPIENT = "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"


class TransferDataTests(unittest.TestCase):
    def test_selector(self) -> None:
        self.assertEqual(TRANSFER_SELECTOR.hex(), "a9059cbb")
        self.assertEqual(selector("balanceOf(address)").hex(), "70a08231")

    def test_layout(self) -> None:
        data = transfer_data(RECIPIENT.lower(), 1000)

        self.assertEqual(len(data), 68)
        self.assertEqual(data[:4], TRANSFER_SELECTOR)
        self.assertEqual(data[4:16], b"\x00" * 12)
        self.assertEqual(data[16:36], bytes.fromhex(RECIPIENT[2:]))
        self.assertEqual(int.from_bytes(data[36:], "big"), 1000)

    def test_decode_recovers_recipient_and_amount(self) -> None:
        amount = 2 ** 200 + 12345

        self.assertEqual(decode_transfer_data(transfer_data(RECIPIENT, amount)), (RECIPIENT, amount))

    def test_max_uint256(self) -> None:
        data = transfer_data(RECIPIENT, 2 ** 256 - 1)

        self.assertEqual(data[36:], b"\xff" * 32)

    def test_rejects_bad_input(self) -> None:
        with self.assertRaises(ValueError):
            transfer_data(RECIPIENT, -1)
        with self.assertRaises(ValueError):
            decode_transfer_data(b"\x00" * 68)
        with self.assertRaises(ValueError):
            decode_transfer_data(transfer_data(RECIPIENT, 1)[:-1])


if __name__ == "__main__":
    unittest.main()
