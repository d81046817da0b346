"""Nonce issuance."""

import threading
import unittest
from unittest import mock

from erc20_collector.deadline import Deadline
from erc20_collector.models import NonceProviderType
from erc20_collector.nonce_provider import FixedNonceProvider, NetworkNonceProvider, new_nonce_provider

ADDRESS = "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"


class NonceProviderTests(unittest.TestCase):
    def test_fixed(self) -> None:
        provider = FixedNonceProvider(5)

        self.assertEqual(provider.next_nonce(ADDRESS, Deadline()), 5)
        self.assertEqual(provider.next_nonce(ADDRESS, Deadline()), 5)
        self.assertEqual(FixedNonceProvider().next_nonce(ADDRESS, Deadline()), 0)

    def test_network_reads_pending_count(self) -> None:
        client = mock.Mock()
        client.nonce_at.return_value = 9
        provider = NetworkNonceProvider(client)

        self.assertEqual(provider.next_nonce(ADDRESS, Deadline()), 9)
        client.nonce_at.assert_called_once()

    def test_network_does_not_reissue_before_the_node_catches_up(self) -> None:
        client = mock.Mock()
        client.nonce_at.return_value = 9
        provider = NetworkNonceProvider(client)

        issued = [provider.next_nonce(ADDRESS, Deadline()) for _ in range(3)]
        self.assertEqual(issued, [9, 10, 11])

        client.nonce_at.return_value = 20
        self.assertEqual(provider.next_nonce(ADDRESS.lower(), Deadline()), 20)

    def test_reset_hands_back_the_last_nonce(self) -> None:
        client = mock.Mock()
        client.nonce_at.return_value = 9
        provider = NetworkNonceProvider(client)
        provider.next_nonce(ADDRESS, Deadline())
        rejected = provider.next_nonce(ADDRESS, Deadline())

        provider.reset(ADDRESS, rejected)

        self.assertEqual(provider.next_nonce(ADDRESS, Deadline()), 10)

    def test_reset_keeps_nonces_of_transactions_in_flight(self) -> None:
        client = mock.Mock()
        # the node has not seen either transaction yet
        client.nonce_at.return_value = 5
        provider = NetworkNonceProvider(client)
        in_flight = provider.next_nonce(ADDRESS, Deadline())
        rejected = provider.next_nonce(ADDRESS, Deadline())

        provider.reset(ADDRESS, rejected)
        following = provider.next_nonce(ADDRESS, Deadline())

        self.assertEqual((in_flight, rejected, following), (5, 6, 6))

    def test_reset_of_an_older_nonce_leaves_the_counter(self) -> None:
        client = mock.Mock()
        client.nonce_at.return_value = 5
        provider = NetworkNonceProvider(client)
        rejected = provider.next_nonce(ADDRESS, Deadline())
        in_flight = provider.next_nonce(ADDRESS, Deadline())

        provider.reset(ADDRESS, rejected)

        self.assertEqual(provider.next_nonce(ADDRESS, Deadline()), in_flight + 1)

    def test_concurrent_issuance_is_unique(self) -> None:
        client = mock.Mock()
        client.nonce_at.return_value = 0
        provider = NetworkNonceProvider(client)
        issued = []
        lock = threading.Lock()

        def worker():
            nonce = provider.next_nonce(ADDRESS, Deadline())
            with lock:
                issued.append(nonce)

        threads = [threading.Thread(target=worker) for _ in range(100)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(sorted(issued), list(range(100)))

    def test_factory(self) -> None:
        client = mock.Mock()

        self.assertIsInstance(new_nonce_provider(NonceProviderType.NETWORK, client), NetworkNonceProvider)
        fixed = new_nonce_provider("fixed", client, fixed_nonce=3)
        self.assertIsInstance(fixed, FixedNonceProvider)
        self.assertEqual(fixed.nonce, 3)


if __name__ == "__main__":
    unittest.main()
