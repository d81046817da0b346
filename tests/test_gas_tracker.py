"""Gas station parsing and gwei -> wei conversion."""

import unittest
from unittest import mock

import requests

from erc20_collector.deadline import Deadline
from erc20_collector.exceptions import Cancelled, GasTrackerError
from erc20_collector.gas_tracker import GasTracker, format_float, parse_response, to_wei

RESPONSE = {
    "safeLow": {"maxPriorityFee": 30.123456789, "maxFee": 31.5},
    "standard": {"maxPriorityFee": 32.0, "maxFee": 33.25},
    "fast": {"maxPriorityFee": 40, "maxFee": 41.000000001},
    "estimatedBaseFee": 0.000000015,
    "blockTime": 2,
    "blockNumber": 51234567,
}


def tracker_with(payload=None, **response_attrs):
    session = mock.Mock()
    response = mock.Mock()
    response.json.return_value = payload
    for name, value in response_attrs.items():
        setattr(response, name, value)
    session.get.return_value = response
    return GasTracker("https://gas.example/v2", session=session), session


class GasTrackerQuoteTests(unittest.TestCase):
    def test_safe_low_quote_in_wei(self) -> None:
        tracker, session = tracker_with(RESPONSE)

        quote = tracker.quote(Deadline())

        self.assertEqual(quote.priority_fee, 30_123_456_789)
        self.assertEqual(quote.max_fee, 31_500_000_000)
        session.get.assert_called_once_with("https://gas.example/v2", timeout=30)

    def test_other_tier(self) -> None:
        _, session = tracker_with(RESPONSE)
        tracker = GasTracker("https://gas.example/v2", tier="fast", session=session)

        quote = tracker.quote(Deadline())

        self.assertEqual((quote.priority_fee, quote.max_fee), (40_000_000_000, 41_000_000_001))

    def test_only_safe_low_is_required(self) -> None:
        tracker, _ = tracker_with({"safeLow": {"maxPriorityFee": 1, "maxFee": 2}})

        quote = tracker.quote(Deadline())

        self.assertEqual((quote.priority_fee, quote.max_fee), (1_000_000_000, 2_000_000_000))

    def test_missing_tier_for_configured_tier(self) -> None:
        _, session = tracker_with({"safeLow": {"maxPriorityFee": 1, "maxFee": 2}})
        tracker = GasTracker("https://gas.example/v2", tier="standard", session=session)

        with self.assertRaises(GasTrackerError):
            tracker.quote(Deadline())

    def test_malformed_documents(self) -> None:
        for payload in (
            [],
            {},
            {"safeLow": None},
            {"safeLow": {"maxPriorityFee": "30", "maxFee": 31}},
            {"safeLow": {"maxPriorityFee": True, "maxFee": 31}},
            {"safeLow": {"maxFee": 31}},
            {"safeLow": {"maxPriorityFee": -1, "maxFee": 31}},
            {"safeLow": {"maxPriorityFee": float("inf"), "maxFee": 31}},
            {"safeLow": {"maxPriorityFee": float("nan"), "maxFee": 31}},
        ):
            with self.subTest(payload=payload):
                tracker, _ = tracker_with(payload)
                with self.assertRaises(GasTrackerError):
                    tracker.quote(Deadline())

    def test_http_error(self) -> None:
        tracker, _ = tracker_with(RESPONSE, raise_for_status=mock.Mock(side_effect=requests.HTTPError("502")))

        with self.assertRaises(GasTrackerError):
            tracker.quote(Deadline())

    def test_connection_error(self) -> None:
        tracker, session = tracker_with(RESPONSE)
        session.get.side_effect = requests.ConnectionError("refused")

        with self.assertRaises(GasTrackerError):
            tracker.quote(Deadline())

    def test_invalid_json(self) -> None:
        tracker, session = tracker_with()
        session.get.return_value.json.side_effect = ValueError("Expecting value")

        with self.assertRaises(GasTrackerError):
            tracker.quote(Deadline())

    def test_cancelled_deadline_skips_request(self) -> None:
        tracker, session = tracker_with(RESPONSE)
        deadline = Deadline()
        deadline.cancel()

        with self.assertRaises(Cancelled):
            tracker.quote(deadline)
        session.get.assert_not_called()

    def test_unknown_tier(self) -> None:
        with self.assertRaises(ValueError):
            GasTracker("https://gas.example/v2", tier="slow")


class ConversionTests(unittest.TestCase):
    def test_rounds_half_away_from_zero(self) -> None:
        self.assertEqual(format_float(0.5, 0), "1")
        self.assertEqual(format_float(2.5, 0), "3")
        self.assertEqual(format_float(2.4, 0), "2")

    def test_gwei_to_wei(self) -> None:
        self.assertEqual(to_wei(1.5, "fee"), 1_500_000_000)
        self.assertEqual(to_wei(0.0000000014, "fee"), 1)
        self.assertEqual(to_wei(0, "fee"), 0)

    def test_parse_keeps_metadata(self) -> None:
        response = parse_response(RESPONSE)

        self.assertEqual(response.block_number, 51234567)
        self.assertEqual(response.standard.max_fee, 33.25)
        self.assertIn("safe_low", str(response))


if __name__ == "__main__":
    unittest.main()
