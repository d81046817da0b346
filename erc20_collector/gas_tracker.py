"""Gas price oracle client.

The oracle answers a plain GET with suggested EIP-1559 fees in gwei for
three tiers, e.g. the Polygon gas station::

    {"safeLow": {"maxPriorityFee": 30.1, "maxFee": 30.9},
     "standard": {...}, "fast": {...},
     "estimatedBaseFee": 0.8, "blockTime": 2, "blockNumber": 4215}

Only the configured tier (``safeLow`` unless told otherwise) is used.
Fees are converted to integer wei right away; nothing is guessed when the
oracle misbehaves.
"""

import json
from dataclasses import dataclass, asdict
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Optional

import requests
from loguru import logger

from .deadline import Deadline
from .exceptions import GasTrackerError
from .models import GasFeeQuote

GAS_TRACKER_URL = "https://gasstation.polygon.technology/v2"
TIERS = ("safeLow", "standard", "fast")
GWEI_DECIMALS = 9


@dataclass(frozen=True)
class FeeTier:
    max_priority_fee: float
    max_fee: float


@dataclass(frozen=True)
class GasTrackerResponse:
    safe_low: FeeTier
    standard: Optional[FeeTier] = None
    fast: Optional[FeeTier] = None
    estimated_base_fee: Optional[float] = None
    block_time: Optional[int] = None
    block_number: Optional[int] = None

    def tier(self, name: str) -> FeeTier:
        tier = {"safeLow": self.safe_low, "standard": self.standard, "fast": self.fast}[name]
        if tier is None:
            raise GasTrackerError(f"gas tracker response has no '{name}' tier")
        return tier

    def __str__(self):
        return json.dumps(asdict(self))


def _number(value: Any, field: str) -> float:
    # bool is an int subclass, JSON true/false is not a fee
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise GasTrackerError(f"gas tracker field '{field}' is not a number: {value!r}")
    return float(value)


def _parse_tier(data: Dict[str, Any], name: str, required: bool) -> Optional[FeeTier]:
    tier = data.get(name)
    if tier is None and not required:
        return None
    if not isinstance(tier, dict):
        raise GasTrackerError(f"gas tracker response has no '{name}' object")
    return FeeTier(
        max_priority_fee=_number(tier.get("maxPriorityFee"), f"{name}.maxPriorityFee"),
        max_fee=_number(tier.get("maxFee"), f"{name}.maxFee"),
    )


def parse_response(data: Any) -> GasTrackerResponse:
    if not isinstance(data, dict):
        raise GasTrackerError("gas tracker response is not a JSON object")
    return GasTrackerResponse(
        safe_low=_parse_tier(data, "safeLow", required=True),
        standard=_parse_tier(data, "standard", required=False),
        fast=_parse_tier(data, "fast", required=False),
        estimated_base_fee=data.get("estimatedBaseFee"),
        block_time=data.get("blockTime"),
        block_number=data.get("blockNumber"),
    )


def format_float(num: float, decimals: int) -> str:
    """``num * 10**decimals`` rounded half away from zero, as a base-10 string."""
    scaled = Decimal(num * (10 ** decimals)) if decimals > 0 else Decimal(num)
    return format(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP), "f")


def to_wei(gwei: float, field: str) -> int:
    try:
        value = int(format_float(gwei, GWEI_DECIMALS))
    except (InvalidOperation, ValueError, OverflowError) as e:
        raise GasTrackerError(f"invalid {field}: {gwei!r}") from e
    if value < 0:
        raise GasTrackerError(f"invalid {field}: {gwei!r}")
    return value


class GasTracker:
    def __init__(self, url: str = GAS_TRACKER_URL, tier: str = "safeLow", request_timeout: float = 30,
                 session: Optional[requests.Session] = None, proxy: Optional[str] = None):
        if tier not in TIERS:
            raise ValueError(f"unknown gas tier '{tier}', expected one of {TIERS}")
        self.url = url
        self.tier = tier
        self.request_timeout = request_timeout
        self.session = session or requests.Session()
        if proxy:
            self.session.proxies.update({"http": proxy, "https": proxy})

    def get_suggested_gas_price(self, deadline: Deadline) -> GasTrackerResponse:
        deadline.check()
        try:
            response = self.session.get(self.url, timeout=deadline.timeout_for(self.request_timeout))
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise GasTrackerError(f"failed to get a response from the gas tracker: {e}") from e
        except ValueError as e:
            raise GasTrackerError(f"gas tracker returned invalid JSON: {e}") from e

        result = parse_response(data)
        logger.debug(f"got from gas tracker: {result}")
        return result

    def quote(self, deadline: Deadline) -> GasFeeQuote:
        tier = self.get_suggested_gas_price(deadline).tier(self.tier)
        return GasFeeQuote(
            priority_fee=to_wei(tier.max_priority_fee, "gasTipCapValue"),
            max_fee=to_wei(tier.max_fee, "gasFeeCapValue"),
        )
