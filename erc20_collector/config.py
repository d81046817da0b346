from dataclasses import dataclass
from typing import Optional, Tuple

from loguru import logger

from .gas_tracker import GAS_TRACKER_URL, TIERS
from .models import NonceProviderType
from .transactor import POLL_INTERVAL
from .utils.logger import LOGGER_KINDS

CONFIRMATION_TIMEOUT = 2 * 60


@dataclass(frozen=True)
class CollectorConfig:
    rpc_urls: Tuple[str, ...]
    gas_tracker_url: str = GAS_TRACKER_URL
    gas_tier: str = "safeLow"
    nonce_provider_type: NonceProviderType = NonceProviderType.NETWORK
    fixed_nonce: int = 0
    max_workers: int = 1
    poll_interval: float = POLL_INTERVAL
    confirmation_timeout: float = CONFIRMATION_TIMEOUT
    request_timeout: float = 30
    proxy: Optional[str] = None
    poa: bool = True
    # None leaves the process logging alone
    logger_kind: Optional[str] = None
    logger_level: str = "INFO"
    log_dir: str = "logs"

    def __post_init__(self):
        if isinstance(self.rpc_urls, str):
            object.__setattr__(self, "rpc_urls", (self.rpc_urls,))
        if not self.rpc_urls:
            raise ValueError("at least one rpc url is required")
        if self.gas_tier not in TIERS:
            raise ValueError(f"unknown gas tier '{self.gas_tier}', expected one of {TIERS}")
        object.__setattr__(self, "nonce_provider_type", NonceProviderType(self.nonce_provider_type))
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if self.poll_interval <= 0 or self.confirmation_timeout <= 0:
            raise ValueError("poll_interval and confirmation_timeout must be positive")
        if self.logger_kind is not None and self.logger_kind not in LOGGER_KINDS:
            raise ValueError(f"unknown logger kind '{self.logger_kind}', expected one of {LOGGER_KINDS}")
        object.__setattr__(self, "logger_level", self.logger_level.upper())
        # unknown level names raise ValueError
        logger.level(self.logger_level)
