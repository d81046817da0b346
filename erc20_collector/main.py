import getpass
import signal
import sys
from typing import Any, Dict, List

from loguru import logger

from .collector import new_evm_collector
from .config import CollectorConfig
from .deadline import Deadline
from .excel_functions import get_profile_for_work, write_cell
from .exceptions import CollectorError, KeyProviderError
from .key_provider import key_provider_from_wallet_data, masked_wallet
from .models import DestinationAccount, NonceProviderType, SourceAccount, Status

# Number of accounts processed at the same time
MAX_THREADS = 8
# Whole run is cancelled after this many seconds
COLLECTION_TIMEOUT = 60 * 60

ACCOUNT_FILE = "collect.xlsx"
LOG_DIR = "logs"
LOGGER_KIND = "file"
LOGGER_LEVEL = "INFO"

RPC = [
    "https://polygon-rpc.com",
    "https://polygon.drpc.org",
    "https://polygon-bor-rpc.publicnode.com",
]
GAS_TRACKER_URL = "https://gasstation.polygon.technology/v2"


def build_source_accounts(rows: List[Dict[str, Any]]):
    accounts = []
    numbers = []
    for row in rows:
        number = row["NUMBER_WALLET"]
        try:
            key_provider = key_provider_from_wallet_data(row["WALLET_DATA"] or "")
        except KeyProviderError as e:
            logger.error(f"{number} | bad wallet data: {e}")
            write_cell(ACCOUNT_FILE, "STATUS", number, Status.FAIL.value)
            continue
        if not row.get("TOKEN"):
            logger.error(f"[ {masked_wallet(key_provider.address)} ] | {number} | token address is missing")
            write_cell(ACCOUNT_FILE, "STATUS", number, Status.FAIL.value)
            continue

        accounts.append(SourceAccount(key_provider=key_provider, token=row["TOKEN"], amount=row.get("AMOUNT") or ""))
        numbers.append(number)
    return accounts, numbers


def main():
    config = CollectorConfig(
        rpc_urls=tuple(RPC),
        gas_tracker_url=GAS_TRACKER_URL,
        nonce_provider_type=NonceProviderType.NETWORK,
        max_workers=MAX_THREADS,
        logger_kind=LOGGER_KIND,
        logger_level=LOGGER_LEVEL,
        log_dir=LOG_DIR,
    )
    try:
        collector = new_evm_collector(config)
    except CollectorError as e:
        logger.error(f"could not start: {e}")
        sys.exit(1)
    print("======== ERC-20 COLLECTOR ========")

    rows = get_profile_for_work(ACCOUNT_FILE)
    if not rows:
        logger.warning("no accounts to collect from, check the STATUS column of the workbook")
        return

    accounts, numbers = build_source_accounts(rows)
    if not accounts:
        return

    try:
        destination = DestinationAccount(key_provider_from_wallet_data(getpass.getpass("Destination private key: ")))
    except KeyProviderError as e:
        logger.error(f"bad destination key: {e}")
        sys.exit(1)

    logger.warning(f"collecting into {masked_wallet(destination.address)} from {len(accounts)} accounts")
    deadline = Deadline(COLLECTION_TIMEOUT)

    def interrupt(signum, frame):
        logger.warning("interrupted, stopping unfinished accounts")
        deadline.cancel()

    signal.signal(signal.SIGINT, interrupt)
    results = collector.collect(destination, accounts, deadline)

    for number, result in zip(numbers, results):
        print(f"{number} | {result.source_account.address} | {result.status.value} | {result.tx_hash or ''}")
        write_cell(ACCOUNT_FILE, "STATUS", number, result.status.value)
        if result.tx_hash:
            write_cell(ACCOUNT_FILE, "TX_HASH", number, result.tx_hash)

    print("======== ERC-20 COLLECTOR ========")


if __name__ == "__main__":
    main()
