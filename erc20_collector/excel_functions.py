"""Account workbook: one row per source account.

Columns: NUMBER_WALLET, WALLET_DATA (private key or seed phrase), TOKEN,
AMOUNT (blank collects the whole balance), STATUS, TX_HASH. Rows with a
STATUS already filled in have been processed and are left alone.
"""

import math
import os
import threading
import time
from typing import Any, Dict, List

import pandas as pd
from loguru import logger
from openpyxl import load_workbook

lock = threading.Lock()

MAX_RETRIES = 30
RETRY_DELAY = 2  # seconds

REQUIRED_COLUMNS = ["NUMBER_WALLET", "WALLET_DATA", "TOKEN", "STATUS"]


def data_is_none(value: Any) -> bool:
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return bool(pd.isna(value))


def is_numeric(value: Any) -> bool:
    try:
        int(float(value))
        return True
    except (TypeError, ValueError):
        return False


def _same_number(cell_value: Any, number: Any) -> bool:
    if not is_numeric(cell_value) or not is_numeric(number):
        return False
    return int(float(cell_value)) == int(float(number))


def get_profile_for_work(file_path: str) -> List[Dict[str, Any]]:
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"account workbook not found: {file_path}")

    with lock:
        df = pd.read_excel(file_path, dtype=str, engine="openpyxl")

    missing = [column for column in REQUIRED_COLUMNS if column not in df.columns]
    if missing:
        raise ValueError(f"missing columns in {file_path}: {', '.join(missing)}")

    filtered_data = []
    for row in df.to_dict(orient="records"):
        if data_is_none(row.get("STATUS")) and is_numeric(row.get("NUMBER_WALLET")):
            row = {key: (None if data_is_none(value) else str(value).strip()) for key, value in row.items()}
            filtered_data.append(row)
    return filtered_data


def write_cell(file_path: str, column_name: str, profile_number: Any, write_value: Any):
    for attempt in range(MAX_RETRIES):
        with lock:
            try:
                wb = load_workbook(file_path)
                ws = wb.active

                headers = [cell.value for cell in ws[1]]
                number_col = headers.index("NUMBER_WALLET")
                if column_name in headers:
                    col_num = headers.index(column_name) + 1
                else:
                    col_num = ws.max_column + 1
                    ws.cell(row=1, column=col_num, value=column_name)

                for index, row in enumerate(ws.iter_rows(min_row=2, max_row=ws.max_row), start=2):
                    if _same_number(row[number_col].value, profile_number):
                        ws.cell(row=index, column=col_num, value=write_value)
                        break

                wb.save(file_path)
                wb.close()
                return

            except (OSError, KeyError, ValueError) as e:
                if attempt == MAX_RETRIES - 1:
                    raise OSError(f"failed to write {column_name} for {profile_number} after {MAX_RETRIES} attempts: {e}") from e
                logger.warning(f"workbook busy, retrying ({attempt + 1}/{MAX_RETRIES}): {e}")
        time.sleep(RETRY_DELAY)
