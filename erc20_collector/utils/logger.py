import os
import sys
from datetime import date

from loguru import logger

FORMAT_INFO = "<green>{time:HH:mm:ss.SS}</green> | <blue>{level:<8}</blue> | <level>{message}</level>"
FORMAT_LOGFILE = "{time:HH:mm:ss.SS} | {level:<8} | {name}:{function}:{line:<8} | {message}"

# console: colored stdout only; file: stdout plus a daily log file
LOGGER_KINDS = ("console", "file")


def logging_setup(kind: str = "file", level: str = "INFO", log_dir: str = "logs", file_level: str = "DEBUG"):
    if kind not in LOGGER_KINDS:
        raise ValueError(f"unknown logger kind '{kind}', expected one of {LOGGER_KINDS}")
    logger.remove()

    if kind == "file":
        os.makedirs(log_dir, exist_ok=True)
        logger.add(os.path.join(log_dir, f"out_{date.today().strftime('%m-%d')}.log"),
                   format=FORMAT_LOGFILE, level=file_level, enqueue=True)
    logger.add(sys.stdout, colorize=True, format=FORMAT_INFO, level=level)
