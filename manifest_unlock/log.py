import logging
import os
import time

ROOT_LOGGER_NAME = "ManifestUnlock"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
APPID_LOG_FILE = "appidlogs.txt"

logger = logging.getLogger(ROOT_LOGGER_NAME)


def get_logger(name: str = "") -> logging.Logger:
    if not name:
        return logger
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def setup_logging(level=logging.INFO, log_file: str = None) -> logging.Logger:
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    if log_file and not any(
        isinstance(h, logging.FileHandler) and getattr(h, "baseFilename", None) == os.path.abspath(log_file)
        for h in logger.handlers
    ):
        try:
            os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            logger.addHandler(file_handler)
        except OSError as exc:
            logger.warning("Could not open log file %s: %s", log_file, exc)
    logger.setLevel(level)
    return logger


def log_appid_event(data_dir: str, action: str, appid: str, name: str) -> None:
    """Append an ADDED/REMOVED line to the per-install event log."""
    try:
        os.makedirs(data_dir, exist_ok=True)
        stamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime())
        line = f"[{action}] {appid} - {name} - {stamp}\n"
        with open(os.path.join(data_dir, APPID_LOG_FILE), "a", encoding="utf-8") as f:
            f.write(line)
    except OSError as exc:
        logger.warning("log_appid_event failed for %s: %s", appid, exc)
