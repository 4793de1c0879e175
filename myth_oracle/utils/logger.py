import logging
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
SYSTEM_LOG_NAME = "oracle.log"


# === Base Logger Setup ===
def setup_logging(log_dir: Optional[str] = None, level: str = "INFO") -> None:
    handlers = [logging.StreamHandler()]
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(os.path.join(log_dir, SYSTEM_LOG_NAME)))

    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


# === System Event Logger ===
def log_event(event: str):
    logging.info(f"[supply-oracle] {event}")


# === Error Logger ===
def log_error(error: str):
    logging.error(f"[supply-oracle] {error}")

