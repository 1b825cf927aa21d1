import logging
import os

LOG_LEVEL = os.environ.get("SL_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Install a single stream handler on the package root logger."""
    global _configured
    if _configured:
        return
    root = logging.getLogger("Shielded_Ledger")
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
