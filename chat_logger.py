"""
chat_logger.py - Logging setup shared by every chatdeck module

One named logger ("chatdeck") with two sinks:
- <LOG_DIR>/YYYY-MM-DD/chat.txt, everything from DEBUG up
- stderr, filtered by LOG_LEVEL

Helpers below scrub user text and credentials before they reach a log line.
"""

import os
import re
import logging
from datetime import datetime
from pathlib import Path

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(threadName)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_BEARER_RE = re.compile(r"(Bearer\s+)[A-Za-z0-9._\-]+")


class MillisecondFormatter(logging.Formatter):
    """Renders asctime as DATE_FORMAT plus .mmm"""

    def formatTime(self, record, datefmt=None):
        if not datefmt:
            return super().formatTime(record, datefmt)
        stamp = datetime.fromtimestamp(record.created).strftime(datefmt)
        return f"{stamp}.{int(record.msecs):03d}"


# ═══════════════════════════════════════════
# SCRUBBING
# ═══════════════════════════════════════════

def sanitize_log_string(text: str) -> str:
    """
    Flatten user-supplied text onto a single log line.

    Line breaks, tabs and any other character below 0x20 become spaces,
    so a message body can never forge an extra log record.
    """
    if not text:
        return text
    return "".join(" " if ord(ch) < 32 else ch for ch in text)


def mask_secret(secret: str, visible: int = 6) -> str:
    """Keep a short prefix of a credential and hide the rest."""
    if not secret:
        return "<unset>"
    if len(secret) <= visible:
        return "***"
    return f"{secret[:visible]}***"


def redact_bearer(text: str) -> str:
    """Replace bearer tokens inside free text (exception messages, dumps)."""
    if not text:
        return text
    return _BEARER_RE.sub(r"\1***", text)


# ═══════════════════════════════════════════
# SETUP
# ═══════════════════════════════════════════

def _file_handler(log_dir: str, logger: logging.Logger):
    day_dir = Path(log_dir) / datetime.now().strftime("%Y-%m-%d")
    try:
        day_dir.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(day_dir / "chat.txt", encoding="utf-8")
    except OSError as e:
        # Read-only checkouts still get console logging
        logger.warning(f"File logging disabled | dir={day_dir} | error={e}")
        return None


def setup_logger(name: str = "chatdeck", log_level: str = "INFO", log_dir: str = "logs") -> logging.Logger:
    """
    Attach the file and console handlers to logger *name*.

    Calling it again for an already configured logger changes nothing.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    # Handlers filter; the logger itself lets everything through
    logger.setLevel(logging.DEBUG)
    formatter = MillisecondFormatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    handlers = []
    file_handler = _file_handler(log_dir, logger)
    if file_handler is not None:
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    handlers.append(console_handler)

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


def get_logger(name: str = "chatdeck") -> logging.Logger:
    """Return logger *name*, configuring it from LOG_LEVEL / LOG_DIR on first use."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        setup_logger(name, os.getenv("LOG_LEVEL", "INFO"), os.getenv("LOG_DIR", "logs"))
    return logger
