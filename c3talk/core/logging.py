"""
Logging setup

Standard library logging with a single stream handler.
"""

import logging
import re
import sys
from typing import Optional

from c3talk.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_configured = False


def setup_logging(level: Optional[str] = None) -> None:
    """Configure the root c3talk logger once per process"""
    global _configured
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger("c3talk")
    root.setLevel((level or settings.log_level).upper())
    root.addHandler(handler)
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a module logger"""
    return logging.getLogger(name)


def key_fingerprint(key: Optional[str]) -> str:
    """Short, non-reversible view of an API key for log lines"""
    if not key:
        return "unknown"
    if len(key) <= 10:
        return "***"
    return f"{key[:6]}...{key[-4:]}"


def redact_secrets(text: str) -> str:
    """Strip API-key-like tokens from provider error content"""
    redacted = re.sub(r"\bsk-[A-Za-z0-9_-]{8,}\b", "[redacted-key]", text)
    redacted = re.sub(r"(?i)bearer\s+[A-Za-z0-9._-]{12,}", "Bearer [redacted-token]", redacted)
    redacted = re.sub(r"([?&]key=)[A-Za-z0-9._-]+", r"\1[redacted]", redacted)
    return redacted
