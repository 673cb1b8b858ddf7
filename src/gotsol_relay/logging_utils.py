"""
Logging utilities for relay operations.

Features:
- Process-wide logging setup (plain or JSON line format)
- Address masking for log output
- RPC URL masking (provider API keys live in query strings)
- Secret redaction filter so key material never reaches a handler
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

REDACTED = "[REDACTED]"


def mask_address(address: object) -> str:
    """Shorten an address to its first and last four characters."""
    text = str(address)
    if len(text) < 12:
        return text
    return f"{text[:4]}...{text[-4:]}"


def mask_url(url: str) -> str:
    """Drop query parameters, which may contain RPC provider keys."""
    if "?" in url:
        base = url.split("?")[0]
        return f"{base}?<params_masked>"
    return url


class SecretRedactionFilter(logging.Filter):
    """Replace any registered secret string in a record with a placeholder."""

    def __init__(self, secrets: Iterable[str] = ()) -> None:
        super().__init__()
        self._secrets = {s for s in secrets if s}

    def add_secret(self, secret: str) -> None:
        if secret:
            self._secrets.add(secret)

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._secrets:
            return True
        message = record.getMessage()
        redacted = message
        for secret in self._secrets:
            redacted = redacted.replace(secret, REDACTED)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


_redaction_filter = SecretRedactionFilter()


def get_redaction_filter() -> SecretRedactionFilter:
    """Filter installed on the root handlers by setup_logging()."""
    return _redaction_filter


def setup_logging(
    level: str = "INFO",
    format_string: Optional[str] = None,
    json_format: bool = False,
) -> None:
    """
    Set up logging configuration.

    Args:
        level: Log level
        format_string: Custom format string
        json_format: Use JSON formatting
    """
    if format_string is None:
        if json_format:
            format_string = '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "name": "%(name)s", "message": "%(message)s"}'
        else:
            format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=format_string,
    )
    for handler in logging.getLogger().handlers:
        if _redaction_filter not in handler.filters:
            handler.addFilter(_redaction_filter)

    logging.getLogger("gotsol_relay").setLevel(getattr(logging, level.upper()))
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
