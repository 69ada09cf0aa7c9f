# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Logging configuration with key and credential redaction.

Shared keys must never reach log output, and neither should complete
``SharedKey`` credentials (a leaked signature can be replayed until the
request expires).  ``SecretFilter`` handles both:

- Registered secrets (``AccountStore`` registers the base64 form of every
  key it holds) are replaced with ``[REDACTED]``.
- The signature part of any ``SharedKey account:signature`` credential is
  replaced with ``[REDACTED]``, keeping the account visible.

Usage:
    # In entry points (CLI, WSGI app factories)
    from sharedkey.logging import configure_logging
    configure_logging(level=logging.INFO)

    # In library modules
    import logging
    logger = logging.getLogger(__name__)
"""

import base64
import logging
import re
from typing import ClassVar


_REDACTED = "[REDACTED]"

# "SharedKey <account>:<base64 signature>"
_CREDENTIAL_RE = re.compile(r"(SharedKey\s+[^\s:]+:)[A-Za-z0-9+/=]+")


class SecretFilter(logging.Filter):
    """Logging filter that redacts keys and credential signatures.

    Example:
        SecretFilter.register_key(b"\\x01\\x02...")
        handler.addFilter(SecretFilter())
    """

    _secrets: ClassVar[set[str]] = set()
    _pattern: ClassVar[re.Pattern[str] | None] = None

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact secrets from the record's message and string args.

        Args:
            record: The log record to filter.

        Returns:
            Always True (records are modified, never dropped).
        """
        record.msg = self._redact(str(record.msg))
        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                self._redact(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        return True

    @classmethod
    def _redact(cls, text: str) -> str:
        if cls._pattern is not None:
            text = cls._pattern.sub(_REDACTED, text)
        return _CREDENTIAL_RE.sub(rf"\g<1>{_REDACTED}", text)

    @classmethod
    def register_secret(cls, secret: str) -> None:
        """Register a string to be redacted from all log output.

        Args:
            secret: Text to redact.  Empty strings are ignored.
        """
        if secret:
            cls._secrets.add(secret)
            cls._rebuild_pattern()

    @classmethod
    def register_key(cls, key: bytes) -> None:
        """Register the base64 form of a shared key for redaction."""
        if key:
            cls.register_secret(base64.b64encode(key).decode("ascii"))

    @classmethod
    def clear_secrets(cls) -> None:
        """Clear all registered secrets. Primarily for testing."""
        cls._secrets.clear()
        cls._pattern = None

    @classmethod
    def _rebuild_pattern(cls) -> None:
        if cls._secrets:
            # Longest first so a secret containing another is fully removed
            ordered = sorted(cls._secrets, key=len, reverse=True)
            escaped = [re.escape(s) for s in ordered]
            cls._pattern = re.compile("|".join(escaped))
        else:
            cls._pattern = None


def configure_logging(
    level: int = logging.INFO,
    format_string: str | None = None,
    add_secret_filter: bool = True,
) -> None:
    """Configure the root logger.

    Args:
        level: The logging level (e.g., logging.INFO, logging.DEBUG).
        format_string: Custom format string. If None, uses default format.
        add_secret_filter: Whether to add the SecretFilter.
    """
    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(format_string))

    if add_secret_filter:
        handler.addFilter(SecretFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for existing_handler in root_logger.handlers[:]:
        root_logger.removeHandler(existing_handler)

    root_logger.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a module.

    Args:
        name: The logger name, typically __name__.

    Returns:
        A logger instance.
    """
    return logging.getLogger(name)
