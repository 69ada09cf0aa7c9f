# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""SharedKey request signing.

A signature is HMAC-SHA256 over the UTF-8 canonical string (see
``sharedkey.canonical``), keyed with the account's shared secret.  It
travels in the ``Authorization`` header::

    Authorization: SharedKey <account>:<base64 signature>

Before signing, the sender adds a ``Date`` header if there is none and a
``Content-MD5`` header if the request has a body, so both are covered by
the signature.
"""

from __future__ import annotations

import base64
import binascii
import email.utils
import hashlib
import hmac
import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from sharedkey.canonical import canonicalize_request
from sharedkey.config import ConfigError
from sharedkey.integrity import CHECKSUM_HEADER, body_checksum, encode_checksum
from sharedkey.request import HttpRequest


logger = logging.getLogger(__name__)

#: Authorization scheme token.
SCHEME = "SharedKey"

#: Length of a raw HMAC-SHA256 signature.
SIGNATURE_LENGTH = hashlib.sha256().digest_size


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Credential:
    """Parsed ``account:signature`` credential.

    Attributes:
        account_id: Account that claims to have signed the request.
        signature: Raw signature bytes.
    """

    account_id: str
    signature: bytes


def parse_credential(parameter: str) -> Credential | None:
    """Parse the parameter of a ``SharedKey`` authorization header.

    Args:
        parameter: ``account:base64(signature)``.

    Returns:
        Credential, or None if there is no colon, the colon is the first
        or last character, or the signature is not valid base64.
    """
    parameter = parameter.strip()
    colon = parameter.find(":")
    if colon <= 0 or colon == len(parameter) - 1:
        return None
    try:
        signature = base64.b64decode(parameter[colon + 1 :], validate=True)
    except (binascii.Error, ValueError):
        return None
    return Credential(account_id=parameter[:colon], signature=signature)


def format_credential(account_id: str, signature: bytes) -> str:
    """Format an ``Authorization`` header value."""
    encoded = base64.b64encode(signature).decode("ascii")
    return f"{SCHEME} {account_id}:{encoded}"


def split_authorization(value: str) -> tuple[str, str]:
    """Split an ``Authorization`` header into scheme and parameter.

    Args:
        value: Header value, e.g. ``SharedKey acct:sig``.

    Returns:
        ``(scheme, parameter)``; the parameter is empty if missing.
    """
    scheme, _, parameter = value.strip().partition(" ")
    return scheme, parameter.strip()


# ---------------------------------------------------------------------------
# HMAC
# ---------------------------------------------------------------------------


class Signer:
    """Computes SharedKey signatures with one key.

    Attributes:
        key: The shared key bytes.
    """

    def __init__(self, key: bytes) -> None:
        """Initialize signer.

        Args:
            key: Shared key bytes.

        Raises:
            ConfigError: If the key is not bytes or is empty.
        """
        if not isinstance(key, (bytes, bytearray)):
            raise ConfigError(
                f"Signing key must be bytes, got {type(key).__name__}"
            )
        if not key:
            raise ConfigError("Signing key must not be empty")
        self.key = bytes(key)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(key=<{len(self.key)} bytes>)"

    def sign(self, canonical: str) -> bytes:
        """Return the raw 32-byte HMAC-SHA256 of ``canonical``."""
        return hmac.new(
            self.key, canonical.encode("utf-8"), hashlib.sha256
        ).digest()

    def sign_request(self, request: HttpRequest, account_id: str) -> bytes:
        """Canonicalize ``request`` for ``account_id`` and sign it."""
        return self.sign(canonicalize_request(request, account_id))


def sign(canonical: str, key: bytes) -> bytes:
    """Return the raw HMAC-SHA256 signature of a canonical string.

    Raises:
        ConfigError: If the key is empty.
    """
    return Signer(key).sign(canonical)


def compute_signature(
    request: HttpRequest, account_id: str, key: bytes
) -> bytes:
    """Canonicalize and sign a request.

    Args:
        request: Request as it will be (or was) sent.
        account_id: Signing account.
        key: Shared key bytes.

    Returns:
        Raw signature bytes.
    """
    return Signer(key).sign_request(request, account_id)


# ---------------------------------------------------------------------------
# Sender side
# ---------------------------------------------------------------------------


def prepare_request(
    request: HttpRequest, *, now: datetime | None = None
) -> HttpRequest:
    """Add the ``Date`` and ``Content-MD5`` headers a signed request needs.

    Existing values are kept.

    Args:
        request: Request to prepare.
        now: Timestamp for the ``Date`` header.  Defaults to the current
            UTC time.

    Returns:
        A new request with the headers set.
    """
    if request.header("date") is None:
        when = now or datetime.now(UTC)
        request = request.with_header(
            "Date", email.utils.format_datetime(when.astimezone(UTC), True)
        )

    if request.body and request.header(CHECKSUM_HEADER) is None:
        request = request.with_header(
            CHECKSUM_HEADER, encode_checksum(body_checksum(request.body))
        )
    return request


def sign_request(
    request: HttpRequest,
    account_id: str,
    key: bytes,
    *,
    now: datetime | None = None,
) -> HttpRequest:
    """Sign a request for sending.

    Adds ``Date`` and ``Content-MD5`` if needed, then sets the
    ``Authorization`` header.

    Args:
        request: Request to sign.
        account_id: Account to sign as.
        key: The account's shared key.
        now: Timestamp for a missing ``Date`` header.

    Returns:
        The signed request.  The input request is not modified.

    Raises:
        ConfigError: If the key is empty or the account id has a colon.
    """
    if not account_id or ":" in account_id:
        raise ConfigError(
            f"Account id must be non-empty and contain no ':': {account_id!r}"
        )
    signer = Signer(key)
    request = prepare_request(request, now=now)
    signature = signer.sign_request(request, account_id)
    logger.debug(
        "Signed %s %s as %s", request.method.upper(), request.path, account_id
    )
    return request.with_header(
        "Authorization", format_credential(account_id, signature)
    )
