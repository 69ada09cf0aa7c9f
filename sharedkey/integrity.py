# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Request body checksums carried in the ``Content-MD5`` header.

MD5 is only used to detect a body that does not match what was signed;
the HMAC over the canonical string (which includes the checksum) is what
provides authenticity.
"""

import base64
import binascii
import hashlib

from sharedkey.outcome import RejectionKind


#: Header carrying the base64 body checksum.
CHECKSUM_HEADER = "Content-MD5"


def body_checksum(body: bytes) -> bytes:
    """Return the 16-byte MD5 digest of ``body``."""
    return hashlib.md5(body, usedforsecurity=False).digest()


def encode_checksum(checksum: bytes) -> str:
    """Encode a digest for the ``Content-MD5`` header."""
    return base64.b64encode(checksum).decode("ascii")


def decode_checksum(value: str) -> bytes | None:
    """Decode a ``Content-MD5`` header value.

    Args:
        value: Header value.

    Returns:
        Digest bytes, or None if the value is not valid base64.
    """
    try:
        return base64.b64decode(value.strip(), validate=True)
    except (binascii.Error, ValueError):
        return None


def verify_body(body: bytes, declared: str | None) -> RejectionKind | None:
    """Check a request body against its declared checksum.

    An empty body is always acceptable, with or without a header.

    Args:
        body: Raw request body.
        declared: ``Content-MD5`` header value, or None if absent.

    Returns:
        None if the body is acceptable.  ``BODY_MISMATCH`` if the body is
        non-empty and no checksum was declared.  ``BODY_TAMPERED`` if the
        declared checksum is undecodable or does not match.
    """
    if not body:
        return None
    if not declared:
        return RejectionKind.BODY_MISMATCH

    expected = decode_checksum(declared)
    if expected is None or expected != body_checksum(body):
        return RejectionKind.BODY_TAMPERED
    return None
