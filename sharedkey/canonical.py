# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Canonical string construction for SharedKey signing.

The canonical string has three blocks, each line terminated by ``\\n``:

1. A fixed list of standard fields (method, content headers, ``Date``,
   conditional headers, ``Range``).  Missing fields are empty lines so
   every field keeps its position.
2. The ``x-ms-*`` custom headers, lower-cased and sorted by name.
3. The resource: ``/{account}{path}`` followed by the query parameters,
   lower-cased and sorted by name.

Two requests that differ only in header order, header name casing or query
parameter order canonicalize to the same string.
"""

from __future__ import annotations

import base64
import binascii
import email.utils
from collections.abc import Iterable
from datetime import UTC

from sharedkey.request import (
    HeaderItems,
    HttpRequest,
    header_items,
    parse_query,
)


#: Headers starting with this prefix are signed as custom headers.
CUSTOM_HEADER_PREFIX = "x-ms-"

_CONTENT_HEADERS = ("content-encoding", "content-language")
_CONDITIONAL_HEADERS = (
    "if-modified-since",
    "if-match",
    "if-none-match",
    "if-unmodified-since",
    "range",
)


def _line(value: object) -> str:
    return f"{'' if value is None else value}\n"


def format_http_date(value: str) -> str:
    """Normalize an HTTP date to RFC 1123 GMT form.

    Args:
        value: Date header value in any format ``email.utils`` understands.

    Returns:
        ``Sun, 06 Nov 1994 08:49:37 GMT`` style string, or the stripped
        input unchanged when it cannot be parsed.
    """
    value = value.strip()
    try:
        parsed = email.utils.parsedate_to_datetime(value)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return email.utils.format_datetime(
            parsed.astimezone(UTC), usegmt=True
        )
    except (TypeError, ValueError, OverflowError):
        return value


def _content_length(request: HttpRequest) -> str:
    if request.body:
        return str(len(request.body))
    declared = (request.header("content-length") or "").strip()
    return "" if declared in ("", "0") else declared


def _canonical_md5(value: str | None) -> str:
    if not value:
        return ""
    try:
        raw = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return value
    return base64.b64encode(raw).decode("ascii")


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------


def canonical_headers_block(request: HttpRequest) -> str:
    """Build the standard header block.

    Args:
        request: Request to canonicalize.

    Returns:
        Twelve newline-terminated lines.
    """
    date = request.header("date")

    lines = [_line(request.method.upper())]
    lines.extend(_line(request.header(name)) for name in _CONTENT_HEADERS)
    lines.append(_line(_content_length(request)))
    lines.append(_line(_canonical_md5(request.header("content-md5"))))
    lines.append(_line(request.header("content-type")))
    lines.append(_line(format_http_date(date) if date else ""))
    lines.extend(_line(request.header(name)) for name in _CONDITIONAL_HEADERS)
    return "".join(lines)


def _clean_custom_value(value: str) -> str:
    return value.lstrip().replace("\t", " ").replace("\r\n", "")


def canonical_custom_headers(request: HttpRequest) -> str:
    """Build the ``x-ms-*`` header block.

    Each custom header contributes exactly once, using its folded value.

    Args:
        request: Request to canonicalize.

    Returns:
        One ``name:value`` line per custom header, or an empty string.
    """
    names = sorted(
        name
        for name in request.header_names()
        if name.startswith(CUSTOM_HEADER_PREFIX)
    )
    return "".join(
        f"{name}:{_clean_custom_value(request.header(name) or '')}\n"
        for name in names
    )


def canonical_resource(
    path: str, query: Iterable[tuple[str, str]], account_id: str
) -> str:
    """Build the resource block.

    Args:
        path: Decoded request path without the query string.
        query: Decoded query parameters.
        account_id: Signing account.

    Returns:
        The ``/{account}{path}`` line followed by one line per parameter.
    """
    grouped: dict[str, list[str]] = {}
    for name, value in query:
        grouped.setdefault(name.lower(), []).append(value)

    lines = [_line(f"/{account_id}{path}")]
    for name in sorted(grouped):
        joined = ",".join(grouped[name]).rstrip(",")
        lines.append(_line(f"{name}:{joined}"))
    return "".join(lines)


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def canonicalize_request(request: HttpRequest, account_id: str) -> str:
    """Build the canonical string for ``request`` signed by ``account_id``.

    Args:
        request: Request to canonicalize.
        account_id: Account whose key signs the request.

    Returns:
        The canonical string.
    """
    return (
        canonical_headers_block(request)
        + canonical_custom_headers(request)
        + canonical_resource(request.path, request.query, account_id)
    )


def canonicalize(
    method: str,
    headers: HeaderItems,
    content_headers: HeaderItems | None,
    path: str,
    query: str | Iterable[tuple[str, str]],
    account_id: str,
    body: bytes = b"",
) -> str:
    """Build a canonical string from loose request parts.

    Args:
        method: HTTP method.
        headers: Request headers as a mapping or pairs.
        content_headers: Entity headers (``Content-Type``,
            ``Content-MD5`` and so on) when the HTTP stack keeps them
            apart from the request headers.  May be None.
        path: Decoded request path.
        query: Raw query string or decoded pairs.
        account_id: Signing account.
        body: Request body; only its length is signed here.  When empty,
            a declared ``Content-Length`` header supplies the length.

    Returns:
        The canonical string.

    Raises:
        ValueError: If a declared ``Content-Length`` disagrees with
            ``body``.
    """
    if isinstance(query, str):
        query = parse_query(query)
    request = HttpRequest(
        method=method,
        path=path,
        query=tuple(query),
        headers=header_items(headers) + header_items(content_headers),
        body=body,
    )
    declared = request.header("content-length")
    if body and declared and declared != str(len(body)):
        raise ValueError(
            f"Content-Length {declared!r} does not match a body of "
            f"{len(body)} bytes"
        )
    return canonicalize_request(request, account_id)
