# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Transport-neutral view of an HTTP request.

Both the signing and the validating side reduce whatever their HTTP stack
hands them (an ``httpx.Request``, a WSGI environ, CLI arguments) to an
``HttpRequest`` before canonicalizing it, so the two sides see exactly the
same fields.

Repeated headers are folded into one value by joining the individual
values with ``,`` in order of appearance.  WSGI servers fold repeated
fields the same way, which keeps a multi-valued header stable between the
client, which sends separate lines, and the server, which sees one.
"""

from __future__ import annotations

import urllib.parse
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace


HeaderItems = Iterable[tuple[str, str]] | Mapping[str, str]


def parse_query(query: str | bytes) -> tuple[tuple[str, str], ...]:
    """Parse a raw query string into decoded name/value pairs.

    Args:
        query: Query string without the leading ``?``.  May be bytes as
            delivered by the HTTP stack.

    Returns:
        Decoded pairs in order of appearance.  Blank values are kept.
    """
    if isinstance(query, bytes):
        query = query.decode("latin-1")
    if not query:
        return ()
    return tuple(urllib.parse.parse_qsl(query, keep_blank_values=True))


def header_items(
    headers: HeaderItems | None,
) -> tuple[tuple[str, str], ...]:
    """Normalize a header mapping or pair iterable to a tuple of pairs."""
    if headers is None:
        return ()
    if isinstance(headers, Mapping):
        headers = headers.items()
    return tuple((str(name), str(value)) for name, value in headers)


@dataclass(frozen=True)
class HttpRequest:
    """An HTTP request reduced to the parts that get signed.

    Attributes:
        method: HTTP method token, any case.
        path: Percent-decoded request path without the query string.
        query: Decoded query parameters in order of appearance.
        headers: Header name/value pairs in order of appearance.
        body: Raw body bytes; empty when the request has no body.
    """

    method: str
    path: str = "/"
    query: tuple[tuple[str, str], ...] = ()
    headers: tuple[tuple[str, str], ...] = ()
    body: bytes = field(default=b"", repr=False)

    @classmethod
    def from_url(
        cls,
        method: str,
        url: str,
        headers: HeaderItems | None = None,
        body: bytes | None = None,
    ) -> HttpRequest:
        """Build a request from a URL or a path with an optional query.

        Args:
            method: HTTP method.
            url: Absolute URL or ``/path?query``.
            headers: Request headers as a mapping or as pairs.
            body: Request body.

        Returns:
            HttpRequest with the path decoded and the query parsed.
        """
        parts = urllib.parse.urlsplit(url)
        return cls(
            method=method,
            path=urllib.parse.unquote(parts.path) or "/",
            query=parse_query(parts.query),
            headers=header_items(headers),
            body=body or b"",
        )

    def header(self, name: str) -> str | None:
        """Return the folded value of a header, or None if absent.

        Each value is stripped of surrounding whitespace before repeated
        values are joined with ``,``, so trailing whitespace is never
        signed.

        Args:
            name: Header name, matched case-insensitively.
        """
        wanted = name.lower()
        values = [v.strip() for k, v in self.headers if k.lower() == wanted]
        if not values:
            return None
        return ",".join(values)

    def header_names(self) -> list[str]:
        """Return the distinct header names, lower-cased, in order."""
        seen: dict[str, None] = {}
        for name, _ in self.headers:
            seen.setdefault(name.lower(), None)
        return list(seen)

    def with_header(self, name: str, value: str) -> HttpRequest:
        """Return a copy with ``name`` set to ``value``.

        Any existing values of the header (in any casing) are replaced.
        """
        wanted = name.lower()
        kept = tuple((k, v) for k, v in self.headers if k.lower() != wanted)
        return replace(self, headers=(*kept, (name, value)))
