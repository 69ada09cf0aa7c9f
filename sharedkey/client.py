# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Client-side signing for httpx.

Usage::

    auth = SharedKeyAuth("barryd", secret_b64)
    with httpx.Client(base_url="https://api.example.com", auth=auth) as c:
        c.post("/api/Subscribers", json={"Email": "a@b.com", "Name": "A"})

Every request sent through the client gets ``Date``, ``Content-MD5`` (when
it has a body) and ``Authorization`` headers.
"""

from __future__ import annotations

import urllib.parse
from collections.abc import Callable, Generator
from datetime import datetime

import httpx

from sharedkey.config import ClientConfig, ConfigError, decode_secret
from sharedkey.request import HttpRequest, parse_query
from sharedkey.signing import Signer, sign_request


def request_from_httpx(request: httpx.Request) -> HttpRequest:
    """Convert an ``httpx.Request`` with a loaded body to an HttpRequest."""
    raw_path = request.url.raw_path.split(b"?", 1)[0].decode("ascii")
    return HttpRequest(
        method=request.method,
        path=urllib.parse.unquote(raw_path) or "/",
        query=parse_query(request.url.query),
        headers=tuple(request.headers.multi_items()),
        body=request.content,
    )


class SharedKeyAuth(httpx.Auth):
    """httpx authentication flow that signs requests with a shared key."""

    requires_request_body = True

    def __init__(
        self,
        account_id: str,
        secret: bytes | str,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize auth flow.

        Args:
            account_id: Account to sign as.
            secret: Shared key as raw bytes or base64 text.
            clock: Returns the time used for missing ``Date`` headers.

        Raises:
            ConfigError: If the account id or key is invalid.
        """
        if isinstance(secret, str):
            secret = decode_secret(secret)
        if not account_id or ":" in account_id:
            raise ConfigError(
                f"Account id must be non-empty and contain no ':': "
                f"{account_id!r}"
            )
        # Validate the key up front rather than on the first request
        Signer(secret)
        self.account_id = account_id
        self._secret = secret
        self._clock = clock

    @classmethod
    def from_config(cls, config: ClientConfig) -> SharedKeyAuth:
        """Build an auth flow from the ``client`` config section."""
        return cls(config.account_id, config.secret)

    def auth_flow(
        self, request: httpx.Request
    ) -> Generator[httpx.Request, httpx.Response, None]:
        """Sign ``request`` and send it."""
        now = self._clock() if self._clock else None
        signed = sign_request(
            request_from_httpx(request), self.account_id, self._secret, now=now
        )
        for name in ("Date", "Content-MD5", "Authorization"):
            value = signed.header(name)
            if value is not None:
                request.headers[name] = value
        yield request
